from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel
from typing import Optional
from uuid import UUID
from datetime import datetime


class CamelModel(BaseModel):
    """Accepts and emits the camelCase field names the web client uses."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class SignupRequest(CamelModel):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    # bcrypt only looks at the first 72 bytes
    password: str = Field(..., min_length=6, max_length=72)


class VerifyRequest(CamelModel):
    email: EmailStr
    code: str


class ResendCodeRequest(CamelModel):
    email: EmailStr


class LoginRequest(CamelModel):
    email: EmailStr
    password: str


class UserSummary(CamelModel):
    """Identity joined onto listings and reviews."""

    id: UUID
    first_name: str
    last_name: str


class UserResponse(UserSummary):
    email: str
    verified: bool
    created_at: Optional[datetime] = None


class MessageResponse(BaseModel):
    msg: str


class LoginResponse(BaseModel):
    msg: str
    user: UserResponse


class CurrentUserResponse(BaseModel):
    user: UserResponse
