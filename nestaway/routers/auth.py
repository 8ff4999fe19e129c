from fastapi import APIRouter, Depends, Response
from nestaway.api.deps import get_auth_service, get_current_user_id
from nestaway.core.config import settings
from nestaway.schemas.user import (
    SignupRequest,
    VerifyRequest,
    ResendCodeRequest,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    CurrentUserResponse,
    UserResponse,
)
from nestaway.services.auth_service import AuthService
from uuid import UUID

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/signup", response_model=MessageResponse)
def signup(data: SignupRequest, auth: AuthService = Depends(get_auth_service)):
    msg = auth.signup(data.first_name, data.last_name, data.email, data.password)
    return MessageResponse(msg=msg)


@router.post("/verify", response_model=MessageResponse)
def verify(data: VerifyRequest, auth: AuthService = Depends(get_auth_service)):
    return MessageResponse(msg=auth.verify(data.email, data.code))


@router.post("/resend-code", response_model=MessageResponse)
def resend_code(data: ResendCodeRequest, auth: AuthService = Depends(get_auth_service)):
    return MessageResponse(msg=auth.resend_code(data.email))


@router.post("/login", response_model=LoginResponse)
def login(data: LoginRequest, response: Response, auth: AuthService = Depends(get_auth_service)):
    user, token = auth.login(data.email, data.password)
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        max_age=settings.SESSION_EXPIRE_MINUTES * 60,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite=settings.COOKIE_SAMESITE,
    )
    return LoginResponse(msg="Logged in", user=UserResponse.model_validate(user))


@router.post("/logout", response_model=MessageResponse)
def logout(response: Response):
    # Sessions are stateless; logging out just drops the cookie
    response.delete_cookie(
        key=settings.SESSION_COOKIE_NAME,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite=settings.COOKIE_SAMESITE,
    )
    return MessageResponse(msg="Logged out")


@router.get("/home", response_model=CurrentUserResponse)
def home(
    user_id: UUID = Depends(get_current_user_id),
    auth: AuthService = Depends(get_auth_service),
):
    return CurrentUserResponse(user=UserResponse.model_validate(auth.current_user(user_id)))
