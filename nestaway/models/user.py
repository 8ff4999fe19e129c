from sqlalchemy import Column, String, Boolean
from sqlalchemy.orm import relationship
from nestaway.models.base import BaseModel
from nestaway.models.property import Property  # noqa: F401


class User(BaseModel):
    __tablename__ = "users"

    # Always stored lower-cased; uniqueness is case-insensitive because of that
    email = Column(String(255), unique=True, index=True, nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    password_hash = Column(String(255), nullable=False)

    verified = Column(Boolean, default=False, nullable=False)

    properties = relationship(
        "Property",
        back_populates="host",
        foreign_keys="Property.host_id",
    )
