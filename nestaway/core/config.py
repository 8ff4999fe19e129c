from pydantic import field_validator
from pydantic_settings import BaseSettings
from dotenv import load_dotenv
from typing import List
import os

load_dotenv()

DEFAULT_SECRET_KEY = "dev-secret-change-me"

DEFAULT_CATEGORIES = "beach,cabins,tropical,views,lake,design,mansions,tiny,camping,skiing"


def _csv(raw: str) -> List[str]:
    return [item.strip() for item in raw.split(",") if item.strip()]


class Settings(BaseSettings):
    # App
    APP_NAME: str = os.getenv("APP_NAME", "Nestaway API")
    APP_ENV: str = os.getenv("APP_ENV", "local")
    DEBUG: bool = os.getenv("DEBUG", "False") == "True"
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    CORS_ORIGINS: str = os.getenv("CORS_ORIGINS", "http://localhost:3000")

    # Database
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./nestaway.db")

    # Session (JWT in an HTTP-only cookie)
    SECRET_KEY: str = os.getenv("SECRET_KEY", DEFAULT_SECRET_KEY)
    ALGORITHM: str = os.getenv("ALGORITHM", "HS256")
    SESSION_EXPIRE_MINUTES: int = int(os.getenv("SESSION_EXPIRE_MINUTES", "1440"))
    SESSION_COOKIE_NAME: str = os.getenv("SESSION_COOKIE_NAME", "token")
    COOKIE_SECURE: bool = os.getenv("COOKIE_SECURE", "False") == "True"
    COOKIE_SAMESITE: str = os.getenv("COOKIE_SAMESITE", "lax")

    # Email verification
    VERIFICATION_CODE_EXPIRE_MINUTES: int = int(os.getenv("VERIFICATION_CODE_EXPIRE_MINUTES", "10"))
    VERIFICATION_CODE_BACKEND: str = os.getenv("VERIFICATION_CODE_BACKEND", "memory")

    # Outbound email
    EMAIL_BACKEND: str = os.getenv("EMAIL_BACKEND", "console")
    EMAIL_FROM: str = os.getenv("EMAIL_FROM", "")
    EMAIL_SENDER_NAME: str = os.getenv("EMAIL_SENDER_NAME", "Nestaway")
    SMTP_HOST: str = os.getenv("SMTP_HOST", "")
    SMTP_PORT: int = int(os.getenv("SMTP_PORT", "587"))
    SMTP_USER: str = os.getenv("SMTP_USER", "")
    SMTP_PASS: str = os.getenv("SMTP_PASS", "")
    BREVO_API_KEY: str = os.getenv("BREVO_API_KEY", "")

    # Image storage
    STORAGE_BACKEND: str = os.getenv("STORAGE_BACKEND", "local")
    MEDIA_ROOT: str = os.getenv("MEDIA_ROOT", "media")
    BASE_URL: str = os.getenv("BASE_URL", "http://localhost:8000")
    CLOUDINARY_CLOUD_NAME: str = os.getenv("CLOUDINARY_CLOUD_NAME", "")
    CLOUDINARY_API_KEY: str = os.getenv("CLOUDINARY_API_KEY", "")
    CLOUDINARY_API_SECRET: str = os.getenv("CLOUDINARY_API_SECRET", "")
    CLOUDINARY_FOLDER: str = os.getenv("CLOUDINARY_FOLDER", "nestaway/properties")
    MAX_IMAGES_PER_PROPERTY: int = int(os.getenv("MAX_IMAGES_PER_PROPERTY", "10"))
    MAX_IMAGE_SIZE_MB: int = int(os.getenv("MAX_IMAGE_SIZE_MB", "5"))

    # Listings
    PROPERTY_CATEGORIES: str = os.getenv("PROPERTY_CATEGORIES", DEFAULT_CATEGORIES)

    @field_validator("DATABASE_URL")
    @classmethod
    def fix_postgres_scheme(cls, v: str) -> str:
        # Some managed providers still hand out `postgres://` which SQLAlchemy rejects
        if v.startswith("postgres://"):
            return v.replace("postgres://", "postgresql://", 1)
        return v

    @field_validator("APP_ENV", "VERIFICATION_CODE_BACKEND", "EMAIL_BACKEND", "STORAGE_BACKEND")
    @classmethod
    def normalize_choice(cls, v: str) -> str:
        return v.strip().lower()

    @property
    def cors_origins(self) -> List[str]:
        return _csv(self.CORS_ORIGINS)

    @property
    def property_categories(self) -> List[str]:
        return [c.lower() for c in _csv(self.PROPERTY_CATEGORIES)]


settings = Settings()


def enforce_secure_settings(current: Settings = settings) -> None:
    """Fail fast in production if the development signing key is still in use."""
    if current.APP_ENV in {"prod", "production"} and current.SECRET_KEY == DEFAULT_SECRET_KEY:
        raise RuntimeError("SECRET_KEY must be set in production (default dev secret detected)")
