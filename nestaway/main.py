import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from nestaway.core.config import settings, enforce_secure_settings
from nestaway.core.database import SessionLocal, init_db
from nestaway.core.exceptions import NestawayError
from nestaway.core.logging import configure_logging
from nestaway.routers import auth, properties
from nestaway.services.auth_service import Clock, utcnow
from nestaway.services.notifications import NotificationSender
from nestaway.services.verification_codes import VerificationCodeRegistry, build_code_registry
from nestaway.utils.file_storage import ObjectStorage, build_object_storage

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    enforce_secure_settings()
    init_db()
    if settings.STORAGE_BACKEND == "local":
        os.makedirs(os.path.join(settings.MEDIA_ROOT, "properties"), exist_ok=True)
    logger.info("%s started (env=%s)", settings.APP_NAME, settings.APP_ENV)
    yield


async def nestaway_error_handler(request: Request, exc: NestawayError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s (%s)", request.method, request.url.path, exc.kind, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def request_validation_handler(request: Request, exc: RequestValidationError):
    missing = {}
    errors = []
    for err in exc.errors():
        field = str(err["loc"][-1]) if err.get("loc") else ""
        if err.get("type") == "missing":
            missing[field] = True
        else:
            errors.append(f"{field}: {err.get('msg')}")
    content = {"kind": "Validation", "msg": "Please fill in all required fields" if missing else "Validation error"}
    if missing:
        content["missing"] = missing
    if errors:
        content["errors"] = errors
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=content)


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"kind": "InternalError", "msg": "Server error"},
    )


def create_app(
    code_registry: Optional[VerificationCodeRegistry] = None,
    notification_sender: Optional[NotificationSender] = None,
    object_storage: Optional[ObjectStorage] = None,
    clock: Clock = utcnow,
) -> FastAPI:
    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(
        title=settings.APP_NAME,
        description="Short-term rental listings and bookings browsing",
        version="1.0.0",
        debug=settings.DEBUG,
        lifespan=lifespan,
    )

    app.state.code_registry = code_registry or build_code_registry(settings.VERIFICATION_CODE_BACKEND, SessionLocal)
    app.state.notification_sender = notification_sender or NotificationSender(settings)
    app.state.object_storage = object_storage or build_object_storage(settings)
    app.state.clock = clock

    # Local uploads are served from here; the folder is created on startup
    app.mount("/media", StaticFiles(directory=settings.MEDIA_ROOT, check_dir=False), name="media")

    # Session cookie is cross-origin from the SPA, so credentials must be allowed
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(NestawayError, nestaway_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.include_router(auth.router, prefix="/api")
    app.include_router(properties.router, prefix="/api")

    @app.get("/")
    def root():
        return {
            "message": "Nestaway API",
            "version": "1.0.0",
            "status": "active",
            "documentation": "/docs",
        }

    @app.get("/health")
    def health_check():
        return {
            "status": "healthy",
            "service": settings.APP_NAME,
            "timestamp": datetime.now(timezone.utc),
        }

    return app


app = create_app()
