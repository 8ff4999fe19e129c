from fastapi import Depends, Request
from sqlalchemy.orm import Session
from nestaway.core.config import settings
from nestaway.core.database import get_db
from nestaway.core.exceptions import Unauthenticated
from nestaway.services.auth_service import AuthService, Clock
from nestaway.services.listing_service import ListingService
from nestaway.services.notifications import NotificationSender
from nestaway.services.verification_codes import VerificationCodeRegistry
from nestaway.utils.auth import decode_token
from nestaway.utils.file_storage import ObjectStorage
from uuid import UUID

# Process-wide collaborators are built once in create_app() and kept on app.state


def get_code_registry(request: Request) -> VerificationCodeRegistry:
    return request.app.state.code_registry


def get_notification_sender(request: Request) -> NotificationSender:
    return request.app.state.notification_sender


def get_object_storage(request: Request) -> ObjectStorage:
    return request.app.state.object_storage


def get_clock(request: Request) -> Clock:
    return request.app.state.clock


def get_auth_service(
    db: Session = Depends(get_db),
    registry: VerificationCodeRegistry = Depends(get_code_registry),
    sender: NotificationSender = Depends(get_notification_sender),
    clock: Clock = Depends(get_clock),
) -> AuthService:
    return AuthService(db, registry, sender, settings, clock=clock)


def get_listing_service(
    db: Session = Depends(get_db),
    storage: ObjectStorage = Depends(get_object_storage),
) -> ListingService:
    return ListingService(db, storage, settings)


async def get_current_user_id(request: Request) -> UUID:
    """
    Session gate: resolve the caller from the signed session cookie.

    Only the signature and expiry are checked here; no database access.
    """
    token = request.cookies.get(settings.SESSION_COOKIE_NAME)
    if not token:
        raise Unauthenticated("Not authenticated")

    payload = decode_token(token)
    if not payload:
        raise Unauthenticated("Invalid token")

    try:
        return UUID(str(payload.get("sub")))
    except ValueError:
        raise Unauthenticated("Invalid token")
