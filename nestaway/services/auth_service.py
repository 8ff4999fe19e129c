"""
Signup, email verification, login and session lookup.

A user starts unverified. The only transition is Unverified -> Verified,
taken when the most recently issued code for the email is presented before
it expires. Codes are single-use: a successful verify removes the entry.
Sessions are stateless signed tokens; nothing is stored server-side.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Tuple
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from nestaway.core.config import Settings
from nestaway.core.exceptions import (
    CodeExpired,
    Conflict,
    InvalidCode,
    InvalidCredentials,
    NotFound,
    Unauthenticated,
    Unverified,
    UpstreamFailure,
)
from nestaway.models.user import User
from nestaway.services.notifications import EmailSendError, NotificationSender
from nestaway.services.verification_codes import (
    VerificationCodeRegistry,
    generate_code,
    normalize_email,
)
from nestaway.utils.auth import create_access_token, get_password_hash, verify_password

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuthService:
    def __init__(
        self,
        db: Session,
        registry: VerificationCodeRegistry,
        sender: NotificationSender,
        settings: Settings,
        clock: Clock = utcnow,
    ):
        self.db = db
        self.registry = registry
        self.sender = sender
        self.settings = settings
        self.clock = clock

    def _find_user(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(User.email == normalize_email(email)).first()

    def _issue_code(self, email: str) -> None:
        code = generate_code()
        expires_at = self.clock() + timedelta(minutes=self.settings.VERIFICATION_CODE_EXPIRE_MINUTES)
        self.registry.put(email, code, expires_at)
        try:
            self.sender.send_verification_code(email, code)
        except EmailSendError as e:
            logger.error("Verification email to %s failed: %s", email, e)
            raise UpstreamFailure("Failed to send verification code") from e
        logger.info("Verification code sent to %s", email)

    def signup(self, first_name: str, last_name: str, email: str, password: str) -> str:
        email = normalize_email(email)
        if self._find_user(email):
            raise Conflict("Email already registered")

        user = User(
            first_name=first_name.strip(),
            last_name=last_name.strip(),
            email=email,
            password_hash=get_password_hash(password),
            verified=False,
        )
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError:
            # Lost a race with a concurrent signup for the same email
            self.db.rollback()
            raise Conflict("Email already registered")
        logger.info("User %s signed up", user.id)

        # The account exists even if delivery fails; resend-code recovers
        self._issue_code(email)
        return "Account created. Check your email for the code."

    def verify(self, email: str, code: str) -> str:
        email = normalize_email(email)
        record = self.registry.get(email)
        if record is None:
            raise NotFound("No verification code found", status_code=400)
        if record.is_expired(self.clock()):
            logger.info("Expired verification code presented for %s", email)
            raise CodeExpired("Code expired")
        if record.code != code:
            logger.info("Wrong verification code presented for %s", email)
            raise InvalidCode("Invalid code")
        if not self.registry.consume(email, code):
            # Another request used or replaced this code after our read
            raise NotFound("No verification code found", status_code=400)

        user = self._find_user(email)
        if user is not None:
            user.verified = True
            self.db.commit()
        logger.info("Email %s verified", email)
        return "Email verified successfully"

    def resend_code(self, email: str) -> str:
        # Same answer whether or not the email is registered
        self._issue_code(normalize_email(email))
        return "Verification code sent. Check your email."

    def login(self, email: str, password: str) -> Tuple[User, str]:
        user = self._find_user(email)
        if user is None:
            raise NotFound("User not found", status_code=400)
        if not user.verified:
            raise Unverified("Email not verified")
        if not verify_password(password, user.password_hash):
            logger.info("Failed login for user %s", user.id)
            raise InvalidCredentials("Invalid password")

        token = create_access_token(user.id, now=self.clock())
        logger.info("User %s logged in", user.id)
        return user, token

    def current_user(self, user_id: Optional[UUID]) -> User:
        if user_id is None:
            raise Unauthenticated()
        user = self.db.get(User, user_id)
        if user is None:
            raise NotFound("User not found")
        return user
