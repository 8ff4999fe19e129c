"""
Email verification codes.

A registry maps a normalised email to the single active ``{code, expires_at}``
for it. Writing a new code for an email replaces whatever was there, so only
the most recently issued code can ever validate.

Two backends:

- ``InMemoryCodeRegistry``: process-local dict. Fine for a single worker.
- ``DatabaseCodeRegistry``: the ``verification_codes`` table. Required once
  the API runs as more than one process, otherwise a verify request can land
  on a worker that never saw the signup.
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone
from threading import Lock
from typing import Callable, Dict, Optional

from sqlalchemy.orm import Session

from nestaway.models.verification import VerificationCode

logger = logging.getLogger(__name__)

CODE_LENGTH = 6


def generate_code() -> str:
    """Six random digits, leading zeros included."""
    return f"{secrets.randbelow(10 ** CODE_LENGTH):0{CODE_LENGTH}d}"


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


@dataclass(frozen=True)
class VerificationRecord:
    email: str
    code: str
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at


class VerificationCodeRegistry:
    def put(self, email: str, code: str, expires_at: datetime) -> None:
        raise NotImplementedError

    def get(self, email: str) -> Optional[VerificationRecord]:
        raise NotImplementedError

    def delete(self, email: str) -> None:
        raise NotImplementedError

    def consume(self, email: str, code: str) -> bool:
        """Remove the entry only if it still holds ``code``. True if this call removed it."""
        raise NotImplementedError


class InMemoryCodeRegistry(VerificationCodeRegistry):
    def __init__(self) -> None:
        self._lock = Lock()
        self._records: Dict[str, VerificationRecord] = {}

    def put(self, email: str, code: str, expires_at: datetime) -> None:
        key = normalize_email(email)
        with self._lock:
            self._records[key] = VerificationRecord(email=key, code=code, expires_at=expires_at)

    def get(self, email: str) -> Optional[VerificationRecord]:
        with self._lock:
            return self._records.get(normalize_email(email))

    def delete(self, email: str) -> None:
        with self._lock:
            self._records.pop(normalize_email(email), None)

    def consume(self, email: str, code: str) -> bool:
        key = normalize_email(email)
        with self._lock:
            record = self._records.get(key)
            if record is None or record.code != code:
                return False
            del self._records[key]
            return True

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands timezone-aware columns back as naive values
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class DatabaseCodeRegistry(VerificationCodeRegistry):
    """Registry backed by the shared database; one short session per call."""

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def put(self, email: str, code: str, expires_at: datetime) -> None:
        key = normalize_email(email)
        db = self._session_factory()
        try:
            # merge() is an upsert on the primary key (email): last write wins
            db.merge(VerificationCode(email=key, code=code, expires_at=expires_at))
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def get(self, email: str) -> Optional[VerificationRecord]:
        db = self._session_factory()
        try:
            row = db.get(VerificationCode, normalize_email(email))
            if row is None:
                return None
            return VerificationRecord(email=row.email, code=row.code, expires_at=_as_utc(row.expires_at))
        finally:
            db.close()

    def delete(self, email: str) -> None:
        db = self._session_factory()
        try:
            db.query(VerificationCode).filter(VerificationCode.email == normalize_email(email)).delete()
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def consume(self, email: str, code: str) -> bool:
        db = self._session_factory()
        try:
            # Conditional delete: of two concurrent callers only one sees a row go
            removed = (
                db.query(VerificationCode)
                .filter(VerificationCode.email == normalize_email(email), VerificationCode.code == code)
                .delete(synchronize_session=False)
            )
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()
        return removed == 1


def build_code_registry(backend: str, session_factory: Callable[[], Session]) -> VerificationCodeRegistry:
    if backend == "database":
        logger.info("Verification codes stored in the shared database")
        return DatabaseCodeRegistry(session_factory)
    if backend != "memory":
        raise ValueError(f"Unknown VERIFICATION_CODE_BACKEND: {backend!r}")
    logger.info("Verification codes stored in process memory (single instance only)")
    return InMemoryCodeRegistry()
