from sqlalchemy import Column, String, DateTime
from nestaway.core.database import Base


class VerificationCode(Base):
    """Shared code table used when codes must survive across processes."""

    __tablename__ = "verification_codes"

    email = Column(String(255), primary_key=True)
    code = Column(String(6), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
