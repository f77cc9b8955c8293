"""One in-flight proof-of-contact attempt (signup or login). Identities are created only after it verifies."""
import enum

from sqlalchemy import Column, Integer, String, DateTime, Boolean, ForeignKey
from sqlalchemy.sql import func

from smshub.database import Base, JSONType


class Channel(str, enum.Enum):
    sms = "sms"
    email = "email"


class SessionStatus(str, enum.Enum):
    pending = "pending"
    verified = "verified"
    expired = "expired"
    exhausted = "exhausted"


class VerificationSession(Base):
    __tablename__ = "verification_sessions"

    id = Column(String(36), primary_key=True)
    hub_id = Column(Integer, nullable=False, index=True)

    email = Column(String(255), nullable=False, index=True)
    phone = Column(String(20), nullable=False, index=True)
    channel = Column(String(10), nullable=False)

    # Never leaves the server; compared in the conditional UPDATE that verifies the session
    verification_code = Column(String(6), nullable=False)

    attempts_made = Column(Integer, nullable=False, default=0)
    attempts_allowed = Column(Integer, nullable=False, default=5)

    expires_at = Column(DateTime(timezone=True), nullable=False)

    is_login = Column(Boolean, nullable=False, default=False)
    signup_type = Column(String(32), nullable=True)  # null for login sessions
    invitation_token = Column(String(64), nullable=True)
    company_id = Column(String(36), nullable=True)  # pre-resolved from the invitation

    status = Column(String(16), nullable=False, default=SessionStatus.pending.value, index=True)
    verified_at = Column(DateTime(timezone=True), nullable=True)
    # Login: the existing identity, set at send time. Signup: the identity promotion produced.
    identity_id = Column(String(36), ForeignKey("identities.id"), nullable=True, index=True)

    extra_data = Column(JSONType, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
