"""Append-only audit log. No updates or deletes.
Also the counter for non-fatal code dispatch failures (category dispatch_failure)."""
from sqlalchemy import Column, Integer, String, Text, DateTime
from sqlalchemy.sql import func
from smshub.database import Base, JSONType


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)

    hub_id = Column(Integer, nullable=True, index=True)
    verification_session_id = Column(String(36), nullable=True, index=True)
    identity_id = Column(String(36), nullable=True, index=True)

    # category: status_change | failed_attempt | dispatch_failure
    category = Column(String(32), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)

    # Optional structured data (e.g. channel, attempts_made, step)
    meta = Column(JSONType, nullable=True)

    actor_email = Column(String(255), nullable=True)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(500), nullable=True)

    # UTC only - server_default
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
