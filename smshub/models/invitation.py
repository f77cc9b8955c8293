"""Invitation from a company member to a new user; consumed by an invited_member signup."""
import enum

from sqlalchemy import Column, Integer, String, ForeignKey, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from smshub.database import Base


class InvitationStatus(str, enum.Enum):
    pending = "pending"
    accepted = "accepted"
    expired = "expired"


class Invitation(Base):
    __tablename__ = "invitations"

    id = Column(Integer, primary_key=True, index=True)
    invitation_token = Column(String(64), unique=True, nullable=False, index=True)

    email = Column(String(255), nullable=False)
    hub_id = Column(Integer, nullable=False)
    company_id = Column(String(36), ForeignKey("companies.id"), nullable=False)
    role = Column(String(20), nullable=False, default="USER")
    invited_by_id = Column(String(36), ForeignKey("identities.id"), nullable=True)

    status = Column(String(20), nullable=False, default=InvitationStatus.pending.value)  # pending, accepted, expired
    expires_at = Column(DateTime(timezone=True), nullable=False)
    accepted_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    company = relationship("Company", backref="invitations")
    invited_by = relationship("Identity", foreign_keys=[invited_by_id])
