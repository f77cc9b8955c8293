"""Company (tenant account) and its inboxes. Only the columns the signup and onboarding flows touch."""
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from smshub.database import Base


class Company(Base):
    __tablename__ = "companies"

    id = Column(String(36), primary_key=True)
    hub_id = Column(Integer, nullable=False, index=True)
    public_name = Column(String(255), nullable=False)
    created_by_id = Column(String(36), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    inboxes = relationship("Inbox", back_populates="company")


class Inbox(Base):
    __tablename__ = "inboxes"

    id = Column(String(36), primary_key=True)
    company_id = Column(String(36), ForeignKey("companies.id"), nullable=False, index=True)
    hub_id = Column(Integer, nullable=False)
    name = Column(String(255), nullable=False)
    is_default = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    company = relationship("Company", back_populates="inboxes")


class InboxAssignment(Base):
    __tablename__ = "inbox_assignments"
    __table_args__ = (UniqueConstraint("identity_id", "inbox_id", name="uq_inbox_assignments_identity_inbox"),)

    id = Column(Integer, primary_key=True, index=True)
    hub_id = Column(Integer, nullable=False)
    identity_id = Column(String(36), ForeignKey("identities.id"), nullable=False, index=True)
    company_id = Column(String(36), ForeignKey("companies.id"), nullable=False)
    inbox_id = Column(String(36), ForeignKey("inboxes.id"), nullable=False)
    role = Column(String(20), nullable=False, default="USER")
    is_active = Column(Boolean, nullable=False, default=True)

    assigned_at = Column(DateTime(timezone=True), server_default=func.now())
