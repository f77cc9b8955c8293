"""Durable accounts produced by promoting a verified signup session."""
from sqlalchemy import Column, Integer, String, DateTime, Boolean, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
from smshub.database import Base
import enum


class Role(str, enum.Enum):
    USER = "USER"
    ONBOARDED = "ONBOARDED"
    ADMIN = "ADMIN"
    SUPERADMIN = "SUPERADMIN"


class SignupType(str, enum.Enum):
    new_tenant_owner = "new_tenant_owner"
    invited_member = "invited_member"
    individual = "individual"


class Identity(Base):
    __tablename__ = "identities"
    # One account per contact, across all hubs
    __table_args__ = (
        UniqueConstraint("email", name="uq_identities_email"),
        UniqueConstraint("phone", name="uq_identities_phone"),
    )

    id = Column(String(36), primary_key=True)
    email = Column(String(255), index=True, nullable=False)
    phone = Column(String(20), index=True, nullable=False)
    hub_id = Column(Integer, nullable=False, index=True)
    company_id = Column(String(36), ForeignKey("companies.id"), nullable=True, index=True)

    # Stored as plain text; smshub.services.roles normalizes case on every comparison
    role = Column(String(20), nullable=False, default=Role.USER.value)
    signup_type = Column(String(32), nullable=False, default=SignupType.new_tenant_owner.value)
    is_individual_customer = Column(Boolean, nullable=False, default=False)
    account_number = Column(String(40), unique=True, nullable=False)

    first_name = Column(String(100), nullable=False, default="")
    last_name = Column(String(100), nullable=False, default="")

    invited_by_id = Column(String(36), nullable=True)
    invitation_accepted_at = Column(DateTime(timezone=True), nullable=True)

    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
