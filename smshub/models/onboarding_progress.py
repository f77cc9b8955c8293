"""Where a promoted account is in the compliance onboarding flow. One row per (hub, identity)."""
from sqlalchemy import Column, Integer, String, DateTime, Boolean, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func

from smshub.database import Base, JSONType


class OnboardingProgress(Base):
    __tablename__ = "onboarding_progress"
    __table_args__ = (UniqueConstraint("hub_id", "identity_id", name="uq_onboarding_progress_hub_identity"),)

    id = Column(Integer, primary_key=True, index=True)
    hub_id = Column(Integer, nullable=False)
    identity_id = Column(String(36), ForeignKey("identities.id"), nullable=False, index=True)

    current_step = Column(String(32), nullable=False, default="verification")
    # {step_name: payload}; each update merges one step's payload, other steps' keys are kept
    step_data = Column(JSONType, nullable=False, default=dict)
    is_completed = Column(Boolean, nullable=False, default=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
