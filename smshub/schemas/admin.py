"""Admin read-only views."""
from datetime import datetime

from pydantic import BaseModel


class VerificationSessionSummary(BaseModel):
    # verification_code is never exposed
    id: str
    hub_id: int
    email: str
    phone: str
    channel: str
    status: str
    is_login: bool
    signup_type: str | None = None
    attempts_made: int
    attempts_allowed: int
    expires_at: datetime
    verified_at: datetime | None = None
    identity_id: str | None = None
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class VerificationSessionList(BaseModel):
    success: bool = True
    sessions: list[VerificationSessionSummary]


class DispatchFailureCount(BaseModel):
    success: bool = True
    hub_id: int | None = None
    count: int
