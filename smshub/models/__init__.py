"""
All SQLAlchemy models. Schema is the source of truth for new DBs.
Base.metadata.create_all() creates every table; no migration scripts needed for fresh installs.
"""
from smshub.models.company import Company, Inbox, InboxAssignment
from smshub.models.identity import Identity, Role, SignupType
from smshub.models.invitation import Invitation, InvitationStatus
from smshub.models.verification_session import VerificationSession, Channel, SessionStatus
from smshub.models.onboarding_progress import OnboardingProgress
from smshub.models.audit_log import AuditLog

__all__ = [
    "Company",
    "Inbox",
    "InboxAssignment",
    "Identity",
    "Role",
    "SignupType",
    "Invitation",
    "InvitationStatus",
    "VerificationSession",
    "Channel",
    "SessionStatus",
    "OnboardingProgress",
    "AuditLog",
]
