"""Label pending verification sessions and invitations past their expiry as expired (never deleted)."""
import logging

from sqlalchemy import update
from sqlalchemy.orm import Session

from smshub.database import SessionLocal
from smshub.models.invitation import Invitation, InvitationStatus
from smshub.models.verification_session import SessionStatus, VerificationSession
from smshub.services import clock

logger = logging.getLogger(__name__)


def sweep_expired(db: Session) -> tuple[int, int]:
    """Returns (sessions expired, invitations expired). Commits."""
    now = clock.utcnow()
    sessions = db.execute(
        update(VerificationSession)
        .where(
            VerificationSession.status == SessionStatus.pending.value,
            VerificationSession.expires_at < now,
        )
        .values(status=SessionStatus.expired.value)
        .execution_options(synchronize_session=False)
    ).rowcount
    invitations = db.execute(
        update(Invitation)
        .where(
            Invitation.status == InvitationStatus.pending.value,
            Invitation.expires_at < now,
        )
        .values(status=InvitationStatus.expired.value)
        .execution_options(synchronize_session=False)
    ).rowcount
    db.commit()
    return sessions, invitations


def run_expiry_sweep_job() -> None:
    db: Session = SessionLocal()
    try:
        sessions, invitations = sweep_expired(db)
        if sessions or invitations:
            logger.info("Expiry sweep: %d session(s), %d invitation(s) marked expired.", sessions, invitations)
    finally:
        db.close()
