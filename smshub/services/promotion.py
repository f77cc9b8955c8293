"""Account promotion: turns a verified signup session into a durable Identity.

promote() never commits. It runs inside the verification transaction, so a failure
anywhere (duplicate contact, invitation already used) rolls back the session's
verified mark as well. For invited members the invitation is accepted last, after the
identity and its inbox assignment exist.
"""
import logging
import secrets
import string
import uuid

from sqlalchemy import or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from smshub.hubs import TenantContext
from smshub.models.company import Inbox, InboxAssignment
from smshub.models.identity import Identity, Role, SignupType
from smshub.models.invitation import Invitation, InvitationStatus
from smshub.models.verification_session import VerificationSession, SessionStatus
from smshub.services import clock, onboarding, roles
from smshub.services.audit_log import create_log, CATEGORY_STATUS_CHANGE
from smshub.services.errors import (
    DuplicateAccount,
    EmailMismatch,
    InvalidInvitation,
    InvalidSession,
    InvitationExpired,
)

logger = logging.getLogger(__name__)

_BASE36 = string.digits + string.ascii_uppercase
INVITABLE_ROLES = {Role.USER.value, Role.ONBOARDED.value, Role.ADMIN.value}


def base36(number: int) -> str:
    if number == 0:
        return "0"
    out = []
    while number:
        number, rem = divmod(number, 36)
        out.append(_BASE36[rem])
    return "".join(reversed(out))


def generate_account_number(tenant: TenantContext) -> str:
    """{prefix}-{base36(now in ms)}-{4 random chars}, e.g. GNYM-LZ3K9Q1A-7F2C."""
    timestamp = base36(int(clock.utcnow().timestamp() * 1000))
    suffix = "".join(secrets.choice(_BASE36) for _ in range(4))
    return f"{tenant.account_prefix}-{timestamp}-{suffix}"


def find_identity_by_contact(db: Session, email: str, phone: str) -> Identity | None:
    return db.query(Identity).filter(or_(Identity.email == email, Identity.phone == phone)).first()


def resolve_invitation(db: Session, token: str | None, email: str | None = None) -> Invitation:
    """Pending, unexpired invitation for token. When email is given it must match the invited address."""
    invitation = None
    if token:
        invitation = db.query(Invitation).filter(Invitation.invitation_token == token.strip()).first()
    if not invitation:
        raise InvalidInvitation("Invalid or expired invitation.")
    if invitation.status == InvitationStatus.expired.value:
        raise InvitationExpired("This invitation has expired. Please request a new one.")
    if invitation.status != InvitationStatus.pending.value:
        raise InvalidInvitation("This invitation has already been used.")
    if clock.as_utc(invitation.expires_at) < clock.utcnow():
        raise InvitationExpired("This invitation has expired. Please request a new one.")
    if email is not None and invitation.email.strip().lower() != email.strip().lower():
        raise EmailMismatch("Email does not match invitation.")
    return invitation


def _attach_to_default_inbox(db: Session, identity: Identity, company_id: str) -> None:
    inbox = db.query(Inbox).filter(Inbox.company_id == company_id, Inbox.is_default.is_(True)).first()
    if not inbox:
        logger.warning("[Promotion] Company %s has no default inbox; identity %s not assigned", company_id, identity.id)
        return
    db.add(InboxAssignment(
        hub_id=identity.hub_id,
        identity_id=identity.id,
        company_id=company_id,
        inbox_id=inbox.id,
        role=Role.USER.value,
        is_active=True,
    ))
    db.flush()


def promote(db: Session, session: VerificationSession, tenant: TenantContext) -> Identity:
    """Identity for a verified signup session. Calling it again for the same session returns the same identity."""
    if session.is_login:
        raise InvalidSession("Login sessions resolve an existing account and are never promoted.")
    if session.identity_id:
        existing = db.get(Identity, session.identity_id)
        if existing:
            return existing
    if session.status != SessionStatus.verified.value:
        raise InvalidSession("This verification session has not been verified.")

    if find_identity_by_contact(db, session.email, session.phone):
        raise DuplicateAccount("An account already exists with this email or phone number. Please log in instead.")

    signup_type = SignupType(session.signup_type or SignupType.new_tenant_owner.value)
    now = clock.utcnow()
    invitation = None
    if signup_type == SignupType.invited_member:
        invitation = resolve_invitation(db, session.invitation_token, email=session.email)

    identity = Identity(
        id=str(uuid.uuid4()),
        email=session.email,
        phone=session.phone,
        hub_id=tenant.hub_id,
        role=Role.USER.value,
        signup_type=signup_type.value,
        is_individual_customer=signup_type == SignupType.individual,
        account_number=generate_account_number(tenant),
    )
    if invitation:
        invited_role = roles.normalize_role(invitation.role)
        identity.role = invited_role if invited_role in INVITABLE_ROLES else Role.USER.value
        identity.company_id = invitation.company_id
        identity.invited_by_id = invitation.invited_by_id
        identity.invitation_accepted_at = now
    db.add(identity)
    try:
        db.flush()
    except IntegrityError as e:
        # Lost a race with a sibling session for the same contact
        msg = str(getattr(e, "orig", None) or e).lower()
        if "email" in msg or "phone" in msg:
            raise DuplicateAccount("An account already exists with this email or phone number. Please log in instead.") from e
        raise

    if invitation:
        _attach_to_default_inbox(db, identity, invitation.company_id)
        accepted = db.execute(
            update(Invitation)
            .where(
                Invitation.id == invitation.id,
                Invitation.status == InvitationStatus.pending.value,
            )
            .values(status=InvitationStatus.accepted.value, accepted_at=now)
            .execution_options(synchronize_session=False)
        )
        if accepted.rowcount != 1:
            raise InvalidInvitation("This invitation has already been used.")
        create_log(
            db,
            CATEGORY_STATUS_CHANGE,
            "Invitation accepted",
            f"Identity {identity.id} accepted invitation {invitation.id} for company {invitation.company_id}.",
            hub_id=tenant.hub_id,
            verification_session_id=session.id,
            identity_id=identity.id,
            actor_email=identity.email,
        )

    session.identity_id = identity.id
    onboarding.start_onboarding(db, identity, {
        "session_id": session.id,
        "channel": session.channel,
        "verified_at": clock.as_utc(session.verified_at) or now,
    })
    create_log(
        db,
        CATEGORY_STATUS_CHANGE,
        "Account created",
        f"Verification session {session.id} promoted to identity {identity.id} ({signup_type.value}).",
        hub_id=tenant.hub_id,
        verification_session_id=session.id,
        identity_id=identity.id,
        actor_email=identity.email,
        meta={"account_number": identity.account_number, "signup_type": signup_type.value},
    )
    db.flush()
    logger.info("[Promotion] session=%s identity=%s account=%s", session.id, identity.id, identity.account_number)
    return identity
