"""Verification session store: one-time codes for signup and login.

A session is created with a random 6-digit code and a TTL, and the code is handed to
the SMS or email sender. A failed dispatch does not fail the request: the session is
already durable, the failure is logged and counted, and the client can ask for a new code.

submit_code checks expiry and the attempt bound before comparing. The comparison itself
is a conditional UPDATE (pending -> verified where the code matches and attempts remain);
a miss increments attempts_made with another conditional UPDATE. Promotion runs in the
same transaction as the verified mark.
"""
import logging
import secrets
import string
import uuid
from dataclasses import dataclass, field
from datetime import timedelta

from sqlalchemy import update
from sqlalchemy.orm import Session

from smshub.config import get_settings
from smshub.hubs import TenantContext, tenant_for_hub_id
from smshub.models.identity import Identity, SignupType
from smshub.models.verification_session import Channel, SessionStatus, VerificationSession
from smshub.services import auth, clock, notifications, promotion, roles
from smshub.services.audit_log import (
    create_log,
    CATEGORY_DISPATCH_FAILURE,
    CATEGORY_FAILED_ATTEMPT,
    CATEGORY_STATUS_CHANGE,
)
from smshub.services.errors import (
    AlreadyVerified,
    ChannelDispatchFailed,
    CodeMismatch,
    DuplicateAccount,
    Exhausted,
    Expired,
    InvalidSession,
    NotFound,
    RequestInvalid,
)

logger = logging.getLogger(__name__)

CODE_LENGTH = 6


@dataclass
class BeginResult:
    session: VerificationSession
    tenant: TenantContext
    dispatched: bool


@dataclass
class VerifyOutcome:
    session: VerificationSession
    identity: Identity
    is_login: bool
    access_token: str
    session_url: str | None = None
    redirect: str = "/onboarding"
    warnings: list[str] = field(default_factory=list)


def generate_code() -> str:
    return "".join(secrets.choice(string.digits) for _ in range(CODE_LENGTH))


def begin_verification(
    db: Session,
    email: str,
    phone: str,
    channel: str | Channel,
    tenant: TenantContext | None = None,
    *,
    is_login: bool = False,
    signup_type: str | SignupType | None = None,
    invitation_token: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> BeginResult:
    """Create a pending session and dispatch its code.

    Login: the contact must belong to an identity; the hub and the delivery address come
    from that identity. Signup: tenant is required, the contact must be new, and an
    invited_member signup must carry a pending, unexpired invitation for the same email.
    """
    settings = get_settings()
    email = (email or "").strip().lower()
    phone = (phone or "").strip()
    channel = Channel(getattr(channel, "value", channel))
    identity_id = None
    company_id = None

    if is_login:
        identity = promotion.find_identity_by_contact(db, email, phone)
        if not identity:
            raise NotFound("No account found with this email or phone number. Please sign up first.")
        tenant = tenant_for_hub_id(identity.hub_id)
        # Codes go to the contact on file, not whatever the request supplied
        email, phone = identity.email, identity.phone
        identity_id = identity.id
        signup_type = None
        invitation_token = None
    else:
        if tenant is None:
            raise RequestInvalid("A valid hub_id is required to sign up.")
        signup_type = SignupType(getattr(signup_type, "value", signup_type) or SignupType.new_tenant_owner.value)
        if promotion.find_identity_by_contact(db, email, phone):
            raise DuplicateAccount("An account already exists with this email or phone number. Please log in instead.")
        if signup_type == SignupType.invited_member:
            invitation = promotion.resolve_invitation(db, invitation_token, email=email)
            company_id = invitation.company_id
            tenant = tenant_for_hub_id(invitation.hub_id)
        else:
            invitation_token = None

    now = clock.utcnow()
    session = VerificationSession(
        id=str(uuid.uuid4()),
        hub_id=tenant.hub_id,
        email=email,
        phone=phone,
        channel=channel.value,
        verification_code=generate_code(),
        attempts_made=0,
        attempts_allowed=settings.verification_max_attempts,
        expires_at=now + timedelta(minutes=settings.verification_code_ttl_minutes),
        is_login=is_login,
        signup_type=signup_type.value if signup_type else None,
        invitation_token=invitation_token,
        company_id=company_id,
        status=SessionStatus.pending.value,
        identity_id=identity_id,
        extra_data={"ip_address": ip_address, "user_agent": user_agent},
    )
    db.add(session)
    db.commit()
    db.refresh(session)
    logger.info(
        "[Verification] Session %s created: hub=%s channel=%s login=%s signup_type=%s",
        session.id, tenant.hub_id, channel.value, is_login, session.signup_type,
    )

    dispatched = True
    try:
        notifications.send_verification_code(
            channel.value,
            session.email,
            session.phone,
            session.verification_code,
            tenant,
            settings.verification_code_ttl_minutes,
        )
    except ChannelDispatchFailed as e:
        dispatched = False
        logger.warning("[Verification] Dispatch failed for session %s: %s", session.id, e.message)
        create_log(
            db,
            CATEGORY_DISPATCH_FAILURE,
            "Verification code not delivered",
            e.message,
            hub_id=tenant.hub_id,
            verification_session_id=session.id,
            identity_id=identity_id,
            actor_email=session.email,
            ip_address=ip_address,
            user_agent=user_agent,
            meta={"channel": channel.value},
        )
        db.commit()
    return BeginResult(session=session, tenant=tenant, dispatched=dispatched)


def _mark_terminal(db: Session, session: VerificationSession, status: SessionStatus, reason: str) -> None:
    """pending -> expired/exhausted, with a failed_attempt audit row. Commits."""
    db.execute(
        update(VerificationSession)
        .where(
            VerificationSession.id == session.id,
            VerificationSession.status == SessionStatus.pending.value,
        )
        .values(status=status.value)
        .execution_options(synchronize_session=False)
    )
    create_log(
        db,
        CATEGORY_FAILED_ATTEMPT,
        f"Verification {status.value}",
        reason,
        hub_id=session.hub_id,
        verification_session_id=session.id,
        actor_email=session.email,
        meta={"attempts_made": session.attempts_made, "attempts_allowed": session.attempts_allowed},
    )
    db.commit()


def _expired_error() -> Expired:
    return Expired("Verification code has expired. Please request a new code.")


def _exhausted_error() -> Exhausted:
    return Exhausted("Too many failed attempts. Please request a new code.")


def submit_code(db: Session, session_id: str, code: str) -> VerifyOutcome:
    session = db.get(VerificationSession, session_id) if session_id else None
    if session is None:
        raise InvalidSession("Invalid or expired verification session. Please request a new code.")
    if session.status == SessionStatus.verified.value:
        raise AlreadyVerified("This verification session has already been used. Please log in.")

    now = clock.utcnow()
    if session.status == SessionStatus.expired.value:
        raise _expired_error()
    if clock.as_utc(session.expires_at) < now:
        _mark_terminal(db, session, SessionStatus.expired, f"Code submitted after expiry for session {session.id}.")
        raise _expired_error()
    if session.status == SessionStatus.exhausted.value:
        raise _exhausted_error()
    if session.attempts_made >= session.attempts_allowed:
        _mark_terminal(db, session, SessionStatus.exhausted, f"Attempt limit reached for session {session.id}.")
        raise _exhausted_error()

    code = (code or "").strip()
    verified = db.execute(
        update(VerificationSession)
        .where(
            VerificationSession.id == session.id,
            VerificationSession.status == SessionStatus.pending.value,
            VerificationSession.attempts_made < VerificationSession.attempts_allowed,
            VerificationSession.expires_at > now,
            VerificationSession.verification_code == code,
        )
        .values(status=SessionStatus.verified.value, verified_at=now)
        .execution_options(synchronize_session=False)
    )
    if verified.rowcount != 1:
        db.refresh(session)
        if session.status == SessionStatus.pending.value and clock.as_utc(session.expires_at) <= now:
            _mark_terminal(db, session, SessionStatus.expired, f"Code submitted at expiry for session {session.id}.")
            raise _expired_error()
        _record_mismatch(db, session)
    db.refresh(session)

    tenant = tenant_for_hub_id(session.hub_id)
    try:
        if session.is_login:
            identity = db.get(Identity, session.identity_id) if session.identity_id else None
            if identity is None:
                raise NotFound("The account for this login no longer exists.")
        else:
            identity = promotion.promote(db, session, tenant)
        create_log(
            db,
            CATEGORY_STATUS_CHANGE,
            "Login verified" if session.is_login else "Signup verified",
            f"Verification session {session.id} verified via {session.channel}.",
            hub_id=session.hub_id,
            verification_session_id=session.id,
            identity_id=identity.id,
            actor_email=session.email,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(identity)
    logger.info("[Verification] Session %s verified: identity=%s login=%s", session.id, identity.id, session.is_login)
    return _sign_in(session, identity)


def _record_mismatch(db: Session, session: VerificationSession) -> None:
    """Count one wrong code and raise CodeMismatch, or Exhausted when that was the last attempt."""
    bumped = db.execute(
        update(VerificationSession)
        .where(
            VerificationSession.id == session.id,
            VerificationSession.status == SessionStatus.pending.value,
            VerificationSession.attempts_made < VerificationSession.attempts_allowed,
        )
        .values(attempts_made=VerificationSession.attempts_made + 1)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    db.refresh(session)
    if bumped.rowcount != 1:
        # Another request verified or used up this session first
        if session.status == SessionStatus.verified.value:
            raise AlreadyVerified("This verification session has already been used. Please log in.")
        raise _exhausted_error()

    remaining = session.attempts_allowed - session.attempts_made
    if remaining <= 0:
        _mark_terminal(db, session, SessionStatus.exhausted, f"Attempt limit reached for session {session.id}.")
        raise _exhausted_error()
    create_log(
        db,
        CATEGORY_FAILED_ATTEMPT,
        "Verification code mismatch",
        f"Wrong code for session {session.id}; {remaining} attempt(s) remaining.",
        hub_id=session.hub_id,
        verification_session_id=session.id,
        actor_email=session.email,
        meta={"attempts_made": session.attempts_made, "attempts_allowed": session.attempts_allowed},
    )
    db.commit()
    logger.info("[Verification] Session %s code mismatch, %s attempt(s) remaining", session.id, remaining)
    raise CodeMismatch(remaining)


def _sign_in(session: VerificationSession, identity: Identity) -> VerifyOutcome:
    """Access token plus sign-in link. A link failure is reported as a warning, not an error."""
    warnings = []
    session_url = None
    redirect = "/dashboard" if roles.is_onboarded(identity.role) else "/onboarding"
    try:
        session_url = auth.create_sign_in_link(identity, redirect_path=redirect)
    except Exception as e:
        logger.warning("[Verification] Could not create sign-in link for identity %s: %s", identity.id, e)
        warnings.append("Account verified, but the sign-in link could not be created. Please log in.")
    return VerifyOutcome(
        session=session,
        identity=identity,
        is_login=bool(session.is_login),
        access_token=auth.create_access_token(identity),
        session_url=session_url,
        redirect=redirect,
        warnings=warnings,
    )
