"""Verification session store: issuance, bounded retry, expiry, one-shot verification."""
from datetime import timedelta

import pytest

from smshub.database import SessionLocal
from smshub.models import Identity, InboxAssignment, Invitation, SessionStatus, VerificationSession
from smshub.services import auth, clock, notifications, verification
from smshub.services.audit_log import count_logs, CATEGORY_DISPATCH_FAILURE, CATEGORY_FAILED_ATTEMPT
from smshub.services.errors import (
    AlreadyVerified,
    ChannelDispatchFailed,
    CodeMismatch,
    DuplicateAccount,
    EmailMismatch,
    Exhausted,
    Expired,
    InvalidInvitation,
    InvalidSession,
    InvitationExpired,
    NotFound,
)


def _wrong(code: str) -> str:
    return "000000" if code != "000000" else "111111"


def _begin(db, tenant, email="a@b.com", phone="5551234567", channel="sms", **kwargs):
    return verification.begin_verification(db, email, phone, channel, tenant, **kwargs)


def test_begin_creates_pending_session_and_dispatches(db, tenant, sent_codes):
    result = _begin(db, tenant)
    session = result.session

    assert result.dispatched
    assert session.status == SessionStatus.pending.value
    assert session.attempts_made == 0
    assert session.attempts_allowed == 5
    assert session.hub_id == tenant.hub_id
    assert session.signup_type == "new_tenant_owner"
    assert len(session.verification_code) == 6 and session.verification_code.isdigit()
    assert sent_codes == [{
        "channel": "sms",
        "email": "a@b.com",
        "phone": "5551234567",
        "code": session.verification_code,
        "hub_id": tenant.hub_id,
    }]


def test_session_ttl_is_fifteen_minutes(db, tenant):
    before = clock.utcnow()
    session = _begin(db, tenant).session
    ttl = clock.as_utc(session.expires_at) - before
    assert timedelta(minutes=14, seconds=55) < ttl <= timedelta(minutes=15, seconds=5)


def test_end_to_end_exhaust_then_fresh_session(db, tenant, sent_codes):
    first = _begin(db, tenant).session
    bad = _wrong(sent_codes[-1]["code"])

    for remaining in (4, 3, 2, 1):
        with pytest.raises(CodeMismatch) as exc:
            verification.submit_code(db, first.id, bad)
        assert exc.value.attempts_remaining == remaining
        assert exc.value.details == {"attempts_remaining": remaining}

    with pytest.raises(Exhausted):
        verification.submit_code(db, first.id, bad)

    # Correct code no longer helps
    with pytest.raises(Exhausted):
        verification.submit_code(db, first.id, sent_codes[-1]["code"])
    db.refresh(first)
    assert first.attempts_made == 5
    assert first.status == SessionStatus.exhausted.value

    second = _begin(db, tenant).session
    outcome = verification.submit_code(db, second.id, sent_codes[-1]["code"])

    identity = outcome.identity
    assert not outcome.is_login
    assert identity.signup_type == "new_tenant_owner"
    assert identity.company_id is None
    assert identity.hub_id == tenant.hub_id
    assert identity.account_number.startswith("GNYM-")
    assert outcome.access_token
    assert outcome.session_url.startswith("http://localhost:3001/auth/callback?token=")
    assert outcome.redirect == "/onboarding"
    assert count_logs(db, CATEGORY_FAILED_ATTEMPT) >= 5


def test_correct_code_does_not_consume_an_attempt(db, tenant, sent_codes):
    session = _begin(db, tenant).session
    verification.submit_code(db, session.id, sent_codes[-1]["code"])
    db.refresh(session)
    assert session.status == SessionStatus.verified.value
    assert session.attempts_made == 0
    assert session.verified_at is not None


def test_verification_is_one_shot(db, tenant, sent_codes):
    session = _begin(db, tenant).session
    code = sent_codes[-1]["code"]
    verification.submit_code(db, session.id, code)

    with pytest.raises(AlreadyVerified):
        verification.submit_code(db, session.id, code)
    assert db.query(Identity).count() == 1


def test_expired_session_rejects_correct_code_forever(db, tenant, sent_codes, advance_clock):
    session = _begin(db, tenant).session
    code = sent_codes[-1]["code"]
    advance_clock(timedelta(minutes=16))

    with pytest.raises(Expired):
        verification.submit_code(db, session.id, code)
    with pytest.raises(Expired):
        verification.submit_code(db, session.id, code)
    db.refresh(session)
    assert session.status == SessionStatus.expired.value
    assert session.attempts_made == 0


def test_code_at_the_expiry_instant_is_rejected(db, tenant, sent_codes, monkeypatch):
    session = _begin(db, tenant).session
    expires_at = clock.as_utc(session.expires_at)
    monkeypatch.setattr(clock, "utcnow", lambda: expires_at)

    with pytest.raises(Expired):
        verification.submit_code(db, session.id, sent_codes[-1]["code"])
    db.refresh(session)
    assert session.status == SessionStatus.expired.value
    assert session.attempts_made == 0
    assert db.query(Identity).count() == 0


def test_concurrent_wrong_codes_stop_at_the_attempt_limit(db, tenant, sent_codes):
    session = _begin(db, tenant).session
    bad = _wrong(sent_codes[-1]["code"])
    session.attempts_made = 4
    db.commit()

    # Both requests read the session at 4/5 before either one writes
    first, second = SessionLocal(), SessionLocal()
    outcomes = []
    try:
        first.get(VerificationSession, session.id)
        second.get(VerificationSession, session.id)
        for request_db in (first, second):
            with pytest.raises((CodeMismatch, Exhausted)) as exc:
                verification.submit_code(request_db, session.id, bad)
            outcomes.append(type(exc.value).__name__)
    finally:
        first.close()
        second.close()

    assert outcomes == ["Exhausted", "Exhausted"]
    db.refresh(session)
    assert session.attempts_made == 5
    assert session.status == SessionStatus.exhausted.value


def test_sign_in_link_failure_is_only_a_warning(db, tenant, sent_codes, monkeypatch):
    def broken(*args, **kwargs):
        raise RuntimeError("signing key unavailable")

    monkeypatch.setattr(auth, "create_sign_in_link", broken)
    session = _begin(db, tenant).session
    outcome = verification.submit_code(db, session.id, sent_codes[-1]["code"])

    assert outcome.identity.email == "a@b.com"
    assert outcome.access_token
    assert outcome.session_url is None
    assert outcome.warnings == ["Account verified, but the sign-in link could not be created. Please log in."]
    db.refresh(session)
    assert session.status == SessionStatus.verified.value
    assert db.query(Identity).count() == 1


def test_unknown_session(db):
    with pytest.raises(InvalidSession):
        verification.submit_code(db, "does-not-exist", "123456")


def test_signup_with_existing_contact_is_rejected(db, tenant, make_identity):
    make_identity(email="taken@example.com")
    with pytest.raises(DuplicateAccount):
        _begin(db, tenant, email="Taken@Example.com", phone="5559999999")


def test_login_requires_existing_identity(db):
    with pytest.raises(NotFound):
        verification.begin_verification(db, "nobody@example.com", "5550000000", "email", is_login=True)


def test_login_returns_existing_identity(db, make_identity, sent_codes):
    existing = make_identity(email="owner@example.com", phone="5551110000", hub_id=2, role="ONBOARDED")

    result = verification.begin_verification(db, "owner@example.com", "5559998888", "sms", is_login=True)
    # Hub and delivery address come from the account on file
    assert result.tenant.hub_id == 2
    assert sent_codes[-1]["phone"] == "5551110000"
    assert result.session.identity_id == existing.id

    outcome = verification.submit_code(db, result.session.id, sent_codes[-1]["code"])
    assert outcome.is_login
    assert outcome.identity.id == existing.id
    assert outcome.redirect == "/dashboard"
    assert db.query(Identity).count() == 1


def test_dispatch_failure_is_not_fatal(db, tenant, monkeypatch):
    def fail(*args, **kwargs):
        raise ChannelDispatchFailed("provider down")

    monkeypatch.setattr(notifications, "send_verification_code", fail)
    result = _begin(db, tenant, channel="email")

    assert not result.dispatched
    assert db.get(VerificationSession, result.session.id).status == SessionStatus.pending.value
    assert count_logs(db, CATEGORY_DISPATCH_FAILURE) == 1
    assert count_logs(db, CATEGORY_DISPATCH_FAILURE, hub_id=tenant.hub_id) == 1
    assert count_logs(db, CATEGORY_DISPATCH_FAILURE, hub_id=0) == 0


def test_invited_member_requires_valid_invitation(db, tenant, make_invitation):
    with pytest.raises(InvalidInvitation):
        _begin(db, tenant, email="invitee@example.com", signup_type="invited_member", invitation_token="nope")

    invitation = make_invitation(email="invitee@example.com")
    with pytest.raises(EmailMismatch):
        _begin(db, tenant, email="someone@example.com", signup_type="invited_member",
               invitation_token=invitation.invitation_token)

    stale = make_invitation(email="late@example.com", expires_in=timedelta(hours=-1))
    with pytest.raises(InvitationExpired):
        _begin(db, tenant, email="late@example.com", signup_type="invited_member",
               invitation_token=stale.invitation_token)


def test_invited_member_joins_company(db, tenant, company, make_identity, make_invitation, sent_codes):
    inviter = make_identity(role="ADMIN", company_id=company.id)
    invitation = make_invitation(email="invitee@example.com", role="ADMIN", invited_by_id=inviter.id)

    session = _begin(db, tenant, email="invitee@example.com", phone="5552223333",
                     signup_type="invited_member", invitation_token=invitation.invitation_token).session
    assert session.company_id == company.id

    identity = verification.submit_code(db, session.id, sent_codes[-1]["code"]).identity

    assert identity.company_id == company.id
    assert identity.signup_type == "invited_member"
    assert identity.role == "ADMIN"
    assert identity.invited_by_id == inviter.id
    assert identity.invitation_accepted_at is not None
    assignment = db.query(InboxAssignment).filter(InboxAssignment.identity_id == identity.id).one()
    assert assignment.company_id == company.id
    assert assignment.role == "USER"
    db.refresh(invitation)
    assert invitation.status == "accepted"
    assert invitation.accepted_at is not None


def test_used_invitation_cannot_start_another_signup(db, tenant, make_invitation, sent_codes):
    invitation = make_invitation(email="invitee@example.com")
    session = _begin(db, tenant, email="invitee@example.com", signup_type="invited_member",
                     invitation_token=invitation.invitation_token).session
    verification.submit_code(db, session.id, sent_codes[-1]["code"])

    db.query(Invitation).filter(Invitation.id == invitation.id).update({"email": "other@example.com"})
    db.commit()
    with pytest.raises(InvalidInvitation):
        _begin(db, tenant, email="other@example.com", phone="5554445555", signup_type="invited_member",
               invitation_token=invitation.invitation_token)
