"""
Test configuration and fixtures.

Provides:
- SQLite in-memory database (StaticPool), tables recreated per test
- Captured verification codes instead of real SMS/email dispatch
- Identity / company / invitation factories and bearer-token headers
"""
import os
import uuid
from datetime import timedelta

# Settings are cached on first import; point them at SQLite before any smshub import
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["EXPIRY_SWEEP_ENABLED"] = "false"
os.environ["SMS_WEBHOOK_URL"] = ""
os.environ["MAILGUN_API_KEY"] = ""
os.environ["SENDGRID_API_KEY"] = ""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from smshub.database import Base, SessionLocal, engine
from smshub.hubs import HUBS, TenantContext
from smshub.main import app
from smshub.models import Company, Identity, Inbox, Invitation, Role, SignupType
from smshub.services import auth, clock, notifications
from smshub.services.promotion import generate_account_number


# =============================================================================
# Database
# =============================================================================

@pytest.fixture(scope="function")
def db() -> Session:
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    yield session
    session.close()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db: Session) -> TestClient:
    # Not used as a context manager: startup (create_all, scheduler) stays off in tests
    return TestClient(app)


# =============================================================================
# Channel dispatch
# =============================================================================

@pytest.fixture(autouse=True)
def sent_codes(monkeypatch) -> list[dict]:
    """Every code the verification store hands to a sender, newest last."""
    sent: list[dict] = []

    def capture(channel, email, phone, code, tenant, ttl_minutes):
        sent.append({"channel": channel, "email": email, "phone": phone, "code": code, "hub_id": tenant.hub_id})

    monkeypatch.setattr(notifications, "send_verification_code", capture)
    return sent


@pytest.fixture
def tenant() -> TenantContext:
    return HUBS[1]


@pytest.fixture
def advance_clock(monkeypatch):
    """Move the services' clock forward by the given timedelta."""
    def _advance(delta: timedelta):
        moved = clock.utcnow() + delta
        monkeypatch.setattr(clock, "utcnow", lambda: moved)
        return moved
    return _advance


# =============================================================================
# Factories
# =============================================================================

@pytest.fixture
def make_identity(db: Session):
    counter = {"n": 0}

    def _make(role: str = Role.USER.value, hub_id: int = 1, **kwargs) -> Identity:
        counter["n"] += 1
        n = counter["n"]
        identity = Identity(
            id=str(uuid.uuid4()),
            email=kwargs.pop("email", f"member{n}@example.com"),
            phone=kwargs.pop("phone", f"555000{n:04d}"),
            hub_id=hub_id,
            role=role,
            signup_type=kwargs.pop("signup_type", SignupType.new_tenant_owner.value),
            account_number=generate_account_number(HUBS.get(hub_id, HUBS[3])),
            **kwargs,
        )
        db.add(identity)
        db.commit()
        db.refresh(identity)
        return identity

    return _make


@pytest.fixture
def company(db: Session, tenant: TenantContext) -> Company:
    company = Company(id=str(uuid.uuid4()), hub_id=tenant.hub_id, public_name="Acme Dental")
    db.add(company)
    db.add(Inbox(id=str(uuid.uuid4()), company_id=company.id, hub_id=tenant.hub_id, name="Acme Inbox", is_default=True))
    db.commit()
    db.refresh(company)
    return company


@pytest.fixture
def make_invitation(db: Session, company: Company):
    def _make(email: str = "invitee@example.com", role: str = Role.USER.value, expires_in=timedelta(days=2), **kwargs) -> Invitation:
        invitation = Invitation(
            invitation_token=uuid.uuid4().hex,
            email=email,
            hub_id=company.hub_id,
            company_id=company.id,
            role=role,
            expires_at=clock.utcnow() + expires_in,
            **kwargs,
        )
        db.add(invitation)
        db.commit()
        db.refresh(invitation)
        return invitation

    return _make


@pytest.fixture
def headers_for():
    def _headers(identity: Identity) -> dict[str, str]:
        return {"Authorization": f"Bearer {auth.create_access_token(identity)}"}
    return _headers


# =============================================================================
# Registry payloads
# =============================================================================

VALID_BRAND = {
    "company_legal_name": "Acme Dental LLC",
    "ein": "12-3456789",
    "company_website": "https://acmedental.com",
    "address_street": "1 Main St",
    "address_city": "Austin",
    "address_state": "TX",
    "address_postal_code": "78701",
    "industry": "Healthcare",
    "vertical_type": "HEALTHCARE",
    "legal_form": "PRIVATE_PROFIT",
    "contact_first_name": "Jane",
    "contact_last_name": "Doe",
    "contact_email": "jane@acmedental.com",
    "contact_phone": "(512) 555-0100",
}

VALID_CAMPAIGN = {
    "campaign_name": "Appointment reminders",
    "description": "Appointment reminders and scheduling updates for existing patients.",
    "message_flow": "Patients opt in on the intake form at their first visit.",
    "use_case": "CUSTOMER_CARE",
    "call_to_action": "Check the box on the intake form to receive appointment texts.",
    "sample_messages": ["Acme Dental: your cleaning is tomorrow at 2pm. Reply STOP to opt out."],
    "opt_in_message": "You are subscribed to Acme Dental reminders.",
    "opt_out_message": "You are unsubscribed and will receive no further messages.",
    "help_message": "Acme Dental: call 512-555-0100 for help.",
}


@pytest.fixture
def valid_brand() -> dict:
    return dict(VALID_BRAND)


@pytest.fixture
def valid_campaign() -> dict:
    return dict(VALID_CAMPAIGN)
