"""HTTP surface: submit-verify contract, error rendering, route permissions."""
from datetime import timedelta

from smshub.services import notifications
from smshub.services.errors import ChannelDispatchFailed


def _send(client, **overrides):
    body = {
        "action": "send",
        "email": "A@B.com",
        "mobile_phone_number": "(555) 123-4567",
        "auth_method": "sms",
        "hub_id": 1,
    }
    body.update(overrides)
    return client.post("/auth/submit-verify", json=body)


def _verify(client, session_id, code):
    return client.post("/auth/submit-verify", json={
        "action": "verify",
        "temp_signup_id": session_id,
        "verification_code": code,
    })


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}
    assert client.get("/").json()["status"] == "ok"


def test_signup_flow_over_http(client, sent_codes):
    sent = _send(client)
    assert sent.status_code == 200
    body = sent.json()
    assert body["success"] is True
    assert body["auth_method"] == "sms"
    assert sent_codes[-1]["email"] == "a@b.com"
    assert sent_codes[-1]["phone"] == "5551234567"

    code = sent_codes[-1]["code"]
    wrong = "000000" if code != "000000" else "111111"
    mismatch = _verify(client, body["id"], wrong)
    assert mismatch.status_code == 400
    assert mismatch.json() == {
        "success": False,
        "error": "Invalid verification code. 4 attempts remaining.",
        "code": "CODE_MISMATCH",
        "details": {"attempts_remaining": 4},
    }

    verified = _verify(client, body["id"], code)
    assert verified.status_code == 200
    result = verified.json()
    assert result["success"] is True
    assert result["account"]["email"] == "a@b.com"
    assert result["account"]["signup_type"] == "new_tenant_owner"
    assert result["account"]["role"] == "USER"
    assert result["redirect"] == "/onboarding"
    assert result["warnings"] == []
    headers = {"Authorization": f"Bearer {result['access_token']}"}

    me = client.get("/auth/me", headers=headers)
    assert me.status_code == 200
    assert me.json()["id"] == result["account"]["id"]

    progress = client.get("/onboarding", headers=headers).json()
    assert progress["current_step"] == "payment"
    assert progress["steps"][0] == "verification"

    advanced = client.post("/onboarding/advance", headers=headers, json={
        "current_step": "payment",
        "step_data": {"payment_status": "completed"},
    })
    assert advanced.status_code == 200
    assert advanced.json()["current_step"] == "personal"
    assert advanced.json()["previous_step"] == "payment"

    back = client.post("/onboarding/retreat", headers=headers)
    assert back.json() == {"success": True, "current_step": "payment"}

    again = _verify(client, body["id"], code)
    assert again.status_code == 400
    assert again.json()["code"] == "ALREADY_VERIFIED"


def test_legacy_signup_type_alias(client, sent_codes):
    sent = _send(client, signup_type="new_company").json()
    result = _verify(client, sent["id"], sent_codes[-1]["code"]).json()
    assert result["account"]["signup_type"] == "new_tenant_owner"


def test_send_validation_errors(client):
    missing = client.post("/auth/submit-verify", json={"action": "send", "email": "a@b.com"})
    assert missing.status_code == 400
    assert missing.json()["code"] == "REQUEST_INVALID"
    assert missing.json()["success"] is False

    bad_phone = _send(client, mobile_phone_number="12345")
    assert bad_phone.status_code == 400
    assert bad_phone.json()["code"] == "REQUEST_INVALID"

    no_hub = _send(client, hub_id=None)
    assert no_hub.json()["code"] == "REQUEST_INVALID"

    unknown_hub = _send(client, hub_id=42)
    assert unknown_hub.status_code == 400
    assert unknown_hub.json()["error"] == "Unknown hub_id: 42."


def test_duplicate_signup_points_to_login(client, make_identity):
    make_identity(email="a@b.com")
    response = _send(client)
    assert response.status_code == 400
    assert response.json()["code"] == "DUPLICATE_ACCOUNT"
    assert "log in" in response.json()["error"]


def test_send_succeeds_when_dispatch_fails(client, monkeypatch, make_identity, headers_for):
    def fail(*args, **kwargs):
        raise ChannelDispatchFailed("provider down")

    monkeypatch.setattr(notifications, "send_verification_code", fail)
    response = _send(client)
    assert response.status_code == 200
    assert response.json()["success"] is True
    assert response.json()["id"]

    superadmin = make_identity(role="SUPERADMIN")
    counter = client.get("/admin/dispatch-failures", headers=headers_for(superadmin))
    assert counter.json() == {"success": True, "hub_id": None, "count": 1}


def test_verify_succeeds_without_sign_in_link(client, sent_codes, monkeypatch):
    from smshub.services import auth

    def broken(*args, **kwargs):
        raise RuntimeError("signing key unavailable")

    monkeypatch.setattr(auth, "create_sign_in_link", broken)
    sent = _send(client).json()
    verified = _verify(client, sent["id"], sent_codes[-1]["code"])

    assert verified.status_code == 200
    body = verified.json()
    assert body["success"] is True
    assert body["access_token"]
    assert body["session_url"] is None
    assert body["warnings"]


def test_expired_session_over_http(client, sent_codes, advance_clock):
    sent = _send(client).json()
    advance_clock(timedelta(minutes=20))
    response = _verify(client, sent["id"], sent_codes[-1]["code"])
    assert response.status_code == 400
    assert response.json()["code"] == "EXPIRED"


def test_me_requires_token(client):
    response = client.get("/auth/me")
    assert response.status_code == 401
    assert response.json()["code"] == "UNAUTHENTICATED"

    bogus = client.get("/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert bogus.status_code == 401


def test_advance_blocked_renders_field_errors(client, db, make_identity, headers_for):
    from smshub.services import onboarding

    identity = make_identity()
    onboarding.start_onboarding(db, identity, {"session_id": "sess-1"})
    progress = onboarding.get_progress(db, identity)
    progress.current_step = "privacy_terms"
    db.commit()

    response = client.post("/onboarding/advance", headers=headers_for(identity), json={
        "current_step": "privacy_terms",
        "step_data": {"acceptedTerms": True},
    })
    assert response.status_code == 400
    body = response.json()
    assert body["code"] == "BLOCKED_BY_VALIDATION"
    assert body["details"]["step"] == "privacy_terms"
    assert "accepted_tcpa" in body["details"]["errors"]


def test_wrongly_typed_step_field_is_blocked_not_malformed(client, db, make_identity, headers_for, valid_campaign):
    from smshub.services import onboarding

    identity = make_identity()
    onboarding.start_onboarding(db, identity, {"session_id": "sess-1"})
    onboarding.get_progress(db, identity).current_step = "campaign"
    db.commit()
    headers = headers_for(identity)

    response = client.post("/onboarding/advance", headers=headers, json={
        "current_step": "campaign",
        "step_data": {**valid_campaign, "monthly_volume": "lots"},
    })
    assert response.status_code == 400
    assert response.json()["code"] == "BLOCKED_BY_VALIDATION"
    assert "monthly_volume" in response.json()["details"]["errors"]

    tagged = client.post("/onboarding/advance", headers=headers, json={
        "current_step": "campaign",
        "step_data": {"step": "personal", "first_name": "Jo", "last_name": "Doe"},
    })
    assert tagged.json()["code"] == "STEP_MISMATCH"


def test_compliance_endpoints_always_200(client, make_identity, headers_for, valid_campaign):
    headers = headers_for(make_identity())
    brand = client.post("/compliance/brand/validate", headers=headers, json={"ein": "12"})
    assert brand.status_code == 200
    assert brand.json()["valid"] is False
    assert "ein" in brand.json()["errors"]

    campaign = client.post("/compliance/campaign/validate", headers=headers, json={**valid_campaign, "age_gated": True})
    assert campaign.status_code == 200
    assert campaign.json()["valid"] is True
    assert len(campaign.json()["warnings"]) == 1


def test_admin_routes_by_role(client, make_identity, headers_for, sent_codes):
    _send(client)
    user = make_identity(role="USER")
    admin = make_identity(role="ADMIN")
    superadmin = make_identity(role="SUPERADMIN")

    denied = client.get("/admin/verification-sessions", headers=headers_for(user))
    assert denied.status_code == 403
    assert denied.json()["code"] == "FORBIDDEN"

    listed = client.get("/admin/verification-sessions", headers=headers_for(admin))
    assert listed.status_code == 200
    sessions = listed.json()["sessions"]
    assert len(sessions) == 1
    assert "verification_code" not in sessions[0]
    assert sessions[0]["status"] == "pending"

    assert client.get("/admin/dispatch-failures", headers=headers_for(admin)).status_code == 403
    assert client.get("/admin/dispatch-failures?hub_id=1", headers=headers_for(superadmin)).json()["count"] == 0


def test_admin_sees_only_own_hub(client, make_identity, headers_for, sent_codes):
    _send(client, hub_id=2)
    admin = make_identity(role="ADMIN", hub_id=1)
    superadmin = make_identity(role="SUPERADMIN", hub_id=1)

    assert client.get("/admin/verification-sessions", headers=headers_for(admin)).json()["sessions"] == []
    assert len(client.get("/admin/verification-sessions", headers=headers_for(superadmin)).json()["sessions"]) == 1


def test_invitation_validate(client, make_identity, make_invitation, company):
    inviter = make_identity(role="ADMIN", first_name="Dana", last_name="Lee", company_id=company.id)
    invitation = make_invitation(email="invitee@example.com", invited_by_id=inviter.id)

    response = client.post("/auth/invitations/validate", json={"invitation_token": invitation.invitation_token})
    assert response.status_code == 200
    body = response.json()
    assert body["email"] == "invitee@example.com"
    assert body["company_name"] == "Acme Dental"
    assert body["invited_by_name"] == "Dana Lee"
    assert body["hub_id"] == 1

    missing = client.post("/auth/invitations/validate", json={"invitation_token": "nope"})
    assert missing.status_code == 400
    assert missing.json()["code"] == "INVALID_INVITATION"


def test_invited_signup_over_http(client, make_invitation, company, sent_codes):
    invitation = make_invitation(email="invitee@example.com")
    sent = _send(
        client,
        email="invitee@example.com",
        mobile_phone_number="5552223333",
        signup_type="invited_user",
        invitation_token=invitation.invitation_token,
        hub_id=3,
    )
    assert sent.status_code == 200
    result = _verify(client, sent.json()["id"], sent_codes[-1]["code"]).json()
    assert result["account"]["company_id"] == company.id
    assert result["account"]["signup_type"] == "invited_member"
    # The invitation decides the hub
    assert result["account"]["hub_id"] == 1
    assert result["account"]["account_number"].startswith("GNYM-")

    missing_token = _send(client, email="x@example.com", mobile_phone_number="5558889999", signup_type="invited_member")
    assert missing_token.status_code == 400
    assert missing_token.json()["code"] == "REQUEST_INVALID"
