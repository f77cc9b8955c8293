"""Passwordless signup/login: send and verify one-time codes, invitation lookup, current identity."""
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from smshub.database import get_db
from smshub.dependencies import require_route_access
from smshub.hubs import get_tenant
from smshub.models.company import Company
from smshub.models.identity import Identity, SignupType
from smshub.schemas.auth import (
    IdentityResponse,
    InvitationValidateRequest,
    InvitationValidateResponse,
    SendResponse,
    SubmitVerifyRequest,
    VerifyResponse,
)
from smshub.services import promotion, verification
from smshub.services.errors import RequestInvalid

router = APIRouter(prefix="/auth", tags=["auth"])


def _client_meta(request: Request) -> tuple[str | None, str | None]:
    ip = request.client.host if request.client else None
    return ip, request.headers.get("user-agent")


@router.post("/submit-verify", response_model=SendResponse | VerifyResponse)
def submit_verify(data: SubmitVerifyRequest, request: Request, db: Session = Depends(get_db)):
    if data.action == "verify":
        outcome = verification.submit_code(db, data.temp_signup_id, data.verification_code)
        return VerifyResponse(
            account=IdentityResponse.model_validate(outcome.identity),
            access_token=outcome.access_token,
            session_url=outcome.session_url,
            redirect=outcome.redirect,
            warnings=outcome.warnings,
        )

    tenant = None
    if not data.is_login:
        if data.hub_id is None:
            raise RequestInvalid("hub_id is required to sign up.")
        tenant = get_tenant(data.hub_id)
        if tenant is None:
            raise RequestInvalid(f"Unknown hub_id: {data.hub_id}.")
    ip, user_agent = _client_meta(request)
    result = verification.begin_verification(
        db,
        data.email,
        data.mobile_phone_number,
        data.auth_method,
        tenant,
        is_login=data.is_login,
        signup_type=data.signup_type or SignupType.new_tenant_owner,
        invitation_token=data.invitation_token,
        ip_address=ip,
        user_agent=user_agent,
    )
    target = "phone" if data.auth_method.value == "sms" else "email"
    if result.dispatched:
        message = f"Verification code sent to your {target}."
    else:
        message = f"Verification started, but the code could not be sent to your {target} right now. Please request a new code."
    return SendResponse(id=result.session.id, message=message, auth_method=data.auth_method)


@router.post("/invitations/validate", response_model=InvitationValidateResponse)
def validate_invitation(data: InvitationValidateRequest, db: Session = Depends(get_db)):
    invitation = promotion.resolve_invitation(db, data.invitation_token)
    company = db.query(Company).filter(Company.id == invitation.company_id).first()
    inviter = None
    if invitation.invited_by_id:
        inviter = db.query(Identity).filter(Identity.id == invitation.invited_by_id).first()
    inviter_name = None
    if inviter:
        inviter_name = f"{inviter.first_name or ''} {inviter.last_name or ''}".strip() or inviter.email
    return InvitationValidateResponse(
        email=invitation.email,
        company_id=invitation.company_id,
        company_name=company.public_name if company else None,
        hub_id=invitation.hub_id,
        role=invitation.role,
        invited_by_name=inviter_name,
        expires_at=invitation.expires_at,
    )


@router.get("/me", response_model=IdentityResponse)
def me(identity: Identity = Depends(require_route_access)):
    return IdentityResponse.model_validate(identity)
