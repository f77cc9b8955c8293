"""Auth schemas: the submit-verify contract, invitation lookup, and identity payloads."""
import re
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, EmailStr, field_validator, model_validator

from smshub.models.identity import SignupType
from smshub.models.verification_session import Channel

PHONE_DIGITS = 10

# Names older clients still send
SIGNUP_TYPE_ALIASES = {
    "new_company": SignupType.new_tenant_owner.value,
    "invited_user": SignupType.invited_member.value,
}


def _normalize_phone(value: str | None) -> str:
    if value is None:
        return ""
    digits = re.sub(r"\D", "", value.strip())
    if len(digits) == PHONE_DIGITS + 1 and digits.startswith("1"):
        digits = digits[1:]
    return digits


class SubmitVerifyRequest(BaseModel):
    """action=send needs email, mobile_phone_number and auth_method; action=verify needs
    temp_signup_id and verification_code."""
    action: Literal["send", "verify"]

    email: EmailStr | None = None
    mobile_phone_number: str | None = None
    auth_method: Channel | None = None
    is_login: bool = False
    hub_id: int | None = None
    signup_type: SignupType | None = None
    invitation_token: str | None = None

    temp_signup_id: str | None = None
    verification_code: str | None = None

    @field_validator("email", mode="before")
    @classmethod
    def email_normalized(cls, v):
        if isinstance(v, str):
            return v.strip().lower() or None
        return v

    @field_validator("mobile_phone_number")
    @classmethod
    def phone_valid(cls, v: str | None) -> str | None:
        if v is None:
            return None
        digits = _normalize_phone(v)
        if len(digits) != PHONE_DIGITS:
            raise ValueError("Please enter a valid 10-digit US phone number (e.g. 5551234567).")
        return digits

    @field_validator("signup_type", mode="before")
    @classmethod
    def signup_type_aliases(cls, v):
        if isinstance(v, str):
            return SIGNUP_TYPE_ALIASES.get(v.strip(), v.strip())
        return v

    @field_validator("verification_code")
    @classmethod
    def code_trimmed(cls, v: str | None) -> str | None:
        return v.strip() if isinstance(v, str) else v

    @model_validator(mode="after")
    def required_for_action(self):
        if self.action == "send":
            missing = [
                name for name in ("email", "mobile_phone_number", "auth_method")
                if getattr(self, name) in (None, "")
            ]
            if missing:
                raise ValueError(f"Missing required fields for send: {', '.join(missing)}")
            if (
                not self.is_login
                and self.signup_type == SignupType.invited_member
                and not (self.invitation_token or "").strip()
            ):
                raise ValueError("invitation_token is required for invited_member signups")
        else:
            if not self.temp_signup_id or not self.verification_code:
                raise ValueError("Missing required fields for verify: temp_signup_id, verification_code")
        return self


class SendResponse(BaseModel):
    success: bool = True
    id: str
    message: str
    auth_method: Channel


class IdentityResponse(BaseModel):
    id: str
    email: str
    phone: str
    hub_id: int
    company_id: str | None = None
    role: str
    signup_type: str | None = None
    account_number: str
    first_name: str | None = None
    last_name: str | None = None
    is_individual_customer: bool = False

    class Config:
        from_attributes = True


class VerifyResponse(BaseModel):
    success: bool = True
    account: IdentityResponse
    access_token: str
    token_type: str = "bearer"
    session_url: str | None = None
    redirect: str
    warnings: list[str] = []


class InvitationValidateRequest(BaseModel):
    invitation_token: str


class InvitationValidateResponse(BaseModel):
    success: bool = True
    email: str
    company_id: str
    company_name: str | None = None
    hub_id: int
    role: str
    invited_by_name: str | None = None
    expires_at: datetime
