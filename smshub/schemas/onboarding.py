"""Onboarding schemas. StepData is a tagged union keyed by step name; every field is
optional so a partial payload reaches the step's can-proceed check and gets field-level errors.
AdvanceRequest carries step_data as a plain object; the sequencer validates it against
the union so a wrongly typed field is reported like any other blocked step."""
from datetime import datetime
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class _StepData(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)


class VerificationStepData(_StepData):
    step: Literal["verification"] = "verification"
    session_id: str | None = None
    channel: str | None = None
    verified_at: datetime | None = None


class PaymentStepData(_StepData):
    step: Literal["payment"] = "payment"
    stripe_session_id: str | None = None
    payment_status: str | None = None


class PersonalStepData(_StepData):
    step: Literal["personal"] = "personal"
    first_name: str | None = None
    last_name: str | None = None


class BusinessStepData(_StepData):
    step: Literal["business"] = "business"
    company_name: str | None = None
    company_phone_number: str | None = None


class BrandStepData(_StepData):
    step: Literal["brand"] = "brand"
    company_legal_name: str | None = None
    ein: str | None = None
    company_website: str | None = None
    address_street: str | None = None
    address_city: str | None = None
    address_state: str | None = None
    address_postal_code: str | None = None
    industry: str | None = None
    vertical_type: str | None = None
    legal_form: str | None = None
    contact_first_name: str | None = None
    contact_last_name: str | None = None
    contact_email: str | None = None
    contact_phone: str | None = None


class PrivacyTermsStepData(_StepData):
    step: Literal["privacy_terms"] = "privacy_terms"
    accepted_terms: bool | None = Field(default=None, alias="acceptedTerms")
    accepted_tcpa: bool | None = Field(default=None, alias="acceptedTCPA")


class CampaignStepData(_StepData):
    step: Literal["campaign"] = "campaign"
    campaign_name: str | None = None
    description: str | None = None
    message_flow: str | None = None
    use_case: str | None = None
    call_to_action: str | None = None
    sample_messages: list[str] | None = None
    opt_in_message: str | None = None
    opt_out_message: str | None = None
    help_message: str | None = None
    direct_lending: bool | None = None
    age_gated: bool | None = None
    affiliate_marketing: bool | None = None
    monthly_volume: int | None = None


class BandwidthStepData(_StepData):
    step: Literal["bandwidth"] = "bandwidth"
    selected_number: str | None = None
    city: str | None = None
    state: str | None = None


class SetupStepData(_StepData):
    step: Literal["setup"] = "setup"
    account_setup_completed: bool | None = None
    messaging_preferences: dict[str, Any] | None = None


class ActivationStepData(_StepData):
    step: Literal["activation"] = "activation"
    platform_access_granted: bool | None = None


StepData = Annotated[
    Union[
        VerificationStepData,
        PaymentStepData,
        PersonalStepData,
        BusinessStepData,
        BrandStepData,
        PrivacyTermsStepData,
        CampaignStepData,
        BandwidthStepData,
        SetupStepData,
        ActivationStepData,
    ],
    Field(discriminator="step"),
]


class AdvanceRequest(BaseModel):
    current_step: str
    step_data: dict[str, Any] = {}


class AdvanceResponse(BaseModel):
    success: bool = True
    previous_step: str
    current_step: str
    is_completed: bool = False
    warnings: list[str] = []


class RetreatResponse(BaseModel):
    success: bool = True
    current_step: str


class OnboardingProgressResponse(BaseModel):
    success: bool = True
    identity_id: str
    hub_id: int
    current_step: str
    steps: list[str]
    step_data: dict[str, Any]
    is_completed: bool

    class Config:
        from_attributes = True
