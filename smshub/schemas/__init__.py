from smshub.schemas.auth import (
    IdentityResponse,
    InvitationValidateRequest,
    InvitationValidateResponse,
    SendResponse,
    SubmitVerifyRequest,
    VerifyResponse,
)
from smshub.schemas.onboarding import AdvanceRequest, AdvanceResponse, OnboardingProgressResponse, RetreatResponse, StepData
from smshub.schemas.compliance import BrandValidationResponse, CampaignValidationResponse, ComplianceData
from smshub.schemas.admin import DispatchFailureCount, VerificationSessionList, VerificationSessionSummary
