"""Onboarding progression for the signed-in identity."""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from smshub.database import get_db
from smshub.dependencies import get_current_tenant, require_route_access
from smshub.hubs import TenantContext
from smshub.models.identity import Identity
from smshub.schemas.onboarding import (
    AdvanceRequest,
    AdvanceResponse,
    OnboardingProgressResponse,
    RetreatResponse,
)
from smshub.services import onboarding
from smshub.services.errors import NotFound

router = APIRouter(prefix="/onboarding", tags=["onboarding"])


@router.get("", response_model=OnboardingProgressResponse)
def get_progress(
    identity: Identity = Depends(require_route_access),
    db: Session = Depends(get_db),
):
    progress = onboarding.get_progress(db, identity)
    if progress is None:
        raise NotFound("No onboarding in progress for this account.")
    return OnboardingProgressResponse(
        identity_id=progress.identity_id,
        hub_id=progress.hub_id,
        current_step=progress.current_step,
        steps=[s.value for s in onboarding.STEP_ORDER],
        step_data=progress.step_data or {},
        is_completed=progress.is_completed,
    )


@router.post("/advance", response_model=AdvanceResponse)
def advance(
    data: AdvanceRequest,
    identity: Identity = Depends(require_route_access),
    tenant: TenantContext = Depends(get_current_tenant),
    db: Session = Depends(get_db),
):
    result = onboarding.advance(db, identity, tenant, data.current_step, data.step_data)
    return AdvanceResponse(
        previous_step=result.previous_step.value,
        current_step=result.current_step.value,
        is_completed=result.current_step == onboarding.Step.completed,
        warnings=result.warnings,
    )


@router.post("/retreat", response_model=RetreatResponse)
def retreat(
    identity: Identity = Depends(require_route_access),
    tenant: TenantContext = Depends(get_current_tenant),
    db: Session = Depends(get_db),
):
    step = onboarding.retreat(db, identity, tenant)
    return RetreatResponse(current_step=step.value)
