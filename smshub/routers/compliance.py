"""Brand and campaign pre-checks against the carrier registry's field rules. Always 200; see `valid`."""
from fastapi import APIRouter, Depends

from smshub.dependencies import require_route_access
from smshub.models.identity import Identity
from smshub.schemas.compliance import BrandValidationResponse, CampaignValidationResponse, ComplianceData
from smshub.services import compliance

router = APIRouter(prefix="/compliance", tags=["compliance"])


@router.post("/brand/validate", response_model=BrandValidationResponse)
def validate_brand(data: ComplianceData, identity: Identity = Depends(require_route_access)):
    result = compliance.validate_tcr_brand_data(data.root)
    return BrandValidationResponse(valid=result.valid, errors=result.errors)


@router.post("/campaign/validate", response_model=CampaignValidationResponse)
def validate_campaign(data: ComplianceData, identity: Identity = Depends(require_route_access)):
    result = compliance.validate_tcr_campaign_data(data.root)
    return CampaignValidationResponse(valid=result.valid, errors=result.errors, warnings=result.warnings)
