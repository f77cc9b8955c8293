"""Compliance validator request/response schemas. Requests are open maps; the validators report field errors."""
from typing import Any

from pydantic import BaseModel, RootModel


class ComplianceData(RootModel[dict[str, Any]]):
    pass


class BrandValidationResponse(BaseModel):
    valid: bool
    errors: dict[str, str] = {}


class CampaignValidationResponse(BaseModel):
    valid: bool
    errors: dict[str, str] = {}
    warnings: list[str] = []
