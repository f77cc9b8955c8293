"""Onboarding step sequencer.

The step order below is fixed; stored progress rows refer to steps by name, so
reordering needs a data migration. Each step has a can-proceed check over that step's
accumulated payload. advance() runs the check, merges the payload, and moves the row
forward with a conditional UPDATE on the expected current step. retreat() moves back
without checks and keeps every step's data. "completed" is terminal.
"""
import enum
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Mapping

from pydantic import TypeAdapter, ValidationError
from sqlalchemy import update
from sqlalchemy.orm import Session

from smshub.hubs import TenantContext
from smshub.models.company import Company, Inbox
from smshub.models.identity import Identity, Role
from smshub.models.onboarding_progress import OnboardingProgress
from smshub.schemas.onboarding import StepData
from smshub.services import compliance, roles
from smshub.services.audit_log import create_log, CATEGORY_STATUS_CHANGE
from smshub.services.errors import BlockedByValidation, Forbidden, NotFound, StepMismatch

logger = logging.getLogger(__name__)


class Step(str, enum.Enum):
    verification = "verification"
    payment = "payment"
    personal = "personal"
    business = "business"
    brand = "brand"
    privacy_terms = "privacy_terms"
    campaign = "campaign"
    bandwidth = "bandwidth"
    setup = "setup"
    activation = "activation"
    completed = "completed"


STEP_ORDER: list[Step] = [
    Step.verification,
    Step.payment,
    Step.personal,
    Step.business,
    Step.brand,
    Step.privacy_terms,
    Step.campaign,
    Step.bandwidth,
    Step.setup,
    Step.activation,
]

_step_data_adapter = TypeAdapter(StepData)


@dataclass
class StepCheck:
    errors: dict[str, str] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)

    @property
    def can_proceed(self) -> bool:
        return not self.errors


@dataclass
class AdvanceResult:
    previous_step: Step
    current_step: Step
    progress: OnboardingProgress
    warnings: list[str] = field(default_factory=list)


def parse_step(step: str | Step) -> Step:
    try:
        return Step(getattr(step, "value", step))
    except ValueError:
        raise StepMismatch(f"Unknown onboarding step: {step!r}.")


def next_step(step: Step) -> Step:
    if step == Step.completed:
        raise StepMismatch("Onboarding is already completed.")
    index = STEP_ORDER.index(step)
    if index == len(STEP_ORDER) - 1:
        return Step.completed
    return STEP_ORDER[index + 1]


def previous_step(step: Step) -> Step:
    if step == Step.completed:
        raise StepMismatch("Onboarding is already completed.")
    index = STEP_ORDER.index(step)
    return STEP_ORDER[max(index - 1, 0)]


def _require(data: Mapping[str, Any], fields: dict[str, str]) -> dict[str, str]:
    errors = {}
    for key, message in fields.items():
        value = data.get(key)
        if value is None or (isinstance(value, str) and not value.strip()):
            errors[key] = message
    return errors


def _check_verification(data):
    return StepCheck(errors=_require(data, {"session_id": "A verified session is required"}))


def _check_payment(data):
    if data.get("payment_status") == "completed" or (data.get("stripe_session_id") or "").strip():
        return StepCheck()
    return StepCheck(errors={"payment_status": "Payment must be completed before continuing"})


def _check_personal(data):
    return StepCheck(errors=_require(data, {
        "first_name": "First name is required",
        "last_name": "Last name is required",
    }))


def _check_business(data):
    errors = _require(data, {"company_name": "Company name is required"})
    phone = (data.get("company_phone_number") or "").strip()
    if phone and not compliance.validate_tcr_phone_number(phone):
        errors["company_phone_number"] = "Please enter a valid US phone number"
    return StepCheck(errors=errors)


def _check_brand(data):
    return StepCheck(errors=compliance.validate_tcr_brand_data(data).errors)


def _check_privacy_terms(data):
    errors = {}
    if data.get("accepted_terms") is not True:
        errors["accepted_terms"] = "You must accept the privacy policy and terms of service"
    if data.get("accepted_tcpa") is not True:
        errors["accepted_tcpa"] = "You must accept the TCPA messaging consent terms"
    return StepCheck(errors=errors)


def _check_campaign(data):
    result = compliance.validate_tcr_campaign_data(data)
    return StepCheck(errors=result.errors, warnings=result.warnings)


def _check_bandwidth(data):
    number = (data.get("selected_number") or "").strip()
    if not number:
        return StepCheck(errors={"selected_number": "Select a phone number to continue"})
    if not compliance.validate_tcr_phone_number(number):
        return StepCheck(errors={"selected_number": "Selected number is not a valid US phone number"})
    return StepCheck()


def _check_setup(data):
    if data.get("account_setup_completed") is not True:
        return StepCheck(errors={"account_setup_completed": "Finish configuring your account settings"})
    return StepCheck()


def _check_activation(data):
    if data.get("platform_access_granted") is not True:
        return StepCheck(errors={"platform_access_granted": "Activate the platform to finish onboarding"})
    return StepCheck()


STEP_CHECKS: dict[Step, Callable[[Mapping[str, Any]], StepCheck]] = {
    Step.verification: _check_verification,
    Step.payment: _check_payment,
    Step.personal: _check_personal,
    Step.business: _check_business,
    Step.brand: _check_brand,
    Step.privacy_terms: _check_privacy_terms,
    Step.campaign: _check_campaign,
    Step.bandwidth: _check_bandwidth,
    Step.setup: _check_setup,
    Step.activation: _check_activation,
}


def check_step(step: Step, data: Mapping[str, Any]) -> StepCheck:
    return STEP_CHECKS[step](data)


def parse_step_data(step: Step, step_data) -> dict[str, Any]:
    """Validate a step payload against the step's schema; return it as plain JSON-ready data."""
    if isinstance(step_data, Mapping):
        tag = step_data.get("step", step.value)
        if tag != step.value:
            raise StepMismatch(f"Payload is for the {tag} step, not {step.value}.")
        try:
            step_data = _step_data_adapter.validate_python({**step_data, "step": step.value})
        except ValidationError as e:
            errors = {".".join(str(p) for p in err["loc"][1:]) or step.value: err["msg"] for err in e.errors()}
            raise BlockedByValidation(step.value, errors)
    if step_data.step != step.value:
        raise StepMismatch(f"Payload is for the {step_data.step} step, not {step.value}.")
    return step_data.model_dump(mode="json", exclude={"step"}, exclude_none=True)


def _authorize(actor: Identity, identity: Identity, tenant: TenantContext) -> None:
    if identity.hub_id != tenant.hub_id:
        raise Forbidden("This account belongs to a different hub.")
    if actor.id == identity.id:
        return
    if roles.is_super_admin(actor.role):
        return
    if roles.is_admin(actor.role) and actor.hub_id == identity.hub_id:
        return
    raise Forbidden("You are not allowed to change this account's onboarding.")


def get_progress(db: Session, identity: Identity) -> OnboardingProgress | None:
    return db.query(OnboardingProgress).filter(
        OnboardingProgress.identity_id == identity.id,
        OnboardingProgress.hub_id == identity.hub_id,
    ).first()


def _apply_step_effects(db: Session, identity: Identity, step: Step, data: Mapping[str, Any]) -> None:
    if step == Step.personal:
        identity.first_name = data["first_name"].strip()
        identity.last_name = data["last_name"].strip()
    elif step == Step.business and identity.company_id is None:
        company = Company(
            id=str(uuid.uuid4()),
            hub_id=identity.hub_id,
            public_name=data["company_name"].strip(),
            created_by_id=identity.id,
        )
        db.add(company)
        db.add(Inbox(
            id=str(uuid.uuid4()),
            company_id=company.id,
            hub_id=identity.hub_id,
            name=f"{company.public_name} Inbox",
            is_default=True,
        ))
        db.flush()
        identity.company_id = company.id
        logger.info("[Onboarding] Company %s created for identity %s", company.id, identity.id)
    elif step == Step.activation and roles.has_role(identity.role, Role.USER.value):
        identity.role = Role.ONBOARDED.value


def _advance(
    db: Session,
    progress: OnboardingProgress,
    identity: Identity,
    current_step: Step,
    step_data,
) -> AdvanceResult:
    """Check, merge, and move one step forward. Flushes; the caller commits."""
    if progress.is_completed or progress.current_step == Step.completed.value:
        raise StepMismatch("Onboarding is already completed.")
    if progress.current_step != current_step.value:
        raise StepMismatch(
            f"Onboarding is at the {progress.current_step} step, not {current_step.value}.",
            details={"current_step": progress.current_step},
        )

    submitted = parse_step_data(current_step, step_data)
    existing = dict(progress.step_data or {})
    accumulated = {**(existing.get(current_step.value) or {}), **submitted}

    check = check_step(current_step, accumulated)
    if not check.can_proceed:
        raise BlockedByValidation(current_step.value, check.errors, check.warnings)

    existing[current_step.value] = accumulated
    target = next_step(current_step)
    values: dict[str, Any] = {"current_step": target.value, "step_data": existing}
    if target == Step.completed:
        values["is_completed"] = True
        values["completed_at"] = datetime.now(timezone.utc)

    result = db.execute(
        update(OnboardingProgress)
        .where(
            OnboardingProgress.id == progress.id,
            OnboardingProgress.current_step == current_step.value,
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise StepMismatch("Onboarding moved on in another request. Reload and try again.")

    db.refresh(progress)
    _apply_step_effects(db, identity, current_step, accumulated)
    create_log(
        db,
        CATEGORY_STATUS_CHANGE,
        "Onboarding completed" if target == Step.completed else "Onboarding step advanced",
        f"Identity {identity.id} advanced from {current_step.value} to {target.value}.",
        hub_id=identity.hub_id,
        identity_id=identity.id,
        actor_email=identity.email,
        meta={"from": current_step.value, "to": target.value, "warnings": check.warnings},
    )
    logger.info("[Onboarding] identity=%s %s -> %s", identity.id, current_step.value, target.value)
    return AdvanceResult(previous_step=current_step, current_step=target, progress=progress, warnings=check.warnings)


def start_onboarding(db: Session, identity: Identity, verification_data: Mapping[str, Any]) -> OnboardingProgress:
    """Create the progress row for a just-promoted identity and clear the verification step.
    Runs inside the promotion transaction; does not commit."""
    progress = OnboardingProgress(
        hub_id=identity.hub_id,
        identity_id=identity.id,
        current_step=Step.verification.value,
        step_data={},
        is_completed=False,
    )
    db.add(progress)
    db.flush()
    _advance(db, progress, identity, Step.verification, verification_data)
    return progress


def advance(
    db: Session,
    identity: Identity,
    tenant: TenantContext,
    current_step: str | Step,
    step_data,
    actor: Identity | None = None,
) -> AdvanceResult:
    _authorize(actor or identity, identity, tenant)
    step = parse_step(current_step)
    progress = get_progress(db, identity)
    if progress is None:
        raise NotFound("No onboarding in progress for this account.")
    try:
        result = _advance(db, progress, identity, step, step_data)
    except Exception:
        db.rollback()
        raise
    db.commit()
    db.refresh(progress)
    return result


def retreat(db: Session, identity: Identity, tenant: TenantContext, actor: Identity | None = None) -> Step:
    """Move back one step. No checks; data entered for later steps is kept. No-op on the first step."""
    _authorize(actor or identity, identity, tenant)
    progress = get_progress(db, identity)
    if progress is None:
        raise NotFound("No onboarding in progress for this account.")
    current = parse_step(progress.current_step)
    target = previous_step(current)
    if target == current:
        return current
    result = db.execute(
        update(OnboardingProgress)
        .where(
            OnboardingProgress.id == progress.id,
            OnboardingProgress.current_step == current.value,
        )
        .values(current_step=target.value)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        raise StepMismatch("Onboarding moved on in another request. Reload and try again.")
    db.commit()
    logger.info("[Onboarding] identity=%s %s -> %s (back)", identity.id, current.value, target.value)
    return target
