"""TCR (The Campaign Registry) field validation for brand and campaign registration.

Pure functions over plain mappings: no database, no network. Every failing field is
reported, keyed by field name, so a form can highlight all of them at once.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Mapping
from urllib.parse import urlparse

EIN_RE = re.compile(r"^\d{2}-?\d{7}$")
ZIP_RE = re.compile(r"^\d{5}(-\d{4})?$")
STATE_RE = re.compile(r"^[A-Za-z]{2}$")
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
HOSTNAME_RE = re.compile(r"^[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?(?:\.[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?)+$")

# TCR rejects shorter descriptions and calls to action
MIN_DESCRIPTIVE_LENGTH = 40
MAX_SAMPLE_MESSAGES = 5
HIGH_VOLUME_THRESHOLD = 100_000

WARNING_DIRECT_LENDING = "Direct lending campaigns require additional compliance review"
WARNING_AGE_GATED = "Age-gated content requires age verification process"
WARNING_AFFILIATE = "Affiliate marketing campaigns have stricter approval requirements"
WARNING_HIGH_VOLUME = "High-volume campaigns may require additional vetting"


@dataclass
class BrandValidationResult:
    valid: bool
    errors: dict[str, str] = field(default_factory=dict)


@dataclass
class CampaignValidationResult:
    valid: bool
    errors: dict[str, str] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)


def _text(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    return str(value).strip()


def _digits(value: str) -> str:
    return re.sub(r"\D", "", value or "")


def validate_ein(ein: str) -> bool:
    """EIN in XX-XXXXXXX form (dash optional, whitespace ignored)."""
    return bool(EIN_RE.match(re.sub(r"\s", "", ein or "")))


def format_ein(ein: str) -> str:
    cleaned = _digits(ein)
    if len(cleaned) != 9:
        return ein
    return f"{cleaned[:2]}-{cleaned[2:]}"


def validate_website(url: str) -> bool:
    """http(s) URL with a dotted hostname. A bare domain is read as https://domain."""
    candidate = (url or "").strip()
    if not candidate or any(ch.isspace() for ch in candidate):
        return False
    if not candidate.lower().startswith("http"):
        candidate = f"https://{candidate}"
    try:
        parsed = urlparse(candidate)
        hostname = parsed.hostname
    except ValueError:
        return False
    if parsed.scheme not in ("http", "https") or not hostname:
        return False
    return bool(HOSTNAME_RE.match(hostname))


def validate_tcr_phone_number(phone: str) -> bool:
    """10-digit US number, optionally with a leading country digit 1."""
    cleaned = _digits(phone)
    return len(cleaned) == 10 or (len(cleaned) == 11 and cleaned[0] == "1")


def format_phone_to_e164(phone: str) -> str:
    cleaned = _digits(phone)
    if len(cleaned) == 10:
        return f"+1{cleaned}"
    if len(cleaned) == 11 and cleaned[0] == "1":
        return f"+{cleaned}"
    return phone


def validate_zip_code(zip_code: str) -> bool:
    return bool(ZIP_RE.match(zip_code or ""))


def validate_call_to_action(text: str | None) -> str | None:
    """Error message for a call to action, or None when it is acceptable."""
    stripped = (text or "").strip()
    if not stripped:
        return "Call to action is required"
    if len(stripped) < MIN_DESCRIPTIVE_LENGTH:
        return f"Call to action must be at least {MIN_DESCRIPTIVE_LENGTH} characters (currently {len(stripped)})"
    return None


def validate_tcr_brand_data(data: Mapping[str, Any]) -> BrandValidationResult:
    errors: dict[str, str] = {}

    required = {
        "company_legal_name": "Legal company name is required",
        "address_street": "Street address is required",
        "address_city": "City is required",
        "industry": "Industry is required",
        "vertical_type": "Vertical type is required",
        "legal_form": "Legal form is required",
        "contact_first_name": "Contact first name is required",
        "contact_last_name": "Contact last name is required",
    }
    for key, message in required.items():
        if not _text(data, key):
            errors[key] = message

    ein = _text(data, "ein")
    if not ein:
        errors["ein"] = "EIN is required"
    elif not validate_ein(ein):
        errors["ein"] = "EIN must be in format XX-XXXXXXX"

    website = _text(data, "company_website")
    if not website:
        errors["company_website"] = "Company website is required"
    elif not validate_website(website):
        errors["company_website"] = "Please enter a valid website URL"

    state = _text(data, "address_state")
    if not state:
        errors["address_state"] = "State is required"
    elif not STATE_RE.match(state):
        errors["address_state"] = "State must be 2-letter code (e.g., CA)"

    postal_code = _text(data, "address_postal_code")
    if not postal_code:
        errors["address_postal_code"] = "ZIP code is required"
    elif not validate_zip_code(postal_code):
        errors["address_postal_code"] = "Please enter a valid ZIP code"

    contact_email = _text(data, "contact_email")
    if not contact_email:
        errors["contact_email"] = "Contact email is required"
    elif not EMAIL_RE.match(contact_email):
        errors["contact_email"] = "Please enter a valid email address"

    contact_phone = _text(data, "contact_phone")
    if not contact_phone:
        errors["contact_phone"] = "Contact phone is required"
    elif not validate_tcr_phone_number(contact_phone):
        errors["contact_phone"] = "Please enter a valid US phone number"

    return BrandValidationResult(valid=not errors, errors=errors)


def _monthly_volume(data: Mapping[str, Any]) -> int:
    raw = data.get("monthly_volume")
    if raw is None or isinstance(raw, bool):
        return 0
    try:
        return int(raw)
    except (TypeError, ValueError):
        return 0


def validate_tcr_campaign_data(data: Mapping[str, Any]) -> CampaignValidationResult:
    """Campaign rules. Warnings flag manual review and never make the result invalid."""
    errors: dict[str, str] = {}
    warnings: list[str] = []

    if not _text(data, "campaign_name"):
        errors["campaign_name"] = "Campaign name is required"

    description = _text(data, "description")
    if not description:
        errors["description"] = "Campaign description is required"
    elif len(description) < MIN_DESCRIPTIVE_LENGTH:
        errors["description"] = f"Description must be at least {MIN_DESCRIPTIVE_LENGTH} characters"

    if not _text(data, "message_flow"):
        errors["message_flow"] = "Message flow description is required"

    if not _text(data, "use_case"):
        errors["use_case"] = "Use case is required"

    cta_error = validate_call_to_action(data.get("call_to_action"))
    if cta_error:
        errors["call_to_action"] = cta_error

    samples = [m for m in (data.get("sample_messages") or []) if isinstance(m, str) and m.strip()]
    if not samples:
        errors["sample_messages"] = "At least one sample message is required"
    elif len(samples) > MAX_SAMPLE_MESSAGES:
        errors["sample_messages"] = f"Maximum {MAX_SAMPLE_MESSAGES} sample messages allowed"

    if not _text(data, "opt_in_message"):
        errors["opt_in_message"] = "Opt-in message is required"
    if not _text(data, "opt_out_message"):
        errors["opt_out_message"] = "Opt-out message is required"
    if not _text(data, "help_message"):
        errors["help_message"] = "Help message is required"

    if data.get("direct_lending"):
        warnings.append(WARNING_DIRECT_LENDING)
    if data.get("age_gated"):
        warnings.append(WARNING_AGE_GATED)
    if data.get("affiliate_marketing"):
        warnings.append(WARNING_AFFILIATE)
    if _monthly_volume(data) > HIGH_VOLUME_THRESHOLD:
        warnings.append(WARNING_HIGH_VOLUME)

    return CampaignValidationResult(valid=not errors, errors=errors, warnings=warnings)


def has_all_tcr_fields(brand: Mapping[str, Any], campaign: Mapping[str, Any]) -> bool:
    return validate_tcr_brand_data(brand).valid and validate_tcr_campaign_data(campaign).valid
