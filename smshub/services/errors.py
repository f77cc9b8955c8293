"""Errors raised by the verification, promotion and onboarding services.

Routers never see a raw storage error for these cases: each subclass carries a stable
code and the HTTP status the API boundary renders it with (see smshub.main).
"""
from typing import Any


class SmsHubError(Exception):
    code = "ERROR"
    status_code = 400

    def __init__(self, message: str, details: Any = None):
        self.message = message
        self.details = details
        super().__init__(message)


class NotFound(SmsHubError):
    code = "NOT_FOUND"


class InvalidSession(SmsHubError):
    code = "INVALID_SESSION"


class Expired(SmsHubError):
    code = "EXPIRED"


class Exhausted(SmsHubError):
    code = "EXHAUSTED"


class CodeMismatch(SmsHubError):
    code = "CODE_MISMATCH"

    def __init__(self, attempts_remaining: int):
        noun = "attempt" if attempts_remaining == 1 else "attempts"
        super().__init__(
            f"Invalid verification code. {attempts_remaining} {noun} remaining.",
            details={"attempts_remaining": attempts_remaining},
        )
        self.attempts_remaining = attempts_remaining


class AlreadyVerified(SmsHubError):
    code = "ALREADY_VERIFIED"


class DuplicateAccount(SmsHubError):
    code = "DUPLICATE_ACCOUNT"


class InvalidInvitation(SmsHubError):
    code = "INVALID_INVITATION"


class InvitationExpired(SmsHubError):
    code = "INVITATION_EXPIRED"


class EmailMismatch(SmsHubError):
    code = "EMAIL_MISMATCH"


class BlockedByValidation(SmsHubError):
    code = "BLOCKED_BY_VALIDATION"

    def __init__(self, step: str, errors: dict[str, str], warnings: list[str] | None = None):
        super().__init__(
            f"The {step} step has missing or invalid fields.",
            details={"step": step, "errors": errors, "warnings": warnings or []},
        )
        self.step = step
        self.errors = errors


class StepMismatch(SmsHubError):
    code = "STEP_MISMATCH"


class RequestInvalid(SmsHubError):
    code = "REQUEST_INVALID"


class Unauthenticated(SmsHubError):
    code = "UNAUTHENTICATED"
    status_code = 401


class Forbidden(SmsHubError):
    code = "FORBIDDEN"
    status_code = 403


class ChannelDispatchFailed(SmsHubError):
    """A code could not be handed to the SMS/email provider. Never reaches the client."""
    code = "CHANNEL_DISPATCH_FAILED"
