"""Rejection reason validation."""

from procurement_config.schema import ApprovalRulesConfig
from procurement_kernel.domain.validation import ValidationResult, sanitize_text
from procurement_modules.purchase_request.models import ApprovalErrorKind


def validate_rejection_reason(
    reason: str | None,
    config: ApprovalRulesConfig,
) -> ValidationResult:
    """A rejection needs a sanitized reason within the configured length."""
    text = sanitize_text(reason)
    if not text:
        return ValidationResult.failure(
            ApprovalErrorKind.INVALID_REJECTION_REASON,
            "Rejection reason is required",
        )
    if len(text) < config.rejection_reason_min_length:
        return ValidationResult.failure(
            ApprovalErrorKind.INVALID_REJECTION_REASON,
            f"Rejection reason must be at least {config.rejection_reason_min_length} characters",
        )
    if len(text) > config.rejection_reason_max_length:
        return ValidationResult.failure(
            ApprovalErrorKind.INVALID_REJECTION_REASON,
            f"Rejection reason cannot exceed {config.rejection_reason_max_length} characters",
        )
    return ValidationResult.success()
