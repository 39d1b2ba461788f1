"""Finance remarks validation."""

from procurement_config.schema import ApprovalRulesConfig
from procurement_kernel.domain.validation import ValidationResult, sanitize_text
from procurement_modules.purchase_request.models import ApprovalErrorKind


def validate_finance_remarks(
    remarks: str | None,
    config: ApprovalRulesConfig,
) -> ValidationResult:
    """Remarks are optional; blank counts as absent, anything else must fit the configured length."""
    text = sanitize_text(remarks)
    if not text:
        return ValidationResult.success()
    if len(text) < config.finance_remarks_min_length:
        return ValidationResult.failure(
            ApprovalErrorKind.INVALID_FINANCE_REMARKS,
            f"Finance remarks must be at least {config.finance_remarks_min_length} "
            f"characters if provided",
        )
    if len(text) > config.finance_remarks_max_length:
        return ValidationResult.failure(
            ApprovalErrorKind.INVALID_FINANCE_REMARKS,
            f"Finance remarks cannot exceed {config.finance_remarks_max_length} characters",
        )
    return ValidationResult.success()
