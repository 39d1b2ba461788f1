"""
Item adjustment validation.

Finance may lower an item's quantity when approving or editing a
request.  A changed quantity needs a reason; an unchanged one does not.
Validation is all-or-nothing: the first invalid item fails the whole
set and nothing is applied.
"""

from collections.abc import Iterable
from dataclasses import replace

from procurement_config.schema import ApprovalRulesConfig
from procurement_kernel.domain.validation import (
    ValidationResult,
    is_whole_number,
    sanitize_text,
)
from procurement_kernel.exceptions import MalformedInputError
from procurement_kernel.logging_config import get_logger
from procurement_modules.purchase_request.models import (
    ApprovalErrorKind,
    ItemAdjustment,
    PurchaseRequest,
    PurchaseRequestItem,
    index_by_item,
)

logger = get_logger("modules.purchase_request.adjustments")


def validate_item_adjustment(
    item: PurchaseRequestItem,
    adjusted_quantity: object,
    adjustment_reason: str | None,
    config: ApprovalRulesConfig,
    label: str | None = None,
) -> ValidationResult:
    """Validate one proposed quantity against the item's requested quantity."""
    label = label or f"Item {item.id}"
    if adjustment_reason is not None and not isinstance(adjustment_reason, str):
        raise MalformedInputError(
            f"{label}: adjustment reason must be a string, got {type(adjustment_reason).__name__}"
        )

    if not is_whole_number(adjusted_quantity):
        return ValidationResult.failure(
            ApprovalErrorKind.INVALID_QUANTITY,
            f"{label}: adjusted quantity must be a whole number, got {adjusted_quantity!r}",
        )
    if adjusted_quantity < 0:
        return ValidationResult.failure(
            ApprovalErrorKind.INVALID_QUANTITY,
            f"{label}: adjusted quantity cannot be negative",
        )
    if adjusted_quantity == 0 and not config.allow_zero_adjustment:
        return ValidationResult.failure(
            ApprovalErrorKind.INVALID_QUANTITY,
            f"{label}: adjusted quantity cannot be zero",
        )
    if adjusted_quantity > item.requested_quantity and not config.allow_quantity_increase:
        return ValidationResult.failure(
            ApprovalErrorKind.INVALID_QUANTITY,
            f"{label}: adjusted quantity {adjusted_quantity} exceeds "
            f"requested quantity {item.requested_quantity}",
        )

    if adjusted_quantity == item.requested_quantity:
        return ValidationResult.success()

    reason = sanitize_text(adjustment_reason)
    if not reason:
        return ValidationResult.failure(
            ApprovalErrorKind.MISSING_ADJUSTMENT_REASON,
            f"{label}: adjustment reason is required when quantity changes "
            f"from {item.requested_quantity} to {adjusted_quantity}",
        )
    if len(reason) < config.adjustment_reason_min_length:
        return ValidationResult.failure(
            ApprovalErrorKind.INVALID_ADJUSTMENT_REASON,
            f"{label}: adjustment reason must be at least "
            f"{config.adjustment_reason_min_length} characters",
        )
    if len(reason) > config.adjustment_reason_max_length:
        return ValidationResult.failure(
            ApprovalErrorKind.INVALID_ADJUSTMENT_REASON,
            f"{label}: adjustment reason cannot exceed "
            f"{config.adjustment_reason_max_length} characters",
        )
    return ValidationResult.success()


def validate_adjustments(
    request: PurchaseRequest,
    adjustments: Iterable[ItemAdjustment],
    config: ApprovalRulesConfig,
) -> ValidationResult:
    """Validate every adjustment, stopping at the first invalid item."""
    indexed = index_by_item(request, adjustments, "adjustments")
    for item in request.items:
        adjustment = indexed.get(item.id)
        if adjustment is None:
            continue
        result = validate_item_adjustment(
            item,
            adjustment.adjusted_quantity,
            adjustment.adjustment_reason,
            config,
            label=request.item_label(item.id),
        )
        if not result.is_valid:
            logger.info(
                "adjustment_rejected",
                extra={
                    "request_id": request.id,
                    "item_id": item.id,
                    "error_kind": result.kind,
                    "error": result.primary_error,
                },
            )
            return result
    return ValidationResult.success()


def apply_adjustments(
    request: PurchaseRequest,
    adjustments: Iterable[ItemAdjustment],
) -> PurchaseRequest:
    """
    Return ``request`` with validated adjustments written onto its items.

    Setting an item back to its requested quantity clears the adjustment.
    Items without an entry keep whatever they had.  Totals are not
    recomputed here.
    """
    indexed = index_by_item(request, adjustments, "adjustments")
    items = []
    for item in request.items:
        adjustment = indexed.get(item.id)
        if adjustment is None:
            items.append(item)
        elif adjustment.adjusted_quantity == item.requested_quantity:
            items.append(replace(item, adjusted_quantity=None, adjustment_reason=None))
        else:
            items.append(
                replace(
                    item,
                    adjusted_quantity=adjustment.adjusted_quantity,
                    adjustment_reason=sanitize_text(adjustment.adjustment_reason),
                )
            )
    return replace(request, items=tuple(items))


def clear_adjustments(request: PurchaseRequest) -> PurchaseRequest:
    """Drop every adjustment and reconciliation quantity from the items."""
    items = tuple(
        replace(
            item,
            adjusted_quantity=None,
            adjustment_reason=None,
            refund_quantity=None,
            replace_quantity=None,
            no_action_quantity=None,
        )
        for item in request.items
    )
    return replace(request, items=items)
