"""
Refund / replacement reconciliation.

After an adjusted approval, finance decides what happens to every unit
in force on each item: refunded, replaced, or left alone.  The three
quantities must add up exactly to the item's base quantity
(adjusted quantity if set, else requested).  Any mismatch rejects the
whole reconciliation.

Refund and replacement amounts are derived here for display and are
never stored on the request.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from decimal import Decimal

from procurement_kernel.domain.validation import ValidationResult, is_whole_number
from procurement_kernel.logging_config import get_logger
from procurement_modules.purchase_request.models import (
    ApprovalErrorKind,
    ItemDistribution,
    PurchaseRequest,
    PurchaseRequestItem,
    index_by_item,
)

logger = get_logger("modules.purchase_request.reconciliation")

NO_ITEMS_MESSAGE = "No items to process."
NO_OP_CLOSE_WARNING = "No refunds or replacements. All items marked as no action."


@dataclass(frozen=True)
class ItemSettlement:
    """Money consequence of one item's distribution."""
    item_id: str
    refund_amount: Decimal
    replace_amount: Decimal


@dataclass(frozen=True)
class ReconciliationResult:
    """Validation outcome plus the derived refund/replacement amounts.

    Amounts are populated only when ``validation`` passed.
    """
    validation: ValidationResult
    settlements: tuple[ItemSettlement, ...] = field(default_factory=tuple)
    total_refund: Decimal = Decimal("0")
    total_replace: Decimal = Decimal("0")
    is_no_op_close: bool = False
    warnings: tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_valid(self) -> bool:
        return self.validation.is_valid


def _check_item(
    label: str,
    item: PurchaseRequestItem,
    distribution: ItemDistribution | None,
) -> tuple[ApprovalErrorKind, str] | None:
    if distribution is None:
        return (
            ApprovalErrorKind.RECONCILIATION_MISMATCH,
            f"{label}: missing refund/replacement distribution",
        )

    base = item.base_quantity
    for name, value in distribution.quantities:
        if not is_whole_number(value) or not 0 <= value <= base:
            return (
                ApprovalErrorKind.INVALID_QUANTITY,
                f"{label}: {name} quantity must be a whole number between 0 and {base}, got {value!r}",
            )

    total = sum(value for _, value in distribution.quantities)
    if total != base:
        return (
            ApprovalErrorKind.RECONCILIATION_MISMATCH,
            f"{label}: sum must equal {base}, got {total}",
        )
    return None


def reconcile_distributions(
    request: PurchaseRequest,
    distributions: Iterable[ItemDistribution],
) -> ReconciliationResult:
    """
    Validate a full set of distributions against ``request``.

    Every item is checked and every failure reported; ``errors[0]`` is
    the first failing item in request order.

    Raises:
        DuplicateItemError: two distributions for the same item.
        UnknownItemError: a distribution names an item not on the request.
    """
    indexed = index_by_item(request, distributions, "distributions")

    if not request.items:
        return ReconciliationResult(
            validation=ValidationResult.failure(
                ApprovalErrorKind.RECONCILIATION_MISMATCH, NO_ITEMS_MESSAGE
            )
        )

    failures: list[tuple[ApprovalErrorKind, str]] = []
    for item in request.items:
        failure = _check_item(request.item_label(item.id), item, indexed.get(item.id))
        if failure is not None:
            failures.append(failure)

    if failures:
        logger.info(
            "reconciliation_rejected",
            extra={
                "request_id": request.id,
                "error_kind": failures[0][0],
                "error_count": len(failures),
            },
        )
        return ReconciliationResult(
            validation=ValidationResult.failure(
                failures[0][0], *(message for _, message in failures)
            )
        )

    settlements = tuple(
        ItemSettlement(
            item_id=item.id,
            refund_amount=indexed[item.id].refund_quantity * item.unit_cost,
            replace_amount=indexed[item.id].replace_quantity * item.unit_cost,
        )
        for item in request.items
    )
    total_refund = sum((s.refund_amount for s in settlements), Decimal("0"))
    total_replace = sum((s.replace_amount for s in settlements), Decimal("0"))
    is_no_op_close = all(
        indexed[item.id].refund_quantity == 0 and indexed[item.id].replace_quantity == 0
        for item in request.items
    )

    return ReconciliationResult(
        validation=ValidationResult.success(),
        settlements=settlements,
        total_refund=total_refund,
        total_replace=total_replace,
        is_no_op_close=is_no_op_close,
        warnings=(NO_OP_CLOSE_WARNING,) if is_no_op_close else (),
    )


def apply_distributions(
    request: PurchaseRequest,
    distributions: Iterable[ItemDistribution],
) -> PurchaseRequest:
    """Write validated distributions onto every item of ``request``."""
    indexed = index_by_item(request, distributions, "distributions")
    items = tuple(
        replace(
            item,
            refund_quantity=indexed[item.id].refund_quantity,
            replace_quantity=indexed[item.id].replace_quantity,
            no_action_quantity=indexed[item.id].no_action_quantity,
        )
        for item in request.items
    )
    return replace(request, items=items)
