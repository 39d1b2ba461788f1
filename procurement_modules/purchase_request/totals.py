"""
Request total aggregation.

``total_amount`` is always the sum of item line totals, where a line
total is the quantity in force times the unit cost.  Refunds recorded
at reconciliation are informational and do not reduce the total.
"""

from dataclasses import replace
from decimal import Decimal
from typing import Iterable

from procurement_kernel.domain.validation import ValidationResult
from procurement_modules.purchase_request.models import (
    ApprovalErrorKind,
    PurchaseRequest,
    PurchaseRequestItem,
)

DEFAULT_TOLERANCE = Decimal("0.01")


def compute_total(items: Iterable[PurchaseRequestItem]) -> Decimal:
    """Sum of line totals; ``Decimal("0")`` for no items."""
    return sum((item.line_total for item in items), Decimal("0"))


def recompute_totals(request: PurchaseRequest) -> PurchaseRequest:
    """Return ``request`` with ``total_amount`` recomputed from its items."""
    total = compute_total(request.items)
    if total == request.total_amount:
        return request
    return replace(request, total_amount=total)


def verify_total_amount(
    request: PurchaseRequest,
    tolerance: Decimal = DEFAULT_TOLERANCE,
) -> ValidationResult:
    """Check that the stored total agrees with the items within ``tolerance``."""
    expected = compute_total(request.items)
    difference = abs(request.total_amount - expected)
    if difference > tolerance:
        return ValidationResult.failure(
            ApprovalErrorKind.TOTAL_MISMATCH,
            f"Total amount {request.total_amount} does not match item total "
            f"{expected} (difference {difference})",
        )
    return ValidationResult.success()
