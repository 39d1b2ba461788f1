"""
Purchase Request Domain Models.

The nouns of purchase-request approval: requests, their items, and the
per-item adjustment and distribution instructions finance submits.
All values are frozen; the state machine produces new values with
``dataclasses.replace`` rather than mutating.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable, TypeVar

from procurement_kernel.domain.validation import is_whole_number, sanitize_text
from procurement_kernel.exceptions import (
    DuplicateItemError,
    MalformedInputError,
    UnknownItemError,
)
from procurement_kernel.logging_config import get_logger

logger = get_logger("modules.purchase_request.models")


class RequestStatus(str, Enum):
    """Purchase request lifecycle states."""
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    ADJUSTED = "ADJUSTED"  # approved with quantity changes
    REJECTED = "REJECTED"
    CLOSED = "CLOSED"  # refunds/replacements reconciled


class ApprovalAction(str, Enum):
    """Actions finance can take on a purchase request."""
    APPROVE = "approve"
    REJECT = "reject"
    EDIT = "edit"
    RECONCILE = "reconcile"
    ROLLBACK = "rollback"


class ApprovalErrorKind(str, Enum):
    """Classification of a failed validation or transition."""
    INVALID_TRANSITION = "INVALID_TRANSITION"
    INVALID_QUANTITY = "INVALID_QUANTITY"
    MISSING_ADJUSTMENT_REASON = "MISSING_ADJUSTMENT_REASON"
    INVALID_ADJUSTMENT_REASON = "INVALID_ADJUSTMENT_REASON"
    RECONCILIATION_MISMATCH = "RECONCILIATION_MISMATCH"
    INVALID_REJECTION_REASON = "INVALID_REJECTION_REASON"
    INVALID_FINANCE_REMARKS = "INVALID_FINANCE_REMARKS"
    STALE_STATE = "STALE_STATE"
    TOTAL_MISMATCH = "TOTAL_MISMATCH"  # stored total disagrees with items


def _check_quantity(item_id: str, name: str, value: Any, minimum: int) -> None:
    if value is None:
        return
    if not is_whole_number(value) or value < minimum:
        logger.warning(
            "purchase_request_item_invalid_quantity",
            extra={"item_id": item_id, "field": name, "value": repr(value)},
        )
        raise MalformedInputError(
            f"Item {item_id!r}: {name} must be a whole number >= {minimum}, got {value!r}"
        )


@dataclass(frozen=True)
class PurchaseRequestItem:
    """A line on a purchase request.

    ``requested_quantity`` and ``unit_cost`` never change after creation.
    ``adjusted_quantity`` is set only when approval changed the quantity,
    and always together with a non-blank ``adjustment_reason``;
    the refund/replace/no-action quantities only by reconciliation.
    """
    id: str
    requested_quantity: int
    unit_cost: Decimal
    description: str = ""
    adjusted_quantity: int | None = None
    adjustment_reason: str | None = None
    refund_quantity: int | None = None
    replace_quantity: int | None = None
    no_action_quantity: int | None = None

    def __post_init__(self):
        if not isinstance(self.id, str) or not self.id:
            raise MalformedInputError(f"Item id must be a non-empty string, got {self.id!r}")
        if self.requested_quantity is None:
            raise MalformedInputError(f"Item {self.id!r}: requested_quantity is required")
        _check_quantity(self.id, "requested_quantity", self.requested_quantity, 1)
        if not isinstance(self.unit_cost, Decimal) or not self.unit_cost.is_finite() or self.unit_cost < 0:
            logger.warning(
                "purchase_request_item_invalid_unit_cost",
                extra={"item_id": self.id, "unit_cost": repr(self.unit_cost)},
            )
            raise MalformedInputError(
                f"Item {self.id!r}: unit_cost must be a non-negative Decimal, got {self.unit_cost!r}"
            )
        _check_quantity(self.id, "adjusted_quantity", self.adjusted_quantity, 0)
        _check_quantity(self.id, "refund_quantity", self.refund_quantity, 0)
        _check_quantity(self.id, "replace_quantity", self.replace_quantity, 0)
        _check_quantity(self.id, "no_action_quantity", self.no_action_quantity, 0)

        if self.adjustment_reason is not None and not isinstance(self.adjustment_reason, str):
            raise MalformedInputError(
                f"Item {self.id!r}: adjustment_reason must be a string, got {type(self.adjustment_reason).__name__}"
            )
        if self.adjusted_quantity is not None and not sanitize_text(self.adjustment_reason):
            logger.warning(
                "purchase_request_item_missing_adjustment_reason",
                extra={"item_id": self.id, "adjusted_quantity": self.adjusted_quantity},
            )
            raise MalformedInputError(
                f"Item {self.id!r}: adjusted_quantity {self.adjusted_quantity} needs an adjustment_reason"
            )

    @property
    def base_quantity(self) -> int:
        """Quantity in force: the adjusted quantity when set, else the requested one."""
        if self.adjusted_quantity is not None:
            return self.adjusted_quantity
        return self.requested_quantity

    @property
    def is_adjusted(self) -> bool:
        return self.adjusted_quantity is not None

    @property
    def is_reconciled(self) -> bool:
        return None not in (
            self.refund_quantity,
            self.replace_quantity,
            self.no_action_quantity,
        )

    @property
    def line_total(self) -> Decimal:
        return self.base_quantity * self.unit_cost


@dataclass(frozen=True)
class PurchaseRequest:
    """A purchase request under finance review."""
    id: str  # purchase request code, e.g. PR-2024-001
    items: tuple[PurchaseRequestItem, ...] = field(default_factory=tuple)
    status: RequestStatus = RequestStatus.PENDING
    total_amount: Decimal = Decimal("0")
    currency: str = "PHP"
    finance_remarks: str | None = None
    approved_by: str | None = None
    approved_date: date | None = None
    rejected_by: str | None = None
    rejected_date: date | None = None
    rejection_reason: str | None = None
    updated_by: str | None = None
    updated_at: datetime | None = None
    version: int = 0

    def __post_init__(self):
        if not isinstance(self.id, str) or not self.id:
            raise MalformedInputError(f"Purchase request id must be a non-empty string, got {self.id!r}")
        if not isinstance(self.items, tuple):
            raise MalformedInputError(
                f"Purchase request {self.id}: items must be a tuple, got {type(self.items).__name__}"
            )
        for item in self.items:
            if not isinstance(item, PurchaseRequestItem):
                raise MalformedInputError(
                    f"Purchase request {self.id}: expected PurchaseRequestItem, got {type(item).__name__}"
                )
        if not isinstance(self.status, RequestStatus):
            raise MalformedInputError(
                f"Purchase request {self.id}: status must be a RequestStatus, got {self.status!r}"
            )
        if not isinstance(self.total_amount, Decimal):
            raise MalformedInputError(
                f"Purchase request {self.id}: total_amount must be Decimal, "
                f"not {type(self.total_amount).__name__}"
            )
        if not is_whole_number(self.version) or self.version < 0:
            raise MalformedInputError(
                f"Purchase request {self.id}: version must be a non-negative integer, got {self.version!r}"
            )

        seen: set[str] = set()
        for item in self.items:
            if item.id in seen:
                logger.warning(
                    "purchase_request_duplicate_item",
                    extra={"request_id": self.id, "item_id": item.id},
                )
                raise DuplicateItemError(item.id, f"purchase request {self.id}")
            seen.add(item.id)

    def item(self, item_id: str) -> PurchaseRequestItem:
        """Look up an item by id."""
        for item in self.items:
            if item.id == item_id:
                return item
        raise UnknownItemError(self.id, item_id)

    def item_label(self, item_id: str) -> str:
        """Display label used in error messages, e.g. ``Item #2 (Bond paper)``."""
        for position, item in enumerate(self.items, start=1):
            if item.id == item_id:
                if item.description:
                    return f"Item #{position} ({item.description})"
                return f"Item #{position}"
        raise UnknownItemError(self.id, item_id)

    @property
    def has_adjustments(self) -> bool:
        return any(item.is_adjusted for item in self.items)


@dataclass(frozen=True)
class ItemAdjustment:
    """Finance's proposed quantity for one item at approve or edit time."""
    item_id: str
    adjusted_quantity: Any
    adjustment_reason: str | None = None


@dataclass(frozen=True)
class ItemDistribution:
    """How an item's quantity splits into refund, replacement and no action."""
    item_id: str
    refund_quantity: Any
    replace_quantity: Any
    no_action_quantity: Any

    @property
    def quantities(self) -> tuple[tuple[str, Any], ...]:
        return (
            ("refund", self.refund_quantity),
            ("replace", self.replace_quantity),
            ("no action", self.no_action_quantity),
        )


_Entry = TypeVar("_Entry", ItemAdjustment, ItemDistribution)


def index_by_item(
    request: PurchaseRequest,
    entries: Iterable[_Entry],
    where: str,
) -> dict[str, _Entry]:
    """
    Key adjustments or distributions by item id.

    Raises:
        DuplicateItemError: an item id appears twice.
        UnknownItemError: an entry names an item not on the request.
        MalformedInputError: an entry is not of the expected type.
    """
    indexed: dict[str, _Entry] = {}
    for entry in entries:
        if not isinstance(entry, (ItemAdjustment, ItemDistribution)):
            raise MalformedInputError(
                f"Expected ItemAdjustment or ItemDistribution in {where}, "
                f"got {type(entry).__name__}"
            )
        if entry.item_id in indexed:
            raise DuplicateItemError(entry.item_id, where)
        request.item(entry.item_id)
        indexed[entry.item_id] = entry
    return indexed
