"""
Plain-data payloads for purchase requests.

Converts between the frozen value objects and the dict shape the
surrounding application exchanges (``purchase_request_code``,
``items[].purchase_request_item_id``, ...).  The older alias keys the
inventory feed still sends (``purchase_request_item_code``,
``purchase_request_status``, ``new_item``, ``new_unit_price``, nested
``item`` / ``supplier_item``) are accepted on input.

Money and dates go out as strings so nothing is lost to float rounding.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from procurement_kernel.domain.money import to_decimal
from procurement_kernel.exceptions import PayloadFormatError
from procurement_modules.purchase_request.audit import ApprovalAuditEntry
from procurement_modules.purchase_request.models import (
    ItemAdjustment,
    ItemDistribution,
    PurchaseRequest,
    PurchaseRequestItem,
    RequestStatus,
)
from procurement_modules.purchase_request.state_machine import TransitionOutcome
from procurement_modules.purchase_request.totals import compute_total

_MISSING = object()


# -----------------------------------------------------------------------------
# Field parsing
# -----------------------------------------------------------------------------


def _first(payload: Mapping[str, Any], *keys: str, default: Any = _MISSING) -> Any:
    for key in keys:
        value = payload.get(key)
        if value is not None:
            return value
    if default is _MISSING:
        raise PayloadFormatError(keys[0], "is required")
    return default


def _mapping(value: Any, name: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise PayloadFormatError(name, f"expected an object, got {type(value).__name__}")
    return value


def _text(value: Any, name: str) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise PayloadFormatError(name, f"expected a string, got {type(value).__name__}")
    return value


def _decimal(value: Any, name: str) -> Decimal:
    try:
        return to_decimal(value)
    except ValueError as exc:
        raise PayloadFormatError(name, f"not a number: {value!r}") from exc


def _quantity(value: Any, name: str) -> Any:
    """Parse a quantity, keeping non-integral numbers for the validators to reject."""
    if value is None:
        return None
    if isinstance(value, bool):
        raise PayloadFormatError(name, f"not a number: {value!r}")
    if isinstance(value, int):
        return value
    number = _decimal(value, name)
    if number == number.to_integral_value():
        return int(number)
    return number


def _date(value: Any, name: str) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError as exc:
        raise PayloadFormatError(name, f"not an ISO date: {value!r}") from exc


def _datetime(value: Any, name: str) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError as exc:
        raise PayloadFormatError(name, f"not an ISO timestamp: {value!r}") from exc


def _status(value: Any) -> RequestStatus:
    if isinstance(value, RequestStatus):
        return value
    try:
        return RequestStatus(str(value).strip().upper())
    except ValueError as exc:
        raise PayloadFormatError("status", f"unknown status {value!r}") from exc


def _iso(value: date | datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _str_or_none(value: Decimal | int | None) -> str | None:
    return str(value) if value is not None else None


# -----------------------------------------------------------------------------
# Inbound
# -----------------------------------------------------------------------------


def item_from_payload(payload: Mapping[str, Any]) -> PurchaseRequestItem:
    payload = _mapping(payload, "items[]")
    item_id = _first(payload, "purchase_request_item_id", "purchase_request_item_code")
    nested_item = payload.get("item") or {}
    nested_supplier_item = payload.get("supplier_item") or {}

    description = _first(payload, "item_name", "new_item", "new_item_name", default=None)
    if description is None and isinstance(nested_item, Mapping):
        description = nested_item.get("item_name")

    unit_cost = _first(payload, "unit_cost", "new_unit_price", "new_unit_cost", default=None)
    if unit_cost is None and isinstance(nested_supplier_item, Mapping):
        unit_cost = nested_supplier_item.get("unit_price", nested_supplier_item.get("unit_cost"))
    if unit_cost is None:
        raise PayloadFormatError("unit_cost", "is required")

    requested = _quantity(_first(payload, "quantity"), "quantity")
    if not isinstance(requested, int):
        raise PayloadFormatError("quantity", f"must be a whole number, got {requested!r}")

    return PurchaseRequestItem(
        id=str(item_id),
        requested_quantity=requested,
        unit_cost=_decimal(unit_cost, "unit_cost"),
        description=_text(description, "item_name") or "",
        adjusted_quantity=_quantity(payload.get("adjusted_quantity"), "adjusted_quantity"),
        adjustment_reason=_text(payload.get("adjustment_reason"), "adjustment_reason"),
        refund_quantity=_quantity(payload.get("refund_quantity"), "refund_quantity"),
        replace_quantity=_quantity(payload.get("replace_quantity"), "replace_quantity"),
        no_action_quantity=_quantity(payload.get("no_action_quantity"), "no_action_quantity"),
    )


def request_from_payload(payload: Mapping[str, Any]) -> PurchaseRequest:
    """Build a ``PurchaseRequest`` from an application payload.

    A missing ``total_amount`` is computed from the items.

    Raises:
        PayloadFormatError: missing keys or unparseable values.
        MalformedInputError: values parse but violate model invariants.
    """
    payload = _mapping(payload, "purchase_request")
    raw_items = payload.get("items") or ()
    if not isinstance(raw_items, (list, tuple)):
        raise PayloadFormatError("items", "expected a list")
    items = tuple(item_from_payload(raw) for raw in raw_items)

    raw_total = payload.get("total_amount")
    total = _decimal(raw_total, "total_amount") if raw_total is not None else compute_total(items)

    version = _quantity(payload.get("version", 0), "version")
    if not isinstance(version, int):
        raise PayloadFormatError("version", f"must be a whole number, got {version!r}")

    return PurchaseRequest(
        id=str(_first(payload, "purchase_request_code", "id")),
        items=items,
        status=_status(_first(payload, "status", "purchase_request_status", default="PENDING")),
        total_amount=total,
        currency=_text(payload.get("currency"), "currency") or "PHP",
        finance_remarks=_text(payload.get("finance_remarks"), "finance_remarks"),
        approved_by=_text(payload.get("approved_by"), "approved_by"),
        approved_date=_date(payload.get("approved_date"), "approved_date"),
        rejected_by=_text(payload.get("rejected_by"), "rejected_by"),
        rejected_date=_date(payload.get("rejected_date"), "rejected_date"),
        rejection_reason=_text(payload.get("rejection_reason"), "rejection_reason"),
        updated_by=_text(payload.get("updated_by"), "updated_by"),
        updated_at=_datetime(payload.get("updated_at"), "updated_at"),
        version=version,
    )


def adjustments_from_payload(entries: Iterable[Mapping[str, Any]]) -> tuple[ItemAdjustment, ...]:
    adjustments = []
    for raw in entries:
        raw = _mapping(raw, "adjustments[]")
        adjustments.append(
            ItemAdjustment(
                item_id=str(_first(raw, "purchase_request_item_id", "purchase_request_item_code", "item_id")),
                adjusted_quantity=_quantity(_first(raw, "adjusted_quantity"), "adjusted_quantity"),
                adjustment_reason=_text(raw.get("adjustment_reason"), "adjustment_reason"),
            )
        )
    return tuple(adjustments)


def distributions_from_payload(entries: Iterable[Mapping[str, Any]]) -> tuple[ItemDistribution, ...]:
    distributions = []
    for raw in entries:
        raw = _mapping(raw, "distributions[]")
        distributions.append(
            ItemDistribution(
                item_id=str(_first(raw, "purchase_request_item_id", "purchase_request_item_code", "item_id")),
                refund_quantity=_quantity(raw.get("refund_quantity", 0), "refund_quantity"),
                replace_quantity=_quantity(raw.get("replace_quantity", 0), "replace_quantity"),
                no_action_quantity=_quantity(raw.get("no_action_quantity", 0), "no_action_quantity"),
            )
        )
    return tuple(distributions)


# -----------------------------------------------------------------------------
# Outbound
# -----------------------------------------------------------------------------


def item_to_payload(item: PurchaseRequestItem) -> dict[str, Any]:
    return {
        "purchase_request_item_id": item.id,
        "item_name": item.description,
        "quantity": item.requested_quantity,
        "unit_cost": str(item.unit_cost),
        "total_amount": str(item.line_total),
        "adjusted_quantity": item.adjusted_quantity,
        "adjustment_reason": item.adjustment_reason,
        "refund_quantity": item.refund_quantity,
        "replace_quantity": item.replace_quantity,
        "no_action_quantity": item.no_action_quantity,
    }


def request_to_payload(request: PurchaseRequest) -> dict[str, Any]:
    return {
        "purchase_request_code": request.id,
        "status": request.status.value,
        "total_amount": str(request.total_amount),
        "currency": request.currency,
        "finance_remarks": request.finance_remarks,
        "approved_by": request.approved_by,
        "approved_date": _iso(request.approved_date),
        "rejected_by": request.rejected_by,
        "rejected_date": _iso(request.rejected_date),
        "rejection_reason": request.rejection_reason,
        "updated_by": request.updated_by,
        "updated_at": _iso(request.updated_at),
        "version": request.version,
        "items": [item_to_payload(item) for item in request.items],
    }


def audit_entry_to_payload(entry: ApprovalAuditEntry) -> dict[str, Any]:
    return {
        "id": entry.entry_id,
        "request_id": entry.request_id,
        "action": entry.action.value,
        "performed_by": entry.performed_by,
        "performed_at": _iso(entry.performed_at),
        "old_status": entry.old_status.value,
        "new_status": entry.new_status.value,
        "comments": entry.comments,
        "changes": [
            {"field": c.field, "old_value": c.old_value, "new_value": c.new_value}
            for c in entry.changes
        ],
    }


def outcome_to_payload(outcome: TransitionOutcome) -> dict[str, Any]:
    return {
        "success": outcome.is_success,
        "action": outcome.action.value,
        "from_status": outcome.from_status.value,
        "status": outcome.status.value,
        "error_kind": outcome.kind.value if outcome.kind is not None else None,
        "errors": list(outcome.errors),
        "warnings": list(outcome.warnings),
        "total_refund": _str_or_none(outcome.total_refund),
        "total_replace": _str_or_none(outcome.total_replace),
        "is_no_op_close": outcome.is_no_op_close,
        "purchase_request": request_to_payload(outcome.request),
        "audit_entry": (
            audit_entry_to_payload(outcome.audit_entry)
            if outcome.audit_entry is not None
            else None
        ),
    }
