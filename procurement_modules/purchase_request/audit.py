"""
Approval audit trail entries.

Each successful transition is summarized as an ``ApprovalAuditEntry``
listing who did what, when, and which fields changed.  Persisting the
entries is up to the caller.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import uuid4

from procurement_modules.purchase_request.models import (
    ApprovalAction,
    PurchaseRequest,
    RequestStatus,
)

_ITEM_FIELDS = (
    "adjusted_quantity",
    "refund_quantity",
    "replace_quantity",
    "no_action_quantity",
)


@dataclass(frozen=True)
class FieldChange:
    """One field's before and after values, rendered as strings."""
    field: str
    old_value: str | None
    new_value: str | None


@dataclass(frozen=True)
class ApprovalAuditEntry:
    """Immutable record of a successful transition."""
    entry_id: str
    request_id: str
    action: ApprovalAction
    performed_by: str
    performed_at: datetime
    old_status: RequestStatus
    new_status: RequestStatus
    comments: str | None = None
    changes: tuple[FieldChange, ...] = field(default_factory=tuple)


def _render(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, RequestStatus):
        return value.value
    return str(value)


def diff_requests(
    before: PurchaseRequest,
    after: PurchaseRequest,
) -> tuple[FieldChange, ...]:
    """Status, total, remarks and per-item quantity changes between two snapshots."""
    changes: list[FieldChange] = []
    for name in ("status", "total_amount", "finance_remarks"):
        old, new = getattr(before, name), getattr(after, name)
        if old != new:
            changes.append(FieldChange(name, _render(old), _render(new)))

    new_items = {item.id: item for item in after.items}
    for old_item in before.items:
        new_item = new_items.get(old_item.id)
        if new_item is None:
            continue
        for name in _ITEM_FIELDS:
            old, new = getattr(old_item, name), getattr(new_item, name)
            if old != new:
                changes.append(
                    FieldChange(f"items[{old_item.id}].{name}", _render(old), _render(new))
                )
    return tuple(changes)


def build_audit_entry(
    before: PurchaseRequest,
    after: PurchaseRequest,
    action: ApprovalAction,
    actor: str,
    performed_at: datetime,
    comments: str | None = None,
) -> ApprovalAuditEntry:
    return ApprovalAuditEntry(
        entry_id=str(uuid4()),
        request_id=after.id,
        action=action,
        performed_by=actor,
        performed_at=performed_at,
        old_status=before.status,
        new_status=after.status,
        comments=comments or None,
        changes=diff_requests(before, after),
    )
