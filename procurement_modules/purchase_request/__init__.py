"""
Purchase Request Approval Module.

Handles finance review of purchase requests:
- Approval, with optional per-item quantity adjustments
- Rejection with a reason
- Editing remarks and quantities after approval
- Refund / replacement reconciliation of adjusted requests
- Rollback to pending

Status flow:
    PENDING -> APPROVED | ADJUSTED | REJECTED
    ADJUSTED -> CLOSED (reconcile)
    APPROVED | ADJUSTED | REJECTED -> PENDING (rollback)
"""

from procurement_modules.purchase_request.adjustments import (
    apply_adjustments,
    validate_adjustments,
    validate_item_adjustment,
)
from procurement_modules.purchase_request.audit import (
    ApprovalAuditEntry,
    FieldChange,
)
from procurement_modules.purchase_request.models import (
    ApprovalAction,
    ApprovalErrorKind,
    ItemAdjustment,
    ItemDistribution,
    PurchaseRequest,
    PurchaseRequestItem,
    RequestStatus,
)
from procurement_modules.purchase_request.reconciliation import (
    ReconciliationResult,
    reconcile_distributions,
)
from procurement_modules.purchase_request.remarks import validate_finance_remarks
from procurement_modules.purchase_request.state_machine import (
    ApprovalStateMachine,
    TransitionOutcome,
)
from procurement_modules.purchase_request.totals import (
    compute_total,
    recompute_totals,
    verify_total_amount,
)
from procurement_modules.purchase_request.workflows import (
    PURCHASE_REQUEST_WORKFLOW,
    allowed_actions,
)

__all__ = [
    "apply_adjustments",
    "validate_adjustments",
    "validate_item_adjustment",
    "ApprovalAuditEntry",
    "FieldChange",
    "ApprovalAction",
    "ApprovalErrorKind",
    "ItemAdjustment",
    "ItemDistribution",
    "PurchaseRequest",
    "PurchaseRequestItem",
    "RequestStatus",
    "ReconciliationResult",
    "reconcile_distributions",
    "validate_finance_remarks",
    "ApprovalStateMachine",
    "TransitionOutcome",
    "compute_total",
    "recompute_totals",
    "verify_total_amount",
    "PURCHASE_REQUEST_WORKFLOW",
    "allowed_actions",
]
