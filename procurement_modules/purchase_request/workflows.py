"""
Purchase Request Workflow.

The legal status transitions of a purchase request, declared as data.
The state machine resolves every action through this table, so what
is allowed from a status can be read straight off it.
"""

from procurement_kernel.domain.workflow import Guard, Transition, Workflow
from procurement_kernel.logging_config import get_logger
from procurement_modules.purchase_request.models import (
    ApprovalAction,
    RequestStatus,
)

logger = get_logger("modules.purchase_request.workflows")


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

ADJUSTMENTS_VALID = Guard(
    name="adjustments_valid",
    description="Every item adjustment passes quantity and reason checks and finance remarks fit their length limits",
)

REJECTION_REASON_VALID = Guard(
    name="rejection_reason_valid",
    description="Rejection reason is present and within length limits",
)

DISTRIBUTIONS_RECONCILE = Guard(
    name="distributions_reconcile",
    description="Refund, replace and no-action quantities sum to each item's quantity",
)

GUARDS = (ADJUSTMENTS_VALID, REJECTION_REASON_VALID, DISTRIBUTIONS_RECONCILE)


# -----------------------------------------------------------------------------
# Purchase Request Approval Workflow
# -----------------------------------------------------------------------------

_PENDING = RequestStatus.PENDING.value
_APPROVED = RequestStatus.APPROVED.value
_ADJUSTED = RequestStatus.ADJUSTED.value
_REJECTED = RequestStatus.REJECTED.value
_CLOSED = RequestStatus.CLOSED.value

PURCHASE_REQUEST_WORKFLOW = Workflow(
    name="purchase_request_approval",
    description="Finance review of purchase requests",
    initial_state=_PENDING,
    states=tuple(status.value for status in RequestStatus),
    transitions=(
        Transition(_PENDING, _APPROVED, action=ApprovalAction.APPROVE.value, guard=ADJUSTMENTS_VALID),
        Transition(_PENDING, _ADJUSTED, action=ApprovalAction.APPROVE.value, guard=ADJUSTMENTS_VALID),
        Transition(_PENDING, _REJECTED, action=ApprovalAction.REJECT.value, guard=REJECTION_REASON_VALID),
        Transition(_APPROVED, _APPROVED, action=ApprovalAction.EDIT.value, guard=ADJUSTMENTS_VALID),
        Transition(_ADJUSTED, _ADJUSTED, action=ApprovalAction.EDIT.value, guard=ADJUSTMENTS_VALID),
        Transition(_ADJUSTED, _CLOSED, action=ApprovalAction.RECONCILE.value, guard=DISTRIBUTIONS_RECONCILE),
        Transition(_APPROVED, _PENDING, action=ApprovalAction.ROLLBACK.value),
        Transition(_ADJUSTED, _PENDING, action=ApprovalAction.ROLLBACK.value),
        Transition(_REJECTED, _PENDING, action=ApprovalAction.ROLLBACK.value),
    ),
    terminal_states=(_CLOSED,),
)

logger.info(
    "purchase_request_workflow_registered",
    extra={
        "workflow_name": PURCHASE_REQUEST_WORKFLOW.name,
        "state_count": len(PURCHASE_REQUEST_WORKFLOW.states),
        "transition_count": len(PURCHASE_REQUEST_WORKFLOW.transitions),
        "guards": [guard.name for guard in GUARDS],
    },
)


def allowed_actions(status: RequestStatus) -> tuple[ApprovalAction, ...]:
    """Actions that may be attempted from ``status``, in workflow order."""
    return tuple(
        ApprovalAction(action)
        for action in PURCHASE_REQUEST_WORKFLOW.actions_from(RequestStatus(status).value)
    )
