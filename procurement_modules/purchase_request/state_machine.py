"""
procurement_modules.purchase_request.state_machine -- Approval transitions.

Responsibility:
    Executes purchase-request actions (approve, reject, edit, reconcile,
    rollback).  Each call checks the optimistic-concurrency precondition,
    resolves the transition in ``PURCHASE_REQUEST_WORKFLOW``, runs the
    guard's validator, recomputes totals, stamps actor/time metadata and
    returns a new immutable request inside a ``TransitionOutcome``.

    Rule failures come back as unsuccessful outcomes with the input
    request untouched.  Malformed input (wrong types, unknown or
    duplicate item ids) raises from ``procurement_kernel.exceptions``.

Every attempt, successful or not, emits one structured
``purchase_request_transition`` log record.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Any

from procurement_config.schema import ApprovalRulesConfig
from procurement_kernel.domain.clock import Clock, SystemClock
from procurement_kernel.domain.money import format_money
from procurement_kernel.domain.validation import ValidationResult, sanitize_text
from procurement_kernel.domain.workflow import Workflow
from procurement_kernel.exceptions import (
    ApprovalRuleViolation,
    InvalidAdjustmentReasonError,
    InvalidFinanceRemarksError,
    InvalidQuantityError,
    InvalidRejectionReasonError,
    InvalidTransitionError,
    MalformedInputError,
    MissingAdjustmentReasonError,
    ReconciliationMismatchError,
    StaleStateError,
)
from procurement_kernel.logging_config import LogContext, get_logger
from procurement_modules.purchase_request.adjustments import (
    apply_adjustments,
    clear_adjustments,
    validate_adjustments,
)
from procurement_modules.purchase_request.audit import (
    ApprovalAuditEntry,
    build_audit_entry,
)
from procurement_modules.purchase_request.models import (
    ApprovalAction,
    ApprovalErrorKind,
    ItemAdjustment,
    ItemDistribution,
    PurchaseRequest,
    RequestStatus,
)
from procurement_modules.purchase_request.reconciliation import (
    NO_OP_CLOSE_WARNING,
    apply_distributions,
    reconcile_distributions,
)
from procurement_modules.purchase_request.remarks import validate_finance_remarks
from procurement_modules.purchase_request.rejection import validate_rejection_reason
from procurement_modules.purchase_request.totals import (
    recompute_totals,
    verify_total_amount,
)
from procurement_modules.purchase_request.workflows import PURCHASE_REQUEST_WORKFLOW

logger = get_logger("modules.purchase_request.state_machine")

# Trace message and outcome codes for structured logging
TRACE_TYPE_PURCHASE_REQUEST_TRANSITION = "PURCHASE_REQUEST_TRANSITION"
OUTCOME_SUCCESS = "success"
OUTCOME_STALE_STATE = "stale_state"
OUTCOME_NO_TRANSITION = "no_transition"
OUTCOME_GUARD_FAILED = "guard_failed"

_VIOLATIONS: dict[ApprovalErrorKind, type[ApprovalRuleViolation]] = {
    ApprovalErrorKind.INVALID_TRANSITION: InvalidTransitionError,
    ApprovalErrorKind.INVALID_QUANTITY: InvalidQuantityError,
    ApprovalErrorKind.MISSING_ADJUSTMENT_REASON: MissingAdjustmentReasonError,
    ApprovalErrorKind.INVALID_ADJUSTMENT_REASON: InvalidAdjustmentReasonError,
    ApprovalErrorKind.RECONCILIATION_MISMATCH: ReconciliationMismatchError,
    ApprovalErrorKind.INVALID_REJECTION_REASON: InvalidRejectionReasonError,
    ApprovalErrorKind.INVALID_FINANCE_REMARKS: InvalidFinanceRemarksError,
    ApprovalErrorKind.STALE_STATE: StaleStateError,
}


@dataclass(frozen=True)
class TransitionOutcome:
    """Result of one state machine call.

    On success ``request`` is the new value; on failure it is the input,
    unchanged, and ``validation`` says why.
    """

    is_success: bool
    request: PurchaseRequest
    validation: ValidationResult
    action: ApprovalAction
    from_status: RequestStatus
    audit_entry: ApprovalAuditEntry | None = None
    total_refund: Decimal = Decimal("0")
    total_replace: Decimal = Decimal("0")
    is_no_op_close: bool = False
    warnings: tuple[str, ...] = field(default_factory=tuple)

    @property
    def status(self) -> RequestStatus:
        return self.request.status

    @property
    def kind(self) -> ApprovalErrorKind | None:
        return self.validation.kind

    @property
    def errors(self) -> tuple[str, ...]:
        return self.validation.errors

    def raise_for_failure(self) -> None:
        """Raise the typed ``ApprovalRuleViolation`` for a failed outcome."""
        if self.is_success:
            return
        exc_type = _VIOLATIONS.get(self.validation.kind, ApprovalRuleViolation)
        raise exc_type(
            self.request.id,
            self.action.value,
            self.from_status.value,
            self.validation.errors,
        )


@dataclass(frozen=True)
class _Applied:
    """What a guard-passing step produced, before metadata stamping."""

    request: PurchaseRequest
    comments: str | None = None
    total_refund: Decimal = Decimal("0")
    total_replace: Decimal = Decimal("0")
    is_no_op_close: bool = False
    warnings: tuple[str, ...] = ()


_Step = Callable[[PurchaseRequest], "_Applied | ValidationResult"]


def _emit_transition_trace(
    workflow_name: str,
    action: ApprovalAction,
    request: PurchaseRequest,
    outcome: str,
    reason: str,
    duration_ms: float,
    ts: str,
    to_status: RequestStatus | None = None,
    error_kind: ApprovalErrorKind | None = None,
    guard: str | None = None,
    outcome_sink: Callable[[dict], None] | None = None,
) -> None:
    """Emit a structured transition record for traceability and lookback."""
    record: dict[str, Any] = {
        "trace_type": TRACE_TYPE_PURCHASE_REQUEST_TRANSITION,
        "ts": ts,
        "workflow": workflow_name,
        "action": action.value,
        "purchase_request_id": request.id,
        "from_status": request.status.value,
        "version": request.version,
        "outcome": outcome,
        "reason": reason,
        "duration_ms": round(duration_ms, 3),
    }
    if to_status is not None:
        record["to_status"] = to_status.value
    if error_kind is not None:
        record["error_kind"] = error_kind.value
    if guard is not None:
        record["guard"] = guard
    record.update(LogContext.get_all())
    if outcome == OUTCOME_SUCCESS:
        logger.info("purchase_request_transition", extra=record)
    else:
        logger.warning("purchase_request_transition", extra=record)
    if outcome_sink is not None:
        outcome_sink({**record, "message": "purchase_request_transition"})


def _normalize_actor(actor: Any) -> str:
    if not isinstance(actor, str) or not actor.strip():
        raise MalformedInputError(f"actor must be a non-empty string, got {actor!r}")
    return actor.strip()


def _optional_text(value: Any, name: str) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise MalformedInputError(f"{name} must be a string, got {type(value).__name__}")
    return sanitize_text(value) or None


class ApprovalStateMachine:
    """Runs purchase-request actions against the approval workflow.

    Stateless apart from its collaborators; one instance can serve any
    number of requests.
    """

    def __init__(
        self,
        config: ApprovalRulesConfig | None = None,
        clock: Clock | None = None,
        workflow: Workflow = PURCHASE_REQUEST_WORKFLOW,
        outcome_sink: Callable[[dict], None] | None = None,
    ) -> None:
        self._config = config or ApprovalRulesConfig.with_defaults()
        self._clock = clock or SystemClock()
        self._workflow = workflow
        self._outcome_sink = outcome_sink

    @property
    def config(self) -> ApprovalRulesConfig:
        return self._config

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def approve(
        self,
        request: PurchaseRequest,
        adjustments: Iterable[ItemAdjustment],
        actor: str,
        *,
        finance_remarks: str | None = None,
        expected_status: RequestStatus | str | None = None,
        expected_version: int | None = None,
    ) -> TransitionOutcome:
        """Approve a pending request, optionally lowering item quantities.

        Lands on ADJUSTED when any item ends up with a quantity different
        from the one requested, otherwise on APPROVED.
        """
        adjustments = tuple(adjustments)
        remarks = _optional_text(finance_remarks, "finance_remarks")
        actor = _normalize_actor(actor)

        def step(current: PurchaseRequest) -> _Applied | ValidationResult:
            result = validate_adjustments(current, adjustments, self._config)
            if not result.is_valid:
                return result
            result = validate_finance_remarks(remarks, self._config)
            if not result.is_valid:
                return result
            updated = apply_adjustments(current, adjustments)
            status = RequestStatus.ADJUSTED if updated.has_adjustments else RequestStatus.APPROVED
            updated = replace(
                updated,
                status=status,
                approved_by=actor,
                approved_date=self._clock.today(),
                finance_remarks=remarks if remarks is not None else current.finance_remarks,
            )
            return _Applied(updated, comments=remarks)

        return self._execute(
            request, ApprovalAction.APPROVE, actor, expected_status, expected_version, step
        )

    def reject(
        self,
        request: PurchaseRequest,
        reason: str | None,
        actor: str,
        *,
        expected_status: RequestStatus | str | None = None,
        expected_version: int | None = None,
    ) -> TransitionOutcome:
        """Reject a pending request with a reason."""
        text = _optional_text(reason, "reason")
        actor = _normalize_actor(actor)

        def step(current: PurchaseRequest) -> _Applied | ValidationResult:
            result = validate_rejection_reason(text, self._config)
            if not result.is_valid:
                return result
            updated = replace(
                current,
                status=RequestStatus.REJECTED,
                rejected_by=actor,
                rejected_date=self._clock.today(),
                rejection_reason=text,
                approved_by=None,
                approved_date=None,
            )
            return _Applied(updated, comments=text)

        return self._execute(
            request, ApprovalAction.REJECT, actor, expected_status, expected_version, step
        )

    def edit(
        self,
        request: PurchaseRequest,
        adjustments: Iterable[ItemAdjustment],
        actor: str,
        *,
        finance_remarks: str | None = None,
        expected_status: RequestStatus | str | None = None,
        expected_version: int | None = None,
    ) -> TransitionOutcome:
        """Change quantities or remarks on an approved or adjusted request.

        The status is kept.  Items without an adjustment entry are left
        as they are.
        """
        adjustments = tuple(adjustments)
        remarks = _optional_text(finance_remarks, "finance_remarks")
        actor = _normalize_actor(actor)

        def step(current: PurchaseRequest) -> _Applied | ValidationResult:
            result = validate_adjustments(current, adjustments, self._config)
            if not result.is_valid:
                return result
            result = validate_finance_remarks(remarks, self._config)
            if not result.is_valid:
                return result
            updated = apply_adjustments(current, adjustments)
            if remarks is not None:
                updated = replace(updated, finance_remarks=remarks)
            return _Applied(updated, comments=remarks)

        return self._execute(
            request, ApprovalAction.EDIT, actor, expected_status, expected_version, step
        )

    def reconcile(
        self,
        request: PurchaseRequest,
        distributions: Iterable[ItemDistribution],
        actor: str,
        *,
        expected_status: RequestStatus | str | None = None,
        expected_version: int | None = None,
    ) -> TransitionOutcome:
        """Close an adjusted request by splitting each item into refund/replace/no action."""
        distributions = tuple(distributions)
        actor = _normalize_actor(actor)

        def step(current: PurchaseRequest) -> _Applied | ValidationResult:
            result = reconcile_distributions(current, distributions)
            if not result.is_valid:
                return result.validation
            closed = replace(
                apply_distributions(current, distributions),
                status=RequestStatus.CLOSED,
            )
            if result.is_no_op_close:
                comments = NO_OP_CLOSE_WARNING
            else:
                symbol = self._config.currency_symbol
                comments = (
                    f"Total refund {format_money(result.total_refund, symbol)}, "
                    f"total replacement {format_money(result.total_replace, symbol)}"
                )
            return _Applied(
                closed,
                comments=comments,
                total_refund=result.total_refund,
                total_replace=result.total_replace,
                is_no_op_close=result.is_no_op_close,
                warnings=result.warnings,
            )

        return self._execute(
            request, ApprovalAction.RECONCILE, actor, expected_status, expected_version, step
        )

    def rollback(
        self,
        request: PurchaseRequest,
        actor: str,
        *,
        comments: str | None = None,
        expected_status: RequestStatus | str | None = None,
        expected_version: int | None = None,
    ) -> TransitionOutcome:
        """Return an approved, adjusted or rejected request to PENDING.

        Approval and rejection metadata and every item adjustment are
        cleared, so the total goes back to the requested total.
        """
        note = _optional_text(comments, "comments")
        actor = _normalize_actor(actor)

        def step(current: PurchaseRequest) -> _Applied | ValidationResult:
            updated = replace(
                clear_adjustments(current),
                status=RequestStatus.PENDING,
                approved_by=None,
                approved_date=None,
                rejected_by=None,
                rejected_date=None,
                rejection_reason=None,
            )
            return _Applied(updated, comments=note)

        return self._execute(
            request, ApprovalAction.ROLLBACK, actor, expected_status, expected_version, step
        )

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def _execute(
        self,
        request: PurchaseRequest,
        action: ApprovalAction,
        actor: str,
        expected_status: RequestStatus | str | None,
        expected_version: int | None,
        step: _Step,
    ) -> TransitionOutcome:
        t0 = time.monotonic()
        if not isinstance(request, PurchaseRequest):
            raise MalformedInputError(
                f"Expected PurchaseRequest, got {type(request).__name__}"
            )

        with LogContext.bind(request_id=request.id, actor_id=actor):
            # 1. Optimistic concurrency precondition
            stale = self._check_freshness(request, expected_status, expected_version)
            if stale is not None:
                return self._fail(request, action, OUTCOME_STALE_STATE, stale, t0)

            # 2. Transition table
            candidate = self._workflow.find_transition(request.status.value, action.value)
            if candidate is None:
                return self._fail(
                    request,
                    action,
                    OUTCOME_NO_TRANSITION,
                    self._invalid_transition(request, action),
                    t0,
                )

            self._warn_if_out_of_sync(request)

            # 3. Guard
            applied = step(request)
            if isinstance(applied, ValidationResult):
                guard = candidate.guard.name if candidate.guard else None
                return self._fail(request, action, OUTCOME_GUARD_FAILED, applied, t0, guard=guard)

            # 4. Resolve the exact edge now that the target status is known
            transition = self._workflow.find_transition(
                request.status.value, action.value, applied.request.status.value
            )
            if transition is None:
                return self._fail(
                    request,
                    action,
                    OUTCOME_NO_TRANSITION,
                    self._invalid_transition(request, action),
                    t0,
                )

            # 5. Recompute, stamp and audit
            now = self._clock.now()
            updated = replace(
                recompute_totals(applied.request),
                updated_by=actor,
                updated_at=now,
                version=request.version + 1,
            )
            entry = build_audit_entry(
                request, updated, action, actor, now, comments=applied.comments
            )
            outcome = TransitionOutcome(
                is_success=True,
                request=updated,
                validation=ValidationResult.success(),
                action=action,
                from_status=request.status,
                audit_entry=entry,
                total_refund=applied.total_refund,
                total_replace=applied.total_replace,
                is_no_op_close=applied.is_no_op_close,
                warnings=applied.warnings,
            )
            _emit_transition_trace(
                workflow_name=self._workflow.name,
                action=action,
                request=request,
                outcome=OUTCOME_SUCCESS,
                reason=f"{request.status.value} -> {updated.status.value}",
                duration_ms=(time.monotonic() - t0) * 1000,
                ts=now.isoformat(),
                to_status=updated.status,
                guard=transition.guard.name if transition.guard else None,
                outcome_sink=self._outcome_sink,
            )
            return outcome

    def _fail(
        self,
        request: PurchaseRequest,
        action: ApprovalAction,
        outcome_code: str,
        result: ValidationResult,
        t0: float,
        guard: str | None = None,
    ) -> TransitionOutcome:
        _emit_transition_trace(
            workflow_name=self._workflow.name,
            action=action,
            request=request,
            outcome=outcome_code,
            reason=result.primary_error or "",
            duration_ms=(time.monotonic() - t0) * 1000,
            ts=self._clock.now().isoformat(),
            error_kind=result.kind,
            guard=guard,
            outcome_sink=self._outcome_sink,
        )
        return TransitionOutcome(
            is_success=False,
            request=request,
            validation=result,
            action=action,
            from_status=request.status,
        )

    def _check_freshness(
        self,
        request: PurchaseRequest,
        expected_status: RequestStatus | str | None,
        expected_version: int | None,
    ) -> ValidationResult | None:
        if expected_status is not None:
            try:
                expected = RequestStatus(expected_status)
            except ValueError as exc:
                raise MalformedInputError(
                    f"Unknown expected_status {expected_status!r}"
                ) from exc
            if request.status is not expected:
                return ValidationResult.failure(
                    ApprovalErrorKind.STALE_STATE,
                    f"Purchase request {request.id} is {request.status.value}, "
                    f"expected {expected.value}",
                )
        if expected_version is not None and request.version != expected_version:
            return ValidationResult.failure(
                ApprovalErrorKind.STALE_STATE,
                f"Purchase request {request.id} is at version {request.version}, "
                f"expected version {expected_version}",
            )
        return None

    def _invalid_transition(
        self,
        request: PurchaseRequest,
        action: ApprovalAction,
    ) -> ValidationResult:
        allowed = ", ".join(self._workflow.actions_from(request.status.value)) or "none"
        return ValidationResult.failure(
            ApprovalErrorKind.INVALID_TRANSITION,
            f"Cannot {action.value} a purchase request in {request.status.value} status "
            f"(allowed: {allowed})",
        )

    def _warn_if_out_of_sync(self, request: PurchaseRequest) -> None:
        check = verify_total_amount(request, self._config.total_tolerance)
        if not check.is_valid:
            logger.warning(
                "purchase_request_total_out_of_sync",
                extra={
                    "purchase_request_id": request.id,
                    "total_amount": request.total_amount,
                    "detail": check.primary_error,
                },
            )
