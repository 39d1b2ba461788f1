"""
Hypothesis fuzzing across the ApprovalStateMachine.

Draws random requests, adjustments and distributions and checks the
properties that must hold whatever the input:
- total_amount always equals the sum of base_quantity x unit_cost
- a failed action leaves the request untouched
- a successful reconcile splits every item exactly
- rollback restores the requested total
- no input makes the machine raise for a legal transition with well-formed entries
"""

from __future__ import annotations

from decimal import Decimal

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from procurement_config.schema import ApprovalRulesConfig
from procurement_kernel.domain.clock import DeterministicClock
from procurement_modules.purchase_request.models import (
    ApprovalErrorKind,
    ItemAdjustment,
    ItemDistribution,
    PurchaseRequest,
    RequestStatus,
)
from procurement_modules.purchase_request.state_machine import ApprovalStateMachine
from procurement_modules.purchase_request.totals import compute_total
from tests.conftest import FIXED_NOW, make_item, make_request

pytestmark = pytest.mark.slow

FUZZ_SETTINGS = settings(
    max_examples=150,
    deadline=None,
    suppress_health_check=[HealthCheck.too_slow],
)

ACTOR = "fuzz.officer"


def _machine() -> ApprovalStateMachine:
    return ApprovalStateMachine(
        config=ApprovalRulesConfig.with_defaults(),
        clock=DeterministicClock(FIXED_NOW),
    )


def _expected_total(request: PurchaseRequest) -> Decimal:
    return sum(
        (item.base_quantity * item.unit_cost for item in request.items),
        Decimal("0"),
    )


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------

unit_costs = st.decimals(
    min_value=Decimal("0"),
    max_value=Decimal("99999.99"),
    places=2,
    allow_nan=False,
    allow_infinity=False,
)

reasons = st.one_of(
    st.none(),
    st.just(""),
    st.text(alphabet="abc <>", max_size=12),
    st.just("Budget cut"),
)


@st.composite
def pending_requests(draw):
    count = draw(st.integers(min_value=1, max_value=5))
    items = tuple(
        make_item(
            f"PRI-{n:03d}",
            draw(st.integers(min_value=1, max_value=50)),
            str(draw(unit_costs)),
            draw(st.sampled_from(["", "Bond paper", "Toner"])),
        )
        for n in range(1, count + 1)
    )
    return make_request(*items)


@st.composite
def requests_with_adjustments(draw):
    request = draw(pending_requests())
    chosen = draw(
        st.lists(st.sampled_from(request.items), unique_by=lambda i: i.id, max_size=len(request.items))
    )
    adjustments = tuple(
        ItemAdjustment(
            item.id,
            draw(st.integers(min_value=-2, max_value=item.requested_quantity + 2)),
            draw(reasons),
        )
        for item in chosen
    )
    return request, adjustments


@st.composite
def adjusted_with_distributions(draw):
    """An ADJUSTED request and a distribution per item that may or may not balance."""
    request = draw(pending_requests())
    first = request.items[0]
    adjusted = _machine().approve(
        request,
        (ItemAdjustment(first.id, first.requested_quantity - 1, "Budget cut"),),
        ACTOR,
    )
    request = adjusted.request
    distributions = []
    for item in request.items:
        base = item.base_quantity
        if draw(st.booleans()):
            refund = draw(st.integers(min_value=0, max_value=base))
            replace = draw(st.integers(min_value=0, max_value=base - refund))
            distributions.append(ItemDistribution(item.id, refund, replace, base - refund - replace))
        else:
            distributions.append(
                ItemDistribution(
                    item.id,
                    draw(st.integers(min_value=-1, max_value=base + 1)),
                    draw(st.integers(min_value=-1, max_value=base + 1)),
                    draw(st.integers(min_value=-1, max_value=base + 1)),
                )
            )
    return request, tuple(distributions)


# ---------------------------------------------------------------------------
# Properties
# ---------------------------------------------------------------------------


class TestApproveProperties:

    @FUZZ_SETTINGS
    @given(data=requests_with_adjustments())
    def test_total_matches_items_or_request_untouched(self, data):
        request, adjustments = data
        outcome = _machine().approve(request, adjustments, ACTOR)
        if outcome.is_success:
            assert outcome.request.total_amount == _expected_total(outcome.request)
            assert outcome.request.total_amount == compute_total(outcome.request.items)
            expected = RequestStatus.ADJUSTED if outcome.request.has_adjustments else RequestStatus.APPROVED
            assert outcome.status is expected
            assert outcome.request.version == request.version + 1
        else:
            assert outcome.request is request
            assert outcome.kind in (
                ApprovalErrorKind.INVALID_QUANTITY,
                ApprovalErrorKind.MISSING_ADJUSTMENT_REASON,
                ApprovalErrorKind.INVALID_ADJUSTMENT_REASON,
            )
            assert outcome.audit_entry is None

    @FUZZ_SETTINGS
    @given(data=requests_with_adjustments())
    def test_adjusted_quantities_never_exceed_requested(self, data):
        request, adjustments = data
        outcome = _machine().approve(request, adjustments, ACTOR)
        for item in outcome.request.items:
            assert 0 <= item.base_quantity <= item.requested_quantity
            if item.adjusted_quantity is not None:
                assert item.adjusted_quantity != item.requested_quantity
                assert item.adjustment_reason

    @FUZZ_SETTINGS
    @given(data=requests_with_adjustments())
    def test_rollback_restores_requested_total(self, data):
        request, adjustments = data
        machine = _machine()
        approved = machine.approve(request, adjustments, ACTOR)
        if not approved.is_success:
            return
        rolled_back = machine.rollback(approved.request, ACTOR)
        assert rolled_back.is_success
        assert rolled_back.status is RequestStatus.PENDING
        assert rolled_back.request.total_amount == request.total_amount
        assert not rolled_back.request.has_adjustments


class TestReconcileProperties:

    @FUZZ_SETTINGS
    @given(data=adjusted_with_distributions())
    def test_success_means_every_item_balances(self, data):
        request, distributions = data
        outcome = _machine().reconcile(request, distributions, ACTOR)
        if outcome.is_success:
            assert outcome.status is RequestStatus.CLOSED
            for item in outcome.request.items:
                assert item.is_reconciled
                assert (
                    item.refund_quantity + item.replace_quantity + item.no_action_quantity
                    == item.base_quantity
                )
            assert outcome.request.total_amount == request.total_amount
            assert outcome.total_refund == sum(
                (item.refund_quantity * item.unit_cost for item in outcome.request.items),
                Decimal("0"),
            )
        else:
            assert outcome.request is request
            assert outcome.kind in (
                ApprovalErrorKind.INVALID_QUANTITY,
                ApprovalErrorKind.RECONCILIATION_MISMATCH,
            )

    @FUZZ_SETTINGS
    @given(data=adjusted_with_distributions())
    def test_balanced_distributions_always_close(self, data):
        request, _ = data
        distributions = tuple(
            ItemDistribution(item.id, 0, 0, item.base_quantity) for item in request.items
        )
        outcome = _machine().reconcile(request, distributions, ACTOR)
        assert outcome.is_success
        assert outcome.is_no_op_close
