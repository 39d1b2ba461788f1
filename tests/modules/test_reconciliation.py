"""
Refund / Replacement Reconciler Tests.

For every item refund + replace + no-action must equal the base
quantity.  Amounts are derived from the unit cost and never stored.
"""

from decimal import Decimal

import pytest

from procurement_kernel.exceptions import DuplicateItemError, UnknownItemError
from procurement_modules.purchase_request.models import (
    ApprovalErrorKind,
    ItemDistribution,
    PurchaseRequest,
    RequestStatus,
)
from procurement_modules.purchase_request.reconciliation import (
    NO_ITEMS_MESSAGE,
    NO_OP_CLOSE_WARNING,
    apply_distributions,
    reconcile_distributions,
)
from tests.conftest import make_item, make_request


@pytest.fixture
def adjusted_request():
    """20 requested at 850, adjusted to 15."""
    return make_request(
        make_item("PRI-001", 20, "850", adjusted_quantity=15, adjustment_reason="Budget cut"),
        status=RequestStatus.ADJUSTED,
    )


@pytest.fixture
def mixed_request():
    """Three items, only the first adjusted."""
    return make_request(
        make_item("PRI-001", 10, "100", "Bond paper", adjusted_quantity=6, adjustment_reason="Budget"),
        make_item("PRI-002", 4, "2500", "Toner cartridge"),
        make_item("PRI-003", 5, "75"),
        status=RequestStatus.ADJUSTED,
    )


class TestReconcileValid:
    """Distributions that add up."""

    def test_refund_and_no_action(self, adjusted_request):
        result = reconcile_distributions(
            adjusted_request, (ItemDistribution("PRI-001", 5, 0, 10),)
        )
        assert result.is_valid
        assert result.total_refund == Decimal("4250")
        assert result.total_replace == Decimal("0")
        assert result.is_no_op_close is False
        assert result.warnings == ()

    def test_base_is_requested_when_not_adjusted(self, mixed_request):
        result = reconcile_distributions(
            mixed_request,
            (
                ItemDistribution("PRI-001", 2, 1, 3),
                ItemDistribution("PRI-002", 0, 4, 0),
                ItemDistribution("PRI-003", 0, 0, 5),
            ),
        )
        assert result.is_valid
        assert result.total_refund == Decimal("200")
        assert result.total_replace == Decimal("100") + Decimal("10000")

    def test_settlements_per_item(self, mixed_request):
        result = reconcile_distributions(
            mixed_request,
            (
                ItemDistribution("PRI-001", 2, 1, 3),
                ItemDistribution("PRI-002", 1, 0, 3),
                ItemDistribution("PRI-003", 0, 0, 5),
            ),
        )
        by_id = {s.item_id: s for s in result.settlements}
        assert by_id["PRI-002"].refund_amount == Decimal("2500")
        assert by_id["PRI-001"].replace_amount == Decimal("100")

    def test_all_no_action_is_flagged(self, adjusted_request):
        result = reconcile_distributions(
            adjusted_request, (ItemDistribution("PRI-001", 0, 0, 15),)
        )
        assert result.is_valid
        assert result.is_no_op_close is True
        assert result.warnings == (NO_OP_CLOSE_WARNING,)

    def test_zero_base_quantity(self):
        request = make_request(
            make_item("PRI-001", 20, adjusted_quantity=0, adjustment_reason="Cancelled"),
            status=RequestStatus.ADJUSTED,
        )
        result = reconcile_distributions(request, (ItemDistribution("PRI-001", 0, 0, 0),))
        assert result.is_valid


class TestReconcileInvalid:
    """Distributions that do not add up or are out of range."""

    def test_sum_mismatch(self, adjusted_request):
        result = reconcile_distributions(
            adjusted_request, (ItemDistribution("PRI-001", 5, 0, 5),)
        )
        assert not result.is_valid
        assert result.validation.kind is ApprovalErrorKind.RECONCILIATION_MISMATCH
        assert result.validation.errors == ("Item #1: sum must equal 15, got 10",)
        assert result.total_refund == Decimal("0")

    def test_missing_distribution(self, mixed_request):
        result = reconcile_distributions(
            mixed_request,
            (
                ItemDistribution("PRI-001", 0, 0, 6),
                ItemDistribution("PRI-003", 0, 0, 5),
            ),
        )
        assert result.validation.kind is ApprovalErrorKind.RECONCILIATION_MISMATCH
        assert result.validation.errors == (
            "Item #2 (Toner cartridge): missing refund/replacement distribution",
        )

    def test_every_failing_item_reported(self, mixed_request):
        result = reconcile_distributions(
            mixed_request,
            (
                ItemDistribution("PRI-001", 1, 1, 1),
                ItemDistribution("PRI-002", -1, 0, 5),
                ItemDistribution("PRI-003", 0, 0, 4),
            ),
        )
        assert len(result.validation.errors) == 3
        assert result.validation.kind is ApprovalErrorKind.RECONCILIATION_MISMATCH
        assert result.validation.errors[1].startswith("Item #2 (Toner cartridge): refund quantity")

    @pytest.mark.parametrize(
        "distribution",
        [
            ItemDistribution("PRI-001", -1, 0, 16),
            ItemDistribution("PRI-001", 16, 0, -1),
            ItemDistribution("PRI-001", 1.5, 0, 13.5),
            ItemDistribution("PRI-001", "5", 0, 10),
            ItemDistribution("PRI-001", True, 0, 14),
        ],
    )
    def test_out_of_range_or_non_integer(self, adjusted_request, distribution):
        result = reconcile_distributions(adjusted_request, (distribution,))
        assert result.validation.kind is ApprovalErrorKind.INVALID_QUANTITY

    def test_no_items(self):
        request = PurchaseRequest(id="PR-EMPTY", status=RequestStatus.ADJUSTED)
        result = reconcile_distributions(request, ())
        assert result.validation.errors == (NO_ITEMS_MESSAGE,)

    def test_unknown_item_raises(self, adjusted_request):
        with pytest.raises(UnknownItemError):
            reconcile_distributions(
                adjusted_request,
                (ItemDistribution("PRI-001", 0, 0, 15), ItemDistribution("PRI-404", 0, 0, 1)),
            )

    def test_duplicate_item_raises(self, adjusted_request):
        with pytest.raises(DuplicateItemError):
            reconcile_distributions(
                adjusted_request,
                (ItemDistribution("PRI-001", 0, 0, 15), ItemDistribution("PRI-001", 0, 0, 15)),
            )


class TestApplyDistributions:

    def test_writes_quantities(self, adjusted_request):
        closed = apply_distributions(adjusted_request, (ItemDistribution("PRI-001", 5, 0, 10),))
        item = closed.item("PRI-001")
        assert (item.refund_quantity, item.replace_quantity, item.no_action_quantity) == (5, 0, 10)
        assert item.is_reconciled

    def test_total_unchanged(self, adjusted_request):
        closed = apply_distributions(adjusted_request, (ItemDistribution("PRI-001", 5, 0, 10),))
        assert closed.total_amount == adjusted_request.total_amount == Decimal("12750")
