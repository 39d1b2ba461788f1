"""
Pytest fixtures for the procurement approval test suite.

Provides:
- A deterministic clock and a state machine wired to it
- Default approval rules
- Purchase request builders for the common scenarios
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from procurement_config.schema import ApprovalRulesConfig
from procurement_kernel.domain.clock import DeterministicClock
from procurement_kernel.logging_config import LogContext, reset_logging
from procurement_modules.purchase_request.models import (
    PurchaseRequest,
    PurchaseRequestItem,
    RequestStatus,
)
from procurement_modules.purchase_request.state_machine import ApprovalStateMachine
from procurement_modules.purchase_request.totals import recompute_totals

FIXED_NOW = datetime(2024, 3, 18, 8, 30, 0, tzinfo=timezone.utc)


def make_item(
    item_id: str = "PRI-001",
    quantity: int = 20,
    unit_cost: str = "850",
    description: str = "",
    **kwargs,
) -> PurchaseRequestItem:
    return PurchaseRequestItem(
        id=item_id,
        requested_quantity=quantity,
        unit_cost=Decimal(unit_cost),
        description=description,
        **kwargs,
    )


def make_request(
    *items: PurchaseRequestItem,
    request_id: str = "PR-2024-001",
    status: RequestStatus = RequestStatus.PENDING,
    **kwargs,
) -> PurchaseRequest:
    """Build a request whose total agrees with its items."""
    request = PurchaseRequest(
        id=request_id,
        items=items or (make_item(),),
        status=status,
        **kwargs,
    )
    return recompute_totals(request)


@pytest.fixture(autouse=True)
def _clean_log_context():
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def clock() -> DeterministicClock:
    return DeterministicClock(FIXED_NOW)


@pytest.fixture
def rules() -> ApprovalRulesConfig:
    return ApprovalRulesConfig.with_defaults()


@pytest.fixture
def trace_records() -> list[dict]:
    return []


@pytest.fixture
def machine(rules, clock, trace_records) -> ApprovalStateMachine:
    return ApprovalStateMachine(
        config=rules,
        clock=clock,
        outcome_sink=trace_records.append,
    )


@pytest.fixture
def single_item_request() -> PurchaseRequest:
    """One item: 20 units at 850."""
    return make_request(make_item("PRI-001", 20, "850", "Bond paper"))


@pytest.fixture
def three_item_request() -> PurchaseRequest:
    return make_request(
        make_item("PRI-001", 10, "125.50", "Bond paper"),
        make_item("PRI-002", 4, "1999.99", "Toner cartridge"),
        make_item("PRI-003", 5, "75", "Ballpen box"),
        request_id="PR-2024-014",
    )


@pytest.fixture
def logging_reset():
    reset_logging()
    yield
    reset_logging()
