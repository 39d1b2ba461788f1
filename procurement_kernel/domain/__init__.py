"""
Pure domain layer.

Value objects and helpers with NO dependencies on persistence, network
or wall-clock time.  Everything here is immutable and deterministic.
"""

from procurement_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from procurement_kernel.domain.money import (
    format_money,
    round_money,
    to_decimal,
)
from procurement_kernel.domain.validation import (
    ValidationResult,
    is_whole_number,
    sanitize_text,
)
from procurement_kernel.domain.workflow import Guard, Transition, Workflow

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "format_money",
    "round_money",
    "to_decimal",
    "ValidationResult",
    "is_whole_number",
    "sanitize_text",
    "Guard",
    "Transition",
    "Workflow",
]
