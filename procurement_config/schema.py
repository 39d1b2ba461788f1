"""
Approval rules configuration schema.

Defines the structure and defaults for the tunable rules of the
purchase-request approval engine.  Values normally come from
``approval_rules.yaml`` through ``procurement_config.get_active_config()``.
"""

from dataclasses import dataclass, fields
from decimal import Decimal
from typing import Any, Self

from procurement_kernel.domain.money import to_decimal
from procurement_kernel.exceptions import ConfigurationError
from procurement_kernel.logging_config import get_logger

logger = get_logger("config.schema")

_LENGTH_FIELDS = (
    "rejection_reason_min_length",
    "rejection_reason_max_length",
    "adjustment_reason_min_length",
    "adjustment_reason_max_length",
    "finance_remarks_min_length",
    "finance_remarks_max_length",
)

_FLAG_FIELDS = (
    "allow_quantity_increase",
    "allow_zero_adjustment",
)


@dataclass(frozen=True)
class ApprovalRulesConfig:
    """
    Tunable rules for the approval state machine.

    Defaults match the rules procurement finance has always applied:

        config = ApprovalRulesConfig(
            rejection_reason_min_length=20,
            allow_quantity_increase=True,
        )
    """

    version: int = 1

    currency: str = "PHP"
    currency_symbol: str = "₱"

    rejection_reason_min_length: int = 10
    rejection_reason_max_length: int = 500

    adjustment_reason_min_length: int = 1
    adjustment_reason_max_length: int = 500
    allow_quantity_increase: bool = False
    allow_zero_adjustment: bool = True

    # Optional remarks on approve / edit; checked only when given
    finance_remarks_min_length: int = 5
    finance_remarks_max_length: int = 1000

    total_tolerance: Decimal = Decimal("0.01")

    def __post_init__(self) -> None:
        if not isinstance(self.version, int) or isinstance(self.version, bool) or self.version < 1:
            raise ConfigurationError("version", f"must be a positive integer, got {self.version!r}")

        if not (isinstance(self.currency, str) and len(self.currency) == 3
                and self.currency.isalpha() and self.currency.isupper()):
            raise ConfigurationError("currency", f"must be a 3-letter ISO code, got {self.currency!r}")
        if not isinstance(self.currency_symbol, str) or not self.currency_symbol.strip():
            raise ConfigurationError("currency_symbol", "must be a non-empty string")

        for name in _LENGTH_FIELDS:
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                raise ConfigurationError(name, f"must be a non-negative integer, got {value!r}")
        for prefix in ("rejection_reason", "adjustment_reason", "finance_remarks"):
            lo = getattr(self, f"{prefix}_min_length")
            hi = getattr(self, f"{prefix}_max_length")
            if hi < 1:
                raise ConfigurationError(f"{prefix}_max_length", "must be at least 1")
            if lo > hi:
                raise ConfigurationError(
                    f"{prefix}_min_length",
                    f"minimum {lo} exceeds maximum {hi}",
                )

        for name in _FLAG_FIELDS:
            if not isinstance(getattr(self, name), bool):
                raise ConfigurationError(name, f"must be true or false, got {getattr(self, name)!r}")

        if not isinstance(self.total_tolerance, Decimal) or self.total_tolerance < 0:
            raise ConfigurationError(
                "total_tolerance", f"must be a non-negative Decimal, got {self.total_tolerance!r}"
            )

        logger.debug(
            "approval_rules_config_initialized",
            extra={
                "config_version": self.version,
                "currency": self.currency,
                "rejection_reason_length": [
                    self.rejection_reason_min_length,
                    self.rejection_reason_max_length,
                ],
                "allow_quantity_increase": self.allow_quantity_increase,
                "allow_zero_adjustment": self.allow_zero_adjustment,
            },
        )

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with the standard rules."""
        return cls()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        """Create config from a plain dict (e.g. a parsed YAML section)."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(unknown[0], "unknown setting")

        values = dict(data)
        if "total_tolerance" in values:
            try:
                values["total_tolerance"] = to_decimal(values["total_tolerance"])
            except ValueError as exc:
                raise ConfigurationError("total_tolerance", str(exc)) from exc
        return cls(**values)
