"""
Validation results and text sanitation.

Pure checks with no I/O.  Validators return a ``ValidationResult``
instead of raising: expected rule failures are data, not exceptions.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

_STRIPPED_CHARS = str.maketrans("", "", "<>")


@dataclass(frozen=True)
class ValidationResult:
    """
    Outcome of a validation.

    Contract:
        ``errors`` is ordered; ``errors[0]`` is the primary error and
        ``kind`` classifies it.  ``is_valid`` is True only when there
        are no errors.

    Guarantees:
        - Immutable.
        - ``bool(result) == result.is_valid``.
    """

    is_valid: bool
    errors: tuple[str, ...] = field(default_factory=tuple)
    kind: Enum | None = None

    @classmethod
    def success(cls) -> ValidationResult:
        return cls(is_valid=True)

    @classmethod
    def failure(cls, kind: Enum, *errors: str) -> ValidationResult:
        if not errors:
            raise ValueError("A failed ValidationResult needs at least one error")
        return cls(is_valid=False, errors=tuple(errors), kind=kind)

    @property
    def primary_error(self) -> str | None:
        return self.errors[0] if self.errors else None

    def __bool__(self) -> bool:
        return self.is_valid


def sanitize_text(value: str | None) -> str:
    """Strip ``<``/``>`` and surrounding whitespace from free text."""
    if value is None:
        return ""
    return value.translate(_STRIPPED_CHARS).strip()


def is_whole_number(value: Any) -> bool:
    """True for ints. Bools are rejected even though they subclass int."""
    return isinstance(value, int) and not isinstance(value, bool)

