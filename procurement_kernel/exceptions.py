"""
Typed Exception Hierarchy for the Procurement Kernel.

Every error a caller might want to branch on has its own class, a
machine-readable ``code`` class attribute, and its context stored as
attributes rather than baked into the message.

    ProcurementKernelError (base)
    |
    +-- MalformedInputError
    |   +-- UnknownItemError
    |   +-- DuplicateItemError
    |   +-- PayloadFormatError
    |
    +-- ConfigurationError
    |
    +-- ApprovalRuleViolation
        +-- InvalidTransitionError
        +-- InvalidQuantityError
        +-- MissingAdjustmentReasonError
        +-- InvalidAdjustmentReasonError
        +-- ReconciliationMismatchError
        +-- InvalidRejectionReasonError
        +-- InvalidFinanceRemarksError
        +-- StaleStateError

Malformed input and configuration errors are programmer errors and are
raised directly.  Approval rule violations are ordinarily returned as
failed outcomes; they are raised only when a caller asks for it via
``TransitionOutcome.raise_for_failure()``.
"""


class ProcurementKernelError(Exception):
    """
    Base exception for all procurement kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "PROCUREMENT_KERNEL_ERROR"


# Malformed input


class MalformedInputError(ProcurementKernelError):
    """Input does not have the shape the engine expects."""

    code: str = "MALFORMED_INPUT"

    def __init__(self, message: str):
        self.detail = message
        super().__init__(message)


class UnknownItemError(MalformedInputError):
    """An adjustment or distribution names an item not on the request."""

    code: str = "UNKNOWN_ITEM"

    def __init__(self, request_id: str, item_id: str):
        self.request_id = request_id
        self.item_id = item_id
        super().__init__(
            f"Item {item_id!r} is not part of purchase request {request_id}"
        )


class DuplicateItemError(MalformedInputError):
    """The same item id appears more than once where ids must be unique."""

    code: str = "DUPLICATE_ITEM"

    def __init__(self, item_id: str, where: str):
        self.item_id = item_id
        self.where = where
        super().__init__(f"Duplicate item id {item_id!r} in {where}")


class PayloadFormatError(MalformedInputError):
    """A plain-data payload is missing a key or holds an unparseable value."""

    code: str = "PAYLOAD_FORMAT"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid payload field {field!r}: {reason}")


# Configuration


class ConfigurationError(ProcurementKernelError):
    """Approval rules configuration is invalid."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, setting: str, reason: str):
        self.setting = setting
        self.reason = reason
        super().__init__(f"Invalid approval rule setting {setting!r}: {reason}")


# Approval rule violations


class ApprovalRuleViolation(ProcurementKernelError):
    """Base exception for a rejected purchase-request transition."""

    code: str = "APPROVAL_RULE_VIOLATION"

    def __init__(
        self,
        request_id: str,
        action: str,
        status: str,
        errors: tuple[str, ...] = (),
    ):
        self.request_id = request_id
        self.action = action
        self.status = status
        self.errors = tuple(errors)
        primary = self.errors[0] if self.errors else self.code
        super().__init__(
            f"Cannot {action} purchase request {request_id} ({status}): {primary}"
        )


class InvalidTransitionError(ApprovalRuleViolation):
    """Action is not legal from the request's current status."""

    code: str = "INVALID_TRANSITION"


class InvalidQuantityError(ApprovalRuleViolation):
    """A quantity is negative, non-integer, or out of bounds."""

    code: str = "INVALID_QUANTITY"


class MissingAdjustmentReasonError(ApprovalRuleViolation):
    """A quantity was changed without a reason."""

    code: str = "MISSING_ADJUSTMENT_REASON"


class InvalidAdjustmentReasonError(ApprovalRuleViolation):
    """An adjustment reason is outside the allowed length."""

    code: str = "INVALID_ADJUSTMENT_REASON"


class ReconciliationMismatchError(ApprovalRuleViolation):
    """Refund, replace and no-action quantities do not add up."""

    code: str = "RECONCILIATION_MISMATCH"


class InvalidRejectionReasonError(ApprovalRuleViolation):
    """Rejection reason is empty or outside the allowed length."""

    code: str = "INVALID_REJECTION_REASON"


class InvalidFinanceRemarksError(ApprovalRuleViolation):
    """Finance remarks were given but fall outside the allowed length."""

    code: str = "INVALID_FINANCE_REMARKS"


class StaleStateError(ApprovalRuleViolation):
    """The request changed since the caller last read it."""

    code: str = "STALE_STATE"
