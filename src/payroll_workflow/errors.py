"""Error taxonomy for payroll workflow operations.

Every error carries a ``context`` dict (period_id, employee_id, approval_id,
...) so callers can render a useful message without inspecting database
errors.
"""

from __future__ import annotations

from typing import Any


class PayrollError(Exception):
    """Base class for all payroll workflow errors."""

    code = "PAYROLL_ERROR"

    def __init__(self, message: str, **context: Any):
        self.message = message
        self.context = {k: v for k, v in context.items() if v is not None}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for API responses."""
        return {
            "detail": self.message,
            "code": self.code,
            "context": {k: str(v) for k, v in self.context.items()},
        }


class ValidationError(PayrollError):
    """Malformed input (missing dates, negative hours, missing salary)."""

    code = "VALIDATION_ERROR"


class NotFoundError(PayrollError):
    """Unknown period, record, approval or employee."""

    code = "NOT_FOUND"


class AttendanceNotFoundError(NotFoundError):
    """No attendance exists for an employee in a period."""

    code = "ATTENDANCE_NOT_FOUND"


class InvalidStateError(PayrollError):
    """Operation is illegal for the current lifecycle state."""

    code = "INVALID_STATE"


class InvalidTransitionError(InvalidStateError):
    """Raised when an invalid state transition is attempted."""

    code = "INVALID_TRANSITION"

    def __init__(
        self,
        from_status: str,
        to_status: str,
        reason: str | None = None,
        **context: Any,
    ):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        msg = f"Invalid transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg, **context)


class InvalidPeriodStateError(InvalidStateError):
    """Payroll period is not in the status the operation requires."""

    code = "INVALID_PERIOD_STATE"


class AlreadyResolvedError(InvalidStateError):
    """Approval has already been approved or rejected."""

    code = "ALREADY_RESOLVED"


class UnauthorizedError(PayrollError):
    """Acting user is not the approver of record."""

    code = "UNAUTHORIZED"


class ConflictError(PayrollError):
    """Duplicate approval or overlapping period."""

    code = "CONFLICT"
