"""Payroll period, record and approval state machines."""

from __future__ import annotations

from enum import Enum

from payroll_workflow.errors import InvalidTransitionError


class PayrollPeriodStatus(str, Enum):
    """Payroll period status values."""

    DRAFT = "draft"
    PROCESSING = "processing"
    SENT_FOR_REVIEW = "sent_for_review"
    COMPLETED = "completed"


class PayrollRecordStatus(str, Enum):
    """Payroll record status values."""

    DRAFT = "draft"
    PROCESSED = "processed"
    PAID = "paid"


class ApprovalStatus(str, Enum):
    """Payroll approval status values."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


def status_value(status: str) -> str:
    """Plain string value of a status (enum member or raw column value)."""
    if isinstance(status, Enum):
        return status.value
    return status


class PayrollPeriodStateMachine:
    """State machine for payroll period status transitions.

    Allowed transitions:
    - draft → processing (generation or submission starts)
    - processing → draft (generation finished or failed)
    - processing → sent_for_review (approvals created)
    - sent_for_review → completed (all approvals approved)
    - sent_for_review → draft (any approval rejected)
    """

    # Define valid transitions: {from_status: [allowed_to_statuses]}
    VALID_TRANSITIONS: dict[str, list[str]] = {
        PayrollPeriodStatus.DRAFT.value: [PayrollPeriodStatus.PROCESSING],
        PayrollPeriodStatus.PROCESSING.value: [
            PayrollPeriodStatus.DRAFT,
            PayrollPeriodStatus.SENT_FOR_REVIEW,
        ],
        PayrollPeriodStatus.SENT_FOR_REVIEW.value: [
            PayrollPeriodStatus.COMPLETED,
            PayrollPeriodStatus.DRAFT,
        ],
        PayrollPeriodStatus.COMPLETED.value: [],  # Terminal state
    }

    # Statuses where period attributes can be edited or the period deleted
    MUTABLE = (PayrollPeriodStatus.DRAFT,)

    # Statuses where approval rows may be created
    APPROVALS_ALLOWED = (
        PayrollPeriodStatus.PROCESSING,
        PayrollPeriodStatus.SENT_FOR_REVIEW,
    )

    # Statuses where approvers may decide
    DECISIONS_ALLOWED = (PayrollPeriodStatus.SENT_FOR_REVIEW,)

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(status_value(from_status), [])
        return to_status in allowed

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(from_status, to_status)

    @classmethod
    def can_modify(cls, status: str) -> bool:
        """Check if period attributes can be changed in this status."""
        return status in cls.MUTABLE

    @classmethod
    def can_create_approvals(cls, status: str) -> bool:
        return status in cls.APPROVALS_ALLOWED

    @classmethod
    def can_decide(cls, status: str) -> bool:
        return status in cls.DECISIONS_ALLOWED


class PayrollRecordStateMachine:
    """State machine for payroll record status transitions.

    Allowed transitions:
    - draft → processed
    - processed → paid
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        PayrollRecordStatus.DRAFT.value: [PayrollRecordStatus.PROCESSED],
        PayrollRecordStatus.PROCESSED.value: [PayrollRecordStatus.PAID],
        PayrollRecordStatus.PAID.value: [],  # Terminal state
    }

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(status_value(from_status), [])
        return to_status in allowed

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(from_status, to_status)


class ApprovalStateMachine:
    """Approvals only ever leave pending, once."""

    VALID_TRANSITIONS: dict[str, list[str]] = {
        ApprovalStatus.PENDING.value: [ApprovalStatus.APPROVED, ApprovalStatus.REJECTED],
        ApprovalStatus.APPROVED.value: [],
        ApprovalStatus.REJECTED.value: [],
    }

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        allowed = cls.VALID_TRANSITIONS.get(status_value(from_status), [])
        return to_status in allowed
