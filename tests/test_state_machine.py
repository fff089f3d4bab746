"""Tests for payroll period, record and approval state machines."""

import pytest

from payroll_workflow.errors import InvalidTransitionError
from payroll_workflow.services.state_machine import (
    ApprovalStateMachine,
    ApprovalStatus,
    PayrollPeriodStateMachine,
    PayrollPeriodStatus,
    PayrollRecordStateMachine,
    status_value,
)


class TestPayrollPeriodStateMachine:
    """Test period transitions."""

    def test_valid_transitions(self):
        """Test that valid transitions are allowed."""
        # draft → processing
        assert PayrollPeriodStateMachine.can_transition("draft", "processing") is True

        # processing → draft (generation finished)
        assert PayrollPeriodStateMachine.can_transition("processing", "draft") is True

        # processing → sent_for_review
        assert PayrollPeriodStateMachine.can_transition("processing", "sent_for_review") is True

        # sent_for_review → completed / draft
        assert PayrollPeriodStateMachine.can_transition("sent_for_review", "completed") is True
        assert PayrollPeriodStateMachine.can_transition("sent_for_review", "draft") is True

    def test_invalid_transitions(self):
        """Test that invalid transitions are blocked."""
        # Can't skip processing
        assert PayrollPeriodStateMachine.can_transition("draft", "sent_for_review") is False
        assert PayrollPeriodStateMachine.can_transition("draft", "completed") is False

        # Can't complete without review
        assert PayrollPeriodStateMachine.can_transition("processing", "completed") is False

        # Completed is terminal
        assert PayrollPeriodStateMachine.can_transition("completed", "draft") is False
        assert PayrollPeriodStateMachine.can_transition("completed", "processing") is False

    def test_enum_members_are_accepted(self):
        assert PayrollPeriodStateMachine.can_transition(
            PayrollPeriodStatus.DRAFT, PayrollPeriodStatus.PROCESSING
        ) is True
        assert PayrollPeriodStateMachine.can_transition(
            PayrollPeriodStatus.COMPLETED, PayrollPeriodStatus.DRAFT
        ) is False

    def test_validate_transition_raises(self):
        """Test that validate_transition raises for invalid transitions."""
        with pytest.raises(InvalidTransitionError) as exc_info:
            PayrollPeriodStateMachine.validate_transition("draft", "completed")

        assert exc_info.value.from_status == "draft"
        assert exc_info.value.to_status == "completed"

    def test_can_modify(self):
        """Only draft periods can be edited or deleted."""
        assert PayrollPeriodStateMachine.can_modify("draft") is True
        assert PayrollPeriodStateMachine.can_modify("processing") is False
        assert PayrollPeriodStateMachine.can_modify("sent_for_review") is False
        assert PayrollPeriodStateMachine.can_modify("completed") is False

    def test_can_create_approvals(self):
        assert PayrollPeriodStateMachine.can_create_approvals("draft") is False
        assert PayrollPeriodStateMachine.can_create_approvals("processing") is True
        assert PayrollPeriodStateMachine.can_create_approvals("sent_for_review") is True
        assert PayrollPeriodStateMachine.can_create_approvals("completed") is False

    def test_can_decide(self):
        assert PayrollPeriodStateMachine.can_decide("sent_for_review") is True
        assert PayrollPeriodStateMachine.can_decide("processing") is False
        assert PayrollPeriodStateMachine.can_decide("completed") is False


class TestPayrollRecordStateMachine:
    """Test record transitions."""

    def test_forward_only(self):
        assert PayrollRecordStateMachine.can_transition("draft", "processed") is True
        assert PayrollRecordStateMachine.can_transition("processed", "paid") is True
        assert PayrollRecordStateMachine.can_transition("draft", "paid") is False
        assert PayrollRecordStateMachine.can_transition("paid", "processed") is False
        assert PayrollRecordStateMachine.can_transition("processed", "draft") is False

    def test_validate_transition_raises(self):
        with pytest.raises(InvalidTransitionError):
            PayrollRecordStateMachine.validate_transition("draft", "paid")


class TestApprovalStateMachine:
    """Test approval transitions."""

    def test_pending_resolves_once(self):
        assert ApprovalStateMachine.can_transition("pending", "approved") is True
        assert ApprovalStateMachine.can_transition("pending", "rejected") is True
        assert ApprovalStateMachine.can_transition("approved", "rejected") is False
        assert ApprovalStateMachine.can_transition("rejected", "approved") is False

    def test_decision_from_enum_members(self):
        assert ApprovalStateMachine.can_transition(
            ApprovalStatus.PENDING, ApprovalStatus.REJECTED
        ) is True
        assert ApprovalStateMachine.can_transition(
            ApprovalStatus.APPROVED, ApprovalStatus.APPROVED
        ) is False


def test_status_value():
    assert status_value(PayrollPeriodStatus.SENT_FOR_REVIEW) == "sent_for_review"
    assert status_value("draft") == "draft"
