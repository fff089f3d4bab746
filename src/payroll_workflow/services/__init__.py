"""Payroll workflow services."""

from payroll_workflow.services.approval_service import PayrollApprovalCoordinator
from payroll_workflow.services.period_service import PayrollPeriodService
from payroll_workflow.services.record_service import GenerationReport, PayrollRecordService
from payroll_workflow.services.reporting_service import PayrollReportingService
from payroll_workflow.services.state_machine import (
    ApprovalStatus,
    PayrollPeriodStateMachine,
    PayrollPeriodStatus,
    PayrollRecordStateMachine,
    PayrollRecordStatus,
)

__all__ = [
    "PayrollApprovalCoordinator",
    "PayrollPeriodService",
    "GenerationReport",
    "PayrollRecordService",
    "PayrollReportingService",
    "ApprovalStatus",
    "PayrollPeriodStateMachine",
    "PayrollPeriodStatus",
    "PayrollRecordStateMachine",
    "PayrollRecordStatus",
]
