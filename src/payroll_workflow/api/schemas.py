"""Pydantic schemas for API request/response models."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Payroll Period schemas
# ============================================================================


class PeriodCreate(BaseModel):
    """Schema for creating a payroll period."""

    period_name: str = Field(min_length=1, max_length=100)
    start_date: date
    end_date: date
    working_days: int | None = Field(default=None, ge=0, le=31)
    expected_monthly_hours: int | None = Field(default=None, gt=0)


class PeriodUpdate(BaseModel):
    """Schema for updating a draft payroll period. Status is not accepted."""

    model_config = ConfigDict(extra="forbid")

    period_name: str | None = Field(default=None, min_length=1, max_length=100)
    start_date: date | None = None
    end_date: date | None = None
    working_days: int | None = Field(default=None, ge=0, le=31)
    expected_monthly_hours: int | None = Field(default=None, gt=0)


class PeriodResponse(BaseModel):
    """Schema for payroll period response."""

    model_config = ConfigDict(from_attributes=True)

    payroll_period_id: UUID
    period_name: str
    start_date: date
    end_date: date
    working_days: int | None = None
    expected_monthly_hours: int
    status: str
    created_at: datetime
    updated_at: datetime


class PeriodListResponse(BaseModel):
    """Schema for listing payroll periods."""

    items: list[PeriodResponse]
    total: int
    page: int
    limit: int
    pages: int


class GenerateYearRequest(BaseModel):
    """Schema for generating the twelve monthly periods of a year."""

    year: int = Field(ge=2000, le=2100)


class GenerateYearResponse(BaseModel):
    """Schema for yearly generation response."""

    year: int
    created: int
    periods: list[PeriodResponse]


class GenerateMonthRequest(BaseModel):
    """Schema for generating one monthly period."""

    year: int = Field(ge=2000, le=2100)
    month: int = Field(ge=1, le=12)


class GenerateMonthResponse(BaseModel):
    """Schema for monthly generation response."""

    period: PeriodResponse
    created: bool


# ============================================================================
# Generation schemas
# ============================================================================


class GenerationIssueResponse(BaseModel):
    """An error or warning for one employee."""

    model_config = ConfigDict(from_attributes=True)

    employee_id: UUID
    employee_name: str
    message: str


class GenerationReportResponse(BaseModel):
    """Schema for a record generation run."""

    period_id: UUID
    records_created: int
    total_gross: Decimal
    total_net: Decimal
    errors: list[GenerationIssueResponse] = []
    warnings: list[GenerationIssueResponse] = []


# ============================================================================
# Approval schemas
# ============================================================================


class ApprovalResponse(BaseModel):
    """Schema for payroll approval response."""

    model_config = ConfigDict(from_attributes=True)

    payroll_approval_id: UUID
    payroll_period_id: UUID
    approver_id: UUID
    department_id: UUID | None = None
    status: str
    comments: str | None = None
    approved_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class PendingApprovalResponse(ApprovalResponse):
    """Pending approval with the period it belongs to."""

    period_name: str | None = None
    period_start_date: date | None = None
    period_end_date: date | None = None
    department_name: str | None = None


class SubmitRequest(BaseModel):
    """Schema for submitting a period for review."""

    regenerate: bool = True


class SubmitResponse(BaseModel):
    """Schema for submission response."""

    period: PeriodResponse
    approvals: list[ApprovalResponse]
    generation: GenerationReportResponse | None = None


class DecisionRequest(BaseModel):
    """Schema for an approver's decision."""

    approved: bool
    comments: str | None = Field(default=None, max_length=2000)


class DecisionResponse(BaseModel):
    """Schema for decision response."""

    approval: ApprovalResponse
    period_status: str
    period_transitioned: bool


class ApprovalDetailResponse(BaseModel):
    """One approval within a period's workflow status."""

    model_config = ConfigDict(from_attributes=True)

    payroll_approval_id: UUID
    approver_id: UUID
    approver_name: str
    department_id: UUID | None = None
    department_name: str | None = None
    status: str
    comments: str | None = None
    approved_at: datetime | None = None


class ApprovalWorkflowStatusResponse(BaseModel):
    """Schema for a period's approval workflow status."""

    period_id: UUID
    period_status: str
    total: int
    pending: int
    approved: int
    rejected: int
    approvals: list[ApprovalDetailResponse]


class ApprovalBreakdownResponse(BaseModel):
    """Approval counts for one department or approver."""

    model_config = ConfigDict(from_attributes=True)

    key_id: UUID | None = None
    name: str
    total: int
    pending: int
    approved: int
    rejected: int


class ApprovalStatsResponse(BaseModel):
    """Schema for approval statistics."""

    model_config = ConfigDict(from_attributes=True)

    total: int
    pending: int
    approved: int
    rejected: int
    by_department: list[ApprovalBreakdownResponse]
    by_approver: list[ApprovalBreakdownResponse]
    average_approval_hours: Decimal | None = None


# ============================================================================
# Payroll Record schemas
# ============================================================================


class PayrollDeductionResponse(BaseModel):
    """Schema for a deduction line on a payroll record."""

    model_config = ConfigDict(from_attributes=True)

    payroll_deduction_id: UUID
    deduction_type_id: UUID | None = None
    employee_deduction_balance_id: UUID | None = None
    name: str
    amount: Decimal


class PayrollRecordResponse(BaseModel):
    """Schema for payroll record response."""

    model_config = ConfigDict(from_attributes=True)

    payroll_record_id: UUID
    payroll_period_id: UUID
    employee_id: UUID
    employee_name: str | None = None
    department_id: UUID | None = None
    base_salary: Decimal
    hourly_rate: Decimal
    total_worked_hours: Decimal
    total_regular_hours: Decimal
    total_overtime_hours: Decimal
    total_late_hours: Decimal
    paid_leave_hours: Decimal
    regular_pay: Decimal
    overtime_pay: Decimal
    late_deductions: Decimal
    gross_pay: Decimal
    total_deductions: Decimal
    total_benefits: Decimal
    net_pay: Decimal
    net_pay_clamped: bool
    status: str
    paid_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class PayrollRecordDetailResponse(PayrollRecordResponse):
    """Payroll record with its deduction lines."""

    deductions: list[PayrollDeductionResponse] = []


class PayrollRecordListResponse(BaseModel):
    """Schema for listing payroll records."""

    items: list[PayrollRecordResponse]
    total: int
    page: int
    limit: int
    pages: int


class MarkPaidRequest(BaseModel):
    """Schema for marking a period's processed records paid."""

    department_id: UUID | None = None


class MarkPaidResponse(BaseModel):
    """Schema for bulk mark-paid response."""

    period_id: UUID
    department_id: UUID | None = None
    records_marked: int


# ============================================================================
# Summary & statistics schemas
# ============================================================================


class PayrollSummaryResponse(BaseModel):
    """Schema for a period's payroll summary."""

    model_config = ConfigDict(from_attributes=True)

    period_id: UUID
    period_name: str
    period_status: str
    total_employees: int
    total_gross_pay: Decimal
    total_deductions: Decimal
    total_benefits: Decimal
    total_net_pay: Decimal
    processed_count: int
    pending_count: int
    paid_count: int
    average_worked_hours: Decimal
    completion_rate: Decimal


class PayrollStatsResponse(BaseModel):
    """Schema for dashboard statistics."""

    model_config = ConfigDict(from_attributes=True)

    total_employees: int
    total_gross_pay: Decimal
    completed_periods: int
    processing_periods: int
    department_id: UUID | None = None


# ============================================================================
# Error schemas
# ============================================================================


class ErrorResponse(BaseModel):
    """Schema for error response."""

    detail: str
    code: str | None = None
    context: dict[str, Any] | None = None
