"""Read-side queries: period and record listings, summaries and statistics.

Everything is recomputed per call; nothing is cached.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Generic, TypeVar
from uuid import UUID

from sqlalchemy import Select, distinct, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from payroll_workflow.calculators.types import ZERO, round_hours, round_money, to_decimal
from payroll_workflow.config import get_settings
from payroll_workflow.errors import NotFoundError, ValidationError
from payroll_workflow.models import (
    AppUser,
    Department,
    Employee,
    PayrollApproval,
    PayrollPeriod,
    PayrollRecord,
)
from payroll_workflow.services.state_machine import (
    ApprovalStatus,
    PayrollPeriodStatus,
    PayrollRecordStatus,
)

T = TypeVar("T")

IN_PROGRESS_STATUSES = (
    PayrollPeriodStatus.PROCESSING.value,
    PayrollPeriodStatus.SENT_FOR_REVIEW.value,
)


@dataclass
class Page(Generic[T]):
    """One page of a listing."""

    items: list[T]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


@dataclass
class PayrollSummary:
    """Totals for one payroll period."""

    period_id: UUID
    period_name: str
    period_status: str
    total_employees: int = 0
    total_gross_pay: Decimal = ZERO
    total_deductions: Decimal = ZERO
    total_benefits: Decimal = ZERO
    total_net_pay: Decimal = ZERO
    processed_count: int = 0
    pending_count: int = 0
    paid_count: int = 0
    average_worked_hours: Decimal = ZERO
    completion_rate: Decimal = ZERO  # paid / total * 100


@dataclass
class PayrollStats:
    """Dashboard statistics, organization-wide or for one department."""

    total_employees: int
    total_gross_pay: Decimal
    completed_periods: int
    processing_periods: int
    department_id: UUID | None = None


@dataclass
class ApprovalBreakdown:
    """Approval counts for one department or one approver."""

    key_id: UUID | None
    name: str
    total: int = 0
    pending: int = 0
    approved: int = 0
    rejected: int = 0

    def add(self, status: str) -> None:
        self.total += 1
        if status == ApprovalStatus.PENDING:
            self.pending += 1
        elif status == ApprovalStatus.APPROVED:
            self.approved += 1
        elif status == ApprovalStatus.REJECTED:
            self.rejected += 1


@dataclass
class ApprovalStats:
    """Approval statistics across all periods."""

    total: int = 0
    pending: int = 0
    approved: int = 0
    rejected: int = 0
    by_department: list[ApprovalBreakdown] = field(default_factory=list)
    by_approver: list[ApprovalBreakdown] = field(default_factory=list)
    average_approval_hours: Decimal | None = None


class PayrollReportingService:
    """Query facade over periods, records and approvals."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.settings = get_settings()

    async def list_payroll_periods(
        self,
        status: str | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
        page: int = 1,
        limit: int | None = None,
    ) -> Page[PayrollPeriod]:
        """Periods newest first, filtered by status and date range."""
        stmt = select(PayrollPeriod)
        if status is not None:
            stmt = stmt.where(PayrollPeriod.status == status)
        if start_date is not None:
            stmt = stmt.where(PayrollPeriod.start_date >= start_date)
        if end_date is not None:
            stmt = stmt.where(PayrollPeriod.end_date <= end_date)
        return await self._paginate(
            stmt.order_by(PayrollPeriod.start_date.desc()), page, limit
        )

    async def list_payroll_records(
        self,
        period_id: UUID | None = None,
        employee_id: UUID | None = None,
        department_id: UUID | None = None,
        status: str | None = None,
        page: int = 1,
        limit: int | None = None,
    ) -> Page[PayrollRecord]:
        """Records filtered by period, employee, department and status."""
        stmt = select(PayrollRecord).options(selectinload(PayrollRecord.employee))
        if period_id is not None:
            stmt = stmt.where(PayrollRecord.payroll_period_id == period_id)
        if employee_id is not None:
            stmt = stmt.where(PayrollRecord.employee_id == employee_id)
        if department_id is not None:
            stmt = stmt.where(PayrollRecord.department_id == department_id)
        if status is not None:
            stmt = stmt.where(PayrollRecord.status == status)
        stmt = stmt.join(Employee, Employee.employee_id == PayrollRecord.employee_id).order_by(
            PayrollRecord.created_at.desc(), Employee.employee_number
        )
        return await self._paginate(stmt, page, limit)

    async def get_payroll_record(self, record_id: UUID) -> PayrollRecord:
        """One record with its employee and deduction lines."""
        result = await self.session.execute(
            select(PayrollRecord)
            .where(PayrollRecord.payroll_record_id == record_id)
            .options(
                selectinload(PayrollRecord.deductions),
                selectinload(PayrollRecord.employee),
            )
        )
        record = result.scalar_one_or_none()
        if record is None:
            raise NotFoundError("Payroll record not found", record_id=record_id)
        return record

    async def get_payroll_summary(self, period_id: UUID) -> PayrollSummary:
        """Aggregate totals and status counts for one period."""
        period = await self.session.get(PayrollPeriod, period_id)
        if period is None:
            raise NotFoundError("Payroll period not found", period_id=period_id)

        result = await self.session.execute(
            select(
                PayrollRecord.status,
                func.count(),
                func.sum(PayrollRecord.gross_pay),
                func.sum(PayrollRecord.total_deductions),
                func.sum(PayrollRecord.total_benefits),
                func.sum(PayrollRecord.net_pay),
                func.sum(PayrollRecord.total_worked_hours),
            )
            .where(PayrollRecord.payroll_period_id == period_id)
            .group_by(PayrollRecord.status)
        )

        summary = PayrollSummary(
            period_id=period_id,
            period_name=period.period_name,
            period_status=period.status,
        )
        total_hours = ZERO
        for status, count, gross, deductions, benefits, net, hours in result.all():
            summary.total_employees += count
            summary.total_gross_pay += to_decimal(gross)
            summary.total_deductions += to_decimal(deductions)
            summary.total_benefits += to_decimal(benefits)
            summary.total_net_pay += to_decimal(net)
            total_hours += to_decimal(hours)
            if status == PayrollRecordStatus.DRAFT:
                summary.pending_count = count
            elif status == PayrollRecordStatus.PROCESSED:
                summary.processed_count = count
            elif status == PayrollRecordStatus.PAID:
                summary.paid_count = count

        summary.total_gross_pay = round_money(summary.total_gross_pay)
        summary.total_deductions = round_money(summary.total_deductions)
        summary.total_benefits = round_money(summary.total_benefits)
        summary.total_net_pay = round_money(summary.total_net_pay)
        if summary.total_employees:
            summary.average_worked_hours = round_hours(total_hours / summary.total_employees)
            summary.completion_rate = round_money(
                Decimal(summary.paid_count) * 100 / summary.total_employees
            )
        else:
            summary.average_worked_hours = round_hours(ZERO)
            summary.completion_rate = round_money(ZERO)
        return summary

    async def get_payroll_stats(self, department_id: UUID | None = None) -> PayrollStats:
        """Dashboard statistics.

        Without a department the figures are organization-wide. With one,
        employees and gross pay are limited to that department, and period
        counts come from the periods that department was asked to approve.
        """
        employees_stmt = (
            select(func.count()).select_from(Employee).where(Employee.status == "active")
        )
        gross_stmt = select(func.sum(PayrollRecord.gross_pay))
        if department_id is not None:
            employees_stmt = employees_stmt.where(Employee.department_id == department_id)
            gross_stmt = gross_stmt.where(PayrollRecord.department_id == department_id)

        total_employees = await self.session.scalar(employees_stmt) or 0
        total_gross = round_money(to_decimal(await self.session.scalar(gross_stmt)))

        if department_id is None:
            completed = await self.session.scalar(
                select(func.count())
                .select_from(PayrollPeriod)
                .where(PayrollPeriod.status == PayrollPeriodStatus.COMPLETED.value)
            )
            processing = await self.session.scalar(
                select(func.count())
                .select_from(PayrollPeriod)
                .where(PayrollPeriod.status.in_(IN_PROGRESS_STATUSES))
            )
        else:
            scoped = (
                select(func.count(distinct(PayrollPeriod.payroll_period_id)))
                .select_from(PayrollApproval)
                .join(
                    PayrollPeriod,
                    PayrollPeriod.payroll_period_id == PayrollApproval.payroll_period_id,
                )
                .where(PayrollApproval.department_id == department_id)
            )
            completed = await self.session.scalar(
                scoped.where(PayrollPeriod.status == PayrollPeriodStatus.COMPLETED.value)
            )
            processing = await self.session.scalar(
                scoped.where(PayrollPeriod.status.in_(IN_PROGRESS_STATUSES))
            )

        return PayrollStats(
            total_employees=total_employees,
            total_gross_pay=total_gross,
            completed_periods=completed or 0,
            processing_periods=processing or 0,
            department_id=department_id,
        )

    async def get_approval_stats(self) -> ApprovalStats:
        """Approval totals, breakdowns and average time to decision."""
        result = await self.session.execute(
            select(PayrollApproval, AppUser, Department)
            .join(AppUser, AppUser.user_id == PayrollApproval.approver_id)
            .outerjoin(Department, Department.department_id == PayrollApproval.department_id)
            .order_by(PayrollApproval.created_at)
        )

        stats = ApprovalStats()
        by_department: dict[UUID | None, ApprovalBreakdown] = {}
        by_approver: dict[UUID, ApprovalBreakdown] = {}
        decision_hours: list[Decimal] = []

        for approval, user, department in result.all():
            stats.total += 1
            if approval.status == ApprovalStatus.PENDING:
                stats.pending += 1
            elif approval.status == ApprovalStatus.APPROVED:
                stats.approved += 1
            elif approval.status == ApprovalStatus.REJECTED:
                stats.rejected += 1

            department_key = department.department_id if department else None
            if department_key not in by_department:
                by_department[department_key] = ApprovalBreakdown(
                    key_id=department_key,
                    name=department.name if department else "Human Resources",
                )
            by_department[department_key].add(approval.status)

            if user.user_id not in by_approver:
                by_approver[user.user_id] = ApprovalBreakdown(
                    key_id=user.user_id, name=user.full_name
                )
            by_approver[user.user_id].add(approval.status)

            if approval.status != ApprovalStatus.PENDING and approval.approved_at:
                elapsed = approval.approved_at - approval.created_at
                decision_hours.append(Decimal(str(elapsed.total_seconds())) / 3600)

        stats.by_department = sorted(by_department.values(), key=lambda b: b.name)
        stats.by_approver = sorted(by_approver.values(), key=lambda b: b.name)
        if decision_hours:
            stats.average_approval_hours = round_money(
                sum(decision_hours, ZERO) / len(decision_hours)
            )
        return stats

    # ===== Helpers =====

    async def _paginate(self, stmt: Select[Any], page: int, limit: int | None) -> Page[Any]:
        limit = limit or self.settings.default_page_size
        if page < 1 or limit < 1:
            raise ValidationError("Page and limit must be positive", page=page, limit=limit)

        total = await self.session.scalar(
            select(func.count()).select_from(stmt.order_by(None).subquery())
        )
        result = await self.session.execute(stmt.offset((page - 1) * limit).limit(limit))
        return Page(items=list(result.scalars().all()), total=total or 0, page=page, limit=limit)
