"""Protocols and value types for the data the payroll workflow consumes.

Employees, attendance, deductions, benefits and approvers are owned by
adjacent HR modules. Services receive implementations of these protocols
through their constructors; ``sql_capabilities`` provides the default
SQLAlchemy-backed set.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol
from uuid import UUID

from payroll_workflow.calculators.types import ZERO, BenefitLine, DeductionLine


@dataclass(frozen=True)
class EmployeeCompensation:
    """An active employee with the compensation used for payroll."""

    employee_id: UUID
    employee_number: str
    full_name: str
    department_id: UUID | None
    base_salary: Decimal | None
    hourly_rate: Decimal | None = None


@dataclass(frozen=True)
class AttendanceAggregate:
    """Attendance hours for one employee summed over a payroll period."""

    employee_id: UUID
    regular_hours: Decimal = ZERO
    overtime_hours: Decimal = ZERO
    late_hours: Decimal = ZERO
    paid_leave_hours: Decimal = ZERO
    days_present: int = 0


@dataclass(frozen=True)
class Approver:
    """A user accountable for approving a payroll period."""

    user_id: UUID
    full_name: str
    role: str  # hr / department_head
    department_id: UUID | None = None  # None = HR-wide
    department_name: str | None = None


class EmployeeDirectory(Protocol):
    """Source of employees included in a payroll period."""

    async def list_active(self, period_id: UUID) -> list[EmployeeCompensation]:
        """Return active employees with their compensation."""
        ...


class AttendanceAggregates(Protocol):
    """Source of per-period attendance totals."""

    async def get(self, period_id: UUID, employee_id: UUID) -> AttendanceAggregate:
        """Return summed hours, raising AttendanceNotFoundError when none exist."""
        ...


class DeductionCatalog(Protocol):
    """Source of recurring deductions."""

    async def get_active_balances(
        self, employee_id: UUID, period_id: UUID
    ) -> list[DeductionLine]:
        """Return the deductions to apply to the employee in the period.

        Lines carrying a percentage are resolved against gross pay by the
        calculator.
        """
        ...


class BenefitCatalog(Protocol):
    """Source of recurring benefits."""

    async def get_active_benefits(
        self, employee_id: UUID, period_id: UUID
    ) -> list[BenefitLine]:
        """Return the benefits to add to the employee's pay in the period."""
        ...


class ApproverDirectory(Protocol):
    """Source of approvers accountable for a payroll period."""

    async def list_accountable(self, period_id: UUID) -> list[Approver]:
        """Return HR approvers and department heads, one entry per user."""
        ...


@dataclass
class PayrollCapabilities:
    """The full set of capabilities a payroll service is wired with."""

    employees: EmployeeDirectory
    attendance: AttendanceAggregates
    deductions: DeductionCatalog
    benefits: BenefitCatalog
    approvers: ApproverDirectory
