"""SQLAlchemy-backed implementations of the payroll capabilities."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_workflow.calculators.types import ZERO, BenefitLine, DeductionLine, to_decimal
from payroll_workflow.errors import AttendanceNotFoundError, NotFoundError
from payroll_workflow.models import (
    AppUser,
    AttendanceRecord,
    BenefitType,
    DeductionType,
    Department,
    Employee,
    EmployeeBenefit,
    EmployeeDeductionBalance,
    PayrollPeriod,
)
from payroll_workflow.services.capabilities import (
    Approver,
    AttendanceAggregate,
    EmployeeCompensation,
    PayrollCapabilities,
)


class _PeriodLookup:
    """Shared period loading for capabilities that filter by period dates."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _get_period(self, period_id: UUID) -> PayrollPeriod:
        period = await self.session.get(PayrollPeriod, period_id)
        if period is None:
            raise NotFoundError("Payroll period not found", period_id=period_id)
        return period


class SqlEmployeeDirectory:
    """Active employees from the employee table."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_active(self, period_id: UUID) -> list[EmployeeCompensation]:
        result = await self.session.execute(
            select(Employee)
            .where(Employee.status == "active")
            .order_by(Employee.employee_number)
        )
        return [
            EmployeeCompensation(
                employee_id=emp.employee_id,
                employee_number=emp.employee_number,
                full_name=emp.full_name,
                department_id=emp.department_id,
                base_salary=emp.base_salary,
                hourly_rate=emp.hourly_rate,
            )
            for emp in result.scalars().all()
        ]


class SqlAttendanceAggregates(_PeriodLookup):
    """Sums daily attendance rows that fall inside the period."""

    async def get(self, period_id: UUID, employee_id: UUID) -> AttendanceAggregate:
        period = await self._get_period(period_id)
        result = await self.session.execute(
            select(
                func.count(AttendanceRecord.attendance_record_id),
                func.sum(AttendanceRecord.regular_hours),
                func.sum(AttendanceRecord.overtime_hours),
                func.sum(AttendanceRecord.late_hours),
                func.sum(AttendanceRecord.paid_leave_hours),
            ).where(
                AttendanceRecord.employee_id == employee_id,
                AttendanceRecord.work_date >= period.start_date,
                AttendanceRecord.work_date <= period.end_date,
            )
        )
        days, regular, overtime, late, paid_leave = result.one()
        if not days:
            raise AttendanceNotFoundError(
                "No attendance recorded for employee in period",
                period_id=period_id,
                employee_id=employee_id,
            )
        return AttendanceAggregate(
            employee_id=employee_id,
            regular_hours=to_decimal(regular),
            overtime_hours=to_decimal(overtime),
            late_hours=to_decimal(late),
            paid_leave_hours=to_decimal(paid_leave),
            days_present=int(days),
        )


class SqlDeductionCatalog(_PeriodLookup):
    """Balance installments overlapping the period, then rated deduction types."""

    async def get_active_balances(
        self, employee_id: UUID, period_id: UUID
    ) -> list[DeductionLine]:
        period = await self._get_period(period_id)
        result = await self.session.execute(
            select(EmployeeDeductionBalance, DeductionType)
            .join(
                DeductionType,
                DeductionType.deduction_type_id == EmployeeDeductionBalance.deduction_type_id,
            )
            .where(
                EmployeeDeductionBalance.employee_id == employee_id,
                EmployeeDeductionBalance.is_active.is_(True),
                EmployeeDeductionBalance.remaining_balance > 0,
                EmployeeDeductionBalance.start_date <= period.end_date,
                or_(
                    EmployeeDeductionBalance.end_date.is_(None),
                    EmployeeDeductionBalance.end_date >= period.start_date,
                ),
                DeductionType.is_active.is_(True),
            )
            .order_by(DeductionType.name)
        )
        lines = []
        for balance, deduction_type in result.all():
            # Never deduct more than what is still owed
            amount = min(
                to_decimal(balance.monthly_deduction_amount),
                to_decimal(balance.remaining_balance),
            )
            lines.append(
                DeductionLine(
                    name=deduction_type.name,
                    amount=amount,
                    deduction_type_id=deduction_type.deduction_type_id,
                    employee_deduction_balance_id=balance.employee_deduction_balance_id,
                )
            )

        # Rated types apply to everyone without a balance of the same type
        with_balance = {line.deduction_type_id for line in lines}
        result = await self.session.execute(
            select(DeductionType)
            .where(
                DeductionType.is_active.is_(True),
                or_(
                    DeductionType.percentage.is_not(None),
                    DeductionType.default_amount > 0,
                ),
            )
            .order_by(DeductionType.name)
        )
        for deduction_type in result.scalars().all():
            if deduction_type.deduction_type_id in with_balance:
                continue
            if deduction_type.percentage is not None:
                line = DeductionLine(
                    name=deduction_type.name,
                    amount=ZERO,
                    deduction_type_id=deduction_type.deduction_type_id,
                    percentage=to_decimal(deduction_type.percentage),
                )
            else:
                line = DeductionLine(
                    name=deduction_type.name,
                    amount=to_decimal(deduction_type.default_amount),
                    deduction_type_id=deduction_type.deduction_type_id,
                )
            lines.append(line)
        return lines


class SqlBenefitCatalog(_PeriodLookup):
    """Active employee benefits overlapping the period."""

    async def get_active_benefits(
        self, employee_id: UUID, period_id: UUID
    ) -> list[BenefitLine]:
        period = await self._get_period(period_id)
        result = await self.session.execute(
            select(EmployeeBenefit, BenefitType)
            .join(BenefitType, BenefitType.benefit_type_id == EmployeeBenefit.benefit_type_id)
            .where(
                EmployeeBenefit.employee_id == employee_id,
                EmployeeBenefit.is_active.is_(True),
                EmployeeBenefit.start_date <= period.end_date,
                or_(
                    EmployeeBenefit.end_date.is_(None),
                    EmployeeBenefit.end_date >= period.start_date,
                ),
                BenefitType.is_active.is_(True),
            )
            .order_by(BenefitType.name)
        )
        return [
            BenefitLine(
                name=benefit_type.name,
                amount=to_decimal(benefit.amount),
                benefit_type_id=benefit_type.benefit_type_id,
            )
            for benefit, benefit_type in result.all()
        ]


class SqlApproverDirectory:
    """Active HR users plus active department heads.

    HR users approve organization-wide (no department). A department head
    approves for the department they head; a user heading several
    departments is returned once, for the first department by name.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_accountable(self, period_id: UUID) -> list[Approver]:
        result = await self.session.execute(
            select(AppUser, Department)
            .outerjoin(
                Department,
                (Department.department_head_user_id == AppUser.user_id)
                & Department.is_active.is_(True),
            )
            .where(
                AppUser.is_active.is_(True),
                AppUser.role.in_(("hr", "department_head")),
            )
            .order_by(AppUser.role.desc(), AppUser.last_name, Department.name)
        )

        approvers: list[Approver] = []
        seen: set[UUID] = set()
        for user, department in result.all():
            if user.user_id in seen:
                continue
            seen.add(user.user_id)
            if user.role == "hr":
                department = None
            approvers.append(
                Approver(
                    user_id=user.user_id,
                    full_name=user.full_name,
                    role=user.role,
                    department_id=department.department_id if department else None,
                    department_name=department.name if department else None,
                )
            )
        return approvers


def build_sql_capabilities(session: AsyncSession) -> PayrollCapabilities:
    """Wire the SQL-backed capabilities over one session."""
    return PayrollCapabilities(
        employees=SqlEmployeeDirectory(session),
        attendance=SqlAttendanceAggregates(session),
        deductions=SqlDeductionCatalog(session),
        benefits=SqlBenefitCatalog(session),
        approvers=SqlApproverDirectory(session),
    )
