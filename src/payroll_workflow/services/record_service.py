"""Payroll record service - generates, replaces and pays payroll records."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from payroll_workflow.calculators.engine import PayrollCalculator
from payroll_workflow.calculators.types import ZERO, PayInputs, round_money
from payroll_workflow.errors import (
    AttendanceNotFoundError,
    InvalidPeriodStateError,
    InvalidStateError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from payroll_workflow.models import (
    EmployeeDeductionBalance,
    PayrollDeduction,
    PayrollPeriod,
    PayrollRecord,
    utcnow,
)
from payroll_workflow.services.capabilities import (
    AttendanceAggregate,
    EmployeeCompensation,
    PayrollCapabilities,
)
from payroll_workflow.services.period_service import PayrollPeriodService
from payroll_workflow.services.sql_capabilities import build_sql_capabilities
from payroll_workflow.services.state_machine import (
    PayrollPeriodStatus,
    PayrollRecordStateMachine,
    PayrollRecordStatus,
)

logger = logging.getLogger(__name__)


@dataclass
class GenerationIssue:
    """An error or warning raised for one employee during generation."""

    employee_id: UUID
    employee_name: str
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "employee_id": str(self.employee_id),
            "employee_name": self.employee_name,
            "message": self.message,
        }


@dataclass
class GenerationReport:
    """Result of generating the payroll records of a period."""

    period_id: UUID
    records: list[PayrollRecord] = field(default_factory=list)
    errors: list[GenerationIssue] = field(default_factory=list)
    warnings: list[GenerationIssue] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return len(self.errors) == 0

    @property
    def total_gross(self) -> Decimal:
        return round_money(sum((r.gross_pay for r in self.records), ZERO))

    @property
    def total_net(self) -> Decimal:
        return round_money(sum((r.net_pay for r in self.records), ZERO))


class PayrollRecordService:
    """Service for payroll records.

    Operations:
    - generate_payroll_records: draft → processing → draft, replacing records
    - compute_records: replace records of a period already in processing
    - mark_payroll_as_paid / mark_period_records_paid: processed → paid,
      only once the period is completed
    """

    def __init__(
        self,
        session: AsyncSession,
        capabilities: PayrollCapabilities | None = None,
        calculator: PayrollCalculator | None = None,
    ):
        self.session = session
        self.capabilities = capabilities or build_sql_capabilities(session)
        self.calculator = calculator or PayrollCalculator()
        self.period_service = PayrollPeriodService(session)

    async def _load_record(self, record_id: UUID) -> PayrollRecord:
        """Load a record with its deduction lines."""
        result = await self.session.execute(
            select(PayrollRecord)
            .where(PayrollRecord.payroll_record_id == record_id)
            .options(selectinload(PayrollRecord.deductions))
        )
        record = result.scalar_one_or_none()
        if record is None:
            raise NotFoundError("Payroll record not found", record_id=record_id)
        return record

    async def generate_payroll_records(self, period_id: UUID) -> GenerationReport:
        """Compute and persist records for every active employee.

        The period must be draft. It is held in processing while records are
        replaced, which rejects a second concurrent run, and returns to draft
        afterwards. Everything happens in the caller's transaction.
        """
        period = await self.period_service.get_payroll_period(period_id)
        if period.status != PayrollPeriodStatus.DRAFT:
            if period.status == PayrollPeriodStatus.PROCESSING:
                message = "Payroll generation is already in progress for this period"
            else:
                message = f"Cannot generate payroll records in status '{period.status}'"
            raise InvalidStateError(message, period_id=period_id, status=period.status)

        started = await self.period_service.transition_status(
            period_id, PayrollPeriodStatus.DRAFT, PayrollPeriodStatus.PROCESSING
        )
        if not started:
            raise InvalidStateError(
                "Payroll generation is already in progress for this period",
                period_id=period_id,
            )

        report = await self.compute_records(period)

        await self.period_service.require_transition(
            period_id, PayrollPeriodStatus.PROCESSING, PayrollPeriodStatus.DRAFT
        )
        return report

    async def compute_records(self, period: PayrollPeriod) -> GenerationReport:
        """Replace the period's records with freshly computed ones.

        The period must already be in processing.
        """
        if period.status != PayrollPeriodStatus.PROCESSING:
            raise InvalidStateError(
                "Payroll period must be processing to compute records",
                period_id=period.payroll_period_id,
                status=period.status,
            )

        period_id = period.payroll_period_id
        paid = await self.session.scalar(
            select(func.count())
            .select_from(PayrollRecord)
            .where(
                PayrollRecord.payroll_period_id == period_id,
                PayrollRecord.status == PayrollRecordStatus.PAID.value,
            )
        )
        if paid:
            raise InvalidStateError(
                "Payroll period has paid records and cannot be regenerated",
                period_id=period_id,
                paid_records=paid,
            )

        report = GenerationReport(period_id=period_id)
        logger.info(
            "Generating payroll records for %s",
            period.period_name,
            extra={"period_id": str(period_id)},
        )

        removed = await self._delete_records(period_id)
        employees = await self.capabilities.employees.list_active(period_id)

        for employee in employees:
            record = await self._generate_employee(period, employee, report)
            if record is not None:
                report.records.append(record)

        await self.session.flush()
        logger.info(
            "Generated %d payroll records (%d replaced, %d errors, %d warnings)",
            len(report.records),
            removed,
            len(report.errors),
            len(report.warnings),
            extra={"period_id": str(period_id)},
        )
        return report

    async def mark_payroll_as_paid(self, record_id: UUID) -> PayrollRecord:
        """Mark one processed record as paid and draw down its deduction balances."""
        record = await self._load_record(record_id)
        PayrollRecordStateMachine.validate_transition(record.status, PayrollRecordStatus.PAID)
        await self._require_completed_period(record.payroll_period_id)

        paid_at = utcnow()
        result = await self.session.execute(
            update(PayrollRecord)
            .where(
                PayrollRecord.payroll_record_id == record_id,
                PayrollRecord.status == PayrollRecordStatus.PROCESSED.value,
            )
            .values(status=PayrollRecordStatus.PAID.value, paid_at=paid_at, updated_at=paid_at)
        )
        if result.rowcount == 0:
            await self.session.refresh(record)
            raise InvalidTransitionError(
                record.status,
                PayrollRecordStatus.PAID.value,
                "Status changed while marking paid",
                record_id=record_id,
            )

        await self._draw_down_balances(record.deductions)
        await self.session.flush()

        logger.info(
            "Marked payroll record paid",
            extra={"record_id": str(record_id), "period_id": str(record.payroll_period_id)},
        )
        return record

    async def mark_period_records_paid(
        self, period_id: UUID, department_id: UUID | None = None
    ) -> int:
        """Mark every processed record of a period (optionally one department) paid.

        Returns the number of records marked.
        """
        await self._require_completed_period(period_id)

        stmt = (
            select(PayrollRecord)
            .where(
                PayrollRecord.payroll_period_id == period_id,
                PayrollRecord.status == PayrollRecordStatus.PROCESSED.value,
            )
            .options(selectinload(PayrollRecord.deductions))
        )
        if department_id is not None:
            stmt = stmt.where(PayrollRecord.department_id == department_id)
        records = {
            r.payroll_record_id: r for r in (await self.session.execute(stmt)).scalars().all()
        }
        if not records:
            return 0

        paid_at = utcnow()
        result = await self.session.execute(
            update(PayrollRecord)
            .where(
                PayrollRecord.payroll_record_id.in_(list(records)),
                PayrollRecord.status == PayrollRecordStatus.PROCESSED.value,
            )
            .values(status=PayrollRecordStatus.PAID.value, paid_at=paid_at, updated_at=paid_at)
            .returning(PayrollRecord.payroll_record_id)
        )
        # Only rows this update moved to paid draw down their balances
        paid_ids = list(result.scalars().all())
        for record_id in paid_ids:
            await self._draw_down_balances(records[record_id].deductions)
        await self.session.flush()

        logger.info(
            "Marked %d payroll records paid",
            len(paid_ids),
            extra={
                "period_id": str(period_id),
                "department_id": str(department_id) if department_id else None,
            },
        )
        return len(paid_ids)

    # ===== Helpers =====

    async def _require_completed_period(self, period_id: UUID) -> PayrollPeriod:
        period = await self.period_service.get_payroll_period(period_id)
        if period.status != PayrollPeriodStatus.COMPLETED:
            raise InvalidPeriodStateError(
                f"Payroll can only be paid for a completed period (current: {period.status})",
                period_id=period_id,
                status=period.status,
            )
        return period

    async def _generate_employee(
        self,
        period: PayrollPeriod,
        employee: EmployeeCompensation,
        report: GenerationReport,
    ) -> PayrollRecord | None:
        period_id = period.payroll_period_id
        try:
            aggregate = await self.capabilities.attendance.get(period_id, employee.employee_id)
        except AttendanceNotFoundError:
            aggregate = AttendanceAggregate(employee_id=employee.employee_id)
            report.warnings.append(
                GenerationIssue(
                    employee.employee_id,
                    employee.full_name,
                    "No attendance recorded for period; hours set to zero",
                )
            )

        deductions = await self.capabilities.deductions.get_active_balances(
            employee.employee_id, period_id
        )
        benefits = await self.capabilities.benefits.get_active_benefits(
            employee.employee_id, period_id
        )

        inputs = PayInputs(
            employee_id=employee.employee_id,
            base_salary=employee.base_salary,
            hourly_rate=employee.hourly_rate,
            expected_monthly_hours=period.expected_monthly_hours,
            regular_hours=aggregate.regular_hours,
            overtime_hours=aggregate.overtime_hours,
            late_hours=aggregate.late_hours,
            paid_leave_hours=aggregate.paid_leave_hours,
            deductions=deductions,
            benefits=benefits,
        )
        try:
            computation = self.calculator.calculate(inputs)
        except ValidationError as e:
            report.errors.append(
                GenerationIssue(employee.employee_id, employee.full_name, e.message)
            )
            logger.warning(
                "Skipped employee %s: %s",
                employee.employee_number,
                e.message,
                extra={"period_id": str(period_id), "employee_id": str(employee.employee_id)},
            )
            return None

        if computation.net_pay_clamped:
            report.warnings.append(
                GenerationIssue(
                    employee.employee_id,
                    employee.full_name,
                    "Deductions exceed gross pay and benefits; net pay set to 0.00",
                )
            )

        record = PayrollRecord(
            payroll_period_id=period_id,
            department_id=employee.department_id,
            status=PayrollRecordStatus.DRAFT.value,
            **computation.record_values(),
        )
        self.session.add(record)
        await self.session.flush()

        for line in computation.deduction_lines:
            self.session.add(
                PayrollDeduction(
                    payroll_record_id=record.payroll_record_id,
                    deduction_type_id=line.deduction_type_id,
                    employee_deduction_balance_id=line.employee_deduction_balance_id,
                    name=line.name,
                    amount=line.amount,
                )
            )
        return record

    async def _delete_records(self, period_id: UUID) -> int:
        record_ids = select(PayrollRecord.payroll_record_id).where(
            PayrollRecord.payroll_period_id == period_id
        )
        await self.session.execute(
            delete(PayrollDeduction).where(PayrollDeduction.payroll_record_id.in_(record_ids))
        )
        result = await self.session.execute(
            delete(PayrollRecord).where(PayrollRecord.payroll_period_id == period_id)
        )
        return result.rowcount

    async def _draw_down_balances(self, lines: list[PayrollDeduction]) -> None:
        for line in lines:
            if line.employee_deduction_balance_id is None:
                continue
            balance = await self.session.get(
                EmployeeDeductionBalance, line.employee_deduction_balance_id
            )
            if balance is None:
                continue
            remaining = round_money(Decimal(balance.remaining_balance) - Decimal(line.amount))
            if remaining <= 0:
                remaining = round_money(ZERO)
                balance.is_active = False
            balance.remaining_balance = remaining
            balance.updated_at = utcnow()
