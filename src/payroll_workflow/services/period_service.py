"""Payroll period service - owns periods and their lifecycle transitions."""

from __future__ import annotations

import calendar
import logging
from datetime import date, timedelta
from typing import Any
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_workflow.config import get_settings
from payroll_workflow.errors import (
    ConflictError,
    InvalidStateError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from payroll_workflow.models import (
    PayrollApproval,
    PayrollDeduction,
    PayrollPeriod,
    PayrollRecord,
    utcnow,
)
from payroll_workflow.services.state_machine import (
    PayrollPeriodStateMachine,
    PayrollPeriodStatus,
    status_value,
)

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = (
    "period_name",
    "start_date",
    "end_date",
    "working_days",
    "expected_monthly_hours",
)


def count_working_days(start_date: date, end_date: date) -> int:
    """Count Monday-Friday days in [start_date, end_date]."""
    days = 0
    current = start_date
    while current <= end_date:
        if current.weekday() < 5:
            days += 1
        current += timedelta(days=1)
    return days


def month_bounds(year: int, month: int) -> tuple[date, date]:
    """First and last day of a calendar month."""
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


class PayrollPeriodService:
    """Service for managing payroll periods.

    Operations:
    - create/get/update/delete payroll periods
    - transition_status: conditional status update following the state machine
    - generate_monthly_period / generate_yearly_periods: calendar-driven creation
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.settings = get_settings()

    async def get_payroll_period(self, period_id: UUID) -> PayrollPeriod:
        """Load a period, raising NotFoundError if it does not exist."""
        period = await self.session.get(PayrollPeriod, period_id)
        if period is None:
            raise NotFoundError("Payroll period not found", period_id=period_id)
        return period

    async def create_payroll_period(
        self,
        period_name: str,
        start_date: date,
        end_date: date,
        working_days: int | None = None,
        expected_monthly_hours: int | None = None,
    ) -> PayrollPeriod:
        """Create a draft period after validating dates and overlap."""
        self._validate_attributes(period_name, start_date, end_date, expected_monthly_hours)
        await self._ensure_no_overlap(start_date, end_date)

        if expected_monthly_hours is None:
            expected_monthly_hours = self.settings.default_expected_monthly_hours

        period = PayrollPeriod(
            period_name=period_name.strip(),
            start_date=start_date,
            end_date=end_date,
            working_days=working_days,
            expected_monthly_hours=expected_monthly_hours,
            status=PayrollPeriodStatus.DRAFT.value,
        )
        self.session.add(period)
        await self.session.flush()

        logger.info(
            "Created payroll period %s (%s to %s)",
            period.period_name,
            start_date,
            end_date,
            extra={"period_id": str(period.payroll_period_id)},
        )
        return period

    async def update_payroll_period(self, period_id: UUID, **changes: Any) -> PayrollPeriod:
        """Update period attributes; only allowed while the period is draft.

        Status is never changed here; use transition_status.
        """
        period = await self.get_payroll_period(period_id)
        if "status" in changes:
            raise ValidationError(
                "Period status cannot be updated directly", period_id=period_id
            )
        unknown = set(changes) - set(UPDATABLE_FIELDS)
        if unknown:
            raise ValidationError(
                f"Unknown period fields: {', '.join(sorted(unknown))}",
                period_id=period_id,
            )
        if not PayrollPeriodStateMachine.can_modify(period.status):
            raise InvalidStateError(
                f"Cannot update a payroll period in status '{period.status}'",
                period_id=period_id,
                status=period.status,
            )

        period_name = changes.get("period_name", period.period_name)
        start_date = changes.get("start_date", period.start_date)
        end_date = changes.get("end_date", period.end_date)
        expected = changes.get("expected_monthly_hours", period.expected_monthly_hours)
        self._validate_attributes(period_name, start_date, end_date, expected)
        if "start_date" in changes or "end_date" in changes:
            await self._ensure_no_overlap(start_date, end_date, exclude_id=period_id)

        for field_name, value in changes.items():
            if field_name == "period_name":
                value = value.strip()
            setattr(period, field_name, value)
        period.updated_at = utcnow()
        await self.session.flush()

        logger.info(
            "Updated payroll period %s",
            period.period_name,
            extra={"period_id": str(period_id), "fields": sorted(changes)},
        )
        return period

    async def delete_payroll_period(
        self, period_id: UUID, unwind_approvals: bool = False
    ) -> None:
        """Delete a draft period together with its records.

        A period that still has approval rows is only deleted when the caller
        asks to unwind them.
        """
        period = await self.get_payroll_period(period_id)
        if not PayrollPeriodStateMachine.can_modify(period.status):
            raise InvalidStateError(
                f"Cannot delete a payroll period in status '{period.status}'",
                period_id=period_id,
                status=period.status,
            )

        approval_count = await self.session.scalar(
            select(func.count())
            .select_from(PayrollApproval)
            .where(PayrollApproval.payroll_period_id == period_id)
        )
        if approval_count and not unwind_approvals:
            raise InvalidStateError(
                "Payroll period has approvals; unwind them before deleting",
                period_id=period_id,
                approvals=approval_count,
            )

        record_ids = select(PayrollRecord.payroll_record_id).where(
            PayrollRecord.payroll_period_id == period_id
        )
        await self.session.execute(
            delete(PayrollDeduction).where(PayrollDeduction.payroll_record_id.in_(record_ids))
        )
        await self.session.execute(
            delete(PayrollRecord).where(PayrollRecord.payroll_period_id == period_id)
        )
        await self.session.execute(
            delete(PayrollApproval).where(PayrollApproval.payroll_period_id == period_id)
        )
        await self.session.delete(period)
        await self.session.flush()

        logger.info(
            "Deleted payroll period %s",
            period.period_name,
            extra={"period_id": str(period_id), "approvals_removed": approval_count or 0},
        )

    async def transition_status(
        self,
        period_id: UUID,
        from_status: str,
        to_status: str,
    ) -> bool:
        """Move a period between statuses with a conditional update.

        Returns False when the period was no longer in ``from_status`` (a
        concurrent or duplicate transition); the caller decides whether that
        is an error. Raises InvalidTransitionError for illegal transitions.
        """
        PayrollPeriodStateMachine.validate_transition(from_status, to_status)

        result = await self.session.execute(
            update(PayrollPeriod)
            .where(
                PayrollPeriod.payroll_period_id == period_id,
                PayrollPeriod.status == status_value(from_status),
            )
            .values(status=status_value(to_status), updated_at=utcnow())
        )
        if result.rowcount == 0:
            return False

        logger.info(
            "Payroll period status %s -> %s",
            status_value(from_status),
            status_value(to_status),
            extra={"period_id": str(period_id)},
        )
        return True

    async def require_transition(
        self,
        period_id: UUID,
        from_status: str,
        to_status: str,
    ) -> None:
        """Like transition_status, but a lost race is an InvalidTransitionError."""
        if not await self.transition_status(period_id, from_status, to_status):
            period = await self.get_payroll_period(period_id)
            await self.session.refresh(period)
            raise InvalidTransitionError(
                period.status,
                status_value(to_status),
                f"Payroll period is not '{status_value(from_status)}'",
                period_id=period_id,
            )

    # ===== Calendar-driven generation =====

    async def generate_monthly_period(
        self, year: int, month: int
    ) -> tuple[PayrollPeriod, bool]:
        """Create the period for one calendar month.

        Returns (period, created). An existing period overlapping the month
        is returned unchanged with created=False.
        """
        if not 1 <= month <= 12:
            raise ValidationError("Month must be between 1 and 12", month=month)

        start_date, end_date = month_bounds(year, month)
        existing = await self._find_overlapping(start_date, end_date)
        if existing:
            logger.info(
                "Payroll period for %s-%02d already exists",
                year,
                month,
                extra={"period_id": str(existing[0].payroll_period_id)},
            )
            return existing[0], False

        working_days = count_working_days(start_date, end_date)
        period = await self.create_payroll_period(
            period_name=f"{calendar.month_name[month]} {year}",
            start_date=start_date,
            end_date=end_date,
            working_days=working_days,
            expected_monthly_hours=working_days * self.settings.hours_per_working_day,
        )
        return period, True

    async def generate_yearly_periods(self, year: int) -> list[PayrollPeriod]:
        """Create twelve monthly periods, or none if the year already has periods."""
        year_start, _ = month_bounds(year, 1)
        _, year_end = month_bounds(year, 12)
        if await self._find_overlapping(year_start, year_end):
            logger.info("Payroll periods for %s already exist; skipping", year)
            return []

        periods = []
        for month in range(1, 13):
            period, _ = await self.generate_monthly_period(year, month)
            periods.append(period)

        logger.info("Generated %d payroll periods for %s", len(periods), year)
        return periods

    # ===== Helpers =====

    @staticmethod
    def _validate_attributes(
        period_name: str | None,
        start_date: date | None,
        end_date: date | None,
        expected_monthly_hours: int | None,
    ) -> None:
        if not period_name or not period_name.strip():
            raise ValidationError("Period name is required")
        if start_date is None or end_date is None:
            raise ValidationError("Start date and end date are required")
        if start_date >= end_date:
            raise ValidationError(
                "Start date must be before end date",
                start_date=start_date,
                end_date=end_date,
            )
        if expected_monthly_hours is not None and expected_monthly_hours <= 0:
            raise ValidationError(
                "Expected monthly hours must be positive",
                expected_monthly_hours=expected_monthly_hours,
            )

    async def _find_overlapping(
        self,
        start_date: date,
        end_date: date,
        exclude_id: UUID | None = None,
    ) -> list[PayrollPeriod]:
        stmt = select(PayrollPeriod).where(
            PayrollPeriod.start_date <= end_date,
            PayrollPeriod.end_date >= start_date,
        )
        if exclude_id is not None:
            stmt = stmt.where(PayrollPeriod.payroll_period_id != exclude_id)
        result = await self.session.execute(stmt.order_by(PayrollPeriod.start_date))
        return list(result.scalars().all())

    async def _ensure_no_overlap(
        self,
        start_date: date,
        end_date: date,
        exclude_id: UUID | None = None,
    ) -> None:
        overlapping = await self._find_overlapping(start_date, end_date, exclude_id)
        if overlapping:
            raise ConflictError(
                f"Payroll period overlaps '{overlapping[0].period_name}'",
                period_id=overlapping[0].payroll_period_id,
                start_date=start_date,
                end_date=end_date,
            )
