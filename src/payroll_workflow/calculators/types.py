"""Type definitions for the payroll calculation pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Any
from uuid import UUID

MONEY_QUANTUM = Decimal("0.01")
HOURS_QUANTUM = Decimal("0.1")
ZERO = Decimal("0")

LATE_DEDUCTION_NAME = "Late deduction"


def round_money(value: Decimal) -> Decimal:
    """Round a money amount to 2 dp (ROUND_HALF_UP)."""
    return Decimal(value).quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)


def round_hours(value: Decimal) -> Decimal:
    """Round an hour amount to 1 dp (ROUND_HALF_UP)."""
    return Decimal(value).quantize(HOURS_QUANTUM, rounding=ROUND_HALF_UP)


@dataclass
class DeductionLine:
    """A deduction to apply to one employee's pay.

    When ``percentage`` is set the calculator withholds that share of gross
    pay and ``amount`` is ignored on input.
    """

    name: str
    amount: Decimal
    deduction_type_id: UUID | None = None
    employee_deduction_balance_id: UUID | None = None
    percentage: Decimal | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "amount": str(self.amount),
            "deduction_type_id": (
                str(self.deduction_type_id) if self.deduction_type_id else None
            ),
            "employee_deduction_balance_id": (
                str(self.employee_deduction_balance_id)
                if self.employee_deduction_balance_id
                else None
            ),
            "percentage": str(self.percentage) if self.percentage is not None else None,
        }


@dataclass
class BenefitLine:
    """A benefit to add to one employee's pay."""

    name: str
    amount: Decimal
    benefit_type_id: UUID | None = None


@dataclass
class PayInputs:
    """Everything the calculator needs for one employee in one period."""

    employee_id: UUID
    base_salary: Decimal | None
    expected_monthly_hours: int
    hourly_rate: Decimal | None = None
    regular_hours: Decimal = ZERO
    overtime_hours: Decimal = ZERO
    late_hours: Decimal = ZERO
    paid_leave_hours: Decimal = ZERO
    deductions: list[DeductionLine] = field(default_factory=list)
    benefits: list[BenefitLine] = field(default_factory=list)


@dataclass
class PayrollComputation:
    """Computed pay for one employee, ready to persist as a payroll record."""

    employee_id: UUID
    base_salary: Decimal
    hourly_rate: Decimal

    total_regular_hours: Decimal
    total_overtime_hours: Decimal
    total_late_hours: Decimal
    paid_leave_hours: Decimal
    total_worked_hours: Decimal

    regular_pay: Decimal
    overtime_pay: Decimal
    gross_pay: Decimal
    late_deductions: Decimal
    total_deductions: Decimal
    total_benefits: Decimal
    net_pay: Decimal
    net_pay_clamped: bool = False

    # Applied deduction lines, including the late deduction line when non-zero
    deduction_lines: list[DeductionLine] = field(default_factory=list)

    def record_values(self) -> dict[str, Any]:
        """Column values for a PayrollRecord row."""
        return {
            "employee_id": self.employee_id,
            "base_salary": self.base_salary,
            "hourly_rate": self.hourly_rate,
            "total_worked_hours": self.total_worked_hours,
            "total_regular_hours": self.total_regular_hours,
            "total_overtime_hours": self.total_overtime_hours,
            "total_late_hours": self.total_late_hours,
            "paid_leave_hours": self.paid_leave_hours,
            "regular_pay": self.regular_pay,
            "overtime_pay": self.overtime_pay,
            "late_deductions": self.late_deductions,
            "gross_pay": self.gross_pay,
            "total_deductions": self.total_deductions,
            "total_benefits": self.total_benefits,
            "net_pay": self.net_pay,
            "net_pay_clamped": self.net_pay_clamped,
        }


def to_decimal(value: object) -> Decimal:
    """Decimal from a driver value (None, float or Decimal); None becomes 0."""
    if value is None:
        return ZERO
    return Decimal(str(value))
