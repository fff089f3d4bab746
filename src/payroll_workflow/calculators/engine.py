"""Payroll calculation engine.

Pure computation: no database access. The generation service loads the
inputs through the injected capabilities and persists the result.
"""

from __future__ import annotations

from decimal import Decimal

from payroll_workflow.calculators.types import (
    LATE_DEDUCTION_NAME,
    ZERO,
    DeductionLine,
    PayInputs,
    PayrollComputation,
    round_hours,
    round_money,
)
from payroll_workflow.config import get_settings
from payroll_workflow.errors import ValidationError


class PayrollCalculator:
    """Computes one employee's pay for a payroll period.

    Calculation pipeline (stable order):
    1) Resolve hourly rate (explicit rate, else base / expected hours)
    2) Round hour inputs to 1 dp and reject negatives
    3) Regular pay from credited hours (regular + paid leave, capped)
    4) Overtime pay at the configured multiplier
    5) Gross pay
    6) Late deductions
    7) Total deductions (percentage lines taken against gross, zero lines dropped)
    8) Total benefits
    9) Net pay, clamped at zero
    """

    def __init__(self, overtime_multiplier: Decimal | None = None):
        if overtime_multiplier is None:
            overtime_multiplier = get_settings().overtime_multiplier
        self.overtime_multiplier = Decimal(overtime_multiplier)

    def calculate(self, inputs: PayInputs) -> PayrollComputation:
        """Calculate pay, raising ValidationError for unusable inputs."""
        base_salary = self._validate_salary(inputs)
        expected = Decimal(inputs.expected_monthly_hours)
        if expected <= 0:
            raise ValidationError(
                "Expected monthly hours must be positive",
                employee_id=inputs.employee_id,
                expected_monthly_hours=inputs.expected_monthly_hours,
            )

        # 1) Hourly rate
        hourly_rate = self.resolve_hourly_rate(base_salary, inputs.hourly_rate, expected)

        # 2) Hours
        regular_hours = self._hours(inputs, "regular_hours", inputs.regular_hours)
        overtime_hours = self._hours(inputs, "overtime_hours", inputs.overtime_hours)
        late_hours = self._hours(inputs, "late_hours", inputs.late_hours)
        paid_leave_hours = self._hours(inputs, "paid_leave_hours", inputs.paid_leave_hours)

        # 3) Regular pay
        credited_hours = min(regular_hours + paid_leave_hours, expected)
        if credited_hours >= expected:
            regular_pay = base_salary
        else:
            regular_pay = round_money(base_salary * credited_hours / expected)

        # 4) Overtime pay
        overtime_pay = round_money(overtime_hours * hourly_rate * self.overtime_multiplier)

        # 5) Gross
        gross_pay = round_money(regular_pay + overtime_pay)

        # 6) Late deductions
        late_deductions = round_money(late_hours * hourly_rate)

        # 7) Deductions
        deduction_lines = []
        for line in inputs.deductions:
            amount = self.resolve_deduction(line, gross_pay)
            if amount < 0:
                raise ValidationError(
                    f"Deduction '{line.name}' has a negative amount",
                    employee_id=inputs.employee_id,
                )
            if amount == 0:
                continue
            deduction_lines.append(
                DeductionLine(
                    name=line.name,
                    amount=amount,
                    deduction_type_id=line.deduction_type_id,
                    employee_deduction_balance_id=line.employee_deduction_balance_id,
                    percentage=line.percentage,
                )
            )
        if late_deductions > 0:
            deduction_lines.append(
                DeductionLine(name=LATE_DEDUCTION_NAME, amount=late_deductions)
            )
        total_deductions = round_money(sum((line.amount for line in deduction_lines), ZERO))

        # 8) Benefits
        total_benefits = round_money(
            sum((round_money(line.amount) for line in inputs.benefits), ZERO)
        )

        # 9) Net
        net_pay = round_money(gross_pay - total_deductions + total_benefits)
        net_pay_clamped = net_pay < 0
        if net_pay_clamped:
            net_pay = round_money(ZERO)

        return PayrollComputation(
            employee_id=inputs.employee_id,
            base_salary=base_salary,
            hourly_rate=hourly_rate,
            total_regular_hours=regular_hours,
            total_overtime_hours=overtime_hours,
            total_late_hours=late_hours,
            paid_leave_hours=paid_leave_hours,
            total_worked_hours=round_hours(regular_hours + overtime_hours),
            regular_pay=regular_pay,
            overtime_pay=overtime_pay,
            gross_pay=gross_pay,
            late_deductions=late_deductions,
            total_deductions=total_deductions,
            total_benefits=total_benefits,
            net_pay=net_pay,
            net_pay_clamped=net_pay_clamped,
            deduction_lines=deduction_lines,
        )

    @staticmethod
    def resolve_hourly_rate(
        base_salary: Decimal,
        hourly_rate: Decimal | None,
        expected_monthly_hours: Decimal,
    ) -> Decimal:
        """Explicit rate if set, else base salary spread over expected hours."""
        if hourly_rate is not None and Decimal(hourly_rate) > 0:
            return round_money(hourly_rate)
        return round_money(base_salary / expected_monthly_hours)

    @staticmethod
    def resolve_deduction(line: DeductionLine, gross_pay: Decimal) -> Decimal:
        """Fixed amount, or the line's percentage of gross pay."""
        if line.percentage is not None:
            return round_money(gross_pay * Decimal(line.percentage) / 100)
        return round_money(line.amount)

    @staticmethod
    def _validate_salary(inputs: PayInputs) -> Decimal:
        if inputs.base_salary is None or Decimal(inputs.base_salary) <= 0:
            raise ValidationError(
                "Employee has no base salary",
                employee_id=inputs.employee_id,
            )
        return round_money(inputs.base_salary)

    @staticmethod
    def _hours(inputs: PayInputs, name: str, value: Decimal | None) -> Decimal:
        hours = round_hours(value if value is not None else ZERO)
        if hours < 0:
            raise ValidationError(
                f"{name} cannot be negative",
                employee_id=inputs.employee_id,
                hours=hours,
            )
        return hours
