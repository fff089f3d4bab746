"""Payroll period, record, deduction and approval models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from payroll_workflow.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from payroll_workflow.models.organization import AppUser, Department, Employee


ZERO = Decimal("0")


# ===== Payroll Periods =====


class PayrollPeriod(Base, TimestampMixin):
    """Payroll period (typically one calendar month)."""

    __tablename__ = "payroll_period"

    payroll_period_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    period_name: Mapped[str] = mapped_column(String, nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    working_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    expected_monthly_hours: Mapped[int] = mapped_column(
        Integer, nullable=False, default=176
    )
    status: Mapped[str] = mapped_column(String, nullable=False, default="draft")

    __table_args__ = (
        CheckConstraint(
            "status IN ('draft', 'processing', 'sent_for_review', 'completed')",
            name="payroll_period_status_check",
        ),
        CheckConstraint("end_date > start_date", name="payroll_period_dates_check"),
        CheckConstraint(
            "expected_monthly_hours > 0", name="payroll_period_expected_hours_check"
        ),
    )

    # Relationships
    records: Mapped[list[PayrollRecord]] = relationship(back_populates="period")
    approvals: Mapped[list[PayrollApproval]] = relationship(back_populates="period")


# ===== Payroll Records =====


class PayrollRecord(Base, TimestampMixin):
    """Computed pay for one employee in one period."""

    __tablename__ = "payroll_record"

    payroll_record_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    payroll_period_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_period.payroll_period_id", ondelete="CASCADE"),
        nullable=False,
    )
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    # Snapshot of the employee's department when the record was generated
    department_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("department.department_id", ondelete="SET NULL"),
        nullable=True,
    )

    base_salary: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    hourly_rate: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    total_worked_hours: Mapped[Decimal] = mapped_column(
        Numeric(8, 1), nullable=False, default=ZERO
    )
    total_regular_hours: Mapped[Decimal] = mapped_column(
        Numeric(8, 1), nullable=False, default=ZERO
    )
    total_overtime_hours: Mapped[Decimal] = mapped_column(
        Numeric(8, 1), nullable=False, default=ZERO
    )
    total_late_hours: Mapped[Decimal] = mapped_column(
        Numeric(8, 1), nullable=False, default=ZERO
    )
    paid_leave_hours: Mapped[Decimal] = mapped_column(
        Numeric(8, 1), nullable=False, default=ZERO
    )

    regular_pay: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=ZERO)
    overtime_pay: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=ZERO)
    late_deductions: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=ZERO
    )
    gross_pay: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=ZERO)
    total_deductions: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=ZERO
    )
    total_benefits: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=ZERO
    )
    net_pay: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=ZERO)
    net_pay_clamped: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    status: Mapped[str] = mapped_column(String, nullable=False, default="draft")
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(), nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "payroll_period_id", "employee_id", name="payroll_record_period_employee_unique"
        ),
        CheckConstraint(
            "status IN ('draft', 'processed', 'paid')",
            name="payroll_record_status_check",
        ),
        CheckConstraint("net_pay >= 0", name="payroll_record_net_pay_check"),
    )

    # Relationships
    period: Mapped[PayrollPeriod] = relationship(back_populates="records")
    employee: Mapped[Employee] = relationship()
    department: Mapped[Department | None] = relationship()
    deductions: Mapped[list[PayrollDeduction]] = relationship(
        back_populates="record",
        order_by="PayrollDeduction.name",
    )


class PayrollDeduction(Base, TimestampMixin):
    """A single deduction applied to a payroll record."""

    __tablename__ = "payroll_deduction"

    payroll_deduction_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    payroll_record_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_record.payroll_record_id", ondelete="CASCADE"),
        nullable=False,
    )
    deduction_type_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("deduction_type.deduction_type_id", ondelete="SET NULL"),
        nullable=True,
    )
    employee_deduction_balance_id: Mapped[UUID | None] = mapped_column(
        ForeignKey(
            "employee_deduction_balance.employee_deduction_balance_id",
            ondelete="SET NULL",
        ),
        nullable=True,
    )
    name: Mapped[str] = mapped_column(String, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    __table_args__ = (
        CheckConstraint("amount >= 0", name="payroll_deduction_amount_check"),
    )

    # Relationships
    record: Mapped[PayrollRecord] = relationship(back_populates="deductions")


# ===== Approvals =====


class PayrollApproval(Base, TimestampMixin):
    """One approver's sign-off request for a payroll period."""

    __tablename__ = "payroll_approval"

    payroll_approval_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    payroll_period_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_period.payroll_period_id", ondelete="CASCADE"),
        nullable=False,
    )
    approver_id: Mapped[UUID] = mapped_column(
        ForeignKey("app_user.user_id", ondelete="CASCADE"),
        nullable=False,
    )
    # Null for HR-wide approvers
    department_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("department.department_id", ondelete="SET NULL"),
        nullable=True,
    )
    status: Mapped[str] = mapped_column(String, nullable=False, default="pending")
    comments: Mapped[str | None] = mapped_column(Text, nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(), nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "payroll_period_id", "approver_id", name="payroll_approval_period_approver_unique"
        ),
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')",
            name="payroll_approval_status_check",
        ),
    )

    # Relationships
    period: Mapped[PayrollPeriod] = relationship(back_populates="approvals")
    approver: Mapped[AppUser] = relationship()
    department: Mapped[Department | None] = relationship()


# ===== Deductions & Benefits =====


class DeductionType(Base, TimestampMixin):
    """Deduction type (loan, cash advance, uniform, ...).

    A type with a percentage or a default amount is withheld from every
    employee; types without either only apply through deduction balances.
    """

    __tablename__ = "deduction_type"

    deduction_type_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    default_amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    percentage: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint(
            "percentage IS NULL OR default_amount IS NULL",
            name="deduction_type_single_rate_check",
        ),
        CheckConstraint(
            "percentage IS NULL OR (percentage >= 0 AND percentage <= 100)",
            name="deduction_type_percentage_check",
        ),
    )


class EmployeeDeductionBalance(Base, TimestampMixin):
    """Outstanding deduction balance repaid in monthly installments."""

    __tablename__ = "employee_deduction_balance"

    employee_deduction_balance_id: Mapped[UUID] = mapped_column(
        primary_key=True, default=uuid4
    )
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    deduction_type_id: Mapped[UUID] = mapped_column(
        ForeignKey("deduction_type.deduction_type_id", ondelete="CASCADE"),
        nullable=False,
    )
    original_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    remaining_balance: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    monthly_deduction_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False
    )
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint(
            "remaining_balance >= 0", name="employee_deduction_balance_remaining_check"
        ),
    )

    # Relationships
    employee: Mapped[Employee] = relationship(back_populates="deduction_balances")
    deduction_type: Mapped[DeductionType] = relationship()


class BenefitType(Base, TimestampMixin):
    """Benefit type (allowance, subsidy, ...)."""

    __tablename__ = "benefit_type"

    benefit_type_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class EmployeeBenefit(Base, TimestampMixin):
    """Recurring monthly benefit assigned to an employee."""

    __tablename__ = "employee_benefit"

    employee_benefit_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    benefit_type_id: Mapped[UUID] = mapped_column(
        ForeignKey("benefit_type.benefit_type_id", ondelete="CASCADE"),
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint("amount >= 0", name="employee_benefit_amount_check"),
    )

    # Relationships
    employee: Mapped[Employee] = relationship(back_populates="benefits")
    benefit_type: Mapped[BenefitType] = relationship()
