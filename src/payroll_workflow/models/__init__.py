"""SQLAlchemy ORM models."""

from payroll_workflow.models.base import Base, TimestampMixin, utcnow
from payroll_workflow.models.organization import (
    AppUser,
    AttendanceRecord,
    Department,
    Employee,
)
from payroll_workflow.models.payroll import (
    BenefitType,
    DeductionType,
    EmployeeBenefit,
    EmployeeDeductionBalance,
    PayrollApproval,
    PayrollDeduction,
    PayrollPeriod,
    PayrollRecord,
)

__all__ = [
    "Base",
    "TimestampMixin",
    "utcnow",
    "AppUser",
    "AttendanceRecord",
    "Department",
    "Employee",
    "BenefitType",
    "DeductionType",
    "EmployeeBenefit",
    "EmployeeDeductionBalance",
    "PayrollApproval",
    "PayrollDeduction",
    "PayrollPeriod",
    "PayrollRecord",
]
