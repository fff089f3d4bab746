"""Payroll calculation engine."""

from payroll_workflow.calculators.engine import PayrollCalculator
from payroll_workflow.calculators.types import (
    BenefitLine,
    DeductionLine,
    PayInputs,
    PayrollComputation,
)

__all__ = [
    "PayrollCalculator",
    "BenefitLine",
    "DeductionLine",
    "PayInputs",
    "PayrollComputation",
]
