"""Payroll workflow: payroll periods, record generation and multi-department approvals."""

__version__ = "0.1.0"
