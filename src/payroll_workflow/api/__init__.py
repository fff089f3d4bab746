"""HTTP API for the payroll workflow."""
