"""API routes."""

from payroll_workflow.api.routes.approvals import router as approvals_router
from payroll_workflow.api.routes.health import router as health_router
from payroll_workflow.api.routes.periods import router as periods_router
from payroll_workflow.api.routes.records import router as records_router

__all__ = ["approvals_router", "health_router", "periods_router", "records_router"]
