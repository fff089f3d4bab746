"""FastAPI dependencies for dependency injection."""

from collections.abc import AsyncGenerator
from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_workflow.database import init_db
from payroll_workflow.services.approval_service import PayrollApprovalCoordinator
from payroll_workflow.services.period_service import PayrollPeriodService
from payroll_workflow.services.record_service import PayrollRecordService
from payroll_workflow.services.reporting_service import PayrollReportingService


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency."""
    _, session_factory = init_db()
    async with session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


async def get_current_user_id(
    x_user_id: Annotated[str | None, Header()] = None
) -> UUID:
    """Extract the acting user's ID from header."""
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-User-ID header is required",
        )
    try:
        return UUID(x_user_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid X-User-ID format",
        )


# Type aliases for cleaner dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db_session)]
CurrentUserId = Annotated[UUID, Depends(get_current_user_id)]


def get_period_service(db: DbSession) -> PayrollPeriodService:
    return PayrollPeriodService(db)


def get_record_service(db: DbSession) -> PayrollRecordService:
    return PayrollRecordService(db)


def get_approval_coordinator(db: DbSession) -> PayrollApprovalCoordinator:
    return PayrollApprovalCoordinator(db)


def get_reporting_service(db: DbSession) -> PayrollReportingService:
    return PayrollReportingService(db)


PeriodServiceDep = Annotated[PayrollPeriodService, Depends(get_period_service)]
RecordServiceDep = Annotated[PayrollRecordService, Depends(get_record_service)]
CoordinatorDep = Annotated[PayrollApprovalCoordinator, Depends(get_approval_coordinator)]
ReportingDep = Annotated[PayrollReportingService, Depends(get_reporting_service)]
