"""Payroll record and statistics API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query

from payroll_workflow.api.dependencies import DbSession, RecordServiceDep, ReportingDep
from payroll_workflow.api.schemas import (
    ErrorResponse,
    PayrollRecordDetailResponse,
    PayrollRecordListResponse,
    PayrollRecordResponse,
    PayrollStatsResponse,
)

router = APIRouter(prefix="/payroll", tags=["payroll-records"])


@router.get("/records", response_model=PayrollRecordListResponse)
async def list_payroll_records(
    reporting: ReportingDep,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int | None, Query(ge=1, le=100)] = None,
    period_id: UUID | None = None,
    employee_id: UUID | None = None,
    department_id: UUID | None = None,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
) -> PayrollRecordListResponse:
    """List payroll records with optional filters."""
    result = await reporting.list_payroll_records(
        period_id=period_id,
        employee_id=employee_id,
        department_id=department_id,
        status=status_filter,
        page=page,
        limit=limit,
    )

    items = []
    for record in result.items:
        resp = PayrollRecordResponse.model_validate(record)
        resp.employee_name = record.employee.full_name
        items.append(resp)

    return PayrollRecordListResponse(
        items=items,
        total=result.total,
        page=result.page,
        limit=result.limit,
        pages=result.pages,
    )


@router.get(
    "/records/{record_id}",
    response_model=PayrollRecordDetailResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_payroll_record(
    reporting: ReportingDep,
    record_id: Annotated[UUID, Path()],
) -> PayrollRecordDetailResponse:
    """Get a payroll record with its deduction lines."""
    record = await reporting.get_payroll_record(record_id)
    resp = PayrollRecordDetailResponse.model_validate(record)
    resp.employee_name = record.employee.full_name
    return resp


@router.post(
    "/records/{record_id}/mark-paid",
    response_model=PayrollRecordDetailResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def mark_payroll_as_paid(
    db: DbSession,
    service: RecordServiceDep,
    reporting: ReportingDep,
    record_id: Annotated[UUID, Path()],
) -> PayrollRecordDetailResponse:
    """Mark a processed payroll record paid."""
    await service.mark_payroll_as_paid(record_id)
    await db.commit()

    record = await reporting.get_payroll_record(record_id)
    resp = PayrollRecordDetailResponse.model_validate(record)
    resp.employee_name = record.employee.full_name
    return resp


@router.get("/stats", response_model=PayrollStatsResponse)
async def get_payroll_stats(
    reporting: ReportingDep,
    department_id: UUID | None = None,
) -> PayrollStatsResponse:
    """Dashboard statistics, organization-wide or for one department."""
    stats = await reporting.get_payroll_stats(department_id)
    return PayrollStatsResponse.model_validate(stats)
