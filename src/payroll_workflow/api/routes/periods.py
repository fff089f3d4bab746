"""Payroll period API endpoints."""

from datetime import date
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, Response, status

from payroll_workflow.api.dependencies import (
    CoordinatorDep,
    DbSession,
    PeriodServiceDep,
    RecordServiceDep,
    ReportingDep,
)
from payroll_workflow.api.schemas import (
    ApprovalDetailResponse,
    ApprovalResponse,
    ApprovalWorkflowStatusResponse,
    ErrorResponse,
    GenerateMonthRequest,
    GenerateMonthResponse,
    GenerateYearRequest,
    GenerateYearResponse,
    GenerationIssueResponse,
    GenerationReportResponse,
    MarkPaidRequest,
    MarkPaidResponse,
    PayrollSummaryResponse,
    PeriodCreate,
    PeriodListResponse,
    PeriodResponse,
    PeriodUpdate,
    SubmitRequest,
    SubmitResponse,
)
from payroll_workflow.services.approval_service import ApprovalWorkflowStatus
from payroll_workflow.services.record_service import GenerationReport

router = APIRouter(prefix="/payroll/periods", tags=["payroll-periods"])


def generation_report_response(report: GenerationReport) -> GenerationReportResponse:
    return GenerationReportResponse(
        period_id=report.period_id,
        records_created=len(report.records),
        total_gross=report.total_gross,
        total_net=report.total_net,
        errors=[GenerationIssueResponse.model_validate(e) for e in report.errors],
        warnings=[GenerationIssueResponse.model_validate(w) for w in report.warnings],
    )


def workflow_status_response(
    workflow: ApprovalWorkflowStatus,
) -> ApprovalWorkflowStatusResponse:
    return ApprovalWorkflowStatusResponse(
        period_id=workflow.period_id,
        period_status=workflow.period_status,
        total=workflow.counts.total,
        pending=workflow.counts.pending,
        approved=workflow.counts.approved,
        rejected=workflow.counts.rejected,
        approvals=[ApprovalDetailResponse.model_validate(a) for a in workflow.approvals],
    )


# ============================================================================
# Payroll Period CRUD
# ============================================================================


@router.post(
    "",
    response_model=PeriodResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def create_payroll_period(
    db: DbSession,
    service: PeriodServiceDep,
    payload: PeriodCreate,
) -> PeriodResponse:
    """Create a new payroll period in draft status."""
    period = await service.create_payroll_period(**payload.model_dump())
    await db.commit()
    return PeriodResponse.model_validate(period)


@router.get("", response_model=PeriodListResponse)
async def list_payroll_periods(
    reporting: ReportingDep,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int | None, Query(ge=1, le=100)] = None,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
    start_date: date | None = None,
    end_date: date | None = None,
) -> PeriodListResponse:
    """List payroll periods with optional filters."""
    result = await reporting.list_payroll_periods(
        status=status_filter,
        start_date=start_date,
        end_date=end_date,
        page=page,
        limit=limit,
    )
    return PeriodListResponse(
        items=[PeriodResponse.model_validate(p) for p in result.items],
        total=result.total,
        page=result.page,
        limit=result.limit,
        pages=result.pages,
    )


@router.post(
    "/generate-year",
    response_model=GenerateYearResponse,
    status_code=status.HTTP_201_CREATED,
)
async def generate_yearly_periods(
    db: DbSession,
    service: PeriodServiceDep,
    payload: GenerateYearRequest,
) -> GenerateYearResponse:
    """Create the twelve monthly periods of a year unless it already has periods."""
    periods = await service.generate_yearly_periods(payload.year)
    await db.commit()
    return GenerateYearResponse(
        year=payload.year,
        created=len(periods),
        periods=[PeriodResponse.model_validate(p) for p in periods],
    )


@router.post("/generate-month", response_model=GenerateMonthResponse)
async def generate_monthly_period(
    db: DbSession,
    service: PeriodServiceDep,
    payload: GenerateMonthRequest,
    response: Response,
) -> GenerateMonthResponse:
    """Create the period for one month, or return the existing one."""
    period, created = await service.generate_monthly_period(payload.year, payload.month)
    await db.commit()
    if created:
        response.status_code = status.HTTP_201_CREATED
    return GenerateMonthResponse(period=PeriodResponse.model_validate(period), created=created)


@router.get(
    "/{period_id}",
    response_model=PeriodResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_payroll_period(
    service: PeriodServiceDep,
    period_id: Annotated[UUID, Path()],
) -> PeriodResponse:
    """Get a specific payroll period by ID."""
    period = await service.get_payroll_period(period_id)
    return PeriodResponse.model_validate(period)


@router.patch(
    "/{period_id}",
    response_model=PeriodResponse,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
async def update_payroll_period(
    db: DbSession,
    service: PeriodServiceDep,
    period_id: Annotated[UUID, Path()],
    payload: PeriodUpdate,
) -> PeriodResponse:
    """Update a draft payroll period."""
    period = await service.update_payroll_period(
        period_id, **payload.model_dump(exclude_unset=True)
    )
    await db.commit()
    return PeriodResponse.model_validate(period)


@router.delete(
    "/{period_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def delete_payroll_period(
    db: DbSession,
    service: PeriodServiceDep,
    period_id: Annotated[UUID, Path()],
    unwind_approvals: bool = False,
) -> None:
    """Delete a draft payroll period and its records."""
    await service.delete_payroll_period(period_id, unwind_approvals=unwind_approvals)
    await db.commit()


# ============================================================================
# Records & Review
# ============================================================================


@router.post(
    "/{period_id}/records/generate",
    response_model=GenerationReportResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def generate_payroll_records(
    db: DbSession,
    service: RecordServiceDep,
    period_id: Annotated[UUID, Path()],
) -> GenerationReportResponse:
    """Generate (or regenerate) payroll records for a draft period."""
    report = await service.generate_payroll_records(period_id)
    await db.commit()
    return generation_report_response(report)


@router.post(
    "/{period_id}/submit",
    response_model=SubmitResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def submit_for_review(
    db: DbSession,
    coordinator: CoordinatorDep,
    period_id: Annotated[UUID, Path()],
    payload: SubmitRequest | None = None,
) -> SubmitResponse:
    """Send a draft period to every accountable approver."""
    regenerate = payload.regenerate if payload is not None else True
    result = await coordinator.submit_for_review(period_id, regenerate=regenerate)
    await db.commit()
    return SubmitResponse(
        period=PeriodResponse.model_validate(result.period),
        approvals=[ApprovalResponse.model_validate(a) for a in result.approvals],
        generation=(
            generation_report_response(result.generation) if result.generation else None
        ),
    )


@router.get(
    "/{period_id}/summary",
    response_model=PayrollSummaryResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_payroll_summary(
    reporting: ReportingDep,
    period_id: Annotated[UUID, Path()],
) -> PayrollSummaryResponse:
    """Totals and status counts for a period."""
    summary = await reporting.get_payroll_summary(period_id)
    return PayrollSummaryResponse.model_validate(summary)


@router.post(
    "/{period_id}/records/mark-paid",
    response_model=MarkPaidResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def mark_period_records_paid(
    db: DbSession,
    service: RecordServiceDep,
    period_id: Annotated[UUID, Path()],
    payload: MarkPaidRequest | None = None,
) -> MarkPaidResponse:
    """Mark a completed period's processed records (optionally one department) paid."""
    department_id = payload.department_id if payload is not None else None
    marked = await service.mark_period_records_paid(period_id, department_id)
    await db.commit()
    return MarkPaidResponse(
        period_id=period_id,
        department_id=department_id,
        records_marked=marked,
    )


# ============================================================================
# Approvals
# ============================================================================


@router.post(
    "/{period_id}/approvals",
    response_model=list[ApprovalResponse],
    status_code=status.HTTP_201_CREATED,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def create_approvals_for_period(
    db: DbSession,
    coordinator: CoordinatorDep,
    period_id: Annotated[UUID, Path()],
) -> list[ApprovalResponse]:
    """Create missing approvals for every accountable approver."""
    approvals = await coordinator.create_approvals_for_period(period_id)
    await db.commit()
    return [ApprovalResponse.model_validate(a) for a in approvals]


@router.get(
    "/{period_id}/approvals/status",
    response_model=ApprovalWorkflowStatusResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_approval_workflow_status(
    coordinator: CoordinatorDep,
    period_id: Annotated[UUID, Path()],
) -> ApprovalWorkflowStatusResponse:
    """Where a period stands in review."""
    workflow = await coordinator.get_approval_workflow_status(period_id)
    return workflow_status_response(workflow)


@router.post(
    "/{period_id}/approvals/reset",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def reset_approvals(
    db: DbSession,
    coordinator: CoordinatorDep,
    period_id: Annotated[UUID, Path()],
) -> None:
    """Remove every approval of a period; a period under review returns to draft."""
    await coordinator.reset_approvals(period_id)
    await db.commit()
