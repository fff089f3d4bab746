"""Payroll approval API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, status

from payroll_workflow.api.dependencies import (
    CoordinatorDep,
    CurrentUserId,
    DbSession,
    ReportingDep,
)
from payroll_workflow.api.schemas import (
    ApprovalResponse,
    ApprovalStatsResponse,
    DecisionRequest,
    DecisionResponse,
    ErrorResponse,
    PendingApprovalResponse,
)

router = APIRouter(prefix="/payroll/approvals", tags=["payroll-approvals"])


@router.get("/pending", response_model=list[PendingApprovalResponse])
async def get_pending_approvals(
    coordinator: CoordinatorDep,
    user_id: CurrentUserId,
) -> list[PendingApprovalResponse]:
    """Pending approvals assigned to the acting user."""
    approvals = await coordinator.get_pending_approvals_for_approver(user_id)

    items = []
    for approval in approvals:
        resp = PendingApprovalResponse.model_validate(approval)
        resp.period_name = approval.period.period_name
        resp.period_start_date = approval.period.start_date
        resp.period_end_date = approval.period.end_date
        resp.department_name = approval.department.name if approval.department else None
        items.append(resp)
    return items


@router.get("/stats", response_model=ApprovalStatsResponse)
async def get_approval_stats(reporting: ReportingDep) -> ApprovalStatsResponse:
    """Approval totals, breakdowns and average time to decision."""
    stats = await reporting.get_approval_stats()
    return ApprovalStatsResponse.model_validate(stats)


@router.post(
    "/{approval_id}/decision",
    response_model=DecisionResponse,
    responses={
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
async def decide_approval(
    db: DbSession,
    coordinator: CoordinatorDep,
    user_id: CurrentUserId,
    approval_id: Annotated[UUID, Path()],
    payload: DecisionRequest,
) -> DecisionResponse:
    """Approve or reject a pending approval as its assigned approver."""
    result = await coordinator.approve_payroll_approval(
        approval_id,
        approver_id=user_id,
        approved=payload.approved,
        comments=payload.comments,
    )
    await db.commit()
    return DecisionResponse(
        approval=ApprovalResponse.model_validate(result.approval),
        period_status=result.period_status,
        period_transitioned=result.period_transitioned,
    )


@router.delete(
    "/{approval_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def delete_approval(
    db: DbSession,
    coordinator: CoordinatorDep,
    approval_id: Annotated[UUID, Path()],
) -> None:
    """Remove a single approval (administrative unwind)."""
    await coordinator.delete_approval(approval_id)
    await db.commit()
