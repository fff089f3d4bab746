"""Payroll approval coordinator - multi-approver sign-off for payroll periods."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from payroll_workflow.errors import (
    AlreadyResolvedError,
    ConflictError,
    InvalidPeriodStateError,
    InvalidStateError,
    NotFoundError,
    UnauthorizedError,
)
from payroll_workflow.models import PayrollApproval, PayrollPeriod, PayrollRecord, utcnow
from payroll_workflow.services.capabilities import PayrollCapabilities
from payroll_workflow.services.period_service import PayrollPeriodService
from payroll_workflow.services.record_service import GenerationReport, PayrollRecordService
from payroll_workflow.services.sql_capabilities import build_sql_capabilities
from payroll_workflow.services.state_machine import (
    ApprovalStateMachine,
    ApprovalStatus,
    PayrollPeriodStateMachine,
    PayrollPeriodStatus,
    PayrollRecordStatus,
)

logger = logging.getLogger(__name__)


@dataclass
class ApprovalCounts:
    """Approval totals for one period."""

    total: int = 0
    pending: int = 0
    approved: int = 0
    rejected: int = 0


@dataclass
class ApprovalDetail:
    """One approval row with display names resolved."""

    payroll_approval_id: UUID
    approver_id: UUID
    approver_name: str
    department_id: UUID | None
    department_name: str | None
    status: str
    comments: str | None
    approved_at: datetime | None


@dataclass
class ApprovalWorkflowStatus:
    """Read-only view of where a period stands in review."""

    period_id: UUID
    period_status: str
    counts: ApprovalCounts
    approvals: list[ApprovalDetail] = field(default_factory=list)


@dataclass
class SubmissionResult:
    """Result of submitting a period for review."""

    period: PayrollPeriod
    approvals: list[PayrollApproval]
    generation: GenerationReport | None = None


@dataclass
class DecisionResult:
    """Result of an approver's decision."""

    approval: PayrollApproval
    period_status: str
    period_transitioned: bool = False


class PayrollApprovalCoordinator:
    """Creates, tracks and resolves the approvals of a payroll period.

    Every approval decision is followed by a consistency check that recounts
    the period's approvals in the same transaction:
    - any rejection sends the period back to draft
    - all approved completes the period
    - otherwise the period stays in sent_for_review
    """

    def __init__(
        self,
        session: AsyncSession,
        capabilities: PayrollCapabilities | None = None,
        record_service: PayrollRecordService | None = None,
    ):
        self.session = session
        self.capabilities = capabilities or build_sql_capabilities(session)
        self.period_service = PayrollPeriodService(session)
        self.record_service = record_service or PayrollRecordService(
            session, self.capabilities
        )

    async def get_approval(self, approval_id: UUID) -> PayrollApproval:
        """Load an approval, raising NotFoundError if it does not exist."""
        approval = await self.session.get(PayrollApproval, approval_id)
        if approval is None:
            raise NotFoundError("Payroll approval not found", approval_id=approval_id)
        return approval

    # ===== Fan-out =====

    async def create_approval(
        self,
        period_id: UUID,
        approver_id: UUID,
        department_id: UUID | None = None,
    ) -> PayrollApproval:
        """Create a single pending approval.

        Raises ConflictError if the approver already has an approval for the
        period.
        """
        period = await self.period_service.get_payroll_period(period_id)
        self._require_approvals_allowed(period)

        existing = await self.session.scalar(
            select(PayrollApproval.payroll_approval_id).where(
                PayrollApproval.payroll_period_id == period_id,
                PayrollApproval.approver_id == approver_id,
            )
        )
        if existing is not None:
            raise ConflictError(
                "Approver already has an approval for this period",
                period_id=period_id,
                approver_id=approver_id,
                approval_id=existing,
            )

        approval = PayrollApproval(
            payroll_period_id=period_id,
            approver_id=approver_id,
            department_id=department_id,
            status=ApprovalStatus.PENDING.value,
        )
        self.session.add(approval)
        await self.session.flush()
        return approval

    async def create_approvals_for_period(self, period_id: UUID) -> list[PayrollApproval]:
        """Create one pending approval per accountable approver.

        Approvers who already have an approval are skipped, so calling this
        again creates nothing.
        """
        period = await self.period_service.get_payroll_period(period_id)
        self._require_approvals_allowed(period)

        approvers = await self.capabilities.approvers.list_accountable(period_id)
        result = await self.session.execute(
            select(PayrollApproval.approver_id).where(
                PayrollApproval.payroll_period_id == period_id
            )
        )
        existing = set(result.scalars().all())

        created = []
        for approver in approvers:
            if approver.user_id in existing:
                continue
            existing.add(approver.user_id)
            approval = PayrollApproval(
                payroll_period_id=period_id,
                approver_id=approver.user_id,
                department_id=approver.department_id,
                status=ApprovalStatus.PENDING.value,
            )
            self.session.add(approval)
            created.append(approval)
        await self.session.flush()

        logger.info(
            "Created %d payroll approvals (%d approvers accountable)",
            len(created),
            len(approvers),
            extra={"period_id": str(period_id)},
        )
        return created

    async def submit_for_review(
        self, period_id: UUID, regenerate: bool = True
    ) -> SubmissionResult:
        """Send a draft period to its approvers.

        draft → processing, optional record regeneration, approvals from any
        earlier review round removed, fan-out, then processing →
        sent_for_review. A period with no accountable approvers cannot be
        submitted and stays draft.
        """
        period = await self.period_service.get_payroll_period(period_id)
        if period.status != PayrollPeriodStatus.DRAFT:
            raise InvalidPeriodStateError(
                f"Only draft payroll periods can be submitted (current: {period.status})",
                period_id=period_id,
                status=period.status,
            )
        await self.period_service.require_transition(
            period_id, PayrollPeriodStatus.DRAFT, PayrollPeriodStatus.PROCESSING
        )
        period.status = PayrollPeriodStatus.PROCESSING.value

        generation = None
        if regenerate:
            generation = await self.record_service.compute_records(period)

        removed = await self._delete_period_approvals(period_id)
        if removed:
            logger.info(
                "Removed %d approvals from the previous review round",
                removed,
                extra={"period_id": str(period_id)},
            )

        approvals = await self.create_approvals_for_period(period_id)
        if not approvals:
            await self.period_service.require_transition(
                period_id, PayrollPeriodStatus.PROCESSING, PayrollPeriodStatus.DRAFT
            )
            raise InvalidStateError(
                "No accountable approvers for this payroll period",
                period_id=period_id,
            )

        await self.period_service.require_transition(
            period_id, PayrollPeriodStatus.PROCESSING, PayrollPeriodStatus.SENT_FOR_REVIEW
        )
        period.status = PayrollPeriodStatus.SENT_FOR_REVIEW.value

        logger.info(
            "Submitted payroll period %s for review to %d approvers",
            period.period_name,
            len(approvals),
            extra={"period_id": str(period_id)},
        )
        return SubmissionResult(period=period, approvals=approvals, generation=generation)

    # ===== Decisions =====

    async def approve_payroll_approval(
        self,
        approval_id: UUID,
        approver_id: UUID,
        approved: bool,
        comments: str | None = None,
    ) -> DecisionResult:
        """Record an approver's decision and re-evaluate the period."""
        approval = await self.get_approval(approval_id)
        if approval.approver_id != approver_id:
            raise UnauthorizedError(
                "Only the assigned approver can decide this approval",
                approval_id=approval_id,
                approver_id=approver_id,
            )
        new_status = ApprovalStatus.APPROVED if approved else ApprovalStatus.REJECTED
        if not ApprovalStateMachine.can_transition(approval.status, new_status):
            raise AlreadyResolvedError(
                f"Approval has already been {approval.status}",
                approval_id=approval_id,
                status=approval.status,
            )

        period_id = approval.payroll_period_id
        period = await self.period_service.get_payroll_period(period_id)
        if not PayrollPeriodStateMachine.can_decide(period.status):
            raise InvalidPeriodStateError(
                f"Payroll period is not under review (current: {period.status})",
                period_id=period_id,
                approval_id=approval_id,
                status=period.status,
            )

        decided_at = utcnow()
        result = await self.session.execute(
            update(PayrollApproval)
            .where(
                PayrollApproval.payroll_approval_id == approval_id,
                PayrollApproval.status == ApprovalStatus.PENDING.value,
            )
            .values(
                status=new_status.value,
                comments=comments,
                approved_at=decided_at,
                updated_at=decided_at,
            )
        )
        if result.rowcount == 0:
            raise AlreadyResolvedError(
                "Approval was resolved concurrently",
                approval_id=approval_id,
            )
        approval.status = new_status.value
        approval.comments = comments
        approval.approved_at = decided_at

        logger.info(
            "Payroll approval %s",
            new_status.value,
            extra={
                "period_id": str(period_id),
                "approval_id": str(approval_id),
                "approver_id": str(approver_id),
            },
        )

        if approved and approval.department_id is not None:
            await self._mark_records_processed(period_id, approval.department_id)

        period_status, transitioned = await self._apply_consistency_check(period)
        return DecisionResult(
            approval=approval,
            period_status=period_status,
            period_transitioned=transitioned,
        )

    # ===== Queries =====

    async def get_pending_approvals_for_approver(
        self, approver_id: UUID
    ) -> list[PayrollApproval]:
        """Pending approvals assigned to one user, oldest first."""
        result = await self.session.execute(
            select(PayrollApproval)
            .where(
                PayrollApproval.approver_id == approver_id,
                PayrollApproval.status == ApprovalStatus.PENDING.value,
            )
            .options(
                selectinload(PayrollApproval.period),
                selectinload(PayrollApproval.department),
            )
            .order_by(PayrollApproval.created_at)
        )
        return list(result.scalars().all())

    async def get_approval_workflow_status(self, period_id: UUID) -> ApprovalWorkflowStatus:
        """Totals and per-approval details for a period."""
        period = await self.period_service.get_payroll_period(period_id)
        result = await self.session.execute(
            select(PayrollApproval)
            .where(PayrollApproval.payroll_period_id == period_id)
            .options(
                selectinload(PayrollApproval.approver),
                selectinload(PayrollApproval.department),
            )
            .order_by(PayrollApproval.created_at)
        )
        approvals = list(result.scalars().all())

        counts = ApprovalCounts(total=len(approvals))
        details = []
        for approval in approvals:
            if approval.status == ApprovalStatus.PENDING:
                counts.pending += 1
            elif approval.status == ApprovalStatus.APPROVED:
                counts.approved += 1
            elif approval.status == ApprovalStatus.REJECTED:
                counts.rejected += 1
            details.append(
                ApprovalDetail(
                    payroll_approval_id=approval.payroll_approval_id,
                    approver_id=approval.approver_id,
                    approver_name=approval.approver.full_name,
                    department_id=approval.department_id,
                    department_name=approval.department.name if approval.department else None,
                    status=approval.status,
                    comments=approval.comments,
                    approved_at=approval.approved_at,
                )
            )

        return ApprovalWorkflowStatus(
            period_id=period_id,
            period_status=period.status,
            counts=counts,
            approvals=details,
        )

    # ===== Administrative unwind =====

    async def delete_approval(self, approval_id: UUID) -> None:
        """Remove one approval and re-evaluate the period."""
        approval = await self.get_approval(approval_id)
        period = await self.period_service.get_payroll_period(approval.payroll_period_id)
        if period.status == PayrollPeriodStatus.COMPLETED:
            raise InvalidPeriodStateError(
                "Cannot remove approvals of a completed payroll period",
                period_id=period.payroll_period_id,
                approval_id=approval_id,
            )

        await self.session.delete(approval)
        await self.session.flush()
        logger.info(
            "Deleted payroll approval",
            extra={"period_id": str(period.payroll_period_id), "approval_id": str(approval_id)},
        )

        if period.status == PayrollPeriodStatus.SENT_FOR_REVIEW:
            await self._apply_consistency_check(period)

    async def reset_approvals(self, period_id: UUID) -> int:
        """Remove every approval of a period; a period under review returns to draft."""
        period = await self.period_service.get_payroll_period(period_id)
        if period.status == PayrollPeriodStatus.COMPLETED:
            raise InvalidPeriodStateError(
                "Cannot reset approvals of a completed payroll period",
                period_id=period_id,
            )

        removed = await self._delete_period_approvals(period_id)
        if period.status == PayrollPeriodStatus.SENT_FOR_REVIEW:
            await self.period_service.transition_status(
                period_id, PayrollPeriodStatus.SENT_FOR_REVIEW, PayrollPeriodStatus.DRAFT
            )
            period.status = PayrollPeriodStatus.DRAFT.value

        logger.info(
            "Reset %d payroll approvals", removed, extra={"period_id": str(period_id)}
        )
        return removed

    # ===== Helpers =====

    async def count_approvals(self, period_id: UUID) -> ApprovalCounts:
        """Count approvals by status with one grouped query."""
        result = await self.session.execute(
            select(PayrollApproval.status, func.count())
            .where(PayrollApproval.payroll_period_id == period_id)
            .group_by(PayrollApproval.status)
        )
        counts = ApprovalCounts()
        for status, count in result.all():
            counts.total += count
            if status == ApprovalStatus.PENDING:
                counts.pending = count
            elif status == ApprovalStatus.APPROVED:
                counts.approved = count
            elif status == ApprovalStatus.REJECTED:
                counts.rejected = count
        return counts

    async def _apply_consistency_check(self, period: PayrollPeriod) -> tuple[str, bool]:
        """Transition a period under review from its aggregate approval state.

        Returns (period_status, transitioned). The period transition is a
        conditional update, so a racing decision that already moved the
        period makes this a no-op.
        """
        period_id = period.payroll_period_id
        counts = await self.count_approvals(period_id)

        if counts.rejected > 0 or counts.total == 0:
            to_status = PayrollPeriodStatus.DRAFT
        elif counts.approved == counts.total:
            to_status = PayrollPeriodStatus.COMPLETED
        else:
            return period.status, False

        transitioned = await self.period_service.transition_status(
            period_id, PayrollPeriodStatus.SENT_FOR_REVIEW, to_status
        )
        if transitioned:
            period.status = to_status.value
            if to_status == PayrollPeriodStatus.COMPLETED:
                # Records with no department head (or no department) are only
                # processed here, since no department approval covers them
                await self._mark_records_processed(period_id)
            logger.info(
                "Payroll period %s after review (%d approved, %d rejected of %d)",
                to_status.value,
                counts.approved,
                counts.rejected,
                counts.total,
                extra={"period_id": str(period_id)},
            )
        else:
            await self.session.refresh(period)
        return period.status, transitioned

    async def _mark_records_processed(
        self, period_id: UUID, department_id: UUID | None = None
    ) -> int:
        stmt = update(PayrollRecord).where(
            PayrollRecord.payroll_period_id == period_id,
            PayrollRecord.status == PayrollRecordStatus.DRAFT.value,
        )
        if department_id is not None:
            stmt = stmt.where(PayrollRecord.department_id == department_id)
        result = await self.session.execute(
            stmt.values(status=PayrollRecordStatus.PROCESSED.value, updated_at=utcnow())
        )
        return result.rowcount

    async def _delete_period_approvals(self, period_id: UUID) -> int:
        result = await self.session.execute(
            delete(PayrollApproval).where(PayrollApproval.payroll_period_id == period_id)
        )
        return result.rowcount

    @staticmethod
    def _require_approvals_allowed(period: PayrollPeriod) -> None:
        if not PayrollPeriodStateMachine.can_create_approvals(period.status):
            raise InvalidPeriodStateError(
                "Approvals can only be created while a payroll period is processing "
                f"or under review (current: {period.status})",
                period_id=period.payroll_period_id,
                status=period.status,
            )
