"""Tests for the multi-approver review workflow.

Covers submission fan-out, decisions, the post-decision consistency check
and administrative unwind.
"""

from decimal import Decimal
from uuid import UUID, uuid4

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_workflow.errors import (
    AlreadyResolvedError,
    ConflictError,
    InvalidPeriodStateError,
    InvalidStateError,
    NotFoundError,
    UnauthorizedError,
)
from payroll_workflow.models import (
    AppUser,
    Department,
    Employee,
    PayrollApproval,
    PayrollPeriod,
    PayrollRecord,
)
from payroll_workflow.services.approval_service import (
    PayrollApprovalCoordinator,
    SubmissionResult,
)

pytestmark = pytest.mark.asyncio

APPROVER_KEYS = ("hr", "engineering", "operations")


def approval_for(submitted: SubmissionResult, user: AppUser) -> PayrollApproval:
    return next(a for a in submitted.approvals if a.approver_id == user.user_id)


async def record_statuses(session: AsyncSession, period: PayrollPeriod) -> dict[UUID, str]:
    result = await session.execute(
        select(PayrollRecord.employee_id, PayrollRecord.status).where(
            PayrollRecord.payroll_period_id == period.payroll_period_id
        )
    )
    return dict(result.all())


@pytest.fixture
async def submitted(
    coordinator: PayrollApprovalCoordinator,
    period: PayrollPeriod,
    employees: dict[str, Employee],
    attendance,
    approvers: dict[str, AppUser],
    departments: dict[str, Department],
) -> SubmissionResult:
    """March 2025 submitted for review to all three approvers."""
    return await coordinator.submit_for_review(period.payroll_period_id)


class TestSubmitForReview:
    """draft → processing → sent_for_review with approval fan-out."""

    async def test_creates_one_approval_per_approver(
        self,
        submitted: SubmissionResult,
        approvers: dict[str, AppUser],
        departments: dict[str, Department],
    ):
        assert submitted.period.status == "sent_for_review"
        assert len(submitted.approvals) == 3
        assert all(a.status == "pending" for a in submitted.approvals)

        hr = approval_for(submitted, approvers["hr"])
        assert hr.department_id is None
        eng = approval_for(submitted, approvers["engineering"])
        assert eng.department_id == departments["engineering"].department_id
        ops = approval_for(submitted, approvers["operations"])
        assert ops.department_id == departments["operations"].department_id

    async def test_regenerates_records(
        self, session: AsyncSession, submitted: SubmissionResult, period: PayrollPeriod
    ):
        assert submitted.generation is not None
        assert len(submitted.generation.records) == 2
        assert set((await record_statuses(session, period)).values()) == {"draft"}

    async def test_only_draft_periods_can_be_submitted(
        self,
        coordinator: PayrollApprovalCoordinator,
        submitted: SubmissionResult,
        period: PayrollPeriod,
    ):
        with pytest.raises(InvalidPeriodStateError):
            await coordinator.submit_for_review(period.payroll_period_id)

    async def test_without_approvers_period_stays_draft(
        self,
        session: AsyncSession,
        coordinator: PayrollApprovalCoordinator,
        period: PayrollPeriod,
        approvers: dict[str, AppUser],
        employees: dict[str, Employee],
        attendance,
    ):
        for user in approvers.values():
            user.is_active = False
        await session.flush()

        with pytest.raises(InvalidStateError):
            await coordinator.submit_for_review(period.payroll_period_id)

        await session.refresh(period)
        assert period.status == "draft"

    async def test_head_of_two_departments_gets_one_approval(
        self,
        session: AsyncSession,
        coordinator: PayrollApprovalCoordinator,
        period: PayrollPeriod,
        approvers: dict[str, AppUser],
        departments: dict[str, Department],
        attendance,
    ):
        logistics = Department(
            name="Logistics",
            department_head_user_id=approvers["operations"].user_id,
        )
        session.add(logistics)
        await session.flush()

        result = await coordinator.submit_for_review(period.payroll_period_id)

        assert len(result.approvals) == 3
        ops = approval_for(result, approvers["operations"])
        # First department by name
        assert ops.department_id == logistics.department_id

    async def test_resubmission_replaces_previous_round(
        self,
        session: AsyncSession,
        coordinator: PayrollApprovalCoordinator,
        submitted: SubmissionResult,
        period: PayrollPeriod,
        approvers: dict[str, AppUser],
    ):
        await coordinator.approve_payroll_approval(
            approval_for(submitted, approvers["hr"]).payroll_approval_id,
            approvers["hr"].user_id,
            approved=False,
            comments="Overtime for Engineering looks wrong",
        )
        assert period.status == "draft"

        resubmitted = await coordinator.submit_for_review(period.payroll_period_id)

        counts = await coordinator.count_approvals(period.payroll_period_id)
        assert counts.total == 3
        assert counts.pending == 3
        old_ids = {a.payroll_approval_id for a in submitted.approvals}
        assert old_ids.isdisjoint({a.payroll_approval_id for a in resubmitted.approvals})


class TestCreateApprovals:
    """Direct approval creation."""

    async def test_duplicate_approval_conflicts(
        self,
        coordinator: PayrollApprovalCoordinator,
        submitted: SubmissionResult,
        period: PayrollPeriod,
        approvers: dict[str, AppUser],
    ):
        with pytest.raises(ConflictError):
            await coordinator.create_approval(
                period.payroll_period_id, approvers["hr"].user_id
            )

    async def test_fan_out_is_idempotent(
        self,
        coordinator: PayrollApprovalCoordinator,
        submitted: SubmissionResult,
        period: PayrollPeriod,
    ):
        created = await coordinator.create_approvals_for_period(period.payroll_period_id)

        assert created == []
        counts = await coordinator.count_approvals(period.payroll_period_id)
        assert counts.total == 3

    async def test_not_allowed_for_draft_period(
        self,
        coordinator: PayrollApprovalCoordinator,
        period: PayrollPeriod,
        approvers: dict[str, AppUser],
    ):
        with pytest.raises(InvalidPeriodStateError):
            await coordinator.create_approval(
                period.payroll_period_id, approvers["hr"].user_id
            )


class TestDecisions:
    """Approve / reject and the consistency check."""

    async def test_completes_on_last_approval(
        self,
        session: AsyncSession,
        coordinator: PayrollApprovalCoordinator,
        submitted: SubmissionResult,
        period: PayrollPeriod,
        approvers: dict[str, AppUser],
    ):
        for key in APPROVER_KEYS[:-1]:
            result = await coordinator.approve_payroll_approval(
                approval_for(submitted, approvers[key]).payroll_approval_id,
                approvers[key].user_id,
                approved=True,
            )
            assert result.period_status == "sent_for_review"
            assert result.period_transitioned is False

        last = APPROVER_KEYS[-1]
        result = await coordinator.approve_payroll_approval(
            approval_for(submitted, approvers[last]).payroll_approval_id,
            approvers[last].user_id,
            approved=True,
        )

        assert result.period_status == "completed"
        assert result.period_transitioned is True
        await session.refresh(period)
        assert period.status == "completed"
        assert set((await record_statuses(session, period)).values()) == {"processed"}

    async def test_approval_records_decision(
        self,
        coordinator: PayrollApprovalCoordinator,
        submitted: SubmissionResult,
        approvers: dict[str, AppUser],
    ):
        result = await coordinator.approve_payroll_approval(
            approval_for(submitted, approvers["hr"]).payroll_approval_id,
            approvers["hr"].user_id,
            approved=True,
            comments="Looks good",
        )

        assert result.approval.status == "approved"
        assert result.approval.comments == "Looks good"
        assert result.approval.approved_at is not None

    @pytest.mark.parametrize("rejecter", APPROVER_KEYS)
    async def test_rejection_after_approvals_returns_to_draft(
        self,
        coordinator: PayrollApprovalCoordinator,
        submitted: SubmissionResult,
        period: PayrollPeriod,
        approvers: dict[str, AppUser],
        rejecter: str,
    ):
        for key in APPROVER_KEYS:
            if key == rejecter:
                continue
            await coordinator.approve_payroll_approval(
                approval_for(submitted, approvers[key]).payroll_approval_id,
                approvers[key].user_id,
                approved=True,
            )

        result = await coordinator.approve_payroll_approval(
            approval_for(submitted, approvers[rejecter]).payroll_approval_id,
            approvers[rejecter].user_id,
            approved=False,
        )

        assert result.approval.status == "rejected"
        assert result.approval.approved_at is not None
        assert result.period_status == "draft"
        assert result.period_transitioned is True

    @pytest.mark.parametrize("rejecter", APPROVER_KEYS)
    async def test_first_rejection_ends_review(
        self,
        coordinator: PayrollApprovalCoordinator,
        submitted: SubmissionResult,
        period: PayrollPeriod,
        approvers: dict[str, AppUser],
        rejecter: str,
    ):
        result = await coordinator.approve_payroll_approval(
            approval_for(submitted, approvers[rejecter]).payroll_approval_id,
            approvers[rejecter].user_id,
            approved=False,
        )
        assert result.period_status == "draft"

        # Remaining approvers can no longer decide; the period never completes
        for key in APPROVER_KEYS:
            if key == rejecter:
                continue
            with pytest.raises(InvalidPeriodStateError):
                await coordinator.approve_payroll_approval(
                    approval_for(submitted, approvers[key]).payroll_approval_id,
                    approvers[key].user_id,
                    approved=True,
                )
        assert period.status == "draft"

    async def test_department_approval_processes_its_records(
        self,
        session: AsyncSession,
        coordinator: PayrollApprovalCoordinator,
        submitted: SubmissionResult,
        period: PayrollPeriod,
        approvers: dict[str, AppUser],
        employees: dict[str, Employee],
    ):
        await coordinator.approve_payroll_approval(
            approval_for(submitted, approvers["engineering"]).payroll_approval_id,
            approvers["engineering"].user_id,
            approved=True,
        )

        statuses = await record_statuses(session, period)
        assert statuses[employees["alice"].employee_id] == "processed"
        assert statuses[employees["bob"].employee_id] == "draft"

    async def test_hr_approval_leaves_records_draft(
        self,
        session: AsyncSession,
        coordinator: PayrollApprovalCoordinator,
        submitted: SubmissionResult,
        period: PayrollPeriod,
        approvers: dict[str, AppUser],
    ):
        await coordinator.approve_payroll_approval(
            approval_for(submitted, approvers["hr"]).payroll_approval_id,
            approvers["hr"].user_id,
            approved=True,
        )

        assert set((await record_statuses(session, period)).values()) == {"draft"}

    async def test_completion_processes_records_without_department_head(
        self,
        session: AsyncSession,
        coordinator: PayrollApprovalCoordinator,
        period: PayrollPeriod,
        approvers: dict[str, AppUser],
        departments: dict[str, Department],
        employees: dict[str, Employee],
        attendance,
    ):
        departments["operations"].department_head_user_id = None
        await session.flush()
        result = await coordinator.submit_for_review(period.payroll_period_id)
        assert all(
            a.department_id != departments["operations"].department_id
            for a in result.approvals
        )

        for approval in result.approvals[:-1]:
            await coordinator.approve_payroll_approval(
                approval.payroll_approval_id, approval.approver_id, approved=True
            )
        statuses = await record_statuses(session, period)
        assert statuses[employees["bob"].employee_id] == "draft"

        last = result.approvals[-1]
        await coordinator.approve_payroll_approval(
            last.payroll_approval_id, last.approver_id, approved=True
        )

        assert period.status == "completed"
        statuses = await record_statuses(session, period)
        assert set(statuses.values()) == {"processed"}

    async def test_processed_records_kept_after_rejection(
        self,
        session: AsyncSession,
        coordinator: PayrollApprovalCoordinator,
        submitted: SubmissionResult,
        period: PayrollPeriod,
        approvers: dict[str, AppUser],
        employees: dict[str, Employee],
    ):
        await coordinator.approve_payroll_approval(
            approval_for(submitted, approvers["engineering"]).payroll_approval_id,
            approvers["engineering"].user_id,
            approved=True,
        )
        await coordinator.approve_payroll_approval(
            approval_for(submitted, approvers["operations"]).payroll_approval_id,
            approvers["operations"].user_id,
            approved=False,
        )

        assert period.status == "draft"
        statuses = await record_statuses(session, period)
        assert statuses[employees["alice"].employee_id] == "processed"
        assert statuses[employees["bob"].employee_id] == "draft"

    async def test_only_assigned_approver_can_decide(
        self,
        coordinator: PayrollApprovalCoordinator,
        submitted: SubmissionResult,
        approvers: dict[str, AppUser],
    ):
        with pytest.raises(UnauthorizedError):
            await coordinator.approve_payroll_approval(
                approval_for(submitted, approvers["hr"]).payroll_approval_id,
                approvers["engineering"].user_id,
                approved=True,
            )

    async def test_decision_is_final(
        self,
        coordinator: PayrollApprovalCoordinator,
        submitted: SubmissionResult,
        approvers: dict[str, AppUser],
    ):
        approval_id = approval_for(submitted, approvers["hr"]).payroll_approval_id
        await coordinator.approve_payroll_approval(
            approval_id, approvers["hr"].user_id, approved=True
        )

        with pytest.raises(AlreadyResolvedError):
            await coordinator.approve_payroll_approval(
                approval_id, approvers["hr"].user_id, approved=False
            )
        with pytest.raises(AlreadyResolvedError):
            await coordinator.approve_payroll_approval(
                approval_id, approvers["hr"].user_id, approved=True
            )

    async def test_requires_period_under_review(
        self,
        session: AsyncSession,
        coordinator: PayrollApprovalCoordinator,
        submitted: SubmissionResult,
        period: PayrollPeriod,
        approvers: dict[str, AppUser],
    ):
        period.status = "processing"
        await session.flush()

        with pytest.raises(InvalidPeriodStateError):
            await coordinator.approve_payroll_approval(
                approval_for(submitted, approvers["hr"]).payroll_approval_id,
                approvers["hr"].user_id,
                approved=True,
            )

    async def test_unknown_approval(
        self, coordinator: PayrollApprovalCoordinator, approvers: dict[str, AppUser]
    ):
        with pytest.raises(NotFoundError):
            await coordinator.approve_payroll_approval(
                uuid4(), approvers["hr"].user_id, approved=True
            )


class TestQueries:
    """Pending approvals and workflow status."""

    async def test_pending_approvals_for_approver(
        self,
        coordinator: PayrollApprovalCoordinator,
        submitted: SubmissionResult,
        approvers: dict[str, AppUser],
    ):
        pending = await coordinator.get_pending_approvals_for_approver(
            approvers["engineering"].user_id
        )

        assert len(pending) == 1
        assert pending[0].period.period_name == "March 2025"
        assert pending[0].department.name == "Engineering"

        await coordinator.approve_payroll_approval(
            pending[0].payroll_approval_id,
            approvers["engineering"].user_id,
            approved=True,
        )
        assert (
            await coordinator.get_pending_approvals_for_approver(
                approvers["engineering"].user_id
            )
            == []
        )

    async def test_workflow_status(
        self,
        coordinator: PayrollApprovalCoordinator,
        submitted: SubmissionResult,
        period: PayrollPeriod,
        approvers: dict[str, AppUser],
    ):
        await coordinator.approve_payroll_approval(
            approval_for(submitted, approvers["hr"]).payroll_approval_id,
            approvers["hr"].user_id,
            approved=True,
        )

        workflow = await coordinator.get_approval_workflow_status(period.payroll_period_id)

        assert workflow.period_status == "sent_for_review"
        assert workflow.counts.total == 3
        assert workflow.counts.approved == 1
        assert workflow.counts.pending == 2
        assert workflow.counts.rejected == 0
        names = {d.approver_name for d in workflow.approvals}
        assert names == {"Helen Reyes", "Ethan Cole", "Olivia Park"}

    async def test_count_approvals(
        self,
        coordinator: PayrollApprovalCoordinator,
        submitted: SubmissionResult,
        period: PayrollPeriod,
        approvers: dict[str, AppUser],
    ):
        await coordinator.approve_payroll_approval(
            approval_for(submitted, approvers["operations"]).payroll_approval_id,
            approvers["operations"].user_id,
            approved=False,
        )

        counts = await coordinator.count_approvals(period.payroll_period_id)

        assert (counts.total, counts.pending, counts.approved, counts.rejected) == (3, 2, 0, 1)


class TestUnwind:
    """Deleting and resetting approvals."""

    async def test_deleting_last_pending_completes_period(
        self,
        coordinator: PayrollApprovalCoordinator,
        submitted: SubmissionResult,
        period: PayrollPeriod,
        approvers: dict[str, AppUser],
    ):
        for key in ("hr", "engineering"):
            await coordinator.approve_payroll_approval(
                approval_for(submitted, approvers[key]).payroll_approval_id,
                approvers[key].user_id,
                approved=True,
            )

        await coordinator.delete_approval(
            approval_for(submitted, approvers["operations"]).payroll_approval_id
        )

        assert period.status == "completed"

    async def test_deleting_every_approval_returns_to_draft(
        self,
        coordinator: PayrollApprovalCoordinator,
        submitted: SubmissionResult,
        period: PayrollPeriod,
    ):
        for approval in submitted.approvals:
            await coordinator.delete_approval(approval.payroll_approval_id)

        assert period.status == "draft"

    async def test_cannot_delete_from_completed_period(
        self,
        coordinator: PayrollApprovalCoordinator,
        submitted: SubmissionResult,
        period: PayrollPeriod,
        approvers: dict[str, AppUser],
    ):
        for key in APPROVER_KEYS:
            await coordinator.approve_payroll_approval(
                approval_for(submitted, approvers[key]).payroll_approval_id,
                approvers[key].user_id,
                approved=True,
            )

        with pytest.raises(InvalidPeriodStateError):
            await coordinator.delete_approval(submitted.approvals[0].payroll_approval_id)
        with pytest.raises(InvalidPeriodStateError):
            await coordinator.reset_approvals(period.payroll_period_id)

    async def test_reset_approvals(
        self,
        coordinator: PayrollApprovalCoordinator,
        submitted: SubmissionResult,
        period: PayrollPeriod,
    ):
        removed = await coordinator.reset_approvals(period.payroll_period_id)

        assert removed == 3
        assert period.status == "draft"
        counts = await coordinator.count_approvals(period.payroll_period_id)
        assert counts.total == 0


class TestMarkPaidAfterCompletion:
    """Completed periods can be paid out."""

    async def test_pay_completed_period(
        self,
        session: AsyncSession,
        coordinator: PayrollApprovalCoordinator,
        submitted: SubmissionResult,
        period: PayrollPeriod,
        approvers: dict[str, AppUser],
    ):
        for key in APPROVER_KEYS:
            await coordinator.approve_payroll_approval(
                approval_for(submitted, approvers[key]).payroll_approval_id,
                approvers[key].user_id,
                approved=True,
            )

        marked = await coordinator.record_service.mark_period_records_paid(
            period.payroll_period_id
        )

        assert marked == 2
        result = await session.execute(
            select(PayrollRecord.net_pay).where(PayrollRecord.status == "paid")
        )
        assert sorted(result.scalars().all()) == [Decimal("12000.00"), Decimal("15550.00")]

    async def test_department_approval_alone_does_not_allow_payment(
        self,
        session: AsyncSession,
        coordinator: PayrollApprovalCoordinator,
        submitted: SubmissionResult,
        period: PayrollPeriod,
        approvers: dict[str, AppUser],
        employees: dict[str, Employee],
    ):
        await coordinator.approve_payroll_approval(
            approval_for(submitted, approvers["engineering"]).payroll_approval_id,
            approvers["engineering"].user_id,
            approved=True,
        )
        statuses = await record_statuses(session, period)
        assert statuses[employees["alice"].employee_id] == "processed"
        alice_record = await session.scalar(
            select(PayrollRecord).where(
                PayrollRecord.employee_id == employees["alice"].employee_id
            )
        )

        with pytest.raises(InvalidPeriodStateError):
            await coordinator.record_service.mark_payroll_as_paid(
                alice_record.payroll_record_id
            )
        with pytest.raises(InvalidPeriodStateError):
            await coordinator.record_service.mark_period_records_paid(
                period.payroll_period_id, employees["alice"].department_id
            )

        # A later rejection and resubmission still finds nothing paid to lose
        await coordinator.approve_payroll_approval(
            approval_for(submitted, approvers["hr"]).payroll_approval_id,
            approvers["hr"].user_id,
            approved=False,
        )
        resubmitted = await coordinator.submit_for_review(period.payroll_period_id)

        assert resubmitted.period.status == "sent_for_review"
        statuses = await record_statuses(session, period)
        assert set(statuses.values()) == {"draft"}
