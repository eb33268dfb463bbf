"""
Tests for WorkflowEngine -- the claim approval state machine.

Covers:
- process_workflow(): coordinator and manager approvals, reject, return,
  notes with automated checks, notifications
- Permission gating: wrong stage, lecturer, HR; nothing mutated
- Not-found claim / approver
- Concurrent update detection through the version column
- System errors rolled back to the savepoint
- get_claims_for_approver() and can_approve_claim()
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select, text

from claims_kernel.domain.claim import ClaimStatus, UserRole
from claims_kernel.domain.clock import Clock
from claims_kernel.domain.workflow import ApprovalAction, WorkflowFailure
from claims_kernel.models.claim import ClaimModel
from claims_kernel.services.validation_service import ValidationEngine
from claims_kernel.services.workflow_service import (
    PERMISSION_DENIED_MESSAGE,
    SYSTEM_ERROR_MESSAGE,
    WorkflowEngine,
)

COORDINATOR_REVIEW = datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def forwarded_claim(make_claim, lecturer):
    """A claim the coordinator has already approved."""
    return make_claim(
        lecturer,
        status=ClaimStatus.PENDING_MANAGER,
        coordinator_approval_date=COORDINATOR_REVIEW,
        coordinator_notes="Checked against timetable",
    )


def _status(session, claim_id) -> str:
    return session.execute(
        select(ClaimModel.status).where(ClaimModel.id == claim_id)
    ).scalar_one()


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


class TestCoordinatorApproval:
    def test_pending_moves_to_pending_manager(
        self, workflow_engine, coordinator, lecturer, make_claim, deterministic_clock
    ):
        claim = make_claim(lecturer)

        decision = workflow_engine.process_workflow(
            claim.id, ApprovalAction.APPROVE, coordinator.id, "Verified"
        )

        assert decision.success
        assert decision.new_status is ClaimStatus.PENDING_MANAGER
        assert decision.message == "Claim approved and forwarded to Academic Manager"
        assert decision.notifications == ("Notify manager: New claim awaiting approval",)
        assert claim.status == ClaimStatus.PENDING_MANAGER.value
        assert claim.coordinator_approval_date == deterministic_clock.now()
        assert claim.coordinator_notes == "Verified"
        assert claim.manager_approval_date is None
        assert claim.manager_notes is None

    def test_empty_comment_uses_default_and_appends_checks(
        self, workflow_engine, coordinator, lecturer, make_claim
    ):
        claim = make_claim(lecturer, hours_worked=Decimal("250"))

        workflow_engine.process_workflow(claim.id, ApprovalAction.APPROVE, coordinator.id, "")

        # 250h x R450 trips both the high-hours and high-amount advisories
        assert claim.coordinator_notes == (
            "Approved by coordinator\n\nAutomated Checks:\n"
            "High hours claimed (250 hours). Please verify timesheet.\n"
            "High total amount (R112,500.00). Requires additional verification.\n"
            "Risk Score: 40/100"
        )

    def test_validation_errors_do_not_veto(
        self, workflow_engine, coordinator, lecturer, make_claim
    ):
        make_claim(lecturer, period="2025-02")
        duplicate = make_claim(lecturer, period="2025-02")

        decision = workflow_engine.process_workflow(
            duplicate.id, ApprovalAction.APPROVE, coordinator.id, "Override"
        )

        assert decision.success
        assert duplicate.status == ClaimStatus.PENDING_MANAGER.value


class TestManagerDecisions:
    def test_manager_approval_is_final(
        self, workflow_engine, manager, forwarded_claim, deterministic_clock
    ):
        decision = workflow_engine.process_workflow(
            forwarded_claim.id, ApprovalAction.APPROVE, manager.id, ""
        )

        assert decision.success
        assert decision.new_status is ClaimStatus.APPROVED
        assert decision.message == "Claim approved for payment processing"
        assert decision.notifications == (
            "Notify lecturer Thandi Nkosi: Claim approved - R45,000.00",
        )
        assert forwarded_claim.manager_approval_date == deterministic_clock.now()
        assert forwarded_claim.manager_notes == "Approved by manager"

    def test_reject_from_pending_manager_keeps_coordinator_fields(
        self, workflow_engine, manager, forwarded_claim
    ):
        decision = workflow_engine.process_workflow(
            forwarded_claim.id, ApprovalAction.REJECT, manager.id, "Hours not on timetable"
        )

        assert decision.success
        assert decision.new_status is ClaimStatus.REJECTED
        assert decision.notifications == ("Notify lecturer Thandi Nkosi: Claim rejected",)
        assert forwarded_claim.status == ClaimStatus.REJECTED.value
        assert forwarded_claim.manager_approval_date is not None
        assert "Hours not on timetable" in forwarded_claim.manager_notes
        assert forwarded_claim.coordinator_notes == "Checked against timetable"
        # Reloaded from the row; SQLite drops the offset
        assert _as_utc(forwarded_claim.coordinator_approval_date) == COORDINATOR_REVIEW

    def test_return_from_pending_manager(self, workflow_engine, manager, forwarded_claim):
        decision = workflow_engine.process_workflow(
            forwarded_claim.id, ApprovalAction.RETURN, manager.id, None
        )

        assert decision.success
        assert decision.new_status is ClaimStatus.RETURNED
        assert decision.message == "Claim returned for revision"
        assert forwarded_claim.manager_notes == "Returned for revision"


class TestRejectAndReturnByCoordinator:
    def test_reject_stamps_coordinator_fields_only(
        self, workflow_engine, coordinator, lecturer, make_claim
    ):
        claim = make_claim(lecturer)

        decision = workflow_engine.process_workflow(
            claim.id, ApprovalAction.REJECT, coordinator.id, ""
        )

        assert decision.success
        assert claim.status == ClaimStatus.REJECTED.value
        assert claim.coordinator_notes == "Rejected by coordinator"
        assert claim.coordinator_approval_date is not None
        assert claim.manager_approval_date is None
        assert claim.manager_notes is None

    def test_return_notifies_lecturer(self, workflow_engine, coordinator, lecturer, make_claim):
        claim = make_claim(lecturer)

        decision = workflow_engine.process_workflow(
            claim.id, ApprovalAction.RETURN, coordinator.id, "Attach timesheet"
        )

        assert decision.notifications == (
            "Notify lecturer Thandi Nkosi: Claim needs revision",
        )
        assert claim.coordinator_notes == "Attach timesheet"

    def test_accepts_action_value_string(self, workflow_engine, coordinator, lecturer, make_claim):
        claim = make_claim(lecturer)
        decision = workflow_engine.process_workflow(claim.id, "return", coordinator.id)
        assert decision.new_status is ClaimStatus.RETURNED


class TestRoundTrip:
    def test_two_approvals_reach_approved(
        self, session, workflow_engine, coordinator, manager, lecturer, make_claim
    ):
        claim = make_claim(
            lecturer, hours_worked=Decimal("100"), hourly_rate=Decimal("450")
        )

        first = workflow_engine.process_workflow(claim.id, ApprovalAction.APPROVE, coordinator.id)
        second = workflow_engine.process_workflow(claim.id, ApprovalAction.APPROVE, manager.id)

        assert first.success and second.success
        assert _status(session, claim.id) == ClaimStatus.APPROVED.value
        dto = claim.to_dto()
        assert dto.total_amount == Decimal("45000")
        assert dto.coordinator_approval_date is not None
        assert dto.manager_approval_date is not None
        assert dto.progress_percentage == 100

    def test_version_increments_per_transition(
        self, workflow_engine, coordinator, manager, lecturer, make_claim
    ):
        claim = make_claim(lecturer)
        assert claim.version == 1

        workflow_engine.process_workflow(claim.id, ApprovalAction.APPROVE, coordinator.id)
        workflow_engine.process_workflow(claim.id, ApprovalAction.APPROVE, manager.id)

        assert claim.version == 3


class TestPermissions:
    def test_manager_cannot_act_on_pending(
        self, session, workflow_engine, manager, lecturer, make_claim
    ):
        claim = make_claim(lecturer)

        decision = workflow_engine.process_workflow(
            claim.id, ApprovalAction.APPROVE, manager.id, "Skip ahead"
        )

        assert not decision.success
        assert decision.failure is WorkflowFailure.PERMISSION_DENIED
        assert decision.message == PERMISSION_DENIED_MESSAGE
        assert _status(session, claim.id) == ClaimStatus.PENDING.value
        assert claim.coordinator_approval_date is None
        assert claim.manager_approval_date is None
        assert claim.version == 1

    def test_coordinator_cannot_act_on_pending_manager(
        self, workflow_engine, coordinator, forwarded_claim
    ):
        decision = workflow_engine.process_workflow(
            forwarded_claim.id, ApprovalAction.REJECT, coordinator.id
        )
        assert decision.failure is WorkflowFailure.PERMISSION_DENIED
        assert forwarded_claim.status == ClaimStatus.PENDING_MANAGER.value

    def test_lecturer_cannot_approve_own_claim(self, workflow_engine, lecturer, make_claim):
        claim = make_claim(lecturer)
        decision = workflow_engine.process_workflow(claim.id, ApprovalAction.APPROVE, lecturer.id)
        assert decision.failure is WorkflowFailure.PERMISSION_DENIED

    def test_hr_cannot_act(self, workflow_engine, hr_user, lecturer, make_claim):
        claim = make_claim(lecturer)
        decision = workflow_engine.process_workflow(claim.id, ApprovalAction.APPROVE, hr_user.id)
        assert decision.failure is WorkflowFailure.PERMISSION_DENIED

    @pytest.mark.parametrize("status", [ClaimStatus.APPROVED, ClaimStatus.REJECTED, ClaimStatus.RETURNED])
    def test_no_reviewer_acts_on_settled_claims(
        self, workflow_engine, coordinator, manager, lecturer, make_claim, status
    ):
        claim = make_claim(lecturer, status=status)
        for reviewer in (coordinator, manager):
            decision = workflow_engine.process_workflow(
                claim.id, ApprovalAction.APPROVE, reviewer.id
            )
            assert decision.failure is WorkflowFailure.PERMISSION_DENIED
        assert claim.status == status.value


class TestNotFound:
    def test_unknown_claim(self, workflow_engine, coordinator):
        decision = workflow_engine.process_workflow(uuid4(), ApprovalAction.APPROVE, coordinator.id)
        assert not decision.success
        assert decision.failure is WorkflowFailure.NOT_FOUND
        assert decision.message == "Claim not found"

    def test_unknown_approver(self, session, workflow_engine, lecturer, make_claim):
        claim = make_claim(lecturer)
        decision = workflow_engine.process_workflow(claim.id, ApprovalAction.APPROVE, uuid4())
        assert decision.failure is WorkflowFailure.NOT_FOUND
        assert decision.message == "Approver not found"
        assert _status(session, claim.id) == ClaimStatus.PENDING.value


class TestFailureHandling:
    def test_concurrent_update_is_detected(
        self, session, claim_selector, deterministic_clock, coordinator, lecturer, make_claim
    ):
        class ConcurrentReviewValidation(ValidationEngine):
            """Bumps the row version between the locked load and the write."""

            def validate(self, claim):
                session.execute(
                    text("UPDATE claims SET version = version + 1 WHERE id = :id"),
                    {"id": str(claim.claim_id)},
                )
                return super().validate(claim)

        engine = WorkflowEngine(
            session,
            ConcurrentReviewValidation(claim_selector, clock=deterministic_clock),
            deterministic_clock,
        )
        claim = make_claim(lecturer)

        decision = engine.process_workflow(claim.id, ApprovalAction.APPROVE, coordinator.id)

        assert not decision.success
        assert decision.failure is WorkflowFailure.CONCURRENT_UPDATE
        assert _status(session, claim.id) == ClaimStatus.PENDING.value

    def test_decides_on_current_row_not_cached_state(
        self, session, workflow_engine, manager, lecturer, make_claim
    ):
        claim = make_claim(lecturer)
        # The coordinator approved through another session; ours still holds Pending
        session.execute(
            text(
                "UPDATE claims SET status = 'pending_manager', version = version + 1 "
                "WHERE id = :id"
            ),
            {"id": str(claim.id)},
        )
        assert workflow_engine.can_approve_claim(claim.id, manager.id, UserRole.ACADEMIC_MANAGER)

        decision = workflow_engine.process_workflow(
            claim.id, ApprovalAction.APPROVE, manager.id, "ok"
        )

        assert decision.success
        assert decision.new_status is ClaimStatus.APPROVED
        assert _status(session, claim.id) == ClaimStatus.APPROVED.value
        assert claim.version == 3

    def test_unexpected_error_reports_system_error(
        self, session, validation_engine, coordinator, lecturer, make_claim, captured_logs
    ):
        class FailingClock(Clock):
            def now(self):
                raise RuntimeError("clock source unavailable")

        engine = WorkflowEngine(session, validation_engine, FailingClock())
        claim = make_claim(lecturer)

        decision = engine.process_workflow(claim.id, ApprovalAction.APPROVE, coordinator.id)

        assert not decision.success
        assert decision.failure is WorkflowFailure.SYSTEM_ERROR
        assert decision.message == SYSTEM_ERROR_MESSAGE
        assert _status(session, claim.id) == ClaimStatus.PENDING.value
        record = next(r for r in captured_logs() if r["message"] == "workflow_system_error")
        assert record["action"] == "approve"
        assert record["exc_type"] == "RuntimeError"


class TestLogging:
    def test_completion_carries_context(
        self, workflow_engine, coordinator, lecturer, make_claim, captured_logs
    ):
        claim = make_claim(lecturer)

        workflow_engine.process_workflow(claim.id, ApprovalAction.APPROVE, coordinator.id)

        record = next(r for r in captured_logs() if r["message"] == "workflow_completed")
        assert record["claim_id"] == str(claim.id)
        assert record["actor_id"] == str(coordinator.id)
        assert record["new_status"] == "pending_manager"

    def test_refusal_is_logged(self, workflow_engine, manager, lecturer, make_claim, captured_logs):
        claim = make_claim(lecturer)
        workflow_engine.process_workflow(claim.id, ApprovalAction.APPROVE, manager.id)
        record = next(r for r in captured_logs() if r["message"] == "workflow_refused")
        assert record["failure"] == "permission_denied"

    def test_permission_denial_names_role_and_status(
        self, workflow_engine, hr_user, lecturer, make_claim, captured_logs
    ):
        claim = make_claim(lecturer)
        workflow_engine.process_workflow(claim.id, ApprovalAction.REJECT, hr_user.id)
        record = next(
            r for r in captured_logs() if r["message"] == "workflow_permission_denied"
        )
        assert record["role"] == "hr"
        assert record["status"] == "pending"


class TestApproverQueues:
    def test_coordinator_sees_pending_oldest_first(
        self, workflow_engine, lecturer, make_user, make_claim, deterministic_clock
    ):
        start = deterministic_clock.now()
        newer = make_claim(lecturer, period="2025-02", submission_date=start)
        older = make_claim(
            make_user(), period="2025-02", submission_date=start - timedelta(days=3)
        )
        make_claim(lecturer, period="2025-01", status=ClaimStatus.PENDING_MANAGER)
        make_claim(lecturer, period="2024-12", status=ClaimStatus.APPROVED)
        make_claim(lecturer, period="2024-11", status=ClaimStatus.RETURNED)

        queue = workflow_engine.get_claims_for_approver(uuid4(), UserRole.PROGRAMME_COORDINATOR)

        assert [c.claim_id for c in queue] == [older.id, newer.id]
        assert all(c.status is ClaimStatus.PENDING for c in queue)

    def test_manager_sees_pending_manager_only(self, workflow_engine, lecturer, make_claim):
        forwarded = make_claim(lecturer, status=ClaimStatus.PENDING_MANAGER)
        make_claim(lecturer, period="2025-01")

        queue = workflow_engine.get_claims_for_approver(uuid4(), UserRole.ACADEMIC_MANAGER)

        assert [c.claim_id for c in queue] == [forwarded.id]

    @pytest.mark.parametrize("role", [UserRole.LECTURER, UserRole.HR])
    def test_other_roles_get_nothing(self, workflow_engine, lecturer, make_claim, role):
        make_claim(lecturer)
        assert workflow_engine.get_claims_for_approver(uuid4(), role) == []


class TestCanApproveClaim:
    def test_matches_stage(self, workflow_engine, coordinator, manager, lecturer, make_claim):
        claim = make_claim(lecturer)
        assert workflow_engine.can_approve_claim(
            claim.id, coordinator.id, UserRole.PROGRAMME_COORDINATOR
        )
        assert not workflow_engine.can_approve_claim(
            claim.id, manager.id, UserRole.ACADEMIC_MANAGER
        )

    @pytest.mark.parametrize("role", [UserRole.LECTURER, UserRole.HR])
    def test_non_reviewers_never(self, workflow_engine, lecturer, make_claim, role):
        claim = make_claim(lecturer)
        assert not workflow_engine.can_approve_claim(claim.id, uuid4(), role)

    def test_unknown_claim(self, workflow_engine):
        assert not workflow_engine.can_approve_claim(
            uuid4(), uuid4(), UserRole.PROGRAMME_COORDINATOR
        )

    def test_does_not_mutate(self, session, workflow_engine, coordinator, lecturer, make_claim):
        claim = make_claim(lecturer)
        workflow_engine.can_approve_claim(claim.id, coordinator.id, UserRole.PROGRAMME_COORDINATOR)
        assert _status(session, claim.id) == ClaimStatus.PENDING.value
        assert claim.version == 1
