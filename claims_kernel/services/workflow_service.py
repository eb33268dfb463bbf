"""
claims_kernel.services.workflow_service -- Claim approval workflow.

Responsibility:
    The only code path that changes a claim's review status, review dates or
    review notes.  Loads the claim and the approver, enforces the
    role-to-stage binding, runs a read-only validation pass, plans the
    transition with ``domain/workflow.py`` and persists it in one flush.

Architecture position:
    Kernel > Services.  May import from domain/, models/, selectors/, db/.

Invariants enforced:
    - A ProgrammeCoordinator acts only on Pending claims, an AcademicManager
      only on PendingManager claims.  Lecturers and HR never act.
    - Validation findings never veto a transition; warnings are folded into
      the approval notes.
    - Status, date and notes are written together in a SAVEPOINT.  A failed
      flush rolls the savepoint back and the claim keeps its prior state.
    - ``ClaimModel.version`` detects a concurrent review of the same claim.

Failure modes:
    Every failure is reported as ``WorkflowDecision(success=False)`` with a
    ``WorkflowFailure`` reason; nothing is raised to the caller:
    - NOT_FOUND: claim or approver does not exist.
    - PERMISSION_DENIED: approver's role does not match the claim's stage.
    - CONCURRENT_UPDATE: the claim row changed since it was loaded.
    - SYSTEM_ERROR: any other exception (logged with traceback).
"""

from __future__ import annotations

from typing import assert_never
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from claims_kernel.domain.claim import Claim, ClaimStatus, UserRole
from claims_kernel.domain.clock import Clock, SystemClock
from claims_kernel.domain.workflow import (
    ApprovalAction,
    ClaimTransition,
    ReviewStage,
    WorkflowDecision,
    WorkflowFailure,
    actionable_status,
    can_act,
    plan_transition,
    require_stage,
)
from claims_kernel.exceptions import ApprovalPermissionError, OptimisticLockError
from claims_kernel.logging_config import LogContext, get_logger
from claims_kernel.models.claim import ClaimModel
from claims_kernel.models.user import UserModel
from claims_kernel.selectors.claim_selector import ClaimSelector
from claims_kernel.services.base import BaseService
from claims_kernel.services.validation_service import ValidationEngine

logger = get_logger("services.workflow")

PERMISSION_DENIED_MESSAGE = "You don't have permission to approve this claim"
SYSTEM_ERROR_MESSAGE = "System error processing workflow"
CONCURRENT_UPDATE_MESSAGE = (
    "Claim was changed by another reviewer. Reload the claim and try again."
)


class WorkflowEngine(BaseService[ClaimModel]):
    """
    Applies reviewer actions to claims.

    Contract:
        ``process_workflow`` flushes on success and leaves commit to the
        caller.  The approver's stored role decides the stage they act for.
    """

    def __init__(
        self,
        session: Session,
        validation_engine: ValidationEngine | None = None,
        clock: Clock | None = None,
    ) -> None:
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._selector = ClaimSelector(session)
        self._validation = validation_engine or ValidationEngine(
            self._selector, clock=self._clock
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def process_workflow(
        self,
        claim_id: UUID,
        action: ApprovalAction,
        approver_id: UUID,
        comments: str | None = "",
    ) -> WorkflowDecision:
        """
        Approve, reject or return a claim on behalf of ``approver_id``.

        Args:
            claim_id: Claim to act on.
            action: What the reviewer decided.
            approver_id: Acting user; their role selects the review stage.
            comments: Reviewer notes.  Empty means a default note is stored.

        Returns:
            WorkflowDecision with the new status and notification strings on
            success, or the failure reason otherwise.
        """
        with LogContext.bind(claim_id=str(claim_id), actor_id=str(approver_id)):
            try:
                decision = self._process(
                    claim_id, ApprovalAction(action), approver_id, comments
                )
            except OptimisticLockError as exc:
                logger.warning(
                    "workflow_concurrent_update",
                    extra={"entity_type": exc.entity_type, "entity_id": exc.entity_id},
                )
                return WorkflowDecision.failed(
                    WorkflowFailure.CONCURRENT_UPDATE, CONCURRENT_UPDATE_MESSAGE
                )
            except Exception:
                logger.exception(
                    "workflow_system_error",
                    extra={"action": getattr(action, "value", action)},
                )
                return WorkflowDecision.failed(
                    WorkflowFailure.SYSTEM_ERROR, SYSTEM_ERROR_MESSAGE
                )

            if decision.success:
                logger.info(
                    "workflow_completed",
                    extra={
                        "action": ApprovalAction(action).value,
                        "new_status": decision.new_status.value,
                        "notification_count": len(decision.notifications),
                    },
                )
            else:
                logger.info(
                    "workflow_refused",
                    extra={
                        "failure": decision.failure.value,
                        "reason": decision.message,
                    },
                )
            return decision

    def get_claims_for_approver(self, approver_id: UUID, role: UserRole) -> list[Claim]:
        """
        Claims waiting on ``role``'s review stage, oldest submission first.

        Roles without a review stage get an empty list.
        """
        status = actionable_status(UserRole(role))
        if status is None:
            logger.debug(
                "approver_queue_empty_for_role",
                extra={"approver_id": str(approver_id), "role": str(role)},
            )
            return []
        return self._selector.claims_in_status(status)

    def can_approve_claim(
        self,
        claim_id: UUID,
        approver_id: UUID,
        role: UserRole,
    ) -> bool:
        """True if ``role`` may act on the claim in its current status."""
        status = self.session.execute(
            select(ClaimModel.status).where(ClaimModel.id == claim_id)
        ).scalar_one_or_none()
        if status is None:
            return False
        return can_act(UserRole(role), ClaimStatus(status))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _process(
        self,
        claim_id: UUID,
        action: ApprovalAction,
        approver_id: UUID,
        comments: str | None,
    ) -> WorkflowDecision:
        claim_model = self._load_claim_for_update(claim_id)
        if claim_model is None:
            return WorkflowDecision.failed(WorkflowFailure.NOT_FOUND, "Claim not found")

        approver = self.session.get(UserModel, approver_id)
        if approver is None:
            return WorkflowDecision.failed(
                WorkflowFailure.NOT_FOUND, "Approver not found"
            )

        try:
            stage = require_stage(
                str(claim_id),
                str(approver_id),
                UserRole(approver.role),
                ClaimStatus(claim_model.status),
            )
        except ApprovalPermissionError as exc:
            logger.warning(
                "workflow_permission_denied",
                extra={"role": exc.role, "status": exc.status},
            )
            return WorkflowDecision.failed(
                WorkflowFailure.PERMISSION_DENIED, PERMISSION_DENIED_MESSAGE
            )

        claim = claim_model.to_dto()
        validation = self._validation.validate(claim)

        logger.info(
            "workflow_processing",
            extra={
                "action": action.value,
                "stage": stage.value,
                "approver": approver.username,
                "risk_score": validation.risk_score,
            },
        )

        transition = plan_transition(
            claim, action, stage, comments, validation, self._clock.now()
        )
        self._apply(claim_model, transition)
        return transition.to_decision()

    def _load_claim_for_update(self, claim_id: UUID) -> ClaimModel | None:
        return self.session.execute(
            select(ClaimModel)
            .where(ClaimModel.id == claim_id)
            .with_for_update(of=ClaimModel)
            .execution_options(populate_existing=True)
        ).unique().scalar_one_or_none()

    def _apply(self, claim_model: ClaimModel, transition: ClaimTransition) -> None:
        """Write status, date and notes together, or not at all."""
        try:
            with self.session.begin_nested():
                claim_model.status = transition.to_status.value
                match transition.stage:
                    case ReviewStage.COORDINATOR:
                        claim_model.coordinator_approval_date = transition.reviewed_at
                        claim_model.coordinator_notes = transition.notes
                    case ReviewStage.MANAGER:
                        claim_model.manager_approval_date = transition.reviewed_at
                        claim_model.manager_notes = transition.notes
                    case _:
                        assert_never(transition.stage)
                self.session.flush()
        except StaleDataError as exc:
            raise OptimisticLockError("Claim", str(claim_model.id)) from exc
