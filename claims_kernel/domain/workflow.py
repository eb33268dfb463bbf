"""
Claim approval workflow (``claims_kernel.domain.workflow``).

Responsibility
--------------
The claim status state machine, the binding of reviewer roles to review
stages, and the pure planning of a single transition.  ``WorkflowEngine``
loads and persists; this module decides.

Architecture position
---------------------
**Kernel domain layer** -- ZERO I/O.  May import from ``domain/claim`` and
``domain/validation`` only.

Invariants enforced
-------------------
* ``CLAIM_TRANSITIONS`` lists the only status changes the engine performs.
  Approved and Rejected have no outgoing edges; Returned is left by the
  resubmission flow, not by a reviewer.
* A ProgrammeCoordinator acts only on Pending claims, an AcademicManager
  only on PendingManager claims.  Lecturers and HR never act.
* A planned transition stamps only the acting stage's date and notes.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import assert_never

from claims_kernel.domain.claim import Claim, ClaimStatus, UserRole
from claims_kernel.domain.validation import ValidationResult
from claims_kernel.exceptions import ApprovalPermissionError, InvalidClaimTransitionError


class ApprovalAction(str, Enum):
    """What a reviewer does with a claim."""

    APPROVE = "approve"
    REJECT = "reject"
    RETURN = "return"


class ReviewStage(str, Enum):
    """The two sequential human review steps."""

    COORDINATOR = "coordinator"
    MANAGER = "manager"

    @property
    def awaiting_status(self) -> ClaimStatus:
        """Status a claim holds while waiting on this stage."""
        match self:
            case ReviewStage.COORDINATOR:
                return ClaimStatus.PENDING
            case ReviewStage.MANAGER:
                return ClaimStatus.PENDING_MANAGER
            case _:
                assert_never(self)

    @property
    def approved_status(self) -> ClaimStatus:
        """Status a claim moves to when this stage approves."""
        match self:
            case ReviewStage.COORDINATOR:
                return ClaimStatus.PENDING_MANAGER
            case ReviewStage.MANAGER:
                return ClaimStatus.APPROVED
            case _:
                assert_never(self)


class WorkflowFailure(str, Enum):
    """Why a workflow call did not transition the claim."""

    NOT_FOUND = "not_found"
    PERMISSION_DENIED = "permission_denied"
    CONCURRENT_UPDATE = "concurrent_update"
    SYSTEM_ERROR = "system_error"


# =========================================================================
# State machine
# =========================================================================


CLAIM_TRANSITIONS: dict[ClaimStatus, frozenset[ClaimStatus]] = {
    ClaimStatus.PENDING: frozenset({
        ClaimStatus.PENDING_MANAGER,
        ClaimStatus.REJECTED,
        ClaimStatus.RETURNED,
    }),
    ClaimStatus.PENDING_MANAGER: frozenset({
        ClaimStatus.APPROVED,
        ClaimStatus.REJECTED,
        ClaimStatus.RETURNED,
    }),
    ClaimStatus.APPROVED: frozenset(),
    ClaimStatus.REJECTED: frozenset(),
    ClaimStatus.RETURNED: frozenset(),
}

TERMINAL_CLAIM_STATUSES: frozenset[ClaimStatus] = frozenset({
    ClaimStatus.APPROVED,
    ClaimStatus.REJECTED,
})


def stage_for_role(role: UserRole) -> ReviewStage | None:
    """The review stage a role is bound to, or None for non-reviewers."""
    match role:
        case UserRole.PROGRAMME_COORDINATOR:
            return ReviewStage.COORDINATOR
        case UserRole.ACADEMIC_MANAGER:
            return ReviewStage.MANAGER
        case UserRole.LECTURER | UserRole.HR:
            return None
        case _:
            assert_never(role)


def actionable_status(role: UserRole) -> ClaimStatus | None:
    """The one status a role may act on, or None."""
    stage = stage_for_role(role)
    return stage.awaiting_status if stage is not None else None


def can_act(role: UserRole, status: ClaimStatus) -> bool:
    """Role-to-stage binding: may ``role`` act on a claim in ``status``?"""
    return actionable_status(role) == status


def require_stage(
    claim_id: str,
    actor_id: str,
    role: UserRole,
    status: ClaimStatus,
) -> ReviewStage:
    """The stage ``role`` reviews for, if it may act on a claim in ``status``.

    Raises:
        ApprovalPermissionError: for non-reviewers and for a reviewer whose
            stage is not the one the claim is waiting on.
    """
    stage = stage_for_role(role)
    if stage is None or stage.awaiting_status != status:
        raise ApprovalPermissionError(claim_id, actor_id, role.value, status.value)
    return stage


# =========================================================================
# Decisions
# =========================================================================


@dataclass(frozen=True)
class WorkflowDecision:
    """Result of one ``process_workflow`` call.

    ``notifications`` are advisory strings for an external dispatcher; the
    kernel never delivers them.
    """

    success: bool
    message: str
    new_status: ClaimStatus | None = None
    notifications: tuple[str, ...] = ()
    failure: WorkflowFailure | None = None

    @classmethod
    def failed(cls, failure: WorkflowFailure, message: str) -> WorkflowDecision:
        return cls(success=False, message=message, failure=failure)


@dataclass(frozen=True)
class ClaimTransition:
    """A fully planned status change, ready to be applied and persisted."""

    stage: ReviewStage
    from_status: ClaimStatus
    to_status: ClaimStatus
    reviewed_at: datetime
    notes: str
    message: str
    notifications: tuple[str, ...]

    def to_decision(self) -> WorkflowDecision:
        return WorkflowDecision(
            success=True,
            message=self.message,
            new_status=self.to_status,
            notifications=self.notifications,
        )


def format_automated_checks(validation: ValidationResult) -> str:
    """Notes block summarising validation warnings, empty if there are none."""
    if not validation.warnings:
        return ""
    lines = ["", "", "Automated Checks:", *validation.warnings]
    lines.append(f"Risk Score: {validation.risk_score}/100")
    return "\n".join(lines)


def _notes_or_default(comments: str | None, default: str) -> str:
    if comments is None or not comments.strip():
        return default
    return comments


def _lecturer_name(claim: Claim) -> str:
    return claim.lecturer.full_name if claim.lecturer is not None else "(unknown)"


def plan_transition(
    claim: Claim,
    action: ApprovalAction,
    stage: ReviewStage,
    comments: str | None,
    validation: ValidationResult,
    now: datetime,
) -> ClaimTransition:
    """Decide the new status, notes and notifications for a reviewer action.

    Validation warnings are folded into the notes on approval only; they
    never veto the transition.

    Raises:
        InvalidClaimTransitionError: if the claim is not waiting on
            ``stage`` or the target is not an edge of the state machine.
    """
    if claim.status != stage.awaiting_status:
        raise InvalidClaimTransitionError(claim.status.value, action.value)

    lecturer = _lecturer_name(claim)

    match action:
        case ApprovalAction.APPROVE:
            to_status = stage.approved_status
            notes = _notes_or_default(comments, f"Approved by {stage.value}")
            notes += format_automated_checks(validation)
            if stage is ReviewStage.COORDINATOR:
                message = "Claim approved and forwarded to Academic Manager"
                notifications = ("Notify manager: New claim awaiting approval",)
            else:
                message = "Claim approved for payment processing"
                notifications = (
                    f"Notify lecturer {lecturer}: Claim approved - "
                    f"R{claim.total_amount:,.2f}",
                )
        case ApprovalAction.REJECT:
            to_status = ClaimStatus.REJECTED
            notes = _notes_or_default(comments, f"Rejected by {stage.value}")
            message = "Claim rejected"
            notifications = (f"Notify lecturer {lecturer}: Claim rejected",)
        case ApprovalAction.RETURN:
            to_status = ClaimStatus.RETURNED
            notes = _notes_or_default(comments, "Returned for revision")
            message = "Claim returned for revision"
            notifications = (f"Notify lecturer {lecturer}: Claim needs revision",)
        case _:
            assert_never(action)

    if to_status not in CLAIM_TRANSITIONS[claim.status]:
        raise InvalidClaimTransitionError(claim.status.value, to_status.value)

    return ClaimTransition(
        stage=stage,
        from_status=claim.status,
        to_status=to_status,
        reviewed_at=now,
        notes=notes,
        message=message,
        notifications=notifications,
    )
