"""
Typed Exception Hierarchy for the Claims Kernel.

Every error has a typed class, a machine-readable ``code`` class attribute,
and carries its context as structured attributes rather than only in the
message string.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    ClaimsKernelError (base)
    |
    +-- ClaimError
    |   +-- ClaimNotFoundError
    |   +-- InvalidClaimPeriodError
    |   +-- ClaimNotEditableError
    |   +-- ClaimValidationFailedError
    |
    +-- UserError
    |   +-- UserNotFoundError
    |
    +-- WorkflowError
    |   +-- ApprovalPermissionError
    |   +-- InvalidClaimTransitionError
    |
    +-- DocumentError
    |   +-- DocumentNotFoundError
    |   +-- DocumentRejectedError
    |
    +-- ConcurrencyError
        +-- OptimisticLockError

===============================================================================
HANDLING PATTERNS
===============================================================================

The two engines at the core (validation, workflow) absorb business-rule
failures and report them as result objects.  The exceptions below are
raised internally and converted at the engine boundary, or raised to the
caller by the outer services (submission, documents):

    try:
        result = submissions.submit_claim(...)
    except ClaimValidationFailedError as e:
        render_errors(e.errors)          # structured data, not parsing
    except UserNotFoundError as e:
        api_response(code=e.code, user=e.user_id)
"""


class ClaimsKernelError(Exception):
    """
    Base exception for all claims kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "CLAIMS_KERNEL_ERROR"


# Claim-related exceptions


class ClaimError(ClaimsKernelError):
    """Base exception for claim-related errors."""

    code: str = "CLAIM_ERROR"


class ClaimNotFoundError(ClaimError):
    """Claim with given ID was not found."""

    code: str = "CLAIM_NOT_FOUND"

    def __init__(self, claim_id: str):
        self.claim_id = claim_id
        super().__init__(f"Claim not found: {claim_id}")


class InvalidClaimPeriodError(ClaimError):
    """Claim period token is not a valid ``YYYY-MM`` value."""

    code: str = "INVALID_CLAIM_PERIOD"

    def __init__(self, period: str):
        self.period = period
        super().__init__(f"Invalid claim period {period!r}: expected YYYY-MM")


class ClaimNotEditableError(ClaimError):
    """Claim is not in a status that permits the requested change."""

    code: str = "CLAIM_NOT_EDITABLE"

    def __init__(self, claim_id: str, status: str, reason: str):
        self.claim_id = claim_id
        self.status = status
        self.reason = reason
        super().__init__(f"Claim {claim_id} ({status}) cannot be changed: {reason}")


class ClaimValidationFailedError(ClaimError):
    """
    Claim failed automated verification and was not persisted.

    ``errors`` and ``warnings`` are the lines from the ValidationResult.
    """

    code: str = "CLAIM_VALIDATION_FAILED"

    def __init__(
        self,
        errors: tuple[str, ...],
        warnings: tuple[str, ...] = (),
        risk_score: int = 0,
    ):
        self.errors = errors
        self.warnings = warnings
        self.risk_score = risk_score
        super().__init__("Claim validation failed: " + ", ".join(errors))


# User-related exceptions


class UserError(ClaimsKernelError):
    """Base exception for user-related errors."""

    code: str = "USER_ERROR"


class UserNotFoundError(UserError):
    """User with given ID was not found (or lacks the expected role)."""

    code: str = "USER_NOT_FOUND"

    def __init__(self, user_id: str, expected_role: str | None = None):
        self.user_id = user_id
        self.expected_role = expected_role
        if expected_role:
            super().__init__(f"{expected_role} not found: {user_id}")
        else:
            super().__init__(f"User not found: {user_id}")


# Workflow-related exceptions


class WorkflowError(ClaimsKernelError):
    """Base exception for workflow errors."""

    code: str = "WORKFLOW_ERROR"


class ApprovalPermissionError(WorkflowError):
    """Actor's role does not match the claim's current review stage."""

    code: str = "APPROVAL_PERMISSION_DENIED"

    def __init__(self, claim_id: str, actor_id: str, role: str, status: str):
        self.claim_id = claim_id
        self.actor_id = actor_id
        self.role = role
        self.status = status
        super().__init__(
            f"Actor {actor_id} ({role}) may not act on claim {claim_id} "
            f"in status {status}"
        )


class InvalidClaimTransitionError(WorkflowError):
    """Requested status change is not an edge of the claim state machine."""

    code: str = "INVALID_CLAIM_TRANSITION"

    def __init__(self, from_status: str, to_status: str):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(f"Invalid claim transition: {from_status} -> {to_status}")


# Document-related exceptions


class DocumentError(ClaimsKernelError):
    """Base exception for supporting-document errors."""

    code: str = "DOCUMENT_ERROR"


class DocumentNotFoundError(DocumentError):
    """Supporting document with given ID was not found."""

    code: str = "DOCUMENT_NOT_FOUND"

    def __init__(self, document_id: str):
        self.document_id = document_id
        super().__init__(f"Supporting document not found: {document_id}")


class DocumentRejectedError(DocumentError):
    """Document metadata failed the configured type/size rules."""

    code: str = "DOCUMENT_REJECTED"

    def __init__(self, file_name: str, reason: str):
        self.file_name = file_name
        self.reason = reason
        super().__init__(f"Document {file_name!r} rejected: {reason}")


# Concurrency-related exceptions


class ConcurrencyError(ClaimsKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )
