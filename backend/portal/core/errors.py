"""API error classes.

Every failure a client can act on is an APIError subclass carrying a
machine-readable code, so the presentation layer can show the right message
("contact HR", "re-enter your ID", ...) without parsing text.
"""


class APIError(Exception):
    """Base class for API errors.

    All API errors have a code, message, and HTTP status.
    Subclasses set default status_code.

    Attributes:
        code: Machine-readable error code (e.g., "NOT_FOUND").
        message: Human-readable error message.
        status_code: HTTP status code to return.
        details: Optional list of additional error details.
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: list[dict] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(message)


class ValidationError(APIError):
    """Field validation failed (400)."""

    def __init__(
        self,
        message: str,
        details: list[dict] | None = None,
    ) -> None:
        super().__init__(
            code="VALIDATION_ERROR",
            message=message,
            status_code=400,
            details=details,
        )


class UnauthorizedError(APIError):
    """Authentication required (401)."""

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(
            code="UNAUTHORIZED",
            message=message,
            status_code=401,
        )


class ForbiddenError(APIError):
    """Not allowed to access resource (403)."""

    def __init__(self, message: str = "Access denied") -> None:
        super().__init__(
            code="FORBIDDEN",
            message=message,
            status_code=403,
        )


class NotFoundError(APIError):
    """Resource not found (404).

    Use when requested resource doesn't exist OR doesn't belong to the caller.
    """

    def __init__(self, resource: str, resource_id: str | None = None) -> None:
        if resource_id:
            message = f"{resource} with id '{resource_id}' not found"
        else:
            message = f"{resource} not found"
        super().__init__(
            code="NOT_FOUND",
            message=message,
            status_code=404,
        )


class ConflictError(APIError):
    """Duplicate or conflicting resource (409).

    Accepts custom code for specific conflict types.
    """

    def __init__(
        self,
        code: str,
        message: str,
        details: list[dict] | None = None,
    ) -> None:
        super().__init__(
            code=code,
            message=message,
            status_code=409,
            details=details,
        )


class AdminRequiredError(ForbiddenError):
    """Admin access required (403).

    Raised by the require_admin dependency when the role resolver does not
    classify the principal as an administrator.
    """

    def __init__(self) -> None:
        APIError.__init__(
            self,
            code="ADMIN_REQUIRED",
            message="Admin access required",
            status_code=403,
        )


class EmployeeRequiredError(ForbiddenError):
    """Employee-only endpoint called by an administrator (403).

    Administrators never hold an onboarding profile.
    """

    def __init__(self) -> None:
        APIError.__init__(
            self,
            code="EMPLOYEE_REQUIRED",
            message="Administrators do not have an onboarding profile",
            status_code=403,
        )


# =============================================================================
# Identity linking
# =============================================================================


class LinkingError(APIError):
    """Base class for identity-linking failures.

    A failed link never partially applies: neither the allow-list entry nor
    the employee profile is left modified.
    """


class InvalidEmployeeIdError(LinkingError):
    """Employee id failed format normalization (400). Re-prompt the user."""

    def __init__(self, raw_value: str) -> None:
        super().__init__(
            code="INVALID_EMPLOYEE_ID",
            message="Employee ID must look like SP123",
            status_code=400,
            details=[{"value": raw_value[:32]}],
        )


class EmployeeIdNotFoundError(LinkingError):
    """No allow-list entry for the id (404). Contact HR."""

    def __init__(self, employee_id: str) -> None:
        super().__init__(
            code="EMPLOYEE_ID_NOT_FOUND",
            message=f"Employee ID {employee_id} was not found. Please contact HR.",
            status_code=404,
        )


class EmployeeIdInactiveError(LinkingError):
    """Allow-list entry exists but is deactivated (403). Contact HR."""

    def __init__(self, employee_id: str) -> None:
        super().__init__(
            code="EMPLOYEE_ID_INACTIVE",
            message=f"Employee ID {employee_id} is not active. Please contact HR.",
            status_code=403,
        )


class IdentityMismatchError(LinkingError):
    """Allow-list email does not match the signed-in identity (403)."""

    def __init__(self, employee_id: str) -> None:
        super().__init__(
            code="IDENTITY_MISMATCH",
            message=(
                f"Employee ID {employee_id} is registered to a different email. "
                "Please contact HR."
            ),
            status_code=403,
        )


class EmployeeIdAlreadyClaimedError(LinkingError):
    """Another principal already holds the id (409)."""

    def __init__(self, employee_id: str) -> None:
        super().__init__(
            code="EMPLOYEE_ID_ALREADY_CLAIMED",
            message=(
                f"Employee ID {employee_id} is already linked to another account. "
                "Please contact HR."
            ),
            status_code=409,
        )


class EmployeeIdLockedError(LinkingError):
    """The profile is already linked to a different employee id (409)."""

    def __init__(self, current_employee_id: str) -> None:
        super().__init__(
            code="EMPLOYEE_ID_LOCKED",
            message=(
                f"This account is already linked to Employee ID {current_employee_id}"
            ),
            status_code=409,
        )


class EmployeeNotLinkedError(APIError):
    """Onboarding operation attempted before linking (409)."""

    def __init__(self) -> None:
        super().__init__(
            code="EMPLOYEE_NOT_LINKED",
            message="Link your Employee ID before starting onboarding",
            status_code=409,
        )


# =============================================================================
# Onboarding steps
# =============================================================================


class StepError(APIError):
    """Base class for step-completion failures.

    A failed completion leaves every step flag unchanged.
    """


class UnknownStepError(StepError):
    """Step id is not part of the onboarding sequence (404)."""

    def __init__(self, step_id: str) -> None:
        super().__init__(
            code="UNKNOWN_STEP",
            message=f"Unknown onboarding step '{step_id}'",
            status_code=404,
        )


class StepLockedError(StepError):
    """Predecessor step is not done yet (409)."""

    def __init__(self, step_id: str, blocked_by: str) -> None:
        super().__init__(
            code="STEP_LOCKED",
            message=f"Step '{step_id}' is locked until '{blocked_by}' is complete",
            status_code=409,
            details=[{"step_id": step_id, "blocked_by": blocked_by}],
        )


class StepAlreadyDoneError(StepError):
    """Step was completed earlier (409). No side effects re-fire."""

    def __init__(self, step_id: str) -> None:
        super().__init__(
            code="STEP_ALREADY_DONE",
            message=f"Step '{step_id}' is already complete",
            status_code=409,
        )


class StepRequiresAdminError(StepError):
    """Step is completed by an administrator, not from the portal (409)."""

    def __init__(self, step_id: str) -> None:
        super().__init__(
            code="STEP_REQUIRES_ADMIN",
            message=f"Step '{step_id}' is completed by an administrator",
            status_code=409,
            details=[{"step_id": step_id}],
        )


class StepRequirementsError(StepError):
    """Step payload is missing required fields or acknowledgements (422)."""

    def __init__(self, step_id: str, missing: list[str]) -> None:
        super().__init__(
            code="STEP_REQUIREMENTS_UNMET",
            message=f"Step '{step_id}' cannot be completed yet",
            status_code=422,
            details=[{"missing": missing}],
        )


# =============================================================================
# Reconciliation
# =============================================================================


class SyncFailedError(APIError):
    """Reconciliation kept failing after retries (503)."""

    def __init__(self, message: str = "Could not save your progress, try again") -> None:
        super().__init__(
            code="SYNC_FAILED",
            message=message,
            status_code=503,
        )


class InternalError(APIError):
    """Unexpected server error (500).

    Use for unhandled exceptions. Never expose stack traces to clients.
    """

    def __init__(self, message: str = "An unexpected error occurred") -> None:
        super().__init__(
            code="INTERNAL_ERROR",
            message=message,
            status_code=500,
        )
