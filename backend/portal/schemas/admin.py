"""Admin API request/response schemas.

Allow-list entries, admin records, employee profiles, dashboard stats and
the admin registry.

All schemas use ConfigDict(extra="forbid") to reject unexpected fields.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from portal.models.admin_record import EmployeeDetails, NotificationKind
from portal.models.allowlist import AllowlistStatus
from portal.models.profile import (
    AppointmentInfo,
    ProfileStatus,
    ShiftSelection,
    ShiftStatus,
)
from portal.schemas.onboarding import NotificationResponse, StepResponse

_MAX_EMPLOYEE_ID_INPUT = 32
_MAX_NAME = 200


# =============================================================================
# Allow-list
# =============================================================================


class AllowlistEntryCreate(BaseModel):
    """Request schema for POST /admin/allowlist.

    Attributes:
        employee_id: HR id in any accepted spelling, stored normalized.
        full_name: Name HR recorded.
        email: Expected email. Linking then requires a match.
        active: Whether the id can be claimed.
    """

    model_config = ConfigDict(extra="forbid")

    employee_id: str = Field(min_length=1, max_length=_MAX_EMPLOYEE_ID_INPUT)
    full_name: str = Field(default="", max_length=_MAX_NAME)
    email: EmailStr | None = None
    active: bool = True


class AllowlistEntryUpdate(BaseModel):
    """Request schema for PATCH /admin/allowlist/:employee_id.

    All fields optional; only provided fields are updated. An empty email
    removes the email requirement.
    """

    model_config = ConfigDict(extra="forbid")

    full_name: str | None = Field(default=None, max_length=_MAX_NAME)
    email: str | None = Field(default=None, max_length=254)
    active: bool | None = None

    @field_validator("email")
    @classmethod
    def check_email(cls, v: str | None) -> str | None:
        if v is not None and v.strip() and "@" not in v:
            msg = "email must be an email address or empty"
            raise ValueError(msg)
        return v


class AllowlistAssign(BaseModel):
    """Request schema for POST /admin/allowlist/:employee_id/assign."""

    model_config = ConfigDict(extra="forbid")

    principal_id: str = Field(min_length=1, max_length=128)


class AllowlistEntryResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    employee_id: str
    full_name: str
    email: str | None
    active: bool
    status: AllowlistStatus
    claimed_by_principal_id: str | None
    created_at: datetime | None
    claimed_at: datetime | None


class CascadeDeleteResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    employee_id: str
    record_deleted: bool
    profile_principal_id: str | None


# =============================================================================
# Admin records
# =============================================================================


class StepOverrideRequest(BaseModel):
    """Request schema for PUT /admin/records/:employee_id/steps/:step_id.

    done=true completes the step and every predecessor; done=false resets
    the step and every later step.
    """

    model_config = ConfigDict(extra="forbid")

    done: bool


class ShiftDecisionRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    approved: bool


class AppointmentRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    date: str = Field(default="", max_length=32)
    time: str = Field(default="", max_length=32)
    address: str = Field(default="", max_length=300)
    notes: str = Field(default="", max_length=1000)

    def to_model(self) -> AppointmentInfo:
        return AppointmentInfo(**self.model_dump())


class DetailsRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    first_name: str = Field(default="", max_length=100)
    last_name: str = Field(default="", max_length=100)
    date_of_birth: str = Field(default="", max_length=32)
    phone: str = Field(default="", max_length=32)
    address: str = Field(default="", max_length=300)
    city: str = Field(default="", max_length=100)
    state_zip: str = Field(default="", max_length=32)

    def to_model(self) -> EmployeeDetails:
        return EmployeeDetails(**self.model_dump())


class NotificationCreate(BaseModel):
    """Request schema for POST /admin/records/:employee_id/notifications."""

    model_config = ConfigDict(extra="forbid")

    title: str = Field(min_length=1, max_length=120)
    body: str = Field(default="", max_length=2000)
    kind: NotificationKind = NotificationKind.INFO


class AdminRecordResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    employee_id: str
    steps: list[StepResponse]
    shift: ShiftSelection
    appointment: AppointmentInfo
    details: EmployeeDetails
    notifications: list[NotificationResponse]
    updated_at: datetime | None


# =============================================================================
# Profiles
# =============================================================================


class ProfileStatusUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    status: ProfileStatus


class ProfileSummaryResponse(BaseModel):
    """Row in the admin profile listing.

    Attributes:
        principal_id: Profile owner.
        email: Owner email.
        display_name: Owner name.
        employee_id: Linked HR id, None if not linked.
        verified: Linking succeeded.
        status: Account status.
        stage: Next actionable step id, or "completed".
        completed_steps: Steps done.
        total_steps: Steps in the sequence.
        shift_status: Decision on the shift selection.
        updated_at: Last write.
    """

    model_config = ConfigDict(extra="forbid")

    principal_id: str
    email: str
    display_name: str
    employee_id: str | None
    verified: bool
    status: ProfileStatus
    stage: str
    completed_steps: int
    total_steps: int
    shift_status: ShiftStatus
    updated_at: datetime | None


class DashboardStatsResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    total_profiles: int
    linked_profiles: int
    completed_profiles: int
    pending_shift_approvals: int
    allowlist_total: int
    allowlist_claimed: int


# =============================================================================
# Admin registry
# =============================================================================


class AdminGrantRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    principal_id: str = Field(min_length=1, max_length=128)
    email: EmailStr


class AdminRegistrationResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    principal_id: str
    email: str
    role: str
    is_admin: bool
    created_at: datetime | None
