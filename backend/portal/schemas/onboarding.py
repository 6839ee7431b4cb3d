"""Employee-facing onboarding request/response schemas.

All schemas use ConfigDict(extra="forbid") to reject unexpected fields.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from portal.models.admin_record import Notification, NotificationKind
from portal.models.profile import (
    AppointmentInfo,
    EmployeeProfile,
    FootwearAcknowledgement,
    I9Acknowledgement,
    ProfileStatus,
    ShiftSelection,
    Step,
)
from portal.services.onboarding_workflow import (
    OnboardingProgress,
    StepPayload,
    StepState,
    progress,
    step_state,
)

# Longest raw input accepted for an employee id ("SP-000 123" and friends)
_MAX_EMPLOYEE_ID_INPUT = 32


# =============================================================================
# Requests
# =============================================================================


class LinkRequest(BaseModel):
    """Request body for POST /onboarding/link."""

    model_config = ConfigDict(extra="forbid")

    employee_id: str = Field(min_length=1, max_length=_MAX_EMPLOYEE_ID_INPUT)


class StepCompleteRequest(StepPayload):
    """Request body for POST /onboarding/steps/{step_id}/complete.

    Only the section matching the step is read; the body may be empty for
    steps without requirements.
    """


# =============================================================================
# Responses
# =============================================================================


class StepResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str
    label: str
    state: StepState
    done: bool
    locked: bool
    completed_at: datetime | None


class ProgressResponse(BaseModel):
    """Completion summary.

    Attributes:
        completed: Steps done.
        total: Steps in the sequence.
        percent: Whole-number percentage.
        next_step_id: Next actionable step, None when complete.
        complete: Every step done.
    """

    model_config = ConfigDict(extra="forbid")

    completed: int
    total: int
    percent: int
    next_step_id: str | None
    complete: bool


class NotificationResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    index: int
    title: str
    body: str
    kind: NotificationKind
    created_at: datetime | None
    read: bool


class OnboardingViewResponse(BaseModel):
    """The employee's onboarding view.

    employee_id is None until the principal links an HR id; the step list
    is then informational only.
    """

    model_config = ConfigDict(extra="forbid")

    principal_id: str
    email: str
    display_name: str
    employee_id: str | None
    verified: bool
    status: ProfileStatus
    stage: str
    steps: list[StepResponse]
    progress: ProgressResponse
    shift: ShiftSelection
    appointment: AppointmentInfo
    footwear: FootwearAcknowledgement
    i9: I9Acknowledgement
    notifications: list[NotificationResponse]


class LinkResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    employee_id: str
    already_linked: bool
    onboarding: OnboardingViewResponse


class StepCompletionResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    step_id: str
    next_step_id: str | None
    onboarding_complete: bool
    steps: list[StepResponse]
    progress: ProgressResponse


class RouteResponse(BaseModel):
    """Resolution of a portal route.

    Attributes:
        route: Requested route.
        step: Step shown on that route, None for the progress route.
        accessible: False when the step is still locked.
        redirect_to: Route to show instead when not accessible.
        progress: Completion summary.
    """

    model_config = ConfigDict(extra="forbid")

    route: str
    step: StepResponse | None
    accessible: bool
    redirect_to: str | None
    progress: ProgressResponse


# =============================================================================
# Builders
# =============================================================================


def step_response(step: Step) -> StepResponse:
    """Build StepResponse from a step with its derived state."""
    return StepResponse(
        id=step.id,
        label=step.label,
        state=step_state(step),
        done=step.done,
        locked=step.locked,
        completed_at=step.completed_at,
    )


def progress_response(summary: OnboardingProgress) -> ProgressResponse:
    return ProgressResponse(
        completed=summary.completed,
        total=summary.total,
        percent=summary.percent,
        next_step_id=summary.next_step_id,
        complete=summary.complete,
    )


def notification_responses(notifications: list[Notification]) -> list[NotificationResponse]:
    """Number notifications by position, the index used to mark them read."""
    return [
        NotificationResponse(
            index=index,
            title=n.title,
            body=n.body,
            kind=n.kind,
            created_at=n.created_at,
            read=n.read,
        )
        for index, n in enumerate(notifications)
    ]


def onboarding_view(
    profile: EmployeeProfile, notifications: list[Notification]
) -> OnboardingViewResponse:
    return OnboardingViewResponse(
        principal_id=profile.principal_id,
        email=profile.email,
        display_name=profile.display_name,
        employee_id=profile.employee_id,
        verified=profile.verified,
        status=profile.status,
        stage=profile.stage,
        steps=[step_response(step) for step in profile.steps],
        progress=progress_response(progress(profile.steps)),
        shift=profile.shift,
        appointment=profile.appointment,
        footwear=profile.footwear,
        i9=profile.i9,
        notifications=notification_responses(notifications),
    )
