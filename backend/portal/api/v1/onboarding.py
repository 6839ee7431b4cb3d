"""Onboarding API router.

Employee-only endpoints. Every request runs inside a PortalSession, which
resolves the role first and keeps the profile reconciled with the
administrator's record while the request is served.

Endpoints:
- GET  /me                              Onboarding view (works before linking)
- POST /link                            Link an HR employee id (rate limited)
- GET  /progress                        Completion summary
- POST /steps/{step_id}/complete        Complete one step
- GET  /routes/{route}                  Resolve a portal route
- POST /notifications/{index}/read      Mark an admin notification read
"""

from typing import Annotated

import structlog
from fastapi import APIRouter, Body, Path, Request

from portal.api.deps import EmployeeSession
from portal.core.config import settings
from portal.core.rate_limiting import limiter
from portal.core.responses import DataResponse
from portal.schemas.onboarding import (
    LinkRequest,
    LinkResponse,
    OnboardingViewResponse,
    ProgressResponse,
    RouteResponse,
    StepCompleteRequest,
    StepCompletionResponse,
    onboarding_view,
    progress_response,
    step_response,
)
from portal.services.onboarding_workflow import progress

logger = structlog.get_logger()

router = APIRouter()

StepIdParam = Annotated[str, Path(min_length=1, max_length=50)]
RouteParam = Annotated[str, Path(min_length=1, max_length=50)]


@router.get("/me")
async def get_onboarding(session: EmployeeSession) -> DataResponse[OnboardingViewResponse]:
    """Return the employee's onboarding view, refreshed by one reconciliation pass."""
    profile = await session.refresh()
    notifications = await session.notifications()
    return DataResponse(data=onboarding_view(profile, notifications))


@router.post("/link")
@limiter.limit(settings.rate_limit_link)
async def link_employee_id(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: LinkRequest,
    session: EmployeeSession,
) -> DataResponse[LinkResponse]:
    """Bind the signed-in principal to an HR employee id.

    Repeating a successful link is idempotent and reports already_linked.

    Rate limit: RATE_LIMIT_LINK per principal, to slow down id guessing.
    """
    result = await session.link(body.employee_id)
    logger.info(
        "Employee id linked",
        principal_id=session.principal.id,
        employee_id=result.employee_id,
        already_linked=result.already_linked,
    )
    notifications = await session.notifications()
    return DataResponse(
        data=LinkResponse(
            employee_id=result.employee_id,
            already_linked=result.already_linked,
            onboarding=onboarding_view(result.profile, notifications),
        )
    )


@router.get("/progress")
async def get_progress(session: EmployeeSession) -> DataResponse[ProgressResponse]:
    """Completion summary for the linked employee."""
    return DataResponse(data=progress_response(await session.progress()))


@router.post("/steps/{step_id}/complete")
async def complete_step(
    step_id: StepIdParam,
    session: EmployeeSession,
    body: Annotated[StepCompleteRequest | None, Body()] = None,
) -> DataResponse[StepCompletionResponse]:
    """Complete one onboarding step.

    Legacy step ids are accepted. Locked, already-done and unknown steps
    fail without writing anything.
    """
    completion = await session.complete_step(step_id, body)
    logger.info(
        "Step completed",
        principal_id=session.principal.id,
        step_id=completion.step_id,
        onboarding_complete=completion.onboarding_complete,
    )
    return DataResponse(
        data=StepCompletionResponse(
            step_id=completion.step_id,
            next_step_id=completion.next_step_id,
            onboarding_complete=completion.onboarding_complete,
            steps=[step_response(step) for step in completion.profile.steps],
            progress=progress_response(progress(completion.profile.steps)),
        )
    )


@router.get("/routes/{route}")
async def resolve_route(
    route: RouteParam,
    session: EmployeeSession,
) -> DataResponse[RouteResponse]:
    """Resolve a portal route to its step, or to where the employee belongs."""
    view = await session.route(route)
    return DataResponse(
        data=RouteResponse(
            route=view.route.value,
            step=step_response(view.step) if view.step is not None else None,
            accessible=view.accessible,
            redirect_to=view.redirect_to.value if view.redirect_to else None,
            progress=progress_response(view.progress),
        )
    )


@router.post("/notifications/{index}/read")
async def mark_notification_read(
    index: Annotated[int, Path(ge=0)],
    session: EmployeeSession,
) -> DataResponse[dict]:
    """Mark one administrator notification as read."""
    await session.mark_notification_read(index)
    return DataResponse(data={"index": index, "read": True})
