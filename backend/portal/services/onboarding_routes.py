"""Onboarding routes.

The employee portal has a closed set of screens. Each maps to at most one
step; dispatch() decides whether the screen may be shown or which screen
the employee should be sent to instead.
"""

from dataclasses import dataclass
from enum import Enum

from portal.core.errors import NotFoundError
from portal.models.profile import EmployeeProfile, Step
from portal.services.onboarding_workflow import (
    OnboardingProgress,
    StepState,
    next_step,
    progress,
    step_state,
)
from portal.services.step_catalog import canonical_step_id


class OnboardingRoute(str, Enum):
    SHIFT = "shift"
    FOOTWEAR = "footwear"
    I9 = "i9"
    PHOTO_BADGE = "photo_badge"
    FIRSTDAY = "firstday"
    PROGRESS = "progress"


ROUTE_STEPS: dict[OnboardingRoute, str | None] = {
    OnboardingRoute.SHIFT: "shift_selection",
    OnboardingRoute.FOOTWEAR: "footwear",
    OnboardingRoute.I9: "i9",
    OnboardingRoute.PHOTO_BADGE: "photo_badge",
    OnboardingRoute.FIRSTDAY: "firstday",
    OnboardingRoute.PROGRESS: None,
}

_STEP_ROUTES: dict[str, OnboardingRoute] = {
    step_id: route for route, step_id in ROUTE_STEPS.items() if step_id is not None
}


def parse_route(raw_value: str) -> OnboardingRoute:
    """Parse a route name. Step ids and legacy ids are accepted as aliases.

    Raises:
        NotFoundError: Not an onboarding route.
    """
    value = raw_value.strip().lower()
    try:
        return OnboardingRoute(value)
    except ValueError:
        pass
    step_id = canonical_step_id(value)
    if step_id is not None:
        return _STEP_ROUTES[step_id]
    raise NotFoundError("Onboarding route", raw_value)


def route_for_step(step_id: str) -> OnboardingRoute:
    return _STEP_ROUTES[step_id]


@dataclass(frozen=True)
class RouteView:
    """What to render for a route.

    Attributes:
        route: Requested route.
        step: The route's step, None for the progress screen.
        state: State of that step.
        accessible: False when the step is still locked.
        redirect_to: Where to send the employee instead, when not accessible.
        progress: Overall progress.
    """

    route: OnboardingRoute
    step: Step | None
    state: StepState | None
    accessible: bool
    redirect_to: OnboardingRoute | None
    progress: OnboardingProgress


def dispatch(route: OnboardingRoute, profile: EmployeeProfile) -> RouteView:
    """Resolve a route against the profile's current steps."""
    summary = progress(profile.steps)
    step_id = ROUTE_STEPS[route]
    if step_id is None:
        return RouteView(
            route=route,
            step=None,
            state=None,
            accessible=True,
            redirect_to=None,
            progress=summary,
        )

    step = next(s for s in profile.steps if s.id == step_id)
    state = step_state(step)
    if state != StepState.LOCKED:
        return RouteView(
            route=route,
            step=step,
            state=state,
            accessible=True,
            redirect_to=None,
            progress=summary,
        )

    upcoming = next_step(profile.steps)
    return RouteView(
        route=route,
        step=step,
        state=state,
        accessible=False,
        redirect_to=route_for_step(upcoming.id) if upcoming else OnboardingRoute.PROGRESS,
        progress=summary,
    )
