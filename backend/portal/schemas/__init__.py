"""Pydantic request/response schemas for API endpoints."""

from portal.schemas.admin import (
    AdminGrantRequest,
    AdminRecordResponse,
    AdminRegistrationResponse,
    AllowlistAssign,
    AllowlistEntryCreate,
    AllowlistEntryResponse,
    AllowlistEntryUpdate,
    DashboardStatsResponse,
    ProfileSummaryResponse,
)
from portal.schemas.onboarding import (
    LinkRequest,
    LinkResponse,
    OnboardingViewResponse,
    RouteResponse,
    StepCompleteRequest,
    StepCompletionResponse,
)

__all__ = [
    # Admin
    "AdminGrantRequest",
    "AdminRecordResponse",
    "AdminRegistrationResponse",
    "AllowlistAssign",
    "AllowlistEntryCreate",
    "AllowlistEntryResponse",
    "AllowlistEntryUpdate",
    "DashboardStatsResponse",
    "ProfileSummaryResponse",
    # Onboarding
    "LinkRequest",
    "LinkResponse",
    "OnboardingViewResponse",
    "RouteResponse",
    "StepCompleteRequest",
    "StepCompletionResponse",
]
