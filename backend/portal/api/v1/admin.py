"""Admin API router.

Allow-list, admin records, employee profiles, dashboard stats and the
admin registry. All endpoints require the AdminPrincipal dependency, which
resolves the role before anything else is read.
"""

from typing import Annotated

import structlog
from fastapi import APIRouter, Path, Query, Response, status

from portal.api.deps import AdminPrincipal, Config, Store
from portal.core.responses import DataResponse, ListResponse, PaginationMeta
from portal.models.admin_record import AdminRecord, AdminRegistration
from portal.models.allowlist import AllowlistEntry, AllowlistStatus
from portal.models.profile import EmployeeProfile, ProfileStatus
from portal.schemas.admin import (
    AdminGrantRequest,
    AdminRecordResponse,
    AdminRegistrationResponse,
    AllowlistAssign,
    AllowlistEntryCreate,
    AllowlistEntryResponse,
    AllowlistEntryUpdate,
    AppointmentRequest,
    CascadeDeleteResponse,
    DashboardStatsResponse,
    DetailsRequest,
    NotificationCreate,
    ProfileStatusUpdate,
    ProfileSummaryResponse,
    ShiftDecisionRequest,
    StepOverrideRequest,
)
from portal.schemas.onboarding import (
    OnboardingViewResponse,
    notification_responses,
    onboarding_view,
    step_response,
)
from portal.services.admin_management_service import AdminManagementService

logger = structlog.get_logger()

router = APIRouter()

# =============================================================================
# Shared types and helpers
# =============================================================================

EmployeeIdParam = Annotated[str, Path(min_length=1, max_length=32)]
PrincipalIdParam = Annotated[str, Path(min_length=1, max_length=128)]
StepIdParam = Annotated[str, Path(min_length=1, max_length=50)]
ActiveFilter = Annotated[bool | None, Query(description="Filter by active flag")]
AllowlistStatusFilter = Annotated[
    AllowlistStatus | None, Query(alias="status", description="Filter by claim status")
]
ProfileStatusFilter = Annotated[
    ProfileStatus | None, Query(alias="status", description="Filter by account status")
]
PageParam = Annotated[int, Query(ge=1, description="Page number (1-based)")]
PerPageParam = Annotated[int, Query(ge=1, le=100, description="Items per page (max 100)")]


def _entry_response(entry: AllowlistEntry) -> AllowlistEntryResponse:
    return AllowlistEntryResponse(
        employee_id=entry.employee_id,
        full_name=entry.full_name,
        email=entry.email,
        active=entry.active,
        status=entry.status,
        claimed_by_principal_id=entry.claimed_by_principal_id,
        created_at=entry.created_at,
        claimed_at=entry.claimed_at,
    )


def _record_response(record: AdminRecord) -> AdminRecordResponse:
    return AdminRecordResponse(
        employee_id=record.employee_id,
        steps=[step_response(step) for step in record.steps],
        shift=record.shift,
        appointment=record.appointment,
        details=record.details,
        notifications=notification_responses(record.notifications),
        updated_at=record.updated_at,
    )


def _profile_summary(profile: EmployeeProfile) -> ProfileSummaryResponse:
    return ProfileSummaryResponse(
        principal_id=profile.principal_id,
        email=profile.email,
        display_name=profile.display_name,
        employee_id=profile.employee_id,
        verified=profile.verified,
        status=profile.status,
        stage=profile.stage,
        completed_steps=sum(1 for step in profile.steps if step.done),
        total_steps=len(profile.steps),
        shift_status=profile.shift.status,
        updated_at=profile.updated_at,
    )


def _registration_response(registration: AdminRegistration) -> AdminRegistrationResponse:
    return AdminRegistrationResponse(
        principal_id=registration.principal_id,
        email=registration.email,
        role=registration.role,
        is_admin=registration.is_admin,
        created_at=registration.created_at,
    )


# =============================================================================
# Allow-list
# =============================================================================


@router.get("/allowlist")
async def list_allowlist(
    _admin: AdminPrincipal,
    store: Store,
    config: Config,
    active: ActiveFilter = None,
    claim_status: AllowlistStatusFilter = None,
) -> DataResponse[list[AllowlistEntryResponse]]:
    """List allow-list entries ordered by employee id."""
    svc = AdminManagementService(store, config)
    entries = await svc.list_allowlist(active=active, status=claim_status)
    return DataResponse(data=[_entry_response(entry) for entry in entries])


@router.post("/allowlist", status_code=status.HTTP_201_CREATED)
async def create_allowlist_entry(
    admin: AdminPrincipal,
    store: Store,
    config: Config,
    body: AllowlistEntryCreate,
) -> DataResponse[AllowlistEntryResponse]:
    """Register an HR-issued employee id."""
    svc = AdminManagementService(store, config)
    entry = await svc.create_allowlist_entry(
        employee_id=body.employee_id,
        full_name=body.full_name,
        email=body.email,
        active=body.active,
    )
    logger.info("Allow-list entry created", admin_id=admin.id, employee_id=entry.employee_id)
    return DataResponse(data=_entry_response(entry))


@router.get("/allowlist/{employee_id}")
async def get_allowlist_entry(
    _admin: AdminPrincipal,
    store: Store,
    config: Config,
    employee_id: EmployeeIdParam,
) -> DataResponse[AllowlistEntryResponse]:
    svc = AdminManagementService(store, config)
    return DataResponse(data=_entry_response(await svc.get_allowlist_entry(employee_id)))


@router.patch("/allowlist/{employee_id}")
async def update_allowlist_entry(
    _admin: AdminPrincipal,
    store: Store,
    config: Config,
    employee_id: EmployeeIdParam,
    body: AllowlistEntryUpdate,
) -> DataResponse[AllowlistEntryResponse]:
    """Update name, expected email or activation."""
    svc = AdminManagementService(store, config)
    entry = await svc.update_allowlist_entry(
        employee_id,
        full_name=body.full_name,
        email=body.email,
        active=body.active,
    )
    return DataResponse(data=_entry_response(entry))


@router.post("/allowlist/{employee_id}/assign")
async def assign_allowlist_entry(
    _admin: AdminPrincipal,
    store: Store,
    config: Config,
    employee_id: EmployeeIdParam,
    body: AllowlistAssign,
) -> DataResponse[AllowlistEntryResponse]:
    """Reserve an entry for a principal ahead of linking."""
    svc = AdminManagementService(store, config)
    entry = await svc.assign_allowlist_entry(employee_id, body.principal_id)
    return DataResponse(data=_entry_response(entry))


@router.delete("/allowlist/{employee_id}")
async def delete_allowlist_entry(
    admin: AdminPrincipal,
    store: Store,
    config: Config,
    employee_id: EmployeeIdParam,
) -> DataResponse[CascadeDeleteResponse]:
    """Delete an entry with its admin record and linked profile."""
    svc = AdminManagementService(store, config)
    result = await svc.delete_allowlist_entry(employee_id)
    logger.info("Allow-list entry deleted", admin_id=admin.id, employee_id=result.employee_id)
    return DataResponse(
        data=CascadeDeleteResponse(
            employee_id=result.employee_id,
            record_deleted=result.record_deleted,
            profile_principal_id=result.profile_principal_id,
        )
    )


# =============================================================================
# Admin records
# =============================================================================


@router.get("/records/{employee_id}")
async def get_record(
    _admin: AdminPrincipal,
    store: Store,
    config: Config,
    employee_id: EmployeeIdParam,
) -> DataResponse[AdminRecordResponse]:
    svc = AdminManagementService(store, config)
    return DataResponse(data=_record_response(await svc.get_record(employee_id)))


@router.put("/records/{employee_id}/steps/{step_id}")
async def override_step(
    admin: AdminPrincipal,
    store: Store,
    config: Config,
    employee_id: EmployeeIdParam,
    step_id: StepIdParam,
    body: StepOverrideRequest,
) -> DataResponse[AdminRecordResponse]:
    """Force a step done (with predecessors) or reset it (with successors)."""
    svc = AdminManagementService(store, config)
    record = await svc.override_step(employee_id, step_id, done=body.done)
    logger.info(
        "Step override", admin_id=admin.id, employee_id=record.employee_id, done=body.done
    )
    return DataResponse(data=_record_response(record))


@router.post("/records/{employee_id}/shift/decision")
async def decide_shift(
    _admin: AdminPrincipal,
    store: Store,
    config: Config,
    employee_id: EmployeeIdParam,
    body: ShiftDecisionRequest,
) -> DataResponse[AdminRecordResponse]:
    svc = AdminManagementService(store, config)
    record = await svc.decide_shift(employee_id, approved=body.approved)
    return DataResponse(data=_record_response(record))


@router.put("/records/{employee_id}/appointment")
async def set_appointment(
    _admin: AdminPrincipal,
    store: Store,
    config: Config,
    employee_id: EmployeeIdParam,
    body: AppointmentRequest,
) -> DataResponse[AdminRecordResponse]:
    svc = AdminManagementService(store, config)
    record = await svc.set_appointment(employee_id, body.to_model())
    return DataResponse(data=_record_response(record))


@router.put("/records/{employee_id}/details")
async def set_details(
    _admin: AdminPrincipal,
    store: Store,
    config: Config,
    employee_id: EmployeeIdParam,
    body: DetailsRequest,
) -> DataResponse[AdminRecordResponse]:
    svc = AdminManagementService(store, config)
    record = await svc.set_details(employee_id, body.to_model())
    return DataResponse(data=_record_response(record))


@router.post("/records/{employee_id}/notifications", status_code=status.HTTP_201_CREATED)
async def send_notification(
    _admin: AdminPrincipal,
    store: Store,
    config: Config,
    employee_id: EmployeeIdParam,
    body: NotificationCreate,
) -> DataResponse[AdminRecordResponse]:
    svc = AdminManagementService(store, config)
    record = await svc.send_notification(
        employee_id, title=body.title, body=body.body, kind=body.kind
    )
    return DataResponse(data=_record_response(record))


# =============================================================================
# Profiles
# =============================================================================


@router.get("/profiles")
async def list_profiles(
    _admin: AdminPrincipal,
    store: Store,
    config: Config,
    page: PageParam = 1,
    per_page: PerPageParam = 50,
    profile_status: ProfileStatusFilter = None,
) -> ListResponse[ProfileSummaryResponse]:
    """List employee profiles with pagination."""
    svc = AdminManagementService(store, config)
    profiles, total = await svc.list_profiles(
        page=page, per_page=per_page, status=profile_status
    )
    return ListResponse(
        data=[_profile_summary(profile) for profile in profiles],
        meta=PaginationMeta(total=total, page=page, per_page=per_page),
    )


@router.get("/profiles/{principal_id}")
async def get_profile(
    _admin: AdminPrincipal,
    store: Store,
    config: Config,
    principal_id: PrincipalIdParam,
) -> DataResponse[OnboardingViewResponse]:
    """Full onboarding view of one employee."""
    svc = AdminManagementService(store, config)
    profile = await svc.get_profile(principal_id)
    notifications = []
    if profile.employee_id is not None:
        notifications = (await svc.get_record(profile.employee_id)).notifications
    return DataResponse(data=onboarding_view(profile, notifications))


@router.patch("/profiles/{principal_id}/status")
async def set_profile_status(
    admin: AdminPrincipal,
    store: Store,
    config: Config,
    principal_id: PrincipalIdParam,
    body: ProfileStatusUpdate,
) -> DataResponse[ProfileSummaryResponse]:
    svc = AdminManagementService(store, config)
    profile = await svc.set_profile_status(principal_id, body.status)
    logger.info(
        "Profile status changed",
        admin_id=admin.id,
        principal_id=principal_id,
        status=body.status.value,
    )
    return DataResponse(data=_profile_summary(profile))


@router.delete("/profiles/{principal_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_profile(
    _admin: AdminPrincipal,
    store: Store,
    config: Config,
    principal_id: PrincipalIdParam,
) -> Response:
    """Delete a profile and release its allow-list claims."""
    svc = AdminManagementService(store, config)
    await svc.delete_profile(principal_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# =============================================================================
# Dashboard
# =============================================================================


@router.get("/stats")
async def dashboard_stats(
    _admin: AdminPrincipal,
    store: Store,
    config: Config,
) -> DataResponse[DashboardStatsResponse]:
    svc = AdminManagementService(store, config)
    stats = await svc.dashboard_stats()
    return DataResponse(
        data=DashboardStatsResponse(
            total_profiles=stats.total_profiles,
            linked_profiles=stats.linked_profiles,
            completed_profiles=stats.completed_profiles,
            pending_shift_approvals=stats.pending_shift_approvals,
            allowlist_total=stats.allowlist_total,
            allowlist_claimed=stats.allowlist_claimed,
        )
    )


# =============================================================================
# Admin registry
# =============================================================================


@router.get("/admins")
async def list_admins(
    _admin: AdminPrincipal,
    store: Store,
    config: Config,
) -> DataResponse[list[AdminRegistrationResponse]]:
    svc = AdminManagementService(store, config)
    return DataResponse(data=[_registration_response(r) for r in await svc.list_admins()])


@router.post("/admins", status_code=status.HTTP_201_CREATED)
async def grant_admin(
    admin: AdminPrincipal,
    store: Store,
    config: Config,
    body: AdminGrantRequest,
) -> DataResponse[AdminRegistrationResponse]:
    svc = AdminManagementService(store, config)
    registration = await svc.grant_admin(body.principal_id, body.email)
    logger.info("Admin granted", admin_id=admin.id, principal_id=body.principal_id)
    return DataResponse(data=_registration_response(registration))


@router.delete("/admins/{principal_id}", status_code=status.HTTP_204_NO_CONTENT)
async def revoke_admin(
    admin: AdminPrincipal,
    store: Store,
    config: Config,
    principal_id: PrincipalIdParam,
) -> Response:
    """Remove a principal from the admin registry. Self-revocation is refused."""
    svc = AdminManagementService(store, config)
    await svc.revoke_admin(admin_principal_id=admin.id, target_principal_id=principal_id)
    logger.info("Admin revoked", admin_id=admin.id, principal_id=principal_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
