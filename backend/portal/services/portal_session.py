"""Portal session.

Everything one signed-in principal does goes through a PortalSession
instead of module-level "current employee" state. Opening a session
resolves the role; for a linked employee it also starts the sync
reconciler. Closing it (explicitly, or when the identity provider reports
the principal signed out) releases every subscription it holds.
"""

import logging
from types import TracebackType

from portal.core.errors import EmployeeRequiredError, NotFoundError, UnauthorizedError
from portal.models.admin_record import Notification
from portal.models.principal import Principal
from portal.models.profile import EmployeeProfile
from portal.providers.config import ProviderConfig
from portal.providers.document_store.base import DocumentStore
from portal.providers.document_store.subscriptions import Subscription
from portal.providers.identity.base import AuthChange, IdentityProvider
from portal.repositories.admin_record_repository import AdminRecordRepository
from portal.repositories.profile_repository import ProfileRepository
from portal.services.identity_linking import IdentityLinkingService, LinkResult
from portal.services.onboarding_routes import RouteView, dispatch, parse_route
from portal.services.onboarding_workflow import (
    OnboardingProgress,
    OnboardingService,
    StepCompletion,
    StepPayload,
    progress,
)
from portal.services.profile_sync import SyncReconciler
from portal.services.role_resolver import EmployeeRole, ResolvedRole, RoleResolver

logger = logging.getLogger(__name__)


class PortalSession:
    """Session-scoped onboarding context for one principal.

    Use PortalSession.open() or ``async with PortalSession(...)``.

    Args:
        store: Document store.
        identity_provider: Source of sign-out events.
        principal: Signed-in principal.
        config: Retry policy. Defaults to environment configuration.
    """

    def __init__(
        self,
        store: DocumentStore,
        identity_provider: IdentityProvider,
        principal: Principal,
        config: ProviderConfig | None = None,
    ) -> None:
        self._store = store
        self._identity_provider = identity_provider
        self._principal = principal
        self._config = config or ProviderConfig.from_env()
        self._linking = IdentityLinkingService(store, self._config)
        self._onboarding = OnboardingService(store, self._config)
        self._role: ResolvedRole | None = None
        self._reconciler: SyncReconciler | None = None
        self._auth_subscription: Subscription | None = None
        self._closed = False

    @classmethod
    async def open(
        cls,
        store: DocumentStore,
        identity_provider: IdentityProvider,
        principal: Principal,
        config: ProviderConfig | None = None,
    ) -> "PortalSession":
        """Create a session, resolve the role and start syncing."""
        session = cls(store, identity_provider, principal, config)
        await session._start()
        return session

    async def __aenter__(self) -> "PortalSession":
        if self._role is None:
            await self._start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def _start(self) -> None:
        resolver = RoleResolver(self._store, self._linking)
        self._role = await resolver.resolve_role(self._principal)
        self._auth_subscription = self._identity_provider.on_auth_change(
            self._on_auth_change
        )
        if isinstance(self._role, EmployeeRole) and self._role.profile.employee_id:
            await self._start_reconciler(self._role.profile.employee_id)

    # -----------------------------------------------------------------------
    # State
    # -----------------------------------------------------------------------

    @property
    def principal(self) -> Principal:
        return self._principal

    @property
    def role(self) -> ResolvedRole:
        if self._role is None:
            raise RuntimeError("PortalSession used before open()")
        return self._role

    @property
    def is_admin(self) -> bool:
        return self.role.is_admin

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def reconciling(self) -> bool:
        return self._reconciler is not None and self._reconciler.running

    def _ensure_employee(self) -> None:
        if self._closed:
            raise UnauthorizedError("Session has ended")
        if not isinstance(self.role, EmployeeRole):
            raise EmployeeRequiredError()

    # -----------------------------------------------------------------------
    # Employee operations
    # -----------------------------------------------------------------------

    async def profile(self) -> EmployeeProfile:
        """Current profile, read fresh from the store."""
        self._ensure_employee()
        profile = await ProfileRepository.get(self._store, self._principal.id)
        if profile is None:
            raise NotFoundError("Profile")
        return profile

    async def notifications(self) -> list[Notification]:
        """Administrator messages for the linked employee, oldest first."""
        profile = await self.profile()
        if profile.employee_id is None:
            return []
        record = await AdminRecordRepository.get(self._store, profile.employee_id)
        return list(record.notifications) if record is not None else []

    async def link(self, claimed_employee_id: str) -> LinkResult:
        """Link the principal to an employee id and start syncing it."""
        self._ensure_employee()
        result = await self._linking.link_identity(self._principal, claimed_employee_id)
        await self._start_reconciler(result.employee_id)
        return result

    async def complete_step(
        self, step_id: str, payload: StepPayload | None = None
    ) -> StepCompletion:
        self._ensure_employee()
        return await self._onboarding.complete_step(self._principal.id, step_id, payload)

    async def progress(self) -> OnboardingProgress:
        self._ensure_employee()
        profile = await self._onboarding.get_profile(self._principal.id)
        return progress(profile.steps)

    async def route(self, raw_route: str) -> RouteView:
        """Resolve a portal route for the linked employee."""
        self._ensure_employee()
        route = parse_route(raw_route)
        profile = await self._onboarding.get_profile(self._principal.id)
        return dispatch(route, profile)

    async def mark_notification_read(self, index: int) -> None:
        self._ensure_employee()
        await self._onboarding.mark_notification_read(self._principal.id, index)

    async def refresh(self, incoming: EmployeeProfile | None = None) -> EmployeeProfile:
        """Run one reconciliation pass and return the merged profile.

        Args:
            incoming: Optional snapshot held by another client to fold in.
        """
        self._ensure_employee()
        if self._reconciler is not None:
            merged = await self._reconciler.reconcile_once(incoming)
            if merged is not None:
                return merged
        return await self.profile()

    # -----------------------------------------------------------------------
    # Teardown
    # -----------------------------------------------------------------------

    async def close(self) -> None:
        """Release the reconciler and the auth subscription. Idempotent."""
        if self._closed:
            return
        self._closed = True
        if self._reconciler is not None:
            await self._reconciler.stop()
        if self._auth_subscription is not None:
            self._auth_subscription.unsubscribe()
        logger.debug("Portal session closed", extra={"principal_id": self._principal.id})

    async def _start_reconciler(self, employee_id: str) -> None:
        if self._reconciler is not None or self._closed:
            return
        self._reconciler = SyncReconciler(
            self._store, self._principal.id, employee_id, self._config
        )
        await self._reconciler.start()

    async def _on_auth_change(self, change: AuthChange) -> None:
        if change.principal_id == self._principal.id and change.principal is None:
            logger.info(
                "Principal signed out, closing portal session",
                extra={"principal_id": self._principal.id},
            )
            await self.close()
