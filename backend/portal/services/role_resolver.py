"""Role resolver.

Classifies a principal as administrator or employee before anything reads
onboarding state. Administrators never get an employee profile.

Fails closed: a missing or malformed registration means employee.
"""

from dataclasses import dataclass

from portal.models.principal import Principal
from portal.models.profile import EmployeeProfile
from portal.providers.document_store.base import DocumentStore
from portal.repositories.admin_registry_repository import AdminRegistryRepository
from portal.services.identity_linking import IdentityLinkingService


@dataclass(frozen=True)
class AdminRole:
    principal: Principal

    @property
    def is_admin(self) -> bool:
        return True


@dataclass(frozen=True)
class EmployeeRole:
    principal: Principal
    profile: EmployeeProfile

    @property
    def is_admin(self) -> bool:
        return False


ResolvedRole = AdminRole | EmployeeRole


async def is_admin(store: DocumentStore, principal: Principal) -> bool:
    """Whether the registration keyed by the principal id grants admin rights.

    Only the principal id is consulted. An email shared with a registration
    under another id grants nothing.
    """
    registration = await AdminRegistryRepository.get(store, principal.id)
    return registration is not None and registration.grants_admin


class RoleResolver:
    """Resolves a principal to AdminRole or EmployeeRole.

    Args:
        store: Document store.
        linking: Service used to bootstrap the employee profile.
    """

    def __init__(self, store: DocumentStore, linking: IdentityLinkingService) -> None:
        self._store = store
        self._linking = linking

    async def resolve_role(self, principal: Principal) -> ResolvedRole:
        """Classify the principal.

        Employees get their profile created or refreshed on the way.

        Returns:
            AdminRole, or EmployeeRole carrying the current profile.
        """
        if await is_admin(self._store, principal):
            return AdminRole(principal=principal)
        profile = await self._linking.ensure_profile(principal)
        return EmployeeRole(principal=principal, profile=profile)
