import socket
from collections.abc import AsyncGenerator, Iterator
from datetime import UTC, datetime, timedelta

import jwt
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from pydantic import SecretStr
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from portal.core.auth import JWT_AUDIENCE
from portal.core.config import settings
from portal.models.allowlist import AllowlistEntry
from portal.models.base import Base
from portal.models.document import utc_now
from portal.models.principal import Principal
from portal.providers import factory
from portal.providers.config import ProviderConfig
from portal.providers.document_store.memory_adapter import InMemoryDocumentStore
from portal.providers.document_store.sql_adapter import SqlDocumentStore
from portal.providers.identity.local_adapter import LocalIdentityProvider
from portal.repositories.admin_registry_repository import AdminRegistryRepository
from portal.repositories.allowlist_repository import AllowlistRepository

# Use separate test database
TEST_DATABASE_URL = settings.database_url.replace(
    settings.database_name, f"{settings.database_name}_test"
)

# Test auth configuration
# Security: This is a test-only secret. Production uses a real secret from env.
TEST_AUTH_SECRET = "test-secret-key-that-is-at-least-32-characters-long"  # nosec B105  # gitleaks:allow

EMPLOYEE_ID = "SP123"

EMPLOYEE = Principal(id="principal-ana", email="ana@example.com", display_name="Ana Lopez")
OTHER_EMPLOYEE = Principal(id="principal-ben", email="ben@example.com", display_name="Ben Ito")
ADMIN = Principal(id="principal-hr", email="hr@example.com", display_name="HR Desk")


def create_test_jwt(
    principal: Principal = EMPLOYEE,
    *,
    secret: str = TEST_AUTH_SECRET,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a signed session JWT for a principal.

    Args:
        principal: Principal to encode (sub, email and name claims).
        secret: Signing secret (must match settings.auth_secret in tests).
        expires_delta: Time until expiration. Defaults to 1 hour.

    Returns:
        Encoded JWT string.
    """
    now = datetime.now(UTC)
    payload = {
        "sub": principal.id,
        "email": principal.email,
        "name": principal.display_name,
        "aud": JWT_AUDIENCE,
        "iss": settings.auth_issuer,
        "exp": now + (expires_delta or timedelta(hours=1)),
        "iat": now,
    }
    return jwt.encode(payload, secret, algorithm="HS256")


def _is_postgres_available() -> bool:
    """Check if PostgreSQL is accepting connections.

    Returns:
        True if PostgreSQL is reachable on port 5432, False otherwise.
    """
    try:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.settimeout(1)
        result = sock.connect_ex(("127.0.0.1", 5432))
        sock.close()
        return result == 0
    except OSError:
        return False


# Check once at module load time
_POSTGRES_AVAILABLE = _is_postgres_available()


def skip_if_no_postgres() -> None:
    """Skip test if PostgreSQL is not available."""
    if not _POSTGRES_AVAILABLE:
        pytest.skip(
            "PostgreSQL not available on port 5432. "
            "Start database with: docker compose up -d"
        )


# =============================================================================
# Seeding helpers
# =============================================================================


async def seed_allowlist(
    store: InMemoryDocumentStore,
    employee_id: str = EMPLOYEE_ID,
    *,
    email: str | None = None,
    active: bool = True,
    full_name: str = "",
) -> AllowlistEntry:
    """Insert an allow-list entry directly through the repository."""
    entry = AllowlistEntry(
        employee_id=employee_id,
        full_name=full_name,
        email=email,
        active=active,
        created_at=utc_now(),
    )
    return (await AllowlistRepository.create(store, entry)).value


async def register_admin(store: InMemoryDocumentStore, principal: Principal = ADMIN) -> None:
    await AdminRegistryRepository.grant(store, principal.id, principal.email)


def sign_in_as(client: AsyncClient, principal: Principal) -> None:
    """Put a session cookie for the principal on the client."""
    client.cookies.set(settings.auth_cookie_name, create_test_jwt(principal))


# =============================================================================
# Provider fixtures
# =============================================================================


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def config() -> ProviderConfig:
    """Provider config with millisecond backoff so retry paths stay fast."""
    return ProviderConfig(
        document_store="memory",
        identity_provider="local",
        max_retries=2,
        retry_base_delay_ms=1,
        retry_max_delay_ms=5,
    )


@pytest.fixture
def identity(store: InMemoryDocumentStore) -> LocalIdentityProvider:
    return LocalIdentityProvider(store)


@pytest.fixture(autouse=True)
def fast_bcrypt() -> Iterator[None]:
    """Use the minimum bcrypt cost so password tests stay fast."""
    original = settings.bcrypt_rounds
    settings.bcrypt_rounds = 4
    yield
    settings.bcrypt_rounds = original


@pytest.fixture(autouse=True)
def disable_rate_limiting() -> Iterator[None]:
    """Disable rate limiting during tests.

    Security: Rate limiting is tested separately; disable for other tests
    to avoid flaky failures from rate limit triggers.
    """
    from portal.core.rate_limiting import limiter

    original_enabled = limiter.enabled
    limiter.enabled = False
    yield
    limiter.enabled = original_enabled


@pytest.fixture(autouse=True)
def reset_provider_singletons() -> Iterator[None]:
    yield
    factory.reset_providers()


# =============================================================================
# API Test Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def client(
    store: InMemoryDocumentStore,
    identity: LocalIdentityProvider,
    config: ProviderConfig,
) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client over the app with JWT auth enabled.

    The store, identity provider and provider config are swapped for the
    test fixtures via dependency overrides. No session cookie is set; use
    sign_in_as() to act as a principal.

    Yields:
        AsyncClient with ASGI transport.
    """
    from portal.api.deps import get_config, get_identity, get_store
    from portal.main import app

    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_identity] = lambda: identity
    app.dependency_overrides[get_config] = lambda: config

    original_auth_enabled = settings.auth_enabled
    original_auth_secret = settings.auth_secret
    settings.auth_enabled = True
    settings.auth_secret = SecretStr(TEST_AUTH_SECRET)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    settings.auth_enabled = original_auth_enabled
    settings.auth_secret = original_auth_secret
    app.dependency_overrides.clear()


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def sql_store() -> AsyncGenerator[SqlDocumentStore, None]:
    """SQL document store on a fresh documents table.

    Skips test if PostgreSQL is not available (e.g., Docker not running).
    """
    skip_if_no_postgres()

    engine = create_async_engine(TEST_DATABASE_URL, echo=False)
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    store = SqlDocumentStore(session_factory)
    await store.create_schema()

    yield store

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()
