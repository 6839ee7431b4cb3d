"""Application configuration loaded from environment variables.

Settings for the database, HTTP API, authentication, employee identifier
rules and rate limits. Uses pydantic-settings for validation and .env file
support.
"""

from typing import Literal

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Known insecure default password that must not be used in production
# Security: Runtime check in check_production_security() prevents use in production
_INSECURE_DEFAULT_PASSWORD = "portal_dev_password"  # nosec B105

# Minimum length for AUTH_SECRET in production (256 bits = 32 bytes)
_MIN_AUTH_SECRET_LENGTH = 32


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Database (only used when DOCUMENT_STORE=sql)
    database_host: str = "localhost"
    database_port: int = 5432
    database_name: str = "onboarding_portal"
    database_user: str = "portal_user"
    database_password: str = _INSECURE_DEFAULT_PASSWORD

    # API
    # 0.0.0.0 binds to all network interfaces (required for Docker containers)
    api_host: str = "0.0.0.0"  # nosec B104
    api_port: int = 8000

    # CORS (Security)
    # CRITICAL: Never set to ["*"] when allow_credentials=True
    allowed_origins: list[str] = ["http://localhost:3000"]

    # Application
    environment: str = "development"
    log_level: str = "INFO"

    # Authentication
    # Local-first mode: DEFAULT_PRINCIPAL_ID provides a principal without JWT
    # Hosted mode: auth_enabled=True, JWT cookie required on every request
    default_principal_id: str | None = None
    default_principal_email: str = ""
    default_principal_name: str = ""
    auth_enabled: bool = False
    auth_secret: SecretStr = SecretStr("")
    auth_issuer: str = "onboarding-portal"
    auth_cookie_name: str = "portal.session-token"
    auth_cookie_secure: bool = True
    auth_cookie_samesite: Literal["lax", "strict", "none"] = "lax"
    auth_cookie_domain: str = ""
    bcrypt_rounds: int = 12

    # Employee identifiers
    # HR ids look like "SP123". The auto-allow range, when both bounds are
    # set, registers unknown ids inside the range as active on first link.
    employee_id_prefix: str = "SP"
    employee_id_max_digits: int = 6
    auto_allow_min: int | None = None
    auto_allow_max: int | None = None
    # A link in progress protects its claim from sign-in repair this long
    link_lease_seconds: int = 120

    # Rate Limiting (Security)
    # Format: "count/period" (e.g., "10/minute", "100/hour")
    rate_limit_link: str = "10/minute"
    rate_limit_sign_in: str = "5/15minute"
    rate_limit_enabled: bool = True  # Disable for testing

    @property
    def database_url(self) -> str:
        """Async database URL for SQLAlchemy."""
        return (
            f"postgresql+asyncpg://{self.database_user}:{self.database_password}"
            f"@{self.database_host}:{self.database_port}/{self.database_name}"
        )

    @property
    def auto_allow_enabled(self) -> bool:
        """Whether unknown employee ids inside the configured range auto-register."""
        return self.auto_allow_min is not None and self.auto_allow_max is not None

    @model_validator(mode="after")
    def check_production_security(self) -> "Settings":
        """Validate security and consistency requirements.

        Checks:
        - SameSite=None requires Secure flag (browser requirement)
        - CORS must not use wildcard origin (incompatible with credentials)
        - Auto-allow range bounds must be ordered
        - Database password must not be the default in production
        - AUTH_SECRET must be set and >= 32 chars when auth is enabled in production
        """
        if self.auth_cookie_samesite == "none" and not self.auth_cookie_secure:
            msg = (
                "AUTH_COOKIE_SECURE must be true when AUTH_COOKIE_SAMESITE=none. "
                "Browsers reject SameSite=None cookies without the Secure flag."
            )
            raise ValueError(msg)

        if "*" in self.allowed_origins:
            msg = (
                "ALLOWED_ORIGINS must not contain '*' (wildcard). "
                "This application uses credentials (cookies) which are "
                "incompatible with wildcard CORS origins."
            )
            raise ValueError(msg)

        if (
            self.auto_allow_min is not None
            and self.auto_allow_max is not None
            and self.auto_allow_min > self.auto_allow_max
        ):
            msg = (
                "AUTO_ALLOW_MIN must not exceed AUTO_ALLOW_MAX. "
                f"Got: {self.auto_allow_min} > {self.auto_allow_max}"
            )
            raise ValueError(msg)

        if self.environment == "production":
            if self.database_password == _INSECURE_DEFAULT_PASSWORD:
                msg = (
                    "Cannot use default database password in production. "
                    "Set DATABASE_PASSWORD environment variable to a secure value."
                )
                raise ValueError(msg)

            if self.auth_enabled:
                secret_value = self.auth_secret.get_secret_value()
                if not secret_value:
                    msg = (
                        "AUTH_SECRET must be set when AUTH_ENABLED=true in production. "
                        'Generate with: python -c "import secrets; '
                        'print(secrets.token_hex(32))"'
                    )
                    raise ValueError(msg)
                if len(secret_value) < _MIN_AUTH_SECRET_LENGTH:
                    msg = (
                        f"AUTH_SECRET must be at least {_MIN_AUTH_SECRET_LENGTH} "
                        "characters for adequate security."
                    )
                    raise ValueError(msg)

        return self


settings = Settings()
