"""Configuration management with validation.

Connection settings are validated at load time so that a misconfigured run
fails before any request reaches the Omneo API.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path


class ConfigurationError(Exception):
    """Raised when configuration or desired state validation fails."""

    pass


# Configuration constants with documented bounds
DEFAULT_TIMEOUT_SECONDS = 30
MIN_TIMEOUT_SECONDS = 1
MAX_TIMEOUT_SECONDS = 300

DEFAULT_STATE_FILENAME = "omneo.config.json"
MAX_STATE_FILE_SIZE_BYTES = 1024 * 1024  # 1MB max desired-state document

# Remote naming conventions
APP_HANDLE_PREFIX = "app__"
APP_NAMESPACE = "clienteling.setting"
WEBHOOK_CALLBACK_PATH = "/api/{tenant}/webhooks/omneo"
DEFAULT_API_URL_TEMPLATE = "https://api.{tenant}.getomneo.com/api/v3"

# Input validation patterns
VALID_TENANT_PATTERN = r"^[a-z0-9][a-z0-9-]{0,62}$"
VALID_URL_PATTERN = r"^https?://[^\s/$.?#][^\s]*$"


@dataclass(frozen=True)
class Config:
    """Runtime configuration loaded from environment variables.

    All fields are validated at construction time. Invalid configurations
    raise ConfigurationError immediately rather than failing mid-sync.
    """

    # Required fields
    api_token: str
    api_tenant: str

    # Inbound webhook verification
    webhook_secret: str | None = None

    # Remote API
    base_url: str | None = None
    request_timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS

    # Desired state and callback
    state_path: Path = field(default_factory=lambda: Path(DEFAULT_STATE_FILENAME))
    public_url: str | None = None

    # Behavior
    dry_run: bool = False
    json_logging: bool = True

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        errors: list[str] = []

        if not self.api_token:
            errors.append("OMNEO_TOKEN is required")

        if not self.api_tenant:
            errors.append("OMNEO_TENANT is required")
        elif not re.match(VALID_TENANT_PATTERN, self.api_tenant):
            errors.append(
                f"OMNEO_TENANT must match pattern {VALID_TENANT_PATTERN}: {self.api_tenant}"
            )

        if self.base_url is not None and not re.match(VALID_URL_PATTERN, self.base_url):
            errors.append(f"OMNEO_API_URL must be an http(s) URL: {self.base_url}")

        if self.public_url is not None and not re.match(VALID_URL_PATTERN, self.public_url):
            errors.append(f"OMNEO_PUBLIC_URL must be an http(s) URL: {self.public_url}")

        if not (MIN_TIMEOUT_SECONDS <= self.request_timeout_seconds <= MAX_TIMEOUT_SECONDS):
            errors.append(
                f"OMNEO_REQUEST_TIMEOUT must be between {MIN_TIMEOUT_SECONDS} "
                f"and {MAX_TIMEOUT_SECONDS} seconds"
            )

        if errors:
            error_msg = "Configuration validation failed:\n  - " + "\n  - ".join(errors)
            raise ConfigurationError(error_msg)

    @property
    def api_url(self) -> str:
        """Base URL of the Omneo API for the configured tenant."""
        if self.base_url:
            return self.base_url.rstrip("/")
        return DEFAULT_API_URL_TEMPLATE.format(tenant=self.api_tenant)

    @property
    def redacted_token(self) -> str:
        """Token prefix safe to include in logs."""
        return self.api_token[:4] + "..." if len(self.api_token) > 4 else "***"

    @classmethod
    def from_env(cls) -> Config:
        """Load configuration from environment variables.

        Environment Variables:
            OMNEO_TOKEN: Bearer token for the Omneo API
            OMNEO_TENANT: Omneo tenant slug used to build the API URL
            OMNEO_SECRET: Shared secret for inbound webhook signatures
            OMNEO_API_URL: Override for the API base URL
            OMNEO_CONFIG_PATH: Path to the desired-state document
                (default: omneo.config.json)
            OMNEO_PUBLIC_URL: Public base URL webhooks should call back into
            OMNEO_REQUEST_TIMEOUT: Per-call deadline in seconds (default: 30)
            DRY_RUN: If "true", only report drift without applying (default: false)
            ENABLE_JSON_LOGGING: Emit JSON log lines (default: true)
        """

        def get_int(key: str, default: int) -> int:
            value = os.environ.get(key)
            if value is None:
                return default
            try:
                return int(value)
            except ValueError as e:
                raise ConfigurationError(f"{key} must be an integer: {value}") from e

        def get_bool(key: str, default: bool) -> bool:
            value = os.environ.get(key, "").lower()
            if not value:
                return default
            return value in ("true", "1", "yes")

        return cls(
            api_token=os.environ.get("OMNEO_TOKEN", ""),
            api_tenant=os.environ.get("OMNEO_TENANT", ""),
            webhook_secret=os.environ.get("OMNEO_SECRET") or None,
            base_url=os.environ.get("OMNEO_API_URL") or None,
            request_timeout_seconds=get_int("OMNEO_REQUEST_TIMEOUT", DEFAULT_TIMEOUT_SECONDS),
            state_path=Path(os.environ.get("OMNEO_CONFIG_PATH", DEFAULT_STATE_FILENAME)),
            public_url=os.environ.get("OMNEO_PUBLIC_URL") or None,
            dry_run=get_bool("DRY_RUN", False),
            json_logging=get_bool("ENABLE_JSON_LOGGING", True),
        )
