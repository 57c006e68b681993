"""Pydantic models for desired state and remote Omneo objects.

These models provide:
1. Type-safe parsing of the desired-state document
2. Validation at the boundary (fail fast, fail loudly)
3. Explicit shapes for the remote payloads drift detection relies on
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any

from pydantic import BaseModel, Field, PrivateAttr, field_validator

from .catalog import unknown_triggers
from .config import APP_HANDLE_PREFIX, APP_NAMESPACE, ConfigurationError

# =============================================================================
# Desired State
# =============================================================================


class ButtonConfig(BaseModel):
    """Launcher button shown in the clienteling UI."""

    model_config = {"extra": "ignore"}

    label: str


class ClientelingTarget(BaseModel):
    """Where the embedded app is served from."""

    model_config = {"extra": "ignore"}

    url: str


class AppSpec(BaseModel):
    """Embedded clienteling app definition.

    The handle is the natural key: the remote record is addressed as
    ``app__<handle>``. Renaming a handle creates a new remote record and
    leaves the old one behind.
    """

    model_config = {"extra": "ignore"}

    handle: Annotated[str, Field(min_length=1)]
    title: str
    button: ButtonConfig
    clienteling: ClientelingTarget
    enabled: bool = True
    fullscreen: bool = True
    development: bool = False
    settings: list[Any] = Field(default_factory=list)

    @field_validator("handle")
    @classmethod
    def validate_handle(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("handle cannot be blank")
        return v.strip()

    @property
    def button_label(self) -> str:
        return self.button.label

    @property
    def url(self) -> str:
        return self.clienteling.url

    @property
    def remote_handle(self) -> str:
        """Handle of the custom-field record backing this app."""
        return f"{APP_HANDLE_PREFIX}{self.handle}"

    def to_custom_field(self) -> dict[str, Any]:
        """Build the custom-field body used to create or update this app."""
        return {
            "name": self.title,
            "handle": self.remote_handle,
            "namespace": APP_NAMESPACE,
            "value": {
                "development": self.development,
                "enabled": self.enabled,
                "fullscreen": self.fullscreen,
                "button": {"label": self.button.label},
                "title": self.title,
                "clienteling": {"url": self.clienteling.url},
                "settings": self.settings,
            },
            "type": "json",
        }


class ClientelingConfig(BaseModel):
    """Clienteling section of the desired state."""

    model_config = {"extra": "ignore"}

    enabled: bool | None = None
    apps: list[AppSpec] = Field(default_factory=list)


class DesiredState(BaseModel):
    """Declared target configuration for one tenant and namespace."""

    model_config = {"extra": "ignore"}

    tenant: str = ""
    namespace: str = ""
    # trigger -> enabled
    webhooks: dict[str, bool] = Field(default_factory=dict)
    clienteling: ClientelingConfig | None = None
    last_sync: datetime | None = Field(None, alias="lastSync")

    # Document as read from disk, keys this model does not know included
    _source: dict[str, Any] | None = PrivateAttr(default=None)

    @field_validator("tenant", "namespace")
    @classmethod
    def strip_identity(cls, v: str) -> str:
        return v.strip()

    def enabled_triggers(self) -> list[str]:
        """Triggers flagged as enabled, in document order."""
        return [trigger for trigger, enabled in self.webhooks.items() if enabled]

    def apps(self) -> list[AppSpec]:
        if self.clienteling is None:
            return []
        return list(self.clienteling.apps)

    @property
    def clienteling_enabled(self) -> bool:
        """False only when clienteling was explicitly disabled."""
        return not (self.clienteling is not None and self.clienteling.enabled is False)

    def has_clienteling_config(self) -> bool:
        return self.clienteling is not None and self.clienteling.enabled is not None

    def unknown_triggers(self) -> list[str]:
        return unknown_triggers(self.webhooks.keys())

    def validate_for_sync(self) -> None:
        """Check the state is complete enough to reconcile.

        Raises:
            ConfigurationError: Listing every problem found.
        """
        errors: list[str] = []

        if not self.tenant:
            errors.append("tenant is required")
        if not self.namespace:
            errors.append("namespace is required")
        if not self.webhooks:
            errors.append("at least one webhook trigger must be configured")

        unknown = self.unknown_triggers()
        if unknown:
            errors.append(f"unknown webhook triggers: {unknown}")

        seen: set[str] = set()
        duplicates: list[str] = []
        for app in self.apps():
            if app.handle in seen and app.handle not in duplicates:
                duplicates.append(app.handle)
            seen.add(app.handle)
        if duplicates:
            errors.append(f"duplicate app handles: {duplicates}")

        if errors:
            raise ConfigurationError(
                "Desired state validation failed:\n  - " + "\n  - ".join(errors)
            )

    def to_document(self) -> dict[str, Any]:
        """Serialize back to the on-disk document shape.

        A state loaded from disk is written back as it was read, with only
        lastSync replaced, so keys other tools keep in the file survive.
        """
        dumped = self.model_dump(mode="json", by_alias=True, exclude_none=True)
        if self._source is None:
            return dumped

        document = dict(self._source)
        if "lastSync" in dumped:
            document["lastSync"] = dumped["lastSync"]
        else:
            document.pop("lastSync", None)
        return document

    def with_source(self, document: dict[str, Any]) -> DesiredState:
        """Remember the raw document this state was validated from."""
        self._source = document
        return self


# =============================================================================
# Remote Objects
# =============================================================================


class RemoteWebhook(BaseModel):
    """Webhook registration as listed by the Omneo API."""

    model_config = {"extra": "ignore"}

    id: str
    trigger: str
    namespace: str
    url: str

    @field_validator("id", mode="before")
    @classmethod
    def normalize_id(cls, v: Any) -> Any:
        # The API returns numeric ids
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v


class RemoteButton(BaseModel):
    model_config = {"extra": "ignore"}

    label: str | None = None


class RemoteTarget(BaseModel):
    model_config = {"extra": "ignore"}

    url: str | None = None


class RemoteAppValue(BaseModel):
    """Value of a clienteling custom field. Every field may be absent."""

    model_config = {"extra": "ignore"}

    title: str | None = None
    button: RemoteButton | None = None
    clienteling: RemoteTarget | None = None
    enabled: bool | None = None
    fullscreen: bool | None = None
    development: bool | None = None
    settings: list[Any] | None = None

    @property
    def button_label(self) -> str | None:
        return self.button.label if self.button else None

    @property
    def url(self) -> str | None:
        return self.clienteling.url if self.clienteling else None


class RemoteApp(BaseModel):
    """Clienteling custom-field record as listed by the Omneo API."""

    model_config = {"extra": "ignore"}

    handle: str
    name: str | None = None
    namespace: str | None = None
    value: RemoteAppValue = Field(default_factory=RemoteAppValue)

    @field_validator("value", mode="before")
    @classmethod
    def default_value(cls, v: Any) -> Any:
        return {} if v is None else v
