"""Fetch the current remote objects of one resource kind.

Listings are validated at this boundary: entries missing required fields
are dropped and reported, extra fields are ignored. A failed listing is
recoverable and yields an empty snapshot, which at worst causes extra
create attempts, never destructive ones.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx
from pydantic import BaseModel, ValidationError

from .client import OmneoAPIError, OmneoClient
from .config import APP_NAMESPACE, DEFAULT_TIMEOUT_SECONDS
from .models import RemoteApp, RemoteWebhook
from .results import ResourceKind
from .timeout import OperationTimeoutError, with_timeout

logger = logging.getLogger(__name__)


class FetchError(Exception):
    """Raised or reported when a remote listing fails."""

    def __init__(self, kind: ResourceKind, message: str) -> None:
        super().__init__(f"Failed to fetch {kind.value}s: {message}")
        self.kind = kind


@dataclass(frozen=True)
class FetchResult:
    """Snapshot of one resource kind plus any recoverable error."""

    kind: ResourceKind
    items: tuple[Any, ...] = ()
    error: FetchError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _parse_items(
    kind: ResourceKind, raw_items: list[Any], model: type[BaseModel]
) -> tuple[tuple[Any, ...], FetchError | None]:
    parsed: list[Any] = []
    malformed: list[str] = []
    for index, raw in enumerate(raw_items):
        try:
            parsed.append(model.model_validate(raw))
        except ValidationError as e:
            fields = ", ".join(".".join(str(x) for x in err["loc"]) for err in e.errors())
            malformed.append(f"entry {index} ({fields})")

    if not malformed:
        return tuple(parsed), None

    logger.warning(
        "Dropped malformed remote entries",
        extra={"kind": kind.value, "malformed": malformed},
    )
    return tuple(parsed), FetchError(kind, f"malformed entries: {'; '.join(malformed)}")


async def fetch(
    client: OmneoClient,
    kind: ResourceKind,
    namespace: str = "",
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
) -> FetchResult:
    """Fetch the remote snapshot for a resource kind.

    Args:
        client: Shared Omneo API client.
        kind: Resource kind to list.
        namespace: Webhook namespace. Required for webhooks; apps are listed
            tenant-wide under the clienteling custom-field namespace.
        timeout_seconds: Deadline for the listing call.

    Returns:
        FetchResult. On transport or API failure ``items`` is empty and
        ``error`` is set.

    Raises:
        ValueError: If namespace is empty for the webhook kind.
    """
    match kind:
        case ResourceKind.WEBHOOK:
            if not namespace:
                raise ValueError("namespace is required to fetch webhooks")
            call = client.list_webhooks(namespace)
            model: type[BaseModel] = RemoteWebhook
        case ResourceKind.APP:
            call = client.list_custom_fields(APP_NAMESPACE)
            model = RemoteApp

    try:
        raw_items = await with_timeout(
            call, timeout_seconds=timeout_seconds, operation_name=f"List {kind.value}s"
        )
    except (OmneoAPIError, httpx.HTTPError, OperationTimeoutError) as e:
        error = FetchError(kind, str(e) or type(e).__name__)
        logger.warning(
            "Remote listing failed, treating as empty",
            extra={"kind": kind.value, "namespace": namespace, "error": str(error)},
        )
        return FetchResult(kind=kind, error=error)

    items, error = _parse_items(kind, raw_items, model)
    logger.info(
        "Fetched remote state",
        extra={"kind": kind.value, "namespace": namespace, "count": len(items)},
    )
    return FetchResult(kind=kind, items=items, error=error)


async def fetch_webhooks(
    client: OmneoClient, namespace: str, timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
) -> FetchResult:
    return await fetch(client, ResourceKind.WEBHOOK, namespace, timeout_seconds)


async def fetch_apps(
    client: OmneoClient, timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
) -> FetchResult:
    return await fetch(client, ResourceKind.APP, timeout_seconds=timeout_seconds)
