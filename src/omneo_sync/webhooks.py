"""Inbound Omneo webhook routing.

The router is framework-agnostic: the HTTP layer hands over the method,
headers, raw body and tenant path parameter, and sends back the returned
WebhookResponse. The signature is verified on the raw body before the body
is parsed or any handler runs.

Usage:
    router = WebhookRouter()

    @router.on("profile.created")
    async def profile_created(event: WebhookEvent) -> WebhookResponse:
        ...

    response = await router.handle("POST", headers, body, tenant, secret)
"""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from .security import EVENT_HEADER, SIGNATURE_HEADER, AuthFailure, verify_signature

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WebhookEvent:
    """A verified webhook delivery."""

    topic: str
    tenant: str
    payload: Any
    raw_body: bytes = field(repr=False, default=b"")


@dataclass(frozen=True)
class WebhookResponse:
    status_code: int
    body: str = "OK"


EventHandler = Callable[[WebhookEvent], Awaitable[WebhookResponse]]


class WebhookRouter:
    """Verifies inbound deliveries and dispatches them by event topic."""

    def __init__(self) -> None:
        self._handlers: dict[str, EventHandler] = {}

    @property
    def topics(self) -> list[str]:
        return sorted(self._handlers)

    def register(self, topic: str, handler: EventHandler) -> None:
        if topic in self._handlers:
            raise ValueError(f"Handler already registered for '{topic}'")
        self._handlers[topic] = handler

    def on(self, topic: str) -> Callable[[EventHandler], EventHandler]:
        """Decorator form of register."""

        def decorator(handler: EventHandler) -> EventHandler:
            self.register(topic, handler)
            return handler

        return decorator

    async def handle(
        self,
        method: str,
        headers: Mapping[str, str],
        raw_body: bytes,
        tenant: str | None,
        secret: str | None,
    ) -> WebhookResponse:
        """Authenticate and dispatch one delivery.

        Args:
            method: HTTP method.
            headers: Request headers (matched case-insensitively).
            raw_body: Exact request body bytes.
            tenant: Tenant path parameter.
            secret: Shared webhook secret.

        Returns:
            The response to send back.
        """
        # Header values are taken as-is, whatever their encoding
        lowered = {name.lower(): value for name, value in headers.items()}
        topic = lowered.get(EVENT_HEADER, "")

        if not tenant:
            return WebhookResponse(400, "Missing tenant parameter")

        try:
            verify_signature(method, lowered.get(SIGNATURE_HEADER), raw_body, secret)
        except AuthFailure as e:
            logger.warning(
                "Rejected webhook delivery",
                extra={"topic": topic, "tenant": tenant, "reason": e.reason.value},
            )
            return WebhookResponse(e.status_code, str(e))

        logger.info("Received Omneo webhook event", extra={"topic": topic, "tenant": tenant})

        handler = self._handlers.get(topic)
        if handler is None:
            return WebhookResponse(422, "Unknown Webhook Event")

        try:
            payload = json.loads(raw_body) if raw_body else None
        except (ValueError, UnicodeDecodeError):
            return WebhookResponse(422, "Invalid JSON payload")

        event = WebhookEvent(topic=topic, tenant=tenant, payload=payload, raw_body=raw_body)
        try:
            return await handler(event)
        except Exception as e:
            logger.exception(
                "Webhook handler failed",
                extra={"topic": topic, "tenant": tenant, "error": str(e)},
            )
            return WebhookResponse(500, "Internal Server Error")


async def profile_created(event: WebhookEvent) -> WebhookResponse:
    logger.info(
        "Processing profile.created event",
        extra={"tenant": event.tenant, "profile_id": _profile_id(event.payload)},
    )
    return WebhookResponse(200)


async def profile_updated(event: WebhookEvent) -> WebhookResponse:
    logger.info(
        "Processing profile.updated event",
        extra={"tenant": event.tenant, "profile_id": _profile_id(event.payload)},
    )
    return WebhookResponse(200)


def _profile_id(payload: Any) -> Any:
    if isinstance(payload, dict):
        data = payload.get("data")
        if isinstance(data, dict):
            return data.get("id")
        return payload.get("id")
    return None


def default_router() -> WebhookRouter:
    """Router with the built-in profile event handlers registered."""
    router = WebhookRouter()
    router.register("profile.created", profile_created)
    router.register("profile.updated", profile_updated)
    return router
