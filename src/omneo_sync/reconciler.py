"""Desired-state reconciliation against the Omneo API.

Each pass handles one resource kind:
1. Fetch the remote snapshot once (never per item, never cached)
2. Decide create / update / skip for every desired item
3. Apply creates and updates concurrently, each under its own deadline
4. Capture every outcome independently and fold them into a summary

FAULT ISOLATION: one item's failure or timeout never cancels, blocks or
hides another item's call. Failed items are reported, not retried, and
nothing already applied is rolled back.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, TypeVar

from .client import OmneoClient
from .config import (
    APP_NAMESPACE,
    DEFAULT_TIMEOUT_SECONDS,
    WEBHOOK_CALLBACK_PATH,
    ConfigurationError,
)
from .drift import Decision, DriftDecision, decide_app, decide_webhook, find_duplicate_webhooks
from .fetcher import fetch_apps, fetch_webhooks
from .models import AppSpec, DesiredState
from .results import ReconcileResult, ResourceKind, SyncOutcome, SyncReport, SyncStatus
from .timeout import with_timeout

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ApplyError(Exception):
    """A create or update call for one item failed or timed out."""

    def __init__(
        self, kind: ResourceKind, key: str, action: Decision, cause: BaseException
    ) -> None:
        reason = str(cause) or type(cause).__name__
        super().__init__(f"Failed to {action.value} {kind.value} '{key}': {reason}")
        self.kind = kind
        self.key = key
        self.action = action
        self.__cause__ = cause


@dataclass(frozen=True)
class PlannedChange:
    """A decision computed without being applied (dry run)."""

    kind: ResourceKind
    key: str
    action: Decision
    changed_fields: tuple[str, ...] = ()


def webhook_callback_url(public_url: str, tenant: str) -> str:
    """Build the URL Omneo should deliver webhooks to.

    Raises:
        ConfigurationError: If the public URL or tenant is empty.
    """
    if not public_url or not public_url.strip():
        raise ConfigurationError("A public callback URL is required to sync webhooks")
    if not tenant:
        raise ConfigurationError("tenant is required to build the webhook callback URL")
    return public_url.strip().rstrip("/") + WEBHOOK_CALLBACK_PATH.format(tenant=tenant)


async def reconcile(
    kind: ResourceKind,
    items: Sequence[T],
    remote: Sequence[Any],
    *,
    key: Callable[[T], str],
    decide: Callable[[T, Sequence[Any]], DriftDecision],
    apply: Callable[[T, Any], Awaitable[Any]],
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
) -> list[SyncOutcome]:
    """Reconcile desired items of one kind against a fetched snapshot.

    Args:
        kind: Resource kind being reconciled.
        items: Desired items, in submission order.
        remote: Remote snapshot, shared read-only by every item.
        key: Natural key of an item, used in outcomes.
        decide: Drift decision for an item against the snapshot.
        apply: Create (matched is None) or update the matched remote object.
        timeout_seconds: Deadline for each apply call.

    Returns:
        Exactly one SyncOutcome per item, in submission order.
    """

    async def skipped(item: T) -> SyncOutcome:
        logger.debug("Up to date, skipping", extra={"kind": kind.value, "key": key(item)})
        return SyncOutcome(key=key(item), status=SyncStatus.SKIPPED, detail=None)

    async def dispatch(item: T, decision: DriftDecision) -> SyncOutcome:
        item_key = key(item)
        logger.info(
            f"{decision.action.value.capitalize()} {kind.value}",
            extra={
                "kind": kind.value,
                "key": item_key,
                "changed_fields": list(decision.changed_fields),
            },
        )
        try:
            detail = await with_timeout(
                apply(item, decision.matched),
                timeout_seconds=timeout_seconds,
                operation_name=f"{decision.action.value} {kind.value} '{item_key}'",
            )
        except Exception as e:
            error = ApplyError(kind, item_key, decision.action, e)
            logger.error(
                f"Failed to {decision.action.value} {kind.value}",
                extra={"kind": kind.value, "key": item_key, "error": str(e)},
            )
            return SyncOutcome(key=item_key, status=SyncStatus.ERROR, failure=error)

        status = SyncStatus.CREATED if decision.action == Decision.CREATE else SyncStatus.UPDATED
        return SyncOutcome(key=item_key, status=status, detail=detail)

    branches: list[Awaitable[SyncOutcome]] = []
    decisions: list[Decision] = []
    for item in items:
        decision = decide(item, remote)
        decisions.append(decision.action)
        if decision.action == Decision.SKIP:
            branches.append(skipped(item))
        else:
            branches.append(dispatch(item, decision))

    settled = await asyncio.gather(*branches, return_exceptions=True)

    outcomes: list[SyncOutcome] = []
    for item, action, result in zip(items, decisions, settled, strict=True):
        if isinstance(result, SyncOutcome):
            outcomes.append(result)
            continue
        # Only reachable for a branch that was cancelled out from under us
        item_key = key(item)
        logger.error(
            "Sync branch ended abnormally",
            extra={"kind": kind.value, "key": item_key, "error": repr(result)},
        )
        outcomes.append(
            SyncOutcome(
                key=item_key,
                status=SyncStatus.ERROR,
                failure=ApplyError(kind, item_key, action, result),
            )
        )
    return outcomes


class Reconciler:
    """Reconciles a DesiredState against the Omneo API.

    The client is injected and shared by every concurrent call of a pass.
    Remote state is fetched fresh on every pass.
    """

    def __init__(
        self,
        client: OmneoClient,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        """Initialize the reconciler.

        Args:
            client: Omneo API client, constructed once per run.
            timeout_seconds: Deadline for each individual remote call.
        """
        self._client = client
        self._timeout_seconds = timeout_seconds

    async def sync(self, state: DesiredState, public_url: str) -> SyncReport:
        """Run webhook and app passes for a desired state.

        Raises:
            ConfigurationError: Before any remote call, if the desired state
                or callback URL is unusable.
        """
        state.validate_for_sync()
        callback_url = ""
        if state.enabled_triggers():
            callback_url = webhook_callback_url(public_url, state.tenant)

        report = SyncReport()
        report.results.append(await self.sync_webhooks(state, callback_url))
        report.results.append(await self.sync_apps(state))
        return report

    async def sync_webhooks(self, state: DesiredState, callback_url: str) -> ReconcileResult:
        """Reconcile enabled webhook triggers against registrations in the namespace."""
        state.validate_for_sync()

        result = ReconcileResult(kind=ResourceKind.WEBHOOK)
        triggers = state.enabled_triggers()
        if not triggers:
            result.skipped_reason = "no enabled webhook triggers"
            result.end_time = datetime.now(UTC)
            self._log_result(result)
            return result
        if not callback_url:
            raise ConfigurationError("callback URL is required to sync webhooks")

        fetched = await fetch_webhooks(self._client, state.namespace, self._timeout_seconds)
        result.fetch_error = fetched.error
        self._log_duplicates(fetched.items)

        namespace = state.namespace

        async def apply(trigger: str, matched: Any) -> Any:
            if matched is None:
                return await self._client.create_webhook(trigger, callback_url, namespace)
            return await self._client.update_webhook(matched.id, callback_url)

        result.outcomes = await reconcile(
            ResourceKind.WEBHOOK,
            triggers,
            fetched.items,
            key=lambda trigger: trigger,
            decide=lambda trigger, remote: decide_webhook(trigger, namespace, callback_url, remote),
            apply=apply,
            timeout_seconds=self._timeout_seconds,
        )
        result.end_time = datetime.now(UTC)
        self._log_result(result)
        return result

    async def sync_apps(self, state: DesiredState) -> ReconcileResult:
        """Reconcile clienteling apps against the tenant's custom fields."""
        state.validate_for_sync()

        result = ReconcileResult(kind=ResourceKind.APP)
        if not state.clienteling_enabled:
            result.skipped_reason = "clienteling is disabled"
        elif not state.apps():
            result.skipped_reason = "no clienteling apps configured"
        if result.skipped_reason:
            result.end_time = datetime.now(UTC)
            self._log_result(result)
            return result

        fetched = await fetch_apps(self._client, self._timeout_seconds)
        result.fetch_error = fetched.error

        async def apply(app: AppSpec, matched: Any) -> Any:
            body = app.to_custom_field()
            if matched is None:
                return await self._client.create_custom_field(body)
            return await self._client.update_custom_field(APP_NAMESPACE, matched.handle, body)

        result.outcomes = await reconcile(
            ResourceKind.APP,
            state.apps(),
            fetched.items,
            key=lambda app: app.handle,
            decide=decide_app,
            apply=apply,
            timeout_seconds=self._timeout_seconds,
        )
        result.end_time = datetime.now(UTC)
        self._log_result(result)
        return result

    async def plan(self, state: DesiredState, public_url: str) -> list[PlannedChange]:
        """Compute every decision a sync would take, without applying any."""
        state.validate_for_sync()
        planned: list[PlannedChange] = []

        triggers = state.enabled_triggers()
        if triggers:
            callback_url = webhook_callback_url(public_url, state.tenant)
            hooks = await fetch_webhooks(self._client, state.namespace, self._timeout_seconds)
            self._log_duplicates(hooks.items)
            for trigger in triggers:
                decision = decide_webhook(trigger, state.namespace, callback_url, hooks.items)
                planned.append(
                    PlannedChange(
                        ResourceKind.WEBHOOK, trigger, decision.action, decision.changed_fields
                    )
                )

        if state.clienteling_enabled and state.apps():
            apps = await fetch_apps(self._client, self._timeout_seconds)
            for app in state.apps():
                decision = decide_app(app, apps.items)
                planned.append(
                    PlannedChange(
                        ResourceKind.APP, app.handle, decision.action, decision.changed_fields
                    )
                )

        return planned

    def _log_duplicates(self, remote: Sequence[Any]) -> None:
        for (trigger, namespace), ids in find_duplicate_webhooks(remote).items():
            logger.warning(
                "Duplicate webhook registrations found, using the first",
                extra={"trigger": trigger, "namespace": namespace, "webhook_ids": ids},
            )

    def _log_result(self, result: ReconcileResult) -> None:
        """Log reconciliation result with structured data."""
        extra: dict[str, Any] = {
            "kind": result.kind.value,
            "duration_seconds": result.duration_seconds,
            "summary": {status.value: count for status, count in result.summary.items()},
        }
        if result.skipped_reason is not None:
            extra["skipped_reason"] = result.skipped_reason
        if result.fetch_error is not None:
            extra["fetch_error"] = str(result.fetch_error)

        if not result.success:
            extra["failed"] = [o.key for o in result.failures()]
            logger.error("Reconciliation finished with errors", extra=extra)
        else:
            logger.info("Reconciliation result", extra=extra)
