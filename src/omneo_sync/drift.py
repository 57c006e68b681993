"""Drift decisions between desired items and the remote snapshot.

Both decision functions are pure and total: they never raise and never
call the API. Matching is done on natural keys, never on remote ids,
because desired items have no id until they are created.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

from .models import AppSpec, RemoteApp, RemoteWebhook


class Decision(str, Enum):
    """What to do with one desired item."""

    CREATE = "create"
    UPDATE = "update"
    SKIP = "skip"


@dataclass(frozen=True)
class DriftDecision:
    """Decision plus the remote object it was matched against."""

    action: Decision
    matched: Any = None
    changed_fields: tuple[str, ...] = ()


def decide_webhook(
    trigger: str,
    namespace: str,
    callback_url: str,
    remote: Sequence[RemoteWebhook],
) -> DriftDecision:
    """Decide whether a webhook trigger must be created, updated or left alone.

    The first remote registration with the same trigger and namespace wins;
    duplicates are not corrected here (see find_duplicate_webhooks).
    """
    existing = next(
        (hook for hook in remote if hook.trigger == trigger and hook.namespace == namespace),
        None,
    )
    if existing is None:
        return DriftDecision(Decision.CREATE)
    if existing.url != callback_url:
        return DriftDecision(Decision.UPDATE, matched=existing, changed_fields=("url",))
    return DriftDecision(Decision.SKIP, matched=existing)


def app_field_differences(app: AppSpec, existing: RemoteApp) -> tuple[str, ...]:
    """Names of the compared fields whose remote value differs.

    Settings are intentionally not compared.
    """
    value = existing.value
    pairs = (
        ("title", app.title, value.title),
        ("button.label", app.button_label, value.button_label),
        ("clienteling.url", app.url, value.url),
        ("enabled", app.enabled, value.enabled),
        ("fullscreen", app.fullscreen, value.fullscreen),
        ("development", app.development, value.development),
    )
    return tuple(name for name, desired, actual in pairs if desired != actual)


def decide_app(app: AppSpec, remote: Sequence[RemoteApp]) -> DriftDecision:
    """Decide whether an embedded app must be created, updated or left alone."""
    handle = app.remote_handle
    existing = next((record for record in remote if record.handle == handle), None)
    if existing is None:
        return DriftDecision(Decision.CREATE)

    changed = app_field_differences(app, existing)
    if changed:
        return DriftDecision(Decision.UPDATE, matched=existing, changed_fields=changed)
    return DriftDecision(Decision.SKIP, matched=existing)


def find_duplicate_webhooks(
    remote: Sequence[RemoteWebhook],
) -> dict[tuple[str, str], list[str]]:
    """Group ids of remote webhooks that share a (trigger, namespace) pair.

    Returns:
        Only the pairs registered more than once, mapped to their ids in
        listing order.
    """
    groups: dict[tuple[str, str], list[str]] = defaultdict(list)
    for hook in remote:
        groups[(hook.trigger, hook.namespace)].append(hook.id)
    return {pair: ids for pair, ids in groups.items() if len(ids) > 1}
