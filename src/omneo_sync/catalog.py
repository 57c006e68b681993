"""Catalog of webhook triggers the Omneo API can deliver.

Triggers are grouped by the resource they describe. Desired state may only
reference names listed here; anything else is a configuration error.
"""

from __future__ import annotations

from collections.abc import Iterable

WEBHOOK_EVENTS: dict[str, tuple[str, ...]] = {
    "profile": (
        "profile.created",
        "profile-temporary.created",
        "profile.updated",
        "profile.merged",
        "profile.before.update",
        "profile.deleted",
        "profile.address.created",
        "profile.address.updated",
        "profile.address.deleted",
    ),
    "product": (
        "product.created",
        "product.updated",
        "product.deleted",
    ),
    "identity": ("identity.created",),
    "product-list": (
        "product-list.created",
        "product-list.updated",
        "product-list-item.created",
        "product-list-item.updated",
        "product-list-item.linked",
        "product-list-share.created",
        "product-list-share.deleted",
    ),
    "aggregation": ("aggregation.updated",),
    "interaction": ("interaction.created",),
    "profile-attribute": ("profile-attribute.updated",),
    "reward": (
        "reward.created",
        "reward.updated",
        "reward.deleted",
    ),
    "benefit": (
        "benefit.created",
        "benefit.updated",
        "benefit.deleted",
        "benefit.code.allocated",
        "benefit-definition.created",
        "benefit-definition.updated",
        "benefit-definition.deleted",
    ),
    "point": (
        "point.created",
        "point.updated",
        "point.deleted",
    ),
    "tier": (
        "tier.achieved",
        "tier.lost",
        "tier.maintained",
        "tier.progressed",
        "tier-point.created",
        "tier-point.updated",
        "tier-point.deleted",
    ),
    "achievement": (
        "achievement.progressed",
        "achievement.unlocked",
        "achievement.lost",
    ),
    "transaction": (
        "transaction.created",
        "transaction.tier-points.issued",
        "transaction.resent",
        "transaction.updated",
        "transaction.received",
        "transaction.sync",
        "transaction.deleted",
        "transaction-item.created",
        "transaction-item.resent",
        "transaction.points.issued",
    ),
    "rating": (
        "rating.created",
        "rating.updated",
    ),
    "balance": ("balance.updated",),
    "order": (
        "order.created",
        "order.updated",
    ),
    "connection": (
        "connection.created",
        "connection.updated",
        "connection.deleted",
    ),
    "location": (
        "location.created",
        "location.updated",
    ),
    "region": (
        "region.created",
        "region.updated",
    ),
    "address": (
        "address.created",
        "address.updated",
    ),
}

_KNOWN_TRIGGERS: frozenset[str] = frozenset(
    trigger for triggers in WEBHOOK_EVENTS.values() for trigger in triggers
)


def all_triggers() -> tuple[str, ...]:
    """Every known trigger, in catalog order."""
    return tuple(trigger for triggers in WEBHOOK_EVENTS.values() for trigger in triggers)


def is_known_trigger(name: str) -> bool:
    return name in _KNOWN_TRIGGERS


def triggers_for(resources: Iterable[str]) -> list[str]:
    """Expand resource names into their triggers.

    Args:
        resources: Resource names such as "profile" or "transaction".

    Returns:
        Triggers of the given resources, in the order requested.

    Raises:
        ValueError: If a resource is not in the catalog.
    """
    triggers: list[str] = []
    for resource in resources:
        if resource not in WEBHOOK_EVENTS:
            valid = list(WEBHOOK_EVENTS.keys())
            raise ValueError(f"Unknown webhook resource '{resource}'. Valid resources: {valid}")
        triggers.extend(WEBHOOK_EVENTS[resource])
    return triggers


def unknown_triggers(names: Iterable[str]) -> list[str]:
    """Return the names that are not known triggers, sorted."""
    return sorted({name for name in names if name not in _KNOWN_TRIGGERS})
