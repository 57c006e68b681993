"""Per-item sync outcomes and the summaries folded from them."""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any


class ResourceKind(str, Enum):
    """Kinds of remote objects that are reconciled."""

    WEBHOOK = "webhook"
    APP = "app"


class SyncStatus(str, Enum):
    """Final status of one desired item after a pass."""

    CREATED = "created"
    UPDATED = "updated"
    SKIPPED = "skipped"
    ERROR = "error"


# Mapping from status to count, derived and never persisted
SyncSummary = dict[SyncStatus, int]


@dataclass(frozen=True)
class SyncOutcome:
    """Result for a single desired item (trigger or app handle)."""

    key: str
    status: SyncStatus
    detail: Any = None
    failure: Exception | None = None


def summarize(outcomes: Iterable[SyncOutcome]) -> SyncSummary:
    """Count outcomes by status. Statuses that never occur are omitted."""
    counts = Counter(outcome.status for outcome in outcomes)
    return {status: counts[status] for status in SyncStatus if counts[status]}


_STATUS_LABELS: dict[SyncStatus, str] = {
    SyncStatus.CREATED: "+",
    SyncStatus.UPDATED: "~",
    SyncStatus.SKIPPED: "=",
    SyncStatus.ERROR: "!",
}


def format_summary(title: str, summary: Mapping[SyncStatus, int]) -> list[str]:
    """Render a summary as report lines, one per status present."""
    lines = [f"{title}:"]
    if not summary:
        lines.append("  nothing to do")
        return lines
    for status in SyncStatus:
        count = summary.get(status, 0)
        if count:
            lines.append(f"  {_STATUS_LABELS[status]} {status.value}: {count}")
    return lines


@dataclass
class ReconcileResult:
    """Result of reconciling one resource kind."""

    kind: ResourceKind
    outcomes: list[SyncOutcome] = field(default_factory=list)
    start_time: datetime = field(default_factory=lambda: datetime.now(UTC))
    end_time: datetime | None = None
    fetch_error: Exception | None = None
    skipped_reason: str | None = None

    @property
    def summary(self) -> SyncSummary:
        return summarize(self.outcomes)

    @property
    def error_count(self) -> int:
        return self.summary.get(SyncStatus.ERROR, 0)

    @property
    def duration_seconds(self) -> float:
        """Calculate duration in seconds."""
        if self.end_time is None:
            return 0.0
        return (self.end_time - self.start_time).total_seconds()

    @property
    def success(self) -> bool:
        """True when no item ended in error."""
        return self.error_count == 0

    def failures(self) -> list[SyncOutcome]:
        return [o for o in self.outcomes if o.status == SyncStatus.ERROR]


@dataclass
class SyncReport:
    """Results of a full run across every resource kind."""

    results: list[ReconcileResult] = field(default_factory=list)

    def get(self, kind: ResourceKind) -> ReconcileResult | None:
        for result in self.results:
            if result.kind == kind:
                return result
        return None

    @property
    def summary(self) -> SyncSummary:
        return summarize(o for result in self.results for o in result.outcomes)

    @property
    def success(self) -> bool:
        return all(result.success for result in self.results)
