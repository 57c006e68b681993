"""Main entry point for one Omneo reconciliation run.

Loads configuration from the environment and the desired state from disk,
reconciles webhooks then clienteling apps, and writes lastSync back once
every item has synced cleanly.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from datetime import UTC, datetime

import httpx

from .client import OmneoClient
from .config import Config, ConfigurationError
from .reconciler import PlannedChange, Reconciler
from .results import SyncReport
from .state_loader import load_desired_state, save_desired_state

EXIT_OK = 0
EXIT_CONFIGURATION_ERROR = 1
EXIT_SYNC_ERRORS = 3

# LogRecord attributes that are not user-supplied extra fields
_RESERVED_RECORD_KEYS = frozenset(
    (
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "exc_info",
        "exc_text",
        "thread",
        "threadName",
        "taskName",
        "message",
    )
)


class JsonFormatter(logging.Formatter):
    """Format logs as JSON for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
        }

        # Add extra fields from the record
        for key, value in record.__dict__.items():
            if key not in _RESERVED_RECORD_KEYS:
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(json_logging: bool = True, level: int = logging.INFO) -> None:
    """Configure logging: JSON lines on stdout, or plain text for local use."""
    handler = logging.StreamHandler(sys.stdout)
    if json_logging:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))

    root_logger = logging.getLogger()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    # Reduce noise from the HTTP stack
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


async def run_sync(
    config: Config,
    public_url: str | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> SyncReport:
    """Reconcile the desired state on disk against the Omneo API.

    Args:
        config: Validated configuration.
        public_url: Public base URL webhooks call back into; falls back to
            config.public_url.
        transport: Optional HTTP transport (tests).

    Returns:
        SyncReport covering webhooks and apps.

    Raises:
        ConfigurationError: If the desired state or callback URL is
            unusable. No remote call has been made in that case.
    """
    state = load_desired_state(config.state_path)
    callback_base = public_url or config.public_url or ""

    async with OmneoClient.from_config(config, transport=transport) as client:
        reconciler = Reconciler(client, timeout_seconds=config.request_timeout_seconds)
        report = await reconciler.sync(state, callback_base)

    if report.success:
        save_desired_state(config.state_path, state)
    return report


async def run_plan(
    config: Config,
    public_url: str | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> list[PlannedChange]:
    """Compute the changes a sync would make, applying none of them."""
    state = load_desired_state(config.state_path)
    callback_base = public_url or config.public_url or ""

    async with OmneoClient.from_config(config, transport=transport) as client:
        reconciler = Reconciler(client, timeout_seconds=config.request_timeout_seconds)
        return await reconciler.plan(state, callback_base)


def exit_code_for(report: SyncReport) -> int:
    return EXIT_OK if report.success else EXIT_SYNC_ERRORS


async def main() -> int:
    """Run one reconciliation pass configured from the environment.

    Returns:
        Exit code (0 success, 1 configuration error, 3 item errors).
    """
    try:
        config = Config.from_env()
    except ConfigurationError as e:
        setup_logging()
        logging.getLogger(__name__).error("Configuration error", extra={"error": str(e)})
        return EXIT_CONFIGURATION_ERROR

    setup_logging(json_logging=config.json_logging)
    logger = logging.getLogger(__name__)

    logger.info(
        "Starting Omneo sync",
        extra={
            "api_url": config.api_url,
            "state_path": str(config.state_path),
            "dry_run": config.dry_run,
        },
    )

    try:
        if config.dry_run:
            planned = await run_plan(config)
            for change in planned:
                logger.info(
                    "Planned change",
                    extra={
                        "kind": change.kind.value,
                        "key": change.key,
                        "action": change.action.value,
                        "changed_fields": list(change.changed_fields),
                    },
                )
            return EXIT_OK

        report = await run_sync(config)
    except ConfigurationError as e:
        logger.error("Configuration error", extra={"error": str(e)})
        return EXIT_CONFIGURATION_ERROR

    logger.info(
        "Omneo sync complete",
        extra={"summary": {status.value: count for status, count in report.summary.items()}},
    )
    return exit_code_for(report)


def run() -> None:
    """Entry point for the sync runner."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
