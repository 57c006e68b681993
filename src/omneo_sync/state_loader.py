"""Desired-state document loading and write-back.

SECURITY: File reads enforce a size limit to prevent DoS via large files.
Input validation is performed at the boundary.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from pathlib import Path

import yaml
from pydantic import ValidationError

from .config import MAX_STATE_FILE_SIZE_BYTES, ConfigurationError
from .models import DesiredState

logger = logging.getLogger(__name__)


class StateLoadError(ConfigurationError):
    """Raised when the desired-state document cannot be loaded."""

    pass


def load_desired_state(path: Path) -> DesiredState:
    """Load and validate the desired-state document.

    A missing file yields an empty DesiredState, which the configuration
    builder is expected to fill in. ".json" files are parsed as JSON,
    anything else as YAML.

    Args:
        path: Path to the document (usually omneo.config.json).

    Returns:
        Validated DesiredState.

    Raises:
        StateLoadError: If the file is unreadable, malformed, or references
            unknown webhook triggers.
    """
    if not path.exists():
        logger.info("No desired-state document found at %s, starting empty", path)
        return DesiredState()

    # SECURITY: Check file size before reading to prevent DoS
    try:
        file_size = path.stat().st_size
    except OSError as e:
        raise StateLoadError(f"Failed to stat desired-state file {path}: {e}") from e

    if file_size > MAX_STATE_FILE_SIZE_BYTES:
        raise StateLoadError(
            f"Desired-state file exceeds maximum size of {MAX_STATE_FILE_SIZE_BYTES} bytes: {path}"
        )

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise StateLoadError(f"Failed to read desired-state file {path}: {e}") from e

    if not content.strip():
        logger.info("Desired-state document %s is empty", path)
        return DesiredState()

    if path.suffix.lower() == ".json":
        try:
            raw_data = json.loads(content)
        except json.JSONDecodeError as e:
            raise StateLoadError(f"Invalid JSON in {path}: {e}") from e
    else:
        try:
            raw_data = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise StateLoadError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(raw_data, dict):
        raise StateLoadError(f"Desired-state file must contain an object: {path}")

    try:
        state = DesiredState.model_validate(raw_data).with_source(raw_data)
    except ValidationError as e:
        # Format Pydantic validation errors for readability
        errors = []
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            msg = error["msg"]
            errors.append(f"  - {loc}: {msg}")

        error_list = "\n".join(errors)
        raise StateLoadError(f"Validation failed for {path}:\n{error_list}") from e

    unknown = state.unknown_triggers()
    if unknown:
        raise StateLoadError(f"Unknown webhook triggers in {path}: {unknown}")

    logger.info(
        "Loaded desired state from %s",
        path,
        extra={
            "tenant": state.tenant,
            "namespace": state.namespace,
            "webhook_count": len(state.webhooks),
            "app_count": len(state.apps()),
        },
    )
    return state


def save_desired_state(
    path: Path, state: DesiredState, synced_at: datetime | None = None
) -> DesiredState:
    """Write the desired state back with an updated lastSync timestamp.

    Args:
        path: Destination path.
        state: State to persist.
        synced_at: Timestamp to record (defaults to now, UTC).

    Returns:
        The persisted state, carrying the new lastSync.

    Raises:
        StateLoadError: If the file cannot be written.
    """
    stamped = state.model_copy(update={"last_sync": synced_at or datetime.now(UTC)})
    document = json.dumps(stamped.to_document(), indent=2) + "\n"

    try:
        path.write_text(document, encoding="utf-8")
    except OSError as e:
        raise StateLoadError(f"Failed to write desired-state file {path}: {e}") from e

    logger.info("Saved desired state to %s", path)
    return stamped
