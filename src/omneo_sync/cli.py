"""Omneo sync CLI (omneo-sync).

Usage:
    omneo-sync sync --public-url https://abc.ngrok.app   # Reconcile webhooks and apps
    omneo-sync plan --public-url https://abc.ngrok.app   # Show what sync would change
    omneo-sync validate                                  # Check the desired-state file
    omneo-sync verify --signature <hex> body.json        # Check a webhook signature
    omneo-sync triggers                                  # List known webhook triggers
"""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import replace
from pathlib import Path
from typing import BinaryIO

import click

from .catalog import WEBHOOK_EVENTS, triggers_for
from .config import Config, ConfigurationError
from .main import EXIT_CONFIGURATION_ERROR, exit_code_for, run_plan, run_sync, setup_logging
from .results import ResourceKind, format_summary
from .security import AuthFailure, verify_signature
from .state_loader import load_desired_state

_SUMMARY_TITLES = {
    ResourceKind.WEBHOOK: "Webhook sync summary",
    ResourceKind.APP: "Clienteling app sync summary",
}


def _load_config(state_path: Path | None) -> Config:
    """Load configuration from the environment, applying CLI overrides."""
    try:
        config = Config.from_env()
        if state_path is not None:
            config = replace(config, state_path=state_path)
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e
    return config


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.option("--json-logs/--text-logs", default=False, help="Log format.")
def cli(verbose: bool, json_logs: bool) -> None:
    """Keep Omneo webhooks and clienteling apps in sync with omneo.config.json."""
    setup_logging(json_logging=json_logs, level=logging.DEBUG if verbose else logging.WARNING)


# =============================================================================
# Sync Commands
# =============================================================================


@cli.command()
@click.option("--public-url", help="Public base URL webhooks call back into.")
@click.option(
    "--state",
    "state_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Desired-state document (default: $OMNEO_CONFIG_PATH or omneo.config.json).",
)
def sync(public_url: str | None, state_path: Path | None) -> None:
    """Reconcile webhooks and clienteling apps."""
    config = _load_config(state_path)

    try:
        report = asyncio.run(run_sync(config, public_url=public_url))
    except ConfigurationError as e:
        click.echo(f"Configuration error: {e}", err=True)
        raise SystemExit(EXIT_CONFIGURATION_ERROR) from e

    for result in report.results:
        title = _SUMMARY_TITLES[result.kind]
        if result.skipped_reason:
            click.echo(f"{title}: skipped ({result.skipped_reason})")
            continue
        for line in format_summary(title, result.summary):
            click.echo(line)
        if result.fetch_error is not None:
            click.echo(f"  warning: {result.fetch_error}", err=True)
        for failure in result.failures():
            click.echo(f"  {failure.key}: {failure.failure}", err=True)

    code = exit_code_for(report)
    if code:
        raise SystemExit(code)


@cli.command()
@click.option("--public-url", help="Public base URL webhooks call back into.")
@click.option(
    "--state",
    "state_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Desired-state document.",
)
def plan(public_url: str | None, state_path: Path | None) -> None:
    """Show what sync would change without applying anything."""
    config = _load_config(state_path)

    try:
        changes = asyncio.run(run_plan(config, public_url=public_url))
    except ConfigurationError as e:
        click.echo(f"Configuration error: {e}", err=True)
        raise SystemExit(EXIT_CONFIGURATION_ERROR) from e

    if not changes:
        click.echo("Nothing to sync.")
        return
    for change in changes:
        fields = f" ({', '.join(change.changed_fields)})" if change.changed_fields else ""
        click.echo(f"{change.action.value:<7} {change.kind.value:<8} {change.key}{fields}")


@cli.command()
@click.option(
    "--state",
    "state_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=lambda: os.environ.get("OMNEO_CONFIG_PATH", "omneo.config.json"),
    help="Desired-state document.",
)
def validate(state_path: Path) -> None:
    """Check the desired-state document without contacting Omneo."""
    try:
        state = load_desired_state(Path(state_path))
        state.validate_for_sync()
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e

    click.echo(
        f"{state_path}: tenant={state.tenant} namespace={state.namespace} "
        f"webhooks={len(state.enabled_triggers())} apps={len(state.apps())}"
    )


# =============================================================================
# Webhook Commands
# =============================================================================


@cli.command()
@click.option("--signature", required=True, help="Value of the x-omneo-hmac-sha256 header.")
@click.option("--secret", envvar="OMNEO_SECRET", help="Shared secret (default: $OMNEO_SECRET).")
@click.option("--method", default="POST", show_default=True)
@click.argument("body", type=click.File("rb"))
def verify(signature: str, secret: str | None, method: str, body: BinaryIO) -> None:
    """Verify a webhook signature against a raw body file."""
    raw_body = body.read()
    try:
        verify_signature(method, signature, raw_body, secret)
    except AuthFailure as e:
        raise click.ClickException(f"{e} ({e.reason.value}, HTTP {e.status_code})") from e
    click.echo("Signature valid.")


@cli.command()
@click.argument("resources", nargs=-1)
def triggers(resources: tuple[str, ...]) -> None:
    """List known webhook triggers, optionally only for some resources."""
    selected = resources or tuple(WEBHOOK_EVENTS)
    for resource in selected:
        try:
            names = triggers_for([resource])
        except ValueError as e:
            raise click.ClickException(str(e)) from e
        click.echo(f"{resource}:")
        for trigger in names:
            click.echo(f"  {trigger}")


if __name__ == "__main__":
    cli()
