"""Tests for the omneo-sync CLI."""

import json
from pathlib import Path
from unittest.mock import AsyncMock, patch

from click.testing import CliRunner

from omneo_sync.cli import cli
from omneo_sync.config import ConfigurationError
from omneo_sync.drift import Decision
from omneo_sync.reconciler import PlannedChange
from omneo_sync.results import ReconcileResult, ResourceKind, SyncOutcome, SyncReport, SyncStatus
from omneo_sync.security import compute_signature

ENV = {"OMNEO_TOKEN": "test-token", "OMNEO_TENANT": "acme"}


class TestTriggersCommand:
    """Tests for `omneo-sync triggers`."""

    def test_lists_all_resources(self) -> None:
        result = CliRunner().invoke(cli, ["triggers"])

        assert result.exit_code == 0
        assert "profile:" in result.output
        assert "  profile.created" in result.output
        assert "address:" in result.output

    def test_lists_selected_resource(self) -> None:
        result = CliRunner().invoke(cli, ["triggers", "order"])

        assert result.exit_code == 0
        assert result.output.splitlines() == ["order:", "  order.created", "  order.updated"]

    def test_unknown_resource(self) -> None:
        result = CliRunner().invoke(cli, ["triggers", "spaceship"])

        assert result.exit_code == 1
        assert "spaceship" in result.output


class TestVerifyCommand:
    """Tests for `omneo-sync verify`."""

    def test_valid_signature(self, tmp_path: Path) -> None:
        body = tmp_path / "body.json"
        body.write_bytes(b'{"id": 1}')
        signature = compute_signature(b'{"id": 1}', "shh")

        result = CliRunner().invoke(
            cli, ["verify", "--signature", signature, "--secret", "shh", str(body)]
        )

        assert result.exit_code == 0
        assert "Signature valid." in result.output

    def test_invalid_signature(self, tmp_path: Path) -> None:
        body = tmp_path / "body.json"
        body.write_bytes(b'{"id": 1}')
        signature = compute_signature(b'{"id": 2}', "shh")

        result = CliRunner().invoke(
            cli, ["verify", "--signature", signature, "--secret", "shh", str(body)]
        )

        assert result.exit_code == 1
        assert "Authentication failed" in result.output
        assert "HTTP 401" in result.output

    def test_secret_from_environment(self, tmp_path: Path) -> None:
        body = tmp_path / "body.json"
        body.write_bytes(b"{}")

        result = CliRunner().invoke(
            cli,
            ["verify", "--signature", compute_signature(b"{}", "env-secret"), str(body)],
            env={"OMNEO_SECRET": "env-secret"},
        )

        assert result.exit_code == 0

    def test_missing_secret(self, tmp_path: Path) -> None:
        body = tmp_path / "body.json"
        body.write_bytes(b"{}")

        result = CliRunner().invoke(
            cli, ["verify", "--signature", "abcd", str(body)], env={"OMNEO_SECRET": ""}
        )

        assert result.exit_code == 1
        assert "HTTP 422" in result.output


class TestValidateCommand:
    """Tests for `omneo-sync validate`."""

    def test_valid_document(self, tmp_path: Path) -> None:
        path = tmp_path / "omneo.config.json"
        path.write_text(
            json.dumps(
                {
                    "tenant": "acme",
                    "namespace": "crm",
                    "webhooks": {"profile.created": True, "profile.updated": False},
                }
            )
        )

        result = CliRunner().invoke(cli, ["validate", "--state", str(path)])

        assert result.exit_code == 0
        assert "tenant=acme namespace=crm webhooks=1 apps=0" in result.output

    def test_incomplete_document(self, tmp_path: Path) -> None:
        path = tmp_path / "omneo.config.json"
        path.write_text(json.dumps({"tenant": "acme"}))

        result = CliRunner().invoke(cli, ["validate", "--state", str(path)])

        assert result.exit_code == 1
        assert "namespace is required" in result.output


class TestSyncCommand:
    """Tests for `omneo-sync sync` with the run patched out."""

    def make_report(self, *webhook_statuses: SyncStatus) -> SyncReport:
        outcomes = [
            SyncOutcome(
                key=f"trigger-{i}",
                status=status,
                failure=RuntimeError("boom") if status == SyncStatus.ERROR else None,
            )
            for i, status in enumerate(webhook_statuses)
        ]
        return SyncReport(
            results=[
                ReconcileResult(kind=ResourceKind.WEBHOOK, outcomes=outcomes),
                ReconcileResult(kind=ResourceKind.APP, skipped_reason="clienteling is disabled"),
            ]
        )

    def test_prints_summary(self) -> None:
        report = self.make_report(SyncStatus.CREATED, SyncStatus.SKIPPED)

        with patch("omneo_sync.cli.run_sync", AsyncMock(return_value=report)) as run:
            result = CliRunner().invoke(
                cli, ["sync", "--public-url", "https://abc.ngrok.app"], env=ENV
            )

        assert result.exit_code == 0
        assert run.call_args.kwargs["public_url"] == "https://abc.ngrok.app"
        assert "Webhook sync summary:" in result.output
        assert "  + created: 1" in result.output
        assert "  = skipped: 1" in result.output
        assert "Clienteling app sync summary: skipped (clienteling is disabled)" in result.output

    def test_item_errors_exit_3(self) -> None:
        report = self.make_report(SyncStatus.CREATED, SyncStatus.ERROR)

        with patch("omneo_sync.cli.run_sync", AsyncMock(return_value=report)):
            result = CliRunner().invoke(cli, ["sync"], env=ENV)

        assert result.exit_code == 3
        assert "trigger-1: boom" in result.output

    def test_configuration_error_exit_1(self) -> None:
        failing = AsyncMock(side_effect=ConfigurationError("tenant is required"))

        with patch("omneo_sync.cli.run_sync", failing):
            result = CliRunner().invoke(cli, ["sync"], env=ENV)

        assert result.exit_code == 1
        assert "tenant is required" in result.output

    def test_missing_environment(self) -> None:
        result = CliRunner().invoke(cli, ["sync"], env={"OMNEO_TOKEN": "", "OMNEO_TENANT": ""})

        assert result.exit_code == 1
        assert "OMNEO_TOKEN" in result.output


class TestPlanCommand:
    """Tests for `omneo-sync plan`."""

    def test_lists_changes(self) -> None:
        changes = [
            PlannedChange(ResourceKind.WEBHOOK, "profile.created", Decision.UPDATE, ("url",)),
            PlannedChange(ResourceKind.APP, "lookbook", Decision.CREATE),
        ]

        with patch("omneo_sync.cli.run_plan", AsyncMock(return_value=changes)):
            result = CliRunner().invoke(cli, ["plan"], env=ENV)

        assert result.exit_code == 0
        assert result.output.splitlines() == [
            "update  webhook  profile.created (url)",
            "create  app      lookbook",
        ]

    def test_nothing_to_sync(self) -> None:
        with patch("omneo_sync.cli.run_plan", AsyncMock(return_value=[])):
            result = CliRunner().invoke(cli, ["plan"], env=ENV)

        assert result.output.strip() == "Nothing to sync."
