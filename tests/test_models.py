"""Tests for Pydantic models."""

from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from omneo_sync.config import ConfigurationError
from omneo_sync.models import AppSpec, DesiredState, RemoteApp, RemoteWebhook


def make_app(handle: str = "lookbook", **overrides: object) -> dict:
    app = {
        "handle": handle,
        "title": "Lookbook",
        "button": {"label": "Open"},
        "clienteling": {"url": "https://apps.example.com/lookbook"},
    }
    app.update(overrides)
    return app


class TestAppSpec:
    """Tests for AppSpec model."""

    def test_defaults(self) -> None:
        app = AppSpec.model_validate(make_app())

        assert app.enabled is True
        assert app.fullscreen is True
        assert app.development is False
        assert app.settings == []

    def test_remote_handle(self) -> None:
        """Test that the remote record handle carries the app prefix."""
        app = AppSpec.model_validate(make_app("lookbook"))

        assert app.remote_handle == "app__lookbook"

    def test_blank_handle_rejected(self) -> None:
        """Test that a whitespace-only handle is rejected."""
        with pytest.raises(ValidationError):
            AppSpec.model_validate(make_app("   "))

    def test_handle_stripped(self) -> None:
        assert AppSpec.model_validate(make_app(" lookbook ")).handle == "lookbook"

    def test_missing_button_rejected(self) -> None:
        data = make_app()
        del data["button"]

        with pytest.raises(ValidationError):
            AppSpec.model_validate(data)

    def test_to_custom_field(self) -> None:
        """Test the custom-field body sent to the API."""
        app = AppSpec.model_validate(make_app(settings=[{"key": "theme"}], development=True))

        body = app.to_custom_field()

        assert body["handle"] == "app__lookbook"
        assert body["namespace"] == "clienteling.setting"
        assert body["name"] == "Lookbook"
        assert body["type"] == "json"
        assert body["value"] == {
            "development": True,
            "enabled": True,
            "fullscreen": True,
            "button": {"label": "Open"},
            "title": "Lookbook",
            "clienteling": {"url": "https://apps.example.com/lookbook"},
            "settings": [{"key": "theme"}],
        }


class TestDesiredState:
    """Tests for DesiredState model."""

    def test_empty_document(self) -> None:
        state = DesiredState.model_validate({})

        assert state.tenant == ""
        assert state.webhooks == {}
        assert state.apps() == []
        assert state.clienteling_enabled is True
        assert state.has_clienteling_config() is False

    def test_enabled_triggers_in_document_order(self) -> None:
        """Test that only enabled triggers are returned, in order."""
        state = DesiredState.model_validate(
            {
                "webhooks": {
                    "profile.updated": True,
                    "profile.created": False,
                    "order.created": True,
                }
            }
        )

        assert state.enabled_triggers() == ["profile.updated", "order.created"]

    def test_clienteling_explicitly_disabled(self) -> None:
        state = DesiredState.model_validate(
            {"clienteling": {"enabled": False, "apps": [make_app()]}}
        )

        assert state.clienteling_enabled is False
        assert state.has_clienteling_config() is True
        assert len(state.apps()) == 1

    def test_clienteling_enabled_unset(self) -> None:
        """Test that an unset flag does not disable clienteling."""
        state = DesiredState.model_validate({"clienteling": {"apps": [make_app()]}})

        assert state.clienteling_enabled is True
        assert state.has_clienteling_config() is False

    def test_last_sync_alias(self) -> None:
        state = DesiredState.model_validate({"lastSync": "2026-01-02T03:04:05Z"})

        assert state.last_sync == datetime(2026, 1, 2, 3, 4, 5, tzinfo=UTC)

    def test_to_document_round_trips_alias(self) -> None:
        state = DesiredState.model_validate(
            {
                "tenant": "acme",
                "namespace": "crm",
                "webhooks": {"profile.created": True},
                "lastSync": "2026-01-02T03:04:05Z",
            }
        )

        document = state.to_document()

        assert document["lastSync"].startswith("2026-01-02T03:04:05")
        assert "last_sync" not in document
        assert "clienteling" not in document

    def test_to_document_keeps_source_keys(self) -> None:
        source = {"tenant": "acme", "webhooks": {"profile.created": True}, "notes": "keep me"}
        state = DesiredState.model_validate(source).with_source(source)

        stamped = state.model_copy(update={"last_sync": datetime(2026, 1, 2, tzinfo=UTC)})

        assert state.to_document() == source
        assert stamped.to_document()["notes"] == "keep me"
        assert stamped.to_document()["lastSync"].startswith("2026-01-02")

    def test_unknown_triggers(self) -> None:
        state = DesiredState.model_validate(
            {"webhooks": {"profile.created": True, "profile.exploded": False}}
        )

        assert state.unknown_triggers() == ["profile.exploded"]


class TestValidateForSync:
    """Tests for desired state completeness checks."""

    def test_valid_state(self) -> None:
        state = DesiredState.model_validate(
            {"tenant": "acme", "namespace": "crm", "webhooks": {"profile.created": True}}
        )

        state.validate_for_sync()

    def test_missing_fields_all_reported(self) -> None:
        """Test that tenant, namespace and webhooks are all reported."""
        with pytest.raises(ConfigurationError) as exc_info:
            DesiredState.model_validate({"namespace": "  "}).validate_for_sync()

        message = str(exc_info.value)
        assert "tenant is required" in message
        assert "namespace is required" in message
        assert "at least one webhook" in message

    def test_all_disabled_webhooks_still_count(self) -> None:
        """Test that a webhook map with only disabled entries is accepted."""
        state = DesiredState.model_validate(
            {"tenant": "acme", "namespace": "crm", "webhooks": {"profile.created": False}}
        )

        state.validate_for_sync()

    def test_unknown_trigger_rejected(self) -> None:
        state = DesiredState.model_validate(
            {"tenant": "acme", "namespace": "crm", "webhooks": {"profile.exploded": True}}
        )

        with pytest.raises(ConfigurationError) as exc_info:
            state.validate_for_sync()

        assert "profile.exploded" in str(exc_info.value)

    def test_duplicate_app_handles_rejected(self) -> None:
        state = DesiredState.model_validate(
            {
                "tenant": "acme",
                "namespace": "crm",
                "webhooks": {"profile.created": True},
                "clienteling": {"apps": [make_app("lookbook"), make_app("lookbook")]},
            }
        )

        with pytest.raises(ConfigurationError) as exc_info:
            state.validate_for_sync()

        assert "duplicate app handles" in str(exc_info.value)


class TestRemoteModels:
    """Tests for remote payload models."""

    def test_webhook_numeric_id(self) -> None:
        """Test that numeric ids from the API become strings."""
        hook = RemoteWebhook.model_validate(
            {"id": 42, "trigger": "profile.created", "namespace": "crm", "url": "https://x"}
        )

        assert hook.id == "42"

    def test_webhook_extra_fields_ignored(self) -> None:
        hook = RemoteWebhook.model_validate(
            {
                "id": "7",
                "trigger": "profile.created",
                "namespace": "crm",
                "url": "https://x",
                "created_at": "2026-01-01",
            }
        )

        assert hook.trigger == "profile.created"

    def test_webhook_missing_url_rejected(self) -> None:
        with pytest.raises(ValidationError):
            RemoteWebhook.model_validate(
                {"id": 1, "trigger": "profile.created", "namespace": "crm"}
            )

    def test_app_null_value(self) -> None:
        """Test that a custom field without a value parses with empty fields."""
        record = RemoteApp.model_validate({"handle": "app__lookbook", "value": None})

        assert record.value.title is None
        assert record.value.button_label is None
        assert record.value.url is None

    def test_app_nested_value(self) -> None:
        record = RemoteApp.model_validate(
            {
                "handle": "app__lookbook",
                "value": {
                    "title": "Lookbook",
                    "button": {"label": "Open"},
                    "clienteling": {"url": "https://apps.example.com/lookbook"},
                    "enabled": True,
                },
            }
        )

        assert record.value.button_label == "Open"
        assert record.value.url == "https://apps.example.com/lookbook"
        assert record.value.fullscreen is None
