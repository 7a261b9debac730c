"""Tests for structured logging setup."""

import pytest
import structlog

from patient_compliance.utils.logging import (
    MASK,
    add_app_context,
    mask_identifiers,
    render_processor,
    setup_logging,
)


@pytest.fixture
def restore_structlog():
    """Undo global logging configuration after the test."""
    yield
    structlog.reset_defaults()


class TestLoggingProcessors:
    """Event processors."""

    def test_identifiers_are_masked(self):
        """Identifying values are replaced, ids and empty values are kept."""
        event = {
            "event": "Patient registered",
            "patient_id": "3f1c",
            "cpf": "52998224725",
            "full_name": "Maria Aparecida da Silva",
            "email": None,
        }

        masked = mask_identifiers(None, "info", event)

        assert masked["cpf"] == MASK
        assert masked["full_name"] == MASK
        assert masked["email"] is None
        assert masked["patient_id"] == "3f1c"

    def test_app_context(self, settings):
        """Events carry the app name and environment."""
        event = add_app_context(settings)(None, "info", {"event": "x"})

        assert event["app"] == settings.app_name
        assert event["environment"] == "testing"

    def test_renderer_follows_format(self, settings):
        """JSON format selects the JSON renderer."""
        json_settings = settings.model_copy(update={"log_format": "json"})

        assert isinstance(render_processor(json_settings), structlog.processors.JSONRenderer)
        assert isinstance(render_processor(settings), structlog.dev.ConsoleRenderer)

    def test_setup_logging_configures_structlog(self, settings, restore_structlog):
        """Setup installs the masking processor."""
        setup_logging(settings)

        assert mask_identifiers in structlog.get_config()["processors"]
