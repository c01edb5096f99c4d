"""
Tests for the structlog processors.
"""

import structlog

from app.core.logging import REDACTED, bind_analysis, component_tagger, redact_secrets


class TestRedactSecrets:

    def test_masks_secret_keys(self):
        event = redact_secrets(None, "info", {"event": "x", "credential": "fc-123", "Authorization": "Bearer t"})
        assert event["credential"] == REDACTED
        assert event["Authorization"] == REDACTED

    def test_leaves_other_keys_and_missing_secrets(self):
        event = redact_secrets(None, "info", {"event": "x", "url": "https://example.com", "credential": None})
        assert event == {"event": "x", "url": "https://example.com", "credential": None}


def test_component_tag_does_not_override():
    tag = component_tagger("worker")
    assert tag(None, "info", {})["component"] == "worker"
    assert tag(None, "info", {"component": "api"})["component"] == "api"


def test_bind_analysis_replaces_previous_context():
    bind_analysis("first", task_id="t1")
    bind_analysis("second")

    assert structlog.contextvars.get_contextvars() == {"analysis_id": "second"}
    structlog.contextvars.clear_contextvars()
