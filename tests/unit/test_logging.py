import logging

import pytest
import structlog
from structlog.testing import capture_logs

from relational.criteria import eq
from relational.errors import CommandExecutionError
from utils.logging_config import configure_logging


def test_adapter_operations_emit_structured_events(adapter):
    with capture_logs() as logs:
        with adapter.begin_transaction(name="seed") as tx:
            adapter.insert("users", {"name": "Ann"}, transaction=tx)
        with pytest.raises(CommandExecutionError):
            adapter.insert("users", {"id": 1, "name": "Dup"})

    events = [entry["event"] for entry in logs]
    assert events.count("schema_loaded") == 1
    assert "transaction_begun" in events
    assert "transaction_committed" in events
    failed = next(entry for entry in logs if entry["event"] == "command_failed")
    assert failed["log_level"] == "warning"
    assert failed["sql"].startswith('INSERT INTO "users"')


def test_executed_commands_are_logged_without_values(adapter):
    with capture_logs() as logs:
        adapter.find_one("users", eq("name", "secret-value"))
    executing = [entry for entry in logs if entry["event"] == "command_executing"]
    assert executing and executing[-1]["parameters"] == 1
    assert all("secret-value" not in str(entry) for entry in logs)


def test_configure_logging_sets_level(monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "warning")
    try:
        configure_logging(json_output=True)
        assert structlog.is_configured()
        assert structlog.get_config()["wrapper_class"] is structlog.make_filtering_bound_logger(logging.WARNING)
    finally:
        structlog.reset_defaults()
