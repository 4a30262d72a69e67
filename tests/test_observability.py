"""
Tests for observability — logging setup and health aggregation.
"""

import logging

import pytest

from sullivan_ctl.core.observability.health import ComponentHealth, StackHealth
from sullivan_ctl.core.observability.logging_config import resolve_level, setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


# ── Logging ──────────────────────────────────────────────────────────


class TestResolveLevel:
    def test_precedence(self):
        assert resolve_level(debug=True, verbose=True, quiet=True) == "DEBUG"
        assert resolve_level(verbose=True, quiet=True) == "INFO"
        assert resolve_level(quiet=True, env_level="DEBUG") == "ERROR"
        assert resolve_level(env_level="INFO") == "INFO"
        assert resolve_level() == "WARNING"


class TestSetupLogging:
    def test_console_only(self, restore_root_logger):
        setup_logging("INFO")
        root = restore_root_logger
        assert len(root.handlers) == 1
        assert root.level == logging.INFO

    def test_file_handler_with_own_level(self, restore_root_logger, tmp_path):
        log_file = tmp_path / "logs" / "stage2.log"
        setup_logging("WARNING", log_file=str(log_file), log_file_level="DEBUG")
        root = restore_root_logger
        assert len(root.handlers) == 2
        assert root.level == logging.DEBUG

        logging.getLogger("sullivan_ctl.test").debug("written to file only")
        for handler in root.handlers:
            handler.flush()
        assert "written to file only" in log_file.read_text()

    def test_unknown_level_falls_back(self, restore_root_logger):
        setup_logging("LOUD")
        assert restore_root_logger.level == logging.WARNING

    def test_third_party_quieted(self, restore_root_logger):
        setup_logging("INFO")
        assert logging.getLogger("filelock").level == logging.WARNING


# ── Health ───────────────────────────────────────────────────────────


class TestStackHealth:
    def test_empty_is_healthy(self):
        assert StackHealth().status == "healthy"

    def test_unchecked_does_not_degrade(self):
        h = StackHealth()
        h.add(ComponentHealth(name="sonarr", status="healthy"))
        h.add(ComponentHealth(name="watchtower", status="unchecked"))
        assert h.status == "healthy"

    def test_unreachable_degrades(self):
        h = StackHealth()
        h.add(ComponentHealth(name="sonarr", status="healthy"))
        h.add(ComponentHealth(name="radarr", status="unreachable", message="connection refused"))
        assert h.status == "degraded"
        assert [c.name for c in h.unreachable] == ["radarr"]

    def test_to_dict(self):
        h = StackHealth()
        h.add(ComponentHealth(name="plex", status="healthy", details={"status_code": 200}))
        d = h.to_dict()
        assert d["status"] == "healthy"
        assert d["timestamp"]
        assert d["components"][0]["details"] == {"status_code": 200}
