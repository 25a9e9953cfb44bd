"""Unit tests for settings, structured logging, timers and JSON helpers."""

import json
import logging
from pathlib import Path

from orderfusion.core.logging_config import StructuredFormatter, configure_structured_logging
from orderfusion.core.settings import AppSettings
from orderfusion.utils.io_utils import read_json
from orderfusion.utils.timing import StageTimers


class TestSettings:
    """Tests for environment settings."""

    def test_defaults(self, monkeypatch):
        """Test defaults without environment overrides."""
        for name in ("LOG_LEVEL", "LOG_JSON", "CATALOG_PATH", "ENABLE_REFERENCE_CORRECTION"):
            monkeypatch.delenv(name, raising=False)
        settings = AppSettings(_env_file=None)
        assert settings.LOG_LEVEL == "INFO"
        assert settings.LOG_JSON is True
        assert settings.ENABLE_REFERENCE_CORRECTION is True
        assert settings.catalog_path is None

    def test_environment_override(self, monkeypatch, tmp_path):
        """Test values are read from the environment."""
        monkeypatch.setenv("CATALOG_PATH", str(tmp_path / "catalog.json"))
        monkeypatch.setenv("ENABLE_REFERENCE_CORRECTION", "false")
        settings = AppSettings(_env_file=None)
        assert settings.catalog_path == (tmp_path / "catalog.json").resolve()
        assert settings.ENABLE_REFERENCE_CORRECTION is False

    def test_blank_catalog_path(self):
        """Test a blank path means no catalog."""
        assert AppSettings(_env_file=None, CATALOG_PATH="  ").catalog_path is None


class TestStructuredLogging:
    """Tests for the JSON formatter."""

    def _record(self, **extra):
        record = logging.LogRecord("orderfusion.test", logging.INFO, __file__, 10, "Stage done", None, None)
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_whitelisted_extras(self):
        """Test run id and stage are emitted, unknown extras are not."""
        data = json.loads(StructuredFormatter().format(self._record(run_id="abc", stage="fusion", other=1)))
        assert data["message"] == "Stage done"
        assert data["level"] == "INFO"
        assert data["run_id"] == "abc"
        assert data["stage"] == "fusion"
        assert "other" not in data
        assert data["timestamp"].endswith("Z")

    def test_configure_installs_handler(self):
        """Test the root logger gets a single handler with the JSON formatter."""
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        try:
            configure_structured_logging(level="debug", json_format=True)
            assert len(root.handlers) == 1
            assert isinstance(root.handlers[0].formatter, StructuredFormatter)
            assert root.level == logging.DEBUG
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)

    def test_configure_defaults_from_settings(self, monkeypatch):
        """Test LOG_LEVEL and LOG_JSON apply when no arguments are given."""
        configured = AppSettings(_env_file=None, LOG_LEVEL="WARNING", LOG_JSON=False)
        monkeypatch.setattr("orderfusion.core.logging_config.get_settings", lambda: configured)
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        try:
            configure_structured_logging()
            assert root.level == logging.WARNING
            assert not isinstance(root.handlers[0].formatter, StructuredFormatter)
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)


class TestUtils:
    """Tests for timers and JSON helpers."""

    def test_stage_timers_accumulate(self):
        """Test repeated stages add up."""
        timers = StageTimers()
        with timers.timer("fusion"):
            pass
        with timers.timer("fusion"):
            pass
        assert list(timers.totals) == ["fusion"]
        assert timers.calls == {"fusion": 2}
        assert timers.as_ms()["fusion"] >= 0
        assert timers.total_seconds == timers.totals["fusion"]

    def test_read_json_utf8(self, tmp_path):
        """Test UTF-8 text is decoded as written."""
        path = Path(tmp_path) / "catalog.json"
        path.write_text(json.dumps({"nom": "Modèle"}, ensure_ascii=False), encoding="utf-8")
        assert read_json(path) == {"nom": "Modèle"}
