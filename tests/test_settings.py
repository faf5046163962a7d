"""Tests for JSON settings persistence and logging setup."""

import json
import logging

from timesheettimer.logger import setup_logging
from timesheettimer.settings import Settings, load_settings, save_settings


class TestSettings:

    def test_defaults_when_missing(self, tmp_path):
        settings = load_settings(tmp_path / "settings.json")
        assert settings == Settings(workspace=settings.workspace)
        assert settings.discrepancy_tolerance_hours == 0.1
        assert settings.tick_interval_ms == 1000
        assert settings.min_duration_minutes == 15

    def test_round_trip(self, tmp_path):
        path = tmp_path / "nested" / "settings.json"
        save_settings(Settings(workspace="/w", user_id=7, rounding_minutes=6), path)
        loaded = load_settings(path)
        assert loaded.workspace == "/w"
        assert loaded.user_id == 7
        assert loaded.rounding_minutes == 6

    def test_unknown_keys_ignored(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text(json.dumps({"user_id": 3, "theme": "dark"}), encoding="utf-8")
        assert load_settings(path).user_id == 3

    def test_corrupt_file_falls_back(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text("{not json", encoding="utf-8")
        assert load_settings(path).user_id is None


class TestLogging:

    def test_setup_is_idempotent(self, tmp_path):
        logger = setup_logging("DEBUG", log_dir=tmp_path, console=True)
        try:
            setup_logging("DEBUG", log_dir=tmp_path, console=True)
            names = [h.get_name() for h in logger.handlers]
            assert names.count("timesheettimer:file") == 1
            assert names.count("timesheettimer:console") == 1

            logging.getLogger("timesheettimer.timer.engine").info("hello")
            for handler in logger.handlers:
                handler.flush()
            assert "hello" in (tmp_path / "timesheettimer.log").read_text(encoding="utf-8")
        finally:
            for handler in list(logger.handlers):
                logger.removeHandler(handler)
                handler.close()
