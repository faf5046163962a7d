"""Application settings with JSON persistence.

Settings are stored at:
    ~/.timesheettimer/settings.json

Usage::

    settings = load_settings()
    settings.user_id = 7
    save_settings(settings)
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, asdict, field, fields
from pathlib import Path

log = logging.getLogger(__name__)

# Same directory the database lives in
APP_SUPPORT_DIR = Path.home() / ".timesheettimer"
SETTINGS_PATH = APP_SUPPORT_DIR / "settings.json"


@dataclass
class Settings:
    """All user-configurable preferences."""

    # ── workspace / identity ──────────────────────────────────────────
    workspace: str = field(default_factory=lambda: str(Path.cwd()))
    user_id: int | None = None

    # ── timer ─────────────────────────────────────────────────────────
    discrepancy_tolerance_hours: float = 0.1
    tick_interval_ms: int = 1000

    # ── local backend booking policy ──────────────────────────────────
    min_duration_minutes: int = 15
    rounding_minutes: int = 15

    # ── logging ───────────────────────────────────────────────────────
    log_level: str = "INFO"
    log_to_console: bool = False


def load_settings(path: Path | None = None) -> Settings:
    """Load settings from disk, falling back to defaults."""
    path = path or SETTINGS_PATH
    try:
        if path.exists():
            data = json.loads(path.read_text(encoding="utf-8"))
            # Only use keys that exist in the dataclass
            valid_keys = {f.name for f in fields(Settings)}
            filtered = {k: v for k, v in data.items() if k in valid_keys}
            return Settings(**filtered)
    except (OSError, ValueError, TypeError, AttributeError) as exc:
        log.warning("Ignoring unreadable settings file %s: %s", path, exc)
    return Settings()


def save_settings(settings: Settings, path: Path | None = None) -> None:
    """Write settings to disk as JSON."""
    path = path or SETTINGS_PATH
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        json.dumps(asdict(settings), indent=2) + "\n",
        encoding="utf-8",
    )
