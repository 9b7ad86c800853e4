"""Platform-aware path resolution and persisted user settings."""

import json
import logging
import os
import sys
from dataclasses import asdict, dataclass, fields
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_CHECK_INTERVAL_MS = 5000
MIN_CHECK_INTERVAL_MS = 1000


class UnsupportedPlatformError(RuntimeError):
    """Raised when Cursor's storage location cannot be resolved on this OS."""


def _cursor_user_dir() -> Path:
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "Cursor" / "User"
    elif sys.platform == "win32":
        return Path(os.environ.get("APPDATA", "")) / "Cursor" / "User"
    elif sys.platform.startswith("linux"):
        return Path.home() / ".config" / "Cursor" / "User"
    raise UnsupportedPlatformError(f"Unsupported operating system: {sys.platform}")


def get_cursor_workspace_path() -> Path:
    """Return the path to Cursor's workspaceStorage directory."""
    env = os.environ.get("CURSOR_CHAT_SHARE_WORKSPACE_PATH")
    if env:
        return Path(env)
    return _cursor_user_dir() / "workspaceStorage"


def get_cursor_global_path() -> Path:
    """Return the path to Cursor's globalStorage state.vscdb."""
    env = os.environ.get("CURSOR_CHAT_SHARE_WORKSPACE_PATH")
    if env:
        # globalStorage sits alongside workspaceStorage
        return Path(env).parent / "globalStorage" / "state.vscdb"
    return _cursor_user_dir() / "globalStorage" / "state.vscdb"


def get_settings_path() -> Path:
    """Return where settings are persisted between runs."""
    env = os.environ.get("CURSOR_CHAT_SHARE_SETTINGS")
    if env:
        return Path(env)
    return Path.home() / ".config" / "cursor-chat-share" / "settings.json"


@dataclass
class Settings:
    """User settings. Only the poll interval is recognized."""

    check_interval_ms: int = DEFAULT_CHECK_INTERVAL_MS

    def __post_init__(self):
        self.check_interval_ms = clamp_interval(self.check_interval_ms)


def clamp_interval(interval_ms) -> int:
    """Coerce an interval to an int no smaller than the allowed minimum."""
    try:
        value = int(interval_ms)
    except (TypeError, ValueError):
        logger.warning("Invalid check interval %r, using default", interval_ms)
        return DEFAULT_CHECK_INTERVAL_MS
    if value < MIN_CHECK_INTERVAL_MS:
        logger.warning(
            "Check interval %dms is below the %dms minimum", value, MIN_CHECK_INTERVAL_MS
        )
        return MIN_CHECK_INTERVAL_MS
    return value


def load_settings(path: Path | None = None) -> Settings:
    """Load saved settings merged over the defaults."""
    path = path or get_settings_path()
    if not path.exists():
        return Settings()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError) as e:
        logger.warning("Failed to read settings from %s: %s", path, e)
        return Settings()
    if not isinstance(data, dict):
        return Settings()

    known = {f.name for f in fields(Settings)}
    return Settings(**{k: v for k, v in data.items() if k in known})


def save_settings(settings: Settings, path: Path | None = None) -> Path:
    """Persist settings as JSON, returning the file written."""
    path = path or get_settings_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(asdict(settings), indent=2), encoding="utf-8")
    return path
