"""Per-user directories resolved through platformdirs."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from platformdirs import AppDirs

APP_NAME = "playhead"


@lru_cache(maxsize=4)
def get_app_dirs(app_name: str = APP_NAME) -> AppDirs:
    return AppDirs(app_name)


def log_dir(app_name: str = APP_NAME) -> Path:
    """Return the per-user log directory, creating it if needed."""
    path = Path(get_app_dirs(app_name).user_log_dir)
    path.mkdir(parents=True, exist_ok=True)
    return path


def lyrics_dir(app_name: str = APP_NAME) -> Path:
    """Default folder searched for `.lrc` / `.txt` lyric sidecars.

    Not created here; a missing folder simply yields no lyrics.
    """
    return Path(get_app_dirs(app_name).user_data_dir) / "lyrics"
