"""Tests for platform-specific paths."""

from __future__ import annotations

from pathlib import Path

import playhead.paths as paths


class FakeAppDirs:
    """Minimal AppDirs stand-in used to control path roots during tests."""

    def __init__(self, data_dir: Path, log_dir: Path) -> None:
        self.user_data_dir = str(data_dir)
        self.user_log_dir = str(log_dir)


def test_paths_use_platformdirs(tmp_path, monkeypatch) -> None:
    data_dir = tmp_path / "data"
    logs = tmp_path / "logs"

    def fake_app_dirs(app_name: str) -> FakeAppDirs:
        assert app_name == "playhead"
        return FakeAppDirs(data_dir, logs)

    monkeypatch.setattr(paths, "AppDirs", fake_app_dirs)
    paths.get_app_dirs.cache_clear()
    try:
        assert paths.log_dir() == logs
        assert logs.exists()
        assert paths.lyrics_dir() == data_dir / "lyrics"
        assert not (data_dir / "lyrics").exists()
    finally:
        paths.get_app_dirs.cache_clear()
