"""End-to-end runs of the headless player on fake engines."""

from __future__ import annotations

import asyncio
from pathlib import Path

import playhead.cli as cli_module
from playhead.services.fake_backend import FakeLocalBackend, FakeRemoteSurface
from playhead.services.remote_backend import RemoteStreamBackend


def _fast_backends(fail_sources=()):
    def build(name: str, *, poll_interval_s: float):
        return {
            "local": FakeLocalBackend(
                tick_interval_ms=10,
                default_duration_s=0.02,
                fail_sources=fail_sources,
            ),
            "remote": RemoteStreamBackend(FakeRemoteSurface()),
        }

    return build


def _audio_files(tmp_path: Path, *names: str) -> list[str]:
    paths = []
    for name in names:
        path = tmp_path / name
        path.write_bytes(b"\x00" * 32)
        paths.append(str(path))
    return paths


def _run_runner(sources: list[str], tmp_path: Path) -> int:
    runner = cli_module.HeadlessRunner(backend_name="fake", poll_interval_s=0.5)
    return asyncio.run(
        asyncio.wait_for(runner.run(sources, [tmp_path / "lyrics"]), timeout=5)
    )


def test_runner_plays_through_playlist_then_exits(
    tmp_path, monkeypatch, capsys
) -> None:
    monkeypatch.setattr(cli_module, "build_backends", _fast_backends())
    sources = _audio_files(tmp_path, "b.mp3", "a.mp3")

    assert _run_runner(sources, tmp_path) == 0

    out = capsys.readouterr().out
    assert out.index("Now playing: Unknown Artist - a") < out.index(
        "Now playing: Unknown Artist - b"
    )


def test_runner_skips_tracks_that_fail_to_load(tmp_path, monkeypatch, capsys) -> None:
    sources = _audio_files(tmp_path, "a.mp3", "b.mp3")
    monkeypatch.setattr(
        cli_module, "build_backends", _fast_backends(fail_sources={sources[0]})
    )

    assert _run_runner(sources, tmp_path) == 0

    captured = capsys.readouterr()
    assert "Failed to load the selected track." in captured.err
    assert "Now playing: Unknown Artist - b" in captured.out


def test_runner_without_playable_sources_returns_usage_error(
    tmp_path, capsys
) -> None:
    notes = tmp_path / "notes.txt"
    notes.write_text("", encoding="utf-8")
    assert _run_runner([str(notes)], tmp_path) == 2
    assert "No playable sources" in capsys.readouterr().err
