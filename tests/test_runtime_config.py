"""Tests for runtime config precedence behavior."""

from __future__ import annotations

from playhead.app import build_parser as app_build_parser
from playhead.cli import build_parser as cli_build_parser
from playhead.runtime_config import (
    clamp_poll_interval,
    normalize_backend_name,
    resolve_log_level,
)


def test_resolve_log_level_precedence_matrix() -> None:
    assert resolve_log_level(verbose=False, quiet=False) == "INFO"
    assert resolve_log_level(verbose=True, quiet=False) == "DEBUG"
    assert resolve_log_level(verbose=False, quiet=True) == "WARNING"
    assert resolve_log_level(verbose=True, quiet=True) == "WARNING"


def test_backend_parser_and_log_resolution_consistent_across_entrypoints() -> None:
    for parser in [app_build_parser(), cli_build_parser()]:
        args = parser.parse_args(["--backend", "fake", "--verbose", "--quiet"])
        assert args.backend == "fake"
        assert resolve_log_level(verbose=args.verbose, quiet=args.quiet) == "WARNING"


def test_normalize_backend_name_defaults_to_vlc() -> None:
    assert normalize_backend_name(None) == "vlc"
    assert normalize_backend_name(" FAKE ") == "fake"
    assert normalize_backend_name("mystery") == "vlc"


def test_poll_interval_is_clamped_to_supported_window() -> None:
    assert clamp_poll_interval(2.0) == 0.5
    assert clamp_poll_interval(0.0) == 0.05
    assert clamp_poll_interval(0.25) == 0.25
