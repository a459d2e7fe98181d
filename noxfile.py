"""Quality gates for playhead: ruff, mypy, pytest, plus an opt-in VLC smoke run."""

from __future__ import annotations

import nox

nox.options.sessions = ["lint", "typecheck", "tests"]

PACKAGE = "src/playhead"


@nox.session
def lint(session: nox.Session) -> None:
    session.install("ruff")
    session.run("ruff", "check", ".")
    session.run("ruff", "format", "--check", ".")


@nox.session(name="format")
def format_sources(session: nox.Session) -> None:
    """Rewrite sources in place with ruff's autofixes and formatter."""
    session.install("ruff")
    session.run("ruff", "check", "--fix", ".")
    session.run("ruff", "format", ".")


@nox.session
def typecheck(session: nox.Session) -> None:
    session.install("mypy", "-e", ".")
    session.run("mypy", PACKAGE)


@nox.session
def tests(session: nox.Session) -> None:
    """Pytest suite; extra arguments after ``--`` are passed through."""
    session.install("-e", ".[test]")
    session.run("pytest", *session.posargs)


@nox.session(name="vlc-smoke")
def vlc_smoke(session: nox.Session) -> None:
    """Play a real source through libVLC, e.g. ``nox -s vlc-smoke -- song.mp3``."""
    if not session.posargs:
        session.error("pass a file path or stream URL after --")
    session.install("-e", ".")
    session.run("python", "tools/vlc_smoke.py", *session.posargs)


@nox.session(python=False)
def local(session: nox.Session) -> None:
    """Run every default gate in the current interpreter without a virtualenv."""
    for command in (
        ("ruff", "check", "."),
        ("ruff", "format", "--check", "."),
        ("mypy", PACKAGE),
        ("pytest",),
    ):
        session.run(*command, external=True)
