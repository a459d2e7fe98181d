"""Blocking notice shown when startup or playback needs the user's attention."""

from __future__ import annotations

from textual.app import ComposeResult
from textual.containers import Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Static


class ErrorModal(ModalScreen[None]):
    """Show a multi-line user-facing error until acknowledged."""

    DEFAULT_CSS = """
    ErrorModal {
        align: center middle;
    }

    ErrorModal #notice {
        padding: 1 2;
        border: heavy $error;
        width: 60%;
        height: auto;
    }

    ErrorModal #notice-title {
        text-style: bold;
        color: $error;
    }
    """

    BINDINGS = [
        ("escape", "acknowledge", "Close"),
        ("enter", "acknowledge", "Close"),
    ]

    def __init__(self, message: str, *, heading: str = "playhead") -> None:
        super().__init__()
        self.message = message
        self.heading = heading

    def compose(self) -> ComposeResult:
        with Vertical(id="notice"):
            yield Static(self.heading, id="notice-title")
            yield Static(self.message, id="notice-message", markup=False)
            yield Button("OK", id="ok", variant="error")

    def on_mount(self) -> None:
        self.query_one("#ok", Button).focus()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        event.stop()
        self.action_acknowledge()

    def action_acknowledge(self) -> None:
        self.dismiss(None)
