"""Key reference screen."""

from textual import events
from textual.app import ComposeResult
from textual.containers import Grid, VerticalScroll
from textual.screen import ModalScreen
from textual.widgets import Static

HELP_SECTIONS: tuple[tuple[str, tuple[tuple[str, str], ...]], ...] = (
    (
        "Board",
        (
            ("h l / ← →", "Select column"),
            ("j k / ↑ ↓", "Select task"),
            ("r", "Reload from server"),
        ),
    ),
    (
        "Tasks",
        (
            ("n", "New task in selected column"),
            ("H / Shift+←", "Move task one column left"),
            ("L / Shift+→", "Move task one column right"),
            ("drag", "Drop a card on another column"),
            ("d / click ✗", "Delete task"),
        ),
    ),
    (
        "App",
        (
            ("t", "Switch light/dark theme"),
            ("?", "This screen"),
            ("q", "Quit"),
        ),
    ),
)


class HelpScreen(ModalScreen):
    """Lists the board's key bindings. Any key closes it."""

    DEFAULT_CSS = """
    HelpScreen {
        align: center middle;
    }

    HelpScreen > VerticalScroll {
        width: 60;
        height: auto;
        max-height: 90%;
        padding: 1 2;
        background: $surface;
        border: round $primary;
        border-title-align: center;
    }

    HelpScreen .help-heading {
        margin-top: 1;
        text-style: bold underline;
        color: $accent;
    }

    HelpScreen Grid {
        grid-size: 2;
        grid-columns: 16 1fr;
        height: auto;
    }

    HelpScreen .help-key {
        text-style: bold;
    }

    HelpScreen .help-hint {
        margin-top: 1;
        color: $text-muted;
        text-align: center;
    }
    """

    def compose(self) -> ComposeResult:
        with VerticalScroll() as body:
            body.border_title = "Keys"
            for heading, shortcuts in HELP_SECTIONS:
                yield Static(heading, classes="help-heading")
                with Grid():
                    for key, description in shortcuts:
                        yield Static(key, classes="help-key")
                        yield Static(description)
            yield Static("press any key to close", classes="help-hint")

    def on_key(self, event: events.Key) -> None:
        event.stop()
        self.dismiss()
