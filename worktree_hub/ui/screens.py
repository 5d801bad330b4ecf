"""Modal screens for the worktree-hub TUI."""

from typing import Optional, TypeVar

from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Container, ScrollableContainer, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Static

ResultT = TypeVar("ResultT")


class DialogScreen(ModalScreen[ResultT]):
    """Centered modal with a framed body. Subclasses fill the ``.dialog`` container."""

    DEFAULT_CSS = """
    DialogScreen {
        align: center middle;
    }

    DialogScreen .dialog {
        width: 80%;
        height: auto;
        max-height: 90%;
        border: thick $background 80%;
        background: $surface;
        padding: 1 2;
    }

    DialogScreen .buttons {
        width: 100%;
        height: auto;
        align: center middle;
        padding: 1 0 0 0;
    }

    DialogScreen Button {
        margin: 0 1;
    }
    """


class ConfirmScreen(DialogScreen[bool]):
    """Yes/no question, used before destructive worktree actions."""

    BINDINGS = [
        Binding("y", "answer(True)", "Yes", show=False),
        Binding("n", "answer(False)", "No", show=False),
        Binding("escape", "answer(False)", "No", show=False),
    ]

    def __init__(self, message: str):
        super().__init__()
        self.message = message

    def compose(self) -> ComposeResult:
        with Vertical(classes="dialog"):
            yield Static(self.message, markup=False)
            with Container(classes="buttons"):
                yield Button("Yes", variant="error", id="yes")
                yield Button("No", variant="primary", id="no")

    def on_button_pressed(self, event: Button.Pressed) -> None:
        self.dismiss(event.button.id == "yes")

    def action_answer(self, answer: bool) -> None:
        self.dismiss(answer)


class InfoScreen(DialogScreen[None]):
    """Scrollable markup text, used for the key help."""

    DEFAULT_CSS = """
    InfoScreen .dialog {
        height: 80%;
    }

    InfoScreen ScrollableContainer {
        height: 1fr;
    }
    """

    BINDINGS = [
        Binding("escape", "close", "Close"),
        Binding("q", "close", "Close", show=False),
        Binding("question_mark", "close", "Close", show=False),
    ]

    def __init__(self, info: str):
        super().__init__()
        self.info = info

    def compose(self) -> ComposeResult:
        with Vertical(classes="dialog"):
            with ScrollableContainer():
                yield Static(self.info, markup=True)
            with Container(classes="buttons"):
                yield Button("Close", variant="primary")

    def on_button_pressed(self, event: Button.Pressed) -> None:
        self.dismiss()

    def action_close(self) -> None:
        self.dismiss()


class PromptScreen(DialogScreen[Optional[str]]):
    """Single-line text prompt. Dismisses with the text, or None when cancelled."""

    BINDINGS = [Binding("escape", "cancel", "Cancel")]

    def __init__(self, title: str, initial: str = ""):
        super().__init__()
        self.prompt_title = title
        self.initial = initial

    def compose(self) -> ComposeResult:
        with Vertical(classes="dialog"):
            yield Static(self.prompt_title, markup=False)
            yield Input(value=self.initial, id="prompt-input")

    def on_mount(self) -> None:
        self.query_one("#prompt-input", Input).focus()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        self.dismiss(event.value)

    def action_cancel(self) -> None:
        self.dismiss(None)
