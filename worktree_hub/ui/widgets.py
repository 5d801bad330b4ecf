"""Custom widgets for the worktree-hub TUI."""

from typing import List, Optional

from rich.text import Text
from textual.app import ComposeResult, RenderResult
from textual.events import Click
from textual.widgets import DataTable, Header
from textual.widgets._header import HeaderClockSpace, HeaderIcon, HeaderTitle

from worktree_hub.__version__ import __version__
from worktree_hub.app.view import Row
from worktree_hub.constants import COLUMNS, TUI_COLORS


class VersionDisplay(HeaderClockSpace):
    """Custom widget to display version in place of clock."""

    DEFAULT_CSS = """
    VersionDisplay {
        width: auto;
        dock: right;
        padding: 0 1;
        background: $foreground 5%;
        color: $text;
        text-align: center;
        text-opacity: 85%;
    }
    """

    def render(self) -> RenderResult:
        return Text(f"v{__version__}")


class NonExpandingHeader(Header):
    """Header widget that doesn't expand on click and shows the version instead of a clock."""

    def compose(self) -> ComposeResult:
        yield HeaderIcon().data_bind(Header.icon)
        yield HeaderTitle()
        yield VersionDisplay() if self._show_clock else HeaderClockSpace()

    def on_click(self, event: Click) -> None:
        event.stop()


class WorktreeTable(DataTable, can_focus=False):
    """Worktree list whose cursor is driven by the app, never by its own key bindings."""

    def on_mount(self) -> None:
        for col in COLUMNS:
            self.add_column(col.label, width=col.width or None, key=col.key)

    def show_rows(self, rows: List[Row], cursor: Optional[int] = None) -> None:
        """Replace the table contents with rendered rows and place the cursor."""
        self.clear()
        for row in rows:
            style = TUI_COLORS.get(row.style) or ""
            name = Text(row.name, style=style)
            if row.error:
                name.append(" !", style="bold red")
            self.add_row(
                Text(row.marker, style=f"bold {style}" if row.busy else style),
                name,
                Text(row.branch, style=style),
                row.changes,
                row.sync,
                Text(row.path, style="dim"),
                key=row.name,
            )
        if cursor is not None:
            self.move_cursor(row=cursor)
