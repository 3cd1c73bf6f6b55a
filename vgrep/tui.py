"""vgrep match browser.

Interactive terminal interface over the current match list. Built with
textual. Every mutation goes through the same Dispatcher as the command
loop, so the cache is kept in sync.

Launch: `vgrep --tui PATTERN` or `vgrep-tui` (uses the cached matches)
"""

from __future__ import annotations

import os

from rich.text import Text
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import (
    Button,
    DataTable,
    Footer,
    Header,
    Input,
    Label,
    Static,
    TabbedContent,
    TabPane,
)

from vgrep.commands import Command, Dispatcher, count_tree, parse_command
from vgrep.errors import CacheLockError, VgrepError
from vgrep.matches import MatchRecord


# --- Delete Confirmation Modal ---

def delete_preview(record: MatchRecord, width: int = 64) -> Text:
    """Match location plus its highlighted content, cut to ``width``."""
    preview = Text()
    preview.append(f"[{record.index}] ", style="yellow")
    preview.append(record.file, style="blue")
    preview.append(":")
    preview.append(str(record.line), style="green")
    preview.append("\n")
    content = Text.from_ansi(record.content.strip())
    content.truncate(width, overflow="ellipsis")
    preview.append_text(content)
    return preview


class ConfirmDeleteModal(ModalScreen[bool]):
    """Asks before a match is dropped from the list; y/enter confirms."""

    DEFAULT_CSS = """
    ConfirmDeleteModal {
        align: center middle;
    }
    #delete-box {
        width: 72;
        height: auto;
        border: round $error;
        background: $panel;
        padding: 0 1;
    }
    #delete-title {
        text-style: bold;
        color: $error;
    }
    #delete-preview {
        margin: 1 0;
    }
    #delete-actions {
        height: 3;
        align-horizontal: right;
    }
    """

    BINDINGS = [
        Binding("y,enter", "answer(True)", "Delete"),
        Binding("n,escape", "answer(False)", "Keep"),
    ]

    def __init__(self, record: MatchRecord) -> None:
        super().__init__()
        self.record = record

    def compose(self) -> ComposeResult:
        with Vertical(id="delete-box"):
            yield Label("Remove this match from the list?", id="delete-title")
            yield Static(delete_preview(self.record), id="delete-preview")
            with Horizontal(id="delete-actions"):
                yield Button("Keep (n)", id="keep-match")
                yield Button("Delete (y)", variant="error", id="delete-match")

    def action_answer(self, confirmed: bool) -> None:
        self.dismiss(confirmed)

    def on_button_pressed(self, event: Button.Pressed) -> None:
        self.dismiss(event.button.id == "delete-match")


# --- Main App ---

class MatchBrowserApp(App):
    """vgrep Match Browser."""

    TITLE = "vgrep"

    CSS = """
    #matches-table {
        height: 1fr;
    }
    #tree-table {
        height: 1fr;
    }
    #command-input {
        dock: top;
        margin: 0 0 1 0;
    }
    #matches-status {
        dock: bottom;
        height: 1;
        padding: 0 1;
        color: $text-muted;
    }
    """

    BINDINGS = [
        Binding("1", "switch_tab('matches')", "Matches", show=True),
        Binding("2", "switch_tab('tree')", "Tree", show=True),
        Binding("d", "delete_selected", "Delete", show=True),
        Binding("e", "open_selected", "Edit", show=True),
        Binding("r", "refresh_panel", "Refresh", show=True),
        Binding("q", "quit", "Quit", show=True),
    ]

    def __init__(self, dispatcher: Dispatcher) -> None:
        super().__init__()
        self.dispatcher = dispatcher

    @property
    def store(self):
        return self.dispatcher.store

    def compose(self) -> ComposeResult:
        yield Header()
        with TabbedContent(id="tabs"):
            with TabPane("Matches", id="matches"):
                with Vertical():
                    yield Input(placeholder="refine <regex> | keep <selectors> | grep <args>",
                                id="command-input")
                    yield DataTable(id="matches-table", cursor_type="row")
                    yield Static("", id="matches-status")
            with TabPane("Tree", id="tree"):
                yield DataTable(id="tree-table", cursor_type="row")
        yield Footer()

    def on_mount(self) -> None:
        self.query_one("#matches-table", DataTable).add_columns("Index", "File", "Line", "Content")
        self.query_one("#tree-table", DataTable).add_columns("Matches", "Directory")
        self._reload()

    # --- Loading ---

    def _load_matches(self) -> None:
        table = self.query_one("#matches-table", DataTable)
        table.clear()
        for r in self.store:
            table.add_row(
                str(r.index),
                r.file,
                str(r.line),
                Text.from_ansi(r.content),
                key=str(r.index),
            )

    def _load_tree(self) -> None:
        table = self.query_one("#tree-table", DataTable)
        table.clear()
        counts = count_tree(list(self.store))
        for directory in sorted(counts):
            table.add_row(str(counts[directory]), directory, key=directory)

    def _status(self, text: str = "") -> None:
        status = self.query_one("#matches-status", Static)
        summary = f"{len(self.store)} matches in {self.store.working_directory}"
        status.update(Text(f"{summary}  {text}" if text else summary))

    def _reload(self, text: str = "") -> None:
        self._load_matches()
        self._load_tree()
        self._status(text)

    def _selected_index(self) -> int | None:
        table = self.query_one("#matches-table", DataTable)
        if not len(self.store) or table.cursor_row is None:
            return None
        if 0 <= table.cursor_row < len(self.store):
            return table.cursor_row
        return None

    def _run(self, command: Command) -> None:
        try:
            self.dispatcher.execute(command)
        except CacheLockError:
            raise
        except VgrepError as e:
            self._status(str(e))
            return
        self._reload()

    # --- Event handlers ---

    def on_input_submitted(self, event: Input.Submitted) -> None:
        if event.input.id != "command-input":
            return
        try:
            command = parse_command(event.value)
        except VgrepError as e:
            self._status(str(e))
            return
        if command is None:
            return
        if command.name in ("refine", "keep", "delete"):
            self._run(command)
        elif command.name == "grep":
            try:
                self.dispatcher.run_search(command.argument)
            except CacheLockError:
                raise
            except VgrepError as e:
                self._status(str(e))
                return
            self._reload()
        else:
            self._status(f'"{command.name}" is not available in the browser')
        event.input.value = ""

    def on_data_table_row_selected(self, event: DataTable.RowSelected) -> None:
        if event.data_table.id == "matches-table":
            self.action_open_selected()
        elif event.data_table.id == "tree-table":
            directory = str(event.row_key.value)
            self._keep_directory(directory)
            self.action_switch_tab("matches")

    def _keep_directory(self, directory: str) -> None:
        """Keep only the matches below ``directory`` ('.' = top level files)."""
        if directory == ".":
            indices = [r.index for r in self.store if os.sep not in r.file]
        else:
            prefix = directory.rstrip(os.sep) + os.sep
            indices = [r.index for r in self.store if r.file.startswith(prefix)]
        if indices:
            self._run(Command("keep", selectors=",".join(map(str, indices))))

    # --- Actions ---

    def action_switch_tab(self, tab_id: str) -> None:
        self.query_one("#tabs", TabbedContent).active = tab_id

    def action_open_selected(self) -> None:
        index = self._selected_index()
        if index is None:
            return
        record = self.store[index]
        with self.suspend():
            self.dispatcher.execute(Command("show", selectors=str(index)))
        self._status(f"opened {record.file}:{record.line}")

    def action_delete_selected(self) -> None:
        index = self._selected_index()
        if index is None:
            return

        def handle_delete(confirmed: bool) -> None:
            if confirmed:
                self._run(Command("delete", selectors=str(index)))

        self.push_screen(ConfirmDeleteModal(self.store[index]), handle_delete)

    def action_refresh_panel(self) -> None:
        self._reload()


def main():
    """Entry point for the vgrep-tui console script."""
    from vgrep.cli import configure_logging, finish, open_cached_store

    configure_logging(False)
    dispatcher = open_cached_store()
    try:
        MatchBrowserApp(dispatcher).run()
    finally:
        finish(dispatcher.cache_writer)


if __name__ == "__main__":
    main()
