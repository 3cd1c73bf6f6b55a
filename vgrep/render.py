"""Terminal output: match tables, context blocks and count listings.

Everything goes through a rich Console. With a pager attached, SIGINT is
ignored until the pager exits so that vgrep and less(1) never tear down the
terminal in the wrong order.
"""

from __future__ import annotations

import os
import signal
from contextlib import contextmanager

from rich.console import Console
from rich.table import Table
from rich.text import Text

from vgrep.matches import MatchRecord

SEPARATOR_WIDTH = 80


@contextmanager
def sigint_ignored():
    try:
        previous = signal.signal(signal.SIGINT, signal.SIG_IGN)
    except ValueError:
        # signal handlers can only be changed from the main thread
        yield
        return
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


class Renderer:
    def __init__(self, console: Console | None = None, use_pager: bool = True,
                 show_header: bool = True) -> None:
        self.console = console or Console(highlight=False)
        self.use_pager = use_pager
        self.show_header = show_header

    @contextmanager
    def _output(self):
        if not self.use_pager:
            yield
            return
        os.environ.setdefault("LESS", "-FRXS")
        with sigint_ignored(), self.console.pager(styles=True):
            yield

    def _table(self) -> Table:
        return Table(box=None, show_header=self.show_header, header_style="underline",
                     show_edge=False, pad_edge=False)

    def message(self, text: str) -> None:
        self.console.print(Text(text))

    def matches(self, records: list[MatchRecord]) -> None:
        table = self._table()
        table.add_column("Index", justify="right", style="yellow")
        table.add_column("File", style="blue")
        table.add_column("Line", justify="right", style="green")
        table.add_column("Content")
        for r in records:
            table.add_row(Text(str(r.index)), Text(r.file), Text(str(r.line)),
                          Text.from_ansi(r.content.strip()))
        with self._output():
            self.console.print(table)

    def context(self, blocks: list[tuple[MatchRecord, list[tuple[int, str]]]]) -> None:
        """Print each match's surrounding lines under a separator header."""
        with self._output():
            for record, lines in blocks:
                sep = Text("--- ", style="yellow")
                sep.append(str(record.index), style="yellow")
                sep.append(" ")
                sep.append(record.file, style="blue")
                sep.append(" ")
                sep.append("-" * max(SEPARATOR_WIDTH - len(sep.plain), 3), style="yellow")
                self.console.print(sep)

                grid = Table.grid(padding=(0, 1))
                grid.add_column(justify="right", style="yellow")
                grid.add_column()
                for number, text in lines:
                    cell = Text.from_ansi(text) if number == record.line else Text(text)
                    grid.add_row(Text(str(number)), cell)
                self.console.print(grid)

    def counts(self, rows: list[tuple[int, str]], label: str) -> None:
        table = self._table()
        table.add_column("Matches", justify="right", style="yellow")
        table.add_column(label, style="green")
        for count, name in rows:
            table.add_row(Text(str(count)), Text(name))
        with self._output():
            self.console.print(table)
