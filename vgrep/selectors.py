"""Selector expressions: ``3``, ``1,2,6``, ``1-8``, ``5-2``, ``all``.

Grammar::

    expr  := item ("," item)*
    item  := "all" | int | int "-" int

Whitespace around tokens is ignored, duplicates collapse and the result is
sorted. ``all`` must stand alone.
"""

import re

from vgrep.errors import IndexRangeError, SelectorError

ALL = "all"

_TOKEN_RE = re.compile(r"\s*(?:(?P<int>\d+)|(?P<word>[A-Za-z_]+)|(?P<op>[,-])|(?P<bad>\S+?))")

INT, WORD, COMMA, DASH, BAD, END = "INT", "WORD", "COMMA", "DASH", "BAD", "END"


def tokenize(expr: str) -> list[tuple[str, str]]:
    tokens = []
    pos = 0
    text = expr.rstrip()
    while pos < len(text):
        m = _TOKEN_RE.match(text, pos)
        pos = m.end()
        if m.group("int") is not None:
            tokens.append((INT, m.group("int")))
        elif m.group("word") is not None:
            tokens.append((WORD, m.group("word")))
        elif m.group("op") is not None:
            tokens.append((COMMA if m.group("op") == "," else DASH, m.group("op")))
        else:
            tokens.append((BAD, m.group("bad")))
    tokens.append((END, ""))
    return tokens


class _Parser:
    """Parses an expression into inclusive ``(start, end)`` spans.

    ``all`` is kept as the ``ALL`` marker since its extent depends on the
    match count.
    """

    def __init__(self, expr: str):
        self.expr = expr
        self.tokens = tokenize(expr)
        self.pos = 0

    def peek(self) -> tuple[str, str]:
        return self.tokens[self.pos]

    def advance(self) -> tuple[str, str]:
        tok = self.tokens[self.pos]
        self.pos += 1
        return tok

    def integer(self) -> int:
        kind, text = self.advance()
        if kind != INT:
            raise SelectorError(f"Non-numeric selector '{text or self.expr.strip()}'")
        return int(text)

    def item(self):
        kind, text = self.peek()
        if kind == WORD and text == ALL:
            self.advance()
            return ALL
        start = self.integer()
        if self.peek()[0] != DASH:
            return start, start
        self.advance()
        end = self.integer()
        if start > end:
            start, end = end, start
        return start, end

    def parse(self) -> list:
        if self.peek()[0] == END:
            return []
        items = [self.item()]
        while self.peek()[0] == COMMA:
            self.advance()
            items.append(self.item())
        kind, text = self.peek()
        if kind == DASH:
            raise SelectorError(f"Invalid range format '{self.expr.strip()}'")
        if kind != END:
            raise SelectorError(f"Non-numeric selector '{text}'")
        if ALL in items and len(items) > 1:
            raise SelectorError("'all' cannot be combined with other selectors")
        return items


def parse_selectors(expr: str, total: int | None = None) -> list[int]:
    """Parse ``expr`` into a sorted, de-duplicated list of indices.

    ``total`` is the current match count. When given, an index at or past
    it raises IndexRangeError before any range is expanded; ``all`` covers
    ``0..total-1``. An empty expression yields an empty list.
    """
    items = _Parser(expr).parse()
    if items == [ALL]:
        return list(range(total or 0))
    if total is not None:
        beyond = [max(start, total) for start, end in items if end >= total]
        if beyond:
            raise IndexRangeError(min(beyond), total)
    return sorted({i for start, end in items for i in range(start, end + 1)})


def is_selector(expr: str) -> bool:
    """True if ``expr`` is a non-empty, well-formed selector expression."""
    if not expr.strip():
        return False
    try:
        _Parser(expr).parse()
    except SelectorError:
        return False
    return True
