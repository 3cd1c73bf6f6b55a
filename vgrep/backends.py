"""Normalize raw search-tool output lines into MatchRecords.

Each supported tool prints ``file``, ``line`` and ``content`` with its own
separators:

    GIT    file NUL line NUL content        (git grep -z)
    GNU    file NUL line ':' content        (grep -Z, '-' on context lines)
    RIP    file NUL line ':' content        (rg --null, colour resets around fields)
    BSD    file ':' line ':' content        (BSD grep has no -Z for names)

One parse function per dialect; ``parse_line`` picks it from the enum.
"""

from enum import Enum
from typing import Iterable

from loguru import logger

from vgrep.errors import BackendLineError
from vgrep.matches import MatchRecord, strip_ansi

NUL = "\x00"
RESET = "\x1b[0m"
# rg emits resets around the path and line number even with path:none/line:none
RIP_RESET_LIMIT = 4


class BackendDialect(Enum):
    GNU = "gnu"
    BSD = "bsd"
    GIT = "git"
    RIP = "rip"


def _to_line_number(field: str, raw: str) -> int:
    text = strip_ansi(field).strip()
    try:
        number = int(text)
    except ValueError:
        raise BackendLineError(raw, f"non-numeric line number {text!r}") from None
    if number < 1:
        raise BackendLineError(raw, f"line number {number} below 1")
    return number


def _split_joined(field: str, raw: str) -> tuple[str, str]:
    """Split a pre-joined ``line:content`` (or ``line-content``) field."""
    for sep in (":", "-"):
        head, found, tail = field.partition(sep)
        if found and strip_ansi(head).strip().isdigit():
            return head, tail
    raise BackendLineError(raw, "cannot split line number from content")


def _record(index: int, file: str, line: str, content: str, raw: str) -> MatchRecord:
    file = strip_ansi(file).strip()
    if not file:
        raise BackendLineError(raw, "empty file name")
    return MatchRecord(index, file, _to_line_number(line, raw), content.strip())


def parse_git(raw: str, index: int = 0) -> MatchRecord:
    fields = raw.split(NUL, 2)
    if len(fields) != 3:
        raise BackendLineError(raw, f"expected 3 NUL-separated fields, got {len(fields)}")
    return _record(index, fields[0], fields[1], fields[2], raw)


def parse_gnu(raw: str, index: int = 0) -> MatchRecord:
    fields = raw.split(NUL, 1)
    if len(fields) != 2:
        raise BackendLineError(raw, "missing NUL after file name")
    line, content = _split_joined(fields[1], raw)
    return _record(index, fields[0], line, content, raw)


def parse_rip(raw: str, index: int = 0) -> MatchRecord:
    return parse_gnu(raw.replace(RESET, "", RIP_RESET_LIMIT), index)


def parse_bsd(raw: str, index: int = 0) -> MatchRecord:
    fields = raw.split(":", 2)
    if len(fields) != 3:
        raise BackendLineError(raw, f"expected 3 colon-separated fields, got {len(fields)}")
    return _record(index, fields[0], fields[1], fields[2], raw)


PARSERS = {
    BackendDialect.GIT: parse_git,
    BackendDialect.GNU: parse_gnu,
    BackendDialect.RIP: parse_rip,
    BackendDialect.BSD: parse_bsd,
}


def parse_line(raw: str, dialect: BackendDialect, index: int = 0) -> MatchRecord:
    """Parse one raw line; raises BackendLineError on malformed input."""
    return PARSERS[dialect](raw, index)


def parse_lines(lines: Iterable[str], dialect: BackendDialect) -> list[MatchRecord]:
    """Parse a batch, dropping malformed lines without leaving index holes."""
    parser = PARSERS[dialect]
    records = []
    dropped = 0
    for raw in lines:
        if not raw:
            continue
        try:
            records.append(parser(raw, len(records)))
        except BackendLineError as e:
            dropped += 1
            logger.debug("Dropping {} line: {}", dialect.value, e)
    if dropped:
        logger.debug("Dropped {} malformed line(s)", dropped)
    return records
