"""Exception hierarchy shared by every vgrep module.

Parse and range errors are recoverable: the command loop reports them and
keeps going. Cache, search and lock errors are raised to the CLI, which
decides whether they are fatal.
"""


class VgrepError(Exception):
    """Base class for all vgrep errors."""


class ParseError(VgrepError, ValueError):
    """Input text (selector, command, backend line) could not be parsed."""


class SelectorError(ParseError):
    pass


class CommandSyntaxError(ParseError):
    pass


class BackendLineError(ParseError):
    """A raw search output line did not match its dialect's layout."""

    def __init__(self, line: str, reason: str):
        super().__init__(f"{reason}: {line!r}")
        self.line = line
        self.reason = reason


class IndexRangeError(VgrepError, IndexError):
    """A selected index lies outside the current match list."""

    def __init__(self, index: int, length: int):
        super().__init__(f"Index {index} out of range (0, {length - 1})")
        self.index = index
        self.length = length


class CacheError(VgrepError):
    pass


class CacheMismatchError(CacheError):
    def __init__(self, cached_dir: str, current_dir: str):
        super().__init__(f"please cd into {cached_dir} to use old cache")
        self.cached_dir = cached_dir
        self.current_dir = current_dir


class CacheLockError(CacheError):
    pass


class SearchError(VgrepError):
    pass


class EditorError(VgrepError):
    pass
