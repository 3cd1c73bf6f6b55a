"""In-memory match list with dense, renumbered indices.

Every structural mutation reassigns ``index`` so that ``store[i].index == i``
holds afterwards. Indices handed in from the outside are always interpreted
against the list as it was before the mutation started.
"""

import os
import re
from dataclasses import dataclass
from typing import Callable, Iterable

from loguru import logger

from vgrep.errors import IndexRangeError

ANSI_RE = re.compile(r"\x1b\[[0-9;]*[ABCDEFGHJKSTfmnsulh]")


def strip_ansi(text: str) -> str:
    """Remove terminal escape sequences (grep's match highlighting)."""
    return ANSI_RE.sub("", text)


@dataclass
class MatchRecord:
    index: int
    file: str
    line: int
    content: str

    def to_row(self) -> list:
        return [self.index, self.file, self.line, self.content]

    @classmethod
    def from_row(cls, row: list) -> "MatchRecord":
        index, file, line, content = row
        return cls(int(index), str(file), int(line), str(content))


class MatchStore:
    """Ordered search results plus the directory the search ran in."""

    def __init__(self, records: Iterable[MatchRecord] = (), working_directory: str = ""):
        self.records: list[MatchRecord] = []
        self.working_directory = working_directory
        self.replace_all(records)

    def __len__(self) -> int:
        return len(self.records)

    def __getitem__(self, index: int) -> MatchRecord:
        return self.records[index]

    def __iter__(self):
        return iter(self.records)

    def _renumber(self):
        for i, record in enumerate(self.records):
            record.index = i

    def replace_all(self, records: Iterable[MatchRecord], working_directory: str | None = None):
        """Swap in a fresh result set (used after a new search)."""
        self.records = list(records)
        if working_directory is not None:
            self.working_directory = working_directory
        self._renumber()

    def validate(self, indices: Iterable[int]) -> list[int]:
        """Check every index against the current bounds.

        Raises IndexRangeError on the first offending index; nothing is
        mutated in that case.
        """
        checked = list(indices)
        for idx in checked:
            if idx < 0 or idx >= len(self.records):
                raise IndexRangeError(idx, len(self.records))
        return checked

    def resolve_all_indices(self) -> list[int]:
        return list(range(len(self.records)))

    def select(self, indices: Iterable[int]) -> list[int]:
        """Validated indices, or every index when the selection is empty."""
        checked = self.validate(indices)
        return checked if checked else self.resolve_all_indices()

    def delete_at(self, indices: Iterable[int]) -> int:
        """Remove the given original indices and renumber the survivors.

        Returns the number of removed records.
        """
        doomed = set(self.validate(indices))
        if not doomed:
            return 0
        logger.debug("Deleting indices {}", sorted(doomed))
        self.records = [r for i, r in enumerate(self.records) if i not in doomed]
        self._renumber()
        return len(doomed)

    def keep_only(self, indices: Iterable[int]) -> int:
        keep = set(self.validate(indices))
        complement = [i for i in range(len(self.records)) if i not in keep]
        return self.delete_at(complement)

    def filter(self, predicate: Callable[[str], bool]) -> int:
        """Delete every record whose plain-text content fails ``predicate``."""
        failing = [
            r.index for r in self.records if not predicate(strip_ansi(r.content))
        ]
        return self.delete_at(failing)

    def resolve_path(self, record: MatchRecord) -> str:
        """Path of ``record`` usable from the current process directory."""
        if os.path.isabs(record.file) or not self.working_directory:
            return record.file
        return os.path.join(self.working_directory, record.file)
