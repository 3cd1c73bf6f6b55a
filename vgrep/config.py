"""Runtime options collected from the command line."""

from dataclasses import dataclass, fields

DEFAULT_CONTEXT_LINES = 5


@dataclass
class Options:
    debug: bool = False
    interactive: bool = False
    show: str = ""
    no_git: bool = False
    no_ripgrep: bool = False
    no_header: bool = False
    no_less: bool = False
    files_only: bool = False
    strict_cache: bool = False
    tui: bool = False

    @classmethod
    def from_args(cls, args) -> "Options":
        return cls(**{f.name: getattr(args, f.name) for f in fields(cls)})
