"""vgrep: number, cache and browse the matches of grep, git grep and ripgrep."""

__version__ = "0.1.0"
