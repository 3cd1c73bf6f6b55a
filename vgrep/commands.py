"""vgrep command language and its dispatcher.

One input line is either

    <free-text command> <argument>       refine <regex>, grep <args>
    <command>[count] [selectors]         e.g. "c10 1-3", "delete 4,7", "p"
    <selectors>                          shorthand for "show <selectors>"

Command words may be abbreviated to their first letter. Free-text commands
are recognized before any selector parsing, so their argument is opaque.
"""

import os
import re
import shlex
from collections import Counter
from dataclasses import dataclass
from typing import Callable

from loguru import logger

from vgrep import editor, search
from vgrep.cache import CacheWriter
from vgrep.config import DEFAULT_CONTEXT_LINES, Options
from vgrep.errors import CacheLockError, CommandSyntaxError, EditorError, VgrepError
from vgrep.matches import MatchRecord, MatchStore
from vgrep.render import Renderer
from vgrep.selectors import is_selector, parse_selectors

COMMANDS = ("print", "show", "context", "tree", "delete", "keep",
            "refine", "grep", "files", "quit", "?")
FREE_TEXT = ("refine", "grep")
ALIASES = {name[0]: name for name in COMMANDS}
ALIASES.update({name: name for name in COMMANDS})
ALIASES["help"] = "?"

PROMPT = "[bold]Enter a vgrep command: [/bold]"
FORMAT_HINT = "command[context lines] [selectors]"

HELP = f"""vgrep command help: {FORMAT_HINT}
         selectors: '3' (single), '1,2,6' (multi), '1-8' (range), 'all'
          commands: print, show, context, tree, delete, keep, files, quit, ?
                    refine <regex>, grep <args>
                    (first letters are accepted as abbreviations)"""

_WORD_RE = re.compile(r"[a-z?]+")
_COUNT_RE = re.compile(r"\d*")
_SELECTOR_TEXT_RE = re.compile(r"[\w ,\-]*")


@dataclass
class Command:
    name: str
    context: int | None = None
    selectors: str = ""
    argument: str = ""


def _format_error(text: str) -> CommandSyntaxError:
    return CommandSyntaxError(f'"{text}" doesn\'t match format "{FORMAT_HINT}"')


def parse_command(line: str) -> Command | None:
    """Parse one line of user input; ``None`` for a blank line."""
    text = line.strip()
    if not text:
        return None
    if is_selector(text):
        return Command("show", selectors=text)

    m = _WORD_RE.match(text)
    if not m:
        raise _format_error(text)
    word, rest = m.group(0), text[m.end():]
    name = ALIASES.get(word)

    if name in FREE_TEXT:
        if rest and not rest.startswith(" "):
            raise _format_error(text)
        return Command(name, argument=rest[1:])

    count = _COUNT_RE.match(rest).group(0)
    selectors = rest[len(count):]
    if not _SELECTOR_TEXT_RE.fullmatch(selectors):
        raise _format_error(text)
    if name is None:
        raise CommandSyntaxError(f'Unsupported command "{word}"')
    return Command(name, int(count) if count else None, selectors.strip())


# --- Aggregation and file access ---

def count_files(records: list[MatchRecord]) -> dict[str, int]:
    return dict(Counter(r.file for r in records))


def count_tree(records: list[MatchRecord]) -> dict[str, int]:
    """Matches per directory, counted at every depth.

    Each file contributes to all of its strict path prefixes; files without
    a directory component count towards ".".
    """
    counts: Counter = Counter()
    for r in records:
        parts = r.file.split(os.sep)
        if len(parts) == 1:
            counts["."] += 1
            continue
        for i in range(1, len(parts)):
            counts[os.sep.join(parts[:i]) or os.sep] += 1
    return dict(counts)


def context_lines(path: str, record: MatchRecord, num_lines: int) -> list[tuple[int, str]] | None:
    """Up to ``num_lines`` lines around ``record``, matched line highlighted.

    Returns None if the file cannot be read.
    """
    lines = []
    try:
        with open(path, "r", errors="replace") as f:
            for number, text in enumerate(f, 1):
                if number > record.line + num_lines:
                    break
                if number == record.line:
                    lines.append((number, record.content))
                elif number >= record.line - num_lines:
                    lines.append((number, text.rstrip("\r\n")))
    except OSError as e:
        logger.warning("Error opening file '{}': {}", path, e)
        return None
    return lines


# --- Dispatcher ---

class Dispatcher:
    """Executes commands against one MatchStore.

    ``dispatch`` returns True when the command loop should stop. Recoverable
    errors are printed and swallowed; a lock release failure propagates.
    """

    def __init__(
        self,
        store: MatchStore,
        renderer: Renderer | None = None,
        options: Options | None = None,
        cache_writer: CacheWriter | None = None,
        searcher: Callable[..., MatchStore] = search.search,
        opener: Callable[[str, int], None] = editor.open_in_editor,
    ):
        self.store = store
        self.options = options or Options()
        self.renderer = renderer or Renderer(use_pager=not self.options.no_less,
                                             show_header=not self.options.no_header)
        self.cache_writer = cache_writer
        self.searcher = searcher
        self.opener = opener
        self.handlers = {
            "print": self.cmd_print,
            "show": self.cmd_show,
            "context": self.cmd_context,
            "tree": self.cmd_tree,
            "delete": self.cmd_delete,
            "keep": self.cmd_keep,
            "refine": self.cmd_refine,
            "grep": self.cmd_grep,
            "files": self.cmd_files,
            "quit": self.cmd_quit,
            "?": self.cmd_help,
        }

    def dispatch(self, line: str) -> bool:
        logger.debug("dispatch(line={!r})", line)
        try:
            command = parse_command(line)
            if command is None:
                return False
            return self.execute(command)
        except CacheLockError:
            raise
        except VgrepError as e:
            self.renderer.message(str(e))
            return False

    def execute(self, command: Command) -> bool:
        return bool(self.handlers[command.name](command))

    def _indices(self, command: Command) -> list[int]:
        """Explicitly selected indices, validated against the store."""
        return self.store.validate(parse_selectors(command.selectors, len(self.store)))

    def _required(self, command: Command, verb: str) -> list[int]:
        indices = self._indices(command)
        if not indices:
            raise CommandSyntaxError(f"{verb} requires specified selectors")
        return indices

    def _selected(self, command: Command) -> list[MatchRecord]:
        indices = self.store.select(parse_selectors(command.selectors, len(self.store)))
        return [self.store[i] for i in indices]

    def _persist(self):
        if self.cache_writer is not None:
            self.cache_writer.schedule(self.store)

    # --- Commands ---

    def cmd_print(self, command: Command):
        records = self._selected(command)
        if self.options.files_only:
            seen = set()
            unique = []
            for r in records:
                if r.file not in seen:
                    seen.add(r.file)
                    unique.append(r)
            records = unique
        self.renderer.matches(records)

    def cmd_show(self, command: Command):
        for idx in self._required(command, "Show"):
            record = self.store[idx]
            try:
                self.opener(self.store.resolve_path(record), record.line)
            except EditorError as e:
                self.renderer.message(str(e))

    def cmd_context(self, command: Command):
        num_lines = DEFAULT_CONTEXT_LINES if command.context is None else command.context
        logger.debug("context(num_lines={})", num_lines)
        blocks = []
        for record in self._selected(command):
            lines = context_lines(self.store.resolve_path(record), record, num_lines)
            if lines is not None:
                blocks.append((record, lines))
        self.renderer.context(blocks)

    def cmd_delete(self, command: Command):
        removed = self.store.delete_at(self._required(command, "Delete"))
        logger.debug("Deleted {} matches, {} left", removed, len(self.store))
        self._persist()

    def cmd_keep(self, command: Command):
        removed = self.store.keep_only(self._required(command, "Keep"))
        logger.debug("Kept {} matches, removed {}", len(self.store), removed)
        self._persist()

    def cmd_refine(self, command: Command):
        if not command.argument:
            raise CommandSyntaxError("Refine requires a regular expression")
        try:
            pattern = re.compile(command.argument)
        except re.error as e:
            raise CommandSyntaxError(f"Invalid regular expression '{command.argument}': {e}") from e
        removed = self.store.filter(lambda content: pattern.search(content) is not None)
        logger.debug("Refined by {!r}: removed {} matches", command.argument, removed)
        self._persist()

    def run_search(self, argument: str):
        """Replace the store with the results of a new search."""
        try:
            args = shlex.split(argument)
        except ValueError as e:
            raise CommandSyntaxError(f"Invalid grep arguments '{argument}': {e}") from e
        if not args:
            raise CommandSyntaxError("Grep requires search arguments")
        fresh = self.searcher(args, no_git=self.options.no_git, no_ripgrep=self.options.no_ripgrep)
        self.store.replace_all(fresh.records, fresh.working_directory)
        self._persist()

    def cmd_grep(self, command: Command):
        self.run_search(command.argument)
        self.renderer.matches(list(self.store))

    def cmd_tree(self, command: Command):
        counts = count_tree(self._selected(command))
        self.renderer.counts([(counts[k], k) for k in sorted(counts)], "Directory")

    def cmd_files(self, command: Command):
        counts = count_files(self._selected(command))
        self.renderer.counts([(counts[k], k) for k in sorted(counts)], "File")

    def cmd_quit(self, command: Command):
        return True

    def cmd_help(self, command: Command):
        self.renderer.message(HELP)


def command_loop(dispatcher: Dispatcher, first: str = "", interactive: bool = False,
                 read: Callable[[], str] | None = None):
    """Run ``first`` and, in interactive mode, keep prompting until quit/EOF."""
    if read is None:
        def read():
            return dispatcher.renderer.console.input(PROMPT)

    line = first
    while True:
        if dispatcher.dispatch(line) or not interactive:
            return
        try:
            line = read()
        except (EOFError, KeyboardInterrupt):
            dispatcher.renderer.message("")
            return
