"""CLI entry point.

Any argument vgrep does not know is handed to the search tool unchanged:

    vgrep -w foo src/        search, cache and print the matches
    vgrep                    print the cached matches
    vgrep -s 3               open cached match 3 in $EDITOR
    vgrep -i                 interactive command loop
"""

import argparse
import sys

from loguru import logger

from vgrep import __version__, cache, search
from vgrep.cache import CacheWriter
from vgrep.commands import Dispatcher, command_loop
from vgrep.config import Options
from vgrep.errors import CacheError, CacheLockError, SearchError
from vgrep.matches import MatchStore


def _fail(text: str):
    """Print an error and exit non-zero."""
    print(text, file=sys.stderr)
    sys.exit(1)


def configure_logging(debug: bool):
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if debug else "WARNING")
    logger.debug("log level set to debug")


def finish(writer: CacheWriter):
    """Wait for the background cache write; lock failures are fatal."""
    try:
        writer.join()
    except CacheLockError as e:
        _fail(f"Error: {e}")
    except CacheError as e:
        logger.warning("Error writing cache: {}", e)


def load_store(options: Options, search_args: list[str], writer: CacheWriter) -> MatchStore:
    """Cached matches without search arguments, otherwise a fresh search."""
    if not search_args:
        try:
            return cache.load_cache(strict=options.strict_cache)
        except CacheLockError as e:
            _fail(f"Error: {e}")
        except CacheError as e:
            _fail(f"No cache: {e}")

    try:
        store = search.search(search_args, no_git=options.no_git, no_ripgrep=options.no_ripgrep)
    except SearchError as e:
        _fail(f"Searching symbols failed: {e}")
    writer.schedule(store)
    return store


def open_cached_store(options: Options | None = None) -> Dispatcher:
    """Dispatcher over the cached matches (used by vgrep-tui)."""
    options = options or Options()
    writer = CacheWriter()
    store = load_store(options, [], writer)
    return Dispatcher(store, options=options, cache_writer=writer)


def run(options: Options, search_args: list[str], writer: CacheWriter):
    store = load_store(options, search_args, writer)
    if not len(store):
        return

    dispatcher = Dispatcher(store, options=options, cache_writer=writer)

    if options.tui:
        from vgrep.tui import MatchBrowserApp
        MatchBrowserApp(dispatcher).run()
        return

    if options.show or options.interactive:
        command_loop(dispatcher, first=options.show, interactive=options.interactive)
        return

    dispatcher.dispatch("print")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vgrep",
        description="vgrep: a user-friendly pager for grep, git-grep and ripgrep",
        epilog="Unknown options and arguments are passed on to the search tool.",
        allow_abbrev=False,
    )
    parser.add_argument("-d", "--debug", action="store_true", help="Verbose debug logging")
    parser.add_argument("-i", "--interactive", action="store_true", help="Enter interactive shell")
    parser.add_argument("-s", "--show", default="", metavar="SELECTORS",
                        help="Show specified matches or open shell")
    parser.add_argument("-l", "--files-with-matches", dest="files_only", action="store_true",
                        help="Print only the first match of each file")
    parser.add_argument("--no-git", action="store_true", help="Use grep instead of git-grep")
    parser.add_argument("--no-ripgrep", action="store_true", help="Do not use ripgrep")
    parser.add_argument("--no-header", action="store_true", help="Do not print pretty headers")
    parser.add_argument("--no-less", action="store_true", help="Use stdout instead of less")
    parser.add_argument("--strict-cache", action="store_true",
                        help="Refuse to load matches cached in another directory")
    parser.add_argument("--tui", action="store_true", help="Browse matches in a terminal UI")
    parser.add_argument("-v", "--version", action="store_true", help="Print version number")
    return parser


def main(argv: list[str] | None = None):
    parser = build_parser()
    args, search_args = parser.parse_known_args(argv)

    if args.version:
        print(__version__)
        return

    options = Options.from_args(args)
    configure_logging(options.debug)
    logger.debug("passed args: {}", search_args)

    writer = CacheWriter()
    try:
        try:
            run(options, search_args, writer)
        finally:
            finish(writer)
    except CacheLockError as e:
        _fail(f"Error: {e}")


if __name__ == "__main__":
    main()
