"""Tests for the vgrep entry point (search, cache and dispatcher mocked)."""

import unittest
from unittest.mock import MagicMock, patch

from vgrep import cli
from vgrep.errors import CacheError, CacheLockError, SearchError
from vgrep.matches import MatchRecord, MatchStore


def _store(n=2):
    return MatchStore([MatchRecord(i, f"f{i}", 1, "x") for i in range(n)], working_directory="/repo")


@patch("vgrep.cli.configure_logging")
@patch("vgrep.cli.CacheWriter")
@patch("vgrep.cli.Dispatcher")
class TestMain(unittest.TestCase):
    @patch("vgrep.cli.search")
    def test_search_prints_and_caches(self, mock_search, mock_dispatcher, mock_writer, _log):
        store = _store()
        mock_search.search.return_value = store

        cli.main(["-w", "--no-git", "needle", "src"])

        mock_search.search.assert_called_once_with(["-w", "needle", "src"], no_git=True, no_ripgrep=False)
        writer = mock_writer.return_value
        writer.schedule.assert_called_once_with(store)
        writer.join.assert_called_once()
        mock_dispatcher.return_value.dispatch.assert_called_once_with("print")

    @patch("vgrep.cli.search")
    def test_search_failure_exits(self, mock_search, mock_dispatcher, mock_writer, _log):
        mock_search.search.side_effect = SearchError("grep: bad option [grep]")
        with patch("builtins.print") as mock_print, self.assertRaises(SystemExit) as ctx:
            cli.main(["--bogus"])
        self.assertEqual(ctx.exception.code, 1)
        assert "Searching symbols failed" in mock_print.call_args[0][0]
        mock_writer.return_value.join.assert_called_once()

    @patch("vgrep.cli.cache")
    def test_no_args_loads_cache(self, mock_cache, mock_dispatcher, mock_writer, _log):
        mock_cache.load_cache.return_value = _store()
        cli.main([])
        mock_cache.load_cache.assert_called_once_with(strict=False)
        mock_writer.return_value.schedule.assert_not_called()
        mock_dispatcher.return_value.dispatch.assert_called_once_with("print")

    @patch("vgrep.cli.cache")
    def test_no_cache_exits(self, mock_cache, mock_dispatcher, mock_writer, _log):
        mock_cache.load_cache.side_effect = CacheError("Cannot read cache")
        with patch("builtins.print") as mock_print, self.assertRaises(SystemExit) as ctx:
            cli.main([])
        self.assertEqual(ctx.exception.code, 1)
        assert mock_print.call_args[0][0].startswith("No cache:")

    @patch("vgrep.cli.cache")
    def test_strict_cache_flag(self, mock_cache, mock_dispatcher, mock_writer, _log):
        mock_cache.load_cache.return_value = _store()
        cli.main(["--strict-cache"])
        mock_cache.load_cache.assert_called_once_with(strict=True)

    @patch("vgrep.cli.command_loop")
    @patch("vgrep.cli.cache")
    def test_show_enters_command_loop(self, mock_cache, mock_loop, mock_dispatcher, mock_writer, _log):
        mock_cache.load_cache.return_value = _store()
        cli.main(["-s", "1"])
        mock_loop.assert_called_once_with(mock_dispatcher.return_value, first="1", interactive=False)
        mock_dispatcher.return_value.dispatch.assert_not_called()

    @patch("vgrep.cli.command_loop")
    @patch("vgrep.cli.cache")
    def test_interactive(self, mock_cache, mock_loop, mock_dispatcher, mock_writer, _log):
        mock_cache.load_cache.return_value = _store()
        cli.main(["-i"])
        mock_loop.assert_called_once_with(mock_dispatcher.return_value, first="", interactive=True)

    @patch("vgrep.cli.search")
    def test_empty_result_does_nothing(self, mock_search, mock_dispatcher, mock_writer, _log):
        mock_search.search.return_value = MatchStore()
        cli.main(["nothing-matches-this"])
        mock_dispatcher.assert_not_called()

    @patch("vgrep.cli.search")
    def test_lock_failure_on_exit_is_fatal(self, mock_search, mock_dispatcher, mock_writer, _log):
        mock_search.search.return_value = _store()
        mock_writer.return_value.join.side_effect = CacheLockError("Cannot release lock file")
        with patch("builtins.print"), self.assertRaises(SystemExit) as ctx:
            cli.main(["foo"])
        self.assertEqual(ctx.exception.code, 1)

    @patch("vgrep.cli.cache")
    def test_lock_failure_during_command_is_fatal(self, mock_cache, mock_dispatcher, mock_writer, _log):
        mock_cache.load_cache.return_value = _store()
        mock_dispatcher.return_value.dispatch.side_effect = CacheLockError("Cannot release lock file")
        with patch("builtins.print") as mock_print, self.assertRaises(SystemExit) as ctx:
            cli.main([])
        self.assertEqual(ctx.exception.code, 1)
        self.assertEqual(mock_print.call_args[0][0], "Error: Cannot release lock file")
        mock_writer.return_value.join.assert_called_once()

    def test_version(self, mock_dispatcher, mock_writer, _log):
        with patch("builtins.print") as mock_print:
            cli.main(["--version"])
        mock_print.assert_called_once_with(cli.__version__)
        mock_writer.assert_not_called()


class TestFinish(unittest.TestCase):
    def test_write_error_is_not_fatal(self):
        writer = MagicMock()
        writer.join.side_effect = CacheError("disk full")
        cli.finish(writer)


if __name__ == "__main__":
    unittest.main()
