"""Tests for terminal rendering and the pager's signal handling."""

import io
import os
import signal
import unittest
from contextlib import contextmanager
from unittest.mock import patch

from rich.console import Console

from vgrep.matches import MatchRecord
from vgrep.render import Renderer, sigint_ignored


def _console():
    return Console(file=io.StringIO(), width=200, color_system=None)


class TestSigintIgnored(unittest.TestCase):
    def setUp(self):
        self.previous = signal.getsignal(signal.SIGINT)

    def tearDown(self):
        signal.signal(signal.SIGINT, self.previous)

    def test_ignored_inside_and_restored_after(self):
        def handler(signum, frame):
            pass

        signal.signal(signal.SIGINT, handler)
        with sigint_ignored():
            self.assertIs(signal.getsignal(signal.SIGINT), signal.SIG_IGN)
        self.assertIs(signal.getsignal(signal.SIGINT), handler)

    def test_restored_when_body_raises(self):
        with self.assertRaises(RuntimeError):
            with sigint_ignored():
                raise RuntimeError("boom")
        self.assertIs(signal.getsignal(signal.SIGINT), self.previous)


class TestRendererPager(unittest.TestCase):
    def setUp(self):
        self.seen = []

        @contextmanager
        def recording_pager(styles=False):
            self.seen.append(signal.getsignal(signal.SIGINT))
            yield

        self.recording_pager = recording_pager

    def test_pager_runs_with_sigint_ignored(self):
        previous = signal.getsignal(signal.SIGINT)
        console = _console()
        renderer = Renderer(console=console, use_pager=True)
        with patch.object(console, "pager", side_effect=self.recording_pager) as mock_pager, \
                patch.dict(os.environ, {}, clear=False):
            os.environ.pop("LESS", None)
            renderer.matches([MatchRecord(0, "a.txt", 12, "hello")])
            self.assertEqual(os.environ["LESS"], "-FRXS")
        mock_pager.assert_called_once_with(styles=True)
        self.assertEqual(self.seen, [signal.SIG_IGN])
        self.assertIs(signal.getsignal(signal.SIGINT), previous)
        self.assertIn("hello", console.file.getvalue())

    def test_no_pager_leaves_sigint_alone(self):
        console = _console()
        renderer = Renderer(console=console, use_pager=False)
        with patch.object(console, "pager") as mock_pager, \
                patch("vgrep.render.sigint_ignored") as mock_ignored:
            renderer.counts([(3, "a")], "Directory")
        mock_pager.assert_not_called()
        mock_ignored.assert_not_called()
        self.assertIn("Directory", console.file.getvalue())


class TestRendererOutput(unittest.TestCase):
    def test_context_separator_and_lines(self):
        console = _console()
        renderer = Renderer(console=console, use_pager=False)
        record = MatchRecord(2, "src/a.py", 4, "needle here")
        renderer.context([(record, [(3, "before"), (4, "needle here"), (5, "after")])])
        out = console.file.getvalue()
        first = out.splitlines()[0]
        self.assertTrue(first.startswith("--- 2 src/a.py ---"))
        self.assertEqual(len(first), 80)
        self.assertRegex(out, r"\n\s*4\s+needle here")

    def test_header_hidden(self):
        console = _console()
        Renderer(console=console, use_pager=False, show_header=False).matches(
            [MatchRecord(0, "a.txt", 1, "x")])
        self.assertNotIn("Index", console.file.getvalue())


if __name__ == "__main__":
    unittest.main()
