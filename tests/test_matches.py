"""Tests for the match store: renumbering, delete/keep, filter, validation."""

import unittest

from vgrep.errors import IndexRangeError
from vgrep.matches import MatchRecord, MatchStore, strip_ansi


def _store(n=5, working_directory="/src"):
    records = [MatchRecord(-1, f"dir/file{i}.txt", i + 1, f"content {i}") for i in range(n)]
    return MatchStore(records, working_directory=working_directory)


def _assert_dense(testcase, store):
    for i, record in enumerate(store):
        testcase.assertEqual(record.index, i)


class TestRenumbering(unittest.TestCase):
    def test_construction_assigns_indices(self):
        store = _store(4)
        _assert_dense(self, store)
        self.assertEqual(len(store), 4)

    def test_delete_then_renumber(self):
        store = _store(3)
        original_last = store[2]
        store.delete_at({1})
        self.assertEqual(len(store), 2)
        _assert_dense(self, store)
        self.assertIs(store[1], original_last)
        self.assertEqual(store[1].index, 1)
        self.assertEqual(store[1].file, "dir/file2.txt")

    def test_simultaneous_deletes_use_original_indices(self):
        store = _store(7)
        store.delete_at({3, 5})
        self.assertEqual([r.content for r in store],
                         ["content 0", "content 1", "content 2", "content 4", "content 6"])
        _assert_dense(self, store)

    def test_sequence_of_mutations_keeps_invariant(self):
        store = _store(20)
        store.delete_at([0, 19])
        _assert_dense(self, store)
        store.keep_only(range(0, 18, 2))
        _assert_dense(self, store)
        store.filter(lambda c: not c.endswith("5"))
        _assert_dense(self, store)
        store.delete_at([len(store) - 1])
        _assert_dense(self, store)

    def test_replace_all(self):
        store = _store(3)
        store.replace_all([MatchRecord(42, "x", 1, "a")], working_directory="/other")
        self.assertEqual(len(store), 1)
        self.assertEqual(store[0].index, 0)
        self.assertEqual(store.working_directory, "/other")


class TestKeepDeleteComplement(unittest.TestCase):
    def test_keep_equals_delete_of_complement(self):
        for selection in ([0], [1, 3], [0, 1, 2, 3, 4], [4], [2, 0]):
            a = _store(5)
            b = _store(5)
            a.keep_only(selection)
            b.delete_at([i for i in range(5) if i not in selection])
            self.assertEqual([r.to_row() for r in a], [r.to_row() for r in b])

    def test_keep_returns_removed_count(self):
        store = _store(5)
        self.assertEqual(store.keep_only([1, 2]), 3)
        self.assertEqual([r.line for r in store], [2, 3])


class TestValidation(unittest.TestCase):
    def test_out_of_range_names_index_and_bounds(self):
        store = _store(4)
        with self.assertRaises(IndexRangeError) as ctx:
            store.delete_at([1, 7])
        self.assertEqual(str(ctx.exception), "Index 7 out of range (0, 3)")
        self.assertEqual(ctx.exception.index, 7)

    def test_failed_validation_leaves_store_untouched(self):
        store = _store(4)
        with self.assertRaises(IndexRangeError):
            store.keep_only([0, 4])
        self.assertEqual(len(store), 4)
        _assert_dense(self, store)

    def test_negative_index_rejected(self):
        with self.assertRaises(IndexRangeError):
            _store(2).validate([-1])

    def test_select_defaults_to_all(self):
        store = _store(3)
        self.assertEqual(store.select([]), [0, 1, 2])
        self.assertEqual(store.select([2]), [2])
        self.assertEqual(store.resolve_all_indices(), [0, 1, 2])


class TestFilter(unittest.TestCase):
    def test_filter_ignores_highlight_markers(self):
        store = MatchStore([
            MatchRecord(0, "a", 1, "foo \x1b[01;31mbar\x1b[m baz"),
            MatchRecord(1, "b", 2, "nothing here"),
        ])
        removed = store.filter(lambda c: "foo bar" in c)
        self.assertEqual(removed, 1)
        self.assertEqual(store[0].file, "a")

    def test_strip_ansi(self):
        self.assertEqual(strip_ansi("\x1b[1;31mred\x1b[0m"), "red")


class TestResolvePath(unittest.TestCase):
    def test_relative_path_joined_with_working_directory(self):
        store = _store(1, working_directory="/repo")
        self.assertEqual(store.resolve_path(store[0]), "/repo/dir/file0.txt")

    def test_absolute_path_unchanged(self):
        store = MatchStore([MatchRecord(0, "/etc/hosts", 1, "x")], working_directory="/repo")
        self.assertEqual(store.resolve_path(store[0]), "/etc/hosts")


if __name__ == "__main__":
    unittest.main()
