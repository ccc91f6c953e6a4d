# Copyright Red Hat
#
# tests/compare/test_lcsdiff.py - LCS line diff tests.
#
# This file is part of the treecmp project.
#
# SPDX-License-Identifier: Apache-2.0
import unittest
import random

from treecmp.compare.lcsdiff import (
    DiffLine,
    DiffOp,
    diff_stats,
    format_diff,
    lcs_diff,
    lcs_table,
    new_lines,
    old_lines,
    split_lines,
)


def _context(text):
    return DiffLine(DiffOp.CONTEXT, text)


def _insert(text):
    return DiffLine(DiffOp.INSERT, text)


def _delete(text):
    return DiffLine(DiffOp.DELETE, text)


class TestLcsTable(unittest.TestCase):
    def test_table_dimensions(self):
        table = lcs_table(["a", "b", "c"], ["a", "c"])
        self.assertEqual(len(table), 4)
        self.assertTrue(all(len(row) == 3 for row in table))

    def test_table_borders_are_zero(self):
        table = lcs_table(["a", "b"], ["b", "a", "b"])
        self.assertEqual(table[0], [0, 0, 0, 0])
        self.assertEqual([row[0] for row in table], [0, 0, 0])

    def test_table_lcs_length(self):
        table = lcs_table(list("ABCBDAB"), list("BDCABA"))
        self.assertEqual(table[-1][-1], 4)

    def test_empty_inputs(self):
        self.assertEqual(lcs_table([], []), [[0]])


class TestLcsDiff(unittest.TestCase):
    def test_identical_sequences_all_context(self):
        lines = ["one", "two", "three", "two"]
        script = lcs_diff(lines, list(lines))
        self.assertEqual(script, [_context(line) for line in lines])

    def test_both_empty(self):
        self.assertEqual(lcs_diff([], []), [])

    def test_old_empty_all_inserts(self):
        self.assertEqual(lcs_diff([], ["a", "b"]), [_insert("a"), _insert("b")])

    def test_new_empty_all_deletes(self):
        self.assertEqual(lcs_diff(["a", "b"], []), [_delete("a"), _delete("b")])

    def test_single_line_replacement(self):
        # Tie-break favours insert during traceback: delete comes first once
        # the script is reversed.
        self.assertEqual(
            lcs_diff(["hello"], ["hello world"]),
            [_delete("hello"), _insert("hello world")],
        )

    def test_replacement_in_middle(self):
        script = lcs_diff(["a", "b", "c"], ["a", "x", "c"])
        self.assertEqual(
            script, [_context("a"), _delete("b"), _insert("x"), _context("c")]
        )

    def test_insert_in_middle(self):
        script = lcs_diff(["a", "c"], ["a", "b", "c"])
        self.assertEqual(script, [_context("a"), _insert("b"), _context("c")])

    def test_delete_at_end(self):
        script = lcs_diff(["a", "b", "c"], ["a", "b"])
        self.assertEqual(script, [_context("a"), _context("b"), _delete("c")])

    def test_line_equality_is_exact(self):
        script = lcs_diff(["a "], ["a"])
        self.assertEqual(script, [_delete("a "), _insert("a")])

    def test_minimal_edit_count(self):
        a = list("ABCBDAB")
        b = list("BDCABA")
        script = lcs_diff(a, b)
        inserted, deleted = diff_stats(script)
        lcs_len = lcs_table(a, b)[-1][-1]
        self.assertEqual(inserted, len(b) - lcs_len)
        self.assertEqual(deleted, len(a) - lcs_len)

    def test_deterministic_output(self):
        a = ["x", "y", "z", "x", "y"]
        b = ["y", "x", "z", "y", "x"]
        self.assertEqual(lcs_diff(a, b), lcs_diff(a, b))

    def test_reconstruction(self):
        rng = random.Random(20240601)
        for _ in range(50):
            a = [rng.choice("abcde") for _ in range(rng.randint(0, 12))]
            b = [rng.choice("abcde") for _ in range(rng.randint(0, 12))]
            script = lcs_diff(a, b)
            self.assertEqual(old_lines(script), a)
            self.assertEqual(new_lines(script), b)


class TestDiffHelpers(unittest.TestCase):
    def test_diff_stats(self):
        script = [_context("a"), _delete("b"), _insert("x"), _insert("y")]
        self.assertEqual(diff_stats(script), (2, 1))

    def test_format_diff(self):
        script = [_context("a"), _delete("b"), _insert("c")]
        self.assertEqual(format_diff(script), " a\n-b\n+c")

    def test_diffline_str(self):
        self.assertEqual(str(_insert("new")), "+new")
        self.assertEqual(str(_delete("old")), "-old")
        self.assertEqual(str(_context("same")), " same")

    def test_diffline_to_dict(self):
        self.assertEqual(_insert("x").to_dict(), {"op": "insert", "text": "x"})


class TestSplitLines(unittest.TestCase):
    def test_split_terminators(self):
        self.assertEqual(split_lines("a\r\nb\rc\nd"), ["a", "b", "c", "d"])

    def test_trailing_terminator(self):
        self.assertEqual(split_lines("a\nb\n"), ["a", "b"])
        self.assertEqual(split_lines("a\n\n"), ["a", ""])

    def test_empty(self):
        self.assertEqual(split_lines(""), [])
        self.assertEqual(split_lines("\n"), [""])

    def test_other_breaks_stay_in_line(self):
        for sep in ("\f", "\v", "\x1c", "\x1d", "\x1e", "\x85", "\u2028", "\u2029"):
            self.assertEqual(split_lines(f"a{sep}b\n"), [f"a{sep}b"])
