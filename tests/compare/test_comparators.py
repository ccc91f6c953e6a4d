# Copyright Red Hat
#
# tests/compare/test_comparators.py - Comparator dispatch tests.
#
# This file is part of the treecmp project.
#
# SPDX-License-Identifier: Apache-2.0
import unittest
import tempfile
import os

from treecmp.compare.comparators import (
    ComparatorBase,
    ComparatorRegistry,
    ComparisonVerdict,
    DisassemblyComparator,
    FingerprintComparator,
    IgnoreComparator,
    TextComparator,
    WarningKind,
)
from treecmp.compare.disasm import NullDisassembler
from treecmp.compare.filekinds import FileKind
from treecmp.compare.lcsdiff import DiffLine, DiffOp
from treecmp.compare.options import CompareOptions
from treecmp.compare.treewalk import FileRecord

from ._util import FakeDisassembler, make_record


class _ComparatorTestBase(unittest.TestCase):
    def setUp(self):
        self.tmp_dir = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp_dir.cleanup)

    def _create_file(self, name, content):
        path = os.path.join(self.tmp_dir.name, name)
        mode = "wb" if isinstance(content, bytes) else "w"
        kwargs = {} if isinstance(content, bytes) else {"newline": ""}
        with open(path, mode, **kwargs) as f:
            f.write(content)
        return path

    def _record(self, name, content, rel_path="file"):
        path = self._create_file(name, content)
        return FileRecord(rel_path, f"hash-of-{name}", path, os.path.getsize(path))


class TestSimpleComparators(_ComparatorTestBase):
    def test_ignore_always_equal(self):
        verdict = IgnoreComparator().compare(
            make_record("x.pdb", b"1"), make_record("x.pdb", b"2")
        )
        self.assertTrue(verdict.equal)
        self.assertIsNone(verdict.diff)
        self.assertEqual(verdict.warnings, ())

    def test_fingerprint_never_equal(self):
        verdict = FingerprintComparator().compare(
            make_record("x.bin", b"1"), make_record("x.bin", b"2")
        )
        self.assertFalse(verdict.equal)
        self.assertIsNone(verdict.diff)


class TestTextComparator(_ComparatorTestBase):
    def test_text_modified_diff(self):
        old = self._record("old.txt", "hello", "a.txt")
        new = self._record("new.txt", "hello world", "a.txt")
        verdict = TextComparator().compare(old, new)
        self.assertFalse(verdict.equal)
        self.assertEqual(
            verdict.diff,
            (
                DiffLine(DiffOp.DELETE, "hello"),
                DiffLine(DiffOp.INSERT, "hello world"),
            ),
        )
        self.assertEqual(verdict.summary, "1 deletions, 1 additions")

    def test_text_no_diff_when_disabled(self):
        old = self._record("old.txt", "a\nb\n")
        new = self._record("new.txt", "a\nc\n")
        options = CompareOptions(include_content_diffs=False)
        verdict = TextComparator(options).compare(old, new)
        self.assertFalse(verdict.equal)
        self.assertIsNone(verdict.diff)

    def test_text_line_endings_differ_by_default(self):
        old = self._record("old.txt", "a\r\nb\r\n")
        new = self._record("new.txt", "a\nb\n")
        verdict = TextComparator().compare(old, new)
        self.assertFalse(verdict.equal)
        self.assertIsNone(verdict.diff)
        self.assertEqual(verdict.summary, "differences are in line terminators only")

    def test_text_missing_final_newline(self):
        old = self._record("old.txt", "a\n")
        new = self._record("new.txt", "a")
        verdict = TextComparator().compare(old, new)
        self.assertFalse(verdict.equal)
        self.assertIsNone(verdict.diff)
        self.assertEqual(verdict.summary, "differences are in line terminators only")

    def test_text_form_feed_stays_in_line(self):
        old = self._record("old.txt", "x = 1\f y\n")
        new = self._record("new.txt", "x = 2\f y\n")
        verdict = TextComparator().compare(old, new)
        self.assertEqual(
            verdict.diff,
            (
                DiffLine(DiffOp.DELETE, "x = 1\f y"),
                DiffLine(DiffOp.INSERT, "x = 2\f y"),
            ),
        )

    def test_text_form_feed_is_not_a_line_break(self):
        old = self._record("old.txt", "a\nb\n")
        new = self._record("new.txt", "a\fb\n")
        verdict = TextComparator().compare(old, new)
        self.assertFalse(verdict.equal)
        self.assertEqual(
            verdict.diff,
            (
                DiffLine(DiffOp.DELETE, "a"),
                DiffLine(DiffOp.DELETE, "b"),
                DiffLine(DiffOp.INSERT, "a\fb"),
            ),
        )
        self.assertEqual(verdict.summary, "2 deletions, 1 additions")

    def test_text_normalize_line_endings(self):
        old = self._record("old.txt", "a\r\nb\r")
        new = self._record("new.txt", "a\nb\n")
        options = CompareOptions(normalize_line_endings=True)
        verdict = TextComparator(options).compare(old, new)
        self.assertTrue(verdict.equal)

    def test_text_undecodable_bytes_stay_distinct(self):
        old = self._record("old.txt", b"value \xff\n")
        new = self._record("new.txt", b"value \xfe\n")
        verdict = TextComparator().compare(old, new)
        self.assertFalse(verdict.equal)
        self.assertIsNotNone(verdict.diff)

    def test_text_diff_line_limit(self):
        old = self._record("old.txt", "\n".join(str(i) for i in range(20)))
        new = self._record("new.txt", "\n".join(str(i) for i in range(21)))
        options = CompareOptions(max_diff_lines=10)
        verdict = TextComparator(options).compare(old, new)
        self.assertFalse(verdict.equal)
        self.assertIsNone(verdict.diff)
        self.assertIn("diff omitted", verdict.summary)

    def test_text_vanished_file_warning(self):
        old = self._record("old.txt", "a")
        new = FileRecord("file", "x", os.path.join(self.tmp_dir.name, "gone.txt"), 1)
        verdict = TextComparator().compare(old, new)
        self.assertFalse(verdict.equal)
        self.assertIsNone(verdict.diff)
        self.assertEqual(len(verdict.warnings), 1)
        self.assertEqual(verdict.warnings[0].kind, WarningKind.CONTENT_READ_ERROR)
        self.assertEqual(verdict.warnings[0].path, "file")


class TestDisassemblyComparator(_ComparatorTestBase):
    def test_volatile_lines_stripped_equal(self):
        old = self._record("old.dll", b"build-1", "lib/a.dll")
        new = self._record("new.dll", b"build-2", "lib/a.dll")
        disasm = FakeDisassembler(
            {
                b"build-1": [".assembly A", "  // MVID: {1111}", "ret"],
                b"build-2": [".assembly A", "  // MVID: {2222}", "ret"],
            }
        )
        verdict = DisassemblyComparator(disassembler=disasm).compare(old, new)
        self.assertTrue(verdict.equal)
        self.assertIsNone(verdict.diff)
        self.assertEqual(len(disasm.calls), 2)

    def test_image_base_stripped(self):
        old = self._record("old.dll", b"1")
        new = self._record("new.dll", b"2")
        disasm = FakeDisassembler(
            {b"1": ["// Image base: 0x0001", "x"], b"2": ["// Image base: 0x0002", "x"]}
        )
        self.assertTrue(DisassemblyComparator(disassembler=disasm).compare(old, new).equal)

    def test_disassembly_differs_diff(self):
        old = self._record("old.dll", b"1")
        new = self._record("new.dll", b"2")
        disasm = FakeDisassembler(
            {b"1": ["// MVID: a", "ldc 1", "ret"], b"2": ["// MVID: b", "ldc 2", "ret"]}
        )
        verdict = DisassemblyComparator(disassembler=disasm).compare(old, new)
        self.assertFalse(verdict.equal)
        self.assertEqual(
            verdict.diff,
            (
                DiffLine(DiffOp.DELETE, "ldc 1"),
                DiffLine(DiffOp.INSERT, "ldc 2"),
                DiffLine(DiffOp.CONTEXT, "ret"),
            ),
        )

    def test_custom_volatile_prefixes(self):
        old = self._record("old.dll", b"1")
        new = self._record("new.dll", b"2")
        disasm = FakeDisassembler({b"1": ["// Stamp 1", "x"], b"2": ["// Stamp 2", "x"]})
        options = CompareOptions(volatile_prefixes=("// Stamp",))
        comparator = DisassemblyComparator(options, disassembler=disasm)
        self.assertTrue(comparator.compare(old, new).equal)

    def test_tool_unavailable_warning(self):
        old = self._record("old.dll", b"1", "a.dll")
        new = self._record("new.dll", b"2", "a.dll")
        verdict = DisassemblyComparator(disassembler=NullDisassembler()).compare(old, new)
        self.assertFalse(verdict.equal)
        self.assertIsNone(verdict.diff)
        self.assertEqual(verdict.warnings[0].kind, WarningKind.TOOL_UNAVAILABLE)

    def test_refused_warning(self):
        old = self._record("old.dll", b"1", "a.dll")
        new = self._record("new.dll", b"2", "a.dll")
        disasm = FakeDisassembler({b"1": ["x"], b"2": None})
        verdict = DisassemblyComparator(disassembler=disasm).compare(old, new)
        self.assertFalse(verdict.equal)
        self.assertIsNone(verdict.diff)
        self.assertEqual(verdict.warnings[0].kind, WarningKind.DISASSEMBLY_REFUSED)
        self.assertIn("new.dll", verdict.warnings[0].message)

    def test_missing_file_read_error(self):
        old = self._record("old.dll", b"1")
        new = FileRecord("file", "x", os.path.join(self.tmp_dir.name, "gone.dll"), 1)
        disasm = FakeDisassembler({b"1": ["x"]})
        verdict = DisassemblyComparator(disassembler=disasm).compare(old, new)
        self.assertFalse(verdict.equal)
        self.assertEqual(verdict.warnings[0].kind, WarningKind.CONTENT_READ_ERROR)


class _AlwaysEqual(ComparatorBase):
    def _compare(self, old, new):
        return ComparisonVerdict(equal=True, summary="custom")


class TestComparatorRegistry(_ComparatorTestBase):
    def test_default_registry(self):
        registry = ComparatorRegistry()
        self.assertEqual(set(registry.kinds), set(FileKind))
        self.assertIsInstance(registry.get_comparator(FileKind.IGNORED), IgnoreComparator)
        self.assertIsInstance(registry.get_comparator(FileKind.TEXT), TextComparator)
        self.assertIsInstance(
            registry.get_comparator(FileKind.COMPILED), DisassemblyComparator
        )
        self.assertIsInstance(
            registry.get_comparator(FileKind.UNCLASSIFIED), FingerprintComparator
        )

    def test_empty_registry_falls_back(self):
        registry = ComparatorRegistry(register_defaults=False)
        self.assertEqual(registry.kinds, ())
        verdict = registry.compare(
            make_record("a.txt", "1"), make_record("a.txt", "2"), FileKind.TEXT
        )
        self.assertFalse(verdict.equal)

    def test_register_replaces(self):
        registry = ComparatorRegistry()
        registry.register(FileKind.UNCLASSIFIED, _AlwaysEqual())
        verdict = registry.compare(
            make_record("a.bin", "1"), make_record("a.bin", "2"), FileKind.UNCLASSIFIED
        )
        self.assertTrue(verdict.equal)
        self.assertEqual(verdict.summary, "custom")

    def test_ignored_kind_equal(self):
        registry = ComparatorRegistry()
        verdict = registry.compare(
            make_record("a.pdb", b"\x01"), make_record("a.pdb", b"\x02"), FileKind.IGNORED
        )
        self.assertTrue(verdict.equal)

    def test_verdict_to_dict(self):
        verdict = ComparisonVerdict(
            equal=False, diff=(DiffLine(DiffOp.INSERT, "x"),), summary="s"
        )
        self.assertEqual(
            verdict.to_dict(),
            {
                "equal": False,
                "diff": [{"op": "insert", "text": "x"}],
                "summary": "s",
                "warnings": [],
            },
        )
