# Copyright Red Hat
#
# tests/compare/test_filekinds.py - File kind table tests.
#
# This file is part of the treecmp project.
#
# SPDX-License-Identifier: Apache-2.0
import unittest
from unittest.mock import patch, MagicMock

from treecmp import TreeCmpArgumentError
from treecmp.compare.filekinds import (
    FileKind,
    KindTable,
    detect_kind_with_magic,
    kind_table_from_options,
    parse_kind,
)
from treecmp.compare.options import CompareOptions

_DETECT = "treecmp.compare.filekinds.magic.detect_from_filename"


def _magic_result(mime_type):
    result = MagicMock()
    result.mime_type = mime_type
    return result


class TestKindTable(unittest.TestCase):
    def test_default_kinds(self):
        table = KindTable()
        self.assertEqual(table.kind_for_path("bin/app.pdb"), FileKind.IGNORED)
        self.assertEqual(table.kind_for_path("logs/run.log"), FileKind.IGNORED)
        self.assertEqual(table.kind_for_path("web.config"), FileKind.TEXT)
        self.assertEqual(table.kind_for_path("Views/Home.cshtml"), FileKind.TEXT)
        self.assertEqual(table.kind_for_path("bin/App.dll"), FileKind.COMPILED)
        self.assertEqual(table.kind_for_path("App.exe"), FileKind.COMPILED)
        self.assertEqual(table.kind_for_path("image.png"), FileKind.UNCLASSIFIED)
        self.assertEqual(table.kind_for_path("Makefile"), FileKind.UNCLASSIFIED)

    def test_case_insensitive_suffix(self):
        table = KindTable()
        self.assertEqual(table.kind_for_path("BIN/APP.DLL"), FileKind.COMPILED)
        self.assertEqual(table.kind_for_path("Readme.TXT"), FileKind.TEXT)

    def test_dotted_directory_not_suffix(self):
        table = KindTable()
        self.assertEqual(table.kind_for_path("lib.dll/README"), FileKind.UNCLASSIFIED)

    def test_with_overrides_returns_new_table(self):
        table = KindTable()
        overridden = table.with_overrides([(".png", "ignored"), ("dll", "unclassified")])
        self.assertEqual(overridden.kind_for_path("a.png"), FileKind.IGNORED)
        self.assertEqual(overridden.kind_for_path("a.dll"), FileKind.UNCLASSIFIED)
        self.assertEqual(table.kind_for_path("a.png"), FileKind.UNCLASSIFIED)
        self.assertEqual(table.kind_for_path("a.dll"), FileKind.COMPILED)

    def test_with_overrides_unknown_kind(self):
        with self.assertRaises(TreeCmpArgumentError):
            KindTable().with_overrides([(".png", "picture")])

    def test_extensions_read_only(self):
        with self.assertRaises(TypeError):
            KindTable().extensions[".foo"] = FileKind.TEXT

    def test_custom_table(self):
        table = KindTable({".X": FileKind.TEXT})
        self.assertEqual(len(table), 1)
        self.assertEqual(table.kind_for_path("a.x"), FileKind.TEXT)
        self.assertEqual(table.kind_for_path("a.txt"), FileKind.UNCLASSIFIED)

    def test_parse_kind(self):
        self.assertEqual(parse_kind("Compiled"), FileKind.COMPILED)
        with self.assertRaises(TreeCmpArgumentError):
            parse_kind("nope")

    def test_kind_table_from_options(self):
        options = CompareOptions(kind_overrides=((".bin", "ignored"),))
        table = kind_table_from_options(options)
        self.assertEqual(table.kind_for_path("a.bin"), FileKind.IGNORED)
        self.assertFalse(table.use_magic)


class TestMagicDetection(unittest.TestCase):
    @patch(_DETECT, return_value=_magic_result("application/x-dosexec"))
    def test_magic_compiled(self, mock_detect):
        self.assertEqual(detect_kind_with_magic("/t/a"), FileKind.COMPILED)
        mock_detect.assert_called_once_with("/t/a")

    @patch(_DETECT, return_value=_magic_result("text/x-shellscript"))
    def test_magic_text(self, _mock_detect):
        self.assertEqual(detect_kind_with_magic("/t/a"), FileKind.TEXT)

    @patch(_DETECT, return_value=_magic_result("image/png"))
    def test_magic_other(self, _mock_detect):
        self.assertEqual(detect_kind_with_magic("/t/a"), FileKind.UNCLASSIFIED)

    @patch(_DETECT, side_effect=OSError("boom"))
    def test_magic_error_falls_back(self, _mock_detect):
        with self.assertLogs("treecmp.compare.filekinds", level="WARNING"):
            self.assertEqual(detect_kind_with_magic("/t/a"), FileKind.UNCLASSIFIED)

    @patch(_DETECT, return_value=_magic_result("text/plain"))
    def test_table_uses_magic_only_for_unknown(self, mock_detect):
        table = KindTable(use_magic=True)
        self.assertEqual(table.kind_for_path("a.dll", "/t/a.dll"), FileKind.COMPILED)
        mock_detect.assert_not_called()
        self.assertEqual(table.kind_for_path("README", "/t/README"), FileKind.TEXT)
        mock_detect.assert_called_once_with("/t/README")

    @patch(_DETECT)
    def test_table_without_magic(self, mock_detect):
        self.assertEqual(
            KindTable().kind_for_path("README", "/t/README"), FileKind.UNCLASSIFIED
        )
        mock_detect.assert_not_called()
