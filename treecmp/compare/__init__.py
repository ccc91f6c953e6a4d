# Copyright Red Hat
#
# treecmp/compare/__init__.py - Tree comparison package
#
# This file is part of the treecmp project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Directory tree comparison.
"""
from .classify import ClassificationResult, classify
from .comparators import (
    ComparatorBase,
    ComparatorRegistry,
    CompareWarning,
    ComparisonVerdict,
    DisassemblyComparator,
    FingerprintComparator,
    IgnoreComparator,
    TextComparator,
    WarningKind,
)
from .differ import TreeDiffer
from .disasm import Disassembler, ExternalDisassembler, NullDisassembler
from .engine import CompareEngine, CompareResults
from .filekinds import FileKind, KindTable
from .lcsdiff import DiffLine, DiffOp, lcs_diff
from .options import CompareOptions
from .report import CompareReport, ReportBuilder, build_report
from .treewalk import FileRecord, Snapshot, TreeWalker

__all__ = [
    "ClassificationResult",
    "classify",
    "ComparatorBase",
    "ComparatorRegistry",
    "CompareWarning",
    "ComparisonVerdict",
    "DisassemblyComparator",
    "FingerprintComparator",
    "IgnoreComparator",
    "TextComparator",
    "WarningKind",
    "TreeDiffer",
    "Disassembler",
    "ExternalDisassembler",
    "NullDisassembler",
    "CompareEngine",
    "CompareResults",
    "FileKind",
    "KindTable",
    "DiffLine",
    "DiffOp",
    "lcs_diff",
    "CompareOptions",
    "CompareReport",
    "ReportBuilder",
    "build_report",
    "FileRecord",
    "Snapshot",
    "TreeWalker",
]
