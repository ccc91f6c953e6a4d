# Copyright Red Hat
#
# treecmp/compare/comparators.py - Tree comparison per-kind comparators
#
# This file is part of the treecmp project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Per file kind comparison strategies and the registry that dispatches to
them.
"""
from typing import Any, Dict, List, NamedTuple, Optional, Sequence, Tuple
from abc import ABC, abstractmethod
from enum import Enum
import logging
import os

from treecmp import (
    ContentReadError,
    DisassemblyRefusedError,
    ToolUnavailableError,
    TREECMP_SUBSYSTEM_COMPARE,
)

from .disasm import Disassembler, NullDisassembler
from .filekinds import FileKind
from .lcsdiff import DiffLine, diff_stats, lcs_diff, split_lines
from .options import CompareOptions
from .treewalk import FileRecord

_log = logging.getLogger(__name__)

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error


def _log_debug_compare(msg, *args, **kwargs):
    """A wrapper for compare subsystem debug logs."""
    _log.debug(msg, *args, extra={"subsystem": TREECMP_SUBSYSTEM_COMPARE}, **kwargs)


class WarningKind(Enum):
    """
    Categories of non-fatal comparison failure.
    """

    TOOL_UNAVAILABLE = "tool_unavailable"
    DISASSEMBLY_REFUSED = "disassembly_refused"
    CONTENT_READ_ERROR = "content_read_error"


class CompareWarning(NamedTuple):
    """
    A non-fatal condition recorded while comparing one path.
    """

    kind: WarningKind
    path: str
    message: str

    def __str__(self):
        return f"{self.path}: {self.message}"

    def to_dict(self) -> Dict[str, str]:
        """
        Return a dictionary representation of this ``CompareWarning``.

        :returns: A dictionary with "kind", "path" and "message" keys.
        :rtype: ``Dict[str, str]``
        """
        return {"kind": self.kind.value, "path": self.path, "message": self.message}


class ComparisonVerdict(NamedTuple):
    """
    The outcome of comparing one pair of files.

    ``diff`` is only set for unequal files when a diff was requested and
    could be rendered.
    """

    equal: bool
    diff: Optional[Tuple[DiffLine, ...]] = None
    summary: str = ""
    warnings: Tuple[CompareWarning, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        """
        Return a dictionary representation of this ``ComparisonVerdict``
        suitable for encoding as JSON.

        :returns: A dictionary mapping this verdict's fields to values.
        :rtype: ``Dict[str, Any]``
        """
        return {
            "equal": self.equal,
            "diff": [line.to_dict() for line in self.diff] if self.diff else None,
            "summary": self.summary,
            "warnings": [warning.to_dict() for warning in self.warnings],
        }


_ERROR_WARNING_KINDS = (
    (ToolUnavailableError, WarningKind.TOOL_UNAVAILABLE),
    (DisassemblyRefusedError, WarningKind.DISASSEMBLY_REFUSED),
    (ContentReadError, WarningKind.CONTENT_READ_ERROR),
)


class ComparatorBase(ABC):
    """
    Base class for file kind comparison strategies.

    ``compare()`` is only called for files whose content fingerprints
    differ. Per-file errors raised by ``_compare()`` are converted into a
    warning on an unequal verdict.
    """

    def __init__(self, options: Optional[CompareOptions] = None):
        self.options: CompareOptions = options or CompareOptions()

    def compare(self, old: FileRecord, new: FileRecord) -> ComparisonVerdict:
        """
        Compare the files described by ``old`` and ``new``.

        :param old: The record from the old snapshot.
        :type old: ``FileRecord``
        :param new: The record from the new snapshot.
        :type new: ``FileRecord``
        :returns: The comparison verdict.
        :rtype: ``ComparisonVerdict``
        """
        try:
            return self._compare(old, new)
        except (ToolUnavailableError, DisassemblyRefusedError, ContentReadError) as err:
            kind = next(kind for cls, kind in _ERROR_WARNING_KINDS if isinstance(err, cls))
            _log_debug_compare("%s comparing %s: %s", kind.value, new.path, err)
            return ComparisonVerdict(
                equal=False,
                summary=f"Comparison incomplete: {err}",
                warnings=(CompareWarning(kind, new.path, str(err)),),
            )

    @abstractmethod
    def _compare(self, old: FileRecord, new: FileRecord) -> ComparisonVerdict:
        """Hook for subclasses to compare two files."""

    def _render_diff(
        self, old_lines: Sequence[str], new_lines: Sequence[str]
    ) -> Tuple[Optional[Tuple[DiffLine, ...]], str]:
        """
        Render a line diff if diffs are enabled and both sides are within
        the ``max_diff_lines`` bound.

        :returns: A ``(diff, summary)`` tuple: ``diff`` is ``None`` if no
                  diff was rendered or it contains no changed lines.
        """
        if not self.options.include_content_diffs:
            return None, f"{len(old_lines)} -> {len(new_lines)} lines"

        limit = self.options.max_diff_lines
        if limit and (len(old_lines) > limit or len(new_lines) > limit):
            return None, (
                f"diff omitted: {len(old_lines)}/{len(new_lines)} lines "
                f"exceeds limit of {limit}"
            )

        script = lcs_diff(old_lines, new_lines)
        inserted, deleted = diff_stats(script)
        if not inserted and not deleted:
            return None, "differences are in line terminators only"
        return tuple(script), f"{deleted} deletions, {inserted} additions"

    @property
    def name(self) -> str:
        """The comparator name used in log messages."""
        return self.__class__.__name__


class IgnoreComparator(ComparatorBase):
    """
    Comparator for kinds expected to vary between builds: always equal.
    """

    def _compare(self, old: FileRecord, new: FileRecord) -> ComparisonVerdict:
        return ComparisonVerdict(equal=True, summary="ignored file kind")


class FingerprintComparator(ComparatorBase):
    """
    Comparator for unclassified kinds: differing fingerprints mean the
    files differ.
    """

    def _compare(self, old: FileRecord, new: FileRecord) -> ComparisonVerdict:
        return ComparisonVerdict(equal=False, summary="content fingerprints differ")


def _read_text(record: FileRecord, encoding: str, normalize: bool) -> str:
    try:
        with open(
            record.full_path, "r", encoding=encoding, errors="surrogateescape", newline=""
        ) as f:
            text = f.read()
    except (OSError, LookupError) as err:
        raise ContentReadError(record.full_path, str(err)) from err
    if normalize:
        text = text.replace("\r\n", "\n").replace("\r", "\n")
    return text


class TextComparator(ComparatorBase):
    """
    Comparator for plain-text kinds: exact equality of the decoded text.
    """

    def _compare(self, old: FileRecord, new: FileRecord) -> ComparisonVerdict:
        encoding = self.options.text_encoding
        normalize = self.options.normalize_line_endings
        old_text = _read_text(old, encoding, normalize)
        new_text = _read_text(new, encoding, normalize)

        if old_text == new_text:
            return ComparisonVerdict(equal=True, summary="text content identical")

        diff, summary = self._render_diff(
            split_lines(old_text), split_lines(new_text)
        )
        return ComparisonVerdict(equal=False, diff=diff, summary=summary)


class DisassemblyComparator(ComparatorBase):
    """
    Comparator for compiled modules: compare the disassembly of each side
    after dropping lines that vary between otherwise identical builds.
    """

    def __init__(
        self,
        options: Optional[CompareOptions] = None,
        disassembler: Optional[Disassembler] = None,
    ):
        super().__init__(options)
        self.disassembler: Disassembler = disassembler or NullDisassembler()

    def _strip_volatile(self, lines: Sequence[str]) -> List[str]:
        prefixes = self.options.volatile_prefixes
        if not prefixes:
            return list(lines)
        return [line for line in lines if not line.lstrip().startswith(prefixes)]

    def _disassemble(self, record: FileRecord) -> List[str]:
        if not os.access(record.full_path, os.R_OK):
            raise ContentReadError(record.full_path, "file is missing or unreadable")
        return self._strip_volatile(self.disassembler.disassemble(record.full_path))

    def _compare(self, old: FileRecord, new: FileRecord) -> ComparisonVerdict:
        old_lines = self._disassemble(old)
        new_lines = self._disassemble(new)

        if old_lines == new_lines:
            return ComparisonVerdict(
                equal=True, summary="disassembly identical after removing volatile lines"
            )

        diff, summary = self._render_diff(old_lines, new_lines)
        return ComparisonVerdict(equal=False, diff=diff, summary=summary)


class ComparatorRegistry:
    """
    Table of ``FileKind`` to comparator. Adding a kind means registering a
    comparator for it.
    """

    def __init__(
        self,
        options: Optional[CompareOptions] = None,
        disassembler: Optional[Disassembler] = None,
        register_defaults: bool = True,
    ):
        """
        Initialise a new ``ComparatorRegistry``.

        :param options: Options passed to the default comparators.
        :type options: ``Optional[CompareOptions]``
        :param disassembler: The disassembler for compiled modules.
        :type disassembler: ``Optional[Disassembler]``
        :param register_defaults: Register the built-in comparators.
        :type register_defaults: ``bool``
        """
        self.options: CompareOptions = options or CompareOptions()
        self.fallback: ComparatorBase = FingerprintComparator(self.options)
        self._comparators: Dict[FileKind, ComparatorBase] = {}
        if register_defaults:
            self._register_default_comparators(disassembler)

    def _register_default_comparators(self, disassembler: Optional[Disassembler]):
        self.register(FileKind.IGNORED, IgnoreComparator(self.options))
        self.register(FileKind.TEXT, TextComparator(self.options))
        self.register(
            FileKind.COMPILED, DisassemblyComparator(self.options, disassembler)
        )
        self.register(FileKind.UNCLASSIFIED, self.fallback)

    def register(self, kind: FileKind, comparator: ComparatorBase):
        """
        Register ``comparator`` for ``kind``, replacing any existing entry.

        :param kind: The file kind.
        :type kind: ``FileKind``
        :param comparator: The comparator to use for ``kind``.
        :type comparator: ``ComparatorBase``
        """
        _log_debug_compare("Registering %s for %s files", comparator.name, kind.value)
        self._comparators[kind] = comparator

    def get_comparator(self, kind: FileKind) -> ComparatorBase:
        """
        Return the comparator registered for ``kind``, or the fingerprint
        comparator if there is none.

        :param kind: The file kind.
        :type kind: ``FileKind``
        :returns: The comparator for ``kind``.
        :rtype: ``ComparatorBase``
        """
        return self._comparators.get(kind, self.fallback)

    def compare(
        self, old: FileRecord, new: FileRecord, kind: FileKind
    ) -> ComparisonVerdict:
        """
        Compare ``old`` and ``new`` with the comparator for ``kind``.

        :param old: The record from the old snapshot.
        :type old: ``FileRecord``
        :param new: The record from the new snapshot.
        :type new: ``FileRecord``
        :param kind: The file kind of the path.
        :type kind: ``FileKind``
        :returns: The comparison verdict.
        :rtype: ``ComparisonVerdict``
        """
        comparator = self.get_comparator(kind)
        verdict = comparator.compare(old, new)
        _log_debug_compare(
            "%s: %s (%s) -> %s",
            comparator.name,
            new.path,
            kind.value,
            "equal" if verdict.equal else "different",
        )
        return verdict

    @property
    def kinds(self) -> Tuple[FileKind, ...]:
        """The file kinds with a registered comparator."""
        return tuple(self._comparators)


__all__ = [
    "WarningKind",
    "CompareWarning",
    "ComparisonVerdict",
    "ComparatorBase",
    "IgnoreComparator",
    "FingerprintComparator",
    "TextComparator",
    "DisassemblyComparator",
    "ComparatorRegistry",
]
