# Copyright Red Hat
#
# treecmp/compare/engine.py - Tree comparison engine
#
# This file is part of the treecmp project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Comparison engine: classify two snapshots and dispatch candidate paths to
the comparator registry.
"""
from typing import Any, Dict, List, Optional
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime
from math import floor
import logging
import json

from treecmp import TREECMP_SUBSYSTEM_COMPARE
from treecmp.progress import ProgressFactory, TermControl

from .classify import classify
from .comparators import (
    ComparatorRegistry,
    CompareWarning,
    ComparisonVerdict,
    WarningKind,
)
from .disasm import Disassembler, disassembler_from_options
from .filekinds import KindTable, kind_table_from_options
from .options import CompareOptions
from .treewalk import Snapshot

_log = logging.getLogger(__name__)

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error


def _log_debug_compare(msg, *args, **kwargs):
    """A wrapper for compare subsystem debug logs."""
    _log.debug(msg, *args, extra={"subsystem": TREECMP_SUBSYSTEM_COMPARE}, **kwargs)


class CompareResults:
    """
    The outcome of comparing two trees.

    All path lists are sorted. ``verdicts`` maps each path that reached a
    comparator (modified paths and comparator-unchanged paths) to its
    ``ComparisonVerdict``.
    """

    def __init__(
        self,
        added: List[str],
        removed: List[str],
        modified: List[str],
        unchanged: List[str],
        verdicts: Dict[str, ComparisonVerdict],
        warnings: List[CompareWarning],
        old_count: int,
        new_count: int,
        options: Optional[CompareOptions] = None,
        timestamp: Optional[int] = None,
    ):
        self.added = sorted(added)
        self.removed = sorted(removed)
        self.modified = sorted(modified)
        self.unchanged = sorted(unchanged)
        self.verdicts = verdicts
        self.warnings = warnings
        self.old_count = old_count
        self.new_count = new_count
        self.options = options or CompareOptions()
        self.timestamp = timestamp or floor(datetime.now().timestamp())

    def __repr__(self) -> str:
        return (
            f"CompareResults(added={len(self.added)}, removed={len(self.removed)}, "
            f"modified={len(self.modified)}, unchanged={len(self.unchanged)}, "
            f"warnings={len(self.warnings)})"
        )

    @property
    def total_changes(self) -> int:
        """
        Return the number of added, removed and modified paths.

        :returns: The total number of changed paths.
        :rtype: ``int``
        """
        return len(self.added) + len(self.removed) + len(self.modified)

    def diff_for(self, path: str):
        """
        Return the rendered diff for a modified ``path``, if there is one.

        :param path: A modified path.
        :type path: ``str``
        :returns: The edit script or ``None``.
        :rtype: ``Optional[Tuple[DiffLine, ...]]``
        """
        verdict = self.verdicts.get(path)
        return verdict.diff if verdict is not None else None

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert this ``CompareResults`` object into a dictionary
        representation suitable for encoding as JSON.

        :returns: A dictionary mapping this instance's keys to values.
        :rtype: ``Dict[str, Any]``
        """
        return {
            "timestamp": self.timestamp,
            "added": list(self.added),
            "removed": list(self.removed),
            "modified": list(self.modified),
            "unchanged": list(self.unchanged),
            "verdicts": {path: self.verdicts[path].to_dict() for path in self.modified},
            "warnings": [warning.to_dict() for warning in self.warnings],
            "old_count": self.old_count,
            "new_count": self.new_count,
        }

    def json(self, pretty: bool = False) -> str:
        """
        Return a JSON representation of this ``CompareResults``.

        :param pretty: Indent JSON to be human readable.
        :type pretty: ``bool``
        :returns: A JSON string.
        :rtype: ``str``
        """
        return json.dumps(self.to_dict(), indent=4 if pretty else None)


class CompareEngine:
    """
    Core class for comparing two tree snapshots.
    """

    def __init__(
        self,
        options: Optional[CompareOptions] = None,
        disassembler: Optional[Disassembler] = None,
        kind_table: Optional[KindTable] = None,
    ):
        """
        Initialise a new ``CompareEngine``.

        :param options: Options to apply to the comparison.
        :type options: ``Optional[CompareOptions]``
        :param disassembler: The disassembler for compiled modules: if
                             ``None`` one is built from ``options``.
        :type disassembler: ``Optional[Disassembler]``
        :param kind_table: The extension table: if ``None`` one is built
                           from ``options``.
        :type kind_table: ``Optional[KindTable]``
        """
        self.options: CompareOptions = options or CompareOptions()
        if disassembler is None:
            disassembler = disassembler_from_options(self.options)
        self.kind_table: KindTable = kind_table or kind_table_from_options(self.options)
        self.registry: ComparatorRegistry = ComparatorRegistry(
            self.options, disassembler
        )

    def _compare_one(self, path: str, old: Snapshot, new: Snapshot) -> ComparisonVerdict:
        new_record = new[path]
        kind = self.kind_table.kind_for_path(path, new_record.full_path)
        return self.registry.compare(old[path], new_record, kind)

    def compute(
        self,
        old: Snapshot,
        new: Snapshot,
        term_control: Optional[TermControl] = None,
    ) -> CompareResults:
        """
        Compare the snapshots ``old`` and ``new``.

        Candidate paths are compared on a bounded thread pool; verdicts are
        collected on the calling thread and all output is sorted, so the
        result does not depend on completion order.

        :param old: The snapshot of the old tree.
        :type old: ``Snapshot``
        :param new: The snapshot of the new tree.
        :type new: ``Snapshot``
        :param term_control: Optional pre-initialised terminal control.
        :type term_control: ``Optional[TermControl]``
        :returns: The comparison results.
        :rtype: ``CompareResults``
        """
        start_time = datetime.now()
        classified = classify(old, new)
        _log_debug_compare(
            "Classified %d/%d paths: %d added, %d removed, %d unchanged, %d candidates",
            len(old),
            len(new),
            len(classified.added),
            len(classified.removed),
            len(classified.unchanged),
            len(classified.candidates),
        )

        verdicts: Dict[str, ComparisonVerdict] = {}
        candidates = classified.candidates
        if candidates:
            progress = ProgressFactory.get_progress(
                "Comparing files",
                quiet=self.options.quiet,
                term_control=term_control,
            )
            progress.start(len(candidates))
            try:
                with ThreadPoolExecutor(
                    max_workers=self.options.compare_workers
                ) as executor:
                    futures = {
                        executor.submit(self._compare_one, path, old, new): path
                        for path in candidates
                    }
                    for done, future in enumerate(as_completed(futures), start=1):
                        path = futures[future]
                        verdicts[path] = future.result()
                        progress.progress(done, f"Compared {path}")
            except (KeyboardInterrupt, SystemExit):
                progress.cancel("Quit!")
                raise
            progress.end()

        modified = []
        unchanged = list(classified.unchanged)
        warnings = []
        tool_warned = False
        for path in candidates:
            verdict = verdicts[path]
            if verdict.equal:
                unchanged.append(path)
            else:
                modified.append(path)
            for warning in verdict.warnings:
                if warning.kind == WarningKind.TOOL_UNAVAILABLE:
                    if tool_warned:
                        continue
                    tool_warned = True
                _log_warn("%s", warning.message)
                warnings.append(warning)

        end_time = datetime.now()
        _log_info(
            "Compared %d files in %s: %d added, %d removed, %d modified",
            len(set(old) | set(new)),
            end_time - start_time,
            len(classified.added),
            len(classified.removed),
            len(modified),
        )

        return CompareResults(
            added=list(classified.added),
            removed=list(classified.removed),
            modified=modified,
            unchanged=unchanged,
            verdicts=verdicts,
            warnings=warnings,
            old_count=len(old),
            new_count=len(new),
            options=self.options,
            timestamp=floor(start_time.timestamp()),
        )


__all__ = [
    "CompareEngine",
    "CompareResults",
    "CompareWarning",
    "WarningKind",
]
