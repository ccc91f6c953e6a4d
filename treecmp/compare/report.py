# Copyright Red Hat
#
# treecmp/compare/report.py - Tree comparison reports
#
# This file is part of the treecmp project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Comparison report construction and rendering.

A ``ReportBuilder`` accumulates sections, diffs and warnings and produces an
immutable ``CompareReport`` that renders as Markdown text or JSON.
"""
from typing import Any, Dict, Iterable, List, NamedTuple, Optional, Tuple
from types import MappingProxyType
import logging
import json
import re

from treecmp import TreeCmpError

from .comparators import CompareWarning
from .engine import CompareResults
from .lcsdiff import DiffLine, format_diff
from .options import CompareOptions

_log = logging.getLogger(__name__)

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error

SECTION_UNCHANGED = "Unchanged"
SECTION_ADDED = "Added"
SECTION_REMOVED = "Removed"
SECTION_MODIFIED = "Modified"

#: Report section order.
SECTIONS = (SECTION_UNCHANGED, SECTION_ADDED, SECTION_REMOVED, SECTION_MODIFIED)

DEFAULT_TITLE = "Tree comparison report"

#: Shortest Markdown code fence.
_MIN_FENCE = 3


def _code_fence(text: str) -> str:
    """
    Return a backtick fence longer than any backtick run in ``text``.
    """
    longest = max((len(run) for run in re.findall(r"`+", text)), default=0)
    return "`" * max(_MIN_FENCE, longest + 1)


class ReportSummary(NamedTuple):
    """
    Change counts for the trailing report summary.
    """

    added: int
    removed: int
    modified: int
    old_total: int
    new_total: int


class CompareReport:
    """
    An immutable comparison report.
    """

    def __init__(
        self,
        title: str,
        sections: Tuple[Tuple[str, Tuple[str, ...]], ...],
        diffs: Dict[str, Tuple[DiffLine, ...]],
        warnings: Tuple[CompareWarning, ...],
        summary: Optional[ReportSummary],
    ):
        self.title = title
        self.sections = sections
        self.diffs = MappingProxyType(dict(diffs))
        self.warnings = warnings
        self.summary = summary

    def section(self, name: str) -> Optional[Tuple[str, ...]]:
        """
        Return the paths listed in section ``name``, or ``None`` if the
        report has no such section.
        """
        for section_name, paths in self.sections:
            if section_name == name:
                return paths
        return None

    def text(self) -> str:
        """
        Render this report as Markdown text.

        :returns: The report text.
        :rtype: ``str``
        """
        out = [f"# {self.title}", ""]
        for name, paths in self.sections:
            out.append(f"## {name}")
            out.append("")
            if not paths:
                out.append("_None_")
                out.append("")
                continue
            for path in paths:
                out.append(f"- {path}")
                if name == SECTION_MODIFIED and path in self.diffs:
                    diff_text = format_diff(self.diffs[path])
                    fence = _code_fence(diff_text)
                    out.append("")
                    out.append(f"{fence}diff")
                    out.append(diff_text)
                    out.append(fence)
                    out.append("")
            if out[-1] != "":
                out.append("")

        if self.warnings:
            out.append("## Warnings")
            out.append("")
            out.extend(f"- {warning}" for warning in self.warnings)
            out.append("")

        if self.summary is not None:
            out.append("## Summary")
            out.append("")
            out.append(f"- Added: {self.summary.added}")
            out.append(f"- Removed: {self.summary.removed}")
            out.append(f"- Modified: {self.summary.modified}")
            out.append(f"- Total compared (old): {self.summary.old_total}")
            out.append(f"- Total compared (new): {self.summary.new_total}")
            out.append("")

        return "\n".join(out)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert this report into a dictionary representation suitable for
        encoding as JSON.

        :returns: A dictionary mapping report keys to values.
        :rtype: ``Dict[str, Any]``
        """
        sections = {}
        for name, paths in self.sections:
            sections[name.lower()] = list(paths)
        return {
            "title": self.title,
            "sections": sections,
            "diffs": {
                path: [line.to_dict() for line in script]
                for path, script in self.diffs.items()
            },
            "warnings": [warning.to_dict() for warning in self.warnings],
            "summary": self.summary._asdict() if self.summary else None,
        }

    def json(self, pretty: bool = False) -> str:
        """
        Render this report as JSON.

        :param pretty: Indent JSON to be human readable.
        :type pretty: ``bool``
        :returns: A JSON string.
        :rtype: ``str``
        """
        return json.dumps(self.to_dict(), indent=4 if pretty else None)

    def write(self, path: str, output_format: str = "text", pretty: bool = False):
        """
        Write this report to the file at ``path``.

        :param path: The output file path.
        :type path: ``str``
        :param output_format: "text" or "json".
        :type output_format: ``str``
        :param pretty: Indent JSON output.
        :type pretty: ``bool``
        :raises TreeCmpError: If the report cannot be written.
        """
        content = self.json(pretty=pretty) if output_format == "json" else self.text()
        try:
            with open(path, "w", encoding="utf8") as f:
                f.write(content)
                if not content.endswith("\n"):
                    f.write("\n")
        except OSError as err:
            raise TreeCmpError(f"Could not write report to {path}: {err}") from err
        _log_info("Wrote %s report to %s", output_format, path)


class ReportBuilder:
    """
    Accumulate report content and build a ``CompareReport``.
    """

    def __init__(
        self,
        include_unchanged: bool = False,
        include_diffs: bool = True,
        title: str = DEFAULT_TITLE,
    ):
        """
        Initialise a new ``ReportBuilder``.

        :param include_unchanged: Keep the "Unchanged" section if added.
        :type include_unchanged: ``bool``
        :param include_diffs: Keep diffs added with ``add_diff()``.
        :type include_diffs: ``bool``
        :param title: The report title.
        :type title: ``str``
        """
        self.include_unchanged = include_unchanged
        self.include_diffs = include_diffs
        self.title = title
        self._sections: Dict[str, Tuple[str, ...]] = {}
        self._diffs: Dict[str, Tuple[DiffLine, ...]] = {}
        self._warnings: List[CompareWarning] = []
        self._summary: Optional[ReportSummary] = None

    def add_section(self, name: str, paths: Iterable[str]) -> "ReportBuilder":
        """
        Add a section listing ``paths``. Paths are sorted on insertion.

        :param name: One of the ``SECTION_*`` names.
        :type name: ``str``
        :param paths: The paths to list.
        :type paths: ``Iterable[str]``
        :returns: This builder.
        :rtype: ``ReportBuilder``
        """
        if name not in SECTIONS:
            raise ValueError(f"Unknown report section: {name}")
        if name == SECTION_UNCHANGED and not self.include_unchanged:
            return self
        self._sections[name] = tuple(sorted(paths))
        return self

    def add_diff(self, path: str, script: Iterable[DiffLine]) -> "ReportBuilder":
        """
        Attach a diff to a modified ``path``.

        :param path: The modified path.
        :type path: ``str``
        :param script: The edit script to render.
        :type script: ``Iterable[DiffLine]``
        :returns: This builder.
        :rtype: ``ReportBuilder``
        """
        if self.include_diffs:
            self._diffs[path] = tuple(script)
        return self

    def add_warning(self, warning: CompareWarning) -> "ReportBuilder":
        """
        Append a warning to the report.

        :param warning: The warning to add.
        :type warning: ``CompareWarning``
        :returns: This builder.
        :rtype: ``ReportBuilder``
        """
        self._warnings.append(warning)
        return self

    def set_summary(
        self, added: int, removed: int, modified: int, old_total: int, new_total: int
    ) -> "ReportBuilder":
        """
        Set the counts shown in the trailing summary.

        :returns: This builder.
        :rtype: ``ReportBuilder``
        """
        self._summary = ReportSummary(added, removed, modified, old_total, new_total)
        return self

    def build(self) -> CompareReport:
        """
        Build the ``CompareReport``. Sections appear in the standard order
        regardless of the order they were added in.

        :returns: A new immutable report.
        :rtype: ``CompareReport``
        """
        sections = tuple(
            (name, self._sections[name]) for name in SECTIONS if name in self._sections
        )
        return CompareReport(
            self.title,
            sections,
            self._diffs,
            tuple(self._warnings),
            self._summary,
        )


def build_report(
    results: CompareResults,
    options: Optional[CompareOptions] = None,
    title: str = DEFAULT_TITLE,
) -> CompareReport:
    """
    Build a ``CompareReport`` from comparison results.

    :param results: The comparison results.
    :type results: ``CompareResults``
    :param options: Report options (defaults to ``results.options``).
    :type options: ``Optional[CompareOptions]``
    :param title: The report title.
    :type title: ``str``
    :returns: The comparison report.
    :rtype: ``CompareReport``
    """
    options = options or results.options
    builder = ReportBuilder(
        include_unchanged=options.include_unchanged,
        include_diffs=options.include_content_diffs,
        title=title,
    )
    builder.add_section(SECTION_UNCHANGED, results.unchanged)
    builder.add_section(SECTION_ADDED, results.added)
    builder.add_section(SECTION_REMOVED, results.removed)
    builder.add_section(SECTION_MODIFIED, results.modified)
    for path in results.modified:
        script = results.diff_for(path)
        if script:
            builder.add_diff(path, script)
    for warning in results.warnings:
        builder.add_warning(warning)
    builder.set_summary(
        len(results.added),
        len(results.removed),
        len(results.modified),
        results.old_count,
        results.new_count,
    )
    return builder.build()


__all__ = [
    "CompareReport",
    "ReportBuilder",
    "ReportSummary",
    "build_report",
    "SECTION_UNCHANGED",
    "SECTION_ADDED",
    "SECTION_REMOVED",
    "SECTION_MODIFIED",
]
