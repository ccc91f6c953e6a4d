# Copyright Red Hat
#
# treecmp/compare/lcsdiff.py - Tree comparison LCS line diff
#
# This file is part of the treecmp project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Longest common subsequence line diff.

``lcs_diff()`` builds the full ``(m + 1) x (n + 1)`` dynamic programming
table of common subsequence lengths and walks it back from ``(m, n)`` to
produce an edit script of context, insert and delete lines. Time and space
are both O(m * n) in the number of lines on each side: callers comparing
large inputs should bound the line counts before calling it (see
``CompareOptions.max_diff_lines``).
"""
from typing import Iterable, List, NamedTuple, Sequence, Tuple
from enum import Enum
import re


class DiffOp(Enum):
    """
    Edit script line operations.
    """

    CONTEXT = "context"
    INSERT = "insert"
    DELETE = "delete"


#: Unified diff style prefix for each operation.
DIFF_PREFIXES = {
    DiffOp.CONTEXT: " ",
    DiffOp.INSERT: "+",
    DiffOp.DELETE: "-",
}


class DiffLine(NamedTuple):
    """
    One line of an edit script: an operation and the line text without
    a line terminator.
    """

    op: DiffOp
    text: str

    def __str__(self):
        return DIFF_PREFIXES[self.op] + self.text

    def to_dict(self):
        """
        Return a dictionary representation of this ``DiffLine``.

        :returns: A dictionary with "op" and "text" keys.
        :rtype: ``Dict[str, str]``
        """
        return {"op": self.op.value, "text": self.text}


#: Line terminators recognised when splitting text into lines.
_LINE_BREAK_RE = re.compile(r"\r\n|\r|\n")


def split_lines(text: str) -> List[str]:
    """
    Split ``text`` into lines on CRLF, CR and LF only. Other characters
    that ``str.splitlines()`` treats as breaks (form feed, vertical tab,
    ``\\x85``, ``\\u2028``...) stay part of the line. A trailing terminator
    does not start an empty final line.

    :param text: The text to split.
    :type text: ``str``
    :returns: The lines without terminators.
    :rtype: ``List[str]``
    """
    if not text:
        return []
    lines = _LINE_BREAK_RE.split(text)
    if lines[-1] == "":
        lines.pop()
    return lines


def lcs_table(a: Sequence[str], b: Sequence[str]) -> List[List[int]]:
    """
    Build the longest common subsequence length table for ``a`` and ``b``.

    ``table[i][j]`` is the length of the longest common subsequence of
    ``a[:i]`` and ``b[:j]``.

    :param a: The old line sequence.
    :type a: ``Sequence[str]``
    :param b: The new line sequence.
    :type b: ``Sequence[str]``
    :returns: A table of ``len(a) + 1`` rows of ``len(b) + 1`` columns.
    :rtype: ``List[List[int]]``
    """
    n = len(b)
    table = [[0] * (n + 1)]
    for i, a_line in enumerate(a, start=1):
        prev = table[i - 1]
        row = [0] * (n + 1)
        for j, b_line in enumerate(b, start=1):
            if a_line == b_line:
                row[j] = prev[j - 1] + 1
            else:
                row[j] = prev[j] if prev[j] > row[j - 1] else row[j - 1]
        table.append(row)
    return table


def lcs_diff(a: Sequence[str], b: Sequence[str]) -> List[DiffLine]:
    """
    Compute a line edit script transforming ``a`` into ``b``.

    On a tie between inserting and deleting during the traceback the
    insert is taken first, so that, once reversed, deletions precede the
    insertions that replace them.

    :param a: The old line sequence.
    :type a: ``Sequence[str]``
    :param b: The new line sequence.
    :type b: ``Sequence[str]``
    :returns: The edit script in forward order.
    :rtype: ``List[DiffLine]``
    """
    table = lcs_table(a, b)
    script = []
    i, j = len(a), len(b)
    while i > 0 or j > 0:
        if i > 0 and j > 0 and a[i - 1] == b[j - 1]:
            script.append(DiffLine(DiffOp.CONTEXT, a[i - 1]))
            i -= 1
            j -= 1
        elif j > 0 and (i == 0 or table[i][j - 1] >= table[i - 1][j]):
            script.append(DiffLine(DiffOp.INSERT, b[j - 1]))
            j -= 1
        else:
            script.append(DiffLine(DiffOp.DELETE, a[i - 1]))
            i -= 1
    script.reverse()
    return script


def old_lines(script: Iterable[DiffLine]) -> List[str]:
    """Return the old sequence described by ``script``."""
    return [line.text for line in script if line.op != DiffOp.INSERT]


def new_lines(script: Iterable[DiffLine]) -> List[str]:
    """Return the new sequence described by ``script``."""
    return [line.text for line in script if line.op != DiffOp.DELETE]


def diff_stats(script: Iterable[DiffLine]) -> Tuple[int, int]:
    """
    Count the insertions and deletions in ``script``.

    :param script: An edit script.
    :type script: ``Iterable[DiffLine]``
    :returns: An ``(inserted, deleted)`` tuple.
    :rtype: ``Tuple[int, int]``
    """
    inserted = deleted = 0
    for line in script:
        if line.op == DiffOp.INSERT:
            inserted += 1
        elif line.op == DiffOp.DELETE:
            deleted += 1
    return inserted, deleted


def format_diff(script: Iterable[DiffLine]) -> str:
    """
    Render ``script`` as text with ``" "``, ``"+"`` and ``"-"`` prefixed
    lines.

    :param script: An edit script.
    :type script: ``Iterable[DiffLine]``
    :returns: The rendered diff, one line per script entry.
    :rtype: ``str``
    """
    return "\n".join(str(line) for line in script)


__all__ = [
    "DiffOp",
    "DiffLine",
    "DIFF_PREFIXES",
    "lcs_table",
    "lcs_diff",
    "old_lines",
    "new_lines",
    "diff_stats",
    "format_diff",
    "split_lines",
]
