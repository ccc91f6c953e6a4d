# Copyright Red Hat
#
# treecmp/compare/classify.py - Tree comparison change classifier
#
# This file is part of the treecmp project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Three-way reconciliation of two tree snapshots.
"""
from typing import Mapping, NamedTuple, Tuple

from .treewalk import FileRecord


class ClassificationResult(NamedTuple):
    """
    The partition of the union of two snapshots' paths.

    ``candidates`` are paths present on both sides whose fingerprints
    differ: they are neither modified nor unchanged until a comparator has
    examined them.
    """

    added: Tuple[str, ...]
    removed: Tuple[str, ...]
    unchanged: Tuple[str, ...]
    candidates: Tuple[str, ...]


def classify(
    old: Mapping[str, FileRecord], new: Mapping[str, FileRecord]
) -> ClassificationResult:
    """
    Partition the paths of ``old`` and ``new`` into added, removed,
    unchanged and candidate sets.

    Common paths with equal content fingerprints are unchanged without
    further examination. All four outputs are sorted.

    :param old: The snapshot of the old tree.
    :type old: ``Mapping[str, FileRecord]``
    :param new: The snapshot of the new tree.
    :type new: ``Mapping[str, FileRecord]``
    :returns: The classification of every path in either snapshot.
    :rtype: ``ClassificationResult``
    """
    old_keys = old.keys()
    new_keys = new.keys()

    common = old_keys & new_keys
    unchanged = [
        path for path in common if old[path].content_hash == new[path].content_hash
    ]
    candidates = common.difference(unchanged)

    return ClassificationResult(
        added=tuple(sorted(new_keys - old_keys)),
        removed=tuple(sorted(old_keys - new_keys)),
        unchanged=tuple(sorted(unchanged)),
        candidates=tuple(sorted(candidates)),
    )


__all__ = [
    "ClassificationResult",
    "classify",
]
