# Copyright Red Hat
#
# treecmp/compare/differ.py - Tree comparison top-level interface
#
# This file is part of the treecmp project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Top-level tree comparison interface.
"""
from typing import Optional
import logging
import os

from treecmp import UnreadableTreeError
from treecmp.progress import TermControl

from .disasm import Disassembler
from .engine import CompareEngine, CompareResults
from .options import CompareOptions
from .treewalk import TreeWalker

_log = logging.getLogger(__name__)

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error


def check_root(root: str):
    """
    Check that ``root`` exists, is a directory and can be listed.

    :param root: The comparison root to check.
    :type root: ``str``
    :raises UnreadableTreeError: If ``root`` cannot be compared.
    """
    if not os.path.exists(root):
        raise UnreadableTreeError(root, "no such directory")
    if not os.path.isdir(root):
        raise UnreadableTreeError(root, "not a directory")
    if not os.access(root, os.R_OK | os.X_OK):
        raise UnreadableTreeError(root, "permission denied")


class TreeDiffer:
    """
    Top-level interface for comparing two directory trees.
    """

    def __init__(
        self,
        options: Optional[CompareOptions] = None,
        disassembler: Optional[Disassembler] = None,
        color: str = "auto",
        term_control: Optional[TermControl] = None,
    ):
        """
        Initialise a new ``TreeDiffer``.

        :param options: Options to control this ``TreeDiffer`` instance.
        :type options: ``Optional[CompareOptions]``
        :param disassembler: The disassembler for compiled modules, or
                             ``None`` to build one from ``options``.
        :type disassembler: ``Optional[Disassembler]``
        :param color: A string to control color progress rendering: "auto",
                      "always", or "never".
        :type color: ``str``
        :param term_control: An optional ``TermControl`` instance. The
                             supplied instance overrides any ``color``
                             argument if set.
        :type term_control: ``Optional[TermControl]``
        """
        options = options or CompareOptions()
        self.options: CompareOptions = options
        self.tree_walker: TreeWalker = TreeWalker(options, options.hash_algorithm)
        self.engine: CompareEngine = CompareEngine(options, disassembler)
        self._term_control: Optional[TermControl] = term_control or TermControl(
            color=color
        )

    def compare_roots(self, old_root: str, new_root: str) -> CompareResults:
        """
        Compare the trees at ``old_root`` and ``new_root``.

        :param old_root: The old (left hand) tree.
        :type old_root: ``str``
        :param new_root: The new (right hand) tree.
        :type new_root: ``str``
        :returns: The comparison results.
        :rtype: ``CompareResults``
        :raises UnreadableTreeError: If either tree cannot be read.
        """
        check_root(old_root)
        check_root(new_root)

        _log_debug("Comparing %s with %s using options:\n%s", old_root, new_root, self.options)

        old = self.tree_walker.walk_tree(old_root, term_control=self._term_control)
        new = self.tree_walker.walk_tree(new_root, term_control=self._term_control)

        return self.engine.compute(old, new, term_control=self._term_control)


__all__ = [
    "TreeDiffer",
    "check_root",
]
