# Copyright Red Hat
#
# treecmp/compare/options.py - Tree comparison options
#
# This file is part of the treecmp project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Tree comparison options.
"""
from dataclasses import dataclass, field, fields
from typing import Optional, Tuple, Union
from argparse import Namespace
import logging

from treecmp import TreeCmpArgumentError

_log = logging.getLogger(__name__)

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error

#: Default external disassembler command line.
DEFAULT_DISASSEMBLER = ("ildasm", "/text", "/nobar")

#: Default prefixes of disassembly lines that vary between identical builds.
DEFAULT_VOLATILE_PREFIXES = ("// MVID:", "// Image base:")


@dataclass(frozen=True)
class CompareOptions:
    """
    Tree comparison options.
    """

    #: List unchanged paths in comparison reports
    include_unchanged: bool = False
    #: Render line diffs for modified text and compiled module entries
    include_content_diffs: bool = True
    #: ``(".ext", "kind")`` pairs overriding the default extension table
    kind_overrides: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)
    #: Use libmagic to classify files with unknown extensions
    use_magic_file_type: bool = False
    #: Content fingerprint digest algorithm
    hash_algorithm: str = "md5"
    #: Hashing thread pool size (``None`` for the executor default)
    hash_workers: Optional[int] = None
    #: Comparison thread pool size
    compare_workers: int = 4
    #: Maximum concurrent external disassembler processes
    max_disassemblers: int = 2
    #: External disassembler command line (the file path is appended)
    disassembler: Tuple[str, ...] = DEFAULT_DISASSEMBLER
    #: Timeout in seconds for each disassembler invocation
    disassembler_timeout: int = 60
    #: Disassembly line prefixes dropped before comparison
    volatile_prefixes: Tuple[str, ...] = DEFAULT_VOLATILE_PREFIXES
    #: Maximum lines per side for rendering a diff (0 for no limit)
    max_diff_lines: int = 10000
    #: Fold CRLF and CR line endings to LF before comparing text
    normalize_line_endings: bool = False
    #: Encoding used to read text files
    text_encoding: str = "utf-8"
    #: File patterns to include (glob notation)
    file_patterns: Tuple[str, ...] = field(default_factory=tuple)
    #: File patterns to exclude (glob notation)
    exclude_patterns: Tuple[str, ...] = field(default_factory=tuple)
    #: Do not output progress or status updates
    quiet: bool = False

    def __post_init__(self):
        if self.hash_workers is not None and self.hash_workers < 1:
            raise TreeCmpArgumentError(
                f"hash_workers must be positive: {self.hash_workers}"
            )
        if self.compare_workers < 1:
            raise TreeCmpArgumentError(
                f"compare_workers must be positive: {self.compare_workers}"
            )
        if self.max_disassemblers < 1:
            raise TreeCmpArgumentError(
                f"max_disassemblers must be positive: {self.max_disassemblers}"
            )
        if self.disassembler_timeout <= 0:
            raise TreeCmpArgumentError(
                f"disassembler_timeout must be positive: {self.disassembler_timeout}"
            )
        if self.max_diff_lines < 0:
            raise TreeCmpArgumentError(
                f"max_diff_lines cannot be negative: {self.max_diff_lines}"
            )

    def __str__(self):
        """
        Return a human readable string representation of this
        ``CompareOptions`` instance.

        :returns: A human readable string.
        :rtype: ``str``
        """

        def _join(val: tuple) -> str:
            return " ".join(
                "=".join(item) if isinstance(item, tuple) else item for item in val
            )

        items = [
            (key, _join(val) if isinstance(val, tuple) else val)
            for key, val in self.__dict__.items()
        ]
        return "\n".join(f"{key}={val}" for key, val in items)

    @classmethod
    def from_cmd_args(cls, cmd_args: Namespace) -> "CompareOptions":
        """
        Initialise CompareOptions from command line arguments.

        Arguments that are absent from ``cmd_args``, or that are ``None``,
        keep their default values. List arguments are converted to tuples
        and ``--kind EXT=KIND`` strings to ``(ext, kind)`` pairs.

        :param cmd_args: The command line selection arguments.
        :type cmd_args: ``Namespace``
        :returns: A new ``CompareOptions`` instance
        :rtype: ``CompareOptions``
        :raises TreeCmpArgumentError: If a kind override is malformed.
        """

        def get_value(name: str) -> Union[bool, int, str, Tuple]:
            attr = getattr(cmd_args, name)
            if name == "kind_overrides":
                return tuple(_parse_kind_override(override) for override in attr)
            if name == "disassembler" and isinstance(attr, str):
                return tuple(attr.split())
            if isinstance(attr, list):
                return tuple(attr)
            return attr

        field_names = {f.name for f in fields(cls)}
        kwargs = {
            name: get_value(name)
            for name in field_names
            if getattr(cmd_args, name, None) is not None
        }
        options = cls(**kwargs)
        _log_debug("Initialised CompareOptions from arguments: %s", repr(options))
        return options


def _parse_kind_override(override: Union[str, Tuple[str, str]]) -> Tuple[str, str]:
    """
    Split an ``EXT=KIND`` override string into an ``(ext, kind)`` pair.

    :param override: The override string or an existing pair.
    :returns: A normalised ``(".ext", "kind")`` tuple.
    :raises TreeCmpArgumentError: If ``override`` is not of the form EXT=KIND.
    """
    if isinstance(override, tuple):
        ext, kind = override
    else:
        ext, sep, kind = override.partition("=")
        if not sep or not ext or not kind:
            raise TreeCmpArgumentError(
                f"Invalid kind override (expected EXT=KIND): {override}"
            )
    ext = ext.strip().lower()
    if not ext.startswith("."):
        ext = "." + ext
    return ext, kind.strip().lower()


__all__ = [
    "CompareOptions",
    "DEFAULT_DISASSEMBLER",
    "DEFAULT_VOLATILE_PREFIXES",
]
