# Copyright Red Hat
#
# treecmp/compare/filekinds.py - Tree comparison file kinds
#
# This file is part of the treecmp project.
#
# SPDX-License-Identifier: Apache-2.0
"""
File kind categories and the extension table used to select a comparison
strategy for each path.
"""
from typing import Dict, Iterable, Mapping, Optional, Tuple
from types import MappingProxyType
from enum import Enum
import logging
import posixpath
import magic

from treecmp import TreeCmpArgumentError, TREECMP_SUBSYSTEM_COMPARE

_log = logging.getLogger(__name__)

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error


def _log_debug_compare(msg, *args, **kwargs):
    """A wrapper for compare subsystem debug logs."""
    _log.debug(msg, *args, extra={"subsystem": TREECMP_SUBSYSTEM_COMPARE}, **kwargs)


class FileKind(Enum):
    """
    File kind categories: each kind selects one comparison strategy.
    """

    IGNORED = "ignored"  # Rebuildable artifacts expected to vary
    TEXT = "text"  # Compared as decoded text
    COMPILED = "compiled"  # Compared through a disassembler
    UNCLASSIFIED = "unclassified"  # Fingerprint only


# Rebuildable debug symbols, caches and logs.
IGNORED_EXTENSIONS = (".pdb", ".cache", ".log", ".tmp")

# Scripts, markup and structured configuration formats.
TEXT_EXTENSIONS = (
    ".txt",
    ".config",
    ".xml",
    ".json",
    ".js",
    ".css",
    ".html",
    ".htm",
    ".cshtml",
    ".aspx",
    ".ascx",
    ".master",
    ".asax",
    ".sitemap",
    ".resx",
    ".ps1",
    ".psm1",
    ".bat",
    ".cmd",
    ".md",
    ".yml",
    ".yaml",
    ".ini",
    ".csv",
    ".sql",
    ".sh",
)

# Executable and library modules.
COMPILED_EXTENSIONS = (".dll", ".exe")

#: MIME types reported by libmagic for compiled modules.
COMPILED_MIME_TYPES = (
    "application/x-dosexec",
    "application/vnd.microsoft.portable-executable",
    "application/x-msdownload",
)


def _default_extension_map() -> Dict[str, FileKind]:
    ext_map = {}
    for kind, extensions in (
        (FileKind.IGNORED, IGNORED_EXTENSIONS),
        (FileKind.TEXT, TEXT_EXTENSIONS),
        (FileKind.COMPILED, COMPILED_EXTENSIONS),
    ):
        ext_map.update({ext: kind for ext in extensions})
    return ext_map


def parse_kind(name: str) -> FileKind:
    """
    Convert a kind name (for example ``"text"``) into a ``FileKind``.

    :param name: The case-insensitive kind name.
    :type name: ``str``
    :returns: The corresponding ``FileKind``.
    :rtype: ``FileKind``
    :raises TreeCmpArgumentError: If ``name`` is not a known kind.
    """
    try:
        return FileKind(name.lower())
    except ValueError as err:
        valid = ", ".join(kind.value for kind in FileKind)
        raise TreeCmpArgumentError(
            f"Unknown file kind '{name}' (expected one of: {valid})"
        ) from err


class KindTable:
    """
    An immutable mapping from file name suffix to ``FileKind``.

    Suffix matching is case-insensitive. Paths whose suffix is not in the
    table are ``FileKind.UNCLASSIFIED`` unless libmagic detection is
    enabled, in which case the file content is probed.
    """

    def __init__(
        self,
        extensions: Optional[Mapping[str, FileKind]] = None,
        use_magic: bool = False,
    ):
        """
        Initialise a new ``KindTable``.

        :param extensions: A mapping of ``".ext"`` to ``FileKind``, or
                           ``None`` to use the default table.
        :param use_magic: Probe unclassified files with libmagic.
        """
        if extensions is None:
            extensions = _default_extension_map()
        self._extensions = MappingProxyType(
            {ext.lower(): kind for ext, kind in extensions.items()}
        )
        self.use_magic = use_magic

    @property
    def extensions(self) -> Mapping[str, FileKind]:
        """The read-only extension to ``FileKind`` mapping."""
        return self._extensions

    def with_overrides(self, overrides: Iterable[Tuple[str, str]]) -> "KindTable":
        """
        Return a new ``KindTable`` with ``overrides`` applied.

        :param overrides: An iterable of ``(".ext", "kind")`` pairs.
        :type overrides: ``Iterable[Tuple[str, str]]``
        :returns: A new table: this table is unchanged.
        :rtype: ``KindTable``
        :raises TreeCmpArgumentError: If an override names an unknown kind.
        """
        extensions = dict(self._extensions)
        for ext, kind_name in overrides:
            ext = ext.lower()
            if not ext.startswith("."):
                ext = "." + ext
            extensions[ext] = parse_kind(kind_name)
            _log_debug_compare("Kind override: %s -> %s", ext, extensions[ext].value)
        return KindTable(extensions, use_magic=self.use_magic)

    def kind_for_path(self, path: str, full_path: Optional[str] = None) -> FileKind:
        """
        Return the ``FileKind`` for the relative path ``path``.

        :param path: The normalised relative path.
        :type path: ``str``
        :param full_path: The absolute location of a file to probe with
                          libmagic if the suffix is unclassified.
        :type full_path: ``Optional[str]``
        :returns: The file kind for ``path``.
        :rtype: ``FileKind``
        """
        _, ext = posixpath.splitext(path)
        kind = self._extensions.get(ext.lower())
        if kind is not None:
            return kind
        if self.use_magic and full_path is not None:
            return detect_kind_with_magic(full_path)
        return FileKind.UNCLASSIFIED

    def __len__(self):
        return len(self._extensions)

    def __repr__(self):
        return f"KindTable({dict(self._extensions)!r}, use_magic={self.use_magic})"


def detect_kind_with_magic(full_path: str) -> FileKind:
    """
    Classify ``full_path`` from its content using libmagic: executable
    modules are ``COMPILED`` and ``text/*`` files are ``TEXT``.

    :param full_path: The file to inspect.
    :type full_path: ``str``
    :returns: The detected kind, or ``FileKind.UNCLASSIFIED`` if detection
              fails or the type is not recognised.
    :rtype: ``FileKind``
    """
    # Some builds of file-magic do not provide magic.error
    if hasattr(magic, "error"):
        magic_errors = (magic.error, OSError, ValueError)
    else:
        magic_errors = (OSError, ValueError)

    try:
        mime_type = magic.detect_from_filename(full_path).mime_type
    except magic_errors as err:
        _log_warn("Error detecting file type for %s: %s", full_path, err)
        return FileKind.UNCLASSIFIED

    _log_debug_compare("Detected MIME type %s for %s", mime_type, full_path)
    if mime_type in COMPILED_MIME_TYPES:
        return FileKind.COMPILED
    if mime_type.startswith("text/"):
        return FileKind.TEXT
    return FileKind.UNCLASSIFIED


def kind_table_from_options(options) -> KindTable:
    """
    Build the ``KindTable`` described by a ``CompareOptions`` instance.

    :param options: The comparison options.
    :type options: ``CompareOptions``
    :returns: The default table with ``options.kind_overrides`` applied.
    :rtype: ``KindTable``
    """
    table = KindTable(use_magic=options.use_magic_file_type)
    if options.kind_overrides:
        table = table.with_overrides(options.kind_overrides)
    return table


__all__ = [
    "FileKind",
    "KindTable",
    "IGNORED_EXTENSIONS",
    "TEXT_EXTENSIONS",
    "COMPILED_EXTENSIONS",
    "detect_kind_with_magic",
    "kind_table_from_options",
    "parse_kind",
]
