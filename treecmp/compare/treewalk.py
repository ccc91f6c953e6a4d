# Copyright Red Hat
#
# treecmp/compare/treewalk.py - Tree comparison tree scanner
#
# This file is part of the treecmp project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Tree scanning: build a content fingerprint ``Snapshot`` of a directory tree.
"""
from typing import Dict, Iterable, Iterator, List, Optional, Tuple
from concurrent.futures import ThreadPoolExecutor, as_completed
from collections.abc import Mapping
from hashlib import md5, sha1, sha256, sha512
from types import MappingProxyType
from fnmatch import fnmatch
from datetime import datetime
import logging
import stat
import os

from treecmp import UnreadableTreeError, TREECMP_SUBSYSTEM_COMPARE
from treecmp.progress import ProgressFactory, TermControl

from .options import CompareOptions

_log = logging.getLogger(__name__)

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error


def _log_debug_compare(msg, *args, **kwargs):
    """A wrapper for compare subsystem debug logs."""
    _log.debug(msg, *args, extra={"subsystem": TREECMP_SUBSYSTEM_COMPARE}, **kwargs)


_HASH_TYPES = {
    "md5": md5,
    "sha1": sha1,
    "sha256": sha256,
    "sha512": sha512,
}

#: Read size for content hashing.
_HASH_CHUNK_SIZE = 65536


def normalize_path(path: str, root: str) -> str:
    """
    Return ``path`` relative to ``root``, with leading separators removed and
    platform separators converted to ``/``.

    :param path: A path beneath ``root``.
    :type path: ``str``
    :param root: The tree root.
    :type root: ``str``
    :returns: The normalised relative path.
    :rtype: ``str``
    """
    rel = os.path.relpath(path, root)
    if os.sep != "/":
        rel = rel.replace(os.sep, "/")
    if os.altsep:
        rel = rel.replace(os.altsep, "/")
    return rel.lstrip("/")


class FileRecord:
    """
    Content fingerprint record for one regular file in a tree.
    """

    __slots__ = ("path", "content_hash", "full_path", "size")

    def __init__(self, path: str, content_hash: str, full_path: str, size: int = 0):
        """
        Initialise a new ``FileRecord``.

        :param path: The normalised relative path (the snapshot key).
        :type path: ``str``
        :param content_hash: Hex digest of the full file content.
        :type content_hash: ``str``
        :param full_path: The absolute location of the file.
        :type full_path: ``str``
        :param size: The file size in bytes.
        :type size: ``int``
        """
        self.path = path
        self.content_hash = content_hash
        self.full_path = full_path
        self.size = size

    def __eq__(self, other):
        if not isinstance(other, FileRecord):
            return NotImplemented
        return (self.path, self.content_hash, self.full_path, self.size) == (
            other.path,
            other.content_hash,
            other.full_path,
            other.size,
        )

    def __hash__(self):
        return hash((self.path, self.content_hash, self.full_path))

    def __repr__(self):
        return (
            f"FileRecord({self.path!r}, {self.content_hash!r}, "
            f"{self.full_path!r}, size={self.size})"
        )

    def __str__(self):
        return f"{self.path} ({self.content_hash}, {self.size} bytes)"

    def to_dict(self) -> Dict[str, object]:
        """
        Return a dictionary representation of this ``FileRecord``.

        :returns: A dictionary of the record's fields.
        :rtype: ``Dict[str, object]``
        """
        return {
            "path": self.path,
            "content_hash": self.content_hash,
            "full_path": self.full_path,
            "size": self.size,
        }


class Snapshot(Mapping):
    """
    An immutable mapping of relative path to ``FileRecord`` for one tree.
    """

    def __init__(self, root: str, records: Iterable[FileRecord] = ()):
        """
        Initialise a new ``Snapshot``.

        :param root: The tree root this snapshot was built from.
        :type root: ``str``
        :param records: The file records to index.
        :type records: ``Iterable[FileRecord]``
        :raises ValueError: If two records share a relative path.
        """
        index = {}
        for record in records:
            if record.path in index:
                raise ValueError(f"Duplicate path in snapshot of {root}: {record.path}")
            index[record.path] = record
        self.root = root
        self._records = MappingProxyType(index)

    def __getitem__(self, key: str) -> FileRecord:
        return self._records[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __repr__(self):
        return f"Snapshot({self.root!r}, {len(self)} files)"


class TreeWalker:
    """
    Tree walker that fingerprints every regular file beneath a root.
    """

    def __init__(self, options: CompareOptions, hash_algorithm: str = "md5"):
        """
        Initialise a new ``TreeWalker`` object.

        :param options: Options to control this ``TreeWalker`` instance.
        :type options: ``CompareOptions``
        :param hash_algorithm: The name of the content hash algorithm.
        :type hash_algorithm: ``str``
        :raises ValueError: If ``hash_algorithm`` is not supported.
        """
        if hash_algorithm not in _HASH_TYPES:
            raise ValueError(f"Unknown hash algorithm: {hash_algorithm}")

        self.options: CompareOptions = options
        self.hash_algorithm: str = hash_algorithm
        self.hasher = _HASH_TYPES[hash_algorithm]
        self.file_patterns: Tuple[str, ...] = options.file_patterns or ()
        self.exclude_patterns: Tuple[str, ...] = options.exclude_patterns or ()

    def _selected(self, rel_path: str) -> bool:
        if any(fnmatch(rel_path, pat) for pat in self.exclude_patterns):
            return False
        if self.file_patterns:
            return any(fnmatch(rel_path, pat) for pat in self.file_patterns)
        return True

    def _find_files(self, root: str) -> List[Tuple[str, str]]:
        """
        Return ``(relative path, absolute path)`` pairs for each selected
        regular file beneath ``root``.
        """

        def _onerror(err: OSError):
            raise UnreadableTreeError(err.filename or root, err.strerror or str(err))

        found = []
        excluded = 0
        for dirpath, _dirs, files in os.walk(root, onerror=_onerror):
            for name in files:
                full_path = os.path.join(dirpath, name)
                rel_path = normalize_path(full_path, root)
                if not self._selected(rel_path):
                    excluded += 1
                    continue
                try:
                    path_stat = os.stat(full_path)
                except FileNotFoundError:
                    if os.path.islink(full_path):
                        _log_debug_compare("Skipping dangling symbolic link '%s'", full_path)
                        continue
                    raise UnreadableTreeError(full_path, "file vanished during scan")
                except OSError as err:
                    raise UnreadableTreeError(full_path, err.strerror or str(err)) from err
                if not stat.S_ISREG(path_stat.st_mode):
                    _log_debug_compare("Skipping non-regular file '%s'", full_path)
                    continue
                found.append((rel_path, full_path))
        _log_debug_compare("Found %d files beneath %s (excluded %d)", len(found), root, excluded)
        return found

    def _fingerprint(self, rel_path: str, full_path: str) -> FileRecord:
        try:
            size = os.stat(full_path).st_size
            content_hash = self._calculate_content_hash(full_path)
        except OSError as err:
            raise UnreadableTreeError(full_path, err.strerror or str(err)) from err
        return FileRecord(rel_path, content_hash, os.path.abspath(full_path), size)

    def walk_tree(
        self,
        root: str,
        quiet: Optional[bool] = None,
        term_control: Optional[TermControl] = None,
    ) -> Snapshot:
        """
        Walk the tree beneath ``root`` and return a ``Snapshot`` of its
        regular files.

        File content is hashed on a bounded thread pool; the resulting
        records are merged into the snapshot by the calling thread as each
        hash completes.

        :param root: The directory to scan.
        :type root: ``str``
        :param quiet: Suppress progress output (defaults to
                      ``options.quiet``).
        :type quiet: ``Optional[bool]``
        :param term_control: Optional pre-initialised terminal control object.
        :type term_control: ``Optional[TermControl]``
        :returns: The fingerprint snapshot of ``root``.
        :rtype: ``Snapshot``
        :raises UnreadableTreeError: If ``root`` or any entry beneath it
                                     cannot be listed, stat'ed or read.
        """
        if not os.path.isdir(root):
            reason = "not a directory" if os.path.exists(root) else "no such directory"
            raise UnreadableTreeError(root, reason)

        quiet = self.options.quiet if quiet is None else quiet

        _log_info("Scanning %s", root)
        files = self._find_files(root)
        total = len(files)
        if not total:
            _log_debug_compare("No files to hash beneath %s", root)
            return Snapshot(root)

        progress = ProgressFactory.get_progress(
            f"Hashing {root}",
            quiet=quiet,
            term_control=term_control,
        )

        records = []
        start_time = datetime.now()
        progress.start(total)
        try:
            with ThreadPoolExecutor(max_workers=self.options.hash_workers) as executor:
                futures = {
                    executor.submit(self._fingerprint, rel_path, full_path): rel_path
                    for rel_path, full_path in files
                }
                try:
                    for done, future in enumerate(as_completed(futures), start=1):
                        records.append(future.result())
                        progress.progress(done, f"Hashed {futures[future]}")
                except UnreadableTreeError:
                    for pending in futures:
                        pending.cancel()
                    raise
        except (KeyboardInterrupt, SystemExit):
            progress.cancel("Quit!")
            raise
        except UnreadableTreeError:
            progress.cancel()
            raise

        end_time = datetime.now()
        progress.end(f"Hashed {total} files in {end_time - start_time}")
        return Snapshot(root, records)

    def _calculate_content_hash(self, file_path: str) -> str:
        """
        Calculate the content hash of a regular file.

        :param file_path: The path to the file to hash.
        :type file_path: ``str``
        :returns: The hex digest of the file content using the configured
                  hash algorithm.
        :rtype: ``str``
        """
        hasher = self.hasher(usedforsecurity=False)
        with open(file_path, "rb") as f:
            for chunk in iter(lambda: f.read(_HASH_CHUNK_SIZE), b""):
                hasher.update(chunk)
        return hasher.hexdigest()


__all__ = [
    "FileRecord",
    "Snapshot",
    "TreeWalker",
    "normalize_path",
]
