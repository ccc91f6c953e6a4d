# Copyright Red Hat
#
# treecmp/compare/disasm.py - Tree comparison disassembler adapter
#
# This file is part of the treecmp project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Disassembler capability used to compare compiled modules as text.
"""
from typing import List, Optional, Sequence, Tuple
from abc import ABC, abstractmethod
import subprocess
import threading
import logging
import shutil
import errno
import re
import os

from treecmp import (
    DisassemblyRefusedError,
    ToolUnavailableError,
    TREECMP_SUBSYSTEM_DISASM,
)

from .lcsdiff import split_lines
from .options import DEFAULT_DISASSEMBLER

_log = logging.getLogger(__name__)

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error


def _log_debug_disasm(msg, *args, **kwargs):
    """A wrapper for disasm subsystem debug logs."""
    _log.debug(msg, *args, extra={"subsystem": TREECMP_SUBSYSTEM_DISASM}, **kwargs)


#: Disassembler output that indicates the tool refused the input file, even
#: if it exited with status zero.
_REFUSAL_PATTERN = re.compile(
    r"access is denied|cannot disassemble|SuppressIldasmAttribute",
    re.IGNORECASE,
)


#: Errors from starting the tool that mean it cannot run at all.
_TOOL_ERRNOS = (errno.ENOENT, errno.EACCES, errno.EPERM, errno.ENOEXEC)


class Disassembler(ABC):
    """
    Abstract disassembler capability: convert a compiled module into an
    ordered sequence of text lines.
    """

    @abstractmethod
    def disassemble(self, path: str) -> List[str]:
        """
        Disassemble the compiled module at ``path``.

        :param path: The absolute location of the module.
        :type path: ``str``
        :returns: The disassembly as a list of lines without terminators.
        :rtype: ``List[str]``
        :raises ToolUnavailableError: If no disassembler can be run.
        :raises DisassemblyRefusedError: If the disassembler refuses or
                                         fails to process ``path``.
        """

    @property
    def name(self) -> str:
        """A short name for this disassembler used in messages."""
        return self.__class__.__name__


class NullDisassembler(Disassembler):
    """
    A disassembler for environments without one: every call raises
    ``ToolUnavailableError``.
    """

    def disassemble(self, path: str) -> List[str]:
        raise ToolUnavailableError("No disassembler is configured")


class ExternalDisassembler(Disassembler):
    """
    Disassemble modules by running an external command with the module
    path appended, for example ``ildasm /text /nobar <path>``.
    """

    def __init__(
        self,
        command: Sequence[str] = DEFAULT_DISASSEMBLER,
        timeout: int = 60,
        max_concurrent: int = 2,
    ):
        """
        Initialise a new ``ExternalDisassembler``.

        :param command: The command and leading arguments to run.
        :type command: ``Sequence[str]``
        :param timeout: Timeout in seconds for each invocation.
        :type timeout: ``int``
        :param max_concurrent: Maximum simultaneous tool processes.
        :type max_concurrent: ``int``
        """
        if not command:
            raise ValueError("Disassembler command cannot be empty")
        if max_concurrent < 1:
            raise ValueError(f"max_concurrent must be positive: {max_concurrent}")
        self.command: Tuple[str, ...] = tuple(command)
        self.timeout: int = timeout
        self._slots = threading.BoundedSemaphore(max_concurrent)
        self._probe_lock = threading.Lock()
        self._tool_path: Optional[str] = None
        self._available: Optional[bool] = None

    @property
    def name(self) -> str:
        return self.command[0]

    def _mark_unavailable(self, reason: str):
        with self._probe_lock:
            if self._available is not False:
                _log_debug_disasm("Marking %s unavailable: %s", self.name, reason)
            self._available = False

    def is_available(self) -> bool:
        """
        Return ``True`` if the disassembler executable can be found.

        The first call searches ``PATH`` with ``shutil.which()``; the result
        is cached for the lifetime of this object.

        :returns: ``True`` if the tool is available.
        :rtype: ``bool``
        """
        with self._probe_lock:
            if self._available is None:
                self._tool_path = shutil.which(self.command[0])
                self._available = self._tool_path is not None
                _log_debug_disasm(
                    "Probed for disassembler %s: %s",
                    self.command[0],
                    self._tool_path or "not found",
                )
            return self._available

    def disassemble(self, path: str) -> List[str]:
        if not self.is_available():
            raise ToolUnavailableError(f"Disassembler '{self.name}' is not installed")

        command = [self._tool_path] + list(self.command[1:]) + [path]
        env = dict(os.environ, LC_ALL="C", LANG="C")

        with self._slots:
            _log_debug_disasm("Running: %s", " ".join(command))
            try:
                result = subprocess.run(
                    command,
                    capture_output=True,
                    text=True,
                    errors="replace",
                    check=False,
                    timeout=self.timeout,
                    env=env,
                )
            except OSError as err:
                if err.errno not in _TOOL_ERRNOS:
                    raise DisassemblyRefusedError(
                        path, f"could not run {self.name}: {err}"
                    ) from err
                self._mark_unavailable(str(err))
                raise ToolUnavailableError(
                    f"Disassembler '{self.name}' could not be executed: {err}"
                ) from err
            except subprocess.TimeoutExpired as err:
                raise DisassemblyRefusedError(
                    path, f"timed out after {self.timeout} seconds"
                ) from err

        output = result.stdout + result.stderr
        if result.returncode != 0:
            reason = _first_line(result.stderr) or _first_line(result.stdout)
            raise DisassemblyRefusedError(
                path, f"exit status {result.returncode}: {reason or 'no output'}"
            )

        match = _REFUSAL_PATTERN.search(output)
        if match:
            raise DisassemblyRefusedError(path, _line_containing(output, match))

        lines = split_lines(result.stdout)
        _log_debug_disasm("Disassembled %s (%d lines)", path, len(lines))
        return lines


def _first_line(text: str) -> str:
    for line in split_lines(text):
        if line.strip():
            return line.strip()
    return ""


def _line_containing(text: str, match: "re.Match") -> str:
    start = text.rfind("\n", 0, match.start()) + 1
    end = text.find("\n", match.end())
    return text[start : end if end >= 0 else len(text)].strip()


def disassembler_from_options(options) -> Disassembler:
    """
    Construct the ``Disassembler`` described by a ``CompareOptions``.

    :param options: The comparison options.
    :type options: ``CompareOptions``
    :returns: An ``ExternalDisassembler``, or a ``NullDisassembler`` if no
              command is configured.
    :rtype: ``Disassembler``
    """
    if not options.disassembler:
        return NullDisassembler()
    return ExternalDisassembler(
        command=options.disassembler,
        timeout=options.disassembler_timeout,
        max_concurrent=options.max_disassemblers,
    )


__all__ = [
    "Disassembler",
    "ExternalDisassembler",
    "NullDisassembler",
    "disassembler_from_options",
]
