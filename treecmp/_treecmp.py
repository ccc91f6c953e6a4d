# Copyright Red Hat
#
# treecmp/_treecmp.py - Tree comparison global definitions
#
# This file is part of the treecmp project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Global definitions for the top-level treecmp package.
"""
from typing import Optional, TextIO, TYPE_CHECKING
import logging
import weakref
import sys

if TYPE_CHECKING:
    from .progress import ProgressBase

_log = logging.getLogger("treecmp")

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error

# Treecmp debugging subsystem mask
TREECMP_DEBUG_COMPARE = 1
TREECMP_DEBUG_DISASM = 2
TREECMP_DEBUG_COMMAND = 4
TREECMP_DEBUG_ALL = TREECMP_DEBUG_COMPARE | TREECMP_DEBUG_DISASM | TREECMP_DEBUG_COMMAND

# Treecmp debugging subsystem names
TREECMP_SUBSYSTEM_COMPARE = "treecmp.compare"
TREECMP_SUBSYSTEM_DISASM = "treecmp.disasm"
TREECMP_SUBSYSTEM_COMMAND = "treecmp.command"

_DEBUG_MASK_TO_SUBSYSTEM = {
    TREECMP_DEBUG_COMPARE: TREECMP_SUBSYSTEM_COMPARE,
    TREECMP_DEBUG_DISASM: TREECMP_SUBSYSTEM_DISASM,
    TREECMP_DEBUG_COMMAND: TREECMP_SUBSYSTEM_COMMAND,
}

_debug_subsystems = set()

# Registry of active progress instances: a WeakSet so that finished progress
# objects can still be garbage collected.
_active_progress: weakref.WeakSet = weakref.WeakSet()


class SubsystemFilter(logging.Filter):
    """
    Filters DEBUG records based on a set of enabled subsystem names.
    Non-DEBUG records or DEBUG records without a 'subsystem' attribute
    are always passed through.
    """

    def __init__(self, name=""):
        super().__init__(name)
        self.enabled_subsystems = set(_debug_subsystems)

    def filter(self, record):
        if record.levelno != logging.DEBUG:
            return True

        if not hasattr(record, "subsystem"):
            return True

        return record.subsystem in self.enabled_subsystems

    def set_debug_subsystems(self, subsystems):
        """Sets the collection of subsystems to allow."""
        self.enabled_subsystems = set(subsystems)


def get_debug_mask() -> int:
    """
    Return the current debug mask for the ``treecmp`` package.

    :returns: The current debug mask value
    :rtype: ``int``
    """
    enabled_subsystems = set(_debug_subsystems)
    treecmp_log = logging.getLogger("treecmp")

    for handler in treecmp_log.handlers:
        for f in handler.filters:
            if isinstance(f, SubsystemFilter):
                enabled_subsystems.update(f.enabled_subsystems)

    mask_map = {v: k for k, v in _DEBUG_MASK_TO_SUBSYSTEM.items()}
    mask = 0
    for subsystem_name in enabled_subsystems:
        mask |= mask_map.get(subsystem_name, 0)
    return mask


def set_debug_mask(mask: int):
    """
    Set the debug mask for the ``treecmp`` package.

    :param mask: the logical OR of the ``TREECMP_DEBUG_*`` values to log.
    :type mask: ``int``
    """
    # pylint: disable=global-statement
    global _debug_subsystems

    if mask < 0 or mask > TREECMP_DEBUG_ALL:
        raise ValueError(f"Invalid treecmp debug mask: {mask}")

    enabled_subsystems = [
        subsystem_name
        for flag, subsystem_name in _DEBUG_MASK_TO_SUBSYSTEM.items()
        if mask & flag
    ]

    treecmp_log = logging.getLogger("treecmp")
    for handler in treecmp_log.handlers:
        for f in handler.filters:
            if isinstance(f, SubsystemFilter):
                f.set_debug_subsystems(enabled_subsystems)

    _debug_subsystems = set(enabled_subsystems)


def register_progress(progress: "ProgressBase"):
    """Register a progress instance for log coordination."""
    _active_progress.add(progress)
    progress.registered = True


def unregister_progress(progress: "ProgressBase"):
    """Unregister a progress instance."""
    _active_progress.discard(progress)
    progress.registered = False


def notify_log_output(stream: TextIO):
    """
    Notify progress instances that log output occurred on stream.

    :param stream: The stream that received output.
    :type stream: ``TextIO``
    """
    if stream not in (sys.stdout, sys.stderr):
        return
    for progress in list(_active_progress):
        if hasattr(progress, "reset_position"):
            progress.reset_position()


class ProgressAwareHandler(logging.StreamHandler):
    """
    A logging handler that coordinates with active Progress instances.

    After emitting a log record, notifies any Progress instances writing
    to the same stream so they can avoid erasing the log message.
    """

    def __init__(self, stream: Optional[TextIO] = None, **kwargs):
        super().__init__(stream=stream or sys.stderr, **kwargs)

    def emit(self, record):
        try:
            msg = self.format(record)
            self.stream.write(msg + "\n")
            self.stream.flush()
            notify_log_output(self.stream)
        except Exception:  # pylint: disable=broad-exception-caught
            self.handleError(record)


#
# Treecmp exception types
#


class TreeCmpError(Exception):
    """
    Base class for tree comparison errors.
    """


class UnreadableTreeError(TreeCmpError):
    """
    A comparison root is missing, is not a directory, or an entry beneath it
    cannot be listed, stat'ed or read. Fatal to the comparison run.
    """

    def __init__(self, path: str, reason: str):
        """
        Initialise a new ``UnreadableTreeError`` exception.

        :param path: The root or entry that could not be read.
        :param reason: A description of the failure.
        """
        self.path, self.reason = path, reason
        super().__init__(f"Cannot read tree at {path}: {reason}")


class ToolUnavailableError(TreeCmpError):
    """
    The external disassembler is not installed or cannot be executed.
    """


class DisassemblyRefusedError(TreeCmpError):
    """
    The external disassembler is present but refused to process a file,
    failed, or timed out.
    """

    def __init__(self, path: str, reason: str):
        """
        Initialise a new ``DisassemblyRefusedError`` exception.

        :param path: The file the disassembler refused.
        :param reason: The tool's error text or a description of the failure.
        """
        self.path, self.reason = path, reason
        super().__init__(f"Cannot disassemble {path}: {reason}")


class ContentReadError(TreeCmpError):
    """
    A file vanished or became unreadable between scanning and comparison.
    """

    def __init__(self, path: str, reason: str):
        """
        Initialise a new ``ContentReadError`` exception.

        :param path: The file that could not be read.
        :param reason: A description of the failure.
        """
        self.path, self.reason = path, reason
        super().__init__(f"Cannot read {path}: {reason}")


class TreeCmpArgumentError(TreeCmpError):
    """
    An invalid argument was passed to a treecmp API call.
    """


__all__ = [
    "TREECMP_DEBUG_COMPARE",
    "TREECMP_DEBUG_DISASM",
    "TREECMP_DEBUG_COMMAND",
    "TREECMP_DEBUG_ALL",
    # Debug logging - subsystem name interface
    "SubsystemFilter",
    "TREECMP_SUBSYSTEM_COMPARE",
    "TREECMP_SUBSYSTEM_DISASM",
    "TREECMP_SUBSYSTEM_COMMAND",
    "set_debug_mask",
    "get_debug_mask",
    # Progress log callbacks
    "register_progress",
    "unregister_progress",
    "notify_log_output",
    "ProgressAwareHandler",
    "TreeCmpError",
    "UnreadableTreeError",
    "ToolUnavailableError",
    "DisassemblyRefusedError",
    "ContentReadError",
    "TreeCmpArgumentError",
]
