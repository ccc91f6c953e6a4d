# Copyright Red Hat
#
# treecmp/progress.py - Tree comparison terminal progress indicator
#
# This file is part of the treecmp project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Terminal control and progress reporting for long running tree scans and
comparisons.
"""
from typing import Optional, TextIO
from datetime import datetime, timedelta
from abc import ABC, abstractmethod
import curses
import sys
import os
import re

from treecmp import register_progress, unregister_progress

#: Default number of columns if not detected from terminal.
DEFAULT_COLUMNS = 80

#: Minimum width of a progress bar.
PROGRESS_MIN_WIDTH = 10

#: Default width of a progress bar as a fraction of the terminal size.
DEFAULT_WIDTH_FRAC = 0.5

#: Maximum number of redraws per second for terminal progress bars.
DEFAULT_FPS = 10


class TermControl:
    """
    Portable terminal control sequences for the current terminal.

    Attributes hold the control sequence for each supported action, or the
    empty string when the terminal (or the ``color`` mode) does not support
    it, so they may be embedded in output unconditionally:

        >>> term = TermControl()
        >>> print("This is " + term.GREEN + "green" + term.NORMAL)

    Adapted from the ActiveState terminfo recipe by Edward Loper (PSF
    license).
    """

    # Cursor movement and deletion:
    BOL: str = ""  #: Move the cursor to the beginning of the line
    UP: str = ""  #: Move the cursor up one line
    CLEAR_EOL: str = ""  #: Clear to the end of the line.

    # Output modes:
    BOLD: str = ""  #: Turn on bold mode
    NORMAL: str = ""  #: Turn off all modes

    # Cursor display:
    HIDE_CURSOR: str = ""  #: Make the cursor invisible
    SHOW_CURSOR: str = ""  #: Make the cursor visible

    # Foreground colors:
    BLUE: str = ""  #: Blue foreground color
    GREEN: str = ""  #: Green foreground color
    CYAN: str = ""  #: Cyan foreground color
    RED: str = ""  #: Red foreground color
    YELLOW: str = ""  #: Yellow foreground color
    WHITE: str = ""  #: White foreground color

    # Terminal size:
    columns: Optional[int] = None  #: Terminal width
    lines: Optional[int] = None  #: Terminal height

    _STRING_CAPABILITIES = (
        "BOL:cr UP:cuu1 CLEAR_EOL:el BOLD:bold NORMAL:sgr0 "
        "HIDE_CURSOR:civis SHOW_CURSOR:cnorm"
    ).split()

    #: ANSI color indices used with the ``setaf`` capability.
    _ANSI_COLORS = {
        "RED": 1,
        "GREEN": 2,
        "YELLOW": 3,
        "BLUE": 4,
        "CYAN": 6,
        "WHITE": 7,
    }

    def __init__(self, term_stream: Optional[TextIO] = None, color: str = "auto"):
        """
        Initialise terminal capabilities and size information.

        :param term_stream: Output stream to probe for capabilities.
        :type term_stream: ``Optional[TextIO]``
        :param color: A string to control color rendering: "auto", "always", or
                      "never".
        :type color: ``str``
        """
        if color not in ("auto", "always", "never"):
            raise ValueError(f"Invalid color mode: {color}")

        self.term_stream = term_stream or sys.stdout

        is_tty = hasattr(self.term_stream, "isatty") and self.term_stream.isatty()
        if color != "always" and not is_tty:
            return

        try:
            curses.setupterm()
        # curses.error does not inherit from BaseException on all platforms
        except BaseException as err:  # pylint: disable=broad-exception-caught
            if isinstance(err, (KeyboardInterrupt, SystemExit)):  # pragma: no cover
                raise
            if color == "always":
                self._force_ansi()
            return

        self.columns = curses.tigetnum("cols")
        self.lines = curses.tigetnum("lines")

        for capability in self._STRING_CAPABILITIES:
            attr, cap_name = capability.split(":")
            setattr(self, attr, self._tigetstr(cap_name))

        if color != "never":
            set_fg = self._tigetstr("setaf")
            if set_fg:
                for name, index in self._ANSI_COLORS.items():
                    code = curses.tparm(set_fg.encode("utf8"), index)
                    setattr(self, name, code.decode("utf8") if code else "")

    def _force_ansi(self):
        """
        Use plain ANSI color sequences when terminfo is unavailable but
        color output was explicitly requested.
        """
        for name, index in self._ANSI_COLORS.items():
            setattr(self, name, f"\033[0;3{index}m")
        # ``less -R`` does not like "\033[0m"
        self.NORMAL = self.WHITE

    @staticmethod
    def _tigetstr(cap_name: str) -> str:
        # Strip "$<2>" style delays: modern terminals do not need them.
        cap = curses.tigetstr(cap_name)
        cap = cap.decode(encoding="utf8") if cap else ""
        return cap.split("$", maxsplit=1)[0]

    def render(self, template: str) -> str:
        """
        Replace each ``${NAME}`` in ``template`` with the corresponding
        control sequence, or the empty string if it is not defined.

        :param template: Template string containing ${NAME} patterns.
        :type template: ``str``
        :returns: Rendered string with substitutions applied.
        :rtype: ``str``
        """

        def _sub(match):
            text = match.group()
            if text == "$$":
                return "$"
            return getattr(self, text[2:-1], "")

        return re.sub(r"\$\$|\${\w+}", _sub, template)


def _flush_with_broken_pipe_guard(stream: TextIO) -> None:
    """
    Flush ``stream``, exiting quietly if the reader has gone away.

    :param stream: The stream to flush.
    :type stream: ``TextIO``
    """
    if stream is None or not hasattr(stream, "flush"):
        return
    try:
        stream.flush()
    except BrokenPipeError as err:
        devnull = os.open(os.devnull, os.O_WRONLY)
        try:
            if hasattr(stream, "fileno"):
                os.dup2(devnull, stream.fileno())
        finally:
            os.close(devnull)
        raise SystemExit() from err


class ProgressBase(ABC):
    """
    An abstract progress reporting class.

    Subclasses implement the ``_do_start()``, ``_do_progress()`` and
    ``_do_end()`` hooks; the public ``start()``/``progress()``/``end()``
    methods validate the call sequence.
    """

    #: Length of the fixed characters in the bar format.
    FIXED = 0

    def __init__(self, header: str, register: bool = True):
        self.header: str = header
        self.total: int = 0
        self.done: int = 0
        self.width: int = PROGRESS_MIN_WIDTH
        self.first_update: bool = True
        self.registered: bool = False
        self.register: bool = register

    def reset_position(self):
        """Mark progress bar as displaced by external output."""
        self.first_update = True

    def _calculate_width(self, columns: Optional[int], width_frac: float) -> int:
        """
        Return the bar width for a terminal of ``columns`` characters.

        :param columns: Terminal width, or ``None`` if unknown.
        :type columns: ``Optional[int]``
        :param width_frac: Fraction of the free width to occupy.
        :type width_frac: ``float``
        :returns: The bar width in characters.
        :rtype: ``int``
        """
        columns = columns or DEFAULT_COLUMNS
        width = round((columns - self.FIXED - len(self.header)) * width_frac)
        return max(PROGRESS_MIN_WIDTH, width)

    def start(self, total: int):
        """
        Begin a progress run with the specified ``total``.

        :param total: The total number of expected progress items.
        :type total: ``int``
        """
        if total <= 0:
            raise ValueError("total must be positive.")

        self.total = total
        self.done = 0

        if self.register:
            register_progress(self)

        self._do_start()

    def _check_in_progress(self, done: int, step: str):
        theclass = self.__class__.__name__
        if self.total == 0:
            raise ValueError(f"{theclass}.{step}() called before start()")
        if done < 0:
            raise ValueError(f"{theclass}.{step}() done cannot be negative.")
        if done > self.total:
            raise ValueError(f"{theclass}.{step}() done cannot be > total.")

    def progress(self, done: int, message: Optional[str] = None):
        """
        Advance the progress indicator to the specified ``done`` count.

        :param done: The number of completed progress items.
        :type done: ``int``
        :param message: An optional progress message.
        :type message: ``Optional[str]``
        """
        self._check_in_progress(done, "progress")
        self.done = done
        self._do_progress(done, message)

    def end(self, message: Optional[str] = None):
        """
        End the progress run and finalise the display.

        :param message: An optional completion message.
        :type message: ``Optional[str]``
        """
        self._check_in_progress(self.total, "end")
        self.progress(self.total, "")
        self._finish(message)

    def cancel(self, message: Optional[str] = None):
        """
        End the progress run early, for example on ``KeyboardInterrupt``.

        :param message: An optional error message.
        :type message: ``Optional[str]``
        """
        self._check_in_progress(self.done, "cancel")
        self._finish(message)

    def _finish(self, message: Optional[str]):
        self._do_end(message)
        self.total = 0
        if self.registered:
            unregister_progress(self)

    @abstractmethod
    def _do_start(self):
        """Hook invoked when progress begins."""

    @abstractmethod
    def _do_progress(self, done: int, message: Optional[str] = None):
        """Hook for subclasses to update the progress display."""

    @abstractmethod
    def _do_end(self, message: Optional[str] = None):
        """Hook for subclasses to finalise the progress display."""


class Progress(ProgressBase):
    """
    A 2-line progress bar for terminals with cursor control, which looks
    like:

        Header: 20% [===========----------------------------------]
                           progress message

    The bar is redrawn in place at most ``DEFAULT_FPS`` times per second.
    """

    BAR = (
        "${BOLD}${CYAN}%s${NORMAL}: %3d%% "
        "${GREEN}[${BOLD}%s%s${NORMAL}${GREEN}]${NORMAL}\n"
    )  #: Progress bar format string

    FIXED = 9

    def __init__(
        self,
        header: str,
        tc: TermControl,
        register: bool = True,
        width_frac: float = DEFAULT_WIDTH_FRAC,
    ):
        """
        Initialise a two-line terminal progress renderer.

        :param header: The progress header to display.
        :type header: ``str``
        :param tc: An initialised ``TermControl`` for the output stream.
        :type tc: ``TermControl``
        :param register: Register this ``Progress`` for log callbacks.
        :type register: ``bool``
        :param width_frac: Fraction of the terminal width to use for the bar.
        :type width_frac: ``float``
        :raises ValueError: If the terminal lacks cursor control.
        """
        super().__init__(header, register=register)
        if not (tc.CLEAR_EOL and tc.UP and tc.BOL):
            raise ValueError("Terminal does not support required control characters.")
        self.term: TermControl = tc
        self.stream: TextIO = tc.term_stream
        self.width = self._calculate_width(tc.columns, width_frac)
        self.budget: int = max(PROGRESS_MIN_WIDTH, (tc.columns or DEFAULT_COLUMNS) - 10)
        self.pbar: str = tc.render(self.BAR)
        self._interval = timedelta(seconds=1.0 / DEFAULT_FPS)
        self._last: Optional[datetime] = None

    def _do_start(self):
        self.first_update = True
        self._last = datetime.now() - self._interval

    def _do_progress(self, done: int, message: Optional[str] = None):
        message = message or ""
        now = datetime.now()
        if done != self.total and now - self._last < self._interval:
            return
        self._last = now

        percent = float(done) / float(self.total)
        n = int((self.width - 10) * percent)

        if self.first_update:
            prefix = self.term.HIDE_CURSOR + self.term.BOL
            self.first_update = False
        else:
            prefix = 2 * (self.term.BOL + self.term.UP + self.term.CLEAR_EOL)

        if len(message) > self.budget:
            message = message[0 : self.budget - 3] + "..."

        bar = self.pbar % (self.header, percent * 100, "=" * n, "-" * (self.width - 10 - n))
        print(
            prefix + bar + self.term.CLEAR_EOL + message + "\n",
            file=self.stream,
            end="",
        )
        _flush_with_broken_pipe_guard(self.stream)

    def _do_end(self, message: Optional[str] = None):
        print(
            2 * (self.term.BOL + self.term.UP + self.term.CLEAR_EOL)
            + self.term.SHOW_CURSOR
            + self.term.NORMAL,
            file=self.stream,
            end="",
        )
        if message:
            print(message, file=self.stream)
        _flush_with_broken_pipe_guard(self.stream)


class SimpleProgress(ProgressBase):
    """
    A line-per-update progress report that does not rely on terminal
    capabilities, for redirected output.
    """

    BAR = "%s: %3d%% [%s%s] (%s)"  #: Progress bar format string
    FIXED = 12

    def __init__(
        self,
        header: str,
        term_stream: Optional[TextIO] = None,
        register: bool = True,
        width_frac: float = DEFAULT_WIDTH_FRAC,
    ):
        super().__init__(header, register=register)
        self.stream: TextIO = term_stream or sys.stdout
        self.width = self._calculate_width(None, width_frac)

    def _do_start(self):
        return

    def _do_progress(self, done: int, message: Optional[str] = None):
        percent = float(done) / float(self.total)
        n = int(self.width * percent)
        print(
            self.BAR
            % (self.header, percent * 100, "=" * n, "-" * (self.width - n), message or ""),
            file=self.stream,
        )
        _flush_with_broken_pipe_guard(self.stream)

    def _do_end(self, message: Optional[str] = None):
        if message:
            print(message, file=self.stream)
        _flush_with_broken_pipe_guard(self.stream)


class NullProgress(ProgressBase):
    """
    A progress class that produces no output.
    """

    def _do_start(self):
        return

    def _do_progress(self, done: int, message: Optional[str] = None):
        return

    def _do_end(self, message: Optional[str] = None):
        return


class ProgressFactory:
    """
    A factory for constructing progress objects.
    """

    @staticmethod
    def get_progress(
        header: str,
        quiet: bool = False,
        term_stream: Optional[TextIO] = None,
        term_control: Optional[TermControl] = None,
        register: bool = True,
    ) -> ProgressBase:
        """
        Return an appropriate ``ProgressBase`` implementation: a
        ``NullProgress`` if ``quiet``, a ``SimpleProgress`` for streams that
        are not a terminal, and a ``Progress`` bar otherwise.

        :param header: The progress report header.
        :type header: ``str``
        :param quiet: Suppress all output.
        :type quiet: ``bool``
        :param term_stream: An optional output stream (default
                            ``sys.stdout``).
        :type term_stream: ``Optional[TextIO]``
        :param term_control: An optional ``TermControl`` object. Its stream
                             overrides ``term_stream``.
        :type term_control: ``Optional[TermControl]``
        :param register: Register the new object with the log system for
                         notification callbacks.
        :type register: ``bool``
        :returns: An appropriate progress implementation.
        :rtype: ``ProgressBase``
        """
        if quiet:
            return NullProgress(header, register=register)

        if term_control:
            term_stream = term_control.term_stream
        term_stream = term_stream or sys.stdout

        if not hasattr(term_stream, "isatty") or not term_stream.isatty():
            return SimpleProgress(header, term_stream=term_stream, register=register)

        term_control = term_control or TermControl(term_stream=term_stream)
        try:
            return Progress(header, term_control, register=register)
        except ValueError:
            return SimpleProgress(header, term_stream=term_stream, register=register)


__all__ = [
    "TermControl",
    "ProgressBase",
    "Progress",
    "SimpleProgress",
    "NullProgress",
    "ProgressFactory",
]
