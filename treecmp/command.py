# Copyright Red Hat
#
# treecmp/command.py - Tree comparison command interface
#
# This file is part of the treecmp project.
#
# SPDX-License-Identifier: Apache-2.0
"""The ``treecmp.command`` module provides the treecmp command line
interface and a simple procedural interface to the ``treecmp.compare``
modules.
"""
from argparse import ArgumentParser
from typing import List, Optional
from os.path import basename
import logging
import sys

from treecmp import (
    __version__,
    SubsystemFilter,
    ProgressAwareHandler,
    set_debug_mask,
    TREECMP_DEBUG_COMPARE,
    TREECMP_DEBUG_DISASM,
    TREECMP_DEBUG_COMMAND,
    TREECMP_DEBUG_ALL,
    TREECMP_SUBSYSTEM_COMMAND,
)
from treecmp.progress import TermControl
from treecmp.compare import (
    CompareOptions,
    CompareResults,
    TreeDiffer,
    build_report,
)
from treecmp.compare.report import DEFAULT_TITLE

OUTPUT_FORMATS = ["text", "json"]
HASH_ALGORITHMS = ["md5", "sha1", "sha256", "sha512"]

_log = logging.getLogger(__name__)

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error


def _log_debug_command(msg, *args, **kwargs):
    """A wrapper for command subsystem debug logs."""
    _log.debug(msg, *args, extra={"subsystem": TREECMP_SUBSYSTEM_COMMAND}, **kwargs)


_DEFAULT_LOG_LEVEL = logging.WARNING
_CONSOLE_HANDLER = None


def compare_trees(
    old_root: str,
    new_root: str,
    options: Optional[CompareOptions] = None,
    color: str = "auto",
) -> CompareResults:
    """
    Compare the directory trees at ``old_root`` and ``new_root``.

    :param old_root: The old tree.
    :type old_root: ``str``
    :param new_root: The new tree.
    :type new_root: ``str``
    :param options: Comparison options.
    :type options: ``Optional[CompareOptions]``
    :param color: Progress color mode: "auto", "always" or "never".
    :type color: ``str``
    :returns: The comparison results.
    :rtype: ``CompareResults``
    """
    # Progress goes to stderr: stdout carries the report.
    term_control = TermControl(term_stream=sys.stderr, color=color)
    differ = TreeDiffer(options=options, term_control=term_control)
    return differ.compare_roots(old_root, new_root)


def print_report(
    results: CompareResults,
    output_format: str = "text",
    pretty: bool = False,
    output: Optional[str] = None,
    title: Optional[str] = None,
):
    """
    Render a report of ``results`` to stdout or to the file ``output``.

    :param results: The comparison results to report.
    :type results: ``CompareResults``
    :param output_format: "text" (Markdown) or "json".
    :type output_format: ``str``
    :param pretty: Indent JSON output.
    :type pretty: ``bool``
    :param output: An optional output file path.
    :type output: ``Optional[str]``
    :param title: An optional report title.
    :type title: ``Optional[str]``
    """
    report = build_report(results, title=title or DEFAULT_TITLE)
    if output:
        report.write(output, output_format=output_format, pretty=pretty)
        return
    if output_format == "json":
        print(report.json(pretty=pretty))
    else:
        print(report.text())


def _compare_cmd(cmd_args):
    """
    Compare command handler.

    Compare the OLD and NEW trees and print a report.

    :param cmd_args: Command line arguments for the command
    :returns: integer status code returned from ``main()``
    """
    if cmd_args.pretty and cmd_args.output_format != "json":
        _log_error("Option --pretty only supported with --output-format=json")
        return 1

    options = CompareOptions.from_cmd_args(cmd_args)
    _log_debug_command("Effective options:\n%s", options)

    results = compare_trees(
        cmd_args.old, cmd_args.new, options=options, color=cmd_args.color
    )
    print_report(
        results,
        output_format=cmd_args.output_format,
        pretty=cmd_args.pretty,
        output=cmd_args.output,
        title=f"Tree comparison: {cmd_args.old} -> {cmd_args.new}",
    )
    if results.warnings:
        _log_info("Comparison completed with %d warnings", len(results.warnings))
    return 0


def setup_logging(cmd_args):
    """
    Set up treecmp logging.
    """
    # pylint: disable=global-statement
    global _CONSOLE_HANDLER
    level = _DEFAULT_LOG_LEVEL
    if cmd_args.verbose and cmd_args.verbose > 1:
        level = logging.DEBUG
    elif cmd_args.verbose and cmd_args.verbose > 0:
        level = logging.INFO

    treecmp_log = logging.getLogger("treecmp")
    formatter = logging.Formatter("%(levelname)s - %(message)s")
    treecmp_log.setLevel(level)
    if treecmp_log.hasHandlers():
        treecmp_log.handlers.clear()

    _CONSOLE_HANDLER = ProgressAwareHandler()
    _CONSOLE_HANDLER.setLevel(level)
    _CONSOLE_HANDLER.setFormatter(formatter)
    _CONSOLE_HANDLER.addFilter(SubsystemFilter("treecmp"))

    treecmp_log.addHandler(_CONSOLE_HANDLER)


def shutdown_logging():
    """
    Shut down treecmp logging.
    """
    logging.shutdown()


def set_debug(debug_arg):
    """
    Set debugging mask from command line argument.
    """
    if not debug_arg:
        return

    mask_map = {
        "compare": TREECMP_DEBUG_COMPARE,
        "disasm": TREECMP_DEBUG_DISASM,
        "command": TREECMP_DEBUG_COMMAND,
        "all": TREECMP_DEBUG_ALL,
    }

    mask = 0
    for name in debug_arg.split(","):
        if name not in mask_map:
            raise ValueError(f"Unknown debug option: {name}")
        mask |= mask_map[name]
    set_debug_mask(mask)


def _add_compare_args(parser):
    parser.add_argument(
        "-u",
        "--include-unchanged",
        action="store_true",
        help="List unchanged files in the report",
    )
    parser.add_argument(
        "-C",
        "--no-content-diff",
        dest="include_content_diffs",
        action="store_false",
        help="Do not render diffs for modified text files and compiled modules",
    )
    parser.add_argument(
        "-k",
        "--kind",
        type=str,
        action="append",
        metavar="EXT=KIND",
        dest="kind_overrides",
        default=None,
        help="Override the file kind for an extension "
        "(ignored, text, compiled, unclassified)",
    )
    parser.add_argument(
        "-f",
        "--file-types",
        dest="use_magic_file_type",
        action="store_true",
        help="Detect the kind of files with unknown extensions using libmagic",
    )
    parser.add_argument(
        "-a",
        "--hash-algorithm",
        type=str,
        choices=HASH_ALGORITHMS,
        default="md5",
        help=f"Content fingerprint algorithm ({', '.join(HASH_ALGORITHMS)})",
    )
    parser.add_argument(
        "-j",
        "--hash-workers",
        type=int,
        metavar="N",
        default=None,
        help="Number of threads used to hash files",
    )
    parser.add_argument(
        "-J",
        "--compare-workers",
        type=int,
        metavar="N",
        default=None,
        help="Number of threads used to compare files (default: 4)",
    )
    parser.add_argument(
        "--disassembler",
        type=str,
        metavar="CMD",
        default=None,
        help="Disassembler command line (default: 'ildasm /text /nobar')",
    )
    parser.add_argument(
        "--disassembler-timeout",
        type=int,
        metavar="SECONDS",
        default=None,
        help="Timeout for each disassembler run (default: 60)",
    )
    parser.add_argument(
        "--max-disassemblers",
        type=int,
        metavar="N",
        default=None,
        help="Maximum concurrent disassembler processes (default: 2)",
    )
    parser.add_argument(
        "-z",
        "--max-diff-lines",
        type=int,
        metavar="N",
        default=None,
        help="Maximum lines per side for rendering a diff (default: 10000, 0=unlimited)",
    )
    parser.add_argument(
        "--normalize-line-endings",
        action="store_true",
        help="Treat CRLF, CR and LF line endings as equal in text files",
    )
    parser.add_argument(
        "-i",
        "--include-pattern",
        type=str,
        action="append",
        metavar="PATTERN",
        dest="file_patterns",
        default=None,
        help="File patterns to include (glob notation)",
    )
    parser.add_argument(
        "-x",
        "--exclude-pattern",
        type=str,
        action="append",
        metavar="PATTERN",
        dest="exclude_patterns",
        default=None,
        help="File patterns to exclude (glob notation)",
    )
    parser.add_argument(
        "-o",
        "--output-format",
        type=str,
        choices=OUTPUT_FORMATS,
        default=OUTPUT_FORMATS[0],
        help=f"Report format ({', '.join(OUTPUT_FORMATS)})",
    )
    parser.add_argument(
        "--pretty",
        action="store_true",
        help="Format JSON output for readability",
    )
    parser.add_argument(
        "-O",
        "--output",
        type=str,
        metavar="FILE",
        default=None,
        help="Write the report to FILE instead of stdout",
    )
    parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Do not output progress or status information",
    )
    colors = ["auto", "never", "always"]
    parser.add_argument(
        "--color",
        type=str,
        choices=colors,
        default=colors[0],
        help=f"Enable colored output ({', '.join(colors)})",
    )
    parser.add_argument(
        "old",
        type=str,
        metavar="OLD",
        help="The old directory tree",
    )
    parser.add_argument(
        "new",
        type=str,
        metavar="NEW",
        help="The new directory tree",
    )


def main(args: List[str]) -> int:
    """
    Main entry point for treecmp.
    """
    parser = ArgumentParser(description="Directory tree comparison", prog=basename(args[0]))

    parser.add_argument(
        "-d",
        "--debug",
        metavar="DEBUGOPTS",
        type=str,
        help="A list of debug options to enable",
    )
    parser.add_argument("-v", "--verbose", help="Enable verbose output", action="count")
    parser.add_argument(
        "-V",
        "--version",
        action="version",
        help="Report the version number of treecmp",
        version=__version__,
    )
    _add_compare_args(parser)

    cmd_args = parser.parse_args(args[1:])

    status = 1

    try:
        set_debug(cmd_args.debug)
    except ValueError as err:
        print(err)
        parser.print_help()
        return status

    setup_logging(cmd_args)

    _log_debug_command("Parsed %s", " ".join(args[1:]))

    if cmd_args.debug:
        status = _compare_cmd(cmd_args)
    else:
        try:
            status = _compare_cmd(cmd_args)
        # pylint: disable=broad-except
        except KeyboardInterrupt:  # pragma: no cover
            _log_info("Exiting on user cancel")
        except Exception as err:
            _log_error("Command failed: %s", err)

    shutdown_logging()
    return status


def console_main():
    """
    Console script entry point.
    """
    sys.exit(main(sys.argv))


# vim: set et ts=4 sw=4 :
