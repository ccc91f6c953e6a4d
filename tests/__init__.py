# Copyright Red Hat
#
# tests/__init__.py - Tree comparison test package
#
# This file is part of the treecmp project.
#
# SPDX-License-Identifier: Apache-2.0
import logging

log = logging.getLogger()
log.setLevel(logging.DEBUG)
formatter = logging.Formatter('%(asctime)s %(levelname)s %(name)s %(message)s')
file_handler = logging.FileHandler("test.log")
file_handler.setFormatter(formatter)
console_handler = logging.StreamHandler()
console_handler.setFormatter(formatter)
log.addHandler(file_handler)
log.addHandler(console_handler)


class MockArgs(object):
    debug = None
    verbose = 0
    version = False
    include_unchanged = False
    include_content_diffs = True
    kind_overrides = None
    use_magic_file_type = False
    hash_algorithm = "md5"
    hash_workers = None
    compare_workers = None
    disassembler = None
    disassembler_timeout = None
    max_disassemblers = None
    max_diff_lines = None
    normalize_line_endings = False
    file_patterns = None
    exclude_patterns = None
    output_format = "text"
    pretty = False
    output = None
    quiet = True
    color = "never"
    old = None
    new = None
