# Copyright Red Hat
#
# tests/test_treecmp.py - treecmp package unit tests
#
# This file is part of the treecmp project.
#
# SPDX-License-Identifier: Apache-2.0
import unittest
from unittest.mock import MagicMock
from io import StringIO
import logging
import sys

import treecmp

log = logging.getLogger()


class TreeCmpTestsSimple(unittest.TestCase):
    """Test treecmp module"""

    def setUp(self):
        log.debug("Preparing %s", self._testMethodName)

    def tearDown(self):
        treecmp.set_debug_mask(0)
        log.debug("Tearing down (%s)", self._testMethodName)

    def test_set_debug_mask(self):
        treecmp.set_debug_mask(treecmp.TREECMP_DEBUG_ALL)
        self.assertEqual(treecmp.get_debug_mask(), treecmp.TREECMP_DEBUG_ALL)

    def test_set_debug_mask_bad_mask(self):
        with self.assertRaises(ValueError):
            treecmp.set_debug_mask(treecmp.TREECMP_DEBUG_ALL + 1)
        with self.assertRaises(ValueError):
            treecmp.set_debug_mask(-1)

    def test_SubsystemFilter(self):
        treecmp.set_debug_mask(0)
        sf = treecmp.SubsystemFilter("treecmp")
        self.assertEqual(sf.enabled_subsystems, set())
        # New filters initialise from the current mask
        treecmp.set_debug_mask(treecmp.TREECMP_DEBUG_COMPARE | treecmp.TREECMP_DEBUG_DISASM)
        sf2 = treecmp.SubsystemFilter("treecmp")
        self.assertIn(treecmp.TREECMP_SUBSYSTEM_COMPARE, sf2.enabled_subsystems)
        self.assertIn(treecmp.TREECMP_SUBSYSTEM_DISASM, sf2.enabled_subsystems)
        self.assertNotIn(treecmp.TREECMP_SUBSYSTEM_COMMAND, sf2.enabled_subsystems)

    def test_SubsystemFilter_filter(self):
        sf = treecmp.SubsystemFilter("treecmp")
        sf.set_debug_subsystems([treecmp.TREECMP_SUBSYSTEM_DISASM])

        def _record(level, subsystem=None):
            record = logging.LogRecord("treecmp", level, __file__, 1, "msg", (), None)
            if subsystem:
                record.subsystem = subsystem
            return record

        self.assertTrue(sf.filter(_record(logging.INFO, treecmp.TREECMP_SUBSYSTEM_COMPARE)))
        self.assertTrue(sf.filter(_record(logging.DEBUG)))
        self.assertTrue(sf.filter(_record(logging.DEBUG, treecmp.TREECMP_SUBSYSTEM_DISASM)))
        self.assertFalse(sf.filter(_record(logging.DEBUG, treecmp.TREECMP_SUBSYSTEM_COMPARE)))

    def test_notify_log_output_resets_progress(self):
        progress = MagicMock()
        treecmp.register_progress(progress)
        self.assertTrue(progress.registered)
        try:
            treecmp.notify_log_output(sys.stderr)
            progress.reset_position.assert_called_once_with()
            treecmp.notify_log_output(StringIO())
            progress.reset_position.assert_called_once_with()
        finally:
            treecmp.unregister_progress(progress)
        self.assertFalse(progress.registered)

    def test_ProgressAwareHandler(self):
        stream = StringIO()
        handler = treecmp.ProgressAwareHandler(stream)
        handler.setFormatter(logging.Formatter("%(levelname)s - %(message)s"))
        record = logging.LogRecord("treecmp", logging.WARNING, __file__, 1, "hi %s", ("x",), None)
        handler.emit(record)
        self.assertEqual(stream.getvalue(), "WARNING - hi x\n")

    def test_error_messages(self):
        err = treecmp.UnreadableTreeError("/old", "not a directory")
        self.assertEqual(str(err), "Cannot read tree at /old: not a directory")
        self.assertEqual((err.path, err.reason), ("/old", "not a directory"))
        err = treecmp.DisassemblyRefusedError("a.dll", "exit status 1")
        self.assertEqual(str(err), "Cannot disassemble a.dll: exit status 1")
        err = treecmp.ContentReadError("a.txt", "gone")
        self.assertEqual(str(err), "Cannot read a.txt: gone")
        for cls in (
            treecmp.UnreadableTreeError,
            treecmp.ToolUnavailableError,
            treecmp.DisassemblyRefusedError,
            treecmp.ContentReadError,
            treecmp.TreeCmpArgumentError,
        ):
            self.assertTrue(issubclass(cls, treecmp.TreeCmpError))
