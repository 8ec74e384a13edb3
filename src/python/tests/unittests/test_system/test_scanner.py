# Copyright 2024, Manifesto Contributors, All rights reserved.

import os
import shutil
import tempfile
import unittest
from unittest.mock import patch

from common import overrides
from system import SystemScanner, SystemScannerError
from tests.utils import TestUtils


logger = TestUtils.create_logger("test_scanner")


class TestSystemScanner(unittest.TestCase):
    temp_dir = None

    @overrides(unittest.TestCase)
    def setUp(self):
        # Create a temp directory tree
        # a/
        #   a1.txt
        #   aa/
        #     aa1.txt
        #   ab/
        # b.txt
        # c/
        #   .hidden.txt
        #   c1.txt
        # .dot/
        #   d1.txt
        self.temp_dir = tempfile.mkdtemp(prefix="test_scanner")
        TestUtils.write_tree(self.temp_dir, {
            "a/a1.txt": b"a1",
            "a/aa/aa1.txt": b"aa1",
            "b.txt": b"b",
            "c/.hidden.txt": b"hidden",
            "c/c1.txt": b"c1",
            ".dot/d1.txt": b"d1",
        })
        os.mkdir(os.path.join(self.temp_dir, "a", "ab"))

    @overrides(unittest.TestCase)
    def tearDown(self):
        shutil.rmtree(self.temp_dir)

    def _relative(self, paths):
        return [os.path.relpath(p, self.temp_dir).replace(os.sep, "/") for p in paths]

    def test_yields_all_files(self):
        scanner = SystemScanner(self.temp_dir)
        scanner.set_base_logger(logger)
        files = list(scanner.iter_files())
        self.assertEqual(6, len(files))
        for path in files:
            self.assertTrue(os.path.isabs(path))
            self.assertTrue(os.path.isfile(path))

    def test_files_before_subdirectories(self):
        scanner = SystemScanner(self.temp_dir)
        self.assertEqual(
            ["b.txt", ".dot/d1.txt", "a/a1.txt", "a/aa/aa1.txt", "c/.hidden.txt", "c/c1.txt"],
            self._relative(scanner.iter_files()),
        )

    def test_scan_is_repeatable(self):
        scanner = SystemScanner(self.temp_dir)
        self.assertEqual(list(scanner.iter_files()), list(scanner.iter_files()))

    def test_exclude_prefix(self):
        scanner = SystemScanner(self.temp_dir)
        scanner.add_exclude_prefix(".")
        self.assertEqual(
            ["b.txt", "a/a1.txt", "a/aa/aa1.txt", "c/c1.txt"],
            self._relative(scanner.iter_files()),
        )

    def test_empty_directory(self):
        empty = os.path.join(self.temp_dir, "a", "ab")
        self.assertEqual([], list(SystemScanner(empty).iter_files()))

    def test_relative_root_yields_absolute_paths(self):
        cwd = os.getcwd()
        os.chdir(self.temp_dir)
        try:
            files = list(SystemScanner("a").iter_files())
        finally:
            os.chdir(cwd)
        self.assertEqual(2, len(files))
        for path in files:
            self.assertTrue(os.path.isabs(path))

    def test_missing_root_raises(self):
        scanner = SystemScanner(os.path.join(self.temp_dir, "nope"))
        with self.assertRaises(SystemScannerError):
            scanner.iter_files()

    def test_file_root_raises(self):
        scanner = SystemScanner(os.path.join(self.temp_dir, "b.txt"))
        with self.assertRaises(SystemScannerError):
            scanner.iter_files()

    def test_unlistable_directory_is_skipped(self):
        real_scandir = os.scandir
        bad_dir = os.path.join(self.temp_dir, "c")

        def scandir(path):
            if path == bad_dir:
                raise PermissionError("denied")
            return real_scandir(path)

        scanner = SystemScanner(self.temp_dir)
        scanner.set_base_logger(logger)
        with patch("system.scanner.os.scandir", side_effect=scandir):
            files = self._relative(scanner.iter_files())
        self.assertEqual(["b.txt", ".dot/d1.txt", "a/a1.txt", "a/aa/aa1.txt"], files)

    def test_directory_removed_mid_scan_is_skipped(self):
        scanner = SystemScanner(self.temp_dir)
        it = scanner.iter_files()
        self.assertEqual("b.txt", self._relative([next(it)])[0])
        shutil.rmtree(os.path.join(self.temp_dir, "c"))
        self.assertEqual([".dot/d1.txt", "a/a1.txt", "a/aa/aa1.txt"], self._relative(it))
