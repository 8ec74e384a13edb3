# Copyright 2024, Manifesto Contributors, All rights reserved.

import os
import shutil
import tempfile
import unittest
from unittest.mock import MagicMock

from common import overrides, Persist, PersistError


class DummyPersist(Persist):
    def __init__(self):
        self.my_content = None

    @classmethod
    @overrides(Persist)
    def from_str(cls: "DummyPersist", content: str) -> "DummyPersist":
        if content.startswith("bad"):
            raise PersistError("bad content")
        persist = DummyPersist()
        persist.my_content = content
        return persist

    @overrides(Persist)
    def to_str(self) -> str:
        if self.my_content is None:
            raise PersistError("nothing to save")
        return self.my_content


class TestPersist(unittest.TestCase):
    @overrides(unittest.TestCase)
    def setUp(self):
        self.temp_dir = tempfile.mkdtemp(prefix="test_persist")
        self.path = os.path.join(self.temp_dir, "dummy.persist")

    @overrides(unittest.TestCase)
    def tearDown(self):
        shutil.rmtree(self.temp_dir)

    def test_to_file_from_file(self):
        persist = DummyPersist()
        persist.my_content = "some content ✓"
        persist.to_file(self.path)
        self.assertEqual("some content ✓", DummyPersist.from_file(self.path).my_content)

    def test_from_file_missing_raises(self):
        with self.assertRaises(FileNotFoundError):
            DummyPersist.from_file(self.path)

    def test_try_to_file_success(self):
        persist = DummyPersist()
        persist.my_content = "content"
        self.assertTrue(persist.try_to_file(self.path))
        self.assertTrue(os.path.isfile(self.path))

    def test_try_to_file_persist_error(self):
        logger = MagicMock()
        self.assertFalse(DummyPersist().try_to_file(self.path, logger))
        logger.warning.assert_called_once()

    def test_try_to_file_os_error(self):
        persist = DummyPersist()
        persist.my_content = "content"
        self.assertFalse(persist.try_to_file(os.path.join(self.temp_dir, "no", "such", "dir")))

    def test_try_from_file_success(self):
        with open(self.path, "w") as f:
            f.write("good")
        self.assertEqual("good", DummyPersist.try_from_file(self.path).my_content)

    def test_try_from_file_missing(self):
        logger = MagicMock()
        self.assertIsNone(DummyPersist.try_from_file(self.path, logger))
        logger.warning.assert_called_once()

    def test_try_from_file_persist_error(self):
        with open(self.path, "w") as f:
            f.write("bad content")
        self.assertIsNone(DummyPersist.try_from_file(self.path))

    def test_try_from_file_not_utf8(self):
        with open(self.path, "wb") as f:
            f.write(b"\xff\xfe\xfa")
        self.assertIsNone(DummyPersist.try_from_file(self.path))
