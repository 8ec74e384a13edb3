# Copyright 2024, Manifesto Contributors, All rights reserved.

"""
End-to-end tests: build a manifest from a real directory tree, persist it,
load it back and validate the tree against it.
"""

import os
import shutil
import tempfile
import unittest

import timeout_decorator
from parameterized import parameterized

from common import overrides, Manifest, ProgressSnapshot, ValidatorState
from manifest import (
    IValidatorListener,
    ManifestBuilder,
    ManifestPersist,
    ManifestValidator,
    find_common_ancestor,
)
from tests.utils import TestUtils


logger = TestUtils.create_logger("test_manifest_e2e")


class StopAfterListener(IValidatorListener):
    def __init__(self, validator: ManifestValidator, stop_after: int):
        self.validator = validator
        self.stop_after = stop_after
        self.processed: list[int] = []

    def on_validation_started(self):
        pass

    def on_validation_stopped(self):
        pass

    def on_validation_progress(self, progress: ProgressSnapshot):
        self.processed.append(progress.processed)
        if progress.processed == self.stop_after:
            self.validator.stop()

    def on_validation_completed(self):
        pass


class TestManifestEndToEnd(unittest.TestCase):
    @overrides(unittest.TestCase)
    def setUp(self):
        self.temp_dir = tempfile.mkdtemp(prefix="test_manifest_e2e")
        self.source_dir = os.path.join(self.temp_dir, "source")
        self.files = {
            "readme.txt": b"hello manifest",
            "bin/tool": os.urandom(300 * 1024),
            "bin/empty": b"",
            "lib/a/b/c/deep.dat": os.urandom(4096),
            "lib/x.so": os.urandom(70000),
        }
        TestUtils.write_tree(self.source_dir, self.files)
        self.manifest_path = os.path.join(self.temp_dir, "source.manifest")

    @overrides(unittest.TestCase)
    def tearDown(self):
        shutil.rmtree(self.temp_dir)

    def _build_and_save(self, algorithm: str) -> Manifest:
        builder = ManifestBuilder(num_workers=3, buffer_size=8192)
        builder.set_base_logger(logger)
        manifest = builder.build_manifest(self.source_dir, algorithm=algorithm, description="e2e")
        self.assertTrue(ManifestPersist(manifest).try_to_file(self.manifest_path, logger))
        return manifest

    def _load(self) -> Manifest:
        persist = ManifestPersist.try_from_file(self.manifest_path, logger)
        self.assertIsNotNone(persist)
        return persist.manifest

    def _validate(self, manifest: Manifest, directory: str) -> ManifestValidator:
        validator = ManifestValidator(manifest, directory, buffer_size=1000)
        validator.set_base_logger(logger)
        validator.start()
        self.assertTrue(validator.wait(timeout=20))
        return validator

    @parameterized.expand([("sha256",), ("md5",), ("xxh128",), ("xxh64",)])
    @timeout_decorator.timeout(30)
    def test_build_save_load_validate(self, algorithm):
        built = self._build_and_save(algorithm)
        loaded = self._load()
        self.assertEqual(built, loaded)

        validator = self._validate(loaded, self.source_dir)
        results = validator.results()
        self.assertEqual(len(self.files), len(results))
        self.assertTrue(all(r.is_valid for r in results))

    @timeout_decorator.timeout(30)
    def test_validate_copied_tree(self):
        self._build_and_save("sha256")
        copy_dir = os.path.join(self.temp_dir, "copy")
        shutil.copytree(self.source_dir, copy_dir)

        validator = self._validate(self._load(), copy_dir)
        self.assertTrue(all(r.is_valid for r in validator.results()))
        for result in validator.results():
            self.assertTrue(result.file_location.startswith(copy_dir))

    @timeout_decorator.timeout(30)
    def test_detects_corruption_and_missing_files(self):
        self._build_and_save("sha256")
        with open(os.path.join(self.source_dir, "lib", "x.so"), "r+b") as f:
            f.seek(1234)
            original = f.read(1)
            f.seek(1234)
            f.write(bytes([original[0] ^ 0xFF]))
        os.remove(os.path.join(self.source_dir, "readme.txt"))

        validator = self._validate(self._load(), self.source_dir)
        invalid = {r.entry.file: r for r in validator.results() if not r.is_valid}
        self.assertEqual({os.path.join("lib", "x.so"), "readme.txt"}, set(invalid.keys()))
        self.assertTrue(invalid["readme.txt"].is_missing)
        self.assertFalse(invalid[os.path.join("lib", "x.so")].is_missing)

    @timeout_decorator.timeout(30)
    def test_pause_resume_over_loaded_manifest(self):
        self._build_and_save("xxh128")
        manifest = self._load()
        validator = ManifestValidator(manifest, self.source_dir)
        validator.set_base_logger(logger)
        listener = StopAfterListener(validator, stop_after=3)
        validator.add_listener(listener)

        validator.start()
        self.assertTrue(validator.wait(timeout=20))
        self.assertEqual(ValidatorState.PAUSED, validator.state)
        self.assertEqual(3, validator.progress.processed)

        validator.start()
        self.assertTrue(validator.wait(timeout=20))
        self.assertEqual(ValidatorState.COMPLETED, validator.state)
        self.assertEqual([1, 2, 3, 4, 5], listener.processed)
        self.assertEqual(manifest.contents, [r.entry for r in validator.results()])

    @timeout_decorator.timeout(30)
    def test_manifest_from_absolute_paths(self):
        builder = ManifestBuilder()
        builder.set_base_logger(logger)
        manifest = Manifest(hash_algorithm="sha256")
        builder.add_files(manifest, builder.discover(self.source_dir))
        _, ancestor = find_common_ancestor(manifest.contents)
        self.assertEqual(os.path.join(self.source_dir, ""), ancestor)

        ManifestPersist(manifest).to_file(self.manifest_path)
        validator = self._validate(self._load(), self.source_dir)
        self.assertTrue(all(r.is_valid for r in validator.results()))
