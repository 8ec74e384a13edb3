# Copyright 2024, Manifesto Contributors, All rights reserved.

"""
Manifest construction from a directory tree.

This module provides functionality for:
- Discovering the files under a directory
- Creating one entry per file (size and optional digest)
- Hashing the entries of a manifest in parallel
"""

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Iterable, Iterator, Optional

from common import Constants, Manifest, ManifestEntry
from system import SystemScanner

from .checksum import ChecksumGenerator


class ManifestBuilder:
    """
    Builds manifests from the local filesystem.

    Hashing is fanned out over a thread pool. Each task writes only to
    the entry it was given, so no locking is needed between tasks.
    """

    # Upper bound for the auto-sized pool
    _MAX_AUTO_WORKERS = 32

    def __init__(self, num_workers: int = 0, buffer_size: int = Constants.DEFAULT_HASH_BUFFER_SIZE):
        if num_workers < 0:
            raise ValueError("num_workers must be non-negative")
        self.num_workers = num_workers  # 0 = auto
        self.buffer_size = buffer_size
        self.logger = logging.getLogger(self.__class__.__name__)

    def set_base_logger(self, base_logger: logging.Logger):
        self.logger = base_logger.getChild(self.__class__.__name__)

    def _worker_count(self) -> int:
        if self.num_workers > 0:
            return self.num_workers
        return min(self._MAX_AUTO_WORKERS, (os.cpu_count() or 1) + 4)

    def _checksum_generator(self, algorithm: Optional[str]) -> ChecksumGenerator:
        generator = ChecksumGenerator(algorithm, buffer_size=self.buffer_size)
        generator.set_base_logger(self.logger)
        return generator

    def discover(self, root_directory: str, exclude_prefixes: Iterable[str] = ()) -> Iterator[str]:
        """
        Lazily enumerate the absolute paths of all files under root_directory.

        Files of a directory come before the contents of its subdirectories.
        """
        scanner = SystemScanner(root_directory)
        scanner.set_base_logger(self.logger)
        for prefix in exclude_prefixes:
            scanner.add_exclude_prefix(prefix)
        return scanner.iter_files()

    def create_entry(
        self,
        root_directory: Optional[str],
        relative_path: str,
        remote: Optional[str] = None,
        algorithm: Optional[str] = None,
    ) -> Optional[ManifestEntry]:
        """
        Create an entry for one file.

        Args:
            root_directory: Directory the path is relative to, None if the path is absolute
            relative_path: Path of the file, stored verbatim in the entry
            remote: Remote location where the file can be obtained
            algorithm: Hash algorithm name, None to leave the hash empty

        Returns:
            The entry, or None if the file no longer exists
        """
        if not root_directory or not root_directory.strip():
            absolute_path = relative_path
        else:
            absolute_path = os.path.join(root_directory, relative_path)

        try:
            size = os.stat(absolute_path).st_size
        except (FileNotFoundError, NotADirectoryError):
            self.logger.debug("File vanished before it could be added: {}".format(absolute_path))
            return None
        except PermissionError:
            self.logger.warning("Skipping file that cannot be accessed: {}".format(absolute_path))
            return None
        if not os.path.isfile(absolute_path):
            return None

        file_hash = None
        if algorithm is not None:
            file_hash = self._checksum_generator(algorithm).compute_file_checksum(absolute_path)

        return ManifestEntry(file=relative_path, size=size, hash=file_hash, remote=remote)

    def build_manifest(
        self,
        directory: str,
        algorithm: Optional[str] = None,
        description: Optional[str] = None,
        exclude_prefixes: Iterable[str] = (),
        skip_files_larger_than: int = -1,
    ) -> Manifest:
        """
        Create a manifest of every file under directory.

        Entry paths are the absolute paths with the directory prefix removed.
        See calculate_hashes() for skip_files_larger_than.
        """
        # Discovery yields absolute paths, so strip an absolute, separator-terminated prefix
        root = os.path.join(os.path.abspath(directory), "")
        self.logger.info("Building manifest for {} (algorithm={})".format(root, algorithm))

        entries = []
        for file_path in self.discover(root, exclude_prefixes):
            relative_path = file_path[len(root):] if file_path.startswith(root) else file_path
            entry = self.create_entry(root, relative_path)
            if entry is None:
                continue
            entries.append(entry)

        manifest = Manifest(
            description=description,
            hash_algorithm=algorithm,
            timestamp_utc=datetime.now(timezone.utc),
            contents=entries,
        )
        if manifest.hash_algorithm is not None:
            self.calculate_hashes(manifest, root, skip_files_larger_than)

        self.logger.info(
            "Built manifest {} with {} entries ({} bytes)".format(manifest.id, len(entries), manifest.total_size)
        )
        return manifest

    def add_files(self, manifest: Manifest, files: Iterable[str], remote: Optional[str] = None) -> list[ManifestEntry]:
        """
        Append entries for files given by absolute path.

        Files that no longer exist are skipped. Use find_common_ancestor()
        afterwards to make the paths relative.

        Returns:
            The entries that were added
        """
        added = []
        for file_path in files:
            entry = self.create_entry(None, file_path, remote, manifest.hash_algorithm)
            if entry is not None:
                added.append(entry)
        manifest.contents.extend(added)
        self.logger.debug("Added {} entries to manifest {}".format(len(added), manifest.id))
        return added

    def calculate_hashes(self, manifest: Manifest, root_directory: str, skip_files_larger_than: int = -1):
        """
        (Re)compute the hash of every entry in parallel, blocking until all are done.

        Args:
            manifest: Manifest whose entries are updated in place
            root_directory: Directory the entry paths are relative to
            skip_files_larger_than: Leave entries larger than this many bytes untouched (<= 0 = no limit)

        Raises:
            ChecksumError: If reading any file failed after it was opened
        """
        generator = self._checksum_generator(manifest.hash_algorithm)

        def hash_entry(entry: ManifestEntry):
            absolute_path = os.path.join(root_directory, entry.file)
            if skip_files_larger_than > 0 and entry.size > skip_files_larger_than:
                self.logger.debug("Not hashing {} ({} bytes)".format(absolute_path, entry.size))
                return
            entry.hash = generator.compute_file_checksum(absolute_path)

        with ThreadPoolExecutor(max_workers=self._worker_count(), thread_name_prefix="manifest-hash") as executor:
            futures = [executor.submit(hash_entry, entry) for entry in manifest.contents]
        # The executor has drained, re-raise the first failure if any
        for future in futures:
            future.result()
