# Copyright 2024, Manifesto Contributors, All rights reserved.

"""
Checksum generation for manifest entries.

This module provides:
- Resolution of free-form algorithm names (hashlib and xxhash)
- Streaming, fixed-buffer digest computation of a local file
"""

import hashlib
import logging
import os
from typing import Callable, Optional

import xxhash

from common import AppError, Constants


class ChecksumError(AppError):
    """Exception raised when reading a file fails part way through hashing."""

    pass


# Maps a normalized algorithm name to a factory for a streaming hasher.
# Every hasher exposes update() and hexdigest().
_ALGORITHMS: dict[str, Callable] = {
    "md5": hashlib.md5,
    "sha1": hashlib.sha1,
    "sha224": hashlib.sha224,
    "sha256": hashlib.sha256,
    "sha384": hashlib.sha384,
    "sha512": hashlib.sha512,
    "sha3_256": hashlib.sha3_256,
    "sha3_512": hashlib.sha3_512,
    "blake2b": hashlib.blake2b,
    "blake2s": hashlib.blake2s,
    "xxh32": xxhash.xxh32,
    "xxh64": xxhash.xxh64,
    "xxh3_64": xxhash.xxh3_64,
    "xxh128": xxhash.xxh3_128,
}


def _normalize_algorithm_name(name: str) -> str:
    # "SHA-256" and "sha256" name the same algorithm
    return name.strip().lower().replace("-", "")


def get_hasher_factory(algorithm: Optional[str]) -> Optional[Callable]:
    """
    Look up the hasher factory for an algorithm name.

    Returns:
        Factory callable, or None if the name is empty or not recognized
    """
    if not algorithm:
        return None
    return _ALGORITHMS.get(_normalize_algorithm_name(algorithm))


def is_supported_algorithm(algorithm: Optional[str]) -> bool:
    return get_hasher_factory(algorithm) is not None


def supported_algorithms() -> list[str]:
    return sorted(_ALGORITHMS.keys())


class ChecksumGenerator:
    """Generate digests for local files."""

    def __init__(self, algorithm: Optional[str], buffer_size: int = Constants.DEFAULT_HASH_BUFFER_SIZE):
        if buffer_size <= 0:
            raise ValueError("buffer_size must be positive")
        self.algorithm = algorithm
        self.buffer_size = buffer_size
        self.logger = logging.getLogger(self.__class__.__name__)

    def set_base_logger(self, base_logger: logging.Logger):
        self.logger = base_logger.getChild(self.__class__.__name__)

    def compute_file_checksum(self, file_path: str) -> Optional[str]:
        """
        Compute the digest of an entire local file.

        Args:
            file_path: Path to the file

        Returns:
            Lowercase hexadecimal digest, or None if hashing was skipped
            (unknown algorithm, missing file, or file that cannot be opened)

        Raises:
            ChecksumError: If reading fails after the file was opened
        """
        factory = get_hasher_factory(self.algorithm)
        if factory is None:
            self.logger.debug(f"Skipping {file_path}: unsupported algorithm {self.algorithm!r}")
            return None
        if not os.path.isfile(file_path):
            self.logger.debug(f"Skipping {file_path}: file not found")
            return None

        try:
            f = open(file_path, "rb")
        except OSError as e:
            # Most likely the file is locked or not readable by us
            self.logger.debug(f"Skipping {file_path}: cannot open ({e})")
            return None

        hasher = factory()
        buffer = bytearray(self.buffer_size)
        view = memoryview(buffer)
        try:
            with f:
                while True:
                    num_read = f.readinto(buffer)
                    if not num_read:
                        break
                    # The last read is usually short, only hash what was read
                    hasher.update(view[:num_read])
        except OSError as e:
            raise ChecksumError(f"Error reading file {file_path}: {e}") from e
        return hasher.hexdigest()


def compute_file_checksum(
    algorithm: Optional[str], file_path: str, buffer_size: int = Constants.DEFAULT_HASH_BUFFER_SIZE
) -> Optional[str]:
    """Convenience wrapper around ChecksumGenerator.compute_file_checksum()."""
    return ChecksumGenerator(algorithm, buffer_size).compute_file_checksum(file_path)
