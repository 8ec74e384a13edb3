# Copyright 2024, Manifesto Contributors, All rights reserved.

"""
Manifest models for file integrity verification.

This module provides data classes for manifests, their entries,
and the results and progress reported while validating them.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None or not value.strip():
        return None
    return value


@dataclass
class ManifestEntry:
    """
    Represents a single file within a manifest.

    Attributes:
        file: Location of the file, relative to the manifest root once finalized
        size: Size of the file in bytes
        hash: Lowercase hex digest of the file, None if hashing was skipped
        remote: Remote location where the file can be obtained (usually a URL)
    """

    file: str
    size: int = 0
    hash: Optional[str] = None
    remote: Optional[str] = None

    def __post_init__(self):
        if not self.file or not self.file.strip():
            raise ValueError("Manifest entry file path cannot be empty")
        if self.size < 0:
            raise ValueError("Manifest entry size must be zero or greater")
        # Empty values are never persisted, so keep them as None in memory too
        self.hash = _blank_to_none(self.hash)
        self.remote = _blank_to_none(self.remote)


@dataclass
class Manifest:
    """
    A named, ordered collection of files with their digests.

    Attributes:
        id: Unique identifier of the manifest
        description: Free-text description
        hash_algorithm: Name of the algorithm used to compute entry hashes
        timestamp_utc: When the manifest was created or modified (UTC)
        contents: Entries, in the order they were added
    """

    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    description: Optional[str] = None
    hash_algorithm: Optional[str] = None
    timestamp_utc: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    contents: list[ManifestEntry] = field(default_factory=list)

    def __post_init__(self):
        self.description = _blank_to_none(self.description)
        self.hash_algorithm = _blank_to_none(self.hash_algorithm)

    @property
    def total_size(self) -> int:
        """Returns the sum of all entry sizes in bytes."""
        return sum(e.size for e in self.contents)


@dataclass(frozen=True)
class ValidationResult:
    """
    Outcome of validating one manifest entry.

    Attributes:
        entry: The entry that was validated
        is_valid: True if the file exists and its hash matches the recorded hash
        file_location: Absolute path that was checked, empty if the file was not found
        error_message: Reason hashing failed, if it failed unexpectedly
    """

    entry: ManifestEntry
    is_valid: bool
    file_location: str = ""
    error_message: Optional[str] = None

    @property
    def is_missing(self) -> bool:
        return not self.file_location


@dataclass(frozen=True)
class ProgressSnapshot:
    """Point-in-time counts of a validation run."""

    processed: int
    remaining: int
    passed: int
    failed: int

    @property
    def total(self) -> int:
        return self.processed + self.remaining

    @property
    def percent_complete(self) -> float:
        """Returns validation progress from 0.0 to 1.0."""
        if self.total == 0:
            return 0.0
        return self.processed / self.total


class ValidatorState(Enum):
    """Lifecycle state of a manifest validator."""

    IDLE = 0  # Constructed, never started
    RUNNING = 1
    PAUSED = 2  # Stopped before completion, can be resumed
    COMPLETED = 3  # Terminal
