# Copyright 2024, Manifesto Contributors, All rights reserved.

"""
Resumable background validation of a manifest against a local directory.

The validator re-hashes every entry on a single worker thread, one entry
at a time, and reports progress to registered listeners. It can be
stopped and resumed any number of times until it completes.

Stopping is only honoured between entries: the entry being hashed when
stop() is called is always finished first, so a very large or stalled
read delays the pause by up to one entry.
"""

import collections
import logging
import os
import threading
from abc import ABC, abstractmethod
from typing import Optional

from common import (
    AppError,
    Constants,
    Manifest,
    ManifestEntry,
    ProgressSnapshot,
    ValidationResult,
    ValidatorState,
)

from .checksum import ChecksumGenerator


class ValidatorStateError(AppError):
    """Exception raised when an operation is not allowed in the validator's current state."""

    pass


class IValidatorListener(ABC):
    """
    Receives validation notifications

    Callbacks run on the validator's worker thread, outside of its lock,
    so they may query or stop the validator.
    """

    @abstractmethod
    def on_validation_started(self):
        """Validation was started or resumed"""
        pass

    @abstractmethod
    def on_validation_stopped(self):
        """Validation was paused before completing"""
        pass

    @abstractmethod
    def on_validation_progress(self, progress: ProgressSnapshot):
        """An entry was processed"""
        pass

    @abstractmethod
    def on_validation_completed(self):
        """Every entry was processed, results are available"""
        pass


class ManifestValidator:
    """
    Verifies that the files of a manifest still match their recorded hashes.

    States: IDLE -> RUNNING <-> PAUSED, RUNNING -> COMPLETED (terminal).

    Entries move from the pending queue to the processed list, in manifest
    order, only once their result has been computed. The queue, the processed
    list, the results and the flags are guarded by one lock.
    """

    def __init__(
        self,
        manifest: Manifest,
        local_directory: str,
        buffer_size: int = Constants.DEFAULT_HASH_BUFFER_SIZE,
    ):
        self.__manifest = manifest
        self.__local_directory = local_directory
        self.__checksum = ChecksumGenerator(manifest.hash_algorithm, buffer_size=buffer_size)
        self.logger = logging.getLogger(self.__class__.__name__)

        self.__lock = threading.Lock()
        self.__listeners: list[IValidatorListener] = []

        self.__pending: collections.deque[ManifestEntry] = collections.deque()
        self.__processed: list[ManifestEntry] = []
        self.__results: list[ValidationResult] = []
        self.__results_snapshot: Optional[tuple[ValidationResult, ...]] = None
        self.__num_passed = 0
        self.__num_failed = 0

        self.__populated = False
        self.__running = False
        self.__completed = False
        # Set when start() is called before a stopping worker reached its boundary
        self.__announce_resume = False
        # Thread that currently owns the pending queue, None when halted
        self.__worker: Optional[threading.Thread] = None
        # Most recently launched thread, used by wait()
        self.__last_thread: Optional[threading.Thread] = None

    def set_base_logger(self, base_logger: logging.Logger):
        self.logger = base_logger.getChild(self.__class__.__name__)
        self.__checksum.set_base_logger(self.logger)

    def add_listener(self, listener: IValidatorListener):
        with self.__lock:
            self.__listeners.append(listener)

    def remove_listener(self, listener: IValidatorListener):
        with self.__lock:
            if listener in self.__listeners:
                self.__listeners.remove(listener)

    @property
    def manifest(self) -> Manifest:
        return self.__manifest

    @property
    def local_directory(self) -> str:
        return self.__local_directory

    @property
    def state(self) -> ValidatorState:
        with self.__lock:
            if self.__completed:
                return ValidatorState.COMPLETED
            if self.__running:
                return ValidatorState.RUNNING
            if self.__populated:
                return ValidatorState.PAUSED
            return ValidatorState.IDLE

    @property
    def is_running(self) -> bool:
        with self.__lock:
            return self.__running

    @property
    def is_completed(self) -> bool:
        with self.__lock:
            return self.__completed

    @property
    def progress(self) -> ProgressSnapshot:
        with self.__lock:
            return self.__snapshot()

    @property
    def percent_complete(self) -> float:
        """Returns validation progress from 0.0 to 1.0."""
        return self.progress.percent_complete

    def results(self) -> tuple[ValidationResult, ...]:
        """
        Results for every entry, in manifest order.

        Raises:
            ValidatorStateError: If validation has not completed
        """
        with self.__lock:
            if not self.__completed:
                raise ValidatorStateError("Validation results are unavailable until the process has completed")
            if self.__results_snapshot is None:
                self.__results_snapshot = tuple(self.__results)
            return self.__results_snapshot

    def start(self):
        """
        Start or resume validation in the background and return immediately.

        Raises:
            ValidatorStateError: If validation is running or has completed
        """
        with self.__lock:
            if self.__completed:
                raise ValidatorStateError("The validation process has already completed")
            if self.__running:
                raise ValidatorStateError("The validation process is currently running")

            self.__running = True
            if not self.__populated:
                self.__pending.extend(self.__manifest.contents)
                self.__populated = True
                self.logger.info(
                    "Starting validation of {} entries against {}".format(len(self.__pending), self.__local_directory)
                )

            if self.__worker is not None:
                # The worker was asked to stop but is still finishing an entry.
                # It will see the running flag again at its next boundary.
                self.__announce_resume = True
                return

            previous = self.__last_thread
            thread = threading.Thread(
                target=self.__run, args=(previous,), name="ManifestValidator", daemon=True
            )
            self.__worker = thread
            self.__last_thread = thread
            thread.start()

    def stop(self):
        """
        Ask the worker to pause at its next entry boundary. No-op unless running.
        """
        with self.__lock:
            if not self.__running:
                return
            self.__running = False
            self.logger.info("Stopping validation at {:.2%}".format(self.__snapshot().percent_complete))

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Block until the worker has stopped or completed.

        Returns:
            False if the timeout expired first
        """
        with self.__lock:
            thread = self.__last_thread
        if thread is None:
            return True
        thread.join(timeout)
        return not thread.is_alive()

    def __run(self, previous: Optional[threading.Thread]):
        if previous is not None:
            # Let the previous worker deliver its "stopped" notification first
            previous.join()
        self.__notify(lambda listener: listener.on_validation_started())

        while True:
            with self.__lock:
                if not self.__pending:
                    # Only reachable for a manifest without entries
                    self.__mark_completed()
                    break
                if not self.__running:
                    self.__worker = None
                    self.__announce_resume = False
                    break
                announce_resume = self.__announce_resume
                self.__announce_resume = False
                entry = self.__pending[0]

            if announce_resume:
                self.__notify(lambda listener: listener.on_validation_started())

            result = self.__validate_entry(entry)

            with self.__lock:
                self.__processed.append(self.__pending.popleft())
                self.__results.append(result)
                if result.is_valid:
                    self.__num_passed += 1
                else:
                    self.__num_failed += 1
                snapshot = self.__snapshot()
                if not self.__pending:
                    self.__mark_completed()

            self.__notify(lambda listener: listener.on_validation_progress(snapshot))
            if snapshot.remaining == 0:
                break

        if self.is_completed:
            self.logger.info(
                "Validation completed: {} passed, {} failed".format(self.__num_passed, self.__num_failed)
            )
            self.__notify(lambda listener: listener.on_validation_completed())
        else:
            self.logger.info("Validation stopped with {} entries remaining".format(len(self.__pending)))
            self.__notify(lambda listener: listener.on_validation_stopped())

    def __mark_completed(self):
        # Caller holds the lock
        self.__running = False
        self.__completed = True
        self.__worker = None

    def __snapshot(self) -> ProgressSnapshot:
        # Caller holds the lock
        return ProgressSnapshot(
            processed=len(self.__processed),
            remaining=len(self.__pending),
            passed=self.__num_passed,
            failed=self.__num_failed,
        )

    def __validate_entry(self, entry: ManifestEntry) -> ValidationResult:
        local_path = os.path.join(self.__local_directory, entry.file)
        if not os.path.isfile(local_path):
            self.logger.warning("Validation FAILED for {}: file not found".format(entry.file))
            return ValidationResult(entry=entry, is_valid=False, file_location="")

        try:
            local_hash = self.__checksum.compute_file_checksum(local_path)
        except Exception as e:
            self.logger.error("Validation error for {}: {}".format(entry.file, str(e)))
            return ValidationResult(entry=entry, is_valid=False, file_location=local_path, error_message=str(e))

        # A manifest without hashes only checks that the files exist
        if local_hash == entry.hash:
            self.logger.debug("Validation PASSED for {}".format(entry.file))
            return ValidationResult(entry=entry, is_valid=True, file_location=local_path)
        self.logger.warning(
            "Validation FAILED for {}: recorded={} local={}".format(entry.file, entry.hash, local_hash)
        )
        return ValidationResult(entry=entry, is_valid=False, file_location=local_path)

    def __notify(self, callback):
        with self.__lock:
            listeners = list(self.__listeners)
        for listener in listeners:
            try:
                callback(listener)
            except Exception:
                self.logger.exception("Caught exception in validation listener")
