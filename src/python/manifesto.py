# Copyright 2024, Manifesto Contributors, All rights reserved.

import signal
import sys
import argparse
import os
import logging
from datetime import datetime
import shutil

# my libs
from common import ServiceExit, Context, Constants, Config, Args, ConfigError, PersistError
from common import overrides, ProgressSnapshot
from common.log_manager import LogManager, log_with_context
from manifest import ManifestBuilder, ManifestPersist, ManifestValidator, IValidatorListener
from manifest import ChecksumError, is_supported_algorithm
from system import SystemScannerError


class ProgressLogger(IValidatorListener):
    """
    Logs validation progress every time it advances by a step percent
    """

    def __init__(self, logger: logging.Logger, step_percent: int):
        self.logger = logger
        self.step_percent = step_percent
        self.__last_step = 0

    @overrides(IValidatorListener)
    def on_validation_started(self):
        self.logger.info("Validation started")

    @overrides(IValidatorListener)
    def on_validation_stopped(self):
        self.logger.info("Validation stopped")

    @overrides(IValidatorListener)
    def on_validation_progress(self, progress: ProgressSnapshot):
        step = int(progress.percent_complete * 100) // self.step_percent
        if step > self.__last_step:
            self.__last_step = step
            self.logger.info(
                "Validated {}/{} files ({:.0%}), {} failed".format(
                    progress.processed, progress.total, progress.percent_complete, progress.failed
                )
            )

    @overrides(IValidatorListener)
    def on_validation_completed(self):
        self.logger.info("Validation completed")


class Manifesto:
    """
    Command line front end: create and verify manifests
    It is run in the main thread
    """

    __FILE_CONFIG = "settings.cfg"

    EXIT_SUCCESS = 0
    EXIT_FAILURE = 1
    EXIT_BAD_MANIFEST = 2
    EXIT_INTERRUPTED = 130

    # This logger is used to print any exceptions caught at top module
    logger: logging.Logger | None = None

    def __init__(self, argv: list[str] | None = None):
        # Parse the args
        args = self._parse_args(sys.argv[1:] if argv is None else argv)
        self.args = args

        # Create/load config
        config = Manifesto._load_config(args.config_dir)

        # Determine the true value of debug and json logs
        is_debug = args.debug or config.general.debug
        use_json = args.json_logs or config.general.json_logs

        # Create context args
        ctx_args = Args()
        ctx_args.config_dir = args.config_dir
        ctx_args.log_dir = args.logdir
        ctx_args.debug = is_debug
        ctx_args.json_logs = use_json
        ctx_args.command = args.command

        LogManager.initialize(
            log_dir=args.logdir,
            log_level=config.general.log_level,
            debug=is_debug,
            use_json=use_json,
        )
        logger = LogManager.get_main_logger()
        Manifesto.logger = logger
        logger.info("Debug mode is {}.".format("enabled" if is_debug else "disabled"))

        self.context = Context(logger=logger, config=config, args=ctx_args)

        # Register the signal handlers
        signal.signal(signal.SIGTERM, self.signal)
        signal.signal(signal.SIGINT, self.signal)

        # Print context to log
        self.context.print_to_log()

    def run(self) -> int:
        if self.args.command == "create":
            return self.create()
        return self.verify()

    def create(self) -> int:
        logger = self.context.logger
        hashing = self.context.config.hashing

        algorithm = self.args.algorithm if self.args.algorithm is not None else hashing.algorithm
        if algorithm and not is_supported_algorithm(algorithm):
            logger.warning("Hash algorithm {} is not supported, files will not be hashed".format(algorithm))
        exclude_prefixes = ["."] if (self.args.exclude_hidden or hashing.exclude_hidden) else []

        builder = ManifestBuilder(num_workers=hashing.num_workers, buffer_size=hashing.buffer_size)
        builder.set_base_logger(logger)
        try:
            manifest = builder.build_manifest(
                self.args.directory,
                algorithm=algorithm or None,
                description=self.args.description,
                exclude_prefixes=exclude_prefixes,
                skip_files_larger_than=hashing.skip_files_larger_than,
            )
        except (SystemScannerError, ChecksumError) as e:
            logger.error("Failed to build manifest: {}".format(str(e)))
            return Manifesto.EXIT_FAILURE

        if ManifestPersist(manifest).try_to_file(self.args.output, logger):
            logger.info("Manifest serialized successfully to {}".format(self.args.output))
            return Manifesto.EXIT_SUCCESS
        logger.error("Manifest serialized unsuccessfully")
        return Manifesto.EXIT_FAILURE

    def verify(self) -> int:
        logger = self.context.logger
        config = self.context.config

        persist = ManifestPersist.try_from_file(self.args.manifest, logger)
        if persist is None:
            logger.error("Could not load manifest {}".format(self.args.manifest))
            return Manifesto.EXIT_BAD_MANIFEST
        manifest = persist.manifest
        logger.info(
            "Loaded manifest {} ({} files, algorithm={})".format(
                manifest.id, len(manifest.contents), manifest.hash_algorithm
            )
        )

        validator = ManifestValidator(
            manifest, os.path.abspath(self.args.directory), buffer_size=config.hashing.buffer_size
        )
        validator.set_base_logger(logger)
        validator.add_listener(ProgressLogger(logger, config.validation.progress_step_percent))
        validator.start()
        try:
            while not validator.wait(Constants.MAIN_THREAD_SLEEP_INTERVAL_IN_SECS):
                pass
        except ServiceExit:
            validator.stop()
            validator.wait()
            logger.info("Validation paused at {:.2%}".format(validator.percent_complete))
            raise

        results = validator.results()
        num_failed = 0
        for result in results:
            if result.is_valid:
                continue
            num_failed += 1
            if result.is_missing:
                logger.warning("Missing: {}".format(result.entry.file))
            elif result.error_message:
                logger.warning("Error: {} ({})".format(result.entry.file, result.error_message))
            else:
                logger.warning("Mismatch: {}".format(result.entry.file))

        log_with_context(
            logger, logging.INFO,
            "{} of {} files are valid".format(len(results) - num_failed, len(results)),
            manifest_id=manifest.id, total=len(results), failed=num_failed,
        )
        return Manifesto.EXIT_SUCCESS if num_failed == 0 else Manifesto.EXIT_FAILURE

    def signal(self, signum: int, _):
        self.context.logger.info("Caught signal {}".format(signal.Signals(signum).name))
        raise ServiceExit()

    @staticmethod
    def _parse_args(args):
        parser = argparse.ArgumentParser(description="Create and verify file manifests")
        parser.add_argument("-c", "--config_dir", help="Path to config directory")
        parser.add_argument("--logdir", help="Directory for log files")
        parser.add_argument("-d", "--debug", action="store_true", help="Enable debug logs")
        parser.add_argument("--json-logs", action="store_true", help="Write log records as JSON objects")

        subparsers = parser.add_subparsers(dest="command", required=True)

        create_parser = subparsers.add_parser("create", help="Create a manifest of a directory")
        create_parser.add_argument("directory", help="Directory to create the manifest of")
        create_parser.add_argument("-o", "--output", required=True, help="Path of the manifest file to write")
        create_parser.add_argument("-a", "--algorithm", help="Hash algorithm (default from config)")
        create_parser.add_argument("-m", "--description", help="Description of the manifest")
        create_parser.add_argument(
            "--exclude-hidden", action="store_true", help="Skip files and directories starting with '.'"
        )

        verify_parser = subparsers.add_parser("verify", help="Verify a directory against a manifest")
        verify_parser.add_argument("manifest", help="Path of the manifest file")
        verify_parser.add_argument("directory", help="Directory the manifest entries are relative to")

        return parser.parse_args(args)

    @staticmethod
    def _create_default_config() -> Config:
        """
        Create a config with default values
        :return:
        """
        config = Config()

        config.general.debug = False
        config.general.json_logs = False
        config.general.log_level = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL

        config.hashing.algorithm = "sha256"
        config.hashing.buffer_size = Constants.DEFAULT_HASH_BUFFER_SIZE
        config.hashing.num_workers = 0
        config.hashing.skip_files_larger_than = 0
        config.hashing.exclude_hidden = False

        config.validation.progress_step_percent = 10

        return config

    @staticmethod
    def _load_config(config_dir: str | None) -> Config:
        """
        Load settings.cfg from config_dir, creating it with defaults when missing.
        A config that fails to load is backed up and replaced.
        Without a config dir the defaults are used and nothing is written.
        """
        if config_dir is None:
            return Manifesto._create_default_config()

        config_path = os.path.join(config_dir, Manifesto.__FILE_CONFIG)
        if os.path.isfile(config_path):
            try:
                return Config.from_file(config_path)
            except (ConfigError, PersistError):
                Manifesto.__backup_file(config_path)
        os.makedirs(config_dir, exist_ok=True)
        config = Manifesto._create_default_config()
        config.to_file(config_path)
        return config

    @staticmethod
    def __backup_file(file_path: str):
        """Back up file to a backups/ subdirectory with timestamp, keeping last 10."""
        file_name = os.path.basename(file_path)
        backup_dir = os.path.join(os.path.dirname(file_path), "backups")
        os.makedirs(backup_dir, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
        backup_path = os.path.join(backup_dir, "{}.{}.bak".format(file_name, timestamp))
        shutil.copy(file_path, backup_path)
        prefix = file_name + "."
        existing = sorted([f for f in os.listdir(backup_dir) if f.startswith(prefix) and f.endswith(".bak")])
        for old in existing[:-10]:
            os.remove(os.path.join(backup_dir, old))


if __name__ == "__main__":
    if sys.hexversion < 0x030B0000:
        sys.exit("Python 3.11 or newer is required to run this program.")

    try:
        manifesto = Manifesto()
        exit_code = manifesto.run()
    except ServiceExit:
        exit_code = Manifesto.EXIT_INTERRUPTED
    except Exception:
        if Manifesto.logger:
            Manifesto.logger.exception("Caught exception")
        raise

    if Manifesto.logger:
        Manifesto.logger.info("Exited with code {}".format(exit_code))
    sys.exit(exit_code)
