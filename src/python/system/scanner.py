# Copyright 2024, Manifesto Contributors, All rights reserved.

import logging
import os
from typing import Iterator

from common import AppError


class SystemScannerError(AppError):
    """
    Exception indicating failure to scan the file system
    """

    pass


class SystemScanner:
    """
    Lazily enumerates the files under a root directory

    Files of a directory are yielded before descending into its
    subdirectories. Both are visited in name order so that repeated
    scans of an unchanged tree produce the same sequence.
    """

    def __init__(self, path_to_scan: str):
        self.path_to_scan = path_to_scan
        self.exclude_prefixes: list[str] = []
        self.logger = logging.getLogger("SystemScanner")

    def set_base_logger(self, base_logger: logging.Logger):
        self.logger = base_logger.getChild("SystemScanner")

    def add_exclude_prefix(self, prefix: str):
        """
        Exclude files and directories whose name starts with prefix
        :param prefix:
        :return:
        """
        self.exclude_prefixes.append(prefix)

    def iter_files(self) -> Iterator[str]:
        """
        Returns a lazy iterator over the absolute path of every file under the root
        The root is checked eagerly, the tree itself is walked on demand
        :return:
        """
        if not os.path.isdir(self.path_to_scan):
            raise SystemScannerError("Path does not exist or is not a directory: {}".format(self.path_to_scan))
        return self.__iter_dir(os.path.abspath(self.path_to_scan))

    def __iter_dir(self, dir_path: str) -> Iterator[str]:
        try:
            with os.scandir(dir_path) as it:
                children = sorted(it, key=lambda e: e.name)
        except OSError as e:
            # Directory vanished or became unreadable since its parent was listed
            self.logger.warning("Skipping directory {}: {}".format(dir_path, str(e)))
            return

        sub_dirs = []
        for entry in children:
            if self.__is_excluded(entry.name):
                continue
            try:
                if entry.is_dir():
                    sub_dirs.append(entry.path)
                elif entry.is_file():
                    yield entry.path
            except OSError as e:
                self.logger.warning("Skipping {}: {}".format(entry.path, str(e)))

        for sub_dir in sub_dirs:
            yield from self.__iter_dir(sub_dir)

    def __is_excluded(self, name: str) -> bool:
        return any(name.startswith(prefix) for prefix in self.exclude_prefixes)
