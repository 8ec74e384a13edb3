# Copyright 2017, Inderpreet Singh, All rights reserved.

import hashlib
import logging
import os
import sys


class TestUtils:
    @staticmethod
    def create_logger(name: str) -> logging.Logger:
        """
        Debug logger that prints to stdout, for tests that pass a base logger around
        :param name:
        :return:
        """
        logger = logging.getLogger(name)
        if not logger.handlers:
            handler = logging.StreamHandler(sys.stdout)
            handler.setFormatter(logging.Formatter("%(asctime)s - %(levelname)s - %(name)s - %(message)s"))
            logger.addHandler(handler)
        logger.setLevel(logging.DEBUG)
        return logger

    @staticmethod
    def write_file(path: str, content: bytes) -> str:
        """
        Write content to path, creating parent directories as needed
        :param path:
        :param content:
        :return: the path
        """
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "wb") as f:
            f.write(content)
        return path

    @staticmethod
    def write_tree(root: str, files: dict[str, bytes]):
        """
        Write a tree of files given as relative path -> content
        :param root:
        :param files:
        :return:
        """
        for relative_path, content in files.items():
            TestUtils.write_file(os.path.join(root, *relative_path.split("/")), content)

    @staticmethod
    def sha256(content: bytes) -> str:
        return hashlib.sha256(content).hexdigest()
