# Copyright 2024, Manifesto Contributors, All rights reserved.

import logging
from abc import ABC, abstractmethod
from typing import Type, TypeVar

from .error import AppError


class PersistError(AppError):
    """
    Exception indicating persist loading/saving error
    """

    pass


T_Persist = TypeVar("T_Persist", bound="Persist")


class Persist(ABC):
    """
    Defines state that should be persisted between runs
    Provides utility methods to persist/load content to/from file
    Concrete implementations need to implement the from_str() and
    to_str() functionality
    """

    @classmethod
    def from_file(cls: Type[T_Persist], file_path: str) -> T_Persist:
        with open(file_path, "r", encoding="utf-8") as f:
            return cls.from_str(f.read())

    def to_file(self, file_path: str):
        with open(file_path, "w", encoding="utf-8") as f:
            f.write(self.to_str())

    @classmethod
    def try_from_file(cls: Type[T_Persist], file_path: str, logger: logging.Logger | None = None) -> T_Persist | None:
        """
        Load from file, reporting failure as a None return
        The cause is logged, never raised
        :param file_path:
        :param logger:
        :return:
        """
        logger = logger or logging.getLogger(cls.__name__)
        try:
            return cls.from_file(file_path)
        except (PersistError, OSError, UnicodeDecodeError) as e:
            logger.warning("Failed to load {} from {}: {}".format(cls.__name__, file_path, str(e)))
            return None

    def try_to_file(self, file_path: str, logger: logging.Logger | None = None) -> bool:
        """
        Save to file, reporting failure as a False return
        The cause is logged, never raised
        :param file_path:
        :param logger:
        :return:
        """
        logger = logger or logging.getLogger(self.__class__.__name__)
        try:
            self.to_file(file_path)
            return True
        except (PersistError, OSError) as e:
            logger.warning("Failed to save {} to {}: {}".format(self.__class__.__name__, file_path, str(e)))
            return False

    @classmethod
    @abstractmethod
    def from_str(cls: Type[T_Persist], content: str) -> T_Persist:
        pass

    @abstractmethod
    def to_str(self) -> str:
        pass
