# Copyright 2017, Inderpreet Singh, All rights reserved.

import configparser
from io import StringIO
import collections
from abc import ABC
from typing import Type, TypeVar, Callable, Any

from .error import AppError
from .persist import Persist, PersistError
from .types import overrides


_TRUE_STRINGS = ("y", "yes", "t", "true", "on", "1")
_FALSE_STRINGS = ("n", "no", "f", "false", "off", "0")


def strtobool(val: str) -> bool:
    """
    Convert an ini-style truth string ('yes', 'off', '1', ...) to a bool
    Raises ValueError for anything else
    """
    val = val.lower().strip()
    if val in _TRUE_STRINGS:
        return True
    if val in _FALSE_STRINGS:
        return False
    raise ValueError(f"Invalid boolean value: {val!r}")


class ConfigError(AppError):
    """
    Exception indicating a bad config value
    """

    pass


InnerConfigType = dict[str, Any]
OuterConfigType = dict[str, InnerConfigType]

T = TypeVar("T", bound="InnerConfig")


def _bad(cls: type, name: str, reason: str) -> ConfigError:
    return ConfigError("Bad config: {}.{} {}".format(cls.__name__, name, reason))


class Converters:
    """String -> native type conversions, applied only to str values"""

    @staticmethod
    def null(_: type[T], __: str, value: str) -> str:
        return value

    @staticmethod
    def int(cls: type[T], name: str, value: str) -> int:
        if not value:
            raise _bad(cls, name, "is empty")
        try:
            return int(value)
        except ValueError as e:
            raise _bad(cls, name, "({}) must be an integer value".format(value)) from e

    @staticmethod
    def bool(cls: type[T], name: str, value: str) -> bool:
        if not value:
            raise _bad(cls, name, "is empty")
        try:
            return strtobool(value)
        except ValueError as e:
            raise _bad(cls, name, "({}) must be a boolean value".format(value)) from e


class Checkers:
    """Boundary checks on native values, applied on every assignment"""

    @staticmethod
    def null(_: type[T], __: str, value: Any) -> Any:
        return value

    @staticmethod
    def string_nonempty(cls: type[T], name: str, value: str) -> str:
        if not value or not value.strip():
            raise _bad(cls, name, "is empty")
        return value

    @staticmethod
    def int_non_negative(cls: type[T], name: str, value: int) -> int:
        if value < 0:
            raise _bad(cls, name, "({}) must be zero or greater".format(value))
        return value

    @staticmethod
    def int_bounded(min_val: int, max_val: int) -> Callable:
        """Returns a checker enforcing min_val <= value <= max_val"""

        def _checker(cls: type[T], name: str, value: int) -> int:
            if not min_val <= value <= max_val:
                raise _bad(cls, name, "({}) must be between {} and {}".format(value, min_val, max_val))
            return value

        return _checker


class InnerConfig(ABC):
    """
    One section of the config file

    Each option is a property created with PROP(name, checker, converter).
    Assignments go through the checker; values read from a dict of strings
    are first passed through the converter.
    """

    class PropMetadata:
        def __init__(self, name: str, checker: Callable, converter: Callable):
            self.name = name
            self.checker = checker
            self.converter = converter

    # property -> metadata, in order of declaration across all sections
    __prop_registry: collections.OrderedDict[property, "InnerConfig.PropMetadata"] = collections.OrderedDict()

    @classmethod
    def _create_property(cls, name: str, checker: Callable, converter: Callable) -> property:
        # noinspection PyProtectedMember
        prop = property(fget=lambda s: s._get_property(name), fset=lambda s, v: s._set_property(name, v, checker))
        InnerConfig.__prop_registry[prop] = InnerConfig.PropMetadata(name, checker, converter)
        return prop

    @classmethod
    def _own_properties(cls) -> list["InnerConfig.PropMetadata"]:
        own = {getattr(cls, p) for p in dir(cls) if isinstance(getattr(cls, p), property)}
        return [meta for prop, meta in InnerConfig.__prop_registry.items() if prop in own]

    def _get_property(self, name: str) -> Any:
        return getattr(self, "__" + name, None)

    def _set_property(self, name: str, value: Any, checker: Callable):
        # None is only allowed as the initial unset value
        if value is None and self._get_property(name) is None:
            setattr(self, "__" + name, None)
        else:
            setattr(self, "__" + name, checker(self.__class__, name, value))

    @classmethod
    def from_dict(cls: Type[T], config_dict: InnerConfigType) -> T:
        """
        Build a section from a dict of native or string values
        Every option must be present and no unknown option is allowed
        """
        remaining = dict(config_dict)
        inner_config = cls()
        for meta in cls._own_properties():
            if meta.name not in remaining:
                raise ConfigError("Missing config: {}.{}".format(cls.__name__, meta.name))
            inner_config.set_property(meta.name, remaining.pop(meta.name))
        if remaining:
            raise ConfigError("Unknown config: {}.{}".format(cls.__name__, next(iter(remaining))))
        return inner_config

    def as_dict(self) -> InnerConfigType:
        """Options in declaration order, as native values"""
        config_dict = collections.OrderedDict()
        for meta in self._own_properties():
            config_dict[meta.name] = getattr(self, meta.name)
        return config_dict

    def set_property(self, name: str, value: Any):
        """
        Set an option by name, converting from str when necessary
        """
        cls = self.__class__
        meta = InnerConfig.__prop_registry[getattr(cls, name)]
        native_value = meta.converter(cls, name, value) if type(value) is str else value
        self._set_property(name, native_value, meta.checker)


# Useful aliases
IC = InnerConfig
# noinspection PyProtectedMember
PROP = InnerConfig._create_property


class Config(Persist):
    """
    Configuration registry
    """

    class General(IC):
        debug = PROP("debug", Checkers.null, Converters.bool)
        # Write log records as JSON objects
        json_logs = PROP("json_logs", Checkers.null, Converters.bool)
        # Log level: DEBUG, INFO, WARNING, ERROR, CRITICAL (ignored if debug=True)
        log_level = PROP("log_level", Checkers.string_nonempty, Converters.null)

        def __init__(self):
            super().__init__()
            self.debug = None
            self.json_logs = None
            self.log_level = None

    class Hashing(IC):
        # Algorithm name, e.g. sha256, md5, xxh128. Empty = skip hashing
        algorithm = PROP("algorithm", Checkers.null, Converters.null)
        # Read buffer size in bytes
        buffer_size = PROP("buffer_size", Checkers.int_bounded(1, 64 * 1024 * 1024), Converters.int)
        # Number of parallel hashing workers when building (0 = auto)
        num_workers = PROP("num_workers", Checkers.int_non_negative, Converters.int)
        # Leave files larger than this unhashed (0 = no limit)
        skip_files_larger_than = PROP("skip_files_larger_than", Checkers.int_non_negative, Converters.int)
        # Skip files and directories starting with "."
        exclude_hidden = PROP("exclude_hidden", Checkers.null, Converters.bool)

        def __init__(self):
            super().__init__()
            self.algorithm = None
            self.buffer_size = None
            self.num_workers = None
            self.skip_files_larger_than = None
            self.exclude_hidden = None

    class Validation(IC):
        # Log validation progress every time it advances by this many percent
        progress_step_percent = PROP("progress_step_percent", Checkers.int_bounded(1, 100), Converters.int)

        def __init__(self):
            super().__init__()
            self.progress_step_percent = None

    def __init__(self):
        self.general = Config.General()
        self.hashing = Config.Hashing()
        self.validation = Config.Validation()

    @staticmethod
    def _check_section(dct: OuterConfigType, name: str) -> InnerConfigType:
        if name not in dct:
            raise ConfigError("Missing config section: {}".format(name))
        val = dct[name]
        del dct[name]
        return val

    @staticmethod
    def _check_empty_outer_dict(dct: OuterConfigType):
        extra_keys = dct.keys()
        if extra_keys:
            raise ConfigError("Unknown section: {}".format(next(iter(extra_keys))))

    @classmethod
    @overrides(Persist)
    def from_str(cls, content: str) -> "Config":
        config_parser = configparser.ConfigParser()
        try:
            config_parser.read_string(content)
        except (configparser.MissingSectionHeaderError, configparser.ParsingError) as e:
            raise PersistError("Error parsing Config - {}: {}".format(type(e).__name__, str(e))) from e
        config_dict: dict[str, dict[str, str]] = {}
        for section in config_parser.sections():
            config_dict[section] = {}
            for option in config_parser.options(section):
                config_dict[section][option] = config_parser.get(section, option)
        return Config.from_dict(config_dict)

    @overrides(Persist)
    def to_str(self) -> str:
        config_parser = configparser.ConfigParser()
        config_dict = self.as_dict()
        for section in config_dict:
            config_parser.add_section(section)
            section_dict = config_dict[section]
            for key in section_dict:
                config_parser.set(section, key, str(section_dict[key]))
        str_io = StringIO()
        config_parser.write(str_io)
        return str_io.getvalue()

    @staticmethod
    def from_dict(config_dict: OuterConfigType) -> "Config":
        config_dict = dict(config_dict)  # copy that we can modify
        config = Config()

        config.general = Config.General.from_dict(Config._check_section(config_dict, "General"))
        config.hashing = Config.Hashing.from_dict(Config._check_section(config_dict, "Hashing"))
        config.validation = Config.Validation.from_dict(Config._check_section(config_dict, "Validation"))

        Config._check_empty_outer_dict(config_dict)
        return config

    def as_dict(self) -> OuterConfigType:
        # We convert all values back to strings
        # Use an ordered dict to main section order
        config_dict = collections.OrderedDict()
        config_dict["General"] = self.general.as_dict()
        config_dict["Hashing"] = self.hashing.as_dict()
        config_dict["Validation"] = self.validation.as_dict()
        return config_dict
