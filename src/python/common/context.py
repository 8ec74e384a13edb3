# Copyright 2017, Inderpreet Singh, All rights reserved.

import logging
import collections

# my libs
from .config import Config


class Args:
    """
    Command line settings that are not part of the config
    """

    def __init__(self):
        self.config_dir = None
        self.log_dir = None
        self.debug = None
        self.json_logs = None
        self.command = None

    def as_dict(self) -> dict:
        dct = collections.OrderedDict()
        dct["config_dir"] = str(self.config_dir)
        dct["log_dir"] = str(self.log_dir)
        dct["debug"] = str(self.debug)
        dct["json_logs"] = str(self.json_logs)
        dct["command"] = str(self.command)
        return dct


class Context:
    """
    Logger, config and args of one Manifesto run
    """

    def __init__(self, logger: logging.Logger, config: Config, args: Args):
        self.logger = logger
        self.config = config
        self.args = args

    def print_to_log(self):
        self.logger.debug("Config:")
        for section, options in self.config.as_dict().items():
            for option, value in options.items():
                self.logger.debug("  {}.{}: {}".format(section, option, value))

        self.logger.debug("Args:")
        for name, value in self.args.as_dict().items():
            self.logger.debug("  {}: {}".format(name, value))
