# Copyright 2017, Inderpreet Singh, All rights reserved.

from .types import overrides
from .context import Context, Args
from .error import AppError, ServiceExit
from .constants import Constants
from .config import Config, ConfigError
from .persist import Persist, PersistError
from .manifest_models import (
    Manifest,
    ManifestEntry,
    ValidationResult,
    ProgressSnapshot,
    ValidatorState,
)
