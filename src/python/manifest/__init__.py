# Copyright 2024, Manifesto Contributors, All rights reserved.

from .checksum import (
    ChecksumError,
    ChecksumGenerator,
    compute_file_checksum,
    is_supported_algorithm,
    supported_algorithms,
)
from .ancestor import ManifestStructureError, common_ancestor, find_common_ancestor, set_relative_path
from .builder import ManifestBuilder
from .validator import IValidatorListener, ManifestValidator, ValidatorStateError
from .manifest_persist import ManifestPersist
