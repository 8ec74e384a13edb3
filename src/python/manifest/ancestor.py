# Copyright 2024, Manifesto Contributors, All rights reserved.

"""
Rewrites manifest entry paths relative to a shared root directory.

Used when entries were gathered from absolute paths without a known root.
"""

import os
from typing import Iterable

from common import AppError, ManifestEntry


class ManifestStructureError(AppError):
    """Exception raised when an entry does not live under the expected root."""

    pass


def common_ancestor(paths: list[str], sep: str = os.sep) -> str:
    """
    Return the deepest directory shared by all paths, ending with a separator.

    The longest literal prefix of all paths is trimmed back to its last
    separator. Returns "" for no paths or when the paths share no directory.
    """
    if not paths:
        return ""
    prefix = os.path.commonprefix(paths)
    return prefix[: prefix.rfind(sep) + 1]


def find_common_ancestor(entries: Iterable[ManifestEntry]) -> tuple[list[ManifestEntry], str]:
    """
    Find the common ancestor of the entries' paths and make the entries relative to it.

    Returns:
        Tuple of (rewritten entries, common ancestor)
    """
    entries = list(entries)
    ancestor = common_ancestor([e.file for e in entries])
    return set_relative_path(entries, ancestor), ancestor


def set_relative_path(entries: Iterable[ManifestEntry], root_directory: str) -> list[ManifestEntry]:
    """
    Rewrite the entries' paths relative to root_directory.

    Entries are modified in place. Nothing is modified unless every entry
    lives under root_directory.

    Raises:
        ManifestStructureError: If any entry is outside root_directory
    """
    entries = list(entries)
    if not root_directory or not root_directory.strip():
        return entries

    root = root_directory if root_directory.endswith(os.sep) else root_directory + os.sep
    outside = [e.file for e in entries if not e.file.startswith(root) or e.file == root]
    if outside:
        raise ManifestStructureError(
            "Not all entries are children of {} (first offender: {})".format(root, outside[0])
        )

    for entry in entries:
        entry.file = entry.file[len(root):]
    return entries
