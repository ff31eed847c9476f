"""Path helpers: common-ancestor resolution and client path remapping."""

import os
import sys
from pathlib import Path, PurePath
from typing import Iterable, List, Optional, Sequence, Union

from lidarr_extras.core.config import PathMapping
from lidarr_extras.core.errors import InvalidInput
from lidarr_extras.core.logger import setup_logger

logger = setup_logger(__name__)

PathLike = Union[str, "os.PathLike[str]"]


def platform_is_case_sensitive() -> bool:
    # macOS keeps normcase as-is but APFS and HFS+ default to case-insensitive
    if sys.platform == "darwin":
        return False
    return os.path.normcase("A") == "A"


def is_within(path: PathLike, parent: PathLike) -> bool:
    """Check whether ``path`` is ``parent`` or lies somewhere below it.

    Both paths are resolved through symlinks before comparing.
    """
    path_key = os.path.normcase(os.path.realpath(os.fspath(path)))
    parent_key = os.path.normcase(os.path.realpath(os.fspath(parent)))
    try:
        return os.path.commonpath([path_key, parent_key]) == parent_key
    except ValueError:
        # Different drives
        return False


def _directory_parts(path: PathLike) -> Sequence[str]:
    # abspath normalizes separators and ".." without following symlinks
    return PurePath(os.path.dirname(os.path.abspath(os.fspath(path)))).parts


def find_common_parent_dir(
    paths: Iterable[PathLike],
    case_sensitive: Optional[bool] = None,
) -> Optional[Path]:
    """Return the deepest directory containing every file in ``paths``.

    Each path contributes its parent directory, so a single path yields its
    own directory. ``None`` means the paths share nothing beyond the
    filesystem root (or have different roots entirely).

    Args:
        paths: File paths to compare.
        case_sensitive: Force case-sensitive or insensitive comparison.
            ``None`` follows the platform convention.

    Raises:
        InvalidInput: If ``paths`` is empty.
    """
    split_dirs: List[Sequence[str]] = [_directory_parts(p) for p in paths]
    if not split_dirs:
        raise InvalidInput("No paths provided to find_common_parent_dir")

    if case_sensitive is None:
        case_sensitive = platform_is_case_sensitive()

    def key(part: str) -> str:
        return part if case_sensitive else part.casefold()

    first = split_dirs[0]
    common: List[str] = []
    for i in range(min(len(parts) for parts in split_dirs)):
        part = key(first[i])
        if all(key(parts[i]) == part for parts in split_dirs):
            common.append(first[i])
        else:
            break

    # Only the anchor ("/" or "C:\\") in common is not a usable directory
    if len(common) <= 1:
        return None

    return Path(*common)


def apply_path_mappings(path: str, mappings: Optional[Iterable[PathMapping]]) -> str:
    """Rewrite ``path`` with the first mapping whose prefix matches it.

    At most one mapping applies, and only the leading occurrence of its
    prefix is replaced. Paths matching no mapping come back unchanged.
    """
    if not mappings:
        return path

    for mapping in mappings:
        if path.startswith(mapping.from_):
            remapped = mapping.to + path[len(mapping.from_):]
            logger.info(f"Path remapped: {path} -> {remapped}")
            return remapped

    return path
