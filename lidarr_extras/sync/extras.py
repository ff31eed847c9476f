"""Classify, clear and link extras between a torrent folder and an album folder."""

import os
from pathlib import Path
from typing import AbstractSet, List, Optional, Tuple

from lidarr_extras.core.config import DEFAULT_EXTRA_EXTENSIONS
from lidarr_extras.core.logger import setup_logger
from lidarr_extras.core.models import LinkReport, RemovalReport
from lidarr_extras.sync.fs import COPY, replace_with_hardlink, same_filesystem
from lidarr_extras.sync.permissions_debug import log_path_permission_context

logger = setup_logger(__name__)

EXTRA_EXTENSIONS = frozenset(DEFAULT_EXTRA_EXTENSIONS)

NAME_SEPARATOR = "-"


def is_extra_file(filename: str, extensions: AbstractSet[str] = EXTRA_EXTENSIONS) -> bool:
    """Check whether a file name has an extras extension (case-insensitive)."""
    return os.path.splitext(filename)[1].lower() in extensions


def flattened_name(prefix: str, name: str) -> str:
    return f"{prefix}{NAME_SEPARATOR}{name}" if prefix else name


def remove_existing_extras(
    album_dir: Path,
    extensions: AbstractSet[str] = EXTRA_EXTENSIONS,
) -> RemovalReport:
    """Delete extras left by a previous sync from the top level of ``album_dir``.

    Subdirectories and non-extra files are left alone. Failing to delete a
    single entry is logged and recorded on the report.

    Raises:
        OSError: If ``album_dir`` itself cannot be listed.
    """
    report = RemovalReport()

    with os.scandir(album_dir) as entries:
        for entry in entries:
            entry_path = Path(entry.path)
            try:
                if not entry.is_file(follow_symlinks=False) or not is_extra_file(entry.name, extensions):
                    continue
                entry_path.unlink()
            except OSError as e:
                if isinstance(e, PermissionError):
                    log_path_permission_context("remove_existing_extras", entry_path, e)
                logger.warning(f"Failed to remove existing extra {entry_path}: {e}")
                report.failed.append(str(entry_path))
                continue

            logger.info(f"Removed existing: {entry_path}")
            report.removed.append(str(entry_path))

    return report


def link_extras(
    source_dir: Path,
    album_dir: Path,
    extensions: AbstractSet[str] = EXTRA_EXTENSIONS,
    copy_fallback: bool = True,
) -> LinkReport:
    """Link every extra under ``source_dir`` into ``album_dir``.

    The tree is walked depth first with an explicit stack. Files in nested
    folders are flattened into names like ``Disc 1-Scans-front.jpg``; two
    subpaths that flatten to the same name overwrite each other.

    Failures on individual files, or on folders that cannot be listed, are
    logged and recorded on the report and do not stop the walk.
    """
    report = LinkReport()
    source_dir = Path(source_dir)
    album_dir = Path(album_dir)

    if copy_fallback and not same_filesystem(source_dir, album_dir):
        logger.warning(
            f"Cannot hardlink: {source_dir} and {album_dir} are on different filesystems. "
            "Extras will be copied instead."
        )

    album_key = _path_key(album_dir)
    seen_names: set = set()
    stack: List[Tuple[Path, str]] = [(source_dir, "")]

    while stack:
        directory, prefix = stack.pop()

        try:
            with os.scandir(directory) as it:
                entries = list(it)
        except OSError as e:
            if isinstance(e, PermissionError):
                log_path_permission_context("link_extras", directory, e)
            logger.warning(f"Cannot read directory {directory}: {e}")
            report.unreadable_dirs.append(str(directory))
            continue

        subdirs: List[Tuple[Path, str]] = []
        for entry in entries:
            entry_path = Path(entry.path)

            try:
                is_dir = entry.is_dir(follow_symlinks=False)
                is_file = entry.is_file(follow_symlinks=False)
            except OSError as e:
                logger.warning(f"Cannot stat {entry_path}: {e}")
                report.failed.append(str(entry_path))
                continue

            if is_dir:
                if _path_key(entry_path) == album_key:
                    continue
                subdirs.append((entry_path, flattened_name(prefix, entry.name)))
                continue

            if not is_file or not is_extra_file(entry.name, extensions):
                report.skipped += 1
                continue

            dest_name = flattened_name(prefix, entry.name)
            dest = album_dir / dest_name

            dest_key = _path_key(dest)
            if dest_key is not None and _path_key(entry_path) == dest_key:
                # Already in place, e.g. the album folder is the torrent folder
                report.skipped += 1
                continue

            if dest_name in seen_names:
                logger.warning(f"Flattened name collision, replacing earlier extra: {dest}")
            seen_names.add(dest_name)

            try:
                method = replace_with_hardlink(entry_path, dest, copy_fallback=copy_fallback)
            except OSError as e:
                logger.warning(f"Failed to link {entry_path} -> {dest}: {e}")
                report.failed.append(str(entry_path))
                continue

            if method == COPY:
                logger.info(f"Copied: {entry_path} -> {dest}")
                report.copied.append(str(dest))
            else:
                logger.info(f"Linked: {entry_path} -> {dest}")
                report.linked.append(str(dest))

        # Reversed so subdirectories are visited in the order they were listed
        stack.extend(reversed(subdirs))

    return report


def _path_key(path: Path) -> Optional[str]:
    try:
        return os.path.normcase(os.path.realpath(path))
    except OSError:
        return None

