"""Filesystem primitives for placing extras into an album folder.

Existing destinations are always replaced rather than renamed, so repeated
syncs converge on the same folder contents.
"""

import errno
import os
import shutil
import time
from pathlib import Path
from typing import Union

from lidarr_extras.core.logger import setup_logger
from lidarr_extras.sync.permissions_debug import log_transfer_permission_context

logger = setup_logger(__name__)

_VERIFY_IO_WAIT_SECONDS = 3.0

HARDLINK = "hardlink"
COPY = "copy"


def same_filesystem(path1: Union[str, Path], path2: Union[str, Path]) -> bool:
    """Check whether two paths live on the same device.

    Non-existent paths are checked via their nearest existing ancestor.
    """

    def _device(path: Path) -> int:
        path = Path(path)
        while not path.exists():
            if path.parent == path:
                break
            path = path.parent
        return path.stat().st_dev

    try:
        return _device(Path(path1)) == _device(Path(path2))
    except OSError:
        return False


def _is_permission_error(e: Exception) -> bool:
    """Check if exception is a permission error (including NFS/SMB issues)."""
    return isinstance(e, PermissionError) or (isinstance(e, OSError) and e.errno == errno.EPERM)


def _can_fall_back_to_copy(e: OSError) -> bool:
    return _is_permission_error(e) or e.errno in (errno.EXDEV, errno.EMLINK)


def _verify_transfer_size(dest: Path, expected_size: int) -> None:
    """Verify a copy completed.

    Network filesystems can report stale sizes briefly after a write, so take
    a second look after a short wait before declaring failure.
    """
    actual_size = dest.stat().st_size
    if actual_size == expected_size:
        return

    logger.debug(
        f"Copy size mismatch, waiting for filesystem sync: {dest} ({actual_size} != {expected_size})"
    )
    time.sleep(_VERIFY_IO_WAIT_SECONDS)

    actual_size = dest.stat().st_size
    if actual_size != expected_size:
        raise IOError(
            f"Copy incomplete: '{dest}' was {actual_size} bytes instead of expected {expected_size}."
        )


def remove_destination(dest_path: Path) -> bool:
    """Remove whatever occupies ``dest_path``. Returns True if something was removed."""
    try:
        dest_path.unlink()
        return True
    except FileNotFoundError:
        return False


def replace_with_copy(source_path: Path, dest_path: Path) -> Path:
    """Copy ``source_path`` over ``dest_path`` via a temp file.

    The temp file is swapped into place only once it is complete, so a failed
    copy never leaves a truncated extra behind.
    """
    temp_path = dest_path.parent / f".{dest_path.name}.tmp"
    try:
        shutil.copy2(str(source_path), str(temp_path))
        temp_path.replace(dest_path)
        _verify_transfer_size(dest_path, source_path.stat().st_size)
        return dest_path
    except Exception:
        temp_path.unlink(missing_ok=True)
        raise


def replace_with_hardlink(source_path: Path, dest_path: Path, copy_fallback: bool = True) -> str:
    """Hard-link ``source_path`` to ``dest_path``, replacing any existing entry.

    If the link is refused with EXDEV, EMLINK or a permission error and
    ``copy_fallback`` is set, the file is copied instead.

    Returns:
        ``"hardlink"`` or ``"copy"`` depending on how the file was placed.

    Raises:
        OSError: If neither linking nor the fallback copy succeeded.
    """
    remove_destination(dest_path)

    try:
        os.link(str(source_path), str(dest_path))
        return HARDLINK
    except FileExistsError:
        # Something recreated the destination between unlink and link
        remove_destination(dest_path)
        os.link(str(source_path), str(dest_path))
        return HARDLINK
    except OSError as e:
        if _is_permission_error(e):
            log_transfer_permission_context("hardlink", source=source_path, dest=dest_path, error=e)
        if not (copy_fallback and _can_fall_back_to_copy(e)):
            raise

        logger.debug(
            "Hardlink failed (%s), falling back to copy: %s -> %s",
            e,
            source_path,
            dest_path,
        )
        replace_with_copy(source_path, dest_path)
        return COPY
