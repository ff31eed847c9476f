"""Permission/ownership diagnostics for failed link and delete operations.

Collecting context is best-effort: failures here are logged at DEBUG and
never mask the original error.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable

from lidarr_extras.core.logger import setup_logger

logger = setup_logger(__name__)


def _format_uid(uid: int) -> str:
    try:
        import pwd

        return pwd.getpwuid(uid).pw_name
    except (ImportError, KeyError):
        return str(uid)


def _format_gid(gid: int) -> str:
    try:
        import grp

        return grp.getgrgid(gid).gr_name
    except (ImportError, KeyError):
        return str(gid)


def _log_process_identity(label: str, error: Exception) -> None:
    euid = os.geteuid() if hasattr(os, "geteuid") else None
    egid = os.getegid() if hasattr(os, "getegid") else None
    groups = os.getgroups() if hasattr(os, "getgroups") else []

    if euid is None or egid is None:
        return

    logger.debug(
        "Permission context (%s): euid=%s(%d) egid=%s(%d) groups=%s error=%s",
        label,
        _format_uid(euid),
        euid,
        _format_gid(egid),
        egid,
        [f"{_format_gid(g)}({g})" for g in groups],
        error,
    )


def _log_probes(label: str, probes: Iterable[Path]) -> None:
    for probe in probes:
        try:
            st = probe.lstat()
            logger.debug(
                "Path permissions (%s): path=%s mode=%s owner=%s(%d) group=%s(%d) dev=%d dir=%s symlink=%s",
                label,
                probe,
                oct(st.st_mode & 0o777),
                _format_uid(st.st_uid),
                st.st_uid,
                _format_gid(st.st_gid),
                st.st_gid,
                st.st_dev,
                probe.is_dir(),
                probe.is_symlink(),
            )
        except OSError as stat_error:
            logger.debug("Path permissions (%s): stat failed for %s: %s", label, probe, stat_error)


def log_path_permission_context(label: str, path: Path, error: Exception) -> None:
    """Log ownership context for a path that could not be listed or deleted."""
    try:
        _log_process_identity(label, error)
        _log_probes(label, [path, path.parent])
    except Exception as context_error:
        logger.debug("Permission context (%s): failed to collect: %s", label, context_error)


def log_transfer_permission_context(label: str, source: Path, dest: Path, error: Exception) -> None:
    """Log ownership context when linking or copying a file fails."""
    try:
        _log_process_identity(label, error)
        _log_probes(label, [source, dest, dest.parent])
    except Exception as context_error:
        logger.debug("Permission context (%s): failed to collect: %s", label, context_error)
