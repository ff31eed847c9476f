"""Find the folder a torrent was downloaded to, in our own filesystem view."""

import os
from pathlib import Path
from typing import Iterable, Optional

from lidarr_extras.clients import TorrentClient
from lidarr_extras.core.config import PathMapping
from lidarr_extras.core.errors import ResolutionFailure, TorrentEmpty
from lidarr_extras.core.logger import setup_logger
from lidarr_extras.core.paths import apply_path_mappings, find_common_parent_dir

logger = setup_logger(__name__)


def locate_torrent_folder(
    client: TorrentClient,
    download_id: str,
    mappings: Iterable[PathMapping],
    case_sensitive: Optional[bool] = None,
) -> Path:
    """Return the deepest folder holding every file of the torrent.

    The client's save path is remapped into our namespace before joining it
    with each file's relative name.

    Raises:
        ResolutionFailure: If the torrent is unknown, has no files, or its
            files share no folder below the filesystem root.
    """
    save_path = apply_path_mappings(client.get_save_path(download_id), mappings)

    files = client.list_files(download_id)
    if not files:
        raise TorrentEmpty(f"No files listed for torrent {download_id}")

    full_paths = [os.path.join(save_path, f.name) for f in files]
    common = find_common_parent_dir(full_paths, case_sensitive=case_sensitive)
    if common is None:
        raise ResolutionFailure("Could not identify common root for torrent folder files")

    logger.debug(f"Torrent {download_id} resolved to {common} ({len(files)} file(s))")
    return common
