"""Extras synchronization for a single Lidarr import.

One run walks a fixed sequence of states:

    IDLE -> RESOLVING_ALBUM_DIR -> RESOLVING_SOURCE_DIR -> REMOVING_STALE -> LINKING -> DONE

Failing to resolve either folder ends the run in FAILED. Per-file errors
while removing or linking are recorded on the result and the run still
reaches DONE.

Runs targeting the same album folder are serialized so their
delete-then-link sequences cannot interleave.
"""

from contextlib import contextmanager
from pathlib import Path
from threading import Lock
from typing import Callable, Dict, Iterator

from lidarr_extras.clients import TorrentClient, create_client
from lidarr_extras.core.config import AppConfig
from lidarr_extras.core.errors import ResolutionFailure, TorrentClientError
from lidarr_extras.core.logger import setup_logger
from lidarr_extras.core.models import ImportEvent, SyncResult, SyncState
from lidarr_extras.core.paths import find_common_parent_dir, is_within
from lidarr_extras.sync.extras import link_extras, remove_existing_extras
from lidarr_extras.sync.locator import locate_torrent_folder

logger = setup_logger(__name__)

ClientFactory = Callable[[AppConfig], TorrentClient]


class _KeyedLocks:
    """Hand out one lock per key; entries are dropped once nobody holds them."""

    def __init__(self) -> None:
        self._guard = Lock()
        self._locks: Dict[str, Lock] = {}
        self._users: Dict[str, int] = {}

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(key, Lock())
            self._users[key] = self._users.get(key, 0) + 1

        try:
            with lock:
                yield
        finally:
            with self._guard:
                self._users[key] -= 1
                if self._users[key] == 0:
                    del self._users[key]
                    del self._locks[key]


class SyncOrchestrator:
    """Resolve the album and torrent folders of an import and sync its extras."""

    def __init__(self, cfg: AppConfig, client_factory: ClientFactory = create_client):
        self._cfg = cfg
        self._client_factory = client_factory
        self._album_locks = _KeyedLocks()

    def _transition(self, result: SyncResult, state: SyncState) -> None:
        logger.debug(f"Sync state: {result.state.value} -> {state.value}")
        result.state = state

    def _fail(self, result: SyncResult, message: str) -> SyncResult:
        logger.error(message)
        result.error = message
        self._transition(result, SyncState.FAILED)
        return result

    def _resolve_source_dir(self, download_id: str) -> Path:
        try:
            client = self._client_factory(self._cfg)
        except ValueError as e:
            raise TorrentClientError(f"Torrent client is misconfigured: {e}") from e
        return locate_torrent_folder(
            client,
            download_id,
            self._cfg.path_mappings,
            case_sensitive=self._cfg.case_sensitive_paths,
        )

    def run(self, event: ImportEvent) -> SyncResult:
        """Synchronize extras for ``event``.

        Never raises for a well-formed event; the outcome is reported on the
        returned :class:`SyncResult`.
        """
        result = SyncResult()

        self._transition(result, SyncState.RESOLVING_ALBUM_DIR)
        album_dir = find_common_parent_dir(
            event.track_paths, case_sensitive=self._cfg.case_sensitive_paths
        )
        if album_dir is None:
            return self._fail(result, "Could not identify common root for lidarr track files")
        result.album_dir = str(album_dir)
        logger.info(f"Processing album: {album_dir}")

        with self._album_locks.hold(str(album_dir)):
            return self._sync_album(event, album_dir, result)

    def _sync_album(self, event: ImportEvent, album_dir: Path, result: SyncResult) -> SyncResult:
        self._transition(result, SyncState.RESOLVING_SOURCE_DIR)
        try:
            source_dir = self._resolve_source_dir(event.download_id or "")
        except ResolutionFailure as e:
            return self._fail(result, f"Could not resolve torrent folder for {event.download_id}: {e}")
        result.source_dir = str(source_dir)
        logger.info(f"Original download folder: {source_dir}")

        if is_within(album_dir, source_dir):
            # Extras already in the album folder belong to the torrent being seeded
            logger.warning(
                f"Album folder {album_dir} is inside torrent folder {source_dir}; nothing to sync"
            )
            self._transition(result, SyncState.DONE)
            return result

        self._transition(result, SyncState.REMOVING_STALE)
        try:
            result.removal = remove_existing_extras(album_dir, self._cfg.extra_extensions)
        except OSError as e:
            return self._fail(result, f"Cannot read album folder {album_dir}: {e}")

        self._transition(result, SyncState.LINKING)
        result.links = link_extras(
            source_dir,
            album_dir,
            self._cfg.extra_extensions,
            copy_fallback=self._cfg.copy_fallback,
        )

        self._transition(result, SyncState.DONE)
        summary = (
            f"Synced extras into {album_dir}: "
            f"{len(result.links.linked)} linked, {len(result.links.copied)} copied, "
            f"{len(result.removal.removed)} stale removed"
        )
        if result.partial:
            failures = len(result.removal.failed) + len(result.links.failed)
            logger.warning(
                f"{summary}; {failures} file(s) failed, "
                f"{len(result.links.unreadable_dirs)} folder(s) unreadable"
            )
        else:
            logger.info(summary)
        return result

