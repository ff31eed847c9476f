"""Data structures passed between the webhook, orchestrator and sync steps."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from lidarr_extras.core.errors import InvalidInput

TEST_EVENT_TYPE = "Test"


@dataclass(frozen=True)
class TrackFile:
    """An audio file Lidarr imported into the library."""

    path: str


@dataclass(frozen=True)
class ImportEvent:
    """A Lidarr webhook notification."""

    event_type: str
    download_id: Optional[str] = None
    track_files: List[TrackFile] = field(default_factory=list)

    @property
    def is_test(self) -> bool:
        return self.event_type == TEST_EVENT_TYPE

    @property
    def track_paths(self) -> List[str]:
        return [t.path for t in self.track_files]

    @classmethod
    def from_payload(cls, payload: Any) -> "ImportEvent":
        """Build an event from a decoded webhook body.

        Test events are accepted without a download id or tracks. Any other
        event must carry a download id and at least one track with a path.

        Raises:
            InvalidInput: If the payload is not usable.
        """
        if not isinstance(payload, dict):
            raise InvalidInput("Payload must be a JSON object")

        event_type = str(payload.get("eventType") or "")
        if event_type == TEST_EVENT_TYPE:
            return cls(event_type=event_type)

        download_id = payload.get("downloadId")
        if not download_id or not isinstance(download_id, str):
            raise InvalidInput("Missing downloadId")

        raw_tracks = payload.get("trackFiles")
        if not raw_tracks or not isinstance(raw_tracks, list):
            raise InvalidInput("Missing trackFiles")

        track_files = []
        for raw in raw_tracks:
            path = raw.get("path") if isinstance(raw, dict) else None
            if not path or not isinstance(path, str):
                raise InvalidInput("Every track file needs a path")
            track_files.append(TrackFile(path=path))

        return cls(event_type=event_type, download_id=download_id, track_files=track_files)


@dataclass(frozen=True)
class TorrentFile:
    """A file belonging to a torrent, relative to its save path."""

    name: str
    size: int = 0


class SyncState(Enum):
    """Progress of a single synchronization run."""

    IDLE = "idle"
    RESOLVING_ALBUM_DIR = "resolving_album_dir"
    RESOLVING_SOURCE_DIR = "resolving_source_dir"
    REMOVING_STALE = "removing_stale"
    LINKING = "linking"
    DONE = "done"
    FAILED = "failed"


@dataclass
class RemovalReport:
    """Outcome of clearing previously synced extras from an album folder."""

    removed: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)


@dataclass
class LinkReport:
    """Outcome of linking extras into an album folder."""

    linked: List[str] = field(default_factory=list)
    copied: List[str] = field(default_factory=list)
    skipped: int = 0
    failed: List[str] = field(default_factory=list)
    unreadable_dirs: List[str] = field(default_factory=list)

    @property
    def partial(self) -> bool:
        return bool(self.failed or self.unreadable_dirs)


@dataclass
class SyncResult:
    """What happened during one orchestrator run."""

    state: SyncState = SyncState.IDLE
    album_dir: Optional[str] = None
    source_dir: Optional[str] = None
    removal: Optional[RemovalReport] = None
    links: Optional[LinkReport] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.state == SyncState.DONE

    @property
    def partial(self) -> bool:
        removal_failed = bool(self.removal and self.removal.failed)
        link_failed = bool(self.links and self.links.partial)
        return removal_failed or link_failed

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "album_dir": self.album_dir,
            "source_dir": self.source_dir,
            "removed": len(self.removal.removed) if self.removal else 0,
            "linked": len(self.links.linked) if self.links else 0,
            "copied": len(self.links.copied) if self.links else 0,
            "failed": (len(self.removal.failed) if self.removal else 0)
            + (len(self.links.failed) if self.links else 0),
            "error": self.error,
        }
