"""qBittorrent client used to locate the original download of an import."""

from typing import List, Optional, Tuple

import qbittorrentapi
import requests

from lidarr_extras.clients import TorrentClient, with_retry
from lidarr_extras.core.config import QBittorrentSettings
from lidarr_extras.core.errors import TorrentClientError, TorrentEmpty, TorrentNotFound
from lidarr_extras.core.logger import setup_logger
from lidarr_extras.core.models import TorrentFile

logger = setup_logger(__name__)

_RETRY_ON = (
    qbittorrentapi.APIConnectionError,
    requests.exceptions.ConnectionError,
    requests.exceptions.Timeout,
)
# Bad credentials and 4xx answers will not change on retry
_NEVER_RETRY = (qbittorrentapi.LoginFailed, qbittorrentapi.HTTP4XXError)


def _normalize_hash(download_id: str) -> str:
    # Lidarr reports upper-case info hashes; qBittorrent uses lower case
    return download_id.strip().lower()


class QBittorrentClient(TorrentClient):
    """qBittorrent Web API client."""

    name = "qbittorrent"

    def __init__(self, settings: QBittorrentSettings):
        if not settings.url:
            raise ValueError("qBittorrent URL is required")

        self._base_url = settings.url.rstrip("/")
        self._client = qbittorrentapi.Client(
            host=settings.url,
            username=settings.username,
            password=settings.password,
            REQUESTS_ARGS={"timeout": settings.timeout},
        )

    @with_retry(retry_on=_RETRY_ON, never_retry=_NEVER_RETRY)
    def _torrents_info(self, torrent_hash: str) -> list:
        return list(self._client.torrents_info(torrent_hashes=torrent_hash))

    @with_retry(retry_on=_RETRY_ON, never_retry=_NEVER_RETRY)
    def _torrents_files(self, torrent_hash: str) -> list:
        return list(self._client.torrents_files(torrent_hash=torrent_hash))

    def _find_torrent(self, download_id: str):
        torrent_hash = _normalize_hash(download_id)
        try:
            torrents = self._torrents_info(torrent_hash)
        except qbittorrentapi.LoginFailed as e:
            logger.warning("qBittorrent auth failed - check credentials")
            raise TorrentClientError(self._log_error("torrents_info", e)) from e
        except qbittorrentapi.HTTPError as e:
            raise TorrentClientError(self._log_error("torrents_info", e)) from e
        except (qbittorrentapi.APIConnectionError, requests.exceptions.ConnectionError) as e:
            logger.warning(f"Cannot connect to qBittorrent at {self._base_url}")
            raise TorrentClientError(self._log_error("torrents_info", e)) from e
        except (qbittorrentapi.APIError, requests.exceptions.RequestException) as e:
            raise TorrentClientError(self._log_error("torrents_info", e)) from e

        torrent = next(
            (t for t in torrents if str(t.get("hash", "")).lower() == torrent_hash),
            None,
        )
        if torrent is None:
            raise TorrentNotFound(f"Torrent {download_id} not found in qBittorrent")
        return torrent

    def test_connection(self) -> Tuple[bool, str]:
        """Test connection to qBittorrent."""
        try:
            self._client.auth_log_in()
            api_version = self._client.app.web_api_version
            return True, f"Connected to qBittorrent (API v{api_version})"
        except (qbittorrentapi.APIError, requests.exceptions.RequestException) as e:
            return False, f"Connection failed: {str(e)}"

    def get_save_path(self, download_id: str) -> str:
        torrent = self._find_torrent(download_id)
        save_path: Optional[str] = torrent.get("save_path")
        if not save_path:
            raise TorrentNotFound(f"Torrent {download_id} has no save path in qBittorrent")
        return save_path

    def list_files(self, download_id: str) -> List[TorrentFile]:
        torrent_hash = _normalize_hash(download_id)
        try:
            files = self._torrents_files(torrent_hash)
        except qbittorrentapi.NotFound404Error as e:
            raise TorrentNotFound(f"Torrent {download_id} not found in qBittorrent") from e
        except (qbittorrentapi.APIError, requests.exceptions.RequestException) as e:
            raise TorrentClientError(self._log_error("torrents_files", e)) from e

        result = [
            TorrentFile(name=f.get("name"), size=int(f.get("size") or 0))
            for f in files
            if f.get("name")
        ]
        if not result:
            raise TorrentEmpty(f"No files listed for torrent {download_id}")

        logger.debug(f"qBittorrent lists {len(result)} file(s) for {download_id}")
        return result
