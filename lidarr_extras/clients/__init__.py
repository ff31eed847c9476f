"""
Torrent client infrastructure.

This module provides:
- with_retry: exponential backoff for read calls against a client API
- TorrentClient: abstract base class for torrent clients
- create_client: factory returning the configured client
"""

import logging
import random
import time
from abc import ABC, abstractmethod
from functools import wraps
from typing import Callable, List, Optional, Tuple, Type, TypeVar

import requests

from lidarr_extras.core.config import AppConfig
from lidarr_extras.core.models import TorrentFile

_logger = logging.getLogger(__name__)

T = TypeVar('T')

# Exceptions that should trigger a retry
RETRYABLE_EXCEPTIONS: Tuple[Type[BaseException], ...] = (
    requests.exceptions.ConnectionError,
    requests.exceptions.Timeout,
)


def with_retry(
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 10.0,
    jitter: float = 0.5,
    retry_on: Tuple[Type[BaseException], ...] = RETRYABLE_EXCEPTIONS,
    never_retry: Tuple[Type[BaseException], ...] = (),
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Decorator for retrying API calls with exponential backoff.

    Args:
        max_attempts: Maximum number of attempts (default 3)
        base_delay: Initial delay in seconds (default 1.0)
        max_delay: Maximum delay cap in seconds (default 10.0)
        jitter: Random jitter factor 0-1 to add to delay (default 0.5)
        retry_on: Exception types that are retried
        never_retry: Subtypes of ``retry_on`` that are raised immediately
            (e.g. authentication failures, 4xx responses)
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(*args, **kwargs) -> T:
            last_exception: Optional[BaseException] = None

            for attempt in range(1, max_attempts + 1):
                try:
                    return func(*args, **kwargs)
                except never_retry:
                    raise
                except retry_on as e:
                    last_exception = e

                if attempt < max_attempts:
                    delay = min(base_delay * (2 ** (attempt - 1)), max_delay)
                    # Add jitter to prevent thundering herd
                    delay += random.uniform(0, delay * jitter)
                    _logger.debug(
                        f"Retry {attempt}/{max_attempts} for {func.__name__} "
                        f"after {delay:.1f}s (error: {last_exception})"
                    )
                    time.sleep(delay)

            # All retries exhausted
            raise last_exception  # type: ignore[misc]

        return wrapper
    return decorator


class TorrentClient(ABC):
    """
    Base class for torrent clients that can describe a download's files.

    Subclasses must define:
    - name: Unique client identifier (e.g., "qbittorrent")
    """

    name: str

    def _log_error(self, method: str, e: Exception, level: str = "error") -> str:
        """
        Log a client error with consistent formatting.

        Args:
            method: Name of the method that failed (e.g., "get_save_path")
            e: The exception that was raised
            level: Log level - "error" or "debug"

        Returns:
            Formatted error message string.
        """
        error_type = type(e).__name__
        msg = f"{self.name} {method} failed ({error_type}): {e}"
        if level == "debug":
            _logger.debug(msg)
        else:
            _logger.error(msg)
        return f"{error_type}: {e}"

    def __init_subclass__(cls, **kwargs):
        """Validate that concrete subclasses define a name."""
        super().__init_subclass__(**kwargs)

        if ABC in cls.__bases__:
            return

        if not getattr(cls, 'name', None):
            raise TypeError(f"{cls.__name__} must define 'name' class attribute")

    @abstractmethod
    def test_connection(self) -> Tuple[bool, str]:
        """
        Test connectivity to the client.

        Returns:
            Tuple of (success, message).
        """

    @abstractmethod
    def get_save_path(self, download_id: str) -> str:
        """
        Get the root save path of a torrent, as the client sees it.

        Raises:
            TorrentNotFound: If the client does not know the download id.
            TorrentClientError: If the client cannot be queried.
        """

    @abstractmethod
    def list_files(self, download_id: str) -> List[TorrentFile]:
        """
        List every file of a torrent, relative to its save path.

        Raises:
            TorrentNotFound: If the client does not know the download id.
            TorrentEmpty: If the torrent has no files.
            TorrentClientError: If the client cannot be queried.
        """


def create_client(cfg: AppConfig) -> TorrentClient:
    """Build the torrent client described by ``cfg``."""
    from lidarr_extras.clients.qbittorrent import QBittorrentClient

    return QBittorrentClient(cfg.qbittorrent)
