"""Exception types raised across the sync pipeline."""


class LidarrExtrasError(Exception):
    """Base class for all application errors."""


class InvalidInput(LidarrExtrasError):
    """A notification or argument was malformed and was rejected before processing."""


class ResolutionFailure(LidarrExtrasError):
    """An album or source directory could not be determined. Fatal to the run."""


class TorrentNotFound(ResolutionFailure):
    """The download client does not know the requested download id."""


class TorrentEmpty(ResolutionFailure):
    """The download client lists no files for the torrent."""


class TorrentClientError(ResolutionFailure):
    """The download client could not be reached or returned an error."""
