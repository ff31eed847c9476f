"""Hard-link torrent extras (artwork, logs, cue sheets) into Lidarr album folders."""

__version__ = "1.0.0"
