"""Command-line entry point.

    python -m lidarr_extras              # run the webhook server
    python -m lidarr_extras check        # test the qBittorrent connection
    python -m lidarr_extras sync HASH TRACK [TRACK ...]   # re-run one import by hand
"""

import argparse
import json
import sys
from typing import List, Optional

from lidarr_extras import __version__
from lidarr_extras.clients import create_client
from lidarr_extras.config import env
from lidarr_extras.core.config import AppConfig, describe_config, load_config
from lidarr_extras.core.logger import setup_logger
from lidarr_extras.core.models import ImportEvent, TrackFile

logger = setup_logger("lidarr_extras")


def _check_connection(cfg: AppConfig) -> bool:
    try:
        ok, message = create_client(cfg).test_connection()
    except ValueError as e:
        ok, message = False, str(e)
    if ok:
        logger.info(message)
    else:
        logger.warning(f"qBittorrent check failed: {message}")
    return ok


def _serve(cfg: AppConfig) -> int:
    from lidarr_extras.main import create_app

    _check_connection(cfg)
    app = create_app(cfg)
    logger.info(f"lidarr-import-extras listening on port {cfg.port}")
    app.run(host=cfg.host, port=cfg.port, debug=env.DEBUG, use_reloader=False, threaded=True)
    return 0


def _sync(cfg: AppConfig, download_id: str, tracks: List[str]) -> int:
    from lidarr_extras.sync.orchestrator import SyncOrchestrator

    event = ImportEvent(
        event_type="Manual",
        download_id=download_id,
        track_files=[TrackFile(path=t) for t in tracks],
    )
    result = SyncOrchestrator(cfg).run(event)
    print(json.dumps(result.to_dict(), indent=2))
    return 0 if result.ok else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lidarr-import-extras",
        description="Hard-link torrent extras into Lidarr album folders.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("serve", help="Run the webhook server (default)")
    subparsers.add_parser("check", help="Test the qBittorrent connection and exit")

    sync_parser = subparsers.add_parser("sync", help="Sync extras for one download")
    sync_parser.add_argument("download_id", help="Torrent info hash")
    sync_parser.add_argument("tracks", nargs="+", help="Imported track file paths")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    cfg = load_config()
    logger.debug("Configuration:")
    for line in describe_config(cfg):
        logger.debug(line)

    if args.command == "check":
        return 0 if _check_connection(cfg) else 1
    if args.command == "sync":
        return _sync(cfg, args.download_id, args.tracks)
    return _serve(cfg)


if __name__ == "__main__":
    sys.exit(main())
