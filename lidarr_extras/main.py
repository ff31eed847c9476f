"""Flask app - Lidarr webhook receiver and health endpoint."""

import logging
from typing import Optional, Tuple, Union

from flask import Flask, jsonify, request
from werkzeug.middleware.proxy_fix import ProxyFix
from werkzeug.wrappers import Response

from lidarr_extras import __version__
from lidarr_extras.core.config import AppConfig
from lidarr_extras.core.errors import InvalidInput
from lidarr_extras.core.logger import setup_logger
from lidarr_extras.core.models import ImportEvent
from lidarr_extras.sync.orchestrator import SyncOrchestrator

logger = setup_logger(__name__)


class LogNoiseFilter(logging.Filter):
    """Filter out routine health-check polling from the request log."""

    def filter(self, record):
        message = record.getMessage() if hasattr(record, 'getMessage') else str(record.msg)
        return 'GET /api/health' not in message


def _ack() -> Tuple[str, int]:
    return "OK", 200


def create_app(cfg: AppConfig, orchestrator: Optional[SyncOrchestrator] = None) -> Flask:
    """Build the Flask app around a single orchestrator instance."""
    app = Flask(__name__)
    app.wsgi_app = ProxyFix(app.wsgi_app)  # type: ignore
    app.config['LIDARR_EXTRAS'] = cfg

    sync = orchestrator or SyncOrchestrator(cfg)
    app.extensions['sync_orchestrator'] = sync

    # Flask and werkzeug share our handlers
    app.logger.handlers = logger.handlers
    app.logger.setLevel(logger.level)
    werkzeug_logger = logging.getLogger('werkzeug')
    werkzeug_logger.handlers = logger.handlers
    werkzeug_logger.setLevel(logger.level)
    werkzeug_logger.propagate = False
    if not any(isinstance(f, LogNoiseFilter) for f in werkzeug_logger.filters):
        werkzeug_logger.addFilter(LogNoiseFilter())

    @app.route('/webhook', methods=['POST'])
    def webhook() -> Union[Response, Tuple[Union[str, Response], int]]:
        """
        Receive a Lidarr import notification.

        Only a malformed payload is answered with 400. Every other outcome,
        including a failed sync, is acknowledged with 200 because Lidarr does
        not retry usefully and a repeat would fail the same way.
        """
        payload = request.get_json(silent=True)

        try:
            event = ImportEvent.from_payload(payload)
        except InvalidInput as e:
            logger.error(f"Invalid payload structure ({e}): {payload!r}")
            return jsonify({"error": f"Invalid payload: {e}"}), 400

        if event.is_test:
            logger.info("Received Lidarr test notification")
            return _ack()

        logger.info(
            f"Received import webhook: event={event.event_type} download={event.download_id} "
            f"tracks={len(event.track_files)}"
        )
        logger.debug(f"Webhook payload: {payload}")

        try:
            result = sync.run(event)
            logger.debug(f"Sync result: {result.to_dict()}")
        except Exception as e:
            logger.error_trace(f"Error processing webhook: {e}")

        return _ack()

    @app.route('/api/health', methods=['GET'])
    def api_health() -> Response:
        return jsonify({"status": "ok", "version": __version__})

    @app.errorhandler(404)
    def not_found_error(error: Exception) -> Tuple[Response, int]:
        logger.warning(f"404 error: {request.url} : {error}")
        return jsonify({"error": "Resource not found"}), 404

    return app
