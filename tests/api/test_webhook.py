"""Tests for the webhook endpoint and its acknowledgment policy."""

from unittest.mock import MagicMock

import pytest

from lidarr_extras.core.config import AppConfig
from lidarr_extras.core.models import ImportEvent, SyncResult, SyncState
from lidarr_extras.main import create_app
from lidarr_extras.sync.orchestrator import SyncOrchestrator


@pytest.fixture
def orchestrator():
    mock = MagicMock(spec=SyncOrchestrator)
    mock.run.return_value = SyncResult(state=SyncState.DONE)
    return mock


@pytest.fixture
def client(orchestrator):
    app = create_app(AppConfig(), orchestrator=orchestrator)
    app.config["TESTING"] = True
    return app.test_client()


IMPORT_PAYLOAD = {
    "eventType": "Download",
    "downloadId": "ABCDEF0123",
    "trackFiles": [
        {"path": "/music/Artist/Album/01.flac"},
        {"path": "/music/Artist/Album/02.flac"},
    ],
}


class TestWebhook:
    """Tests for POST /webhook."""

    def test_test_event_short_circuits(self, client, orchestrator):
        resp = client.post("/webhook", json={"eventType": "Test"})

        assert resp.status_code == 200
        assert resp.get_data(as_text=True) == "OK"
        orchestrator.run.assert_not_called()

    def test_import_event_runs_sync(self, client, orchestrator):
        resp = client.post("/webhook", json=IMPORT_PAYLOAD)

        assert resp.status_code == 200
        orchestrator.run.assert_called_once()
        event = orchestrator.run.call_args.args[0]
        assert isinstance(event, ImportEvent)
        assert event.download_id == "ABCDEF0123"
        assert event.track_paths == ["/music/Artist/Album/01.flac", "/music/Artist/Album/02.flac"]

    @pytest.mark.parametrize("payload", [
        {"eventType": "Download", "trackFiles": [{"path": "/a/b.flac"}]},
        {"eventType": "Download", "downloadId": "abc"},
        {"eventType": "Download", "downloadId": "abc", "trackFiles": []},
        {},
    ])
    def test_malformed_payload_is_rejected(self, client, orchestrator, payload):
        resp = client.post("/webhook", json=payload)

        assert resp.status_code == 400
        assert "error" in resp.get_json()
        orchestrator.run.assert_not_called()

    def test_non_json_body_is_rejected(self, client, orchestrator):
        resp = client.post("/webhook", data="not json", content_type="text/plain")

        assert resp.status_code == 400
        orchestrator.run.assert_not_called()

    def test_failed_sync_is_still_acknowledged(self, client, orchestrator):
        orchestrator.run.return_value = SyncResult(state=SyncState.FAILED, error="Torrent not found")

        resp = client.post("/webhook", json=IMPORT_PAYLOAD)

        assert resp.status_code == 200

    def test_unexpected_error_is_still_acknowledged(self, client, orchestrator):
        orchestrator.run.side_effect = RuntimeError("boom")

        resp = client.post("/webhook", json=IMPORT_PAYLOAD)

        assert resp.status_code == 200

    def test_unknown_download_end_to_end(self, tmp_path):
        """A real orchestrator with an empty client fails the run but acks success."""
        fake_client = MagicMock()
        from lidarr_extras.core.errors import TorrentNotFound

        fake_client.get_save_path.side_effect = TorrentNotFound("Torrent ABCDEF0123 not found")
        orchestrator = SyncOrchestrator(AppConfig(), lambda _cfg: fake_client)
        runs = []
        real_run = orchestrator.run

        def recording_run(event):
            result = real_run(event)
            runs.append(result)
            return result

        orchestrator.run = recording_run
        app = create_app(AppConfig(), orchestrator=orchestrator)

        album = tmp_path / "Album"
        album.mkdir()
        payload = dict(IMPORT_PAYLOAD, trackFiles=[{"path": str(album / "01.flac")}])
        resp = app.test_client().post("/webhook", json=payload)

        assert resp.status_code == 200
        assert runs[0].state == SyncState.FAILED


class TestHealth:
    def test_health_returns_ok(self, client):
        resp = client.get("/api/health")

        assert resp.status_code == 200
        assert resp.get_json()["status"] == "ok"

    def test_unknown_route_is_404(self, client):
        assert client.get("/nope").status_code == 404
