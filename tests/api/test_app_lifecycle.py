from fastapi.testclient import TestClient

from gemrelay.api import cancellation
from gemrelay.api.app import create_app


def test_shutdown_cancels_in_flight_streams():
    with TestClient(create_app()) as client:
        assert client.get("/api/health").status_code == 200
        token = cancellation.register("req-shutdown")
    assert token.cancelled
    assert token.reason == "shutdown"
    cancellation.clear("req-shutdown")


def test_shutdown_without_streams_is_quiet():
    with TestClient(create_app()):
        pass
    assert cancellation.in_flight() == 0
