"""
Tests for the read server (FastAPI TestClient).
"""

import time

from fastapi.testclient import TestClient

from app.plc.parser_plc_data import PLCData
from app.services.lifecycle import Lifecycle
from main import create_app
from tests.conftest import FakeLink, FakeSink, wait_until


def make_client(settings, link=None, sink=None):
    lifecycle = Lifecycle(settings, client=link or FakeLink(), sink=sink or FakeSink())
    return lifecycle, TestClient(create_app(lifecycle))


class TestLatestSample:

    def test_empty_cache_returns_zeros(self, settings):
        _, client = make_client(settings)
        started = time.monotonic()
        response = client.get("/")
        assert time.monotonic() - started < 1.0
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/json")
        assert response.json() == {"Tag1": 0, "Tag2": 0, "Tag3": 0, "Tag4": 0}

    def test_latest_sample(self, settings):
        lifecycle, client = make_client(settings)
        lifecycle.sample_cache.write(PLCData(10, 20, 30, 123))
        assert client.get("/").json() == {"Tag1": 10, "Tag2": 20, "Tag3": 30, "Tag4": 123}

    def test_negative_tag4(self, settings):
        lifecycle, client = make_client(settings)
        lifecycle.sample_cache.write(PLCData(0, 0, 0, -2))
        assert client.get("/").json()["Tag4"] == -2

    def test_read_does_not_mutate_cache(self, settings):
        lifecycle, client = make_client(settings)
        lifecycle.sample_cache.write(PLCData(1, 2, 3, 4))
        client.get("/")
        client.get("/")
        assert lifecycle.sample_cache.write_count == 1

    def test_only_get(self, settings):
        _, client = make_client(settings)
        assert client.post("/").status_code == 405


class TestHealth:

    def test_health(self, settings):
        _, client = make_client(settings)
        body = client.get("/api/health").json()
        assert body["success"] is True
        assert body["data"]["status"] == "healthy"

    def test_polling_before_start(self, settings):
        _, client = make_client(settings)
        body = client.get("/api/health/polling").json()
        assert body["success"] is False


class TestEndToEnd:

    def test_three_ticks(self, settings, reachable):
        payloads = [
            bytes([1, 2, 3, 0, 0, 0, 42]),
            bytes([1, 2, 3, 0, 0, 0, 43]),
            bytes([1, 2, 3, 0, 0, 0, 44]),
        ]
        link = FakeLink(payloads)
        sink = FakeSink()
        lifecycle, client = make_client(settings, link=link, sink=sink)

        with client:
            assert wait_until(lambda: lifecycle.poller.get_stats()["successful_ticks"] == 3)
            assert client.get("/").json() == {"Tag1": 1, "Tag2": 2, "Tag3": 3, "Tag4": 44}

            body = client.get("/api/health/polling").json()
            assert body["success"] is True
            assert body["data"]["polling_running"] is True
            assert body["data"]["has_sample"] is True
            assert body["data"]["sink_writes"] == 3

        assert lifecycle.sample_cache.read().tag4 == 44
        assert len(sink.points) == 3
        for measurement, tags, fields, timestamp in sink.points:
            assert measurement == "temperature"
            assert tags == {"host": "plc"}
            assert fields == {"temperature1": 1, "temperature2": 2, "temperature3": 3}
            assert timestamp is not None
        assert link.disconnect_calls == 1
        assert sink.close_calls == 1
