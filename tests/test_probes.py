"""
Tests for the pre-flight reachability probes.
"""

import socket
import threading
import time

import httpx
import pytest

from app.core import probes


@pytest.fixture
def listening_port():
    server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    server.bind(("127.0.0.1", 0))
    server.listen(1)
    yield server.getsockname()[1]
    server.close()


@pytest.fixture
def closed_port():
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return port


def mock_client(handler):
    return httpx.Client(transport=httpx.MockTransport(handler))


class TestPLCReachable:

    def test_listening(self, listening_port):
        assert probes.is_plc_reachable("127.0.0.1", listening_port, timeout=1.0)

    def test_closed(self, closed_port):
        assert not probes.is_plc_reachable("127.0.0.1", closed_port, timeout=1.0)


class TestInfluxReady:
    URL = "http://influx:8086/health"

    def test_ready(self):
        client = mock_client(lambda request: httpx.Response(
            200, json={"status": "pass", "message": "ready for queries and writes"}))
        assert probes.is_influx_ready(self.URL, client=client)

    def test_wrong_message(self):
        client = mock_client(lambda request: httpx.Response(200, json={"message": "initializing"}))
        assert not probes.is_influx_ready(self.URL, client=client)

    def test_bad_status(self):
        client = mock_client(lambda request: httpx.Response(
            503, json={"message": "ready for queries and writes"}))
        assert not probes.is_influx_ready(self.URL, client=client)

    def test_not_json(self):
        client = mock_client(lambda request: httpx.Response(200, text="OK"))
        assert not probes.is_influx_ready(self.URL, client=client)

    def test_json_not_object(self):
        client = mock_client(lambda request: httpx.Response(200, json=["ready"]))
        assert not probes.is_influx_ready(self.URL, client=client)

    def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        assert not probes.is_influx_ready(self.URL, client=mock_client(handler))


class RecordingStop(threading.Event):
    """Stop token that records each retry delay instead of sleeping"""

    def __init__(self, set_after=None):
        super().__init__()
        self.delays = []
        self.set_after = set_after

    def wait(self, timeout=None):
        self.delays.append(timeout)
        if self.set_after is not None and len(self.delays) >= self.set_after:
            self.set()
        return self.is_set()


class TestWaitLoops:

    def test_wait_for_plc_retries(self, monkeypatch):
        answers = iter([False, False, True])
        stop = RecordingStop()
        monkeypatch.setattr(probes, "is_plc_reachable", lambda ip, port, timeout=3.0: next(answers))
        assert probes.wait_for_plc("10.0.0.1", 102, delay=5, stop=stop) is True
        assert stop.delays == [5, 5]

    def test_wait_for_influxdb_retries(self, monkeypatch):
        answers = iter([False, True])
        stop = RecordingStop()
        monkeypatch.setattr(probes, "is_influx_ready", lambda url, timeout=5.0: next(answers))
        assert probes.wait_for_influxdb("http://influx:8086/health", delay=2, stop=stop) is True
        assert stop.delays == [2]

    def test_wait_for_plc_gives_up_when_stopped(self, monkeypatch):
        calls = []
        stop = RecordingStop(set_after=3)

        def unreachable(ip, port, timeout=3.0):
            calls.append(ip)
            return False

        monkeypatch.setattr(probes, "is_plc_reachable", unreachable)
        assert probes.wait_for_plc("10.0.0.1", 102, delay=5, stop=stop) is False
        assert len(calls) == 3

    def test_wait_for_influxdb_skips_probe_once_stopped(self, monkeypatch):
        def fail(url, timeout=5.0):
            raise AssertionError("must not be checked after stop")

        stop = threading.Event()
        stop.set()
        monkeypatch.setattr(probes, "is_influx_ready", fail)
        assert probes.wait_for_influxdb("http://influx:8086/health", delay=2, stop=stop) is False

    def test_stop_interrupts_retry_delay(self, monkeypatch):
        stop = threading.Event()
        monkeypatch.setattr(probes, "is_plc_reachable", lambda ip, port, timeout=3.0: False)
        timer = threading.Timer(0.1, stop.set)
        timer.start()
        started = time.monotonic()
        assert probes.wait_for_plc("10.0.0.1", 102, delay=30, stop=stop) is False
        assert time.monotonic() - started < 1.0
        timer.cancel()
