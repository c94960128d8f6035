"""
Shared fixtures and fakes for the PLC sampler test suite.
"""

import threading
import time

import pytest

from app.core.exceptions import PLCReadError, SinkError
from config import load_settings


class FakeLink:
    """Controller link replaying scripted reads.

    Each entry of ``payloads`` is returned in order (exceptions are raised).
    ``repeat`` is returned forever once the script runs out; without it an
    exhausted script raises PLCReadError.
    """

    def __init__(self, payloads=None, repeat=None, connect_error=None, read_delay=0.0):
        self.payloads = list(payloads or [])
        self.repeat = repeat
        self.connect_error = connect_error
        self.read_delay = read_delay
        self.read_started = threading.Event()
        self.connect_calls = 0
        self.disconnect_calls = 0
        self.reads = []

    def connect(self):
        self.connect_calls += 1
        if self.connect_error is not None:
            raise self.connect_error

    def read_db_block(self, db_number, start, size):
        self.reads.append((db_number, start, size))
        self.read_started.set()
        if self.read_delay:
            time.sleep(self.read_delay)
        if self.payloads:
            item = self.payloads.pop(0)
        elif self.repeat is not None:
            item = self.repeat
        else:
            raise PLCReadError("no more scripted payloads")
        if isinstance(item, Exception):
            raise item
        return item

    def disconnect(self):
        self.disconnect_calls += 1


class FakeSink:
    """Records every point; raises SinkError while ``fail`` is set"""

    def __init__(self, fail=False):
        self.fail = fail
        self.points = []
        self.close_calls = 0

    def write_point(self, measurement, tags, fields, timestamp=None):
        if self.fail:
            raise SinkError("sink unavailable")
        self.points.append((measurement, tags, fields, timestamp))

    def close(self):
        self.close_calls += 1


class FakeSnap7Client:
    """Stand-in for snap7.client.Client"""

    def __init__(self, connect_ok=True):
        self.connect_ok = connect_ok
        self.connected = False
        self.connect_args = []
        self.params = {}
        self.disconnect_calls = 0
        self.read_error = None
        self.data = bytearray([1, 2, 3, 0, 0, 0, 42])

    def set_param(self, param, value):
        self.params[param] = value

    def connect(self, address, rack, slot, tcp_port=102):
        self.connect_args.append((address, rack, slot, tcp_port))
        if isinstance(self.connect_ok, Exception):
            raise self.connect_ok
        self.connected = bool(self.connect_ok)

    def get_connected(self):
        return self.connected

    def db_read(self, db_number, start, size):
        if self.read_error is not None:
            raise self.read_error
        return self.data[:size]

    def disconnect(self):
        self.disconnect_calls += 1
        self.connected = False


@pytest.fixture
def settings():
    return load_settings(
        plc_ip="127.0.0.1",
        plc_poll_interval=0.05,
        plc_timeout=500,
        reconnect_delay=0,
        write_to_influxdb=True,
        web_server=True,
        mock_mode=False,
        wait_for_endpoints=False,
    )


@pytest.fixture
def reachable(monkeypatch):
    """Pre-flight probes always succeed"""
    monkeypatch.setattr("app.services.lifecycle.is_plc_reachable", lambda ip, port, timeout=3.0: True)
    monkeypatch.setattr("app.services.lifecycle.is_influx_ready", lambda url, timeout=5.0: True)


def wait_until(predicate, timeout=3.0, interval=0.01):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()
