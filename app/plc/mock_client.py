"""
Mock PLC link

Drop-in replacement for S7Client used in mock mode: produces synthetic DB1
payloads so the poller, cache, sink and HTTP server run without hardware.
"""

import logging
import random
import struct
import threading
from typing import Optional

from app.core.exceptions import PLCReadError
from app.plc.parser_plc_data import PAYLOAD_FORMAT

logger = logging.getLogger(__name__)


class MockS7Client:
    """Mock S7 link"""

    def __init__(self, seed: Optional[int] = None):
        self._random = random.Random(seed)
        self._counter = 0
        self._connected = False
        self._closed = False
        self._lock = threading.Lock()

    def connect(self) -> None:
        self._connected = True
        self._closed = False
        logger.info("[S7] mock link connected")

    def disconnect(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._connected = False
        logger.info("[S7] mock link disconnected")

    def read_db_block(self, db_number: int, start: int, size: int) -> bytes:
        """Return ``size`` bytes: three temperatures (20~35) and a signed counter"""
        with self._lock:
            if not self._connected:
                raise PLCReadError("mock link is not connected")

            self._counter += 1
            payload = struct.pack(
                PAYLOAD_FORMAT,
                self._random.randint(20, 35),
                self._random.randint(20, 35),
                self._random.randint(20, 35),
                self._counter - 1000,
            )
        return payload[:size].ljust(size, b"\x00")

    def is_connected(self) -> bool:
        return self._connected
