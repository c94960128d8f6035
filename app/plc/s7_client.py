# ============================================================
# File: s7_client.py - Siemens S7 PLC client (long connection)
# ============================================================
# Methods:
# 1. connect()              - open the PLC connection
# 2. disconnect()           - close the PLC connection (idempotent)
# 3. read_db_block()        - read bytes from a DB block
# 4. is_connected()         - connection state
# ============================================================

import logging
import threading
import time
from typing import Optional, Callable, Any

import snap7
from snap7.type import Parameter

from app.core.exceptions import PLCConnectionError, PLCReadError

logger = logging.getLogger(__name__)


# ------------------------------------------------------------
# S7Client - S7 PLC client (long connection)
# ------------------------------------------------------------
class S7Client:
    """Siemens S7 PLC client

    The connection is opened once and kept. After a failed read the broken
    session is dropped and re-opened on a later read, at most once every
    ``reconnect_delay`` seconds. All operations are serialised by an
    internal lock, so a ``disconnect()`` issued while a read is running
    waits for that read to finish.
    """

    def __init__(self, ip: str, port: int = 102, rack: int = 0, slot: int = 1,
                 timeout_ms: int = 5000, reconnect_delay: float = 5.0,
                 client_factory: Optional[Callable[[], Any]] = None):
        """
        Args:
            ip: PLC IP address
            port: ISO-on-TCP port
            rack: rack number (0 on S7-1200)
            slot: slot number (1 on S7-1200)
            timeout_ms: connect/send/receive timeout (ms)
            reconnect_delay: minimum seconds between re-open attempts
            client_factory: builds the low level client (snap7 by default)
        """
        self.ip = ip
        self.port = port
        self.rack = rack
        self.slot = slot
        self.timeout_ms = timeout_ms
        self.reconnect_delay = reconnect_delay
        self._client_factory = client_factory or snap7.client.Client
        self.client: Optional[Any] = None
        self._connected: bool = False
        self._closed: bool = False
        self._last_attempt: float = 0.0
        self._lock = threading.Lock()

    # ------------------------------------------------------------
    # 1. connect() - open the PLC connection
    # ------------------------------------------------------------
    def connect(self) -> None:
        """
        Raises:
            PLCConnectionError: connection could not be established
        """
        with self._lock:
            self._closed = False
            self._open()
        logger.info(f"[S7] connected to {self.ip}:{self.port} (rack={self.rack}, slot={self.slot})")

    def _open(self) -> None:
        self._last_attempt = time.monotonic()
        try:
            if self.client is None:
                self.client = self._client_factory()
                self._apply_timeouts()

            self.client.connect(self.ip, self.rack, self.slot, self.port)

            if not self.client.get_connected():
                raise PLCConnectionError(f"PLC {self.ip}:{self.port} refused the session")

            self._connected = True
        except PLCConnectionError:
            self._connected = False
            raise
        except Exception as e:
            self._connected = False
            raise PLCConnectionError(f"failed to connect to PLC {self.ip}:{self.port}: {e}") from e

    def _apply_timeouts(self) -> None:
        for param in (Parameter.PingTimeout, Parameter.SendTimeout, Parameter.RecvTimeout):
            self.client.set_param(param, self.timeout_ms)

    # ------------------------------------------------------------
    # 2. disconnect() - close the PLC connection
    # ------------------------------------------------------------
    def disconnect(self) -> None:
        """Close the connection; later calls are no-ops"""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._drop_session()
            self.client = None
        logger.info(f"[S7] disconnected from {self.ip}:{self.port}")

    def _drop_session(self) -> None:
        if self.client is not None and self._connected:
            try:
                self.client.disconnect()
            except Exception as e:
                logger.warning(f"[S7] error while closing session: {e}")
        self._connected = False

    # ------------------------------------------------------------
    # 3. read_db_block() - read bytes from a DB block
    # ------------------------------------------------------------
    def read_db_block(self, db_number: int, start: int, size: int) -> bytes:
        """
        Args:
            db_number: DB block number
            start: first byte offset
            size: number of bytes

        Returns:
            bytes: raw block data

        Raises:
            PLCReadError: link closed, not connected, or read failed
        """
        with self._lock:
            if self._closed:
                raise PLCReadError("PLC link is closed")

            if not self._connected:
                elapsed = time.monotonic() - self._last_attempt
                if elapsed < self.reconnect_delay:
                    raise PLCReadError(
                        f"PLC not connected, next reconnect in {self.reconnect_delay - elapsed:.1f}s"
                    )
                try:
                    self._open()
                    logger.info(f"[S7] reconnected to {self.ip}:{self.port}")
                except PLCConnectionError as e:
                    raise PLCReadError(str(e)) from e

            try:
                data = self.client.db_read(db_number, start, size)
            except Exception as e:
                self._drop_session()
                raise PLCReadError(f"failed to read DB{db_number}.{start} ({size} bytes): {e}") from e

        return bytes(data)

    # ------------------------------------------------------------
    # 4. is_connected() - connection state
    # ------------------------------------------------------------
    def is_connected(self) -> bool:
        return self._connected and not self._closed
