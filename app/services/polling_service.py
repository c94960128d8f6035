# ============================================================
# File: polling_service.py - PLC polling service
# ============================================================
# One tick = read DB1 -> decode -> publish to SampleCache
#            -> forward to the sink (optional)
#   1. Long connection: the link is opened once and owned here
#   2. Fixed cadence: deadline based, missed ticks are dropped
#   3. Blocking reads run in a worker thread (API never blocked)
#   4. Per-tick errors are logged and the tick is skipped
#   5. Cooperative stop between ticks
# ============================================================

import asyncio
import enum
import logging
import threading
from datetime import datetime, timezone
from typing import Optional, Dict, Any

from app.core.exceptions import PLCReadError, DecodeError, SinkError
from app.plc.parser_plc_data import (
    DB_NUMBER,
    START_OFFSET,
    PAYLOAD_SIZE,
    PLCData,
    decode_plc_data,
)
from app.services.sample_cache import SampleCache

logger = logging.getLogger(__name__)


class PollerState(str, enum.Enum):
    IDLE = "idle"
    CONNECTED = "connected"
    TICKING = "ticking"
    STOPPING = "stopping"
    STOPPED = "stopped"


class Poller:
    """Background poller for the DB1 sample block"""

    def __init__(self, client, cache: SampleCache, sink=None,
                 interval: float = 1.0,
                 measurement: str = "temperature",
                 host_tag: str = "plc",
                 stop_timeout: Optional[float] = None,
                 stop_event: Optional[asyncio.Event] = None,
                 db_number: int = DB_NUMBER,
                 start: int = START_OFFSET,
                 size: int = PAYLOAD_SIZE):
        """
        Args:
            client: controller link (S7Client or MockS7Client)
            cache: cache receiving every decoded sample
            sink: object with write_point(measurement, tags, fields, timestamp), or None
            interval: seconds between ticks
            measurement: sink measurement name
            host_tag: value of the sink "host" tag
            stop_timeout: max seconds stop() waits for a running tick
            stop_event: stop token; a private one is created when omitted
        """
        if interval <= 0:
            raise ValueError("interval must be positive")

        self._client = client
        self._cache = cache
        self._sink = sink
        self.interval = interval
        self.measurement = measurement
        self.host_tag = host_tag
        self.stop_timeout = stop_timeout if stop_timeout is not None else interval + 5.0
        self.db_number = db_number
        self.start_offset = start
        self.size = size

        self._state = PollerState.IDLE
        self._stop_event = stop_event or asyncio.Event()
        self._stop_lock = asyncio.Lock()
        self._task: Optional[asyncio.Task] = None

        # cache writes are refused once stop() has given up on the tick
        self._publish_lock = threading.Lock()
        self._publish_enabled = True

        self._stats: Dict[str, Any] = {
            "total_ticks": 0,
            "successful_ticks": 0,
            "read_errors": 0,
            "decode_errors": 0,
            "sink_writes": 0,
            "sink_errors": 0,
            "last_error": None,
            "last_success_time": None,
        }

    @property
    def state(self) -> PollerState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state == PollerState.TICKING

    def get_stats(self) -> Dict[str, Any]:
        return {
            **self._stats,
            "state": self._state.value,
            "poll_interval": self.interval,
            "sink_enabled": self._sink is not None,
        }

    # ------------------------------------------------------------
    # 1. connect() - open the controller link
    # ------------------------------------------------------------
    def connect(self) -> None:
        """
        Raises:
            PLCConnectionError: the link could not be opened (fatal)
        """
        if self._state != PollerState.IDLE:
            raise RuntimeError(f"cannot connect in state {self._state.value}")
        self._client.connect()
        self._state = PollerState.CONNECTED

    # ------------------------------------------------------------
    # 2. start() - start the background task
    # ------------------------------------------------------------
    def start(self) -> asyncio.Task:
        if self._state != PollerState.CONNECTED:
            raise RuntimeError(f"cannot start in state {self._state.value}")
        self._state = PollerState.TICKING
        self._task = asyncio.create_task(self._run(), name="plc-poller")
        logger.info(f"[poll] polling DB{self.db_number} every {self.interval}s")
        return self._task

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        next_tick = loop.time()

        while not self._stop_event.is_set():
            next_tick += self.interval
            delay = next_tick - loop.time()
            if delay > 0:
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
                    break
                except asyncio.TimeoutError:
                    pass
            elif -delay >= self.interval:
                # fell behind: drop the missed ticks
                next_tick = loop.time()

            if self._stop_event.is_set():
                break

            try:
                await asyncio.to_thread(self.tick)
            except Exception:
                logger.exception("[poll] unexpected error in tick")

        logger.info("[poll] polling loop finished")

    # ------------------------------------------------------------
    # 3. tick() - one read/decode/publish cycle (blocking)
    # ------------------------------------------------------------
    def tick(self) -> Optional[PLCData]:
        """Run one cycle; returns the published record or None when skipped"""
        self._stats["total_ticks"] += 1

        try:
            data = self._client.read_db_block(self.db_number, self.start_offset, self.size)
        except PLCReadError as e:
            self._stats["read_errors"] += 1
            self._stats["last_error"] = str(e)
            logger.error(f"[poll] failed to read data from PLC: {e}")
            return None

        try:
            record = decode_plc_data(data)
        except DecodeError as e:
            self._stats["decode_errors"] += 1
            self._stats["last_error"] = str(e)
            logger.error(f"[poll] failed to decode DB{self.db_number}: {e}")
            return None

        timestamp = datetime.now(timezone.utc)
        with self._publish_lock:
            if not self._publish_enabled:
                logger.warning("[poll] poller stopped, sample discarded")
                return None
            self._cache.write(record, timestamp)

        logger.info(
            f"[poll] PLC Data - Tag1: {record.tag1}, Tag2: {record.tag2}, "
            f"Tag3: {record.tag3}, Tag4: {record.tag4}"
        )

        if self._sink is not None:
            self._forward(record, timestamp)

        self._stats["successful_ticks"] += 1
        self._stats["last_success_time"] = timestamp.isoformat()
        return record

    def _forward(self, record: PLCData, timestamp: datetime) -> None:
        try:
            self._sink.write_point(
                self.measurement,
                {"host": self.host_tag},
                record.to_fields(),
                timestamp,
            )
            self._stats["sink_writes"] += 1
        except SinkError as e:
            self._stats["sink_errors"] += 1
            self._stats["last_error"] = str(e)
            logger.error(f"[poll] failed to write data to InfluxDB: {e}")

    # ------------------------------------------------------------
    # 4. stop() - stop ticking and release the link
    # ------------------------------------------------------------
    async def stop(self) -> None:
        """Stop the poller; repeated calls are no-ops"""
        async with self._stop_lock:
            if self._state == PollerState.STOPPED:
                return

            self._state = PollerState.STOPPING
            self._stop_event.set()

            if self._task is not None and not self._task.done():
                try:
                    await asyncio.wait_for(asyncio.shield(self._task), timeout=self.stop_timeout)
                except asyncio.TimeoutError:
                    logger.warning(f"[poll] tick still running after {self.stop_timeout}s, discarding its result")

            with self._publish_lock:
                self._publish_enabled = False

            # waits for an in-flight read to release the link
            await asyncio.to_thread(self._client.disconnect)

            self._state = PollerState.STOPPED
            logger.info("[poll] poller stopped")
