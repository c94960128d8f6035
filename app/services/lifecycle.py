# ============================================================
# File: lifecycle.py - Startup / shutdown coordination
# ============================================================
# Startup order:
#   1. settings (loaded and validated by config.load_settings)
#   2. InfluxDB readiness (when write_to_influxdb)
#   3. PLC reachability (skipped in mock mode)
#   4. open PLC link
#   5. start poller
#   6. HTTP server (started by main.py when web_server)
# Shutdown:
#   stop poller (joins the task, closes the link) -> close sink
#   request_stop() aborts a startup still waiting on 2-4
# ============================================================

import asyncio
import logging
import threading
from typing import Optional

from config import Settings
from app.core.exceptions import EndpointUnreachableError, StartupCancelledError
from app.core.influxdb import InfluxSink
from app.core.probes import is_plc_reachable, is_influx_ready, wait_for_plc, wait_for_influxdb
from app.plc.mock_client import MockS7Client
from app.plc.s7_client import S7Client
from app.services.polling_service import Poller
from app.services.sample_cache import SampleCache

logger = logging.getLogger(__name__)


def build_client(settings: Settings):
    """PLC link for the configured mode"""
    if settings.mock_mode:
        return MockS7Client()
    return S7Client(
        ip=settings.plc_ip,
        port=settings.plc_port,
        rack=settings.plc_rack,
        slot=settings.plc_slot,
        timeout_ms=settings.plc_timeout,
        reconnect_delay=settings.reconnect_delay,
    )


def build_sink(settings: Settings) -> Optional[InfluxSink]:
    if not settings.write_to_influxdb:
        return None
    return InfluxSink(
        url=settings.influx_url,
        token=settings.influx_token,
        org=settings.influx_org,
        bucket=settings.influx_bucket,
        timeout_ms=settings.influx_timeout,
    )


class Lifecycle:
    """Owns the sample cache, the poller and the sink"""

    def __init__(self, settings: Settings, client=None, sink=None):
        """
        Args:
            settings: validated settings
            client: PLC link; built from settings when omitted
            sink: InfluxDB sink; built from settings when omitted and enabled
        """
        self.settings = settings
        self.sample_cache = SampleCache()
        self._client = client
        self._sink = sink
        self.poller: Optional[Poller] = None
        self._started = False
        self._stop_requested = threading.Event()
        self._shutdown_done = False
        self._shutdown_lock: Optional[asyncio.Lock] = None

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested.is_set()

    def request_stop(self) -> None:
        """Abort a pending start(); safe to call from signal handlers and threads"""
        self._stop_requested.set()

    def _check_stop(self) -> None:
        if self._stop_requested.is_set():
            raise StartupCancelledError("stop requested during startup")

    # ------------------------------------------------------------
    # start()
    # ------------------------------------------------------------
    async def start(self) -> None:
        """
        Raises:
            EndpointUnreachableError: a pre-flight probe failed
            PLCConnectionError: the PLC link could not be opened
            StartupCancelledError: request_stop() was called before the poller started
        """
        if self._started:
            return
        if self._shutdown_done:
            raise RuntimeError("lifecycle already shut down")
        settings = self.settings

        if settings.write_to_influxdb:
            self._check_stop()
            logger.info("[startup] checking InfluxDB...")
            await asyncio.to_thread(self._check_influxdb)
            if self._sink is None:
                self._sink = build_sink(settings)

        if settings.mock_mode:
            logger.info("[startup] mock mode, skipping PLC reachability check")
        else:
            self._check_stop()
            logger.info("[startup] checking PLC...")
            await asyncio.to_thread(self._check_plc)

        self._check_stop()
        if self._client is None:
            self._client = build_client(settings)

        self.poller = Poller(
            self._client,
            self.sample_cache,
            sink=self._sink if settings.write_to_influxdb else None,
            interval=settings.plc_poll_interval,
            measurement=settings.influx_measurement,
            host_tag=settings.influx_host_tag,
            stop_timeout=settings.plc_poll_interval + settings.plc_timeout / 1000,
        )

        logger.info("[startup] connecting to PLC...")
        await asyncio.to_thread(self.poller.connect)
        self._check_stop()

        self.poller.start()
        self._started = True
        logger.info("[startup] poller started")

    def _check_influxdb(self) -> None:
        url = self.settings.health_url
        timeout = self.settings.influx_timeout / 1000
        if self.settings.wait_for_endpoints:
            if not wait_for_influxdb(url, self.settings.reconnect_delay, timeout,
                                     stop=self._stop_requested):
                self._check_stop()
        elif not is_influx_ready(url, timeout):
            raise EndpointUnreachableError(f"InfluxDB at {url} is not accessible or not ready")
        logger.info("[startup] InfluxDB is accessible and ready")

    def _check_plc(self) -> None:
        ip, port = self.settings.plc_ip, self.settings.plc_port
        timeout = self.settings.plc_probe_timeout
        if self.settings.wait_for_endpoints:
            if not wait_for_plc(ip, port, self.settings.reconnect_delay, timeout,
                                stop=self._stop_requested):
                self._check_stop()
        elif not is_plc_reachable(ip, port, timeout):
            raise EndpointUnreachableError(f"PLC at {ip}:{port} is not reachable")
        logger.info("[startup] PLC is reachable")

    # ------------------------------------------------------------
    # shutdown()
    # ------------------------------------------------------------
    async def shutdown(self) -> None:
        """Stop everything once; later or concurrent calls return quietly"""
        if self._shutdown_lock is None:
            self._shutdown_lock = asyncio.Lock()

        self._stop_requested.set()
        async with self._shutdown_lock:
            if self._shutdown_done:
                return
            self._shutdown_done = True

            logger.info("[shutdown] stopping...")

            if self.poller is not None:
                await self.poller.stop()
                logger.info("[shutdown] poller stopped, PLC link closed")
            elif self._client is not None:
                await asyncio.to_thread(self._client.disconnect)

            if self._sink is not None:
                await asyncio.to_thread(self._sink.close)

            logger.info("[shutdown] all resources released")
