# ============================================================
# File: probes.py - Pre-flight reachability checks
# ============================================================
# Methods:
# 1. is_plc_reachable()     - TCP connect to the PLC
# 2. is_influx_ready()      - InfluxDB /health readiness
# 3. wait_for_plc()         - retry 1 until reachable or stopped
# 4. wait_for_influxdb()    - retry 2 until ready or stopped
# ============================================================

import logging
import socket
import threading
from typing import Optional

import httpx

logger = logging.getLogger(__name__)

INFLUX_READY_MESSAGE = "ready for queries and writes"


# ------------------------------------------------------------
# 1. is_plc_reachable() - TCP connect to the PLC
# ------------------------------------------------------------
def is_plc_reachable(ip: str, port: int, timeout: float = 3.0) -> bool:
    try:
        with socket.create_connection((ip, port), timeout=timeout):
            return True
    except OSError:
        return False


# ------------------------------------------------------------
# 2. is_influx_ready() - InfluxDB /health readiness
# ------------------------------------------------------------
def is_influx_ready(url: str, timeout: float = 5.0, client: Optional[httpx.Client] = None) -> bool:
    """
    GET the health endpoint and check the readiness message.

    Args:
        url: full health URL, e.g. http://host:8086/health
        timeout: request timeout (seconds)
        client: optional httpx client (tests pass one with a mock transport)

    Returns:
        True when the endpoint answers 200 with the ready message
    """
    try:
        if client is None:
            response = httpx.get(url, timeout=timeout)
        else:
            response = client.get(url, timeout=timeout)
    except httpx.HTTPError as e:
        logger.debug(f"[probe] InfluxDB health request failed: {e}")
        return False

    if response.status_code != 200:
        return False

    try:
        body = response.json()
    except ValueError:
        return False

    return isinstance(body, dict) and body.get("message") == INFLUX_READY_MESSAGE


# ------------------------------------------------------------
# 3. wait_for_plc() - retry until reachable or stopped
# ------------------------------------------------------------
def wait_for_plc(ip: str, port: int, delay: float, timeout: float = 3.0,
                 stop: Optional[threading.Event] = None) -> bool:
    """
    Returns:
        True once the PLC answers, False when ``stop`` was set first
    """
    stop = stop or threading.Event()
    while not stop.is_set():
        if is_plc_reachable(ip, port, timeout):
            logger.info(f"[probe] PLC {ip}:{port} is reachable")
            return True
        logger.warning(f"[probe] waiting for PLC {ip}:{port} to become reachable...")
        stop.wait(delay)
    return False


# ------------------------------------------------------------
# 4. wait_for_influxdb() - retry until ready or stopped
# ------------------------------------------------------------
def wait_for_influxdb(url: str, delay: float, timeout: float = 5.0,
                      stop: Optional[threading.Event] = None) -> bool:
    stop = stop or threading.Event()
    while not stop.is_set():
        if is_influx_ready(url, timeout):
            logger.info(f"[probe] InfluxDB {url} is ready")
            return True
        logger.warning(f"[probe] waiting for InfluxDB {url} to become ready...")
        stop.wait(delay)
    return False
