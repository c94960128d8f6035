# ============================================================
# File: influxdb.py - InfluxDB sink
# ============================================================
# Methods:
# 1. InfluxSink.write_point()   - write one point (blocking)
# 2. InfluxSink.close()         - release write API and client
# 3. build_point()              - build a Point object
# ============================================================

import logging
import threading
from datetime import datetime, timezone
from typing import Dict, Any, Optional

from influxdb_client import InfluxDBClient, Point
from influxdb_client.client.write_api import SYNCHRONOUS, WriteApi

from app.core.exceptions import SinkError

logger = logging.getLogger(__name__)


class InfluxSink:
    """Blocking InfluxDB writer owned by the lifecycle"""

    def __init__(self, url: str, token: str, org: str, bucket: str, timeout_ms: int = 5000,
                 client: Optional[InfluxDBClient] = None):
        self.url = url
        self.org = org
        self.bucket = bucket
        self._client = client or InfluxDBClient(
            url=url,
            token=token,
            org=org,
            timeout=timeout_ms,
        )
        self._write_api: Optional[WriteApi] = None
        self._lock = threading.Lock()
        self._closed = False

    def _get_write_api(self) -> WriteApi:
        # reuse one write_api instance
        if self._write_api is None:
            self._write_api = self._client.write_api(write_options=SYNCHRONOUS)
        return self._write_api

    # ------------------------------------------------------------
    # 1. write_point() - write one point
    # ------------------------------------------------------------
    def write_point(self, measurement: str, tags: Dict[str, str], fields: Dict[str, Any],
                    timestamp: Optional[datetime] = None) -> None:
        """
        Raises:
            SinkError: no valid fields, sink closed, or write failed
        """
        point = build_point(measurement, tags, fields, timestamp)
        if point is None:
            raise SinkError(f"no valid fields for measurement {measurement!r}")

        with self._lock:
            if self._closed:
                raise SinkError("InfluxDB sink is closed")
            try:
                self._get_write_api().write(bucket=self.bucket, org=self.org, record=point)
            except Exception as e:
                raise SinkError(f"InfluxDB write failed: {e}") from e

    # ------------------------------------------------------------
    # 2. close() - release write API and client
    # ------------------------------------------------------------
    def close(self) -> None:
        """Close write_api first, then the client; later calls are no-ops"""
        with self._lock:
            if self._closed:
                return
            self._closed = True

            if self._write_api is not None:
                try:
                    self._write_api.close()
                except Exception as e:
                    logger.warning(f"[InfluxDB] failed to close write_api: {e}")
                finally:
                    self._write_api = None

            try:
                self._client.close()
                logger.info("[InfluxDB] client closed")
            except Exception as e:
                logger.warning(f"[InfluxDB] failed to close client: {e}")


# ------------------------------------------------------------
# 3. build_point() - build a Point object
# ------------------------------------------------------------
def build_point(measurement: str, tags: Dict[str, str], fields: Dict[str, Any],
                timestamp: Optional[datetime] = None) -> Optional[Point]:
    """
    Build an InfluxDB Point.

    None and string field values are skipped. Naive timestamps are taken
    as UTC.

    Returns:
        Point, or None when no field is left
    """
    point = Point(measurement)

    for k, v in tags.items():
        point = point.tag(k, v)

    valid_fields = 0
    for k, v in fields.items():
        if v is None or isinstance(v, str):
            continue
        point = point.field(k, v)
        valid_fields += 1

    if valid_fields == 0:
        return None

    if timestamp:
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        else:
            timestamp = timestamp.astimezone(timezone.utc)
        point = point.time(timestamp)

    return point
