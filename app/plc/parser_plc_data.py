# ============================================================
# File: parser_plc_data.py - PLC data block parser (DB1)
# ============================================================
# DB1 layout (7 bytes, big-endian as stored by the S7 CPU):
#   offset 0  Byte  Tag1
#   offset 1  Byte  Tag2
#   offset 2  Byte  Tag3
#   offset 3  DInt  Tag4
# ============================================================

import struct
from dataclasses import dataclass
from typing import Dict, Any

from app.core.exceptions import PayloadTooShortError

DB_NUMBER = 1
START_OFFSET = 0
PAYLOAD_FORMAT = ">BBBi"
PAYLOAD_SIZE = struct.calcsize(PAYLOAD_FORMAT)


@dataclass(frozen=True)
class PLCData:
    """One decoded DB1 sample"""
    tag1: int = 0
    tag2: int = 0
    tag3: int = 0
    tag4: int = 0

    def to_dict(self) -> Dict[str, int]:
        """JSON representation served over HTTP"""
        return {
            "Tag1": self.tag1,
            "Tag2": self.tag2,
            "Tag3": self.tag3,
            "Tag4": self.tag4,
        }

    def to_fields(self) -> Dict[str, Any]:
        """InfluxDB field set (Tag4 is not stored)"""
        return {
            "temperature1": self.tag1,
            "temperature2": self.tag2,
            "temperature3": self.tag3,
        }


def decode_plc_data(data: bytes) -> PLCData:
    """
    Decode a DB1 payload.

    Only the first PAYLOAD_SIZE bytes are used; anything after them is
    ignored.

    Raises:
        PayloadTooShortError: fewer than PAYLOAD_SIZE bytes
    """
    if len(data) < PAYLOAD_SIZE:
        raise PayloadTooShortError(len(data), PAYLOAD_SIZE)

    tag1, tag2, tag3, tag4 = struct.unpack(PAYLOAD_FORMAT, bytes(data[:PAYLOAD_SIZE]))
    return PLCData(tag1=tag1, tag2=tag2, tag3=tag3, tag4=tag4)
