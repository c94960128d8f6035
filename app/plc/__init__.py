"""PLC Communication Module"""

from app.plc.s7_client import S7Client
from app.plc.mock_client import MockS7Client
from app.plc.parser_plc_data import PLCData, decode_plc_data

__all__ = [
    'S7Client',
    'MockS7Client',
    'PLCData',
    'decode_plc_data',
]
