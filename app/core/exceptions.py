# ============================================================
# File: exceptions.py - Error taxonomy
# ============================================================
# Startup errors (fatal):
#   ConfigError, EndpointUnreachableError, PLCConnectionError
# Startup interrupted by a stop request:
#   StartupCancelledError
# Per-tick errors (logged, tick skipped):
#   PLCReadError, DecodeError, SinkError
# ============================================================


class PLCSamplerError(Exception):
    """Base class for all service errors"""


class ConfigError(PLCSamplerError):
    """Configuration file missing or invalid"""


class EndpointUnreachableError(PLCSamplerError):
    """Pre-flight reachability probe failed"""


class PLCConnectionError(PLCSamplerError, ConnectionError):
    """The controller link could not be opened"""


class PLCReadError(PLCSamplerError):
    """A single block read failed"""


class DecodeError(PLCSamplerError):
    """Payload could not be decoded"""


class PayloadTooShortError(DecodeError):
    """Payload is shorter than the fixed record layout"""

    def __init__(self, length: int, expected: int):
        self.length = length
        self.expected = expected
        super().__init__(f"payload too short: got {length} bytes, need {expected}")


class SinkError(PLCSamplerError):
    """Forwarding a sample to the time-series sink failed"""


class StartupCancelledError(PLCSamplerError):
    """A stop was requested before startup finished"""
