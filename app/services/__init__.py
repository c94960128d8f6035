# ============================================================
# Services package
# ============================================================
# - sample_cache: latest sample slot
# - polling_service: PLC poller
# - lifecycle: startup / shutdown coordination
# ============================================================

from .sample_cache import SampleCache
from .polling_service import Poller, PollerState
from .lifecycle import Lifecycle

__all__ = [
    'SampleCache',
    'Poller',
    'PollerState',
    'Lifecycle',
]
