# ============================================================
# Routers package
# ============================================================
# - plc_data: latest sample (/)
# - health: health checks (/api/health)
# ============================================================

from . import health
from . import plc_data

__all__ = ['health', 'plc_data']
