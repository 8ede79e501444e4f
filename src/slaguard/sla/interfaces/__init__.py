"""
SLA Interfaces Layer
=====================

FastAPI routes for SLA tracking.
"""

from slaguard.sla.interfaces.controllers import router as sla_router

__all__ = ["sla_router"]
