"""
Escalation Interfaces Layer
============================

FastAPI routes for escalation rules and executions.
"""

from slaguard.escalation.interfaces.controllers import router as escalation_router

__all__ = ["escalation_router"]
