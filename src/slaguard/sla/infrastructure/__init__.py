"""
SLA Infrastructure Layer
=========================

Concrete implementations for SLA tracking:
- In-memory incident and breach repositories
- YAML configuration with hot reload
- Background evaluation scheduler
"""

from slaguard.sla.infrastructure.repositories import (
    InMemoryIncidentRepository,
    InMemoryBreachRepository,
)
from slaguard.sla.infrastructure.external import (
    ConfigFileHandler,
    SLAConfigManager,
    SLAScheduler,
)

__all__ = [
    "InMemoryIncidentRepository",
    "InMemoryBreachRepository",
    "ConfigFileHandler",
    "SLAConfigManager",
    "SLAScheduler",
]
