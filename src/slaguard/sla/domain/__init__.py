"""
SLA Domain Layer
================

Domain layer for SLA tracking module.

Contains:
- Entities: Incident, SLAStatus, SLABreach, SLAMetrics
- Value Objects: SLAPolicy, PolicyCatalog
- Domain Services: Stateless business logic (SLACalculator)

This layer has no dependencies on infrastructure - pure Python business logic.
"""

from slaguard.sla.domain.entities import (
    Incident,
    SLAStatus,
    SLABreach,
    ComplianceStats,
    SLAMetrics,
)
from slaguard.sla.domain.value_objects import (
    DEFAULT_AT_RISK_THRESHOLD,
    SLAPolicy,
    PolicyCatalog,
    SLACalculator,
    format_duration,
)

__all__ = [
    # Entities
    "Incident",
    "SLAStatus",
    "SLABreach",
    "ComplianceStats",
    "SLAMetrics",
    # Value Objects & Services
    "DEFAULT_AT_RISK_THRESHOLD",
    "SLAPolicy",
    "PolicyCatalog",
    "SLACalculator",
    "format_duration",
]
