"""
SLA Application Layer
======================

Application layer for SLA tracking module.

Contains:
- Services: Breach detection, metrics aggregation, SLA lookups
- DTOs: Data transfer objects for API serialization

This layer depends on the domain layer and repository interfaces,
but not on concrete infrastructure implementations.
"""

from slaguard.sla.application.dto import (
    IncidentCreateDTO,
    IncidentIngestRequest,
    AcknowledgeBreachRequest,
    IngestResponse,
    SLAStatusResponse,
    BreachResponse,
    ComplianceStatsResponse,
    SLAMetricsResponse,
    PolicyResponse,
)
from slaguard.sla.application.services import (
    BreachDetector,
    MetricsAggregator,
    SLAService,
    IIncidentRepository,
    IBreachRepository,
    ISLAConfigProvider,
    new_breach_id,
)

__all__ = [
    # DTOs
    "IncidentCreateDTO",
    "IncidentIngestRequest",
    "AcknowledgeBreachRequest",
    "IngestResponse",
    "SLAStatusResponse",
    "BreachResponse",
    "ComplianceStatsResponse",
    "SLAMetricsResponse",
    "PolicyResponse",
    # Services
    "BreachDetector",
    "MetricsAggregator",
    "SLAService",
    "new_breach_id",
    # Repository Interfaces
    "IIncidentRepository",
    "IBreachRepository",
    "ISLAConfigProvider",
]
