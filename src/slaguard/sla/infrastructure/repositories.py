"""
SLA Infrastructure Repositories
=================================

In-memory implementations of the SLA repository interfaces.

State lives for the lifetime of the process. All access happens on the
event loop, so no locking is needed beyond the engine's per-incident locks.
"""

from collections import defaultdict
from typing import Dict, List, Optional

from slaguard.sla.application import IIncidentRepository, IBreachRepository
from slaguard.sla.domain import Incident, SLABreach


class InMemoryIncidentRepository(IIncidentRepository):
    """Incidents keyed by ID, in insertion order."""

    def __init__(self, incidents: Optional[List[Incident]] = None):
        self._incidents: Dict[str, Incident] = {}
        for incident in incidents or []:
            self._incidents[incident.id] = incident

    async def get_by_id(self, incident_id: str) -> Optional[Incident]:
        return self._incidents.get(incident_id)

    async def list_active(self) -> List[Incident]:
        return [i for i in self._incidents.values() if i.is_active]

    async def list_all(self) -> List[Incident]:
        return list(self._incidents.values())

    async def save(self, incident: Incident) -> Incident:
        self._incidents[incident.id] = incident
        return incident


class InMemoryBreachRepository(IBreachRepository):
    """Breaches keyed by ID and indexed by incident."""

    def __init__(self):
        self._breaches: Dict[str, SLABreach] = {}
        self._by_incident: Dict[str, List[SLABreach]] = defaultdict(list)

    async def add(self, breach: SLABreach) -> SLABreach:
        self._breaches[breach.id] = breach
        self._by_incident[breach.incident_id].append(breach)
        return breach

    async def get_by_id(self, breach_id: str) -> Optional[SLABreach]:
        return self._breaches.get(breach_id)

    async def list_for_incident(self, incident_id: str) -> List[SLABreach]:
        return list(self._by_incident.get(incident_id, []))

    async def list(
        self,
        unresolved_only: bool = False,
        acknowledged: Optional[bool] = None
    ) -> List[SLABreach]:
        breaches = [
            b for b in self._breaches.values()
            if not (unresolved_only and b.resolved)
            and (acknowledged is None or b.acknowledged == acknowledged)
        ]
        return sorted(breaches, key=lambda b: b.breached_at, reverse=True)
