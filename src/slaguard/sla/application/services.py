"""
SLA Application Services
=========================

Application services orchestrate business logic and coordinate between
domain entities and repositories.

Following SOLID principles:
- Single Responsibility: Each service has one clear purpose
- Dependency Inversion: Depend on abstractions (repositories), not concrete implementations
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional, Set, Tuple
from uuid import uuid4

from slaguard.config import Severity, BreachType, VALID_SEVERITIES
from slaguard.core import ConfigurationException, ResourceNotFoundException
from slaguard.sla.domain import (
    Incident, SLABreach, SLAMetrics, SLAPolicy, SLAStatus,
    ComplianceStats, PolicyCatalog, SLACalculator,
    DEFAULT_AT_RISK_THRESHOLD,
)
from slaguard.shared.infrastructure.logging import get_logger

if TYPE_CHECKING:
    from slaguard.config.sla import SLAConfig

logger = get_logger(__name__)


# ========== Repository Interfaces (Dependency Inversion) ==========

class IIncidentRepository(ABC):
    """Interface for incident data access."""

    @abstractmethod
    async def get_by_id(self, incident_id: str) -> Optional[Incident]:
        """Get incident by ID."""

    @abstractmethod
    async def list_active(self) -> List[Incident]:
        """List incidents that are neither resolved nor failed."""

    @abstractmethod
    async def list_all(self) -> List[Incident]:
        """List every known incident."""

    @abstractmethod
    async def save(self, incident: Incident) -> Incident:
        """Create or replace an incident."""


class IBreachRepository(ABC):
    """Interface for SLA breach data access."""

    @abstractmethod
    async def add(self, breach: SLABreach) -> SLABreach:
        """Record a new breach."""

    @abstractmethod
    async def get_by_id(self, breach_id: str) -> Optional[SLABreach]:
        """Get breach by ID."""

    @abstractmethod
    async def list_for_incident(self, incident_id: str) -> List[SLABreach]:
        """All breaches of one incident, oldest first."""

    @abstractmethod
    async def list(
        self,
        unresolved_only: bool = False,
        acknowledged: Optional[bool] = None
    ) -> List[SLABreach]:
        """List breaches, newest first."""


class ISLAConfigProvider(ABC):
    """Interface for SLA configuration access."""

    @abstractmethod
    def get_config(self) -> "SLAConfig":
        """Get current SLA configuration."""


# ========== Domain Services ==========

def new_breach_id() -> str:
    return f"breach-{uuid4().hex[:12]}"


class BreachDetector:
    """
    Turns breached SLA statuses into breach records.

    Detection is a set difference against the unresolved breaches already
    recorded, so running it repeatedly without incident changes yields
    nothing new.
    """

    def __init__(self, at_risk_threshold: float = DEFAULT_AT_RISK_THRESHOLD):
        self.at_risk_threshold = at_risk_threshold

    @staticmethod
    def recorded_keys(breaches: Iterable[SLABreach]) -> Set[Tuple[str, BreachType]]:
        return {b.key for b in breaches if not b.resolved}

    def breach_for(
        self,
        incident: Incident,
        status: SLAStatus,
        recorded: Set[Tuple[str, BreachType]],
        current_time: Optional[datetime] = None
    ) -> Optional[SLABreach]:
        """
        Build the breach record for one evaluated incident, if it is new.

        Adds the new key to ``recorded`` so callers iterating a batch cannot
        emit the same pair twice.
        """
        if not status.is_breached or status.breach_type == BreachType.NONE:
            return None

        key = (incident.id, status.breach_type)
        if key in recorded:
            return None

        recorded.add(key)
        return SLABreach(
            id=new_breach_id(),
            incident_id=incident.id,
            incident_title=incident.title,
            severity=incident.severity,
            policy_id=status.policy_id,
            breach_type=status.breach_type,
            breached_at=current_time or datetime.now(timezone.utc),
            time_over_breach=status.time_over_breach,
        )

    def detect(
        self,
        incidents: Iterable[Incident],
        catalog: PolicyCatalog,
        existing_breaches: Iterable[SLABreach] = (),
        current_time: Optional[datetime] = None
    ) -> List[SLABreach]:
        """
        Scan active incidents and return newly breached ones.

        Args:
            incidents: Incidents to scan; resolved and failed ones are ignored
            catalog: Policy lookup
            existing_breaches: Breaches recorded by earlier scans
            current_time: Evaluation time (defaults to now)

        Returns:
            List of new SLABreach records (possibly empty)
        """
        now = current_time or datetime.now(timezone.utc)
        recorded = self.recorded_keys(existing_breaches)
        new_breaches: List[SLABreach] = []

        for incident in incidents:
            if not incident.is_active:
                continue

            try:
                policy = catalog.get(incident.severity)
            except ConfigurationException as e:
                logger.warning(
                    "Skipping incident without SLA policy",
                    extra={"incident_id": incident.id, "error": e.message}
                )
                continue

            status = SLACalculator.calculate_status(incident, policy, now, self.at_risk_threshold)
            breach = self.breach_for(incident, status, recorded, now)
            if breach:
                new_breaches.append(breach)

        return new_breaches


class MetricsAggregator:
    """
    Rolls resolved incidents up into compliance figures.

    An incident is compliant when its resolution time is within the
    resolution target of its severity's policy.
    """

    @staticmethod
    def _stats(
        resolution_times: List[timedelta],
        response_times: List[timedelta],
        compliant: int,
        compliance_target: Optional[float] = None
    ) -> ComplianceStats:
        total = len(resolution_times)
        return ComplianceStats(
            compliance=(compliant / total * 100) if total else 100.0,
            total_incidents=total,
            compliant_incidents=compliant,
            breached_incidents=total - compliant,
            average_response_time=(
                sum(response_times, timedelta(0)) / len(response_times)
                if response_times else timedelta(0)
            ),
            average_resolution_time=(
                sum(resolution_times, timedelta(0)) / total if total else timedelta(0)
            ),
            compliance_target=compliance_target,
        )

    def aggregate(self, incidents: Iterable[Incident], catalog: PolicyCatalog) -> SLAMetrics:
        resolution_times: Dict[Severity, List[timedelta]] = {s: [] for s in VALID_SEVERITIES}
        response_times: Dict[Severity, List[timedelta]] = {s: [] for s in VALID_SEVERITIES}
        compliant: Dict[Severity, int] = {s: 0 for s in VALID_SEVERITIES}

        for incident in incidents:
            if not incident.is_resolved:
                continue

            policy = catalog.find(incident.severity)
            if policy is None:
                logger.debug(
                    "Resolved incident has no SLA policy, excluded from metrics",
                    extra={"incident_id": incident.id, "severity": incident.severity.value}
                )
                continue

            resolution_time = incident.resolution_time
            resolution_times[incident.severity].append(resolution_time)
            if incident.response_time is not None:
                response_times[incident.severity].append(incident.response_time)
            if resolution_time <= policy.resolution_target:
                compliant[incident.severity] += 1

        by_severity = {}
        for severity in VALID_SEVERITIES:
            policy = catalog.find(severity)
            by_severity[severity] = self._stats(
                resolution_times[severity],
                response_times[severity],
                compliant[severity],
                policy.compliance_target if policy else None,
            )

        overall = self._stats(
            [t for times in resolution_times.values() for t in times],
            [t for times in response_times.values() for t in times],
            sum(compliant.values()),
        )
        return SLAMetrics(overall=overall, by_severity=by_severity)


# ========== Application Services ==========

class SLAService:
    """
    Service for SLA lookups and breach management.

    Coordinates between domain logic and data access.
    """

    def __init__(
        self,
        incident_repository: IIncidentRepository,
        breach_repository: IBreachRepository,
        config_provider: ISLAConfigProvider
    ):
        self._incident_repo = incident_repository
        self._breach_repo = breach_repository
        self._config_provider = config_provider
        self._aggregator = MetricsAggregator()

    def catalog(self) -> PolicyCatalog:
        return self._config_provider.get_config().catalog()

    def policies(self) -> List[SLAPolicy]:
        return self.catalog().policies()

    async def get_incident(self, incident_id: str) -> Incident:
        incident = await self._incident_repo.get_by_id(incident_id)
        if incident is None:
            raise ResourceNotFoundException("Incident", incident_id)
        return incident

    async def calculate_status(
        self,
        incident_id: str,
        current_time: Optional[datetime] = None
    ) -> SLAStatus:
        """
        Calculate live SLA status for one incident.

        Raises:
            ResourceNotFoundException: unknown incident
            ConfigurationException: no policy for the incident's severity
        """
        config = self._config_provider.get_config()
        incident = await self.get_incident(incident_id)
        policy = config.catalog().get(incident.severity)
        return SLACalculator.calculate_status(
            incident, policy, current_time, config.at_risk_threshold_percent
        )

    async def list_breaches(
        self,
        unresolved_only: bool = False,
        acknowledged: Optional[bool] = None
    ) -> List[SLABreach]:
        return await self._breach_repo.list(unresolved_only=unresolved_only, acknowledged=acknowledged)

    async def acknowledge_breach(
        self,
        breach_id: str,
        acknowledged_by: str,
        notes: Optional[str] = None
    ) -> SLABreach:
        breach = await self._breach_repo.get_by_id(breach_id)
        if breach is None:
            raise ResourceNotFoundException("SLA breach", breach_id)

        breach.acknowledge(acknowledged_by, notes)
        logger.info(
            "SLA breach acknowledged",
            extra={"breach_id": breach_id, "incident_id": breach.incident_id, "acknowledged_by": acknowledged_by}
        )
        return breach

    async def get_metrics(self) -> SLAMetrics:
        incidents = await self._incident_repo.list_all()
        return self._aggregator.aggregate(incidents, self.catalog())
