"""
SLA Value Objects
==================

Immutable value objects for SLA domain.

Value objects are defined by their attributes rather than an identity.
They are immutable and can be freely shared.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from slaguard.config import Severity, SLAState, BreachType
from slaguard.core import ConfigurationException
from slaguard.sla.domain.entities import Incident, SLAStatus

DEFAULT_AT_RISK_THRESHOLD = 80.0


class SLAPolicy(BaseModel):
    """
    SLA targets for one severity.

    Targets may be given as timedeltas, seconds, ISO-8601 durations, or as
    ``response_minutes`` / ``resolution_minutes`` in YAML.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    name: str = ""
    description: str = ""
    severity: Severity
    response_target: timedelta
    resolution_target: timedelta
    compliance_target: float = Field(default=95.0, ge=0, le=100, description="Target compliance percent")
    enabled: bool = True
    escalation_rules: List[str] = Field(
        default_factory=list,
        description="Rule ids allowed for this severity; empty means all rules"
    )

    @model_validator(mode="before")
    @classmethod
    def _minutes_to_targets(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for clock in ("response", "resolution"):
            minutes = data.pop(f"{clock}_minutes", None)
            if minutes is not None and f"{clock}_target" not in data:
                data[f"{clock}_target"] = timedelta(minutes=minutes)
        return data

    @model_validator(mode="after")
    def _check_targets(self) -> "SLAPolicy":
        if self.response_target <= timedelta(0) or self.resolution_target <= timedelta(0):
            raise ValueError("SLA targets must be positive")
        return self


class PolicyCatalog:
    """
    Severity to SLA policy lookup.

    Disabled policies are ignored; when two enabled policies share a
    severity the later one wins.
    """

    def __init__(self, policies: Iterable[SLAPolicy] = ()):
        self._by_severity: Dict[Severity, SLAPolicy] = {}
        for policy in policies:
            if policy.enabled:
                self._by_severity[policy.severity] = policy

    def find(self, severity: Severity) -> Optional[SLAPolicy]:
        return self._by_severity.get(Severity(severity))

    def get(self, severity: Severity) -> SLAPolicy:
        """
        Get the policy for a severity.

        Raises:
            ConfigurationException: no enabled policy covers the severity
        """
        policy = self.find(severity)
        if policy is None:
            raise ConfigurationException(
                f"No SLA policy configured for severity '{Severity(severity).value}'",
                {"severity": Severity(severity).value}
            )
        return policy

    def policies(self) -> List[SLAPolicy]:
        return list(self._by_severity.values())

    def __contains__(self, severity: object) -> bool:
        return severity in self._by_severity

    def __len__(self) -> int:
        return len(self._by_severity)


class SLACalculator:
    """
    Pure functions for SLA calculations.

    Stateless utility class - all SLA status logic in one place.
    """

    @staticmethod
    def calculate_status(
        incident: Incident,
        policy: SLAPolicy,
        current_time: Optional[datetime] = None,
        at_risk_threshold: float = DEFAULT_AT_RISK_THRESHOLD
    ) -> SLAStatus:
        """
        Calculate the live SLA status of an incident.

        Args:
            incident: Incident to evaluate
            policy: Policy for the incident's severity
            current_time: Evaluation time (defaults to now)
            at_risk_threshold: Percent of the resolution target at which the
                incident becomes at risk

        Returns:
            SLAStatus: status, progress and breach details
        """
        now = current_time or datetime.now(timezone.utc)

        response_deadline = incident.created_at + policy.response_target
        resolution_deadline = incident.created_at + policy.resolution_target

        # Clocks stop at first response / resolution
        response_end = incident.first_response_at or now
        resolution_end = (incident.resolved_at or incident.updated_at) if incident.is_resolved else now

        response_elapsed = response_end - incident.created_at
        elapsed = resolution_end - incident.created_at

        response_breached = response_elapsed >= policy.response_target
        resolution_breached = elapsed >= policy.resolution_target

        percent_complete = max(0.0, elapsed / policy.resolution_target * 100)

        if response_breached or resolution_breached:
            state = SLAState.BREACHED
        elif percent_complete >= at_risk_threshold:
            state = SLAState.AT_RISK
        else:
            state = SLAState.ON_TRACK

        if response_breached and resolution_breached:
            breach_type = BreachType.BOTH
        elif response_breached:
            breach_type = BreachType.RESPONSE
        elif resolution_breached:
            breach_type = BreachType.RESOLUTION
        else:
            breach_type = BreachType.NONE

        overruns = []
        if response_breached:
            overruns.append(response_elapsed - policy.response_target)
        if resolution_breached:
            overruns.append(elapsed - policy.resolution_target)
        time_over_breach = max(overruns, default=timedelta(0))

        return SLAStatus(
            incident_id=incident.id,
            policy_id=policy.id,
            status=state,
            percent_complete=percent_complete,
            elapsed=elapsed,
            response_deadline=response_deadline,
            resolution_deadline=resolution_deadline,
            time_to_response_breach=response_deadline - response_end,
            time_to_resolution_breach=resolution_deadline - resolution_end,
            response_breached=response_breached,
            resolution_breached=resolution_breached,
            breach_type=breach_type,
            time_over_breach=time_over_breach,
        )


def format_duration(duration: timedelta) -> str:
    """Render a duration the way operators read it: 1d 2h, 3h 5m, 4m, 12s."""
    seconds = int(abs(duration.total_seconds()))
    minutes, hours, days = seconds // 60, seconds // 3600, seconds // 86400
    sign = "-" if duration < timedelta(0) else ""

    if days > 0:
        return f"{sign}{days}d {hours % 24}h"
    if hours > 0:
        return f"{sign}{hours}h {minutes % 60}m"
    if minutes > 0:
        return f"{sign}{minutes}m"
    return f"{sign}{seconds}s"
