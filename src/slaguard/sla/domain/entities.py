"""
SLA Domain Entities
====================

Pure Python domain entities for SLA tracking.

Following Domain-Driven Design principles, these entities contain
business logic and are free of infrastructure concerns.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from slaguard.config import (
    Severity, IncidentStatus, SLAState, BreachType,
    TERMINAL_STATUSES, VALID_SEVERITIES
)


@dataclass
class Incident:
    """
    Incident entity as supplied by the incident store.

    The SLA engine reads incidents; the only writes go through escalation
    actions (severity upgrade, assignment, auto-approval).
    """

    # Core attributes
    id: str
    title: str
    severity: Severity
    status: IncidentStatus

    # Timestamps
    created_at: datetime
    updated_at: datetime

    # Optional SLA tracking fields
    first_response_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None

    # Fields touched by escalation actions
    assignee: Optional[str] = None
    requires_approval: bool = False
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None

    def __post_init__(self):
        """Validate incident on initialization."""
        self.severity = Severity(self.severity)
        self.status = IncidentStatus(self.status)

        if self.created_at.tzinfo is None:
            raise ValueError("created_at must be timezone-aware")

        if self.updated_at < self.created_at:
            raise ValueError("updated_at cannot be before created_at")

        if self.first_response_at and self.first_response_at < self.created_at:
            raise ValueError("first_response_at cannot be before created_at")

        if self.resolved_at and self.resolved_at < self.created_at:
            raise ValueError("resolved_at cannot be before created_at")

    @property
    def is_active(self) -> bool:
        """Check if incident is still tracked against its SLA."""
        return self.status not in TERMINAL_STATUSES

    @property
    def is_resolved(self) -> bool:
        return self.status == IncidentStatus.RESOLVED

    @property
    def resolution_time(self) -> Optional[timedelta]:
        """Time from creation to resolution, for resolved incidents only."""
        if not self.is_resolved:
            return None
        return (self.resolved_at or self.updated_at) - self.created_at

    @property
    def response_time(self) -> Optional[timedelta]:
        if self.first_response_at is None:
            return None
        return self.first_response_at - self.created_at

    def touch(self, timestamp: Optional[datetime] = None) -> None:
        self.updated_at = max(self.updated_at, timestamp or datetime.now(timezone.utc))

    def mark_first_response(self, timestamp: Optional[datetime] = None) -> None:
        """Mark first response time."""
        if self.first_response_at is not None:
            return
        self.first_response_at = timestamp or datetime.now(timezone.utc)
        self.touch(self.first_response_at)

    def mark_resolved(self, timestamp: Optional[datetime] = None) -> None:
        """Mark incident as resolved."""
        self.resolved_at = timestamp or datetime.now(timezone.utc)
        self.status = IncidentStatus.RESOLVED
        self.touch(self.resolved_at)

    def upgrade_severity(self, new_severity: Severity, timestamp: Optional[datetime] = None) -> bool:
        """
        Raise the incident's severity.

        Returns False when new_severity is not more urgent than the current one.
        """
        new_severity = Severity(new_severity)
        if VALID_SEVERITIES.index(new_severity) >= VALID_SEVERITIES.index(self.severity):
            return False
        self.severity = new_severity
        self.touch(timestamp)
        return True

    def approve(self, approved_by: str, timestamp: Optional[datetime] = None) -> None:
        self.requires_approval = False
        self.approved_by = approved_by
        self.approved_at = timestamp or datetime.now(timezone.utc)
        if self.status == IncidentStatus.PENDING_APPROVAL:
            self.status = IncidentStatus.IN_PROGRESS
        self.touch(self.approved_at)

    def assign(self, assignee: str, timestamp: Optional[datetime] = None) -> None:
        self.assignee = assignee
        self.touch(timestamp)


@dataclass(frozen=True)
class SLAStatus:
    """
    Live SLA status of one incident.

    Derived on demand, never persisted. Durations are negative when the
    corresponding deadline has passed.
    """

    incident_id: str
    policy_id: str
    status: SLAState
    percent_complete: float
    elapsed: timedelta

    response_deadline: datetime
    resolution_deadline: datetime
    time_to_response_breach: timedelta
    time_to_resolution_breach: timedelta

    response_breached: bool
    resolution_breached: bool
    breach_type: BreachType
    time_over_breach: timedelta

    @property
    def is_breached(self) -> bool:
        return self.status == SLAState.BREACHED

    @property
    def is_at_risk(self) -> bool:
        return self.status == SLAState.AT_RISK


@dataclass
class SLABreach:
    """
    A recorded SLA breach.

    Created once per (incident, breach type) by the breach detector. Only
    acknowledgment, escalation linking and resolution marking mutate it.
    """

    id: str
    incident_id: str
    incident_title: str
    severity: Severity
    policy_id: str
    breach_type: BreachType
    breached_at: datetime
    time_over_breach: timedelta

    acknowledged: bool = False
    acknowledged_by: Optional[str] = None
    acknowledged_at: Optional[datetime] = None
    notes: Optional[str] = None

    escalation_executions: List[str] = field(default_factory=list)

    resolved: bool = False
    resolved_at: Optional[datetime] = None

    @property
    def key(self) -> tuple[str, BreachType]:
        """Identity used for duplicate suppression."""
        return self.incident_id, self.breach_type

    def acknowledge(
        self,
        acknowledged_by: str,
        notes: Optional[str] = None,
        timestamp: Optional[datetime] = None
    ) -> None:
        """Acknowledge the breach. Re-acknowledging keeps the first timestamp."""
        if not self.acknowledged:
            self.acknowledged_at = timestamp or datetime.now(timezone.utc)
        self.acknowledged = True
        self.acknowledged_by = acknowledged_by
        if notes is not None:
            self.notes = notes

    def link_execution(self, execution_id: str) -> None:
        if execution_id not in self.escalation_executions:
            self.escalation_executions.append(execution_id)

    def mark_resolved(self, timestamp: Optional[datetime] = None) -> None:
        if self.resolved:
            return
        self.resolved = True
        self.resolved_at = timestamp or datetime.now(timezone.utc)


@dataclass
class ComplianceStats:
    """Compliance figures for one bucket of resolved incidents."""

    compliance: float
    total_incidents: int
    compliant_incidents: int
    breached_incidents: int
    average_response_time: timedelta
    average_resolution_time: timedelta
    compliance_target: Optional[float] = None

    @property
    def meets_target(self) -> Optional[bool]:
        if self.compliance_target is None:
            return None
        return self.compliance >= self.compliance_target


@dataclass
class SLAMetrics:
    """Roll-up of historical SLA performance."""

    overall: ComplianceStats
    by_severity: Dict[Severity, ComplianceStats]
