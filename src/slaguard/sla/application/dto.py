"""
SLA Application DTOs
=====================

Data Transfer Objects for SLA API layer.

These Pydantic models handle serialization/deserialization and validation
for API requests and responses. Durations cross the API as milliseconds.
"""

from datetime import datetime, timedelta
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from slaguard.sla.domain import (
    Incident, SLABreach, SLAStatus, SLAPolicy, SLAMetrics, ComplianceStats,
    format_duration,
)


# ========== Type Aliases for Literals ==========
SeverityStr = Literal["critical", "high", "medium", "low"]
IncidentStatusStr = Literal["new", "in-progress", "pending-approval", "resolved", "failed"]
SLAStateStr = Literal["on-track", "at-risk", "breached"]
BreachTypeStr = Literal["response", "resolution", "both", "none"]


def to_ms(duration: timedelta) -> int:
    """Convert a timedelta to whole milliseconds."""
    return int(duration.total_seconds() * 1000)


# ========== Request DTOs ==========

class IncidentCreateDTO(BaseModel):
    """DTO for creating or replacing a single incident."""
    id: str = Field(..., min_length=1, description="Unique incident ID")
    title: str = Field(..., min_length=1, description="Incident title")
    severity: SeverityStr = Field(..., description="Incident severity")
    status: IncidentStatusStr = Field(default="new", description="Incident status")
    created_at: datetime = Field(..., description="Incident creation timestamp")
    updated_at: datetime = Field(..., description="Last update timestamp")
    first_response_at: Optional[datetime] = Field(None, description="First responder action time")
    resolved_at: Optional[datetime] = Field(None, description="Resolution time")
    assignee: Optional[str] = None
    requires_approval: bool = False

    @field_validator("updated_at")
    @classmethod
    def validate_updated_at(cls, v: datetime, info) -> datetime:
        """Ensure updated_at is not before created_at."""
        if "created_at" in info.data and v < info.data["created_at"]:
            raise ValueError("updated_at cannot be before created_at")
        return v

    def to_domain(self) -> Incident:
        """Convert to domain entity."""
        return Incident(
            id=self.id,
            title=self.title,
            severity=self.severity,
            status=self.status,
            created_at=self.created_at,
            updated_at=self.updated_at,
            first_response_at=self.first_response_at,
            resolved_at=self.resolved_at,
            assignee=self.assignee,
            requires_approval=self.requires_approval,
        )


class IncidentIngestRequest(BaseModel):
    """Request model for incident ingestion."""
    incidents: List[IncidentCreateDTO] = Field(..., description="Incidents to track")


class AcknowledgeBreachRequest(BaseModel):
    """Request model for acknowledging a breach."""
    acknowledged_by: str = Field(..., min_length=1)
    notes: Optional[str] = None


# ========== Response DTOs ==========

class IngestResponse(BaseModel):
    """Response model for incident ingestion."""
    created: int = Field(..., description="Number of new incidents")
    updated: int = Field(..., description="Number of replaced incidents")
    evaluated: bool = Field(default=False, description="Whether a re-check ran for the ingested incidents")


class SLAStatusResponse(BaseModel):
    """Response model for the live SLA status of an incident."""
    incident_id: str
    policy_id: str
    status: SLAStateStr
    percent_complete: float
    response_deadline: datetime
    resolution_deadline: datetime
    time_to_response_breach_ms: int
    time_to_resolution_breach_ms: int
    response_breached: bool
    resolution_breached: bool
    breach_type: BreachTypeStr
    time_over_breach_ms: int
    time_remaining: str = Field(..., description="Human readable time to resolution deadline")

    @classmethod
    def from_domain(cls, status: SLAStatus) -> "SLAStatusResponse":
        return cls(
            incident_id=status.incident_id,
            policy_id=status.policy_id,
            status=status.status.value,
            percent_complete=round(status.percent_complete, 2),
            response_deadline=status.response_deadline,
            resolution_deadline=status.resolution_deadline,
            time_to_response_breach_ms=to_ms(status.time_to_response_breach),
            time_to_resolution_breach_ms=to_ms(status.time_to_resolution_breach),
            response_breached=status.response_breached,
            resolution_breached=status.resolution_breached,
            breach_type=status.breach_type.value,
            time_over_breach_ms=to_ms(status.time_over_breach),
            time_remaining=format_duration(status.time_to_resolution_breach),
        )


class BreachResponse(BaseModel):
    """Response model for an SLA breach."""
    id: str
    incident_id: str
    incident_title: str
    severity: SeverityStr
    policy_id: str
    breach_type: BreachTypeStr
    breached_at: datetime
    time_over_breach_ms: int
    acknowledged: bool
    acknowledged_by: Optional[str] = None
    acknowledged_at: Optional[datetime] = None
    notes: Optional[str] = None
    escalation_executions: List[str] = Field(default_factory=list)
    resolved: bool = False
    resolved_at: Optional[datetime] = None

    @classmethod
    def from_domain(cls, breach: SLABreach) -> "BreachResponse":
        return cls(
            id=breach.id,
            incident_id=breach.incident_id,
            incident_title=breach.incident_title,
            severity=breach.severity.value,
            policy_id=breach.policy_id,
            breach_type=breach.breach_type.value,
            breached_at=breach.breached_at,
            time_over_breach_ms=to_ms(breach.time_over_breach),
            acknowledged=breach.acknowledged,
            acknowledged_by=breach.acknowledged_by,
            acknowledged_at=breach.acknowledged_at,
            notes=breach.notes,
            escalation_executions=list(breach.escalation_executions),
            resolved=breach.resolved,
            resolved_at=breach.resolved_at,
        )


class ComplianceStatsResponse(BaseModel):
    """Compliance figures for one bucket."""
    compliance: float
    total_incidents: int
    compliant_incidents: int
    breached_incidents: int
    average_response_time_ms: int
    average_resolution_time_ms: int
    compliance_target: Optional[float] = None
    meets_target: Optional[bool] = None

    @classmethod
    def from_domain(cls, stats: ComplianceStats) -> "ComplianceStatsResponse":
        return cls(
            compliance=round(stats.compliance, 2),
            total_incidents=stats.total_incidents,
            compliant_incidents=stats.compliant_incidents,
            breached_incidents=stats.breached_incidents,
            average_response_time_ms=to_ms(stats.average_response_time),
            average_resolution_time_ms=to_ms(stats.average_resolution_time),
            compliance_target=stats.compliance_target,
            meets_target=stats.meets_target,
        )


class SLAMetricsResponse(BaseModel):
    """Response model for SLA compliance metrics."""
    overall: ComplianceStatsResponse
    by_severity: Dict[SeverityStr, ComplianceStatsResponse]

    @classmethod
    def from_domain(cls, metrics: SLAMetrics) -> "SLAMetricsResponse":
        return cls(
            overall=ComplianceStatsResponse.from_domain(metrics.overall),
            by_severity={
                severity.value: ComplianceStatsResponse.from_domain(stats)
                for severity, stats in metrics.by_severity.items()
            },
        )


class PolicyResponse(BaseModel):
    """Response model for an SLA policy."""
    id: str
    name: str
    severity: SeverityStr
    response_target_ms: int
    resolution_target_ms: int
    compliance_target: float
    escalation_rules: List[str]

    @classmethod
    def from_domain(cls, policy: SLAPolicy) -> "PolicyResponse":
        return cls(
            id=policy.id,
            name=policy.name,
            severity=policy.severity.value,
            response_target_ms=to_ms(policy.response_target),
            resolution_target_ms=to_ms(policy.resolution_target),
            compliance_target=policy.compliance_target,
            escalation_rules=list(policy.escalation_rules),
        )
