"""
Escalation Application DTOs
============================

Request and response models for the escalation API.
"""

from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from slaguard.escalation.domain import ActionOutcome, EscalationRule, EscalationExecution
from slaguard.sla.application.dto import BreachResponse, SeverityStr, to_ms

TriggerStr = Literal["breach", "at-risk", "time-threshold", "manual"]
ExecutionStatusStr = Literal["executing", "completed", "failed"]


# ========== Request DTOs ==========

class RuleToggleRequest(BaseModel):
    """Request model for enabling or disabling a rule."""
    enabled: bool


class ManualExecuteRequest(BaseModel):
    """Request model for firing a rule by hand."""
    incident_id: str = Field(..., min_length=1)


class EvaluateRequest(BaseModel):
    """Request model for an on-demand evaluation."""
    incident_id: Optional[str] = Field(None, description="Evaluate one incident; omit for a full tick")


# ========== Response DTOs ==========

class ActionResponse(BaseModel):
    type: str
    priority: int
    params: Dict[str, object] = Field(default_factory=dict)


class RuleResponse(BaseModel):
    """Response model for an escalation rule."""
    id: str
    name: str
    description: str
    enabled: bool
    trigger: TriggerStr
    severities: Optional[List[SeverityStr]] = None
    breach_types: Optional[List[str]] = None
    at_risk_threshold: Optional[float] = None
    time_over_threshold_ms: Optional[int] = None
    actions: List[ActionResponse]
    cooldown_period_ms: Optional[int] = None
    max_executions: Optional[int] = None

    @classmethod
    def from_domain(cls, rule: EscalationRule) -> "RuleResponse":
        conditions = rule.conditions
        return cls(
            id=rule.id,
            name=rule.name,
            description=rule.description,
            enabled=rule.enabled,
            trigger=rule.trigger.value,
            severities=[s.value for s in conditions.severities] if conditions.severities is not None else None,
            breach_types=[b.value for b in conditions.breach_types] if conditions.breach_types is not None else None,
            at_risk_threshold=conditions.at_risk_threshold,
            time_over_threshold_ms=(
                to_ms(conditions.time_over_threshold) if conditions.time_over_threshold is not None else None
            ),
            actions=[
                ActionResponse(
                    type=a.type.value,
                    priority=a.priority,
                    params=a.params.model_dump(mode="json", exclude_none=True),
                )
                for a in rule.ordered_actions()
            ],
            cooldown_period_ms=to_ms(rule.cooldown_period) if rule.cooldown_period is not None else None,
            max_executions=rule.max_executions,
        )


class ActionOutcomeResponse(BaseModel):
    action_type: str
    priority: int
    executed_at: datetime
    success: bool
    result: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def from_domain(cls, outcome: ActionOutcome) -> "ActionOutcomeResponse":
        return cls(
            action_type=outcome.action_type.value,
            priority=outcome.priority,
            executed_at=outcome.executed_at,
            success=outcome.success,
            result=outcome.result,
            error=outcome.error,
        )


class ExecutionResponse(BaseModel):
    """Response model for an escalation execution."""
    id: str
    rule_id: str
    rule_name: str
    incident_id: str
    breach_id: Optional[str] = None
    trigger: TriggerStr
    triggered_at: datetime
    status: ExecutionStatusStr
    completed_at: Optional[datetime] = None
    summary: str
    actions_executed: List[ActionOutcomeResponse]
    error: Optional[str] = None

    @classmethod
    def from_domain(cls, execution: EscalationExecution) -> "ExecutionResponse":
        return cls(
            id=execution.id,
            rule_id=execution.rule_id,
            rule_name=execution.rule_name,
            incident_id=execution.incident_id,
            breach_id=execution.breach_id,
            trigger=execution.trigger.value,
            triggered_at=execution.triggered_at,
            status=execution.status.value,
            completed_at=execution.completed_at,
            summary=execution.summary,
            actions_executed=[ActionOutcomeResponse.from_domain(a) for a in execution.actions_executed],
            error=execution.error,
        )


class TickReportResponse(BaseModel):
    """Response model for an evaluation pass."""
    correlation_id: str
    started_at: datetime
    finished_at: Optional[datetime] = None
    incidents_evaluated: int
    new_breaches: List[BreachResponse]
    executions: List[ExecutionResponse]
    resolved_breaches: List[str]
    skipped: Dict[str, str]
    errors: Dict[str, str]

    @classmethod
    def from_domain(cls, report) -> "TickReportResponse":
        return cls(
            correlation_id=report.correlation_id,
            started_at=report.started_at,
            finished_at=report.finished_at,
            incidents_evaluated=report.incidents_evaluated,
            new_breaches=[BreachResponse.from_domain(b) for b in report.new_breaches],
            executions=[ExecutionResponse.from_domain(e) for e in report.executions],
            resolved_breaches=[b.id for b in report.resolved_breaches],
            skipped=dict(report.skipped),
            errors=dict(report.errors),
        )
