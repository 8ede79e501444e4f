"""
Escalation Domain Entities
===========================

Escalation rules are configuration loaded from YAML (pydantic models);
executions are records created by the engine (dataclasses).
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator, model_validator

from slaguard.config import (
    Severity, BreachType, EscalationTrigger, ActionType, ExecutionStatus
)


class ActionParams(BaseModel):
    """Parameters an action handler may need; unused ones stay None."""
    team: Optional[str] = None
    new_severity: Optional[Severity] = None
    assignee: Optional[str] = None
    workflow_id: Optional[str] = None
    webhook_url: Optional[str] = None
    message: Optional[str] = None
    channels: Optional[List[str]] = None


class EscalationAction(BaseModel):
    """One step of an escalation rule. Lower priority numbers run first."""
    type: ActionType
    priority: int = Field(default=1, ge=0)
    params: ActionParams = Field(default_factory=ActionParams)


class EscalationConditions(BaseModel):
    """AND-combined rule conditions; None means the condition is not checked."""
    severities: Optional[List[Severity]] = None
    breach_types: Optional[List[BreachType]] = Field(default=None, alias="breach_type")
    at_risk_threshold: Optional[float] = Field(default=None, ge=0)
    time_over_threshold: Optional[timedelta] = None

    model_config = {"populate_by_name": True}

    @model_validator(mode="before")
    @classmethod
    def _minutes_to_threshold(cls, data: Any) -> Any:
        if isinstance(data, dict) and "time_over_threshold_minutes" in data:
            data = dict(data)
            data["time_over_threshold"] = timedelta(minutes=data.pop("time_over_threshold_minutes"))
        return data


class EscalationRule(BaseModel):
    """
    Condition to ordered-actions mapping.

    ``enabled`` is the only field that changes at runtime.
    """
    id: str = Field(..., min_length=1)
    name: str
    description: str = ""
    enabled: bool = True
    trigger: EscalationTrigger
    conditions: EscalationConditions = Field(default_factory=EscalationConditions)
    actions: List[EscalationAction] = Field(default_factory=list)
    cooldown_period: Optional[timedelta] = None
    max_executions: Optional[int] = Field(default=None, ge=1)

    @model_validator(mode="before")
    @classmethod
    def _minutes_to_cooldown(cls, data: Any) -> Any:
        if isinstance(data, dict) and "cooldown_minutes" in data:
            data = dict(data)
            data["cooldown_period"] = timedelta(minutes=data.pop("cooldown_minutes"))
        return data

    @field_validator("actions")
    @classmethod
    def validate_actions(cls, v: List[EscalationAction]) -> List[EscalationAction]:
        if not v:
            raise ValueError("an escalation rule needs at least one action")
        return v

    def ordered_actions(self) -> List[EscalationAction]:
        """Actions in execution order; ties keep their configured order."""
        return sorted(self.actions, key=lambda a: a.priority)

    @property
    def urgency(self) -> int:
        """Priority of the rule's most urgent action."""
        return min(a.priority for a in self.actions)


@dataclass
class ActionOutcome:
    """Result of running one action inside an execution."""

    action_type: ActionType
    priority: int
    executed_at: datetime
    success: bool
    result: Optional[str] = None
    error: Optional[str] = None


@dataclass
class EscalationExecution:
    """
    One firing of one rule against one incident.

    Append-only while executing; terminal once completed or failed.
    """

    id: str
    rule_id: str
    rule_name: str
    incident_id: str
    trigger: EscalationTrigger
    triggered_at: datetime
    breach_id: Optional[str] = None
    status: ExecutionStatus = ExecutionStatus.EXECUTING
    completed_at: Optional[datetime] = None
    actions_executed: List[ActionOutcome] = field(default_factory=list)
    error: Optional[str] = None

    @classmethod
    def start(
        cls,
        rule: EscalationRule,
        incident_id: str,
        trigger: EscalationTrigger,
        breach_id: Optional[str] = None,
        triggered_at: Optional[datetime] = None
    ) -> "EscalationExecution":
        return cls(
            id=f"escalation-{uuid4().hex[:12]}",
            rule_id=rule.id,
            rule_name=rule.name,
            incident_id=incident_id,
            trigger=trigger,
            triggered_at=triggered_at or datetime.now(timezone.utc),
            breach_id=breach_id,
        )

    @property
    def is_terminal(self) -> bool:
        return self.status != ExecutionStatus.EXECUTING

    @property
    def success_count(self) -> int:
        return sum(1 for a in self.actions_executed if a.success)

    @property
    def summary(self) -> str:
        return f"{self.success_count}/{len(self.actions_executed)} actions completed"

    def record(self, outcome: ActionOutcome) -> None:
        if self.is_terminal:
            raise RuntimeError(f"execution {self.id} is already {self.status.value}")
        self.actions_executed.append(outcome)

    def complete(self, timestamp: Optional[datetime] = None) -> None:
        self.status = ExecutionStatus.COMPLETED
        self.completed_at = timestamp or datetime.now(timezone.utc)

    def fail(self, error: str, timestamp: Optional[datetime] = None) -> None:
        self.status = ExecutionStatus.FAILED
        self.error = error
        self.completed_at = timestamp or datetime.now(timezone.utc)
