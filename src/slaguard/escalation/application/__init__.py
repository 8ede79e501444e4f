"""
Escalation Application Layer
=============================

Contains:
- RuleMatcher: which rules fire for an incident
- EscalationExecutor: runs a rule's actions against side-effect handlers
- EscalationEngine: periodic evaluation tying SLA tracking to escalation
- DTOs: API request and response models
"""

from slaguard.escalation.application.dto import (
    RuleToggleRequest,
    ManualExecuteRequest,
    EvaluateRequest,
    RuleResponse,
    ActionOutcomeResponse,
    ExecutionResponse,
    TickReportResponse,
)
from slaguard.escalation.application.executor import (
    ActionHandlers,
    EscalationExecutor,
    webhook_payload,
)
from slaguard.escalation.application.matcher import RuleMatcher
from slaguard.escalation.application.services import (
    EscalationEngine,
    TickReport,
    IExecutionRepository,
    IEscalationRuleRepository,
)

__all__ = [
    # DTOs
    "RuleToggleRequest",
    "ManualExecuteRequest",
    "EvaluateRequest",
    "RuleResponse",
    "ActionOutcomeResponse",
    "ExecutionResponse",
    "TickReportResponse",
    # Services
    "ActionHandlers",
    "EscalationExecutor",
    "webhook_payload",
    "RuleMatcher",
    "EscalationEngine",
    "TickReport",
    # Repository Interfaces
    "IExecutionRepository",
    "IEscalationRuleRepository",
]
