"""
Escalation Domain Layer
=======================

Contains:
- Configuration entities: EscalationRule, EscalationAction, EscalationConditions
- Records: EscalationExecution, ActionOutcome
"""

from slaguard.escalation.domain.entities import (
    ActionParams,
    EscalationAction,
    EscalationConditions,
    EscalationRule,
    ActionOutcome,
    EscalationExecution,
)

__all__ = [
    "ActionParams",
    "EscalationAction",
    "EscalationConditions",
    "EscalationRule",
    "ActionOutcome",
    "EscalationExecution",
]
