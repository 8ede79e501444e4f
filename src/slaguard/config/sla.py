"""
SLA Configuration Document
==========================

Schema of the SLA YAML file: policies, escalation rules and the at-risk
threshold. Sections left out of the file fall back to the built-in defaults.
"""

from datetime import timedelta
from typing import List

from pydantic import BaseModel, Field

from slaguard.config import (
    Severity, BreachType, EscalationTrigger, ActionType, settings
)
from slaguard.escalation.domain import (
    ActionParams, EscalationAction, EscalationConditions, EscalationRule
)
from slaguard.sla.domain import PolicyCatalog, SLAPolicy


def default_policies() -> List[SLAPolicy]:
    return [
        SLAPolicy(
            id="sla-critical",
            name="Critical Incident SLA",
            description="SLA for critical severity incidents",
            severity=Severity.CRITICAL,
            response_target=timedelta(minutes=15),
            resolution_target=timedelta(hours=4),
            compliance_target=99.5,
            escalation_rules=["escalation-critical-breach", "escalation-auto-approve", "escalation-webhook"],
        ),
        SLAPolicy(
            id="sla-high",
            name="High Priority SLA",
            description="SLA for high severity incidents",
            severity=Severity.HIGH,
            response_target=timedelta(minutes=30),
            resolution_target=timedelta(hours=8),
            compliance_target=98.0,
            escalation_rules=["escalation-high-at-risk", "escalation-upgrade-severity", "escalation-webhook"],
        ),
        SLAPolicy(
            id="sla-medium",
            name="Medium Priority SLA",
            description="SLA for medium severity incidents",
            severity=Severity.MEDIUM,
            response_target=timedelta(hours=2),
            resolution_target=timedelta(hours=24),
            compliance_target=95.0,
            escalation_rules=["escalation-upgrade-severity"],
        ),
        SLAPolicy(
            id="sla-low",
            name="Low Priority SLA",
            description="SLA for low severity incidents",
            severity=Severity.LOW,
            response_target=timedelta(hours=4),
            resolution_target=timedelta(hours=48),
            compliance_target=90.0,
        ),
    ]


def default_escalation_rules() -> List[EscalationRule]:
    return [
        EscalationRule(
            id="escalation-critical-breach",
            name="Critical Incident Breach Response",
            description="Immediate escalation for critical incident SLA breaches",
            trigger=EscalationTrigger.BREACH,
            conditions=EscalationConditions(
                severities=[Severity.CRITICAL],
                breach_types=[BreachType.RESPONSE, BreachType.RESOLUTION, BreachType.BOTH],
            ),
            actions=[
                EscalationAction(type=ActionType.PAGE_ONCALL, priority=1, params=ActionParams(
                    team="incident-response",
                    message="URGENT: Critical incident SLA breach detected",
                )),
                EscalationAction(type=ActionType.NOTIFY_TEAM, priority=2, params=ActionParams(
                    team="engineering-leads",
                    channels=["slack", "email"],
                    message="Critical incident requires immediate attention",
                )),
                EscalationAction(type=ActionType.ASSIGN_SENIOR, priority=3, params=ActionParams(
                    assignee="senior-engineer",
                )),
                EscalationAction(type=ActionType.TRIGGER_WORKFLOW, priority=4, params=ActionParams(
                    workflow_id="emergency-response",
                )),
            ],
            cooldown_period=timedelta(minutes=30),
            max_executions=3,
        ),
        EscalationRule(
            id="escalation-high-at-risk",
            name="High Priority At-Risk Alert",
            description="Proactive escalation when high priority incidents are at risk",
            trigger=EscalationTrigger.AT_RISK,
            conditions=EscalationConditions(
                severities=[Severity.HIGH, Severity.CRITICAL],
                at_risk_threshold=75,
            ),
            actions=[
                EscalationAction(type=ActionType.NOTIFY_TEAM, priority=1, params=ActionParams(
                    team="incident-response",
                    channels=["slack"],
                    message="High priority incident approaching SLA deadline",
                )),
                EscalationAction(type=ActionType.TRIGGER_WORKFLOW, priority=2, params=ActionParams(
                    workflow_id="escalation-prep",
                )),
            ],
            cooldown_period=timedelta(hours=1),
            max_executions=2,
        ),
        EscalationRule(
            id="escalation-upgrade-severity",
            name="Auto-Upgrade After Time Threshold",
            description="Automatically upgrade severity if incident exceeds time threshold",
            trigger=EscalationTrigger.TIME_THRESHOLD,
            conditions=EscalationConditions(
                severities=[Severity.MEDIUM, Severity.HIGH],
                time_over_threshold=timedelta(hours=2),
            ),
            actions=[
                EscalationAction(type=ActionType.UPGRADE_SEVERITY, priority=1, params=ActionParams(
                    new_severity=Severity.HIGH,
                    message="Auto-upgraded due to extended resolution time",
                )),
                EscalationAction(type=ActionType.NOTIFY_TEAM, priority=2, params=ActionParams(
                    team="operations",
                    channels=["slack", "email"],
                    message="Incident severity upgraded due to SLA risk",
                )),
            ],
            cooldown_period=timedelta(hours=3),
            max_executions=1,
        ),
        EscalationRule(
            id="escalation-auto-approve",
            name="Auto-Approve Critical Breaches",
            description="Automatically approve agent actions for breached critical incidents",
            trigger=EscalationTrigger.BREACH,
            conditions=EscalationConditions(
                severities=[Severity.CRITICAL],
                breach_types=[BreachType.RESOLUTION, BreachType.BOTH],
            ),
            actions=[
                EscalationAction(type=ActionType.AUTO_APPROVE, priority=1, params=ActionParams(
                    message="Auto-approved due to critical SLA breach",
                )),
                EscalationAction(type=ActionType.NOTIFY_TEAM, priority=2, params=ActionParams(
                    team="incident-response",
                    channels=["slack"],
                    message="Agent actions auto-approved for breached critical incident",
                )),
            ],
            max_executions=1,
        ),
        EscalationRule(
            id="escalation-webhook",
            name="External System Integration",
            description="Trigger webhooks for external ticketing and ITSM systems",
            enabled=False,
            trigger=EscalationTrigger.BREACH,
            conditions=EscalationConditions(
                severities=[Severity.CRITICAL, Severity.HIGH],
                breach_types=[BreachType.RESOLUTION, BreachType.BOTH],
            ),
            actions=[
                EscalationAction(type=ActionType.SEND_WEBHOOK, priority=1, params=ActionParams(
                    webhook_url="https://example.com/api/sla-breach",
                    message="SLA breach webhook trigger",
                )),
                EscalationAction(type=ActionType.CREATE_TICKET, priority=2, params=ActionParams(
                    team="support",
                    message="Create escalation ticket in external system",
                )),
            ],
        ),
    ]


class SLAConfig(BaseModel):
    """
    SLA configuration loaded from YAML.

    This is a value object - replaced wholesale on reload.
    """
    at_risk_threshold_percent: float = Field(
        default_factory=lambda: settings.at_risk_threshold_percent,
        gt=0,
        lt=100,
        description="Percent of the resolution target after which incidents are at risk"
    )
    policies: List[SLAPolicy] = Field(default_factory=default_policies)
    escalation_rules: List[EscalationRule] = Field(default_factory=default_escalation_rules)

    def catalog(self) -> PolicyCatalog:
        return PolicyCatalog(self.policies)
