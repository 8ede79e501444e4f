"""
Escalation Rule Matcher
=======================

Selects the escalation rules that should fire for an incident.

Matching is a fan-out: every applicable rule is returned and fires
independently. There is no first-match-wins selection.
"""

from datetime import datetime, timezone
from typing import Iterable, List, Optional

from slaguard.config import EscalationTrigger
from slaguard.escalation.domain import EscalationExecution, EscalationRule
from slaguard.sla.domain import Incident, SLABreach, SLAPolicy, SLAStatus
from slaguard.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class RuleMatcher:
    """Stateless rule applicability checks."""

    @staticmethod
    def conditions_hold(
        rule: EscalationRule,
        incident: Incident,
        status: SLAStatus,
        breach: Optional[SLABreach] = None
    ) -> bool:
        """Check the rule's AND-combined conditions; unset conditions pass."""
        conditions = rule.conditions

        if conditions.severities is not None and incident.severity not in conditions.severities:
            return False

        if conditions.breach_types is not None:
            breach_type = breach.breach_type if breach else status.breach_type
            if breach_type not in conditions.breach_types:
                return False

        if conditions.at_risk_threshold is not None and status.percent_complete < conditions.at_risk_threshold:
            return False

        if conditions.time_over_threshold is not None and status.time_over_breach < conditions.time_over_threshold:
            return False

        return True

    @staticmethod
    def within_limits(
        rule: EscalationRule,
        incident_id: str,
        executions: Iterable[EscalationExecution],
        current_time: datetime
    ) -> bool:
        """Check max_executions and cooldown for the (rule, incident) pair."""
        previous = [e for e in executions if e.rule_id == rule.id and e.incident_id == incident_id]

        if rule.max_executions is not None and len(previous) >= rule.max_executions:
            logger.debug(
                "Escalation suppressed: execution cap reached",
                extra={"rule_id": rule.id, "incident_id": incident_id, "executions": len(previous)}
            )
            return False

        if rule.cooldown_period is not None and previous:
            last_triggered = max(e.triggered_at for e in previous)
            if current_time - last_triggered < rule.cooldown_period:
                logger.debug(
                    "Escalation suppressed: cooling down",
                    extra={"rule_id": rule.id, "incident_id": incident_id}
                )
                return False

        return True

    def is_applicable(
        self,
        rule: EscalationRule,
        incident: Incident,
        status: SLAStatus,
        breach: Optional[SLABreach],
        executions: Iterable[EscalationExecution],
        trigger: EscalationTrigger,
        current_time: Optional[datetime] = None,
        policy: Optional[SLAPolicy] = None
    ) -> bool:
        if not rule.enabled or rule.trigger != trigger:
            return False

        if policy is not None and policy.escalation_rules and rule.id not in policy.escalation_rules:
            return False

        if not self.conditions_hold(rule, incident, status, breach):
            return False

        return self.within_limits(rule, incident.id, executions, current_time or datetime.now(timezone.utc))

    def match(
        self,
        incident: Incident,
        status: SLAStatus,
        breach: Optional[SLABreach],
        rules: Iterable[EscalationRule],
        executions: Iterable[EscalationExecution],
        trigger: EscalationTrigger,
        current_time: Optional[datetime] = None,
        policy: Optional[SLAPolicy] = None
    ) -> List[EscalationRule]:
        """
        Return every rule that should fire for this trigger.

        Args:
            incident: Incident being evaluated
            status: Its current SLA status
            breach: Breach the trigger relates to, if any
            rules: Candidate rules
            executions: Execution history (any incidents; filtered here)
            trigger: Firing trigger
            current_time: Evaluation time for cooldowns (defaults to now)
            policy: Incident's policy; a non-empty rule list restricts candidates

        Returns:
            Applicable rules, most urgent first action priority first
        """
        now = current_time or datetime.now(timezone.utc)
        history = list(executions)

        applicable = [
            rule for rule in rules
            if self.is_applicable(rule, incident, status, breach, history, trigger, now, policy)
        ]
        return sorted(applicable, key=lambda r: r.urgency)
