"""Tests for escalation rule matching.

Matching is a fan-out over every enabled rule for the trigger; conditions
are AND-combined, and cooldown / max_executions suppress repeats for the
same (rule, incident) pair.
"""

from datetime import timedelta

from slaguard.config import ActionType, BreachType, EscalationTrigger, Severity
from slaguard.config.sla import default_escalation_rules, default_policies
from slaguard.escalation.application import RuleMatcher
from slaguard.escalation.domain import (
    EscalationAction, EscalationConditions, EscalationExecution, EscalationRule
)
from slaguard.sla.application import BreachDetector
from slaguard.sla.domain import PolicyCatalog, SLACalculator


# ── helpers ────────────────────────────────────────────────────────────────

def _rule(rule_id="rule-1", trigger=EscalationTrigger.BREACH, priority=1, **fields) -> EscalationRule:
    fields.setdefault("actions", [EscalationAction(type=ActionType.AUTO_APPROVE, priority=priority)])
    return EscalationRule(id=rule_id, name=rule_id, trigger=trigger, **fields)


def _execution(rule, incident_id, at):
    return EscalationExecution.start(rule, incident_id, rule.trigger, triggered_at=at)


def _status(incident, at):
    policy = PolicyCatalog(default_policies()).get(incident.severity)
    return SLACalculator.calculate_status(incident, policy, at)


# ── tests ──────────────────────────────────────────────────────────────────


class TestConditions:
    def test_unset_conditions_always_hold(self, make_incident, t0):
        incident = make_incident()
        status = _status(incident, t0 + timedelta(minutes=1))

        assert RuleMatcher.conditions_hold(_rule(), incident, status)

    def test_severity_must_be_listed(self, make_incident, t0):
        incident = make_incident(severity=Severity.LOW)
        rule = _rule(conditions=EscalationConditions(severities=[Severity.CRITICAL, Severity.HIGH]))

        assert not RuleMatcher.conditions_hold(rule, incident, _status(incident, t0))

    def test_breach_type_taken_from_status_without_breach(self, make_incident, t0):
        incident = make_incident()
        status = _status(incident, t0 + timedelta(hours=5))  # both clocks
        rule = _rule(conditions=EscalationConditions(breach_types=[BreachType.RESPONSE]))

        assert not RuleMatcher.conditions_hold(rule, incident, status)

    def test_breach_record_type_takes_precedence(self, make_incident, t0):
        incident = make_incident()
        early = _status(incident, t0 + timedelta(minutes=20))
        breach = BreachDetector().breach_for(incident, early, set(), t0 + timedelta(minutes=20))
        later = _status(incident, t0 + timedelta(hours=5))
        rule = _rule(conditions=EscalationConditions(breach_types=[BreachType.RESPONSE]))

        assert breach.breach_type == BreachType.RESPONSE
        assert RuleMatcher.conditions_hold(rule, incident, later, breach)

    def test_breach_type_condition_fails_without_a_breach(self, make_incident, t0):
        incident = make_incident(first_response_after=timedelta(minutes=5))
        status = _status(incident, t0 + timedelta(minutes=30))
        rule = _rule(conditions=EscalationConditions(breach_types=[BreachType.RESOLUTION, BreachType.BOTH]))

        assert not RuleMatcher.conditions_hold(rule, incident, status)

    def test_yaml_alias_for_breach_types(self):
        conditions = EscalationConditions.model_validate({"breach_type": ["resolution"]})

        assert conditions.breach_types == [BreachType.RESOLUTION]

    def test_at_risk_threshold(self, make_incident, t0):
        incident = make_incident(first_response_after=timedelta(minutes=5))
        rule = _rule(conditions=EscalationConditions(at_risk_threshold=75))

        assert not RuleMatcher.conditions_hold(rule, incident, _status(incident, t0 + timedelta(hours=2)))
        assert RuleMatcher.conditions_hold(rule, incident, _status(incident, t0 + timedelta(hours=3)))

    def test_time_over_threshold(self, make_incident, t0):
        incident = make_incident(severity=Severity.MEDIUM, first_response_after=timedelta(minutes=5))
        rule = _rule(conditions=EscalationConditions(time_over_threshold=timedelta(hours=2)))

        # medium resolution target is 24h
        assert not RuleMatcher.conditions_hold(rule, incident, _status(incident, t0 + timedelta(hours=25)))
        assert RuleMatcher.conditions_hold(rule, incident, _status(incident, t0 + timedelta(hours=26)))


class TestLimits:
    def test_cooldown_suppresses_repeat(self, make_incident, t0):
        rule = _rule(cooldown_period=timedelta(minutes=30))
        history = [_execution(rule, "INC-1", t0)]

        assert not RuleMatcher.within_limits(rule, "INC-1", history, t0 + timedelta(minutes=29))
        assert RuleMatcher.within_limits(rule, "INC-1", history, t0 + timedelta(minutes=30))

    def test_cooldown_is_per_incident(self, t0):
        rule = _rule(cooldown_period=timedelta(minutes=30))
        history = [_execution(rule, "INC-1", t0)]

        assert RuleMatcher.within_limits(rule, "INC-2", history, t0 + timedelta(minutes=1))

    def test_max_executions_caps_firing(self, t0):
        rule = _rule(max_executions=2)
        history = [_execution(rule, "INC-1", t0), _execution(rule, "INC-1", t0 + timedelta(hours=1))]

        assert not RuleMatcher.within_limits(rule, "INC-1", history, t0 + timedelta(days=1))

    def test_other_rules_do_not_count(self, t0):
        rule = _rule(max_executions=1)
        other = _rule("rule-2")

        assert RuleMatcher.within_limits(rule, "INC-1", [_execution(other, "INC-1", t0)], t0)


class TestMatch:
    def test_fan_out_sorted_by_most_urgent_action(self, make_incident, t0):
        incident = make_incident()
        status = _status(incident, t0 + timedelta(hours=5))
        rules = [_rule("late", priority=5), _rule("early", priority=1), _rule("middle", priority=3)]

        matched = RuleMatcher().match(incident, status, None, rules, [], EscalationTrigger.BREACH, t0)

        assert [r.id for r in matched] == ["early", "middle", "late"]

    def test_trigger_and_enabled_flag_filter(self, make_incident, t0):
        incident = make_incident()
        status = _status(incident, t0 + timedelta(hours=5))
        rules = [
            _rule("breach"),
            _rule("at-risk", trigger=EscalationTrigger.AT_RISK),
            _rule("disabled", enabled=False),
        ]

        matched = RuleMatcher().match(incident, status, None, rules, [], EscalationTrigger.BREACH, t0)

        assert [r.id for r in matched] == ["breach"]

    def test_policy_rule_list_restricts_candidates(self, make_incident, t0):
        incident = make_incident(severity=Severity.LOW)
        policy = PolicyCatalog(default_policies()).get(Severity.LOW).model_copy(
            update={"escalation_rules": ["allowed"]}
        )
        status = SLACalculator.calculate_status(incident, policy, t0 + timedelta(days=3))

        matched = RuleMatcher().match(
            incident, status, None, [_rule("allowed"), _rule("other")], [],
            EscalationTrigger.BREACH, t0, policy
        )

        assert [r.id for r in matched] == ["allowed"]

    def test_default_rules_for_critical_resolution_breach(self, make_incident, t0):
        incident = make_incident(first_response_after=timedelta(minutes=5))
        now = t0 + timedelta(hours=5)
        status = _status(incident, now)
        policy = PolicyCatalog(default_policies()).get(Severity.CRITICAL)

        matched = RuleMatcher().match(
            incident, status, None, default_escalation_rules(), [], EscalationTrigger.BREACH, now, policy
        )

        # the webhook rule ships disabled
        assert [r.id for r in matched] == ["escalation-critical-breach", "escalation-auto-approve"]
