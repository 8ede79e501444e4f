"""Tests for the escalation engine: ticks, triggers, suppression and isolation.

Scope
─────
The engine glues SLA evaluation to escalation. Each tick evaluates every
active incident, records new breaches once, fires breach / at-risk /
time-threshold rules, and keeps going when a single incident fails.
"""

import asyncio
from datetime import timedelta
from types import SimpleNamespace

import pytest

from slaguard.config import (
    ActionType, BreachType, EscalationTrigger, IncidentStatus, Severity
)
from slaguard.config.sla import SLAConfig
from slaguard.core import ResourceNotFoundException
from slaguard.escalation.application import EscalationEngine, EscalationExecutor
from slaguard.escalation.domain import ActionParams, EscalationAction, EscalationRule
from slaguard.escalation.infrastructure import ConfigRuleRepository, InMemoryExecutionRepository
from slaguard.sla.domain import SLAPolicy
from slaguard.sla.infrastructure import (
    InMemoryBreachRepository, InMemoryIncidentRepository, SLAConfigManager
)

from conftest import RecordingHandlers


# ── helpers ────────────────────────────────────────────────────────────────

NOTIFY = EscalationAction(
    type=ActionType.NOTIFY_TEAM, priority=1,
    params=ActionParams(team="incident-response", message="SLA alert", channels=["slack"]),
)
UPGRADE = EscalationAction(
    type=ActionType.UPGRADE_SEVERITY, priority=2, params=ActionParams(new_severity=Severity.CRITICAL)
)


def _policy(severity=Severity.CRITICAL, resolution=timedelta(hours=4)) -> SLAPolicy:
    return SLAPolicy(
        id=f"sla-{severity.value}",
        severity=severity,
        response_target=timedelta(minutes=15),
        resolution_target=resolution,
    )


def _rule(rule_id, trigger, actions=(NOTIFY,), **fields) -> EscalationRule:
    return EscalationRule(id=rule_id, name=rule_id, trigger=trigger, actions=list(actions), **fields)


class FlakyBreachRepository(InMemoryBreachRepository):
    """Breach store that fails for one incident."""

    async def list_for_incident(self, incident_id):
        if incident_id == "INC-BAD":
            raise RuntimeError("store unavailable")
        return await super().list_for_incident(incident_id)


def _build(policies, rules, handlers=None, breach_repo=None, timeout=0.5):
    config = SLAConfigManager(config=SLAConfig(policies=policies, escalation_rules=rules))
    env = SimpleNamespace(
        handlers=handlers or RecordingHandlers(),
        incidents=InMemoryIncidentRepository(),
        breaches=breach_repo or InMemoryBreachRepository(),
        executions=InMemoryExecutionRepository(),
        rules=ConfigRuleRepository(config),
        config=config,
    )
    env.engine = EscalationEngine(
        env.incidents, env.breaches, env.executions, env.rules, config,
        EscalationExecutor(env.handlers, action_timeout_seconds=timeout),
    )
    return env


# ── breach detection through ticks ─────────────────────────────────────────


class TestBreachDetection:
    async def test_one_hour_scenario_creates_exactly_one_breach(self, make_incident, t0):
        env = _build([_policy(resolution=timedelta(milliseconds=3_600_000))], [])
        await env.incidents.save(make_incident(first_response_after=timedelta(minutes=5)))

        quiet = await env.engine.run_tick(t0 + timedelta(minutes=59))
        report = await env.engine.run_tick(t0 + timedelta(milliseconds=3_700_000))
        again = await env.engine.run_tick(t0 + timedelta(minutes=70))

        assert quiet.new_breaches == []
        assert len(report.new_breaches) == 1
        breach = report.new_breaches[0]
        assert breach.breach_type == BreachType.RESOLUTION
        assert breach.time_over_breach == timedelta(seconds=100)
        assert again.new_breaches == []
        assert len(await env.breaches.list()) == 1

    async def test_breaches_resolve_when_incident_resolves(self, make_incident, t0):
        env = _build([_policy()], [])
        incident = make_incident(first_response_after=timedelta(minutes=5))
        await env.incidents.save(incident)
        await env.engine.run_tick(t0 + timedelta(hours=5))

        incident.mark_resolved(t0 + timedelta(hours=6))
        report = await env.engine.run_tick(t0 + timedelta(hours=7))

        assert [b.incident_id for b in report.resolved_breaches] == [incident.id]
        assert await env.breaches.list(unresolved_only=True) == []
        assert report.incidents_evaluated == 0

    async def test_incident_without_policy_is_skipped(self, make_incident, t0):
        env = _build([_policy()], [])
        await env.incidents.save(make_incident("INC-LOW", severity=Severity.LOW))
        await env.incidents.save(make_incident("INC-CRIT", first_response_after=timedelta(minutes=5)))

        report = await env.engine.run_tick(t0 + timedelta(hours=5))

        assert "INC-LOW" in report.skipped
        assert [b.incident_id for b in report.new_breaches] == ["INC-CRIT"]
        assert report.errors == {}


# ── triggers ───────────────────────────────────────────────────────────────


class TestTriggers:
    async def test_breach_rule_fires_once_with_ordered_actions(self, make_incident, t0):
        env = _build([_policy(Severity.HIGH)], [_rule("on-breach", EscalationTrigger.BREACH, (UPGRADE, NOTIFY))])
        await env.incidents.save(make_incident(severity=Severity.HIGH, first_response_after=timedelta(minutes=5)))

        report = await env.engine.run_tick(t0 + timedelta(hours=5))
        later = await env.engine.run_tick(t0 + timedelta(hours=6))

        assert len(report.executions) == 1
        execution = report.executions[0]
        assert [a.action_type for a in execution.actions_executed] == [
            ActionType.NOTIFY_TEAM, ActionType.UPGRADE_SEVERITY
        ]
        assert execution.breach_id == report.new_breaches[0].id
        assert report.new_breaches[0].escalation_executions == [execution.id]
        assert later.executions == []

    async def test_at_risk_rule_fires_once_on_entry(self, make_incident, t0):
        env = _build([_policy()], [_rule("warn", EscalationTrigger.AT_RISK)])
        await env.incidents.save(make_incident(first_response_after=timedelta(minutes=5)))

        # 83% to 95% of the 4h target, one tick a minute
        reports = [await env.engine.run_tick(t0 + timedelta(minutes=200 + n)) for n in range(30)]

        fired = [e for r in reports for e in r.executions]
        assert len(fired) == 1
        assert fired[0].trigger == EscalationTrigger.AT_RISK
        assert reports[0].executions == fired

    async def test_at_risk_rules_fire_as_their_conditions_are_met(self, make_incident, t0):
        early = _rule("warn-80", EscalationTrigger.AT_RISK)
        late = _rule("warn-90", EscalationTrigger.AT_RISK, conditions={"at_risk_threshold": 90})
        env = _build([_policy()], [early, late])
        await env.incidents.save(make_incident(first_response_after=timedelta(minutes=5)))

        first = await env.engine.run_tick(t0 + timedelta(minutes=200))
        middle = await env.engine.run_tick(t0 + timedelta(minutes=210))
        second = await env.engine.run_tick(t0 + timedelta(minutes=220))

        assert [e.rule_id for e in first.executions] == ["warn-80"]
        assert middle.executions == []
        assert [e.rule_id for e in second.executions] == ["warn-90"]

    async def test_repeating_rule_respects_cooldown(self, make_incident, t0):
        rule = _rule("upgrade", EscalationTrigger.TIME_THRESHOLD, cooldown_period=timedelta(minutes=30))
        env = _build([_policy()], [rule])
        await env.incidents.save(make_incident(first_response_after=timedelta(minutes=5)))

        first = await env.engine.run_tick(t0 + timedelta(hours=1))
        inside = await env.engine.run_tick(t0 + timedelta(hours=1, minutes=10))
        after = await env.engine.run_tick(t0 + timedelta(hours=1, minutes=30))

        assert len(first.executions) == 1
        assert inside.executions == []
        assert len(after.executions) == 1

    async def test_max_executions_caps_repeats(self, make_incident, t0):
        env = _build([_policy()], [_rule("upgrade", EscalationTrigger.TIME_THRESHOLD, max_executions=2)])
        await env.incidents.save(make_incident(first_response_after=timedelta(minutes=5)))

        for minutes in range(60, 95, 5):
            await env.engine.run_tick(t0 + timedelta(minutes=minutes))

        assert len(await env.executions.list(rule_id="upgrade")) == 2

    async def test_time_threshold_rule_links_to_open_breach(self, make_incident, t0):
        rule = _rule(
            "upgrade", EscalationTrigger.TIME_THRESHOLD, (UPGRADE,),
            conditions={"time_over_threshold_minutes": 60}, max_executions=1,
        )
        env = _build([_policy(Severity.HIGH), _policy(Severity.CRITICAL)], [rule])
        incident = make_incident(severity=Severity.HIGH, first_response_after=timedelta(minutes=5))
        await env.incidents.save(incident)

        early = await env.engine.run_tick(t0 + timedelta(hours=4, minutes=30))
        late = await env.engine.run_tick(t0 + timedelta(hours=5, minutes=30))

        assert early.executions == []
        assert len(late.executions) == 1
        breach = early.new_breaches[0]
        assert late.executions[0].breach_id == breach.id
        assert incident.severity == Severity.CRITICAL

    async def test_default_configuration_escalates_critical_breach(self, handlers, engine, incident_repo, make_incident, t0):
        await incident_repo.save(make_incident(first_response_after=timedelta(minutes=5)))

        report = await engine.run_tick(t0 + timedelta(hours=5))

        assert {e.rule_id for e in report.executions} == {"escalation-critical-breach", "escalation-auto-approve"}
        assert handlers.names()[:4] == ["page_oncall", "notify_team", "assign_senior", "trigger_workflow"]


# ── isolation & concurrency ────────────────────────────────────────────────


class TestIsolation:
    async def test_failing_incident_does_not_block_others(self, make_incident, t0):
        env = _build([_policy()], [], breach_repo=FlakyBreachRepository())
        await env.incidents.save(make_incident("INC-BAD", first_response_after=timedelta(minutes=5)))
        await env.incidents.save(make_incident("INC-OK", first_response_after=timedelta(minutes=5)))

        report = await env.engine.run_tick(t0 + timedelta(hours=5))

        assert report.errors == {"INC-BAD": "RuntimeError: store unavailable"}
        assert [b.incident_id for b in report.new_breaches] == ["INC-OK"]

    async def test_hung_handler_does_not_stall_the_tick(self, make_incident, t0):
        handlers = RecordingHandlers()
        handlers.hanging.add("notify_team")
        env = _build([_policy()], [_rule("on-breach", EscalationTrigger.BREACH)], handlers=handlers, timeout=0.05)
        for n in range(3):
            await env.incidents.save(make_incident(f"INC-{n}", first_response_after=timedelta(minutes=5)))

        report = await asyncio.wait_for(env.engine.run_tick(t0 + timedelta(hours=5)), timeout=5)

        assert len(report.executions) == 3
        assert all(e.summary == "0/1 actions completed" for e in report.executions)

    async def test_concurrent_rechecks_do_not_duplicate(self, make_incident, t0):
        env = _build([_policy()], [_rule("on-breach", EscalationTrigger.BREACH)])
        await env.incidents.save(make_incident(first_response_after=timedelta(minutes=5)))
        now = t0 + timedelta(hours=5)

        await asyncio.gather(*(env.engine.evaluate_incident("INC-1", now) for _ in range(5)))

        assert len(await env.breaches.list()) == 1
        assert len(await env.executions.list()) == 1
        assert env.engine._locks == {}

    async def test_lock_entries_do_not_outlive_incidents(self, make_incident, t0):
        env = _build([_policy()], [_rule("on-breach", EscalationTrigger.BREACH)])
        incidents = [make_incident(f"INC-{n}", first_response_after=timedelta(minutes=5)) for n in range(50)]
        for incident in incidents:
            await env.incidents.save(incident)

        await env.engine.run_tick(t0 + timedelta(hours=1))
        await env.engine.evaluate_incident("INC-0", t0 + timedelta(hours=1))
        for incident in incidents[:25]:
            incident.mark_resolved(t0 + timedelta(hours=2))
        await env.engine.run_tick(t0 + timedelta(hours=5))
        for incident in incidents[25:]:
            incident.mark_resolved(t0 + timedelta(hours=6))
        report = await env.engine.run_tick(t0 + timedelta(hours=7))

        assert len(report.resolved_breaches) == 25
        assert env.engine._locks == {}


# ── manual execution, listeners ────────────────────────────────────────────


class TestManualAndObservability:
    async def test_manual_execution_ignores_enabled_flag_and_conditions(self, make_incident, t0):
        rule = _rule("off", EscalationTrigger.BREACH, enabled=False,
                     conditions={"severities": ["low"]}, max_executions=1)
        env = _build([_policy()], [rule])
        await env.incidents.save(make_incident(first_response_after=timedelta(minutes=5)))
        report = await env.engine.run_tick(t0 + timedelta(hours=5))

        execution = await env.engine.execute_manually("off", "INC-1", t0 + timedelta(hours=5, minutes=1))

        assert execution.trigger == EscalationTrigger.MANUAL
        assert execution.breach_id == report.new_breaches[0].id
        assert await env.executions.get_by_id(execution.id) is execution

    async def test_manual_execution_unknown_ids(self, make_incident):
        env = _build([_policy()], [_rule("r", EscalationTrigger.BREACH)])
        await env.incidents.save(make_incident())

        with pytest.raises(ResourceNotFoundException):
            await env.engine.execute_manually("missing", "INC-1")
        with pytest.raises(ResourceNotFoundException):
            await env.engine.execute_manually("r", "INC-404")

    async def test_evaluate_unknown_incident(self):
        env = _build([_policy()], [])

        with pytest.raises(ResourceNotFoundException):
            await env.engine.evaluate_incident("INC-404")

    async def test_listeners_receive_reports(self, make_incident, t0):
        env = _build([_policy()], [])
        await env.incidents.save(make_incident(first_response_after=timedelta(minutes=5)))
        seen, seen_async = [], []

        async def async_listener(report):
            seen_async.append(report)

        def broken_listener(report):
            raise ValueError("listener bug")

        env.engine.add_listener(seen.append)
        env.engine.add_listener(broken_listener)
        env.engine.add_listener(async_listener)
        report = await env.engine.run_tick(t0 + timedelta(hours=5))

        assert seen == [report]
        assert seen_async == [report]
        assert env.engine.last_report is report
        assert report.finished_at is not None

    async def test_failed_incidents_are_not_evaluated(self, make_incident, t0):
        env = _build([_policy()], [])
        await env.incidents.save(make_incident(status=IncidentStatus.FAILED))

        report = await env.engine.run_tick(t0 + timedelta(hours=5))

        assert report.incidents_evaluated == 0
        assert report.new_breaches == []
