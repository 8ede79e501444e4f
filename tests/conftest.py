"""
Shared pytest fixtures for the slaguard test suite.

Provides:
    - t0: fixed, timezone-aware reference time
    - make_incident: incident factory relative to t0
    - sla_config / config_provider: default SLA configuration held in memory
    - handlers: RecordingHandlers that log every action call
    - repositories and a fully wired EscalationEngine
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

import pytest

from slaguard.config import Severity, IncidentStatus
from slaguard.config.sla import SLAConfig
from slaguard.escalation.application import ActionHandlers, EscalationEngine, EscalationExecutor
from slaguard.escalation.infrastructure import ConfigRuleRepository, InMemoryExecutionRepository
from slaguard.sla.domain import Incident
from slaguard.sla.infrastructure import (
    InMemoryBreachRepository, InMemoryIncidentRepository, SLAConfigManager
)

T0 = datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc)


class RecordingHandlers(ActionHandlers):
    """Action handlers that record calls; individual actions can be made to fail or hang."""

    def __init__(self):
        self.calls: List[Tuple[str, Tuple[Any, ...]]] = []
        self.failing: Dict[str, Exception] = {}
        self.hanging: set = set()

    async def _record(self, name: str, *args) -> Optional[str]:
        self.calls.append((name, args))
        if name in self.hanging:
            await asyncio.sleep(3600)
        if name in self.failing:
            raise self.failing[name]
        return None

    def names(self) -> List[str]:
        return [name for name, _ in self.calls]

    async def notify_team(self, incident, team, message, channels):
        return await self._record("notify_team", incident.id, team, message, tuple(channels))

    async def upgrade_severity(self, incident, new_severity):
        result = await self._record("upgrade_severity", incident.id, new_severity)
        incident.upgrade_severity(new_severity)
        return result

    async def assign_senior(self, incident, assignee):
        return await self._record("assign_senior", incident.id, assignee)

    async def trigger_workflow(self, incident, workflow_id):
        return await self._record("trigger_workflow", incident.id, workflow_id)

    async def page_oncall(self, incident, team, message):
        return await self._record("page_oncall", incident.id, team)

    async def create_ticket(self, incident, breach, team, message):
        return await self._record("create_ticket", incident.id, team)

    async def send_webhook(self, url, payload):
        return await self._record("send_webhook", url, payload["incident"]["id"])

    async def auto_approve(self, incident):
        return await self._record("auto_approve", incident.id)


def _make_incident(
    incident_id: str = "INC-1",
    severity: Severity = Severity.CRITICAL,
    status: IncidentStatus = IncidentStatus.IN_PROGRESS,
    age: timedelta = timedelta(0),
    first_response_after: Optional[timedelta] = None,
    resolved_after: Optional[timedelta] = None,
    title: str = "Checkout API returning 502",
) -> Incident:
    """Incident created at T0; age sets updated_at for unresolved incidents."""
    resolved_at = T0 + resolved_after if resolved_after is not None else None
    if resolved_at is not None:
        status = IncidentStatus.RESOLVED
    return Incident(
        id=incident_id,
        title=title,
        severity=severity,
        status=status,
        created_at=T0,
        updated_at=resolved_at or T0 + age,
        first_response_at=T0 + first_response_after if first_response_after is not None else None,
        resolved_at=resolved_at,
    )


# ── time & factories ─────────────────────────────────────────────────────


@pytest.fixture
def t0() -> datetime:
    return T0


@pytest.fixture
def make_incident():
    return _make_incident


# ── configuration ────────────────────────────────────────────────────────


@pytest.fixture
def sla_config() -> SLAConfig:
    return SLAConfig(at_risk_threshold_percent=80.0)


@pytest.fixture
def config_provider(sla_config) -> SLAConfigManager:
    return SLAConfigManager(config=sla_config)


# ── repositories & engine ────────────────────────────────────────────────


@pytest.fixture
def incident_repo() -> InMemoryIncidentRepository:
    return InMemoryIncidentRepository()


@pytest.fixture
def breach_repo() -> InMemoryBreachRepository:
    return InMemoryBreachRepository()


@pytest.fixture
def execution_repo() -> InMemoryExecutionRepository:
    return InMemoryExecutionRepository()


@pytest.fixture
def rule_repo(config_provider) -> ConfigRuleRepository:
    return ConfigRuleRepository(config_provider)


@pytest.fixture
def handlers() -> RecordingHandlers:
    return RecordingHandlers()


@pytest.fixture
def engine(incident_repo, breach_repo, execution_repo, rule_repo, config_provider, handlers) -> EscalationEngine:
    return EscalationEngine(
        incident_repo,
        breach_repo,
        execution_repo,
        rule_repo,
        config_provider,
        EscalationExecutor(handlers, action_timeout_seconds=0.5),
    )
