"""
Escalation Application Services
================================

The escalation engine ties SLA evaluation to rule execution.

Each tick evaluates every active incident concurrently. Work for a single
incident is serialized behind a per-incident lock, so two overlapping
evaluations (a scheduled tick and an incident-change re-check) cannot both
record the same breach or both pass the same cooldown check.
"""

import asyncio
import inspect
import uuid
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from slaguard.config import EscalationTrigger
from slaguard.core import ConfigurationException, ResourceNotFoundException
from slaguard.escalation.application.executor import EscalationExecutor
from slaguard.escalation.application.matcher import RuleMatcher
from slaguard.escalation.domain import EscalationExecution, EscalationRule
from slaguard.sla.application import (
    BreachDetector, IBreachRepository, IIncidentRepository, ISLAConfigProvider
)
from slaguard.sla.domain import Incident, SLABreach, SLACalculator
from slaguard.shared.infrastructure.logging import get_context_logger, log_latency

# ========== Repository Interfaces (Dependency Inversion) ==========


class IExecutionRepository(ABC):
    """Interface for escalation execution records."""

    @abstractmethod
    async def add(self, execution: EscalationExecution) -> EscalationExecution:
        """Record an execution."""

    @abstractmethod
    async def get_by_id(self, execution_id: str) -> Optional[EscalationExecution]:
        """Get execution by ID."""

    @abstractmethod
    async def list_for_incident(self, incident_id: str) -> List[EscalationExecution]:
        """Executions against one incident, oldest first."""

    @abstractmethod
    async def list(
        self,
        incident_id: Optional[str] = None,
        rule_id: Optional[str] = None,
        limit: int = 100
    ) -> List[EscalationExecution]:
        """List executions, newest first."""


class IEscalationRuleRepository(ABC):
    """Interface for escalation rule configuration."""

    @abstractmethod
    def list(self) -> List[EscalationRule]:
        """All configured rules with runtime toggles applied."""

    @abstractmethod
    def get(self, rule_id: str) -> Optional[EscalationRule]:
        """Get a rule by ID."""

    @abstractmethod
    def set_enabled(self, rule_id: str, enabled: bool) -> EscalationRule:
        """Enable or disable a rule at runtime."""


# ========== Tick Report ==========

@dataclass
class TickReport:
    """What one evaluation pass detected and executed."""

    correlation_id: str
    started_at: datetime
    finished_at: Optional[datetime] = None
    incidents_evaluated: int = 0
    new_breaches: List[SLABreach] = field(default_factory=list)
    executions: List[EscalationExecution] = field(default_factory=list)
    resolved_breaches: List[SLABreach] = field(default_factory=list)
    skipped: Dict[str, str] = field(default_factory=dict)
    errors: Dict[str, str] = field(default_factory=dict)

    def to_log_extra(self) -> dict:
        return {
            "correlation_id": self.correlation_id,
            "incidents_evaluated": self.incidents_evaluated,
            "new_breaches": len(self.new_breaches),
            "executions": len(self.executions),
            "resolved_breaches": len(self.resolved_breaches),
            "skipped": len(self.skipped),
            "errors": len(self.errors),
        }


TickListener = Callable[[TickReport], Any]


@dataclass
class _IncidentLock:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


# ========== Application Services ==========

class EscalationEngine:
    """
    Periodic and event-driven SLA evaluation with automated escalation.

    For each active incident:
    1. Calculates SLA status against the incident's policy
    2. Records a breach the first time a (incident, breach type) pair occurs
    3. Fires breach rules for the new breach, at-risk rules once when the
       incident turns at risk, and time-threshold rules on every pass
    4. Links executions back onto the breach they relate to
    """

    def __init__(
        self,
        incident_repository: IIncidentRepository,
        breach_repository: IBreachRepository,
        execution_repository: IExecutionRepository,
        rule_repository: IEscalationRuleRepository,
        config_provider: ISLAConfigProvider,
        executor: EscalationExecutor,
        matcher: Optional[RuleMatcher] = None
    ):
        self._incident_repo = incident_repository
        self._breach_repo = breach_repository
        self._execution_repo = execution_repository
        self._rule_repo = rule_repository
        self._config_provider = config_provider
        self._executor = executor
        self._matcher = matcher or RuleMatcher()
        self._locks: Dict[str, _IncidentLock] = {}
        self._listeners: List[TickListener] = []
        self.last_report: Optional[TickReport] = None

    # ----- observability -----

    def add_listener(self, listener: TickListener) -> None:
        """Register a callable (sync or async) that receives every TickReport."""
        self._listeners.append(listener)

    async def _notify_listeners(self, report: TickReport, logger) -> None:
        for listener in self._listeners:
            try:
                outcome = listener(report)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception:
                logger.exception("Tick listener failed", extra={"listener": repr(listener)})

    # ----- locking -----

    @asynccontextmanager
    async def _incident_lock(self, incident_id: str):
        """
        Serialize work on one incident.

        The entry is dropped once no task holds or waits on it, so the map
        only tracks incidents with work in flight.
        """
        entry = self._locks.get(incident_id)
        if entry is None:
            entry = self._locks[incident_id] = _IncidentLock()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                del self._locks[incident_id]

    # ----- public entry points -----

    async def run_tick(self, current_time: Optional[datetime] = None) -> TickReport:
        """
        Evaluate every active incident once.

        One failing incident never aborts the tick; its error is recorded in
        the report and the remaining incidents are still evaluated.
        """
        report = self._new_report()
        logger = get_context_logger(__name__, report.correlation_id)

        with log_latency(logger, "sla_tick"):
            await self._close_finished_incidents(report, current_time)

            incidents = await self._incident_repo.list_active()
            report.incidents_evaluated = len(incidents)
            await asyncio.gather(*(
                self._evaluate_isolated(incident, report, current_time, logger)
                for incident in incidents
            ))

        return await self._finish(report, logger)

    async def evaluate_incident(self, incident_id: str, current_time: Optional[datetime] = None) -> TickReport:
        """
        Re-check one incident after it changed.

        Raises:
            ResourceNotFoundException: unknown incident
        """
        incident = await self._incident_repo.get_by_id(incident_id)
        if incident is None:
            raise ResourceNotFoundException("Incident", incident_id)

        report = self._new_report()
        logger = get_context_logger(__name__, report.correlation_id)
        report.incidents_evaluated = 1
        await self._evaluate_isolated(incident, report, current_time, logger)
        return await self._finish(report, logger)

    async def execute_manually(
        self,
        rule_id: str,
        incident_id: str,
        current_time: Optional[datetime] = None
    ) -> EscalationExecution:
        """
        Fire a rule on demand.

        Conditions, cooldown and the enabled flag are not checked; the
        execution is recorded and counts toward the rule's cap.
        """
        rule = self._rule_repo.get(rule_id)
        if rule is None:
            raise ResourceNotFoundException("Escalation rule", rule_id)
        incident = await self._incident_repo.get_by_id(incident_id)
        if incident is None:
            raise ResourceNotFoundException("Incident", incident_id)

        async with self._incident_lock(incident_id):
            breach = self._latest_open_breach(await self._breach_repo.list_for_incident(incident_id))
            return await self._fire(rule, incident, breach, EscalationTrigger.MANUAL, current_time)

    # ----- internals -----

    @staticmethod
    def _new_report() -> TickReport:
        return TickReport(correlation_id=f"tick-{uuid.uuid4().hex[:12]}", started_at=datetime.now(timezone.utc))

    async def _finish(self, report: TickReport, logger) -> TickReport:
        report.finished_at = datetime.now(timezone.utc)
        self.last_report = report
        if report.new_breaches or report.executions or report.errors:
            logger.info("SLA evaluation finished", extra=report.to_log_extra())
        else:
            logger.debug("SLA evaluation finished", extra=report.to_log_extra())
        await self._notify_listeners(report, logger)
        return report

    @staticmethod
    def _latest_open_breach(breaches: List[SLABreach]) -> Optional[SLABreach]:
        open_breaches = [b for b in breaches if not b.resolved]
        return max(open_breaches, key=lambda b: b.breached_at) if open_breaches else None

    async def _close_finished_incidents(self, report: TickReport, current_time: Optional[datetime]) -> None:
        """Mark breaches resolved once their incident is resolved, failed or gone."""
        open_breaches = await self._breach_repo.list(unresolved_only=True)
        for incident_id in {b.incident_id for b in open_breaches}:
            incident = await self._incident_repo.get_by_id(incident_id)
            if incident is not None and incident.is_active:
                continue
            async with self._incident_lock(incident_id):
                await self._close_breaches(incident_id, report, current_time)

    async def _close_breaches(self, incident_id: str, report: TickReport, current_time: Optional[datetime]) -> None:
        for breach in await self._breach_repo.list_for_incident(incident_id):
            if not breach.resolved:
                breach.mark_resolved(current_time)
                report.resolved_breaches.append(breach)

    async def _evaluate_isolated(
        self,
        incident: Incident,
        report: TickReport,
        current_time: Optional[datetime],
        logger
    ) -> None:
        try:
            async with self._incident_lock(incident.id):
                await self._evaluate(incident, report, current_time or datetime.now(timezone.utc), logger)
        except ConfigurationException as e:
            report.skipped[incident.id] = e.message
            logger.warning("Incident not tracked", extra={"incident_id": incident.id, "error": e.message})
        except Exception as e:
            report.errors[incident.id] = f"{type(e).__name__}: {e}"
            logger.exception("Incident evaluation failed", extra={"incident_id": incident.id})

    async def _evaluate(self, incident: Incident, report: TickReport, now: datetime, logger) -> None:
        if not incident.is_active:
            await self._close_breaches(incident.id, report, now)
            return

        config = self._config_provider.get_config()
        policy = config.catalog().get(incident.severity)
        status = SLACalculator.calculate_status(incident, policy, now, config.at_risk_threshold_percent)

        breaches = await self._breach_repo.list_for_incident(incident.id)
        detector = BreachDetector(config.at_risk_threshold_percent)
        new_breach = detector.breach_for(incident, status, detector.recorded_keys(breaches), now)
        if new_breach is not None:
            await self._breach_repo.add(new_breach)
            report.new_breaches.append(new_breach)
            logger.warning(
                "SLA breach detected",
                extra={
                    "incident_id": incident.id,
                    "breach_id": new_breach.id,
                    "breach_type": new_breach.breach_type.value,
                    "severity": incident.severity.value,
                }
            )

        firings: List[Tuple[EscalationTrigger, Optional[SLABreach]]] = []
        if new_breach is not None:
            firings.append((EscalationTrigger.BREACH, new_breach))
        if status.is_at_risk:
            firings.append((EscalationTrigger.AT_RISK, None))
        firings.append((EscalationTrigger.TIME_THRESHOLD, new_breach or self._latest_open_breach(breaches)))

        rules = self._rule_repo.list()
        history = await self._execution_repo.list_for_incident(incident.id)

        for trigger, breach in firings:
            matched = self._matcher.match(incident, status, breach, rules, history, trigger, now, policy)
            if trigger == EscalationTrigger.AT_RISK:
                matched = self._first_at_risk(matched, history, incident.id, logger)
            for rule in matched:
                execution = await self._fire(rule, incident, breach, trigger, now)
                history.append(execution)
                report.executions.append(execution)

    @staticmethod
    def _first_at_risk(
        matched: List[EscalationRule],
        history: List[EscalationExecution],
        incident_id: str,
        logger
    ) -> List[EscalationRule]:
        """At-risk rules escalate on entry into the at-risk state, once per incident."""
        escalated = {e.rule_id for e in history if e.trigger == EscalationTrigger.AT_RISK}
        first = []
        for rule in matched:
            if rule.id in escalated:
                logger.debug(
                    "At-risk rule already fired for incident",
                    extra={"rule_id": rule.id, "incident_id": incident_id}
                )
            else:
                first.append(rule)
        return first

    async def _fire(
        self,
        rule: EscalationRule,
        incident: Incident,
        breach: Optional[SLABreach],
        trigger: EscalationTrigger,
        current_time: Optional[datetime]
    ) -> EscalationExecution:
        execution = await self._executor.execute(rule, incident, breach, trigger, current_time)
        await self._execution_repo.add(execution)
        if breach is not None:
            breach.link_execution(execution.id)
        return execution
