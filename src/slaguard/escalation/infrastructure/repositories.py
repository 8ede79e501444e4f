"""
Escalation Infrastructure Repositories
=======================================

In-memory execution history and the rule view over the live SLA config.
"""

from collections import defaultdict
from typing import Dict, List, Optional

from slaguard.core import ResourceNotFoundException
from slaguard.escalation.application import IEscalationRuleRepository, IExecutionRepository
from slaguard.escalation.domain import EscalationExecution, EscalationRule
from slaguard.sla.application import ISLAConfigProvider
from slaguard.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class InMemoryExecutionRepository(IExecutionRepository):
    """Execution history, indexed by incident for cooldown lookups."""

    def __init__(self):
        self._executions: List[EscalationExecution] = []
        self._by_id: Dict[str, EscalationExecution] = {}
        self._by_incident: Dict[str, List[EscalationExecution]] = defaultdict(list)

    async def add(self, execution: EscalationExecution) -> EscalationExecution:
        self._executions.append(execution)
        self._by_id[execution.id] = execution
        self._by_incident[execution.incident_id].append(execution)
        return execution

    async def get_by_id(self, execution_id: str) -> Optional[EscalationExecution]:
        return self._by_id.get(execution_id)

    async def list_for_incident(self, incident_id: str) -> List[EscalationExecution]:
        return list(self._by_incident.get(incident_id, []))

    async def list(
        self,
        incident_id: Optional[str] = None,
        rule_id: Optional[str] = None,
        limit: int = 100
    ) -> List[EscalationExecution]:
        source = self._by_incident.get(incident_id, []) if incident_id else self._executions
        matches = [e for e in reversed(source) if rule_id is None or e.rule_id == rule_id]
        return matches[:limit]


class ConfigRuleRepository(IEscalationRuleRepository):
    """
    Rules read from the current SLA config.

    Runtime enable/disable toggles are kept as overrides keyed by rule ID,
    so they survive config reloads for rules that still exist.
    """

    def __init__(self, config_provider: ISLAConfigProvider):
        self._config_provider = config_provider
        self._enabled_overrides: Dict[str, bool] = {}

    def _apply(self, rule: EscalationRule) -> EscalationRule:
        override = self._enabled_overrides.get(rule.id)
        if override is None or override == rule.enabled:
            return rule
        return rule.model_copy(update={"enabled": override})

    def list(self) -> List[EscalationRule]:
        return [self._apply(r) for r in self._config_provider.get_config().escalation_rules]

    def get(self, rule_id: str) -> Optional[EscalationRule]:
        for rule in self._config_provider.get_config().escalation_rules:
            if rule.id == rule_id:
                return self._apply(rule)
        return None

    def set_enabled(self, rule_id: str, enabled: bool) -> EscalationRule:
        if self.get(rule_id) is None:
            raise ResourceNotFoundException("Escalation rule", rule_id)
        self._enabled_overrides[rule_id] = enabled
        logger.info("Escalation rule toggled", extra={"rule_id": rule_id, "enabled": enabled})
        return self.get(rule_id)
