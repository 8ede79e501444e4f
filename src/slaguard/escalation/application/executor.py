"""
Escalation Executor
===================

Runs a matched rule's actions in ascending priority order against injected
side-effect handlers.

Execution is best-effort: each action is isolated and bounded by a timeout,
and a failed action never cancels the ones after it. The execution is
``completed`` once the loop finishes, whatever the individual outcomes;
only a fault escaping the loop marks it ``failed``.
"""

import asyncio
from abc import ABC
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from slaguard.config import ActionType, EscalationTrigger, Severity
from slaguard.core import ActionExecutionException, ActionTimeoutException, ApplicationException
from slaguard.escalation.domain import (
    ActionOutcome, EscalationAction, EscalationExecution, EscalationRule
)
from slaguard.sla.domain import Incident, SLABreach
from slaguard.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

DEFAULT_CHANNELS = ["slack"]


class ActionHandlers(ABC):
    """
    Side-effect interface used by the executor, one coroutine per action type.

    Handlers return an optional human-readable result and raise to report
    failure. Unimplemented handlers raise ActionExecutionException.
    """

    async def notify_team(self, incident: Incident, team: str, message: str, channels: List[str]) -> Optional[str]:
        raise ActionExecutionException(ActionType.NOTIFY_TEAM.value, "no handler configured")

    async def upgrade_severity(self, incident: Incident, new_severity: Severity) -> Optional[str]:
        raise ActionExecutionException(ActionType.UPGRADE_SEVERITY.value, "no handler configured")

    async def assign_senior(self, incident: Incident, assignee: str) -> Optional[str]:
        raise ActionExecutionException(ActionType.ASSIGN_SENIOR.value, "no handler configured")

    async def trigger_workflow(self, incident: Incident, workflow_id: str) -> Optional[str]:
        raise ActionExecutionException(ActionType.TRIGGER_WORKFLOW.value, "no handler configured")

    async def page_oncall(self, incident: Incident, team: str, message: Optional[str]) -> Optional[str]:
        raise ActionExecutionException(ActionType.PAGE_ONCALL.value, "no handler configured")

    async def create_ticket(
        self,
        incident: Incident,
        breach: Optional[SLABreach],
        team: Optional[str],
        message: Optional[str]
    ) -> Optional[str]:
        raise ActionExecutionException(ActionType.CREATE_TICKET.value, "no handler configured")

    async def send_webhook(self, url: str, payload: Dict[str, Any]) -> Optional[str]:
        raise ActionExecutionException(ActionType.SEND_WEBHOOK.value, "no handler configured")

    async def auto_approve(self, incident: Incident) -> Optional[str]:
        raise ActionExecutionException(ActionType.AUTO_APPROVE.value, "no handler configured")


def webhook_payload(
    incident: Incident,
    breach: Optional[SLABreach],
    message: Optional[str]
) -> Dict[str, Any]:
    """Body posted by send_webhook actions."""
    payload: Dict[str, Any] = {
        "event": "sla_escalation",
        "message": message,
        "incident": {
            "id": incident.id,
            "title": incident.title,
            "severity": incident.severity.value,
            "status": incident.status.value,
            "created_at": incident.created_at.isoformat(),
        },
        "breach": None,
    }
    if breach is not None:
        payload["breach"] = {
            "id": breach.id,
            "breach_type": breach.breach_type.value,
            "breached_at": breach.breached_at.isoformat(),
            "time_over_breach_seconds": breach.time_over_breach.total_seconds(),
        }
    return payload


class EscalationExecutor:
    """Executes one rule against one incident."""

    def __init__(self, handlers: ActionHandlers, action_timeout_seconds: float = 10.0):
        self._handlers = handlers
        self._timeout = action_timeout_seconds

    async def _invoke(
        self,
        action: EscalationAction,
        incident: Incident,
        breach: Optional[SLABreach]
    ) -> str:
        """Dispatch one action to its handler and return the result text."""
        params = action.params
        handlers = self._handlers

        if action.type == ActionType.NOTIFY_TEAM:
            if not (params.team and params.message):
                raise ActionExecutionException(action.type.value, "Action configuration incomplete")
            channels = params.channels or DEFAULT_CHANNELS
            result = await handlers.notify_team(incident, params.team, params.message, channels)
            return result or f"Team {params.team} notified via {', '.join(channels)}"

        if action.type == ActionType.UPGRADE_SEVERITY:
            if params.new_severity is None:
                raise ActionExecutionException(action.type.value, "Action configuration incomplete")
            result = await handlers.upgrade_severity(incident, params.new_severity)
            return result or f"Severity upgraded to {params.new_severity.value}"

        if action.type == ActionType.ASSIGN_SENIOR:
            if not params.assignee:
                raise ActionExecutionException(action.type.value, "Action configuration incomplete")
            result = await handlers.assign_senior(incident, params.assignee)
            return result or f"Assigned to {params.assignee}"

        if action.type == ActionType.TRIGGER_WORKFLOW:
            if not params.workflow_id:
                raise ActionExecutionException(action.type.value, "Action configuration incomplete")
            result = await handlers.trigger_workflow(incident, params.workflow_id)
            return result or f"Workflow {params.workflow_id} triggered"

        if action.type == ActionType.PAGE_ONCALL:
            if not params.team:
                raise ActionExecutionException(action.type.value, "Action configuration incomplete")
            result = await handlers.page_oncall(incident, params.team, params.message)
            return result or f"On-call team {params.team} paged"

        if action.type == ActionType.CREATE_TICKET:
            result = await handlers.create_ticket(incident, breach, params.team, params.message)
            return result or "External ticket created"

        if action.type == ActionType.SEND_WEBHOOK:
            if not params.webhook_url:
                raise ActionExecutionException(action.type.value, "Action configuration incomplete")
            result = await handlers.send_webhook(
                params.webhook_url, webhook_payload(incident, breach, params.message)
            )
            return result or f"Webhook sent to {params.webhook_url}"

        if action.type == ActionType.AUTO_APPROVE:
            result = await handlers.auto_approve(incident)
            return result or "Agent actions auto-approved"

        raise ActionExecutionException(str(action.type), "Unknown action type")

    async def run_action(
        self,
        action: EscalationAction,
        incident: Incident,
        breach: Optional[SLABreach] = None
    ) -> ActionOutcome:
        """Run one action, converting every failure into a failed outcome."""
        try:
            result = await asyncio.wait_for(self._invoke(action, incident, breach), timeout=self._timeout)
        except asyncio.TimeoutError:
            error = ActionTimeoutException(action.type.value, self._timeout).message
        except ApplicationException as e:
            error = e.message
        except Exception as e:
            error = f"{type(e).__name__}: {e}" if str(e) else type(e).__name__
        else:
            return ActionOutcome(
                action_type=action.type,
                priority=action.priority,
                executed_at=datetime.now(timezone.utc),
                success=True,
                result=result,
            )

        logger.warning(
            "Escalation action failed",
            extra={"incident_id": incident.id, "action_type": action.type.value, "error": error}
        )
        return ActionOutcome(
            action_type=action.type,
            priority=action.priority,
            executed_at=datetime.now(timezone.utc),
            success=False,
            error=error,
        )

    async def execute(
        self,
        rule: EscalationRule,
        incident: Incident,
        breach: Optional[SLABreach],
        trigger: EscalationTrigger,
        triggered_at: Optional[datetime] = None
    ) -> EscalationExecution:
        """
        Fire a rule against an incident.

        The caller links the returned execution to the breach, if any.

        Args:
            rule: Matched rule
            incident: Target incident
            breach: Breach that triggered the rule, if any
            trigger: Firing trigger
            triggered_at: Timestamp used for cooldown bookkeeping (defaults to now)

        Returns:
            EscalationExecution in a terminal state
        """
        execution = EscalationExecution.start(
            rule, incident.id, trigger,
            breach_id=breach.id if breach else None,
            triggered_at=triggered_at,
        )

        try:
            for action in rule.ordered_actions():
                execution.record(await self.run_action(action, incident, breach))
        except Exception as e:
            logger.exception(
                "Escalation execution aborted",
                extra={"execution_id": execution.id, "rule_id": rule.id, "incident_id": incident.id}
            )
            execution.fail(str(e) or type(e).__name__)
        else:
            execution.complete()

        logger.info(
            "Escalation executed",
            extra={
                "execution_id": execution.id,
                "rule_id": rule.id,
                "incident_id": incident.id,
                "trigger": trigger.value,
                "status": execution.status.value,
                "summary": execution.summary,
            }
        )
        return execution
