"""
Escalation Action Handlers
==========================

Concrete side-effect handlers for the escalation executor.

- ServiceActionHandlers: the service's own wiring (incident store, Slack,
  webhooks)
- CallbackActionHandlers: adapts plain callables supplied by an embedding
  application
"""

import asyncio
import inspect
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from slaguard.config import ActionType, IncidentStatus, Severity
from slaguard.core import ActionExecutionException, ExternalServiceException
from slaguard.escalation.application import ActionHandlers, webhook_payload
from slaguard.escalation.infrastructure.external import SlackClient, WebhookClient
from slaguard.sla.application import IIncidentRepository
from slaguard.sla.domain import Incident, SLABreach
from slaguard.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class ServiceActionHandlers(ActionHandlers):
    """
    Default handlers used by the HTTP service.

    Incident mutations go through the incident repository. Notifications go
    to Slack; other channels are logged as unsupported. Workflow triggers are
    logged, and ticket creation posts to the ticketing webhook when one is
    configured.
    """

    def __init__(
        self,
        incident_repository: IIncidentRepository,
        slack: Optional[SlackClient] = None,
        webhook: Optional[WebhookClient] = None,
        ticketing_webhook_url: Optional[str] = None
    ):
        self._incident_repo = incident_repository
        self._slack = slack
        self._webhook = webhook
        self._ticketing_webhook_url = ticketing_webhook_url

    async def _reload(self, incident: Incident) -> Incident:
        # act on the stored copy; the engine may hold a stale reference
        return await self._incident_repo.get_by_id(incident.id) or incident

    async def notify_team(self, incident: Incident, team: str, message: str, channels: List[str]) -> Optional[str]:
        delivered = []
        for channel in channels:
            if channel == "slack" and self._slack is not None and self._slack.configured:
                try:
                    await self._slack.notify(incident, team, message)
                except ExternalServiceException as e:
                    raise ActionExecutionException(ActionType.NOTIFY_TEAM.value, e.message)
                delivered.append(channel)
            else:
                logger.info(
                    "Notification channel not available",
                    extra={"incident_id": incident.id, "team": team, "channel": channel}
                )

        if not delivered:
            raise ActionExecutionException(
                ActionType.NOTIFY_TEAM.value, f"no available channel among {', '.join(channels)}"
            )
        return f"Team {team} notified via {', '.join(delivered)}"

    async def page_oncall(self, incident: Incident, team: str, message: Optional[str]) -> Optional[str]:
        if self._slack is None or not self._slack.configured:
            raise ActionExecutionException(ActionType.PAGE_ONCALL.value, "no paging channel configured")
        try:
            await self._slack.page(incident, team, message)
        except ExternalServiceException as e:
            raise ActionExecutionException(ActionType.PAGE_ONCALL.value, e.message)
        return f"On-call team {team} paged"

    async def upgrade_severity(self, incident: Incident, new_severity: Severity) -> Optional[str]:
        stored = await self._reload(incident)
        previous = stored.severity
        if not stored.upgrade_severity(new_severity):
            return f"Severity already {previous.value}"
        await self._incident_repo.save(stored)
        logger.info(
            "Incident severity upgraded",
            extra={"incident_id": stored.id, "from": previous.value, "to": new_severity.value}
        )
        return f"Severity upgraded from {previous.value} to {new_severity.value}"

    async def assign_senior(self, incident: Incident, assignee: str) -> Optional[str]:
        stored = await self._reload(incident)
        stored.assign(assignee)
        await self._incident_repo.save(stored)
        return f"Assigned to {assignee}"

    async def auto_approve(self, incident: Incident) -> Optional[str]:
        stored = await self._reload(incident)
        if stored.status != IncidentStatus.PENDING_APPROVAL:
            return "No pending approval"
        stored.approve("sla-escalation")
        await self._incident_repo.save(stored)
        return "Agent actions auto-approved"

    async def trigger_workflow(self, incident: Incident, workflow_id: str) -> Optional[str]:
        logger.info("Workflow trigger requested", extra={"incident_id": incident.id, "workflow_id": workflow_id})
        return f"Workflow {workflow_id} triggered"

    async def create_ticket(
        self,
        incident: Incident,
        breach: Optional[SLABreach],
        team: Optional[str],
        message: Optional[str]
    ) -> Optional[str]:
        if self._ticketing_webhook_url and self._webhook is not None:
            payload = webhook_payload(incident, breach, message)
            payload["event"] = "ticket_request"
            payload["team"] = team
            await self.send_webhook(self._ticketing_webhook_url, payload)
            return "External ticket requested"

        logger.info(
            "Ticket creation requested",
            extra={"incident_id": incident.id, "team": team, "breach_id": breach.id if breach else None}
        )
        return "Ticket creation logged"

    async def send_webhook(self, url: str, payload: Dict[str, Any]) -> Optional[str]:
        if self._webhook is None:
            raise ActionExecutionException(ActionType.SEND_WEBHOOK.value, "no webhook client configured")
        try:
            status_code = await self._webhook.send(url, payload)
        except ExternalServiceException as e:
            raise ActionExecutionException(ActionType.SEND_WEBHOOK.value, e.message)
        return f"Webhook sent to {url} ({status_code})"


class CallbackActionHandlers(ActionHandlers):
    """
    Handlers backed by collaborator callbacks.

    Callbacks may be coroutine functions or plain callables; plain callables
    run in a worker thread so the executor's timeout still applies. Missing
    callbacks leave the corresponding action failing.
    """

    def __init__(
        self,
        on_upgrade_severity: Optional[Callable] = None,
        on_auto_approve: Optional[Callable] = None,
        on_notify_team: Optional[Callable] = None,
        on_trigger_workflow: Optional[Callable] = None,
        on_page_oncall: Optional[Callable] = None,
        on_assign: Optional[Callable] = None,
        on_create_ticket: Optional[Callable] = None,
        on_send_webhook: Optional[Callable] = None
    ):
        self._callbacks = {
            ActionType.UPGRADE_SEVERITY: on_upgrade_severity,
            ActionType.AUTO_APPROVE: on_auto_approve,
            ActionType.NOTIFY_TEAM: on_notify_team,
            ActionType.TRIGGER_WORKFLOW: on_trigger_workflow,
            ActionType.PAGE_ONCALL: on_page_oncall,
            ActionType.ASSIGN_SENIOR: on_assign,
            ActionType.CREATE_TICKET: on_create_ticket,
            ActionType.SEND_WEBHOOK: on_send_webhook,
        }

    async def _call(self, action_type: ActionType, *args) -> Optional[str]:
        callback = self._callbacks.get(action_type)
        if callback is None:
            raise ActionExecutionException(action_type.value, "no handler configured")

        if inspect.iscoroutinefunction(callback):
            result = await callback(*args)
        else:
            result = await asyncio.to_thread(callback, *args)
            if inspect.isawaitable(result):
                result = await result
        return result if isinstance(result, str) else None

    async def upgrade_severity(self, incident: Incident, new_severity: Severity) -> Optional[str]:
        return await self._call(ActionType.UPGRADE_SEVERITY, new_severity)

    async def auto_approve(self, incident: Incident) -> Optional[str]:
        return await self._call(ActionType.AUTO_APPROVE)

    async def notify_team(self, incident: Incident, team: str, message: str, channels: List[str]) -> Optional[str]:
        return await self._call(ActionType.NOTIFY_TEAM, team, message, channels)

    async def trigger_workflow(self, incident: Incident, workflow_id: str) -> Optional[str]:
        return await self._call(ActionType.TRIGGER_WORKFLOW, workflow_id)

    async def page_oncall(self, incident: Incident, team: str, message: Optional[str]) -> Optional[str]:
        return await self._call(ActionType.PAGE_ONCALL, team, message)

    async def assign_senior(self, incident: Incident, assignee: str) -> Optional[str]:
        return await self._call(ActionType.ASSIGN_SENIOR, assignee)

    async def create_ticket(
        self,
        incident: Incident,
        breach: Optional[SLABreach],
        team: Optional[str],
        message: Optional[str]
    ) -> Optional[str]:
        return await self._call(ActionType.CREATE_TICKET, breach, team, message)

    async def send_webhook(self, url: str, payload: Dict[str, Any]) -> Optional[str]:
        return await self._call(ActionType.SEND_WEBHOOK, url, payload)
