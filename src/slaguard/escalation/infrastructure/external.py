"""
Escalation External Service Integrations
=========================================

Outbound integrations used by escalation actions:
- Slack webhook notifications and pages
- Generic JSON webhooks (ITSM, ticketing)

Both clients share the circuit breaker and retry policy.
"""

import asyncio
import time
from typing import Any, Dict, List, Optional

import httpx

from slaguard.config import settings
from slaguard.core import ExternalServiceException
from slaguard.sla.domain import Incident
from slaguard.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class CircuitState:
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """
    Circuit breaker for preventing cascade failures.

    States:
    - CLOSED: Normal operation, requests pass through
    - OPEN: After N failures, reject all requests for M seconds
    - HALF_OPEN: After timeout, allow one test request
    """

    def __init__(self, failure_threshold: int = 5, recovery_timeout: float = 60.0):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time: Optional[float] = None

    @property
    def state(self) -> str:
        if self._state == CircuitState.OPEN and self._last_failure_time is not None:
            if time.monotonic() - self._last_failure_time >= self.recovery_timeout:
                self._state = CircuitState.HALF_OPEN
        return self._state

    def allow_request(self) -> bool:
        return self.state in (CircuitState.CLOSED, CircuitState.HALF_OPEN)

    def record_success(self) -> None:
        self._failure_count = 0
        self._state = CircuitState.CLOSED

    def record_failure(self) -> None:
        self._failure_count += 1
        self._last_failure_time = time.monotonic()

        if self._failure_count >= self.failure_threshold or self._state == CircuitState.HALF_OPEN:
            self._state = CircuitState.OPEN
            logger.warning(
                "Circuit breaker opened",
                extra={"failure_count": self._failure_count, "recovery_timeout": self.recovery_timeout}
            )


class _RetryingPoster:
    """POST with circuit breaker and exponential backoff."""

    service_name = "http"

    def __init__(
        self,
        timeout_seconds: float,
        max_retries: int = 3,
        circuit_breaker: Optional[CircuitBreaker] = None,
        http_client: Optional[httpx.AsyncClient] = None
    ):
        self._timeout = timeout_seconds
        self._max_retries = max_retries
        self._circuit_breaker = circuit_breaker or CircuitBreaker(failure_threshold=5, recovery_timeout=60)
        self._http_client = http_client

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._timeout)
        return self._http_client

    async def _post(self, url: str, payload: Dict[str, Any]) -> httpx.Response:
        """
        Raises:
            ExternalServiceException: circuit open, or all attempts failed
        """
        if not self._circuit_breaker.allow_request():
            raise ExternalServiceException(self.service_name, "circuit breaker open")

        try:
            return await self._attempt(url, payload)
        except asyncio.CancelledError:
            # cut off by the caller's action timeout mid-retry
            self._circuit_breaker.record_failure()
            raise

    async def _attempt(self, url: str, payload: Dict[str, Any]) -> httpx.Response:
        last_error = "no attempts made"
        for attempt in range(self._max_retries):
            try:
                client = await self._get_client()
                response = await client.post(url, json=payload)
                if response.is_success:
                    self._circuit_breaker.record_success()
                    return response
                last_error = f"HTTP {response.status_code}"
                logger.warning(
                    "Outbound request returned non-2xx",
                    extra={"service": self.service_name, "status_code": response.status_code, "attempt": attempt + 1}
                )
            except httpx.HTTPError as e:
                last_error = f"{type(e).__name__}: {e}"
                logger.warning(
                    "Outbound request failed",
                    extra={"service": self.service_name, "error": last_error, "attempt": attempt + 1}
                )

            if attempt < self._max_retries - 1:
                await asyncio.sleep(2 ** attempt)

        self._circuit_breaker.record_failure()
        raise ExternalServiceException(self.service_name, last_error, {"attempts": self._max_retries})

    async def close(self) -> None:
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None


class SlackClient(_RetryingPoster):
    """
    Slack incoming-webhook client.

    Handles sending structured escalation messages to Slack with:
    - Circuit breaker to prevent cascade failures
    - Exponential backoff retry
    - Timeout handling
    """

    service_name = "slack"

    def __init__(
        self,
        webhook_url: Optional[str] = None,
        channel: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        **kwargs
    ):
        super().__init__(timeout_seconds or settings.slack_timeout_seconds, **kwargs)
        self.webhook_url = webhook_url if webhook_url is not None else settings.slack_webhook_url
        self.channel = channel or settings.slack_channel

    @property
    def configured(self) -> bool:
        return bool(self.webhook_url)

    def _build_message(self, incident: Incident, header: str, team: str, message: str) -> Dict[str, Any]:
        """Build Slack Block Kit message."""
        blocks: List[Dict[str, Any]] = [
            {
                "type": "header",
                "text": {"type": "plain_text", "text": header, "emoji": True}
            },
            {
                "type": "section",
                "text": {"type": "mrkdwn", "text": message}
            },
            {
                "type": "section",
                "fields": [
                    {"type": "mrkdwn", "text": f"*Incident:*\n{incident.id}"},
                    {"type": "mrkdwn", "text": f"*Severity:*\n{incident.severity.value.title()}"},
                    {"type": "mrkdwn", "text": f"*Status:*\n{incident.status.value}"},
                    {"type": "mrkdwn", "text": f"*Team:*\n{team}"},
                ]
            },
            {
                "type": "context",
                "elements": [
                    {"type": "mrkdwn", "text": f"{incident.title} | Created: {incident.created_at.isoformat()}"}
                ]
            }
        ]
        return {"channel": self.channel, "text": f"{header}: {message}", "blocks": blocks}

    async def _send(self, message: Dict[str, Any], incident: Incident) -> None:
        if not self.configured:
            raise ExternalServiceException(self.service_name, "webhook URL not configured")
        await self._post(self.webhook_url, message)
        logger.info("Slack notification sent", extra={"incident_id": incident.id})

    async def notify(self, incident: Incident, team: str, message: str) -> None:
        await self._send(self._build_message(incident, "SLA Escalation", team, message), incident)

    async def page(self, incident: Incident, team: str, message: Optional[str] = None) -> None:
        text = f"<!channel> paging on-call *{team}*: {message or 'SLA escalation'}"
        await self._send(self._build_message(incident, "On-Call Page", team, text), incident)


class WebhookClient(_RetryingPoster):
    """JSON webhook client for external ticketing and ITSM systems."""

    service_name = "webhook"

    def __init__(self, timeout_seconds: Optional[float] = None, **kwargs):
        super().__init__(timeout_seconds or settings.webhook_timeout_seconds, **kwargs)

    async def send(self, url: str, payload: Dict[str, Any]) -> int:
        """POST the payload and return the response status code."""
        response = await self._post(url, payload)
        logger.info("Webhook delivered", extra={"url": url, "status_code": response.status_code})
        return response.status_code
