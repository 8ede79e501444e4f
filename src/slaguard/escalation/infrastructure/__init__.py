"""
Escalation Infrastructure Layer
================================

Concrete implementations for escalation:
- In-memory execution history and config-backed rule repository
- Slack and webhook clients
- Action handlers wired to those clients or to caller callbacks
"""

from slaguard.escalation.infrastructure.repositories import (
    InMemoryExecutionRepository,
    ConfigRuleRepository,
)
from slaguard.escalation.infrastructure.external import (
    CircuitBreaker,
    CircuitState,
    SlackClient,
    WebhookClient,
)
from slaguard.escalation.infrastructure.handlers import (
    ServiceActionHandlers,
    CallbackActionHandlers,
)

__all__ = [
    "InMemoryExecutionRepository",
    "ConfigRuleRepository",
    "CircuitBreaker",
    "CircuitState",
    "SlackClient",
    "WebhookClient",
    "ServiceActionHandlers",
    "CallbackActionHandlers",
]
