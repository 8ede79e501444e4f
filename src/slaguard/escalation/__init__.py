"""
Escalation Module
=================

Bounded Context for automated incident escalation.

Responsibilities:
- Match escalation rules against SLA status and breaches
- Execute rule actions in priority order through injected handlers
- Enforce cooldowns and per-incident execution caps
- Drive periodic evaluation ticks and incident-change re-checks
"""
