"""
SLA Guard
=========

SLA compliance tracking and automated incident escalation.

Modules:
- sla: SLA policies, status calculation, breach detection, compliance metrics
- escalation: rule matching, action execution, tick orchestration
"""

__version__ = "1.0.0"
