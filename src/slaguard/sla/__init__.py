"""
SLA Tracking Module
===================

Bounded Context for Service Level Agreement tracking.

Responsibilities:
- Map incident severities to SLA policies
- Calculate live SLA status for incidents
- Detect breaches exactly once per incident and breach type
- Aggregate historical compliance metrics
- Provide API endpoints for SLA visibility
"""
