"""
Shared Kernel Module
====================

This module contains shared infrastructure used across all bounded contexts
(SLA Tracking and Escalation).

Architecture Pattern: Modular Monolith
- Each module (sla, escalation) is a bounded context
- Shared kernel contains only generic infrastructure

DO NOT add business logic from SLA or Escalation to shared kernel.
"""
