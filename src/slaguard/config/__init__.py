"""
Configuration Module
====================

Application settings and configuration management using Pydantic.
"""

from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses Pydantic for validation and type safety.
    """

    # ========== Application ==========
    app_name: str = Field(default="slaguard", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)

    # ========== SLA Configuration ==========
    sla_config_path: Path = Field(
        default=Path("sla_config.yaml"),
        description="Path to SLA policy and escalation rule YAML file"
    )
    sla_evaluation_interval: int = Field(
        default=60,
        description="Seconds between SLA evaluation ticks",
        ge=10
    )
    at_risk_threshold_percent: float = Field(
        default=80.0,
        description="Percent of the resolution target after which an incident is at risk",
        gt=0,
        lt=100
    )

    # ========== Escalation ==========
    action_timeout_seconds: float = Field(
        default=10.0,
        description="Upper bound for a single escalation action handler",
        gt=0,
        le=300
    )

    # ========== Slack Integration ==========
    slack_webhook_url: Optional[str] = Field(
        default=None,
        description="Slack webhook URL for team notifications and paging"
    )
    slack_channel: str = Field(
        default="#incident-escalations",
        description="Default Slack channel for escalation notifications"
    )
    slack_timeout_seconds: float = Field(
        default=5.0,
        description="Timeout for Slack API calls",
        ge=0.1,
        le=30
    )

    # ========== Outbound Webhooks ==========
    webhook_timeout_seconds: float = Field(
        default=5.0,
        description="Timeout for escalation webhook calls",
        ge=0.1,
        le=30
    )
    ticketing_webhook_url: Optional[str] = Field(
        default=None,
        description="External ticketing endpoint used by create_ticket actions"
    )

    # ========== CORS ==========
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:8080"],
        description="Allowed CORS origins"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is one of allowed values."""
        allowed = {"development", "staging", "production"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalise and check the log level name."""
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level: {v}")
        return level


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


# ========== Constants ==========

class Severity(str, Enum):
    """Incident severity levels, most urgent first."""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class IncidentStatus(str, Enum):
    """Incident lifecycle statuses."""
    NEW = "new"
    IN_PROGRESS = "in-progress"
    PENDING_APPROVAL = "pending-approval"
    RESOLVED = "resolved"
    FAILED = "failed"


class SLAState(str, Enum):
    """SLA status states."""
    ON_TRACK = "on-track"
    AT_RISK = "at-risk"
    BREACHED = "breached"


class BreachType(str, Enum):
    """Which SLA clocks have been exceeded."""
    RESPONSE = "response"
    RESOLUTION = "resolution"
    BOTH = "both"
    NONE = "none"


class EscalationTrigger(str, Enum):
    """Events that can fire an escalation rule."""
    BREACH = "breach"
    AT_RISK = "at-risk"
    TIME_THRESHOLD = "time-threshold"
    MANUAL = "manual"


class ActionType(str, Enum):
    """Escalation action types."""
    NOTIFY_TEAM = "notify_team"
    UPGRADE_SEVERITY = "upgrade_severity"
    ASSIGN_SENIOR = "assign_senior"
    TRIGGER_WORKFLOW = "trigger_workflow"
    PAGE_ONCALL = "page_oncall"
    CREATE_TICKET = "create_ticket"
    SEND_WEBHOOK = "send_webhook"
    AUTO_APPROVE = "auto_approve"


class ExecutionStatus(str, Enum):
    """Escalation execution lifecycle."""
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"


# ========== Lists for validation ==========

VALID_SEVERITIES = [
    Severity.CRITICAL, Severity.HIGH,
    Severity.MEDIUM, Severity.LOW
]
TERMINAL_STATUSES = [IncidentStatus.RESOLVED, IncidentStatus.FAILED]
