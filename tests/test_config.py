"""Tests for settings, the YAML SLA configuration and its hot reload."""

import json
import logging
from datetime import timedelta
from pathlib import Path

import pytest
from pydantic import ValidationError

from slaguard.config import EscalationTrigger, Settings, Severity
from slaguard.config.sla import SLAConfig, default_escalation_rules, default_policies
from slaguard.core import ConfigurationException, ResourceNotFoundException
from slaguard.escalation.infrastructure import ConfigRuleRepository
from slaguard.shared.infrastructure.logging import CustomJsonFormatter
from slaguard.sla.infrastructure import SLAConfigManager

SAMPLE_CONFIG = Path(__file__).resolve().parent.parent / "sla_config.yaml"

MINIMAL_YAML = """
at_risk_threshold_percent: 70
policies:
  - id: only-critical
    severity: critical
    response_minutes: 10
    resolution_minutes: 60
escalation_rules:
  - id: page
    name: Page on breach
    trigger: breach
    cooldown_minutes: 15
    actions:
      - type: page_oncall
        priority: 1
        params: {team: sre}
"""


# ── settings ───────────────────────────────────────────────────────────────


class TestSettings:
    def test_defaults(self):
        settings = Settings(_env_file=None)

        assert settings.sla_evaluation_interval == 60
        assert settings.at_risk_threshold_percent == 80.0
        assert settings.action_timeout_seconds == 10.0

    def test_rejects_unknown_environment(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, environment="qa")

    def test_log_level_is_normalised(self):
        assert Settings(_env_file=None, log_level="debug").log_level == "DEBUG"

    def test_evaluation_interval_has_a_floor(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, sla_evaluation_interval=1)


# ── YAML document ──────────────────────────────────────────────────────────


class TestSLAConfig:
    def test_missing_sections_fall_back_to_defaults(self):
        config = SLAConfig()

        assert [p.id for p in config.policies] == [p.id for p in default_policies()]
        assert [r.id for r in config.escalation_rules] == [r.id for r in default_escalation_rules()]

    def test_sample_file_matches_builtin_defaults(self):
        manager = SLAConfigManager()
        config = manager.load(SAMPLE_CONFIG)

        assert [(p.id, p.response_target, p.resolution_target) for p in config.policies] == [
            (p.id, p.response_target, p.resolution_target) for p in default_policies()
        ]
        assert [r.id for r in config.escalation_rules] == [r.id for r in default_escalation_rules()]
        for loaded, builtin in zip(config.escalation_rules, default_escalation_rules()):
            assert [a.type for a in loaded.ordered_actions()] == [a.type for a in builtin.ordered_actions()]
            assert loaded.cooldown_period == builtin.cooldown_period
            assert loaded.enabled == builtin.enabled

    def test_rule_needs_an_action(self):
        with pytest.raises(ValidationError):
            SLAConfig(escalation_rules=[{"id": "r", "name": "r", "trigger": "breach", "actions": []}])


# ── config manager ─────────────────────────────────────────────────────────


class TestSLAConfigManager:
    def test_load_from_yaml(self, tmp_path):
        path = tmp_path / "sla.yaml"
        path.write_text(MINIMAL_YAML)

        config = SLAConfigManager().load(path)

        assert config.at_risk_threshold_percent == 70
        assert config.catalog().get(Severity.CRITICAL).resolution_target == timedelta(hours=1)
        assert config.escalation_rules[0].cooldown_period == timedelta(minutes=15)
        assert config.escalation_rules[0].trigger == EscalationTrigger.BREACH

    def test_missing_file_uses_defaults(self, tmp_path):
        config = SLAConfigManager().load(tmp_path / "absent.yaml")

        assert len(config.catalog()) == 4

    def test_invalid_file_raises_on_first_load(self, tmp_path):
        path = tmp_path / "sla.yaml"
        path.write_text("policies: [{id: x, severity: urgent}]")

        with pytest.raises(ConfigurationException):
            SLAConfigManager().load(path)

    def test_reload_keeps_previous_config_when_invalid(self, tmp_path):
        path = tmp_path / "sla.yaml"
        path.write_text(MINIMAL_YAML)
        manager = SLAConfigManager()
        manager.load(path)

        path.write_text("policies: [not: valid: yaml")

        assert manager.reload() is False
        assert manager.get_config().at_risk_threshold_percent == 70

    def test_reload_applies_changes_and_notifies(self, tmp_path):
        path = tmp_path / "sla.yaml"
        path.write_text(MINIMAL_YAML)
        manager = SLAConfigManager()
        manager.load(path)
        seen = []
        manager.add_reload_listener(seen.append)

        path.write_text(MINIMAL_YAML.replace("at_risk_threshold_percent: 70", "at_risk_threshold_percent: 90"))

        assert manager.reload() is True
        assert manager.get_config().at_risk_threshold_percent == 90
        assert len(seen) == 1

    def test_unloaded_manager_raises(self):
        with pytest.raises(ConfigurationException):
            SLAConfigManager().get_config()


# ── rule toggles ───────────────────────────────────────────────────────────


class TestRuleRepository:
    def test_toggle_survives_reload(self, tmp_path):
        path = tmp_path / "sla.yaml"
        path.write_text(MINIMAL_YAML)
        manager = SLAConfigManager()
        manager.load(path)
        rules = ConfigRuleRepository(manager)

        rules.set_enabled("page", False)
        manager.reload()

        assert rules.get("page").enabled is False
        assert manager.get_config().escalation_rules[0].enabled is True

    def test_unknown_rule(self, config_provider):
        with pytest.raises(ResourceNotFoundException):
            ConfigRuleRepository(config_provider).set_enabled("nope", True)


# ── logging ────────────────────────────────────────────────────────────────


class TestJsonFormatter:
    def test_secrets_are_redacted(self):
        formatter = CustomJsonFormatter(environment="test")
        record = logging.makeLogRecord({
            "msg": "delivering",
            "slack_webhook_url": "https://hooks.slack.com/services/T000/B000/XXXX",
            "correlation_id": "tick-abc",
            "incident_id": "INC-1",
        })

        payload = json.loads(formatter.format(record))

        assert payload["slack_webhook_url"] == "***REDACTED***"
        assert payload["incident_id"] == "INC-1"
        assert payload["correlation_id"] == "tick-abc"
        assert payload["environment"] == "test"
