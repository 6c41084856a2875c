"""
Unit tests for settings, instance configuration models and logging setup.
"""

import json
import logging

import pytest
import structlog
from pydantic import ValidationError

from ctfd_provisioner.core.config import Settings, get_settings
from ctfd_provisioner.core.logging import setup_logging
from ctfd_provisioner.infrastructure.orchestrator.models import (
    INSTANCE_TRANSITIONS,
    FlagDefinition,
    InstanceConfig,
    InstanceState,
)


class TestSettings:
    """Tests for environment-driven settings."""

    def test_defaults(self):
        settings = Settings()

        assert settings.image == "registry.sec-aau.dk/aau/ctfd"
        assert settings.data_mount_target == "/opt/CTFd/CTFd/data"
        assert settings.setup_base_url == "http://127.0.0.1:8000"
        assert settings.setup_port_binding == "127.0.0.1:8000"
        assert settings.readiness_timeout == 60.0
        assert settings.readiness_interval == 1.0

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("CTFD_IMAGE", "ctfd/ctfd:1.2.0")
        monkeypatch.setenv("CTFD_SETUP_BIND_PORT", "18000")
        monkeypatch.setenv("CTFD_READINESS_TIMEOUT", "30")

        settings = Settings()

        assert settings.image == "ctfd/ctfd:1.2.0"
        assert settings.setup_base_url == "http://127.0.0.1:18000"
        assert settings.readiness_timeout == 30.0

    def test_rejects_non_positive_timeout(self):
        with pytest.raises(ValidationError):
            Settings(readiness_timeout=0)

    def test_get_settings_cached(self):
        get_settings.cache_clear()
        try:
            assert get_settings() is get_settings()
        finally:
            get_settings.cache_clear()


class TestInstanceConfig:
    """Tests for the immutable instance configuration."""

    def test_from_declarative_mapping(self):
        conf = InstanceConfig.model_validate({
            "name": "demo",
            "admin_user": "admin",
            "admin_email": "admin@example.com",
            "admin_pass": "pw",
            "flags": [
                {"name": "A", "default": "flag{a}", "points": 100},
                {"name": "B", "default": "flag{b}", "points": 200},
            ],
        })

        assert isinstance(conf.flags, tuple)
        assert [f.points for f in conf.flags] == [100, 200]

    def test_immutable(self, demo_config):
        with pytest.raises(ValidationError):
            demo_config.name = "other"
        with pytest.raises(ValidationError):
            demo_config.flags[0].points = 1

    def test_negative_points_rejected(self):
        with pytest.raises(ValidationError):
            FlagDefinition(name="A", default="flag{a}", points=-1)

    def test_flags_default_empty(self):
        conf = InstanceConfig(name="x", admin_user="a", admin_email="a@b.c", admin_pass="p")

        assert conf.flags == ()


class TestInstanceTransitions:
    """The lifecycle table only allows the documented handoff."""

    def test_handoff_path(self):
        path = [
            InstanceState.NEW,
            InstanceState.CONFIGURING,
            InstanceState.TRANSITIONING,
            InstanceState.SERVING,
            InstanceState.CLOSED,
        ]
        for current, following in zip(path, path[1:]):
            assert following in INSTANCE_TRANSITIONS[current]

    def test_no_shortcut_to_serving(self):
        assert InstanceState.SERVING not in INSTANCE_TRANSITIONS[InstanceState.CONFIGURING]
        assert INSTANCE_TRANSITIONS[InstanceState.CLOSED] == ()


class TestLogging:
    """Tests for structlog configuration."""

    def teardown_method(self):
        structlog.reset_defaults()
        logging.getLogger().handlers.clear()

    def test_json_output(self, capsys):
        setup_logging("DEBUG", "json")

        structlog.get_logger("tests.logging").info("Instance closed", container_id="abc")

        line = capsys.readouterr().err.strip().splitlines()[-1]
        record = json.loads(line)
        assert record["event"] == "Instance closed"
        assert record["container_id"] == "abc"
        assert record["level"] == "info"

    def test_level_filter(self, capsys):
        setup_logging("WARNING", "console")

        structlog.get_logger("tests.logging").info("hidden")

        assert "hidden" not in capsys.readouterr().err
