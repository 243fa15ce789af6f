"""Unit tests for configuration resolution.

These tests pin down:
- precedence (programmatic > env > project file > home file > defaults);
- origin tracking for audits;
- credential redaction and the use_real_api credential requirement.
"""

import pytest

from entrant_sync.config import (
    ConfigFileError,
    FrozenConfig,
    get_config_info,
    list_available_profiles,
    resolve_config,
)
from entrant_sync.config.env_loader import EnvironmentConfigLoader
from entrant_sync.config.introspection import get_config_warnings

PYPROJECT = """
[tool.entrant_sync]
shop_name = "project-shop"
rate_limit_per_second = 2.0
output_dir = "project-out"

[tool.entrant_sync.variant_map]
"8" = 3108
"9" = "3109"

[tool.entrant_sync.profiles.staging]
shop_name = "staging-shop"
burst_capacity = 8
"""

HOME = """
shop_name = "home-shop"
customer_tags = "raffle"
"""


class TestPrecedence:
    @pytest.mark.unit
    def test_defaults_when_nothing_is_set(self, isolated_config_sources):
        with isolated_config_sources() as root:
            resolved = resolve_config(project_root=root)

        assert resolved.rate_limit_per_second == 4.0
        assert resolved.burst_capacity == 4
        assert resolved.use_real_api is False
        assert resolved.acquire_timeout_seconds is None
        assert resolved.origin["rate_limit_per_second"] == "default"

    @pytest.mark.unit
    def test_project_file_overrides_home_file(self, isolated_config_sources):
        with isolated_config_sources(
            pyproject_content=PYPROJECT, home_content=HOME
        ) as root:
            resolved = resolve_config(project_root=root)

        assert resolved.shop_name == "project-shop"
        assert resolved.customer_tags == "raffle"
        assert resolved.variant_map == {"8": "3108", "9": "3109"}
        assert resolved.origin["shop_name"] == "file"

    @pytest.mark.unit
    def test_env_overrides_files(self, isolated_config_sources):
        with isolated_config_sources(
            pyproject_content=PYPROJECT,
            env_vars={"RATE_LIMIT_PER_SECOND": "0.5", "VARIANT_MAP": '{"10": 3110}'},
        ) as root:
            resolved = resolve_config(project_root=root)

        assert resolved.rate_limit_per_second == 0.5
        assert resolved.variant_map == {"10": "3110"}
        assert resolved.origin["rate_limit_per_second"] == "env"

    @pytest.mark.unit
    def test_programmatic_overrides_everything(self, isolated_config_sources):
        with isolated_config_sources(
            pyproject_content=PYPROJECT, env_vars={"OUTPUT_DIR": "env-out"}
        ) as root:
            resolved = resolve_config({"output_dir": "code-out"}, project_root=root)

        assert resolved.output_dir == "code-out"
        assert resolved.origin["output_dir"] == "programmatic"

    @pytest.mark.unit
    def test_profile_selects_profile_section(self, isolated_config_sources):
        with isolated_config_sources(pyproject_content=PYPROJECT) as root:
            resolved = resolve_config(profile="staging", project_root=root)
            profiles = list_available_profiles(project_root=root)

        assert resolved.shop_name == "staging-shop"
        assert resolved.burst_capacity == 8
        assert profiles["project"] == ["staging"]

    @pytest.mark.unit
    def test_env_can_enable_real_api_with_credentials_from_file(
        self, isolated_config_sources
    ):
        pyproject = '[tool.entrant_sync]\nshop_name = "s"\napi_key = "k"\npassword = "p"\n'
        with isolated_config_sources(
            pyproject_content=pyproject, env_vars={"USE_REAL_API": "true"}
        ) as root:
            resolved = resolve_config(project_root=root)

        assert resolved.use_real_api is True


class TestValidation:
    @pytest.mark.unit
    def test_real_api_requires_credentials(self, isolated_config_sources):
        with isolated_config_sources() as root:
            with pytest.raises(ValueError, match="required when use_real_api"):
                resolve_config({"use_real_api": True}, project_root=root)

    @pytest.mark.unit
    def test_invalid_env_value_is_reported(self, isolated_config_sources):
        with isolated_config_sources(env_vars={"BURST_CAPACITY": "0"}) as root:
            with pytest.raises(ValueError, match="ENTRANT_SYNC_BURST_CAPACITY"):
                resolve_config(project_root=root)

    @pytest.mark.unit
    def test_env_alone_cannot_enable_real_api(self, isolated_config_sources):
        with isolated_config_sources(env_vars={"USE_REAL_API": "true"}) as root:
            with pytest.raises(ValueError, match="required when use_real_api"):
                resolve_config(project_root=root)

    @pytest.mark.unit
    def test_env_values_are_validated_one_by_one(self, monkeypatch):
        monkeypatch.setenv("ENTRANT_SYNC_USE_REAL_API", "true")
        monkeypatch.setenv("ENTRANT_SYNC_VARIANT_MAP", '{" 8 ": 3108}')
        monkeypatch.setenv("ENTRANT_SYNC_BURST_CAPACITY", "2")

        values = EnvironmentConfigLoader().load_env_config()

        assert values == {
            "use_real_api": True,
            "burst_capacity": 2,
            "variant_map": {"8": "3108"},
        }

    @pytest.mark.unit
    def test_every_invalid_env_value_is_named(self, monkeypatch):
        monkeypatch.setenv("ENTRANT_SYNC_BURST_CAPACITY", "0")
        monkeypatch.setenv("ENTRANT_SYNC_VARIANT_MAP", "[1, 2")

        with pytest.raises(ValueError) as exc_info:
            EnvironmentConfigLoader().load_env_config()

        assert "ENTRANT_SYNC_BURST_CAPACITY" in str(exc_info.value)
        assert "ENTRANT_SYNC_VARIANT_MAP" in str(exc_info.value)

    @pytest.mark.unit
    def test_malformed_project_file_is_fatal(self, isolated_config_sources):
        with isolated_config_sources(pyproject_content="[tool.entrant_sync\n") as root:
            with pytest.raises(ConfigFileError):
                resolve_config(project_root=root)

    @pytest.mark.unit
    def test_malformed_home_file_is_ignored(self, isolated_config_sources):
        with isolated_config_sources(home_content="not = [valid") as root:
            resolved = resolve_config(project_root=root)

        assert resolved.origin["shop_name"] == "default"


class TestRedaction:
    @pytest.mark.unit
    def test_frozen_config_never_prints_secrets(self):
        config = FrozenConfig(shop_name="s", api_key="super-secret", password="hunter2")

        text = str(config)

        assert "super-secret" not in text
        assert "hunter2" not in text
        assert "[REDACTED]" in text

    @pytest.mark.unit
    def test_resolved_config_audit_is_redacted(self, isolated_config_sources):
        with isolated_config_sources(
            env_vars={"API_KEY": "env-secret", "SHOP_NAME": "env-shop"}
        ) as root:
            resolved = resolve_config(project_root=root)

        audit = resolved.audit()
        assert "env-secret" not in audit
        assert "env-secret" not in repr(resolved)
        assert "shop_name: env:ENTRANT_SYNC_SHOP_NAME=env-shop" in audit

    @pytest.mark.unit
    def test_config_info_reports_presence_not_values(self):
        info = get_config_info(overrides={"api_key": "k"})

        assert info["status"] == "valid"
        assert "api_key" not in info["config"]
        assert info["config"]["has_api_key"] is True
        assert info["config"]["has_password"] is False
        assert info["sources"]["api_key"] == "programmatic"


@pytest.mark.unit
def test_to_frozen_and_overrides(isolated_config_sources):
    with isolated_config_sources() as root:
        resolved = resolve_config(project_root=root)

    changed = resolved.with_overrides(burst_capacity=10, unknown="x")
    frozen = changed.to_frozen()

    assert frozen.burst_capacity == 10
    assert changed.origin["burst_capacity"] == "programmatic"
    with pytest.raises(AttributeError):
        frozen.burst_capacity = 1  # type: ignore[misc]


@pytest.mark.unit
def test_warnings_flag_missing_variant_map(isolated_config_sources):
    with isolated_config_sources() as root:
        resolved = resolve_config(project_root=root)

    warnings = get_config_warnings(resolved)

    assert any("variant_map" in w for w in warnings)
    assert any("in-memory" in w for w in warnings)
