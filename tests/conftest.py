"""
Global test configuration: environment isolation and shared fakes.
"""

from collections.abc import Iterator
from contextlib import contextmanager
import os
from pathlib import Path
from unittest.mock import patch

import pytest

from entrant_sync.adapters.memory import InMemoryShop
from entrant_sync.config import FrozenConfig
from tests.helpers import FakeClock


# --- Environment Isolation (Autouse) ---
@pytest.fixture(autouse=True)
def isolate_entrant_sync_env(request, monkeypatch):
    """Ensure a clean ENTRANT_SYNC_* environment for each test.

    Escape hatch: @pytest.mark.allow_env_pollution keeps the env unchanged.
    """
    if request.node.get_closest_marker("allow_env_pollution"):
        return

    for key in list(os.environ.keys()):
        if key.startswith("ENTRANT_SYNC_"):
            monkeypatch.delenv(key, raising=False)
    # Avoid DEBUG toggles switching telemetry on
    monkeypatch.delenv("DEBUG", raising=False)


@pytest.fixture(autouse=True)
def neutral_home_config(request, monkeypatch, tmp_path):
    """Point the home config path at an isolated, nonexistent file.

    Escape hatch: @pytest.mark.allow_real_home_config uses the real path.
    """
    if request.node.get_closest_marker("allow_real_home_config"):
        return

    fake_home_dir = tmp_path / "home_config_isolated"
    fake_home_dir.mkdir(parents=True, exist_ok=True)
    monkeypatch.setenv("ENTRANT_SYNC_CONFIG_HOME", str(fake_home_dir / "entrant_sync.toml"))


@pytest.fixture
def isolated_config_sources(tmp_path):
    """Set up exactly the configuration sources a test wants.

    Returns a context manager factory; inside it, resolve_config(project_root=...)
    sees only the given pyproject, home file and environment.
    """

    @contextmanager
    def _setup(
        *,
        pyproject_content: str = "",
        home_content: str = "",
        env_vars: dict[str, str] | None = None,
    ) -> Iterator[Path]:
        project_dir = tmp_path / "project"
        project_dir.mkdir(exist_ok=True)
        if pyproject_content:
            (project_dir / "pyproject.toml").write_text(pyproject_content)
        home_file = tmp_path / "home.toml"
        if home_content:
            home_file.write_text(home_content)

        clean_env = {
            k: v for k, v in os.environ.items() if not k.startswith("ENTRANT_SYNC_")
        }
        clean_env["ENTRANT_SYNC_CONFIG_HOME"] = str(home_file)
        for key, value in (env_vars or {}).items():
            clean_env[f"ENTRANT_SYNC_{key}"] = value
        with patch.dict(os.environ, clean_env, clear=True):
            yield project_dir

    return _setup


# --- Shared fakes ---


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def config() -> FrozenConfig:
    return FrozenConfig(
        rate_limit_per_second=1000.0,
        burst_capacity=100,
        call_timeout_seconds=5.0,
        variant_map={"8": "v-8", "9": "v-9"},
        invoice_message="Complete your purchase",
    )


@pytest.fixture
def shop() -> InMemoryShop:
    return InMemoryShop()
