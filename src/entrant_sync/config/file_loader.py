"""File-based configuration loading with profile support.

Project settings live in ``pyproject.toml`` under ``[tool.entrant_sync]``;
personal settings live in ``~/.config/entrant_sync.toml`` (override the path
with ``ENTRANT_SYNC_CONFIG_HOME``). Both support named profiles.
"""

import os
from pathlib import Path
import tomllib
from typing import Any


class ConfigFileError(Exception):
    """Raised when configuration file loading fails."""

    def __init__(
        self, file_path: Path, message: str, cause: Exception | None = None
    ) -> None:
        self.file_path = file_path
        self.message = message
        self.cause = cause
        super().__init__(f"Config file error in {file_path}: {message}")


def _select_profile(
    section: dict[str, Any], profile: str | None, path: Path
) -> dict[str, Any]:
    profiles = section.get("profiles", {})
    if profile:
        if profile not in profiles:
            raise ConfigFileError(
                path,
                f"Profile '{profile}' not found. Available profiles: {list(profiles)}",
            )
        return dict(profiles[profile])
    config = dict(section)
    config.pop("profiles", None)
    return config


def _read_toml(path: Path) -> dict[str, Any]:
    try:
        with path.open(mode="rb") as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise ConfigFileError(path, f"Failed to parse TOML: {e}", cause=e) from e


class FileConfigLoader:
    """Loads configuration from project and home TOML files."""

    def load_project_config(
        self, project_root: Path | None = None, profile: str | None = None
    ) -> dict[str, Any]:
        """Load ``[tool.entrant_sync]`` (or one of its profiles) from pyproject.toml.

        Returns an empty dict when no file or section exists.

        Raises:
            ConfigFileError: If the file cannot be parsed or the profile is missing.
        """
        pyproject_path = self._find_pyproject_toml(project_root)
        if not pyproject_path:
            return {}
        section = _read_toml(pyproject_path).get("tool", {}).get("entrant_sync", {})
        if not section:
            return {}
        return _select_profile(section, profile, pyproject_path)

    def load_home_config(self, profile: str | None = None) -> dict[str, Any]:
        """Load the home configuration file (or one of its profiles)."""
        home_path = self.home_config_path()
        if not home_path.exists():
            return {}
        return _select_profile(_read_toml(home_path), profile, home_path)

    def list_available_profiles(
        self, project_root: Path | None = None
    ) -> dict[str, list[str]]:
        """Profile names found in the project and home files."""
        profiles: dict[str, list[str]] = {"project": [], "home": []}
        try:
            pyproject_path = self._find_pyproject_toml(project_root)
            if pyproject_path:
                section = (
                    _read_toml(pyproject_path).get("tool", {}).get("entrant_sync", {})
                )
                profiles["project"] = list(section.get("profiles", {}))
        except ConfigFileError:
            pass
        try:
            home_path = self.home_config_path()
            if home_path.exists():
                profiles["home"] = list(_read_toml(home_path).get("profiles", {}))
        except ConfigFileError:
            pass
        return profiles

    def home_config_path(self) -> Path:
        override = os.getenv("ENTRANT_SYNC_CONFIG_HOME")
        if override:
            return Path(override)
        return Path.home() / ".config" / "entrant_sync.toml"

    def _find_pyproject_toml(self, start_dir: Path | None = None) -> Path | None:
        current = Path(start_dir or Path.cwd()).resolve()
        while current != current.parent:
            candidate = current / "pyproject.toml"
            if candidate.exists():
                return candidate
            current = current.parent
        return None
