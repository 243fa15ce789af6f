"""Configuration resolution with precedence handling.

Precedence, highest first:
Programmatic > Environment > Project file > Home file > Defaults
"""

import os
from pathlib import Path
from typing import Any

from .audit import SourceTracker
from .env_loader import EnvironmentConfigLoader
from .file_loader import ConfigFileError, FileConfigLoader
from .schema import FIELD_ORDER, SyncSettings
from .types import ConfigOrigin, ResolvedConfig


class ConfigResolver:
    """Merges configuration from every source and validates the result."""

    def __init__(self) -> None:
        self.file_loader = FileConfigLoader()
        self.env_loader = EnvironmentConfigLoader()

    def resolve(
        self,
        programmatic: dict[str, Any] | None = None,
        *,
        profile: str | None = None,
        use_env_file: str | Path | None = None,
        project_root: Path | None = None,
    ) -> ResolvedConfig:
        """Resolve configuration from all sources with proper precedence.

        Args:
            programmatic: Programmatic overrides (highest precedence).
            profile: Profile name to load from files; defaults to
                ``ENTRANT_SYNC_PROFILE``.
            use_env_file: Optional ``.env`` file to load.
            project_root: Directory to search for pyproject.toml.

        Returns:
            ResolvedConfig with merged values and source tracking.

        Raises:
            ValueError: If validation fails or environment values are invalid.
            ConfigFileError: If the project file is malformed.
        """
        tracker = SourceTracker()
        merged: dict[str, Any] = {}

        if profile is None:
            profile = os.getenv("ENTRANT_SYNC_PROFILE")

        def apply(values: dict[str, Any], origin: ConfigOrigin) -> None:
            for field, value in values.items():
                if field in merged:  # Only override known fields
                    merged[field] = value
                    tracker.set_origin(field, origin)

        # Step 1: schema defaults (no env lookup, no validation)
        defaults = SyncSettings.model_construct().to_dict()
        merged.update(defaults)
        for field in defaults:
            tracker.set_origin(field, "default")

        # Step 2: home file; errors are non-fatal
        try:
            apply(self.file_loader.load_home_config(profile=profile), "file")
        except ConfigFileError:
            pass

        # Step 3: project file; a broken base file is fatal, a missing profile is not
        try:
            apply(
                self.file_loader.load_project_config(
                    project_root=project_root, profile=profile
                ),
                "file",
            )
        except ConfigFileError:
            if profile is None:
                raise

        # Step 4: environment
        try:
            apply(self.env_loader.load_env_config(env_file=use_env_file), "env")
        except (ValueError, FileNotFoundError) as e:
            raise ValueError(f"Environment configuration error: {e}") from e

        # Step 5: programmatic overrides
        if programmatic:
            apply(programmatic, "programmatic")

        # Step 6: validate the merged result
        try:
            final = SyncSettings(**merged).to_dict()
        except Exception as e:
            raise ValueError(f"Configuration validation failed: {e}") from e

        return ResolvedConfig(
            **{field: final[field] for field in FIELD_ORDER},
            origin=tracker.get_source_map(),
        )

    def list_available_profiles(
        self, project_root: Path | None = None
    ) -> dict[str, list[str]]:
        return self.file_loader.list_available_profiles(project_root)
