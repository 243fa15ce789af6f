"""Public entry points for configuration resolution."""

from pathlib import Path
from typing import Any

from .resolver import ConfigResolver
from .types import ResolvedConfig

_resolver = ConfigResolver()


def resolve_config(
    programmatic: dict[str, Any] | None = None,
    *,
    profile: str | None = None,
    use_env_file: str | Path | None = None,
    project_root: Path | None = None,
) -> ResolvedConfig:
    """Resolve configuration from all sources with proper precedence.

    Programmatic > Environment > Project file > Home file > Defaults

    Args:
        programmatic: Overrides with the highest precedence. Unknown keys are
            ignored.
        profile: Profile to load from configuration files. Falls back to
            ``ENTRANT_SYNC_PROFILE``.
        use_env_file: Optional ``.env`` file loaded before reading the
            environment.
        project_root: Directory to search for pyproject.toml.

    Returns:
        ResolvedConfig with merged values and source tracking for audit.

    Raises:
        ValueError: If validation fails.
        ConfigFileError: If configuration files exist but are malformed.

    Example:
        config = resolve_config({"rate_limit_per_second": 2})
        executor = create_executor(config.to_frozen())
    """
    return _resolver.resolve(
        programmatic=programmatic,
        profile=profile,
        use_env_file=use_env_file,
        project_root=project_root,
    )


def list_available_profiles(project_root: Path | None = None) -> dict[str, list[str]]:
    """List profiles found in the project and home configuration files."""
    return _resolver.list_available_profiles(project_root)
