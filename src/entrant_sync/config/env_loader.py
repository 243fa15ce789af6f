"""Environment variable configuration loading.

Reads ``ENTRANT_SYNC_*`` variables, optionally after loading a ``.env``
file, and validates each one against its `SyncSettings` field.
"""

import os
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from .schema import FIELD_ORDER, field_adapter

ENV_PREFIX = "ENTRANT_SYNC_"


def env_var_name(field: str) -> str:
    return f"{ENV_PREFIX}{field.upper()}"


class EnvironmentConfigLoader:
    """Loads configuration values that are explicitly set in the environment."""

    def load_env_config(self, env_file: str | Path | None = None) -> dict[str, Any]:
        """Load configuration from environment variables.

        Args:
            env_file: Optional ``.env`` file loaded into the environment first.
                Existing variables are never overwritten.

        Returns:
            Validated values for the fields actually present in the
            environment (defaults are not included).

        Raises:
            ValueError: If a variable holds an invalid value.
            FileNotFoundError: If `env_file` does not exist.
        """
        if env_file:
            self._load_env_file(env_file)

        env_values = {
            field: os.environ[env_var_name(field)]
            for field in FIELD_ORDER
            if env_var_name(field) in os.environ
        }
        if not env_values:
            return {}

        # Field by field: credentials may still come from another source
        validated: dict[str, Any] = {}
        errors: list[str] = []
        for field, raw in env_values.items():
            try:
                validated[field] = field_adapter(field).validate_python(raw)
            except ValidationError as e:
                errors.append(f"{env_var_name(field)}: {e.errors()[0]['msg']}")
        if errors:
            raise ValueError(
                "Invalid environment variable values: " + "; ".join(errors)
            )
        return validated

    def _load_env_file(self, env_file: str | Path) -> None:
        """Load ``KEY=VALUE`` lines from a ``.env`` file into ``os.environ``."""
        env_path = Path(env_file)
        if not env_path.exists():
            raise FileNotFoundError(f"Environment file not found: {env_path}")

        try:
            with env_path.open(encoding="utf-8") as f:
                for line_num, raw in enumerate(f, 1):
                    line = raw.strip()
                    if not line or line.startswith("#"):
                        continue
                    if "=" not in line:
                        raise ValueError(
                            f"Invalid format at line {line_num}: {line}. "
                            "Expected KEY=VALUE format."
                        )
                    key, value = (part.strip() for part in line.split("=", 1))
                    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
                        value = value[1:-1]
                    os.environ.setdefault(key, value)
        except OSError as e:
            raise ValueError(f"Failed to read environment file {env_path}: {e}") from e
