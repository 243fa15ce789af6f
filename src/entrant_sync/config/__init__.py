"""Configuration management for entrant sync.

Resolve once, freeze, then flow:

- `resolve_config()` merges programmatic, environment, file and default
  values into a `ResolvedConfig` that remembers each value's origin.
- `ResolvedConfig.to_frozen()` produces the immutable `FrozenConfig` handed
  to the executor.
"""

from .api import list_available_profiles, resolve_config
from .audit import SourceTracker, generate_telemetry_summary
from .file_loader import ConfigFileError, FileConfigLoader
from .introspection import get_config_info, get_config_warnings, print_config_debug
from .resolver import ConfigResolver
from .schema import DEFAULT_INVOICE_MESSAGE, SyncSettings
from .types import ConfigOrigin, FrozenConfig, ResolvedConfig, SourceMap

__all__ = [
    "DEFAULT_INVOICE_MESSAGE",
    "ConfigFileError",
    "ConfigOrigin",
    "ConfigResolver",
    "FileConfigLoader",
    "FrozenConfig",
    "ResolvedConfig",
    "SourceMap",
    "SourceTracker",
    "SyncSettings",
    "generate_telemetry_summary",
    "get_config_info",
    "get_config_warnings",
    "list_available_profiles",
    "print_config_debug",
    "resolve_config",
]
