"""Core configuration data types.

Configuration is resolved once, frozen, and then handed to the executor:
`ResolvedConfig` keeps the origin of every value for auditing, `FrozenConfig`
is the immutable form the pipeline reads.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Literal, NamedTuple

from .schema import FIELD_ORDER, SENSITIVE_FIELDS

# --- Source Tracking Types ---

ConfigOrigin = Literal["programmatic", "env", "file", "default"]
SourceMap = Mapping[str, ConfigOrigin]


def _redacted(name: str, value: object) -> object:
    if name in SENSITIVE_FIELDS:
        return "[REDACTED]" if value else None
    return value


class ResolvedConfig(NamedTuple):
    """Configuration after merging every source, before freezing."""

    shop_name: str | None
    api_key: str | None
    password: str | None
    api_version: str
    use_real_api: bool
    rate_limit_per_second: float
    burst_capacity: int
    call_timeout_seconds: float
    acquire_timeout_seconds: float | None
    customer_tags: str
    output_dir: str
    invoice_message: str
    variant_map: Mapping[str, str]

    # Audit metadata - where each field value came from
    origin: SourceMap

    def __str__(self) -> str:
        """String representation with redacted credentials for safe logging."""
        parts = ", ".join(
            f"{name}={_redacted(name, getattr(self, name))!r}" for name in FIELD_ORDER
        )
        return f"ResolvedConfig({parts}, origin={dict(self.origin)!r})"

    def __repr__(self) -> str:
        return self.__str__()

    def to_frozen(self) -> "FrozenConfig":
        """Convert to the immutable configuration used by the pipeline."""
        values = {name: getattr(self, name) for name in FIELD_ORDER}
        values["variant_map"] = dict(self.variant_map)
        return FrozenConfig(**values)

    def with_overrides(self, **overrides: object) -> "ResolvedConfig":
        """Return a copy with programmatic overrides applied.

        Unknown fields are ignored; overridden fields are marked programmatic.
        """
        new_values = self._asdict()
        new_origin = dict(self.origin)
        for name, value in overrides.items():
            if name in FIELD_ORDER:
                new_values[name] = value
                new_origin[name] = "programmatic"
        new_values["origin"] = new_origin
        return ResolvedConfig(**new_values)

    def audit(self) -> str:
        """Redacted report of where each field came from."""
        lines = []
        for name in FIELD_ORDER:
            if name not in self.origin:
                continue
            origin = self.origin[name]
            value = getattr(self, name)
            if name in SENSITIVE_FIELDS:
                shown = "<redacted>" if value else "None"
            elif origin == "env":
                shown = f"ENTRANT_SYNC_{name.upper()}={value}"
            else:
                shown = str(value)
            lines.append(f"{name}: {origin}:{shown}")
        return "\n".join(lines)


@dataclass(frozen=True)
class FrozenConfig:
    """Immutable configuration handed to the executor and adapters."""

    shop_name: str | None = None
    api_key: str | None = None
    password: str | None = None
    api_version: str = "2024-01"
    use_real_api: bool = False
    rate_limit_per_second: float = 4.0
    burst_capacity: int = 4
    call_timeout_seconds: float = 30.0
    acquire_timeout_seconds: float | None = None
    customer_tags: str = ""
    output_dir: str = "output"
    invoice_message: str = ""
    variant_map: Mapping[str, str] = field(default_factory=dict)

    def __str__(self) -> str:
        """String representation with redacted credentials for safe logging."""
        parts = ", ".join(
            f"{name}={_redacted(name, getattr(self, name))!r}" for name in FIELD_ORDER
        )
        return f"FrozenConfig({parts})"

    def __repr__(self) -> str:
        return self.__str__()
