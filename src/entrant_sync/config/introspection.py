"""Configuration introspection for debugging and validation."""

from typing import Any

from .api import resolve_config
from .audit import generate_telemetry_summary
from .schema import SENSITIVE_FIELDS
from .types import ResolvedConfig

# ruff: noqa: T201


def get_config_info(
    *, profile: str | None = None, overrides: dict[str, Any] | None = None
) -> dict[str, Any]:
    """Structured, redacted configuration details for programmatic use."""
    try:
        resolved = resolve_config(overrides, profile=profile)
    except Exception as e:
        return {
            "status": "invalid",
            "error": str(e),
            "config": None,
            "sources": {},
            "warnings": [],
        }

    config = {
        name: value
        for name, value in resolved._asdict().items()
        if name != "origin" and name not in SENSITIVE_FIELDS
    }
    config["variant_map"] = dict(resolved.variant_map)
    for name in sorted(SENSITIVE_FIELDS):
        config[f"has_{name}"] = getattr(resolved, name) is not None
    return {
        "status": "valid",
        "config": config,
        "sources": dict(resolved.origin),
        "source_counts": generate_telemetry_summary(resolved.origin),
        "warnings": get_config_warnings(resolved),
    }


def print_config_debug(*, profile: str | None = None, show_sources: bool = True) -> None:
    """Print the effective configuration, its sources and warnings."""
    resolved = resolve_config(profile=profile)
    print("=== Effective Configuration ===")
    print(str(resolved.to_frozen()))
    if show_sources:
        print("\n=== Configuration Sources ===")
        print(resolved.audit())
    warnings = get_config_warnings(resolved)
    print("\n=== Validation Results ===")
    print("Configuration is valid")
    for warning in warnings:
        print(f"  - {warning}")


def get_config_warnings(resolved: ResolvedConfig) -> list[str]:
    """Non-fatal configuration issues worth surfacing."""
    warnings = []
    if not resolved.use_real_api:
        warnings.append("use_real_api is off - runs use the in-memory shop")
    if not resolved.variant_map:
        warnings.append("No variant_map configured - draft orders will all fail")
    if resolved.burst_capacity > resolved.rate_limit_per_second * 10:
        warnings.append(
            "burst_capacity is far above the sustained rate - bursts may trip the remote limit"
        )
    return warnings
