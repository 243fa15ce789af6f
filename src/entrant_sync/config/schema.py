"""Configuration schema and validation using Pydantic.

Validates and coerces configuration values coming from the environment,
TOML files and programmatic overrides into typed settings with defaults.
"""

import json
from typing import Annotated, Any

from pydantic import BeforeValidator, Field, TypeAdapter, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_INVOICE_MESSAGE = (
    "Congratulations, you have been selected to purchase this release. "
    "You have 24 hours to complete your purchase; links expire after 24 hours."
)

# Display/audit order; also the set of known configuration fields.
FIELD_ORDER: tuple[str, ...] = (
    "shop_name",
    "api_key",
    "password",
    "api_version",
    "use_real_api",
    "rate_limit_per_second",
    "burst_capacity",
    "call_timeout_seconds",
    "acquire_timeout_seconds",
    "customer_tags",
    "output_dir",
    "invoice_message",
    "variant_map",
)

SENSITIVE_FIELDS = frozenset({"api_key", "password"})


def parse_variant_map(v: Any) -> Any:
    """Accept a JSON object string and stringify keys/values."""
    if isinstance(v, str):
        try:
            v = json.loads(v) if v.strip() else {}
        except json.JSONDecodeError as e:
            raise ValueError(f"variant_map must be a JSON object: {e}") from e
    if isinstance(v, dict):
        return {str(k).strip(): str(val).strip() for k, val in v.items()}
    return v


VariantMap = Annotated[dict[str, str], BeforeValidator(parse_variant_map)]


class SyncSettings(BaseSettings):
    """Pydantic settings schema for entrant sync configuration.

    Environment variables use the ``ENTRANT_SYNC_`` prefix.
    """

    model_config = SettingsConfigDict(
        env_prefix="ENTRANT_SYNC_",
        env_file=None,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --- Shop credentials ---

    shop_name: str | None = Field(
        default=None, description="Store handle (<shop_name>.myshopify.com)"
    )
    api_key: str | None = Field(default=None, description="Private app API key")
    password: str | None = Field(default=None, description="Private app password")
    api_version: str = Field(
        default="2024-01", description="Admin API version", min_length=1
    )
    use_real_api: bool = Field(
        default=False,
        description="Talk to the real shop instead of the in-memory fake",
    )

    # --- Pacing ---

    rate_limit_per_second: float = Field(
        default=4.0, description="Sustained remote calls per second", gt=0
    )
    burst_capacity: int = Field(
        default=4, description="Token bucket capacity (burst size)", ge=1
    )
    call_timeout_seconds: float = Field(
        default=30.0, description="Timeout for each remote call", gt=0
    )
    acquire_timeout_seconds: float | None = Field(
        default=None, description="Optional timeout for each token wait", gt=0
    )

    # --- Run behaviour ---

    customer_tags: str = Field(
        default="", description="Tags attached to customers created by the sync"
    )
    output_dir: str = Field(
        default="output", description="Directory receiving result CSV files"
    )
    invoice_message: str = Field(
        default=DEFAULT_INVOICE_MESSAGE, description="Custom message sent with invoices"
    )
    variant_map: VariantMap = Field(
        default_factory=dict, description="Variant selector (size) -> variant id"
    )

    # --- Validation Rules ---

    @model_validator(mode="after")
    def validate_credentials_requirement(self) -> "SyncSettings":
        """Ensure shop credentials are present when use_real_api is True."""
        if self.use_real_api and not (self.shop_name and self.api_key and self.password):
            raise ValueError(
                "shop_name, api_key and password are required when use_real_api=True. "
                "Set ENTRANT_SYNC_SHOP_NAME, ENTRANT_SYNC_API_KEY and "
                "ENTRANT_SYNC_PASSWORD, provide them in a config file, "
                "or pass them programmatically."
            )
        return self

    def to_dict(self) -> dict[str, Any]:
        """Plain dictionary of field values in display order."""
        return {name: getattr(self, name) for name in FIELD_ORDER}


def field_adapter(name: str) -> TypeAdapter[Any]:
    """Validator for a single settings field, constraints included.

    Model-level rules (such as the credential requirement) are not applied,
    so one source can be checked before the others are merged in.
    """
    info = SyncSettings.model_fields[name]
    if info.metadata:
        return TypeAdapter(Annotated[info.annotation, *info.metadata])
    return TypeAdapter(info.annotation)
