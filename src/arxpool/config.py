"""Immutable client configuration and call-site merging.

Configuration is a value, never ambient state: :func:`configure` merges
overrides over a base (the environment by default) and returns a new
:class:`ArxPoolConfig`.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import ConfigInvalidError, ConfigMissingError
from .models import MAX_POLL_INTERVAL_MS, MIN_POLL_INTERVAL_MS
from .settings import ArxPoolSettings, get_settings

__all__ = [
    "DEFAULT_NODE",
    "ArxPoolConfig",
    "Mode",
    "configure",
    "config_from_settings",
    "require_config",
]

DEFAULT_NODE = "https://testnet.arx.arcium.com"
DEFAULT_POLL_INTERVAL_MS = 2000
DEFAULT_COMPUTE_TIMEOUT_SECONDS = 300.0
DEFAULT_HTTP_TIMEOUT_SECONDS = 10.0

Mode = Literal["stub", "testnet"]


class ArxPoolConfig(BaseModel):
    """Validated, immutable configuration for a pool client."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    mode: Mode = "stub"
    node: str = DEFAULT_NODE
    mxe_id: str | None = Field(default=None, min_length=1)
    attester_secret: str | None = Field(default=None, min_length=1, repr=False)
    arcium_api_key: str | None = Field(default=None, min_length=1, repr=False)
    poll_interval_ms: Annotated[
        int, Field(ge=MIN_POLL_INTERVAL_MS, le=MAX_POLL_INTERVAL_MS)
    ] = DEFAULT_POLL_INTERVAL_MS
    compute_timeout_seconds: Annotated[float, Field(gt=0)] = (
        DEFAULT_COMPUTE_TIMEOUT_SECONDS
    )
    http_timeout_seconds: Annotated[float, Field(gt=0)] = DEFAULT_HTTP_TIMEOUT_SECONDS

    @field_validator("node")
    @classmethod
    def _require_https(cls, value: str) -> str:
        if not value.startswith("https://") or len(value) <= len("https://"):
            raise ValueError("Arcium node must use HTTPS")
        return value.rstrip("/")

    def require(self, *keys: str) -> ArxPoolConfig:
        """Return ``self`` when every key in ``keys`` is set.

        Raises:
            ConfigMissingError: Naming the first key that is absent.
        """

        return require_config(self, keys)


def config_from_settings(settings: ArxPoolSettings | None = None) -> ArxPoolConfig:
    """Build a configuration from environment settings alone."""

    return configure({}, settings=settings)


def configure(
    overrides: Mapping[str, object] | None = None,
    *,
    base: ArxPoolConfig | None = None,
    settings: ArxPoolSettings | None = None,
) -> ArxPoolConfig:
    """Merge ``overrides`` over ``base`` and return the new configuration.

    Args:
        overrides: Partial configuration; ``None`` values are ignored.
        base: Configuration to merge over. When omitted the environment
            (via :class:`ArxPoolSettings`) provides the base.
        settings: Optional pre-instantiated settings used when ``base`` is
            omitted.

    Returns:
        A new, validated :class:`ArxPoolConfig`.

    Raises:
        ConfigInvalidError: If a key is unknown or a value fails validation.
    """

    merged: dict[str, object] = (
        base.model_dump() if base is not None else _settings_values(settings)
    )
    for key, value in (overrides or {}).items():
        if value is not None:
            merged[key] = value

    try:
        return ArxPoolConfig.model_validate(merged)
    except ValidationError as exc:
        fields = sorted({str(err["loc"][0]) for err in exc.errors() if err["loc"]})
        raise ConfigInvalidError(
            "Invalid ArxPool configuration", details={"fields": fields}
        ) from exc


def require_config(config: ArxPoolConfig, required_keys: Iterable[str]) -> ArxPoolConfig:
    """Fail with :class:`ConfigMissingError` if any ``required_keys`` is unset."""

    for key in required_keys:
        if key not in ArxPoolConfig.model_fields:
            raise ConfigInvalidError(
                f"Unknown config key: {key}", details={"key": key}
            )
        if not getattr(config, key):
            raise ConfigMissingError(
                f"Missing required config value: {key}", details={"key": key}
            )
    return config


def _settings_values(settings: ArxPoolSettings | None) -> dict[str, object]:
    env = settings or get_settings()
    values: dict[str, object] = {
        "mode": env.effective_mode,
        "node": env.node,
        "mxe_id": env.mxe_id,
        "attester_secret": env.effective_attester_secret,
        "arcium_api_key": env.arcium_api_key,
        "poll_interval_ms": env.poll_interval_ms,
        "compute_timeout_seconds": env.compute_timeout_seconds,
        "http_timeout_seconds": env.http_timeout_seconds,
    }
    return {key: value for key, value in values.items() if value is not None}
