"""Environment-backed settings primitives for :mod:`arxpool`."""

from __future__ import annotations

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

__all__ = ["ArxPoolSettings", "get_settings"]


class ArxPoolSettings(BaseSettings):
    """Expose environment-derived configuration knobs for ArxPool.

    All environment lookups go through this class. Attributes default to
    ``None`` when the variable is absent; :func:`arxpool.config.configure`
    applies the package defaults afterwards.

    Attributes:
        use_stub: Raw ``USE_STUB`` flag; ``"false"`` selects testnet mode.
        mode: Explicit execution mode override (``stub`` or ``testnet``).
        node: Base HTTPS URL of the collector node.
        mxe_id: Execution-context identifier stamped on tallies.
        attester_secret: Signing secret material.
        attester_key: Legacy alias for ``attester_secret``.
        arcium_api_key: API key forwarded to the remote job executor.
        poll_interval_ms: Remote job poll interval in milliseconds.
        compute_timeout_seconds: Ceiling on the remote job wait.
        http_timeout_seconds: Per-request HTTP timeout.
    """

    use_stub: str | None = Field(default=None, alias="USE_STUB")
    mode: str | None = Field(default=None, alias="ARXPOOL_MODE")
    node: str | None = Field(default=None, alias="ARXPOOL_NODE")
    mxe_id: str | None = Field(default=None, alias="ARXPOOL_MXE_ID")
    attester_secret: str | None = Field(default=None, alias="ARXPOOL_ATTESTER_SECRET")
    attester_key: str | None = Field(default=None, alias="ARXPOOL_ATTESTER_KEY")
    arcium_api_key: str | None = Field(default=None, alias="ARCIUM_API_KEY")
    poll_interval_ms: int | None = Field(default=None, alias="ARXPOOL_POLL_INTERVAL_MS")
    compute_timeout_seconds: float | None = Field(
        default=None, alias="ARXPOOL_COMPUTE_TIMEOUT"
    )
    http_timeout_seconds: float | None = Field(
        default=None, alias="ARXPOOL_HTTP_TIMEOUT"
    )

    model_config = SettingsConfigDict(env_file=None, extra="ignore")

    @field_validator(
        "compute_timeout_seconds", "http_timeout_seconds", mode="before"
    )
    @classmethod
    def _parse_optional_float(cls, value: object) -> float | None:
        """Parse optional float fields while tolerating malformed input."""

        if value is None:
            return None
        if isinstance(value, (int, float)):
            return float(value)
        if isinstance(value, str):
            try:
                return float(value.strip())
            except ValueError:
                return None
        return None

    @field_validator("poll_interval_ms", mode="before")
    @classmethod
    def _parse_optional_int(cls, value: object) -> int | None:
        """Parse optional integer fields while tolerating malformed input."""

        if value is None:
            return None
        if isinstance(value, int):
            return value
        if isinstance(value, float) and value.is_integer():
            return int(value)
        if isinstance(value, str):
            try:
                return int(value.strip())
            except ValueError:
                return None
        return None

    @field_validator(
        "mode", "node", "mxe_id", "attester_secret", "attester_key", "arcium_api_key",
        mode="before",
    )
    @classmethod
    def _blank_to_none(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def effective_mode(self) -> str:
        """Return the configured mode considering ``USE_STUB``."""

        if self.mode:
            return self.mode
        if self.use_stub is not None and self.use_stub.strip().lower() == "false":
            return "testnet"
        return "stub"

    @property
    def effective_attester_secret(self) -> str | None:
        """Return the signing secret considering the legacy alias."""

        return self.attester_secret or self.attester_key


def get_settings() -> ArxPoolSettings:
    """Return an :class:`ArxPoolSettings` instance parsed from the environment."""

    return ArxPoolSettings()
