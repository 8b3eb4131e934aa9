"""Tests for environment settings and configuration merging."""

from __future__ import annotations

import pytest

from arxpool.config import (
    DEFAULT_NODE,
    ArxPoolConfig,
    config_from_settings,
    configure,
    require_config,
)
from arxpool.errors import ConfigInvalidError, ConfigMissingError
from arxpool.settings import ArxPoolSettings

_ENV_VARS = (
    "USE_STUB",
    "ARXPOOL_MODE",
    "ARXPOOL_NODE",
    "ARXPOOL_MXE_ID",
    "ARXPOOL_ATTESTER_SECRET",
    "ARXPOOL_ATTESTER_KEY",
    "ARCIUM_API_KEY",
    "ARXPOOL_POLL_INTERVAL_MS",
    "ARXPOOL_COMPUTE_TIMEOUT",
    "ARXPOOL_HTTP_TIMEOUT",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults_from_empty_environment() -> None:
    config = config_from_settings()

    assert config.mode == "stub"
    assert config.node == DEFAULT_NODE
    assert config.mxe_id is None
    assert config.poll_interval_ms == 2000
    assert config.compute_timeout_seconds == 300.0


def test_environment_values_are_read(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("USE_STUB", "false")
    monkeypatch.setenv("ARXPOOL_NODE", "https://node.example/")
    monkeypatch.setenv("ARXPOOL_MXE_ID", "mxe-env")
    monkeypatch.setenv("ARCIUM_API_KEY", "key-env")
    monkeypatch.setenv("ARXPOOL_POLL_INTERVAL_MS", "750")

    config = config_from_settings()

    assert config.mode == "testnet"
    assert config.node == "https://node.example"
    assert config.mxe_id == "mxe-env"
    assert config.arcium_api_key == "key-env"
    assert config.poll_interval_ms == 750


def test_explicit_mode_wins_over_use_stub(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("USE_STUB", "false")
    monkeypatch.setenv("ARXPOOL_MODE", "stub")
    assert config_from_settings().mode == "stub"


def test_legacy_attester_key_alias(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ARXPOOL_ATTESTER_KEY", "legacy-secret")
    assert config_from_settings().attester_secret == "legacy-secret"

    monkeypatch.setenv("ARXPOOL_ATTESTER_SECRET", "current-secret")
    assert config_from_settings().attester_secret == "current-secret"


def test_malformed_numeric_env_falls_back(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ARXPOOL_POLL_INTERVAL_MS", "fast")
    monkeypatch.setenv("ARXPOOL_COMPUTE_TIMEOUT", " 12.5 ")
    monkeypatch.setenv("ARXPOOL_HTTP_TIMEOUT", "")

    settings = ArxPoolSettings()

    assert settings.poll_interval_ms is None
    assert settings.compute_timeout_seconds == 12.5
    assert settings.http_timeout_seconds is None
    assert config_from_settings(settings).poll_interval_ms == 2000


def test_configure_merges_without_mutating_base() -> None:
    base = ArxPoolConfig(mxe_id="mxe-a")
    merged = configure({"mxe_id": "mxe-b", "attester_secret": None}, base=base)

    assert merged.mxe_id == "mxe-b"
    assert merged.attester_secret is None
    assert base.mxe_id == "mxe-a"


def test_configure_rejects_plain_http_node() -> None:
    with pytest.raises(ConfigInvalidError) as excinfo:
        configure({"node": "http://insecure.example"}, base=ArxPoolConfig())
    assert excinfo.value.details["fields"] == ["node"]


@pytest.mark.parametrize("interval", [100, 60_001])
def test_configure_rejects_out_of_range_poll_interval(interval: int) -> None:
    with pytest.raises(ConfigInvalidError):
        configure({"poll_interval_ms": interval}, base=ArxPoolConfig())


def test_configure_rejects_unknown_key() -> None:
    with pytest.raises(ConfigInvalidError):
        configure({"colour": "blue"}, base=ArxPoolConfig())


def test_require_config() -> None:
    config = ArxPoolConfig(mxe_id="mxe-a")

    assert require_config(config, ["mxe_id"]) is config
    with pytest.raises(ConfigMissingError) as excinfo:
        config.require("mxe_id", "attester_secret")
    assert excinfo.value.details == {"key": "attester_secret"}
    with pytest.raises(ConfigInvalidError):
        require_config(config, ["colour"])


def test_secret_is_hidden_from_repr() -> None:
    config = ArxPoolConfig(attester_secret="super-secret-value")
    assert "super-secret-value" not in repr(config)
