"""Session object exposing the pool pipeline's public operations.

An :class:`ArxPoolClient` owns its configuration value, its ledger and its
optional collaborators; there is no module-level state. In ``testnet`` mode
pool creation and joins are forwarded to the collector node and mirrored into
the local ledger, so the same compute path serves both modes.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping

from .compute import ComputeOrchestrator
from .config import ArxPoolConfig, config_from_settings, configure, require_config
from .errors import PoolAlreadyExistsError
from .executor import HttpJobExecutor, RemoteJobExecutor
from .ledger import Clock, PoolLedger, utc_now
from .models import (
    CiphertextInput,
    CiphertextRecord,
    ComputeOptions,
    Pool,
    PoolInput,
    SignedResult,
    parse_input,
    validate_pool_id,
)
from .settings import ArxPoolSettings
from .transport import HttpCollector
from .verify import ResultVerifier

__all__ = ["ArxPoolClient"]

LOGGER = logging.getLogger(__name__)


def _pool_field_aliases() -> dict[str, str]:
    """Map each Pool field name and alias to its wire alias."""

    aliases: dict[str, str] = {}
    for name, info in Pool.model_fields.items():
        alias = info.alias or name
        aliases[name] = alias
        aliases[alias] = alias
    return aliases


_POOL_ALIASES = _pool_field_aliases()


class ArxPoolClient:
    """Create pools, collect ciphertexts, compute and verify signed tallies.

    Args:
        config: Initial configuration. When omitted it is read from the
            environment via :class:`~arxpool.settings.ArxPoolSettings`.
        ledger: Ledger to use; a fresh in-memory ledger by default.
        executor: Remote job executor. When omitted and the client runs in
            ``testnet`` mode with an API key, an :class:`HttpJobExecutor`
            targeting the configured node is used.
        collector: HTTP collector for ``testnet`` mode; built from the config
            when omitted.
        clock: Time source shared by the ledger and the orchestrator.
        settings: Pre-instantiated environment settings.
    """

    def __init__(
        self,
        config: ArxPoolConfig | None = None,
        *,
        ledger: PoolLedger | None = None,
        executor: RemoteJobExecutor | None = None,
        collector: HttpCollector | None = None,
        clock: Clock | None = None,
        settings: ArxPoolSettings | None = None,
    ) -> None:
        self._config = (
            config if config is not None else config_from_settings(settings)
        )
        self._clock: Clock = clock or utc_now
        self.ledger = ledger or PoolLedger(self._clock)
        self._executor = executor
        self._collector = collector
        self.verifier = ResultVerifier()

    @property
    def config(self) -> ArxPoolConfig:
        return self._config

    def configure(
        self, overrides: Mapping[str, object] | None = None, **kwargs: object
    ) -> ArxPoolConfig:
        """Merge overrides into the client's configuration and return it.

        The previous configuration value is left untouched; the client simply
        holds the newly merged value afterwards.
        """

        merged = configure({**(overrides or {}), **kwargs}, base=self._config)
        self._config = merged
        return merged

    def get_config(self, required_keys: Iterable[str] = ()) -> ArxPoolConfig:
        """Return the configuration, failing if any ``required_keys`` is unset."""

        return require_config(self._config, required_keys)

    def create_pool(
        self, pool_input: PoolInput | Mapping[str, object], *, replace: bool = False
    ) -> Pool:
        """Register a pool locally or, in ``testnet`` mode, on the collector node."""

        if self._config.mode == "stub":
            return self.ledger.create_pool(pool_input, replace=replace)

        parsed = parse_input(PoolInput, pool_input)
        if not replace and self.ledger.has_pool(parsed.id):
            raise PoolAlreadyExistsError(
                f"Pool {parsed.id} already exists", details={"pool_id": parsed.id}
            )

        body = self._get_collector().create_pool(parsed.to_payload())
        fields: dict[str, object] = {
            **parsed.model_dump(by_alias=True),
            "createdAt": self._clock(),
        }
        for key, value in (body or {}).items():
            if key in _POOL_ALIASES and value is not None:
                fields[_POOL_ALIASES[key]] = value
        pool = parse_input(Pool, fields)
        return self.ledger.register_pool(pool, replace=replace)

    def join_pool(
        self, pool_id: str, record: CiphertextInput | Mapping[str, object]
    ) -> CiphertextRecord:
        """Submit a ciphertext to a pool."""

        pool_id = validate_pool_id(pool_id)
        parsed = parse_input(CiphertextInput, record)
        if self._config.mode != "stub":
            self.ledger.get_pool_snapshot(pool_id)
            self._get_collector().join_pool(pool_id, parsed.to_payload())
        return self.ledger.join_pool(pool_id, parsed)

    def get_pool_snapshot(self, pool_id: str) -> Pool:
        return self.ledger.get_pool_snapshot(pool_id)

    async def compute_pool(
        self,
        pool_id: str,
        options: ComputeOptions | Mapping[str, object] | None = None,
    ) -> SignedResult:
        """Drain ``pool_id`` and return its signed tally."""

        orchestrator = ComputeOrchestrator(
            self.ledger, executor=self._resolve_executor(), clock=self._clock
        )
        return await orchestrator.compute(pool_id, self._config, options)

    def verify_result(self, signed: SignedResult | Mapping[str, object]) -> bool:
        return self.verifier.verify(signed)

    def _resolve_executor(self) -> RemoteJobExecutor | None:
        if self._executor is not None:
            return self._executor
        if self._config.mode == "testnet" and self._config.arcium_api_key:
            return HttpJobExecutor(
                self._config.node,
                timeout_seconds=self._config.http_timeout_seconds,
                api_key=self._config.arcium_api_key,
            )
        return None

    def _get_collector(self) -> HttpCollector:
        if self._collector is not None:
            return self._collector
        return HttpCollector(
            self._config.node,
            timeout_seconds=self._config.http_timeout_seconds,
            api_key=self._config.arcium_api_key,
        )
