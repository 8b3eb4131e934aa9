"""
In-memory pool registry and TTL-bounded ciphertext ledger.

Each pool owns one ledger slot: an ordered list of ciphertext records. Expired
records are pruned lazily on every join, drain and count; there is no
background eviction. ``drain_pool_ciphertexts`` is the single point of
consumption: it returns the surviving records and leaves the slot empty.

Every read-modify-write on a slot runs under that pool's lock, so a join can
never land between a drain's read and its clear.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from datetime import datetime, timedelta, timezone
from threading import Lock

from .errors import PoolAlreadyExistsError, PoolNotFoundError
from .models import (
    DEFAULT_TTL_SECONDS,
    CiphertextInput,
    CiphertextRecord,
    Pool,
    PoolInput,
    parse_input,
    validate_pool_id,
)

__all__ = ["Clock", "PoolLedger", "utc_now"]

LOGGER = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""

    return datetime.now(timezone.utc)


class PoolLedger:
    """Registry of pools and their pending ciphertext records.

    Args:
        clock: Zero-argument callable returning an aware ``datetime``. "Now"
            is sampled once per operation.
        default_ttl_seconds: TTL applied when neither the record nor its pool
            specifies one.
    """

    def __init__(
        self,
        clock: Clock | None = None,
        *,
        default_ttl_seconds: int = DEFAULT_TTL_SECONDS,
    ) -> None:
        self._clock: Clock = clock or utc_now
        self._default_ttl_seconds = default_ttl_seconds
        self._pools: dict[str, Pool] = {}
        self._records: dict[str, list[CiphertextRecord]] = {}
        self._locks: dict[str, Lock] = {}
        self._registry_lock = Lock()

    def create_pool(
        self, pool_input: PoolInput | Mapping[str, object], *, replace: bool = False
    ) -> Pool:
        """Register a pool, stamping ``created_at`` and the default TTL.

        Args:
            pool_input: Pool description, as a model or mapping.
            replace: Reset an existing pool with the same id (clearing its
                ledger slot) instead of failing.

        Returns:
            The stored :class:`Pool`.

        Raises:
            InvalidInputError: If ``pool_input`` fails validation.
            PoolAlreadyExistsError: If the id is taken and ``replace`` is false.
        """

        parsed = parse_input(PoolInput, pool_input)
        pool = Pool(
            **parsed.model_dump(exclude={"ttl_seconds"}),
            ttl_seconds=parsed.ttl_seconds or self._default_ttl_seconds,
            created_at=self._clock(),
        )
        return self._store_pool(pool, replace=replace)

    def register_pool(self, pool: Pool, *, replace: bool = False) -> Pool:
        """Store an already-stamped pool, e.g. one returned by a collector node."""

        if pool.ttl_seconds is None:
            pool = pool.model_copy(update={"ttl_seconds": self._default_ttl_seconds})
        return self._store_pool(pool, replace=replace)

    def _store_pool(self, pool: Pool, *, replace: bool) -> Pool:
        with self._registry_lock:
            if pool.id in self._pools and not replace:
                raise PoolAlreadyExistsError(
                    f"Pool {pool.id} already exists", details={"pool_id": pool.id}
                )
            lock = self._locks.setdefault(pool.id, Lock())
        with lock:
            self._pools[pool.id] = pool
            self._records[pool.id] = []
        LOGGER.debug(
            "Pool registered",
            extra={"pool_id": pool.id, "mode": pool.mode, "replaced": replace},
        )
        return pool

    def has_pool(self, pool_id: str) -> bool:
        return pool_id in self._pools

    def get_pool_snapshot(self, pool_id: str) -> Pool:
        """Return the stored pool.

        Raises:
            PoolNotFoundError: If ``pool_id`` is unknown.
        """

        pool_id = validate_pool_id(pool_id)
        pool = self._pools.get(pool_id)
        if pool is None:
            raise PoolNotFoundError(
                f"Pool {pool_id} not found", details={"pool_id": pool_id}
            )
        return pool

    def join_pool(
        self, pool_id: str, record: CiphertextInput | Mapping[str, object]
    ) -> CiphertextRecord:
        """Append a ciphertext record to the pool's ledger slot.

        The TTL falls back from the record to the pool, then to the ledger
        default. ``expires_at`` is fixed at insertion time. Expired records are
        pruned before the new one is appended.

        Raises:
            InvalidInputError: If ``pool_id`` or ``record`` fails validation;
                the ledger is left untouched.
            PoolNotFoundError: If the pool is unknown.
        """

        pool_id = validate_pool_id(pool_id)
        parsed = parse_input(CiphertextInput, record)
        pool = self.get_pool_snapshot(pool_id)

        with self._lock_for(pool_id):
            now = self._clock()
            ttl_seconds = (
                parsed.ttl_seconds or pool.ttl_seconds or self._default_ttl_seconds
            )
            stored = CiphertextRecord(
                **parsed.model_dump(exclude={"timestamp", "ttl_seconds"}),
                timestamp=parsed.timestamp or now,
                ttl_seconds=ttl_seconds,
                expires_at=now + timedelta(seconds=ttl_seconds),
            )
            retained = self._prune(pool_id, now)
            retained.append(stored)
            pending = len(retained)

        LOGGER.debug(
            "Ciphertext joined",
            extra={"pool_id": pool_id, "ttl_seconds": ttl_seconds, "pending": pending},
        )
        return stored

    def drain_pool_ciphertexts(self, pool_id: str) -> list[CiphertextRecord]:
        """Return the unexpired records for ``pool_id`` and clear its slot.

        Raises:
            PoolNotFoundError: If the pool is unknown.
        """

        pool_id = validate_pool_id(pool_id)
        self.get_pool_snapshot(pool_id)
        with self._lock_for(pool_id):
            retained = self._prune(pool_id, self._clock())
            self._records[pool_id] = []

        LOGGER.debug(
            "Pool ledger drained", extra={"pool_id": pool_id, "drained": len(retained)}
        )
        return retained

    def pending_count(self, pool_id: str) -> int:
        """Return the number of unexpired records without consuming them."""

        pool_id = validate_pool_id(pool_id)
        self.get_pool_snapshot(pool_id)
        with self._lock_for(pool_id):
            return len(self._prune(pool_id, self._clock()))

    def _lock_for(self, pool_id: str) -> Lock:
        with self._registry_lock:
            return self._locks.setdefault(pool_id, Lock())

    def _prune(self, pool_id: str, now: datetime) -> list[CiphertextRecord]:
        """Drop records expiring at or before ``now``. Caller holds the pool lock."""

        existing = self._records.get(pool_id, [])
        retained = [item for item in existing if item.expires_at > now]
        dropped = len(existing) - len(retained)
        if dropped:
            LOGGER.debug(
                "Pruned expired ciphertexts",
                extra={"pool_id": pool_id, "dropped": dropped},
            )
        self._records[pool_id] = retained
        return retained
