"""Compute orchestration: drain a pool, obtain a commitment, sign the tally.

The stub path derives ``job_commitment`` locally as the SHA-256 of the
canonical submission payload. The remote path submits that payload to a
:class:`~arxpool.executor.RemoteJobExecutor` and awaits its receipt. Both
paths end in the same checksummed, signed :class:`~arxpool.models.SignedResult`.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import Any

from .canonical import hash_canonical
from .config import ArxPoolConfig
from .crypto import Signer
from .errors import ComputeSubmissionFailedError, ComputeTimeoutError
from .executor import JobReceipt, RemoteJobExecutor
from .ledger import Clock, PoolLedger, utc_now
from .models import (
    ComputeOptions,
    Pool,
    SignedResult,
    TallyRecord,
    build_checksum_subset,
    format_timestamp,
    parse_input,
    validate_pool_id,
)

__all__ = ["ComputeOrchestrator", "build_tally", "stub_commitment"]

LOGGER = logging.getLogger(__name__)


def stub_commitment(payload: Mapping[str, Any]) -> str:
    """Return the content-addressed placeholder commitment for ``payload``."""

    return hash_canonical(payload)


def build_tally(
    *,
    pool_id: str,
    mxe_id: str,
    job_commitment: str,
    participant_count: int,
    computed_at: str,
    summary: dict[str, Any] | None = None,
) -> TallyRecord:
    """Assemble a :class:`TallyRecord` and compute its checksum.

    The checksum covers pool id, execution-context id, commitment,
    participant count and computation time; ``summary`` never affects it.
    """

    checksum = hash_canonical(
        build_checksum_subset(
            pool_id=pool_id,
            mxe_id=mxe_id,
            job_commitment=job_commitment,
            participant_count=participant_count,
            computed_at=computed_at,
        )
    )
    return TallyRecord(
        pool_id=pool_id,
        mxe_id=mxe_id,
        job_commitment=job_commitment,
        participant_count=participant_count,
        computed_at=computed_at,
        checksum=checksum,
        summary=summary,
    )


class ComputeOrchestrator:
    """Turn a pool's pending ciphertexts into a signed tally.

    Args:
        ledger: Ledger holding the pool and its ciphertext records.
        executor: Optional remote executor. ``None`` forces the stub path.
        clock: Time source for submission and computation timestamps.
    """

    def __init__(
        self,
        ledger: PoolLedger,
        *,
        executor: RemoteJobExecutor | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.ledger = ledger
        self.executor = executor
        self._clock: Clock = clock or utc_now

    async def compute(
        self,
        pool_id: str,
        config: ArxPoolConfig,
        options: ComputeOptions | Mapping[str, object] | None = None,
    ) -> SignedResult:
        """Run one compute cycle for ``pool_id``.

        Configuration and key material are resolved before the ledger is
        drained, so a misconfigured call never consumes ciphertexts.

        Raises:
            InvalidInputError: If ``pool_id`` or ``options`` is malformed.
            PoolNotFoundError: If the pool is unknown.
            ConfigMissingError: If ``mxe_id`` or ``attester_secret`` (or, on
                the remote path, ``arcium_api_key``) is absent.
            ConfigInvalidError: If the attester secret cannot be decoded.
            ComputeSubmissionFailedError: If the remote job fails.
            ComputeTimeoutError: If the remote job outlives
                ``config.compute_timeout_seconds``.
        """

        pool_id = validate_pool_id(pool_id)
        parsed = parse_input(ComputeOptions, options or {})
        pool = self.ledger.get_pool_snapshot(pool_id)

        config.require("mxe_id", "attester_secret")
        executor = None if parsed.dry_run else self.executor
        if executor is not None:
            config.require("arcium_api_key")
        signer = Signer.from_secret(config.attester_secret or "")
        mxe_id = config.mxe_id or ""

        records = self.ledger.drain_pool_ciphertexts(pool_id)
        payload: dict[str, Any] = {
            "poolId": pool.id,
            "mxeId": mxe_id,
            "mode": pool.mode,
            "participantCount": len(records),
            "metadata": parsed.metadata or {},
            "submittedAt": format_timestamp(self._clock()),
        }

        LOGGER.info(
            "Compute path selected",
            extra={
                "pool_id": pool.id,
                "path": "stub" if executor is None else "remote",
                "participants": len(records),
            },
        )

        participant_count = len(records)
        if executor is not None:
            receipt, job_id = await self._run_remote(
                executor, pool, payload, config, parsed
            )
            job_commitment = receipt.commitment or job_id
            if receipt.participant_count is not None:
                participant_count = receipt.participant_count
        else:
            job_commitment = stub_commitment(payload)

        tally = build_tally(
            pool_id=pool.id,
            mxe_id=mxe_id,
            job_commitment=job_commitment,
            participant_count=participant_count,
            computed_at=format_timestamp(self._clock()),
            summary=parsed.metadata,
        )
        result = tally.to_payload()
        envelope = signer.sign(result)

        LOGGER.info(
            "Tally signed",
            extra={
                "pool_id": pool.id,
                "participant_count": participant_count,
                "checksum": tally.checksum,
            },
        )
        return SignedResult(
            result=result, signature=envelope.signature, public_key=envelope.public_key
        )

    async def _run_remote(
        self,
        executor: RemoteJobExecutor,
        pool: Pool,
        payload: dict[str, Any],
        config: ArxPoolConfig,
        options: ComputeOptions,
    ) -> tuple[JobReceipt, str]:
        poll_interval_ms = options.poll_interval_ms or config.poll_interval_ms
        job_id: str | None = None
        try:
            handle = await executor.submit_job(
                payload, pool_id=pool.id, api_key=config.arcium_api_key
            )
            job_id = handle.job_id
            receipt = await asyncio.wait_for(
                executor.wait_for_job(job_id, poll_interval_ms=poll_interval_ms),
                timeout=config.compute_timeout_seconds,
            )
        except TimeoutError as exc:
            raise ComputeTimeoutError(
                "Remote compute job did not finish in time",
                details={
                    "pool_id": pool.id,
                    "job_id": job_id,
                    "timeout_seconds": config.compute_timeout_seconds,
                },
            ) from exc
        except ComputeSubmissionFailedError as exc:
            exc.details.setdefault("pool_id", pool.id)
            raise
        except Exception as exc:
            LOGGER.warning(
                "Remote compute job failed",
                extra={"pool_id": pool.id, "job_id": job_id},
                exc_info=exc,
            )
            raise ComputeSubmissionFailedError(
                "Failed to execute compute job",
                details={"pool_id": pool.id, "job_id": job_id},
            ) from exc
        return receipt, handle.job_id
