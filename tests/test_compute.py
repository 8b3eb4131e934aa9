"""Tests for compute orchestration on the stub and remote paths."""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from datetime import datetime, timezone

import pytest

from arxpool.canonical import hash_canonical
from arxpool.compute import ComputeOrchestrator, build_tally
from arxpool.config import ArxPoolConfig, configure
from arxpool.crypto import derive_public_key
from arxpool.errors import (
    CollectorHttpError,
    ComputeSubmissionFailedError,
    ComputeTimeoutError,
    ConfigMissingError,
    InvalidInputError,
    PoolNotFoundError,
)
from arxpool.executor import JobHandle, JobReceipt
from arxpool.ledger import PoolLedger
from arxpool.verify import verify_result


class FakeExecutor:
    """In-process executor recording submissions."""

    def __init__(
        self,
        receipt: JobReceipt | None = None,
        *,
        job_id: str = "job-42",
        error: Exception | None = None,
        delay: float = 0.0,
    ) -> None:
        self.receipt = receipt or JobReceipt()
        self.job_id = job_id
        self.error = error
        self.delay = delay
        self.submitted: list[tuple[dict[str, object], str, str | None]] = []
        self.poll_intervals: list[int] = []

    async def submit_job(
        self, payload: Mapping[str, object], *, pool_id: str, api_key: str | None
    ) -> JobHandle:
        self.submitted.append((dict(payload), pool_id, api_key))
        return JobHandle(job_id=self.job_id)

    async def wait_for_job(self, job_id: str, *, poll_interval_ms: int) -> JobReceipt:
        self.poll_intervals.append(poll_interval_ms)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.receipt


def _ledger(clock, blob, *, joins: int = 2) -> PoolLedger:
    ledger = PoolLedger(clock)
    ledger.create_pool({"id": "pool-1", "mode": "tally"})
    for _ in range(joins):
        ledger.join_pool("pool-1", blob)
    return ledger


@pytest.fixture
def remote_config(config):
    return configure({"arcium_api_key": "key-123"}, base=config)


@pytest.mark.asyncio
async def test_stub_compute_signs_verifiable_tally(clock, blob, config, secret) -> None:
    ledger = _ledger(clock, blob)
    orchestrator = ComputeOrchestrator(ledger, clock=clock)

    signed = await orchestrator.compute("pool-1", config)
    tally = signed.tally()

    assert tally.participant_count == 2
    assert tally.mxe_id == "mxe-test"
    assert tally.computed_at == "2024-05-01T12:00:00.000Z"
    assert signed.public_key == derive_public_key(secret)
    assert verify_result(signed)

    expected_commitment = hash_canonical(
        {
            "poolId": "pool-1",
            "mxeId": "mxe-test",
            "mode": "tally",
            "participantCount": 2,
            "metadata": {},
            "submittedAt": "2024-05-01T12:00:00.000Z",
        }
    )
    assert tally.job_commitment == expected_commitment


@pytest.mark.asyncio
async def test_stub_compute_is_deterministic(clock, blob, config) -> None:
    first = await ComputeOrchestrator(_ledger(clock, blob), clock=clock).compute(
        "pool-1", config
    )
    second = await ComputeOrchestrator(_ledger(clock, blob), clock=clock).compute(
        "pool-1", config
    )
    assert first == second


@pytest.mark.asyncio
async def test_compute_drains_pool(clock, blob, config) -> None:
    ledger = _ledger(clock, blob)
    orchestrator = ComputeOrchestrator(ledger, clock=clock)

    await orchestrator.compute("pool-1", config)
    again = await orchestrator.compute("pool-1", config)

    assert again.tally().participant_count == 0


@pytest.mark.asyncio
async def test_expired_records_are_not_counted(clock, blob, config) -> None:
    ledger = PoolLedger(clock)
    ledger.create_pool({"id": "pool-1", "mode": "tally"})
    ledger.join_pool("pool-1", {**blob, "ttlSeconds": 1})
    clock.advance(2)

    signed = await ComputeOrchestrator(ledger, clock=clock).compute("pool-1", config)
    assert signed.tally().participant_count == 0


@pytest.mark.asyncio
async def test_checksum_excludes_summary(clock, blob, config) -> None:
    ledger = _ledger(clock, blob)
    signed = await ComputeOrchestrator(ledger, clock=clock).compute(
        "pool-1", config, {"metadata": {"round": 7}}
    )
    tally = signed.tally()

    assert tally.summary == {"round": 7}
    assert tally.checksum == hash_canonical(tally.checksum_subset())
    without_summary = build_tally(
        pool_id=tally.pool_id,
        mxe_id=tally.mxe_id,
        job_commitment=tally.job_commitment,
        participant_count=tally.participant_count,
        computed_at=tally.computed_at,
    )
    assert without_summary.checksum == tally.checksum


@pytest.mark.asyncio
async def test_missing_config_keeps_records_pending(clock, blob) -> None:
    ledger = _ledger(clock, blob)
    bare = ArxPoolConfig(mxe_id="mxe-test")

    with pytest.raises(ConfigMissingError) as excinfo:
        await ComputeOrchestrator(ledger, clock=clock).compute("pool-1", bare)

    assert excinfo.value.details["key"] == "attester_secret"
    assert ledger.pending_count("pool-1") == 2


@pytest.mark.asyncio
async def test_compute_unknown_pool(clock, config) -> None:
    with pytest.raises(PoolNotFoundError):
        await ComputeOrchestrator(PoolLedger(clock), clock=clock).compute("nope", config)


@pytest.mark.asyncio
async def test_remote_receipt_supplies_commitment(clock, blob, remote_config) -> None:
    executor = FakeExecutor(JobReceipt(commitment="commit-abc", participant_count=5))
    ledger = _ledger(clock, blob)

    signed = await ComputeOrchestrator(ledger, executor=executor, clock=clock).compute(
        "pool-1", remote_config
    )
    tally = signed.tally()

    assert tally.job_commitment == "commit-abc"
    assert tally.participant_count == 5
    payload, pool_id, api_key = executor.submitted[0]
    assert pool_id == "pool-1"
    assert api_key == "key-123"
    assert payload["participantCount"] == 2
    assert executor.poll_intervals == [2000]
    assert verify_result(signed)


@pytest.mark.asyncio
async def test_remote_commitment_falls_back_to_job_id(clock, blob, remote_config) -> None:
    executor = FakeExecutor(job_id="job-7")
    signed = await ComputeOrchestrator(
        _ledger(clock, blob), executor=executor, clock=clock
    ).compute("pool-1", remote_config, {"pollIntervalMs": 500})

    assert signed.tally().job_commitment == "job-7"
    assert signed.tally().participant_count == 2
    assert executor.poll_intervals == [500]


@pytest.mark.asyncio
async def test_remote_failure_is_wrapped(clock, blob, remote_config) -> None:
    cause = CollectorHttpError("boom")
    executor = FakeExecutor(error=cause)

    with pytest.raises(ComputeSubmissionFailedError) as excinfo:
        await ComputeOrchestrator(
            _ledger(clock, blob), executor=executor, clock=clock
        ).compute("pool-1", remote_config)

    assert excinfo.value.details == {"pool_id": "pool-1", "job_id": "job-42"}
    assert excinfo.value.__cause__ is cause


@pytest.mark.asyncio
async def test_remote_submission_error_gains_pool_id(clock, blob, remote_config) -> None:
    executor = FakeExecutor(error=ComputeSubmissionFailedError("job failed"))

    with pytest.raises(ComputeSubmissionFailedError) as excinfo:
        await ComputeOrchestrator(
            _ledger(clock, blob), executor=executor, clock=clock
        ).compute("pool-1", remote_config)

    assert excinfo.value.message == "job failed"
    assert excinfo.value.details["pool_id"] == "pool-1"


@pytest.mark.asyncio
async def test_remote_timeout(clock, blob, remote_config) -> None:
    executor = FakeExecutor(delay=1.0)
    quick = configure({"compute_timeout_seconds": 0.01}, base=remote_config)

    with pytest.raises(ComputeTimeoutError) as excinfo:
        await ComputeOrchestrator(
            _ledger(clock, blob), executor=executor, clock=clock
        ).compute("pool-1", quick)

    assert excinfo.value.code == "COMPUTE_TIMEOUT"
    assert excinfo.value.details["job_id"] == "job-42"


@pytest.mark.asyncio
async def test_dry_run_uses_stub_path(clock, blob, config) -> None:
    executor = FakeExecutor()
    signed = await ComputeOrchestrator(
        _ledger(clock, blob), executor=executor, clock=clock
    ).compute("pool-1", config, {"dryRun": True})

    assert executor.submitted == []
    assert signed.tally().participant_count == 2


@pytest.mark.asyncio
async def test_remote_requires_api_key(clock, blob, config) -> None:
    ledger = _ledger(clock, blob)
    executor = FakeExecutor()

    with pytest.raises(ConfigMissingError) as excinfo:
        await ComputeOrchestrator(ledger, executor=executor, clock=clock).compute(
            "pool-1", config
        )

    assert excinfo.value.details["key"] == "arcium_api_key"
    assert ledger.pending_count("pool-1") == 2


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "metadata",
    [{"at": datetime(2024, 5, 1, tzinfo=timezone.utc)}, {"score": float("nan")}],
)
async def test_unserializable_metadata_keeps_records_pending(
    clock, blob, config, metadata
) -> None:
    ledger = _ledger(clock, blob)

    with pytest.raises(InvalidInputError):
        await ComputeOrchestrator(ledger, clock=clock).compute(
            "pool-1", config, {"metadata": metadata, "dryRun": True}
        )

    assert ledger.pending_count("pool-1") == 2
