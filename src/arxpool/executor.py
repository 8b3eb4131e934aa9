"""Remote job executor interface and its HTTP implementation.

The orchestrator receives an executor explicitly; ``None`` means no remote
executor is configured and forces the local stub path.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Protocol, runtime_checkable
from urllib.parse import quote

import httpx

from .errors import CollectorHttpError, ComputeSubmissionFailedError
from .transport import POOLS_PATH, decode_json_body

__all__ = [
    "HttpJobExecutor",
    "JobHandle",
    "JobReceipt",
    "RemoteJobExecutor",
]

LOGGER = logging.getLogger(__name__)

JOBS_PATH = "/api/v1/jobs"
_DONE_STATUSES = frozenset({"completed", "succeeded", "done"})
_FAILED_STATUSES = frozenset({"failed", "error", "cancelled"})


@dataclass(frozen=True, slots=True)
class JobHandle:
    """Identifier returned by a remote job submission."""

    job_id: str


@dataclass(frozen=True, slots=True)
class JobReceipt:
    """Completion receipt for a remote job."""

    commitment: str | None = None
    participant_count: int | None = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, object]) -> JobReceipt:
        """Parse a receipt, accepting ``job_commit``/``jobCommit`` spellings."""

        commitment = None
        for key in ("job_commit", "jobCommit", "commitment"):
            value = payload.get(key)
            if isinstance(value, str) and value:
                commitment = value
                break

        participants: int | None = None
        counts = payload.get("counts")
        raw_count = counts.get("participants") if isinstance(counts, Mapping) else None
        if raw_count is None:
            raw_count = payload.get("participantCount")
        if isinstance(raw_count, int) and not isinstance(raw_count, bool):
            participants = raw_count if raw_count >= 0 else None

        return cls(commitment=commitment, participant_count=participants)


@runtime_checkable
class RemoteJobExecutor(Protocol):
    """Submits a compute payload and waits for its receipt."""

    async def submit_job(
        self, payload: Mapping[str, object], *, pool_id: str, api_key: str | None
    ) -> JobHandle: ...

    async def wait_for_job(self, job_id: str, *, poll_interval_ms: int) -> JobReceipt: ...


class HttpJobExecutor:
    """Execute compute jobs through a collector node's HTTP API.

    Submission posts to ``/api/v1/pools/{id}/compute``; completion is polled
    from ``/api/v1/jobs/{job_id}`` until the job reports a terminal status.
    The wait itself is unbounded; the orchestrator imposes the ceiling.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout_seconds: float = 10.0,
        api_key: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._base = base_url.rstrip("/")
        self._timeout = timeout_seconds
        self._api_key = api_key
        self._transport = transport
        self._sleep = sleep

    async def submit_job(
        self, payload: Mapping[str, object], *, pool_id: str, api_key: str | None
    ) -> JobHandle:
        path = f"{POOLS_PATH}/{quote(pool_id, safe='')}/compute"
        async with self._client(api_key or self._api_key) as client:
            body = await self._request(client, "POST", path, payload)
        job_id = (body.get("jobId") or body.get("job_id")) if body else None
        if not isinstance(job_id, str) or not job_id:
            raise ComputeSubmissionFailedError(
                "Remote executor did not return a job id",
                details={"pool_id": pool_id},
            )
        LOGGER.info("Remote job submitted", extra={"pool_id": pool_id, "job_id": job_id})
        return JobHandle(job_id=job_id)

    async def wait_for_job(self, job_id: str, *, poll_interval_ms: int) -> JobReceipt:
        path = f"{JOBS_PATH}/{quote(job_id, safe='')}"
        attempts = 0
        async with self._client(self._api_key) as client:
            while True:
                attempts += 1
                body = await self._request(client, "GET", path)
                status = str((body or {}).get("status", "")).lower()
                if status in _DONE_STATUSES:
                    receipt = body.get("receipt") if body else None
                    LOGGER.info(
                        "Remote job completed",
                        extra={"job_id": job_id, "attempts": attempts},
                    )
                    return JobReceipt.from_payload(
                        receipt if isinstance(receipt, Mapping) else body or {}
                    )
                if status in _FAILED_STATUSES:
                    raise ComputeSubmissionFailedError(
                        f"Remote job {job_id} finished with status {status}",
                        details={"job_id": job_id, "status": status},
                    )
                LOGGER.debug(
                    "Remote job pending",
                    extra={"job_id": job_id, "status": status, "attempts": attempts},
                )
                await self._sleep(poll_interval_ms / 1000)

    def _client(self, api_key: str | None) -> httpx.AsyncClient:
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        return httpx.AsyncClient(
            base_url=self._base,
            timeout=self._timeout,
            transport=self._transport,
            headers=headers,
        )

    async def _request(
        self,
        client: httpx.AsyncClient,
        method: str,
        path: str,
        payload: Mapping[str, object] | None = None,
    ) -> dict[str, object] | None:
        url = f"{self._base}{path}"
        content = json.dumps(payload) if payload is not None else None
        try:
            response = await client.request(method, path, content=content)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status_code = exc.response.status_code
            raise CollectorHttpError(
                f"Remote executor responded with HTTP {status_code}",
                details={"url": url, "status_code": status_code},
            ) from exc
        except httpx.HTTPError as exc:
            raise CollectorHttpError(
                "Failed to reach remote executor", details={"url": url}
            ) from exc
        return decode_json_body(response.text, url=url)
