"""Pydantic models describing pools, ciphertext records and signed tallies."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Any, Literal, TypeVar

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    StringConstraints,
    TypeAdapter,
    ValidationError,
)
from pydantic.alias_generators import to_camel

from .canonical import serialize
from .errors import InvalidInputError

__all__ = [
    "DEFAULT_TTL_SECONDS",
    "MAX_TTL_SECONDS",
    "CiphertextInput",
    "CiphertextRecord",
    "ComputeOptions",
    "Pool",
    "PoolId",
    "PoolInput",
    "PoolMode",
    "SignedResult",
    "TallyRecord",
    "build_checksum_subset",
    "format_timestamp",
    "parse_input",
    "validate_pool_id",
]

DEFAULT_TTL_SECONDS = 3600
MAX_TTL_SECONDS = 604_800
MIN_POLL_INTERVAL_MS = 250
MAX_POLL_INTERVAL_MS = 60_000

PoolMode = Literal["tally", "compute"]
PoolId = Annotated[str, StringConstraints(min_length=3, max_length=128)]
TtlSeconds = Annotated[int, Field(gt=0, le=MAX_TTL_SECONDS)]


def _require_json_metadata(value: dict[str, Any]) -> dict[str, Any]:
    """Reject metadata that has no canonical JSON form."""

    try:
        serialize(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"metadata must be JSON-serializable: {exc}") from exc
    return value


Metadata = Annotated[dict[str, Any], AfterValidator(_require_json_metadata)]

ModelT = TypeVar("ModelT", bound=BaseModel)

_POOL_ID_ADAPTER: TypeAdapter[str] = TypeAdapter(PoolId)


def format_timestamp(value: datetime) -> str:
    """Render ``value`` as a UTC ISO-8601 string with millisecond precision."""

    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    text = value.astimezone(timezone.utc).isoformat(timespec="milliseconds")
    return text.replace("+00:00", "Z")


class _Model(BaseModel):
    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_payload(self) -> dict[str, Any]:
        """Return the camelCase JSON form, omitting unset optional fields."""

        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class PoolInput(_Model):
    """Caller-supplied description of a pool to register."""

    id: PoolId
    mode: PoolMode
    description: Annotated[str, StringConstraints(max_length=256)] | None = None
    metadata: Metadata | None = None
    ttl_seconds: TtlSeconds | None = None


class Pool(PoolInput):
    """A registered pool. ``created_at`` is stamped once at creation."""

    created_at: datetime


class CiphertextInput(_Model):
    """One participant's encrypted contribution as submitted."""

    ciphertext: Annotated[str, StringConstraints(min_length=16)]
    sender_pubkey: Annotated[str, StringConstraints(min_length=32)]
    nonce: Annotated[str, StringConstraints(min_length=16)] | None = None
    timestamp: datetime | None = None
    ttl_seconds: TtlSeconds | None = None
    metadata: Metadata | None = None


class CiphertextRecord(CiphertextInput):
    """A stored contribution with its resolved TTL and fixed expiry."""

    timestamp: datetime
    ttl_seconds: TtlSeconds
    expires_at: datetime


class ComputeOptions(_Model):
    """Per-call compute options."""

    metadata: Metadata | None = None
    dry_run: bool | None = None
    poll_interval_ms: (
        Annotated[int, Field(ge=MIN_POLL_INTERVAL_MS, le=MAX_POLL_INTERVAL_MS)] | None
    ) = None


class TallyRecord(_Model):
    """Computed aggregate plus its integrity checksum, prior to signing.

    Timestamps are kept as ISO-8601 strings so the signed message is
    reproduced byte-for-byte from the JSON form.
    """

    pool_id: PoolId
    mxe_id: Annotated[str, StringConstraints(min_length=1)]
    job_commitment: Annotated[str, StringConstraints(min_length=1)]
    participant_count: Annotated[int, Field(ge=0)]
    computed_at: str
    checksum: Annotated[str, StringConstraints(min_length=1)]
    summary: dict[str, Any] | None = None

    def checksum_subset(self) -> dict[str, Any]:
        """Return the fields covered by ``checksum``; ``summary`` is excluded."""

        return build_checksum_subset(
            pool_id=self.pool_id,
            mxe_id=self.mxe_id,
            job_commitment=self.job_commitment,
            participant_count=self.participant_count,
            computed_at=self.computed_at,
        )


def build_checksum_subset(
    *,
    pool_id: str,
    mxe_id: str,
    job_commitment: str,
    participant_count: int,
    computed_at: str,
) -> dict[str, Any]:
    return {
        "poolId": pool_id,
        "mxeId": mxe_id,
        "jobCommitment": job_commitment,
        "participantCount": participant_count,
        "computedAt": computed_at,
    }


class SignedResult(_Model):
    """A signed payload and the hex public key that verifies it.

    ``result`` holds the exact JSON payload that was signed rather than a
    parsed :class:`TallyRecord`, so verification re-serializes the same bytes.
    """

    result: dict[str, Any]
    signature: Annotated[str, StringConstraints(min_length=32)]
    public_key: Annotated[str, StringConstraints(min_length=32)]

    def tally(self) -> TallyRecord:
        """Parse ``result`` as a :class:`TallyRecord`."""

        return parse_input(TallyRecord, self.result)


def parse_input(model: type[ModelT], data: object) -> ModelT:
    """Validate ``data`` against ``model``.

    Raises:
        InvalidInputError: If validation fails; the pydantic error list is
            attached under ``details["errors"]``.
    """

    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise InvalidInputError(
            f"Invalid {model.__name__} payload",
            details={"errors": exc.errors(include_url=False, include_context=False)},
        ) from exc


def validate_pool_id(pool_id: object) -> str:
    """Return ``pool_id`` when it is a 3..128 character string."""

    try:
        return _POOL_ID_ADAPTER.validate_python(pool_id)
    except ValidationError as exc:
        raise InvalidInputError(
            "Pool id must be a string of 3 to 128 characters",
            details={"pool_id": pool_id},
        ) from exc
