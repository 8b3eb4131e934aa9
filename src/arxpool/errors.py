"""Error taxonomy shared by every :mod:`arxpool` component."""

from __future__ import annotations

from collections.abc import Mapping
from typing import ClassVar

__all__ = [
    "ArxPoolError",
    "CollectorHttpError",
    "ComputeSubmissionFailedError",
    "ComputeTimeoutError",
    "ConfigInvalidError",
    "ConfigMissingError",
    "InvalidInputError",
    "PoolAlreadyExistsError",
    "PoolNotFoundError",
]


class ArxPoolError(Exception):
    """Base class for errors raised by the pool pipeline.

    Attributes:
        code: Stable machine-readable error code.
        details: Contextual identifiers (pool id, url, job id) attached at the
            raise site.
    """

    code: ClassVar[str] = "ARXPOOL_ERROR"

    def __init__(
        self, message: str, *, details: Mapping[str, object] | None = None
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details: dict[str, object] = dict(details or {})

    def to_dict(self) -> dict[str, object]:
        """Return a JSON-ready representation of the error."""

        payload: dict[str, object] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = dict(self.details)
        return payload


class ConfigInvalidError(ArxPoolError):
    """Raised when configuration or key material cannot be parsed."""

    code = "CONFIG_INVALID"


class ConfigMissingError(ArxPoolError):
    """Raised when a required configuration value is absent."""

    code = "CONFIG_MISSING"


class PoolNotFoundError(ArxPoolError):
    """Raised when an operation references an unknown pool id."""

    code = "POOL_NOT_FOUND"


class InvalidInputError(ArxPoolError):
    """Raised when caller input fails structural validation."""

    code = "INVALID_INPUT"


class PoolAlreadyExistsError(InvalidInputError):
    """Raised when a pool id is registered twice without ``replace=True``."""

    code = "POOL_EXISTS"


class CollectorHttpError(ArxPoolError):
    """Raised when the collector node is unreachable or answers non-2xx."""

    code = "COLLECTOR_HTTP_ERROR"


class ComputeSubmissionFailedError(ArxPoolError):
    """Raised when a remote compute job cannot be submitted or awaited."""

    code = "COMPUTE_SUBMISSION_FAILED"


class ComputeTimeoutError(ComputeSubmissionFailedError):
    """Raised when a remote job does not finish within the configured ceiling."""

    code = "COMPUTE_TIMEOUT"
