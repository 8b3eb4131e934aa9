"""HTTP collector transport for non-stub modes."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from urllib.parse import quote

import httpx

from .errors import CollectorHttpError, InvalidInputError

__all__ = ["HttpCollector", "decode_json_body"]

LOGGER = logging.getLogger(__name__)

POOLS_PATH = "/api/v1/pools"


def decode_json_body(text: str, *, url: str) -> dict[str, object] | None:
    """Decode a response body; an empty body means "no payload".

    Raises:
        InvalidInputError: If the body is not a JSON object.
    """

    if not text.strip():
        return None
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise InvalidInputError(
            "Received malformed JSON from collector node", details={"url": url}
        ) from exc
    if not isinstance(data, dict):
        raise InvalidInputError(
            "Collector node returned a non-object JSON payload", details={"url": url}
        )
    return {str(key): value for key, value in data.items()}


class HttpCollector:
    """POST pool and ciphertext payloads to a collector node.

    Args:
        base_url: HTTPS base URL of the node.
        timeout_seconds: Per-request timeout.
        api_key: Optional bearer token.
        transport: Optional httpx transport, mainly for tests.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout_seconds: float = 10.0,
        api_key: str | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._base = base_url.rstrip("/")
        self._timeout = timeout_seconds
        self._api_key = api_key
        self._transport = transport

    def create_pool(self, payload: Mapping[str, object]) -> dict[str, object] | None:
        return self.post(POOLS_PATH, payload)

    def join_pool(
        self, pool_id: str, payload: Mapping[str, object]
    ) -> dict[str, object] | None:
        return self.post(f"{POOLS_PATH}/{quote(pool_id, safe='')}/join", payload)

    def post(
        self, path: str, payload: Mapping[str, object] | None = None
    ) -> dict[str, object] | None:
        """POST ``payload`` as JSON to ``path`` and return the decoded body.

        Raises:
            CollectorHttpError: On transport failure or a non-2xx status.
            InvalidInputError: If the response body is malformed JSON.
        """

        url = f"{self._base}{path}"
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        body = json.dumps(payload) if payload is not None else None
        try:
            with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
                response = client.post(url, content=body, headers=headers)
                response.raise_for_status()
                text = response.text
        except httpx.HTTPStatusError as exc:
            status_code = exc.response.status_code
            LOGGER.warning(
                "Collector node HTTP error",
                extra={"url": url, "status_code": status_code},
            )
            raise CollectorHttpError(
                f"Collector node responded with HTTP {status_code}",
                details={"url": url, "status_code": status_code},
            ) from exc
        except httpx.HTTPError as exc:
            LOGGER.warning(
                "Collector node transport error", extra={"url": url}, exc_info=exc
            )
            raise CollectorHttpError(
                "Failed to reach collector node", details={"url": url}
            ) from exc

        return decode_json_body(text, url=url)
