"""Independent verification of signed results."""

from __future__ import annotations

import logging
from collections.abc import Mapping

from .crypto import verify_signature
from .errors import InvalidInputError
from .models import SignedResult, parse_input

__all__ = ["ResultVerifier", "verify_result"]

LOGGER = logging.getLogger(__name__)

# Field spellings emitted by earlier SDK releases.
_LEGACY_FIELDS = {"payload": "result", "signer_pubkey": "publicKey"}


class ResultVerifier:
    """Check signed results produced by :class:`~arxpool.compute.ComputeOrchestrator`.

    Shape validation is a precondition and raises; a cryptographic mismatch
    is an outcome and returns ``False``.
    """

    def verify(self, signed: SignedResult | Mapping[str, object]) -> bool:
        """Return whether ``signed`` carries a valid signature over its result.

        Raises:
            InvalidInputError: If ``signed`` is not a well-formed signed result.
        """

        parsed = self.parse(signed)
        ok = verify_signature(parsed.result, parsed.signature, parsed.public_key)
        if not ok:
            LOGGER.info(
                "Signed result failed verification",
                extra={"public_key": parsed.public_key},
            )
        return ok

    @staticmethod
    def parse(signed: SignedResult | Mapping[str, object]) -> SignedResult:
        """Validate the shape of ``signed``, accepting legacy field names."""

        if isinstance(signed, SignedResult):
            return signed
        if not isinstance(signed, Mapping):
            raise InvalidInputError("Signed result payload is invalid")
        normalised = {
            _LEGACY_FIELDS.get(str(key), str(key)): value
            for key, value in signed.items()
        }
        try:
            return parse_input(SignedResult, normalised)
        except InvalidInputError as exc:
            raise InvalidInputError(
                "Signed result payload is invalid", details=exc.details
            ) from exc


def verify_result(signed: SignedResult | Mapping[str, object]) -> bool:
    """Convenience wrapper around :meth:`ResultVerifier.verify`."""

    return ResultVerifier().verify(signed)
