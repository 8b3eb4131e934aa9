"""
Ed25519 key derivation, signing and verification for tally results.

Provides:
- derive_keypair(secret): deterministic keypair from opaque secret material
- Signer(keypair): signs canonicalized payloads
- verify_signature(payload, signature_hex, public_key_hex): never raises

Keys and signatures are exchanged as lowercase hex. Secret material is
accepted as a 64-byte keypair or a 32-byte seed (hex, optionally prefixed with
``ed25519:``); any other non-empty string is hashed with SHA-256 and the digest
is used as the seed. The hash fallback keeps arbitrary passphrases usable but
carries only the entropy of the passphrase itself.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

from .canonical import serialize
from .errors import ConfigInvalidError, ConfigMissingError

__all__ = [
    "KEY_PREFIX",
    "Keypair",
    "SignatureEnvelope",
    "Signer",
    "derive_keypair",
    "derive_public_key",
    "sign_payload",
    "verify_signature",
]

LOGGER = logging.getLogger(__name__)

KEY_PREFIX = "ed25519:"
SEED_BYTES = 32
KEYPAIR_BYTES = 64


@dataclass(frozen=True, slots=True)
class Keypair:
    """Ed25519 keypair derived from secret material."""

    seed: bytes = field(repr=False)
    public_key: bytes

    @property
    def secret_key(self) -> bytes:
        """Return the 64-byte ``seed || public_key`` encoding."""

        return self.seed + self.public_key

    @property
    def public_key_hex(self) -> str:
        return self.public_key.hex()


@dataclass(frozen=True, slots=True)
class SignatureEnvelope:
    """Signature over the canonical message together with its verifier key."""

    signature: str
    public_key: str
    message: str


def _public_bytes(private_key: Ed25519PrivateKey) -> bytes:
    return private_key.public_key().public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    )


def _keypair_from_seed(seed: bytes) -> Keypair:
    private_key = Ed25519PrivateKey.from_private_bytes(seed)
    return Keypair(seed=bytes(seed), public_key=_public_bytes(private_key))


def _decode_hex(material: str) -> bytes | None:
    candidate = material
    if candidate.startswith(("0x", "0X")):
        candidate = candidate[2:]
    try:
        return bytes.fromhex(candidate)
    except ValueError:
        return None


def derive_keypair(secret: str | bytes, *, strict: bool = False) -> Keypair:
    """Derive a deterministic Ed25519 keypair from ``secret``.

    Args:
        secret: Hex-encoded 64-byte keypair or 32-byte seed (optionally
            prefixed with ``ed25519:``), raw key bytes, or any non-empty
            string for the hash fallback.
        strict: Disable the SHA-256 fallback so undecodable material is
            rejected instead of hashed.

    Returns:
        The derived :class:`Keypair`.

    Raises:
        ConfigMissingError: If ``secret`` is empty.
        ConfigInvalidError: If the material cannot be decoded and the fallback
            is disabled, or a 64-byte keypair carries a mismatching public half.
    """

    if isinstance(secret, (bytes, bytearray)):
        raw: bytes | None = bytes(secret)
        text = ""
    else:
        text = secret.strip() if isinstance(secret, str) else ""
        if text.startswith(KEY_PREFIX):
            text = text[len(KEY_PREFIX) :]
        raw = _decode_hex(text) if text else None

    if not raw and not text:
        raise ConfigMissingError("Attester secret is empty")

    if raw is not None and len(raw) == KEYPAIR_BYTES:
        keypair = _keypair_from_seed(raw[:SEED_BYTES])
        if keypair.public_key != raw[SEED_BYTES:]:
            raise ConfigInvalidError(
                "Ed25519 keypair public half does not match its seed"
            )
        return keypair
    if raw is not None and len(raw) == SEED_BYTES:
        return _keypair_from_seed(raw)

    if strict or not text:
        raise ConfigInvalidError(
            "Ed25519 secret must be a 32-byte seed or 64-byte keypair"
        )

    LOGGER.debug("Deriving attester seed from SHA-256 of raw secret material")
    return _keypair_from_seed(hashlib.sha256(text.encode("utf-8")).digest())


def derive_public_key(secret: str | bytes) -> str:
    """Return the hex public key for ``secret``."""

    return derive_keypair(secret).public_key_hex


class Signer:
    """Sign canonicalized payloads with an Ed25519 keypair.

    Ed25519 signatures are deterministic, so equal payloads (after
    canonicalization) always produce equal signatures under the same key.
    """

    algorithm = "ed25519"

    def __init__(self, keypair: Keypair) -> None:
        self._priv = Ed25519PrivateKey.from_private_bytes(keypair.seed)
        self.keypair = keypair
        self.public_key = keypair.public_key_hex

    @classmethod
    def from_secret(cls, secret: str | bytes, *, strict: bool = False) -> Signer:
        return cls(derive_keypair(secret, strict=strict))

    def sign(self, payload: object) -> SignatureEnvelope:
        """Sign ``serialize(payload)`` and return the signature envelope."""

        message = serialize(payload)
        signature = self._priv.sign(message.encode("utf-8"))
        return SignatureEnvelope(
            signature=signature.hex(), public_key=self.public_key, message=message
        )


def sign_payload(payload: object, secret: str | bytes) -> str:
    """Return the hex signature of ``payload`` under the key derived from ``secret``."""

    return Signer.from_secret(secret).sign(payload).signature


def verify_signature(payload: object, signature_hex: str, public_key_hex: str) -> bool:
    """Return ``True`` when ``signature_hex`` is valid for ``payload``.

    Decoding errors, non-serializable payloads and bad signatures all return
    ``False``; this function never raises.
    """

    try:
        message = serialize(payload).encode("utf-8")
        signature = bytes.fromhex(signature_hex)
        public_key = Ed25519PublicKey.from_public_bytes(bytes.fromhex(public_key_hex))
        public_key.verify(signature, message)
    except (InvalidSignature, ValueError, TypeError):
        return False
    return True
