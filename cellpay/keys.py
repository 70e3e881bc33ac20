"""secp256k1 key handling backed by libsecp256k1 (via ``coincurve``)."""

from __future__ import annotations

import binascii

from coincurve import PrivateKey

from .molecule import SIGNATURE_SIZE, ckb_hash

BLAKE160_SIZE = 20


class InvalidPrivateKey(ValueError):
    """Raised when private key material is malformed."""


def parse_private_key(raw: str | bytes) -> bytes:
    """Return 32 raw key bytes from hex (with or without ``0x``) or bytes."""

    if isinstance(raw, bytes):
        key = raw
    else:
        text = raw.strip()
        if text.startswith(("0x", "0X")):
            text = text[2:]
        try:
            key = binascii.unhexlify(text)
        except (binascii.Error, ValueError) as exc:
            raise InvalidPrivateKey("Private key must be hex encoded") from exc
    if len(key) != 32:
        raise InvalidPrivateKey(f"Private key must be 32 bytes, got {len(key)}")
    return key


def blake160(data: bytes) -> bytes:
    return ckb_hash(data)[:BLAKE160_SIZE]


class KeyService:
    """Derive lock args and produce recoverable signatures."""

    def public_key(self, private_key: bytes) -> bytes:
        return PrivateKey(private_key).public_key.format(compressed=True)

    def derive_lock_args(self, private_key: bytes) -> bytes:
        """Return the blake160 hash of the compressed public key."""

        return blake160(self.public_key(private_key))

    def sign(self, digest: bytes, private_key: bytes) -> bytes:
        """Sign a 32-byte digest, returning ``r || s || recovery_id``."""

        if len(digest) != 32:
            raise ValueError(f"Signing digest must be 32 bytes, got {len(digest)}")
        # hasher=None: the digest is already the message hash.
        signature = PrivateKey(private_key).sign_recoverable(digest, hasher=None)
        if len(signature) != SIGNATURE_SIZE:
            raise RuntimeError(f"Unexpected signature length: {len(signature)}")
        return signature
