"""Signing message preparation and transaction sealing.

The message follows the secp256k1-blake160 lock convention: blake2b over the
transaction hash, then every witness of the signing lock group (the first one
with its lock field zero-filled) and every witness past the last input, each
prefixed by its length as a u64.
"""

from __future__ import annotations

import enum
import hashlib
import logging
from dataclasses import dataclass

from .keys import KeyService
from .model import TransactionSkeleton
from .molecule import (
    CKB_HASH_PERSONALIZATION,
    SIGNATURE_SIZE,
    pack_uint64,
    pack_witness_args,
    placeholder_witness,
    transaction_hash,
)

logger = logging.getLogger(__name__)


class SigningKeyMissing(RuntimeError):
    """Raised when a transaction must be signed but no private key is configured."""


class TransferStage(enum.Enum):
    SELECTING_CELLS = "selecting_cells"
    BUILDING_SKELETON = "building_skeleton"
    COMPUTING_FEE = "computing_fee"
    PREPARING_DIGEST = "preparing_digest"
    SIGNING = "signing"
    SEALED = "sealed"


@dataclass(frozen=True)
class SealedTransaction:
    skeleton: TransactionSkeleton
    tx_hash: bytes

    @property
    def tx_hash_hex(self) -> str:
        return "0x" + self.tx_hash.hex()

    def to_dict(self) -> dict:
        return self.skeleton.to_dict()


def signing_message(skeleton: TransactionSkeleton) -> bytes:
    """Return the 32-byte digest the signer's lock group has to sign."""

    group = skeleton.signer_group()
    if not group or group[0] != 0:
        raise ValueError("The signing lock group must start at input 0")
    if skeleton.witnesses[0] != placeholder_witness():
        raise ValueError("Witness 0 must hold the signature placeholder before signing")

    hasher = hashlib.blake2b(digest_size=32, person=CKB_HASH_PERSONALIZATION)
    hasher.update(transaction_hash(skeleton))
    indexes = group + list(range(len(skeleton.inputs), len(skeleton.witnesses)))
    for index in indexes:
        witness = skeleton.witnesses[index]
        hasher.update(pack_uint64(len(witness)))
        hasher.update(witness)
    return hasher.digest()


class SigningCoordinator:
    """Digest, sign and seal a finalized skeleton."""

    def __init__(self, key_service: KeyService, private_key: bytes | None) -> None:
        self.key_service = key_service
        self.private_key = private_key

    def seal(self, skeleton: TransactionSkeleton) -> SealedTransaction:
        if not self.private_key:
            raise SigningKeyMissing(
                "CKB_SECP256K1_PRIVATE_KEY is not set; configure a private key to sign transactions"
            )

        logger.info("Stage %s", TransferStage.PREPARING_DIGEST.value)
        message = signing_message(skeleton)
        logger.debug("Signing message 0x%s", message.hex())

        logger.info("Stage %s", TransferStage.SIGNING.value)
        signature = self.key_service.sign(message, self.private_key)
        if len(signature) != SIGNATURE_SIZE:
            raise ValueError(f"Signature must be {SIGNATURE_SIZE} bytes, got {len(signature)}")

        sealed = skeleton.with_witness(0, pack_witness_args(lock=signature))
        tx_hash = transaction_hash(sealed)
        logger.info("Stage %s: tx hash 0x%s", TransferStage.SEALED.value, tx_hash.hex())
        return SealedTransaction(skeleton=sealed, tx_hash=tx_hash)
