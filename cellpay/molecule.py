"""Canonical molecule encoding of CKB transactions.

Only the structures a transfer needs are covered. The layouts follow the
``blockchain.mol`` schema shipped with CKB:

* struct  - fields concatenated, fixed size
* fixvec  - ``item_count: u32`` followed by fixed-size items
* dynvec  - ``total_size: u32``, one ``u32`` offset per item, then items
* table   - same header as a dynvec, one slot per field
* option  - empty for ``None``, otherwise the inner value

All integers are little-endian.
"""

from __future__ import annotations

import hashlib
from typing import Sequence

from .model import Cell, CellDep, OutPoint, Script, TransactionSkeleton

CKB_HASH_PERSONALIZATION = b"ckb-default-hash"
# A transaction is referenced by a u32 offset inside the block's transaction vector.
TRANSACTION_OFFSET_SIZE = 4
SIGNATURE_SIZE = 65

_HASH_TYPE_BYTES = {"data": 0, "type": 1, "data1": 2, "data2": 4}
_DEP_TYPE_BYTES = {"code": 0, "dep_group": 1}


def ckb_hash(data: bytes) -> bytes:
    """Return the 32-byte blake2b digest used throughout CKB."""

    return hashlib.blake2b(data, digest_size=32, person=CKB_HASH_PERSONALIZATION).digest()


def pack_uint32(value: int) -> bytes:
    return value.to_bytes(4, "little")


def pack_uint64(value: int) -> bytes:
    return value.to_bytes(8, "little")


def pack_bytes(value: bytes) -> bytes:
    return pack_uint32(len(value)) + value


def pack_fixvec(items: Sequence[bytes]) -> bytes:
    return pack_uint32(len(items)) + b"".join(items)


def pack_dynvec(items: Sequence[bytes]) -> bytes:
    header_size = 4 + 4 * len(items)
    offsets = []
    cursor = header_size
    for item in items:
        offsets.append(pack_uint32(cursor))
        cursor += len(item)
    return pack_uint32(cursor) + b"".join(offsets) + b"".join(items)


# A table shares the dynvec layout; the distinction is only in the schema.
pack_table = pack_dynvec


def pack_option(value: bytes | None) -> bytes:
    return b"" if value is None else value


def pack_script(script: Script) -> bytes:
    return pack_table(
        [
            script.code_hash,
            bytes([_HASH_TYPE_BYTES[script.hash_type]]),
            pack_bytes(script.args),
        ]
    )


def pack_out_point(out_point: OutPoint) -> bytes:
    return out_point.tx_hash + pack_uint32(out_point.index)


def pack_cell_input(cell: Cell, since: int = 0) -> bytes:
    if cell.out_point is None:
        raise ValueError("Cannot encode an input cell without an out point")
    return pack_uint64(since) + pack_out_point(cell.out_point)


def pack_cell_output(cell: Cell) -> bytes:
    return pack_table(
        [
            pack_uint64(cell.capacity),
            pack_script(cell.lock),
            pack_option(pack_script(cell.type) if cell.type is not None else None),
        ]
    )


def pack_cell_dep(dep: CellDep) -> bytes:
    return pack_out_point(dep.out_point) + bytes([_DEP_TYPE_BYTES[dep.dep_type]])


def pack_witness_args(
    lock: bytes | None = None,
    input_type: bytes | None = None,
    output_type: bytes | None = None,
) -> bytes:
    return pack_table(
        [
            pack_option(pack_bytes(lock) if lock is not None else None),
            pack_option(pack_bytes(input_type) if input_type is not None else None),
            pack_option(pack_bytes(output_type) if output_type is not None else None),
        ]
    )


def placeholder_witness() -> bytes:
    """WitnessArgs whose lock is a zero-filled signature-sized field."""

    return pack_witness_args(lock=bytes(SIGNATURE_SIZE))


def pack_raw_transaction(skeleton: TransactionSkeleton) -> bytes:
    return pack_table(
        [
            pack_uint32(skeleton.version),
            pack_fixvec([pack_cell_dep(dep) for dep in skeleton.cell_deps]),
            pack_fixvec(list(skeleton.header_deps)),
            pack_fixvec([pack_cell_input(cell) for cell in skeleton.inputs]),
            pack_dynvec([pack_cell_output(cell) for cell in skeleton.outputs]),
            pack_dynvec([pack_bytes(cell.data) for cell in skeleton.outputs]),
        ]
    )


def pack_transaction(skeleton: TransactionSkeleton) -> bytes:
    return pack_table(
        [
            pack_raw_transaction(skeleton),
            pack_dynvec([pack_bytes(witness) for witness in skeleton.witnesses]),
        ]
    )


def transaction_hash(skeleton: TransactionSkeleton) -> bytes:
    """Hash of the raw transaction; witnesses are not committed."""

    return ckb_hash(pack_raw_transaction(skeleton))


def script_hash(script: Script) -> bytes:
    return ckb_hash(pack_script(script))


def serialized_size(skeleton: TransactionSkeleton) -> int:
    """Size in bytes the transaction occupies inside a block."""

    return len(pack_transaction(skeleton)) + TRANSACTION_OFFSET_SIZE
