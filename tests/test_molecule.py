from __future__ import annotations

from cellpay.model import Cell, CellDep, OutPoint, Script, TransactionSkeleton
from cellpay.molecule import (
    ckb_hash,
    pack_bytes,
    pack_dynvec,
    pack_fixvec,
    pack_script,
    pack_transaction,
    pack_witness_args,
    placeholder_witness,
    script_hash,
    serialized_size,
    transaction_hash,
)
from cellpay.networks import MAINNET_SCRIPTS, TESTNET_SCRIPTS

LOCK = Script(code_hash=b"\x11" * 32, hash_type="type", args=b"\x22" * 20)


def _skeleton(capacity: int = 100 * 10**8) -> TransactionSkeleton:
    source = Cell(
        capacity=capacity,
        lock=LOCK,
        out_point=OutPoint(tx_hash=b"\x33" * 32, index=1),
    )
    return TransactionSkeleton(
        inputs=(source,),
        outputs=(Cell(capacity=capacity, lock=LOCK),),
        cell_deps=(CellDep(OutPoint(b"\x44" * 32, 0), "dep_group"),),
        witnesses=(placeholder_witness(),),
        signer_lock=LOCK,
        change_index=0,
    )


def test_ckb_hash_of_empty_input() -> None:
    assert ckb_hash(b"").hex() == "44f4c69744d5f8c55d642062949dcae49bc4e7ef43d388c5a12f42b5633d163e"


def test_vector_layouts() -> None:
    assert pack_bytes(b"\xaa") == b"\x01\x00\x00\x00\xaa"
    assert pack_fixvec([]) == b"\x00\x00\x00\x00"
    assert pack_dynvec([]) == b"\x04\x00\x00\x00"
    assert pack_dynvec([b"\x01", b"\x02\x03"]) == (
        b"\x0f\x00\x00\x00" b"\x0c\x00\x00\x00" b"\x0d\x00\x00\x00" b"\x01\x02\x03"
    )


def test_script_encoding() -> None:
    packed = pack_script(LOCK)

    # header (4 + 3 offsets) + code_hash + hash_type + args fixvec
    assert len(packed) == 16 + 32 + 1 + 4 + 20
    assert packed[:4] == len(packed).to_bytes(4, "little")
    assert packed[16:48] == LOCK.code_hash
    assert packed[48] == 1


def test_placeholder_witness_layout() -> None:
    witness = placeholder_witness()

    assert len(witness) == 85
    assert witness[:16] == (
        (85).to_bytes(4, "little")
        + (16).to_bytes(4, "little")
        + (85).to_bytes(4, "little")
        + (85).to_bytes(4, "little")
    )
    assert witness[16:20] == (65).to_bytes(4, "little")
    assert witness[20:] == bytes(65)


def test_witness_args_with_signature_keeps_size() -> None:
    assert len(pack_witness_args(lock=b"\x01" * 65)) == len(placeholder_witness())


def test_serialized_size_adds_block_offset() -> None:
    skeleton = _skeleton()
    assert serialized_size(skeleton) == len(pack_transaction(skeleton)) + 4


def test_size_independent_of_capacity_values() -> None:
    assert serialized_size(_skeleton(100 * 10**8)) == serialized_size(_skeleton(2**63))


def test_transaction_hash_ignores_witnesses() -> None:
    skeleton = _skeleton()
    signed = skeleton.with_witness(0, pack_witness_args(lock=b"\x07" * 65))
    assert transaction_hash(skeleton) == transaction_hash(signed)
    assert pack_transaction(skeleton) != pack_transaction(signed)


def test_transaction_hash_commits_to_outputs() -> None:
    skeleton = _skeleton()
    changed = skeleton.with_output(0, skeleton.outputs[0].with_capacity(1))
    assert transaction_hash(skeleton) != transaction_hash(changed)


def test_script_hash_of_genesis_type_id_cell() -> None:
    # type-id script of the mainnet genesis cell holding the secp256k1-blake160 lock code
    type_id = Script(
        code_hash=bytes.fromhex("00000000000000000000000000000000000000000000000000545950455f4944"),
        hash_type="type",
        args=bytes.fromhex("8536c9d5d908bd89fc70099e4284870708b6632356aad98734fcf43f6f71c304"),
    )

    assert len(pack_script(type_id)) == 85
    assert script_hash(type_id) == MAINNET_SCRIPTS.secp256k1_lock.code_hash
    assert script_hash(type_id) == TESTNET_SCRIPTS.secp256k1_lock.code_hash
    assert script_hash(type_id).hex() == (
        "9bd7e06f3ecf4be0f2fcd2188b23f1b9fcc88e5d4b65a8637b17723bbda3cce8"
    )
