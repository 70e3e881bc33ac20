from __future__ import annotations

from cellpay.capacity import (
    is_capacity_sufficient,
    minimal_cell_capacity,
    needs_auxiliary_capacity_cell,
    occupied_bytes,
)
from cellpay.model import SHANNONS_PER_CKB, Cell, Script, pack_token_amount

# 22-byte args make a 55-byte lock; 32-byte args make a 65-byte type.
JOYID_LOCK = Script(code_hash=b"\x01" * 32, hash_type="type", args=b"\x02" * 22)
UDT_TYPE = Script(code_hash=b"\x03" * 32, hash_type="type", args=b"\x04" * 32)


def _udt_cell(capacity_ckb: int) -> Cell:
    return Cell(
        capacity=capacity_ckb * SHANNONS_PER_CKB,
        lock=JOYID_LOCK,
        type=UDT_TYPE,
        data=pack_token_amount(0),
    )


def test_acp_udt_cell_occupies_144_bytes() -> None:
    cell = _udt_cell(144)
    assert occupied_bytes(cell) == 55 + 65 + 16 + 8
    assert minimal_cell_capacity(cell) == 144 * SHANNONS_PER_CKB


def test_exact_minimum_is_valid_and_one_below_is_not() -> None:
    assert is_capacity_sufficient(_udt_cell(144))
    assert not is_capacity_sufficient(_udt_cell(143))


def test_plain_secp_cell_needs_61_ckb() -> None:
    lock = Script(code_hash=b"\x05" * 32, hash_type="type", args=b"\x06" * 20)
    assert minimal_cell_capacity(Cell(capacity=0, lock=lock)) == 61 * SHANNONS_PER_CKB


def test_cell_at_minimum_needs_auxiliary_capacity() -> None:
    assert needs_auxiliary_capacity_cell(_udt_cell(144))


def test_cell_with_surplus_does_not_need_auxiliary_capacity() -> None:
    cell = _udt_cell(144).with_capacity(144 * SHANNONS_PER_CKB + 1)
    assert not needs_auxiliary_capacity_cell(cell)
