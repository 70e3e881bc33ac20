from __future__ import annotations

from decimal import Decimal

import pytest

from cellpay.model import (
    MAX_TOKEN_AMOUNT,
    Cell,
    Script,
    ckb_to_shannons,
    pack_token_amount,
    token_to_units,
    unpack_token_amount,
)


@pytest.mark.parametrize("amount", [0, 1, 100_000, MAX_TOKEN_AMOUNT])
def test_token_amount_round_trip(amount: int) -> None:
    packed = pack_token_amount(amount)
    assert len(packed) == 16
    assert unpack_token_amount(packed) == amount


def test_token_amount_is_little_endian() -> None:
    assert pack_token_amount(1) == b"\x01" + b"\x00" * 15


def test_token_amount_rejects_out_of_range() -> None:
    with pytest.raises(ValueError):
        pack_token_amount(MAX_TOKEN_AMOUNT + 1)
    with pytest.raises(ValueError):
        pack_token_amount(-1)


def test_unpack_requires_sixteen_bytes() -> None:
    with pytest.raises(ValueError):
        unpack_token_amount(b"\x00" * 15)


def test_unpack_ignores_trailing_data() -> None:
    assert unpack_token_amount(pack_token_amount(7) + b"\xff\xff") == 7


def test_decimal_conversions_are_exact() -> None:
    assert ckb_to_shannons(Decimal("144.01")) == 14_401_000_000
    assert ckb_to_shannons("61") == 6_100_000_000
    assert token_to_units(Decimal("0.1"), 6) == 100_000
    with pytest.raises(ValueError):
        ckb_to_shannons("0.000000001")
    with pytest.raises(ValueError):
        token_to_units("-1", 6)


def test_cell_rejects_capacity_outside_uint64() -> None:
    lock = Script(code_hash=b"\x00" * 32, hash_type="type")
    with pytest.raises(ValueError):
        Cell(capacity=2**64, lock=lock)


def test_script_rejects_bad_shapes() -> None:
    with pytest.raises(ValueError):
        Script(code_hash=b"\x00" * 31, hash_type="type")
    with pytest.raises(ValueError):
        Script(code_hash=b"\x00" * 32, hash_type="bogus")


def test_cell_from_indexer_payload() -> None:
    payload = {
        "block_number": "0x10",
        "out_point": {"tx_hash": "0x" + "ab" * 32, "index": "0x2"},
        "output": {
            "capacity": "0x35a4e9000",
            "lock": {"code_hash": "0x" + "11" * 32, "hash_type": "type", "args": "0x" + "22" * 20},
            "type": {"code_hash": "0x" + "33" * 32, "hash_type": "data1", "args": "0x"},
        },
        "output_data": "0x" + pack_token_amount(5).hex(),
        "tx_index": "0x0",
    }

    cell = Cell.from_indexer(payload)

    assert cell.capacity == 144 * 10**8
    assert cell.lock.args == b"\x22" * 20
    assert cell.type is not None and cell.type.hash_type == "data1"
    assert cell.token_amount == 5
    assert cell.out_point is not None and cell.out_point.index == 2
    assert cell.block_number == 16


def test_cell_from_indexer_without_type() -> None:
    payload = {
        "out_point": {"tx_hash": "0x" + "ab" * 32, "index": "0x0"},
        "output": {
            "capacity": "0x174876e800",
            "lock": {"code_hash": "0x" + "11" * 32, "hash_type": "type", "args": "0x"},
            "type": None,
        },
        "output_data": "0x",
    }

    cell = Cell.from_indexer(payload)

    assert cell.type is None
    assert cell.data == b""
    assert cell.block_number is None


def test_script_dict_round_trip() -> None:
    script = Script(code_hash=b"\x01" * 32, hash_type="type", args=b"\x02\x03")
    assert Script.from_dict(script.to_dict()) == script
    assert script.to_dict()["args"] == "0x0203"
