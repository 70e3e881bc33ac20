from __future__ import annotations

import itertools
from typing import Callable

import pytest

from cellpay.keys import KeyService
from cellpay.model import SHANNONS_PER_CKB, Cell, OutPoint, Script
from cellpay.networks import TESTNET_SCRIPTS, ScriptConfig

TEST_PRIVATE_KEY = bytes.fromhex(
    "e79f3207ea4980b7fed79956d5934249ceac4751a4fae01a0f7c4a96884bc4e3"
)

_tx_counter = itertools.count(1)


def ckb(amount: int) -> int:
    return amount * SHANNONS_PER_CKB


def live(cell: Cell) -> Cell:
    """Attach a unique out point so *cell* can be spent as an input."""

    index = next(_tx_counter)
    return Cell(
        capacity=cell.capacity,
        lock=cell.lock,
        type=cell.type,
        data=cell.data,
        out_point=OutPoint(tx_hash=index.to_bytes(32, "big"), index=0),
    )


@pytest.fixture()
def scripts() -> ScriptConfig:
    return TESTNET_SCRIPTS


@pytest.fixture()
def private_key() -> bytes:
    return TEST_PRIVATE_KEY


@pytest.fixture()
def owner_lock(scripts: ScriptConfig) -> Script:
    return scripts.owner_lock(KeyService().derive_lock_args(TEST_PRIVATE_KEY))


@pytest.fixture()
def make_cell() -> Callable[..., Cell]:
    def factory(capacity_ckb: int, lock: Script, type_script: Script | None = None, data: bytes = b"") -> Cell:
        return live(Cell(capacity=ckb(capacity_ckb), lock=lock, type=type_script, data=data))

    return factory
