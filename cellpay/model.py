"""Domain models for cell-model transactions.

Cells, scripts and the transaction skeleton are immutable values. Pipeline
stages never patch a skeleton in place; they return a new one via
:func:`dataclasses.replace`, which keeps each stage testable on its own.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Mapping

SHANNONS_PER_CKB = 10**8
MAX_CAPACITY = 2**64 - 1
MAX_TOKEN_AMOUNT = 2**128 - 1
TOKEN_AMOUNT_SIZE = 16

HASH_TYPES = ("data", "type", "data1", "data2")
DEP_TYPES = ("code", "dep_group")


def _to_hex(value: bytes) -> str:
    return "0x" + value.hex()


def _from_hex(raw: str, *, field_name: str) -> bytes:
    if not isinstance(raw, str) or not raw.startswith("0x"):
        raise ValueError(f"{field_name} must be a 0x-prefixed hex string, got {raw!r}")
    try:
        return bytes.fromhex(raw[2:])
    except ValueError as exc:
        raise ValueError(f"{field_name} is not valid hex: {raw}") from exc


def _hex_int(raw: str | int, *, field_name: str) -> int:
    if isinstance(raw, int):
        return raw
    try:
        return int(raw, 16)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{field_name} is not a hex quantity: {raw!r}") from exc


def check_capacity(value: int) -> int:
    """Return *value* when it fits the unsigned 64-bit capacity field."""

    if not 0 <= value <= MAX_CAPACITY:
        raise ValueError(f"Capacity {value} is outside the uint64 range")
    return value


def pack_token_amount(amount: int) -> bytes:
    """Encode a token amount as 16 little-endian bytes."""

    if not 0 <= amount <= MAX_TOKEN_AMOUNT:
        raise ValueError(f"Token amount {amount} is outside the uint128 range")
    return amount.to_bytes(TOKEN_AMOUNT_SIZE, "little")


def unpack_token_amount(data: bytes) -> int:
    """Decode the token amount stored in the first 16 bytes of cell data."""

    if len(data) < TOKEN_AMOUNT_SIZE:
        raise ValueError(
            f"Token cell data must hold at least {TOKEN_AMOUNT_SIZE} bytes, got {len(data)}"
        )
    return int.from_bytes(data[:TOKEN_AMOUNT_SIZE], "little")


def _to_base_units(amount: Decimal | str | int | float, decimals: int, label: str) -> int:
    try:
        value = Decimal(str(amount))
    except InvalidOperation as exc:
        raise ValueError(f"Invalid {label} amount: {amount}") from exc
    scaled = value.scaleb(decimals)
    if scaled != scaled.to_integral_value():
        raise ValueError(f"{label} amount {amount} has more than {decimals} decimal places")
    if scaled < 0:
        raise ValueError(f"{label} amount must not be negative: {amount}")
    return int(scaled)


def ckb_to_shannons(amount: Decimal | str | int | float) -> int:
    """Convert a decimal CKB amount into shannons."""

    return check_capacity(_to_base_units(amount, 8, "CKB"))


def shannons_to_ckb(shannons: int) -> Decimal:
    return Decimal(shannons).scaleb(-8)


def token_to_units(amount: Decimal | str | int | float, decimals: int) -> int:
    """Convert a decimal token amount into integer token units."""

    units = _to_base_units(amount, decimals, "token")
    if units > MAX_TOKEN_AMOUNT:
        raise ValueError(f"Token amount {amount} is outside the uint128 range")
    return units


def units_to_token(units: int, decimals: int) -> Decimal:
    return Decimal(units).scaleb(-decimals)


@dataclass(frozen=True)
class Script:
    """Lock or type script identity: code reference, hash type and args."""

    code_hash: bytes
    hash_type: str
    args: bytes = b""

    def __post_init__(self) -> None:
        if len(self.code_hash) != 32:
            raise ValueError(f"code_hash must be 32 bytes, got {len(self.code_hash)}")
        if self.hash_type not in HASH_TYPES:
            raise ValueError(f"Unknown hash_type {self.hash_type!r}")

    def with_args(self, args: bytes) -> "Script":
        return replace(self, args=bytes(args))

    def to_dict(self) -> dict[str, str]:
        return {
            "code_hash": _to_hex(self.code_hash),
            "hash_type": self.hash_type,
            "args": _to_hex(self.args),
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Script":
        return cls(
            code_hash=_from_hex(payload["code_hash"], field_name="code_hash"),
            hash_type=str(payload["hash_type"]),
            args=_from_hex(payload.get("args", "0x"), field_name="args"),
        )


@dataclass(frozen=True)
class OutPoint:
    tx_hash: bytes
    index: int

    def to_dict(self) -> dict[str, str]:
        return {"tx_hash": _to_hex(self.tx_hash), "index": hex(self.index)}

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "OutPoint":
        return cls(
            tx_hash=_from_hex(payload["tx_hash"], field_name="tx_hash"),
            index=_hex_int(payload["index"], field_name="index"),
        )

    def __str__(self) -> str:
        return f"{_to_hex(self.tx_hash)}:{self.index}"


@dataclass(frozen=True)
class CellDep:
    """Reference to a code (or dep group) cell a transaction relies on."""

    out_point: OutPoint
    dep_type: str = "code"

    def __post_init__(self) -> None:
        if self.dep_type not in DEP_TYPES:
            raise ValueError(f"Unknown dep_type {self.dep_type!r}")

    def to_dict(self) -> dict[str, Any]:
        return {"out_point": self.out_point.to_dict(), "dep_type": self.dep_type}


@dataclass(frozen=True)
class Cell:
    """A cell as an output of a draft or, with ``out_point`` set, a live input."""

    capacity: int
    lock: Script
    type: Script | None = None
    data: bytes = b""
    out_point: OutPoint | None = None
    block_number: int | None = None

    def __post_init__(self) -> None:
        check_capacity(self.capacity)

    @property
    def token_amount(self) -> int:
        return unpack_token_amount(self.data)

    def with_capacity(self, capacity: int) -> "Cell":
        return replace(self, capacity=check_capacity(capacity))

    def as_output(self) -> "Cell":
        """Return the cell shape without its origin reference."""

        return replace(self, out_point=None, block_number=None)

    def output_dict(self) -> dict[str, Any]:
        return {
            "capacity": hex(self.capacity),
            "lock": self.lock.to_dict(),
            "type": self.type.to_dict() if self.type is not None else None,
        }

    @classmethod
    def from_indexer(cls, payload: Mapping[str, Any]) -> "Cell":
        """Build a live cell from a ``get_cells`` result object."""

        output = payload["output"]
        type_payload = output.get("type")
        block_number = payload.get("block_number")
        return cls(
            capacity=_hex_int(output["capacity"], field_name="capacity"),
            lock=Script.from_dict(output["lock"]),
            type=Script.from_dict(type_payload) if type_payload else None,
            data=_from_hex(payload.get("output_data") or "0x", field_name="output_data"),
            out_point=OutPoint.from_dict(payload["out_point"]),
            block_number=(
                _hex_int(block_number, field_name="block_number")
                if block_number is not None
                else None
            ),
        )


@dataclass(frozen=True)
class TransactionSkeleton:
    """In-progress transaction; produced by the builder, replaced by later stages."""

    inputs: tuple[Cell, ...]
    outputs: tuple[Cell, ...]
    cell_deps: tuple[CellDep, ...]
    witnesses: tuple[bytes, ...]
    signer_lock: Script
    change_index: int
    header_deps: tuple[bytes, ...] = field(default_factory=tuple)
    version: int = 0

    def total_input_capacity(self) -> int:
        return sum(cell.capacity for cell in self.inputs)

    def total_output_capacity(self) -> int:
        return sum(cell.capacity for cell in self.outputs)

    def implicit_fee(self) -> int:
        return self.total_input_capacity() - self.total_output_capacity()

    @property
    def change_output(self) -> Cell:
        return self.outputs[self.change_index]

    def with_output(self, index: int, cell: Cell) -> "TransactionSkeleton":
        outputs = list(self.outputs)
        outputs[index] = cell
        return replace(self, outputs=tuple(outputs))

    def with_witness(self, index: int, witness: bytes) -> "TransactionSkeleton":
        witnesses = list(self.witnesses)
        witnesses[index] = witness
        return replace(self, witnesses=tuple(witnesses))

    def signer_group(self) -> list[int]:
        """Return the input indexes locked by the signer's lock script."""

        return [index for index, cell in enumerate(self.inputs) if cell.lock == self.signer_lock]

    def to_dict(self) -> dict[str, Any]:
        """Return the transaction in the node's JSON-RPC shape."""

        return {
            "version": hex(self.version),
            "cell_deps": [dep.to_dict() for dep in self.cell_deps],
            "header_deps": [_to_hex(item) for item in self.header_deps],
            "inputs": [
                {"since": "0x0", "previous_output": _require_out_point(cell).to_dict()}
                for cell in self.inputs
            ],
            "outputs": [cell.output_dict() for cell in self.outputs],
            "outputs_data": [_to_hex(cell.data) for cell in self.outputs],
            "witnesses": [_to_hex(witness) for witness in self.witnesses],
        }


def _require_out_point(cell: Cell) -> OutPoint:
    if cell.out_point is None:
        raise ValueError("Transaction inputs must reference a live cell out point")
    return cell.out_point


def total_capacity(cells: Iterable[Cell]) -> int:
    return sum(cell.capacity for cell in cells)


def total_token_amount(cells: Iterable[Cell]) -> int:
    return sum(cell.token_amount for cell in cells)
