"""Minimal occupied capacity checks.

A cell must hold at least one CKB of capacity per byte it occupies on chain:
the 8-byte capacity field, its lock script, its optional type script and its
data.
"""

from __future__ import annotations

import logging

from .model import SHANNONS_PER_CKB, Cell, Script

logger = logging.getLogger(__name__)

CAPACITY_FIELD_SIZE = 8


def script_occupied_bytes(script: Script) -> int:
    # code_hash + hash_type + args
    return 32 + 1 + len(script.args)


def occupied_bytes(cell: Cell) -> int:
    size = CAPACITY_FIELD_SIZE + script_occupied_bytes(cell.lock) + len(cell.data)
    if cell.type is not None:
        size += script_occupied_bytes(cell.type)
    return size


def minimal_cell_capacity(cell: Cell) -> int:
    """Return the minimal capacity, in shannons, *cell* must hold."""

    return occupied_bytes(cell) * SHANNONS_PER_CKB


def is_capacity_sufficient(cell: Cell) -> bool:
    return cell.capacity >= minimal_cell_capacity(cell)


def needs_auxiliary_capacity_cell(cell: Cell) -> bool:
    """Return ``True`` when *cell* has no capacity above its minimum to spare.

    A cell sitting exactly at its minimal capacity cannot absorb a fee
    deduction, so a plain capacity-only cell has to be added to the inputs.
    """

    minimal = minimal_cell_capacity(cell)
    if cell.capacity > minimal:
        return False
    logger.debug(
        "Cell %s holds %d shannons, minimum %d; auxiliary capacity required",
        cell.out_point,
        cell.capacity,
        minimal,
    )
    return True
