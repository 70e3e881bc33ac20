"""Compose inputs, outputs and deps into a transaction skeleton."""

from __future__ import annotations

import logging
from typing import Sequence

from .capacity import is_capacity_sufficient, minimal_cell_capacity
from .model import Cell, CellDep, Script, TransactionSkeleton
from .molecule import placeholder_witness

logger = logging.getLogger(__name__)


class MalformedDraft(RuntimeError):
    """Raised when inputs and outputs cannot form a consistent transaction."""


def order_signer_group_first(inputs: Sequence[Cell], signer_lock: Script) -> list[Cell]:
    """Move inputs locked by *signer_lock* to the front, keeping relative order."""

    signer_cells = [cell for cell in inputs if cell.lock == signer_lock]
    other_cells = [cell for cell in inputs if cell.lock != signer_lock]
    return signer_cells + other_cells


def build_skeleton(
    inputs: Sequence[Cell],
    outputs: Sequence[Cell],
    cell_deps: Sequence[CellDep],
    *,
    signer_lock: Script,
    change_index: int,
) -> TransactionSkeleton:
    """Return a draft whose change output balances capacity exactly.

    The capacity of ``outputs[change_index]`` is ignored and replaced with
    whatever the inputs hold beyond the other outputs, so the draft carries a
    zero fee until :func:`cellpay.fees.pay_fee` deducts it. Witness slot 0
    holds a signature-sized placeholder for the signer's lock group, which is
    moved to the front of the inputs.
    """

    if not inputs:
        raise MalformedDraft("A transaction needs at least one input")
    if not outputs:
        raise MalformedDraft("A transaction needs at least one output")
    if not 0 <= change_index < len(outputs):
        raise MalformedDraft(
            f"Change index {change_index} is out of range for {len(outputs)} outputs"
        )
    for cell in inputs:
        if cell.out_point is None:
            raise MalformedDraft("Every input must reference a live cell out point")

    ordered_inputs = order_signer_group_first(inputs, signer_lock)
    if ordered_inputs[0].lock != signer_lock:
        raise MalformedDraft("No input is locked by the signing key")

    input_capacity = sum(cell.capacity for cell in ordered_inputs)
    fixed_capacity = sum(
        cell.capacity for index, cell in enumerate(outputs) if index != change_index
    )
    change_capacity = input_capacity - fixed_capacity
    if change_capacity < 0:
        raise MalformedDraft(
            f"Outputs need {fixed_capacity} shannons but inputs only hold {input_capacity}"
        )

    built_outputs = [cell.as_output() for cell in outputs]
    built_outputs[change_index] = built_outputs[change_index].with_capacity(change_capacity)

    for index, cell in enumerate(built_outputs):
        if index == change_index:
            continue
        if not is_capacity_sufficient(cell):
            raise MalformedDraft(
                f"Output #{index} holds {cell.capacity} shannons, below its minimum "
                f"of {minimal_cell_capacity(cell)}"
            )

    witnesses = [placeholder_witness()] + [b""] * (len(ordered_inputs) - 1)

    logger.debug(
        "Built skeleton: %d inputs, %d outputs, %d deps, change #%d=%d shannons",
        len(ordered_inputs),
        len(built_outputs),
        len(cell_deps),
        change_index,
        change_capacity,
    )
    return TransactionSkeleton(
        inputs=tuple(ordered_inputs),
        outputs=tuple(built_outputs),
        cell_deps=tuple(cell_deps),
        witnesses=tuple(witnesses),
        signer_lock=signer_lock,
        change_index=change_index,
    )
