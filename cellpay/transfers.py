"""USDI and ACP transfer workflows.

Each workflow walks the same one-way pipeline: select cells, build the
skeleton, pay the fee from the change output, then digest, sign and seal.
Any failure aborts the whole operation before broadcast. Callers that build
several transactions concurrently must partition the owner's cells
themselves; nothing here locks cells between invocations.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal

from .capacity import minimal_cell_capacity, needs_auxiliary_capacity_cell
from .collector import CellCollector
from .config import CellPayConfig
from .fees import pay_fee, transaction_fee
from .keys import KeyService
from .model import (
    Cell,
    CellDep,
    OutPoint,
    Script,
    TransactionSkeleton,
    ckb_to_shannons,
    pack_token_amount,
    total_capacity,
    total_token_amount,
)
from .networks import ScriptConfig
from .selector import (
    NoMatchingCell,
    first_cell,
    select_capacity_cells,
    select_token_cells,
)
from .signing import SealedTransaction, SigningCoordinator, SigningKeyMissing, TransferStage
from .skeleton import build_skeleton

logger = logging.getLogger(__name__)

# ACP lock (55) + sUDT type (65) + sUDT data (16) + capacity (8) = 144 CKB, plus 0.01 for fees.
ACP_DEFAULT_CAPACITY = ckb_to_shannons(Decimal("144.01"))


@dataclass
class TransferResult:
    sealed: SealedTransaction
    fee: int
    tx_hash: str | None = None
    broadcast: bool = False

    def to_dict(self) -> dict:
        return {
            "tx_hash": self.tx_hash or self.sealed.tx_hash_hex,
            "fee": self.fee,
            "broadcast": self.broadcast,
            "transaction": self.sealed.to_dict(),
        }


class TransferContext:
    """Bundle of the collaborators a workflow needs, built once per process."""

    def __init__(
        self,
        config: CellPayConfig,
        collector: CellCollector,
        key_service: KeyService | None = None,
    ) -> None:
        self.config = config
        self.collector = collector
        self.key_service = key_service or KeyService()
        self.coordinator = SigningCoordinator(self.key_service, config.private_key)

    @property
    def scripts(self) -> ScriptConfig:
        return self.config.scripts

    def owner_args(self) -> bytes:
        if not self.config.private_key:
            raise SigningKeyMissing(
                "CKB_SECP256K1_PRIVATE_KEY is not set in the environment variables."
            )
        return self.key_service.derive_lock_args(self.config.private_key)

    def owner_lock(self) -> Script:
        return self.scripts.owner_lock(self.owner_args())

    def owner_acp_lock(self) -> Script:
        return self.scripts.acp_lock_for(self.owner_args())

    def finish(self, skeleton: TransactionSkeleton, *, broadcast: bool) -> TransferResult:
        """Fee, sign and optionally broadcast a freshly built skeleton."""

        logger.info("Stage %s", TransferStage.COMPUTING_FEE.value)
        skeleton, fee = pay_fee(skeleton, self.config.fee_rate)
        logger.info("Fee %d shannons at %d shannons/KB", fee, self.config.fee_rate)

        sealed = self.coordinator.seal(skeleton)
        result = TransferResult(sealed=sealed, fee=fee)
        if broadcast:
            result.tx_hash = self.collector.broadcast(sealed)
            result.broadcast = True
        else:
            logger.info("Dry run: transaction %s not broadcast", sealed.tx_hash_hex)
        return result


def create_acp_cells(
    ctx: TransferContext,
    count: int = 1,
    capacity: int = ACP_DEFAULT_CAPACITY,
    *,
    broadcast: bool = True,
) -> TransferResult:
    """Create *count* empty-balance ACP USDI cells owned by the signing key."""

    if count < 1:
        raise ValueError("count must be at least 1")
    scripts = ctx.scripts
    owner_lock = ctx.owner_lock()
    acp_output = Cell(
        capacity=capacity,
        lock=scripts.acp_lock_for(owner_lock.args),
        type=scripts.usdi_type,
        data=pack_token_amount(0),
    )
    change_template = Cell(capacity=0, lock=owner_lock)

    logger.info("Stage %s", TransferStage.SELECTING_CELLS.value)
    expected = capacity * count
    threshold = expected + minimal_cell_capacity(change_template)
    selection = select_capacity_cells(ctx.collector.query_cells(owner_lock, "empty"), threshold)

    logger.info("Stage %s", TransferStage.BUILDING_SKELETON.value)
    skeleton = build_skeleton(
        selection.cells,
        [acp_output] * count + [change_template],
        [scripts.secp256k1_dep, scripts.usdi_dep],
        signer_lock=owner_lock,
        change_index=count,
    )
    logger.info("Creating %d ACP cells of %d shannons each", count, capacity)
    return ctx.finish(skeleton, broadcast=broadcast)


def transfer_to_acp(
    ctx: TransferContext,
    recipient_lock: Script,
    amount: int,
    *,
    broadcast: bool = True,
) -> TransferResult:
    """Move *amount* USDI units from the signing key into an existing ACP cell."""

    if amount <= 0:
        raise ValueError("amount must be positive")
    scripts = ctx.scripts
    owner_lock = ctx.owner_lock()

    logger.info("Stage %s", TransferStage.SELECTING_CELLS.value)
    selection = select_token_cells(
        ctx.collector.query_cells(owner_lock, scripts.usdi_type), amount
    )
    token_cells = selection.cells
    needs_aux = all(needs_auxiliary_capacity_cell(cell) for cell in token_cells)

    target_cell = first_cell(
        ctx.collector.query_cells(recipient_lock, scripts.usdi_type),
        f"ACP cell for lock args 0x{recipient_lock.args.hex()}",
    )

    token_change = Cell(
        capacity=total_capacity(token_cells),
        lock=owner_lock,
        type=scripts.usdi_type,
        data=pack_token_amount(selection.total - amount),
    )
    target_output = Cell(
        capacity=target_cell.capacity,
        lock=target_cell.lock,
        type=scripts.usdi_type,
        data=pack_token_amount(target_cell.token_amount + amount) + target_cell.data[16:],
    )
    outputs = [token_change, target_output]
    cell_deps = [scripts.secp256k1_dep, scripts.acp_dep, scripts.usdi_dep]
    change_index = 0

    aux_cells: list[Cell] = []
    if needs_aux:
        min_capacity = _auxiliary_min_capacity(
            ctx, token_cells + [target_cell], outputs, cell_deps, owner_lock
        )
        aux_cells.append(
            first_cell(
                ctx.collector.query_cells(owner_lock, "empty", (min_capacity, None)),
                "empty cell with enough capacity",
            )
        )
        logger.info(
            "Token cells are at minimal capacity; adding auxiliary cell %s", aux_cells[0].out_point
        )
        outputs.append(aux_cells[0].as_output())
        change_index = 2

    logger.info("Stage %s", TransferStage.BUILDING_SKELETON.value)
    skeleton = build_skeleton(
        token_cells + aux_cells + [target_cell],
        outputs,
        cell_deps,
        signer_lock=owner_lock,
        change_index=change_index,
    )
    return ctx.finish(skeleton, broadcast=broadcast)


def _auxiliary_min_capacity(
    ctx: TransferContext,
    inputs: list[Cell],
    outputs: list[Cell],
    cell_deps: list[CellDep],
    owner_lock: Script,
) -> int:
    """Smallest empty cell that still covers its own minimum plus the fee.

    The fee is sized on a draft holding a stand-in auxiliary cell; capacities
    are fixed-width, so the real cell yields the same serialized size.
    """

    stand_in = Cell(
        capacity=minimal_cell_capacity(Cell(capacity=0, lock=owner_lock)),
        lock=owner_lock,
        out_point=OutPoint(tx_hash=bytes(32), index=0),
    )
    draft = build_skeleton(
        inputs[:-1] + [stand_in] + inputs[-1:],
        outputs + [stand_in.as_output()],
        cell_deps,
        signer_lock=owner_lock,
        change_index=len(outputs),
    )
    fee = transaction_fee(draft, ctx.config.fee_rate)
    return stand_in.capacity + fee


def transfer_all_from_acp(
    ctx: TransferContext,
    to_lock: Script,
    acp_lock: Script | None = None,
    *,
    broadcast: bool = True,
) -> TransferResult:
    """Sweep every USDI ACP cell owned by the signing key into one output."""

    scripts = ctx.scripts
    source_lock = acp_lock or ctx.owner_acp_lock()

    logger.info("Stage %s", TransferStage.SELECTING_CELLS.value)
    acp_cells = list(ctx.collector.query_cells(source_lock, scripts.usdi_type))
    if not acp_cells:
        raise NoMatchingCell(f"No ACP cell found for lock args 0x{source_lock.args.hex()}")
    token_total = total_token_amount(acp_cells)
    logger.info(
        "Sweeping %d ACP cells holding %d token units and %d shannons",
        len(acp_cells),
        token_total,
        total_capacity(acp_cells),
    )

    logger.info("Stage %s", TransferStage.BUILDING_SKELETON.value)
    output = Cell(
        capacity=0,
        lock=to_lock,
        type=scripts.usdi_type,
        data=pack_token_amount(token_total),
    )
    skeleton = build_skeleton(
        acp_cells,
        [output],
        [scripts.acp_dep, scripts.usdi_dep],
        signer_lock=source_lock,
        change_index=0,
    )
    return ctx.finish(skeleton, broadcast=broadcast)
