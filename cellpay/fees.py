"""Fee rate selection and fee payment for CKB transactions.

Fee rates are expressed in shannons per 1000 bytes of serialized transaction,
the unit used by CKB nodes for ``min_fee_rate``.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Tuple

from .capacity import minimal_cell_capacity
from .model import TransactionSkeleton
from .molecule import serialized_size

logger = logging.getLogger(__name__)

DEFAULT_FEE_RATE = 1000
NODE_MIN_FEE_RATE = 1000
ENV_MIN_FEE_RATE_FLOOR = "CELLPAY_MIN_FEE_RATE"
ENV_FALLBACK_FEE_RATE = "CELLPAY_FALLBACK_FEE_RATE"


class FeeExceedsChange(RuntimeError):
    """Raised when the change output cannot cover the transaction fee."""

    def __init__(self, fee: int, change_capacity: int, minimal_capacity: int) -> None:
        super().__init__(
            f"Fee {fee} shannons exceeds the spendable change: output holds "
            f"{change_capacity} shannons and must keep {minimal_capacity}"
        )
        self.fee = fee
        self.change_capacity = change_capacity
        self.minimal_capacity = minimal_capacity


def calculate_fee(size: int, fee_rate: int) -> int:
    """Return ``ceil(size * fee_rate / 1000)`` without floating point."""

    base = size * fee_rate
    fee, remainder = divmod(base, 1000)
    if remainder:
        fee += 1
    return fee


def transaction_fee(skeleton: TransactionSkeleton, fee_rate: int) -> int:
    """Fee for *skeleton* as currently serialized.

    The skeleton must still carry its signature placeholder so the size matches
    the sealed transaction. Capacities are fixed-width, so deducting the fee
    later does not change the size.
    """

    size = serialized_size(skeleton)
    fee = calculate_fee(size, fee_rate)
    logger.debug("Transaction size %d bytes at %d shannons/KB -> fee %d", size, fee_rate, fee)
    return fee


def pay_fee(skeleton: TransactionSkeleton, fee_rate: int) -> Tuple[TransactionSkeleton, int]:
    """Return a copy of *skeleton* with the fee taken from its change output."""

    fee = transaction_fee(skeleton, fee_rate)
    change = skeleton.change_output
    minimal = minimal_cell_capacity(change)
    if change.capacity - fee < minimal:
        logger.warning(
            "Change output #%d holds %d shannons; fee %d would leave less than %d",
            skeleton.change_index,
            change.capacity,
            fee,
            minimal,
        )
        raise FeeExceedsChange(fee, change.capacity, minimal)

    patched = skeleton.with_output(skeleton.change_index, change.with_capacity(change.capacity - fee))
    return patched, fee


@dataclass
class FeeSelectionResult:
    """Container for fee-rate decisions."""

    fee_rate: int
    source: str
    floors_applied: list[Tuple[str, int]]
    fee: int | None = None
    size: int | None = None

    def with_size(self, size: int) -> "FeeSelectionResult":
        return FeeSelectionResult(
            fee_rate=self.fee_rate,
            source=self.source,
            floors_applied=self.floors_applied,
            fee=calculate_fee(size, self.fee_rate),
            size=size,
        )


def _extract_statistics_rate(stats: Dict[str, Any] | None) -> int | None:
    """Return the median rate from a ``get_fee_rate_statistics`` response."""

    if not stats:
        return None
    raw = stats.get("median") or stats.get("mean")
    if raw is None:
        return None
    try:
        return int(raw, 16) if isinstance(raw, str) else int(raw)
    except (TypeError, ValueError):
        logger.debug("Unable to parse fee rate statistics: %s", stats)
        return None


def _env_override(name: str) -> int | None:
    raw = os.environ.get(name)
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        logger.warning("Invalid integer in %s=%s; ignoring", name, raw)
        return None


def select_fee_rate(
    rpc_client: Any,
    *,
    user_fee_rate: int | None = None,
    min_fee_rate_floor: int | None = None,
    max_fee: int | None = None,
    tx_size_estimate: int | None = None,
    fallback_fee_rate: int | None = None,
) -> FeeSelectionResult:
    """Select a fee rate that never drops below the node's relay floor."""

    floor_candidates: list[Tuple[str, int]] = [("node_min_fee_rate", NODE_MIN_FEE_RATE)]
    for label, raw in (
        ("env", _env_override(ENV_MIN_FEE_RATE_FLOOR)),
        ("cli_floor", min_fee_rate_floor),
    ):
        if raw is not None:
            floor_candidates.append((label, int(raw)))

    floor_value = max(rate for _, rate in floor_candidates)
    floors_applied = [(label, rate) for label, rate in floor_candidates if rate == floor_value]

    fee_rate = None
    source = "unknown"

    if user_fee_rate is not None:
        fee_rate = int(user_fee_rate)
        source = "user"
    elif rpc_client is not None:
        try:
            fee_rate = _extract_statistics_rate(rpc_client.get_fee_rate_statistics())
        except Exception as exc:  # pragma: no cover - RPC errors vary
            logger.info("get_fee_rate_statistics unavailable: %s", exc)
        if fee_rate is not None:
            source = "fee_rate_statistics[median]"

    if fee_rate is None:
        fee_rate = int(
            _env_override(ENV_FALLBACK_FEE_RATE)
            or fallback_fee_rate
            or DEFAULT_FEE_RATE
        )
        source = "fallback"

    if fee_rate < floor_value:
        logger.debug("Applying fee floor %d shannons/KB over %d", floor_value, fee_rate)
        fee_rate = floor_value

    selection = FeeSelectionResult(fee_rate=fee_rate, source=source, floors_applied=floors_applied)

    if tx_size_estimate:
        selection = selection.with_size(tx_size_estimate)

    if max_fee is not None and selection.fee is not None and selection.fee > max_fee:
        raise ValueError(f"Computed fee {selection.fee} shannons exceeds max-fee {max_fee}")

    return selection


def format_floors_for_log(floors: Iterable[Tuple[str, int]]) -> str:
    entries = [f"{label}={rate} shannons/KB" for label, rate in floors]
    return ", ".join(entries) if entries else "none"
