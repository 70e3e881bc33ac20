"""Lazy cell queries and broadcast on top of the CKB RPC clients."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterator, Literal, Tuple, Union

from .model import Cell, Script
from .rpc_client import CKBRPCClient, RPCError, format_rpc_hint
from .signing import SealedTransaction

logger = logging.getLogger(__name__)

TypeFilter = Union[Script, Literal["empty"], None]
CapacityRange = Tuple[int, int | None]

DEFAULT_PAGE_SIZE = 100
# Exclusive upper bound used when a capacity range is open-ended.
_CAPACITY_UPPER_BOUND = 2**64 - 1


def build_search_key(
    lock: Script,
    type_filter: TypeFilter = None,
    capacity_range: CapacityRange | None = None,
) -> Dict[str, Any]:
    """Return an indexer ``get_cells`` search key for a lock-script query."""

    filters: Dict[str, Any] = {}
    if type_filter == "empty":
        filters["script_len_range"] = ["0x0", "0x1"]
        filters["output_data_len_range"] = ["0x0", "0x1"]
    elif type_filter is not None:
        filters["script"] = type_filter.to_dict()
    if capacity_range is not None:
        low, high = capacity_range
        filters["output_capacity_range"] = [
            hex(low),
            hex(high if high is not None else _CAPACITY_UPPER_BOUND),
        ]
    return {
        "script": lock.to_dict(),
        "script_type": "lock",
        "script_search_mode": "exact",
        "filter": filters or None,
    }


class CellCollector:
    """Chain query service: paged live-cell iteration and broadcast."""

    def __init__(
        self,
        indexer: CKBRPCClient,
        rpc: CKBRPCClient | None = None,
        *,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        self.indexer = indexer
        self.rpc = rpc or indexer
        self.page_size = page_size

    def query_cells(
        self,
        lock: Script,
        type_filter: TypeFilter = None,
        capacity_range: CapacityRange | None = None,
    ) -> Iterator[Cell]:
        """Yield live cells matching the filters, fetching pages on demand."""

        search_key = build_search_key(lock, type_filter, capacity_range)
        cursor: str | None = None
        while True:
            page = self.indexer.get_cells(search_key, "asc", self.page_size, cursor)
            objects = (page or {}).get("objects") or []
            logger.debug("get_cells returned %d objects (cursor=%s)", len(objects), cursor)
            for item in objects:
                yield Cell.from_indexer(item)
            if len(objects) < self.page_size:
                return
            cursor = page.get("last_cursor")
            if not cursor:
                return

    def capacity_balance(self, lock: Script) -> int:
        return sum(cell.capacity for cell in self.query_cells(lock))

    def token_balance(self, lock: Script, token_type: Script) -> int:
        return sum(cell.token_amount for cell in self.query_cells(lock, token_type))

    def broadcast(self, sealed: SealedTransaction) -> str:
        """Send *sealed* to the node and return the transaction hash it reports."""

        try:
            tx_hash = self.rpc.send_transaction(sealed.to_dict(), "passthrough")
        except RPCError as exc:
            hint = format_rpc_hint(exc)
            logger.error("Broadcast of %s failed: %s", sealed.tx_hash_hex, exc)
            if hint:
                logger.error("Hint: %s", hint)
            raise
        if tx_hash != sealed.tx_hash_hex:
            logger.warning(
                "Node reported tx hash %s, expected %s", tx_hash, sealed.tx_hash_hex
            )
        logger.info("Broadcasted transaction %s", tx_hash)
        return tx_hash
