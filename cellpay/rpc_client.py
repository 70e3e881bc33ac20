"""JSON-RPC client for CKB nodes and indexers.

The client is intentionally thin: each helper maps directly to an RPC method
and returns the parsed JSON result. Cell paging and model conversion live in
:mod:`cellpay.collector`.
"""

from __future__ import annotations

import json
import logging
import uuid
from typing import Any, Dict, Optional

import requests
from requests import RequestException, Response

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30


class RPCError(RuntimeError):
    """Raised when the node responds with a JSON-RPC error object."""

    def __init__(self, code: int, message: str, data: Any = None) -> None:
        super().__init__(f"RPC error {code}: {message}")
        self.code = code
        self.message = message
        self.data = data


class RPCTransportError(RuntimeError):
    """Raised when the RPC endpoint is unreachable or returns malformed data."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def format_rpc_hint(error_obj: dict[str, Any] | RPCError | None) -> str | None:
    """Return a remediation hint for well-known ``send_transaction`` rejections."""

    if error_obj is None:
        return None

    message = ""
    if isinstance(error_obj, RPCError):
        message = f"{error_obj.message} {error_obj.data or ''}"
    elif isinstance(error_obj, dict):
        message = f"{error_obj.get('message', '')} {error_obj.get('data', '')}"

    if "PoolRejectedTransactionByMinFeeRate" in message:
        return "The fee is below the node's min_fee_rate; retry with a higher --fee-rate."
    if "PoolRejectedDuplicatedTransaction" in message:
        return "The node already has this transaction in its pool."
    if "Dead(OutPoint" in message or "Unknown(OutPoint" in message:
        return (
            "An input cell was already spent or is unknown to the node. Wait for the indexer "
            "to catch up and rebuild the transaction from freshly queried cells."
        )
    if "InsufficientCellCapacity" in message:
        return "An output holds less than its minimal occupied capacity."
    if "ValidationFailure" in message:
        return "A lock or type script rejected the transaction; check the key, amounts and cell deps."
    return None


class CKBRPCClient:
    """Typed JSON-RPC client for a CKB node or a standalone indexer."""

    def __init__(self, url: str, *, timeout: float = DEFAULT_TIMEOUT) -> None:
        self.url = url
        self.timeout = timeout
        self._session = requests.Session()

    def call(self, method: str, params: Optional[list[Any]] = None) -> Any:
        """Perform a JSON-RPC request."""

        payload = {
            "jsonrpc": "2.0",
            "id": str(uuid.uuid4()),
            "method": method,
            "params": params or [],
        }
        logger.debug("RPC call %s params=%s", method, params)
        try:
            response = self._session.post(
                self.url,
                data=json.dumps(payload),
                headers={"content-type": "application/json"},
                timeout=self.timeout,
            )
        except RequestException as exc:
            logger.error(
                "RPC connection failed: %s",
                exc,
                exc_info=logger.isEnabledFor(logging.DEBUG),
            )
            raise RPCTransportError(
                f"RPC connection to {self.url} failed. Ensure the node is reachable and "
                "CKB_RPC_URL/CKB_INDEXER_URL (or ~/.cellpay.yaml) point to the right endpoints."
            ) from exc
        try:
            self._raise_for_status(response)
        except requests.HTTPError as exc:
            raise RPCTransportError(
                "RPC server returned an HTTP error; check the endpoint URL.",
                status_code=response.status_code,
            ) from exc
        try:
            result = response.json()
        except ValueError as exc:
            logger.debug("RPC JSON parse error: %s", response.text, exc_info=True)
            raise RPCTransportError("RPC server returned malformed JSON") from exc
        if result.get("error"):
            error = result["error"]
            raise RPCError(
                error.get("code", -1), error.get("message", "unknown"), error.get("data")
            )
        return result.get("result")

    def _raise_for_status(self, response: Response) -> None:
        if not response.ok:
            logger.error("RPC HTTP error %s from %s", response.status_code, response.url)
            logger.error("RPC error body: %s", response.text)
        response.raise_for_status()

    # Convenience wrappers -------------------------------------------------

    def get_tip_block_number(self) -> int:
        return int(self.call("get_tip_block_number"), 16)

    def get_transaction(self, tx_hash: str) -> Dict[str, Any] | None:
        return self.call("get_transaction", [tx_hash])

    def get_fee_rate_statistics(self, target: int | None = None) -> Dict[str, Any] | None:
        params: list[Any] = [] if target is None else [hex(target)]
        return self.call("get_fee_rate_statistics", params)

    def get_cells(
        self,
        search_key: Dict[str, Any],
        order: str = "asc",
        limit: int = 100,
        after_cursor: str | None = None,
    ) -> Dict[str, Any]:
        return self.call("get_cells", [search_key, order, hex(limit), after_cursor])

    def send_transaction(
        self, transaction: Dict[str, Any], outputs_validator: str = "passthrough"
    ) -> str:
        return self.call("send_transaction", [transaction, outputs_validator])
