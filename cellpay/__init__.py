"""Cell-model (CKB) transaction assembly for USDI and anyone-can-pay cells."""

from .capacity import minimal_cell_capacity, needs_auxiliary_capacity_cell
from .collector import CellCollector
from .config import CellPayConfig, ConfigurationError, load_config
from .fees import FeeExceedsChange, calculate_fee, pay_fee, select_fee_rate
from .keys import KeyService
from .model import (
    Cell,
    CellDep,
    OutPoint,
    Script,
    TransactionSkeleton,
    pack_token_amount,
    unpack_token_amount,
)
from .networks import Network, ScriptConfig, scripts_for
from .rpc_client import CKBRPCClient, RPCError, RPCTransportError
from .selector import (
    CellSelector,
    InsufficientFunds,
    InsufficientToken,
    NoMatchingCell,
    select_capacity_cells,
    select_token_cells,
)
from .signing import SealedTransaction, SigningCoordinator, SigningKeyMissing, TransferStage
from .skeleton import MalformedDraft, build_skeleton
from .transfers import (
    TransferContext,
    TransferResult,
    create_acp_cells,
    transfer_all_from_acp,
    transfer_to_acp,
)

__all__ = [
    "Cell",
    "CellDep",
    "OutPoint",
    "Script",
    "TransactionSkeleton",
    "pack_token_amount",
    "unpack_token_amount",
    "CellSelector",
    "select_capacity_cells",
    "select_token_cells",
    "minimal_cell_capacity",
    "needs_auxiliary_capacity_cell",
    "build_skeleton",
    "calculate_fee",
    "pay_fee",
    "select_fee_rate",
    "KeyService",
    "SigningCoordinator",
    "SealedTransaction",
    "TransferStage",
    "CellCollector",
    "CKBRPCClient",
    "CellPayConfig",
    "load_config",
    "Network",
    "ScriptConfig",
    "scripts_for",
    "TransferContext",
    "TransferResult",
    "create_acp_cells",
    "transfer_to_acp",
    "transfer_all_from_acp",
    "InsufficientFunds",
    "InsufficientToken",
    "NoMatchingCell",
    "MalformedDraft",
    "FeeExceedsChange",
    "SigningKeyMissing",
    "ConfigurationError",
    "RPCError",
    "RPCTransportError",
]
