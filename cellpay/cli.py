"""Command-line interface for cellpay.

The CLI is a thin façade over :mod:`cellpay.transfers`: configuration is
resolved once, the RPC clients and signing key are wired into a
:class:`~cellpay.transfers.TransferContext`, and each subcommand runs one
workflow.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from decimal import Decimal, InvalidOperation
from typing import Any, Sequence

from .collector import CellCollector
from .config import CellPayConfig, ConfigurationError, load_config, set_default_config_path
from .fees import FeeExceedsChange, format_floors_for_log, select_fee_rate
from .model import (
    Script,
    ckb_to_shannons,
    shannons_to_ckb,
    token_to_units,
    units_to_token,
)
from .rpc_client import CKBRPCClient, RPCError, RPCTransportError, format_rpc_hint
from .selector import InsufficientFunds, NoMatchingCell
from .signing import SigningKeyMissing
from .skeleton import MalformedDraft
from .transfers import (
    ACP_DEFAULT_CAPACITY,
    TransferContext,
    TransferResult,
    create_acp_cells,
    transfer_all_from_acp,
    transfer_to_acp,
)

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class CLIError(RuntimeError):
    """Raised when CLI arguments are invalid."""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="CKB USDI / anyone-can-pay transfer tool")
    parser.add_argument("--config", default=None, help="Path to a YAML config file")
    parser.add_argument("--dotenv", default=None, help="Path to a .env file to read")
    parser.add_argument(
        "--mainnet", action="store_true", default=None, help="Use mainnet scripts and endpoints"
    )
    parser.add_argument(
        "--fee-rate",
        type=int,
        default=None,
        help="Fee rate in shannons/KB (default: config value or 1000)",
    )
    parser.add_argument(
        "--auto-fee-rate",
        action="store_true",
        help="Ask the node for its median fee rate unless --fee-rate is given",
    )
    parser.add_argument(
        "--min-fee-rate",
        type=int,
        default=None,
        help="Lower bound in shannons/KB applied by --auto-fee-rate",
    )
    parser.add_argument(
        "--dry-run", action="store_true", help="Build and sign without broadcasting"
    )
    parser.add_argument("--json", dest="as_json", action="store_true", help="Emit JSON output")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("balance", help="show CKB and USDI balances of the signing key")

    list_parser = subparsers.add_parser("list-cells", help="list live cells of the signing key")
    list_parser.add_argument(
        "--lock",
        choices=("owner", "acp"),
        default="owner",
        help="Which of the key's locks to query (default: owner)",
    )
    list_parser.add_argument(
        "--type",
        dest="type_filter",
        choices=("any", "usdi", "empty"),
        default="any",
        help="Type script filter (default: any)",
    )

    create_parser = subparsers.add_parser(
        "create-acp-cells", help="create empty USDI anyone-can-pay cells for the key"
    )
    create_parser.add_argument("--count", type=int, default=1, help="Number of cells (default: 1)")
    create_parser.add_argument(
        "--capacity",
        default=_plain(shannons_to_ckb(ACP_DEFAULT_CAPACITY)),
        help="Capacity of each cell in CKB (default: 144.01)",
    )

    to_acp_parser = subparsers.add_parser(
        "transfer-to-acp", help="transfer USDI into an existing anyone-can-pay cell"
    )
    _add_lock_arguments(to_acp_parser, "to", "recipient ACP lock args (hex)")
    to_acp_parser.add_argument("--amount", required=True, help="USDI amount, e.g. 0.1")

    sweep_parser = subparsers.add_parser(
        "transfer-all-from-acp", help="sweep every USDI anyone-can-pay cell of the key"
    )
    _add_lock_arguments(sweep_parser, "to", "recipient secp256k1 lock args (hex)")
    sweep_parser.add_argument(
        "--from-acp-args",
        default=None,
        help="Source ACP lock args (default: derived from the signing key)",
    )
    return parser


def _add_lock_arguments(parser: argparse.ArgumentParser, prefix: str, args_help: str) -> None:
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument(f"--{prefix}-args", help=args_help)
    group.add_argument(
        f"--{prefix}-lock-json",
        help='Full lock script as JSON: {"code_hash": ..., "hash_type": ..., "args": ...}',
    )


def _parse_hex_args(raw: str, flag: str) -> bytes:
    text = raw[2:] if raw.startswith(("0x", "0X")) else raw
    try:
        return bytes.fromhex(text)
    except ValueError as exc:
        raise CLIError(f"{flag} must be hex encoded: {raw}") from exc


def _parse_lock_json(raw: str, flag: str) -> Script:
    try:
        payload = json.loads(raw)
        return Script.from_dict(payload)
    except (ValueError, KeyError, TypeError) as exc:
        raise CLIError(f"{flag} is not a valid lock script: {exc}") from exc


def _parse_decimal(value: str, flag: str) -> Decimal:
    try:
        return Decimal(value)
    except InvalidOperation as exc:
        raise CLIError(f"{flag} must be a decimal value, got {value}") from exc


def _plain(value: Decimal) -> str:
    """Render a decimal without exponent or trailing zeros."""

    return format(value.normalize(), "f")


def _config_from_args(args: argparse.Namespace) -> CellPayConfig:
    if args.config:
        set_default_config_path(args.config)
    overrides: dict[str, Any] = {}
    if args.mainnet:
        overrides["mainnet"] = True
    if args.fee_rate is not None:
        overrides["fee_rate"] = args.fee_rate
    return load_config(overrides=overrides, dotenv_path=args.dotenv)


def _context_from_config(config: CellPayConfig) -> TransferContext:
    collector = CellCollector(CKBRPCClient(config.indexer_url), CKBRPCClient(config.rpc_url))
    return TransferContext(config, collector)


def _apply_auto_fee_rate(ctx: TransferContext, args: argparse.Namespace) -> None:
    selection = select_fee_rate(
        ctx.collector.rpc,
        user_fee_rate=args.fee_rate,
        min_fee_rate_floor=args.min_fee_rate,
        fallback_fee_rate=ctx.config.fee_rate,
    )
    logger.info(
        "Using fee rate %d shannons/KB (%s); floors: %s",
        selection.fee_rate,
        selection.source,
        format_floors_for_log(selection.floors_applied),
    )
    ctx.config.fee_rate = selection.fee_rate


def _print_result(result: TransferResult, as_json: bool) -> None:
    if as_json:
        print(json.dumps(result.to_dict(), indent=2))
        return
    status = "broadcast" if result.broadcast else "signed (dry run)"
    print(f"Transaction {result.tx_hash or result.sealed.tx_hash_hex} {status}")
    print(f"  fee: {result.fee} shannons ({_plain(shannons_to_ckb(result.fee))} CKB)")
    skeleton = result.sealed.skeleton
    print(f"  inputs: {len(skeleton.inputs)}  outputs: {len(skeleton.outputs)}")


def cmd_balance(ctx: TransferContext, args: argparse.Namespace) -> None:
    scripts = ctx.scripts
    owner_lock = ctx.owner_lock()
    acp_lock = ctx.owner_acp_lock()
    decimals = scripts.usdi_decimals
    summary = {
        "network": ctx.config.network.value,
        "lock_args": "0x" + owner_lock.args.hex(),
        "capacity_ckb": _plain(shannons_to_ckb(ctx.collector.capacity_balance(owner_lock))),
        "usdi": _plain(
            units_to_token(ctx.collector.token_balance(owner_lock, scripts.usdi_type), decimals)
        ),
        "acp_capacity_ckb": _plain(shannons_to_ckb(ctx.collector.capacity_balance(acp_lock))),
        "acp_usdi": _plain(
            units_to_token(ctx.collector.token_balance(acp_lock, scripts.usdi_type), decimals)
        ),
    }
    if args.as_json:
        print(json.dumps(summary, indent=2))
        return
    print(f"Network: {summary['network']}  lock args: {summary['lock_args']}")
    print(f"  secp256k1 lock: {summary['capacity_ckb']} CKB, {summary['usdi']} USDI")
    print(f"  ACP lock:       {summary['acp_capacity_ckb']} CKB, {summary['acp_usdi']} USDI")


def cmd_list_cells(ctx: TransferContext, args: argparse.Namespace) -> None:
    lock = ctx.owner_acp_lock() if args.lock == "acp" else ctx.owner_lock()
    type_filter: Any = None
    if args.type_filter == "usdi":
        type_filter = ctx.scripts.usdi_type
    elif args.type_filter == "empty":
        type_filter = "empty"
    cells = list(ctx.collector.query_cells(lock, type_filter))
    if args.as_json:
        print(
            json.dumps(
                [
                    {
                        "out_point": str(cell.out_point),
                        "capacity": cell.capacity,
                        "type": cell.type.to_dict() if cell.type else None,
                        "data": "0x" + cell.data.hex(),
                    }
                    for cell in cells
                ],
                indent=2,
            )
        )
        return
    if not cells:
        print("No matching cells found.")
        return
    print(f"Found {len(cells)} cells")
    print(" idx |        capacity (CKB) | type | out point")
    print("-----+-----------------------+------+-------------------------------")
    for index, cell in enumerate(cells):
        kind = "udt" if cell.type is not None else "-"
        print(
            f"{index:>4} | {_plain(shannons_to_ckb(cell.capacity)):>21} | {kind:^4} | {cell.out_point}"
        )


def _recipient_lock(ctx: TransferContext, args: argparse.Namespace, *, acp: bool) -> Script:
    if args.to_lock_json:
        return _parse_lock_json(args.to_lock_json, "--to-lock-json")
    lock_args = _parse_hex_args(args.to_args, "--to-args")
    if acp:
        return ctx.scripts.acp_lock_for(lock_args)
    return ctx.scripts.owner_lock(lock_args)


def cmd_create_acp_cells(ctx: TransferContext, args: argparse.Namespace) -> None:
    if args.count < 1:
        raise CLIError("--count must be at least 1")
    try:
        capacity = ckb_to_shannons(_parse_decimal(args.capacity, "--capacity"))
    except ValueError as exc:
        raise CLIError(str(exc)) from exc
    result = create_acp_cells(ctx, args.count, capacity, broadcast=not args.dry_run)
    _print_result(result, args.as_json)


def cmd_transfer_to_acp(ctx: TransferContext, args: argparse.Namespace) -> None:
    recipient = _recipient_lock(ctx, args, acp=True)
    try:
        amount = token_to_units(
            _parse_decimal(args.amount, "--amount"), ctx.scripts.usdi_decimals
        )
    except ValueError as exc:
        raise CLIError(str(exc)) from exc
    if amount <= 0:
        raise CLIError("--amount must be positive")
    result = transfer_to_acp(ctx, recipient, amount, broadcast=not args.dry_run)
    _print_result(result, args.as_json)


def cmd_transfer_all_from_acp(ctx: TransferContext, args: argparse.Namespace) -> None:
    recipient = _recipient_lock(ctx, args, acp=False)
    source = None
    if args.from_acp_args:
        source = ctx.scripts.acp_lock_for(_parse_hex_args(args.from_acp_args, "--from-acp-args"))
    result = transfer_all_from_acp(ctx, recipient, source, broadcast=not args.dry_run)
    _print_result(result, args.as_json)


COMMANDS = {
    "balance": cmd_balance,
    "list-cells": cmd_list_cells,
    "create-acp-cells": cmd_create_acp_cells,
    "transfer-to-acp": cmd_transfer_to_acp,
    "transfer-all-from-acp": cmd_transfer_all_from_acp,
}


def main(argv: Sequence[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    try:
        handler = COMMANDS.get(args.command)
        if handler is None:  # pragma: no cover - argparse enforces choices
            raise CLIError(f"Unknown command: {args.command}")
        ctx = _context_from_config(_config_from_args(args))
        if args.auto_fee_rate:
            _apply_auto_fee_rate(ctx, args)
        handler(ctx, args)
    except KeyboardInterrupt:  # pragma: no cover - interactive use
        logger.info("Interrupted by user")
    except RPCError as exc:
        hint = format_rpc_hint(exc)
        parser.exit(1, f"error: {exc}\n" + (f"Hint: {hint}\n" if hint else ""))
    except (
        CLIError,
        ConfigurationError,
        RPCTransportError,
        InsufficientFunds,
        NoMatchingCell,
        MalformedDraft,
        FeeExceedsChange,
        SigningKeyMissing,
        ValueError,
    ) as exc:
        parser.exit(1, f"error: {exc}\n")


if __name__ == "__main__":
    main(sys.argv[1:])
