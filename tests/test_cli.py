from __future__ import annotations

import json

import pytest

from cellpay import cli
from cellpay.config import CellPayConfig
from cellpay.model import SHANNONS_PER_CKB, pack_token_amount
from cellpay.networks import Network
from cellpay.rpc_client import RPCError
from cellpay.transfers import TransferContext

RECIPIENT_ARGS_HEX = "77" * 20


class StubFeeNode:
    def __init__(self, median: str) -> None:
        self.median = median

    def get_fee_rate_statistics(self):
        return {"mean": self.median, "median": self.median}


class StubCollector:
    def __init__(self, cells, send_error: RPCError | None = None) -> None:
        self.cells = cells
        self.rpc = StubFeeNode("0x7d0")
        self.send_error = send_error
        self.broadcasts: list = []

    def query_cells(self, lock, type_filter=None, capacity_range=None):
        for cell in self.cells:
            if cell.lock != lock:
                continue
            if type_filter == "empty":
                if cell.type is not None or cell.data:
                    continue
            elif type_filter is not None and cell.type != type_filter:
                continue
            yield cell

    def capacity_balance(self, lock) -> int:
        return sum(cell.capacity for cell in self.query_cells(lock))

    def token_balance(self, lock, type_script) -> int:
        return sum(cell.token_amount for cell in self.query_cells(lock, type_script))

    def broadcast(self, sealed) -> str:
        if self.send_error:
            raise self.send_error
        self.broadcasts.append(sealed)
        return sealed.tx_hash_hex


@pytest.fixture()
def cli_config(private_key) -> CellPayConfig:
    return CellPayConfig(
        network=Network.TESTNET,
        rpc_url="http://node",
        indexer_url="http://indexer",
        private_key=private_key,
    )


@pytest.fixture()
def wallet(monkeypatch, make_cell, owner_lock, scripts, cli_config):
    """Route the CLI to an in-memory wallet holding 2 USDI and one recipient ACP cell."""

    recipient = scripts.acp_lock_for(bytes.fromhex(RECIPIENT_ARGS_HEX))
    cells = [
        make_cell(200, owner_lock, scripts.usdi_type, pack_token_amount(2_000_000)),
        make_cell(1000, owner_lock),
        make_cell(142, recipient, scripts.usdi_type, pack_token_amount(0)),
    ]
    collector = StubCollector(cells)
    monkeypatch.setattr(cli, "_config_from_args", lambda args: cli_config)
    monkeypatch.setattr(cli, "_context_from_config", lambda cfg: TransferContext(cfg, collector))
    return collector


def test_transfer_requires_one_recipient_form() -> None:
    parser = cli.build_parser()
    with pytest.raises(SystemExit):
        parser.parse_args(["transfer-to-acp", "--amount", "1"])
    with pytest.raises(SystemExit):
        parser.parse_args(
            ["transfer-to-acp", "--amount", "1", "--to-args", "00", "--to-lock-json", "{}"]
        )


def test_global_options_parse() -> None:
    args = cli.build_parser().parse_args(
        ["--fee-rate", "1500", "--dry-run", "--json", "list-cells", "--lock", "acp", "--type", "usdi"]
    )
    assert args.fee_rate == 1500
    assert args.dry_run and args.as_json
    assert args.lock == "acp"
    assert args.type_filter == "usdi"
    assert args.mainnet is None


def test_dry_run_transfer_prints_json(wallet, capsys) -> None:
    cli.main(
        ["--dry-run", "--json", "transfer-to-acp", "--to-args", RECIPIENT_ARGS_HEX, "--amount", "0.1"]
    )

    payload = json.loads(capsys.readouterr().out)
    assert payload["broadcast"] is False
    assert payload["fee"] > 0
    outputs = payload["transaction"]["outputs_data"]
    assert outputs[1] == "0x" + pack_token_amount(100_000).hex()
    assert wallet.broadcasts == []


def test_broadcast_transfer(wallet, capsys) -> None:
    cli.main(["transfer-to-acp", "--to-args", "0x" + RECIPIENT_ARGS_HEX, "--amount", "1"])

    assert len(wallet.broadcasts) == 1
    assert "broadcast" in capsys.readouterr().out


def test_balance_json(wallet, capsys) -> None:
    cli.main(["--json", "balance"])

    summary = json.loads(capsys.readouterr().out)
    assert summary["network"] == "testnet"
    assert summary["usdi"] == "2"
    assert summary["capacity_ckb"] == "1200"
    assert summary["acp_usdi"] == "0"


def test_missing_recipient_exits_with_error(wallet, capsys) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["transfer-to-acp", "--to-args", "88" * 20, "--amount", "1"])

    assert excinfo.value.code == 1
    assert "error: No ACP cell" in capsys.readouterr().err


def test_invalid_amount_exits_with_error(wallet, capsys) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["transfer-to-acp", "--to-args", RECIPIENT_ARGS_HEX, "--amount", "0.0000001"])

    assert excinfo.value.code == 1
    assert capsys.readouterr().err.startswith("error:")


def test_rpc_rejection_prints_hint(wallet, capsys) -> None:
    wallet.send_error = RPCError(-1104, "PoolRejectedTransactionByMinFeeRate")

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["create-acp-cells", "--count", "1"])

    assert excinfo.value.code == 1
    assert "Hint:" in capsys.readouterr().err


def test_create_acp_cells_default_capacity(wallet, capsys) -> None:
    cli.main(["--dry-run", "--json", "create-acp-cells", "--count", "2"])

    payload = json.loads(capsys.readouterr().out)
    capacities = [int(output["capacity"], 16) for output in payload["transaction"]["outputs"][:2]]
    assert capacities == [14401 * SHANNONS_PER_CKB // 100] * 2


def test_exact_balance_is_not_enough(wallet, capsys) -> None:
    # selection needs strictly more than the amount
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["transfer-to-acp", "--to-args", RECIPIENT_ARGS_HEX, "--amount", "2"])

    assert excinfo.value.code == 1
    assert "error: Insufficient funds" in capsys.readouterr().err
    assert wallet.broadcasts == []


@pytest.mark.parametrize(
    ("flags", "expected"),
    [
        ([], 2000),
        (["--fee-rate", "1500"], 1500),
        (["--min-fee-rate", "3000"], 3000),
        (["--fee-rate", "1500", "--min-fee-rate", "1800"], 1800),
    ],
)
def test_auto_fee_rate(wallet, cli_config, monkeypatch, capsys, flags, expected) -> None:
    monkeypatch.delenv("CELLPAY_MIN_FEE_RATE", raising=False)

    cli.main(["--auto-fee-rate", *flags, "--dry-run", "--json", "create-acp-cells"])

    payload = json.loads(capsys.readouterr().out)
    assert cli_config.fee_rate == expected
    assert payload["fee"] > 0
