"""Canonical script identities and cell deps per network.

Values mirror the public lumos ``MAINNET``/``TESTNET`` predefined configs for
the system scripts and the USDI sUDT deployments.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

from .model import CellDep, OutPoint, Script


class Network(enum.Enum):
    TESTNET = "testnet"
    MAINNET = "mainnet"


@dataclass(frozen=True)
class ScriptConfig:
    """Lock and type script templates (empty args) plus their deps."""

    network: Network
    secp256k1_lock: Script
    secp256k1_dep: CellDep
    acp_lock: Script
    acp_dep: CellDep
    usdi_type: Script
    usdi_dep: CellDep
    usdi_decimals: int = 6

    def owner_lock(self, lock_args: bytes) -> Script:
        return self.secp256k1_lock.with_args(lock_args)

    def acp_lock_for(self, lock_args: bytes) -> Script:
        return self.acp_lock.with_args(lock_args)


def _h(value: str) -> bytes:
    return bytes.fromhex(value[2:])


def _dep(tx_hash: str, dep_type: str, index: int = 0) -> CellDep:
    return CellDep(out_point=OutPoint(tx_hash=_h(tx_hash), index=index), dep_type=dep_type)


SECP256K1_BLAKE160_CODE_HASH = "0x9bd7e06f3ecf4be0f2fcd2188b23f1b9fcc88e5d4b65a8637b17723bbda3cce8"

MAINNET_SCRIPTS = ScriptConfig(
    network=Network.MAINNET,
    secp256k1_lock=Script(code_hash=_h(SECP256K1_BLAKE160_CODE_HASH), hash_type="type"),
    secp256k1_dep=_dep(
        "0x71a7ba8fc96349fea0ed3a5c47992e3b4084b031a42264a018e0072e8172e46c", "dep_group"
    ),
    acp_lock=Script(
        code_hash=_h("0xd369597ff47f29fbc0d47d2e3775370d1250b85140c670e4718af712983a2354"),
        hash_type="type",
    ),
    acp_dep=_dep(
        "0x4153a2014952d7cac45f285ce9a7c5c0c0e1b21f2d378b82ac1433cb11c25c4d", "dep_group"
    ),
    usdi_type=Script(
        code_hash=_h("0xbfa35a9c38a676682b65ade8f02be164d48632281477e36f8dc2f41f79e56bfc"),
        hash_type="type",
        args=_h("0xd591ebdc69626647e056e13345fd830c8b876bb06aa07ba610479eb77153ea9f"),
    ),
    usdi_dep=_dep("0xf6a5eef65101899db9709c8de1cc28f23c1bee90d857ebe176f6647ef109e20d", "code"),
)

TESTNET_SCRIPTS = ScriptConfig(
    network=Network.TESTNET,
    secp256k1_lock=Script(code_hash=_h(SECP256K1_BLAKE160_CODE_HASH), hash_type="type"),
    secp256k1_dep=_dep(
        "0xf8de3bb47d055cdf460d93a2a6e1b05f7432f9777c8c474abf4eec1d4aee5d37", "dep_group"
    ),
    acp_lock=Script(
        code_hash=_h("0x3419a1c09eb2567f6552ee7a8ecffd64155cffe0f1796e6e61ec088d740c1356"),
        hash_type="type",
    ),
    acp_dep=_dep(
        "0xec26b0f85ed839ece5f11c4c4e837ec359f5adc4420410f6453b1f6b60fb96a6", "dep_group"
    ),
    usdi_type=Script(
        code_hash=_h("0xcc9dc33ef234e14bc788c43a4848556a5fb16401a04662fc55db9bb201987037"),
        hash_type="type",
        args=_h("0x71fd1985b2971a9903e4d8ed0d59e6710166985217ca0681437883837b86162f"),
    ),
    usdi_dep=_dep("0xaec423c2af7fe844b476333190096b10fc5726e6d9ac58a9b71f71ffac204fee", "code"),
)


def scripts_for(network: Network) -> ScriptConfig:
    return MAINNET_SCRIPTS if network is Network.MAINNET else TESTNET_SCRIPTS
