"""Shared configuration loader for cellpay."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping
from urllib.parse import urlparse

import yaml
from dotenv import dotenv_values

from .fees import DEFAULT_FEE_RATE
from .keys import InvalidPrivateKey, parse_private_key
from .networks import Network, ScriptConfig, scripts_for


class ConfigurationError(RuntimeError):
    """Raised when configuration is invalid."""


DEFAULT_CONFIG_PATH = Path.home() / ".cellpay.yaml"
DEFAULT_DOTENV_PATH = Path(".env")
_CONFIG_PATH_OVERRIDE: Path | None = None

DEFAULT_ENDPOINTS = {
    Network.TESTNET: ("https://testnet.ckb.dev/rpc", "https://testnet.ckb.dev/indexer"),
    Network.MAINNET: ("https://mainnet.ckb.dev/rpc", "https://mainnet.ckb.dev/indexer"),
}


@dataclass
class CellPayConfig:
    """Process-wide settings, resolved once and passed to components."""

    network: Network
    rpc_url: str
    indexer_url: str
    private_key: bytes | None = None
    fee_rate: int = DEFAULT_FEE_RATE

    @property
    def scripts(self) -> ScriptConfig:
        return scripts_for(self.network)

    @property
    def is_mainnet(self) -> bool:
        return self.network is Network.MAINNET


def set_default_config_path(path: str | Path | None) -> None:
    """Remember a user-supplied config path for future loads."""

    global _CONFIG_PATH_OVERRIDE
    _CONFIG_PATH_OVERRIDE = Path(path).expanduser() if path else None


def _load_config_file(path: Path, *, required: bool) -> dict[str, Any]:
    if not path.exists():
        if required:
            raise ConfigurationError(f"Config file not found: {path}")
        return {}

    try:
        loaded = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as exc:  # pragma: no cover - delegated to PyYAML
        raise ConfigurationError(f"Invalid YAML in config file {path}: {exc}") from exc

    if not isinstance(loaded, dict):
        raise ConfigurationError(f"Expected {path} to contain a YAML object with a 'node' section")
    return loaded


def _coerce_bool(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"1", "true", "yes", "y", "on"}:
            return True
        if normalized in {"0", "false", "no", "n", "off"}:
            return False
    return None


def _coerce_int(raw: Any, *, source: str) -> int | None:
    if raw is None:
        return None
    try:
        return int(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid integer in {source}: {raw}") from exc


def _first_value(*values: Any, default: Any = None) -> Any:
    for value in values:
        if value is not None and value != "":
            return value
    return default


def _validate_url(raw: str, *, label: str) -> str:
    parsed = urlparse(raw)
    if parsed.scheme not in {"http", "https"} or not parsed.hostname:
        raise ConfigurationError(f"Invalid {label} URL: {raw}")
    return raw.rstrip("/")


def load_config(
    *,
    config_path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
    dotenv_path: str | Path | None = None,
) -> CellPayConfig:
    """Load configuration from overrides, environment, ``.env`` and YAML."""

    env_map = os.environ if env is None else env
    explicit_path = config_path is not None or _CONFIG_PATH_OVERRIDE is not None
    path = (
        Path(config_path).expanduser()
        if config_path is not None
        else _CONFIG_PATH_OVERRIDE or DEFAULT_CONFIG_PATH
    )

    file_config = _load_config_file(path, required=explicit_path)
    node_section = file_config.get("node", {})
    if not isinstance(node_section, dict):
        raise ConfigurationError(f"Expected 'node' to be a mapping in {path}")

    # The working directory's .env is only consulted for the real process environment.
    dotenv_map: Mapping[str, str | None] = {}
    if dotenv_path is not None:
        dotenv_file = Path(dotenv_path).expanduser()
        if not dotenv_file.exists():
            raise ConfigurationError(f"Dotenv file not found: {dotenv_file}")
        dotenv_map = dotenv_values(dotenv_file)
    elif env is None and DEFAULT_DOTENV_PATH.exists():
        dotenv_map = dotenv_values(DEFAULT_DOTENV_PATH)

    override_map = dict(overrides or {})

    def lookup(env_name: str, override_key: str, file_key: str) -> Any:
        return _first_value(
            override_map.get(override_key),
            env_map.get(env_name),
            dotenv_map.get(env_name),
            node_section.get(file_key),
        )

    raw_mainnet = lookup("IS_MAINNET", "mainnet", "mainnet")
    is_mainnet = _coerce_bool(raw_mainnet) if raw_mainnet is not None else False
    if is_mainnet is None:
        raise ConfigurationError(f"Invalid boolean for IS_MAINNET: {raw_mainnet}")
    network = Network.MAINNET if is_mainnet else Network.TESTNET
    default_rpc, default_indexer = DEFAULT_ENDPOINTS[network]

    rpc_url = _validate_url(
        _first_value(lookup("CKB_RPC_URL", "rpc_url", "rpc_url"), default=default_rpc),
        label="RPC",
    )
    indexer_url = _validate_url(
        _first_value(
            lookup("CKB_INDEXER_URL", "indexer_url", "indexer_url"), default=default_indexer
        ),
        label="indexer",
    )

    fee_rate = _first_value(
        _coerce_int(lookup("CKB_FEE_RATE", "fee_rate", "fee_rate"), source="fee_rate"),
        default=DEFAULT_FEE_RATE,
    )
    if fee_rate <= 0:
        raise ConfigurationError(f"Fee rate must be positive, got {fee_rate}")

    raw_key = lookup("CKB_SECP256K1_PRIVATE_KEY", "private_key", "private_key")
    private_key = None
    if raw_key:
        try:
            private_key = parse_private_key(str(raw_key))
        except InvalidPrivateKey as exc:
            raise ConfigurationError(f"Invalid CKB_SECP256K1_PRIVATE_KEY: {exc}") from exc

    return CellPayConfig(
        network=network,
        rpc_url=rpc_url,
        indexer_url=indexer_url,
        private_key=private_key,
        fee_rate=fee_rate,
    )
