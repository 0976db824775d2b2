"""Distributor configuration.

Non-secret parameters live in config/distributor_params.json. Secrets and
per-deployment overrides come from the environment, optionally seeded from
a .env file:

    DISTRIBUTOR_PRINCIPAL   initial principal address
    DISTRIBUTOR_DATA_DIR    directory holding events.jsonl
    RPC_URL                 Ethereum RPC endpoint for anchoring
    PRIVATE_KEY             signing key for anchoring
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

from distributor.models.account import NULL_ACCOUNT, normalize_account

PARAMS_FILE = "distributor_params.json"


@dataclass(frozen=True)
class DistributorConfig:
    """Resolved configuration for one distributor deployment."""
    token_name: str
    token_symbol: str
    decimals: int
    total_supply_units: int
    principal: str
    data_dir: Path
    chain_id: int = 11155111
    anchor_gas: int = 30_000
    anchor_gas_price_gwei: str = "2"
    explorer_base: str = "https://sepolia.etherscan.io/tx/"
    rpc_url: Optional[str] = None
    private_key: Optional[str] = None

    @property
    def total_supply(self) -> int:
        """Total supply in base units."""
        return self.total_supply_units * 10**self.decimals

    @property
    def events_path(self) -> Path:
        return self.data_dir / "events.jsonl"

    @property
    def can_anchor(self) -> bool:
        return bool(self.rpc_url and self.private_key)

    @staticmethod
    def from_dict(data: dict[str, Any], base_dir: Path) -> DistributorConfig:
        token = data["token"]
        ledger = data["ledger"]
        anchoring = data.get("anchoring", {})

        decimals = int(token["decimals"])
        units = int(token["total_supply_units"])
        if not 0 <= decimals <= 77:
            raise ValueError(f"decimals out of range: {decimals}")
        if units <= 0:
            raise ValueError(f"total_supply_units must be positive, got {units}")

        principal = normalize_account(ledger["principal"])
        if principal == NULL_ACCOUNT:
            raise ValueError("Configured principal cannot be the null account")

        data_dir = Path(ledger.get("data_dir", "data"))
        if not data_dir.is_absolute():
            data_dir = base_dir / data_dir

        return DistributorConfig(
            token_name=token["name"],
            token_symbol=token["symbol"],
            decimals=decimals,
            total_supply_units=units,
            principal=principal,
            data_dir=data_dir,
            chain_id=int(anchoring.get("chain_id", 11155111)),
            anchor_gas=int(anchoring.get("gas", 30_000)),
            anchor_gas_price_gwei=str(anchoring.get("gas_price_gwei", "2")),
            explorer_base=anchoring.get("explorer_base", "https://sepolia.etherscan.io/tx/"),
        )

    @staticmethod
    def from_config_dir(config_dir: Path) -> DistributorConfig:
        """Load parameters from <config_dir>/distributor_params.json.

        A relative data_dir resolves against the config directory's parent,
        the project root in the default layout.
        """
        path = config_dir / PARAMS_FILE
        with path.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
        return DistributorConfig.from_dict(data, base_dir=config_dir.resolve().parent)

    @staticmethod
    def from_env(
        config_dir: Path,
        env_file: Optional[Path] = None,
    ) -> DistributorConfig:
        """Load parameters, then apply .env and environment overrides."""
        if env_file is not None:
            load_dotenv(env_file)
        else:
            load_dotenv(config_dir.resolve().parent / ".env")

        config = DistributorConfig.from_config_dir(config_dir)
        overrides: dict[str, Any] = {}
        principal = os.getenv("DISTRIBUTOR_PRINCIPAL")
        if principal:
            overrides["principal"] = normalize_account(principal)
            if overrides["principal"] == NULL_ACCOUNT:
                raise ValueError("DISTRIBUTOR_PRINCIPAL cannot be the null account")
        data_dir = os.getenv("DISTRIBUTOR_DATA_DIR")
        if data_dir:
            overrides["data_dir"] = Path(data_dir)
        overrides["rpc_url"] = os.getenv("RPC_URL") or os.getenv("SEPOLIA_RPC_URL")
        overrides["private_key"] = os.getenv("PRIVATE_KEY")
        return replace(config, **overrides)
