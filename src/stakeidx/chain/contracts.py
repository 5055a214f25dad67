"""Static contract configuration from deployment artifacts.

The deployment tooling writes a ``deployedContracts`` JSON document:

    {"31337": {"StakableNFT": {"address": "0x...", "abi": [...], "deployedOnBlock": 3}}}

Addresses and start blocks may be overridden through settings.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from web3 import Web3

from stakeidx.config import Settings


@dataclass(frozen=True)
class ContractConfig:
    """One indexed contract."""

    name: str
    address: str
    abi: list[dict[str, Any]] = field(default_factory=list)
    start_block: int = 0

    @property
    def checksum_address(self) -> str:
        return Web3.to_checksum_address(self.address)


def load_contracts(path: str | Path, chain_id: int) -> dict[str, ContractConfig]:
    """Read every contract deployed on ``chain_id`` from a deployedContracts file."""
    with open(path, encoding="utf-8") as f:
        document = json.load(f)

    deployments = document.get(str(chain_id))
    if deployments is None:
        msg = f"No deployments for chain {chain_id} in {path}"
        raise ValueError(msg)

    contracts = {}
    for name, info in deployments.items():
        contracts[name] = ContractConfig(
            name=name,
            address=info["address"].lower(),
            abi=info.get("abi", []),
            start_block=int(info.get("deployedOnBlock") or 0),
        )
    return contracts


def resolve_contracts(settings: Settings) -> tuple[ContractConfig, ContractConfig]:
    """Return (nft, staking pool) configs, applying settings overrides."""
    contracts: dict[str, ContractConfig] = {}
    if Path(settings.contracts_file).exists():
        contracts = load_contracts(settings.contracts_file, settings.chain_id)

    def pick(name: str, address: str, start_block: int | None) -> ContractConfig:
        base = contracts.get(name)
        if base is None and not address:
            msg = f"Contract {name} not configured (no deployment entry and no address override)"
            raise ValueError(msg)
        return ContractConfig(
            name=name,
            address=(address or base.address).lower(),  # type: ignore[union-attr]
            abi=base.abi if base else [],
            start_block=start_block if start_block is not None else (base.start_block if base else 0),
        )

    nft = pick(settings.nft_contract_name, settings.nft_address, settings.nft_start_block)
    pool = pick(settings.staking_contract_name, settings.staking_pool_address, settings.staking_start_block)
    return nft, pool
