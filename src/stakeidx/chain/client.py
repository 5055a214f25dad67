"""Async JSON-RPC client construction."""

from typing import Any

from web3 import AsyncWeb3

# Minimal ABI for the pool read used during reveal resolution
RARITY_POOL_ABI: list[dict[str, Any]] = [
    {
        "type": "function",
        "name": "rarityPool",
        "stateMutability": "view",
        "inputs": [{"name": "", "type": "uint256"}],
        "outputs": [{"name": "", "type": "uint8"}],
    }
]


def create_web3(rpc_url: str) -> AsyncWeb3:
    return AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(rpc_url))


async def close_web3(w3: AsyncWeb3) -> None:
    """Close the provider's cached HTTP sessions."""
    await w3.provider.disconnect()
