"""Simulated chain logs and constants shared by the tests."""

from __future__ import annotations

from typing import Any

from stakeidx.events.schemas import ContractName

MAX_SUPPLY = 100
T0 = 1_700_000_000

POOL = "0x" + "99" * 20
ALICE = "0x" + "aa" * 20
BOB = "0x" + "bb" * 20
CAROL = "0x" + "cc" * 20
ZERO = "0x" + "00" * 20

NFT = ContractName.NFT.value
STAKING = ContractName.STAKING_POOL.value

# Every 10th slot Legendary, every 5th Epic, other even slots Rare, odd slots Common
DEFAULT_POOL = [3 if i % 10 == 0 else 2 if i % 5 == 0 else 1 if i % 2 == 0 else 0 for i in range(MAX_SUPPLY)]


class FakePoolReader:
    """In-memory rarityPool with call recording."""

    def __init__(self, pool: list[int]) -> None:
        self.pool = pool
        self.calls: list[list[int]] = []

    async def read_many(self, indexes: list[int]) -> dict[int, int]:
        self.calls.append(list(indexes))
        return {i: self.pool[i] for i in indexes}


class ChainBuilder:
    """Builds raw log envelopes on a simulated chain, one transaction per block."""

    def __init__(self, block: int = 100, timestamp: int = T0) -> None:
        self.block = block
        self.timestamp = timestamp

    def mine(self, seconds: int = 12) -> None:
        self.block += 1
        self.timestamp += seconds

    def log(self, contract: str, event: str, args: dict[str, Any], log_index: int = 0) -> dict[str, Any]:
        return {
            "contractName": contract,
            "eventName": event,
            "args": args,
            "block": {"number": self.block, "timestamp": self.timestamp},
            "transaction": {"hash": f"0x{self.block:064x}"},
            "log": {"index": log_index},
        }

    # --- StakableNFT ---

    def minted(self, to: str, start: int, quantity: int) -> dict[str, Any]:
        self.mine()
        return self.log(NFT, "NFTMinted", {"to": to, "startTokenId": start, "quantity": quantity})

    def transfer(self, frm: str, to: str, token_id: int, log_index: int = 0) -> dict[str, Any]:
        if log_index == 0:
            self.mine()
        return self.log(NFT, "Transfer", {"from": frm, "to": to, "tokenId": token_id}, log_index)

    def reveal(self, offset: int) -> dict[str, Any]:
        self.mine()
        return self.log(NFT, "RevealCompleted", {"offset": offset})

    # --- NFTStakingPool ---

    def staked(self, user: str, token_id: int, log_index: int = 1) -> dict[str, Any]:
        return self.log(STAKING, "Staked", {"user": user, "tokenId": token_id, "timestamp": self.timestamp}, log_index)

    def claimed(self, user: str, token_id: int, amount: int, log_index: int = 0) -> dict[str, Any]:
        return self.log(STAKING, "RewardClaimed", {"user": user, "tokenId": token_id, "amount": amount}, log_index)

    def unstaked(self, user: str, token_id: int, reward: int, log_index: int = 1) -> dict[str, Any]:
        return self.log(STAKING, "Unstaked", {"user": user, "tokenId": token_id, "reward": reward}, log_index)

