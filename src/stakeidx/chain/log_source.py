"""Polling chain log source built on web3's async client.

Fetches ``eth_getLogs`` for one contract in block windows, decodes each log
with the contract ABI and yields envelope dicts in (blockNumber, logIndex)
order. Logs whose topic is not in the ABI are still yielded, under an
``unknown:<topic>`` event name, so the indexer can warn and skip them.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from typing import Any

import structlog
from web3 import AsyncWeb3, Web3

from stakeidx.chain.contracts import ContractConfig

logger = structlog.get_logger(__name__)


def event_topics(abi: list[dict[str, Any]]) -> dict[str, str]:
    """Map ``topic0`` hex to event name for every event in an ABI."""
    topics = {}
    for entry in abi:
        if entry.get("type") != "event" or entry.get("anonymous"):
            continue
        signature = f"{entry['name']}({','.join(i['type'] for i in entry.get('inputs', []))})"
        topics["0x" + bytes(Web3.keccak(text=signature)).hex()] = entry["name"]
    return topics


def _hex(value: Any) -> str:
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    return str(value).lower()


class ChainLogSource:
    """Ordered log stream for one contract."""

    def __init__(
        self,
        w3: AsyncWeb3,
        contract: ContractConfig,
        batch_blocks: int = 2000,
        poll_interval: float = 2.0,
        max_backoff: float = 30.0,
        label: str | None = None,
    ) -> None:
        self.w3 = w3
        self.config = contract
        # Contract name stamped on emitted logs; defaults to the deployment name
        self.label = label or contract.name
        self.contract = w3.eth.contract(address=contract.checksum_address, abi=contract.abi)
        self._topics = event_topics(contract.abi)
        self._batch_blocks = max(1, batch_blocks)
        self._poll_interval = poll_interval
        self._max_backoff = max_backoff
        self._block_ts: dict[int, int] = {}
        self._running = False

    async def latest_block_timestamp(self) -> int:
        """Timestamp of the current head block (feeds the reward ChainClock)."""
        block = await self.w3.eth.get_block("latest")
        return int(block["timestamp"])

    async def _block_timestamp(self, number: int) -> int:
        if number not in self._block_ts:
            block = await self.w3.eth.get_block(number)
            self._block_ts[number] = int(block["timestamp"])
        return self._block_ts[number]

    def _decode(self, log: Any) -> tuple[str, dict[str, Any]]:
        topics = log.get("topics") or []
        topic0 = _hex(topics[0]) if topics else ""
        name = self._topics.get(topic0)
        if name is None:
            return f"unknown:{topic0}", {}
        decoded = self.contract.events[name]().process_log(log)
        return name, dict(decoded["args"])

    async def fetch_range(self, from_block: int, to_block: int) -> list[dict[str, Any]]:
        """Decoded logs for [from_block, to_block], ordered by (block, logIndex)."""
        logs = await self.w3.eth.get_logs(
            {"address": self.config.checksum_address, "fromBlock": from_block, "toBlock": to_block}
        )
        ordered = sorted(logs, key=lambda log: (int(log["blockNumber"]), int(log["logIndex"])))

        records = []
        for log in ordered:
            name, args = self._decode(log)
            block_number = int(log["blockNumber"])
            records.append(
                {
                    "contractName": self.label,
                    "eventName": name,
                    "args": args,
                    "block": {"number": block_number, "timestamp": await self._block_timestamp(block_number)},
                    "transaction": {"hash": _hex(log["transactionHash"])},
                    "log": {"index": int(log["logIndex"])},
                }
            )

        # Timestamps are only needed for the window being yielded
        self._block_ts.clear()
        return records

    async def logs(self, from_block: int) -> AsyncIterator[dict[str, Any]]:
        """Yield logs from ``from_block`` onwards, polling for new blocks until stopped."""
        self._running = True
        next_block = from_block
        delay = self._poll_interval

        while self._running:
            try:
                head = await self.w3.eth.block_number
                if next_block > head:
                    await asyncio.sleep(self._poll_interval)
                    continue
                to_block = min(head, next_block + self._batch_blocks - 1)
                records = await self.fetch_range(next_block, to_block)
            except Exception as e:
                logger.warning("log_fetch_failed", contract=self.label, error=str(e), retry_in=delay)
                await asyncio.sleep(delay)
                delay = min(delay * 2, self._max_backoff)
                continue

            delay = self._poll_interval
            if records:
                logger.info(
                    "logs_fetched",
                    contract=self.label,
                    from_block=next_block,
                    to_block=to_block,
                    count=len(records),
                )
            for record in records:
                yield record
            next_block = to_block + 1

    def stop(self) -> None:
        self._running = False
