"""Standalone runner for the chain indexer.

Usage: python -m stakeidx.workers.indexer_runner

Polls both contracts' logs from their checkpoints (or deployment blocks)
and applies them to the state store until stopped. Exits non-zero if any
contract stream halted on an indexing fault.
"""

from __future__ import annotations

import asyncio
import signal
import sys

import structlog

from stakeidx.chain.client import RARITY_POOL_ABI, close_web3, create_web3
from stakeidx.chain.contracts import resolve_contracts
from stakeidx.chain.log_source import ChainLogSource, event_topics
from stakeidx.config import get_settings
from stakeidx.database import close_db, get_session_factory, init_db
from stakeidx.events.schemas import ContractName
from stakeidx.indexing.indexer import Indexer, default_reducers
from stakeidx.indexing.locks import KeyedLocks
from stakeidx.indexing.reveal import RevealResolver, Web3RarityPoolReader
from stakeidx.logconfig import setup_logging

logger = structlog.get_logger(__name__)


async def main() -> int:
    """Run the per-contract consumers until a signal or a fault stops them."""
    settings = get_settings()
    setup_logging(settings, component="indexer")
    await init_db(settings.database_url)

    nft, pool = resolve_contracts(settings)
    for config in (nft, pool):
        if not event_topics(config.abi):
            # Every log of this contract will be skipped as unrecognized
            logger.warning("contract_abi_missing", contract=config.name, contracts_file=settings.contracts_file)
    w3 = create_web3(settings.rpc_url)

    nft_contract = w3.eth.contract(address=nft.checksum_address, abi=nft.abi or RARITY_POOL_ABI)
    reader = Web3RarityPoolReader(
        nft_contract,
        batch_size=settings.rarity_read_batch_size,
        max_retries=settings.rarity_read_max_retries,
        backoff_seconds=settings.rarity_read_backoff_seconds,
        max_backoff_seconds=settings.rarity_read_max_backoff_seconds,
    )
    resolver = RevealResolver(reader, max_supply=settings.max_supply)
    indexer = Indexer(
        get_session_factory(),
        default_reducers(resolver, pool_address=pool.address),
        locks=KeyedLocks(settings.lock_shards),
    )

    sources = {
        ContractName.NFT.value: ChainLogSource(
            w3, nft, settings.log_batch_blocks, settings.poll_interval_seconds, label=ContractName.NFT.value
        ),
        ContractName.STAKING_POOL.value: ChainLogSource(
            w3, pool, settings.log_batch_blocks, settings.poll_interval_seconds, label=ContractName.STAKING_POOL.value
        ),
    }
    start_blocks = {ContractName.NFT.value: nft.start_block, ContractName.STAKING_POOL.value: pool.start_block}

    def stop() -> None:
        logger.info("shutdown_requested")
        for source in sources.values():
            source.stop()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop)

    try:
        streams = {}
        for name, source in sources.items():
            from_block = await indexer.resume_block(name, start_blocks[name])
            logger.info("stream_resuming", contract=name, address=source.config.address, from_block=from_block)
            streams[name] = source.logs(from_block)
        await indexer.run(streams)
    finally:
        await close_web3(w3)
        await close_db()
        logger.info("indexer_stopped", **indexer.stats)

    for contract, fault in indexer.halted.items():
        logger.error("stream_halted_at_exit", contract=contract, fault=type(fault).__name__, error=str(fault))
    return 1 if indexer.halted else 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
