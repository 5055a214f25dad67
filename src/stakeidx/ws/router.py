"""WebSocket stream of a user's pending staking rewards."""

from __future__ import annotations

import json

import structlog
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from web3 import Web3

from stakeidx.config import get_settings
from stakeidx.dependencies import StakeLoader, get_chain_clock, get_stake_loader
from stakeidx.query import service
from stakeidx.rewards.ticker import ChainClock, RewardSnapshot, RewardTicker

logger = structlog.get_logger(__name__)

router = APIRouter()

# Close code for a path that is not an account address
INVALID_ADDRESS = 4400


@router.websocket("/ws/stakes/{address}")
async def stake_rewards_endpoint(
    websocket: WebSocket,
    address: str,
    clock: ChainClock = Depends(get_chain_clock),
    load_stakes: StakeLoader = Depends(get_stake_loader),
) -> None:
    """Push the address's pending rewards on every reward tick.

    Protocol:
        Client -> Server:
            {"action": "refresh"}   reload stakes after a stake, claim or unstake
            {"action": "ping"}

        Server -> Client:
            {"type": "rewards", "data": {...}}   same body as GET /api/v1/users/{address}/stakes
            {"type": "pong"}
            {"type": "error", "message": "..."}
    """
    if not Web3.is_address(address):
        await websocket.close(code=INVALID_ADDRESS, reason=f"Invalid address: {address}")
        return
    address = address.lower()

    await websocket.accept()
    stakes = await load_stakes(address)

    async def push(snapshot: RewardSnapshot) -> None:
        body = service.with_pending_rewards(list(snapshot.stakes), snapshot.rewards, snapshot.now)  # type: ignore[arg-type]
        await websocket.send_json({"type": "rewards", "data": body.model_dump(mode="json")})

    ticker = RewardTicker(clock, lambda: stakes, push, interval=get_settings().reward_tick_seconds)
    await ticker.start()
    logger.info("reward_stream_opened", user=address, stakes=len(stakes))

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                msg = json.loads(raw)
            except json.JSONDecodeError:
                await websocket.send_json({"type": "error", "message": "Invalid JSON"})
                continue

            action = msg.get("action") if isinstance(msg, dict) else None
            if action == "refresh":
                stakes = await load_stakes(address)
                await push(ticker.compute())
            elif action == "ping":
                await websocket.send_json({"type": "pong"})
            else:
                await websocket.send_json({"type": "error", "message": f"Unknown action: {action}"})

    except WebSocketDisconnect:
        logger.info("reward_stream_closed", user=address)
    finally:
        await ticker.stop()
