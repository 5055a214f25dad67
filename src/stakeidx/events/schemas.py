"""Event schema definitions for the StakableNFT and NFTStakingPool contracts.

Every log delivered by the chain log source shares a common envelope:
{
    "contractName": "StakableNFT",
    "eventName": "Transfer",
    "args": { ... event-specific fields ... },
    "block": {"number": 123, "timestamp": 1708617600},
    "transaction": {"hash": "0x..."},
    "log": {"index": 4}
}

``decode_event`` routes the envelope on (contract, event) to a typed
argument model. Unknown pairs raise ``UnrecognizedEvent``; argument
validation failures raise ``MalformedEvent``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Any

from pydantic import AfterValidator, AliasChoices, BaseModel, BeforeValidator, ConfigDict, Field, ValidationError
from web3 import Web3

from stakeidx.errors import MalformedEvent, UnrecognizedEvent

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


def _normalize_address(value: str) -> str:
    if not Web3.is_address(value):
        msg = f"invalid address: {value!r}"
        raise ValueError(msg)
    return value.lower()


def _hex_bytes(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    return value


Address = Annotated[str, BeforeValidator(_hex_bytes), AfterValidator(_normalize_address)]
HexStr = Annotated[str, BeforeValidator(_hex_bytes), Field(pattern=r"^0x[0-9a-fA-F]*$")]
TokenId = Annotated[int, Field(ge=0)]
Amount = Annotated[int, Field(ge=0)]


class ContractName(str, Enum):
    """Indexed contracts."""

    NFT = "StakableNFT"
    STAKING_POOL = "NFTStakingPool"


class EventName(str, Enum):
    """All supported contract events."""

    NFT_MINTED = "NFTMinted"
    TRANSFER = "Transfer"
    RARITY_POOL_SET = "RarityPoolSet"
    REVEAL_COMPLETED = "RevealCompleted"
    ROLE_GRANTED = "RoleGranted"
    ROLE_REVOKED = "RoleRevoked"
    STAKED = "Staked"
    UNSTAKED = "Unstaked"
    REWARD_CLAIMED = "RewardClaimed"


# ---------------------------------------------------------------------------
# Envelope
# ---------------------------------------------------------------------------


class BlockRef(BaseModel):
    number: int = Field(ge=0)
    timestamp: int = Field(ge=0)


class TransactionRef(BaseModel):
    hash: HexStr


class LogRef(BaseModel):
    index: int = Field(ge=0)


class RawLog(BaseModel):
    """Log record as delivered by the chain log source."""

    model_config = ConfigDict(populate_by_name=True)

    contract_name: str = Field(alias="contractName")
    event_name: str = Field(alias="eventName")
    args: dict[str, Any] = Field(default_factory=dict)
    block: BlockRef
    transaction: TransactionRef
    log: LogRef

    @property
    def position(self) -> tuple[int, int]:
        """Ordering key within one contract's stream."""
        return (self.block.number, self.log.index)

    @property
    def event_id(self) -> str:
        return f"{self.transaction.hash}-{self.log.index}"


class EventContext(BaseModel):
    """Chain coordinates of a decoded event."""

    block_number: int
    block_timestamp: int
    tx_hash: str
    log_index: int

    @property
    def event_id(self) -> str:
        return f"{self.tx_hash}-{self.log_index}"


# ---------------------------------------------------------------------------
# StakableNFT
# ---------------------------------------------------------------------------


class _Args(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)


class NFTMintedArgs(_Args):
    to: Address
    start_token_id: TokenId = Field(alias="startTokenId")
    quantity: int = Field(ge=1)


class TransferArgs(_Args):
    from_: Address = Field(alias="from")
    to: Address
    token_id: TokenId = Field(alias="tokenId")


class RarityPoolSetArgs(_Args):
    pass


class RevealCompletedArgs(_Args):
    offset: int = Field(ge=0)


class RoleArgs(_Args):
    role: HexStr
    account: Address
    sender: Address


# ---------------------------------------------------------------------------
# NFTStakingPool
# ---------------------------------------------------------------------------


class StakedArgs(_Args):
    user: Address
    token_id: TokenId = Field(alias="tokenId")
    # Deployed pool emits (user, tokenId, timestamp); rarity is optional
    rarity: int | None = Field(default=None, ge=0, le=3)


class UnstakedArgs(_Args):
    user: Address
    token_id: TokenId = Field(alias="tokenId")
    # Deployed pool names the final payout "reward"
    amount: Amount = Field(validation_alias=AliasChoices("amount", "reward"))


class RewardClaimedArgs(_Args):
    user: Address
    token_id: TokenId = Field(alias="tokenId")
    amount: Amount


# Map (contract, event) to the argument model
EVENT_ARG_MODELS: dict[tuple[ContractName, EventName], type[_Args]] = {
    (ContractName.NFT, EventName.NFT_MINTED): NFTMintedArgs,
    (ContractName.NFT, EventName.TRANSFER): TransferArgs,
    (ContractName.NFT, EventName.RARITY_POOL_SET): RarityPoolSetArgs,
    (ContractName.NFT, EventName.REVEAL_COMPLETED): RevealCompletedArgs,
    (ContractName.NFT, EventName.ROLE_GRANTED): RoleArgs,
    (ContractName.NFT, EventName.ROLE_REVOKED): RoleArgs,
    (ContractName.STAKING_POOL, EventName.STAKED): StakedArgs,
    (ContractName.STAKING_POOL, EventName.UNSTAKED): UnstakedArgs,
    (ContractName.STAKING_POOL, EventName.REWARD_CLAIMED): RewardClaimedArgs,
}


@dataclass(frozen=True)
class DecodedEvent:
    """A typed event ready for a reducer."""

    contract: ContractName
    name: EventName
    ctx: EventContext
    args: _Args


def route(contract_name: str, event_name: str) -> tuple[ContractName, EventName]:
    """Resolve a (contract, event) pair or raise UnrecognizedEvent."""
    try:
        key = (ContractName(contract_name), EventName(event_name))
    except ValueError:
        raise UnrecognizedEvent(contract_name, event_name) from None
    if key not in EVENT_ARG_MODELS:
        raise UnrecognizedEvent(contract_name, event_name)
    return key


def decode_event(raw: RawLog | dict[str, Any]) -> DecodedEvent:
    """Validate a raw log and decode its arguments into a typed event."""
    try:
        log = raw if isinstance(raw, RawLog) else RawLog.model_validate(raw)
    except ValidationError as e:
        msg = f"Invalid log envelope: {e.error_count()} error(s)"
        raise MalformedEvent(msg) from e

    contract, name = route(log.contract_name, log.event_name)
    model = EVENT_ARG_MODELS[(contract, name)]

    try:
        args = model.model_validate(log.args)
    except ValidationError as e:
        msg = f"Invalid {contract.value}:{name.value} args at {log.event_id}: {e}"
        raise MalformedEvent(msg) from e

    ctx = EventContext(
        block_number=log.block.number,
        block_timestamp=log.block.timestamp,
        tx_hash=log.transaction.hash.lower(),
        log_index=log.log.index,
    )
    return DecodedEvent(contract=contract, name=name, ctx=ctx, args=args)
