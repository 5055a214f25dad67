"""Access-control reducer: RoleGranted / RoleRevoked audit projection."""

from __future__ import annotations

from collections.abc import Iterable

from stakeidx.db.models import RoleEvent
from stakeidx.events.schemas import DecodedEvent, EventName, RoleArgs
from stakeidx.indexing.locks import user_key
from stakeidx.indexing.store import StateStore

ROLE_EVENT_TYPES: dict[EventName, str] = {
    EventName.ROLE_GRANTED: "GRANTED",
    EventName.ROLE_REVOKED: "REVOKED",
}


class AccessControlReducer:
    """Appends one RoleEvent row per role change; touches no other table."""

    handles = frozenset(ROLE_EVENT_TYPES)

    def lock_keys(self, event: DecodedEvent) -> Iterable[str]:
        args: RoleArgs = event.args  # type: ignore[assignment]
        return [user_key(args.account)]

    async def apply(self, store: StateStore, event: DecodedEvent) -> None:
        args: RoleArgs = event.args  # type: ignore[assignment]
        await store.append(
            RoleEvent(
                id=event.ctx.event_id,
                event_type=ROLE_EVENT_TYPES[event.name],
                role=args.role.lower(),
                account=args.account,
                sender=args.sender,
                timestamp=event.ctx.block_timestamp,
                block_number=event.ctx.block_number,
                tx_hash=event.ctx.tx_hash,
            )
        )
