"""Indexer error taxonomy.

Non-fatal errors (``UnrecognizedEvent``, ``DuplicateEvent``) are logged and
the event is skipped. Every ``IndexingFault`` is fatal for its event: the
transaction is rolled back and the contract stream halts until an operator
intervenes, since continuing would corrupt the aggregate counters.
"""

from __future__ import annotations


class IndexerError(Exception):
    """Base class for all indexer errors."""


class UnrecognizedEvent(IndexerError):
    """Event name/contract pair the decoder does not know."""

    def __init__(self, contract: str, event: str) -> None:
        super().__init__(f"Unrecognized event {contract}:{event}")
        self.contract = contract
        self.event = event


class DuplicateEvent(IndexerError):
    """Event at or below the contract's high-water mark, or an already stored audit row."""

    def __init__(self, event_id: str) -> None:
        super().__init__(f"Event already applied: {event_id}")
        self.event_id = event_id


class IndexingFault(IndexerError):
    """Fatal fault: applying the event would desynchronize derived state."""


class MalformedEvent(IndexingFault):
    """Missing or invalid event arguments."""


class MissingRelatedEntity(IndexingFault):
    """An event refers to an entity that is not indexed (e.g. claim without stake)."""

    def __init__(self, entity: str, entity_id: str) -> None:
        super().__init__(f"Missing {entity} {entity_id}")
        self.entity = entity
        self.entity_id = entity_id


class DuplicateReveal(IndexingFault):
    """A second reveal for a rarity pool that is already revealed."""


class DuplicateMint(IndexingFault):
    """A mint for a token id that already exists."""


class DuplicateStake(IndexingFault):
    """A stake for a token id that already has an active stake."""


class OwnershipMismatch(IndexingFault):
    """A stake or transfer by an address that does not own the token."""


class ExternalReadFailure(IndexingFault):
    """A chain read failed after all retries."""
