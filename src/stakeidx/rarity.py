"""Rarity classes and their reward multipliers."""

from __future__ import annotations

from enum import IntEnum

MULTIPLIER_BASE = 10_000


class Rarity(IntEnum):
    """Rarity class as stored in the contract's rarity pool."""

    COMMON = 0
    RARE = 1
    EPIC = 2
    LEGENDARY = 3


# Basis points: 15000 == 1.5x
RARITY_MULTIPLIERS: dict[Rarity, int] = {
    Rarity.COMMON: 10_000,
    Rarity.RARE: 15_000,
    Rarity.EPIC: 20_000,
    Rarity.LEGENDARY: 30_000,
}


def to_rarity(value: int | None) -> Rarity | None:
    """Map a raw pool value to a Rarity, or None when unset/out of range."""
    if value is None:
        return None
    try:
        return Rarity(int(value))
    except (TypeError, ValueError):
        return None
