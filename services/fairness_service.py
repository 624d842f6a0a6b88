"""
Provably-fair winner selection.

The payout calculator never draws randomness itself: the caller passes a
selector ``select_winner(candidates, seed) -> player``. This module holds the
default selector, a stake-weighted draw driven by HMAC-SHA256 so that anyone
holding the revealed seed can recompute the result.

The seed is generated when a room is created and only its SHA-256 hash is
published while stakes are open; the seed itself is revealed at settlement.
"""
import hashlib
import hmac
import secrets
from decimal import Decimal
from typing import Sequence

from database import get_settings


def generate_seed() -> str:
    return secrets.token_hex(16)


def hash_seed(seed: str) -> str:
    """Published commitment for a seed."""
    return hashlib.sha256(seed.encode()).hexdigest()


def _draw_message(candidates) -> str:
    # Order-independent so the draw only depends on who staked and how much.
    parts = sorted(f"{c.player}:{Decimal(c.stake).normalize()}" for c in candidates)
    return "|".join(parts)


def draw_digest(candidates, seed: str) -> bytes:
    return hmac.new(seed.encode(), _draw_message(candidates).encode(), hashlib.sha256).digest()


def stake_weighted_pick(candidates: Sequence, seed: str) -> str:
    """
    Pick one player with probability proportional to their stake.

    Stakes are converted to integer units of the configured amount precision,
    then the HMAC digest (as a big-endian integer) modulo the total selects a
    position along the cumulative stake line.
    """
    if not candidates:
        raise ValueError("Cannot draw a winner from an empty candidate list")

    quantum = get_settings().amount_quantum
    ordered = sorted(candidates, key=lambda c: c.player)
    units = [int(Decimal(c.stake) / quantum) for c in ordered]
    total_units = sum(units)
    if total_units <= 0:
        raise ValueError("Candidates have no positive stake to draw from")

    pick = int.from_bytes(draw_digest(ordered, seed), "big") % total_units
    acc = 0
    for candidate, weight in zip(ordered, units):
        acc += weight
        if acc > pick:
            return candidate.player

    # Unreachable: acc ends at total_units > pick.
    return ordered[-1].player
