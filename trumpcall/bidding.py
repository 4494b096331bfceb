"""Bid records and bid-log helpers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

MIN_BID = 7
MAX_BID = 13


@dataclass(frozen=True)
class Bid:
    player_number: int
    amount: Optional[int]
    round_number: int

    @property
    def passed(self) -> bool:
        return self.amount is None


def highest_bid(bids: Sequence[Bid]) -> Optional[Bid]:
    """Return the first bid holding the maximum non-pass amount, if any."""
    best: Optional[Bid] = None
    for bid in bids:
        if bid.passed:
            continue
        if best is None or bid.amount > best.amount:
            best = bid
    return best


def is_all_pass(bids: Sequence[Bid], players: int = 4) -> bool:
    """True when every player passed and nobody bid."""
    return len(bids) >= players and all(bid.passed for bid in bids)
