"""Random baseline bot."""

from __future__ import annotations

import random
from typing import Optional

from trumpcall.cards import Card, Suit
from trumpcall.state import RoomState

from .base import BotStrategy, available_plays, open_bids


class RandomBot(BotStrategy):
    name = "Random"

    def __init__(self, seed: Optional[int] = None, bid_probability: float = 0.3) -> None:
        self._rng = random.Random(seed)
        self.bid_probability = bid_probability

    def offer_bid(self, room: RoomState, player: int) -> Optional[int]:
        candidates = open_bids(room)
        if not candidates or self._rng.random() >= self.bid_probability:
            return None
        return self._rng.choice(candidates[:3])

    def choose_trump(self, room: RoomState, player: int) -> Suit:
        return self._rng.choice(list(Suit))

    def play_card(self, room: RoomState, player: int) -> Card:
        legal = available_plays(room, player)
        if not legal:
            raise RuntimeError("No legal plays available for bot.")
        return self._rng.choice(legal)
