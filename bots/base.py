"""Common bot strategy interfaces."""

from __future__ import annotations

from typing import List, Optional

from trumpcall.bidding import MAX_BID
from trumpcall.cards import Card, Suit
from trumpcall.rules import legal_plays, minimum_next_bid
from trumpcall.state import RoomState


class BotStrategy:
    """Base class for bot policies; the default always passes and plays the first legal card."""

    name: str = "BaseBot"

    def offer_bid(self, room: RoomState, player: int) -> Optional[int]:
        """Return the number of tricks to bid, or None to pass."""
        return None

    def choose_trump(self, room: RoomState, player: int) -> Suit:
        return longest_suit(room.hands[player])

    def play_card(self, room: RoomState, player: int) -> Card:
        legal = available_plays(room, player)
        if not legal:
            raise RuntimeError("No legal plays available for bot.")
        return legal[0]


def available_plays(room: RoomState, player: int) -> List[Card]:
    return legal_plays(room.hands[player], room.trick.leading_suit)


def open_bids(room: RoomState) -> List[int]:
    return list(range(minimum_next_bid(room.game.highest_bid), MAX_BID + 1))


def longest_suit(hand: List[Card]) -> Suit:
    counts = {suit: 0 for suit in Suit}
    for card in hand:
        counts[card.suit] += 1
    return max(Suit, key=lambda suit: counts[suit])
