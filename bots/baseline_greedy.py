"""Baseline greedy bot."""

from __future__ import annotations

from typing import List, Optional, Sequence

from trumpcall.cards import Card, Rank, card_strength
from trumpcall.rules import team_for_seat, trick_winner
from trumpcall.state import RoomState

from .base import BotStrategy, available_plays, longest_suit, open_bids

HIGH_RANKS = {Rank.ACE, Rank.KING, Rank.QUEEN}


def estimate_tricks(hand: Sequence[Card]) -> int:
    """Rough count of tricks the partnership should take with this hand."""
    high = sum(1 for card in hand if card.rank in HIGH_RANKS)
    trump_length = sum(1 for card in hand if card.suit is longest_suit(list(hand)))
    return 3 + high // 2 + max(0, trump_length - 3)


class GreedyBot(BotStrategy):
    name = "Greedy"

    def offer_bid(self, room: RoomState, player: int) -> Optional[int]:
        candidates = open_bids(room)
        if not candidates:
            return None
        # Partner already holds the contract.
        if room.game.bid_winner is not None and team_for_seat(room.game.bid_winner) == team_for_seat(player):
            return None
        target = estimate_tricks(room.hands[player])
        return candidates[0] if candidates[0] <= target else None

    def play_card(self, room: RoomState, player: int) -> Card:
        legal = available_plays(room, player)
        if not legal:
            raise RuntimeError("No legal plays available for bot.")
        ordered = sorted(legal, key=card_strength)
        trick = room.trick
        if trick.is_empty():
            return ordered[-1]

        winners: List[Card] = []
        for card in ordered:
            plays = list(trick.plays) + [(player, card)]
            if trick_winner(plays, trick.leading_suit, room.game.trump_suit) == player:
                winners.append(card)
        current = trick_winner(trick.plays, trick.leading_suit, room.game.trump_suit)
        if team_for_seat(current) == team_for_seat(player) or not winners:
            return ordered[0]
        return winners[0]
