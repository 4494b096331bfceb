"""Trick representation and resolution."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .cards import Card, Suit
from .rules import trick_winner

PLAYS_PER_TRICK = 4


class TrickError(RuntimeError):
    """Raised when trick play breaks ordering constraints."""


@dataclass
class Trick:
    trick_number: int
    plays: List[Tuple[int, Card]] = field(default_factory=list)
    leading_suit: Optional[Suit] = None

    def is_empty(self) -> bool:
        return not self.plays

    def is_full(self) -> bool:
        return len(self.plays) == PLAYS_PER_TRICK

    def add_play(self, player: int, card: Card) -> None:
        if self.is_full():
            raise TrickError("Trick already complete.")
        if any(seat == player for seat, _ in self.plays):
            raise TrickError(f"Player {player} already played to this trick.")
        if not self.plays:
            self.leading_suit = card.suit
        self.plays.append((player, card))

    def winning_player(self, trump: Optional[Suit]) -> int:
        if self.leading_suit is None:
            raise TrickError("Cannot determine winner on empty trick.")
        return trick_winner(self.plays, self.leading_suit, trump)


@dataclass(frozen=True)
class CompletedTrick:
    round_number: int
    trick_number: int
    cards_played: Tuple[Tuple[int, Card], ...]
    winner: int
    leading_suit: Suit


@dataclass(frozen=True)
class PlayedCard:
    """One card appended to the active trick."""

    round_number: int
    trick_number: int
    player_number: int
    card: Card
    leading_suit: Suit
    sequence: int
