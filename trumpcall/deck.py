"""Deck creation, shuffling and dealing."""

from __future__ import annotations

from random import Random, SystemRandom
from typing import Dict, List, Optional, Sequence

from .cards import Card, RANK_ORDER, Suit, card_sort_key

SEATS = (1, 2, 3, 4)
DECK_SIZE = 52
HAND_SIZE = DECK_SIZE // len(SEATS)

_system_random = SystemRandom()


def build_deck() -> List[Card]:
    """Return the ordered 52-card deck (suit-major, rank-minor)."""
    return [Card(suit, rank) for suit in Suit for rank in RANK_ORDER]


def shuffle(deck: Sequence[Card], rng: Optional[Random] = None) -> List[Card]:
    """Return a uniformly random permutation of ``deck``.

    ``random.shuffle`` is a Fisher-Yates shuffle; by default it draws from the
    operating system's entropy source so orderings cannot be predicted.
    """
    cards = list(deck)
    (rng or _system_random).shuffle(cards)
    return cards


def deal(deck: Sequence[Card]) -> Dict[int, List[Card]]:
    """Deal round-robin starting at seat 1, then sort each hand for display."""
    cards = list(deck)
    if len(cards) != DECK_SIZE or len(set(cards)) != DECK_SIZE:
        raise ValueError(f"Deck must contain exactly {DECK_SIZE} distinct cards.")

    hands: Dict[int, List[Card]] = {seat: [] for seat in SEATS}
    for index, card in enumerate(cards):
        hands[(index % len(SEATS)) + 1].append(card)
    for hand in hands.values():
        hand.sort(key=card_sort_key)
    return hands


def fresh_deck(rng: Optional[Random] = None) -> List[Card]:
    return shuffle(build_deck(), rng)
