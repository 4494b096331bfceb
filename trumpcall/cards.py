"""Card-related data structures and helpers."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Tuple


class Suit(Enum):
    SPADES = "spades"
    HEARTS = "hearts"
    DIAMONDS = "diamonds"
    CLUBS = "clubs"

    def __str__(self) -> str:
        return self.value


class Rank(Enum):
    TWO = "2"
    THREE = "3"
    FOUR = "4"
    FIVE = "5"
    SIX = "6"
    SEVEN = "7"
    EIGHT = "8"
    NINE = "9"
    TEN = "10"
    JACK = "J"
    QUEEN = "Q"
    KING = "K"
    ACE = "A"

    def __str__(self) -> str:
        return self.value


# Rank order from lowest to highest for trick resolution.
RANK_ORDER: list[Rank] = list(Rank)

RANK_STRENGTH: dict[Rank, int] = {rank: index for index, rank in enumerate(RANK_ORDER, start=2)}

# Display order of suits inside a sorted hand.
SUIT_ORDER: list[Suit] = list(Suit)

SUIT_INDEX: dict[Suit, int] = {suit: index for index, suit in enumerate(SUIT_ORDER)}

SUIT_SYMBOLS: dict[Suit, str] = {
    Suit.SPADES: "♠",
    Suit.HEARTS: "♥",
    Suit.DIAMONDS: "♦",
    Suit.CLUBS: "♣",
}


@dataclass(frozen=True)
class Card:
    """Immutable representation of a playing card."""

    suit: Suit
    rank: Rank

    def __str__(self) -> str:
        return f"{self.rank.value}{SUIT_SYMBOLS[self.suit]}"


def card_strength(card: Card) -> int:
    """Return an integer strength used for ordering cards within a suit."""
    return RANK_STRENGTH[card.rank]


def card_sort_key(card: Card) -> Tuple[int, int]:
    return SUIT_INDEX[card.suit], RANK_STRENGTH[card.rank]


def parse_suit(value: str) -> Suit:
    try:
        return Suit(value.lower())
    except ValueError as exc:
        raise ValueError(f"Unknown suit {value!r}.") from exc


def serialize_card(card: Card) -> dict[str, str]:
    return {"suit": card.suit.value, "rank": card.rank.value}


def deserialize_card(payload: Mapping[str, str]) -> Card:
    suit = parse_suit(payload["suit"])
    try:
        rank = Rank(str(payload["rank"]).upper())
    except ValueError as exc:
        raise ValueError(f"Unknown rank {payload['rank']!r}.") from exc
    return Card(suit, rank)


def card_label(card: Card) -> str:
    return f"{card.rank.name.title()} of {card.suit.name.title()}"
