import random

import pytest

from trumpcall.cards import Card, Rank, Suit, card_sort_key
from trumpcall.deck import DECK_SIZE, HAND_SIZE, SEATS, build_deck, deal, fresh_deck, shuffle


def test_build_deck_has_52_distinct_cards():
    deck = build_deck()
    assert len(deck) == DECK_SIZE
    assert len(set(deck)) == DECK_SIZE
    assert deck[0] == Card(Suit.SPADES, Rank.TWO)
    assert deck[-1] == Card(Suit.CLUBS, Rank.ACE)


def test_shuffle_is_a_permutation():
    deck = build_deck()
    shuffled = shuffle(deck, random.Random(3))
    assert sorted(shuffled, key=card_sort_key) == sorted(deck, key=card_sort_key)
    assert deck == build_deck()


def test_fresh_deck_is_reproducible_with_seeded_rng():
    assert fresh_deck(random.Random(11)) == fresh_deck(random.Random(11))


def test_deal_partitions_deck_by_index():
    deck = build_deck()
    hands = deal(deck)

    assert set(hands) == set(SEATS)
    assert all(len(hand) == HAND_SIZE for hand in hands.values())
    dealt = [card for hand in hands.values() for card in hand]
    assert len(set(dealt)) == DECK_SIZE

    for index, card in enumerate(deck):
        assert card in hands[(index % 4) + 1]


def test_dealt_hands_are_sorted_by_suit_then_rank():
    hands = deal(fresh_deck(random.Random(5)))
    for hand in hands.values():
        assert hand == sorted(hand, key=card_sort_key)


def test_deal_rejects_duplicate_cards():
    deck = build_deck()
    deck[1] = deck[0]
    with pytest.raises(ValueError):
        deal(deck)

    with pytest.raises(ValueError):
        deal(build_deck()[:-1])
