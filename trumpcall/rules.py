"""Pure rule functions: legality, trick resolution, bidding and scoring."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from .bidding import MAX_BID, MIN_BID, Bid
from .cards import Card, Suit, card_strength
from .errors import InvalidBid

TRICKS_PER_ROUND = 13
GAME_OVER_THRESHOLD = -52


def team_for_seat(seat: int) -> int:
    """Seats 1 and 3 are team 1, seats 2 and 4 are team 2."""
    return 1 if seat % 2 == 1 else 2


def opponent_team(team: int) -> int:
    return 2 if team == 1 else 1


def next_seat(seat: int) -> int:
    return (seat % 4) + 1


def legal_plays(hand: Iterable[Card], leading_suit: Optional[Suit]) -> List[Card]:
    """Return the cards of ``hand`` that may be played into the current trick."""
    cards = list(hand)
    if leading_suit is None:
        return cards
    following = [card for card in cards if card.suit is leading_suit]
    return following if following else cards


def trick_winner(
    cards_played: Sequence[Tuple[int, Card]],
    leading_suit: Suit,
    trump_suit: Optional[Suit],
) -> int:
    """Return the seat that won the trick.

    The highest trump wins if any trump was played, otherwise the highest card
    of the leading suit.
    """
    if not cards_played:
        raise ValueError("Cannot determine winner of an empty trick.")
    trumps = [(seat, card) for seat, card in cards_played if trump_suit is not None and card.suit is trump_suit]
    candidates = trumps or [(seat, card) for seat, card in cards_played if card.suit is leading_suit]
    if not candidates:
        raise ValueError(f"No card of the leading suit {leading_suit} in trick.")
    seat, _ = max(candidates, key=lambda play: card_strength(play[1]))
    return seat


def is_bidding_complete(bids: Sequence[Bid]) -> bool:
    """True once someone has bid and the three most recent entries are passes."""
    if not any(not bid.passed for bid in bids):
        return False
    last_three = bids[-3:]
    return len(last_three) == 3 and all(bid.passed for bid in last_three)


def minimum_next_bid(current_highest: int) -> int:
    return MIN_BID if current_highest == 0 else current_highest + 1


def validate_bid(amount: Optional[int], current_highest: int) -> None:
    """Raise InvalidBid unless ``amount`` is a pass or within the open range."""
    if amount is None:
        return
    minimum = minimum_next_bid(current_highest)
    if amount < minimum or amount > MAX_BID:
        raise InvalidBid(
            f"Bid {amount} outside the allowed range {minimum}..{MAX_BID}.",
            received=amount,
            minimum=minimum,
            maximum=MAX_BID,
        )


@dataclass(frozen=True)
class RoundSettlement:
    bidding_team: int
    bid_amount: int
    made_bid: bool
    bidding_team_score: int
    opponent_team_score: int

    @property
    def round_winner(self) -> int:
        return self.bidding_team if self.made_bid else opponent_team(self.bidding_team)

    @property
    def team1_delta(self) -> int:
        return self.bidding_team_score if self.bidding_team == 1 else self.opponent_team_score

    @property
    def team2_delta(self) -> int:
        return self.bidding_team_score if self.bidding_team == 2 else self.opponent_team_score

    def apply(self, team1_score: int, team2_score: int) -> Tuple[int, int]:
        return team1_score + self.team1_delta, team2_score + self.team2_delta


def settle_round(bid_winner: int, bid_amount: int, team1_tricks: int, team2_tricks: int) -> RoundSettlement:
    """Score a finished round.

    The bidding team earns its bid when it took at least that many tricks and
    loses twice the bid otherwise; the opponents always earn their trick count.
    """
    bidding_team = team_for_seat(bid_winner)
    tricks = (team1_tricks, team2_tricks)
    bidding_tricks = tricks[bidding_team - 1]
    opponent_tricks = tricks[opponent_team(bidding_team) - 1]
    made_bid = bidding_tricks >= bid_amount
    return RoundSettlement(
        bidding_team=bidding_team,
        bid_amount=bid_amount,
        made_bid=made_bid,
        bidding_team_score=bid_amount if made_bid else -2 * bid_amount,
        opponent_team_score=opponent_tricks,
    )


def is_game_over(team1_score: int, team2_score: int) -> Optional[int]:
    """Return the winning team once a team has fallen to the threshold."""
    if team1_score <= GAME_OVER_THRESHOLD:
        return 2
    if team2_score <= GAME_OVER_THRESHOLD:
        return 1
    return None
