"""Convenience service layer for the network surface and bots."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Optional

from .actions import PlaceBid, PlayCard, SelectTrump
from .cards import Card, card_label, deserialize_card, parse_suit, serialize_card
from .errors import IllegalPlay, InvalidAction
from .events import EntityKind, StateChange
from .registry import RoomRegistry
from .rules import legal_plays
from .state import GameState, Phase, Player, RoomState
from .trick import CompletedTrick, Trick


@dataclass
class TrickPlayView:
    player: int
    card: dict
    label: str


@dataclass
class TrickView:
    trick_number: int
    leading_suit: Optional[str]
    plays: list[TrickPlayView]


@dataclass
class RoomView:
    room_id: str
    room_code: str
    player_number: Optional[int]
    players: list[dict]
    game: dict
    bids: list[dict]
    trick: TrickView
    completed_tricks: int
    hand: list[dict]
    hand_labels: list[str]
    legal_plays: list[dict]

    def to_dict(self) -> dict:
        return asdict(self)


def serialize_player(player: Player) -> dict:
    return {
        "player_name": player.player_name,
        "player_number": player.player_number,
        "team_number": player.team_number,
        "is_host": player.is_host,
        "connected": player.connected,
    }


def serialize_game_state(game: GameState) -> dict:
    return {
        "phase": game.phase.value,
        "current_player": game.current_player,
        "dealer": game.dealer,
        "round_number": game.round_number,
        "trump_suit": game.trump_suit.value if game.trump_suit else None,
        "highest_bid": game.highest_bid,
        "bid_winner": game.bid_winner,
        "team1_score": game.team1_score,
        "team2_score": game.team2_score,
        "team1_tricks": game.team1_tricks,
        "team2_tricks": game.team2_tricks,
        "last_round_winner": game.last_round_winner,
        "current_trick_number": game.current_trick_number,
        "winner": game.winner,
    }


def trick_view(trick: Trick) -> TrickView:
    return TrickView(
        trick_number=trick.trick_number,
        leading_suit=trick.leading_suit.value if trick.leading_suit else None,
        plays=[TrickPlayView(player=p, card=serialize_card(c), label=card_label(c)) for p, c in trick.plays],
    )


def serialize_completed_trick(trick: CompletedTrick) -> dict:
    return {
        "round_number": trick.round_number,
        "trick_number": trick.trick_number,
        "cards_played": [{"player_number": p, "card": serialize_card(c)} for p, c in trick.cards_played],
        "winner": trick.winner,
        "leading_suit": trick.leading_suit.value,
    }


def serialize_change(change: StateChange) -> dict:
    """JSON-ready payload for one published change."""
    kind = change.kind
    if kind is EntityKind.PLAYERS:
        value: Any = [serialize_player(player) for player in change.value]
    elif kind is EntityKind.GAME_STATE:
        value = serialize_game_state(change.value)
    elif kind is EntityKind.BIDS:
        value = [{"player_number": b.player_number, "amount": b.amount, "passed": b.passed} for b in change.value]
    elif kind is EntityKind.TRICK:
        value = asdict(trick_view(change.value))
    elif kind is EntityKind.COMPLETED_TRICK:
        value = serialize_completed_trick(change.value)
    else:
        value = [serialize_card(card) for card in change.value]
    payload = {"kind": kind.value, "value": value}
    if change.owner is not None:
        payload["owner"] = change.owner
    return payload


def build_room_view(room: RoomState, perspective: Optional[int] = None) -> RoomView:
    """Everything ``perspective`` may see; other seats' hands are never included."""
    hand: list[Card] = list(room.hands.get(perspective, [])) if perspective is not None else []
    legal: list[Card] = []
    if (
        perspective is not None
        and room.game.phase is Phase.PLAYING
        and room.game.current_player == perspective
    ):
        legal = legal_plays(hand, room.trick.leading_suit)

    return RoomView(
        room_id=room.room_id,
        room_code=room.code,
        player_number=perspective,
        players=[serialize_player(player) for player in room.players],
        game=serialize_game_state(room.game),
        bids=[{"player_number": b.player_number, "amount": b.amount, "passed": b.passed} for b in room.bids],
        trick=trick_view(room.trick),
        completed_tricks=len(room.completed_tricks),
        hand=[serialize_card(card) for card in hand],
        hand_labels=[card_label(card) for card in hand],
        legal_plays=[serialize_card(card) for card in legal],
    )


class RoomService:
    """Facade around RoomRegistry addressing players by identity."""

    def __init__(self, registry: RoomRegistry) -> None:
        self.registry = registry

    # Room lifecycle ----------------------------------------------------

    def create_room(self, player_name: str, identity: Optional[str] = None) -> tuple[RoomView, Player]:
        room, player = self.registry.create_room(player_name, identity)
        return build_room_view(room, player.player_number), player

    def join_room(self, code: str, player_name: str, identity: Optional[str] = None) -> tuple[RoomView, Player]:
        room_id, player = self.registry.join_by_code(code, player_name, identity)
        return self.get_room_view(room_id, player.identity), player

    # Actions -----------------------------------------------------------

    def place_bid(self, room_id: str, identity: str, amount: Optional[int]) -> RoomView:
        seat = self.registry.seat_of(room_id, identity)
        transition = self.registry.submit(room_id, PlaceBid(player_number=seat, amount=amount))
        return build_room_view(transition.room, seat)

    def select_trump(self, room_id: str, identity: str, suit: str) -> RoomView:
        seat = self.registry.seat_of(room_id, identity)
        try:
            trump = parse_suit(suit)
        except ValueError as exc:
            raise InvalidAction(str(exc), suit=suit) from exc
        transition = self.registry.submit(room_id, SelectTrump(player_number=seat, suit=trump))
        return build_room_view(transition.room, seat)

    def play_card(self, room_id: str, identity: str, card_payload: dict) -> RoomView:
        seat = self.registry.seat_of(room_id, identity)
        try:
            card = deserialize_card(card_payload)
        except (KeyError, ValueError) as exc:
            raise IllegalPlay(f"Malformed card {card_payload!r}.", card=card_payload) from exc
        transition = self.registry.submit(room_id, PlayCard(player_number=seat, card=card))
        return build_room_view(transition.room, seat)

    # Views -------------------------------------------------------------

    def get_room_view(self, room_id: str, identity: Optional[str] = None) -> RoomView:
        room = self.registry.snapshot(room_id)
        seat = room.seat_of(identity) if identity is not None else None
        return build_room_view(room, seat)
