"""Room state machine.

``RoomStateMachine.apply`` takes the current ``RoomState`` and one action and
returns a ``Transition``: a new room value, the entity changes to persist and
publish, and any deferred actions to schedule. The input room is never
mutated, so a rejected action leaves no trace.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from .actions import (
    ActionType,
    JoinRoom,
    OpenBidding,
    PlaceBid,
    PlayCard,
    SelectTrump,
    SetConnection,
    StartNextRound,
)
from .bidding import Bid, highest_bid, is_all_pass
from .cards import Card
from .config import Settings, get_settings
from .deck import SEATS, deal, fresh_deck
from .errors import IllegalPlay, InvalidAction, InvalidBid, RoomFull, StaleTimer
from .events import EntityKind, StateChange
from .rules import (
    TRICKS_PER_ROUND,
    is_bidding_complete,
    is_game_over,
    legal_plays,
    next_seat,
    settle_round,
    team_for_seat,
    validate_bid,
)
from .state import GameState, Phase, Player, RoomState
from .trick import CompletedTrick, PlayedCard, Trick

DeckFactory = Callable[[], Sequence[Card]]


@dataclass
class Deferred:
    delay: float
    action: Any


@dataclass
class Transition:
    room: RoomState
    changes: List[StateChange] = field(default_factory=list)
    timers: List[Deferred] = field(default_factory=list)
    seat: Optional[int] = None

    def emit(self, kind: EntityKind, value: Any, *, owner: Optional[int] = None, record: Any = None) -> None:
        self.changes.append(StateChange(kind=kind, value=value, owner=owner, record=record))

    def schedule(self, delay: float, action: Any) -> None:
        self.timers.append(Deferred(delay=delay, action=action))


class RoomStateMachine:
    """Apply player and timer actions to a room."""

    def __init__(self, settings: Optional[Settings] = None, deck_factory: Optional[DeckFactory] = None) -> None:
        self.settings = settings or get_settings()
        self.deck_factory: DeckFactory = deck_factory or fresh_deck
        self._handlers: Dict[ActionType, Callable[[RoomState, Any, Transition], None]] = {
            ActionType.JOIN: self._join,
            ActionType.BID: self._bid,
            ActionType.SELECT_TRUMP: self._select_trump,
            ActionType.PLAY_CARD: self._play_card,
            ActionType.SET_CONNECTION: self._set_connection,
            ActionType.OPEN_BIDDING: self._open_bidding,
            ActionType.START_NEXT_ROUND: self._start_next_round,
        }

    def new_room(self, room_id: str, code: str) -> RoomState:
        return RoomState(room_id=room_id, code=code)

    def apply(self, room: RoomState, action: Any) -> Transition:
        handler = self._handlers.get(getattr(action, "action_type", None))
        if handler is None:
            raise InvalidAction(f"Unsupported action {type(action).__name__}.")
        working = room.copy()
        transition = Transition(room=working)
        handler(working, action, transition)
        return transition

    # Lobby -------------------------------------------------------------

    def _join(self, room: RoomState, action: JoinRoom, step: Transition) -> None:
        existing = room.seat_of(action.identity)
        if existing is not None:
            step.seat = existing
            return
        if room.is_full() or room.game.phase is not Phase.LOBBY:
            raise RoomFull(
                f"Room {room.code} is not accepting players.",
                seats_taken=len(room.players),
                phase=room.game.phase.value,
            )

        seat = len(room.players) + 1
        room.players.append(
            Player(
                identity=action.identity,
                player_name=action.player_name,
                player_number=seat,
                team_number=team_for_seat(seat),
                is_host=seat == 1,
            )
        )
        step.seat = seat
        step.emit(EntityKind.PLAYERS, list(room.players))

        if room.is_full():
            self._deal(room, step, new_round=True)

    def _set_connection(self, room: RoomState, action: SetConnection, step: Transition) -> None:
        self._require_seat(action.player_number)
        for index, player in enumerate(room.players):
            if player.player_number == action.player_number:
                if player.connected != action.connected:
                    room.players[index] = dataclasses.replace(player, connected=action.connected)
                    step.emit(EntityKind.PLAYERS, list(room.players))
                return
        raise InvalidAction(f"Seat {action.player_number} is empty.", player=action.player_number)

    # Dealing -----------------------------------------------------------

    def _deal(self, room: RoomState, step: Transition, *, new_round: bool) -> None:
        game = room.game
        if new_round:
            game.round_number += 1
            game.dealer = ((game.round_number - 1) % len(SEATS)) + 1
        game.phase = Phase.DEALING
        game.current_player = 0
        game.trump_suit = None
        game.highest_bid = 0
        game.bid_winner = None
        game.team1_tricks = 0
        game.team2_tricks = 0
        game.current_trick_number = 1

        room.hands = deal(self.deck_factory())
        room.bids = []
        room.trick = Trick(trick_number=1)

        step.emit(EntityKind.GAME_STATE, dataclasses.replace(game))
        step.emit(EntityKind.BIDS, [])
        step.emit(EntityKind.TRICK, room.trick)
        for seat in SEATS:
            step.emit(EntityKind.HAND, list(room.hands[seat]), owner=seat)
        step.schedule(self.settings.deal_settle_seconds, OpenBidding(round_number=game.round_number))

    def _open_bidding(self, room: RoomState, action: OpenBidding, step: Transition) -> None:
        game = room.game
        self._require_timer(game, Phase.DEALING, action.round_number)
        game.phase = Phase.BIDDING
        game.current_player = game.last_round_winner or 1
        game.highest_bid = 0
        game.bid_winner = None
        step.emit(EntityKind.GAME_STATE, dataclasses.replace(game))

    # Bidding -----------------------------------------------------------

    def _bid(self, room: RoomState, action: PlaceBid, step: Transition) -> None:
        game = room.game
        if game.phase is not Phase.BIDDING:
            raise InvalidBid(
                "Bidding is not open.",
                expected_phase=Phase.BIDDING.value,
                phase=game.phase.value,
            )
        self._require_turn(game, action.player_number)
        validate_bid(action.amount, game.highest_bid)

        bid = Bid(player_number=action.player_number, amount=action.amount, round_number=game.round_number)
        room.bids.append(bid)
        step.emit(EntityKind.BIDS, list(room.bids), record=bid)

        best = highest_bid(room.bids)
        game.highest_bid = best.amount if best is not None else 0
        game.bid_winner = best.player_number if best is not None else None

        if is_bidding_complete(room.bids):
            game.phase = Phase.TRUMP_SELECTION
            game.current_player = game.bid_winner
        elif is_all_pass(room.bids, players=len(SEATS)):
            self._deal(room, step, new_round=False)
            return
        else:
            game.current_player = next_seat(action.player_number)
        step.emit(EntityKind.GAME_STATE, dataclasses.replace(game))

    def _select_trump(self, room: RoomState, action: SelectTrump, step: Transition) -> None:
        game = room.game
        self._require_phase(game, Phase.TRUMP_SELECTION)
        if action.player_number != game.bid_winner:
            raise InvalidAction(
                "Only the bid winner may select trump.",
                expected_player=game.bid_winner,
                player=action.player_number,
            )
        game.trump_suit = action.suit
        game.phase = Phase.PLAYING
        game.current_player = game.bid_winner
        game.current_trick_number = 1
        room.trick = Trick(trick_number=1)
        step.emit(EntityKind.GAME_STATE, dataclasses.replace(game))

    # Playing -----------------------------------------------------------

    def _play_card(self, room: RoomState, action: PlayCard, step: Transition) -> None:
        game = room.game
        self._require_phase(game, Phase.PLAYING)
        self._require_turn(game, action.player_number)

        seat = action.player_number
        hand = room.hands[seat]
        card = action.card
        if card not in hand:
            raise IllegalPlay(f"Card {card} is not in hand.", player=seat, card=str(card))
        leading_suit = room.trick.leading_suit
        if card not in legal_plays(hand, leading_suit):
            raise IllegalPlay(
                f"Card {card} does not follow the leading suit {leading_suit}.",
                player=seat,
                card=str(card),
                leading_suit=str(leading_suit),
            )

        hand.remove(card)
        room.trick.add_play(seat, card)
        record = PlayedCard(
            round_number=game.round_number,
            trick_number=room.trick.trick_number,
            player_number=seat,
            card=card,
            leading_suit=room.trick.leading_suit,
            sequence=len(room.trick.plays),
        )
        step.emit(EntityKind.HAND, list(hand), owner=seat)
        step.emit(EntityKind.TRICK, room.trick, record=record)

        if room.trick.is_full():
            self._complete_trick(room, step)
        else:
            game.current_player = next_seat(seat)
        step.emit(EntityKind.GAME_STATE, dataclasses.replace(game))

    def _complete_trick(self, room: RoomState, step: Transition) -> None:
        game = room.game
        trick = room.trick
        winner = trick.winning_player(game.trump_suit)
        completed = CompletedTrick(
            round_number=game.round_number,
            trick_number=trick.trick_number,
            cards_played=tuple(trick.plays),
            winner=winner,
            leading_suit=trick.leading_suit,
        )
        room.completed_tricks.append(completed)
        game.add_trick(team_for_seat(winner))
        step.emit(EntityKind.COMPLETED_TRICK, completed, record=completed)

        if trick.trick_number >= TRICKS_PER_ROUND:
            room.trick = Trick(trick_number=trick.trick_number)
            step.emit(EntityKind.TRICK, room.trick)
            self._settle(room, step)
            return

        game.current_trick_number = trick.trick_number + 1
        game.current_player = winner
        room.trick = Trick(trick_number=game.current_trick_number)
        step.emit(EntityKind.TRICK, room.trick)

    def _settle(self, room: RoomState, step: Transition) -> None:
        game = room.game
        settlement = settle_round(game.bid_winner, game.highest_bid, game.team1_tricks, game.team2_tricks)
        game.team1_score, game.team2_score = settlement.apply(game.team1_score, game.team2_score)
        game.current_player = 0

        winner = is_game_over(game.team1_score, game.team2_score)
        if winner is not None:
            game.phase = Phase.GAME_OVER
            game.winner = winner
            return

        game.phase = Phase.ROUND_END
        game.last_round_winner = settlement.round_winner
        room.bids = []
        step.emit(EntityKind.BIDS, [])
        step.schedule(self.settings.round_end_settle_seconds, StartNextRound(round_number=game.round_number))

    def _start_next_round(self, room: RoomState, action: StartNextRound, step: Transition) -> None:
        self._require_timer(room.game, Phase.ROUND_END, action.round_number)
        self._deal(room, step, new_round=True)

    # Preconditions -----------------------------------------------------

    def _require_seat(self, seat: int) -> None:
        if seat not in SEATS:
            raise InvalidAction(f"Seat {seat} does not exist.", player=seat)

    def _require_phase(self, game: GameState, expected: Phase) -> None:
        if game.phase is not expected:
            raise InvalidAction(
                f"Action not allowed in phase {game.phase}. Expected {expected}.",
                expected_phase=expected.value,
                phase=game.phase.value,
            )

    def _require_turn(self, game: GameState, seat: int) -> None:
        self._require_seat(seat)
        if seat != game.current_player:
            raise InvalidAction(
                f"Not player {seat}'s turn; waiting on player {game.current_player}.",
                expected_player=game.current_player,
                player=seat,
            )

    def _require_timer(self, game: GameState, expected: Phase, round_number: int) -> None:
        if game.phase is not expected or game.round_number != round_number:
            raise StaleTimer(
                f"Deferred {expected} transition for round {round_number} no longer applies.",
                expected_phase=expected.value,
                phase=game.phase.value,
                expected_round=round_number,
                round_number=game.round_number,
            )
