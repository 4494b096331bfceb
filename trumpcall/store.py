"""State store interface, in-memory store and the persistence adapter.

A store is written through short units of work: every change produced by
one transition is written inside a single ``store.transaction(room_id)`` so a
failing write leaves the durable state at the previous transition.
"""

from __future__ import annotations

import contextlib
import copy
import threading
from abc import ABC, abstractmethod
from typing import Callable, Dict, Iterator, List, Optional, Sequence

from .bidding import Bid
from .cards import Card
from .errors import PersistenceError
from .events import EntityKind, StateChange
from .state import GameState, Player, RoomState
from .trick import CompletedTrick, PlayedCard, Trick


class StoreTransaction(ABC):
    """Writes against one room, applied atomically by the owning store."""

    @abstractmethod
    def create_room(self, code: str) -> None: ...

    @abstractmethod
    def save_players(self, players: Sequence[Player]) -> None: ...

    @abstractmethod
    def save_game_state(self, state: GameState) -> None: ...

    @abstractmethod
    def save_hand(self, player_number: int, cards: Sequence[Card]) -> None: ...

    @abstractmethod
    def append_bid(self, bid: Bid) -> None: ...

    @abstractmethod
    def clear_bids(self) -> None: ...

    @abstractmethod
    def append_trick_card(self, record: PlayedCard) -> None: ...

    @abstractmethod
    def clear_trick(self) -> None: ...

    @abstractmethod
    def append_completed_trick(self, record: CompletedTrick) -> None: ...


class StateStore(ABC):
    @abstractmethod
    def transaction(self, room_id: str) -> contextlib.AbstractContextManager[StoreTransaction]: ...

    @abstractmethod
    def load(self, room_id: str) -> Optional[RoomState]:
        """Rebuild a room from durable state, or None if it was never created."""

    @abstractmethod
    def find_room_id(self, code: str) -> Optional[str]: ...

    def load_game_state(self, room_id: str) -> Optional[GameState]:
        room = self.load(room_id)
        return room.game if room is not None else None


def rebuild_trick(trick_number: int, records: Sequence[PlayedCard]) -> Trick:
    ordered = sorted(records, key=lambda record: record.sequence)
    trick = Trick(trick_number=trick_number)
    for record in ordered:
        trick.add_play(record.player_number, record.card)
    return trick


# In-memory store -----------------------------------------------------------


class _MemoryRoom:
    def __init__(self, room_id: str, code: str) -> None:
        self.room_id = room_id
        self.code = code
        self.players: List[Player] = []
        self.game = GameState()
        self.hands: Dict[int, List[Card]] = {}
        self.bids: List[Bid] = []
        self.trick_cards: List[PlayedCard] = []
        self.completed: List[CompletedTrick] = []


class _MemoryTransaction(StoreTransaction):
    def __init__(self, room_id: str) -> None:
        self.room_id = room_id
        self.ops: List[Callable[[Dict[str, _MemoryRoom]], None]] = []

    def _room_op(self, fn: Callable[[_MemoryRoom], None]) -> None:
        def op(rooms: Dict[str, _MemoryRoom]) -> None:
            room = rooms.get(self.room_id)
            if room is None:
                raise PersistenceError(f"Room {self.room_id} was never created.", room_id=self.room_id)
            fn(room)

        self.ops.append(op)

    def create_room(self, code: str) -> None:
        def op(rooms: Dict[str, _MemoryRoom]) -> None:
            if self.room_id in rooms:
                raise PersistenceError(f"Room {self.room_id} already exists.", room_id=self.room_id)
            rooms[self.room_id] = _MemoryRoom(self.room_id, code)

        self.ops.append(op)

    def save_players(self, players: Sequence[Player]) -> None:
        snapshot = list(players)
        self._room_op(lambda room: setattr(room, "players", snapshot))

    def save_game_state(self, state: GameState) -> None:
        snapshot = copy.copy(state)
        self._room_op(lambda room: setattr(room, "game", snapshot))

    def save_hand(self, player_number: int, cards: Sequence[Card]) -> None:
        snapshot = list(cards)
        self._room_op(lambda room: room.hands.__setitem__(player_number, snapshot))

    def append_bid(self, bid: Bid) -> None:
        self._room_op(lambda room: room.bids.append(bid))

    def clear_bids(self) -> None:
        self._room_op(lambda room: room.bids.clear())

    def append_trick_card(self, record: PlayedCard) -> None:
        self._room_op(lambda room: room.trick_cards.append(record))

    def clear_trick(self) -> None:
        self._room_op(lambda room: room.trick_cards.clear())

    def append_completed_trick(self, record: CompletedTrick) -> None:
        self._room_op(lambda room: room.completed.append(record))


class InMemoryStore(StateStore):
    """Process-local store; writes of a transaction apply together or not at all."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._rooms: Dict[str, _MemoryRoom] = {}

    @contextlib.contextmanager
    def transaction(self, room_id: str) -> Iterator[StoreTransaction]:
        tx = _MemoryTransaction(room_id)
        yield tx
        with self._lock:
            rooms = dict(self._rooms)
            if room_id in rooms:
                rooms[room_id] = copy.deepcopy(rooms[room_id])
            for op in tx.ops:
                op(rooms)
            self._rooms = rooms

    def load(self, room_id: str) -> Optional[RoomState]:
        with self._lock:
            stored = self._rooms.get(room_id)
            if stored is None:
                return None
            stored = copy.deepcopy(stored)
        return RoomState(
            room_id=stored.room_id,
            code=stored.code,
            players=stored.players,
            hands=stored.hands,
            bids=stored.bids,
            trick=rebuild_trick(stored.game.current_trick_number, stored.trick_cards),
            completed_tricks=stored.completed,
            game=stored.game,
        )

    def find_room_id(self, code: str) -> Optional[str]:
        with self._lock:
            for room in self._rooms.values():
                if room.code == code:
                    return room.room_id
        return None


# Adapter -------------------------------------------------------------------


class PersistenceAdapter:
    """Translate state-machine changes into store writes."""

    def __init__(self, store: StateStore) -> None:
        self.store = store

    def create(self, room: RoomState) -> None:
        with self._guard(room.room_id):
            with self.store.transaction(room.room_id) as tx:
                tx.create_room(room.code)
                tx.save_game_state(room.game)

    def persist(self, room_id: str, changes: Sequence[StateChange]) -> None:
        if not changes:
            return
        with self._guard(room_id):
            with self.store.transaction(room_id) as tx:
                for change in changes:
                    self._write(tx, change)

    def _write(self, tx: StoreTransaction, change: StateChange) -> None:
        if change.kind is EntityKind.PLAYERS:
            tx.save_players(change.value)
        elif change.kind is EntityKind.GAME_STATE:
            tx.save_game_state(change.value)
        elif change.kind is EntityKind.HAND:
            tx.save_hand(change.owner, change.value)
        elif change.kind is EntityKind.BIDS:
            if change.record is not None:
                tx.append_bid(change.record)
            else:
                tx.clear_bids()
        elif change.kind is EntityKind.TRICK:
            if change.record is not None:
                tx.append_trick_card(change.record)
            else:
                tx.clear_trick()
        elif change.kind is EntityKind.COMPLETED_TRICK:
            tx.append_completed_trick(change.record)

    @contextlib.contextmanager
    def _guard(self, room_id: str) -> Iterator[None]:
        try:
            yield
        except PersistenceError:
            raise
        except Exception as exc:
            raise PersistenceError(f"Failed to persist room {room_id}: {exc}", room_id=room_id) from exc
