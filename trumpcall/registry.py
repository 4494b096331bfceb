"""Room registry and per-room serialization gate.

Every mutation of a room, whether a player action or a deferred timer event,
runs the same cycle while holding that room's lock: load the current state,
apply one transition, persist it, publish the changes, then schedule any
deferred follow-ups. Lookups across rooms only take the registry lock, never
a room lock.
"""

from __future__ import annotations

import contextlib
import logging
import threading
from typing import Any, Callable, Dict, Iterator, Optional, Sequence, Tuple

from .actions import JoinRoom, OpenBidding, SetConnection, StartNextRound, describe_action
from .cards import Card
from .config import Settings, get_settings
from .errors import FanoutError, InvalidAction, RoomNotFound, StaleTimer, TrumpcallError
from .events import Fanout, Observer, Subscription
from .machine import RoomStateMachine, Transition
from .naming import generate_identity, generate_room_code
from .state import Phase, Player, RoomState
from .store import InMemoryStore, PersistenceAdapter, StateStore
from .scheduler import Scheduler, ThreadingScheduler

logger = logging.getLogger(__name__)


class _RoomGate:
    """Lock for one room plus the number of threads holding or waiting on it."""

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.users = 0


class RoomRegistry:
    """Owns live rooms and serializes every transition applied to each one."""

    def __init__(
        self,
        store: Optional[StateStore] = None,
        *,
        fanout: Optional[Fanout] = None,
        scheduler: Optional[Scheduler] = None,
        settings: Optional[Settings] = None,
        deck_factory: Optional[Callable[[], Sequence[Card]]] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.store = store if store is not None else InMemoryStore()
        self.persistence = PersistenceAdapter(self.store)
        self.fanout = fanout or Fanout()
        self.scheduler = scheduler or ThreadingScheduler()
        self.machine = RoomStateMachine(self.settings, deck_factory=deck_factory)

        self._registry_lock = threading.Lock()
        self._gates: Dict[str, _RoomGate] = {}
        self._rooms: Dict[str, RoomState] = {}
        self._codes: Dict[str, str] = {}

    # Room lifecycle ----------------------------------------------------

    def create_room(self, player_name: str, identity: Optional[str] = None) -> Tuple[RoomState, Player]:
        """Create a room and seat its creator as host in seat 1."""
        identity = identity or generate_identity()
        room_id = generate_identity()
        code = self._unique_code()
        room = self.machine.new_room(room_id, code)
        self.persistence.create(room)

        with self._registry_lock:
            self._rooms[room_id] = room
            self._codes[code] = room_id
        logger.info(f"Created room {room_id} with code {code}")

        player = self.join(room_id, player_name, identity)
        return self.snapshot(room_id), player

    def join(self, room_id: str, player_name: str, identity: Optional[str] = None) -> Player:
        identity = identity or generate_identity()
        transition = self.submit(room_id, JoinRoom(identity=identity, player_name=player_name))
        return transition.room.player(transition.seat)

    def join_by_code(self, code: str, player_name: str, identity: Optional[str] = None) -> Tuple[str, Player]:
        room_id = self.find_room(code)
        return room_id, self.join(room_id, player_name, identity)

    def find_room(self, code: str) -> str:
        code = code.strip().upper()
        with self._registry_lock:
            room_id = self._codes.get(code)
        if room_id is None:
            room_id = self.store.find_room_id(code)
        if room_id is None:
            raise RoomNotFound(code=code)
        return room_id

    def attach(self, room_id: str) -> RoomState:
        """Load a persisted room into the registry and re-arm its pending timer."""
        with self._room_lock(room_id):
            return self._load(room_id).copy()

    def snapshot(self, room_id: str) -> RoomState:
        with self._room_lock(room_id):
            return self._load(room_id).copy()

    def seat_of(self, room_id: str, identity: str) -> int:
        seat = self.snapshot(room_id).seat_of(identity)
        if seat is None:
            raise InvalidAction(f"Player {identity} is not seated in room {room_id}.", identity=identity)
        return seat

    # Transitions -------------------------------------------------------

    def submit(self, room_id: str, action: Any) -> Transition:
        """Apply one action to a room under its lock.

        Rejections raise before anything is persisted or published. Store and
        fan-out failures propagate; a failed store write leaves the room at
        its previous state.
        """
        with self._room_lock(room_id):
            room = self._load(room_id)
            try:
                transition = self.machine.apply(room, action)
            except TrumpcallError as exc:
                logger.info(f"Rejected {describe_action(action)} in room {room_id}: {exc}")
                raise

            self.persistence.persist(room_id, transition.changes)
            with self._registry_lock:
                if transition.room.game.phase is Phase.GAME_OVER:
                    # Finished rooms are retired; the store can still replay them.
                    self._rooms.pop(room_id, None)
                    self._codes.pop(transition.room.code, None)
                else:
                    self._rooms[room_id] = transition.room
            logger.info(
                f"Room {room_id}: {describe_action(action)} -> {transition.room.game.phase} "
                f"(round {transition.room.game.round_number}, trick {transition.room.game.current_trick_number})"
            )

            for deferred in transition.timers:
                self._schedule(room_id, deferred.delay, deferred.action)
            failures = []
            for change in transition.changes:
                try:
                    self.fanout.publish(room_id, change)
                except FanoutError as exc:
                    failures.append(exc)
            if failures:
                raise failures[0]
            return transition

    def set_connected(self, room_id: str, identity: str, connected: bool) -> None:
        seat = self.seat_of(room_id, identity)
        self.submit(room_id, SetConnection(player_number=seat, connected=connected))

    def subscribe(self, room_id: str, observer: Observer, seat: Optional[int] = None) -> Subscription:
        self.snapshot(room_id)
        return self.fanout.subscribe(room_id, observer, seat)

    def shutdown(self) -> None:
        self.scheduler.shutdown()

    # Internals ---------------------------------------------------------

    def _fire(self, room_id: str, action: Any, attempt: int = 0) -> None:
        try:
            self.submit(room_id, action)
        except StaleTimer as exc:
            logger.debug(f"Dropped stale timer in room {room_id}: {exc}")
        except RoomNotFound as exc:
            logger.warning(f"Dropped deferred {describe_action(action)}: {exc}")
        except FanoutError as exc:
            # Already persisted; only delivery failed.
            logger.error(f"Deferred {describe_action(action)} in room {room_id} was not fully published: {exc}")
        except Exception as exc:
            delay = min(
                self.settings.timer_retry_seconds * 2**attempt,
                self.settings.timer_retry_max_seconds,
            )
            logger.error(
                f"Deferred {describe_action(action)} failed in room {room_id}, retrying in {delay}s: {exc}",
                exc_info=True,
            )
            self.scheduler.call_later(delay, lambda: self._fire(room_id, action, attempt + 1))

    def _schedule(self, room_id: str, delay: float, action: Any) -> None:
        self.scheduler.call_later(delay, lambda: self._fire(room_id, action))

    @contextlib.contextmanager
    def _room_lock(self, room_id: str) -> Iterator[None]:
        """Hold the room's lock; the gate is dropped once no thread uses it and the room is not cached."""
        with self._registry_lock:
            gate = self._gates.get(room_id)
            if gate is None:
                gate = self._gates[room_id] = _RoomGate()
            gate.users += 1
        try:
            with gate.lock:
                yield
        finally:
            with self._registry_lock:
                gate.users -= 1
                if gate.users == 0 and room_id not in self._rooms:
                    self._gates.pop(room_id, None)

    def _load(self, room_id: str) -> RoomState:
        """Current room state; callers hold the room lock."""
        with self._registry_lock:
            room = self._rooms.get(room_id)
        if room is not None:
            return room

        room = self.store.load(room_id)
        if room is None:
            raise RoomNotFound(room_id)
        if room.game.phase is Phase.GAME_OVER:
            return room
        with self._registry_lock:
            self._rooms[room_id] = room
            self._codes.setdefault(room.code, room_id)
        logger.info(f"Attached room {room_id} in phase {room.game.phase} (round {room.game.round_number})")

        game = room.game
        if game.phase is Phase.DEALING:
            self._schedule(room_id, self.settings.deal_settle_seconds, OpenBidding(game.round_number))
        elif game.phase is Phase.ROUND_END:
            self._schedule(room_id, self.settings.round_end_settle_seconds, StartNextRound(game.round_number))
        return room

    def _unique_code(self) -> str:
        for _ in range(self.settings.room_code_attempts):
            code = generate_room_code(self.settings.room_code_length)
            with self._registry_lock:
                taken = code in self._codes
            if not taken and self.store.find_room_id(code) is None:
                return code
            logger.warning(f"Room code collision detected, regenerating: {code}")
        raise RuntimeError("Could not generate a unique room code.")
