"""State-change events and per-room fan-out.

Observers subscribe to a room, optionally as the owner of a seat. Hand changes
are delivered only to observers of the owning seat; every other entity is
broadcast to all observers of the room. An observer that raises is
unsubscribed and the failure is reported to the publisher.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from .errors import FanoutError

logger = logging.getLogger(__name__)


class EntityKind(Enum):
    PLAYERS = "players"
    GAME_STATE = "game_state"
    BIDS = "bids"
    TRICK = "trick"
    COMPLETED_TRICK = "completed_trick"
    HAND = "hand"


@dataclass(frozen=True)
class StateChange:
    """New value of one entity of a room.

    ``record`` is set when the change appends a single record (a bid, a card
    played to the trick, a completed trick); ``owner`` marks private entities.
    """

    kind: EntityKind
    value: Any
    owner: Optional[int] = None
    record: Any = None


Observer = Callable[[str, StateChange], None]


class Subscription:
    def __init__(self, fanout: "Fanout", room_id: str, observer: Observer, seat: Optional[int]) -> None:
        self.fanout = fanout
        self.room_id = room_id
        self.observer = observer
        self.seat = seat

    def accepts(self, change: StateChange) -> bool:
        return change.owner is None or change.owner == self.seat

    def cancel(self) -> None:
        self.fanout.unsubscribe(self)


class Fanout:
    """In-process publish/subscribe keyed by room."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscriptions: Dict[str, List[Subscription]] = {}

    def subscribe(self, room_id: str, observer: Observer, seat: Optional[int] = None) -> Subscription:
        subscription = Subscription(self, room_id, observer, seat)
        with self._lock:
            self._subscriptions.setdefault(room_id, []).append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            subscriptions = self._subscriptions.get(subscription.room_id, [])
            if subscription in subscriptions:
                subscriptions.remove(subscription)
            if not subscriptions:
                self._subscriptions.pop(subscription.room_id, None)

    def subscriber_count(self, room_id: str) -> int:
        with self._lock:
            return len(self._subscriptions.get(room_id, []))

    def publish(self, room_id: str, change: StateChange) -> None:
        with self._lock:
            targets = [sub for sub in self._subscriptions.get(room_id, []) if sub.accepts(change)]

        failures = []
        for subscription in targets:
            try:
                subscription.observer(room_id, change)
            except Exception as exc:
                logger.error(
                    f"Observer failed for room {room_id} ({change.kind.value}), unsubscribing: {exc}",
                    exc_info=True,
                )
                self.unsubscribe(subscription)
                failures.append(exc)
        if failures:
            raise FanoutError(
                f"{len(failures)} observer(s) failed while publishing {change.kind.value}",
                room_id=room_id,
                kind=change.kind.value,
            ) from failures[0]
