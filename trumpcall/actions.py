"""Structured actions accepted by the room state machine."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import ClassVar, Optional

from .cards import Card, Suit


class ActionType(Enum):
    """Top-level action categories."""

    JOIN = auto()
    BID = auto()
    SELECT_TRUMP = auto()
    PLAY_CARD = auto()
    SET_CONNECTION = auto()
    OPEN_BIDDING = auto()
    START_NEXT_ROUND = auto()


@dataclass(frozen=True)
class JoinRoom:
    identity: str
    player_name: str

    action_type: ClassVar[ActionType] = ActionType.JOIN


@dataclass(frozen=True)
class PlaceBid:
    """A bid of ``amount`` tricks; ``None`` is a pass."""

    player_number: int
    amount: Optional[int] = None

    action_type: ClassVar[ActionType] = ActionType.BID


@dataclass(frozen=True)
class SelectTrump:
    player_number: int
    suit: Suit

    action_type: ClassVar[ActionType] = ActionType.SELECT_TRUMP


@dataclass(frozen=True)
class PlayCard:
    player_number: int
    card: Card

    action_type: ClassVar[ActionType] = ActionType.PLAY_CARD


@dataclass(frozen=True)
class SetConnection:
    player_number: int
    connected: bool

    action_type: ClassVar[ActionType] = ActionType.SET_CONNECTION


# Deferred actions: scheduled by the state machine, delivered through the same
# per-room gate as player actions once their delay elapses.


@dataclass(frozen=True)
class OpenBidding:
    round_number: int

    action_type: ClassVar[ActionType] = ActionType.OPEN_BIDDING


@dataclass(frozen=True)
class StartNextRound:
    round_number: int

    action_type: ClassVar[ActionType] = ActionType.START_NEXT_ROUND


def describe_action(action: object) -> str:
    if isinstance(action, PlaceBid):
        amount = "pass" if action.amount is None else str(action.amount)
        return f"P{action.player_number} bids {amount}"
    if isinstance(action, SelectTrump):
        return f"P{action.player_number} selects {action.suit}"
    if isinstance(action, PlayCard):
        return f"P{action.player_number} plays {action.card}"
    if isinstance(action, JoinRoom):
        return f"{action.player_name} joins"
    kind = getattr(action, "action_type", None)
    return kind.name.lower() if kind is not None else type(action).__name__
