"""Room and game state aggregates."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from .bidding import Bid
from .cards import Card, Suit
from .trick import CompletedTrick, Trick


class Phase(Enum):
    LOBBY = "lobby"
    DEALING = "dealing"
    BIDDING = "bidding"
    TRUMP_SELECTION = "trump_selection"
    PLAYING = "playing"
    ROUND_END = "round_end"
    GAME_OVER = "game_over"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Player:
    identity: str
    player_name: str
    player_number: int
    team_number: int
    is_host: bool = False
    connected: bool = True


@dataclass
class GameState:
    phase: Phase = Phase.LOBBY
    current_player: int = 0
    dealer: int = 0
    round_number: int = 0
    trump_suit: Optional[Suit] = None
    highest_bid: int = 0
    bid_winner: Optional[int] = None
    team1_score: int = 0
    team2_score: int = 0
    team1_tricks: int = 0
    team2_tricks: int = 0
    last_round_winner: int = 0
    current_trick_number: int = 0
    winner: Optional[int] = None

    def add_trick(self, team: int) -> None:
        if team == 1:
            self.team1_tricks += 1
        else:
            self.team2_tricks += 1


@dataclass
class RoomState:
    """Everything that belongs to one room and changes under its gate."""

    room_id: str
    code: str
    players: List[Player] = field(default_factory=list)
    hands: Dict[int, List[Card]] = field(default_factory=dict)
    bids: List[Bid] = field(default_factory=list)
    trick: Trick = field(default_factory=lambda: Trick(trick_number=0))
    completed_tricks: List[CompletedTrick] = field(default_factory=list)
    game: GameState = field(default_factory=GameState)

    def copy(self) -> "RoomState":
        return copy.deepcopy(self)

    def seat_of(self, identity: str) -> Optional[int]:
        for player in self.players:
            if player.identity == identity:
                return player.player_number
        return None

    def player(self, seat: int) -> Player:
        for player in self.players:
            if player.player_number == seat:
                return player
        raise KeyError(seat)

    def is_full(self) -> bool:
        return len(self.players) >= 4
