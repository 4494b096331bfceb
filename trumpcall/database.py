"""SQLAlchemy-backed state store.

Row layout mirrors the entities a room is made of: one row per room, per
player, per game state and per hand, plus append-only rows for bids, cards in
the active trick and completed tricks.
"""

from __future__ import annotations

import contextlib
import logging
from datetime import datetime, timezone
from typing import Iterator, Optional, Sequence

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    create_engine,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from .bidding import Bid
from .cards import Card, Suit, deserialize_card, serialize_card
from .errors import PersistenceError
from .state import GameState, Phase, Player, RoomState
from .store import StateStore, StoreTransaction, rebuild_trick
from .trick import CompletedTrick, PlayedCard

logger = logging.getLogger(__name__)

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RoomRow(Base):
    __tablename__ = "rooms"

    id = Column(String(36), primary_key=True)
    code = Column(String(16), index=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow)


class PlayerRow(Base):
    __tablename__ = "players"
    __table_args__ = (UniqueConstraint("room_id", "player_number"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    room_id = Column(String(36), ForeignKey("rooms.id"), index=True, nullable=False)
    identity = Column(String(64), nullable=False)
    player_name = Column(String(100), nullable=False)
    player_number = Column(Integer, nullable=False)
    team_number = Column(Integer, nullable=False)
    is_host = Column(Boolean, default=False)
    connected = Column(Boolean, default=True)


class GameStateRow(Base):
    __tablename__ = "game_state"

    room_id = Column(String(36), ForeignKey("rooms.id"), primary_key=True)
    phase = Column(String(20), nullable=False, default=Phase.LOBBY.value)
    current_player = Column(Integer, default=0)
    dealer = Column(Integer, default=0)
    round_number = Column(Integer, default=0)
    trump_suit = Column(String(10), nullable=True)
    highest_bid = Column(Integer, default=0)
    bid_winner = Column(Integer, nullable=True)
    team1_score = Column(Integer, default=0)
    team2_score = Column(Integer, default=0)
    team1_tricks = Column(Integer, default=0)
    team2_tricks = Column(Integer, default=0)
    last_round_winner = Column(Integer, default=0)
    current_trick_number = Column(Integer, default=0)
    winner = Column(Integer, nullable=True)


class HandRow(Base):
    __tablename__ = "player_hands"

    room_id = Column(String(36), ForeignKey("rooms.id"), primary_key=True)
    player_number = Column(Integer, primary_key=True)
    cards = Column(JSON, nullable=False, default=list)


class BidRow(Base):
    __tablename__ = "bids"

    id = Column(Integer, primary_key=True, autoincrement=True)
    room_id = Column(String(36), ForeignKey("rooms.id"), index=True, nullable=False)
    round_number = Column(Integer, nullable=False)
    player_number = Column(Integer, nullable=False)
    bid_amount = Column(Integer, nullable=True)
    passed = Column(Boolean, nullable=False)


class TrickCardRow(Base):
    __tablename__ = "current_trick"

    id = Column(Integer, primary_key=True, autoincrement=True)
    room_id = Column(String(36), ForeignKey("rooms.id"), index=True, nullable=False)
    round_number = Column(Integer, nullable=False)
    trick_number = Column(Integer, nullable=False)
    player_number = Column(Integer, nullable=False)
    card = Column(JSON, nullable=False)
    leading_suit = Column(String(10), nullable=False)
    sequence = Column(Integer, nullable=False)


class CompletedTrickRow(Base):
    __tablename__ = "completed_tricks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    room_id = Column(String(36), ForeignKey("rooms.id"), index=True, nullable=False)
    round_number = Column(Integer, nullable=False)
    trick_number = Column(Integer, nullable=False)
    cards_played = Column(JSON, nullable=False)
    winner = Column(Integer, nullable=False)
    leading_suit = Column(String(10), nullable=False)


def make_engine(database_url: str) -> Engine:
    """Create an engine; SQLite connections are shared across worker threads."""
    if not database_url.startswith("sqlite"):
        return create_engine(database_url, pool_pre_ping=True)
    kwargs = {"connect_args": {"check_same_thread": False}}
    if database_url in ("sqlite://", "sqlite:///:memory:"):
        # An in-memory database only lives as long as its single connection.
        kwargs["poolclass"] = StaticPool
    return create_engine(database_url, **kwargs)


def with_room_lock(db: Session, room_id: str) -> Optional[GameStateRow]:
    """Lock the room's game state row until the session's transaction ends.

    ``SELECT ... FOR UPDATE`` on databases that support it; a no-op on SQLite,
    where writers are serialized by the database itself.
    """
    return (
        db.query(GameStateRow)
        .filter(GameStateRow.room_id == room_id)
        .with_for_update(nowait=False)
        .first()
    )


def _game_from_row(row: GameStateRow) -> GameState:
    return GameState(
        phase=Phase(row.phase),
        current_player=row.current_player,
        dealer=row.dealer,
        round_number=row.round_number,
        trump_suit=Suit(row.trump_suit) if row.trump_suit else None,
        highest_bid=row.highest_bid,
        bid_winner=row.bid_winner,
        team1_score=row.team1_score,
        team2_score=row.team2_score,
        team1_tricks=row.team1_tricks,
        team2_tricks=row.team2_tricks,
        last_round_winner=row.last_round_winner,
        current_trick_number=row.current_trick_number,
        winner=row.winner,
    )


def _serialize_plays(plays) -> list:
    return [{"player_number": seat, "card": serialize_card(card)} for seat, card in plays]


class SqlAlchemyTransaction(StoreTransaction):
    def __init__(self, db: Session, room_id: str) -> None:
        self.db = db
        self.room_id = room_id

    def create_room(self, code: str) -> None:
        self.db.add(RoomRow(id=self.room_id, code=code))

    def save_players(self, players: Sequence[Player]) -> None:
        for player in players:
            row = (
                self.db.query(PlayerRow)
                .filter(PlayerRow.room_id == self.room_id, PlayerRow.player_number == player.player_number)
                .first()
            )
            if row is None:
                row = PlayerRow(room_id=self.room_id, player_number=player.player_number)
                self.db.add(row)
            row.identity = player.identity
            row.player_name = player.player_name
            row.team_number = player.team_number
            row.is_host = player.is_host
            row.connected = player.connected
        self.db.flush()

    def save_game_state(self, state: GameState) -> None:
        row = self.db.get(GameStateRow, self.room_id)
        if row is None:
            row = GameStateRow(room_id=self.room_id)
            self.db.add(row)
        row.phase = state.phase.value
        row.current_player = state.current_player
        row.dealer = state.dealer
        row.round_number = state.round_number
        row.trump_suit = state.trump_suit.value if state.trump_suit else None
        row.highest_bid = state.highest_bid
        row.bid_winner = state.bid_winner
        row.team1_score = state.team1_score
        row.team2_score = state.team2_score
        row.team1_tricks = state.team1_tricks
        row.team2_tricks = state.team2_tricks
        row.last_round_winner = state.last_round_winner
        row.current_trick_number = state.current_trick_number
        row.winner = state.winner
        self.db.flush()

    def save_hand(self, player_number: int, cards: Sequence[Card]) -> None:
        row = self.db.get(HandRow, (self.room_id, player_number))
        payload = [serialize_card(card) for card in cards]
        if row is None:
            self.db.add(HandRow(room_id=self.room_id, player_number=player_number, cards=payload))
        else:
            row.cards = payload
        self.db.flush()

    def append_bid(self, bid: Bid) -> None:
        self.db.add(
            BidRow(
                room_id=self.room_id,
                round_number=bid.round_number,
                player_number=bid.player_number,
                bid_amount=bid.amount,
                passed=bid.passed,
            )
        )
        self.db.flush()

    def clear_bids(self) -> None:
        self.db.query(BidRow).filter(BidRow.room_id == self.room_id).delete(synchronize_session=False)

    def append_trick_card(self, record: PlayedCard) -> None:
        self.db.add(
            TrickCardRow(
                room_id=self.room_id,
                round_number=record.round_number,
                trick_number=record.trick_number,
                player_number=record.player_number,
                card=serialize_card(record.card),
                leading_suit=record.leading_suit.value,
                sequence=record.sequence,
            )
        )
        self.db.flush()

    def clear_trick(self) -> None:
        self.db.query(TrickCardRow).filter(TrickCardRow.room_id == self.room_id).delete(synchronize_session=False)

    def append_completed_trick(self, record: CompletedTrick) -> None:
        self.db.add(
            CompletedTrickRow(
                room_id=self.room_id,
                round_number=record.round_number,
                trick_number=record.trick_number,
                cards_played=_serialize_plays(record.cards_played),
                winner=record.winner,
                leading_suit=record.leading_suit.value,
            )
        )
        self.db.flush()


class SqlAlchemyStore(StateStore):
    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
        Base.metadata.create_all(bind=engine)

    @classmethod
    def from_url(cls, database_url: str) -> "SqlAlchemyStore":
        return cls(make_engine(database_url))

    @contextlib.contextmanager
    def transaction(self, room_id: str) -> Iterator[StoreTransaction]:
        db = self.SessionLocal()
        try:
            with_room_lock(db, room_id)
            yield SqlAlchemyTransaction(db, room_id)
            db.commit()
        except SQLAlchemyError as exc:
            logger.error(f"Transaction failed for room {room_id}: {exc}", exc_info=True)
            db.rollback()
            raise PersistenceError(f"Database write failed for room {room_id}", room_id=room_id) from exc
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def find_room_id(self, code: str) -> Optional[str]:
        with self.SessionLocal() as db:
            row = db.query(RoomRow).filter(RoomRow.code == code).order_by(RoomRow.created_at).first()
            return row.id if row else None

    def load(self, room_id: str) -> Optional[RoomState]:
        with self.SessionLocal() as db:
            room_row = db.get(RoomRow, room_id)
            if room_row is None:
                return None
            code = room_row.code
            game_row = db.get(GameStateRow, room_id)
            game = _game_from_row(game_row) if game_row is not None else GameState()

            players = [
                Player(
                    identity=row.identity,
                    player_name=row.player_name,
                    player_number=row.player_number,
                    team_number=row.team_number,
                    is_host=bool(row.is_host),
                    connected=bool(row.connected),
                )
                for row in db.query(PlayerRow)
                .filter(PlayerRow.room_id == room_id)
                .order_by(PlayerRow.player_number)
            ]
            hands = {
                row.player_number: [deserialize_card(card) for card in row.cards]
                for row in db.query(HandRow).filter(HandRow.room_id == room_id)
            }
            bids = [
                Bid(player_number=row.player_number, amount=row.bid_amount, round_number=row.round_number)
                for row in db.query(BidRow)
                .filter(BidRow.room_id == room_id, BidRow.round_number == game.round_number)
                .order_by(BidRow.id)
            ]
            trick_cards = [
                PlayedCard(
                    round_number=row.round_number,
                    trick_number=row.trick_number,
                    player_number=row.player_number,
                    card=deserialize_card(row.card),
                    leading_suit=Suit(row.leading_suit),
                    sequence=row.sequence,
                )
                for row in db.query(TrickCardRow)
                .filter(
                    TrickCardRow.room_id == room_id,
                    TrickCardRow.round_number == game.round_number,
                    TrickCardRow.trick_number == game.current_trick_number,
                )
                .order_by(TrickCardRow.sequence)
            ]
            completed = [
                CompletedTrick(
                    round_number=row.round_number,
                    trick_number=row.trick_number,
                    cards_played=tuple(
                        (play["player_number"], deserialize_card(play["card"])) for play in row.cards_played
                    ),
                    winner=row.winner,
                    leading_suit=Suit(row.leading_suit),
                )
                for row in db.query(CompletedTrickRow)
                .filter(CompletedTrickRow.room_id == room_id)
                .order_by(CompletedTrickRow.id)
            ]

        return RoomState(
            room_id=room_id,
            code=code,
            players=players,
            hands=hands,
            bids=bids,
            trick=rebuild_trick(game.current_trick_number, trick_cards),
            completed_tricks=completed,
            game=game,
        )
