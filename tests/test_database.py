import pytest

from trumpcall.actions import PlaceBid, PlayCard, SelectTrump
from trumpcall.cards import Suit
from trumpcall.database import SqlAlchemyStore
from trumpcall.deck import build_deck
from trumpcall.registry import RoomRegistry
from trumpcall.rules import legal_plays
from trumpcall.scheduler import ManualScheduler
from trumpcall.state import Phase


@pytest.fixture
def store():
    return SqlAlchemyStore.from_url("sqlite://")


def make_registry(store, settings):
    scheduler = ManualScheduler()
    registry = RoomRegistry(store, scheduler=scheduler, settings=settings, deck_factory=build_deck)
    return registry, scheduler


def seat_four(registry):
    room, _ = registry.create_room("Alice", identity="alice")
    for name in ("bob", "carol", "dave"):
        registry.join(room.room_id, name.title(), identity=name)
    return room


def play_first_legal(registry, room_id):
    room = registry.snapshot(room_id)
    seat = room.game.current_player
    card = legal_plays(room.hands[seat], room.trick.leading_suit)[0]
    registry.submit(room_id, PlayCard(player_number=seat, card=card))


def test_room_survives_restart_mid_trick(store, settings):
    registry, scheduler = make_registry(store, settings)
    room = seat_four(registry)
    scheduler.run_next()
    registry.submit(room.room_id, PlaceBid(player_number=1, amount=8))
    for seat in (2, 3, 4):
        registry.submit(room.room_id, PlaceBid(player_number=seat))
    registry.submit(room.room_id, SelectTrump(player_number=1, suit=Suit.DIAMONDS))
    for _ in range(6):
        play_first_legal(registry, room.room_id)

    before = registry.snapshot(room.room_id)
    assert len(before.completed_tricks) == 1
    assert len(before.trick.plays) == 2

    restarted, _ = make_registry(store, settings)
    after = restarted.attach(room.room_id)
    assert after == before
    assert restarted.find_room(room.code) == room.room_id

    play_first_legal(restarted, room.room_id)
    assert len(restarted.snapshot(room.room_id).trick.plays) == 3


def test_attach_rearms_pending_deal_timer(store, settings):
    registry, _ = make_registry(store, settings)
    room = seat_four(registry)

    restarted, scheduler = make_registry(store, settings)
    attached = restarted.attach(room.room_id)
    assert attached.game.phase is Phase.DEALING
    assert len(scheduler.pending) == 1

    scheduler.run_next()
    assert restarted.snapshot(room.room_id).game.phase is Phase.BIDDING


def test_bid_log_is_scoped_to_current_round(store, settings):
    registry, scheduler = make_registry(store, settings)
    room = seat_four(registry)
    scheduler.run_next()
    registry.submit(room.room_id, PlaceBid(player_number=1, amount=7))
    registry.submit(room.room_id, PlaceBid(player_number=2))

    loaded = store.load(room.room_id)
    assert [(bid.player_number, bid.amount) for bid in loaded.bids] == [(1, 7), (2, None)]
    assert store.load_game_state(room.room_id).highest_bid == 7


def test_missing_room_loads_as_none(store):
    assert store.load("missing") is None
    assert store.find_room_id("NOPE00") is None
