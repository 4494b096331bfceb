import pytest

from trumpcall.cards import Card, Rank, Suit
from trumpcall.errors import IllegalPlay, InvalidAction
from trumpcall.events import EntityKind, StateChange
from trumpcall.service import RoomService, build_room_view, serialize_change


def seated_service(registry, scheduler):
    service = RoomService(registry)
    view, host = service.create_room("Alice", identity="alice")
    for name in ("bob", "carol", "dave"):
        service.join_room(view.room_code, name.title(), identity=name)
    scheduler.run_next()
    return service, view.room_id


def test_lobby_view_after_create(registry):
    service = RoomService(registry)
    view, player = service.create_room("Alice")
    assert view.player_number == 1
    assert view.game["phase"] == "lobby"
    assert view.players[0]["player_name"] == "Alice"
    assert view.hand == []
    assert player.is_host


def test_view_contains_only_own_hand(registry, scheduler):
    service, room_id = seated_service(registry, scheduler)
    view = service.get_room_view(room_id, "bob")

    assert view.player_number == 2
    assert len(view.hand) == 13
    assert {"suit": "hearts", "rank": "A"} in view.hand
    assert "Ace of Hearts" in view.hand_labels
    assert "identity" not in view.players[0]
    # Not playing yet, so nothing is legal.
    assert view.legal_plays == []

    spectator = service.get_room_view(room_id)
    assert spectator.player_number is None
    assert spectator.hand == []


def test_view_tracks_bidding_and_legal_plays(registry, scheduler):
    service, room_id = seated_service(registry, scheduler)
    service.place_bid(room_id, "alice", 7)
    for name in ("bob", "carol", "dave"):
        service.place_bid(room_id, name, None)
    view = service.select_trump(room_id, "alice", "Hearts")

    assert view.game["phase"] == "playing"
    assert view.game["trump_suit"] == "hearts"
    assert [bid["passed"] for bid in view.bids] == [False, True, True, True]
    assert view.legal_plays == view.hand

    view = service.play_card(room_id, "alice", {"suit": "spades", "rank": "2"})
    assert view.trick.leading_suit == "spades"
    assert view.trick.plays[0].label == "Two of Spades"
    assert view.legal_plays == []

    bob = service.get_room_view(room_id, "bob")
    assert bob.legal_plays == [
        {"suit": "spades", "rank": "3"},
        {"suit": "spades", "rank": "7"},
        {"suit": "spades", "rank": "J"},
    ]


def test_bad_payloads_are_rejected(registry, scheduler):
    service, room_id = seated_service(registry, scheduler)
    service.place_bid(room_id, "alice", 7)
    for name in ("bob", "carol", "dave"):
        service.place_bid(room_id, name, None)

    with pytest.raises(InvalidAction):
        service.select_trump(room_id, "alice", "stars")
    service.select_trump(room_id, "alice", "clubs")
    with pytest.raises(IllegalPlay):
        service.play_card(room_id, "alice", {"suit": "spades", "rank": "1"})
    with pytest.raises(IllegalPlay):
        service.play_card(room_id, "alice", {"rank": "2"})


def test_serialize_change_marks_owner():
    change = StateChange(kind=EntityKind.HAND, value=[Card(Suit.CLUBS, Rank.TEN)], owner=3)
    assert serialize_change(change) == {
        "kind": "hand",
        "value": [{"suit": "clubs", "rank": "10"}],
        "owner": 3,
    }


def test_build_room_view_for_unknown_seat_is_public(registry):
    room, _ = registry.create_room("Alice")
    view = build_room_view(room)
    assert view.to_dict()["room_code"] == room.code
    assert view.to_dict()["trick"]["plays"] == []
