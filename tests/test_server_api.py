import time

import pytest
from fastapi.testclient import TestClient

from trumpcall_server.app import create_app


@pytest.fixture
def client(registry, settings):
    with TestClient(create_app(registry=registry, settings=settings)) as client:
        yield client


def seat_four(client):
    created = client.post("/rooms", json={"player_name": "Alice"}).json()
    players = [created]
    for name in ("Bob", "Carol", "Dave"):
        response = client.post(f"/rooms/{created['room_code']}/join", json={"player_name": name})
        assert response.status_code == 200
        players.append(response.json())
    return created["room_id"], [player["player_id"] for player in players]


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}


def test_create_and_join(client):
    created = client.post("/rooms", json={"player_name": "Alice", "player_id": "alice"})
    assert created.status_code == 200
    body = created.json()
    assert body["player_id"] == "alice"
    assert body["player_number"] == 1
    assert body["state"]["game"]["phase"] == "lobby"

    joined = client.post(f"/rooms/{body['room_code'].lower()}/join", json={"player_name": "Bob"})
    assert joined.status_code == 200
    assert joined.json()["player_number"] == 2
    assert joined.json()["room_id"] == body["room_id"]


def test_unknown_code_is_404(client):
    response = client.post("/rooms/NOPE00/join", json={"player_name": "Bob"})
    assert response.status_code == 404
    assert response.json()["error"] == "RoomNotFound"


def test_full_room_is_409(client):
    room_id, _ = seat_four(client)
    code = client.get(f"/rooms/{room_id}/state").json()["state"]["room_code"]
    response = client.post(f"/rooms/{code}/join", json={"player_name": "Eve"})
    assert response.status_code == 409
    assert response.json()["error"] == "RoomFull"


def test_bidding_over_http(client, scheduler):
    room_id, ids = seat_four(client)

    early = client.post(f"/rooms/{room_id}/bid", json={"player_id": ids[0], "amount": 7})
    assert early.status_code == 400
    assert early.json()["error"] == "InvalidBid"

    scheduler.run_next()
    out_of_turn = client.post(f"/rooms/{room_id}/bid", json={"player_id": ids[1], "amount": 7})
    assert out_of_turn.status_code == 409
    assert out_of_turn.json()["expected_player"] == 1

    too_low = client.post(f"/rooms/{room_id}/bid", json={"player_id": ids[0], "amount": 5})
    assert too_low.status_code == 400
    assert too_low.json()["minimum"] == 7

    ok = client.post(f"/rooms/{room_id}/bid", json={"player_id": ids[0], "amount": 7})
    assert ok.status_code == 200
    assert ok.json()["state"]["game"]["highest_bid"] == 7


def test_full_trick_over_http(client, scheduler):
    room_id, ids = seat_four(client)
    scheduler.run_next()
    client.post(f"/rooms/{room_id}/bid", json={"player_id": ids[0], "amount": 7})
    for player_id in ids[1:]:
        client.post(f"/rooms/{room_id}/bid", json={"player_id": player_id})

    trump = client.post(f"/rooms/{room_id}/trump", json={"player_id": ids[0], "suit": "hearts"})
    assert trump.status_code == 200

    illegal = client.post(
        f"/rooms/{room_id}/play",
        json={"player_id": ids[0], "card": {"suit": "hearts", "rank": "A"}},
    )
    assert illegal.status_code == 400
    assert illegal.json()["error"] == "IllegalPlay"

    for player_id in ids:
        state = client.get(f"/rooms/{room_id}/state", params={"player_id": player_id}).json()["state"]
        card = state["legal_plays"][0]
        response = client.post(f"/rooms/{room_id}/play", json={"player_id": player_id, "card": card})
        assert response.status_code == 200

    game = client.get(f"/rooms/{room_id}/state").json()["state"]["game"]
    assert game["current_trick_number"] == 2
    assert game["current_player"] == 4


def test_stranger_cannot_act(client):
    room_id, _ = seat_four(client)
    response = client.post(f"/rooms/{room_id}/bid", json={"player_id": "stranger", "amount": 7})
    assert response.status_code == 409
    assert response.json()["error"] == "InvalidAction"


def test_websocket_sends_snapshot(client):
    created = client.post("/rooms", json={"player_name": "Alice", "player_id": "alice"}).json()
    room_id = created["room_id"]
    with client.websocket_connect(f"/rooms/{room_id}/ws?player_id=alice") as websocket:
        message = websocket.receive_json()
        assert message["kind"] == "snapshot"
        assert message["value"]["player_number"] == 1


def test_websocket_unknown_room(client):
    with client.websocket_connect("/rooms/missing/ws") as websocket:
        message = websocket.receive_json()
        assert message["error"] == "RoomNotFound"


def test_websocket_disconnect_unsubscribes(client, registry):
    created = client.post("/rooms", json={"player_name": "Alice", "player_id": "alice"}).json()
    room_id = created["room_id"]
    with client.websocket_connect(f"/rooms/{room_id}/ws?player_id=alice") as websocket:
        websocket.receive_json()
        assert registry.fanout.subscriber_count(room_id) == 1

    deadline = time.monotonic() + 2.0
    while registry.fanout.subscriber_count(room_id) and time.monotonic() < deadline:
        time.sleep(0.01)
    assert registry.fanout.subscriber_count(room_id) == 0
