import threading
import time

from trumpcall.actions import PlaceBid
from trumpcall.config import Settings
from trumpcall.deck import build_deck
from trumpcall.errors import InvalidBid
from trumpcall.registry import RoomRegistry
from trumpcall.scheduler import ManualScheduler, ThreadingScheduler
from trumpcall.state import Phase
from trumpcall.store import InMemoryStore


def wait_for(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return predicate()


def test_threading_scheduler_fires_callback():
    scheduler = ThreadingScheduler()
    fired = threading.Event()
    scheduler.call_later(0.01, fired.set)
    assert fired.wait(2.0)
    scheduler.shutdown()


def test_cancelled_call_never_fires():
    scheduler = ThreadingScheduler()
    fired = threading.Event()
    call = scheduler.call_later(0.05, fired.set)
    call.cancel()
    assert call.cancelled
    assert not fired.wait(0.2)


def test_shutdown_cancels_pending_calls():
    scheduler = ThreadingScheduler()
    fired = []
    for index in range(3):
        scheduler.call_later(0.05, lambda index=index: fired.append(index))
    scheduler.shutdown()
    time.sleep(0.2)
    assert fired == []


def test_manual_scheduler_skips_cancelled_calls():
    scheduler = ManualScheduler()
    fired = []
    scheduler.call_later(0, lambda: fired.append("a"))
    skipped = scheduler.call_later(0, lambda: fired.append("b"))
    scheduler.call_later(0, lambda: fired.append("c"))
    skipped.cancel()

    assert scheduler.run_all() == 2
    assert fired == ["a", "c"]
    assert not scheduler.run_next()


def test_manual_scheduler_run_all_respects_limit():
    scheduler = ManualScheduler()

    def reschedule():
        scheduler.call_later(0, reschedule)

    scheduler.call_later(0, reschedule)
    assert scheduler.run_all(limit=5) == 5
    assert len(scheduler.pending) == 1


def test_timer_and_player_action_are_serialized():
    settings = Settings(deal_settle_seconds=0.005, round_end_settle_seconds=0.005)
    for _ in range(5):
        registry = RoomRegistry(
            InMemoryStore(),
            scheduler=ThreadingScheduler(),
            settings=settings,
            deck_factory=build_deck,
        )
        room, _ = registry.create_room("Alice", identity="alice")
        for name in ("bob", "carol", "dave"):
            registry.join(room.room_id, name.title(), identity=name)

        # Races the timer that opens bidding.
        try:
            registry.submit(room.room_id, PlaceBid(player_number=1, amount=7))
        except InvalidBid:
            accepted = False
        else:
            accepted = True

        assert wait_for(lambda: registry.snapshot(room.room_id).game.phase is Phase.BIDDING)
        state = registry.snapshot(room.room_id)
        if accepted:
            assert [bid.amount for bid in state.bids] == [7]
            assert state.game.current_player == 2
        else:
            assert state.bids == []
            assert state.game.current_player == 1
        registry.shutdown()
