import pytest

from trumpcall.config import Settings
from trumpcall.deck import build_deck
from trumpcall.machine import RoomStateMachine
from trumpcall.registry import RoomRegistry
from trumpcall.scheduler import ManualScheduler
from trumpcall.store import InMemoryStore


@pytest.fixture
def settings():
    return Settings(
        database_url="sqlite://",
        deal_settle_seconds=0,
        round_end_settle_seconds=0,
    )


@pytest.fixture
def machine(settings):
    # Unshuffled deck: card i of the ordered deck goes to seat (i % 4) + 1.
    return RoomStateMachine(settings, deck_factory=build_deck)


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def registry(settings, scheduler):
    registry = RoomRegistry(
        InMemoryStore(),
        scheduler=scheduler,
        settings=settings,
        deck_factory=build_deck,
    )
    yield registry
    registry.shutdown()
