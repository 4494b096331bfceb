"""Simple bot arena for trumpcall rooms."""

from __future__ import annotations

import argparse
import random
from typing import Dict, Iterable, List, Optional, Sequence

from trumpcall.actions import PlaceBid, PlayCard, SelectTrump
from trumpcall.config import Settings
from trumpcall.deck import SEATS, fresh_deck
from trumpcall.registry import RoomRegistry
from trumpcall.scheduler import ManualScheduler
from trumpcall.state import Phase, RoomState
from trumpcall.store import InMemoryStore

from .base import BotStrategy
from .baseline_greedy import GreedyBot
from .random_bot import RandomBot

BOT_REGISTRY: Dict[str, type[BotStrategy]] = {
    "greedy": GreedyBot,
    "random": RandomBot,
}


def build_registry(seed: Optional[int] = None) -> tuple[RoomRegistry, ManualScheduler]:
    """In-process registry whose timers only fire when the arena drives them."""
    rng = random.Random(seed)
    scheduler = ManualScheduler()
    registry = RoomRegistry(
        InMemoryStore(),
        scheduler=scheduler,
        settings=Settings(deal_settle_seconds=0, round_end_settle_seconds=0),
        deck_factory=lambda: fresh_deck(rng),
    )
    return registry, scheduler


def _act(registry: RoomRegistry, room: RoomState, bots: Sequence[BotStrategy]) -> None:
    seat = room.game.current_player
    bot = bots[seat - 1]
    if room.game.phase is Phase.BIDDING:
        action = PlaceBid(player_number=seat, amount=bot.offer_bid(room, seat))
    elif room.game.phase is Phase.TRUMP_SELECTION:
        action = SelectTrump(player_number=seat, suit=bot.choose_trump(room, seat))
    else:
        action = PlayCard(player_number=seat, card=bot.play_card(room, seat))
    registry.submit(room.room_id, action)


def run_game(
    bots: Sequence[BotStrategy],
    *,
    seed: Optional[int] = None,
    max_rounds: int = 20,
    max_actions: int = 100_000,
) -> dict:
    """Play one game with four bots, stopping at game over or after ``max_rounds`` rounds."""
    if len(bots) != len(SEATS):
        raise ValueError(f"A game needs {len(SEATS)} bots, got {len(bots)}.")
    registry, scheduler = build_registry(seed)
    room, _host = registry.create_room(bots[0].name)
    for bot in bots[1:]:
        registry.join(room.room_id, bot.name)

    history: List[dict] = []
    for _ in range(max_actions):
        room = registry.snapshot(room.room_id)
        game = room.game
        if game.phase in (Phase.ROUND_END, Phase.GAME_OVER) and (
            not history or history[-1]["round_number"] != game.round_number
        ):
            history.append(
                {
                    "round_number": game.round_number,
                    "bid_winner": game.bid_winner,
                    "bid": game.highest_bid,
                    "trump": game.trump_suit.value if game.trump_suit else None,
                    "team1_tricks": game.team1_tricks,
                    "team2_tricks": game.team2_tricks,
                    "scores": (game.team1_score, game.team2_score),
                }
            )
        if game.phase is Phase.GAME_OVER:
            break
        if game.phase is Phase.ROUND_END and game.round_number >= max_rounds:
            break
        if game.phase in (Phase.DEALING, Phase.ROUND_END):
            if not scheduler.run_next():
                raise RuntimeError(f"Room stuck in {game.phase} with no pending timer.")
            continue
        _act(registry, room, bots)
    else:
        raise RuntimeError(f"Game did not finish within {max_actions} actions.")

    registry.shutdown()
    return {
        "scores": (room.game.team1_score, room.game.team2_score),
        "rounds": len(history),
        "winner": room.game.winner,
        "history": history,
    }


def main(argv: Iterable[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Run a four-bot game.")
    parser.add_argument("--team1", default="greedy", choices=BOT_REGISTRY.keys())
    parser.add_argument("--team2", default="random", choices=BOT_REGISTRY.keys())
    parser.add_argument("--rounds", type=int, default=20, help="Maximum number of rounds to play.")
    parser.add_argument("--seed", type=int, default=42)
    args = parser.parse_args(argv)

    team1 = BOT_REGISTRY[args.team1]
    team2 = BOT_REGISTRY[args.team2]
    bots = [team1(), team2(), team1(), team2()]
    results = run_game(bots, seed=args.seed, max_rounds=args.rounds)

    print(f"Scores after {results['rounds']} rounds: {results['scores']}")
    made = sum(
        1
        for entry in results["history"]
        if entry["bid_winner"] is not None
        and entry["team1_tricks" if entry["bid_winner"] % 2 == 1 else "team2_tricks"] >= entry["bid"]
    )
    print(f"Contracts made: {made}/{len(results['history'])}")
    if results["winner"] is not None:
        print(f"Team {results['winner']} wins.")


if __name__ == "__main__":
    main()
