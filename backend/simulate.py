"""
Play a whole game of Truco in-process, no network involved.

The two human seats are driven by ``AutoPlayer``s, the bots by the table
itself. Intents are queued and handled one at a time, timers run on a
``QueueScheduler``, so a seed reproduces the same game.
"""
import argparse
import logging
import random
from collections import deque
from dataclasses import dataclass, field
from typing import List, Optional

from bots import Personality
from simple_client import AutoPlayer
from table import GAME_OVER, QueueScheduler, TrucoTable

logger = logging.getLogger(__name__)


@dataclass
class SimulationResult:
    scores: List[float]
    winner_team: Optional[int]
    hands: int
    events: List[tuple] = field(default_factory=list)


def _apply_intent(table, connection, event, data):
    if event == "join":
        return table.join(connection)
    seat = table.seat_of(connection)
    if seat is None:
        return {"success": False, "error": "You are not seated at the table."}
    if event == "play_card":
        return table.play_card(seat, data.get("card"))
    if event == "call_truco":
        return table.call_truco(seat)
    if event == "respond_truco":
        return table.respond_truco(seat, data.get("action"))
    return {"success": False, "error": f"Unknown intent {event!r}"}


def run_simulation(seed=None, personalities=(Personality.TECHNICAL, Personality.CAUTIOUS), max_steps=20000):
    rng = random.Random(seed)
    scheduler = QueueScheduler()
    outbox = deque()
    events = []
    players = {}

    def dispatch(connection, event, payload):
        events.append((connection, event, payload))
        players[connection].handle(event, payload)

    table = TrucoTable(dispatcher=dispatch, scheduler=scheduler, rng=rng)
    for i, personality in enumerate(personalities):
        connection = f"auto-{i}"
        players[connection] = AutoPlayer(
            lambda event, data, conn=connection: outbox.append((conn, event, data)),
            personality,
            rng=random.Random(rng.random()),
        )

    with table.lock:
        for connection in players:
            table.join(connection)

    steps = 0
    while table.phase != GAME_OVER and steps < max_steps:
        steps += 1
        if outbox:
            connection, event, data = outbox.popleft()
            with table.lock:
                result = _apply_intent(table, connection, event, data or {})
            if not result["success"]:
                logger.debug("%s: %s rejected (%s)", connection, event, result["error"])
                dispatch(connection, "action_error", {"msg": result["error"]})
        elif not scheduler.run_next():
            break

    winner = None
    if table.phase == GAME_OVER:
        winner = 0 if table.scores[0] >= table.scores[1] else 1
    else:
        logger.warning("Simulation stopped after %d steps in phase %s", steps, table.phase)
    return SimulationResult(scores=list(table.scores), winner_team=winner,
                            hands=table.hand_number, events=events)


def main(argv=None):
    parser = argparse.ArgumentParser(description="Simulate a Truco game between bots.")
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--players", nargs=2, default=["technical", "cautious"],
                        choices=[p.value for p in Personality],
                        help="personalities driving the two human seats")
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format="%(name)s %(levelname)s %(message)s")
    result = run_simulation(seed=args.seed, personalities=[Personality(p) for p in args.players])
    print(f"Hands played: {result.hands}")
    print(f"Final score: {result.scores[0]} x {result.scores[1]} -> team {result.winner_team} wins")
    return 0 if result.winner_team is not None else 1


if __name__ == "__main__":
    raise SystemExit(main())
