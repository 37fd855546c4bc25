import random

import pytest

from bots import BotPolicy, Personality
from table import QueueScheduler, TrucoTable


class Recorder:
    """Dispatcher that keeps every event sent to every connection."""

    def __init__(self):
        self.sent = []

    def __call__(self, connection, event, payload):
        self.sent.append((connection, event, payload))

    def events(self, connection):
        return [e for c, e, _ in self.sent if c == connection]

    def payloads(self, connection, event):
        return [p for c, e, p in self.sent if c == connection and e == event]

    def clear(self):
        self.sent.clear()


def set_hands(table, hands, vira="3_OUROS"):
    for seat, hand in zip(table.seats, hands):
        seat.hand = list(hand)
    table.vira = vira


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def scheduler():
    return QueueScheduler()


@pytest.fixture
def table(recorder, scheduler):
    return TrucoTable(dispatcher=recorder, scheduler=scheduler, rng=random.Random(7))


@pytest.fixture
def started(table, recorder):
    """Both humans seated, bots made predictable."""
    table.join("p0")
    table.join("p1")
    for seat in table.seats:
        if seat.is_bot:
            seat.policy = BotPolicy(Personality.TECHNICAL, rng=random.Random(1))
    recorder.clear()
    return table
