"""Pytest configuration and fixtures."""

import random

import pytest

from notabot.game.service import GameService
from notabot.game.store import InMemoryRoomStore


class FakeClock:
    def __init__(self, start: int = 1_700_000_000_000):
        self.current = start

    def now(self) -> int:
        return self.current

    def advance(self, ms: int) -> None:
        self.current += ms


class ScriptedProvider:
    """Answer provider that records every call."""

    def __init__(self, answer: str = "pizza, obviously"):
        self.answer = answer
        self.calls = []

    async def generate(self, question_text, peer_answers=()):
        self.calls.append((question_text, list(peer_answers)))
        return self.answer


class InterleavingStore(InMemoryRoomStore):
    """Runs ``before_put`` once, right before the next write lands."""

    def __init__(self):
        super().__init__()
        self.before_put = None

    def put(self, room, expected_version):
        hook, self.before_put = self.before_put, None
        if hook is not None:
            hook()
        return super().put(room, expected_version)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def provider():
    return ScriptedProvider()


@pytest.fixture
def store():
    return InterleavingStore()


@pytest.fixture
def service(store, provider, clock):
    return GameService(
        store=store,
        provider=provider,
        clock=clock,
        rng=random.Random(42),
        answering_time=45,
        voting_time=30,
        max_write_retries=3,
    )


def make_lobby(service, humans=("Alice", "Bob", "Carol"), ai_count=2):
    room = service.create_room(humans[0], ai_count)
    for name in humans[1:]:
        room = service.join_room(room.code, name)
    return room


def make_started(service, humans=("Alice", "Bob", "Carol"), ai_count=2):
    room = make_lobby(service, humans=humans, ai_count=ai_count)
    return service.start_game(room.id)


async def answer_all(service, room):
    """Every active human answers; returns the room afterwards."""
    for p in room.humans:
        if not p.eliminated:
            await service.submit_answer(room.id, p.id, f"{p.name} says hi")
    return service.get_room(room.id)
