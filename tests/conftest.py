"""Pytest configuration shared across the test suite."""

import asyncio

import pytest

from leasechain.chain import GENESIS_HASH
from leasechain.lock import LeaseLock
from leasechain.memory import InMemoryStore
from leasechain.models import LockableRecord

START = 1_700_000_000
ITEM_ID = "HASH-CHAIN-1"


class FakeClock:
    """Deterministic clock; ``tick`` seconds pass on every reading."""

    def __init__(self, start: int = START, tick: int = 0) -> None:
        self.current = float(start)
        self.tick = tick
        self.sleeps: list[float] = []

    def now(self) -> int:
        reading = int(self.current)
        self.current += self.tick
        return reading

    def advance(self, seconds: float) -> None:
        self.current += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.current += seconds
        await asyncio.sleep(0)


class RecordingSink:
    def __init__(self) -> None:
        self.events: list[tuple] = []

    def record(self, holder_id, event, quantity=None, success=None) -> None:
        self.events.append((holder_id, event, quantity, success))

    def labels(self, holder_id: str) -> list[str]:
        return [event for holder, event, _, _ in self.events if holder == holder_id]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def seeded_store(store: InMemoryStore) -> InMemoryStore:
    record = LockableRecord(id=ITEM_ID, payload=GENESIS_HASH, last_updated=START - 60)
    store._items[ITEM_ID] = record.to_item()
    return store


@pytest.fixture
def lock(seeded_store: InMemoryStore, clock: FakeClock, sink: RecordingSink) -> LeaseLock:
    return LeaseLock(seeded_store, clock=clock, sink=sink)


@pytest.fixture
def make_clock():
    return FakeClock


@pytest.fixture
def make_sink():
    return RecordingSink
