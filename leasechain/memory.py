"""In-process keyed conditional store."""

import asyncio
import copy
import logging
from typing import Dict, Optional

from .store import Condition, Item, Mutations, UpdateOutcome

logger = logging.getLogger(__name__)


class InMemoryStore:
    """Keyed conditional store held in process memory.

    Every key has its own ``asyncio.Lock`` so updates to one key are
    strictly serialized while different keys proceed independently.
    ``latency`` simulates a round trip: the update is evaluated after
    waiting that long while holding the key's lock.
    """

    def __init__(self, latency: float = 0.0):
        self.latency = latency
        self._items: Dict[str, Item] = {}
        self._key_locks: Dict[str, asyncio.Lock] = {}

    def _key_lock(self, key: str) -> asyncio.Lock:
        lock = self._key_locks.get(key)
        if lock is None:
            lock = self._key_locks[key] = asyncio.Lock()
        return lock

    async def conditional_update(
        self, key: str, condition: Condition, mutations: Mutations
    ) -> UpdateOutcome:
        async with self._key_lock(key):
            if self.latency:
                await asyncio.sleep(self.latency)
            current = self._items.get(key)
            if not condition.evaluate(current):
                logger.debug("Condition failed for %s", key)
                return UpdateOutcome(succeeded=False, item=copy.deepcopy(current))
            updated = mutations.apply(current if current is not None else {"id": key})
            self._items[key] = updated
            return UpdateOutcome(succeeded=True, item=copy.deepcopy(updated))

    async def put_record(self, item: Item) -> None:
        key = item["id"]
        async with self._key_lock(key):
            self._items[key] = copy.deepcopy(item)

    async def get_record(self, key: str) -> Optional[Item]:
        async with self._key_lock(key):
            item = self._items.get(key)
        return copy.deepcopy(item) if item is not None else None
