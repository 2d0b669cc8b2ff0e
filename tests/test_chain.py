import asyncio
import hashlib
import random

import pytest

from leasechain.chain import GENESIS_HASH, HashChainExtender, extend_chain, new_holder_id, next_hash
from leasechain.config import ChainConfig, LockConfig
from leasechain.exceptions import LockAcquisitionExhausted
from leasechain.executor import BackoffRetryExecutor
from leasechain.lock import LeaseLock
from leasechain.memory import InMemoryStore
from leasechain.models import LockableRecord

ITEM_ID = "HASH-CHAIN-1"


def test_next_hash_chains_sha256_hex_digests() -> None:
    once = hashlib.sha256(GENESIS_HASH.encode("utf-8")).hexdigest()
    twice = hashlib.sha256(once.encode("utf-8")).hexdigest()

    assert next_hash(GENESIS_HASH, work_factor=1) == once
    assert next_hash(GENESIS_HASH, work_factor=2) == twice


def test_extend_chain_is_deterministic_and_composes() -> None:
    first = extend_chain(GENESIS_HASH, 3, work_factor=5)

    assert extend_chain(GENESIS_HASH, 3, work_factor=5) == first
    assert extend_chain(first, 4, work_factor=5) == extend_chain(GENESIS_HASH, 7, work_factor=5)
    assert extend_chain(GENESIS_HASH, 0, work_factor=5) == GENESIS_HASH


def test_extend_chain_reports_each_link() -> None:
    links = []

    extend_chain(GENESIS_HASH, 3, work_factor=1, on_link=lambda index, ms: links.append(index))

    assert links == [1, 2, 3]


def test_holder_ids_are_unique() -> None:
    ids = {new_holder_id() for _ in range(50)}

    assert len(ids) == 50
    assert all(len(holder) == 26 for holder in ids)


async def _seeded(store: InMemoryStore) -> None:
    await store.put_record(LockableRecord(id=ITEM_ID, payload=GENESIS_HASH, last_updated=0).to_item())


@pytest.mark.asyncio
async def test_three_concurrent_extensions_apply_all_links(make_clock, make_sink) -> None:
    store = InMemoryStore(latency=0.001)
    await _seeded(store)
    clock = make_clock(tick=1)
    sink = make_sink()
    lock = LeaseLock(store, clock=clock, sink=sink)
    executor = BackoffRetryExecutor(lock, rng=random.Random(11))
    config = ChainConfig(item_id=ITEM_ID, work_factor=1, lock=LockConfig(max_retries=10))
    extender = HashChainExtender(executor, config)

    results = await asyncio.gather(*(extender.extend(count) for count in (3, 4, 5)))

    final = LockableRecord.from_item(await store.get_record(ITEM_ID))
    assert final.payload == extend_chain(GENESIS_HASH, 12, work_factor=1)
    assert final.lease_holder is None and final.lease_expiry is None

    release_times = sorted(record.last_updated for record in results)
    assert release_times[0] < release_times[1] < release_times[2]
    assert final.last_updated == release_times[-1]

    extended = [event for event in sink.events if event[1] == "Chain extended"]
    assert sorted(event[2] for event in extended) == [3, 4, 5]


@pytest.mark.asyncio
async def test_each_extension_applies_its_links_as_one_unit(make_clock) -> None:
    store = InMemoryStore()
    await _seeded(store)
    lock = LeaseLock(store, clock=make_clock(tick=1))
    extender = HashChainExtender(BackoffRetryExecutor(lock), ChainConfig(work_factor=1))

    first = await extender.extend(3, key=ITEM_ID)
    second = await extender.extend(4, key=ITEM_ID)

    assert first.payload == extend_chain(GENESIS_HASH, 3, work_factor=1)
    assert second.payload == extend_chain(first.payload, 4, work_factor=1)


@pytest.mark.asyncio
async def test_offloaded_extension_matches_inline(make_clock) -> None:
    store = InMemoryStore()
    await _seeded(store)
    lock = LeaseLock(store, clock=make_clock())
    extender = HashChainExtender(BackoffRetryExecutor(lock), ChainConfig(work_factor=2), offload=True)

    record = await extender.extend(2, key=ITEM_ID)

    assert record.payload == extend_chain(GENESIS_HASH, 2, work_factor=2)


@pytest.mark.asyncio
async def test_extension_gives_up_when_chain_is_held(make_clock, make_sink) -> None:
    store = InMemoryStore()
    await _seeded(store)
    clock = make_clock()
    sink = make_sink()
    lock = LeaseLock(store, clock=clock, sink=sink)
    await lock.acquire(ITEM_ID, "someone-else", lease_duration=3600)
    extender = HashChainExtender(
        BackoffRetryExecutor(lock), ChainConfig(work_factor=1), id_factory=lambda: "01HZZZZZZZZZZZZZZZZZZZABCD"
    )

    with pytest.raises(LockAcquisitionExhausted) as excinfo:
        await extender.extend(3, key=ITEM_ID, max_retries=1)

    assert excinfo.value.attempts == 1
    assert excinfo.value.holder_id == "someone-else"
    labels = sink.labels("01HZZZZZZZZZZZZZZZZZZZABCD")
    assert labels[0] == "Started"
    assert "Chain extended" not in labels
