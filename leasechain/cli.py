"""Command-line demo: concurrent hash chain extensions under one lease."""

import argparse
import asyncio
import logging
import random
import sys
from typing import List, Optional, Sequence

from .chain import GENESIS_HASH, HashChainExtender
from .clock import SystemClock
from .config import ChainConfig, StoreConfig
from .diagnostics import SequenceRecorder
from .dynamodb import DynamoDBStore
from .exceptions import LeaseChainError
from .executor import BackoffRetryExecutor
from .lock import LeaseLock
from .memory import InMemoryStore
from .models import LockableRecord


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="leasechain",
        description="Extend a hash chain from several concurrent holders sharing one lease.",
    )
    parser.add_argument(
        "iterations",
        nargs="*",
        type=int,
        default=[3, 4, 5],
        help="Links to add, one concurrent holder per value (default: 3 4 5)",
    )
    parser.add_argument("--store", choices=("memory", "dynamodb"), default="memory")
    parser.add_argument("--item-id", help="Key of the hash chain record")
    parser.add_argument("--work-factor", type=int, help="SHA-256 rounds per link")
    parser.add_argument("--max-retries", type=int, help="Acquisition attempts per holder")
    parser.add_argument("--lease-duration", type=int, help="Lease length in seconds")
    parser.add_argument("--seed", type=int, help="Seed for backoff jitter")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
    )
    return parser


def _chain_config(args: argparse.Namespace) -> ChainConfig:
    config = ChainConfig.from_env()
    if args.item_id:
        config.item_id = args.item_id
    if args.work_factor is not None:
        config.work_factor = args.work_factor
    if args.max_retries is not None:
        config.lock.max_retries = args.max_retries
    if args.lease_duration is not None:
        config.lock.lease_duration = args.lease_duration
    return config


async def run_demo(
    store,
    config: ChainConfig,
    iterations: Sequence[int],
    recorder: SequenceRecorder,
    rng: Optional[random.Random] = None,
) -> LockableRecord:
    """Run one extender per entry of ``iterations`` concurrently."""
    clock = SystemClock()
    lock = LeaseLock(store, clock=clock, sink=recorder)
    executor = BackoffRetryExecutor(
        lock, jitter_ceiling_ms=config.lock.jitter_ceiling_ms, rng=rng
    )
    extender = HashChainExtender(executor, config, offload=True)
    # Every holder runs to completion so a winner still releases its lease
    # when a peer gives up.
    results = await asyncio.gather(
        *(extender.extend(count) for count in iterations), return_exceptions=True
    )
    for result in results:
        if isinstance(result, BaseException):
            raise result
    item = await store.get_record(config.item_id)
    return LockableRecord.from_item(item)


async def _main(args: argparse.Namespace) -> int:
    config = _chain_config(args)
    recorder = SequenceRecorder()
    rng = random.Random(args.seed) if args.seed is not None else None

    if args.store == "memory":
        store = InMemoryStore(latency=0.005)
        seed = LockableRecord(id=config.item_id, payload=GENESIS_HASH, last_updated=SystemClock().now())
        await store.put_record(seed.to_item())
    else:
        store_config = StoreConfig.from_env()
        store = DynamoDBStore(
            table_name=store_config.table_name,
            region=store_config.region,
            endpoint_url=store_config.endpoint_url,
            timeout=store_config.timeout,
        )

    try:
        record = await run_demo(store, config, args.iterations, recorder, rng)
    except LeaseChainError as e:
        print(f"Error in main: {e}", file=sys.stderr)
        print(recorder.render())
        return 1
    finally:
        if isinstance(store, DynamoDBStore):
            await store.close()

    print("All updates completed successfully")
    print(recorder.render())
    print(f"\nChain head: {record.payload} (links added: {sum(args.iterations)})")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return asyncio.run(_main(args))
