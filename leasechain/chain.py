"""Hash chain extension: the work done while holding the lease.

The record payload is the head of a SHA-256 chain. Extending the chain by
N links feeds the current head through :func:`next_hash` N times and
writes the result back on release.
"""

import asyncio
import hashlib
import logging
import time
from typing import Callable, Optional

from ulid import ULID

from .config import ChainConfig
from .executor import BackoffRetryExecutor
from .models import LockableRecord

logger = logging.getLogger(__name__)

GENESIS_HASH = "0" * 64
DEFAULT_WORK_FACTOR = 50000


def new_holder_id() -> str:
    """Globally unique, lexically sortable holder identifier."""
    return str(ULID())


def next_hash(current: str, work_factor: int = DEFAULT_WORK_FACTOR) -> str:
    """Hash ``current`` ``work_factor`` times, each round over the previous hex digest."""
    digest = current
    for _ in range(work_factor):
        digest = hashlib.sha256(digest.encode("utf-8")).hexdigest()
    return digest


def extend_chain(
    payload: str,
    iterations: int,
    work_factor: int = DEFAULT_WORK_FACTOR,
    on_link: Optional[Callable[[int, int], None]] = None,
) -> str:
    """Append ``iterations`` links to the chain headed by ``payload``.

    ``on_link(index, elapsed_ms)`` is called after each link, 1-based.
    """
    digest = payload
    for index in range(1, iterations + 1):
        started = time.monotonic()
        digest = next_hash(digest, work_factor)
        if on_link is not None:
            on_link(index, int((time.monotonic() - started) * 1000))
    return digest


class HashChainExtender:
    """Extends a hash chain record under an exclusive lease."""

    def __init__(
        self,
        executor: BackoffRetryExecutor,
        config: Optional[ChainConfig] = None,
        id_factory: Callable[[], str] = new_holder_id,
        offload: bool = False,
    ):
        """
        Args:
            executor: Executor used to acquire and release the lease
            config: Chain settings; defaults when omitted
            id_factory: Source of holder ids, one per extension
            offload: Hash in a worker thread so other contenders keep
                running on the event loop meanwhile
        """
        self.executor = executor
        self.config = config or ChainConfig()
        self.id_factory = id_factory
        self.offload = offload

    async def extend(
        self, iterations: int, key: Optional[str] = None, max_retries: Optional[int] = None
    ) -> LockableRecord:
        """Add ``iterations`` links to the chain stored under ``key``."""
        key = key or self.config.item_id
        holder = self.id_factory()
        sink = self.executor.sink
        sink.record(holder, "Started", iterations)

        def on_link(index: int, elapsed_ms: int) -> None:
            sink.record(holder, f"Generated hash {index}/{iterations} (took {elapsed_ms}ms)")

        async def compute(record: LockableRecord) -> str:
            sink.record(holder, "Generating hashes")
            args = (record.payload, iterations, self.config.work_factor, on_link)
            if self.offload:
                return await asyncio.to_thread(extend_chain, *args)
            return extend_chain(*args)

        record = await self.executor.run(
            key,
            holder,
            compute,
            lease_duration=self.config.lock.lease_duration,
            max_retries=max_retries if max_retries is not None else self.config.lock.max_retries,
        )
        sink.record(holder, "Chain extended", iterations, True)
        logger.info("Chain %s extended by %d links by %s", key, iterations, holder)
        return record
