"""Retrying executor that runs a critical section under a lease."""

import inspect
import logging
import random
from typing import Awaitable, Callable, Optional, Union

from .clock import Clock
from .diagnostics import DiagnosticSink
from .exceptions import LockAcquisitionExhausted, ValidationError
from .lock import DEFAULT_LEASE_DURATION, LeaseLock
from .models import Acquired, HolderInfo, LockableRecord

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 10
DEFAULT_JITTER_CEILING_MS = 100

CriticalSection = Callable[[LockableRecord], Union[str, Awaitable[str]]]


class BackoffRetryExecutor:
    """Acquire a lease with jittered retries, run work, release with its result.

    Only contention is retried. Backoff is a flat uniform draw in
    ``[0, jitter_ceiling_ms)`` milliseconds.

    A failed release (:class:`LockLost`) is never retried because the
    critical section has already run once.
    """

    def __init__(
        self,
        lock: LeaseLock,
        clock: Optional[Clock] = None,
        sink: Optional[DiagnosticSink] = None,
        jitter_ceiling_ms: int = DEFAULT_JITTER_CEILING_MS,
        rng: Optional[random.Random] = None,
    ):
        if jitter_ceiling_ms < 0:
            raise ValidationError("Jitter ceiling must not be negative")
        self.lock = lock
        self.clock = clock or lock.clock
        self.sink = sink or lock.sink
        self.jitter_ceiling_ms = jitter_ceiling_ms
        self.rng = rng or random.Random()

    def _backoff_ms(self) -> int:
        return int(self.rng.random() * self.jitter_ceiling_ms)

    async def run(
        self,
        key: str,
        holder: str,
        critical_section: CriticalSection,
        lease_duration: int = DEFAULT_LEASE_DURATION,
        max_retries: int = DEFAULT_MAX_RETRIES,
    ) -> LockableRecord:
        """Run ``critical_section`` once under an exclusive lease on ``key``.

        Args:
            key: Record key
            holder: Identifier of this process
            critical_section: Called with the freshly acquired record; returns
                the new payload (or an awaitable of it)
            lease_duration: Lease length in seconds
            max_retries: Total number of acquisition attempts

        Returns:
            The record as written by the release.

        Raises:
            LockAcquisitionExhausted: every attempt met a valid lease
            LockLost: the lease was gone by the time of release
        """
        if max_retries < 1:
            raise ValidationError("max_retries must be at least 1")

        last_contender = HolderInfo(holder_id=None, expires_at=None)
        for attempt in range(1, max_retries + 1):
            self.sink.record(holder, "Acquiring lock")
            result = await self.lock.acquire(key, holder, lease_duration)

            if isinstance(result, Acquired):
                self.sink.record(holder, "Lock acquired", success=True)
                new_payload = critical_section(result.record)
                if inspect.isawaitable(new_payload):
                    new_payload = await new_payload
                return await self.lock.release(key, holder, new_payload)

            last_contender = result.holder
            self.sink.record(holder, "Lock failed", success=False)
            if attempt == max_retries:
                break

            backoff = self._backoff_ms()
            logger.debug(
                "Attempt %d/%d for %s contended (%s), retrying in %dms",
                attempt, max_retries, key, last_contender.describe(), backoff,
            )
            self.sink.record(holder, f"Retrying in {backoff}ms")
            await self.clock.sleep(backoff / 1000)

        self.sink.record(holder, "Max retries reached", success=False)
        logger.warning("Giving up on %s after %d attempts: %s", key, max_retries, last_contender.describe())
        raise LockAcquisitionExhausted(
            key, max_retries, last_contender.holder_id, last_contender.expires_at
        )
