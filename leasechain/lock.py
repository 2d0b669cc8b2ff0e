"""Lease lock over a single record of a keyed conditional store."""

import logging
import re
import time
from typing import Optional

from .clock import Clock, SystemClock
from .diagnostics import DiagnosticSink, NullSink
from .exceptions import LockContended, LockLost, RecordNotFoundError, ValidationError
from .models import (
    ID_ATTR,
    LAST_UPDATED_ATTR,
    LEASE_EXPIRY_ATTR,
    LEASE_HOLDER_ATTR,
    PAYLOAD_ATTR,
    AcquireResult,
    Acquired,
    Contended,
    LockableRecord,
    holder_info_from_item,
)
from .store import (
    AttributeExists,
    AttributeNotExists,
    Compare,
    Condition,
    KeyedConditionalStore,
    Mutations,
)

logger = logging.getLogger(__name__)

DEFAULT_LEASE_DURATION = 30
MAX_LEASE_DURATION = 3600

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9._:-]+$")


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


class LeaseLock:
    """Acquire and release a time-bounded lease using conditional updates.

    The lease lives in two attributes of the record itself: ``lockTime``
    (expiry, epoch seconds) and ``lockedBy`` (holder id). A lease whose
    expiry has passed is treated exactly like no lease, so a crashed
    holder's lease is reclaimed by the next acquire once it expires.
    Nothing ever clears an expired lease explicitly.
    """

    def __init__(
        self,
        store: KeyedConditionalStore,
        clock: Optional[Clock] = None,
        sink: Optional[DiagnosticSink] = None,
    ):
        self.store = store
        self.clock = clock or SystemClock()
        self.sink = sink or NullSink()

    def _validate_key(self, key: str) -> None:
        """Validate record key format."""
        if not key or len(key) > 128:
            raise ValidationError("Item key must be 1-128 characters")
        if not _KEY_PATTERN.match(key):
            raise ValidationError(
                "Item key can only contain alphanumeric characters, dots, colons, underscores and hyphens"
            )

    def _validate_holder(self, holder: str) -> None:
        if not holder:
            raise ValidationError("Holder id must not be empty")

    def _validate_lease_duration(self, lease_duration: int) -> None:
        """Validate lease duration value."""
        if not 1 <= lease_duration <= MAX_LEASE_DURATION:
            raise ValidationError(f"Lease duration must be between 1 and {MAX_LEASE_DURATION} seconds")

    @staticmethod
    def acquire_condition(now: int) -> Condition:
        """Record exists and carries no lease, or only an expired one."""
        return AttributeExists(ID_ATTR) & (
            AttributeNotExists(LEASE_EXPIRY_ATTR) | Compare(LEASE_EXPIRY_ATTR, "<", now)
        )

    @staticmethod
    def release_condition(holder: str, now: int) -> Condition:
        """Lease is still ours and has not expired."""
        return Compare(LEASE_HOLDER_ATTR, "=", holder) & Compare(LEASE_EXPIRY_ATTR, ">", now)

    async def acquire(
        self, key: str, holder: str, lease_duration: int = DEFAULT_LEASE_DURATION
    ) -> AcquireResult:
        """Try once to take the lease on ``key``.

        Args:
            key: Record key
            holder: Identifier of the process claiming the lease
            lease_duration: Lease length in seconds (1-3600)

        Returns:
            Acquired with the full record (payload included) on success,
            Contended with the current holder and expiry otherwise.

        Raises:
            RecordNotFoundError: if no record exists under ``key``
        """
        self._validate_key(key)
        self._validate_holder(holder)
        self._validate_lease_duration(lease_duration)

        now = self.clock.now()
        mutations = Mutations(set={LEASE_EXPIRY_ATTR: now + lease_duration, LEASE_HOLDER_ATTR: holder})
        started = time.monotonic()
        outcome = await self.store.conditional_update(key, self.acquire_condition(now), mutations)

        if outcome.succeeded:
            self.sink.record(holder, f"Lock request took {_elapsed_ms(started)}ms")
            record = LockableRecord.from_item(outcome.item)
            logger.info("Lease on %s acquired: %s", key, record.holder_info().describe())
            return Acquired(record)

        self.sink.record(holder, f"Lock failure response took {_elapsed_ms(started)}ms")
        if outcome.item is None:
            raise RecordNotFoundError(key)
        contender = holder_info_from_item(outcome.item)
        logger.debug("Lease on %s contended: %s", key, contender.describe())
        return Contended(contender)

    async def acquire_or_raise(
        self, key: str, holder: str, lease_duration: int = DEFAULT_LEASE_DURATION
    ) -> LockableRecord:
        """Like :meth:`acquire` but raises LockContended instead of returning it."""
        result = await self.acquire(key, holder, lease_duration)
        if isinstance(result, Contended):
            raise LockContended(key, result.holder.holder_id, result.holder.expires_at)
        return result.record

    async def release(self, key: str, holder: str, new_payload: str) -> LockableRecord:
        """Write ``new_payload`` and drop the lease in one conditional update.

        Args:
            key: Record key
            holder: Identifier the lease was acquired with
            new_payload: Value to store as the record's payload

        Returns:
            The record after the update, with no lease attributes.

        Raises:
            LockLost: if the lease expired or another holder has it; the
                record is left untouched
        """
        self._validate_key(key)
        self._validate_holder(holder)

        now = self.clock.now()
        mutations = Mutations(
            set={PAYLOAD_ATTR: new_payload, LAST_UPDATED_ATTR: now},
            remove=(LEASE_EXPIRY_ATTR, LEASE_HOLDER_ATTR),
        )
        outcome = await self.store.conditional_update(key, self.release_condition(holder, now), mutations)

        if not outcome.succeeded:
            current = holder_info_from_item(outcome.item)
            logger.warning("Lease on %s lost by %s: %s", key, holder, current.describe())
            raise LockLost(key, current.holder_id, current.expires_at)

        logger.info("Lease on %s released by %s", key, holder)
        return LockableRecord.from_item(outcome.item)
