"""leasechain data models."""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Union

# Stored attribute names of a lockable record.
ID_ATTR = "id"
PAYLOAD_ATTR = "currentHash"
LAST_UPDATED_ATTR = "lastUpdated"
LEASE_EXPIRY_ATTR = "lockTime"
LEASE_HOLDER_ATTR = "lockedBy"


def format_expiry(expires_at: int) -> str:
    """Render an epoch-seconds expiry as an ISO 8601 UTC timestamp."""
    moment = datetime.fromtimestamp(expires_at, tz=timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def format_lock_info(holder_id: Optional[str], expires_at: Optional[int]) -> str:
    """Describe who holds a lease, for error messages."""
    if holder_id is None:
        return "lock information not found"
    if expires_at is None:
        return f"locked by process {holder_id}"
    return f"locked by process {holder_id} until {format_expiry(expires_at)}"


class LockStatus(str, Enum):
    """Lock status enumeration."""
    FREE = "free"
    HELD = "held"


@dataclass(frozen=True)
class HolderInfo:
    """Who holds a lease and until when."""
    holder_id: Optional[str]
    expires_at: Optional[int]

    def describe(self) -> str:
        return format_lock_info(self.holder_id, self.expires_at)


@dataclass(frozen=True)
class LockableRecord:
    """A record whose payload is guarded by a lease.

    ``lease_expiry`` and ``lease_holder`` are either both set or both None.
    An unlocked record has neither attribute stored.
    """
    id: str
    payload: str
    last_updated: int
    lease_expiry: Optional[int] = None
    lease_holder: Optional[str] = None

    @classmethod
    def from_item(cls, item: Dict[str, Any]) -> "LockableRecord":
        """Build a record from its stored attributes."""
        expiry = item.get(LEASE_EXPIRY_ATTR)
        return cls(
            id=str(item[ID_ATTR]),
            payload=str(item[PAYLOAD_ATTR]),
            last_updated=int(item.get(LAST_UPDATED_ATTR, 0)),
            lease_expiry=int(expiry) if expiry is not None else None,
            lease_holder=item.get(LEASE_HOLDER_ATTR),
        )

    def to_item(self) -> Dict[str, Any]:
        """Stored attributes of the record, omitting absent lease fields."""
        item: Dict[str, Any] = {
            ID_ATTR: self.id,
            PAYLOAD_ATTR: self.payload,
            LAST_UPDATED_ATTR: self.last_updated,
        }
        if self.lease_expiry is not None:
            item[LEASE_EXPIRY_ATTR] = self.lease_expiry
            item[LEASE_HOLDER_ATTR] = self.lease_holder
        return item

    def lease_valid(self, now: int) -> bool:
        return self.lease_expiry is not None and self.lease_expiry > now

    def status(self, now: int) -> LockStatus:
        return LockStatus.HELD if self.lease_valid(now) else LockStatus.FREE

    def holder_info(self) -> Optional[HolderInfo]:
        if self.lease_holder is None:
            return None
        return HolderInfo(holder_id=self.lease_holder, expires_at=self.lease_expiry)


def holder_info_from_item(item: Optional[Dict[str, Any]]) -> HolderInfo:
    """Extract the lease fields from a raw stored item, which may be absent."""
    if not item:
        return HolderInfo(holder_id=None, expires_at=None)
    expiry = item.get(LEASE_EXPIRY_ATTR)
    return HolderInfo(
        holder_id=item.get(LEASE_HOLDER_ATTR),
        expires_at=int(expiry) if expiry is not None else None,
    )


@dataclass(frozen=True)
class Acquired:
    """Result of a successful lease acquisition."""
    record: LockableRecord


@dataclass(frozen=True)
class Contended:
    """Result of an acquisition that met a valid lease held by someone else."""
    holder: HolderInfo


AcquireResult = Union[Acquired, Contended]
