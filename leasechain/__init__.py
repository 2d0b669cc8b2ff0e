"""leasechain - lease locks over a keyed conditional store."""

from .chain import GENESIS_HASH, HashChainExtender, extend_chain, new_holder_id, next_hash
from .clock import Clock, SystemClock
from .diagnostics import DiagnosticSink, NullSink, SequenceRecorder
from .dynamodb import DynamoDBStore
from .exceptions import (
    LeaseChainError,
    ValidationError,
    StoreError,
    NetworkError,
    AuthenticationError,
    RecordNotFoundError,
    LockError,
    LockContended,
    LockAcquisitionExhausted,
    LockLost,
)
from .executor import BackoffRetryExecutor
from .lock import LeaseLock
from .memory import InMemoryStore
from .models import (
    Acquired,
    Contended,
    HolderInfo,
    LockableRecord,
    LockStatus,
)
from .store import KeyedConditionalStore, UpdateOutcome

__version__ = "1.0.0"
__all__ = [
    "GENESIS_HASH",
    "HashChainExtender",
    "extend_chain",
    "new_holder_id",
    "next_hash",
    "Clock",
    "SystemClock",
    "DiagnosticSink",
    "NullSink",
    "SequenceRecorder",
    "DynamoDBStore",
    "LeaseChainError",
    "ValidationError",
    "StoreError",
    "NetworkError",
    "AuthenticationError",
    "RecordNotFoundError",
    "LockError",
    "LockContended",
    "LockAcquisitionExhausted",
    "LockLost",
    "BackoffRetryExecutor",
    "LeaseLock",
    "InMemoryStore",
    "Acquired",
    "Contended",
    "HolderInfo",
    "LockableRecord",
    "LockStatus",
    "KeyedConditionalStore",
    "UpdateOutcome",
]
