"""leasechain exception classes."""

from typing import Optional

from .models import format_lock_info


class LeaseChainError(Exception):
    """Base exception for all leasechain errors."""
    pass


class ValidationError(LeaseChainError):
    """Raised when input validation fails."""
    pass


class StoreError(LeaseChainError):
    """Raised when the backing store rejects a request."""
    pass


class NetworkError(StoreError):
    """Raised when talking to the backing store fails."""
    pass


class AuthenticationError(StoreError):
    """Raised when the backing store refuses our credentials."""
    pass


class RecordNotFoundError(LeaseChainError):
    """Raised when the keyed record does not exist."""

    def __init__(self, key: str):
        super().__init__(f"Item {key} does not exist")
        self.key = key


class LockError(LeaseChainError):
    """Raised when lock operations fail.

    Carries the lease state observed by the store when the operation was
    rejected, so callers can report who holds the lock and until when.
    """

    def __init__(
        self,
        message: str,
        key: str,
        holder_id: Optional[str] = None,
        expires_at: Optional[int] = None,
    ):
        super().__init__(message)
        self.key = key
        self.holder_id = holder_id
        self.expires_at = expires_at


class LockContended(LockError):
    """Raised when trying to acquire a lock that's already held."""

    def __init__(self, key: str, holder_id: Optional[str] = None, expires_at: Optional[int] = None):
        super().__init__(
            f"Failed to acquire lock for item {key} - {format_lock_info(holder_id, expires_at)}",
            key,
            holder_id,
            expires_at,
        )


class LockAcquisitionExhausted(LockContended):
    """Raised when every acquisition attempt met a held lock."""

    def __init__(
        self,
        key: str,
        attempts: int,
        holder_id: Optional[str] = None,
        expires_at: Optional[int] = None,
    ):
        LockError.__init__(
            self,
            f"Failed to acquire lock for item {key} after {attempts} attempts - "
            f"{format_lock_info(holder_id, expires_at)}",
            key,
            holder_id,
            expires_at,
        )
        self.attempts = attempts


class LockLost(LockError):
    """Raised when a release finds the lease expired or held by someone else."""

    def __init__(self, key: str, holder_id: Optional[str] = None, expires_at: Optional[int] = None):
        super().__init__(
            f"Failed to update item {key} - {format_lock_info(holder_id, expires_at)}",
            key,
            holder_id,
            expires_at,
        )
