"""Distributed lock protocol."""

from typing import Protocol, runtime_checkable


@runtime_checkable
class LockStore(Protocol):
    """Set-if-absent key/value store used for mutual exclusion.

    TTL expiry is the safety net for crashed holders; normal release is
    an explicit `release` by the owner.
    """

    def acquire(self, key: str, owner: str, ttl: int) -> bool:
        """Set `key` to `owner` with a TTL in seconds if it is not already set.

        Returns:
            True if this caller now holds the lock
        """
        ...

    def release(self, key: str, owner: str) -> bool:
        """Delete `key` if it is still held by `owner`.

        Returns:
            True if the lock was released
        """
        ...
