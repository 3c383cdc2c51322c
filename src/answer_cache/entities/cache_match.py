"""Cache match domain entity."""

from dataclasses import dataclass

from .cache_entry import CacheEntryEntity


@dataclass(frozen=True)
class CacheMatchEntity:
    """A candidate that survived the threshold and keyword guards.

    Attributes:
        entry: The matched cache entry
        similarity: Cosine similarity between query and entry (1 = identical)
    """

    entry: CacheEntryEntity
    similarity: float
