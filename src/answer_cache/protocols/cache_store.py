"""Cache storage protocol.

Defines the interface for any backend that persists cached question/answer
pairs together with their embedding and reuse metadata.

Implementations can include:
- Redis (default)
- PostgreSQL
- Any document or key-value store with atomic increments
"""

from typing import Protocol, runtime_checkable

from answer_cache.entities import CacheEntryEntity


@runtime_checkable
class CacheStore(Protocol):
    """Protocol for cache entry storage backends.

    Similar to Go's interface pattern - any type that implements these
    methods satisfies the protocol, no explicit inheritance needed.

    Example:
        ```python
        repo: CacheStore = RedisCacheRepository.create()
        ```
    """

    def store(
        self,
        question: str,
        answer: str,
        embedding: list[float],
        embedding_model: str,
        confidence_score: float,
        original_response_id: int | None,
        cache_key: str,
    ) -> CacheEntryEntity:
        """Persist a new entry atomically.

        At most one entry may exist per original_response_id. If one already
        exists, it is returned unchanged instead of writing a second one.

        Returns:
            The stored (or pre-existing) entry
        """
        ...

    def get(self, cache_id: int) -> CacheEntryEntity | None:
        """Read an entry from the authoritative store."""
        ...

    def find_by_original_response_id(self, response_id: int) -> CacheEntryEntity | None:
        """Find the entry seeded by a generation record."""
        ...

    def find_candidates(self, min_confidence: float, limit: int) -> list[CacheEntryEntity]:
        """Entries with confidence >= min_confidence.

        Returns:
            At most `limit` entries ordered by confidence desc, then hit count desc
        """
        ...

    def find_all(self) -> list[CacheEntryEntity]:
        """Every stored entry."""
        ...

    def increment_hit(self, cache_id: int) -> None:
        """Atomically add one to hit_count and set last_hit_at to now."""
        ...

    def update_answer(self, cache_id: int, answer: str) -> CacheEntryEntity | None:
        """Replace the answer text.

        Returns:
            The updated entry, or None if it does not exist
        """
        ...

    def update_confidence(self, cache_id: int, confidence_score: float) -> None:
        """Replace the confidence score."""
        ...

    def delete(self, cache_id: int) -> bool:
        """Delete an entry and any fast-path mirror of its answer.

        Returns:
            True if deleted, False otherwise
        """
        ...

    def get_statistics(self) -> tuple[int, int, float]:
        """Aggregate statistics.

        Returns:
            Tuple (total_count, total_hits, avg_confidence)
        """
        ...

    def record_stats(self, total_count: int, updated_at_ms: int) -> None:
        """Publish summary counters for dashboards."""
        ...

    def health_check(self) -> bool:
        """Check if the store is accessible."""
        ...
