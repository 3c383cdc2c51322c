"""Cache service for writes, corrections and maintenance.

This service owns the lifecycle of cache entries: idempotent writes after a
successful generation, answer corrections that fan out to pending reviews,
hit bookkeeping and the periodic cleanup.
"""

import hashlib
import logging
import time
from dataclasses import replace
from datetime import timedelta

from answer_cache.config import settings
from answer_cache.entities import (
    CacheEntryEntity,
    CacheMatchEntity,
    CacheStatisticsEntity,
    ResponseStatus,
)
from answer_cache.errors import CacheEntryNotFound
from answer_cache.keywords import normalize_text
from answer_cache.protocols import CacheStore, EmbeddingProvider, ResponseStore
from answer_cache.repositories.redis_codec import utcnow

from .background import BackgroundTasks
from .similarity_matcher import SimilarityMatcher

logger = logging.getLogger(__name__)

COST_PER_HIT = 0.02


class CacheService:
    """Core cache write and maintenance service.

    This service depends on PROTOCOLS, not concrete implementations:
    - CacheStore: where entries live
    - ResponseStore: generation records touched by answer corrections
    - EmbeddingProvider: vectors for newly stored questions

    Example:
        ```python
        cache = CacheService.create(
            repository=RedisCacheRepository.create(),
            responses=RedisResponseRepository.create(),
            embedding_provider=OllamaEmbeddingProvider.create(),
        )
        entry = await cache.save("편입 시험 일정이 언제인가요?", "...", response_id, 0.5)
        ```
    """

    def __init__(
        self,
        repository: CacheStore,
        responses: ResponseStore,
        embedding_provider: EmbeddingProvider,
        background: BackgroundTasks | None = None,
        similarity_threshold: float | None = None,
    ) -> None:
        """Initialize the cache service.

        Args:
            repository: Cache entry storage backend (required).
            responses: Generation record storage (required).
            embedding_provider: Embedding generation service (required).
            background: Runner for fire-and-forget side effects.
            similarity_threshold: Minimum cosine similarity for a match. Defaults to settings.
        """
        self._repository = repository
        self._responses = responses
        self._embeddings = embedding_provider
        self._background = background or BackgroundTasks()
        self._threshold = (
            similarity_threshold if similarity_threshold is not None else settings.similarity_threshold
        )
        self._matcher = SimilarityMatcher(
            repository=repository,
            embedding_provider=embedding_provider,
            background=self._background,
            similarity_threshold=self._threshold,
        )

    @classmethod
    def create(
        cls,
        repository: CacheStore,
        responses: ResponseStore,
        embedding_provider: EmbeddingProvider,
        background: BackgroundTasks | None = None,
    ) -> "CacheService":
        """Factory method to create CacheService with settings defaults."""
        return cls(
            repository=repository,
            responses=responses,
            embedding_provider=embedding_provider,
            background=background,
        )

    async def save(
        self,
        question: str,
        answer: str,
        original_response_id: int | None,
        confidence_score: float,
    ) -> CacheEntryEntity:
        """Store a question/answer pair.

        Business logic:
        1. Return the existing entry if this response already seeded one
        2. Embed the question
        3. Persist with an informational cache key
        4. Refresh statistics in the background

        Returns:
            The stored entry, or the pre-existing one for the same response
        """
        if original_response_id is not None:
            existing = self._repository.find_by_original_response_id(original_response_id)
            if existing is not None:
                logger.warning("Cache already exists for responseId=%s", original_response_id)
                return existing

        vector = await self._embeddings.encode(normalize_text(question))

        entry = self._repository.store(
            question=question,
            answer=answer,
            embedding=vector,
            embedding_model=self._embeddings.model_name,
            confidence_score=confidence_score,
            original_response_id=original_response_id,
            cache_key=self.generate_cache_key(question),
        )
        logger.info(
            "Saved to cache: cacheId=%s responseId=%s confidence=%.2f",
            entry.cache_id,
            original_response_id,
            entry.confidence_score,
        )

        self._background.submit(self.refresh_statistics(), name="cache-stats-refresh")
        return entry

    async def find_similar_answer(self, question: str) -> CacheEntryEntity | None:
        """Best cached entry for `question`, or None on a miss."""
        match = await self._matcher.find_best_match(question)
        return match.entry if match else None

    async def search(self, question: str) -> CacheMatchEntity | None:
        """Like find_similar_answer, but keeps the similarity score."""
        return await self._matcher.find_best_match(question)

    @staticmethod
    def generate_cache_key(question: str) -> str:
        """Informational key: question hash plus write time. Not used for lookups."""
        digest = hashlib.sha1(question.encode("utf-8")).hexdigest()[:12]
        return f"q_{digest}_{int(time.time() * 1000)}"

    def get_entry(self, cache_id: int) -> CacheEntryEntity:
        entry = self._repository.get(cache_id)
        if entry is None:
            raise CacheEntryNotFound(cache_id)
        return entry

    async def update_answer(self, cache_id: int, new_answer: str) -> CacheEntryEntity:
        """Correct a cached answer and propagate it to pending reviews.

        Every PENDING_REVIEW record for the message that seeded this entry gets
        the corrected recommendation. A failure in that fan-out is logged; the
        cache update itself stands.

        Raises:
            CacheEntryNotFound: If the entry does not exist
        """
        updated = self._repository.update_answer(cache_id, new_answer)
        if updated is None:
            raise CacheEntryNotFound(cache_id)

        logger.info("Updated cache answer: cacheId=%s length=%d", cache_id, len(new_answer))

        try:
            refreshed = self._propagate_to_pending_reviews(updated, new_answer)
            if refreshed:
                logger.info("Propagated corrected answer to %d pending record(s): cacheId=%s", refreshed, cache_id)
        except Exception:
            logger.warning("Pending review update failed, cache updated anyway: cacheId=%s", cache_id, exc_info=True)

        return updated

    def _propagate_to_pending_reviews(self, entry: CacheEntryEntity, new_answer: str) -> int:
        if entry.original_response_id is None:
            return 0
        original = self._responses.get(entry.original_response_id)
        if original is None:
            return 0

        count = 0
        for record in self._responses.find_by_message_and_status(
            original.message_id, ResponseStatus.PENDING_REVIEW
        ):
            if record.recommended_answer == new_answer:
                continue
            self._responses.save(replace(record, recommended_answer=new_answer))
            count += 1
        return count

    async def refresh_statistics(self) -> None:
        total, _, _ = self._repository.get_statistics()
        self._repository.record_stats(total, int(time.time() * 1000))
        logger.debug("Cache statistics refreshed: totalCaches=%d", total)

    def get_statistics(self) -> CacheStatisticsEntity:
        """Aggregate statistics; zeros if the store cannot be read."""
        try:
            total_count, total_hits, avg_confidence = self._repository.get_statistics()
        except Exception:
            logger.error("Failed to get cache statistics", exc_info=True)
            total_count, total_hits, avg_confidence = 0, 0, 0.0

        hit_rate = total_hits / (total_hits + total_count) * 100 if total_count > 0 else 0.0
        return CacheStatisticsEntity(
            total_count=total_count,
            total_hits=total_hits,
            hit_rate=hit_rate,
            avg_confidence=avg_confidence,
            estimated_cost_savings=total_hits * COST_PER_HIT,
            similarity_threshold=self._threshold,
        )

    def get_high_confidence_entries(self, min_confidence: float, limit: int) -> list[CacheEntryEntity]:
        return self._repository.find_candidates(min_confidence, limit)

    def cleanup(self, min_confidence: float, max_age_days: int) -> int:
        """Delete entries below min_confidence or older than max_age_days.

        Returns:
            Number of entries deleted
        """
        cutoff = utcnow() - timedelta(days=max_age_days)
        doomed = [
            entry
            for entry in self._repository.find_all()
            if entry.confidence_score < min_confidence or entry.created_at < cutoff
        ]

        deleted = sum(1 for entry in doomed if self._repository.delete(entry.cache_id))
        logger.info("Cleaned up %d low quality cache entries", deleted)
        return deleted

    def is_healthy(self) -> bool:
        return self._repository.health_check()

    @property
    def threshold(self) -> float:
        return self._threshold

    @property
    def repository(self) -> CacheStore:
        """Get the underlying repository (for testing)."""
        return self._repository
