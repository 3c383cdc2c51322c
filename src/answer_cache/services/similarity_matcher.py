"""Semantic lookup of previously approved answers.

A candidate has to clear two bars to be served:
1. Cosine similarity at or above the configured threshold
2. Three keyword guards (subject, question type, general overlap)

The guards are hard rejects. Embeddings of short Korean questions put
"영어 시험 일정" and "수학 시험 일정" very close together, so the vector
score alone cannot tell them apart.
"""

import logging

from answer_cache.config import settings
from answer_cache.embeddings import cosine_similarity
from answer_cache.entities import CacheEntryEntity, CacheMatchEntity
from answer_cache.keywords import (
    extract_keywords,
    extract_question_type_keywords,
    extract_subject_keywords,
    families_compatible,
    has_significant_keyword_overlap,
    normalize_text,
)
from answer_cache.protocols import CacheStore, EmbeddingProvider

from .background import BackgroundTasks

logger = logging.getLogger(__name__)


class SimilarityMatcher:
    """Finds the best cached entry for a new question.

    Example:
        ```python
        matcher = SimilarityMatcher(repository, embedding_provider, background)
        match = await matcher.find_best_match("편입시험 일정 알려주세요")
        if match:
            print(match.entry.answer, match.similarity)
        ```
    """

    def __init__(
        self,
        repository: CacheStore,
        embedding_provider: EmbeddingProvider,
        background: BackgroundTasks,
        similarity_threshold: float | None = None,
        min_candidate_confidence: float | None = None,
        candidate_window: int | None = None,
    ) -> None:
        self._repository = repository
        self._embeddings = embedding_provider
        self._background = background
        self._threshold = (
            similarity_threshold if similarity_threshold is not None else settings.similarity_threshold
        )
        self._min_confidence = (
            min_candidate_confidence
            if min_candidate_confidence is not None
            else settings.min_candidate_confidence
        )
        self._window = candidate_window or settings.candidate_window

    @property
    def threshold(self) -> float:
        return self._threshold

    async def find_best_match(self, query_text: str) -> CacheMatchEntity | None:
        """Return the highest-similarity candidate that passes every guard.

        On a match the hit count is bumped in the background and the entry
        is re-read from the store, so an answer corrected in the meantime
        is what the caller gets.

        Raises:
            UpstreamUnavailable: If the query cannot be embedded
        """
        if not query_text or not query_text.strip():
            return None

        normalized = normalize_text(query_text)
        query_vector = await self._embeddings.encode(normalized)

        candidates = self._repository.find_candidates(self._min_confidence, self._window)
        logger.debug("Similarity search: %d candidates (threshold=%.2f)", len(candidates), self._threshold)

        best: CacheMatchEntity | None = None
        for candidate in candidates:
            similarity = self._similarity(query_vector, candidate)
            if similarity is None or similarity < self._threshold:
                continue
            if not self._passes_keyword_guards(normalized, candidate):
                continue
            if best is None or similarity > best.similarity:
                best = CacheMatchEntity(entry=candidate, similarity=similarity)

        if best is None:
            logger.debug("No cache match for query: %.50s", query_text)
            return None

        cache_id = best.entry.cache_id
        self._background.submit(self._increment_hit(cache_id), name=f"cache-hit-{cache_id}")

        fresh = self._refetch(cache_id)
        entry = fresh if fresh is not None else best.entry
        logger.info(
            "Cache hit: cacheId=%s similarity=%.3f hitCount=%d",
            cache_id,
            best.similarity,
            entry.hit_count,
        )
        return CacheMatchEntity(entry=entry, similarity=best.similarity)

    def _similarity(self, query_vector: list[float], candidate: CacheEntryEntity) -> float | None:
        if candidate.embedding_model != self._embeddings.model_name:
            return None
        try:
            return cosine_similarity(query_vector, candidate.embedding)
        except ValueError:
            logger.debug("Skipping cacheId=%s: embedding dimension mismatch", candidate.cache_id)
            return None

    def _passes_keyword_guards(self, normalized_query: str, candidate: CacheEntryEntity) -> bool:
        cached = normalize_text(candidate.question)

        query_subjects = extract_subject_keywords(normalized_query)
        cached_subjects = extract_subject_keywords(cached)
        if not families_compatible(query_subjects, cached_subjects):
            logger.debug(
                "Rejected cacheId=%s: subject mismatch %s vs %s",
                candidate.cache_id,
                sorted(query_subjects),
                sorted(cached_subjects),
            )
            return False

        query_types = extract_question_type_keywords(normalized_query)
        cached_types = extract_question_type_keywords(cached)
        if not families_compatible(query_types, cached_types):
            logger.debug(
                "Rejected cacheId=%s: question type mismatch %s vs %s",
                candidate.cache_id,
                sorted(query_types),
                sorted(cached_types),
            )
            return False

        if not has_significant_keyword_overlap(extract_keywords(normalized_query), extract_keywords(cached)):
            logger.debug("Rejected cacheId=%s: insufficient keyword overlap", candidate.cache_id)
            return False

        return True

    async def _increment_hit(self, cache_id: int) -> None:
        self._repository.increment_hit(cache_id)

    def _refetch(self, cache_id: int) -> CacheEntryEntity | None:
        try:
            return self._repository.get(cache_id)
        except Exception:
            logger.warning("Failed to re-fetch cache entry: cacheId=%s", cache_id, exc_info=True)
            return None
