"""HTTP handlers for cache operations.

Handlers convert between DTOs (API contracts) and service calls.
They handle HTTP concerns like status codes, validation, and error handling.
"""

import time

from fastapi import HTTPException, status

from answer_cache.dto import (
    CacheEntryResponse,
    CacheSearchResponse,
    CacheStatsResponse,
    CleanupResponse,
    ConfidenceUpdateResponse,
    HealthCheckResponse,
    RebuildResponse,
    SearchCacheRequest,
    StoreCacheRequest,
    UpdateAnswerRequest,
    WarmupResponse,
)
from answer_cache.entities import CacheEntryEntity
from answer_cache.errors import AnswerCacheError
from answer_cache.protocols import EmbeddingProvider
from answer_cache.services import CacheService, ConfidenceScorer, MaintenanceService, WarmupService

from .errors import http_error


def to_entry_response(entry: CacheEntryEntity) -> CacheEntryResponse:
    return CacheEntryResponse(
        cache_id=entry.cache_id,
        question=entry.question,
        answer=entry.answer,
        confidence_score=entry.confidence_score,
        hit_count=entry.hit_count,
        last_hit_at=entry.last_hit_at,
        original_response_id=entry.original_response_id,
        embedding_model=entry.embedding_model,
        created_at=entry.created_at,
    )


class CacheHandler:
    """HTTP handlers for cache operations.

    This handler delegates business logic to the cache, confidence, warm-up
    and maintenance services and handles HTTP-specific concerns like:
    - Converting entities to DTOs
    - Setting appropriate status codes
    - Error handling and responses

    Example:
        ```python
        handler = CacheHandler(
            cache_service=cache_service,
            scorer=scorer,
            warmup=warmup,
            maintenance=maintenance,
        )

        @app.post("/cache/search", response_model=CacheSearchResponse)
        async def search_cache(request: SearchCacheRequest):
            return await handler.search(request)
        ```
    """

    def __init__(
        self,
        cache_service: CacheService,
        scorer: ConfidenceScorer,
        warmup: WarmupService,
        maintenance: MaintenanceService,
        embedding_provider: EmbeddingProvider | None = None,
    ) -> None:
        self._cache = cache_service
        self._scorer = scorer
        self._warmup = warmup
        self._maintenance = maintenance
        self._embeddings = embedding_provider

    async def search(self, request: SearchCacheRequest) -> CacheSearchResponse:
        """Handle POST /cache/search requests."""
        start_time = time.time()
        try:
            match = await self._cache.search(request.question)
        except AnswerCacheError as e:
            raise http_error(e) from e
        lookup_time_ms = (time.time() - start_time) * 1000

        return CacheSearchResponse(
            question=request.question,
            is_hit=match is not None,
            similarity=match.similarity if match else None,
            entry=to_entry_response(match.entry) if match else None,
            lookup_time_ms=lookup_time_ms,
        )

    async def store(self, request: StoreCacheRequest) -> CacheEntryResponse:
        """Handle POST /cache/store requests. Idempotent per original_response_id."""
        try:
            entry = await self._cache.save(
                question=request.question,
                answer=request.answer,
                original_response_id=request.original_response_id,
                confidence_score=request.confidence_score,
            )
        except AnswerCacheError as e:
            raise http_error(e) from e
        return to_entry_response(entry)

    async def update_answer(self, cache_id: int, request: UpdateAnswerRequest) -> CacheEntryResponse:
        """Handle PUT /cache/{cache_id}/answer requests."""
        try:
            entry = await self._cache.update_answer(cache_id, request.answer)
        except AnswerCacheError as e:
            raise http_error(e) from e
        return to_entry_response(entry)

    async def get_entry(self, cache_id: int) -> CacheEntryResponse:
        try:
            return to_entry_response(self._cache.get_entry(cache_id))
        except AnswerCacheError as e:
            raise http_error(e) from e

    async def get_stats(self) -> CacheStatsResponse:
        stats = self._cache.get_statistics()
        return CacheStatsResponse(
            total_count=stats.total_count,
            total_hits=stats.total_hits,
            hit_rate=stats.hit_rate,
            avg_confidence=stats.avg_confidence,
            estimated_cost_savings=stats.estimated_cost_savings,
            similarity_threshold=stats.similarity_threshold,
        )

    async def high_confidence(self, min_confidence: float, limit: int) -> list[CacheEntryResponse]:
        entries = self._cache.get_high_confidence_entries(min_confidence, limit)
        return [to_entry_response(entry) for entry in entries]

    async def warmup(self, days: int | None) -> WarmupResponse:
        """Handle POST /cache/warmup: recent window when `days` is given, else everything."""
        if days is None:
            result = await self._warmup.warmup_from_approved()
        else:
            result = await self._warmup.warmup_recent(days)
        return WarmupResponse(
            total_processed=result.total_processed,
            success_count=result.success_count,
            skip_count=result.skip_count,
            error_count=result.error_count,
            success_rate=result.success_rate,
        )

    async def recalculate_confidence(self) -> ConfidenceUpdateResponse:
        result = self._scorer.recalculate_all()
        return ConfidenceUpdateResponse(
            total_count=result.total_count,
            success_count=result.success_count,
            error_count=result.error_count,
        )

    async def rebuild(self) -> RebuildResponse:
        result = await self._maintenance.rebuild_all()
        return RebuildResponse(
            success=result.success,
            cache_count=result.cache_count,
            confidence_update_count=result.confidence_update_count,
            duration_ms=result.duration_ms,
            error_message=result.error_message,
        )

    async def cleanup(self, min_confidence: float, max_age_days: int) -> CleanupResponse:
        try:
            deleted = self._cache.cleanup(min_confidence, max_age_days)
        except Exception as e:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Failed to clean up cache: {e}",
            ) from e
        return CleanupResponse(
            deleted_count=deleted,
            min_confidence=min_confidence,
            max_age_days=max_age_days,
        )

    async def health_check(self) -> HealthCheckResponse:
        """Handle GET /health requests."""
        cache_healthy = self._cache.is_healthy()
        embedding_healthy = await self._embeddings.is_available() if self._embeddings else None

        healthy = cache_healthy and embedding_healthy is not False
        return HealthCheckResponse(
            status="healthy" if healthy else "unhealthy",
            cache_healthy=cache_healthy,
            embedding_healthy=embedding_healthy,
        )
