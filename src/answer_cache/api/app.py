from collections.abc import Callable
from typing import Any

from fastapi import FastAPI, Query
from fastapi.middleware.cors import CORSMiddleware

from answer_cache.api.dependencies import CacheHandlerDep, ResponseHandlerDep, lifespan
from answer_cache.config import settings
from answer_cache.dto import (
    CacheEntryResponse,
    CacheSearchResponse,
    CacheStatsResponse,
    CleanupResponse,
    ConfidenceUpdateResponse,
    EditResponseRequest,
    GenerationRecordResponse,
    GenerationResponse,
    HealthCheckResponse,
    RebuildResponse,
    SearchCacheRequest,
    StoreCacheRequest,
    UpdateAnswerRequest,
    WarmupResponse,
)


def create_app(lifespan_handler: Callable | None = None) -> FastAPI:
    """Build the API. Tests pass their own lifespan to inject services."""
    app = FastAPI(
        title="Answer Cache API",
        description="Semantic answer cache and at-most-once answer generation for student questions",
        version="0.1.0",
        lifespan=lifespan_handler or lifespan,
    )

    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/")
    async def root() -> dict[str, Any]:
        """Root endpoint with API information."""
        return {
            "name": "Answer Cache API",
            "version": "0.1.0",
            "endpoints": {
                "responses": "/responses",
                "cache": "/cache",
                "stats": "/cache/stats",
                "health": "/health",
                "docs": "/docs",
            },
        }

    @app.get("/health", response_model=HealthCheckResponse)
    async def health(handler: CacheHandlerDep) -> HealthCheckResponse:
        return await handler.health_check()

    @app.post("/responses/generate/{message_id}", response_model=GenerationResponse)
    async def generate_response(message_id: int, handler: ResponseHandlerDep) -> GenerationResponse:
        """Return the answer record for a message, generating it at most once."""
        return await handler.generate(message_id)

    @app.get("/responses/pending", response_model=list[GenerationRecordResponse])
    async def list_pending(
        handler: ResponseHandlerDep,
        teacher_id: int | None = None,
    ) -> list[GenerationRecordResponse]:
        return await handler.list_pending(teacher_id)

    @app.post("/responses/{response_id}/approve", response_model=GenerationRecordResponse)
    async def approve_response(response_id: int, handler: ResponseHandlerDep) -> GenerationRecordResponse:
        return await handler.approve(response_id)

    @app.post("/responses/{response_id}/edit", response_model=GenerationRecordResponse)
    async def edit_response(
        response_id: int,
        request: EditResponseRequest,
        handler: ResponseHandlerDep,
    ) -> GenerationRecordResponse:
        return await handler.edit(response_id, request)

    @app.post("/cache/search", response_model=CacheSearchResponse)
    async def search_cache(request: SearchCacheRequest, handler: CacheHandlerDep) -> CacheSearchResponse:
        """Find the best cached answer for a question."""
        return await handler.search(request)

    @app.post("/cache/store", response_model=CacheEntryResponse)
    async def store_cache(request: StoreCacheRequest, handler: CacheHandlerDep) -> CacheEntryResponse:
        return await handler.store(request)

    @app.get("/cache/stats", response_model=CacheStatsResponse)
    async def cache_stats(handler: CacheHandlerDep) -> CacheStatsResponse:
        return await handler.get_stats()

    @app.get("/cache/high-confidence", response_model=list[CacheEntryResponse])
    async def high_confidence(
        handler: CacheHandlerDep,
        min_confidence: float = Query(0.8, ge=0.0, le=1.0),
        limit: int = Query(10, ge=1, le=1000),
    ) -> list[CacheEntryResponse]:
        return await handler.high_confidence(min_confidence, limit)

    @app.post("/cache/warmup", response_model=WarmupResponse)
    async def warmup_cache(
        handler: CacheHandlerDep,
        days: int | None = Query(None, ge=1),
    ) -> WarmupResponse:
        """Seed the cache from sent answers (all of them, or the last `days` days)."""
        return await handler.warmup(days)

    @app.post("/cache/recalculate-confidence", response_model=ConfidenceUpdateResponse)
    async def recalculate_confidence(handler: CacheHandlerDep) -> ConfidenceUpdateResponse:
        return await handler.recalculate_confidence()

    @app.post("/cache/rebuild", response_model=RebuildResponse)
    async def rebuild_cache(handler: CacheHandlerDep) -> RebuildResponse:
        return await handler.rebuild()

    @app.delete("/cache/cleanup", response_model=CleanupResponse)
    async def cleanup_cache(
        handler: CacheHandlerDep,
        min_confidence: float = Query(0.6, ge=0.0, le=1.0),
        max_age_days: int = Query(30, ge=0),
    ) -> CleanupResponse:
        return await handler.cleanup(min_confidence, max_age_days)

    @app.get("/cache/{cache_id}", response_model=CacheEntryResponse)
    async def get_cache_entry(cache_id: int, handler: CacheHandlerDep) -> CacheEntryResponse:
        return await handler.get_entry(cache_id)

    @app.put("/cache/{cache_id}/answer", response_model=CacheEntryResponse)
    async def update_cache_answer(
        cache_id: int,
        request: UpdateAnswerRequest,
        handler: CacheHandlerDep,
    ) -> CacheEntryResponse:
        """Correct a cached answer; pending reviews for the same message follow."""
        return await handler.update_answer(cache_id, request)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "answer_cache.api.app:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
    )
