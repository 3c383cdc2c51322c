"""Answer Cache - semantic answer reuse and at-most-once generation.

This package provides a layered architecture for answering student questions:

Layers:
    - protocols: Interface contracts (CacheStore, ResponseStore, LockStore, ...)
    - repositories: Data access implementations (Redis, Ollama, LangGraph, Gemini)
    - services: Business logic (matching, scoring, generation, maintenance)
    - handlers: HTTP endpoint handlers
    - dto: Data transfer objects (API contracts)
    - entities: Domain models (internal)

Usage:
    ```python
    from answer_cache.services import CacheService

    cache = CacheService.create(
        repository=RedisCacheRepository.create(),
        responses=RedisResponseRepository.create(),
        embedding_provider=OllamaEmbeddingProvider.create(),
    )
    entry = await cache.find_similar_answer("편입시험 일정 알려주세요")
    ```

For HTTP API:
    ```python
    from answer_cache.api.app import app
    ```
"""

from answer_cache.config import get_redis_client, settings
from answer_cache.entities import (
    CacheEntryEntity,
    CacheMatchEntity,
    GenerationOutcome,
    GenerationRecordEntity,
    OutcomeKind,
    ResponseStatus,
)
from answer_cache.errors import (
    AnswerCacheError,
    GenerationInProgress,
    GenerationSkipped,
    ReviewConflict,
    UpstreamUnavailable,
)
from answer_cache.protocols import CacheStore, EmbeddingProvider, LockStore, ResponseStore
from answer_cache.repositories import RedisCacheRepository
from answer_cache.services import CacheService, ConfidenceScorer, GenerationOrchestrator

__all__ = [
    # Configuration
    "settings",
    "get_redis_client",
    # Protocols (interfaces)
    "CacheStore",
    "EmbeddingProvider",
    "LockStore",
    "ResponseStore",
    # Services (business logic)
    "CacheService",
    "ConfidenceScorer",
    "GenerationOrchestrator",
    # Repositories (data access)
    "RedisCacheRepository",
    # Entities (domain models)
    "CacheEntryEntity",
    "CacheMatchEntity",
    "GenerationRecordEntity",
    "GenerationOutcome",
    "OutcomeKind",
    "ResponseStatus",
    # Errors
    "AnswerCacheError",
    "GenerationInProgress",
    "GenerationSkipped",
    "ReviewConflict",
    "UpstreamUnavailable",
]
