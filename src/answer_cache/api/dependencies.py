"""Dependency injection configuration for FastAPI app.

Uses FastAPI's app.state pattern for storing service instances.

Pattern:
    - Services stored in app.state during lifespan
    - Dependency functions retrieve from request.app.state
    - Clean separation, no global mutable state
"""

import logging
from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import Depends, FastAPI, Request

from answer_cache.config import get_redis_client, settings
from answer_cache.handlers import CacheHandler, ResponseHandler
from answer_cache.logging_config import configure_logging
from answer_cache.protocols import EmbeddingProvider
from answer_cache.repositories import (
    DEFAULT_LOCAL_MODEL,
    DEFAULT_OLLAMA_MODEL,
    GeminiAnswerGenerator,
    LangGraphAnswerGenerator,
    LocalEmbeddingProvider,
    OllamaEmbeddingProvider,
    RedisCacheRepository,
    RedisLockStore,
    RedisMessageRepository,
    RedisResponseRepository,
)
from answer_cache.services import (
    BackgroundTasks,
    CacheService,
    ConfidenceScorer,
    GenerationOrchestrator,
    MaintenanceService,
    WarmupService,
)

logger = logging.getLogger(__name__)


def get_cache_handler(request: Request) -> CacheHandler:
    """Dependency injection for CacheHandler from app.state.

    Raises:
        RuntimeError: If handler is not initialized
    """
    handler = getattr(request.app.state, "cache_handler", None)
    if handler is None:
        raise RuntimeError("CacheHandler not initialized. Check lifespan setup.")
    return handler


def get_response_handler(request: Request) -> ResponseHandler:
    """Dependency injection for ResponseHandler from app.state.

    Raises:
        RuntimeError: If handler is not initialized
    """
    handler = getattr(request.app.state, "response_handler", None)
    if handler is None:
        raise RuntimeError("ResponseHandler not initialized. Check lifespan setup.")
    return handler


def build_embedding_provider() -> EmbeddingProvider:
    """Pick the embedding backend from EMBEDDING_PROVIDER.

    - ollama: local Ollama server, default model embeddinggemma
    - local:  sentence-transformers in-process, default model
              paraphrase-multilingual-MiniLM-L12-v2

    EMBEDDING_MODEL overrides the default of whichever provider is chosen.

    Vectors are tagged with the model name, so switching providers leaves
    old entries unmatched until the cache is rebuilt.
    """
    if settings.embedding_provider == "local":
        return LocalEmbeddingProvider.create(settings.embedding_model or DEFAULT_LOCAL_MODEL)
    return OllamaEmbeddingProvider.create(model_name=settings.embedding_model or DEFAULT_OLLAMA_MODEL)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for FastAPI app.

    Initializes all layers and stores the handlers in app.state:
    1. Repositories (Redis, embeddings, generators)
    2. Services (business logic)
    3. Handlers (HTTP endpoints)

    Cleanup:
        Drains background tasks and closes HTTP clients on shutdown
    """
    configure_logging(settings.log_level)

    redis_client = get_redis_client()
    embedding_provider = build_embedding_provider()
    primary = LangGraphAnswerGenerator.create()
    fallback = GeminiAnswerGenerator.create()

    repository = RedisCacheRepository(redis_client=redis_client)
    responses = RedisResponseRepository(redis_client=redis_client)
    messages = RedisMessageRepository(redis_client=redis_client)
    locks = RedisLockStore(redis_client=redis_client)

    background = BackgroundTasks()
    cache_service = CacheService.create(
        repository=repository,
        responses=responses,
        embedding_provider=embedding_provider,
        background=background,
    )
    scorer = ConfidenceScorer.create(repository, responses)
    warmup = WarmupService.create(cache_service, responses, messages)
    orchestrator = GenerationOrchestrator.create(
        cache=cache_service,
        scorer=scorer,
        responses=responses,
        messages=messages,
        locks=locks,
        primary=primary,
        fallback=fallback,
    )
    maintenance = MaintenanceService(
        cache=cache_service,
        scorer=scorer,
        warmup=warmup,
        orchestrator=orchestrator,
        responses=responses,
        messages=messages,
        locks=locks,
    )

    app.state.cache_handler = CacheHandler(
        cache_service=cache_service,
        scorer=scorer,
        warmup=warmup,
        maintenance=maintenance,
        embedding_provider=embedding_provider,
    )
    app.state.response_handler = ResponseHandler(orchestrator=orchestrator)
    app.state.maintenance = maintenance

    logger.info("Answer cache initialized")
    logger.info("Embedding: %s (%s)", settings.embedding_provider, embedding_provider.model_name)
    logger.info("Redis URL: %s", settings.redis_url)
    logger.info("Similarity threshold: %.2f", cache_service.threshold)
    logger.info("Cache healthy: %s", cache_service.is_healthy())

    yield

    await background.drain()
    primary.close()
    fallback.close()
    if isinstance(embedding_provider, OllamaEmbeddingProvider):
        await embedding_provider.close()
    redis_client.close()

    del app.state.cache_handler
    del app.state.response_handler
    del app.state.maintenance
    logger.info("Answer cache shut down")


# Type aliases for cleaner dependency injection
CacheHandlerDep = Annotated[CacheHandler, Depends(get_cache_handler)]
ResponseHandlerDep = Annotated[ResponseHandler, Depends(get_response_handler)]
