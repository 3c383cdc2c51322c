"""Repository layer for data access.

This layer abstracts external dependencies (Redis, embedding APIs,
generation backends) behind protocol-based interfaces. This enables:
- Easy swapping of implementations
- Unit testing with in-memory implementations
- Clear separation of concerns

The repositories are protocol-based (structural typing), not inheritance-based.
Any class implementing the required methods will satisfy the protocol.
"""

from answer_cache.protocols import (
    AnswerGenerator,
    CacheStore,
    EmbeddingProvider,
    LockStore,
    MessageSource,
    ResponseStore,
)

from .answer_generators import GeminiAnswerGenerator, LangGraphAnswerGenerator
from .local_embedding_provider import DEFAULT_LOCAL_MODEL, LocalEmbeddingProvider
from .ollama_embedding_provider import DEFAULT_OLLAMA_MODEL, OllamaEmbeddingProvider
from .redis_lock import RedisLockStore
from .redis_repository import RedisCacheRepository
from .redis_response_repository import RedisMessageRepository, RedisResponseRepository

__all__ = [
    "AnswerGenerator",
    "CacheStore",
    "EmbeddingProvider",
    "LockStore",
    "MessageSource",
    "ResponseStore",
    "GeminiAnswerGenerator",
    "LangGraphAnswerGenerator",
    "DEFAULT_LOCAL_MODEL",
    "DEFAULT_OLLAMA_MODEL",
    "LocalEmbeddingProvider",
    "OllamaEmbeddingProvider",
    "RedisCacheRepository",
    "RedisLockStore",
    "RedisMessageRepository",
    "RedisResponseRepository",
]
