"""Protocol interfaces for swappable implementations.

This package contains protocol definitions using structural typing.
Protocols enable:
- Easy swapping of implementations (Redis -> PostgreSQL, Ollama -> local, etc.)
- Unit testing with in-memory implementations
- Clear separation of concerns
"""

from .answer_generator import AnswerGenerator
from .cache_store import CacheStore
from .embedding_provider import EmbeddingProvider
from .lock_store import LockStore
from .response_store import MessageSource, ResponseStore

__all__ = [
    "AnswerGenerator",
    "CacheStore",
    "EmbeddingProvider",
    "LockStore",
    "MessageSource",
    "ResponseStore",
]
