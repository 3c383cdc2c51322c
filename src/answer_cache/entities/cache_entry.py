"""Cache entry domain entity."""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class CacheEntryEntity:
    """Domain entity for a cached question/answer pair.

    This is an internal representation used by services and repositories.
    For API contracts, use the DTO classes from the dto package.

    Attributes:
        cache_id: Identifier assigned by the store on write
        question: The original student question
        answer: The cached answer (may be corrected later)
        embedding: The embedding vector for the question
        embedding_model: Model tag; vectors from different models are never compared
        confidence_score: Trust score in [0, 1]
        hit_count: Number of times this entry answered a new question
        last_hit_at: When the entry was last reused
        original_response_id: Generation record that seeded this entry
        cache_key: Informational key (question hash + write time)
        created_at: When this entry was created
    """

    cache_id: int
    question: str
    answer: str
    embedding: list[float] = field(repr=False)
    embedding_model: str
    confidence_score: float
    hit_count: int
    last_hit_at: datetime | None
    original_response_id: int | None
    cache_key: str
    created_at: datetime
