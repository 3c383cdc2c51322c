"""Response DTOs for API endpoints."""

from datetime import datetime

from pydantic import BaseModel, Field


class CacheEntryResponse(BaseModel):
    """A cached question/answer pair (embedding omitted)."""

    cache_id: int = Field(..., description="Cache entry identifier")
    question: str = Field(..., description="The cached question")
    answer: str = Field(..., description="The cached answer")
    confidence_score: float = Field(..., description="Trust score (0-1)", ge=0.0, le=1.0)
    hit_count: int = Field(..., description="Times this entry answered a new question", ge=0)
    last_hit_at: datetime | None = Field(None, description="When the entry was last reused")
    original_response_id: int | None = Field(None, description="Generation record that seeded the entry")
    embedding_model: str = Field(..., description="Model that produced the stored vector")
    created_at: datetime = Field(..., description="When the entry was cached")


class CacheSearchResponse(BaseModel):
    """Response DTO for a similarity lookup."""

    question: str = Field(..., description="The original query")
    is_hit: bool = Field(..., description="Whether a cached answer passed every check")
    similarity: float | None = Field(
        None,
        description="Cosine similarity of the match (1 = identical)",
    )
    entry: CacheEntryResponse | None = Field(None, description="The matched entry")
    lookup_time_ms: float = Field(..., description="Time taken for the lookup in milliseconds")


class CacheStatsResponse(BaseModel):
    """Response DTO for cache statistics."""

    total_count: int = Field(..., description="Total number of cached entries", ge=0)
    total_hits: int = Field(..., description="Sum of hit counts", ge=0)
    hit_rate: float = Field(..., description="hits / (hits + entries) as a percentage", ge=0.0)
    avg_confidence: float = Field(..., description="Mean confidence score", ge=0.0, le=1.0)
    estimated_cost_savings: float = Field(..., description="Estimated generation cost saved (USD)", ge=0.0)
    similarity_threshold: float = Field(
        ...,
        description="Current similarity threshold",
        ge=0.0,
        le=1.0,
    )


class GenerationRecordResponse(BaseModel):
    """A generated answer and its review state."""

    response_id: int
    message_id: int
    student_id: int | None = None
    teacher_id: int | None = None
    recommended_answer: str
    final_answer: str | None = None
    status: str
    generated_at: datetime
    reviewed_at: datetime | None = None
    sent_at: datetime | None = None
    cache_id: int | None = None


class GenerationResponse(BaseModel):
    """Response DTO for a generate request."""

    kind: str = Field(..., description="existing, cache_hit, generated or fallback")
    record: GenerationRecordResponse


class WarmupResponse(BaseModel):
    total_processed: int
    success_count: int
    skip_count: int
    error_count: int
    success_rate: float


class ConfidenceUpdateResponse(BaseModel):
    total_count: int
    success_count: int
    error_count: int


class RebuildResponse(BaseModel):
    success: bool
    cache_count: int
    confidence_update_count: int
    duration_ms: float
    error_message: str | None = None


class CleanupResponse(BaseModel):
    deleted_count: int = Field(..., description="Number of entries removed", ge=0)
    min_confidence: float
    max_age_days: int


class HealthCheckResponse(BaseModel):
    """Response DTO for health check."""

    status: str = Field(..., description="Health status: 'healthy' or 'unhealthy'")
    cache_healthy: bool = Field(..., description="Whether the cache backend is reachable")
    embedding_healthy: bool | None = Field(
        None,
        description="Whether the embedding service is reachable",
    )
