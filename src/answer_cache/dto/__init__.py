"""Data Transfer Objects for API contracts.

These Pydantic models define the external API contract.
They are used for request/response validation and serialization.

Internal domain logic should use entities from the entities package.
"""

from .requests import EditResponseRequest, SearchCacheRequest, StoreCacheRequest, UpdateAnswerRequest
from .responses import (
    CacheEntryResponse,
    CacheSearchResponse,
    CacheStatsResponse,
    CleanupResponse,
    ConfidenceUpdateResponse,
    GenerationRecordResponse,
    GenerationResponse,
    HealthCheckResponse,
    RebuildResponse,
    WarmupResponse,
)

__all__ = [
    "SearchCacheRequest",
    "StoreCacheRequest",
    "UpdateAnswerRequest",
    "EditResponseRequest",
    "CacheEntryResponse",
    "CacheSearchResponse",
    "CacheStatsResponse",
    "CleanupResponse",
    "ConfidenceUpdateResponse",
    "GenerationRecordResponse",
    "GenerationResponse",
    "HealthCheckResponse",
    "RebuildResponse",
    "WarmupResponse",
]
