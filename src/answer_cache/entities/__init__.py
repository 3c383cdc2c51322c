"""Domain entities for internal representation.

These are pure dataclasses (frozen) used internally by services
and repositories. They are NOT used for API contracts - use DTOs
from the dto package for that.
"""

from .cache_entry import CacheEntryEntity
from .cache_match import CacheMatchEntity
from .generation_record import GenerationRecordEntity, ResponseStatus
from .message import InboundMessageEntity
from .outcome import GenerationOutcome, OutcomeKind
from .results import (
    BatchResult,
    CacheStatisticsEntity,
    ConfidenceUpdateResult,
    RebuildResult,
    WarmupResult,
)

__all__ = [
    "CacheEntryEntity",
    "CacheMatchEntity",
    "GenerationRecordEntity",
    "ResponseStatus",
    "InboundMessageEntity",
    "GenerationOutcome",
    "OutcomeKind",
    "CacheStatisticsEntity",
    "WarmupResult",
    "ConfidenceUpdateResult",
    "RebuildResult",
    "BatchResult",
]
