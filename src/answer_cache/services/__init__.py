"""Service layer for business logic.

This layer contains the core business logic and orchestration.
Services depend on protocols (interfaces), not concrete implementations,
making them testable and flexible.

Architecture:
    Handler -> Service -> Repository
    (HTTP)  -> (Business) -> (Data Access)

Usage:
    ```python
    from answer_cache.services import CacheService, GenerationOrchestrator

    cache = CacheService.create(
        repository=repo,
        responses=responses,
        embedding_provider=provider,
    )
    orchestrator = GenerationOrchestrator.create(
        cache=cache,
        scorer=ConfidenceScorer.create(repo, responses),
        responses=responses,
        messages=messages,
        locks=locks,
        primary=primary,
        fallback=fallback,
    )
    ```
"""

from .background import BackgroundTasks
from .cache_service import CacheService
from .confidence_service import ConfidenceScorer
from .generation_service import GenerationOrchestrator, is_intake_form
from .maintenance_service import MaintenanceService
from .similarity_matcher import SimilarityMatcher
from .warmup_service import WarmupService, seed_confidence

__all__ = [
    "BackgroundTasks",
    "CacheService",
    "ConfidenceScorer",
    "GenerationOrchestrator",
    "MaintenanceService",
    "SimilarityMatcher",
    "WarmupService",
    "is_intake_form",
    "seed_confidence",
]
