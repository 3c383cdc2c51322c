"""Summaries returned by statistics and maintenance operations."""

from dataclasses import dataclass


@dataclass(frozen=True)
class CacheStatisticsEntity:
    total_count: int
    total_hits: int
    hit_rate: float
    avg_confidence: float
    estimated_cost_savings: float
    similarity_threshold: float


@dataclass(frozen=True)
class WarmupResult:
    total_processed: int = 0
    success_count: int = 0
    skip_count: int = 0
    error_count: int = 0

    @property
    def success_rate(self) -> float:
        if self.total_processed == 0:
            return 0.0
        return self.success_count * 100.0 / self.total_processed


@dataclass(frozen=True)
class ConfidenceUpdateResult:
    total_count: int = 0
    success_count: int = 0
    error_count: int = 0


@dataclass(frozen=True)
class RebuildResult:
    success: bool
    cache_count: int
    confidence_update_count: int
    duration_ms: float
    error_message: str | None = None


@dataclass(frozen=True)
class BatchResult:
    processed: int = 0
    skipped: int = 0
    in_progress: int = 0
    failed: int = 0
    lock_acquired: bool = True
