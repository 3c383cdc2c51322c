"""Maintenance and batch entry points.

There is no embedded scheduler: an external timer (cron, Kubernetes
CronJob, a task queue beat) calls these methods.

Suggested cadence:
- process_pending_messages: every 90 seconds
- monitor_health: hourly
- daily_build: daily, off-peak
- weekly_cleanup: weekly
- initialize_cache: once at startup
"""

import logging
import time
import uuid
from datetime import timedelta

from answer_cache.config import settings
from answer_cache.entities import BatchResult, ConfidenceUpdateResult, RebuildResult, WarmupResult
from answer_cache.errors import GenerationInProgress, GenerationSkipped
from answer_cache.protocols import LockStore, MessageSource, ResponseStore
from answer_cache.repositories.redis_codec import utcnow

from .cache_service import CacheService
from .confidence_service import ConfidenceScorer
from .generation_service import GenerationOrchestrator
from .warmup_service import WarmupService

logger = logging.getLogger(__name__)

INITIAL_WARMUP_DAYS = 7
DAILY_WARMUP_DAYS = 1
WEEKLY_CLEANUP_MIN_CONFIDENCE = 0.6
WEEKLY_CLEANUP_MAX_AGE_DAYS = 30
REBUILD_CLEANUP_MIN_CONFIDENCE = 0.3
REBUILD_CLEANUP_MAX_AGE_DAYS = 7
LOW_HIT_RATE_PERCENT = 30.0
LOW_HIT_RATE_MIN_ENTRIES = 10
MAX_HEALTHY_ENTRIES = 10_000
SCHEDULER_LOCK_TTL = 600
STUDENT_SENDER = "student"


class MaintenanceService:
    """Periodic cache upkeep and the pending-message sweep."""

    def __init__(
        self,
        cache: CacheService,
        scorer: ConfidenceScorer,
        warmup: WarmupService,
        orchestrator: GenerationOrchestrator,
        responses: ResponseStore,
        messages: MessageSource,
        locks: LockStore,
        key_prefix: str | None = None,
        lookback_minutes: int | None = None,
    ) -> None:
        self._cache = cache
        self._scorer = scorer
        self._warmup = warmup
        self._orchestrator = orchestrator
        self._responses = responses
        self._messages = messages
        self._locks = locks
        self._prefix = key_prefix or settings.key_prefix
        self._lookback = lookback_minutes or settings.batch_lookback_minutes

    @property
    def scheduler_lock_key(self) -> str:
        return f"{self._prefix}:scheduler_lock"

    async def initialize_cache(self) -> WarmupResult:
        logger.info("Initializing cache from the last %d days of sent responses", INITIAL_WARMUP_DAYS)
        return await self._warmup.warmup_recent(INITIAL_WARMUP_DAYS)

    async def daily_build(self) -> tuple[WarmupResult, ConfidenceUpdateResult]:
        """Warm up from yesterday's sent responses, then rescore everything."""
        warmup = await self._warmup.warmup_recent(DAILY_WARMUP_DAYS)
        confidence = self._scorer.recalculate_all()

        stats = self._cache.get_statistics()
        logger.info(
            "Cache statistics: entries=%d hits=%d hitRate=%.1f%% savings=$%.2f",
            stats.total_count,
            stats.total_hits,
            stats.hit_rate,
            stats.estimated_cost_savings,
        )
        return warmup, confidence

    def weekly_cleanup(self) -> int:
        deleted = self._cache.cleanup(WEEKLY_CLEANUP_MIN_CONFIDENCE, WEEKLY_CLEANUP_MAX_AGE_DAYS)
        stats = self._cache.get_statistics()
        logger.info(
            "Cache after cleanup: entries=%d avgConfidence=%.3f",
            stats.total_count,
            stats.avg_confidence,
        )
        return deleted

    def monitor_health(self) -> list[str]:
        """Log and return warnings about hit rate and cache size."""
        stats = self._cache.get_statistics()
        warnings = []

        if stats.hit_rate < LOW_HIT_RATE_PERCENT and stats.total_count > LOW_HIT_RATE_MIN_ENTRIES:
            warnings.append(f"Low cache hit rate: {stats.hit_rate:.1f}% ({stats.total_count} entries)")
        if stats.total_count > MAX_HEALTHY_ENTRIES:
            warnings.append(f"Cache holds {stats.total_count} entries, consider a cleanup")

        for warning in warnings:
            logger.warning(warning)
        logger.debug("Cache health: entries=%d hitRate=%.1f%%", stats.total_count, stats.hit_rate)
        return warnings

    async def rebuild_all(self) -> RebuildResult:
        """Drop weak entries, re-seed from every sent response, rescore."""
        logger.info("Full cache rebuild started")
        start = time.perf_counter()
        try:
            self._cache.cleanup(REBUILD_CLEANUP_MIN_CONFIDENCE, REBUILD_CLEANUP_MAX_AGE_DAYS)
            warmup = await self._warmup.warmup_from_approved()
            confidence = self._scorer.recalculate_all()
        except Exception as e:
            duration_ms = (time.perf_counter() - start) * 1000
            logger.error("Full cache rebuild failed after %.0fms", duration_ms, exc_info=True)
            return RebuildResult(
                success=False,
                cache_count=0,
                confidence_update_count=0,
                duration_ms=duration_ms,
                error_message=str(e),
            )

        result = RebuildResult(
            success=True,
            cache_count=warmup.success_count,
            confidence_update_count=confidence.success_count,
            duration_ms=(time.perf_counter() - start) * 1000,
        )
        logger.info(
            "Full cache rebuild done: cached=%d rescored=%d in %.0fms",
            result.cache_count,
            result.confidence_update_count,
            result.duration_ms,
        )
        return result

    async def process_pending_messages(self) -> BatchResult:
        """Generate answers for recent student messages that have none.

        Only one sweep runs at a time across workers; a sweep that cannot
        take the scheduler lock returns immediately with lock_acquired=False.
        """
        owner = uuid.uuid4().hex
        if not self._locks.acquire(self.scheduler_lock_key, owner, SCHEDULER_LOCK_TTL):
            logger.warning("Batch sweep already running elsewhere, skipping")
            return BatchResult(lock_acquired=False)

        try:
            return await self._sweep()
        finally:
            self._locks.release(self.scheduler_lock_key, owner)

    async def _sweep(self) -> BatchResult:
        since = utcnow() - timedelta(minutes=self._lookback)
        pending = sorted(
            (
                message
                for message in self._messages.find_since(since)
                if message.sender_type == STUDENT_SENDER
                and self._responses.find_latest_by_message(message.message_id) is None
            ),
            key=lambda message: message.sent_at,
        )
        if not pending:
            logger.info("No pending messages in the last %d minutes", self._lookback)
            return BatchResult()

        logger.info("Processing %d pending message(s)", len(pending))
        processed = skipped = in_progress = failed = 0
        for message in pending:
            try:
                await self._orchestrator.generate_response(message.message_id)
                processed += 1
            except GenerationSkipped:
                skipped += 1
                logger.info("Skipped intake form: messageId=%s", message.message_id)
            except GenerationInProgress:
                in_progress += 1
            except Exception:
                failed += 1
                logger.error("Message processing failed: messageId=%s", message.message_id, exc_info=True)

        result = BatchResult(processed=processed, skipped=skipped, in_progress=in_progress, failed=failed)
        logger.info(
            "Batch sweep done: processed=%d skipped=%d inProgress=%d failed=%d",
            processed,
            skipped,
            in_progress,
            failed,
        )
        return result
