"""Seed the cache from answers reviewers already sent."""

import logging
from collections import Counter
from collections.abc import Iterable
from datetime import timedelta

from answer_cache.entities import GenerationRecordEntity, ResponseStatus, WarmupResult
from answer_cache.protocols import MessageSource, ResponseStore
from answer_cache.repositories.redis_codec import utcnow

from .cache_service import CacheService

logger = logging.getLogger(__name__)

WARMUP_BATCH_SIZE = 50
APPROVED_BASE_CONFIDENCE = 0.8


def seed_confidence(record: GenerationRecordEntity) -> float:
    """Starting score for a sent answer; refined later by the confidence sweep."""
    score = APPROVED_BASE_CONFIDENCE
    if record.recommended_answer == record.final_answer:
        score += 0.1
    if record.final_answer is not None and 50 < len(record.final_answer) < 1000:
        score += 0.05
    return min(1.0, score)


class WarmupService:
    def __init__(self, cache: CacheService, responses: ResponseStore, messages: MessageSource) -> None:
        self._cache = cache
        self._responses = responses
        self._messages = messages

    @classmethod
    def create(cls, cache: CacheService, responses: ResponseStore, messages: MessageSource) -> "WarmupService":
        return cls(cache=cache, responses=responses, messages=messages)

    async def warmup_from_approved(self) -> WarmupResult:
        """Cache every SENT record that is not cached yet, in pages of WARMUP_BATCH_SIZE."""
        logger.info("Cache warm-up from sent responses started")
        counts: Counter[str] = Counter()
        offset = 0

        while True:
            page = self._responses.find_by_status(ResponseStatus.SENT, offset=offset, limit=WARMUP_BATCH_SIZE)
            if not page:
                break
            logger.info("Warm-up batch at offset %d (%d records)", offset, len(page))
            await self._warm(page, counts)
            offset += len(page)

        return self._finish(counts, "Cache warm-up done")

    async def warmup_recent(self, days: int) -> WarmupResult:
        """Cache SENT records generated within the last `days` days."""
        logger.info("Cache warm-up from the last %d day(s) started", days)
        cutoff = utcnow() - timedelta(days=days)
        recent = [
            record
            for record in self._responses.find_by_status(ResponseStatus.SENT)
            if record.generated_at > cutoff
        ]

        counts: Counter[str] = Counter()
        await self._warm(recent, counts)
        return self._finish(counts, "Recent cache warm-up done")

    async def _warm(self, records: Iterable[GenerationRecordEntity], counts: Counter) -> None:
        for record in records:
            counts["total"] += 1
            try:
                counts[await self._warm_one(record)] += 1
            except Exception:
                counts["error"] += 1
                logger.error("Warm-up failed: responseId=%s", record.response_id, exc_info=True)

    async def _warm_one(self, record: GenerationRecordEntity) -> str:
        if self._cache.repository.find_by_original_response_id(record.response_id) is not None:
            logger.debug("Already cached: responseId=%s", record.response_id)
            return "skip"

        message = self._messages.get(record.message_id)
        if message is None:
            logger.warning("Message not found: messageId=%s", record.message_id)
            return "error"

        if not record.final_answer or not record.final_answer.strip():
            logger.warning("Empty final answer, not cached: responseId=%s", record.response_id)
            return "error"

        confidence = seed_confidence(record)
        await self._cache.save(message.content, record.final_answer, record.response_id, confidence)
        logger.debug("Warmed responseId=%s confidence=%.2f", record.response_id, confidence)
        return "success"

    @staticmethod
    def _finish(counts: Counter, label: str) -> WarmupResult:
        result = WarmupResult(
            total_processed=counts["total"],
            success_count=counts["success"],
            skip_count=counts["skip"],
            error_count=counts["error"],
        )
        logger.info(
            "%s: total=%d success=%d skipped=%d errors=%d (%.1f%%)",
            label,
            result.total_processed,
            result.success_count,
            result.skip_count,
            result.error_count,
            result.success_rate,
        )
        return result
