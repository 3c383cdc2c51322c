"""Confidence scoring for generated answers.

The score is advisory: it orders cache candidates and decides which entries
survive cleanup, so a scoring failure degrades to DEFAULT_SCORE instead of
failing the caller.

Weights:
- approval      40%  review outcome
- modification  30%  how much the reviewer changed the answer
- frequency     20%  how often the linked cache entry was reused
- quality       10%  length, structure, domain vocabulary, hedging
"""

import logging

from rapidfuzz.distance import Levenshtein

from answer_cache.entities import ConfidenceUpdateResult, GenerationRecordEntity, ResponseStatus
from answer_cache.keywords import DOMAIN_KEYWORDS, HEDGING_PHRASES, STRUCTURE_MARKERS, count_occurrences
from answer_cache.protocols import CacheStore, ResponseStore

logger = logging.getLogger(__name__)

DEFAULT_SCORE = 0.5

APPROVAL_WEIGHT = 0.4
MODIFICATION_WEIGHT = 0.3
FREQUENCY_WEIGHT = 0.2
QUALITY_WEIGHT = 0.1

APPROVAL_SCORES = {
    ResponseStatus.SENT: 1.0,
    ResponseStatus.APPROVED: 0.9,
    ResponseStatus.PENDING_REVIEW: 0.5,
    ResponseStatus.REJECTED: 0.1,
}

# (minimum hit count, score), checked top to bottom
FREQUENCY_BUCKETS = ((20, 1.0), (10, 0.8), (5, 0.6), (2, 0.4), (1, 0.3))
NEVER_HIT_SCORE = 0.2

MIN_MODIFICATION_SCORE = 0.3


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


class ConfidenceScorer:
    """Computes and pushes confidence scores for cache entries."""

    def __init__(self, repository: CacheStore, responses: ResponseStore) -> None:
        self._repository = repository
        self._responses = responses

    @classmethod
    def create(cls, repository: CacheStore, responses: ResponseStore) -> "ConfidenceScorer":
        return cls(repository=repository, responses=responses)

    def score(self, record: GenerationRecordEntity) -> float:
        """Weighted score in [0, 1]; DEFAULT_SCORE if anything goes wrong."""
        try:
            approval = self.approval_score(record)
            modification = self.modification_score(record)
            frequency = self.frequency_score(record)
            quality = self.quality_score(record.final_answer)

            total = _clamp(
                approval * APPROVAL_WEIGHT
                + modification * MODIFICATION_WEIGHT
                + frequency * FREQUENCY_WEIGHT
                + quality * QUALITY_WEIGHT
            )
        except Exception:
            logger.error("Confidence calculation failed: responseId=%s", record.response_id, exc_info=True)
            return DEFAULT_SCORE

        logger.debug(
            "Confidence for responseId=%s: approval=%.2f modification=%.2f frequency=%.2f quality=%.2f final=%.2f",
            record.response_id,
            approval,
            modification,
            frequency,
            quality,
            total,
        )
        return total

    @staticmethod
    def approval_score(record: GenerationRecordEntity) -> float:
        return APPROVAL_SCORES[record.status]

    @staticmethod
    def modification_score(record: GenerationRecordEntity) -> float:
        if record.final_answer is None:
            return 0.5
        if record.final_answer == record.recommended_answer:
            return 1.0
        similarity = Levenshtein.normalized_similarity(record.recommended_answer, record.final_answer)
        return _clamp(max(MIN_MODIFICATION_SCORE, similarity))

    def frequency_score(self, record: GenerationRecordEntity) -> float:
        try:
            entry = self._repository.find_by_original_response_id(record.response_id)
        except Exception:
            logger.warning("Frequency score lookup failed: responseId=%s", record.response_id, exc_info=True)
            return 0.5
        if entry is None:
            return 0.5

        for min_hits, value in FREQUENCY_BUCKETS:
            if entry.hit_count >= min_hits:
                return value
        return NEVER_HIT_SCORE

    @staticmethod
    def quality_score(answer: str | None) -> float:
        if not answer:
            return 0.0

        score = 0.5
        length = len(answer)
        if 100 <= length <= 1000:
            score += 0.2
        elif 50 <= length < 100:
            score += 0.1
        elif length > 1000:
            score -= 0.1

        if any(marker in answer for marker in STRUCTURE_MARKERS):
            score += 0.1
        if count_occurrences(answer, DOMAIN_KEYWORDS) >= 3:
            score += 0.1
        if any(phrase in answer for phrase in HEDGING_PHRASES):
            score -= 0.1

        return _clamp(score)

    def update_entry_confidence(self, cache_id: int) -> float | None:
        """Recompute an entry's score from its originating record and store it.

        Returns:
            The new score, or None when the entry or its record is missing
        """
        entry = self._repository.get(cache_id)
        if entry is None:
            logger.warning("Cache entry not found: cacheId=%s", cache_id)
            return None
        if entry.original_response_id is None:
            logger.warning("Cache entry has no originating response: cacheId=%s", cache_id)
            return None

        record = self._responses.get(entry.original_response_id)
        if record is None:
            logger.warning("Originating response not found: responseId=%s", entry.original_response_id)
            return None

        new_score = self.score(record)
        self._repository.update_confidence(cache_id, new_score)
        logger.info("Updated cache confidence: cacheId=%s newScore=%.3f", cache_id, new_score)
        return new_score

    def recalculate_all(self) -> ConfidenceUpdateResult:
        """Recompute every entry's score. Failures are counted, not raised."""
        logger.info("Recalculating confidence for all cache entries")
        entries = self._repository.find_all()

        success = 0
        errors = 0
        for entry in entries:
            try:
                self.update_entry_confidence(entry.cache_id)
                success += 1
            except Exception:
                errors += 1
                logger.error("Confidence recalculation failed: cacheId=%s", entry.cache_id, exc_info=True)

        result = ConfidenceUpdateResult(total_count=len(entries), success_count=success, error_count=errors)
        logger.info(
            "Confidence recalculation done: total=%d success=%d errors=%d",
            result.total_count,
            result.success_count,
            result.error_count,
        )
        return result
