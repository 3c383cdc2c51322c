"""At-most-once answer generation for inbound messages.

Per message the flow is:

    existing record? ──yes──> EXISTING
         │ no
    acquire lock ──contended──> wait for the holder's record ──> EXISTING | GenerationInProgress
         │ held
    double-check ──found──> EXISTING
         │
    intake form? ──yes──> GenerationSkipped
         │
    teacher assigned before the message?
         ├─ yes: similarity match ──hit──> CACHE_HIT
         │                        └─miss─> primary generator ──> GENERATED (+ cache write)
         └─ no:  fallback generator ──> FALLBACK

The lock is released on every exit path.

Reviews run under a separate per-message lock and only move a
PENDING_REVIEW record to SENT when no sibling record is SENT yet.
"""

import asyncio
import logging
import uuid
from dataclasses import replace
from typing import Any

from answer_cache.config import settings
from answer_cache.entities import (
    GenerationOutcome,
    GenerationRecordEntity,
    InboundMessageEntity,
    OutcomeKind,
    ResponseStatus,
)
from answer_cache.errors import (
    GenerationInProgress,
    GenerationSkipped,
    MessageNotFound,
    ResponseNotFound,
    ReviewConflict,
)
from answer_cache.protocols import AnswerGenerator, LockStore, MessageSource, ResponseStore
from answer_cache.repositories.redis_codec import utcnow

from .cache_service import CacheService
from .confidence_service import ConfidenceScorer

logger = logging.getLogger(__name__)

INTAKE_FORM_MAX_LENGTH = 200
INTAKE_FORM_MAX_LINES = 5
POLL_BACKOFF_FACTOR = 1.5
POLL_MAX_INTERVAL = 4.0


def is_intake_form(content: str | None) -> bool:
    """Long, multi-line or numbered-list messages are consultation forms."""
    if not content:
        return False
    too_long = len(content) > INTAKE_FORM_MAX_LENGTH or len(content.split("\n")) > INTAKE_FORM_MAX_LINES
    numbered = "1." in content and "2." in content and "3." in content
    return too_long or numbered


class GenerationOrchestrator:
    """Produces one reviewed-answer record per inbound message.

    Example:
        ```python
        orchestrator = GenerationOrchestrator.create(
            cache=cache_service,
            scorer=scorer,
            responses=RedisResponseRepository.create(),
            messages=RedisMessageRepository.create(),
            locks=RedisLockStore.create(),
            primary=LangGraphAnswerGenerator.create(),
            fallback=GeminiAnswerGenerator.create(),
        )
        outcome = await orchestrator.generate_response(42)
        print(outcome.kind, outcome.record.recommended_answer)
        ```
    """

    def __init__(
        self,
        cache: CacheService,
        scorer: ConfidenceScorer,
        responses: ResponseStore,
        messages: MessageSource,
        locks: LockStore,
        primary: AnswerGenerator,
        fallback: AnswerGenerator,
        key_prefix: str | None = None,
        lock_ttl: int | None = None,
        wait_timeout: float | None = None,
        poll_interval: float | None = None,
        default_confidence: float | None = None,
    ) -> None:
        self._cache = cache
        self._scorer = scorer
        self._responses = responses
        self._messages = messages
        self._locks = locks
        self._primary = primary
        self._fallback = fallback
        self._prefix = key_prefix or settings.key_prefix
        self._lock_ttl = lock_ttl or settings.lock_ttl
        self._wait_timeout = wait_timeout if wait_timeout is not None else settings.wait_timeout
        self._poll_interval = poll_interval or settings.poll_interval
        self._default_confidence = (
            default_confidence if default_confidence is not None else settings.default_confidence
        )

    @classmethod
    def create(
        cls,
        cache: CacheService,
        scorer: ConfidenceScorer,
        responses: ResponseStore,
        messages: MessageSource,
        locks: LockStore,
        primary: AnswerGenerator,
        fallback: AnswerGenerator,
    ) -> "GenerationOrchestrator":
        """Factory method to create GenerationOrchestrator with settings defaults."""
        return cls(
            cache=cache,
            scorer=scorer,
            responses=responses,
            messages=messages,
            locks=locks,
            primary=primary,
            fallback=fallback,
        )

    def lock_key(self, message_id: int) -> str:
        return f"{self._prefix}:generation_lock:{message_id}"

    async def generate_response(self, message_id: int) -> GenerationOutcome:
        """Return the record for `message_id`, generating it at most once.

        Raises:
            GenerationSkipped: The message is a structured intake form
            GenerationInProgress: Another worker is still generating after the wait bound
            MessageNotFound: The message does not exist
            UpstreamUnavailable: Embedding or generation failed
        """
        existing = self._responses.find_latest_by_message(message_id)
        if existing is not None:
            logger.info("Response already exists for messageId=%s", message_id)
            return GenerationOutcome(OutcomeKind.EXISTING, existing)

        key = self.lock_key(message_id)
        owner = uuid.uuid4().hex
        if not self._locks.acquire(key, owner, self._lock_ttl):
            logger.info("Generation lock held elsewhere, waiting: messageId=%s", message_id)
            return await self._wait_for_record(message_id)

        try:
            existing = self._responses.find_latest_by_message(message_id)
            if existing is not None:
                logger.info("Response created while acquiring lock: messageId=%s", message_id)
                return GenerationOutcome(OutcomeKind.EXISTING, existing)

            message = self._messages.get(message_id)
            if message is None:
                raise MessageNotFound(message_id)

            if is_intake_form(message.content):
                logger.info(
                    "Intake form detected, skipping generation: messageId=%s length=%d",
                    message_id,
                    len(message.content),
                )
                raise GenerationSkipped(message_id, "structured intake form")

            if message.is_after_assignment:
                return await self._answer_with_cache(message)
            return await self._answer_with_fallback(message)
        finally:
            if not self._locks.release(key, owner):
                logger.warning("Generation lock expired before release: messageId=%s", message_id)

    async def _wait_for_record(self, message_id: int) -> GenerationOutcome:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._wait_timeout
        interval = self._poll_interval

        while True:
            remaining = deadline - loop.time()
            if remaining <= 0:
                break
            await asyncio.sleep(min(interval, remaining))
            interval = min(interval * POLL_BACKOFF_FACTOR, POLL_MAX_INTERVAL)

            record = self._responses.find_latest_by_message(message_id)
            if record is not None:
                logger.info("Response produced by another worker: messageId=%s", message_id)
                return GenerationOutcome(OutcomeKind.EXISTING, record)

        logger.warning("Timed out waiting for generation: messageId=%s", message_id)
        raise GenerationInProgress(message_id)

    async def _answer_with_cache(self, message: InboundMessageEntity) -> GenerationOutcome:
        entry = await self._cache.find_similar_answer(message.content)
        if entry is not None:
            logger.info(
                "Cache hit, primary generator skipped: messageId=%s cacheId=%s",
                message.message_id,
                entry.cache_id,
            )
            record = self._insert(message, entry.answer, cache_id=entry.cache_id)
            return GenerationOutcome(OutcomeKind.CACHE_HIT, record)

        logger.info("Cache miss, calling %s: messageId=%s", self._primary.name, message.message_id)
        answer = await self._primary.generate(message.content, self._context(message))
        record = self._insert(message, answer)

        try:
            entry = await self._cache.save(
                message.content,
                answer,
                record.response_id,
                self._default_confidence,
            )
            record = self._responses.save(replace(record, cache_id=entry.cache_id))
        except Exception:
            logger.warning(
                "Cache write failed, response kept: responseId=%s",
                record.response_id,
                exc_info=True,
            )

        return GenerationOutcome(OutcomeKind.GENERATED, record)

    async def _answer_with_fallback(self, message: InboundMessageEntity) -> GenerationOutcome:
        logger.info("No assigned teacher for messageId=%s, calling %s", message.message_id, self._fallback.name)
        answer = await self._fallback.generate(message.content, self._context(message))
        record = self._insert(message, answer)
        return GenerationOutcome(OutcomeKind.FALLBACK, record)

    @staticmethod
    def _context(message: InboundMessageEntity) -> dict[str, Any]:
        return {
            "message_id": message.message_id,
            "student_id": message.student_id,
            "target_university": message.target_university,
        }

    def _insert(
        self,
        message: InboundMessageEntity,
        answer: str,
        cache_id: int | None = None,
    ) -> GenerationRecordEntity:
        record = self._responses.insert(
            message_id=message.message_id,
            student_id=message.student_id,
            teacher_id=message.assigned_teacher_id,
            recommended_answer=answer,
            status=ResponseStatus.PENDING_REVIEW,
            generated_at=utcnow(),
            cache_id=cache_id,
        )
        logger.info("Response saved: responseId=%s messageId=%s", record.response_id, message.message_id)
        return record

    def list_pending(self, teacher_id: int | None = None) -> list[GenerationRecordEntity]:
        """PENDING_REVIEW records, newest first, optionally for one teacher."""
        pending = self._responses.find_by_status(ResponseStatus.PENDING_REVIEW)
        if teacher_id is None:
            return pending
        return [record for record in pending if record.teacher_id == teacher_id]

    async def approve_and_send(self, response_id: int) -> GenerationRecordEntity:
        """Send the recommended answer as is.

        Raises:
            ResponseNotFound: If the record does not exist
            ReviewConflict: If the record is not awaiting review or its message was already answered
        """
        return await self._review(response_id, None)

    async def edit_and_send(self, response_id: int, edited_answer: str) -> GenerationRecordEntity:
        """Send a reviewer-edited answer and carry the edit into the cache.

        Raises:
            ResponseNotFound: If the record does not exist
            ReviewConflict: If the record is not awaiting review or its message was already answered
        """
        return await self._review(response_id, edited_answer)

    def review_lock_key(self, message_id: int) -> str:
        return f"{self._prefix}:review_lock:{message_id}"

    async def _review(self, response_id: int, edited_answer: str | None) -> GenerationRecordEntity:
        record = self._get_record(response_id)
        key = self.review_lock_key(record.message_id)
        owner = uuid.uuid4().hex
        if not self._locks.acquire(key, owner, self._lock_ttl):
            raise ReviewConflict(response_id, f"message {record.message_id} is being reviewed elsewhere")

        try:
            # Re-read under the lock; a concurrent review may have moved it
            record = self._get_record(response_id)
            if record.status != ResponseStatus.PENDING_REVIEW:
                raise ReviewConflict(response_id, f"status is {record.status.value}")
            if self._responses.find_by_message_and_status(record.message_id, ResponseStatus.SENT):
                raise ReviewConflict(response_id, f"message {record.message_id} already has a sent answer")

            final_answer = record.recommended_answer if edited_answer is None else edited_answer
            sent = self._mark_sent(record, final_answer)
        finally:
            if not self._locks.release(key, owner):
                logger.warning("Review lock expired before release: messageId=%s", record.message_id)

        edited = edited_answer is not None
        logger.info("Response %s %s and marked as SENT", sent.response_id, "edited" if edited else "approved")
        try:
            await self._push_confidence(sent, edited)
        except Exception:
            logger.warning("Cache update after review failed: responseId=%s", sent.response_id, exc_info=True)

        return sent

    def _get_record(self, response_id: int) -> GenerationRecordEntity:
        record = self._responses.get(response_id)
        if record is None:
            raise ResponseNotFound(response_id)
        return record

    def _mark_sent(self, record: GenerationRecordEntity, final_answer: str) -> GenerationRecordEntity:
        now = utcnow()
        return self._responses.save(
            replace(
                record,
                final_answer=final_answer,
                status=ResponseStatus.SENT,
                reviewed_at=now,
                sent_at=now,
            )
        )

    async def _push_confidence(self, record: GenerationRecordEntity, edited: bool) -> None:
        repository = self._cache.repository
        entry = repository.find_by_original_response_id(record.response_id)
        if entry is None:
            return

        score = self._scorer.score(record)
        repository.update_confidence(entry.cache_id, score)
        if edited and record.final_answer is not None:
            await self._cache.update_answer(entry.cache_id, record.final_answer)
        logger.info("Cache updated after review: responseId=%s confidence=%.3f", record.response_id, score)
