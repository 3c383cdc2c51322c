"""
Shared fixtures: in-memory stores and a deterministic embedding provider.

The in-memory classes satisfy the protocols structurally, the same way the
Redis repositories do, so services are exercised without Redis or Ollama.
"""

import asyncio
import itertools
import math
from dataclasses import replace
from datetime import datetime, timedelta

import pytest

from answer_cache.entities import (
    CacheEntryEntity,
    GenerationRecordEntity,
    InboundMessageEntity,
    ResponseStatus,
)
from answer_cache.errors import UpstreamUnavailable
from answer_cache.keywords import normalize_text
from answer_cache.repositories.redis_codec import utcnow
from answer_cache.services import (
    BackgroundTasks,
    CacheService,
    ConfidenceScorer,
    GenerationOrchestrator,
    MaintenanceService,
    WarmupService,
)

DIMENSION = 64
TEST_MODEL = "test-embedding"


def unit_vector(index: int) -> list[float]:
    vector = [0.0] * DIMENSION
    vector[index] = 1.0
    return vector


def vector_with_similarity(similarity: float) -> list[float]:
    """A unit vector whose cosine with unit_vector(0) is `similarity`."""
    vector = [0.0] * DIMENSION
    vector[0] = similarity
    vector[1] = math.sqrt(max(0.0, 1.0 - similarity**2))
    return vector


class InMemoryCacheStore:
    def __init__(self) -> None:
        self.entries: dict[int, CacheEntryEntity] = {}
        self.stats: dict[str, int] = {}
        self._ids = itertools.count(1)

    def store(
        self,
        question,
        answer,
        embedding,
        embedding_model,
        confidence_score,
        original_response_id,
        cache_key,
    ):
        if original_response_id is not None:
            existing = self.find_by_original_response_id(original_response_id)
            if existing is not None:
                return existing
        entry = CacheEntryEntity(
            cache_id=next(self._ids),
            question=question,
            answer=answer,
            embedding=list(embedding),
            embedding_model=embedding_model,
            confidence_score=confidence_score,
            hit_count=0,
            last_hit_at=None,
            original_response_id=original_response_id,
            cache_key=cache_key,
            created_at=utcnow(),
        )
        self.entries[entry.cache_id] = entry
        return entry

    def get(self, cache_id):
        return self.entries.get(cache_id)

    def find_by_original_response_id(self, response_id):
        for entry in self.entries.values():
            if entry.original_response_id == response_id:
                return entry
        return None

    def find_candidates(self, min_confidence, limit):
        candidates = [e for e in self.entries.values() if e.confidence_score >= min_confidence]
        candidates.sort(key=lambda e: (e.confidence_score, e.hit_count), reverse=True)
        return candidates[:limit]

    def find_all(self):
        return list(self.entries.values())

    def increment_hit(self, cache_id):
        entry = self.entries.get(cache_id)
        if entry is not None:
            self.entries[cache_id] = replace(entry, hit_count=entry.hit_count + 1, last_hit_at=utcnow())

    def update_answer(self, cache_id, answer):
        entry = self.entries.get(cache_id)
        if entry is None:
            return None
        self.entries[cache_id] = replace(entry, answer=answer)
        return self.entries[cache_id]

    def update_confidence(self, cache_id, confidence_score):
        entry = self.entries.get(cache_id)
        if entry is not None:
            self.entries[cache_id] = replace(entry, confidence_score=confidence_score)

    def delete(self, cache_id):
        return self.entries.pop(cache_id, None) is not None

    def get_statistics(self):
        if not self.entries:
            return 0, 0, 0.0
        entries = list(self.entries.values())
        avg = sum(e.confidence_score for e in entries) / len(entries)
        return len(entries), sum(e.hit_count for e in entries), avg

    def record_stats(self, total_count, updated_at_ms):
        self.stats = {"total_caches": total_count, "last_updated": updated_at_ms}

    def health_check(self):
        return True

    # Test helpers

    def seed(self, question, answer, embedding, confidence=0.9, hit_count=0, original_response_id=None):
        entry = self.store(question, answer, embedding, TEST_MODEL, confidence, original_response_id, "seed")
        if hit_count:
            entry = replace(entry, hit_count=hit_count)
            self.entries[entry.cache_id] = entry
        return entry

    def backdate(self, cache_id, days):
        entry = self.entries[cache_id]
        self.entries[cache_id] = replace(entry, created_at=entry.created_at - timedelta(days=days))


class InMemoryResponseStore:
    def __init__(self) -> None:
        self.records: dict[int, GenerationRecordEntity] = {}
        self._ids = itertools.count(1)

    def insert(
        self,
        message_id,
        student_id,
        teacher_id,
        recommended_answer,
        status,
        generated_at,
        cache_id=None,
    ):
        record = GenerationRecordEntity(
            response_id=next(self._ids),
            message_id=message_id,
            student_id=student_id,
            teacher_id=teacher_id,
            recommended_answer=recommended_answer,
            status=status,
            generated_at=generated_at,
            cache_id=cache_id,
        )
        self.records[record.response_id] = record
        return record

    def get(self, response_id):
        return self.records.get(response_id)

    def save(self, record):
        self.records[record.response_id] = record
        return record

    def find_latest_by_message(self, message_id):
        matching = [r for r in self.records.values() if r.message_id == message_id]
        if not matching:
            return None
        return max(matching, key=lambda r: (r.generated_at, r.response_id))

    def find_by_message_and_status(self, message_id, status):
        return [r for r in self.records.values() if r.message_id == message_id and r.status == status]

    def find_by_status(self, status, offset=0, limit=None):
        matching = sorted(
            (r for r in self.records.values() if r.status == status),
            key=lambda r: (r.generated_at, r.response_id),
            reverse=True,
        )
        end = None if limit is None else offset + limit
        return matching[offset:end]

    # Test helpers

    def add_sent(self, message_id, recommended, final, generated_at=None):
        record = self.insert(
            message_id=message_id,
            student_id=1,
            teacher_id=1,
            recommended_answer=recommended,
            status=ResponseStatus.SENT,
            generated_at=generated_at or utcnow(),
        )
        return self.save(replace(record, final_answer=final, reviewed_at=utcnow(), sent_at=utcnow()))


class InMemoryMessageSource:
    def __init__(self) -> None:
        self.messages: dict[int, InboundMessageEntity] = {}

    def add(self, message):
        self.messages[message.message_id] = message
        return message

    def get(self, message_id):
        return self.messages.get(message_id)

    def find_since(self, since):
        return sorted(
            (m for m in self.messages.values() if m.sent_at >= since),
            key=lambda m: m.sent_at,
        )


class InMemoryLockStore:
    def __init__(self) -> None:
        self.locks: dict[str, str] = {}

    def acquire(self, key, owner, ttl):
        if key in self.locks:
            return False
        self.locks[key] = owner
        return True

    def release(self, key, owner):
        if self.locks.get(key) != owner:
            return False
        del self.locks[key]
        return True


class FakeEmbeddingProvider:
    """Returns registered vectors; unseen texts get a fresh orthogonal vector."""

    def __init__(self, model_name: str = TEST_MODEL) -> None:
        self._model_name = model_name
        self._vectors: dict[str, list[float]] = {}
        self._next_index = 0
        self.calls: list[str] = []
        self.fail = False

    def set(self, text: str, vector: list[float]) -> None:
        self._vectors[normalize_text(text)] = vector

    @property
    def dimension(self) -> int:
        return DIMENSION

    @property
    def model_name(self) -> str:
        return self._model_name

    async def encode(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.fail:
            raise UpstreamUnavailable("embedding", "offline")
        key = normalize_text(text)
        if key not in self._vectors:
            self._vectors[key] = unit_vector(2 + self._next_index % (DIMENSION - 2))
            self._next_index += 1
        return self._vectors[key]

    async def is_available(self) -> bool:
        return not self.fail


class FakeGenerator:
    def __init__(self, name: str, answer: str, delay: float = 0.0) -> None:
        self._name = name
        self.answer = answer
        self.delay = delay
        self.error: Exception | None = None
        self.calls: list[str] = []

    @property
    def name(self) -> str:
        return self._name

    async def generate(self, question, context):
        self.calls.append(question)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.answer


PRIMARY_ANSWER = "편입 필기시험은 보통 12월 말에서 1월 사이에 치러집니다. 모집요강을 확인하세요."
FALLBACK_ANSWER = "담당 선생님이 배정되면 자세히 안내해 드릴게요. 잠시만 기다려 주세요."


def make_message(
    message_id: int,
    content: str,
    assigned: bool = True,
    sent_at: datetime | None = None,
    sender_type: str = "student",
) -> InboundMessageEntity:
    sent_at = sent_at or utcnow()
    return InboundMessageEntity(
        message_id=message_id,
        student_id=100 + message_id,
        content=content,
        sender_type=sender_type,
        sent_at=sent_at,
        assigned_teacher_id=7 if assigned else None,
        teacher_assigned_at=sent_at - timedelta(days=1) if assigned else None,
        target_university="한양대",
    )


@pytest.fixture
def cache_store():
    return InMemoryCacheStore()


@pytest.fixture
def response_store():
    return InMemoryResponseStore()


@pytest.fixture
def message_source():
    return InMemoryMessageSource()


@pytest.fixture
def lock_store():
    return InMemoryLockStore()


@pytest.fixture
def embedder():
    return FakeEmbeddingProvider()


@pytest.fixture
def background():
    return BackgroundTasks()


@pytest.fixture
def cache_service(cache_store, response_store, embedder, background):
    return CacheService(
        repository=cache_store,
        responses=response_store,
        embedding_provider=embedder,
        background=background,
        similarity_threshold=0.85,
    )


@pytest.fixture
def scorer(cache_store, response_store):
    return ConfidenceScorer(cache_store, response_store)


@pytest.fixture
def primary():
    return FakeGenerator("primary-generator", PRIMARY_ANSWER)


@pytest.fixture
def fallback():
    return FakeGenerator("fallback-generator", FALLBACK_ANSWER)


@pytest.fixture
def orchestrator(cache_service, scorer, response_store, message_source, lock_store, primary, fallback):
    return GenerationOrchestrator(
        cache=cache_service,
        scorer=scorer,
        responses=response_store,
        messages=message_source,
        locks=lock_store,
        primary=primary,
        fallback=fallback,
        key_prefix="test",
        lock_ttl=600,
        wait_timeout=0.2,
        poll_interval=0.01,
        default_confidence=0.5,
    )


@pytest.fixture
def warmup(cache_service, response_store, message_source):
    return WarmupService(cache_service, response_store, message_source)


@pytest.fixture
def maintenance(cache_service, scorer, warmup, orchestrator, response_store, message_source, lock_store):
    return MaintenanceService(
        cache=cache_service,
        scorer=scorer,
        warmup=warmup,
        orchestrator=orchestrator,
        responses=response_store,
        messages=message_source,
        locks=lock_store,
        key_prefix="test",
        lookback_minutes=30,
    )
