"""
Tests for warm-up, maintenance jobs and the pending-message sweep.
"""

from datetime import timedelta

import pytest

from answer_cache.entities import GenerationRecordEntity, ResponseStatus
from answer_cache.errors import UpstreamUnavailable
from answer_cache.repositories.redis_codec import utcnow
from answer_cache.services import seed_confidence
from conftest import make_message, unit_vector

LONG_ANSWER = "편입 영어는 어휘, 문법, 독해 순서로 준비하는 것이 일반적이며 하루 두 시간 이상 꾸준히 공부하는 것을 권합니다."


@pytest.fixture(autouse=True)
async def drain_background(background):
    yield
    await background.drain()


def sent_record(recommended, final) -> GenerationRecordEntity:
    return GenerationRecordEntity(
        response_id=1,
        message_id=1,
        student_id=1,
        teacher_id=1,
        recommended_answer=recommended,
        status=ResponseStatus.SENT,
        generated_at=utcnow(),
        final_answer=final,
    )


async def test_seed_confidence():
    assert seed_confidence(sent_record(LONG_ANSWER, LONG_ANSWER)) == pytest.approx(0.95)
    assert seed_confidence(sent_record(LONG_ANSWER, "짧게 고친 답변")) == pytest.approx(0.8)
    assert seed_confidence(sent_record("짧은 답변", "짧은 답변")) == pytest.approx(0.9)
    assert seed_confidence(sent_record(LONG_ANSWER, None)) == pytest.approx(0.8)


async def test_warmup_recent_only_takes_window(warmup, response_store, message_source, cache_store):
    message_source.add(make_message(1, "편입 영어 공부 순서가 궁금해요"))
    message_source.add(make_message(2, "편입 수학 공부 순서가 궁금해요"))
    recent = response_store.add_sent(1, LONG_ANSWER, LONG_ANSWER)
    response_store.add_sent(2, LONG_ANSWER, LONG_ANSWER, generated_at=utcnow() - timedelta(days=3))

    result = await warmup.warmup_recent(days=1)

    assert result.total_processed == 1
    assert result.success_count == 1
    assert result.success_rate == 100.0
    entry = cache_store.find_by_original_response_id(recent.response_id)
    assert entry.question == "편입 영어 공부 순서가 궁금해요"
    assert entry.answer == LONG_ANSWER
    assert entry.confidence_score == pytest.approx(0.95)


async def test_warmup_counts_skips_and_errors(warmup, response_store, message_source, cache_store):
    message_source.add(make_message(1, "이미 캐시된 질문"))
    message_source.add(make_message(3, "답변이 비어 있는 질문"))
    cached = response_store.add_sent(1, LONG_ANSWER, LONG_ANSWER)
    cache_store.seed("이미 캐시된 질문", LONG_ANSWER, unit_vector(0), original_response_id=cached.response_id)
    response_store.add_sent(2, LONG_ANSWER, LONG_ANSWER)  # message missing
    response_store.add_sent(3, LONG_ANSWER, "   ")

    result = await warmup.warmup_from_approved()

    assert result.total_processed == 3
    assert result.success_count == 0
    assert result.skip_count == 1
    assert result.error_count == 2
    assert len(cache_store.entries) == 1


async def test_warmup_from_approved_pages_through_everything(warmup, response_store, message_source, cache_store):
    for message_id in range(1, 121):
        message_source.add(make_message(message_id, f"질문 번호 {message_id}"))
        response_store.add_sent(message_id, LONG_ANSWER, LONG_ANSWER)

    result = await warmup.warmup_from_approved()

    assert result.total_processed == 120
    assert result.success_count == 120
    assert len(cache_store.entries) == 120

    again = await warmup.warmup_from_approved()
    assert again.skip_count == 120
    assert again.success_count == 0


async def test_initialize_cache_uses_seven_days(maintenance, response_store, message_source, cache_store):
    message_source.add(make_message(1, "최근 질문"))
    message_source.add(make_message(2, "오래된 질문"))
    response_store.add_sent(1, LONG_ANSWER, LONG_ANSWER, generated_at=utcnow() - timedelta(days=5))
    response_store.add_sent(2, LONG_ANSWER, LONG_ANSWER, generated_at=utcnow() - timedelta(days=10))

    result = await maintenance.initialize_cache()

    assert result.success_count == 1
    assert [e.question for e in cache_store.entries.values()] == ["최근 질문"]


async def test_daily_build_warms_and_rescores(maintenance, response_store, message_source, cache_store):
    message_source.add(make_message(1, "편입 영어 공부 순서가 궁금해요"))
    response_store.add_sent(1, LONG_ANSWER, LONG_ANSWER)

    warmed, rescored = await maintenance.daily_build()

    assert warmed.success_count == 1
    assert rescored.total_count == 1
    assert rescored.error_count == 0


async def test_weekly_cleanup(maintenance, cache_store):
    cache_store.seed("a 질문", "답변", unit_vector(0), confidence=0.9)
    cache_store.seed("b 질문", "답변", unit_vector(1), confidence=0.5)
    old = cache_store.seed("c 질문", "답변", unit_vector(2), confidence=0.9)
    cache_store.backdate(old.cache_id, days=31)

    assert maintenance.weekly_cleanup() == 2
    assert len(cache_store.entries) == 1


async def test_monitor_health_flags_low_hit_rate(maintenance, cache_store):
    assert maintenance.monitor_health() == []

    for i in range(11):
        cache_store.seed(f"질문 {i}", "답변", unit_vector(i))

    warnings = maintenance.monitor_health()
    assert len(warnings) == 1
    assert "hit rate" in warnings[0]


async def test_rebuild_all(maintenance, response_store, message_source, cache_store):
    cache_store.seed("약한 질문", "답변", unit_vector(0), confidence=0.2)
    message_source.add(make_message(1, "편입 영어 공부 순서가 궁금해요"))
    response_store.add_sent(1, LONG_ANSWER, LONG_ANSWER)

    result = await maintenance.rebuild_all()

    assert result.success
    assert result.cache_count == 1
    assert result.confidence_update_count == 1
    assert result.error_message is None
    assert [e.question for e in cache_store.entries.values()] == ["편입 영어 공부 순서가 궁금해요"]


async def test_rebuild_all_reports_failure(maintenance, warmup, monkeypatch):
    async def broken():
        raise ConnectionError("redis down")

    monkeypatch.setattr(warmup, "warmup_from_approved", broken)

    result = await maintenance.rebuild_all()

    assert not result.success
    assert result.cache_count == 0
    assert result.error_message == "redis down"


async def test_process_pending_messages(maintenance, orchestrator, message_source, response_store, lock_store):
    now = utcnow()
    message_source.add(make_message(1, "편입 영어 공부 순서가 궁금해요", sent_at=now - timedelta(minutes=5)))
    message_source.add(
        make_message(2, "1. 이름: 김학생\n2. 목표: 한양대\n3. 점수: 700", sent_at=now - timedelta(minutes=4))
    )
    message_source.add(make_message(3, "선생님 답변입니다", sent_at=now, sender_type="teacher"))
    message_source.add(make_message(4, "이미 답변된 질문", sent_at=now - timedelta(minutes=3)))
    response_store.insert(4, 104, 7, "답변", ResponseStatus.PENDING_REVIEW, now)
    message_source.add(make_message(5, "오래된 질문", sent_at=now - timedelta(hours=2)))
    message_source.add(make_message(6, "배정 전 질문", assigned=False, sent_at=now - timedelta(minutes=2)))
    message_source.add(make_message(7, "다른 워커가 처리 중인 질문", sent_at=now - timedelta(minutes=1)))
    lock_store.locks[orchestrator.lock_key(7)] = "another-worker"

    result = await maintenance.process_pending_messages()

    assert result.lock_acquired
    assert result.processed == 2
    assert result.skipped == 1
    assert result.in_progress == 1
    assert result.failed == 0
    assert response_store.find_latest_by_message(1) is not None
    assert response_store.find_latest_by_message(6) is not None
    assert response_store.find_latest_by_message(5) is None
    assert maintenance.scheduler_lock_key not in lock_store.locks


async def test_process_pending_counts_failures(maintenance, message_source, primary):
    primary.error = UpstreamUnavailable("primary-generator", "HTTP 500")
    message_source.add(make_message(1, "편입 영어 공부 순서가 궁금해요"))

    result = await maintenance.process_pending_messages()

    assert result.failed == 1
    assert result.processed == 0


async def test_process_pending_skips_when_sweep_running(maintenance, message_source, lock_store, primary):
    message_source.add(make_message(1, "편입 영어 공부 순서가 궁금해요"))
    lock_store.locks[maintenance.scheduler_lock_key] = "another-worker"

    result = await maintenance.process_pending_messages()

    assert not result.lock_acquired
    assert result.processed == 0
    assert primary.calls == []


async def test_process_pending_with_nothing_to_do(maintenance):
    result = await maintenance.process_pending_messages()

    assert result.processed == 0
    assert result.lock_acquired
