"""
Tests for ConfidenceScorer component scores and cache updates.
"""

import pytest

from answer_cache.entities import GenerationRecordEntity, ResponseStatus
from answer_cache.repositories.redis_codec import utcnow
from answer_cache.services import ConfidenceScorer
from conftest import unit_vector

GOOD_ANSWER = (
    "편입 필기시험은 대학마다 다르지만 보통 12월 말부터 1월 사이에 치러집니다.\n"
    "- 모집요강 공고: 11월 전후\n"
    "- 원서 접수: 12월 초\n"
    "- 필기시험: 12월 말 ~ 1월\n"
    "지원하려는 대학의 모집요강을 꼭 확인하세요."
)


def make_record(
    status=ResponseStatus.SENT,
    recommended=GOOD_ANSWER,
    final=GOOD_ANSWER,
    response_id=1,
) -> GenerationRecordEntity:
    return GenerationRecordEntity(
        response_id=response_id,
        message_id=1,
        student_id=1,
        teacher_id=1,
        recommended_answer=recommended,
        status=status,
        generated_at=utcnow(),
        final_answer=final,
    )


@pytest.mark.parametrize(
    "status, expected",
    [
        (ResponseStatus.SENT, 1.0),
        (ResponseStatus.APPROVED, 0.9),
        (ResponseStatus.PENDING_REVIEW, 0.5),
        (ResponseStatus.REJECTED, 0.1),
    ],
)
def test_approval_score(status, expected):
    assert ConfidenceScorer.approval_score(make_record(status=status)) == expected


def test_modification_score():
    assert ConfidenceScorer.modification_score(make_record(final=None)) == 0.5
    assert ConfidenceScorer.modification_score(make_record()) == 1.0
    assert ConfidenceScorer.modification_score(
        make_record(recommended="abcdefghij", final="abcdefghiX")
    ) == pytest.approx(0.9)
    # Floor for a complete rewrite
    assert ConfidenceScorer.modification_score(make_record(recommended="aaaaaaaaaa", final="zz")) == 0.3


@pytest.mark.parametrize(
    "hits, expected",
    [(0, 0.2), (1, 0.3), (2, 0.4), (4, 0.4), (5, 0.6), (10, 0.8), (19, 0.8), (20, 1.0), (50, 1.0)],
)
def test_frequency_buckets(scorer, cache_store, hits, expected):
    cache_store.seed("질문", "답변", unit_vector(0), hit_count=hits, original_response_id=1)

    assert scorer.frequency_score(make_record(response_id=1)) == expected


def test_frequency_without_linked_entry(scorer):
    assert scorer.frequency_score(make_record(response_id=42)) == 0.5


def test_frequency_store_failure_is_neutral(scorer, cache_store, monkeypatch):
    def broken(response_id):
        raise ConnectionError("redis down")

    monkeypatch.setattr(cache_store, "find_by_original_response_id", broken)

    assert scorer.frequency_score(make_record()) == 0.5


def test_quality_score():
    assert ConfidenceScorer.quality_score(None) == 0.0
    assert ConfidenceScorer.quality_score("") == 0.0
    assert ConfidenceScorer.quality_score("네") == 0.5
    assert ConfidenceScorer.quality_score("가" * 60) == pytest.approx(0.6)
    assert ConfidenceScorer.quality_score("가" * 1001) == pytest.approx(0.4)
    assert ConfidenceScorer.quality_score("죄송합니다, 모르겠습니다.") == pytest.approx(0.4)
    # length band + structure marker + domain vocabulary
    assert ConfidenceScorer.quality_score(GOOD_ANSWER) == pytest.approx(0.9)


def test_score_combines_weights(scorer, cache_store):
    cache_store.seed("질문", "답변", unit_vector(0), hit_count=20, original_response_id=1)

    expected = 0.4 * 1.0 + 0.3 * 1.0 + 0.2 * 1.0 + 0.1 * 0.9
    assert scorer.score(make_record()) == pytest.approx(expected)


def test_score_is_bounded(scorer):
    value = scorer.score(make_record(status=ResponseStatus.REJECTED, final="죄송합니다"))
    assert 0.0 <= value <= 1.0


def test_score_orders_review_outcomes(scorer):
    unchanged = scorer.score(make_record())
    edited = scorer.score(make_record(final="모집요강을 확인하세요."))
    rejected = scorer.score(make_record(status=ResponseStatus.REJECTED, final=None))

    assert unchanged > edited > rejected


def test_unreviewed_record_has_no_quality(scorer):
    pending = make_record(status=ResponseStatus.PENDING_REVIEW, final=None)

    # Quality only looks at the sent answer; the recommendation alone earns nothing
    expected = 0.4 * 0.5 + 0.3 * 0.5 + 0.2 * 0.5 + 0.1 * 0.0
    assert scorer.score(pending) == pytest.approx(expected)


def test_invalid_status_scores_default(scorer):
    assert scorer.score(make_record(status="ARCHIVED")) == 0.5


def test_update_entry_confidence(scorer, cache_store, response_store):
    sent = response_store.add_sent(message_id=3, recommended=GOOD_ANSWER, final=GOOD_ANSWER)
    entry = cache_store.seed("질문", GOOD_ANSWER, unit_vector(0), confidence=0.5, original_response_id=sent.response_id)

    new_score = scorer.update_entry_confidence(entry.cache_id)

    assert new_score == pytest.approx(scorer.score(sent))
    assert cache_store.get(entry.cache_id).confidence_score == new_score
    assert new_score > 0.5


def test_update_entry_confidence_missing_pieces(scorer, cache_store):
    assert scorer.update_entry_confidence(999) is None

    unlinked = cache_store.seed("질문", "답변", unit_vector(0), confidence=0.6)
    assert scorer.update_entry_confidence(unlinked.cache_id) is None

    orphan = cache_store.seed("다른 질문", "답변", unit_vector(1), confidence=0.6, original_response_id=77)
    assert scorer.update_entry_confidence(orphan.cache_id) is None
    assert cache_store.get(orphan.cache_id).confidence_score == 0.6


def test_recalculate_all_counts_failures(scorer, cache_store, response_store, monkeypatch):
    sent = response_store.add_sent(message_id=3, recommended=GOOD_ANSWER, final=GOOD_ANSWER)
    good = cache_store.seed("질문", GOOD_ANSWER, unit_vector(0), confidence=0.5, original_response_id=sent.response_id)
    bad = cache_store.seed("다른 질문", "답변", unit_vector(1), confidence=0.5)

    original = scorer.update_entry_confidence

    def flaky(cache_id):
        if cache_id == bad.cache_id:
            raise ConnectionError("redis down")
        return original(cache_id)

    monkeypatch.setattr(scorer, "update_entry_confidence", flaky)

    result = scorer.recalculate_all()

    assert result.total_count == 2
    assert result.success_count == 1
    assert result.error_count == 1
    assert cache_store.get(good.cache_id).confidence_score > 0.5


def test_reused_unmodified_answer_outranks_rejected_rewrite(scorer, cache_store):
    cache_store.seed("질문", GOOD_ANSWER, unit_vector(0), hit_count=25, original_response_id=1)
    trusted = make_record(response_id=1)
    rejected = make_record(status=ResponseStatus.REJECTED, final="몰라요", response_id=2)

    assert scorer.score(trusted) > scorer.score(rejected)
