"""
Tests for text normalization and the keyword guards.
"""

import pytest

from answer_cache.embeddings import cosine_similarity
from answer_cache.keywords import (
    count_occurrences,
    extract_keywords,
    extract_question_type_keywords,
    extract_subject_keywords,
    families_compatible,
    has_significant_keyword_overlap,
    normalize_text,
)


def test_normalize_merges_compounds_and_whitespace():
    assert normalize_text("편입 시험 일정이   언제인가요?") == "편입시험일정이 언제인가요?"
    assert normalize_text("편입시험 일정 알려주세요") == "편입시험일정 알려주세요"


def test_normalize_spacing_variants_agree():
    assert normalize_text("모의 고사 오답 노트") == normalize_text("모의고사 오답노트")


def test_normalize_empty():
    assert normalize_text("") == ""


def test_extract_keywords_drops_stop_words_and_short_tokens():
    keywords = extract_keywords("영어 단어장 은 어떤 것 이 좋아요?")
    assert "영어" in keywords
    assert "단어장" in keywords
    assert "어떤" not in keywords
    assert "은" not in keywords
    assert "좋아요" in keywords


def test_subject_keywords():
    assert extract_subject_keywords("영어 시험 일정") == {"영어"}
    assert extract_subject_keywords("수학 모집인원") == {"수학"}
    assert extract_subject_keywords("편입 시험 일정") == set()


def test_question_type_keywords():
    types = extract_question_type_keywords("편입 시험 일정이 언제인가요?")
    assert {"일정", "언제"} <= types
    assert "일정" in extract_question_type_keywords("편입시험 일정 알려주세요")


def test_families_compatible():
    assert families_compatible(set(), set())
    assert families_compatible({"영어"}, {"영어", "수학"})
    assert not families_compatible({"영어"}, {"수학"})
    assert not families_compatible({"영어"}, set())


def test_overlap_sparse_sets_pass():
    assert has_significant_keyword_overlap({"a1", "b1"}, {"c1", "d1", "e1"})


def test_overlap_by_ratio_or_count():
    left = {"편입", "영어", "단어장", "추천"}
    assert has_significant_keyword_overlap(left, {"편입", "영어", "문법", "교재"})
    assert not has_significant_keyword_overlap(left, {"수학", "모집인원", "정원"})
    # 1 shared of min size 3 -> 33%
    assert has_significant_keyword_overlap(left, {"편입", "수학", "정원"})


def test_count_occurrences():
    assert count_occurrences("편입 편입 시험 대학", ("편입", "시험", "대학")) == 4


def test_cosine_similarity_basics():
    assert cosine_similarity([1.0, 0.0], [1.0, 0.0]) == pytest.approx(1.0)
    assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)
    assert cosine_similarity([1.0, 1.0], [-1.0, -1.0]) == pytest.approx(-1.0)


def test_cosine_similarity_zero_vector():
    assert cosine_similarity([0.0, 0.0], [1.0, 0.0]) == 0.0


def test_cosine_similarity_dimension_mismatch():
    with pytest.raises(ValueError):
        cosine_similarity([1.0, 0.0], [1.0, 0.0, 0.0])
