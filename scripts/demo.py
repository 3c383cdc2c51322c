#!/usr/bin/env python3
"""
Demo script for the answer cache.

Seeds a few transfer-admission answers, then shows which follow-up
questions are served from the cache and which fall through to generation.
Requires Redis and an embedding backend (Ollama by default).
"""

import asyncio
import time
from datetime import datetime, timezone

from answer_cache.config import get_redis_client, settings
from answer_cache.embeddings import cosine_similarity
from answer_cache.entities import GenerationRecordEntity, ResponseStatus
from answer_cache.keywords import extract_question_type_keywords, extract_subject_keywords, normalize_text
from answer_cache.logging_config import configure_logging
from answer_cache.repositories import OllamaEmbeddingProvider, RedisCacheRepository, RedisResponseRepository
from answer_cache.services import BackgroundTasks, CacheService, ConfidenceScorer

DEMO_PREFIX = "answer_cache_demo"

SEED_ANSWERS = [
    (
        "편입 시험 일정이 언제인가요?",
        "대부분의 대학은 12월 말부터 1월 중순 사이에 편입 필기시험을 치릅니다. "
        "정확한 날짜는 각 대학 모집요강에서 확인해 주세요.",
    ),
    (
        "수학 모집인원은 몇 명인가요?",
        "수학과 편입 모집인원은 대학마다 다르며 보통 5명에서 20명 사이입니다.",
    ),
    (
        "영어 단어장 추천해주세요",
        "편입 영어는 빈출 어휘 위주의 단어장으로 하루 100단어씩 회독하는 방법을 권합니다.",
    ),
]


def print_section(title: str) -> None:
    """Print a section header."""
    print("\n" + "=" * 70)
    print(f"  {title}")
    print("=" * 70)


async def demo_cache_lookup(cache: CacheService) -> None:
    """Demonstrate seeding and similarity lookups."""
    print_section("Cache Lookup")

    print("\n📝 Seeding cached answers...")
    for question, answer in SEED_ANSWERS:
        entry = await cache.save(question, answer, original_response_id=None, confidence_score=0.9)
        print(f"  ✓ cacheId={entry.cache_id}: {question}")

    queries = [
        "편입시험 일정 알려주세요",
        "영어 시험 일정",
        "수학 모집인원 알려주세요",
        "화학 교재 추천",
    ]

    print("\n🔍 Looking up follow-up questions:")
    for query in queries:
        start = time.time()
        match = await cache.search(query)
        duration = (time.time() - start) * 1000
        print(f"\n  Query: {query}")
        if match is None:
            print(f"  ✗ Cache miss ({duration:.1f}ms), would call the generator")
        else:
            print(f"  ✓ CACHE HIT ({duration:.1f}ms)")
            print(f"  Similarity: {match.similarity:.4f}")
            print(f"  Answer: {match.entry.answer[:60]}...")


async def demo_keyword_guards(provider: OllamaEmbeddingProvider) -> None:
    """Show why vector similarity alone is not enough."""
    print_section("Keyword Guards")

    pairs = [
        ("영어 시험 일정", "수학 시험 일정"),
        ("편입 시험 일정이 언제인가요?", "편입시험 일정 알려주세요"),
    ]
    for left, right in pairs:
        similarity = cosine_similarity(
            await provider.encode(normalize_text(left)),
            await provider.encode(normalize_text(right)),
        )
        print(f"\n  '{left}' vs '{right}'")
        print(f"    Cosine similarity: {similarity:.4f}")
        print(f"    Subjects: {sorted(extract_subject_keywords(left))} / {sorted(extract_subject_keywords(right))}")
        print(
            f"    Question types: {sorted(extract_question_type_keywords(left))}"
            f" / {sorted(extract_question_type_keywords(right))}"
        )


def demo_confidence(scorer: ConfidenceScorer) -> None:
    """Demonstrate confidence scoring of reviewed answers."""
    print_section("Confidence Scoring")

    now = datetime.now(timezone.utc)
    answer = SEED_ANSWERS[0][1]
    samples = {
        "sent unchanged": GenerationRecordEntity(
            response_id=-1,
            message_id=-1,
            student_id=None,
            teacher_id=None,
            recommended_answer=answer,
            final_answer=answer,
            status=ResponseStatus.SENT,
            generated_at=now,
        ),
        "sent after heavy edit": GenerationRecordEntity(
            response_id=-2,
            message_id=-2,
            student_id=None,
            teacher_id=None,
            recommended_answer=answer,
            final_answer="모집요강을 확인하세요.",
            status=ResponseStatus.SENT,
            generated_at=now,
        ),
        "rejected": GenerationRecordEntity(
            response_id=-3,
            message_id=-3,
            student_id=None,
            teacher_id=None,
            recommended_answer="죄송합니다, 모르겠습니다.",
            status=ResponseStatus.REJECTED,
            generated_at=now,
        ),
    }
    for label, record in samples.items():
        print(f"  {label:<24} {scorer.score(record):.3f}")


async def main() -> None:
    configure_logging("WARNING")
    print(f"Redis: {settings.redis_url}  Embedding model: {settings.embedding_model or 'provider default'}")

    client = get_redis_client()
    provider = OllamaEmbeddingProvider.create()
    repository = RedisCacheRepository(redis_client=client, key_prefix=DEMO_PREFIX)
    responses = RedisResponseRepository(redis_client=client, key_prefix=DEMO_PREFIX)
    background = BackgroundTasks()
    cache = CacheService(
        repository=repository,
        responses=responses,
        embedding_provider=provider,
        background=background,
    )

    try:
        await demo_cache_lookup(cache)
        await demo_keyword_guards(provider)
        demo_confidence(ConfidenceScorer(repository, responses))
        await background.drain()
    finally:
        for key in client.scan_iter(f"{DEMO_PREFIX}:*"):
            client.delete(key)
        await provider.close()

    print("\n✓ Demo complete")


if __name__ == "__main__":
    asyncio.run(main())
