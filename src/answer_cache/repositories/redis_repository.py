"""Redis implementation of CacheStore.

Each entry is a hash; sorted sets and a lookup hash provide the query
shapes the services need. Hit counting uses HINCRBY so concurrent hits
never lose an increment. Writes that depend on what is already stored
(the one-entry-per-response claim, updates to an existing entry) run as
WATCH/MULTI transactions, so a concurrent delete or claim aborts and
retries them instead of leaving a partial hash behind.
"""

import logging

import redis

from answer_cache.config import get_redis_client, settings
from answer_cache.embeddings import json_to_vector, vector_to_json
from answer_cache.entities import CacheEntryEntity

from .redis_codec import dump_datetime, dump_optional, load_datetime, load_optional_int, utcnow

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("question", "answer", "embedding", "confidence_score")


class RedisCacheRepository:
    """Redis implementation of the CacheStore protocol.

    This class satisfies the CacheStore protocol through structural
    typing - no explicit inheritance needed.

    Key layout (prefix defaults to settings.key_prefix):
    - {prefix}:entry:{id}         hash with the entry fields
    - {prefix}:entry_seq          id counter
    - {prefix}:by_confidence      sorted set, score = confidence
    - {prefix}:by_response        hash original_response_id -> cache_id
    - {prefix}:answer:{id}        answer mirror for external readers, with TTL
    - {prefix}:stats              summary counters
    """

    def __init__(
        self,
        redis_client: redis.Redis | None = None,
        key_prefix: str | None = None,
        ttl: int | None = None,
    ) -> None:
        """Initialize the Redis cache repository.

        Args:
            redis_client: Redis client instance. If None, creates default.
            key_prefix: Namespace for every key.
            ttl: Time-to-live of the answer mirror in seconds.
        """
        self._client = redis_client or get_redis_client()
        self._prefix = key_prefix or settings.key_prefix
        self._ttl = ttl or settings.cache_ttl

    @classmethod
    def create(
        cls,
        key_prefix: str | None = None,
        ttl: int | None = None,
    ) -> "RedisCacheRepository":
        """Factory method to create RedisCacheRepository with defaults.

        Args:
            key_prefix: Key namespace. If None, uses settings.
            ttl: Mirror TTL in seconds. If None, uses settings.

        Returns:
            Configured RedisCacheRepository
        """
        return cls(key_prefix=key_prefix, ttl=ttl)

    # Keys

    def _entry_key(self, cache_id: int) -> str:
        return f"{self._prefix}:entry:{cache_id}"

    def _mirror_key(self, cache_id: int) -> str:
        return f"{self._prefix}:answer:{cache_id}"

    @property
    def _seq_key(self) -> str:
        return f"{self._prefix}:entry_seq"

    @property
    def _confidence_key(self) -> str:
        return f"{self._prefix}:by_confidence"

    @property
    def _response_index_key(self) -> str:
        return f"{self._prefix}:by_response"

    @property
    def _stats_key(self) -> str:
        return f"{self._prefix}:stats"

    # Writes

    def store(
        self,
        question: str,
        answer: str,
        embedding: list[float],
        embedding_model: str,
        confidence_score: float,
        original_response_id: int | None,
        cache_key: str,
    ) -> CacheEntryEntity:
        """Store a cache entry, or return the one already seeded by the same response.

        The response-index claim and the entry hash are written in one
        WATCH/MULTI transaction, so a claim never points at a half-written
        entry and a concurrent writer's claim is never overwritten.
        """
        if original_response_id is not None:
            existing = self.find_by_original_response_id(original_response_id)
            if existing is not None:
                return existing

        cache_id = int(self._client.incr(self._seq_key))
        now = utcnow()
        fields = {
            "question": question,
            "answer": answer,
            "embedding": vector_to_json(embedding),
            "embedding_model": embedding_model,
            "confidence_score": repr(float(confidence_score)),
            "hit_count": 0,
            "last_hit_at": dump_datetime(now),
            "original_response_id": dump_optional(original_response_id),
            "cache_key": cache_key,
            "created_at": dump_datetime(now),
        }

        if original_response_id is None:
            pipe = self._client.pipeline()
            self._queue_insert(pipe, cache_id, fields, answer, confidence_score)
            pipe.execute()
            return self._require(cache_id)

        index_field = str(original_response_id)

        def claim(pipe) -> CacheEntryEntity | None:
            raw_id = pipe.hget(self._response_index_key, index_field)
            if raw_id is not None:
                held = self._decode(int(raw_id), pipe.hgetall(self._entry_key(int(raw_id))))
                if held is not None:
                    return held
                logger.warning("Response index for %s pointed at a missing entry %s", index_field, raw_id)
            pipe.multi()
            pipe.hset(self._response_index_key, index_field, cache_id)
            self._queue_insert(pipe, cache_id, fields, answer, confidence_score)
            return None

        existing = self._client.transaction(claim, self._response_index_key, value_from_callable=True)
        if existing is not None:
            return existing
        return self._require(cache_id)

    def _queue_insert(self, pipe, cache_id: int, fields: dict, answer: str, confidence_score: float) -> None:
        pipe.hset(self._entry_key(cache_id), mapping=fields)
        pipe.zadd(self._confidence_key, {str(cache_id): float(confidence_score)})
        pipe.set(self._mirror_key(cache_id), answer, ex=self._ttl)

    def _require(self, cache_id: int) -> CacheEntryEntity:
        entry = self.get(cache_id)
        if entry is None:
            raise RuntimeError(f"Cache entry {cache_id} vanished right after write")
        return entry

    def _update_existing(self, cache_id: int, queue) -> bool:
        """Run `queue(pipe, data)` in a transaction only while the entry hash exists.

        The entry key is watched, so a delete between the read and EXEC
        aborts and retries instead of recreating a partial hash.
        """
        key = self._entry_key(cache_id)

        def write(pipe) -> bool:
            data = pipe.hgetall(key)
            if self._decode(cache_id, data) is None:
                return False
            pipe.multi()
            queue(pipe, data)
            return True

        return self._client.transaction(write, key, value_from_callable=True)

    def increment_hit(self, cache_id: int) -> None:
        """Count a hit and refresh the answer mirror's TTL."""
        key = self._entry_key(cache_id)

        def queue(pipe, data) -> None:
            pipe.hincrby(key, "hit_count", 1)
            pipe.hset(key, "last_hit_at", dump_datetime(utcnow()))
            pipe.set(self._mirror_key(cache_id), data["answer"], ex=self._ttl)

        self._update_existing(cache_id, queue)

    def update_answer(self, cache_id: int, answer: str) -> CacheEntryEntity | None:
        key = self._entry_key(cache_id)

        def queue(pipe, data) -> None:
            pipe.hset(key, "answer", answer)
            pipe.set(self._mirror_key(cache_id), answer, ex=self._ttl)

        if not self._update_existing(cache_id, queue):
            return None
        return self.get(cache_id)

    def update_confidence(self, cache_id: int, confidence_score: float) -> None:
        key = self._entry_key(cache_id)

        def queue(pipe, data) -> None:
            pipe.hset(key, "confidence_score", repr(float(confidence_score)))
            pipe.zadd(self._confidence_key, {str(cache_id): float(confidence_score)})

        self._update_existing(cache_id, queue)

    def delete(self, cache_id: int) -> bool:
        """Delete an entry, its index rows and its answer mirror.

        Returns:
            True if deleted, False otherwise
        """
        entry = self.get(cache_id)
        pipe = self._client.pipeline()
        pipe.delete(self._entry_key(cache_id))
        pipe.delete(self._mirror_key(cache_id))
        pipe.zrem(self._confidence_key, str(cache_id))
        if entry is not None and entry.original_response_id is not None:
            pipe.hdel(self._response_index_key, str(entry.original_response_id))
        deleted = pipe.execute()[0]
        return int(deleted) > 0

    def record_stats(self, total_count: int, updated_at_ms: int) -> None:
        self._client.hset(
            self._stats_key,
            mapping={"total_caches": total_count, "last_updated": updated_at_ms},
        )

    # Reads

    def get(self, cache_id: int) -> CacheEntryEntity | None:
        return self._decode(cache_id, self._client.hgetall(self._entry_key(cache_id)))

    def find_by_original_response_id(self, response_id: int) -> CacheEntryEntity | None:
        raw_id = self._client.hget(self._response_index_key, str(response_id))
        if raw_id is None:
            return None
        return self.get(int(raw_id))

    def find_candidates(self, min_confidence: float, limit: int) -> list[CacheEntryEntity]:
        """Top `limit` entries by confidence, then hit count.

        Members tied on confidence at the window edge are all loaded so the
        hit-count tiebreak decides which of them make the cut.
        """
        window = self._client.zrevrangebyscore(
            self._confidence_key, "+inf", min_confidence, start=0, num=limit, withscores=True
        )
        ids = [int(raw_id) for raw_id, _ in window]
        if len(window) == limit and limit > 0:
            edge = window[-1][1]
            tied = self._client.zrangebyscore(self._confidence_key, edge, edge)
            ids.extend(int(raw_id) for raw_id in tied if int(raw_id) not in ids)
        entries = self._load_many(ids)
        entries.sort(key=lambda e: (e.confidence_score, e.hit_count), reverse=True)
        return entries[:limit]

    def find_all(self) -> list[CacheEntryEntity]:
        ids = self._client.zrange(self._confidence_key, 0, -1)
        return self._load_many(int(raw_id) for raw_id in ids)

    def get_statistics(self) -> tuple[int, int, float]:
        entries = self.find_all()
        if not entries:
            return 0, 0, 0.0
        total_hits = sum(e.hit_count for e in entries)
        avg_confidence = sum(e.confidence_score for e in entries) / len(entries)
        return len(entries), total_hits, avg_confidence

    def health_check(self) -> bool:
        """Check if Redis is accessible.

        Returns:
            True if healthy, False otherwise
        """
        try:
            return bool(self._client.ping())
        except redis.RedisError:
            logger.warning("Redis health check failed", exc_info=True)
            return False

    def _load_many(self, ids) -> list[CacheEntryEntity]:
        ids = list(ids)
        if not ids:
            return []
        pipe = self._client.pipeline(transaction=False)
        for cache_id in ids:
            pipe.hgetall(self._entry_key(cache_id))
        rows = pipe.execute()
        entries = (self._decode(cache_id, data) for cache_id, data in zip(ids, rows))
        return [entry for entry in entries if entry is not None]

    @staticmethod
    def _decode(cache_id: int, data: dict[str, str]) -> CacheEntryEntity | None:
        """Entity for a stored hash; None if absent or missing required fields."""
        if not data:
            return None
        missing = [name for name in REQUIRED_FIELDS if name not in data]
        if missing:
            logger.warning("Skipping incomplete cache entry %s: missing %s", cache_id, ", ".join(missing))
            return None
        created_at = load_datetime(data.get("created_at"))
        return CacheEntryEntity(
            cache_id=cache_id,
            question=data["question"],
            answer=data["answer"],
            embedding=json_to_vector(data["embedding"]),
            embedding_model=data.get("embedding_model", ""),
            confidence_score=float(data["confidence_score"]),
            hit_count=int(data.get("hit_count", 0)),
            last_hit_at=load_datetime(data.get("last_hit_at")),
            original_response_id=load_optional_int(data.get("original_response_id")),
            cache_key=data.get("cache_key", ""),
            created_at=created_at or utcnow(),
        )
