"""Redis implementations of ResponseStore and MessageSource."""

from datetime import datetime

import redis

from answer_cache.config import get_redis_client, settings
from answer_cache.entities import GenerationRecordEntity, InboundMessageEntity, ResponseStatus

from .redis_codec import (
    dump_datetime,
    dump_optional,
    load_datetime,
    load_optional_int,
    load_optional_str,
)


class RedisResponseRepository:
    """Generation records stored as hashes.

    Key layout:
    - {prefix}:response:{id}                   hash with the record fields
    - {prefix}:response_seq                    id counter
    - {prefix}:responses_by_message:{mid}      sorted set, score = generated_at
    - {prefix}:responses_by_status:{status}    sorted set, score = generated_at
    """

    def __init__(self, redis_client: redis.Redis | None = None, key_prefix: str | None = None) -> None:
        self._client = redis_client or get_redis_client()
        self._prefix = key_prefix or settings.key_prefix

    @classmethod
    def create(cls, key_prefix: str | None = None) -> "RedisResponseRepository":
        return cls(key_prefix=key_prefix)

    def _record_key(self, response_id: int) -> str:
        return f"{self._prefix}:response:{response_id}"

    def _message_index_key(self, message_id: int) -> str:
        return f"{self._prefix}:responses_by_message:{message_id}"

    def _status_index_key(self, status: ResponseStatus) -> str:
        return f"{self._prefix}:responses_by_status:{status.value}"

    def insert(
        self,
        message_id: int,
        student_id: int | None,
        teacher_id: int | None,
        recommended_answer: str,
        status: ResponseStatus,
        generated_at: datetime,
        cache_id: int | None = None,
    ) -> GenerationRecordEntity:
        response_id = int(self._client.incr(f"{self._prefix}:response_seq"))
        record = GenerationRecordEntity(
            response_id=response_id,
            message_id=message_id,
            student_id=student_id,
            teacher_id=teacher_id,
            recommended_answer=recommended_answer,
            status=status,
            generated_at=generated_at,
            cache_id=cache_id,
        )
        return self._write(record, previous_status=None)

    def save(self, record: GenerationRecordEntity) -> GenerationRecordEntity:
        previous = self.get(record.response_id)
        return self._write(record, previous_status=previous.status if previous else None)

    def _write(
        self,
        record: GenerationRecordEntity,
        previous_status: ResponseStatus | None,
    ) -> GenerationRecordEntity:
        score = record.generated_at.timestamp()
        member = str(record.response_id)
        pipe = self._client.pipeline()
        pipe.hset(
            self._record_key(record.response_id),
            mapping={
                "message_id": record.message_id,
                "student_id": dump_optional(record.student_id),
                "teacher_id": dump_optional(record.teacher_id),
                "recommended_answer": record.recommended_answer,
                "status": record.status.value,
                "generated_at": dump_datetime(record.generated_at),
                "final_answer": dump_optional(record.final_answer),
                "reviewed_at": dump_datetime(record.reviewed_at),
                "sent_at": dump_datetime(record.sent_at),
                "cache_id": dump_optional(record.cache_id),
            },
        )
        pipe.zadd(self._message_index_key(record.message_id), {member: score})
        if previous_status is not None and previous_status != record.status:
            pipe.zrem(self._status_index_key(previous_status), member)
        pipe.zadd(self._status_index_key(record.status), {member: score})
        pipe.execute()
        return record

    def get(self, response_id: int) -> GenerationRecordEntity | None:
        data = self._client.hgetall(self._record_key(response_id))
        if not data:
            return None
        return self._to_entity(response_id, data)

    def find_latest_by_message(self, message_id: int) -> GenerationRecordEntity | None:
        ids = self._client.zrevrange(self._message_index_key(message_id), 0, 0)
        if not ids:
            return None
        return self.get(int(ids[0]))

    def find_by_message_and_status(
        self, message_id: int, status: ResponseStatus
    ) -> list[GenerationRecordEntity]:
        ids = self._client.zrevrange(self._message_index_key(message_id), 0, -1)
        records = (self.get(int(raw_id)) for raw_id in ids)
        return [r for r in records if r is not None and r.status == status]

    def find_by_status(
        self,
        status: ResponseStatus,
        offset: int = 0,
        limit: int | None = None,
    ) -> list[GenerationRecordEntity]:
        end = -1 if limit is None else offset + limit - 1
        ids = self._client.zrevrange(self._status_index_key(status), offset, end)
        records = (self.get(int(raw_id)) for raw_id in ids)
        return [r for r in records if r is not None]

    @staticmethod
    def _to_entity(response_id: int, data: dict[str, str]) -> GenerationRecordEntity:
        return GenerationRecordEntity(
            response_id=response_id,
            message_id=int(data["message_id"]),
            student_id=load_optional_int(data.get("student_id")),
            teacher_id=load_optional_int(data.get("teacher_id")),
            recommended_answer=data.get("recommended_answer", ""),
            status=ResponseStatus(data["status"]),
            generated_at=load_datetime(data["generated_at"]),
            final_answer=load_optional_str(data.get("final_answer")),
            reviewed_at=load_datetime(data.get("reviewed_at")),
            sent_at=load_datetime(data.get("sent_at")),
            cache_id=load_optional_int(data.get("cache_id")),
        )


class RedisMessageRepository:
    """Inbound messages as written by the ingestion side.

    Key layout:
    - {prefix}:message:{id}          hash with the message fields
    - {prefix}:messages_by_time      sorted set, score = sent_at
    """

    def __init__(self, redis_client: redis.Redis | None = None, key_prefix: str | None = None) -> None:
        self._client = redis_client or get_redis_client()
        self._prefix = key_prefix or settings.key_prefix

    @classmethod
    def create(cls, key_prefix: str | None = None) -> "RedisMessageRepository":
        return cls(key_prefix=key_prefix)

    def _message_key(self, message_id: int) -> str:
        return f"{self._prefix}:message:{message_id}"

    @property
    def _time_index_key(self) -> str:
        return f"{self._prefix}:messages_by_time"

    def save(self, message: InboundMessageEntity) -> InboundMessageEntity:
        pipe = self._client.pipeline()
        pipe.hset(
            self._message_key(message.message_id),
            mapping={
                "student_id": dump_optional(message.student_id),
                "content": message.content,
                "sender_type": message.sender_type,
                "sent_at": dump_datetime(message.sent_at),
                "assigned_teacher_id": dump_optional(message.assigned_teacher_id),
                "teacher_assigned_at": dump_datetime(message.teacher_assigned_at),
                "target_university": dump_optional(message.target_university),
            },
        )
        pipe.zadd(self._time_index_key, {str(message.message_id): message.sent_at.timestamp()})
        pipe.execute()
        return message

    def get(self, message_id: int) -> InboundMessageEntity | None:
        data = self._client.hgetall(self._message_key(message_id))
        if not data:
            return None
        return self._to_entity(message_id, data)

    def find_since(self, since: datetime) -> list[InboundMessageEntity]:
        ids = self._client.zrangebyscore(self._time_index_key, since.timestamp(), "+inf")
        messages = (self.get(int(raw_id)) for raw_id in ids)
        return [m for m in messages if m is not None]

    @staticmethod
    def _to_entity(message_id: int, data: dict[str, str]) -> InboundMessageEntity:
        return InboundMessageEntity(
            message_id=message_id,
            student_id=load_optional_int(data.get("student_id")),
            content=data.get("content", ""),
            sender_type=data.get("sender_type", "student"),
            sent_at=load_datetime(data["sent_at"]),
            assigned_teacher_id=load_optional_int(data.get("assigned_teacher_id")),
            teacher_assigned_at=load_datetime(data.get("teacher_assigned_at")),
            target_university=load_optional_str(data.get("target_university")),
        )
