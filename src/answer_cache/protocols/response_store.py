"""Generation record and inbound message storage protocols."""

from datetime import datetime
from typing import Protocol, runtime_checkable

from answer_cache.entities import (
    GenerationRecordEntity,
    InboundMessageEntity,
    ResponseStatus,
)


@runtime_checkable
class ResponseStore(Protocol):
    """Protocol for persisting generation records."""

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
        """Persist a new record and assign its response_id."""
        ...

    def get(self, response_id: int) -> GenerationRecordEntity | None:
        ...

    def save(self, record: GenerationRecordEntity) -> GenerationRecordEntity:
        """Overwrite an existing record (status, review fields, answers)."""
        ...

    def find_latest_by_message(self, message_id: int) -> GenerationRecordEntity | None:
        """The most recently generated record for a message."""
        ...

    def find_by_message_and_status(
        self, message_id: int, status: ResponseStatus
    ) -> list[GenerationRecordEntity]:
        ...

    def find_by_status(
        self,
        status: ResponseStatus,
        offset: int = 0,
        limit: int | None = None,
    ) -> list[GenerationRecordEntity]:
        """Records in a status, newest first."""
        ...


@runtime_checkable
class MessageSource(Protocol):
    """Read access to inbound messages written by the ingestion side."""

    def get(self, message_id: int) -> InboundMessageEntity | None:
        ...

    def find_since(self, since: datetime) -> list[InboundMessageEntity]:
        """Messages sent at or after `since`, oldest first."""
        ...
