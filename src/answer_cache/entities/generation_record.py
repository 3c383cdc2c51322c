"""Generation record domain entity."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class ResponseStatus(str, Enum):
    """Review lifecycle of a generated answer."""

    PENDING_REVIEW = "PENDING_REVIEW"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    SENT = "SENT"


@dataclass(frozen=True)
class GenerationRecordEntity:
    """One attempt to answer one inbound message.

    Attributes:
        response_id: Identifier assigned by the store on write
        message_id: The inbound message being answered
        student_id: Author of the message
        teacher_id: Teacher assigned to the student at generation time
        recommended_answer: The generated (or cache-served) answer
        status: Review status
        generated_at: When the answer was produced
        final_answer: The text actually sent, set on review
        reviewed_at: When a reviewer acted on the record
        sent_at: When the answer was sent
        cache_id: Cache entry that served this record, if any
    """

    response_id: int
    message_id: int
    student_id: int | None
    teacher_id: int | None
    recommended_answer: str
    status: ResponseStatus
    generated_at: datetime
    final_answer: str | None = None
    reviewed_at: datetime | None = None
    sent_at: datetime | None = None
    cache_id: int | None = None
