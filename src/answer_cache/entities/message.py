"""Inbound message domain entity."""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class InboundMessageEntity:
    """A chat message as handed over by the ingestion side.

    Attributes:
        message_id: Identifier of the message
        student_id: Author of the message
        content: Message text
        sender_type: student / teacher / system / ai
        sent_at: When the message was sent
        assigned_teacher_id: Teacher assigned to the student, if any
        teacher_assigned_at: When that teacher was assigned
        target_university: Student profile hint passed to the primary generator
    """

    message_id: int
    student_id: int | None
    content: str
    sender_type: str
    sent_at: datetime
    assigned_teacher_id: int | None = None
    teacher_assigned_at: datetime | None = None
    target_university: str | None = None

    @property
    def is_after_assignment(self) -> bool:
        """True when a teacher is assigned and the message postdates the assignment."""
        if self.assigned_teacher_id is None or self.teacher_assigned_at is None:
            return False
        return self.sent_at >= self.teacher_assigned_at
