"""Typed failures raised by the answer cache services.

Callers branch on these to tell apart "not applicable" (skip),
"try later" (contention) and "backend unavailable" (upstream failure).
"""


class AnswerCacheError(Exception):
    """Base class for all answer cache errors."""


class GenerationSkipped(AnswerCacheError):
    """The message is not eligible for an automatic answer.

    This is an expected outcome (e.g. a structured intake form), not a fault.
    """

    def __init__(self, message_id: int, reason: str) -> None:
        super().__init__(f"Generation skipped for message {message_id}: {reason}")
        self.message_id = message_id
        self.reason = reason


class GenerationInProgress(AnswerCacheError):
    """Another worker holds the generation lock and did not finish in time."""

    def __init__(self, message_id: int) -> None:
        super().__init__(f"Generation already in progress for message {message_id}")
        self.message_id = message_id


class UpstreamUnavailable(AnswerCacheError):
    """An embedding or generation backend failed or is short-circuited."""

    def __init__(self, service: str, detail: str) -> None:
        super().__init__(f"{service} unavailable: {detail}")
        self.service = service
        self.detail = detail


class NotFoundError(AnswerCacheError):
    """A referenced record does not exist."""


class MessageNotFound(NotFoundError):
    def __init__(self, message_id: int) -> None:
        super().__init__(f"Message not found: {message_id}")
        self.message_id = message_id


class ResponseNotFound(NotFoundError):
    def __init__(self, response_id: int) -> None:
        super().__init__(f"Generation record not found: {response_id}")
        self.response_id = response_id


class CacheEntryNotFound(NotFoundError):
    def __init__(self, cache_id: int) -> None:
        super().__init__(f"Cache entry not found: {cache_id}")
        self.cache_id = cache_id


class ReviewConflict(AnswerCacheError):
    """The record cannot be sent: it left review already or its message was answered."""

    def __init__(self, response_id: int, reason: str) -> None:
        super().__init__(f"Cannot send generation record {response_id}: {reason}")
        self.response_id = response_id
        self.reason = reason
