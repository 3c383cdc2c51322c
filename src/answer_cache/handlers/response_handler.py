"""HTTP handlers for answer generation and review."""

from answer_cache.dto import EditResponseRequest, GenerationRecordResponse, GenerationResponse
from answer_cache.entities import GenerationRecordEntity
from answer_cache.errors import AnswerCacheError
from answer_cache.services import GenerationOrchestrator

from .errors import http_error


def to_record_response(record: GenerationRecordEntity) -> GenerationRecordResponse:
    return GenerationRecordResponse(
        response_id=record.response_id,
        message_id=record.message_id,
        student_id=record.student_id,
        teacher_id=record.teacher_id,
        recommended_answer=record.recommended_answer,
        final_answer=record.final_answer,
        status=record.status.value,
        generated_at=record.generated_at,
        reviewed_at=record.reviewed_at,
        sent_at=record.sent_at,
        cache_id=record.cache_id,
    )


class ResponseHandler:
    """HTTP handlers for generation and the review workflow."""

    def __init__(self, orchestrator: GenerationOrchestrator) -> None:
        self._orchestrator = orchestrator

    async def generate(self, message_id: int) -> GenerationResponse:
        """Handle POST /responses/generate/{message_id}.

        Raises:
            HTTPException: 422 skip, 409 in progress, 503 upstream, 404 unknown message
        """
        try:
            outcome = await self._orchestrator.generate_response(message_id)
        except AnswerCacheError as e:
            raise http_error(e) from e
        return GenerationResponse(kind=outcome.kind.value, record=to_record_response(outcome.record))

    async def list_pending(self, teacher_id: int | None) -> list[GenerationRecordResponse]:
        return [to_record_response(record) for record in self._orchestrator.list_pending(teacher_id)]

    async def approve(self, response_id: int) -> GenerationRecordResponse:
        try:
            record = await self._orchestrator.approve_and_send(response_id)
        except AnswerCacheError as e:
            raise http_error(e) from e
        return to_record_response(record)

    async def edit(self, response_id: int, request: EditResponseRequest) -> GenerationRecordResponse:
        try:
            record = await self._orchestrator.edit_and_send(response_id, request.answer)
        except AnswerCacheError as e:
            raise http_error(e) from e
        return to_record_response(record)
