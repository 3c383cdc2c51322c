"""Request DTOs for API endpoints."""

from pydantic import BaseModel, Field


class SearchCacheRequest(BaseModel):
    """Request DTO for a similarity lookup.

    The handler will convert this to internal calls to the service layer.
    """

    question: str = Field(..., description="The student question to match", min_length=1)


class StoreCacheRequest(BaseModel):
    """Request DTO for storing in cache."""

    question: str = Field(..., description="The original student question", min_length=1)
    answer: str = Field(..., description="The answer to cache", min_length=1)
    original_response_id: int | None = Field(
        None,
        description="Generation record that produced the answer (one entry per record)",
    )
    confidence_score: float = Field(
        0.5,
        description="Initial confidence (0-1)",
        ge=0.0,
        le=1.0,
    )


class UpdateAnswerRequest(BaseModel):
    """Request DTO for correcting a cached answer."""

    answer: str = Field(..., description="The corrected answer", min_length=1)


class EditResponseRequest(BaseModel):
    """Request DTO for sending a reviewer-edited answer."""

    answer: str = Field(..., description="The edited answer to send", min_length=1)
