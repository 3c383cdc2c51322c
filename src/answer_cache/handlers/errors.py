"""Mapping from service errors to HTTP responses."""

from fastapi import HTTPException, status

from answer_cache.errors import (
    AnswerCacheError,
    GenerationInProgress,
    GenerationSkipped,
    NotFoundError,
    ReviewConflict,
    UpstreamUnavailable,
)


def http_error(exc: AnswerCacheError) -> HTTPException:
    """Translate a typed service failure into the matching HTTP status.

    - GenerationSkipped    -> 422 (not applicable, do not retry)
    - GenerationInProgress -> 409 (retry later)
    - ReviewConflict       -> 409 (already reviewed or answered)
    - UpstreamUnavailable  -> 503 (backend down)
    - NotFoundError        -> 404
    """
    if isinstance(exc, GenerationSkipped):
        code = 422
    elif isinstance(exc, (GenerationInProgress, ReviewConflict)):
        code = status.HTTP_409_CONFLICT
    elif isinstance(exc, UpstreamUnavailable):
        code = status.HTTP_503_SERVICE_UNAVAILABLE
    elif isinstance(exc, NotFoundError):
        code = status.HTTP_404_NOT_FOUND
    else:
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
    return HTTPException(status_code=code, detail=str(exc))
