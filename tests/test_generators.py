"""
Tests for the adapters: answer generators, embedding backends, Redis lock.
"""

import json
from dataclasses import replace
from unittest.mock import MagicMock

import httpx
import pytest
from pybreaker import CircuitBreaker

from answer_cache.api import dependencies
from answer_cache.config import settings
from answer_cache.errors import UpstreamUnavailable
from answer_cache.repositories import (
    DEFAULT_LOCAL_MODEL,
    DEFAULT_OLLAMA_MODEL,
    GeminiAnswerGenerator,
    LangGraphAnswerGenerator,
    OllamaEmbeddingProvider,
    RedisLockStore,
    answer_generators,
)

ANSWER = "편입 필기시험은 보통 12월 말에서 1월 사이에 치러집니다."
CONTEXT = {"message_id": 1, "student_id": 101, "target_university": "한양대"}


class RecordingHandler:
    """MockTransport handler that records requests and replays a response."""

    def __init__(self, status_code=200, payload=None, error=None):
        self.status_code = status_code
        self.payload = payload
        self.error = error
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return httpx.Response(self.status_code, json=self.payload)


def langgraph(handler, fail_max=5):
    return LangGraphAnswerGenerator(
        base_url="http://primary.test",
        timeout=5,
        breaker=CircuitBreaker(fail_max=fail_max, reset_timeout=60, name="primary-test"),
        transport=httpx.MockTransport(handler),
    )


async def test_langgraph_generates():
    handler = RecordingHandler(payload={"final_answer": ANSWER})
    generator = langgraph(handler)

    assert await generator.generate("편입 시험 일정?", CONTEXT) == ANSWER

    request = handler.requests[0]
    assert str(request.url) == "http://primary.test/api/chat"
    body = json.loads(request.content)
    assert body["question"] == "편입 시험 일정?"
    assert body["student_profile"]["target_university"] == "한양대"
    generator.close()


async def test_langgraph_http_error_is_upstream_unavailable():
    generator = langgraph(RecordingHandler(status_code=500, payload={"detail": "boom"}))

    with pytest.raises(UpstreamUnavailable) as exc_info:
        await generator.generate("질문", CONTEXT)

    assert exc_info.value.service == "primary-generator"


async def test_langgraph_rejects_short_or_missing_answer():
    with pytest.raises(UpstreamUnavailable):
        await langgraph(RecordingHandler(payload={"final_answer": "네"})).generate("질문", CONTEXT)
    with pytest.raises(UpstreamUnavailable):
        await langgraph(RecordingHandler(payload={"answer": ANSWER})).generate("질문", CONTEXT)


async def test_connection_error_is_upstream_unavailable():
    generator = langgraph(RecordingHandler(error=httpx.ConnectError("connection refused")))

    with pytest.raises(UpstreamUnavailable):
        await generator.generate("질문", CONTEXT)


async def test_breaker_opens_and_stops_calling():
    handler = RecordingHandler(status_code=503, payload={})
    generator = langgraph(handler, fail_max=2)

    for _ in range(2):
        with pytest.raises(UpstreamUnavailable):
            await generator.generate("질문", CONTEXT)
    assert generator.breaker.current_state == "open"

    with pytest.raises(UpstreamUnavailable, match="circuit open"):
        await generator.generate("질문", CONTEXT)
    assert len(handler.requests) == 2


async def test_gemini_generates():
    payload = {"candidates": [{"content": {"parts": [{"text": ANSWER}]}}]}
    handler = RecordingHandler(payload=payload)
    generator = GeminiAnswerGenerator(
        url="http://gemini.test/generate",
        api_key="test-key",
        timeout=5,
        breaker=CircuitBreaker(fail_max=5, reset_timeout=60, name="fallback-test"),
        transport=httpx.MockTransport(handler),
    )

    assert await generator.generate("편입 시험 일정?", CONTEXT) == ANSWER

    request = handler.requests[0]
    assert request.headers["x-goog-api-key"] == "test-key"
    prompt = json.loads(request.content)["contents"][0]["parts"][0]["text"]
    assert prompt.startswith("[목표대학: 한양대]")
    assert prompt.endswith("편입 시험 일정?")


async def test_gemini_without_candidates():
    generator = GeminiAnswerGenerator(
        url="http://gemini.test/generate",
        api_key="test-key",
        breaker=CircuitBreaker(fail_max=5, reset_timeout=60, name="fallback-test"),
        transport=httpx.MockTransport(RecordingHandler(payload={"candidates": []})),
    )

    with pytest.raises(UpstreamUnavailable):
        await generator.generate("질문", CONTEXT)


def ollama(handler):
    return OllamaEmbeddingProvider(
        model_name="bge-m3",
        base_url="http://ollama.test",
        transport=httpx.MockTransport(handler),
    )


async def test_ollama_encode():
    handler = RecordingHandler(payload={"embeddings": [[0.1, 0.2, 0.3]]})
    provider = ollama(handler)

    assert provider.dimension == 1024
    assert await provider.encode("편입시험일정") == [0.1, 0.2, 0.3]
    assert provider.dimension == 3
    assert provider.model_name == "bge-m3"
    assert json.loads(handler.requests[0].content) == {"model": "bge-m3", "input": "편입시험일정"}
    await provider.close()


async def test_ollama_legacy_payload():
    provider = ollama(RecordingHandler(payload={"embedding": [0.5, 0.5]}))

    assert await provider.encode("질문") == [0.5, 0.5]


async def test_ollama_errors():
    with pytest.raises(UpstreamUnavailable):
        await ollama(RecordingHandler(payload={"unexpected": True})).encode("질문")

    offline = ollama(RecordingHandler(error=httpx.ConnectError("Connection refused")))
    with pytest.raises(UpstreamUnavailable, match="ollama serve"):
        await offline.encode("질문")
    assert not await offline.is_available()


async def test_ollama_is_available():
    assert await ollama(RecordingHandler(payload={"embeddings": [[1.0]]})).is_available()


def test_redis_lock_acquire_and_release():
    client = MagicMock()
    client.set.return_value = True
    release_script = MagicMock(return_value=1)
    client.register_script.return_value = release_script
    locks = RedisLockStore(redis_client=client)

    assert locks.acquire("test:generation_lock:1", "owner-a", 600)
    client.set.assert_called_once_with("test:generation_lock:1", "owner-a", nx=True, ex=600)

    assert locks.release("test:generation_lock:1", "owner-a")
    release_script.assert_called_once_with(keys=["test:generation_lock:1"], args=["owner-a"])


def test_redis_lock_contended_and_foreign_release():
    client = MagicMock()
    client.set.return_value = None
    client.register_script.return_value = MagicMock(return_value=0)
    locks = RedisLockStore(redis_client=client)

    assert not locks.acquire("test:generation_lock:1", "owner-b", 600)
    assert not locks.release("test:generation_lock:1", "owner-b")


@pytest.mark.parametrize(
    "backend, expected",
    [("local", DEFAULT_LOCAL_MODEL), ("ollama", DEFAULT_OLLAMA_MODEL)],
)
def test_embedding_backend_uses_its_own_default_model(monkeypatch, backend, expected):
    monkeypatch.setattr(
        dependencies, "settings", replace(settings, embedding_provider=backend, embedding_model=None)
    )

    assert dependencies.build_embedding_provider().model_name == expected


def test_embedding_model_setting_overrides_default(monkeypatch):
    monkeypatch.setattr(
        dependencies, "settings", replace(settings, embedding_provider="local", embedding_model="bge-m3")
    )

    assert dependencies.build_embedding_provider().model_name == "bge-m3"


def test_generator_without_request_cannot_be_built():
    class Incomplete(answer_generators._HttpAnswerGenerator):
        pass

    with pytest.raises(TypeError):
        Incomplete(name="incomplete", url="http://incomplete.test")
