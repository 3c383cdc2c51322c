"""HTTP answer generators guarded by circuit breakers.

Two backends are supported:
- LangGraphAnswerGenerator: the primary tutoring pipeline (`POST /api/chat`)
- GeminiAnswerGenerator: a plain Gemini `generateContent` call used as fallback

Requests run on a worker thread through `pybreaker.CircuitBreaker.call`,
so the breaker sees every failure and the event loop stays free while a
generation takes its time.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx
from pybreaker import CircuitBreaker, CircuitBreakerError, CircuitBreakerListener

from answer_cache.config import settings
from answer_cache.errors import UpstreamUnavailable

logger = logging.getLogger(__name__)

MIN_ANSWER_LENGTH = 10


class BreakerLogListener(CircuitBreakerListener):
    """Logs breaker transitions and failures."""

    def state_change(self, cb: CircuitBreaker, old_state, new_state) -> None:
        old_name = old_state.name if old_state is not None else None
        logger.warning("CircuitBreaker '%s' %s -> %s", cb.name, old_name, new_state.name)

    def failure(self, cb: CircuitBreaker, exc: BaseException) -> None:
        logger.warning(
            "CircuitBreaker '%s' recorded failure: %s (%d/%d)",
            cb.name,
            type(exc).__name__,
            cb.fail_counter,
            cb.fail_max,
        )


def build_breaker(name: str) -> CircuitBreaker:
    return CircuitBreaker(
        fail_max=settings.breaker_fail_max,
        reset_timeout=settings.breaker_reset_timeout,
        listeners=[BreakerLogListener()],
        name=name,
    )


class _HttpAnswerGenerator(ABC):
    """Shared plumbing: sync httpx client, breaker, error mapping."""

    def __init__(
        self,
        name: str,
        url: str,
        timeout: float | None = None,
        breaker: CircuitBreaker | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._name = name
        self._url = url
        self._timeout = timeout or settings.generator_timeout
        self._breaker = breaker or build_breaker(name)
        self._client = httpx.Client(timeout=self._timeout, transport=transport)

    @property
    def name(self) -> str:
        return self._name

    @property
    def breaker(self) -> CircuitBreaker:
        return self._breaker

    @abstractmethod
    def _request(self, question: str, context: dict[str, Any]) -> str:
        """Perform one HTTP call and extract the answer text."""

    def _checked_request(self, question: str, context: dict[str, Any]) -> str:
        answer = self._request(question, context)
        if not answer or not answer.strip():
            raise ValueError("returned an empty answer")
        if len(answer.strip()) < MIN_ANSWER_LENGTH:
            raise ValueError(f"returned a too short answer: {answer!r}")
        return answer

    async def generate(self, question: str, context: dict[str, Any]) -> str:
        """Call the backend through the circuit breaker.

        Raises:
            UpstreamUnavailable: On HTTP failure, timeout, unusable answer,
                or while the breaker is open
        """
        try:
            answer = await asyncio.to_thread(self._breaker.call, self._checked_request, question, context)
        except CircuitBreakerError as e:
            raise UpstreamUnavailable(self._name, f"circuit open: {e}") from e
        except httpx.HTTPError as e:
            logger.error("%s request failed: %s", self._name, e)
            raise UpstreamUnavailable(self._name, str(e)) from e
        except (ValueError, KeyError, IndexError, TypeError) as e:
            logger.error("%s produced an unusable response: %s", self._name, e)
            raise UpstreamUnavailable(self._name, str(e)) from e

        logger.info("%s generated answer: length=%d", self._name, len(answer))
        return answer

    def close(self) -> None:
        self._client.close()


class LangGraphAnswerGenerator(_HttpAnswerGenerator):
    """Primary generator: the LangGraph tutoring service."""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        breaker: CircuitBreaker | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        super().__init__(
            name="primary-generator",
            url=f"{base_url or settings.primary_generator_url}/api/chat",
            timeout=timeout,
            breaker=breaker,
            transport=transport,
        )

    @classmethod
    def create(cls) -> "LangGraphAnswerGenerator":
        return cls()

    def _request(self, question: str, context: dict[str, Any]) -> str:
        payload = {
            "question": question,
            "student_profile": {
                "target_university": context.get("target_university") or "미지정",
                "track": context.get("track") or "계열 미지정",
            },
        }
        response = self._client.post(self._url, json=payload)
        response.raise_for_status()
        return response.json()["final_answer"]


class GeminiAnswerGenerator(_HttpAnswerGenerator):
    """Fallback generator: a single Gemini generateContent call."""

    def __init__(
        self,
        url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        breaker: CircuitBreaker | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        super().__init__(
            name="fallback-generator",
            url=url or settings.fallback_generator_url,
            timeout=timeout,
            breaker=breaker,
            transport=transport,
        )
        self._api_key = api_key or settings.gemini_api_key or ""

    @classmethod
    def create(cls) -> "GeminiAnswerGenerator":
        return cls()

    def _request(self, question: str, context: dict[str, Any]) -> str:
        prompt = question
        if context.get("target_university"):
            prompt = f"[목표대학: {context['target_university']}]\n{question}"
        payload = {"contents": [{"parts": [{"text": prompt}]}]}
        response = self._client.post(
            self._url,
            json=payload,
            headers={"x-goog-api-key": self._api_key},
        )
        response.raise_for_status()
        candidates = response.json()["candidates"]
        return candidates[0]["content"]["parts"][0]["text"]
