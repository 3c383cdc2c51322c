"""Answer generator protocol.

Generators are remote text-generation backends. Each implementation is
expected to wrap its own calls in a circuit breaker; callers only see
success or an UpstreamUnavailable failure.
"""

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class AnswerGenerator(Protocol):
    @property
    def name(self) -> str:
        """Identifier used in logs and errors."""
        ...

    async def generate(self, question: str, context: dict[str, Any]) -> str:
        """Produce an answer for `question`.

        Raises:
            UpstreamUnavailable: If the backend fails, times out or is short-circuited
        """
        ...
