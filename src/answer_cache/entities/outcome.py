"""Result of a generate_response call."""

from dataclasses import dataclass
from enum import Enum

from .generation_record import GenerationRecordEntity


class OutcomeKind(str, Enum):
    EXISTING = "existing"
    CACHE_HIT = "cache_hit"
    GENERATED = "generated"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class GenerationOutcome:
    """Tagged result: how the record for a message was obtained."""

    kind: OutcomeKind
    record: GenerationRecordEntity

    @property
    def generator_called(self) -> bool:
        return self.kind in (OutcomeKind.GENERATED, OutcomeKind.FALLBACK)
