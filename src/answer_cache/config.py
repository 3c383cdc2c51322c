import os
from dataclasses import dataclass
from functools import lru_cache

import redis
from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class Settings:
    """Application settings loaded from environment variables."""

    # Redis
    redis_url: str = os.getenv("REDIS_URL", "redis://localhost:6379")
    redis_password: str | None = os.getenv("REDIS_PASSWORD")
    key_prefix: str = os.getenv("CACHE_KEY_PREFIX", "answer_cache")

    # Cache
    similarity_threshold: float = float(os.getenv("CACHE_SIMILARITY_THRESHOLD", "0.85"))
    min_candidate_confidence: float = float(os.getenv("CACHE_MIN_CANDIDATE_CONFIDENCE", "0.7"))
    candidate_window: int = int(os.getenv("CACHE_CANDIDATE_WINDOW", "200"))
    cache_ttl: int = int(os.getenv("CACHE_TTL", "604800"))  # 7 days default
    default_confidence: float = float(os.getenv("CACHE_DEFAULT_CONFIDENCE", "0.5"))

    # Generation lock
    lock_ttl: int = int(os.getenv("GENERATION_LOCK_TTL", "600"))
    wait_timeout: float = float(os.getenv("GENERATION_WAIT_TIMEOUT", "30"))
    poll_interval: float = float(os.getenv("GENERATION_POLL_INTERVAL", "0.5"))

    # Embedding
    embedding_provider: str = os.getenv("EMBEDDING_PROVIDER", "ollama")
    # Unset means the chosen provider's own default model
    embedding_model: str | None = os.getenv("EMBEDDING_MODEL") or None
    ollama_base_url: str = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434")

    # Generators
    primary_generator_url: str = os.getenv("PRIMARY_GENERATOR_URL", "http://localhost:8001")
    fallback_generator_url: str = os.getenv(
        "FALLBACK_GENERATOR_URL",
        "https://generativelanguage.googleapis.com/v1beta/models/gemini-2.0-flash:generateContent",
    )
    gemini_api_key: str | None = os.getenv("GEMINI_API_KEY")
    generator_timeout: float = float(os.getenv("GENERATOR_TIMEOUT", "120"))
    breaker_fail_max: int = int(os.getenv("BREAKER_FAIL_MAX", "5"))
    breaker_reset_timeout: int = int(os.getenv("BREAKER_RESET_TIMEOUT", "60"))

    # Batch processing
    batch_lookback_minutes: int = int(os.getenv("BATCH_LOOKBACK_MINUTES", "30"))

    # API
    api_host: str = os.getenv("API_HOST", "0.0.0.0")
    api_port: int = int(os.getenv("API_PORT", "8000"))
    api_reload: bool = os.getenv("API_RELOAD", "true").lower() == "true"
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    def __post_init__(self) -> None:
        """Validate settings after initialization."""
        if not 0 <= self.similarity_threshold <= 1:
            raise ValueError("CACHE_SIMILARITY_THRESHOLD must be between 0 and 1 for cosine similarity")

        if not 0 <= self.min_candidate_confidence <= 1:
            raise ValueError("CACHE_MIN_CANDIDATE_CONFIDENCE must be between 0 and 1")

        if self.candidate_window <= 0:
            raise ValueError(f"CACHE_CANDIDATE_WINDOW must be positive, got {self.candidate_window}")

        if self.embedding_provider not in ("ollama", "local"):
            raise ValueError(
                f"EMBEDDING_PROVIDER must be one of ['ollama', 'local'], got {self.embedding_provider}"
            )

        # A lock that expires mid-generation lets a second worker start a duplicate call
        if self.lock_ttl <= self.generator_timeout:
            raise ValueError("GENERATION_LOCK_TTL must exceed GENERATOR_TIMEOUT")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


def get_redis_client() -> redis.Redis:
    """Create a Redis client instance."""
    return redis.from_url(
        settings.redis_url,
        password=settings.redis_password,
        decode_responses=True,
    )
