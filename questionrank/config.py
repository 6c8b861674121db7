# ABOUTME: Configuration management for the question reranking service.
# ABOUTME: Loads settings from environment variables with sensible defaults.

import os
from dotenv import load_dotenv

load_dotenv()


class Config:
    """Application configuration."""

    # Cache settings
    CACHE_BACKEND: str = os.getenv("CACHE_BACKEND", "memory")
    REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    CACHE_MAX_SIZE: int = int(os.getenv("CACHE_MAX_SIZE", "1000"))
    SIMILAR_TTL: int = int(os.getenv("SIMILAR_TTL", "300"))
    RANKED_TTL: int = int(os.getenv("RANKED_TTL", "600"))
    RECENT_QUESTIONS_MAX: int = int(os.getenv("RECENT_QUESTIONS_MAX", "1000"))
    REQUEST_LOG_MAX: int = int(os.getenv("REQUEST_LOG_MAX", "5000"))
    SHARED_CACHE_NAMESPACE: bool = (
        os.getenv("SHARED_CACHE_NAMESPACE", "true").lower() == "true"
    )
    RANKED_FORCE_REFRESH: bool = (
        os.getenv("RANKED_FORCE_REFRESH", "false").lower() == "true"
    )

    # Inference backend settings
    LLM_BACKEND: str = os.getenv("LLM_BACKEND", "mlx")
    OLLAMA_BASE_URL: str = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434/")
    OLLAMA_MODEL: str = os.getenv("OLLAMA_MODEL", "phi3:3.8b")
    MLX_BASE_URL: str = os.getenv("MLX_BASE_URL", "http://localhost:8000/")
    MLX_MODEL: str = os.getenv("MLX_MODEL", "Qwen2.5-7B-bf16")
    LLM_TIMEOUT: float = float(os.getenv("LLM_TIMEOUT", "30.0"))

    # Scoring settings
    SCORE_MAX_TOKENS: int = int(os.getenv("SCORE_MAX_TOKENS", "3"))
    SCORE_TEMPERATURE: float = float(os.getenv("SCORE_TEMPERATURE", "0.7"))
    ANSWER_MAX_TOKENS: int = int(os.getenv("ANSWER_MAX_TOKENS", "100"))
    RERANK_MAX_CONCURRENCY: int = int(os.getenv("RERANK_MAX_CONCURRENCY", "15"))

    # Upstream API settings
    API_TIMEOUT: float = float(os.getenv("API_TIMEOUT", "10.0"))
    STACKEXCHANGE_USER_AGENT: str = os.getenv(
        "STACKEXCHANGE_USER_AGENT", "MyApp/1.0 (https://example.com)"
    )

    # HTTP pooling settings
    HTTP_MAX_CONNECTIONS: int = int(os.getenv("HTTP_MAX_CONNECTIONS", "20"))
    HTTP_MAX_KEEPALIVE: int = int(os.getenv("HTTP_MAX_KEEPALIVE", "10"))

    @classmethod
    def validate(cls) -> None:
        """Validate configuration values."""
        if cls.CACHE_BACKEND.lower() not in ("memory", "redis"):
            raise ValueError(f"Unsupported CACHE_BACKEND: {cls.CACHE_BACKEND}")
        if cls.LLM_BACKEND.lower() not in ("ollama", "mlx"):
            raise ValueError(f"Unsupported LLM_BACKEND: {cls.LLM_BACKEND}")
        if cls.RERANK_MAX_CONCURRENCY < 1:
            raise ValueError("RERANK_MAX_CONCURRENCY must be at least 1")


config = Config()
