# ABOUTME: Services layer for infrastructure concerns.
# ABOUTME: Provides HTTP pooling, caching, LLM inference, and request logging.

from questionrank.services.cache import (
    InMemoryCache,
    KeyValueCache,
    RedisCache,
    ResilientCache,
    create_cache,
)
from questionrank.services.http import HTTPClientManager
from questionrank.services.llm import (
    GenerationParams,
    InferenceClient,
    MLXClient,
    OllamaClient,
    create_inference_client,
)
from questionrank.services.request_log import (
    CacheRequestLog,
    NullRequestLog,
    RequestLogEntry,
)

__all__ = [
    "InMemoryCache",
    "KeyValueCache",
    "RedisCache",
    "ResilientCache",
    "create_cache",
    "HTTPClientManager",
    "GenerationParams",
    "InferenceClient",
    "MLXClient",
    "OllamaClient",
    "create_inference_client",
    "CacheRequestLog",
    "NullRequestLog",
    "RequestLogEntry",
]
