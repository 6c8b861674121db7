# ABOUTME: One pooled httpx.AsyncClient for every outbound call the service makes.
# ABOUTME: Stack Exchange searches and Ollama/MLX inference requests share its connections.

import asyncio
import logging
from typing import ClassVar

import httpx

from questionrank.config import config

logger = logging.getLogger(__name__)


class HTTPClientManager:
    """
    Owns the connection pool used by StackExchangeClient and InferenceClient.

    The pool is sized for a reranking burst: RERANK_MAX_CONCURRENCY scoring
    requests to the local model plus the search call that precedes them.
    The default timeout covers the search API; inference calls pass their
    own per-request timeout (LLM_TIMEOUT) on top of it.

    Tests inject an httpx.MockTransport instead of reaching the network.
    """

    _instance: ClassVar["HTTPClientManager | None"] = None

    def __init__(
        self,
        timeout: float | None = None,
        max_connections: int | None = None,
        max_keepalive_connections: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._timeout = timeout or config.API_TIMEOUT
        self._limits = httpx.Limits(
            max_connections=max_connections or config.HTTP_MAX_CONNECTIONS,
            max_keepalive_connections=max_keepalive_connections or config.HTTP_MAX_KEEPALIVE,
        )
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._client_lock = asyncio.Lock()

    @classmethod
    def get_instance(cls) -> "HTTPClientManager":
        """Process-wide manager used when a client is built without one."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def _build_client(self) -> httpx.AsyncClient:
        logger.debug(
            f"Opening HTTP pool: max_connections={self._limits.max_connections}, "
            f"timeout={self._timeout}s"
        )
        return httpx.AsyncClient(
            timeout=httpx.Timeout(self._timeout),
            limits=self._limits,
            transport=self._transport,
        )

    async def get_client(self) -> httpx.AsyncClient:
        """Return the open pool, reopening it if it was closed."""
        if self._client is None or self._client.is_closed:
            async with self._client_lock:
                if self._client is None or self._client.is_closed:
                    self._client = self._build_client()
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            logger.debug("Closing HTTP pool")
            await self._client.aclose()
        self._client = None

    @classmethod
    async def shutdown(cls) -> None:
        """Close the process-wide pool; called from QuestionService.close()."""
        if cls._instance:
            await cls._instance.close()
            cls._instance = None

    @classmethod
    def reset(cls) -> None:
        """Forget the process-wide manager without closing it."""
        cls._instance = None
