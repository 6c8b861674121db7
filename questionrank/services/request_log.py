# ABOUTME: Observability sink for LLM inference calls.
# ABOUTME: Appends request records to a capped cache list; read back for diagnostics.

import logging
from datetime import datetime, timezone
from typing import Protocol

from pydantic import BaseModel, Field, ValidationError

from questionrank.services.cache import KeyValueCache

logger = logging.getLogger(__name__)

LLM_LOG_KEY = "llm_requests_log"


class RequestLogEntry(BaseModel):
    """One inference call, successful or not."""

    method_name: str
    prompt: str
    response: str | None = None
    elapsed_ms: int
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    model: str
    success: bool


class RequestLogSink(Protocol):
    """Destination for request log entries."""

    async def record(self, entry: RequestLogEntry) -> None: ...
    async def entries(self) -> list[RequestLogEntry]: ...


class NullRequestLog:
    """Sink that discards every entry."""

    async def record(self, entry: RequestLogEntry) -> None:
        return None

    async def entries(self) -> list[RequestLogEntry]:
        return []


class CacheRequestLog:
    """Sink that appends entries to a bounded list in the cache."""

    def __init__(
        self,
        cache: KeyValueCache,
        key: str = LLM_LOG_KEY,
        max_entries: int | None = None,
    ):
        self._cache = cache
        self._key = key
        self._max_entries = max_entries

    async def record(self, entry: RequestLogEntry) -> None:
        await self._cache.append_to_list(self._key, entry, self._max_entries)

    async def entries(self) -> list[RequestLogEntry]:
        """Read back logged entries for diagnostics, skipping malformed ones."""
        result = []
        for item in await self._cache.read_list(self._key):
            try:
                result.append(RequestLogEntry.model_validate(item))
            except ValidationError:
                logger.debug(f"Skipping malformed request log entry in '{self._key}'")
        return result
