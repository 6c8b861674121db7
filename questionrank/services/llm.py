# ABOUTME: LLM inference client with streaming (Ollama) and single-shot (MLX) backends.
# ABOUTME: generate() returns stripped text or None; every call is recorded to the request log.

import asyncio
import json
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import httpx

from questionrank.config import config
from questionrank.services.http import HTTPClientManager
from questionrank.services.request_log import (
    NullRequestLog,
    RequestLogEntry,
    RequestLogSink,
)

logger = logging.getLogger(__name__)

# Fields a single-shot backend may put the generated text under, in priority order.
MLX_TEXT_FIELDS = ("text", "response", "result")


@dataclass(frozen=True)
class GenerationParams:
    """Per-call generation constraints."""

    model: str
    max_tokens: int
    temperature: float


class InferenceClient(ABC):
    """Base class for LLM inference backends.

    Subclasses implement the wire protocol in ``_complete``; this class owns
    the deadline, error handling, whitespace handling and request logging.
    """

    backend_name: str = "llm"

    def __init__(
        self,
        base_url: str,
        default_model: str,
        http: HTTPClientManager | None = None,
        request_log: RequestLogSink | None = None,
        timeout: float | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.default_model = default_model
        self._http = http or HTTPClientManager.get_instance()
        self._request_log = request_log or NullRequestLog()
        self._timeout = timeout if timeout is not None else config.LLM_TIMEOUT

    def params(
        self,
        max_tokens: int,
        temperature: float | None = None,
        model: str | None = None,
    ) -> GenerationParams:
        """Build generation params, filling in this backend's defaults."""
        return GenerationParams(
            model=model or self.default_model,
            max_tokens=max_tokens,
            temperature=temperature if temperature is not None else config.SCORE_TEMPERATURE,
        )

    @abstractmethod
    async def _complete(
        self, client: httpx.AsyncClient, prompt: str, params: GenerationParams
    ) -> str:
        """Send the prompt and return the raw, unstripped text."""

    async def generate(self, prompt: str, params: GenerationParams) -> str | None:
        """
        Generate a completion for the prompt.

        Args:
            prompt: Full prompt text.
            params: Model name, token budget and temperature.

        Returns:
            Stripped response text, or None on empty output or any failure.
        """
        start = time.perf_counter()
        text: str | None = None

        try:
            logger.debug(f"{self.backend_name} prompt: {prompt}")
            client = await self._http.get_client()
            raw = await asyncio.wait_for(
                self._complete(client, prompt, params), timeout=self._timeout
            )
            text = (raw or "").strip() or None
            if text is None:
                logger.warning(f"{self.backend_name} LLM returned empty response")
            else:
                logger.debug(f"{self.backend_name} raw response: {text}")
        except asyncio.TimeoutError:
            logger.error(
                f"{self.backend_name} LLM call timed out after "
                f"{self._elapsed_ms(start)}ms for prompt: {prompt!r}"
            )
        except Exception as e:
            logger.error(
                f"{self.backend_name} LLM call failed after "
                f"{self._elapsed_ms(start)}ms for prompt {prompt!r}: {e}"
            )

        await self._record(prompt, text, params, self._elapsed_ms(start))
        return text

    async def _record(
        self,
        prompt: str,
        response: str | None,
        params: GenerationParams,
        elapsed_ms: int,
    ) -> None:
        entry = RequestLogEntry(
            method_name=f"{self.backend_name}_generate",
            prompt=prompt,
            response=response,
            elapsed_ms=elapsed_ms,
            model=params.model,
            success=response is not None,
        )
        try:
            await self._request_log.record(entry)
        except Exception as e:
            logger.error(f"Failed to log LLM request: {e}")

    @staticmethod
    def _elapsed_ms(start: float) -> int:
        return int((time.perf_counter() - start) * 1000)


class OllamaClient(InferenceClient):
    """Streaming backend: POST /api/generate returns NDJSON fragments."""

    backend_name = "ollama"

    async def _complete(
        self, client: httpx.AsyncClient, prompt: str, params: GenerationParams
    ) -> str:
        payload = {"model": params.model, "prompt": prompt}
        parts: list[str] = []

        async with client.stream(
            "POST", f"{self.base_url}/api/generate", json=payload, timeout=self._timeout
        ) as response:
            response.raise_for_status()
            async for line in response.aiter_lines():
                if not line.strip():
                    continue
                fragment = json.loads(line).get("response")
                if fragment:
                    parts.append(fragment)

        return "".join(parts)


class MLXClient(InferenceClient):
    """Single-shot backend: POST /generate returns one JSON document."""

    backend_name = "mlx"

    async def _complete(
        self, client: httpx.AsyncClient, prompt: str, params: GenerationParams
    ) -> str:
        payload = {
            "prompt": prompt,
            "model_name": params.model,
            "max_tokens": params.max_tokens,
            "temperature": params.temperature,
        }
        response = await client.post(
            f"{self.base_url}/generate", json=payload, timeout=self._timeout
        )
        response.raise_for_status()
        return extract_text(response.json())


def extract_text(data: Any) -> str:
    """Pull generated text out of a single-shot response body."""
    if not isinstance(data, dict):
        raise ValueError(f"Unexpected response body type: {type(data).__name__}")
    for field in MLX_TEXT_FIELDS:
        value = data.get(field)
        if isinstance(value, str):
            return value
    return ""


def create_inference_client(
    backend: str | None = None,
    http: HTTPClientManager | None = None,
    request_log: RequestLogSink | None = None,
) -> InferenceClient:
    """Build the configured inference backend."""
    name = (backend or config.LLM_BACKEND).lower()
    if name == "ollama":
        return OllamaClient(
            config.OLLAMA_BASE_URL, config.OLLAMA_MODEL, http=http, request_log=request_log
        )
    if name == "mlx":
        return MLXClient(
            config.MLX_BASE_URL, config.MLX_MODEL, http=http, request_log=request_log
        )
    raise ValueError(f"Unknown LLM backend: {name}")
