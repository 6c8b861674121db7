# ABOUTME: Tests for the LLM inference client backends.
# ABOUTME: Validates NDJSON streaming, single-shot field fallback, failures, timeouts, and logging.

import asyncio
import json

import httpx
import pytest

from questionrank.services.http import HTTPClientManager
from questionrank.services.llm import (
    GenerationParams,
    MLXClient,
    OllamaClient,
    create_inference_client,
    extract_text,
)
from questionrank.services.request_log import RequestLogEntry

PARAMS = GenerationParams(model="test-model", max_tokens=3, temperature=0.7)


class RecordingLog:
    """Request log sink that keeps entries in memory."""

    def __init__(self):
        self.recorded: list[RequestLogEntry] = []

    async def record(self, entry: RequestLogEntry) -> None:
        self.recorded.append(entry)

    async def entries(self) -> list[RequestLogEntry]:
        return list(self.recorded)


class BrokenLog:
    """Request log sink whose writes always fail."""

    async def record(self, entry: RequestLogEntry) -> None:
        raise ConnectionError("log store down")

    async def entries(self) -> list[RequestLogEntry]:
        return []


def manager_for(handler) -> HTTPClientManager:
    return HTTPClientManager(transport=httpx.MockTransport(handler))


class TestOllamaClient:
    """Tests for the streaming backend."""

    @pytest.mark.asyncio
    async def test_concatenates_stream_fragments(self):
        """NDJSON fragments should be joined and stripped."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            lines = [
                json.dumps({"response": " 8", "done": False}),
                "",
                json.dumps({"response": "5 ", "done": False}),
                json.dumps({"done": True}),
            ]
            return httpx.Response(200, text="\n".join(lines) + "\n")

        client = OllamaClient("http://ollama.test/", "phi3", http=manager_for(handler))
        result = await client.generate("Rate this", PARAMS)

        assert result == "85"
        assert seen["url"] == "http://ollama.test/api/generate"
        assert seen["body"] == {"model": "test-model", "prompt": "Rate this"}

    @pytest.mark.asyncio
    async def test_malformed_stream_returns_none(self):
        def handler(request):
            return httpx.Response(200, text="not json\n")

        client = OllamaClient("http://ollama.test", "phi3", http=manager_for(handler))
        assert await client.generate("prompt", PARAMS) is None


class TestMLXClient:
    """Tests for the single-shot backend."""

    @pytest.mark.asyncio
    async def test_posts_payload_and_reads_text(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"text": "  42\n"})

        client = MLXClient("http://mlx.test/", "qwen", http=manager_for(handler))
        result = await client.generate("Rate this", PARAMS)

        assert result == "42"
        assert seen["url"] == "http://mlx.test/generate"
        assert seen["body"] == {
            "prompt": "Rate this",
            "model_name": "test-model",
            "max_tokens": 3,
            "temperature": 0.7,
        }

    @pytest.mark.asyncio
    async def test_non_2xx_returns_none(self):
        def handler(request):
            return httpx.Response(500, json={"error": "boom"})

        client = MLXClient("http://mlx.test", "qwen", http=manager_for(handler))
        assert await client.generate("prompt", PARAMS) is None

    @pytest.mark.asyncio
    async def test_connection_error_returns_none(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        client = MLXClient("http://mlx.test", "qwen", http=manager_for(handler))
        assert await client.generate("prompt", PARAMS) is None

    @pytest.mark.asyncio
    async def test_whitespace_only_returns_none(self):
        def handler(request):
            return httpx.Response(200, json={"text": "   \n"})

        log = RecordingLog()
        client = MLXClient(
            "http://mlx.test", "qwen", http=manager_for(handler), request_log=log
        )

        assert await client.generate("prompt", PARAMS) is None
        assert log.recorded[0].success is False

    @pytest.mark.asyncio
    async def test_timeout_returns_none(self):
        """A hung backend call should be cut off by the deadline."""
        client = MLXClient("http://mlx.test", "qwen", http=manager_for(None), timeout=0.05)

        async def hang(*args, **kwargs):
            await asyncio.sleep(10)
            return "never"

        client._complete = hang

        assert await client.generate("prompt", PARAMS) is None


class TestExtractText:
    """Tests for single-shot response field fallback."""

    def test_prefers_text(self):
        assert extract_text({"text": "a", "response": "b", "result": "c"}) == "a"

    def test_falls_back_to_response(self):
        assert extract_text({"response": "b", "result": "c"}) == "b"

    def test_falls_back_to_result(self):
        assert extract_text({"result": "c"}) == "c"

    def test_missing_fields_is_empty(self):
        assert extract_text({"other": 1}) == ""

    def test_non_object_body_raises(self):
        with pytest.raises(ValueError):
            extract_text(["text"])


class TestRequestLogging:
    """Every call should be recorded without affecting the result."""

    @pytest.mark.asyncio
    async def test_success_is_recorded(self):
        def handler(request):
            return httpx.Response(200, json={"text": "77"})

        log = RecordingLog()
        client = MLXClient(
            "http://mlx.test", "qwen", http=manager_for(handler), request_log=log
        )
        await client.generate("prompt", PARAMS)

        entry = log.recorded[0]
        assert entry.method_name == "mlx_generate"
        assert entry.prompt == "prompt"
        assert entry.response == "77"
        assert entry.model == "test-model"
        assert entry.success is True
        assert entry.elapsed_ms >= 0

    @pytest.mark.asyncio
    async def test_failure_is_recorded(self):
        def handler(request):
            return httpx.Response(503)

        log = RecordingLog()
        client = OllamaClient(
            "http://ollama.test", "phi3", http=manager_for(handler), request_log=log
        )
        await client.generate("prompt", PARAMS)

        assert log.recorded[0].response is None
        assert log.recorded[0].success is False

    @pytest.mark.asyncio
    async def test_log_failure_does_not_affect_result(self):
        def handler(request):
            return httpx.Response(200, json={"text": "55"})

        client = MLXClient(
            "http://mlx.test", "qwen", http=manager_for(handler), request_log=BrokenLog()
        )
        assert await client.generate("prompt", PARAMS) == "55"


class TestCreateInferenceClient:
    def test_selects_ollama(self):
        client = create_inference_client("ollama", http=HTTPClientManager())
        assert isinstance(client, OllamaClient)

    def test_selects_mlx(self):
        client = create_inference_client("MLX", http=HTTPClientManager())
        assert isinstance(client, MLXClient)

    def test_unknown_backend_raises(self):
        with pytest.raises(ValueError):
            create_inference_client("gpt", http=HTTPClientManager())

    def test_params_fill_defaults(self):
        client = create_inference_client("ollama", http=HTTPClientManager())
        params = client.params(3, temperature=0.1)
        assert params.model == client.default_model
        assert params.max_tokens == 3
        assert params.temperature == 0.1
