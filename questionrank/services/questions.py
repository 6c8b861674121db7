# ABOUTME: Question lookup facade: cache check, upstream search, LLM rerank, cache write.
# ABOUTME: Also serves recent queries and LLM-suggested answers.

import logging
from typing import Any

from pydantic import ValidationError

from questionrank.config import config
from questionrank.scoring.reranker import rerank_questions
from questionrank.scoring.scorer import RelevanceScorer
from questionrank.services.cache import KeyValueCache, create_cache
from questionrank.services.http import HTTPClientManager
from questionrank.services.llm import InferenceClient, create_inference_client
from questionrank.services.request_log import CacheRequestLog
from questionrank.tools.base import APIError, RecentQuestion, SearchResponse
from questionrank.tools.stackexchange import StackExchangeClient

logger = logging.getLogger(__name__)

RECENT_QUESTIONS_KEY = "recentQuestion"

ANSWER_PROMPT = (
    "You are an expert question and answer assistant in context of Programming & "
    "Software Development. Please provide a prompt and factual answer to the "
    "following question. Answer as Plain Text, do not use Markdown or any other "
    "formatting.\n"
    "---\n"
    "question: {question}\n"
)


def normalize_title(title: str) -> str:
    return title.strip().lower()


def similar_cache_key(title: str) -> str:
    return f"similar_questions_{normalize_title(title)}"


def ranked_cache_key(title: str, shared_namespace: bool = True) -> str:
    """Cache key for reranked results; the plain key unless split out."""
    if shared_namespace:
        return similar_cache_key(title)
    return f"ranked_questions_{normalize_title(title)}"


def _require(value: str, name: str) -> None:
    if value is None or not value.strip():
        raise ValueError(f"{name} query parameter is required.")


class QuestionService:
    """Coalesces repeated title queries through the cache."""

    def __init__(
        self,
        cache: KeyValueCache,
        search_client: StackExchangeClient,
        inference: InferenceClient,
        scorer: RelevanceScorer | None = None,
        similar_ttl: int | None = None,
        ranked_ttl: int | None = None,
        shared_namespace: bool | None = None,
        force_refresh: bool | None = None,
        recent_max: int | None = None,
    ):
        self._cache = cache
        self._search = search_client
        self._inference = inference
        self._scorer = scorer or RelevanceScorer(inference)
        self._similar_ttl = similar_ttl if similar_ttl is not None else config.SIMILAR_TTL
        self._ranked_ttl = ranked_ttl if ranked_ttl is not None else config.RANKED_TTL
        self._shared_namespace = (
            shared_namespace if shared_namespace is not None else config.SHARED_CACHE_NAMESPACE
        )
        self._force_refresh = (
            force_refresh if force_refresh is not None else config.RANKED_FORCE_REFRESH
        )
        self._recent_max = recent_max if recent_max is not None else config.RECENT_QUESTIONS_MAX

    def _decode(self, raw: str | None, key: str) -> SearchResponse | None:
        if not raw:
            return None
        try:
            return SearchResponse.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Discarding malformed cached payload under '{key}': {e}")
            return None

    async def get_similar_questions(self, title: str) -> SearchResponse:
        """
        Return questions similar to a title, from cache or the search API.

        Raises:
            ValueError: If title is blank.
        """
        _require(title, "Title")
        key = similar_cache_key(title)

        cached = self._decode(await self._cache.get_string(key), key)
        if cached is not None:
            logger.debug(f"Cache hit for similar questions: {key}")
            return cached

        try:
            content = await self._search.fetch_raw(title)
            response = self._search.parse_response(content)
        except APIError as e:
            logger.error(f"Similar question search failed for '{title}': {e}")
            return SearchResponse()

        await self._cache.set_string(key, content, self._similar_ttl)
        await self._cache.append_to_list(
            RECENT_QUESTIONS_KEY, RecentQuestion(title=title), self._recent_max
        )
        return response

    async def get_ranked_questions(self, title: str) -> SearchResponse:
        """
        Return similar questions reranked by LLM relevance to the title.

        Falls back to the search order when reranking fails.

        Raises:
            ValueError: If title is blank.
        """
        _require(title, "Title")
        key = ranked_cache_key(title, self._shared_namespace)

        base: SearchResponse | None = None
        if not self._force_refresh:
            base = self._decode(await self._cache.get_string(key), key)
        if base is None:
            base = await self.get_similar_questions(title)

        if not base.items:
            return SearchResponse()

        reranked = await rerank_questions(base.items, title, self._scorer)
        final = SearchResponse(items=reranked) if reranked is not None else base

        if final.items:
            await self._cache.set_string(key, final.to_json(), self._ranked_ttl)
        return final

    async def get_recent_questions(self) -> list[RecentQuestion]:
        """Titles that triggered upstream searches, oldest first."""
        recent = []
        for item in await self._cache.read_list(RECENT_QUESTIONS_KEY):
            try:
                recent.append(RecentQuestion.model_validate(item))
            except ValidationError:
                logger.debug("Skipping malformed recent question entry")
        return recent

    async def get_suggested_answer(self, question: str) -> str | None:
        """
        Ask the LLM for a plain-text answer to a programming question.

        Raises:
            ValueError: If question is blank.
        """
        _require(question, "Question")
        prompt = ANSWER_PROMPT.format(question=question)
        params = self._inference.params(config.ANSWER_MAX_TOKENS)
        return await self._inference.generate(prompt, params)

    async def close(self) -> None:
        """Release the cache connection and the shared HTTP pool."""
        close = getattr(self._cache, "close", None)
        if close is not None:
            await close()
        await HTTPClientManager.shutdown()


def build_question_service(**overrides: Any) -> QuestionService:
    """
    Wire a QuestionService from configuration.

    Callers own the result and should await its close() on shutdown.
    """
    cache = overrides.pop("cache", None) or create_cache()
    request_log = CacheRequestLog(cache, max_entries=config.REQUEST_LOG_MAX)
    inference = overrides.pop("inference", None) or create_inference_client(
        request_log=request_log
    )
    search_client = overrides.pop("search_client", None) or StackExchangeClient()
    return QuestionService(cache, search_client, inference, **overrides)
