# ABOUTME: Tests for the Stack Exchange search client and data model.
# ABOUTME: Validates URL building, headers, error wrapping, and response parsing.

import json

import httpx
import pytest

from questionrank.services.http import HTTPClientManager
from questionrank.tools.base import APIError, Question, SearchResponse
from questionrank.tools.stackexchange import StackExchangeClient

SAMPLE = {
    "items": [
        {
            "question_id": 218384,
            "title": "What is a NullPointerException, and how do I fix it?",
            "score": 210,
            "tags": ["java", "nullpointerexception"],
            "is_answered": True,
            "view_count": 4000000,
            "answer_count": 12,
            "creation_date": 1224800471,
            "link": "https://stackoverflow.com/q/218384",
            "owner": {"display_name": "Ziggy", "reputation": 100},
            "content_license": "CC BY-SA 4.0",
        }
    ],
    "has_more": True,
    "quota_max": 300,
    "quota_remaining": 287,
}


def client_for(handler) -> StackExchangeClient:
    manager = HTTPClientManager(transport=httpx.MockTransport(handler))
    return StackExchangeClient(http=manager, user_agent="TestAgent/1.0")


class TestQuestionModel:

    def test_relevance_score_uses_camel_case_alias(self):
        question = Question(question_id=1, title="t")
        question.relevance_score = "85"
        dumped = question.model_dump(by_alias=True)
        assert dumped["relevanceScore"] == "85"

    def test_unknown_fields_pass_through(self):
        response = SearchResponse.model_validate(SAMPLE)
        dumped = json.loads(response.to_json())
        assert dumped["items"][0]["content_license"] == "CC BY-SA 4.0"
        assert dumped["quota_remaining"] == 287


class TestStackExchangeClient:

    def test_build_url(self):
        client = StackExchangeClient(http=HTTPClientManager())
        url = client.build_url("null pointer exception java")

        assert url.startswith("https://api.stackexchange.com/2.3/search/advanced?")
        assert "order=desc" in url
        assert "sort=relevance" in url
        assert "q=null+pointer+exception+java" in url
        assert "site=stackoverflow" in url

    @pytest.mark.asyncio
    async def test_fetch_raw_sends_user_agent(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["user_agent"] = request.headers["User-Agent"]
            return httpx.Response(200, json=SAMPLE)

        raw = await client_for(handler).fetch_raw("npe")

        assert seen["user_agent"] == "TestAgent/1.0"
        assert json.loads(raw)["quota_remaining"] == 287

    @pytest.mark.asyncio
    async def test_search_parses_items(self):
        client = client_for(lambda request: httpx.Response(200, json=SAMPLE))
        response = await client.search("npe")

        assert response.has_more is True
        assert response.items[0].question_id == 218384
        assert response.items[0].tags == ["java", "nullpointerexception"]
        assert response.items[0].relevance_score is None

    @pytest.mark.asyncio
    async def test_http_error_raises_api_error(self):
        client = client_for(lambda request: httpx.Response(502))
        with pytest.raises(APIError, match="502"):
            await client.fetch_raw("npe")

    @pytest.mark.asyncio
    async def test_timeout_raises_api_error(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(APIError, match="timeout"):
            await client_for(handler).fetch_raw("npe")

    def test_parse_malformed_raises_api_error(self):
        with pytest.raises(APIError):
            StackExchangeClient.parse_response("<html>")
