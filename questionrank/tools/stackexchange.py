# ABOUTME: Async HTTP client for the Stack Exchange question search API.
# ABOUTME: Returns raw response text for caching and parses it into SearchResponse.

import logging
from typing import Any
from urllib.parse import urlencode

import httpx
from pydantic import ValidationError

from questionrank.config import config
from questionrank.services.http import HTTPClientManager
from questionrank.tools.base import APIError, SearchResponse

logger = logging.getLogger(__name__)


class StackExchangeClient:
    """Client for /2.3/search/advanced on stackoverflow."""

    def __init__(
        self,
        http: HTTPClientManager | None = None,
        user_agent: str | None = None,
        site: str = "stackoverflow",
    ):
        self.base_url = "https://api.stackexchange.com/2.3"
        self.site = site
        self.user_agent = user_agent or config.STACKEXCHANGE_USER_AGENT
        self._http = http or HTTPClientManager.get_instance()

    def build_url(self, title: str) -> str:
        """Build the search URL for a question title."""
        params: dict[str, Any] = {
            "order": "desc",
            "sort": "relevance",
            "q": title,
            "site": self.site,
        }
        return f"{self.base_url}/search/advanced?{urlencode(params)}"

    async def _fetch(self, url: str) -> str:
        """Execute HTTP GET request and return the body text."""
        client = await self._http.get_client()
        response = await client.get(url, headers={"User-Agent": self.user_agent})
        response.raise_for_status()
        return response.text

    async def fetch_raw(self, title: str) -> str:
        """
        Search questions similar to a title.

        Args:
            title: Question title to search for.

        Returns:
            Raw JSON response body.

        Raises:
            APIError: On timeout, HTTP error, or connection failure.
        """
        url = self.build_url(title)

        try:
            return await self._fetch(url)
        except httpx.TimeoutException as e:
            raise APIError(f"Request timeout searching '{title}': {e}") from e
        except httpx.HTTPStatusError as e:
            raise APIError(
                f"HTTP error {e.response.status_code} searching '{title}': {e}"
            ) from e
        except httpx.HTTPError as e:
            raise APIError(f"Request failed searching '{title}': {e}") from e

    @staticmethod
    def parse_response(text: str) -> SearchResponse:
        """Parse a raw response body; raises APIError on malformed payloads."""
        try:
            return SearchResponse.model_validate_json(text)
        except ValidationError as e:
            raise APIError(f"Malformed search response: {e}") from e

    async def search(self, title: str) -> SearchResponse:
        """Fetch and parse in one step."""
        return self.parse_response(await self.fetch_raw(title))
