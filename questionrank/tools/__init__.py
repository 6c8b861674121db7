# ABOUTME: Upstream search provider client and its data model.
# ABOUTME: Wraps the Stack Exchange question search endpoint.

from questionrank.tools.base import APIError, Question, RecentQuestion, SearchResponse
from questionrank.tools.stackexchange import StackExchangeClient

__all__ = [
    "APIError",
    "Question",
    "RecentQuestion",
    "SearchResponse",
    "StackExchangeClient",
]
