# ABOUTME: Data model for Stack Exchange search results.
# ABOUTME: Candidate questions, search responses, and recent-query markers.

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class APIError(Exception):
    """Raised when a Stack Exchange API request fails."""

    pass


class Question(BaseModel):
    """One candidate question returned by the search provider.

    Unknown upstream fields are kept so cached payloads round-trip unchanged.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    question_id: int
    title: str = ""
    score: int = 0
    tags: list[str] = Field(default_factory=list)
    is_answered: bool = False
    view_count: int = 0
    answer_count: int = 0
    creation_date: int = 0
    link: str | None = None
    owner: dict[str, Any] | None = None
    relevance_score: str | None = Field(default=None, alias="relevanceScore")


class SearchResponse(BaseModel):
    """Search API envelope: the items plus paging and quota fields."""

    model_config = ConfigDict(extra="allow")

    items: list[Question] = Field(default_factory=list)
    has_more: bool = False
    quota_max: int | None = None
    quota_remaining: int | None = None

    def to_json(self) -> str:
        """Serialize with upstream field names, omitting unset quota fields."""
        return self.model_dump_json(by_alias=True, exclude_none=True)


class RecentQuestion(BaseModel):
    """A title that triggered an upstream search, and when."""

    title: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
