# ABOUTME: Bounded-concurrency LLM reranking of candidate questions.
# ABOUTME: Drops zero scores, sorts by score descending, and stamps relevanceScore.

import asyncio
import logging
from typing import Protocol

from questionrank.config import config
from questionrank.tools.base import Question

logger = logging.getLogger(__name__)


class Scorer(Protocol):
    async def score(self, question: Question, base_question: str) -> tuple[int, int]: ...


async def _score_with_permit(
    scorer: Scorer,
    question: Question,
    base_question: str,
    semaphore: asyncio.Semaphore,
) -> tuple[int, int]:
    async with semaphore:
        return await scorer.score(question, base_question)


def order_by_scores(items: list[Question], scores: dict[int, int]) -> list[Question]:
    """
    Keep items with a positive score and sort them by score, highest first.

    Ties keep their input order. Survivors get relevance_score set to the
    stringified score; dropped items are left untouched.
    """
    ranked = [
        item for item in items if scores.get(item.question_id, 0) > 0
    ]
    ranked.sort(key=lambda item: scores[item.question_id], reverse=True)

    for item in ranked:
        item.relevance_score = str(scores[item.question_id])

    return ranked


async def rerank_questions(
    items: list[Question],
    base_question: str,
    scorer: Scorer,
    max_concurrency: int | None = None,
) -> list[Question] | None:
    """
    Rerank questions by LLM relevance to a base question.

    Args:
        items: Candidate questions from the search provider.
        base_question: The user's question title.
        scorer: Per-candidate relevance scorer.
        max_concurrency: Cap on in-flight scoring calls (default from config).

    Returns:
        Filtered, reordered questions, or None if aggregation failed and the
        caller should fall back to the original order.
    """
    if not items:
        return []

    limit = max_concurrency or config.RERANK_MAX_CONCURRENCY
    semaphore = asyncio.Semaphore(limit)

    try:
        results = await asyncio.gather(
            *(_score_with_permit(scorer, item, base_question, semaphore) for item in items)
        )
        scores = dict(results)
        logger.info(
            "LLM scoring results: "
            + ", ".join(f"ID:{qid}={score}" for qid, score in scores.items())
        )
        ranked = order_by_scores(items, scores)
        logger.debug(f"Reranked {len(items)} questions, kept {len(ranked)}")
        return ranked
    except Exception as e:
        logger.error(f"LLM reranking failed, keeping original order: {e}")
        return None
