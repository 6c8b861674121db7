# ABOUTME: LLM relevance scoring and bounded-concurrency reranking.
# ABOUTME: Deterministic ordering from a complete score vector.

from questionrank.scoring.scorer import RelevanceScorer, extract_score
from questionrank.scoring.reranker import order_by_scores, rerank_questions

__all__ = [
    "RelevanceScorer",
    "extract_score",
    "order_by_scores",
    "rerank_questions",
]
