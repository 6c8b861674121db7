# ABOUTME: Similar Stack Overflow question search with LLM relevance reranking.
# ABOUTME: Cache-backed question lookup, bounded-concurrency scoring, and reranking.

__version__ = "0.1.0"
