# ABOUTME: LLM relevance scoring of one candidate question against a base question.
# ABOUTME: Extracts a 0-100 integer from free-text model output; never raises.

import logging
import re

from langchain_core.prompts import PromptTemplate

from questionrank.config import config
from questionrank.services.llm import InferenceClient
from questionrank.tools.base import Question

logger = logging.getLogger(__name__)

MIN_SCORE = 0
MAX_SCORE = 100

_SCORE_PATTERN = re.compile(r"\b(\d{1,3})\b")

SCORING_PROMPT = PromptTemplate.from_template(
    """You are an expert at measuring question similarity and relevance.
Base Question='{base_question}'
Compare Question='{compare_question}'

Rate the similarity and relevance of the 'Compare Question' to the 'Base Question' on a scale of 0-100:
- 0-20: Completely unrelated
- 21-40: Somewhat related but different focus
- 41-60: Related with some overlap
- 61-80: Highly related with significant overlap
- 81-100: Very similar or identical intent

Return ONLY the numerical score (0-100). No explanations or additional text.
"""
)


def clamp_score(value: int) -> int:
    return max(MIN_SCORE, min(MAX_SCORE, value))


def extract_score(text: str | None) -> int:
    """
    Extract a relevance score from raw model output.

    Takes the first standalone 1-3 digit number, falling back to parsing the
    whole text as an integer. Anything else scores 0. Always in [0, 100].
    """
    if text is None or not text.strip():
        return MIN_SCORE

    match = _SCORE_PATTERN.search(text)
    if match:
        return clamp_score(int(match.group(1)))

    try:
        return clamp_score(int(text.strip()))
    except ValueError:
        logger.warning(f"Could not extract valid score from LLM response: {text!r}")
        return MIN_SCORE


def build_scoring_prompt(question: Question, base_question: str) -> str:
    compare = question.title.replace("\n", " ").replace("\r", "")
    return SCORING_PROMPT.format(base_question=base_question, compare_question=compare)


class RelevanceScorer:
    """Scores candidate questions with an inference backend."""

    def __init__(
        self,
        inference: InferenceClient,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ):
        self._inference = inference
        self._max_tokens = max_tokens or config.SCORE_MAX_TOKENS
        self._temperature = (
            temperature if temperature is not None else config.SCORE_TEMPERATURE
        )

    async def score(self, question: Question, base_question: str) -> tuple[int, int]:
        """Return (question_id, score); failures score 0."""
        try:
            prompt = build_scoring_prompt(question, base_question)
            params = self._inference.params(self._max_tokens, self._temperature)
            raw = await self._inference.generate(prompt, params)
            score = extract_score(raw)
            logger.debug(f"Score for question {question.question_id}: {score} (raw={raw!r})")
            return question.question_id, score
        except Exception as e:
            logger.error(f"Failed to score question {question.question_id}: {e}")
            return question.question_id, MIN_SCORE
