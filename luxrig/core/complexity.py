"""Keyword heuristic that labels a chat prompt simple / medium / complex.

The keyword lists, the comparison order and the thresholds are arbitrary
constants that the frontend's routing expectations depend on. Changing any
of them silently changes where prompts are served, so they stay exactly as
they are until a real classifier replaces this.
"""
from enum import Enum

COMPLEX_KEYWORDS: tuple[str, ...] = (
    "analyze",
    "complex",
    "detailed",
    "comprehensive",
    "research",
    "strategy",
    "business plan",
    "architecture",
    "design patterns",
)

SIMPLE_KEYWORDS: tuple[str, ...] = (
    "hello",
    "test",
    "simple",
    "quick",
    "comment",
    "explain",
    "summary",
    "list",
    "format",
    "fix typo",
)

COMPLEX_SCORE_THRESHOLD = 2
LONG_PROMPT_CHARS = 500


class ComplexityLabel(str, Enum):
    SIMPLE = "simple"
    MEDIUM = "medium"
    COMPLEX = "complex"

    @property
    def is_local(self) -> bool:
        return self is not ComplexityLabel.COMPLEX


def keyword_scores(prompt: str) -> tuple[int, int]:
    """Return (complex_score, simple_score) as substring hit counts."""
    lower = prompt.lower()
    complex_score = sum(1 for word in COMPLEX_KEYWORDS if word in lower)
    simple_score = sum(1 for word in SIMPLE_KEYWORDS if word in lower)
    return complex_score, simple_score


def classify(prompt: str) -> ComplexityLabel:
    complex_score, simple_score = keyword_scores(prompt)

    if simple_score > complex_score:
        return ComplexityLabel.SIMPLE
    if complex_score > COMPLEX_SCORE_THRESHOLD:
        return ComplexityLabel.COMPLEX
    if len(prompt) > LONG_PROMPT_CHARS:
        return ComplexityLabel.COMPLEX
    return ComplexityLabel.MEDIUM


def last_message_content(messages: list) -> str:
    """Text of the final chat message; only that message drives routing."""
    if not messages:
        return ""
    last = messages[-1]
    content = last.get("content") if isinstance(last, dict) else None
    return content if isinstance(content, str) else ""
