"""
Lexical similarity between work items.

Three independent measures, each in [0, 1]:
- text: Jaccard index over normalized word sets
- tags: case-insensitive Jaccard index over tag sets
- schedule: lookup in a fixed compatibility table
"""

from collections.abc import Iterable
from typing import Optional

from .config import ConsolidationConfig
from .text import TokenCache
from .types import value_of


def jaccard(a: Iterable[str], b: Iterable[str]) -> float:
    """|A & B| / |A | B|, or 0.0 when both are empty."""
    a, b = set(a), set(b)
    union = a | b
    if not union:
        return 0.0
    return len(a & b) / len(union)


class SimilarityScorer:
    """Computes the sub-scores that feed the composite similarity."""

    def __init__(self, config: Optional[ConsolidationConfig] = None):
        self.config = config or ConsolidationConfig()

    def tokens(self) -> TokenCache:
        """A fresh token cache using this scorer's stop words and token length."""
        return TokenCache(self.config.stop_words, self.config.min_token_length)

    def text_similarity(self, a: str, b: str, cache: Optional[TokenCache] = None) -> float:
        """
        Jaccard similarity of two texts' word sets.

        An empty side is "no evidence", not a match: returns 0.0.
        """
        if not a or not b:
            return 0.0
        cache = cache or self.tokens()
        words_a, words_b = cache.get(a), cache.get(b)
        if not words_a or not words_b:
            return 0.0
        return jaccard(words_a, words_b)

    @staticmethod
    def tag_similarity(a: Iterable[str], b: Iterable[str]) -> float:
        """
        Case-insensitive Jaccard similarity of two tag sets.

        Two untagged items are trivially compatible (1.0); if only one
        side has tags the score is 0.0.
        """
        tags_a = {t.lower() for t in a}
        tags_b = {t.lower() for t in b}
        if not tags_a and not tags_b:
            return 1.0
        if not tags_a or not tags_b:
            return 0.0
        return jaccard(tags_a, tags_b)

    def schedule_compatibility(self, s1: str, s2: str) -> float:
        """1.0 for equal schedules, else the table entry (0.0 if unmapped)."""
        s1, s2 = value_of(s1), value_of(s2)
        if s1 == s2:
            return 1.0
        return self.config.schedule_compatibility.get((s1, s2), 0.0)
