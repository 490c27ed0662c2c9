"""Tokenization for lexical similarity."""

import re
from collections.abc import Iterable
from typing import Optional

from .config import DEFAULT_STOP_WORDS

# Anything outside ASCII letters and digits separates tokens, including
# non-ASCII letters.
_SEPARATOR_RE = re.compile(r"[^a-z0-9]+")


def normalize(
    text: str,
    stop_words: Iterable[str] = DEFAULT_STOP_WORDS,
    min_length: int = 3,
) -> frozenset[str]:
    """
    Reduce free text to its set of meaningful words.

    Lowercases, splits on non-alphanumerics, and drops tokens shorter than
    ``min_length`` or present in ``stop_words``.

    >>> sorted(normalize("Add the caching layer to our API"))
    ['add', 'api', 'caching', 'layer']
    """
    if not text:
        return frozenset()
    return frozenset(
        word for word in _SEPARATOR_RE.split(text.lower())
        if len(word) >= min_length and word not in stop_words
    )


class TokenCache:
    """Memoizes normalize() for one pass over a set of items."""

    def __init__(self, stop_words: Iterable[str] = DEFAULT_STOP_WORDS, min_length: int = 3):
        self._stop_words = frozenset(stop_words)
        self._min_length = min_length
        self._tokens: dict[str, frozenset[str]] = {}
        self.misses = 0

    def get(self, text: Optional[str]) -> frozenset[str]:
        if not text:
            return frozenset()
        tokens = self._tokens.get(text)
        if tokens is None:
            self.misses += 1
            tokens = normalize(text, self._stop_words, self._min_length)
            self._tokens[text] = tokens
        return tokens
