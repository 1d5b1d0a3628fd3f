"""Token estimation helpers.

Budget comparisons throughout the package use a cheap word/punctuation
heuristic rather than a real tokenizer.  The numbers are only ever compared
against other estimates, so they need to be monotonic and stable, not
billing-accurate.

Functions
---------
- estimate_tokens     — approximate token count for a span of text
- tokens_to_chars     — approximate character budget for a token budget
- word_count          — whitespace-delimited word count
- truncate_to_tokens  — cut text to a token budget at a sentence or word edge

Classes
-------
- TokenEstimator  — object wrapper so the ratios can be tuned per caller
"""
from __future__ import annotations

import math
import re

_TOKENS_PER_WORD: float = 1.3
_TOKENS_PER_PUNCTUATION: float = 0.5
_CHARS_PER_TOKEN: int = 4

_PUNCTUATION_RE = re.compile(r"[.,!?;:'\"()\[\]{}]")


def word_count(text: str) -> int:
    """Return the number of whitespace-delimited words in ``text``."""
    return len(text.split())


def estimate_tokens(text: str) -> int:
    """Approximate the model token cost of ``text``.

    Words count ~1.3 tokens each and every punctuation character adds half a
    token.  The result is ceiling-rounded; the empty string costs 0.

    Parameters
    ----------
    text:
        Any string.

    Returns
    -------
    int
        Estimated token count.
    """
    words = word_count(text)
    punctuation = len(_PUNCTUATION_RE.findall(text))
    return math.ceil(words * _TOKENS_PER_WORD + punctuation * _TOKENS_PER_PUNCTUATION)


def tokens_to_chars(tokens: int) -> int:
    """Return the approximate character budget for ``tokens`` tokens."""
    return tokens * _CHARS_PER_TOKEN


def truncate_to_tokens(text: str, max_tokens: int) -> str:
    """Truncate ``text`` so that its estimate fits within ``max_tokens``.

    The cut lands on the last complete sentence when one ends in the second
    half of the allowed span, otherwise on the last word boundary.  Text
    already within budget is returned unchanged.

    Parameters
    ----------
    text:
        Text to truncate.
    max_tokens:
        Target token budget.

    Returns
    -------
    str
        The (possibly) shortened text.
    """
    current = estimate_tokens(text)
    if current <= max_tokens:
        return text

    ratio = max_tokens / current
    # 5% headroom so the shortened text does not land exactly on the limit.
    target_chars = int(len(text) * ratio * 0.95)
    truncated = text[:target_chars]

    last_sentence = truncated.rfind(". ")
    if last_sentence > target_chars * 0.5:
        return truncated[: last_sentence + 1]

    last_space = truncated.rfind(" ")
    if last_space == -1:
        return truncated
    return truncated[:last_space]


class TokenEstimator:
    """Configurable token estimator.

    The module-level functions use the default ratios; instantiate this
    class to experiment with different weights without touching callers.

    Parameters
    ----------
    tokens_per_word:
        Token weight per whitespace-delimited word.  Default: 1.3.
    tokens_per_punctuation:
        Token weight per punctuation character.  Default: 0.5.
    chars_per_token:
        Characters per token used by ``tokens_to_chars``.  Default: 4.
    """

    def __init__(
        self,
        tokens_per_word: float = _TOKENS_PER_WORD,
        tokens_per_punctuation: float = _TOKENS_PER_PUNCTUATION,
        chars_per_token: int = _CHARS_PER_TOKEN,
    ) -> None:
        if tokens_per_word <= 0:
            raise ValueError(f"tokens_per_word must be > 0, got {tokens_per_word!r}.")
        if tokens_per_punctuation < 0:
            raise ValueError(
                f"tokens_per_punctuation must be >= 0, got {tokens_per_punctuation!r}."
            )
        if chars_per_token < 1:
            raise ValueError(f"chars_per_token must be >= 1, got {chars_per_token!r}.")
        self.tokens_per_word = tokens_per_word
        self.tokens_per_punctuation = tokens_per_punctuation
        self.chars_per_token = chars_per_token

    def estimate(self, text: str) -> int:
        """Return the estimated token count for ``text``."""
        words = word_count(text)
        punctuation = len(_PUNCTUATION_RE.findall(text))
        return math.ceil(
            words * self.tokens_per_word + punctuation * self.tokens_per_punctuation
        )

    def tokens_to_chars(self, tokens: int) -> int:
        """Return the approximate character budget for ``tokens``."""
        return tokens * self.chars_per_token

    def __repr__(self) -> str:
        return (
            f"TokenEstimator(tokens_per_word={self.tokens_per_word!r}, "
            f"tokens_per_punctuation={self.tokens_per_punctuation!r}, "
            f"chars_per_token={self.chars_per_token!r})"
        )


__all__ = [
    "TokenEstimator",
    "estimate_tokens",
    "tokens_to_chars",
    "truncate_to_tokens",
    "word_count",
]
