"""Concept normalisation and cross-summary duplicate detection."""
from __future__ import annotations

import re
from typing import Iterable

_WHITESPACE_RE = re.compile(r"\s+")
_ABBREVIATIONS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"\bai\b"), "artificial intelligence"),
    (re.compile(r"\bml\b"), "machine learning"),
    (re.compile(r"\bapi\b"), "application programming interface"),
)


def normalize_concept(concept: str) -> str:
    """Return the matching key for ``concept``.

    Lowercases, trims, collapses whitespace, unifies curly quotes, folds a
    trailing ``ies`` to ``y`` and then drops one trailing ``s``, and expands
    the abbreviations ``ai``, ``ml`` and ``api``.

    Only the final word is de-pluralised; irregular plurals are left alone.

    Examples
    --------
    >>> normalize_concept("  Neural   Networks ")
    'neural network'
    >>> normalize_concept("Strategies")
    'strategy'
    >>> normalize_concept("AI")
    'artificial intelligence'
    """
    normalized = _WHITESPACE_RE.sub(" ", concept.lower().strip())
    normalized = normalized.replace("‘", "'").replace("’", "'")
    normalized = normalized.replace("“", '"').replace("”", '"')
    normalized = re.sub(r"ies$", "y", normalized)
    normalized = re.sub(r"s$", "", normalized)
    for pattern, expansion in _ABBREVIATIONS:
        normalized = pattern.sub(expansion, normalized)
    return normalized


def find_duplicate_concepts(pairs: Iterable[tuple[str, str]]) -> dict[str, list[str]]:
    """Group ``(concept, summary_id)`` pairs by normalised concept.

    Returns only the keys that occur in more than one distinct summary.
    Keys and ids keep first-seen order; an id is listed once per key.
    """
    grouped: dict[str, list[str]] = {}
    for concept, summary_id in pairs:
        ids = grouped.setdefault(normalize_concept(concept), [])
        if summary_id not in ids:
            ids.append(summary_id)
    return {key: ids for key, ids in grouped.items() if len(ids) > 1}


__all__ = ["find_duplicate_concepts", "normalize_concept"]
