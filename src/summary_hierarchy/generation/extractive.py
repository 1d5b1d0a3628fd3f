"""Offline extractive generator.

Compresses the content part of a prompt into a shorter text using
sentence-level TF-IDF scoring weighted by position (earlier sentences in a
block score higher).  No model is called, so results are deterministic and
free; the pipeline, the CLI and the quickstart can run without network
access.

The "content part" of a user prompt is the text between the first and last
lines consisting solely of ``---``; with a single such line, the text before
it; otherwise the whole prompt.  Markdown heading lines inside the content
are treated as block separators and are not copied to the output.

Classes
-------
- ExtractiveGenerator  — ``TextGenerator`` backed by TF-IDF sentence selection
"""
from __future__ import annotations

import math
import re
from collections import Counter

from summary_hierarchy.generation.base import GenerationResult, TextGenerator
from summary_hierarchy.segmentation.tokens import estimate_tokens


# ---------------------------------------------------------------------------
# Text helpers
# ---------------------------------------------------------------------------

_STOP_WORDS: frozenset[str] = frozenset(
    {
        "a", "an", "the", "is", "it", "in", "on", "at", "to", "for",
        "of", "and", "or", "but", "not", "with", "as", "by", "from",
        "this", "that", "was", "are", "be", "been", "have", "has",
        "do", "did", "will", "would", "could", "should", "may", "can",
        "i", "you", "we", "they", "he", "she", "its", "their", "our",
        "so", "if", "then", "just", "also", "about", "there", "here",
        "up", "out", "when", "what", "which", "who", "how", "all",
    }
)

_DELIMITER_RE = re.compile(r"^---\s*$", re.MULTILINE)
_HEADING_RE = re.compile(r"^\s*#{1,6}\s+.*$", re.MULTILINE)
_HEADING_MARKER_RE = re.compile(r"^\s*#{1,6}\s+")


def _tokenize(text: str) -> list[str]:
    """Lowercase, split on non-alphanumeric, remove stop words and short tokens."""
    tokens = re.findall(r"[a-z0-9]+", text.lower())
    return [t for t in tokens if t not in _STOP_WORDS and len(t) > 1]


def _split_sentences(text: str) -> list[str]:
    """Split text into sentences on sentence-ending punctuation or line breaks."""
    raw = re.split(r"(?<=[.!?])\s+|\n+", text.strip())
    return [s.strip(" -*\t") for s in raw if s.strip(" -*\t")]


def _term_frequency(tokens: list[str]) -> dict[str, float]:
    if not tokens:
        return {}
    counts = Counter(tokens)
    total = len(tokens)
    return {term: count / total for term, count in counts.items()}


def _compute_idf(documents: list[list[str]]) -> dict[str, float]:
    num_docs = len(documents)
    if num_docs == 0:
        return {}
    document_freq: Counter[str] = Counter()
    for doc_tokens in documents:
        document_freq.update(set(doc_tokens))
    return {
        term: math.log((1 + num_docs) / (1 + df)) + 1
        for term, df in document_freq.items()
    }


def _score_sentence(
    sentence_tokens: list[str],
    idf: dict[str, float],
    position_index: int,
    total_sentences: int,
    position_bias: bool,
) -> float:
    """Score one sentence by TF-IDF sum, optionally weighted by position.

    With ``position_bias`` the first sentence of a block weighs 1.0 and the
    last ~0.5 (linear decay).
    """
    if not sentence_tokens:
        return 0.0

    tf = _term_frequency(sentence_tokens)
    tfidf_sum = sum(tf.get(term, 0.0) * idf.get(term, 0.0) for term in tf)
    if not position_bias or total_sentences <= 1:
        return tfidf_sum
    return tfidf_sum * (1.0 - 0.5 * (position_index / (total_sentences - 1)))


def _content_region(user_prompt: str) -> str:
    parts = _DELIMITER_RE.split(user_prompt)
    if len(parts) >= 3:
        return "\n".join(parts[1:-1])
    if len(parts) == 2:
        return parts[0]
    return user_prompt


def extract_content(user_prompt: str) -> list[str]:
    """Return the content blocks of a prompt, split on markdown headings."""
    blocks = _HEADING_RE.split(_content_region(user_prompt))
    return [block.strip() for block in blocks if block.strip()]


def heading_fallback(user_prompt: str) -> str:
    """Return the first non-empty content line with heading markers removed.

    Used when the content holds headings but no sentences, as in a segment
    made of a lone document title.
    """
    for line in _content_region(user_prompt).splitlines():
        stripped = _HEADING_MARKER_RE.sub("", line).strip()
        if stripped:
            return stripped
    return ""


# ---------------------------------------------------------------------------
# Generator
# ---------------------------------------------------------------------------


class ExtractiveGenerator(TextGenerator):
    """Select the most informative sentences of the prompt content.

    Selected sentences are emitted in their original order, one per line
    as a bullet, until the output budget is exhausted.

    Parameters
    ----------
    max_sentences_per_block:
        Hard cap on sentences drawn from one content block.  Default: 5.
    position_bias:
        When True (default), earlier sentences in a block score higher.
    """

    model = "extractive-tfidf"

    def __init__(
        self,
        max_sentences_per_block: int = 5,
        position_bias: bool = True,
    ) -> None:
        if max_sentences_per_block < 1:
            raise ValueError(
                f"max_sentences_per_block must be >= 1, got {max_sentences_per_block!r}."
            )
        self.max_sentences_per_block = max_sentences_per_block
        self.position_bias = position_bias

    async def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        max_output_tokens: int,
    ) -> GenerationResult:
        """Summarise the content of ``user_prompt`` within ``max_output_tokens``.

        Content without sentences (only headings) yields its first heading
        text instead of an empty response.
        """
        text = self.summarize(extract_content(user_prompt), max_output_tokens)
        if not text:
            text = heading_fallback(user_prompt)
        return GenerationResult(
            text=text,
            input_tokens=estimate_tokens(system_prompt) + estimate_tokens(user_prompt),
            output_tokens=estimate_tokens(text),
        )

    def summarize(self, blocks: list[str], max_tokens: int) -> str:
        """Produce an extractive summary of ``blocks`` within ``max_tokens``.

        Returns an empty string when the blocks contain no usable sentences.
        """
        all_sentences: list[tuple[int, int, str]] = []
        block_sizes: list[int] = []
        for block_idx, block in enumerate(blocks):
            sentences = _split_sentences(block)
            block_sizes.append(len(sentences))
            for sent_idx, sentence in enumerate(sentences):
                all_sentences.append((block_idx, sent_idx, sentence))

        if not all_sentences:
            return ""

        token_lists = [_tokenize(sentence) for _, _, sentence in all_sentences]
        idf = _compute_idf(token_lists)

        scored: list[tuple[float, int, int, str]] = []
        for (block_idx, sent_idx, sentence), tokens in zip(all_sentences, token_lists):
            score = _score_sentence(
                tokens, idf, sent_idx, block_sizes[block_idx], self.position_bias
            )
            scored.append((score, block_idx, sent_idx, sentence))
        scored.sort(key=lambda item: item[0], reverse=True)

        selected: list[tuple[int, int, str]] = []
        tokens_used = 0
        per_block: dict[int, int] = {}
        for _, block_idx, sent_idx, sentence in scored:
            if tokens_used >= max_tokens:
                break
            if per_block.get(block_idx, 0) >= self.max_sentences_per_block:
                continue
            cost = estimate_tokens(sentence)
            if tokens_used + cost > max_tokens and selected:
                continue
            selected.append((block_idx, sent_idx, sentence))
            tokens_used += cost
            per_block[block_idx] = per_block.get(block_idx, 0) + 1

        selected.sort(key=lambda item: (item[0], item[1]))
        return "\n".join(f"- {sentence}" for _, _, sentence in selected)

    def __repr__(self) -> str:
        return (
            f"ExtractiveGenerator(max_sentences_per_block={self.max_sentences_per_block!r}, "
            f"position_bias={self.position_bias!r})"
        )


__all__ = ["ExtractiveGenerator", "extract_content", "heading_fallback"]
