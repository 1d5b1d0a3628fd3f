"""Document segmentation under a token budget.

DocumentSegmenter turns one document into an ordered list of
``DocumentSegment`` records.  Segment edges always fall on detected section
boundaries or on blank-line paragraph breaks, never inside a paragraph.

Policy, in order of precedence:

1. Empty or whitespace-only text yields no segments.
2. A document whose estimate fits the budget is returned whole.
3. With boundary respect enabled and headings present, consecutive
   sections are packed into segments; a section that alone exceeds the
   budget is split by paragraph and every piece inherits the section's
   title and level.
4. Otherwise the document is packed paragraph by paragraph.

For every emitted segment ``text[start_index:end_index] == segment.text``.
Paragraph-packed segments are trimmed of surrounding whitespace, so the
only gaps between consecutive segments are whitespace.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from summary_hierarchy.config import SegmentOptions
from summary_hierarchy.segmentation.structure import DetectedStructure, StructureDetector
from summary_hierarchy.segmentation.tokens import TokenEstimator
from summary_hierarchy.summary.state import DocumentSegment

logger = logging.getLogger(__name__)

_PARAGRAPH_BREAK_RE = re.compile(r"\n\n+")


@dataclass
class _Span:
    """A half-open character span of the document with its tagging."""

    start: int
    end: int
    title: str | None = None
    level: int = 0


class DocumentSegmenter:
    """Split documents into budget-bounded, boundary-aligned segments.

    Parameters
    ----------
    options:
        Budget and boundary behaviour.  Defaults to ``SegmentOptions()``.
    detector:
        Heading detector.  Defaults to ``StructureDetector()``.
    estimator:
        Token estimator.  Defaults to ``TokenEstimator()``.
    """

    def __init__(
        self,
        options: SegmentOptions | None = None,
        detector: StructureDetector | None = None,
        estimator: TokenEstimator | None = None,
    ) -> None:
        self.options = options or SegmentOptions()
        self._detector = detector or StructureDetector()
        self._estimator = estimator or TokenEstimator()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def segment(
        self,
        text: str,
        source_id: str = "",
        options: SegmentOptions | None = None,
    ) -> list[DocumentSegment]:
        """Segment ``text`` into an ordered list of segments.

        Parameters
        ----------
        text:
            Full document text.
        source_id:
            Identifier stamped on every produced segment.
        options:
            Per-call override of the segmenter's options.

        Returns
        -------
        list[DocumentSegment]
            Segments ordered by ``start_index`` with dense ``segment_index``
            values starting at 0.  Empty for blank input.
        """
        if not text or not text.strip():
            return []

        opts = options or self.options
        budget = opts.max_tokens_per_segment
        structure = self._detector.detect(text)

        total_tokens = self._estimator.estimate(text)
        if total_tokens <= budget:
            span = _Span(0, len(text), structure.title_at(0), structure.level_at(0))
            return self._materialise(text, source_id, [span])

        if opts.respect_section_boundaries and len(structure.boundaries) > 1:
            spans = self._split_by_sections(text, structure, budget)
        else:
            spans = self._split_by_size(text, 0, len(text), budget)

        segments = self._materialise(text, source_id, spans)
        logger.debug(
            "Segmented %d chars (%d tokens) into %d segments for source %r",
            len(text),
            total_tokens,
            len(segments),
            source_id,
        )
        return segments

    # ------------------------------------------------------------------
    # Splitting strategies
    # ------------------------------------------------------------------

    def _split_by_sections(
        self,
        text: str,
        structure: DetectedStructure,
        budget: int,
    ) -> list[_Span]:
        """Pack consecutive sections into spans, splitting oversized ones."""
        spans: list[_Span] = []
        pending: _Span | None = None

        def flush(end: int) -> None:
            nonlocal pending
            if pending is not None and text[pending.start:end].strip():
                pending.end = end
                spans.append(pending)
            pending = None

        for start, end in structure.sections(len(text)):
            section_tokens = self._estimator.estimate(text[start:end])
            title = structure.title_at(start)
            level = structure.level_at(start)

            if section_tokens > budget:
                flush(start)
                for piece in self._split_by_size(text, start, end, budget):
                    piece.title = piece.title or title
                    piece.level = max(piece.level, level)
                    spans.append(piece)
                continue

            if pending is None:
                pending = _Span(start, end, title, level)
                continue

            combined_tokens = self._estimator.estimate(text[pending.start:end])
            if combined_tokens > budget:
                flush(start)
                pending = _Span(start, end, title, level)
            else:
                pending.end = end

        flush(len(text))
        return spans

    def _split_by_size(
        self,
        text: str,
        start: int,
        end: int,
        budget: int,
    ) -> list[_Span]:
        """Greedily pack paragraphs of ``text[start:end]`` into spans.

        A paragraph is never split; one that alone exceeds the budget is
        emitted on its own.
        """
        max_chars = self._estimator.tokens_to_chars(budget)
        paragraphs = self._paragraph_spans(text, start, end)

        spans: list[_Span] = []
        buffer_start: int | None = None
        buffer_end = start
        buffer_tokens = 0

        for para_start, para_end in paragraphs:
            para_tokens = self._estimator.estimate(text[para_start:para_end])
            if buffer_start is not None:
                too_long = para_end - buffer_start > max_chars
                too_costly = buffer_tokens + para_tokens > budget
                if too_long or too_costly:
                    spans.append(_Span(buffer_start, buffer_end))
                    buffer_start = None
                    buffer_tokens = 0
            if buffer_start is None:
                buffer_start = para_start
            buffer_end = para_end
            buffer_tokens += para_tokens

        if buffer_start is not None:
            spans.append(_Span(buffer_start, buffer_end))
        return spans

    @staticmethod
    def _paragraph_spans(text: str, start: int, end: int) -> list[tuple[int, int]]:
        """Return trimmed, non-empty paragraph spans within ``[start, end)``."""
        spans: list[tuple[int, int]] = []
        cursor = start
        for match in _PARAGRAPH_BREAK_RE.finditer(text, start, end):
            spans.append((cursor, match.start()))
            cursor = match.end()
        spans.append((cursor, end))

        trimmed: list[tuple[int, int]] = []
        for para_start, para_end in spans:
            chunk = text[para_start:para_end]
            stripped = chunk.strip()
            if not stripped:
                continue
            lead = len(chunk) - len(chunk.lstrip())
            trimmed.append((para_start + lead, para_start + lead + len(stripped)))
        return trimmed

    # ------------------------------------------------------------------
    # Materialisation
    # ------------------------------------------------------------------

    def _materialise(
        self,
        text: str,
        source_id: str,
        spans: list[_Span],
    ) -> list[DocumentSegment]:
        segments: list[DocumentSegment] = []
        for index, span in enumerate(spans):
            segment_text = text[span.start:span.end]
            segments.append(
                DocumentSegment(
                    source_id=source_id,
                    segment_index=index,
                    start_index=span.start,
                    end_index=span.end,
                    section_title=span.title,
                    level=span.level,
                    estimated_tokens=self._estimator.estimate(segment_text),
                    text=segment_text,
                )
            )
        return segments

    def __repr__(self) -> str:
        return (
            f"DocumentSegmenter(max_tokens_per_segment={self.options.max_tokens_per_segment!r}, "
            f"respect_section_boundaries={self.options.respect_section_boundaries!r})"
        )


def segment_document(
    text: str,
    source_id: str = "",
    options: SegmentOptions | None = None,
) -> list[DocumentSegment]:
    """Segment ``text`` with a default ``DocumentSegmenter``."""
    return DocumentSegmenter(options=options).segment(text, source_id)


__all__ = ["DocumentSegmenter", "segment_document"]
