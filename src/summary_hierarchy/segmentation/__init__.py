"""Document segmentation: token estimation, heading detection, splitting."""
from __future__ import annotations

from summary_hierarchy.segmentation.segmenter import DocumentSegmenter, segment_document
from summary_hierarchy.segmentation.structure import (
    DEFAULT_PATTERNS,
    DetectedStructure,
    HeadingPattern,
    StructureDetector,
    detect_structure,
)
from summary_hierarchy.segmentation.tokens import (
    TokenEstimator,
    estimate_tokens,
    tokens_to_chars,
    truncate_to_tokens,
    word_count,
)

__all__ = [
    "DEFAULT_PATTERNS",
    "DetectedStructure",
    "DocumentSegmenter",
    "HeadingPattern",
    "StructureDetector",
    "TokenEstimator",
    "detect_structure",
    "estimate_tokens",
    "segment_document",
    "tokens_to_chars",
    "truncate_to_tokens",
    "word_count",
]
