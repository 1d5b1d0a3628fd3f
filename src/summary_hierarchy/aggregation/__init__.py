"""Cross-source aggregation, concept deduplication and structured-output repair."""
from __future__ import annotations

from summary_hierarchy.aggregation.aggregator import Aggregator
from summary_hierarchy.aggregation.concepts import find_duplicate_concepts, normalize_concept
from summary_hierarchy.aggregation.parsing import (
    parse_json_array,
    parse_json_object,
    repair_json,
    strip_code_fences,
)

__all__ = [
    "Aggregator",
    "find_duplicate_concepts",
    "normalize_concept",
    "parse_json_array",
    "parse_json_object",
    "repair_json",
    "strip_code_fences",
]
