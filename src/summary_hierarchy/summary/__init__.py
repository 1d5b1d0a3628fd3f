"""Summary domain models; the manager facade lives in ``summary_hierarchy.summary.manager``."""
from __future__ import annotations

from summary_hierarchy.summary.state import (
    AggregatedSummary,
    CollectionSource,
    CollectionType,
    CommonTheme,
    Concept,
    CreateSummaryInput,
    DocumentSegment,
    ExportFormat,
    Summary,
    SummaryCollection,
    SummaryComparison,
    SummaryType,
    UniqueInsight,
    UpdateSummaryInput,
)

__all__ = [
    "AggregatedSummary",
    "CollectionSource",
    "CollectionType",
    "CommonTheme",
    "Concept",
    "CreateSummaryInput",
    "DocumentSegment",
    "ExportFormat",
    "Summary",
    "SummaryCollection",
    "SummaryComparison",
    "SummaryType",
    "UniqueInsight",
    "UpdateSummaryInput",
]
