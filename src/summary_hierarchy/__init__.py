"""summary-hierarchy — Hierarchical document summarization with versioned storage.

Public API
----------
The stable public surface is everything exported from this module.
Anything inside submodules not re-exported here is considered private
and may change without notice.

Example
-------
>>> import summary_hierarchy
>>> summary_hierarchy.__version__
'0.1.0'
"""
from __future__ import annotations

# Configuration
from summary_hierarchy.config import (
    AggregationOptions,
    SegmentOptions,
    Settings,
    SummarizationConfig,
)

# Domain models
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

# Segmentation
from summary_hierarchy.segmentation.tokens import TokenEstimator, estimate_tokens, tokens_to_chars
from summary_hierarchy.segmentation.structure import DetectedStructure, StructureDetector
from summary_hierarchy.segmentation.segmenter import DocumentSegmenter, segment_document

# Generation backends
from summary_hierarchy.generation.base import GenerationError, GenerationResult, TextGenerator
from summary_hierarchy.generation.anthropic import AnthropicGenerator
from summary_hierarchy.generation.extractive import ExtractiveGenerator
from summary_hierarchy.generation.scripted import ScriptedGenerator

# Pipeline
from summary_hierarchy.pipeline.summary_pipeline import (
    PipelineResult,
    SummarizationProgress,
    SummaryGenerationError,
    SummaryPipeline,
)

# Aggregation
from summary_hierarchy.aggregation.aggregator import Aggregator
from summary_hierarchy.aggregation.concepts import find_duplicate_concepts, normalize_concept

# Storage
from summary_hierarchy.storage.base import (
    CollectionNotFoundError,
    SummaryNotFoundError,
    SummaryRepository,
)
from summary_hierarchy.storage.memory import InMemorySummaryRepository
from summary_hierarchy.storage.sqlite import SQLiteSummaryRepository

# Manager, export and quickstart
from summary_hierarchy.summary.manager import (
    AggregationError,
    CollectionAggregation,
    ProcessedDocument,
    SummaryManager,
)
from summary_hierarchy.export.exporters import ExportedFile, export_summary
from summary_hierarchy.convenience import Summarizer

__version__: str = "0.1.0"

__all__ = [
    "__version__",
    # Configuration
    "AggregationOptions",
    "SegmentOptions",
    "Settings",
    "SummarizationConfig",
    # Domain models
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
    # Segmentation
    "DetectedStructure",
    "DocumentSegmenter",
    "StructureDetector",
    "TokenEstimator",
    "estimate_tokens",
    "segment_document",
    "tokens_to_chars",
    # Generation
    "AnthropicGenerator",
    "ExtractiveGenerator",
    "GenerationError",
    "GenerationResult",
    "ScriptedGenerator",
    "TextGenerator",
    # Pipeline
    "PipelineResult",
    "SummarizationProgress",
    "SummaryGenerationError",
    "SummaryPipeline",
    # Aggregation
    "Aggregator",
    "find_duplicate_concepts",
    "normalize_concept",
    # Storage
    "CollectionNotFoundError",
    "InMemorySummaryRepository",
    "SQLiteSummaryRepository",
    "SummaryNotFoundError",
    "SummaryRepository",
    # Manager / export / quickstart
    "AggregationError",
    "CollectionAggregation",
    "ExportedFile",
    "ProcessedDocument",
    "Summarizer",
    "SummaryManager",
    "export_summary",
]
