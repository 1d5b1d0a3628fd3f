"""Summarization pipeline subpackage.

Public surface
--------------
- SummaryPipeline         — segment → segment summaries → key points → executive, plus detailed
- PipelineResult          — segments and generated summary inputs
- SummarizationProgress   — progress snapshot passed to callbacks
- SummaryGenerationError  — a generation step failed
"""
from __future__ import annotations

from summary_hierarchy.pipeline.summary_pipeline import (
    PipelineResult,
    ProgressCallback,
    StepResult,
    SummarizationProgress,
    SummaryGenerationError,
    SummaryPipeline,
)

__all__ = [
    "PipelineResult",
    "ProgressCallback",
    "StepResult",
    "SummarizationProgress",
    "SummaryGenerationError",
    "SummaryPipeline",
]
