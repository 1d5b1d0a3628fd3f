"""Export summaries as Markdown documents or Anki flashcard CSV."""
from __future__ import annotations

from summary_hierarchy.export.exporters import (
    AnkiExporter,
    ExportedFile,
    MarkdownExporter,
    SummaryExporter,
    export_summary,
    sanitize_filename,
)

__all__ = [
    "AnkiExporter",
    "ExportedFile",
    "MarkdownExporter",
    "SummaryExporter",
    "export_summary",
    "sanitize_filename",
]
