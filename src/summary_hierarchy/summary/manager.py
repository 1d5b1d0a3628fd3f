"""Summary lifecycle management.

Provides ``SummaryManager``, the facade that ties the pipeline, the
aggregator, the exporters and a ``SummaryRepository`` together: process a
document, regenerate one summary kind, browse versions, edit and rate,
aggregate collections, record concepts and export.

Classes
-------
- AggregationError       — a collection cannot be aggregated
- ProcessedDocument      — stored segments and summaries of one run
- CollectionAggregation  — stored aggregated summary plus enrichments
- SummaryManager         — the facade
"""
from __future__ import annotations

import asyncio
import logging
from typing import Sequence

from pydantic import BaseModel, Field

from summary_hierarchy.aggregation.aggregator import Aggregator
from summary_hierarchy.aggregation.concepts import find_duplicate_concepts
from summary_hierarchy.config import AggregationOptions, SummarizationConfig
from summary_hierarchy.export.exporters import ExportedFile, export_summary
from summary_hierarchy.generation.base import TextGenerator
from summary_hierarchy.pipeline.summary_pipeline import ProgressCallback, SummaryPipeline
from summary_hierarchy.storage.base import SummaryRepository
from summary_hierarchy.summary.state import (
    CollectionSource,
    CollectionType,
    Concept,
    DocumentSegment,
    ExportFormat,
    Summary,
    SummaryCollection,
    SummaryComparison,
    SummaryType,
    UniqueInsight,
    UpdateSummaryInput,
)

logger = logging.getLogger(__name__)

_MIN_AGGREGATION_SOURCES = 2


class AggregationError(ValueError):
    """Raised when a collection does not have enough material to aggregate."""


class ProcessedDocument(BaseModel):
    """Segments and stored summaries produced by ``process_document``."""

    segments: list[DocumentSegment] = Field(default_factory=list)
    summaries: list[Summary] = Field(default_factory=list)

    def of_type(self, summary_type: SummaryType) -> list[Summary]:
        """Return the stored summaries of ``summary_type`` in order."""
        return [s for s in self.summaries if s.summary_type == summary_type]


class CollectionAggregation(BaseModel):
    """Stored aggregated summary of a collection with its enrichments."""

    summary: Summary
    common_themes: list[str] = Field(default_factory=list)
    unique_insights: list[UniqueInsight] = Field(default_factory=list)
    source_count: int = 0


class SummaryManager:
    """Generate, store, browse and export summaries.

    Parameters
    ----------
    repository:
        Where segments, summaries, collections and concepts are stored.
    generator:
        Text generation backend shared by the pipeline and the aggregator.
    config:
        Pipeline configuration.  Defaults to ``SummarizationConfig()``.
    aggregation_options:
        Aggregator configuration.  Defaults to ``AggregationOptions()``.
    """

    def __init__(
        self,
        repository: SummaryRepository,
        generator: TextGenerator,
        config: SummarizationConfig | None = None,
        aggregation_options: AggregationOptions | None = None,
    ) -> None:
        self._repository = repository
        self._pipeline = SummaryPipeline(generator, config)
        self._aggregator = Aggregator(generator, aggregation_options)

    @property
    def repository(self) -> SummaryRepository:
        """The underlying repository."""
        return self._repository

    @property
    def pipeline(self) -> SummaryPipeline:
        """The summarization pipeline."""
        return self._pipeline

    @property
    def aggregator(self) -> Aggregator:
        """The cross-source aggregator."""
        return self._aggregator

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    async def process_document(
        self,
        source_id: str,
        title: str,
        text: str,
        *,
        on_progress: ProgressCallback | None = None,
    ) -> ProcessedDocument:
        """Run the full pipeline and store its output.

        Stored segments of ``source_id`` are replaced.  All summaries are
        inserted in one batch, so each kind becomes one new version.  Nothing
        is stored when any generation step fails.

        Raises
        ------
        ValueError
            If ``title`` or ``text`` is empty.
        SummaryGenerationError
            If any generation step fails.
        """
        result = await self._pipeline.run(source_id, title, text, on_progress=on_progress)
        await self._repository.save_segments(source_id, result.segments)
        stored = await self._repository.create_summaries(result.summaries)
        logger.info(
            "Stored %d segments and %d summaries for source %r",
            len(result.segments),
            len(stored),
            source_id,
        )
        return ProcessedDocument(segments=result.segments, summaries=stored)

    async def regenerate_summary(
        self,
        source_id: str,
        title: str,
        text: str,
        summary_type: SummaryType | str,
    ) -> Summary:
        """Regenerate one summary kind and store it as the new current version."""
        data = await self._pipeline.run_single(source_id, title, text, summary_type)
        return await self._repository.create_summary(data)

    # ------------------------------------------------------------------
    # Browsing and editing
    # ------------------------------------------------------------------

    async def get_summary(self, summary_id: str) -> Summary:
        """Return one summary; raises ``SummaryNotFoundError`` if unknown."""
        return await self._repository.get_summary(summary_id)

    async def get_summaries(
        self,
        source_id: str,
        summary_type: SummaryType | str | None = None,
        include_versions: bool = False,
    ) -> list[Summary]:
        """Return the summaries of a source, current only unless ``include_versions``."""
        kind = SummaryType(summary_type) if summary_type is not None else None
        return await self._repository.list_summaries(
            source_id, kind, current_only=not include_versions
        )

    @staticmethod
    def group_by_type(summaries: Sequence[Summary]) -> dict[SummaryType, list[Summary]]:
        """Bucket summaries by kind; every kind is present, possibly empty."""
        grouped: dict[SummaryType, list[Summary]] = {kind: [] for kind in SummaryType}
        for summary in summaries:
            grouped[summary.summary_type].append(summary)
        return grouped

    async def edit_summary(
        self,
        summary_id: str,
        *,
        title: str | None = None,
        content: str | None = None,
        quality_score: float | None = None,
    ) -> Summary:
        """Edit a summary in place; the version is not changed.

        Raises
        ------
        SummaryNotFoundError
            If the summary does not exist.
        ValueError
            If no field is given or a value is out of range.
        """
        update = UpdateSummaryInput(title=title, content=content, quality_score=quality_score)
        return await self._repository.update_summary(summary_id, update)

    async def rate_summary(self, summary_id: str, rating: int) -> Summary:
        """Record a 1–5 user rating.

        Raises
        ------
        ValueError
            If ``rating`` is not an integer between 1 and 5.
        """
        if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
            raise ValueError(f"rating must be an integer between 1 and 5, got {rating!r}.")
        return await self._repository.update_summary(
            summary_id, UpdateSummaryInput(user_rating=rating)
        )

    async def delete_summary(self, summary_id: str) -> bool:
        """Delete a summary; return True if it existed."""
        return await self._repository.delete_summary(summary_id)

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    async def create_collection(
        self,
        name: str,
        *,
        description: str = "",
        collection_type: CollectionType | str = CollectionType.CUSTOM,
    ) -> SummaryCollection:
        """Create and store a new collection."""
        collection = SummaryCollection(
            name=name,
            description=description,
            collection_type=CollectionType(collection_type),
        )
        return await self._repository.create_collection(collection)

    async def add_to_collection(
        self,
        collection_id: str,
        source_id: str,
        *,
        sequence: int | None = None,
        weight: float = 1.0,
    ) -> CollectionSource:
        """Add (or re-add) a source to a collection."""
        return await self._repository.add_collection_source(
            CollectionSource(
                collection_id=collection_id,
                source_id=source_id,
                sequence=sequence,
                weight=weight,
            )
        )

    async def aggregate_collection(
        self,
        collection_id: str,
        *,
        include_themes: bool = True,
        include_insights: bool = True,
    ) -> CollectionAggregation:
        """Aggregate the current key points summaries of a collection's sources.

        The aggregated summary is stored as a ``key_points`` summary whose
        ``source_id`` is the collection id, and linked to the collection.

        Raises
        ------
        CollectionNotFoundError
            If the collection does not exist.
        AggregationError
            If the collection has fewer than two sources, or fewer than two
            of them have a current key points summary.
        SummaryGenerationError
            If the unified summary cannot be generated.
        """
        collection = await self._repository.get_collection(collection_id)
        members = await self._repository.list_collection_sources(collection_id)
        if len(members) < _MIN_AGGREGATION_SOURCES:
            raise AggregationError(
                f"Collection {collection_id!r} needs at least "
                f"{_MIN_AGGREGATION_SOURCES} sources for aggregation."
            )

        summaries: list[Summary] = []
        for member in members:
            current = await self._repository.get_current_summary(
                member.source_id, SummaryType.KEY_POINTS
            )
            if current is not None:
                summaries.append(current)
        if len(summaries) < _MIN_AGGREGATION_SOURCES:
            raise AggregationError(
                f"At least {_MIN_AGGREGATION_SOURCES} sources in collection "
                f"{collection_id!r} must have key points summaries."
            )

        result = await self._aggregator.generate_aggregated_summary(
            summaries,
            collection.name,
            collection_id,
            include_themes=include_themes,
            include_insights=include_insights,
        )
        stored = await self._repository.create_summary(result.summary)
        await self._repository.set_aggregated_summary(collection_id, stored.summary_id)
        return CollectionAggregation(
            summary=stored,
            common_themes=result.common_themes,
            unique_insights=result.unique_insights,
            source_count=len(summaries),
        )

    async def compare_summaries(self, first_id: str, second_id: str) -> SummaryComparison:
        """Compare two stored summaries."""
        first, second = await asyncio.gather(
            self._repository.get_summary(first_id),
            self._repository.get_summary(second_id),
        )
        return await self._aggregator.compare_summaries(first, second)

    # ------------------------------------------------------------------
    # Concepts
    # ------------------------------------------------------------------

    async def record_concepts(
        self,
        summary_id: str,
        concepts: Sequence[str | Concept],
    ) -> list[Concept]:
        """Attach concepts to an existing summary.

        Plain strings become concepts with default importance.

        Raises
        ------
        SummaryNotFoundError
            If the summary does not exist.
        """
        await self._repository.get_summary(summary_id)
        records = [
            concept
            if isinstance(concept, Concept)
            else Concept(summary_id=summary_id, concept=concept)
            for concept in concepts
        ]
        for record in records:
            record.summary_id = summary_id
        return await self._repository.add_concepts(records)

    async def duplicate_concepts(self, summary_ids: Sequence[str]) -> dict[str, list[str]]:
        """Return normalised concepts shared by two or more of ``summary_ids``."""
        pairs: list[tuple[str, str]] = []
        for summary_id in summary_ids:
            for concept in await self._repository.list_concepts(summary_id):
                pairs.append((concept.concept, summary_id))
        return find_duplicate_concepts(pairs)

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    async def export_summary(
        self,
        summary_id: str,
        fmt: ExportFormat | str = ExportFormat.MARKDOWN,
        include_metadata: bool = True,
    ) -> ExportedFile:
        """Render a stored summary as Markdown or Anki CSV.

        Raises
        ------
        SummaryNotFoundError
            If the summary does not exist.
        ValueError
            If ``fmt`` is unknown or unsupported.
        """
        summary = await self._repository.get_summary(summary_id)
        return export_summary(summary, fmt, include_metadata=include_metadata)

    def __repr__(self) -> str:
        return f"SummaryManager(repository={self._repository!r}, pipeline={self._pipeline!r})"


__all__ = [
    "AggregationError",
    "CollectionAggregation",
    "ProcessedDocument",
    "SummaryManager",
]
