"""Abstract base class for summary repositories.

A repository stores document segments, versioned summaries, collections,
collection membership and extracted concepts.  All methods are coroutines.

Versioning
----------
Summaries are versioned per ``(source_id, summary_type)`` scope.  Inserting
a batch computes one ``next_version = max(existing) + 1`` per scope,
flips every existing row of the scope to non-current and inserts the new
rows as current, all inside one critical section.  Rows of the same scope
inserted in one batch share the version and are all current (one
generation of segment summaries).

Classes
-------
- SummaryNotFoundError     — raised when a summary id is unknown
- CollectionNotFoundError  — raised when a collection id is unknown
- SummaryRepository        — abstract base for all repositories
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterable, Sequence

from summary_hierarchy.summary.state import (
    CollectionSource,
    Concept,
    CreateSummaryInput,
    DocumentSegment,
    Summary,
    SummaryCollection,
    SummaryType,
    UpdateSummaryInput,
)

Scope = tuple[str, SummaryType]

# Listing order of summary kinds, most condensed first.
TYPE_ORDER: dict[SummaryType, int] = {kind: rank for rank, kind in enumerate(SummaryType)}


class SummaryNotFoundError(KeyError):
    """Raised when a summary id does not exist."""

    def __init__(self, summary_id: str) -> None:
        self.summary_id = summary_id
        super().__init__(f"Summary {summary_id!r} not found.")


class CollectionNotFoundError(KeyError):
    """Raised when a collection id does not exist."""

    def __init__(self, collection_id: str) -> None:
        self.collection_id = collection_id
        super().__init__(f"Collection {collection_id!r} not found.")


def group_by_scope(
    inputs: Iterable[CreateSummaryInput],
) -> dict[Scope, list[tuple[int, CreateSummaryInput]]]:
    """Group ``(position, request)`` pairs by versioning scope in first-seen order."""
    grouped: dict[Scope, list[tuple[int, CreateSummaryInput]]] = {}
    for position, data in enumerate(inputs):
        grouped.setdefault((data.source_id, data.summary_type), []).append((position, data))
    return grouped


def apply_update(update: UpdateSummaryInput) -> dict[str, object]:
    """Return the column changes requested by ``update``.

    Raises
    ------
    ValueError
        If ``update`` sets no field.
    """
    changes: dict[str, object] = update.model_dump(exclude_none=True)
    if not changes:
        raise ValueError("No update fields provided.")
    if "content" in changes:
        changes["word_count"] = len(str(changes["content"]).split())
    return changes


class SummaryRepository(ABC):
    """Async storage contract for the summary hierarchy.

    Implementations must make ``create_summaries`` atomic per call with
    respect to every other write on the same repository.
    """

    # ------------------------------------------------------------------
    # Segments
    # ------------------------------------------------------------------

    @abstractmethod
    async def save_segments(self, source_id: str, segments: Sequence[DocumentSegment]) -> None:
        """Replace every stored segment of ``source_id`` with ``segments``."""

    @abstractmethod
    async def list_segments(self, source_id: str) -> list[DocumentSegment]:
        """Return the segments of ``source_id`` ordered by ``segment_index``."""

    @abstractmethod
    async def delete_segments(self, source_id: str) -> int:
        """Delete the segments of ``source_id``; return how many were removed."""

    # ------------------------------------------------------------------
    # Summaries
    # ------------------------------------------------------------------

    @abstractmethod
    async def create_summaries(self, inputs: Sequence[CreateSummaryInput]) -> list[Summary]:
        """Insert a batch of summaries, assigning versions atomically.

        Parameters
        ----------
        inputs:
            Create requests; may mix scopes and contain several rows for
            one scope.

        Returns
        -------
        list[Summary]
            Stored rows in input order.
        """

    async def create_summary(self, data: CreateSummaryInput) -> Summary:
        """Insert one summary as the new current version of its scope."""
        stored = await self.create_summaries([data])
        return stored[0]

    @abstractmethod
    async def get_summary(self, summary_id: str) -> Summary:
        """Return the summary with ``summary_id``.

        Raises
        ------
        SummaryNotFoundError
            If no such summary exists.
        """

    @abstractmethod
    async def list_summaries(
        self,
        source_id: str,
        summary_type: SummaryType | None = None,
        current_only: bool = True,
    ) -> list[Summary]:
        """Return summaries of ``source_id`` ordered by kind, then newest version.

        Rows of the same kind and version keep insertion order.
        """

    async def get_current_summary(
        self,
        source_id: str,
        summary_type: SummaryType,
    ) -> Summary | None:
        """Return the first current summary of a scope, or None."""
        rows = await self.list_summaries(source_id, summary_type, current_only=True)
        return rows[0] if rows else None

    async def list_versions(self, source_id: str, summary_type: SummaryType) -> list[Summary]:
        """Return every row of a scope, newest version first."""
        return await self.list_summaries(source_id, summary_type, current_only=False)

    @abstractmethod
    async def update_summary(self, summary_id: str, update: UpdateSummaryInput) -> Summary:
        """Edit a summary in place and return the updated row.

        Raises
        ------
        SummaryNotFoundError
            If no such summary exists.
        ValueError
            If ``update`` sets no field.
        """

    @abstractmethod
    async def delete_summary(self, summary_id: str) -> bool:
        """Delete a summary and its concepts; return True if it existed."""

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    @abstractmethod
    async def create_collection(self, collection: SummaryCollection) -> SummaryCollection:
        """Store a new collection and return it."""

    @abstractmethod
    async def get_collection(self, collection_id: str) -> SummaryCollection:
        """Return a collection.

        Raises
        ------
        CollectionNotFoundError
            If no such collection exists.
        """

    @abstractmethod
    async def list_collections(self) -> list[SummaryCollection]:
        """Return all collections, oldest first."""

    @abstractmethod
    async def delete_collection(self, collection_id: str) -> bool:
        """Delete a collection and its memberships; return True if it existed."""

    @abstractmethod
    async def add_collection_source(self, source: CollectionSource) -> CollectionSource:
        """Add a source to a collection.

        Re-adding an existing member updates its ``sequence`` and ``weight``.

        Raises
        ------
        CollectionNotFoundError
            If the collection does not exist.
        """

    @abstractmethod
    async def list_collection_sources(self, collection_id: str) -> list[CollectionSource]:
        """Return members ordered by ``sequence`` (unset last), then insertion."""

    @abstractmethod
    async def remove_collection_source(self, collection_id: str, source_id: str) -> bool:
        """Remove a member; return True if it was present."""

    @abstractmethod
    async def set_aggregated_summary(self, collection_id: str, summary_id: str) -> None:
        """Link the latest aggregated summary to a collection.

        Raises
        ------
        CollectionNotFoundError
            If the collection does not exist.
        """

    # ------------------------------------------------------------------
    # Concepts
    # ------------------------------------------------------------------

    @abstractmethod
    async def add_concepts(self, concepts: Sequence[Concept]) -> list[Concept]:
        """Store extracted concepts and return them."""

    @abstractmethod
    async def list_concepts(self, summary_id: str) -> list[Concept]:
        """Return the concepts of a summary in insertion order."""

    @abstractmethod
    async def find_concepts(self, concept_normalized: str) -> list[Concept]:
        """Return every concept with the given normalised form."""

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Release resources.  The default implementation does nothing."""

    async def __aenter__(self) -> "SummaryRepository":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()


__all__ = [
    "CollectionNotFoundError",
    "Scope",
    "SummaryNotFoundError",
    "SummaryRepository",
    "TYPE_ORDER",
    "apply_update",
    "group_by_scope",
]
