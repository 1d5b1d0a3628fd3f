"""In-memory summary repository.

Stores every record in plain Python containers guarded by one
``asyncio.Lock``.  All data is lost when the process exits.  Useful for
tests, the quickstart and local prototyping.

Classes
-------
- InMemorySummaryRepository  — dict-backed ephemeral repository
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Sequence

from summary_hierarchy.storage.base import (
    TYPE_ORDER,
    CollectionNotFoundError,
    SummaryNotFoundError,
    SummaryRepository,
    apply_update,
    group_by_scope,
)
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

logger = logging.getLogger(__name__)


class InMemorySummaryRepository(SummaryRepository):
    """Ephemeral repository backed by dicts and lists.

    A single ``asyncio.Lock`` serialises every operation, so the version
    read, the current-flip and the insert of ``create_summaries`` can never
    interleave with another writer.

    Records are deep-copied on the way in and out; callers cannot mutate
    stored state through returned objects.
    """

    def __init__(self) -> None:
        self._segments: dict[str, list[DocumentSegment]] = {}
        self._summaries: dict[str, Summary] = {}
        self._collections: dict[str, SummaryCollection] = {}
        self._members: dict[str, list[CollectionSource]] = {}
        self._concepts: list[Concept] = []
        self._lock: asyncio.Lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Segments
    # ------------------------------------------------------------------

    async def save_segments(self, source_id: str, segments: Sequence[DocumentSegment]) -> None:
        async with self._lock:
            self._segments[source_id] = sorted(
                (segment.model_copy(deep=True) for segment in segments),
                key=lambda s: s.segment_index,
            )

    async def list_segments(self, source_id: str) -> list[DocumentSegment]:
        async with self._lock:
            return [s.model_copy(deep=True) for s in self._segments.get(source_id, [])]

    async def delete_segments(self, source_id: str) -> int:
        async with self._lock:
            return len(self._segments.pop(source_id, []))

    # ------------------------------------------------------------------
    # Summaries
    # ------------------------------------------------------------------

    async def create_summaries(self, inputs: Sequence[CreateSummaryInput]) -> list[Summary]:
        """Insert a batch, assigning one version per scope under the lock."""
        stored: dict[int, Summary] = {}
        async with self._lock:
            for (source_id, summary_type), group in group_by_scope(inputs).items():
                existing = [
                    s
                    for s in self._summaries.values()
                    if s.source_id == source_id and s.summary_type == summary_type
                ]
                next_version = max((s.version for s in existing), default=0) + 1
                current = [s for s in existing if s.is_current]
                parent_id = current[0].summary_id if len(current) == 1 else None
                for row in current:
                    row.is_current = False
                for position, data in group:
                    summary = Summary.from_input(
                        data, version=next_version, parent_version_id=parent_id
                    )
                    self._summaries[summary.summary_id] = summary
                    stored[position] = summary
                logger.debug(
                    "Stored %d %s summaries for %r as version %d",
                    len(group),
                    summary_type.value,
                    source_id,
                    next_version,
                )
        return [stored[index].model_copy(deep=True) for index in range(len(inputs))]

    async def get_summary(self, summary_id: str) -> Summary:
        async with self._lock:
            if summary_id not in self._summaries:
                raise SummaryNotFoundError(summary_id)
            return self._summaries[summary_id].model_copy(deep=True)

    async def list_summaries(
        self,
        source_id: str,
        summary_type: SummaryType | None = None,
        current_only: bool = True,
    ) -> list[Summary]:
        async with self._lock:
            rows = [
                s
                for s in self._summaries.values()
                if s.source_id == source_id
                and (summary_type is None or s.summary_type == summary_type)
                and (s.is_current or not current_only)
            ]
            # sorted() is stable, so rows of one generation keep insertion order.
            rows = sorted(rows, key=lambda s: (TYPE_ORDER[s.summary_type], -s.version))
            return [s.model_copy(deep=True) for s in rows]

    async def update_summary(self, summary_id: str, update: UpdateSummaryInput) -> Summary:
        async with self._lock:
            if summary_id not in self._summaries:
                raise SummaryNotFoundError(summary_id)
            summary = self._summaries[summary_id]
            changes = apply_update(update)
            updated = summary.model_copy(
                update={**changes, "updated_at": datetime.now(timezone.utc)}
            )
            self._summaries[summary_id] = updated
            return updated.model_copy(deep=True)

    async def delete_summary(self, summary_id: str) -> bool:
        async with self._lock:
            if self._summaries.pop(summary_id, None) is None:
                return False
            self._concepts = [c for c in self._concepts if c.summary_id != summary_id]
            return True

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    async def create_collection(self, collection: SummaryCollection) -> SummaryCollection:
        async with self._lock:
            self._collections[collection.collection_id] = collection.model_copy(deep=True)
            self._members.setdefault(collection.collection_id, [])
            return collection.model_copy(deep=True)

    async def get_collection(self, collection_id: str) -> SummaryCollection:
        async with self._lock:
            if collection_id not in self._collections:
                raise CollectionNotFoundError(collection_id)
            return self._collections[collection_id].model_copy(deep=True)

    async def list_collections(self) -> list[SummaryCollection]:
        async with self._lock:
            return [c.model_copy(deep=True) for c in self._collections.values()]

    async def delete_collection(self, collection_id: str) -> bool:
        async with self._lock:
            if self._collections.pop(collection_id, None) is None:
                return False
            self._members.pop(collection_id, None)
            return True

    async def add_collection_source(self, source: CollectionSource) -> CollectionSource:
        async with self._lock:
            if source.collection_id not in self._collections:
                raise CollectionNotFoundError(source.collection_id)
            members = self._members.setdefault(source.collection_id, [])
            for index, member in enumerate(members):
                if member.source_id == source.source_id:
                    members[index] = source.model_copy(deep=True)
                    break
            else:
                members.append(source.model_copy(deep=True))
            return source.model_copy(deep=True)

    async def list_collection_sources(self, collection_id: str) -> list[CollectionSource]:
        async with self._lock:
            members = self._members.get(collection_id, [])
            ordered = sorted(
                members,
                key=lambda m: (m.sequence is None, m.sequence if m.sequence is not None else 0),
            )
            return [m.model_copy(deep=True) for m in ordered]

    async def remove_collection_source(self, collection_id: str, source_id: str) -> bool:
        async with self._lock:
            members = self._members.get(collection_id, [])
            kept = [m for m in members if m.source_id != source_id]
            self._members[collection_id] = kept
            return len(kept) != len(members)

    async def set_aggregated_summary(self, collection_id: str, summary_id: str) -> None:
        async with self._lock:
            if collection_id not in self._collections:
                raise CollectionNotFoundError(collection_id)
            self._collections[collection_id].aggregated_summary_id = summary_id

    # ------------------------------------------------------------------
    # Concepts
    # ------------------------------------------------------------------

    async def add_concepts(self, concepts: Sequence[Concept]) -> list[Concept]:
        async with self._lock:
            self._concepts.extend(c.model_copy(deep=True) for c in concepts)
            return [c.model_copy(deep=True) for c in concepts]

    async def list_concepts(self, summary_id: str) -> list[Concept]:
        async with self._lock:
            return [c.model_copy(deep=True) for c in self._concepts if c.summary_id == summary_id]

    async def find_concepts(self, concept_normalized: str) -> list[Concept]:
        async with self._lock:
            return [
                c.model_copy(deep=True)
                for c in self._concepts
                if c.concept_normalized == concept_normalized
            ]

    # ------------------------------------------------------------------
    # Extras
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._summaries)

    def __repr__(self) -> str:
        return (
            f"InMemorySummaryRepository(summaries={len(self._summaries)}, "
            f"collections={len(self._collections)})"
        )


__all__ = ["InMemorySummaryRepository"]
