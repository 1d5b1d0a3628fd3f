"""Unit tests for summary_hierarchy.summary.manager.

Uses InMemorySummaryRepository and a ScriptedGenerator keyed on the system
prompt, so no disk I/O or external services are required.
"""
from __future__ import annotations

import json

import pytest

from summary_hierarchy.aggregation.aggregator import (
    AGGREGATE_SYSTEM_PROMPT,
    COMPARE_SYSTEM_PROMPT,
    INSIGHTS_SYSTEM_PROMPT,
    THEMES_SYSTEM_PROMPT,
)
from summary_hierarchy.config import SummarizationConfig
from summary_hierarchy.generation.base import GenerationError
from summary_hierarchy.generation.scripted import ScriptedGenerator
from summary_hierarchy.pipeline import prompts
from summary_hierarchy.pipeline.summary_pipeline import SummaryGenerationError
from summary_hierarchy.storage.base import CollectionNotFoundError, SummaryNotFoundError
from summary_hierarchy.storage.memory import InMemorySummaryRepository
from summary_hierarchy.summary.manager import AggregationError, SummaryManager
from summary_hierarchy.summary.state import Concept, SummaryType

SENTENCE = "Alpha beta gamma delta epsilon zeta eta theta iota kappa."
DOCUMENT = "\n\n".join(f"## Part {i}\n\n{' '.join([SENTENCE] * 3)}" for i in (1, 2))

_RESPONSES = {
    prompts.SEGMENT_SYSTEM_PROMPT: "Segment notes.",
    prompts.KEY_POINTS_SYSTEM_PROMPT: "- **Growth**: capacity doubled\n- **Risk**: storage lags",
    prompts.EXECUTIVE_SYSTEM_PROMPT: "Executive overview.",
    prompts.DETAILED_SYSTEM_PROMPT: "Detailed body.",
    AGGREGATE_SYSTEM_PROMPT: "Unified collection points.",
    THEMES_SYSTEM_PROMPT: json.dumps([{"theme": "Growth", "sourceCount": 2, "importance": "high"}]),
    INSIGHTS_SYSTEM_PROMPT: json.dumps([{"sourceIndex": 1, "insight": "Only in B"}]),
    COMPARE_SYSTEM_PROMPT: json.dumps({"agreements": ["Both grow"], "unique1": [], "unique2": []}),
}


def _responder(system: str, user: str, budget: int) -> str:
    return _RESPONSES[system]


@pytest.fixture()
def repository() -> InMemorySummaryRepository:
    return InMemorySummaryRepository()


@pytest.fixture()
def generator() -> ScriptedGenerator:
    return ScriptedGenerator(responder=_responder)


@pytest.fixture()
def manager(repository: InMemorySummaryRepository, generator: ScriptedGenerator) -> SummaryManager:
    return SummaryManager(
        repository=repository,
        generator=generator,
        config=SummarizationConfig(max_segment_tokens=60),
    )


# ---------------------------------------------------------------------------
# process_document / regenerate_summary
# ---------------------------------------------------------------------------


class TestProcessDocument:
    @pytest.mark.asyncio
    async def test_stores_segments_and_summaries(
        self, manager: SummaryManager, repository: InMemorySummaryRepository
    ) -> None:
        result = await manager.process_document("doc-a", "Solar", DOCUMENT)
        assert len(result.segments) == 2
        assert len(result.summaries) == 5
        assert all(s.version == 1 and s.is_current for s in result.summaries)
        assert len(await repository.list_segments("doc-a")) == 2
        assert result.of_type(SummaryType.EXECUTIVE)[0].content == "Executive overview."

    @pytest.mark.asyncio
    async def test_reprocessing_creates_new_versions(self, manager: SummaryManager) -> None:
        first = await manager.process_document("doc-a", "Solar", DOCUMENT)
        second = await manager.process_document("doc-a", "Solar", DOCUMENT)
        assert {s.version for s in second.summaries} == {2}
        executive_v2 = second.of_type(SummaryType.EXECUTIVE)[0]
        assert executive_v2.parent_version_id == first.of_type(SummaryType.EXECUTIVE)[0].summary_id
        # Two current segment summaries before: no single parent.
        assert all(s.parent_version_id is None for s in second.of_type(SummaryType.SEGMENT))
        current = await manager.get_summaries("doc-a")
        assert len(current) == 5
        everything = await manager.get_summaries("doc-a", include_versions=True)
        assert len(everything) == 10

    @pytest.mark.asyncio
    async def test_failure_stores_nothing(self, repository: InMemorySummaryRepository) -> None:
        failing = ScriptedGenerator(["Segment notes.", GenerationError("quota")])
        manager = SummaryManager(repository, failing, SummarizationConfig(max_segment_tokens=60))
        with pytest.raises(SummaryGenerationError):
            await manager.process_document("doc-a", "Solar", DOCUMENT)
        assert await repository.list_summaries("doc-a", current_only=False) == []
        assert await repository.list_segments("doc-a") == []

    @pytest.mark.asyncio
    async def test_regenerate_only_bumps_one_kind(self, manager: SummaryManager) -> None:
        await manager.process_document("doc-a", "Solar", DOCUMENT)
        regenerated = await manager.regenerate_summary("doc-a", "Solar", DOCUMENT, "executive")
        assert regenerated.version == 2
        assert regenerated.title == "Executive: Solar"
        key_points = await manager.get_summaries("doc-a", SummaryType.KEY_POINTS)
        assert [s.version for s in key_points] == [1]
        history = await manager.get_summaries("doc-a", "executive", include_versions=True)
        assert [(s.version, s.is_current) for s in history] == [(2, True), (1, False)]

    @pytest.mark.asyncio
    async def test_group_by_type(self, manager: SummaryManager) -> None:
        result = await manager.process_document("doc-a", "Solar", DOCUMENT)
        grouped = SummaryManager.group_by_type(result.summaries)
        assert set(grouped) == set(SummaryType)
        assert len(grouped[SummaryType.SEGMENT]) == 2
        assert len(grouped[SummaryType.DETAILED]) == 1


# ---------------------------------------------------------------------------
# Editing
# ---------------------------------------------------------------------------


class TestEditing:
    @pytest.mark.asyncio
    async def test_edit_keeps_version(self, manager: SummaryManager) -> None:
        result = await manager.process_document("doc-a", "Solar", DOCUMENT)
        target = result.of_type(SummaryType.EXECUTIVE)[0]
        edited = await manager.edit_summary(target.summary_id, content="Rewritten by hand today.")
        assert edited.version == target.version
        assert edited.word_count == 4
        assert (await manager.get_summary(target.summary_id)).content == "Rewritten by hand today."

    @pytest.mark.asyncio
    async def test_edit_without_fields_rejected(self, manager: SummaryManager) -> None:
        result = await manager.process_document("doc-a", "Solar", DOCUMENT)
        with pytest.raises(ValueError):
            await manager.edit_summary(result.summaries[0].summary_id)

    @pytest.mark.asyncio
    async def test_rate(self, manager: SummaryManager) -> None:
        result = await manager.process_document("doc-a", "Solar", DOCUMENT)
        rated = await manager.rate_summary(result.summaries[0].summary_id, 5)
        assert rated.user_rating == 5

    @pytest.mark.asyncio
    @pytest.mark.parametrize("rating", [0, 6, True, 3.5, "4"])
    async def test_invalid_rating(self, manager: SummaryManager, rating: object) -> None:
        result = await manager.process_document("doc-a", "Solar", DOCUMENT)
        with pytest.raises(ValueError):
            await manager.rate_summary(result.summaries[0].summary_id, rating)  # type: ignore[arg-type]

    @pytest.mark.asyncio
    async def test_delete(self, manager: SummaryManager) -> None:
        result = await manager.process_document("doc-a", "Solar", DOCUMENT)
        summary_id = result.summaries[0].summary_id
        assert await manager.delete_summary(summary_id) is True
        with pytest.raises(SummaryNotFoundError):
            await manager.get_summary(summary_id)


# ---------------------------------------------------------------------------
# Collections
# ---------------------------------------------------------------------------


class TestCollections:
    @pytest.mark.asyncio
    async def test_aggregate_collection(self, manager: SummaryManager) -> None:
        await manager.process_document("doc-a", "Solar", DOCUMENT)
        await manager.process_document("doc-b", "Storage", DOCUMENT)
        collection = await manager.create_collection("Energy", collection_type="topic")
        await manager.add_to_collection(collection.collection_id, "doc-a", sequence=1)
        await manager.add_to_collection(collection.collection_id, "doc-b", sequence=2)

        aggregation = await manager.aggregate_collection(collection.collection_id)

        assert aggregation.source_count == 2
        assert aggregation.summary.source_id == collection.collection_id
        assert aggregation.summary.summary_type is SummaryType.KEY_POINTS
        assert aggregation.summary.title == "Aggregated: Energy"
        assert aggregation.summary.content == "Unified collection points."
        assert aggregation.common_themes == ["Growth"]
        assert [i.source_id for i in aggregation.unique_insights] == ["doc-b"]
        stored = await manager.repository.get_collection(collection.collection_id)
        assert stored.aggregated_summary_id == aggregation.summary.summary_id

    @pytest.mark.asyncio
    async def test_reaggregation_versions_result(self, manager: SummaryManager) -> None:
        await manager.process_document("doc-a", "Solar", DOCUMENT)
        await manager.process_document("doc-b", "Storage", DOCUMENT)
        collection = await manager.create_collection("Energy")
        for source_id in ("doc-a", "doc-b"):
            await manager.add_to_collection(collection.collection_id, source_id)
        await manager.aggregate_collection(collection.collection_id)
        second = await manager.aggregate_collection(
            collection.collection_id, include_themes=False, include_insights=False
        )
        assert second.summary.version == 2
        assert second.common_themes == []

    @pytest.mark.asyncio
    async def test_single_source_rejected(self, manager: SummaryManager) -> None:
        await manager.process_document("doc-a", "Solar", DOCUMENT)
        collection = await manager.create_collection("Energy")
        await manager.add_to_collection(collection.collection_id, "doc-a")
        with pytest.raises(AggregationError, match="at least 2 sources"):
            await manager.aggregate_collection(collection.collection_id)

    @pytest.mark.asyncio
    async def test_sources_without_key_points_rejected(self, manager: SummaryManager) -> None:
        await manager.process_document("doc-a", "Solar", DOCUMENT)
        collection = await manager.create_collection("Energy")
        await manager.add_to_collection(collection.collection_id, "doc-a")
        await manager.add_to_collection(collection.collection_id, "never-processed")
        with pytest.raises(AggregationError, match="key points summaries"):
            await manager.aggregate_collection(collection.collection_id)

    @pytest.mark.asyncio
    async def test_unknown_collection(self, manager: SummaryManager) -> None:
        with pytest.raises(CollectionNotFoundError):
            await manager.aggregate_collection("ghost")

    @pytest.mark.asyncio
    async def test_compare_summaries(self, manager: SummaryManager) -> None:
        first = await manager.process_document("doc-a", "Solar", DOCUMENT)
        second = await manager.process_document("doc-b", "Storage", DOCUMENT)
        comparison = await manager.compare_summaries(
            first.summaries[0].summary_id, second.summaries[0].summary_id
        )
        assert comparison.agreements == ["Both grow"]


# ---------------------------------------------------------------------------
# Concepts and export
# ---------------------------------------------------------------------------


class TestConceptsAndExport:
    @pytest.mark.asyncio
    async def test_record_and_find_duplicates(self, manager: SummaryManager) -> None:
        first = await manager.process_document("doc-a", "Solar", DOCUMENT)
        second = await manager.process_document("doc-b", "Storage", DOCUMENT)
        first_id = first.summaries[0].summary_id
        second_id = second.summaries[0].summary_id

        recorded = await manager.record_concepts(
            first_id, ["Batteries", Concept(summary_id="ignored", concept="Grid Operators")]
        )
        assert [c.summary_id for c in recorded] == [first_id, first_id]
        await manager.record_concepts(second_id, ["battery"])

        duplicates = await manager.duplicate_concepts([first_id, second_id])
        assert duplicates == {"battery": [first_id, second_id]}

    @pytest.mark.asyncio
    async def test_record_concepts_unknown_summary(self, manager: SummaryManager) -> None:
        with pytest.raises(SummaryNotFoundError):
            await manager.record_concepts("ghost", ["Anything"])

    @pytest.mark.asyncio
    async def test_export_markdown(self, manager: SummaryManager) -> None:
        result = await manager.process_document("doc-a", "Solar", DOCUMENT)
        executive = result.of_type(SummaryType.EXECUTIVE)[0]
        exported = await manager.export_summary(executive.summary_id, "markdown")
        assert exported.filename == "Executive-Summary-Solar.md"
        assert exported.content.startswith("# Executive Summary: Solar\n\n---\nType: executive\n")
        assert exported.content.endswith("Executive overview.")

    @pytest.mark.asyncio
    async def test_export_anki(self, manager: SummaryManager) -> None:
        result = await manager.process_document("doc-a", "Solar", DOCUMENT)
        key_points = result.of_type(SummaryType.KEY_POINTS)[0]
        exported = await manager.export_summary(key_points.summary_id, "anki")
        assert exported.content.splitlines() == [
            "front;back",
            '"What is Growth?";"capacity doubled"',
            '"What is Risk?";"storage lags"',
        ]

    @pytest.mark.asyncio
    async def test_export_pdf_unsupported(self, manager: SummaryManager) -> None:
        result = await manager.process_document("doc-a", "Solar", DOCUMENT)
        with pytest.raises(ValueError, match="not supported"):
            await manager.export_summary(result.summaries[0].summary_id, "pdf")


def test_repr(manager: SummaryManager) -> None:
    assert "SummaryManager" in repr(manager)
