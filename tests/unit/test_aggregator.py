"""Unit tests for summary_hierarchy.aggregation.aggregator."""
from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timedelta, timezone

import pytest

from summary_hierarchy.aggregation.aggregator import (
    AGGREGATE_SYSTEM_PROMPT,
    COMPARE_SYSTEM_PROMPT,
    INSIGHTS_SYSTEM_PROMPT,
    THEMES_SYSTEM_PROMPT,
    Aggregator,
)
from summary_hierarchy.config import AggregationOptions
from summary_hierarchy.generation.base import GenerationError, GenerationResult, TextGenerator
from summary_hierarchy.generation.scripted import ScriptedGenerator
from summary_hierarchy.pipeline.summary_pipeline import SummaryGenerationError
from summary_hierarchy.summary.state import Summary, SummaryType

_NOW = datetime(2026, 1, 1, tzinfo=timezone.utc)

THEMES_JSON = json.dumps(
    [
        {"theme": "Cost", "description": "Prices fall", "sourceCount": 2, "importance": "medium"},
        {"theme": "Scale", "description": "Capacity grows", "sourceCount": 3, "importance": "high"},
        {"theme": "Policy", "description": "", "sourceCount": 2, "importance": "high"},
        {"description": "no theme name"},
    ]
)

INSIGHTS_JSON = json.dumps(
    [
        {"sourceIndex": 1, "insight": "Storage lags", "significance": "Grid risk"},
        {"sourceIndex": 5, "insight": "Out of range"},
        {"sourceIndex": "zero", "insight": "Not a number"},
        {"sourceIndex": 0, "insight": "Subsidies end"},
    ]
)

COMPARE_JSON = json.dumps(
    {
        "agreements": ["Growth continues"],
        "disagreements": ["Pace of storage"],
        "unique1": ["Household demand"],
        "unique2": ["Battery prices"],
    }
)


def _summary(source_id: str, title: str, content: str, age_days: int = 0) -> Summary:
    return Summary(
        source_id=source_id,
        summary_type=SummaryType.KEY_POINTS,
        title=title,
        content=content,
        created_at=_NOW - timedelta(days=age_days),
    )


@pytest.fixture()
def summaries() -> list[Summary]:
    return [
        _summary("doc-a", "Key Points: Solar", "- Solar capacity doubled", age_days=10),
        _summary("doc-b", "Key Points: Storage", "- Storage is lagging", age_days=1),
    ]


def _responder(system: str, user: str, budget: int) -> str:
    return {
        AGGREGATE_SYSTEM_PROMPT: "Unified key points.",
        THEMES_SYSTEM_PROMPT: f"```json\n{THEMES_JSON}\n```",
        INSIGHTS_SYSTEM_PROMPT: INSIGHTS_JSON,
        COMPARE_SYSTEM_PROMPT: COMPARE_JSON,
    }[system]


def _aggregator(generator: ScriptedGenerator | None = None, **options: object) -> Aggregator:
    return Aggregator(
        generator or ScriptedGenerator(responder=_responder),
        AggregationOptions(**options),  # type: ignore[arg-type]
    )


# ---------------------------------------------------------------------------
# aggregate
# ---------------------------------------------------------------------------


class TestAggregate:
    @pytest.mark.asyncio
    async def test_result_fields(self, summaries: list[Summary]) -> None:
        result = await _aggregator().aggregate(summaries, "Energy", "coll-1")
        assert result.source_id == "coll-1"
        assert result.summary_type is SummaryType.KEY_POINTS
        assert result.title == "Aggregated: Energy"
        assert result.content == "Unified key points."
        assert result.word_count == 3
        assert result.generation_model == "scripted"

    @pytest.mark.asyncio
    async def test_prompt_lists_attributed_sources(self, summaries: list[Summary]) -> None:
        generator = ScriptedGenerator(responder=_responder)
        await _aggregator(generator).aggregate(summaries, "Energy", "coll-1")
        call = generator.calls[0]
        assert 'Collection: "Energy"' in call.user_prompt
        assert "Number of Sources: 2" in call.user_prompt
        assert "[Source 1: Key Points: Solar]" in call.user_prompt
        assert "[Source 2: Key Points: Storage]" in call.user_prompt
        assert "Target 15 key points." in call.user_prompt
        assert call.max_output_tokens == 3000

    @pytest.mark.asyncio
    async def test_without_attribution(self, summaries: list[Summary]) -> None:
        generator = ScriptedGenerator(responder=_responder)
        await _aggregator(generator, include_source_attribution=False).aggregate(
            summaries, "Energy", "coll-1"
        )
        assert "[Source" not in generator.calls[0].user_prompt
        assert "attribution" not in generator.calls[0].user_prompt

    @pytest.mark.asyncio
    async def test_recency_puts_newest_first(self, summaries: list[Summary]) -> None:
        generator = ScriptedGenerator(responder=_responder)
        await _aggregator(generator, weight_by_recency=True).aggregate(
            summaries, "Energy", "coll-1"
        )
        prompt = generator.calls[0].user_prompt
        assert prompt.index("Storage is lagging") < prompt.index("Solar capacity doubled")

    @pytest.mark.asyncio
    async def test_failure_raises_summary_generation_error(self, summaries: list[Summary]) -> None:
        generator = ScriptedGenerator([GenerationError("overloaded")])
        with pytest.raises(SummaryGenerationError) as excinfo:
            await _aggregator(generator).aggregate(summaries, "Energy", "coll-1")
        assert excinfo.value.step == "aggregated"

    @pytest.mark.asyncio
    async def test_empty_input_rejected(self) -> None:
        with pytest.raises(ValueError):
            await _aggregator().aggregate([], "Energy", "coll-1")

    @pytest.mark.asyncio
    async def test_deduplicate_flag_does_not_change_requests(
        self, summaries: list[Summary]
    ) -> None:
        calls = []
        for flag in (True, False):
            generator = ScriptedGenerator(responder=_responder)
            await _aggregator(generator, deduplicate_concepts=flag).generate_aggregated_summary(
                summaries, "Energy", "coll-1"
            )
            calls.append(sorted((c.system_prompt, c.user_prompt) for c in generator.calls))
        assert calls[0] == calls[1]


# ---------------------------------------------------------------------------
# Enrichments
# ---------------------------------------------------------------------------


class TestThemes:
    @pytest.mark.asyncio
    async def test_sorted_by_importance_then_source_count(
        self, summaries: list[Summary]
    ) -> None:
        themes = await _aggregator().find_common_themes(summaries)
        assert [t.theme for t in themes] == ["Scale", "Policy", "Cost"]
        assert themes[0].source_count == 3
        assert themes[0].importance == "high"

    @pytest.mark.asyncio
    async def test_capped_at_ten(self, summaries: list[Summary]) -> None:
        many = json.dumps([{"theme": f"T{i}", "sourceCount": i} for i in range(15)])
        generator = ScriptedGenerator([many])
        themes = await _aggregator(generator).find_common_themes(summaries)
        assert len(themes) == 10
        assert themes[0].theme == "T14"

    @pytest.mark.asyncio
    async def test_malformed_response_yields_empty(
        self, summaries: list[Summary], caplog: pytest.LogCaptureFixture
    ) -> None:
        generator = ScriptedGenerator(["I could not find any themes."])
        with caplog.at_level(logging.WARNING):
            assert await _aggregator(generator).find_common_themes(summaries) == []
        assert "could not parse themes" in caplog.text

    @pytest.mark.asyncio
    async def test_generation_failure_yields_empty(self, summaries: list[Summary]) -> None:
        generator = ScriptedGenerator([GenerationError("down")])
        assert await _aggregator(generator).find_common_themes(summaries) == []

    @pytest.mark.asyncio
    async def test_empty_input_rejected(self) -> None:
        with pytest.raises(ValueError):
            await _aggregator().find_common_themes([])


class TestInsights:
    @pytest.mark.asyncio
    async def test_invalid_indexes_dropped(
        self, summaries: list[Summary], caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(logging.WARNING):
            insights = await _aggregator().extract_unique_insights(summaries)
        assert [(i.source_id, i.insight) for i in insights] == [
            ("doc-b", "Storage lags"),
            ("doc-a", "Subsidies end"),
        ]
        assert insights[0].significance == "Grid risk"
        assert caplog.text.count("Invalid sourceIndex") == 2

    @pytest.mark.asyncio
    async def test_malformed_response_yields_empty(self, summaries: list[Summary]) -> None:
        generator = ScriptedGenerator(["{not: json"])
        assert await _aggregator(generator).extract_unique_insights(summaries) == []


class TestGenerateAggregatedSummary:
    @pytest.mark.asyncio
    async def test_combines_all_parts(self, summaries: list[Summary]) -> None:
        result = await _aggregator().generate_aggregated_summary(summaries, "Energy", "coll-1")
        assert result.summary.content == "Unified key points."
        assert result.common_themes == [
            "Scale: Capacity grows",
            "Policy",
            "Cost: Prices fall",
        ]
        assert len(result.unique_insights) == 2
        assert result.source_summaries == summaries

    @pytest.mark.asyncio
    async def test_disabled_enrichments_are_not_requested(
        self, summaries: list[Summary]
    ) -> None:
        generator = ScriptedGenerator(responder=_responder)
        result = await _aggregator(generator).generate_aggregated_summary(
            summaries, "Energy", "coll-1", include_themes=False, include_insights=False
        )
        assert len(generator.calls) == 1
        assert result.common_themes == []
        assert result.unique_insights == []

    @pytest.mark.asyncio
    async def test_enrichment_failure_does_not_fail_aggregation(
        self, summaries: list[Summary]
    ) -> None:
        def responder(system: str, user: str, budget: int) -> object:
            if system == AGGREGATE_SYSTEM_PROMPT:
                return "Unified key points."
            return GenerationError("enrichment down")

        generator = ScriptedGenerator(responder=responder)  # type: ignore[arg-type]
        result = await _aggregator(generator).generate_aggregated_summary(
            summaries, "Energy", "coll-1"
        )
        assert result.summary.content == "Unified key points."
        assert result.common_themes == []
        assert result.unique_insights == []


class TestCompare:
    @pytest.mark.asyncio
    async def test_maps_keys(self, summaries: list[Summary]) -> None:
        comparison = await _aggregator().compare_summaries(*summaries)
        assert comparison.agreements == ["Growth continues"]
        assert comparison.disagreements == ["Pace of storage"]
        assert comparison.unique_first == ["Household demand"]
        assert comparison.unique_second == ["Battery prices"]

    @pytest.mark.asyncio
    async def test_malformed_response_yields_empty_comparison(
        self, summaries: list[Summary]
    ) -> None:
        generator = ScriptedGenerator(["They are quite similar."])
        comparison = await _aggregator(generator).compare_summaries(*summaries)
        assert comparison.agreements == []
        assert comparison.unique_second == []


class _FailFastGenerator(TextGenerator):
    """Fails the unified summary at once; enrichment calls block until cancelled."""

    model = "fail-fast"

    def __init__(self) -> None:
        self.cancelled: list[str] = []

    async def generate(
        self, system_prompt: str, user_prompt: str, max_output_tokens: int
    ) -> GenerationResult:
        if system_prompt == AGGREGATE_SYSTEM_PROMPT:
            raise GenerationError("overloaded")
        try:
            await asyncio.sleep(30)
        except asyncio.CancelledError:
            self.cancelled.append(system_prompt)
            raise
        return GenerationResult(text="[]")


class TestAggregationFailureCancelsEnrichment:
    @pytest.mark.asyncio
    async def test_pending_enrichments_are_cancelled(self, summaries: list[Summary]) -> None:
        generator = _FailFastGenerator()
        with pytest.raises(SummaryGenerationError) as excinfo:
            await Aggregator(generator).generate_aggregated_summary(
                summaries, "Energy", "coll-1"
            )
        assert excinfo.value.step == "aggregated"
        assert sorted(generator.cancelled) == sorted(
            [THEMES_SYSTEM_PROMPT, INSIGHTS_SYSTEM_PROMPT]
        )
