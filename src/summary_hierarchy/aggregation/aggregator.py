"""Cross-source aggregation.

Aggregator combines the summaries of several documents into one unified
key points summary, and optionally enriches it with common themes and
source-specific insights.  The unified summary is the primary artifact: if
its generation fails the whole aggregation fails.  Themes, insights and
pairwise comparisons are enrichments: malformed or failed responses
degrade to empty results with a warning.

Classes
-------
- Aggregator  — orchestrates aggregation calls against a ``TextGenerator``
"""
from __future__ import annotations

import logging
import time
from typing import Any, Sequence

from summary_hierarchy.aggregation.parsing import parse_json_array, parse_json_object
from summary_hierarchy.config import AggregationOptions
from summary_hierarchy.generation.base import TextGenerator
from summary_hierarchy.pipeline.summary_pipeline import SummaryGenerationError, gather_or_cancel
from summary_hierarchy.segmentation.tokens import word_count
from summary_hierarchy.summary.state import (
    AggregatedSummary,
    CommonTheme,
    CreateSummaryInput,
    Summary,
    SummaryComparison,
    SummaryType,
    UniqueInsight,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------

AGGREGATE_SYSTEM_PROMPT = """You synthesize information from multiple sources. Create a unified summary that:

1. Identifies common themes and patterns across sources
2. Highlights unique insights from each source
3. Resolves contradictions or differences in perspective
4. Organizes information by theme, not by source
5. Removes redundancy while keeping important nuance

Guidelines:
- Focus on what matters most across all sources
- Note where sources agree or disagree on key points
- Keep attribution when an insight is source-specific
- Write a coherent narrative, not a compilation"""

THEMES_SYSTEM_PROMPT = """You identify patterns across documents. Analyze the summaries you are given and:

1. Identify 5-10 major themes that appear across multiple sources
2. Note how many sources contribute to each theme
3. Rank themes by importance

Return a JSON array of themes:
[
  {
    "theme": "Theme name",
    "description": "Brief description of the theme",
    "sourceCount": number,
    "importance": "high" | "medium" | "low"
  }
]

Return ONLY valid JSON."""

INSIGHTS_SYSTEM_PROMPT = """You find the unique value in documents. Analyze the summaries you are given and:

1. Identify insights that appear in only one source
2. Find perspectives or approaches unique to a specific source
3. Note novel information not covered elsewhere

Return a JSON array of unique insights:
[
  {
    "sourceIndex": 0,
    "insight": "The unique insight or finding",
    "significance": "Why this matters"
  }
]

Return ONLY valid JSON."""

COMPARE_SYSTEM_PROMPT = """You compare documents. Return ONLY valid JSON."""

_IMPORTANCE_RANK = {"high": 0, "medium": 1, "low": 2}
_MAX_THEMES = 10
_SOURCE_SEPARATOR = "\n\n---\n\n"


def _source_blocks(summaries: Sequence[Summary]) -> str:
    return _SOURCE_SEPARATOR.join(
        f"### Source {index}: {summary.title}\n{summary.content}"
        for index, summary in enumerate(summaries, start=1)
    )


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if isinstance(item, (str, int, float)) and str(item).strip()]


class Aggregator:
    """Synthesise several summaries into cross-source results.

    Parameters
    ----------
    generator:
        Text generation backend.
    options:
        Aggregation behaviour and output budgets.  Defaults to
        ``AggregationOptions()``.
    """

    def __init__(
        self,
        generator: TextGenerator,
        options: AggregationOptions | None = None,
    ) -> None:
        self.generator = generator
        self.options = options or AggregationOptions()

    # ------------------------------------------------------------------
    # Primary artifact
    # ------------------------------------------------------------------

    async def aggregate(
        self,
        summaries: Sequence[Summary],
        collection_name: str,
        collection_id: str,
    ) -> CreateSummaryInput:
        """Generate one unified key points summary for a collection.

        Parameters
        ----------
        summaries:
            Source summaries, at least one.
        collection_name:
            Display name used in the prompt and title.
        collection_id:
            Stored as the ``source_id`` of the result.

        Raises
        ------
        ValueError
            If ``summaries`` is empty or ``collection_name`` is blank.
        SummaryGenerationError
            If generation fails or returns no text.
        """
        if not summaries:
            raise ValueError("At least one summary is required for aggregation.")
        if not collection_name or not collection_name.strip():
            raise ValueError("collection_name is required and must be non-empty.")

        ordered = list(summaries)
        if self.options.weight_by_recency:
            ordered.sort(key=lambda s: s.created_at, reverse=True)

        blocks = []
        for index, summary in enumerate(ordered, start=1):
            label = ""
            if self.options.include_source_attribution:
                label = f"\n[Source {index}: {summary.title}]"
            blocks.append(f"### Source {index}{label}\n{summary.content}")
        attribution = (
            "Include source attribution where relevant."
            if self.options.include_source_attribution
            else ""
        )
        user_prompt = (
            f'Collection: "{collection_name}"\n'
            f"Number of Sources: {len(ordered)}\n\n"
            f"Summaries to aggregate:\n"
            f"---\n"
            f"{_SOURCE_SEPARATOR.join(blocks)}\n"
            f"---\n\n"
            f"Create a unified summary that synthesizes these {len(ordered)} sources.\n"
            f"Target {self.options.max_key_points} key points.\n"
            f"{attribution}"
        ).rstrip()

        started = time.perf_counter()
        try:
            result = await self.generator.generate(
                AGGREGATE_SYSTEM_PROMPT, user_prompt, self.options.aggregate_output_tokens
            )
        except Exception as exc:
            raise SummaryGenerationError("aggregated", exc) from exc
        content = result.text.strip()
        if not content:
            raise SummaryGenerationError("aggregated", "empty response")

        return CreateSummaryInput(
            source_id=collection_id,
            summary_type=SummaryType.KEY_POINTS,
            title=f"Aggregated: {collection_name}",
            content=content,
            word_count=word_count(content),
            generation_model=self.generator.model,
            generation_duration_ms=int((time.perf_counter() - started) * 1000),
            input_token_count=result.input_tokens,
            output_token_count=result.output_tokens,
        )

    # ------------------------------------------------------------------
    # Enrichments
    # ------------------------------------------------------------------

    async def _enrichment(self, step: str, system_prompt: str, user_prompt: str, budget: int) -> str:
        """Run one enrichment call; return "" on failure."""
        try:
            result = await self.generator.generate(system_prompt, user_prompt, budget)
        except Exception as exc:
            logger.warning("Aggregator: %s generation failed: %s", step, exc)
            return ""
        return result.text

    async def find_common_themes(self, summaries: Sequence[Summary]) -> list[CommonTheme]:
        """Identify themes shared by the summaries, most important first.

        Returns at most 10 themes, sorted by importance and then by
        ``source_count`` descending.  Unparseable responses yield ``[]``.

        Raises
        ------
        ValueError
            If ``summaries`` is empty.
        """
        if not summaries:
            raise ValueError("At least one summary is required to find themes.")
        user_prompt = (
            f"Analyze these {len(summaries)} summaries and identify common themes:\n\n"
            f"{_source_blocks(summaries)}\n\n"
            f"---\n\n"
            f"Identify 5-10 major themes that appear across multiple sources."
        )
        text = await self._enrichment(
            "themes", THEMES_SYSTEM_PROMPT, user_prompt, self.options.themes_output_tokens
        )
        parsed = parse_json_array(text) if text else None
        if parsed is None:
            if text:
                logger.warning("Aggregator: could not parse themes response; returning none")
            return []

        themes: list[CommonTheme] = []
        for item in parsed:
            if not isinstance(item, dict) or not str(item.get("theme", "")).strip():
                continue
            importance = str(item.get("importance", "medium")).lower()
            source_count = _as_int(item.get("sourceCount", item.get("source_count")))
            themes.append(
                CommonTheme(
                    theme=str(item["theme"]).strip(),
                    description=str(item.get("description", "")).strip(),
                    source_count=max(source_count, 0) if source_count is not None else 1,
                    importance=importance if importance in _IMPORTANCE_RANK else "medium",
                )
            )
        themes.sort(key=lambda t: (_IMPORTANCE_RANK[t.importance], -t.source_count))
        return themes[:_MAX_THEMES]

    async def extract_unique_insights(self, summaries: Sequence[Summary]) -> list[UniqueInsight]:
        """Find insights that appear in only one source.

        Entries whose ``sourceIndex`` is missing, non-integer or out of
        range are dropped with a warning; the rest are kept in response
        order.

        Raises
        ------
        ValueError
            If ``summaries`` is empty.
        """
        if not summaries:
            raise ValueError("At least one summary is required to extract insights.")
        user_prompt = (
            f"Analyze these {len(summaries)} summaries and find unique insights:\n\n"
            f"{_source_blocks(summaries)}\n\n"
            f"---\n\n"
            f"Identify insights that appear in only one source."
        )
        text = await self._enrichment(
            "insights", INSIGHTS_SYSTEM_PROMPT, user_prompt, self.options.insights_output_tokens
        )
        parsed = parse_json_array(text) if text else None
        if parsed is None:
            if text:
                logger.warning("Aggregator: could not parse insights response; returning none")
            return []

        insights: list[UniqueInsight] = []
        for item in parsed:
            if not isinstance(item, dict):
                continue
            raw_index = item.get("sourceIndex", item.get("source_index"))
            index = _as_int(raw_index)
            if index is None or not 0 <= index < len(summaries):
                logger.warning(
                    "Invalid sourceIndex %r in insights response (max: %d); dropping",
                    raw_index,
                    len(summaries) - 1,
                )
                continue
            insight = str(item.get("insight", "")).strip()
            if not insight:
                continue
            insights.append(
                UniqueInsight(
                    source_id=summaries[index].source_id,
                    insight=insight,
                    significance=str(item.get("significance", "")).strip(),
                )
            )
        return insights

    async def generate_aggregated_summary(
        self,
        summaries: Sequence[Summary],
        collection_name: str,
        collection_id: str,
        *,
        include_themes: bool = True,
        include_insights: bool = True,
    ) -> AggregatedSummary:
        """Aggregate and enrich in one pass, running the calls concurrently.

        Disabled enrichments are not requested and come back empty.

        Raises
        ------
        ValueError
            If ``summaries`` is empty or ``collection_name`` is blank.
        SummaryGenerationError
            If the unified summary cannot be generated.
        """
        if not summaries:
            raise ValueError("At least one summary is required for aggregation.")

        async def no_themes() -> list[CommonTheme]:
            return []

        async def no_insights() -> list[UniqueInsight]:
            return []

        started = time.perf_counter()
        summary, themes, insights = await gather_or_cancel(
            self.aggregate(summaries, collection_name, collection_id),
            self.find_common_themes(summaries) if include_themes else no_themes(),
            self.extract_unique_insights(summaries) if include_insights else no_insights(),
        )
        logger.info(
            "Aggregated %d summaries for %r: %d themes, %d insights in %.0f ms",
            len(summaries),
            collection_name,
            len(themes),
            len(insights),
            (time.perf_counter() - started) * 1000,
        )
        return AggregatedSummary(
            summary=summary,
            common_themes=[theme.render() for theme in themes],
            unique_insights=insights,
            source_summaries=list(summaries),
        )

    async def compare_summaries(self, first: Summary, second: Summary) -> SummaryComparison:
        """List agreements, disagreements and points unique to each summary.

        Malformed or failed responses yield an empty comparison.
        """
        user_prompt = (
            "Compare these two summaries and identify:\n"
            "1. Points of agreement\n"
            "2. Points of disagreement or contradiction\n"
            "3. Unique points in Summary 1 only\n"
            "4. Unique points in Summary 2 only\n\n"
            f"Summary 1 ({first.title}):\n{first.content}\n\n"
            f"Summary 2 ({second.title}):\n{second.content}\n\n"
            "Return a JSON object:\n"
            "{\n"
            '  "agreements": ["Point 1", "Point 2"],\n'
            '  "disagreements": ["Difference 1", "Difference 2"],\n'
            '  "unique1": ["Unique to Summary 1"],\n'
            '  "unique2": ["Unique to Summary 2"]\n'
            "}"
        )
        text = await self._enrichment(
            "comparison", COMPARE_SYSTEM_PROMPT, user_prompt, self.options.compare_output_tokens
        )
        parsed = parse_json_object(text) if text else None
        if parsed is None:
            if text:
                logger.warning("Aggregator: could not parse comparison response")
            return SummaryComparison()
        return SummaryComparison(
            agreements=_string_list(parsed.get("agreements")),
            disagreements=_string_list(parsed.get("disagreements")),
            unique_first=_string_list(parsed.get("unique1", parsed.get("unique_first"))),
            unique_second=_string_list(parsed.get("unique2", parsed.get("unique_second"))),
        )

    def __repr__(self) -> str:
        return f"Aggregator(generator={self.generator!r}, options={self.options!r})"


__all__ = [
    "AGGREGATE_SYSTEM_PROMPT",
    "Aggregator",
    "COMPARE_SYSTEM_PROMPT",
    "INSIGHTS_SYSTEM_PROMPT",
    "THEMES_SYSTEM_PROMPT",
]
