"""Multi-pass summarization pipeline.

SummaryPipeline turns one document into a hierarchy of summaries:

1. Segment the document.
2. Summarise every segment from its own text, in index order.
3. Synthesise one key points summary from all segment summaries.
4. Condense the key points into one executive summary.
5. Independently, write one detailed summary from all segment summaries.

Steps 3 → 4 form a strict chain; step 5 depends only on step 2 and may run
alongside the chain.  Any failed or empty generation aborts the run with a
``SummaryGenerationError`` naming the step; nothing is persisted here, so
what to keep is the caller's decision.

Classes
-------
- SummaryGenerationError  — a generation step failed
- SummarizationProgress   — advisory progress snapshot
- StepResult              — content, usage and timing of one step
- PipelineResult          — segments plus generated summary inputs
- SummaryPipeline         — the orchestrator
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Sequence

from pydantic import BaseModel, Field

from summary_hierarchy.config import SummarizationConfig
from summary_hierarchy.generation.base import TextGenerator
from summary_hierarchy.pipeline import prompts
from summary_hierarchy.segmentation.segmenter import DocumentSegmenter
from summary_hierarchy.segmentation.tokens import estimate_tokens, word_count
from summary_hierarchy.summary.state import CreateSummaryInput, DocumentSegment, SummaryType

logger = logging.getLogger(__name__)


class SummaryGenerationError(RuntimeError):
    """Raised when a generation step fails or returns no text.

    Parameters
    ----------
    step:
        Step label, e.g. ``"segment"``, ``"key points"``, ``"executive"``.
    cause:
        The underlying exception or a short reason.
    """

    def __init__(self, step: str, cause: BaseException | str) -> None:
        self.step = step
        self.cause = cause
        super().__init__(f"Failed to generate {step} summary: {cause}")


@dataclass(frozen=True)
class SummarizationProgress:
    """Progress snapshot passed to ``on_progress`` callbacks.

    Attributes
    ----------
    phase:
        Human-readable description of the step just reached.
    current:
        Completed step count.
    total:
        Total step count (segments + 3).
    percent:
        Completion percentage; never decreases within one run.
    """

    phase: str
    current: int
    total: int
    percent: int


ProgressCallback = Callable[[SummarizationProgress], Any]


@dataclass(frozen=True)
class StepResult:
    """Output of one generation step."""

    content: str
    input_tokens: int
    output_tokens: int
    duration_ms: int


class PipelineResult(BaseModel):
    """Segments and summary inputs produced by one pipeline run.

    ``summaries`` holds the executive, key points and detailed summaries
    followed by one segment summary per segment in index order.
    """

    segments: list[DocumentSegment] = Field(default_factory=list)
    summaries: list[CreateSummaryInput] = Field(default_factory=list)

    def of_type(self, summary_type: SummaryType) -> list[CreateSummaryInput]:
        """Return the summaries of ``summary_type`` in result order."""
        return [s for s in self.summaries if s.summary_type == summary_type]

    @property
    def total_input_tokens(self) -> int:
        return sum(s.input_token_count or 0 for s in self.summaries)

    @property
    def total_output_tokens(self) -> int:
        return sum(s.output_token_count or 0 for s in self.summaries)


class _ProgressReporter:
    """Forward monotonic progress to an optional callback.

    Callback errors are logged and never interrupt the pipeline.
    """

    def __init__(self, callback: ProgressCallback | None) -> None:
        self._callback = callback
        self._percent = 0

    def report(self, phase: str, current: int, total: int, percent: int) -> None:
        self._percent = max(self._percent, min(100, percent))
        if self._callback is None:
            return
        try:
            self._callback(SummarizationProgress(phase, current, total, self._percent))
        except Exception:
            logger.warning("Progress callback raised during %r; ignoring", phase, exc_info=True)


async def gather_or_cancel(*awaitables: Awaitable[Any]) -> list[Any]:
    """Await all, preserving order; on the first failure cancel the rest."""
    tasks = [asyncio.ensure_future(awaitable) for awaitable in awaitables]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


class SummaryPipeline:
    """Generate segment, key points, executive and detailed summaries.

    Parameters
    ----------
    generator:
        Text generation backend used for every step.
    config:
        Budgets and concurrency.  Defaults to ``SummarizationConfig()``.
    segmenter:
        Segmenter override.  Defaults to one built from
        ``config.segment_options()``.
    """

    def __init__(
        self,
        generator: TextGenerator,
        config: SummarizationConfig | None = None,
        segmenter: DocumentSegmenter | None = None,
    ) -> None:
        self.generator = generator
        self.config = config or SummarizationConfig()
        self.segmenter = segmenter or DocumentSegmenter(self.config.segment_options())

    # ------------------------------------------------------------------
    # Single steps
    # ------------------------------------------------------------------

    async def _call(
        self,
        step: str,
        system_prompt: str,
        user_prompt: str,
        max_output_tokens: int,
    ) -> StepResult:
        started = time.perf_counter()
        try:
            result = await self.generator.generate(system_prompt, user_prompt, max_output_tokens)
        except Exception as exc:
            raise SummaryGenerationError(step, exc) from exc
        if not result.text.strip():
            raise SummaryGenerationError(step, "empty response")
        duration_ms = int((time.perf_counter() - started) * 1000)
        logger.debug(
            "Generated %s summary: %d output tokens in %d ms",
            step,
            result.output_tokens,
            duration_ms,
        )
        return StepResult(
            content=result.text.strip(),
            input_tokens=result.input_tokens,
            output_tokens=result.output_tokens,
            duration_ms=duration_ms,
        )

    @staticmethod
    def _require_title(source_title: str) -> None:
        if not source_title or not source_title.strip():
            raise ValueError("source_title is required and must be non-empty.")

    async def generate_segment_summary(
        self,
        segment: DocumentSegment,
        source_title: str,
    ) -> StepResult:
        """Summarise one segment from its raw text alone.

        Raises
        ------
        ValueError
            If ``source_title`` or the segment text is empty.
        SummaryGenerationError
            If the generator fails or returns no text.
        """
        self._require_title(source_title)
        if not segment.text.strip():
            raise ValueError(f"Segment {segment.segment_index} has no text content.")
        return await self._call(
            "segment",
            prompts.SEGMENT_SYSTEM_PROMPT,
            prompts.segment_prompt(source_title, segment.text, segment.section_title),
            self.config.segment_summary_tokens,
        )

    async def generate_key_points_summary(
        self,
        segment_summaries: Sequence[str],
        source_title: str,
    ) -> StepResult:
        """Synthesise 10–15 deduplicated key points from segment summaries."""
        self._require_title(source_title)
        if not segment_summaries:
            raise ValueError("At least one segment summary is required.")
        return await self._call(
            "key points",
            prompts.KEY_POINTS_SYSTEM_PROMPT,
            prompts.key_points_prompt(source_title, segment_summaries),
            self.config.key_points_output_tokens,
        )

    async def generate_executive_summary(
        self,
        key_points: str,
        source_title: str,
    ) -> StepResult:
        """Condense the key points into a 150–250 word executive summary."""
        self._require_title(source_title)
        if not key_points or not key_points.strip():
            raise ValueError("key_points is required and must be non-empty.")
        return await self._call(
            "executive",
            prompts.EXECUTIVE_SYSTEM_PROMPT,
            prompts.executive_prompt(source_title, key_points),
            self.config.executive_output_tokens,
        )

    async def generate_detailed_summary(
        self,
        segment_summaries: Sequence[str],
        source_title: str,
    ) -> StepResult:
        """Write a structured multi-section detailed summary."""
        self._require_title(source_title)
        if not segment_summaries:
            raise ValueError("At least one segment summary is required.")
        return await self._call(
            "detailed",
            prompts.DETAILED_SYSTEM_PROMPT,
            prompts.detailed_prompt(source_title, segment_summaries),
            self.config.detailed_output_tokens,
        )

    # ------------------------------------------------------------------
    # Orchestration
    # ------------------------------------------------------------------

    async def _summarize_segments(
        self,
        segments: list[DocumentSegment],
        source_title: str,
        reporter: _ProgressReporter,
        total_steps: int,
    ) -> list[StepResult]:
        """Summarise every segment, keeping results index-aligned."""
        done = 0

        def progress() -> None:
            nonlocal done
            done += 1
            reporter.report(
                f"Summarized segment {done}/{len(segments)}",
                done,
                total_steps,
                round(done / total_steps * 80),
            )

        if self.config.segment_concurrency == 1:
            results: list[StepResult] = []
            for segment in segments:
                results.append(await self.generate_segment_summary(segment, source_title))
                progress()
            return results

        semaphore = asyncio.Semaphore(self.config.segment_concurrency)

        async def bounded(segment: DocumentSegment) -> StepResult:
            async with semaphore:
                result = await self.generate_segment_summary(segment, source_title)
            progress()
            return result

        return await gather_or_cancel(*(bounded(segment) for segment in segments))

    def _to_input(
        self,
        source_id: str,
        summary_type: SummaryType,
        title: str,
        step: StepResult,
    ) -> CreateSummaryInput:
        return CreateSummaryInput(
            source_id=source_id,
            summary_type=summary_type,
            title=title,
            content=step.content,
            word_count=word_count(step.content),
            generation_model=self.generator.model,
            generation_duration_ms=step.duration_ms,
            input_token_count=step.input_tokens,
            output_token_count=step.output_tokens,
        )

    async def run(
        self,
        source_id: str,
        source_title: str,
        text: str,
        *,
        on_progress: ProgressCallback | None = None,
    ) -> PipelineResult:
        """Segment ``text`` and generate the full summary hierarchy.

        Parameters
        ----------
        source_id:
            Identifier stamped on segments and summaries.
        source_title:
            Document title used in every prompt and summary title.
        text:
            The full document text.
        on_progress:
            Optional advisory callback receiving ``SummarizationProgress``.

        Returns
        -------
        PipelineResult
            ``len(summaries) == len(segments) + 3``.

        Raises
        ------
        ValueError
            If the title or text is empty.
        SummaryGenerationError
            If any generation step fails.
        """
        self._require_title(source_title)
        if not text or not text.strip():
            raise ValueError("text is required and must be non-empty.")

        started = time.perf_counter()
        reporter = _ProgressReporter(on_progress)
        segments = self.segmenter.segment(text, source_id)
        total_steps = len(segments) + 3
        reporter.report("Segmented document", 0, total_steps, 5)

        segment_steps = await self._summarize_segments(
            segments, source_title, reporter, total_steps
        )
        segment_texts = [step.content for step in segment_steps]

        synthesis_done = 0
        synthesis_percent = (85, 92, 97)

        def synthesized(phase: str) -> None:
            nonlocal synthesis_done
            synthesis_done += 1
            reporter.report(
                phase,
                len(segments) + synthesis_done,
                total_steps,
                synthesis_percent[synthesis_done - 1],
            )

        async def key_points_chain() -> tuple[StepResult, StepResult]:
            key_points = await self.generate_key_points_summary(segment_texts, source_title)
            synthesized("Generated key points")
            executive = await self.generate_executive_summary(key_points.content, source_title)
            synthesized("Generated executive summary")
            return key_points, executive

        async def detailed_step() -> StepResult:
            detailed = await self.generate_detailed_summary(segment_texts, source_title)
            synthesized("Generated detailed summary")
            return detailed

        if self.config.concurrent_synthesis:
            (key_points, executive), detailed = await gather_or_cancel(
                key_points_chain(), detailed_step()
            )
        else:
            key_points, executive = await key_points_chain()
            detailed = await detailed_step()

        summaries = [
            self._to_input(
                source_id, SummaryType.EXECUTIVE, f"Executive Summary: {source_title}", executive
            ),
            self._to_input(
                source_id, SummaryType.KEY_POINTS, f"Key Points: {source_title}", key_points
            ),
            self._to_input(
                source_id, SummaryType.DETAILED, f"Detailed Summary: {source_title}", detailed
            ),
        ]
        for segment, step in zip(segments, segment_steps):
            title = segment.section_title or f"Segment {segment.segment_index + 1}"
            summaries.append(self._to_input(source_id, SummaryType.SEGMENT, title, step))

        reporter.report("Complete", total_steps, total_steps, 100)
        result = PipelineResult(segments=segments, summaries=summaries)
        logger.info(
            "Summarized source %r: %d segments, %d summaries, %d/%d tokens in %.0f ms",
            source_id,
            len(segments),
            len(summaries),
            result.total_input_tokens,
            result.total_output_tokens,
            (time.perf_counter() - started) * 1000,
        )
        return result

    async def run_single(
        self,
        source_id: str,
        source_title: str,
        text: str,
        summary_type: SummaryType | str,
    ) -> CreateSummaryInput:
        """Regenerate exactly one summary kind for a document.

        Document-level kinds re-derive their dependencies (segmentation and
        segment summaries, plus key points for an executive summary).  The
        ``segment`` kind summarises the whole text as one implicit segment.
        Token counts on the result cover every call made.

        Raises
        ------
        ValueError
            If the title or text is empty, or ``summary_type`` is unknown.
        SummaryGenerationError
            If any generation step fails.
        """
        summary_type = SummaryType(summary_type)
        self._require_title(source_title)
        if not text or not text.strip():
            raise ValueError("text is required and must be non-empty.")

        started = time.perf_counter()
        steps: list[StepResult] = []

        if summary_type is SummaryType.SEGMENT:
            whole = DocumentSegment(
                source_id=source_id,
                segment_index=0,
                start_index=0,
                end_index=len(text),
                estimated_tokens=estimate_tokens(text),
                text=text,
            )
            steps.append(await self.generate_segment_summary(whole, source_title))
        else:
            segments = self.segmenter.segment(text, source_id)
            for segment in segments:
                steps.append(await self.generate_segment_summary(segment, source_title))
            segment_texts = [step.content for step in steps]

            if summary_type is SummaryType.DETAILED:
                steps.append(await self.generate_detailed_summary(segment_texts, source_title))
            else:
                key_points = await self.generate_key_points_summary(segment_texts, source_title)
                steps.append(key_points)
                if summary_type is SummaryType.EXECUTIVE:
                    steps.append(
                        await self.generate_executive_summary(key_points.content, source_title)
                    )

        final = steps[-1]
        return CreateSummaryInput(
            source_id=source_id,
            summary_type=summary_type,
            title=f"{summary_type.label}: {source_title}",
            content=final.content,
            word_count=word_count(final.content),
            generation_model=self.generator.model,
            generation_duration_ms=int((time.perf_counter() - started) * 1000),
            input_token_count=sum(step.input_tokens for step in steps),
            output_token_count=sum(step.output_tokens for step in steps),
        )

    def __repr__(self) -> str:
        return f"SummaryPipeline(generator={self.generator!r}, model={self.generator.model!r})"


__all__ = [
    "PipelineResult",
    "ProgressCallback",
    "StepResult",
    "SummarizationProgress",
    "SummaryGenerationError",
    "SummaryPipeline",
    "gather_or_cancel",
]
