"""Convenience API for summary-hierarchy — 3-line quickstart.

Example
-------
::

    from summary_hierarchy import Summarizer
    result = Summarizer().summarize(text, title="Annual report")
    print(result.of_type(SummaryType.EXECUTIVE)[0].content)

"""
from __future__ import annotations

import asyncio
from typing import Any
from uuid import uuid4


class Summarizer:
    """Zero-config summarizer for the 80% use case.

    Uses in-memory storage and the offline extractive generator, so no
    database, network access or API key is required.  Pass a ``generator``
    (for example ``AnthropicGenerator()``) to use a hosted model instead.

    Parameters
    ----------
    generator:
        Optional ``TextGenerator``.  Defaults to ``ExtractiveGenerator()``.
    max_segment_tokens:
        Segment budget.  Default: 15000.

    Example
    -------
    ::

        from summary_hierarchy import Summarizer
        summarizer = Summarizer()
        result = summarizer.summarize(open("notes.md").read(), title="Notes")
        print(len(result.segments), len(result.summaries))
    """

    def __init__(self, generator: Any | None = None, max_segment_tokens: int = 15000) -> None:
        from summary_hierarchy.config import SummarizationConfig
        from summary_hierarchy.generation.extractive import ExtractiveGenerator
        from summary_hierarchy.storage.memory import InMemorySummaryRepository
        from summary_hierarchy.summary.manager import SummaryManager

        self._repository = InMemorySummaryRepository()
        self._manager = SummaryManager(
            repository=self._repository,
            generator=generator or ExtractiveGenerator(),
            config=SummarizationConfig(max_segment_tokens=max_segment_tokens),
        )

    @property
    def manager(self) -> Any:
        """The underlying SummaryManager."""
        return self._manager

    async def asummarize(self, text: str, title: str, source_id: str | None = None) -> Any:
        """Async variant of ``summarize``."""
        return await self._manager.process_document(source_id or str(uuid4()), title, text)

    def summarize(self, text: str, title: str, source_id: str | None = None) -> Any:
        """Segment ``text`` and generate and store every summary kind.

        Must not be called from inside a running event loop; use
        ``asummarize`` there.

        Parameters
        ----------
        text:
            Full document text.
        title:
            Document title.
        source_id:
            Identifier for the document.  A random UUID when omitted.

        Returns
        -------
        ProcessedDocument
            Segments and stored summaries.
        """
        return asyncio.run(self.asummarize(text, title, source_id))

    def segment(self, text: str) -> list[Any]:
        """Return the segments ``text`` would be split into."""
        return self._manager.pipeline.segmenter.segment(text)

    def __repr__(self) -> str:
        return f"Summarizer(generator={self._manager.pipeline.generator!r})"
