"""Summary exporters — render a stored :class:`Summary` as a downloadable file.

Each exporter implements the :class:`SummaryExporter` Protocol and returns
an :class:`ExportedFile` holding the filename, MIME type and text content.

Classes
-------
SummaryExporter
    Protocol that every exporter must satisfy.
ExportedFile
    Rendered export: filename, content type, content.
MarkdownExporter
    ``# title``, optional metadata block, then the summary content.
AnkiExporter
    Semicolon-delimited CSV of flashcards derived from labelled bullets
    and long numbered items.
"""
from __future__ import annotations

import csv
import io
import re
from dataclasses import dataclass
from typing import Protocol

from summary_hierarchy.summary.state import ExportFormat, Summary

_MAX_FILENAME_LENGTH = 100
_MIN_NUMBERED_ITEM_LENGTH = 20

_BOLD_LABEL_RE = re.compile(r"^[-*]\s*\*\*([^*]+)\*\*[:\s]*(.+)")
_NUMBERED_RE = re.compile(r"^\d+\.\s+(.+)")


def sanitize_filename(name: str) -> str:
    """Reduce ``name`` to ASCII letters, digits and single hyphens.

    >>> sanitize_filename("Key Points: Deep Learning!")
    'Key-Points-Deep-Learning'
    """
    cleaned = re.sub(r"[^A-Za-z0-9]", "-", name)
    cleaned = re.sub(r"-+", "-", cleaned).strip("-")
    return cleaned[:_MAX_FILENAME_LENGTH] or "summary"


@dataclass(frozen=True)
class ExportedFile:
    """A rendered export ready to be written or served."""

    filename: str
    content_type: str
    content: str


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


class SummaryExporter(Protocol):
    """Protocol for all summary exporters."""

    def export(self, summary: Summary, *, include_metadata: bool = True) -> ExportedFile:
        """Render ``summary`` in the exporter's format."""
        ...  # pragma: no cover


# ---------------------------------------------------------------------------
# Markdown exporter
# ---------------------------------------------------------------------------


class MarkdownExporter:
    """Render a summary as a Markdown document."""

    def export(self, summary: Summary, *, include_metadata: bool = True) -> ExportedFile:
        """Return ``# title``, an optional ``---`` fenced metadata block and the content.

        Parameters
        ----------
        summary:
            The summary to render.
        include_metadata:
            Include type, generation time, model and word count.

        Returns
        -------
        ExportedFile
            ``text/markdown`` file named after the sanitised title.
        """
        parts = [f"# {summary.title}\n\n"]
        if include_metadata:
            parts.append(
                "---\n"
                f"Type: {summary.summary_type.value}\n"
                f"Generated: {summary.created_at.isoformat()}\n"
                f"Model: {summary.generation_model}\n"
                f"Word Count: {summary.word_count}\n"
                "---\n\n"
            )
        parts.append(summary.content)
        return ExportedFile(
            filename=f"{sanitize_filename(summary.title)}.md",
            content_type="text/markdown",
            content="".join(parts),
        )


# ---------------------------------------------------------------------------
# Anki exporter
# ---------------------------------------------------------------------------


class AnkiExporter:
    """Turn a summary into Anki-importable flashcards.

    ``- **Label**: text`` bullets become "What is Label?" cards.  Numbered
    items longer than 20 characters become cards asking for a key point
    about the nearest preceding ``##`` heading (or the summary title).
    """

    def cards(self, summary: Summary) -> list[tuple[str, str]]:
        """Return ``(front, back)`` pairs in content order."""
        cards: list[tuple[str, str]] = []
        section = summary.title
        for line in summary.content.splitlines():
            stripped = line.strip()
            if stripped.startswith("##"):
                section = re.sub(r"^#+\s*", "", stripped)
                continue
            label = _BOLD_LABEL_RE.match(stripped)
            if label:
                cards.append((f"What is {label.group(1).strip()}?", label.group(2).strip()))
                continue
            numbered = _NUMBERED_RE.match(stripped)
            if numbered and len(numbered.group(1)) > _MIN_NUMBERED_ITEM_LENGTH:
                cards.append((f"What is a key point about {section}?", numbered.group(1)))
        return cards

    def export(self, summary: Summary, *, include_metadata: bool = True) -> ExportedFile:
        """Return a ``front;back`` CSV; ``include_metadata`` is ignored."""
        buffer = io.StringIO()
        writer = csv.writer(buffer, delimiter=";", quoting=csv.QUOTE_ALL, lineterminator="\n")
        buffer.write("front;back\n")
        writer.writerows(self.cards(summary))
        return ExportedFile(
            filename=f"{sanitize_filename(summary.title)}-anki.csv",
            content_type="text/csv",
            content=buffer.getvalue().rstrip("\n"),
        )


_EXPORTERS: dict[ExportFormat, SummaryExporter] = {
    ExportFormat.MARKDOWN: MarkdownExporter(),
    ExportFormat.ANKI: AnkiExporter(),
}


def export_summary(
    summary: Summary,
    fmt: ExportFormat | str = ExportFormat.MARKDOWN,
    *,
    include_metadata: bool = True,
) -> ExportedFile:
    """Render ``summary`` in ``fmt``.

    Raises
    ------
    ValueError
        If ``fmt`` is unknown or not supported (PDF).
    """
    export_format = ExportFormat(fmt)
    exporter = _EXPORTERS.get(export_format)
    if exporter is None:
        raise ValueError(
            f"Export format {export_format.value!r} is not supported; "
            f"use one of {[f.value for f in _EXPORTERS]}."
        )
    return exporter.export(summary, include_metadata=include_metadata)


__all__ = [
    "AnkiExporter",
    "ExportedFile",
    "MarkdownExporter",
    "SummaryExporter",
    "export_summary",
    "sanitize_filename",
]
