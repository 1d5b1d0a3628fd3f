"""Structure detector — find heading-like lines in plain text.

StructureDetector scans a document line by line and tests each stripped
line against an ordered list of heading patterns.  The first matching
pattern wins; the line's start offset becomes a section boundary, the
marker-free heading text becomes its title and the pattern's level becomes
its nesting level.

Levels
------
- 0 — parts
- 1 — chapters, roman numerals, markdown ``#``
- 2 — sections, numbered headings, markdown ``##``, all-caps lines
- 3 — sub-numbered headings (``1.2``), markdown ``###``
- 4 — markdown ``####`` and deeper

Offset 0 is always a boundary, so a document without any headings is a
single untitled top-level unit.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field


# ---------------------------------------------------------------------------
# Heading pattern
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class HeadingPattern:
    """A single heading rule.

    Attributes
    ----------
    name:
        Short label used in debugging output.
    pattern:
        Compiled regex applied with ``match`` to the stripped line.  Group 1
        is the whole heading; group 2, when present and non-empty, is the
        title without its marker.
    level:
        Nesting level assigned to lines matching this rule.
    """

    name: str
    pattern: re.Pattern[str]
    level: int

    def extract_title(self, line: str) -> str | None:
        """Return the heading title for ``line`` or None when it does not match."""
        match = self.pattern.match(line)
        if match is None:
            return None
        groups = match.groups()
        title = groups[1] if len(groups) > 1 and groups[1] else groups[0]
        return re.sub(r"^#+\s*", "", title.strip())


# Evaluation order matters: "1.2 Scope" must not be read as a level-2
# numbered heading, and "## Intro" must not match the single-hash rule.
DEFAULT_PATTERNS: tuple[HeadingPattern, ...] = (
    HeadingPattern("chapter", re.compile(r"(chapter\s+\d+[:\s]*(.*))", re.IGNORECASE), 1),
    HeadingPattern("part", re.compile(r"(part\s+\d+[:\s]*(.*))", re.IGNORECASE), 0),
    HeadingPattern("section", re.compile(r"(section\s+\d+[:\s]*(.*))", re.IGNORECASE), 2),
    HeadingPattern("numbered", re.compile(r"(\d+\.\s+([A-Z].*))"), 2),
    HeadingPattern("sub_numbered", re.compile(r"(\d+\.\d+\s+(.*))"), 3),
    HeadingPattern("roman", re.compile(r"([IVXLCDM]+\.\s+(.*))"), 1),
    HeadingPattern("markdown_h1", re.compile(r"(#\s+(.*))"), 1),
    HeadingPattern("markdown_h2", re.compile(r"(##\s+(.*))"), 2),
    HeadingPattern("markdown_h3", re.compile(r"(###\s+(.*))"), 3),
    HeadingPattern("markdown_deep", re.compile(r"(#{4,}\s+(.*))"), 4),
    HeadingPattern("all_caps", re.compile(r"([A-Z][A-Z\s]{10,}[A-Z])$"), 2),
)


# ---------------------------------------------------------------------------
# Detection result
# ---------------------------------------------------------------------------


@dataclass
class DetectedStructure:
    """Boundaries, titles and levels found in one document.

    Attributes
    ----------
    boundaries:
        Sorted, distinct character offsets; always contains 0.
    titles:
        Mapping of boundary offset to heading title.
    levels:
        Mapping of boundary offset to nesting level.
    """

    boundaries: list[int] = field(default_factory=lambda: [0])
    titles: dict[int, str] = field(default_factory=dict)
    levels: dict[int, int] = field(default_factory=dict)

    def title_at(self, offset: int) -> str | None:
        """Return the title recorded at ``offset``, if any."""
        return self.titles.get(offset)

    def level_at(self, offset: int) -> int:
        """Return the level recorded at ``offset`` (0 when untitled)."""
        return self.levels.get(offset, 0)

    def sections(self, text_length: int) -> list[tuple[int, int]]:
        """Return ``(start, end)`` spans between consecutive boundaries.

        Parameters
        ----------
        text_length:
            Length of the document the boundaries were detected in; used as
            the end of the final span.
        """
        ends = self.boundaries[1:] + [text_length]
        return list(zip(self.boundaries, ends))


# ---------------------------------------------------------------------------
# Detector
# ---------------------------------------------------------------------------


class StructureDetector:
    """Detect heading boundaries in plain or markdown text.

    Parameters
    ----------
    patterns:
        Ordered heading rules.  Defaults to ``DEFAULT_PATTERNS``.
    """

    def __init__(self, patterns: tuple[HeadingPattern, ...] | None = None) -> None:
        self._patterns: tuple[HeadingPattern, ...] = (
            patterns if patterns is not None else DEFAULT_PATTERNS
        )

    @property
    def patterns(self) -> tuple[HeadingPattern, ...]:
        """The heading rules in evaluation order."""
        return self._patterns

    def match_line(self, line: str) -> tuple[str, int] | None:
        """Return ``(title, level)`` for a heading line, else None.

        Parameters
        ----------
        line:
            A single line; surrounding whitespace is ignored.
        """
        stripped = line.strip()
        if not stripped:
            return None
        for heading in self._patterns:
            title = heading.extract_title(stripped)
            if title is not None:
                return title, heading.level
        return None

    def detect(self, text: str) -> DetectedStructure:
        """Scan ``text`` and return its detected structure.

        Parameters
        ----------
        text:
            The full document text.

        Returns
        -------
        DetectedStructure
            Boundaries always include offset 0.
        """
        boundaries: set[int] = {0}
        titles: dict[int, str] = {}
        levels: dict[int, int] = {}

        offset = 0
        for line in text.split("\n"):
            matched = self.match_line(line)
            if matched is not None:
                title, level = matched
                boundaries.add(offset)
                titles[offset] = title
                levels[offset] = level
            offset += len(line) + 1

        return DetectedStructure(
            boundaries=sorted(boundaries),
            titles=titles,
            levels=levels,
        )

    def __repr__(self) -> str:
        return f"StructureDetector(patterns={len(self._patterns)})"


def detect_structure(text: str) -> DetectedStructure:
    """Detect structure in ``text`` with the default heading rules."""
    return StructureDetector().detect(text)


__all__ = [
    "DEFAULT_PATTERNS",
    "DetectedStructure",
    "HeadingPattern",
    "StructureDetector",
    "detect_structure",
]
