"""Unit tests for summary_hierarchy.segmentation.structure."""
from __future__ import annotations

import pytest

from summary_hierarchy.segmentation.structure import (
    DEFAULT_PATTERNS,
    DetectedStructure,
    StructureDetector,
    detect_structure,
)


@pytest.fixture()
def detector() -> StructureDetector:
    return StructureDetector()


# ---------------------------------------------------------------------------
# match_line
# ---------------------------------------------------------------------------


class TestMatchLine:
    @pytest.mark.parametrize(
        ("line", "expected"),
        [
            ("Chapter 3: Methods", ("Methods", 1)),
            ("Part 2 Overview", ("Overview", 0)),
            ("Section 4: Results", ("Results", 2)),
            ("1. Introduction", ("Introduction", 2)),
            ("1.2 Scope", ("Scope", 3)),
            ("IV. Discussion", ("Discussion", 1)),
            ("# Title", ("Title", 1)),
            ("## Background", ("Background", 2)),
            ("### Details", ("Details", 3)),
            ("#### Deep Dive", ("Deep Dive", 4)),
            ("EXECUTIVE OVERVIEW", ("EXECUTIVE OVERVIEW", 2)),
            ("   ## Indented   ", ("Indented", 2)),
        ],
    )
    def test_heading_forms(
        self, detector: StructureDetector, line: str, expected: tuple[str, int]
    ) -> None:
        assert detector.match_line(line) == expected

    @pytest.mark.parametrize(
        "line",
        ["", "   ", "This is an ordinary sentence.", "SHORT CAPS", "1.Missing space"],
    )
    def test_non_headings(self, detector: StructureDetector, line: str) -> None:
        assert detector.match_line(line) is None

    def test_decimal_prefix_reads_as_sub_numbered(self, detector: StructureDetector) -> None:
        assert detector.match_line("1.5 percent growth") == ("percent growth", 3)

    def test_chapter_without_title_keeps_whole_heading(self, detector: StructureDetector) -> None:
        assert detector.match_line("Chapter 7") == ("Chapter 7", 1)

    def test_default_patterns_exposed(self, detector: StructureDetector) -> None:
        assert detector.patterns == DEFAULT_PATTERNS


# ---------------------------------------------------------------------------
# detect
# ---------------------------------------------------------------------------


class TestDetect:
    def test_no_headings_single_boundary(self) -> None:
        structure = detect_structure("Just a paragraph.\n\nAnother one.")
        assert structure.boundaries == [0]
        assert structure.titles == {}
        assert structure.title_at(0) is None
        assert structure.level_at(0) == 0

    def test_markdown_offsets_titles_levels(self) -> None:
        text = "# Title\n\nIntro.\n\n## Part A\n\nBody text."
        structure = detect_structure(text)
        part_offset = text.index("## Part A")
        assert structure.boundaries == [0, part_offset]
        assert structure.titles == {0: "Title", part_offset: "Part A"}
        assert structure.levels == {0: 1, part_offset: 2}

    def test_preamble_keeps_zero_boundary(self) -> None:
        text = "Preface text.\n\nChapter 1: Start\n\nContent."
        structure = detect_structure(text)
        offset = text.index("Chapter 1")
        assert structure.boundaries == [0, offset]
        assert structure.title_at(0) is None
        assert structure.title_at(offset) == "Start"

    def test_boundaries_sorted_and_distinct(self) -> None:
        text = "## A\n## B\n## C\n"
        structure = detect_structure(text)
        assert structure.boundaries == sorted(set(structure.boundaries))
        assert len(structure.boundaries) == 3

    def test_sections_cover_text(self) -> None:
        text = "## A\n\nalpha\n\n## B\n\nbeta"
        structure = detect_structure(text)
        sections = structure.sections(len(text))
        assert sections[0][0] == 0
        assert sections[-1][1] == len(text)
        for (_, end), (start, _) in zip(sections, sections[1:]):
            assert end == start
        assert "".join(text[s:e] for s, e in sections) == text

    def test_custom_patterns(self) -> None:
        only_h2 = tuple(p for p in DEFAULT_PATTERNS if p.name == "markdown_h2")
        structure = StructureDetector(patterns=only_h2).detect("# One\n\n## Two\n")
        assert list(structure.titles.values()) == ["Two"]


def test_detected_structure_defaults() -> None:
    structure = DetectedStructure()
    assert structure.boundaries == [0]
    assert structure.sections(10) == [(0, 10)]
