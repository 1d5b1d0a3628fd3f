"""Unit tests for summary_hierarchy.cli.main.

Uses Click's test runner (CliRunner) with a SQLite database under
``tmp_path`` and the offline extractive generator, so no external services
are required.
"""
from __future__ import annotations

import asyncio
import re
from pathlib import Path

import pytest
from click.testing import CliRunner

pytest.importorskip("aiosqlite")

from summary_hierarchy.cli.main import cli  # noqa: E402
from summary_hierarchy.storage.sqlite import SQLiteSummaryRepository  # noqa: E402
from summary_hierarchy.summary.state import Summary, SummaryType  # noqa: E402

_UUID_RE = re.compile(r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}")

SOLAR = """# Solar Outlook

## Capacity

Solar capacity doubled across the region during the last three years.
Installers report record demand from households and small businesses.
Grid operators expect the growth to continue through the decade.

## Storage

Battery storage has not kept pace with new solar generation.
Utilities are delaying projects until storage prices fall further.
Analysts warn that evening demand peaks remain a serious problem.
"""

WIND = """# Wind Review

## Offshore

Offshore wind farms are larger and cheaper than ever before.
Turbine makers struggle with supply chain costs and delays.

## Onshore

Onshore projects face long permitting queues in most countries.
Community ownership schemes have improved local acceptance of turbines.
"""


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture()
def db_path(tmp_path: Path) -> str:
    return str(tmp_path / "summaries.db")


@pytest.fixture()
def solar_file(tmp_path: Path) -> str:
    path = tmp_path / "solar.md"
    path.write_text(SOLAR, encoding="utf-8")
    return str(path)


@pytest.fixture()
def wind_file(tmp_path: Path) -> str:
    path = tmp_path / "wind.md"
    path.write_text(WIND, encoding="utf-8")
    return str(path)


def _stored(db_path: str, source_id: str, summary_type: SummaryType | None = None) -> list[Summary]:
    async def fetch() -> list[Summary]:
        async with SQLiteSummaryRepository(db_path=db_path) as repo:
            return await repo.list_summaries(source_id, summary_type, current_only=False)

    return asyncio.run(fetch())


def _flat(output: str) -> str:
    """Collapse the line wrapping rich applies at the default console width."""
    return " ".join(output.split())


def _summarize(runner: CliRunner, db_path: str, file: str, source_id: str) -> None:
    result = runner.invoke(cli, ["--db-path", db_path, "summarize", file, "--source-id", source_id])
    assert result.exit_code == 0, result.output


# ---------------------------------------------------------------------------
# Stateless commands
# ---------------------------------------------------------------------------


class TestStatelessCommands:
    def test_version(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["version"])
        assert result.exit_code == 0
        assert "summary-hierarchy" in result.output
        assert "0.1.0" in result.output

    def test_help_lists_groups(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        for name in ("segment", "summarize", "summaries", "collection", "concepts"):
            assert name in result.output

    def test_segment_json(self, runner: CliRunner, solar_file: str) -> None:
        result = runner.invoke(cli, ["segment", solar_file, "--json-output"])
        assert result.exit_code == 0, result.output
        assert '"segment_index"' in result.output
        assert '"source_id": "solar"' in result.output

    def test_segment_table(self, runner: CliRunner, solar_file: str) -> None:
        result = runner.invoke(cli, ["segment", solar_file, "--max-tokens", "40"])
        assert result.exit_code == 0, result.output
        assert "segment(s), budget 40 tokens" in result.output

    def test_segment_invalid_budget(self, runner: CliRunner, solar_file: str) -> None:
        result = runner.invoke(cli, ["segment", solar_file, "--max-tokens", "-5"])
        assert result.exit_code == 1
        assert "Error" in result.output

    def test_segment_empty_file(self, runner: CliRunner, tmp_path: Path) -> None:
        empty = tmp_path / "empty.txt"
        empty.write_text("   \n", encoding="utf-8")
        result = runner.invoke(cli, ["segment", str(empty)])
        assert result.exit_code == 0
        assert "No content to segment." in result.output

    def test_structure(self, runner: CliRunner, solar_file: str) -> None:
        result = runner.invoke(cli, ["structure", solar_file])
        assert result.exit_code == 0, result.output
        assert "Capacity" in result.output
        assert "Storage" in result.output

    def test_structure_without_headings(self, runner: CliRunner, tmp_path: Path) -> None:
        plain = tmp_path / "plain.txt"
        plain.write_text("just some prose without any headings at all.", encoding="utf-8")
        result = runner.invoke(cli, ["structure", str(plain)])
        assert result.exit_code == 0
        assert "No headings detected." in result.output

    def test_concepts_normalize(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["concepts", "normalize", "AI", "Strategies"])
        assert result.exit_code == 0
        assert "artificial intelligence" in result.output
        assert "strategy" in result.output


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class TestConfiguration:
    def test_yaml_config_sets_budget(
        self, runner: CliRunner, tmp_path: Path, solar_file: str
    ) -> None:
        config = tmp_path / "settings.yaml"
        config.write_text("summarization:\n  max_segment_tokens: 45\n", encoding="utf-8")
        result = runner.invoke(cli, ["--config", str(config), "segment", solar_file])
        assert result.exit_code == 0, result.output
        assert "budget 45 tokens" in result.output

    def test_unknown_section_rejected(
        self, runner: CliRunner, tmp_path: Path, solar_file: str
    ) -> None:
        config = tmp_path / "settings.yaml"
        config.write_text("telemetry:\n  enabled: true\n", encoding="utf-8")
        result = runner.invoke(cli, ["--config", str(config), "segment", solar_file])
        assert result.exit_code == 1
        assert "Invalid configuration" in _flat(result.output)

    def test_missing_config_file(self, runner: CliRunner, tmp_path: Path) -> None:
        result = runner.invoke(cli, ["--config", str(tmp_path / "absent.yaml"), "version"])
        assert result.exit_code == 2


# ---------------------------------------------------------------------------
# summarize / summaries
# ---------------------------------------------------------------------------


class TestSummaries:
    def test_summarize_stores_hierarchy(
        self, runner: CliRunner, db_path: str, solar_file: str
    ) -> None:
        result = runner.invoke(
            cli, ["--db-path", db_path, "summarize", solar_file, "--source-id", "solar"]
        )
        assert result.exit_code == 0, result.output
        assert "100%" in result.output
        assert "Stored" in result.output

        stored = _stored(db_path, "solar")
        kinds = {s.summary_type for s in stored}
        assert kinds == set(SummaryType)
        assert all(s.version == 1 and s.is_current for s in stored)
        executive = next(s for s in stored if s.summary_type is SummaryType.EXECUTIVE)
        assert executive.title == "Executive Summary: solar"

    def test_list_and_versions(self, runner: CliRunner, db_path: str, solar_file: str) -> None:
        _summarize(runner, db_path, solar_file, "solar")
        regenerated = runner.invoke(
            cli,
            ["--db-path", db_path, "regenerate", solar_file, "--source-id", "solar", "--type", "executive"],
        )
        assert regenerated.exit_code == 0, regenerated.output
        assert "executive v2" in regenerated.output

        listed = runner.invoke(cli, ["--db-path", db_path, "summaries", "list", "solar"])
        assert listed.exit_code == 0, listed.output
        assert "executive" in listed.output

        history = _stored(db_path, "solar", SummaryType.EXECUTIVE)
        assert [(s.version, s.is_current) for s in history] == [(2, True), (1, False)]

    def test_list_unknown_source(self, runner: CliRunner, db_path: str) -> None:
        result = runner.invoke(cli, ["--db-path", db_path, "summaries", "list", "nothing"])
        assert result.exit_code == 0
        assert "No summaries found." in result.output

    def test_show_and_rate(self, runner: CliRunner, db_path: str, solar_file: str) -> None:
        _summarize(runner, db_path, solar_file, "solar")
        summary_id = _stored(db_path, "solar", SummaryType.KEY_POINTS)[0].summary_id

        rated = runner.invoke(cli, ["--db-path", db_path, "summaries", "rate", summary_id, "4"])
        assert rated.exit_code == 0, rated.output
        assert "Rated" in rated.output
        assert _stored(db_path, "solar", SummaryType.KEY_POINTS)[0].user_rating == 4

        shown = runner.invoke(
            cli, ["--db-path", db_path, "summaries", "show", summary_id, "--json-output"]
        )
        assert shown.exit_code == 0, shown.output
        assert '"user_rating": 4' in shown.output

    def test_rate_out_of_range(self, runner: CliRunner, db_path: str) -> None:
        result = runner.invoke(cli, ["--db-path", db_path, "summaries", "rate", "any-id", "6"])
        assert result.exit_code == 2

    def test_show_unknown(self, runner: CliRunner, db_path: str) -> None:
        result = runner.invoke(cli, ["--db-path", db_path, "summaries", "show", "ghost"])
        assert result.exit_code == 1
        assert "Not found" in result.output

    def test_delete(self, runner: CliRunner, db_path: str, solar_file: str) -> None:
        _summarize(runner, db_path, solar_file, "solar")
        summary_id = _stored(db_path, "solar", SummaryType.DETAILED)[0].summary_id
        deleted = runner.invoke(cli, ["--db-path", db_path, "summaries", "delete", summary_id])
        assert deleted.exit_code == 0
        again = runner.invoke(cli, ["--db-path", db_path, "summaries", "delete", summary_id])
        assert again.exit_code == 1
        assert "Summary not found" in again.output

    def test_export_markdown_to_stdout(
        self, runner: CliRunner, db_path: str, solar_file: str
    ) -> None:
        _summarize(runner, db_path, solar_file, "solar")
        summary_id = _stored(db_path, "solar", SummaryType.EXECUTIVE)[0].summary_id
        result = runner.invoke(
            cli, ["--db-path", db_path, "summaries", "export", summary_id, "--no-metadata"]
        )
        assert result.exit_code == 0, result.output
        assert result.output.startswith("# Executive Summary: solar\n\n")
        assert "Type:" not in result.output

    def test_export_anki_to_file(
        self, runner: CliRunner, db_path: str, solar_file: str, tmp_path: Path
    ) -> None:
        _summarize(runner, db_path, solar_file, "solar")
        summary_id = _stored(db_path, "solar", SummaryType.KEY_POINTS)[0].summary_id
        target = tmp_path / "out" / "cards.csv"
        result = runner.invoke(
            cli,
            ["--db-path", db_path, "summaries", "export", summary_id, "--format", "anki", "--output", str(target)],
        )
        assert result.exit_code == 0, result.output
        assert target.read_text(encoding="utf-8").startswith("front;back")


# ---------------------------------------------------------------------------
# collection
# ---------------------------------------------------------------------------


class TestCollections:
    def _create(self, runner: CliRunner, db_path: str) -> str:
        result = runner.invoke(
            cli, ["--db-path", db_path, "collection", "create", "Renewables", "--type", "topic"]
        )
        assert result.exit_code == 0, result.output
        match = _UUID_RE.search(result.output)
        assert match is not None, result.output
        return match.group(0)

    def test_aggregate_two_sources(
        self, runner: CliRunner, db_path: str, solar_file: str, wind_file: str
    ) -> None:
        _summarize(runner, db_path, solar_file, "solar")
        _summarize(runner, db_path, wind_file, "wind")
        collection_id = self._create(runner, db_path)
        for source_id in ("solar", "wind"):
            added = runner.invoke(
                cli, ["--db-path", db_path, "collection", "add", collection_id, source_id]
            )
            assert added.exit_code == 0, added.output

        result = runner.invoke(
            cli, ["--db-path", db_path, "collection", "aggregate", collection_id]
        )
        assert result.exit_code == 0, result.output
        assert "Stored aggregated summary" in result.output

        aggregated = _stored(db_path, collection_id)
        assert len(aggregated) == 1
        assert aggregated[0].summary_type is SummaryType.KEY_POINTS
        assert aggregated[0].title == "Aggregated: Renewables"

    def test_aggregate_single_source_fails(
        self, runner: CliRunner, db_path: str, solar_file: str
    ) -> None:
        _summarize(runner, db_path, solar_file, "solar")
        collection_id = self._create(runner, db_path)
        runner.invoke(cli, ["--db-path", db_path, "collection", "add", collection_id, "solar"])
        result = runner.invoke(
            cli, ["--db-path", db_path, "collection", "aggregate", collection_id]
        )
        assert result.exit_code == 1
        assert "at least 2 sources" in _flat(result.output)

    def test_aggregate_unknown_collection(self, runner: CliRunner, db_path: str) -> None:
        result = runner.invoke(cli, ["--db-path", db_path, "collection", "aggregate", "ghost"])
        assert result.exit_code == 1
        assert "Not found" in result.output
