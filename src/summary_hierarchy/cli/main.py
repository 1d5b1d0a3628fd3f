"""CLI entry point for summary-hierarchy.

Invoked as::

    summary-hierarchy [OPTIONS] COMMAND [ARGS]...

or, during development::

    python -m summary_hierarchy.cli.main

Commands
--------
- version     — Show detailed version information
- segment     — Show how a document would be segmented
- structure   — Show the headings detected in a document
- summarize   — Run the full pipeline on a document and store the results
- regenerate  — Regenerate one summary kind for a document
- summaries   — Summary browsing command group
- collection  — Collection command group
- concepts    — Concept utilities

Summaries sub-commands
----------------------
- summaries list    — List the summaries of a source
- summaries show    — Display one summary
- summaries rate    — Record a 1-5 rating
- summaries delete  — Delete one summary
- summaries export  — Export a summary as Markdown or Anki CSV

Collection sub-commands
-----------------------
- collection create     — Create a collection
- collection add        — Add a source to a collection
- collection aggregate  — Aggregate the key points of a collection's sources
"""
from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Awaitable, TypeVar

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from summary_hierarchy.config import Settings
from summary_hierarchy.pipeline.summary_pipeline import SummarizationProgress, SummaryGenerationError
from summary_hierarchy.summary.state import CollectionType, ExportFormat, Summary, SummaryType

console = Console()

T = TypeVar("T")

_SUMMARY_TYPES = [kind.value for kind in SummaryType]
_EXPORT_FORMATS = [ExportFormat.MARKDOWN.value, ExportFormat.ANKI.value]

# ---------------------------------------------------------------------------
# Factories and helpers
# ---------------------------------------------------------------------------


def _settings(ctx: click.Context) -> Settings:
    return ctx.obj["settings"]


def _make_repository(settings: Settings) -> Any:
    """Instantiate the SQLite repository at ``settings.db_path``."""
    from summary_hierarchy.storage.sqlite import SQLiteSummaryRepository

    try:
        return SQLiteSummaryRepository(db_path=settings.db_path)
    except ImportError as exc:
        console.print(f"[red]{exc}[/red]")
        sys.exit(1)


def _make_generator(name: str, settings: Settings) -> Any:
    """Instantiate the requested generation backend.

    Parameters
    ----------
    name:
        ``"extractive"`` (offline) or ``"anthropic"``.
    settings:
        Supplies the model for hosted backends.
    """
    from summary_hierarchy.generation.anthropic import AnthropicGenerator
    from summary_hierarchy.generation.extractive import ExtractiveGenerator

    if name == "extractive":
        return ExtractiveGenerator()
    if name == "anthropic":
        try:
            return AnthropicGenerator(model=settings.summarization.model)
        except ImportError as exc:
            console.print(f"[red]{exc}[/red]")
            sys.exit(1)
    console.print(f"[red]Unknown generator: {name!r}[/red]")
    sys.exit(1)


def _make_manager(settings: Settings, generator_name: str = "extractive") -> Any:
    from summary_hierarchy.summary.manager import SummaryManager

    return SummaryManager(
        repository=_make_repository(settings),
        generator=_make_generator(generator_name, settings),
        config=settings.summarization,
        aggregation_options=settings.aggregation,
    )


def _run(awaitable: Awaitable[T]) -> T:
    """Run a coroutine, reporting expected failures and exiting with status 1."""
    try:
        return asyncio.run(awaitable)  # type: ignore[arg-type]
    except KeyError as exc:
        console.print(f"[red]Not found:[/red] {exc.args[0] if exc.args else exc}")
        sys.exit(1)
    except SummaryGenerationError as exc:
        console.print(f"[red]Generation failed:[/red] {exc}")
        sys.exit(1)
    except ValueError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        sys.exit(1)


def _read_text(path: str) -> str:
    try:
        return Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        console.print(f"[red]Failed to read input:[/red] {exc}")
        sys.exit(1)


def _summary_table(title: str, summaries: list[Summary]) -> Table:
    table = Table(title=title, show_lines=False)
    table.add_column("Type", style="cyan")
    table.add_column("Ver", justify="right")
    table.add_column("Current", justify="center")
    table.add_column("Words", justify="right")
    table.add_column("ID", no_wrap=True, min_width=36)
    for summary in summaries:
        table.add_row(
            summary.summary_type.value,
            str(summary.version),
            "[green]yes[/green]" if summary.is_current else "[dim]no[/dim]",
            str(summary.word_count),
            summary.summary_id,
        )
    return table


def _print_progress(progress: SummarizationProgress) -> None:
    console.print(f"[dim]{progress.percent:3d}%[/dim] {progress.phase}")


# ---------------------------------------------------------------------------
# Root group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(package_name="summary-hierarchy")
@click.option(
    "--config",
    "config_path",
    default=None,
    type=click.Path(exists=True, dir_okay=False),
    help="YAML settings file.",
)
@click.option("--db-path", default=None, help="Path to the SQLite database.")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, db_path: str | None, verbose: bool) -> None:
    """Hierarchical document summarization with versioned storage"""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
    try:
        settings = Settings.from_yaml(config_path) if config_path else Settings()
    except ValueError as exc:
        console.print(f"[red]Invalid configuration:[/red] {exc}")
        sys.exit(1)
    if db_path:
        settings = settings.model_copy(update={"db_path": Path(db_path)})
    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings


# ---------------------------------------------------------------------------
# version
# ---------------------------------------------------------------------------


@cli.command(name="version")
def version_command() -> None:
    """Show detailed version information."""
    from summary_hierarchy import __version__

    console.print(f"[bold]summary-hierarchy[/bold] v{__version__}")


# ---------------------------------------------------------------------------
# segment / structure
# ---------------------------------------------------------------------------


@cli.command(name="segment")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--max-tokens", default=None, type=int, help="Token budget per segment.")
@click.option("--no-boundaries", is_flag=True, help="Ignore detected sections; pack paragraphs.")
@click.option("--json-output", is_flag=True, help="Output JSON instead of a table.")
@click.pass_context
def segment_command(
    ctx: click.Context,
    file: str,
    max_tokens: int | None,
    no_boundaries: bool,
    json_output: bool,
) -> None:
    """Show how FILE would be segmented."""
    from summary_hierarchy.config import SegmentOptions
    from summary_hierarchy.segmentation.segmenter import DocumentSegmenter

    summarization = _settings(ctx).summarization
    try:
        options = SegmentOptions(
            max_tokens_per_segment=max_tokens or summarization.max_segment_tokens,
            respect_section_boundaries=(
                summarization.respect_section_boundaries and not no_boundaries
            ),
            overlap_tokens=summarization.overlap_tokens,
        )
    except ValueError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        sys.exit(1)

    segments = DocumentSegmenter(options).segment(_read_text(file), source_id=Path(file).stem)

    if json_output:
        console.print_json(json.dumps([s.model_dump(mode="json") for s in segments]))
        return
    if not segments:
        console.print("[yellow]No content to segment.[/yellow]")
        return

    table = Table(title=f"Segments of {Path(file).name}", show_lines=False)
    table.add_column("#", justify="right")
    table.add_column("Section", style="cyan")
    table.add_column("Level", justify="right")
    table.add_column("Start", justify="right")
    table.add_column("End", justify="right")
    table.add_column("Tokens", justify="right")
    for segment in segments:
        table.add_row(
            str(segment.segment_index),
            segment.section_title or "[dim]-[/dim]",
            str(segment.level),
            str(segment.start_index),
            str(segment.end_index),
            str(segment.estimated_tokens),
        )
    console.print(table)
    console.print(f"\n[dim]{len(segments)} segment(s), budget {options.max_tokens_per_segment} tokens.[/dim]")


@cli.command(name="structure")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
def structure_command(file: str) -> None:
    """Show the headings detected in FILE."""
    from summary_hierarchy.segmentation.structure import detect_structure

    structure = detect_structure(_read_text(file))
    if len(structure.boundaries) <= 1 and not structure.titles:
        console.print("[yellow]No headings detected.[/yellow]")
        return

    table = Table(title=f"Structure of {Path(file).name}", show_lines=False)
    table.add_column("Offset", justify="right")
    table.add_column("Level", justify="right")
    table.add_column("Title", style="cyan")
    for offset in structure.boundaries:
        title = structure.title_at(offset)
        if title is None:
            continue
        table.add_row(str(offset), str(structure.level_at(offset)), title)
    console.print(table)


# ---------------------------------------------------------------------------
# summarize / regenerate
# ---------------------------------------------------------------------------


_GENERATOR_OPTION = click.option(
    "--generator",
    "generator_name",
    default="extractive",
    show_default=True,
    type=click.Choice(["extractive", "anthropic"], case_sensitive=False),
    help="Text generation backend.",
)


@cli.command(name="summarize")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--source-id", required=True, help="Identifier to store the document under.")
@click.option("--title", default=None, help="Document title. Defaults to the file name.")
@_GENERATOR_OPTION
@click.pass_context
def summarize_command(
    ctx: click.Context,
    file: str,
    source_id: str,
    title: str | None,
    generator_name: str,
) -> None:
    """Summarize FILE and store its segments and summaries."""
    text = _read_text(file)
    manager = _make_manager(_settings(ctx), generator_name.lower())
    result = _run(
        manager.process_document(
            source_id, title or Path(file).stem, text, on_progress=_print_progress
        )
    )
    console.print(_summary_table(f"Summaries of {source_id}", result.summaries))
    console.print(
        f"\n[green]Stored[/green] {len(result.segments)} segment(s) and "
        f"{len(result.summaries)} summaries."
    )


@cli.command(name="regenerate")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--source-id", required=True, help="Identifier the document is stored under.")
@click.option(
    "--type",
    "summary_type",
    required=True,
    type=click.Choice(_SUMMARY_TYPES, case_sensitive=False),
    help="Summary kind to regenerate.",
)
@click.option("--title", default=None, help="Document title. Defaults to the file name.")
@_GENERATOR_OPTION
@click.pass_context
def regenerate_command(
    ctx: click.Context,
    file: str,
    source_id: str,
    summary_type: str,
    title: str | None,
    generator_name: str,
) -> None:
    """Regenerate one summary kind of FILE as a new version."""
    text = _read_text(file)
    manager = _make_manager(_settings(ctx), generator_name.lower())
    summary = _run(
        manager.regenerate_summary(source_id, title or Path(file).stem, text, summary_type.lower())
    )
    console.print(
        f"[green]Stored[/green] {summary.summary_type.value} v{summary.version}: "
        f"{summary.summary_id}"
    )


# ---------------------------------------------------------------------------
# summaries command group
# ---------------------------------------------------------------------------


@cli.group(name="summaries")
def summaries_group() -> None:
    """Browse, rate and export stored summaries."""


@summaries_group.command(name="list")
@click.argument("source_id")
@click.option(
    "--type",
    "summary_type",
    default=None,
    type=click.Choice(_SUMMARY_TYPES, case_sensitive=False),
    help="Only show one summary kind.",
)
@click.option("--all-versions", is_flag=True, help="Include superseded versions.")
@click.pass_context
def summaries_list(
    ctx: click.Context,
    source_id: str,
    summary_type: str | None,
    all_versions: bool,
) -> None:
    """List the summaries stored for SOURCE_ID."""
    manager = _make_manager(_settings(ctx))
    summaries = _run(
        manager.get_summaries(
            source_id,
            summary_type.lower() if summary_type else None,
            include_versions=all_versions,
        )
    )
    if not summaries:
        console.print("[yellow]No summaries found.[/yellow]")
        return
    console.print(_summary_table(f"Summaries of {source_id}", summaries))


@summaries_group.command(name="show")
@click.argument("summary_id")
@click.option("--json-output", is_flag=True, help="Output raw JSON instead of formatted view.")
@click.pass_context
def summaries_show(ctx: click.Context, summary_id: str, json_output: bool) -> None:
    """Display the summary SUMMARY_ID."""
    manager = _make_manager(_settings(ctx))
    summary = _run(manager.get_summary(summary_id))

    if json_output:
        console.print_json(summary.model_dump_json(indent=2))
        return

    table = Table(title=summary.title, show_lines=True)
    table.add_column("Field", style="bold cyan")
    table.add_column("Value")
    table.add_row("summary_id", summary.summary_id)
    table.add_row("source_id", summary.source_id)
    table.add_row("type", summary.summary_type.value)
    table.add_row("version", f"{summary.version} ({'current' if summary.is_current else 'superseded'})")
    table.add_row("model", summary.generation_model or "-")
    table.add_row("words", str(summary.word_count))
    if summary.input_token_count is not None:
        table.add_row("tokens", f"{summary.input_token_count} in / {summary.output_token_count} out")
    if summary.user_rating is not None:
        table.add_row("rating", "*" * summary.user_rating)
    table.add_row("created_at", summary.created_at.isoformat())
    console.print(table)
    console.print(Panel(summary.content, title="Content", expand=False))


@summaries_group.command(name="rate")
@click.argument("summary_id")
@click.argument("rating", type=click.IntRange(1, 5))
@click.pass_context
def summaries_rate(ctx: click.Context, summary_id: str, rating: int) -> None:
    """Rate the summary SUMMARY_ID from 1 to 5."""
    manager = _make_manager(_settings(ctx))
    _run(manager.rate_summary(summary_id, rating))
    console.print(f"[green]Rated[/green] {summary_id}: {rating}/5")


@summaries_group.command(name="delete")
@click.argument("summary_id")
@click.pass_context
def summaries_delete(ctx: click.Context, summary_id: str) -> None:
    """Delete the summary SUMMARY_ID."""
    manager = _make_manager(_settings(ctx))
    if not _run(manager.delete_summary(summary_id)):
        console.print(f"[red]Summary not found:[/red] {summary_id}")
        sys.exit(1)
    console.print(f"[green]Deleted[/green] {summary_id}")


@summaries_group.command(name="export")
@click.argument("summary_id")
@click.option(
    "--format",
    "fmt",
    default=ExportFormat.MARKDOWN.value,
    show_default=True,
    type=click.Choice(_EXPORT_FORMATS, case_sensitive=False),
    help="Export format.",
)
@click.option("--no-metadata", is_flag=True, help="Omit the metadata block (Markdown).")
@click.option("--output", default=None, help="Write to this file instead of standard output.")
@click.pass_context
def summaries_export(
    ctx: click.Context,
    summary_id: str,
    fmt: str,
    no_metadata: bool,
    output: str | None,
) -> None:
    """Export the summary SUMMARY_ID."""
    manager = _make_manager(_settings(ctx))
    exported = _run(manager.export_summary(summary_id, fmt.lower(), include_metadata=not no_metadata))
    if output is None:
        click.echo(exported.content)
        return
    output_path = Path(output)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(exported.content, encoding="utf-8")
    console.print(f"[green]Exported ({fmt}):[/green] {output}")


# ---------------------------------------------------------------------------
# collection command group
# ---------------------------------------------------------------------------


@cli.group(name="collection")
def collection_group() -> None:
    """Group sources and aggregate their summaries."""


@collection_group.command(name="create")
@click.argument("name")
@click.option(
    "--type",
    "collection_type",
    default=CollectionType.CUSTOM.value,
    show_default=True,
    type=click.Choice([kind.value for kind in CollectionType], case_sensitive=False),
    help="Collection category.",
)
@click.option("--description", default="", help="Free-text description.")
@click.pass_context
def collection_create(
    ctx: click.Context,
    name: str,
    collection_type: str,
    description: str,
) -> None:
    """Create a collection called NAME and print its ID."""
    manager = _make_manager(_settings(ctx))
    collection = _run(
        manager.create_collection(
            name, description=description, collection_type=collection_type.lower()
        )
    )
    console.print(f"[green]Collection created:[/green] {collection.collection_id}")


@collection_group.command(name="add")
@click.argument("collection_id")
@click.argument("source_id")
@click.option("--sequence", default=None, type=int, help="Ordering hint.")
@click.option("--weight", default=1.0, show_default=True, type=float, help="Stored weight.")
@click.pass_context
def collection_add(
    ctx: click.Context,
    collection_id: str,
    source_id: str,
    sequence: int | None,
    weight: float,
) -> None:
    """Add SOURCE_ID to the collection COLLECTION_ID."""
    manager = _make_manager(_settings(ctx))
    _run(manager.add_to_collection(collection_id, source_id, sequence=sequence, weight=weight))
    console.print(f"[green]Added[/green] {source_id} to {collection_id}")


@collection_group.command(name="aggregate")
@click.argument("collection_id")
@click.option("--skip-enrichment", is_flag=True, help="Skip theme and insight extraction.")
@_GENERATOR_OPTION
@click.pass_context
def collection_aggregate(
    ctx: click.Context,
    collection_id: str,
    skip_enrichment: bool,
    generator_name: str,
) -> None:
    """Aggregate the key points summaries of COLLECTION_ID's sources."""
    manager = _make_manager(_settings(ctx), generator_name.lower())
    result = _run(
        manager.aggregate_collection(
            collection_id,
            include_themes=not skip_enrichment,
            include_insights=not skip_enrichment,
        )
    )
    console.print(
        Panel(
            result.summary.content,
            title=f"{result.summary.title} (v{result.summary.version}, {result.source_count} sources)",
            expand=False,
        )
    )
    if result.common_themes:
        console.print("\n[bold]Common themes:[/bold]")
        for theme in result.common_themes:
            console.print(f"  - {theme}")
    if result.unique_insights:
        console.print("\n[bold]Unique insights:[/bold]")
        for insight in result.unique_insights:
            console.print(f"  - [cyan]{insight.source_id}[/cyan]: {insight.insight}")
    console.print(f"\n[green]Stored aggregated summary:[/green] {result.summary.summary_id}")


# ---------------------------------------------------------------------------
# concepts command group
# ---------------------------------------------------------------------------


@cli.group(name="concepts")
def concepts_group() -> None:
    """Concept utilities."""


@concepts_group.command(name="normalize")
@click.argument("concepts", nargs=-1, required=True)
def concepts_normalize(concepts: tuple[str, ...]) -> None:
    """Print the normalised form of each CONCEPT."""
    from summary_hierarchy.aggregation.concepts import normalize_concept

    table = Table(title="Normalised concepts", show_lines=False)
    table.add_column("Concept", style="cyan")
    table.add_column("Normalised")
    for concept in concepts:
        table.add_row(concept, normalize_concept(concept))
    console.print(table)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


if __name__ == "__main__":
    cli()
