"""Summary domain models.

All types are Pydantic BaseModel subclasses to enable runtime validation
and JSON serialisation.

Classes
-------
- SummaryType        — enum of summary kinds
- CollectionType     — enum of collection categories
- ExportFormat       — enum of export targets
- DocumentSegment    — a contiguous, budget-bounded span of a source document
- CreateSummaryInput — the writable fields of a summary
- Summary            — a stored, versioned summary record
- UpdateSummaryInput — caller edits to an existing summary
- SummaryCollection  — a named grouping of source documents
- CollectionSource   — membership of one source in one collection
- Concept            — a named idea extracted from a summary
- CommonTheme        — a theme shared by several summaries
- UniqueInsight      — an insight found in only one source
- AggregatedSummary  — cross-source aggregation result
- SummaryComparison  — agreements/differences between two summaries
"""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Literal
from uuid import uuid4

from pydantic import BaseModel, Field, model_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SummaryType(str, Enum):
    """Summary kinds, from most to least condensed."""

    EXECUTIVE = "executive"
    KEY_POINTS = "key_points"
    DETAILED = "detailed"
    SEGMENT = "segment"

    @property
    def label(self) -> str:
        """Human-readable label, e.g. ``"Key points"``."""
        return self.value.replace("_", " ").capitalize()


class CollectionType(str, Enum):
    """Categories of summary collections."""

    TOPIC = "topic"
    COURSE = "course"
    CUSTOM = "custom"


class ExportFormat(str, Enum):
    """Supported export targets."""

    MARKDOWN = "markdown"
    ANKI = "anki"
    PDF = "pdf"


class DocumentSegment(BaseModel):
    """A contiguous span of a source document produced by the segmenter.

    Parameters
    ----------
    segment_id:
        Unique identifier for this segment record.
    source_id:
        The document this segment belongs to.
    segment_index:
        Zero-based position; dense and gap-free within a document.
    start_index:
        Character offset of the first character in the original text.
    end_index:
        Character offset one past the last character in the original text.
    section_title:
        Title of the detected section this segment starts in, if any.
    level:
        Nesting level (0 = document/part, larger = deeper).
    estimated_tokens:
        Token estimate for ``text``.
    text:
        The segment's raw text.  Transient: excluded from serialisation.
    created_at:
        When the segment record was created (UTC).
    """

    segment_id: str = Field(default_factory=lambda: str(uuid4()))
    source_id: str
    segment_index: int = Field(ge=0)
    start_index: int = Field(default=0, ge=0)
    end_index: int = Field(default=0, ge=0)
    section_title: str | None = None
    level: int = Field(default=0, ge=0)
    estimated_tokens: int = Field(default=0, ge=0)
    text: str = Field(default="", exclude=True)
    created_at: datetime = Field(default_factory=_utcnow)

    model_config = {"frozen": False}

    @model_validator(mode="after")
    def _check_offsets(self) -> "DocumentSegment":
        if self.end_index < self.start_index:
            raise ValueError(
                f"end_index ({self.end_index}) precedes start_index ({self.start_index})."
            )
        return self


class CreateSummaryInput(BaseModel):
    """The fields a caller supplies when inserting a summary.

    Version, current flag, id and timestamps are assigned by the repository.

    Parameters
    ----------
    source_id:
        The document (or collection, for aggregated summaries) summarised.
    summary_type:
        Which kind of summary this is.
    title:
        Display title.
    content:
        The summary text.
    word_count:
        Whitespace-delimited word count of ``content``.
    parent_version_id:
        Explicit predecessor; filled in by the repository when left empty.
    generation_model:
        Identifier of the model that produced the content.
    generation_duration_ms:
        Wall-clock generation time in milliseconds.
    input_token_count:
        Prompt tokens reported by the generator.
    output_token_count:
        Completion tokens reported by the generator.
    quality_score:
        Optional automatic quality score in [0.0, 1.0].
    user_rating:
        Optional 1–5 star rating.
    """

    source_id: str
    summary_type: SummaryType
    title: str
    content: str
    word_count: int = Field(default=0, ge=0)
    parent_version_id: str | None = None
    generation_model: str = ""
    generation_duration_ms: int | None = None
    input_token_count: int | None = None
    output_token_count: int | None = None
    quality_score: float | None = Field(default=None, ge=0.0, le=1.0)
    user_rating: int | None = Field(default=None, ge=1, le=5)

    model_config = {"frozen": False}


class Summary(CreateSummaryInput):
    """A stored summary with versioning metadata.

    Within one ``(source_id, summary_type)`` scope all current rows share
    the highest version; older generations are kept with ``is_current``
    False.

    Parameters
    ----------
    summary_id:
        Unique identifier for this row.
    version:
        Monotonic version number scoped to ``(source_id, summary_type)``.
    is_current:
        True for the live generation of the scope.
    created_at:
        Insert timestamp (UTC).
    updated_at:
        Last edit timestamp (UTC).
    """

    summary_id: str = Field(default_factory=lambda: str(uuid4()))
    version: int = Field(default=1, ge=1)
    is_current: bool = True
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @classmethod
    def from_input(
        cls,
        data: CreateSummaryInput,
        *,
        version: int,
        parent_version_id: str | None = None,
    ) -> "Summary":
        """Build a current ``Summary`` row from a create request."""
        fields = data.model_dump()
        if fields.get("parent_version_id") is None:
            fields["parent_version_id"] = parent_version_id
        return cls(**fields, version=version, is_current=True)

    @property
    def scope(self) -> tuple[str, SummaryType]:
        """The ``(source_id, summary_type)`` versioning scope."""
        return self.source_id, self.summary_type


class UpdateSummaryInput(BaseModel):
    """Caller edits to a stored summary.  Unset fields are left untouched."""

    title: str | None = None
    content: str | None = None
    quality_score: float | None = Field(default=None, ge=0.0, le=1.0)
    user_rating: int | None = Field(default=None, ge=1, le=5)


class SummaryCollection(BaseModel):
    """A named grouping of source documents.

    Parameters
    ----------
    collection_id:
        Unique identifier; also used as the ``source_id`` of aggregated
        summaries generated for this collection.
    name:
        Display name.
    description:
        Optional free-text description.
    collection_type:
        Category (see ``CollectionType``).
    aggregated_summary_id:
        The most recently generated aggregated summary, if any.
    created_at:
        Creation timestamp (UTC).
    """

    collection_id: str = Field(default_factory=lambda: str(uuid4()))
    name: str = Field(min_length=1)
    description: str = ""
    collection_type: CollectionType = CollectionType.CUSTOM
    aggregated_summary_id: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)

    model_config = {"frozen": False}


class CollectionSource(BaseModel):
    """Membership of a source in a collection.

    ``weight`` is stored for callers but is not consumed by aggregation.
    """

    collection_id: str
    source_id: str
    sequence: int | None = None
    weight: float = Field(default=1.0, ge=0.0)

    model_config = {"frozen": False}


class Concept(BaseModel):
    """A named idea extracted from a summary.

    ``concept_normalized`` is filled from ``normalize_concept`` when left
    empty; it is used only for duplicate matching.
    """

    concept_id: str = Field(default_factory=lambda: str(uuid4()))
    summary_id: str
    concept: str = Field(min_length=1)
    concept_normalized: str = ""
    definition: str | None = None
    importance_score: float = Field(default=0.5, ge=0.0, le=1.0)

    model_config = {"frozen": False}

    @model_validator(mode="after")
    def _fill_normalized(self) -> "Concept":
        if not self.concept_normalized:
            from summary_hierarchy.aggregation.concepts import normalize_concept

            self.concept_normalized = normalize_concept(self.concept)
        return self


class CommonTheme(BaseModel):
    """A theme appearing across several summaries."""

    theme: str
    description: str = ""
    source_count: int = Field(default=1, ge=0)
    importance: Literal["high", "medium", "low"] = "medium"

    def render(self) -> str:
        """Return the ``"theme: description"`` form used in results."""
        return f"{self.theme}: {self.description}" if self.description else self.theme


class UniqueInsight(BaseModel):
    """An insight attributed to exactly one source."""

    source_id: str
    insight: str
    significance: str = ""


class AggregatedSummary(BaseModel):
    """Result of a cross-source aggregation."""

    summary: CreateSummaryInput
    common_themes: list[str] = Field(default_factory=list)
    unique_insights: list[UniqueInsight] = Field(default_factory=list)
    source_summaries: list[Summary] = Field(default_factory=list)


class SummaryComparison(BaseModel):
    """Points of agreement and difference between two summaries."""

    agreements: list[str] = Field(default_factory=list)
    disagreements: list[str] = Field(default_factory=list)
    unique_first: list[str] = Field(default_factory=list)
    unique_second: list[str] = Field(default_factory=list)


__all__ = [
    "AggregatedSummary",
    "CollectionSource",
    "CollectionType",
    "CommonTheme",
    "Concept",
    "CreateSummaryInput",
    "DocumentSegment",
    "ExportFormat",
    "Summary",
    "SummaryCollection",
    "SummaryComparison",
    "SummaryType",
    "UniqueInsight",
    "UpdateSummaryInput",
]
