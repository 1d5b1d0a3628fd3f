"""Configuration models.

Every tunable of the segmenter, the summarization pipeline and the
aggregator lives in one of the Pydantic models below.  ``Settings`` bundles
them and can be loaded from a YAML file, with a couple of environment
variable overrides for deployment.

Classes
-------
- SegmentOptions       — segmenter budget and boundary behaviour
- SummarizationConfig  — model, per-step output budgets, concurrency
- AggregationOptions   — cross-source aggregation behaviour
- Settings             — bundle of the above plus the storage location

Example YAML
------------
.. code-block:: yaml

    summarization:
      model: claude-sonnet-4-20250514
      max_segment_tokens: 12000
      segment_concurrency: 2
    aggregation:
      weight_by_recency: true
    storage:
      db_path: ~/.summary-hierarchy/summaries.db
"""
from __future__ import annotations

import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator

DEFAULT_MODEL: str = "claude-sonnet-4-20250514"
DEFAULT_DB_PATH: Path = Path.home() / ".summary-hierarchy" / "summaries.db"

_MODEL_ENV_VARS: tuple[str, ...] = ("SUMMARY_HIERARCHY_MODEL", "CLAUDE_MODEL")
_DB_ENV_VAR: str = "SUMMARY_HIERARCHY_DB"


def _default_model() -> str:
    for name in _MODEL_ENV_VARS:
        value = os.environ.get(name)
        if value:
            return value
    return DEFAULT_MODEL


class SegmentOptions(BaseModel):
    """Options for ``DocumentSegmenter``.

    Parameters
    ----------
    max_tokens_per_segment:
        Token budget per segment and whole-document passthrough threshold.
        Default: 15000.
    respect_section_boundaries:
        When True (default), group detected sections into segments before
        falling back to paragraph packing.
    overlap_tokens:
        Reserved for overlapping windows.  Accepted and validated but not
        used by the splitting algorithm.  Default: 100.
    """

    max_tokens_per_segment: int = 15000
    respect_section_boundaries: bool = True
    overlap_tokens: int = 100

    @field_validator("max_tokens_per_segment")
    @classmethod
    def _positive_budget(cls, value: int) -> int:
        if value < 1:
            raise ValueError(f"max_tokens_per_segment must be >= 1, got {value!r}.")
        return value

    @field_validator("overlap_tokens")
    @classmethod
    def _non_negative_overlap(cls, value: int) -> int:
        if value < 0:
            raise ValueError(f"overlap_tokens must be >= 0, got {value!r}.")
        return value


class SummarizationConfig(BaseModel):
    """Configuration for ``SummaryPipeline``.

    Parameters
    ----------
    model:
        Model identifier passed to generators that need one.  Defaults to
        ``$SUMMARY_HIERARCHY_MODEL``, then ``$CLAUDE_MODEL``, then
        ``DEFAULT_MODEL``.
    max_segment_tokens:
        Segment budget handed to the segmenter.
    respect_section_boundaries:
        Forwarded to the segmenter.
    overlap_tokens:
        Forwarded to the segmenter (currently inert).
    segment_summary_tokens:
        Output budget for each segment summary.
    key_points_output_tokens:
        Output budget for the key points summary.
    executive_output_tokens:
        Output budget for the executive summary.
    detailed_output_tokens:
        Output budget for the detailed summary.
    segment_concurrency:
        Maximum in-flight segment summary calls.  1 (default) summarises
        segments strictly one after another.
    concurrent_synthesis:
        When True (default), the detailed summary is generated alongside
        the key points → executive chain instead of after it.
    """

    model: str = Field(default_factory=_default_model)
    max_segment_tokens: int = Field(default=15000, ge=1)
    respect_section_boundaries: bool = True
    overlap_tokens: int = Field(default=100, ge=0)
    segment_summary_tokens: int = Field(default=2000, ge=1)
    key_points_output_tokens: int = Field(default=1500, ge=1)
    executive_output_tokens: int = Field(default=800, ge=1)
    detailed_output_tokens: int = Field(default=3000, ge=1)
    segment_concurrency: int = Field(default=1, ge=1)
    concurrent_synthesis: bool = True

    def segment_options(self) -> SegmentOptions:
        """Return the ``SegmentOptions`` implied by this configuration."""
        return SegmentOptions(
            max_tokens_per_segment=self.max_segment_tokens,
            respect_section_boundaries=self.respect_section_boundaries,
            overlap_tokens=self.overlap_tokens,
        )


class AggregationOptions(BaseModel):
    """Configuration for ``Aggregator``.

    Parameters
    ----------
    deduplicate_concepts:
        Reserved for post-aggregation concept deduplication.  Accepted and
        stored but not read by ``Aggregator``; call
        ``SummaryManager.duplicate_concepts`` explicitly.  Default: True.
    weight_by_recency:
        Order sources newest-first in the aggregation prompt.  Default: False.
    max_key_points:
        Number of key points the unified summary should target.  Default: 15.
    include_source_attribution:
        Label each source in the prompt and ask for attribution.  Default: True.
    aggregate_output_tokens:
        Output budget for the unified summary.
    themes_output_tokens:
        Output budget for theme extraction.
    insights_output_tokens:
        Output budget for unique insight extraction.
    compare_output_tokens:
        Output budget for pairwise comparison.
    """

    deduplicate_concepts: bool = True
    weight_by_recency: bool = False
    max_key_points: int = Field(default=15, ge=1)
    include_source_attribution: bool = True
    aggregate_output_tokens: int = Field(default=3000, ge=1)
    themes_output_tokens: int = Field(default=1500, ge=1)
    insights_output_tokens: int = Field(default=1500, ge=1)
    compare_output_tokens: int = Field(default=2000, ge=1)


class Settings(BaseModel):
    """All package settings in one object.

    Parameters
    ----------
    summarization:
        Pipeline configuration.
    aggregation:
        Aggregator configuration.
    db_path:
        SQLite database location.  Defaults to ``$SUMMARY_HIERARCHY_DB`` or
        ``~/.summary-hierarchy/summaries.db``.
    """

    summarization: SummarizationConfig = Field(default_factory=SummarizationConfig)
    aggregation: AggregationOptions = Field(default_factory=AggregationOptions)
    db_path: Path = Field(
        default_factory=lambda: Path(os.environ.get(_DB_ENV_VAR) or DEFAULT_DB_PATH)
    )

    @classmethod
    def from_mapping(cls, data: dict[str, object]) -> "Settings":
        """Build settings from a parsed YAML/JSON mapping.

        Recognised top-level keys are ``summarization``, ``aggregation`` and
        ``storage`` (with a ``db_path`` entry).  Unknown keys are rejected.

        Raises
        ------
        ValueError
            If the mapping has unknown sections or invalid values.
        """
        known = {"summarization", "aggregation", "storage"}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown configuration sections: {sorted(unknown)}")

        kwargs: dict[str, object] = {}
        if data.get("summarization") is not None:
            kwargs["summarization"] = SummarizationConfig(**data["summarization"])  # type: ignore[arg-type]
        if data.get("aggregation") is not None:
            kwargs["aggregation"] = AggregationOptions(**data["aggregation"])  # type: ignore[arg-type]
        storage = data.get("storage") or {}
        if isinstance(storage, dict) and storage.get("db_path"):
            kwargs["db_path"] = Path(str(storage["db_path"])).expanduser()
        return cls(**kwargs)  # type: ignore[arg-type]

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Settings":
        """Load settings from a YAML file.

        An empty file yields the defaults.

        Raises
        ------
        FileNotFoundError
            If ``path`` does not exist.
        ValueError
            If the document is not a mapping or contains invalid values.
        """
        raw = Path(path).read_text(encoding="utf-8")
        data = yaml.safe_load(raw)
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ValueError(f"Configuration file {str(path)!r} must contain a mapping.")
        return cls.from_mapping(data)


__all__ = [
    "AggregationOptions",
    "DEFAULT_DB_PATH",
    "DEFAULT_MODEL",
    "SegmentOptions",
    "Settings",
    "SummarizationConfig",
]
