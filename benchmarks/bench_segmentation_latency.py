"""Benchmark: Document segmentation latency — per-call p50/p99.

Measures DocumentSegmenter.segment() on a synthetic markdown document large
enough to force section packing and paragraph fallback.
"""
from __future__ import annotations

import json
import sys
import time
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from summary_hierarchy.config import SegmentOptions
from summary_hierarchy.segmentation.segmenter import DocumentSegmenter

_WARMUP: int = 20
_ITERATIONS: int = 300
_SECTIONS: int = 40
_PARAGRAPHS_PER_SECTION: int = 12


def _build_document() -> str:
    paragraph = (
        "Hierarchical summaries condense long documents into progressively "
        "shorter views, from segment notes up to an executive overview. "
    ) * 4
    parts: list[str] = []
    for section in range(_SECTIONS):
        parts.append(f"## Section {section + 1}")
        parts.extend(paragraph.strip() for _ in range(_PARAGRAPHS_PER_SECTION))
    return "\n\n".join(parts)


def bench_segmentation_latency() -> dict[str, object]:
    """Benchmark DocumentSegmenter.segment() per-call latency.

    Returns
    -------
    dict with keys: operation, iterations, document_chars, segments,
    total_seconds, ops_per_second, avg_latency_ms, p50_latency_ms,
    p99_latency_ms.
    """
    text = _build_document()
    segmenter = DocumentSegmenter(SegmentOptions(max_tokens_per_segment=2000))

    for _ in range(_WARMUP):
        segmenter.segment(text, source_id="warmup")

    latencies_ms: list[float] = []
    segment_count = 0
    for i in range(_ITERATIONS):
        t0 = time.perf_counter()
        segments = segmenter.segment(text, source_id=f"doc-{i}")
        latencies_ms.append((time.perf_counter() - t0) * 1000)
        segment_count = len(segments)

    sorted_lats = sorted(latencies_ms)
    n = len(sorted_lats)
    total = sum(latencies_ms) / 1000

    result: dict[str, object] = {
        "operation": "segmentation_latency",
        "iterations": _ITERATIONS,
        "document_chars": len(text),
        "segments": segment_count,
        "total_seconds": round(total, 4),
        "ops_per_second": round(_ITERATIONS / total, 1),
        "avg_latency_ms": round(sum(latencies_ms) / n, 4),
        "p50_latency_ms": round(sorted_lats[n // 2], 4),
        "p99_latency_ms": round(sorted_lats[min(int(n * 0.99), n - 1)], 4),
    }
    print(
        f"[bench_segmentation_latency] {result['operation']}: "
        f"segments={segment_count}  "
        f"p99={result['p99_latency_ms']:.4f}ms  "
        f"mean={result['avg_latency_ms']:.4f}ms"
    )
    return result


def run_benchmark() -> dict[str, object]:
    """Entry point returning the benchmark result dict."""
    return bench_segmentation_latency()


if __name__ == "__main__":
    result = run_benchmark()
    results_dir = Path(__file__).parent / "results"
    results_dir.mkdir(exist_ok=True)
    output_path = results_dir / "segmentation_baseline.json"
    with open(output_path, "w", encoding="utf-8") as fh:
        json.dump(result, fh, indent=2)
    print(f"Results saved to {output_path}")
