"""System instructions and user-prompt builders for every generation step.

Each step of the summary hierarchy has one fixed system instruction.  The
user prompts wrap step input between ``---`` delimiter lines so that both
hosted models and the offline extractive generator can find it.
"""
from __future__ import annotations

from typing import Sequence

SEGMENT_SYSTEM_PROMPT = """You are an expert summarizer. Write a detailed summary of one segment of a longer document.

Cover:
- The main concepts and ideas
- Key facts, figures and examples
- Important definitions
- How the concepts relate to each other
- Any conclusions or recommendations

Guidelines:
- Be comprehensive but concise
- Keep details that higher-level summaries are likely to drop
- Use bullet points or numbered lists for structure
- Preserve the original meaning and nuance
- Briefly explain any domain-specific terminology"""

KEY_POINTS_SYSTEM_PROMPT = """You synthesize information. Turn the section summaries you are given into a key points summary.

Your task:
- Extract 10-15 key points across all of the summaries
- Keep the most important concepts, insights and takeaways
- Remove redundancy while keeping unique insights
- Group related points by theme
- Make every point understandable on its own

Format each point as:
- **[Short label]**: [1-2 sentence explanation]

Focus on what a reader NEEDS to know."""

EXECUTIVE_SYSTEM_PROMPT = """You write for executives. Turn the key points you are given into an executive summary.

Requirements:
- 2-3 paragraphs, 150-250 words in total
- Open with the single most important insight or conclusion
- Highlight the information that drives decisions
- Use clear, professional language
- Close with implications or next steps when relevant

The summary must answer: "What is the essential takeaway in under two minutes?\""""

DETAILED_SYSTEM_PROMPT = """You are a technical writer. Write a detailed summary that keeps the depth of the original content.

Structure:
1. **Overview** (2-3 sentences)
2. **Main Sections** (follow the document structure, summarize each major section)
3. **Key Concepts** (define and explain the important terms and ideas)
4. **Supporting Details** (examples, data and evidence that matter)
5. **Conclusions** (findings, recommendations, implications)

Guidelines:
- Aim for 500-1000 words depending on the source length
- Keep a logical flow
- Include the specific details that matter
- Use headers, bullets and bold text for readability"""


def _combine_sections(segment_summaries: Sequence[str]) -> str:
    return "\n\n".join(
        f"### Section {index}\n{summary}"
        for index, summary in enumerate(segment_summaries, start=1)
    )


def segment_prompt(source_title: str, segment_text: str, section_title: str | None) -> str:
    """Build the user prompt for one segment summary."""
    section_line = f'Section: "{section_title}"\n' if section_title else ""
    return (
        f'Document: "{source_title}"\n'
        f"{section_line}\n"
        f"Content to summarize:\n"
        f"---\n"
        f"{segment_text}\n"
        f"---\n\n"
        f"Write a detailed summary of this segment."
    )


def key_points_prompt(source_title: str, segment_summaries: Sequence[str]) -> str:
    """Build the user prompt for the key points summary."""
    return (
        f'Document: "{source_title}"\n\n'
        f"Section Summaries:\n"
        f"---\n"
        f"{_combine_sections(segment_summaries)}\n"
        f"---\n\n"
        f"Extract and synthesize 10-15 key points from these section summaries."
    )


def executive_prompt(source_title: str, key_points: str) -> str:
    """Build the user prompt for the executive summary."""
    return (
        f'Document: "{source_title}"\n\n'
        f"Key Points:\n"
        f"---\n"
        f"{key_points}\n"
        f"---\n\n"
        f"Write a concise executive summary (2-3 paragraphs, 150-250 words)."
    )


def detailed_prompt(source_title: str, segment_summaries: Sequence[str]) -> str:
    """Build the user prompt for the detailed summary."""
    return (
        f'Document: "{source_title}"\n\n'
        f"Section Summaries:\n"
        f"---\n"
        f"{_combine_sections(segment_summaries)}\n"
        f"---\n\n"
        f"Write a comprehensive detailed summary that keeps the depth of the original content."
    )


__all__ = [
    "DETAILED_SYSTEM_PROMPT",
    "EXECUTIVE_SYSTEM_PROMPT",
    "KEY_POINTS_SYSTEM_PROMPT",
    "SEGMENT_SYSTEM_PROMPT",
    "detailed_prompt",
    "executive_prompt",
    "key_points_prompt",
    "segment_prompt",
]
