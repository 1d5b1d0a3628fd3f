"""Generation backend subpackage.

All generators implement the ``TextGenerator`` ABC: system prompt and user
prompt in, text plus token usage out.  Optional backends guard their
third-party imports so that the package remains installable without those
extras.

Public surface
--------------
- TextGenerator        — abstract base class
- GenerationResult     — text plus token usage
- GenerationError      — raised on failed calls
- AnthropicGenerator   — Claude via the Messages API (requires ``anthropic``)
- ExtractiveGenerator  — offline TF-IDF sentence extraction
- ScriptedGenerator    — replayed responses (useful for testing)
"""
from __future__ import annotations

from summary_hierarchy.generation.anthropic import AnthropicGenerator
from summary_hierarchy.generation.base import GenerationError, GenerationResult, TextGenerator
from summary_hierarchy.generation.extractive import ExtractiveGenerator
from summary_hierarchy.generation.scripted import GenerationCall, ScriptedGenerator

__all__ = [
    "AnthropicGenerator",
    "ExtractiveGenerator",
    "GenerationCall",
    "GenerationError",
    "GenerationResult",
    "ScriptedGenerator",
    "TextGenerator",
]
