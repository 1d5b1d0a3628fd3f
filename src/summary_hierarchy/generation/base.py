"""Abstract base class for text generation backends.

The pipeline and aggregator only ever talk to a ``TextGenerator``: a system
prompt and a user prompt go in, text plus token usage comes out.  Concrete
generators wrap a hosted model, an offline extractive summarizer, or a
scripted stub for tests.

Classes
-------
- GenerationResult  — text plus token usage for one call
- GenerationError   — raised by generators on any failed call
- TextGenerator     — abstract base for all generators
"""
from __future__ import annotations

from abc import ABC, abstractmethod

from pydantic import BaseModel, Field


class GenerationResult(BaseModel):
    """Output of a single generation call.

    Parameters
    ----------
    text:
        The generated text.
    input_tokens:
        Prompt tokens consumed, as reported by the backend.
    output_tokens:
        Completion tokens produced, as reported by the backend.
    """

    text: str
    input_tokens: int = Field(default=0, ge=0)
    output_tokens: int = Field(default=0, ge=0)


class GenerationError(RuntimeError):
    """Raised when a generation call fails (transport, quota, filtering)."""


class TextGenerator(ABC):
    """Protocol for prompt-in, text-out generation.

    Implementations must not retry internally; a failed call surfaces
    immediately as ``GenerationError``.  Calls carry no shared mutable
    state, so a generator may be used from concurrent coroutines.
    """

    #: Identifier recorded as ``generation_model`` on produced summaries.
    model: str = "unknown"

    @abstractmethod
    async def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        max_output_tokens: int,
    ) -> GenerationResult:
        """Generate text for the given prompts.

        Parameters
        ----------
        system_prompt:
            Fixed instruction describing the step.
        user_prompt:
            Step input (document content, prior summaries).
        max_output_tokens:
            Upper bound on the response length.

        Returns
        -------
        GenerationResult

        Raises
        ------
        GenerationError
            If the backend call fails.
        """


__all__ = ["GenerationError", "GenerationResult", "TextGenerator"]
