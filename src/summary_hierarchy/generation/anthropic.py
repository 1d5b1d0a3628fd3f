"""Anthropic Messages API generator — requires anthropic (guarded import).

Classes
-------
- AnthropicGenerator  — ``TextGenerator`` backed by ``anthropic.AsyncAnthropic``
"""
from __future__ import annotations

import logging
import os
from typing import Any

from summary_hierarchy.config import DEFAULT_MODEL
from summary_hierarchy.generation.base import GenerationError, GenerationResult, TextGenerator

logger = logging.getLogger(__name__)

_ANTHROPIC_IMPORT_ERROR = (
    "AnthropicGenerator requires the 'anthropic' package. "
    "Install it with: pip install anthropic  or  pip install 'summary-hierarchy[anthropic]'"
)


class AnthropicGenerator(TextGenerator):
    """Generate text with Claude through the Messages API.

    Parameters
    ----------
    model:
        Model identifier.  Defaults to ``DEFAULT_MODEL``.
    api_key:
        API key.  Defaults to ``$ANTHROPIC_API_KEY``.
    client:
        Pre-built ``anthropic.AsyncAnthropic``-compatible client; mainly for
        tests.  When given, ``api_key`` is ignored.
    """

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        api_key: str | None = None,
        client: Any | None = None,
    ) -> None:
        self.model = model
        if client is not None:
            self._client = client
            return
        try:
            import anthropic
        except ImportError as exc:
            raise ImportError(_ANTHROPIC_IMPORT_ERROR) from exc
        self._client = anthropic.AsyncAnthropic(
            api_key=api_key or os.getenv("ANTHROPIC_API_KEY")
        )

    async def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        max_output_tokens: int,
    ) -> GenerationResult:
        """Send one Messages API request and join its text blocks.

        Raises
        ------
        GenerationError
            Wrapping any SDK or transport exception.
        """
        try:
            response = await self._client.messages.create(
                model=self.model,
                max_tokens=max_output_tokens,
                system=system_prompt,
                messages=[{"role": "user", "content": user_prompt}],
            )
        except Exception as exc:
            raise GenerationError(f"{type(exc).__name__}: {exc}") from exc

        text = "".join(
            block.text for block in response.content if getattr(block, "type", "") == "text"
        )
        usage = response.usage
        logger.debug(
            "AnthropicGenerator: %s used %d input / %d output tokens",
            self.model,
            usage.input_tokens,
            usage.output_tokens,
        )
        return GenerationResult(
            text=text,
            input_tokens=usage.input_tokens,
            output_tokens=usage.output_tokens,
        )

    def __repr__(self) -> str:
        return f"AnthropicGenerator(model={self.model!r})"


__all__ = ["AnthropicGenerator"]
