"""Scripted generator for tests and dry runs.

Returns pre-programmed responses and records every call so tests can
assert on prompts, ordering and budgets.  All data lives in memory.

Classes
-------
- GenerationCall     — one recorded call
- ScriptedGenerator  — deterministic ``TextGenerator`` stub
"""
from __future__ import annotations

import asyncio
from collections import deque
from dataclasses import dataclass
from typing import Callable, Union

from summary_hierarchy.generation.base import GenerationError, GenerationResult, TextGenerator
from summary_hierarchy.segmentation.tokens import estimate_tokens

ScriptedResponse = Union[str, GenerationResult, BaseException]
Responder = Callable[[str, str, int], ScriptedResponse]


@dataclass(frozen=True)
class GenerationCall:
    """A single call received by ``ScriptedGenerator``."""

    system_prompt: str
    user_prompt: str
    max_output_tokens: int


class ScriptedGenerator(TextGenerator):
    """Replay queued responses, then fall back to a responder or a default.

    Each response may be a string (token usage is estimated), a complete
    ``GenerationResult``, or an exception instance, which is raised.
    Non-``GenerationError`` exceptions are wrapped in ``GenerationError``.

    Parameters
    ----------
    responses:
        Responses consumed in call order.
    responder:
        Called as ``responder(system_prompt, user_prompt, max_output_tokens)``
        once the queue is empty.
    default:
        Text returned when neither queue nor responder supply a response.
    model:
        Identifier recorded on produced summaries.  Default: ``"scripted"``.
    delay:
        Seconds to sleep inside every call; lets tests interleave
        concurrent calls.
    """

    def __init__(
        self,
        responses: list[ScriptedResponse] | None = None,
        *,
        responder: Responder | None = None,
        default: str = "Scripted summary.",
        model: str = "scripted",
        delay: float = 0.0,
    ) -> None:
        self._responses: deque[ScriptedResponse] = deque(responses or [])
        self._responder = responder
        self.default = default
        self.model = model
        self.delay = delay
        self.calls: list[GenerationCall] = []

    async def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        max_output_tokens: int,
    ) -> GenerationResult:
        """Record the call and return the next scripted response."""
        self.calls.append(GenerationCall(system_prompt, user_prompt, max_output_tokens))
        if self.delay:
            await asyncio.sleep(self.delay)

        if self._responses:
            response = self._responses.popleft()
        elif self._responder is not None:
            response = self._responder(system_prompt, user_prompt, max_output_tokens)
        else:
            response = self.default

        if isinstance(response, GenerationError):
            raise response
        if isinstance(response, BaseException):
            raise GenerationError(str(response)) from response
        if isinstance(response, GenerationResult):
            return response
        return GenerationResult(
            text=response,
            input_tokens=estimate_tokens(system_prompt) + estimate_tokens(user_prompt),
            output_tokens=estimate_tokens(response),
        )

    def queue(self, *responses: ScriptedResponse) -> None:
        """Append responses to the replay queue."""
        self._responses.extend(responses)

    @property
    def pending(self) -> int:
        """Number of queued responses not yet consumed."""
        return len(self._responses)

    def __repr__(self) -> str:
        return f"ScriptedGenerator(model={self.model!r}, calls={len(self.calls)})"


__all__ = ["GenerationCall", "ScriptedGenerator"]
