"""Scripted stand-in for a provider adapter."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Iterable
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any

from loguru import logger
from pydantic_core import to_jsonable_python

from parley.errors import SimulationExhausted
from parley.events import Event, TranscriptEvent, UsageEvent
from parley.transcript import (
    Entry,
    Prompt,
    Reasoning,
    Response,
    Segment,
    StructuredSegment,
    TextSegment,
    ToolCall,
    ToolCalls,
    ToolOutput,
    Transcript,
)
from parley.usage import TokenUsage

if TYPE_CHECKING:
    from parley.auth import AuthorizationContext


@dataclass(frozen=True)
class RespondWithText:
    text: str
    usage: TokenUsage | None = None


@dataclass(frozen=True)
class RespondWithStructured:
    value: Any
    usage: TokenUsage | None = None


@dataclass(frozen=True)
class ToolRun:
    """A tool call the model pretends to make, with the output it pretends to get back."""

    tool_name: str
    arguments: Any
    output: Any
    call_id: str | None = None
    usage: TokenUsage | None = None


@dataclass(frozen=True)
class ReasoningStep:
    summary: str
    usage: TokenUsage | None = None


type SimulatedGeneration = RespondWithText | RespondWithStructured | ToolRun | ReasoningStep


def respond_with_text(text: str, *, usage: TokenUsage | None = None) -> RespondWithText:
    return RespondWithText(text, usage=usage)


def respond_with_structured(value: Any, *, usage: TokenUsage | None = None) -> RespondWithStructured:
    return RespondWithStructured(value, usage=usage)


def tool_run(
    tool_name: str,
    *,
    arguments: Any,
    output: Any,
    call_id: str | None = None,
    usage: TokenUsage | None = None,
) -> ToolRun:
    return ToolRun(tool_name, arguments, output, call_id=call_id, usage=usage)


def reasoning(summary: str, *, usage: TokenUsage | None = None) -> ReasoningStep:
    return ReasoningStep(summary, usage=usage)


class SimulationScript:
    """Ordered steps consumed strictly one at a time."""

    def __init__(self, steps: Iterable[SimulatedGeneration]) -> None:
        self._steps = tuple(steps)
        self._cursor = 0

    @property
    def consumed(self) -> int:
        return self._cursor

    @property
    def remaining(self) -> int:
        return len(self._steps) - self._cursor

    def next_step(self) -> SimulatedGeneration:
        if self._cursor >= len(self._steps):
            raise SimulationExhausted(self._cursor)
        step = self._steps[self._cursor]
        self._cursor += 1
        return step


@dataclass(frozen=True)
class SimulationConfig:
    """Knobs for simulated turns.

    ``generation_delay`` is slept before every step. ``token_usage`` is
    reported once when a turn finishes, on top of any per-step usage.
    """

    generation_delay: float = 0.0
    token_usage: TokenUsage | None = None
    model: str = "simulated"


class SimulationAdapter:
    """Replays a script as an event stream.

    A turn replays every remaining step in order. The script must hold at
    least one text or structured response step for the turn; running out
    before one raises ``SimulationExhausted``. A structured turn stops pulling
    at its payload, so later steps stay in the script.
    """

    def __init__(
        self,
        script: SimulationScript | Iterable[SimulatedGeneration],
        config: SimulationConfig | None = None,
    ) -> None:
        self._script = script if isinstance(script, SimulationScript) else SimulationScript(script)
        self._config = config or SimulationConfig()

    @property
    def script(self) -> SimulationScript:
        return self._script

    async def respond(
        self,
        prompt: Prompt,
        *,
        generating: type[Any],
        transcript: Transcript,
        auth: AuthorizationContext | None = None,
    ) -> AsyncIterator[Event]:
        logger.info(
            "simulation.start model={} remaining={} prompt={!r}",
            self._config.model,
            self._script.remaining,
            prompt.input[:80],
        )
        step_number = 0
        responded = False
        while not (responded and self._script.remaining == 0):
            if self._config.generation_delay > 0:
                await asyncio.sleep(self._config.generation_delay)
            try:
                step = self._script.next_step()
            except SimulationExhausted:
                logger.error("simulation.exhausted consumed={}", self._script.consumed)
                raise
            step_number += 1
            logger.info("simulation.step step={} kind={}", step_number, type(step).__name__)

            # Usage goes first so a structured turn that stops at its payload still counts it.
            if step.usage is not None:
                yield UsageEvent(step.usage)
            for entry in _entries_for(step):
                yield TranscriptEvent(entry)
            if isinstance(step, (RespondWithText, RespondWithStructured)):
                responded = True

        if self._config.token_usage is not None:
            logger.info("simulation.usage {}", self._config.token_usage.to_payload())
            yield UsageEvent(self._config.token_usage)
        logger.info("simulation.finish steps={}", step_number)


def _entries_for(step: SimulatedGeneration) -> list[Entry]:
    match step:
        case RespondWithText(text=text):
            return [Response(segments=(TextSegment(text),))]
        case RespondWithStructured(value=value):
            return [Response(segments=(StructuredSegment(to_jsonable_python(value)),))]
        case ReasoningStep(summary=summary):
            return [Reasoning(summary=(summary,), encrypted_reasoning="")]
        case ToolRun(tool_name=tool_name, arguments=arguments, output=output, call_id=call_id):
            call = ToolCall(tool_name=tool_name, arguments=to_jsonable_python(arguments))
            if call_id:
                call = replace(call, call_id=call_id)
            segment: Segment
            if isinstance(output, str):
                segment = TextSegment(output)
            else:
                segment = StructuredSegment(to_jsonable_python(output))
            return [
                ToolCalls(calls=(call,)),
                ToolOutput(tool_name=tool_name, segment=segment, call_id=call.call_id),
            ]
    raise TypeError(f"unsupported simulated generation: {step!r}")
