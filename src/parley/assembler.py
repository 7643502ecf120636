"""Drain an event stream into a finished response."""

from __future__ import annotations

import contextlib
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
from typing import Any

from loguru import logger
from pydantic import TypeAdapter, ValidationError

from parley.errors import StructuredContentParsingFailed, UnexpectedStructuredResponse
from parley.events import Event, TranscriptEvent, UsageEvent
from parley.transcript import Entry, Prompt, Response, StructuredSegment, TextSegment, Transcript
from parley.usage import TokenUsage, merge_optional

type UsageSink = Callable[[TokenUsage], None]


@dataclass(frozen=True)
class AgentResponse[T]:
    """Outcome of one turn."""

    content: T
    added_entries: tuple[Entry, ...]
    token_usage: TokenUsage | None = None


@dataclass
class _TurnState:
    added_entries: list[Entry]
    usage: TokenUsage | None = None


class ResponseAssembler:
    """Consumes one event stream per call and appends what it sees to a transcript.

    Text turns (``generating=str``) drain the whole stream and join every text
    segment with newlines. Any other type is a structured turn: the first
    structured segment ends the drain and is validated into that type.
    """

    def __init__(self, transcript: Transcript, *, on_usage: UsageSink | None = None) -> None:
        self._transcript = transcript
        self._on_usage = on_usage

    @property
    def transcript(self) -> Transcript:
        return self._transcript

    async def assemble[T](
        self,
        prompt: Prompt,
        stream: AsyncIterator[Event],
        *,
        generating: type[T] = str,  # type: ignore[assignment]
    ) -> AgentResponse[T]:
        self._transcript.append(prompt)
        state = _TurnState(added_entries=[])
        async with _closing(stream):
            if generating is str:
                return await self._drain_text(stream, state)  # type: ignore[return-value]
            return await self._drain_structured(stream, state, generating)

    async def _drain_text(self, stream: AsyncIterator[Event], state: _TurnState) -> AgentResponse[str]:
        parts: list[str] = []
        async for event in stream:
            entry = self._consume(event, state)
            if isinstance(entry, Response):
                parts.extend(segment.content for segment in entry.segments if isinstance(segment, TextSegment))

        logger.info("turn.finish mode=text entries={} usage={}", len(state.added_entries), state.usage)
        return AgentResponse(
            content="\n".join(parts),
            added_entries=tuple(state.added_entries),
            token_usage=state.usage,
        )

    async def _drain_structured[T](
        self,
        stream: AsyncIterator[Event],
        state: _TurnState,
        generating: type[T],
    ) -> AgentResponse[T]:
        async for event in stream:
            entry = self._consume(event, state)
            if not isinstance(entry, Response):
                continue
            for segment in entry.segments:
                if isinstance(segment, StructuredSegment):
                    content = _decode_structured(segment.content, generating)
                    logger.info(
                        "turn.finish mode=structured type={} entries={} usage={}",
                        getattr(generating, "__name__", generating),
                        len(state.added_entries),
                        state.usage,
                    )
                    return AgentResponse(
                        content=content,
                        added_entries=tuple(state.added_entries),
                        token_usage=state.usage,
                    )

        logger.warning("turn.error mode=structured reason=no_structured_segment entries={}", len(state.added_entries))
        raise UnexpectedStructuredResponse()

    def _consume(self, event: Event, state: _TurnState) -> Entry | None:
        match event:
            case TranscriptEvent(entry=entry):
                self._transcript.append(entry)
                state.added_entries.append(entry)
                return entry
            case UsageEvent(usage=usage):
                state.usage = merge_optional(state.usage, usage)
                if self._on_usage is not None:
                    self._on_usage(usage)
                return None
            case _:
                raise TypeError(f"unsupported event: {event!r}")


def _decode_structured[T](raw: Any, generating: type[T]) -> T:
    try:
        return TypeAdapter(generating).validate_python(raw)
    except ValidationError as exc:
        raise StructuredContentParsingFailed(raw, exc) from exc


@contextlib.asynccontextmanager
async def _closing(stream: AsyncIterator[Event]) -> AsyncIterator[None]:
    """Close the producer when the drain ends, early or not."""
    try:
        yield
    finally:
        aclose = getattr(stream, "aclose", None)
        if aclose is not None:
            await aclose()
