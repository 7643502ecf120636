from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator

import pytest
from pydantic import BaseModel

from parley.assembler import ResponseAssembler
from parley.errors import StructuredContentParsingFailed, UnexpectedStructuredResponse
from parley.events import Event, TranscriptEvent, UsageEvent
from parley.transcript import (
    Prompt,
    ProviderEntry,
    Reasoning,
    Response,
    StructuredSegment,
    TextSegment,
    ToolCall,
    ToolCalls,
    Transcript,
)
from parley.usage import TokenUsage


class Forecast(BaseModel):
    city: str
    high: int


class TrackedStream:
    """Event stream that records how far it was consumed and whether it was closed."""

    def __init__(self, *events: Event) -> None:
        self._events = list(events)
        self.yielded = 0
        self.closed = False

    def __aiter__(self) -> TrackedStream:
        return self

    async def __anext__(self) -> Event:
        if self.yielded >= len(self._events):
            raise StopAsyncIteration
        event = self._events[self.yielded]
        self.yielded += 1
        return event

    async def aclose(self) -> None:
        self.closed = True


def text_response(*parts: str) -> Response:
    return Response(segments=tuple(TextSegment(part) for part in parts))


@pytest.mark.asyncio
async def test_text_turn_joins_text_segments_in_order() -> None:
    transcript = Transcript([Prompt(input="earlier")])
    prompt = Prompt(input="hello")
    thinking = Reasoning(summary=("checking",))
    first = text_response("Hello", "there")
    second = Response(segments=(StructuredSegment({"ignored": True}), TextSegment("friend")))
    stream = TrackedStream(TranscriptEvent(thinking), TranscriptEvent(first), TranscriptEvent(second))

    result = await ResponseAssembler(transcript).assemble(prompt, stream)

    assert result.content == "Hello\nthere\nfriend"
    assert result.added_entries == (thinking, first, second)
    assert result.token_usage is None
    assert transcript[1:] == (prompt, thinking, first, second)
    assert stream.closed


@pytest.mark.asyncio
async def test_text_turn_without_responses_is_empty_string() -> None:
    stream = TrackedStream(TranscriptEvent(Reasoning(summary=("nothing to say",))))

    result = await ResponseAssembler(Transcript()).assemble(Prompt(input="hi"), stream)

    assert result.content == ""
    assert len(result.added_entries) == 1


@pytest.mark.asyncio
async def test_usage_events_merge_and_reach_the_sink() -> None:
    reported: list[TokenUsage] = []
    first = TokenUsage(input_tokens=10, output_tokens=2)
    second = TokenUsage(output_tokens=3, reasoning_tokens=1)
    stream = TrackedStream(
        UsageEvent(first),
        TranscriptEvent(text_response("a")),
        UsageEvent(second),
    )

    result = await ResponseAssembler(Transcript(), on_usage=reported.append).assemble(Prompt(input="q"), stream)

    assert result.token_usage == TokenUsage(input_tokens=10, output_tokens=5, reasoning_tokens=1)
    assert reported == [first, second]
    assert len(result.added_entries) == 1


@pytest.mark.asyncio
async def test_structured_turn_stops_at_first_structured_segment() -> None:
    transcript = Transcript()
    call = ToolCalls(calls=(ToolCall(tool_name="weather", arguments={"city": "Oslo"}),))
    answer = Response(segments=(TextSegment("preface"), StructuredSegment({"city": "Oslo", "high": 12})))
    trailing = text_response("never seen")
    stream = TrackedStream(
        TranscriptEvent(call),
        UsageEvent(TokenUsage(input_tokens=4)),
        TranscriptEvent(answer),
        TranscriptEvent(trailing),
        UsageEvent(TokenUsage(input_tokens=100)),
    )

    result = await ResponseAssembler(transcript).assemble(Prompt(input="weather?"), stream, generating=Forecast)

    assert result.content == Forecast(city="Oslo", high=12)
    assert result.added_entries == (call, answer)
    assert result.token_usage == TokenUsage(input_tokens=4)
    assert trailing not in transcript.entries
    assert stream.yielded == 3
    assert stream.closed


@pytest.mark.asyncio
async def test_structured_turn_accepts_plain_types() -> None:
    stream = TrackedStream(TranscriptEvent(Response(segments=(StructuredSegment([1, 2, 3]),))))

    result = await ResponseAssembler(Transcript()).assemble(Prompt(input="n"), stream, generating=list[int])

    assert result.content == [1, 2, 3]


@pytest.mark.asyncio
async def test_structured_turn_without_structured_segment_raises() -> None:
    transcript = Transcript()
    only_text = text_response("I cannot do that")
    stream = TrackedStream(TranscriptEvent(only_text))

    with pytest.raises(UnexpectedStructuredResponse):
        await ResponseAssembler(transcript).assemble(Prompt(input="q"), stream, generating=Forecast)

    assert transcript.entries[-1] is only_text
    assert stream.closed


@pytest.mark.asyncio
async def test_structured_content_that_does_not_validate_raises() -> None:
    raw = {"city": "Oslo"}
    stream = TrackedStream(TranscriptEvent(Response(segments=(StructuredSegment(raw),))))

    with pytest.raises(StructuredContentParsingFailed) as exc_info:
        await ResponseAssembler(Transcript()).assemble(Prompt(input="q"), stream, generating=Forecast)

    assert exc_info.value.raw_content == raw


@pytest.mark.asyncio
async def test_prompt_is_recorded_even_when_stream_fails() -> None:
    transcript = Transcript()
    prompt = Prompt(input="boom")
    partial = Reasoning(summary=("thinking",))

    async def failing() -> AsyncIterator[Event]:
        yield TranscriptEvent(partial)
        raise RuntimeError("provider went away")

    with pytest.raises(RuntimeError, match="provider went away"):
        await ResponseAssembler(transcript).assemble(prompt, failing())

    assert transcript.entries == (prompt, partial)


@pytest.mark.asyncio
async def test_provider_entries_pass_through_untouched() -> None:
    extra = ProviderEntry(kind="web_search_call", payload={"query": "tides"})
    stream = TrackedStream(TranscriptEvent(extra), TranscriptEvent(text_response("done")))

    result = await ResponseAssembler(Transcript()).assemble(Prompt(input="q"), stream)

    assert result.added_entries[0] is extra
    assert result.content == "done"


@pytest.mark.asyncio
async def test_unknown_event_is_rejected() -> None:
    stream = TrackedStream("not an event")  # type: ignore[arg-type]

    with pytest.raises(TypeError):
        await ResponseAssembler(Transcript()).assemble(Prompt(input="q"), stream)

    assert stream.closed


@pytest.mark.asyncio
async def test_cancelled_turn_keeps_whole_entries_and_closes_the_producer() -> None:
    transcript = Transcript()
    prompt = Prompt(input="slow")
    first = Reasoning(summary=("step one",))
    started = asyncio.Event()
    cleaned_up = False

    async def stalled() -> AsyncIterator[Event]:
        nonlocal cleaned_up
        try:
            yield TranscriptEvent(first)
            started.set()
            await asyncio.Event().wait()
            yield TranscriptEvent(text_response("too late"))
        finally:
            cleaned_up = True

    task = asyncio.create_task(ResponseAssembler(transcript).assemble(prompt, stalled()))
    await started.wait()
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task

    assert transcript.entries == (prompt, first)
    assert cleaned_up
