"""Event stream contract shared by provider adapters and the simulation harness."""

from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol

from parley.transcript import Entry, Prompt, Transcript
from parley.usage import TokenUsage

if TYPE_CHECKING:
    from parley.auth import AuthorizationContext


@dataclass(frozen=True)
class TranscriptEvent:
    entry: Entry


@dataclass(frozen=True)
class UsageEvent:
    usage: TokenUsage


type Event = TranscriptEvent | UsageEvent
type EventStream = AsyncIterator[Event]


class AgentAdapter(Protocol):
    """Turns one prompt into an event stream.

    Transcript events of one turn must be yielded in emission order. Usage
    events may be yielded at any point. Implementations should be async
    generators so an abandoned stream can be closed with ``aclose()``.
    """

    def respond(
        self,
        prompt: Prompt,
        *,
        generating: type[Any],
        transcript: Transcript,
        auth: AuthorizationContext | None = None,
    ) -> EventStream: ...
