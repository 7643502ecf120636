"""Append-only transcript and its entry types."""

from __future__ import annotations

import uuid
from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, overload


def _new_id() -> str:
    return uuid.uuid4().hex


class Status(StrEnum):
    COMPLETED = "completed"
    INCOMPLETE = "incomplete"
    IN_PROGRESS = "in_progress"


@dataclass(frozen=True)
class TextSegment:
    content: str
    id: str = field(default_factory=_new_id)


@dataclass(frozen=True)
class StructuredSegment:
    """Structured payload; ``content`` is a raw JSON value."""

    content: Any
    id: str = field(default_factory=_new_id)


type Segment = TextSegment | StructuredSegment


@dataclass(frozen=True)
class Prompt:
    """User input for one turn.

    ``embedded_prompt`` is what the provider actually sees; it defaults to the
    raw input.
    """

    input: str
    embedded_prompt: str = ""
    id: str = field(default_factory=_new_id)

    def __post_init__(self) -> None:
        if not self.embedded_prompt:
            object.__setattr__(self, "embedded_prompt", self.input)


@dataclass(frozen=True)
class Response:
    segments: tuple[Segment, ...]
    status: Status = Status.COMPLETED
    id: str = field(default_factory=_new_id)

    @property
    def text(self) -> str:
        return "\n".join(segment.content for segment in self.segments if isinstance(segment, TextSegment))


@dataclass(frozen=True)
class Reasoning:
    summary: tuple[str, ...]
    encrypted_reasoning: str | None = None
    status: Status = Status.COMPLETED
    id: str = field(default_factory=_new_id)


@dataclass(frozen=True)
class ToolCall:
    """One tool invocation requested by the model; ``arguments`` is raw JSON."""

    tool_name: str
    arguments: Any
    call_id: str = field(default_factory=lambda: f"call_{_new_id()[:24]}")
    status: Status = Status.COMPLETED
    id: str = field(default_factory=_new_id)


@dataclass(frozen=True)
class ToolCalls:
    calls: tuple[ToolCall, ...]
    id: str = field(default_factory=_new_id)


@dataclass(frozen=True)
class ToolOutput:
    tool_name: str
    segment: Segment
    call_id: str = ""
    status: Status = Status.COMPLETED
    id: str = field(default_factory=_new_id)


@dataclass(frozen=True)
class ProviderEntry:
    """Provider-specific entry kept in the transcript without interpretation."""

    kind: str
    payload: dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=_new_id)


type Entry = Prompt | Response | Reasoning | ToolCalls | ToolOutput | ProviderEntry


class Transcript:
    """Ordered log of entries. Entries are only ever appended."""

    def __init__(self, entries: list[Entry] | tuple[Entry, ...] = ()) -> None:
        self._entries: list[Entry] = list(entries)

    def append(self, entry: Entry) -> None:
        self._entries.append(entry)

    @property
    def entries(self) -> tuple[Entry, ...]:
        return tuple(self._entries)

    def responses(self) -> list[Response]:
        return [entry for entry in self._entries if isinstance(entry, Response)]

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[Entry]:
        return iter(tuple(self._entries))

    @overload
    def __getitem__(self, index: int) -> Entry: ...

    @overload
    def __getitem__(self, index: slice) -> tuple[Entry, ...]: ...

    def __getitem__(self, index: int | slice) -> Entry | tuple[Entry, ...]:
        if isinstance(index, slice):
            return tuple(self._entries[index])
        return self._entries[index]

    def __repr__(self) -> str:
        return f"Transcript(entries={len(self._entries)})"
