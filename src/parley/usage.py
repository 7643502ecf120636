"""Token usage accounting."""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any


@dataclass(frozen=True)
class TokenUsage:
    """Usage counters reported by a provider.

    A field set to ``None`` means the provider did not report it, which is
    different from reporting zero.
    """

    input_tokens: int | None = None
    output_tokens: int | None = None
    total_tokens: int | None = None
    cached_tokens: int | None = None
    reasoning_tokens: int | None = None

    def __post_init__(self) -> None:
        for item in fields(self):
            value = getattr(self, item.name)
            if value is not None and value < 0:
                raise ValueError(f"{item.name} must be non-negative, got {value}")

    def merge(self, other: TokenUsage) -> TokenUsage:
        """Sum counters field by field; a field stays absent only if absent on both sides."""
        merged = {item.name: _sum(getattr(self, item.name), getattr(other, item.name)) for item in fields(self)}
        return TokenUsage(**merged)

    def __add__(self, other: TokenUsage) -> TokenUsage:
        if not isinstance(other, TokenUsage):
            return NotImplemented
        return self.merge(other)

    @property
    def is_empty(self) -> bool:
        return all(getattr(self, item.name) is None for item in fields(self))

    def to_payload(self) -> dict[str, int]:
        return {item.name: value for item in fields(self) if (value := getattr(self, item.name)) is not None}

    @classmethod
    def from_payload(cls, payload: object) -> TokenUsage:
        if not isinstance(payload, dict):
            raise TypeError(f"usage payload must be a mapping, got {type(payload).__name__}")
        values: dict[str, Any] = {}
        for item in fields(cls):
            value = payload.get(item.name)
            if value is None:
                continue
            if isinstance(value, bool) or not isinstance(value, int):
                raise TypeError(f"{item.name} must be an integer, got {value!r}")
            values[item.name] = value
        return cls(**values)


def merge_optional(current: TokenUsage | None, usage: TokenUsage) -> TokenUsage:
    """Fold one usage report into a running total that may not exist yet."""
    if current is None:
        return usage
    return current.merge(usage)


def _sum(left: int | None, right: int | None) -> int | None:
    if left is None:
        return right
    if right is None:
        return left
    return left + right
