"""Exception types for parley."""

from __future__ import annotations

import json
from typing import Any


class ParleyError(Exception):
    """Base exception for parley."""


class ConfigurationError(ParleyError):
    """Raised when settings cannot produce a usable component."""


class TransportError(ParleyError):
    """Base exception for transport failures."""


class InvalidURL(TransportError):
    """Raised when the base URL cannot be decomposed into scheme and host."""

    def __init__(self, url: str) -> None:
        super().__init__(f"Invalid URL: {url!r}")
        self.url = url


class RequestFailed(TransportError):
    """Raised when the request never produced a response (DNS, connect, timeout)."""

    def __init__(self, cause: Exception) -> None:
        super().__init__(f"Request failed: {cause}")
        self.cause = cause


class InvalidResponse(TransportError):
    """Raised when the peer answered with something that is not a valid HTTP response."""

    def __init__(self, cause: Exception | None = None) -> None:
        super().__init__("Invalid response")
        self.cause = cause


class UnacceptableStatus(TransportError):
    """Raised for any final status outside of 2xx."""

    def __init__(self, code: int, body: bytes | None) -> None:
        super().__init__(f"Unacceptable status code: {code}")
        self.code = code
        self.body = body

    @property
    def message(self) -> str | None:
        """Provider error message extracted from the body, if any."""
        if not self.body:
            return None
        return extract_error_message(self.body)


class DecodingFailed(TransportError):
    """Raised when a 2xx body does not decode into the expected type."""

    def __init__(self, cause: Exception, body: bytes | None) -> None:
        super().__init__(f"Failed to decode response: {cause}")
        self.cause = cause
        self.body = body


class GenerationError(ParleyError):
    """Base exception for turn assembly failures."""


class UnexpectedStructuredResponse(GenerationError):
    """Raised when a structured turn finished without a structured segment."""

    def __init__(self) -> None:
        super().__init__("Received unexpected structured response from model")


class StructuredContentParsingFailed(GenerationError):
    """Raised when a structured segment does not validate against the requested type."""

    def __init__(self, raw_content: Any, cause: Exception) -> None:
        super().__init__(f"Failed to parse structured content: {cause}")
        self.raw_content = raw_content
        self.cause = cause


class SimulationExhausted(ParleyError):
    """Raised when a simulated turn needs a step past the end of its script."""

    def __init__(self, consumed: int) -> None:
        super().__init__(f"Simulation script exhausted after {consumed} step(s)")
        self.consumed = consumed


class RefreshUnavailable(ParleyError):
    """Raised when a refresh is requested from a context without a refresh operation."""


def extract_error_message(body: bytes) -> str | None:
    """Best-effort provider error message from an error response body."""

    try:
        payload = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return _body_text(body)

    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict) and isinstance(error.get("message"), str):
            parts = [error["message"]]
            for key in ("type", "param", "code"):
                value = error.get(key)
                if value is not None and value != "":
                    parts.append(f"{key}: {value}")
            return " | ".join(parts)
        if isinstance(error, str):
            return error
        message = payload.get("message")
        if isinstance(message, str):
            return message
    return _body_text(body)


def _body_text(body: bytes) -> str | None:
    text = body.decode("utf-8", errors="replace").strip()
    return text or None
