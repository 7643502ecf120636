"""Parley - transport and turn assembly for agent sessions."""

from .assembler import AgentResponse, ResponseAssembler
from .auth import AuthorizationContext
from .config import Settings, get_settings
from .errors import (
    ConfigurationError,
    DecodingFailed,
    GenerationError,
    InvalidResponse,
    InvalidURL,
    ParleyError,
    RefreshUnavailable,
    RequestFailed,
    SimulationExhausted,
    StructuredContentParsingFailed,
    TransportError,
    UnacceptableStatus,
    UnexpectedStructuredResponse,
)
from .events import AgentAdapter, Event, TranscriptEvent, UsageEvent
from .fanout import collect_successes
from .session import ModelSession
from .simulation import (
    SimulationAdapter,
    SimulationConfig,
    SimulationScript,
    reasoning,
    respond_with_structured,
    respond_with_text,
    tool_run,
)
from .transcript import (
    Prompt,
    ProviderEntry,
    Reasoning,
    Response,
    Status,
    StructuredSegment,
    TextSegment,
    ToolCall,
    ToolCalls,
    ToolOutput,
    Transcript,
)
from .transport import (
    HTTPMethod,
    Interceptors,
    JsonCodec,
    Transport,
    TransportConfig,
    bearer_interceptors,
    build_transport,
    context_bearer_interceptors,
)
from .usage import TokenUsage

__version__ = "0.1.0"

__all__ = [
    "AgentAdapter",
    "AgentResponse",
    "AuthorizationContext",
    "ConfigurationError",
    "DecodingFailed",
    "Event",
    "GenerationError",
    "HTTPMethod",
    "Interceptors",
    "InvalidResponse",
    "InvalidURL",
    "JsonCodec",
    "ModelSession",
    "ParleyError",
    "Prompt",
    "ProviderEntry",
    "Reasoning",
    "RefreshUnavailable",
    "RequestFailed",
    "Response",
    "ResponseAssembler",
    "Settings",
    "SimulationAdapter",
    "SimulationConfig",
    "SimulationExhausted",
    "SimulationScript",
    "Status",
    "StructuredContentParsingFailed",
    "StructuredSegment",
    "TextSegment",
    "TokenUsage",
    "ToolCall",
    "ToolCalls",
    "ToolOutput",
    "Transcript",
    "TranscriptEvent",
    "Transport",
    "TransportConfig",
    "TransportError",
    "UnacceptableStatus",
    "UnexpectedStructuredResponse",
    "UsageEvent",
    "bearer_interceptors",
    "build_transport",
    "collect_successes",
    "context_bearer_interceptors",
    "get_settings",
    "reasoning",
    "respond_with_structured",
    "respond_with_text",
    "tool_run",
]
