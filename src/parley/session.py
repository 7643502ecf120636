"""Session that issues turns and owns the transcript."""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Iterable
from typing import Any

from loguru import logger

from parley.assembler import AgentResponse, ResponseAssembler
from parley.auth import AuthorizationContext
from parley.errors import ConfigurationError
from parley.events import AgentAdapter
from parley.logging_utils import bind_turn
from parley.simulation import SimulatedGeneration, SimulationAdapter, SimulationConfig
from parley.transcript import Prompt, Transcript
from parley.usage import TokenUsage


class ModelSession:
    """Runs turns against an adapter and keeps their history.

    Turns on one session run one at a time so the transcript has a single
    writer. Pass a fresh ``AuthorizationContext`` per turn when the adapter's
    transport needs a bearer token.
    """

    def __init__(self, adapter: AgentAdapter | None = None) -> None:
        self._adapter = adapter
        self._transcript = Transcript()
        self._token_usage = TokenUsage()
        self._turn_lock = asyncio.Lock()

    @property
    def transcript(self) -> Transcript:
        return self._transcript

    @property
    def token_usage(self) -> TokenUsage:
        return self._token_usage

    async def respond[T](
        self,
        prompt: str | Prompt,
        *,
        generating: type[T] = str,  # type: ignore[assignment]
        auth: AuthorizationContext | None = None,
    ) -> AgentResponse[T]:
        if self._adapter is None:
            raise ConfigurationError("session has no adapter; use simulate_response or pass one in")
        return await self._run_turn(self._adapter, _as_prompt(prompt), generating, auth)

    async def simulate_response[T](
        self,
        prompt: str | Prompt,
        generations: Iterable[SimulatedGeneration],
        *,
        generating: type[T] = str,  # type: ignore[assignment]
        config: SimulationConfig | None = None,
    ) -> AgentResponse[T]:
        adapter = SimulationAdapter(generations, config)
        return await self._run_turn(adapter, _as_prompt(prompt), generating, None)

    def clear_transcript(self) -> None:
        self._transcript = Transcript()

    def reset_token_usage(self) -> None:
        self._token_usage = TokenUsage()

    def _record_usage(self, usage: TokenUsage) -> None:
        self._token_usage = self._token_usage.merge(usage)

    async def _run_turn[T](
        self,
        adapter: AgentAdapter,
        prompt: Prompt,
        generating: type[T],
        auth: AuthorizationContext | None,
    ) -> AgentResponse[T]:
        async with self._turn_lock:
            with bind_turn(uuid.uuid4().hex[:12]):
                transcript = self._transcript
                logger.info("turn.start type={} entries={}", _type_name(generating), len(transcript))
                assembler = ResponseAssembler(transcript, on_usage=self._record_usage)
                stream = adapter.respond(prompt, generating=generating, transcript=transcript, auth=auth)
                try:
                    return await assembler.assemble(prompt, stream, generating=generating)
                except Exception as exc:
                    logger.error("turn.error error={!r} entries={}", exc, len(transcript))
                    raise


def _as_prompt(prompt: str | Prompt) -> Prompt:
    if isinstance(prompt, Prompt):
        return prompt
    return Prompt(input=prompt)


def _type_name(tp: Any) -> str:
    return getattr(tp, "__name__", repr(tp))
