"""JSON-over-HTTP transport with a single authorization retry."""

from __future__ import annotations

import json
import re
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass, field
from functools import lru_cache
from http import HTTPMethod
from typing import TYPE_CHECKING, Any, Self

import httpx
from pydantic import TypeAdapter
from pydantic_core import to_jsonable_python

from parley.auth import AuthorizationContext
from parley.errors import DecodingFailed, InvalidResponse, InvalidURL, RequestFailed, UnacceptableStatus

if TYPE_CHECKING:
    from parley.config import Settings

type QueryParams = Mapping[str, str] | Sequence[tuple[str, str]]
type PrepareRequest = Callable[[httpx.Request, AuthorizationContext | None], Awaitable[None]]
type OnUnauthorized = Callable[
    [httpx.Response, bytes, httpx.Request, AuthorizationContext | None],
    Awaitable[bool],
]

_REPEATED_SLASHES = re.compile(r"/{2,}")


@dataclass(frozen=True)
class JsonCodec:
    """Request/response JSON policy.

    Keys are sorted on encode so identical payloads produce identical bytes.
    Python's encoder never escapes ``/``.
    """

    sort_keys: bool = True
    ensure_ascii: bool = False

    def encode(self, value: Any) -> bytes:
        data = to_jsonable_python(value)
        text = json.dumps(data, sort_keys=self.sort_keys, ensure_ascii=self.ensure_ascii, separators=(",", ":"))
        return text.encode("utf-8")

    def decode[T](self, raw: bytes, response_type: type[T]) -> T:
        return _type_adapter(response_type).validate_json(raw)


@lru_cache(maxsize=256)
def _type_adapter(tp: Any) -> TypeAdapter[Any]:
    return TypeAdapter(tp)


@dataclass(frozen=True)
class Interceptors:
    """Hooks around a send.

    ``prepare_request`` runs before every attempt, including the retry.
    ``on_unauthorized`` runs on a 401; returning ``True`` asks for exactly one
    more attempt.
    """

    prepare_request: PrepareRequest | None = None
    on_unauthorized: OnUnauthorized | None = None


@dataclass(frozen=True)
class TransportConfig:
    base_url: str
    default_headers: Mapping[str, str] = field(default_factory=dict)
    timeout: float = 60.0
    codec: JsonCodec = field(default_factory=JsonCodec)
    interceptors: Interceptors = field(default_factory=Interceptors)


class Transport:
    """Sends one typed request and decodes one typed response.

    Holds no per-request state, so one instance can serve concurrent calls.
    """

    def __init__(self, config: TransportConfig, *, client: httpx.AsyncClient | None = None) -> None:
        self._config = config
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=config.timeout)

    @property
    def config(self) -> TransportConfig:
        return self._config

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *_exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def send(
        self,
        path: str,
        *,
        method: HTTPMethod | str = HTTPMethod.GET,
        query: QueryParams | None = None,
        headers: Mapping[str, str] | None = None,
        body: Any = None,
        response_type: Any = Any,
        auth: AuthorizationContext | None = None,
    ) -> Any:
        """Send a request and decode the response into ``response_type``.

        Pass ``response_type=None`` to skip decoding. ``auth`` is handed to the
        interceptors untouched.
        """
        url = self.make_url(path)
        content = None if body is None else self._config.codec.encode(body)
        interceptors = self._config.interceptors

        request = self._build_request(str(method), url, query, headers, content)
        await self._prepare(request, auth)
        response = await self._perform(request)

        if response.status_code == httpx.codes.UNAUTHORIZED and interceptors.on_unauthorized is not None:
            should_retry = await interceptors.on_unauthorized(response, response.content, request, auth)
            if should_retry:
                retry_request = self._build_request(str(method), url, query, headers, content)
                await self._prepare(retry_request, auth)
                response = await self._perform(retry_request)

        return self._decode(response, response_type)

    def make_url(self, path: str) -> httpx.URL:
        base_url = self._config.base_url
        try:
            base = httpx.URL(base_url)
        except httpx.InvalidURL as exc:
            raise InvalidURL(base_url) from exc
        if not base.scheme or not base.host:
            raise InvalidURL(base_url)

        base_path = base.path.rstrip("/")
        joined = _REPEATED_SLASHES.sub("/", f"{base_path}/{path}")
        if not joined.startswith("/"):
            joined = f"/{joined}"
        return base.copy_with(path=joined)

    def _build_request(
        self,
        method: str,
        url: httpx.URL,
        query: QueryParams | None,
        headers: Mapping[str, str] | None,
        content: bytes | None,
    ) -> httpx.Request:
        merged = httpx.Headers({"Accept": "application/json", "Content-Type": "application/json"})
        for key, value in self._config.default_headers.items():
            merged[key] = value
        for key, value in (headers or {}).items():
            merged[key] = value
        return self._client.build_request(
            method,
            url,
            params=query,
            headers=merged,
            content=content,
            timeout=self._config.timeout,
        )

    async def _prepare(self, request: httpx.Request, auth: AuthorizationContext | None) -> None:
        prepare = self._config.interceptors.prepare_request
        if prepare is not None:
            await prepare(request, auth)

    async def _perform(self, request: httpx.Request) -> httpx.Response:
        try:
            return await self._client.send(request)
        except (httpx.RemoteProtocolError, httpx.DecodingError) as exc:
            raise InvalidResponse(exc) from exc
        except httpx.HTTPError as exc:
            raise RequestFailed(exc) from exc

    def _decode(self, response: httpx.Response, response_type: Any) -> Any:
        body = response.content
        if not httpx.codes.is_success(response.status_code):
            raise UnacceptableStatus(response.status_code, body)
        if response_type is None:
            return None
        try:
            return self._config.codec.decode(body, response_type)
        except ValueError as exc:
            raise DecodingFailed(exc, body) from exc


def bearer_interceptors(token: str) -> Interceptors:
    """Attach a fixed bearer token; a 401 is surfaced without retry."""

    async def prepare(request: httpx.Request, _auth: AuthorizationContext | None) -> None:
        request.headers["Authorization"] = f"Bearer {token}"

    async def on_unauthorized(
        _response: httpx.Response,
        _body: bytes,
        _request: httpx.Request,
        _auth: AuthorizationContext | None,
    ) -> bool:
        return False

    return Interceptors(prepare_request=prepare, on_unauthorized=on_unauthorized)


def context_bearer_interceptors() -> Interceptors:
    """Attach the turn's bearer token and refresh it once on a 401."""

    async def prepare(request: httpx.Request, auth: AuthorizationContext | None) -> None:
        if auth is not None:
            request.headers["Authorization"] = f"Bearer {auth.current_token()}"

    async def on_unauthorized(
        _response: httpx.Response,
        _body: bytes,
        request: httpx.Request,
        auth: AuthorizationContext | None,
    ) -> bool:
        if auth is None or not auth.can_refresh:
            return False
        await auth.refresh(failed_token=_bearer_token_of(request))
        return True

    return Interceptors(prepare_request=prepare, on_unauthorized=on_unauthorized)


def build_transport(settings: Settings, *, client: httpx.AsyncClient | None = None) -> Transport:
    """Build a transport configured from settings."""

    interceptors = bearer_interceptors(settings.api_key) if settings.api_key else context_bearer_interceptors()
    config = TransportConfig(
        base_url=settings.base_url,
        default_headers=dict(settings.default_headers),
        timeout=settings.timeout_seconds,
        interceptors=interceptors,
    )
    return Transport(config, client=client)


def _bearer_token_of(request: httpx.Request) -> str | None:
    value = request.headers.get("Authorization")
    if not value or not value.startswith("Bearer "):
        return None
    return value.removeprefix("Bearer ")
