"""
The network transport, built on httpcore.

    transport = relayr.AsyncHTTPTransport(http2=True, max_connections=10)
    client = relayr.AsyncClient(transport=transport)

Connection pooling, TLS and HTTP framing all live here, out of the client.
"""

from __future__ import annotations

import contextlib
import ssl
import typing
from collections.abc import AsyncIterator

import httpcore

from .._cancellation import CancellationToken, cancel_scope_for
from .._config import create_ssl_context
from .._content import StreamContent
from .._exceptions import (
    ConnectError,
    ConnectTimeout,
    LocalProtocolError,
    NetworkError,
    PoolTimeout,
    ProtocolError,
    ProxyError,
    ReadError,
    ReadTimeout,
    RemoteProtocolError,
    TimeoutException,
    TransportError,
    UnsupportedProtocol,
    WriteError,
    WriteTimeout,
)
from .._headers import Headers
from .._models import Request, Response
from .base import AsyncBaseTransport

HTTPCORE_EXC_MAP: dict[type[Exception], type[TransportError]] = {
    httpcore.TimeoutException: TimeoutException,
    httpcore.ConnectTimeout: ConnectTimeout,
    httpcore.ReadTimeout: ReadTimeout,
    httpcore.WriteTimeout: WriteTimeout,
    httpcore.PoolTimeout: PoolTimeout,
    httpcore.NetworkError: NetworkError,
    httpcore.ConnectError: ConnectError,
    httpcore.ReadError: ReadError,
    httpcore.WriteError: WriteError,
    httpcore.ProxyError: ProxyError,
    httpcore.UnsupportedProtocol: UnsupportedProtocol,
    httpcore.ProtocolError: ProtocolError,
    httpcore.LocalProtocolError: LocalProtocolError,
    httpcore.RemoteProtocolError: RemoteProtocolError,
}

CONTENT_HEADERS = ("content-type", "content-length", "content-encoding", "content-language")


@contextlib.contextmanager
def map_httpcore_exceptions(request: Request | None = None) -> typing.Iterator[None]:
    try:
        yield
    except Exception as exc:
        mapped_exc = None

        for from_exc, to_exc in HTTPCORE_EXC_MAP.items():
            if not isinstance(exc, from_exc):
                continue
            # We want to map to the most specific exception we can find.
            # Eg if `exc` is an `httpcore.ReadTimeout`, we want to map to
            # `relayr.ReadTimeout`, not just `relayr.TimeoutException`.
            if mapped_exc is None or issubclass(to_exc, mapped_exc):
                mapped_exc = to_exc

        if mapped_exc is None:  # pragma: no cover
            raise

        raise mapped_exc(str(exc), request=request) from exc


class ResponseStream:
    def __init__(self, httpcore_stream: typing.AsyncIterable[bytes], request: Request) -> None:
        self._httpcore_stream = httpcore_stream
        self._request = request

    async def __aiter__(self) -> AsyncIterator[bytes]:
        with map_httpcore_exceptions(self._request):
            async for part in self._httpcore_stream:
                yield part

    async def aclose(self) -> None:
        if hasattr(self._httpcore_stream, "aclose"):
            with map_httpcore_exceptions(self._request):
                await self._httpcore_stream.aclose()


class AsyncHTTPTransport(AsyncBaseTransport):
    def __init__(
        self,
        *,
        verify: ssl.SSLContext | str | bool = True,
        cert: str | tuple[str, str] | None = None,
        trust_env: bool = True,
        http1: bool = True,
        http2: bool = False,
        max_connections: int | None = 100,
        max_keepalive_connections: int | None = 20,
        keepalive_expiry: float | None = 5.0,
        local_address: str | None = None,
    ) -> None:
        ssl_context = create_ssl_context(verify=verify, cert=cert, trust_env=trust_env)
        self._pool = httpcore.AsyncConnectionPool(
            ssl_context=ssl_context,
            max_connections=max_connections,
            max_keepalive_connections=max_keepalive_connections,
            keepalive_expiry=keepalive_expiry,
            http1=http1,
            http2=http2,
            local_address=local_address,
        )

    async def __aenter__(self) -> AsyncHTTPTransport:
        await self._pool.__aenter__()
        return self

    async def __aexit__(self, *args: typing.Any) -> None:
        with map_httpcore_exceptions():
            await self._pool.__aexit__(*args)

    def _build_headers(self, request: Request) -> Headers:
        assert request.url is not None
        headers = request.headers.copy()
        if "Host" not in headers:
            headers["Host"] = request.url.netloc.decode("ascii")
        content = request.content
        if content is not None:
            for name, value in content.headers.multi_items():
                if name not in headers:
                    headers.add(name, value)
            if "Content-Length" not in headers and "Transfer-Encoding" not in headers:
                headers["Transfer-Encoding"] = "chunked"
        return headers

    async def handle_async_request(
        self,
        request: Request,
        token: CancellationToken,
    ) -> Response:
        url = request.url
        if url is None or url.scheme not in ("http", "https"):
            raise UnsupportedProtocol(
                f"Request URL {str(url)!r} is missing an 'http://' or 'https://' protocol.",
                request=request,
            )

        core_request = httpcore.Request(
            method=request.method.encode("ascii"),
            url=httpcore.URL(
                scheme=url.scheme.encode("ascii"),
                host=url.raw_host,
                port=url.port,
                target=url.raw_path,
            ),
            headers=self._build_headers(request).raw,
            content=request.content,
            extensions=request.extensions,
        )

        with cancel_scope_for(token) as scope:
            with map_httpcore_exceptions(request):
                core_response = await self._pool.handle_async_request(core_request)
        if scope.cancelled_caught:
            raise TransportError(
                "The request was cancelled before a response was received.",
                request=request,
            )

        raw_headers = [
            (key.decode("latin-1"), value.decode("latin-1"))
            for key, value in core_response.headers
        ]
        content = StreamContent(
            ResponseStream(core_response.stream, request),
            headers=[(k, v) for k, v in raw_headers if k.lower() in CONTENT_HEADERS],
        )
        extensions = core_response.extensions
        reason_phrase = extensions.get("reason_phrase")
        return Response(
            core_response.status,
            headers=raw_headers,
            content=content,
            request=request,
            http_version=extensions.get("http_version", b"HTTP/1.1").decode("ascii"),
            reason_phrase=reason_phrase.decode("ascii") if reason_phrase else None,
            extensions=extensions,
        )

    async def aclose(self) -> None:
        await self._pool.aclose()
