from __future__ import annotations

import contextlib
import logging
import typing

import anyio

from . import _diagnostics
from ._cancellation import (
    CancellationSource,
    CancellationToken,
    PendingRequests,
    cancel_scope_for,
    compose_cancellation,
)
from ._config import (
    DEFAULT_TIMEOUT,
    CompletionOption,
    TimeoutTypes,
    validate_buffer_size,
    validate_timeout,
)
from ._content import MAX_BUFFER_SIZE, Content, ContentStream
from ._exceptions import (
    HTTPStatusError,
    InvalidArgumentError,
    NoResponseError,
    ReadError,
    RequestAlreadySentError,
    classify_send_failure,
)
from ._headers import Headers, HeaderTypes
from ._lifecycle import ClientLifecycle
from ._models import Request, Response
from ._preparer import check_base_url, prepare_request
from ._transports.base import AsyncBaseTransport
from ._transports.default import AsyncHTTPTransport
from ._urls import URL

__all__ = ["AsyncClient"]

logger = logging.getLogger("relayr.client")

T = typing.TypeVar("T", bound="AsyncClient")
R = typing.TypeVar("R")

URLTypes = typing.Union[URL, str, None]


async def _aclose_quietly(resource: Content | Response | None) -> None:
    """
    Best-effort close: cleanup on a send path must never fail the send.
    """
    if resource is None:
        return
    with anyio.CancelScope(shield=True):
        try:
            await resource.aclose()
        except Exception:
            logger.debug("Ignoring error while closing %r", resource, exc_info=True)


@contextlib.asynccontextmanager
async def _releasing_content(request: Request) -> typing.AsyncIterator[None]:
    try:
        yield
    finally:
        await _aclose_quietly(request.content)


class AsyncClient:
    """
    An asynchronous HTTP client.

    Usage:

    ```python
    >>> async with relayr.AsyncClient(base_url="https://example.org/api/") as client:
    ...     response = await client.get("items/5")
    ```

    **Parameters:**

    * **transport** - *(optional)* The transport used to send requests over
    the network. Defaults to an `AsyncHTTPTransport`.
    * **owns_transport** - *(optional)* Whether closing the client closes the
    transport as well. Defaults to `True`.
    * **base_url** - *(optional)* An absolute http or https URL that relative
    request URLs are resolved against.
    * **headers** - *(optional)* Default headers, added to every request that
    does not set them itself.
    * **timeout** - *(optional)* Seconds before a request is cancelled, from
    dispatch until the response is returned. `None` disables the timeout.
    * **max_response_buffer_size** - *(optional)* Largest response body, in
    bytes, that is buffered when sending with `CompletionOption.CONTENT_READ`.

    `base_url`, `timeout` and `max_response_buffer_size` cannot be changed
    once the first request has been sent.
    """

    def __init__(
        self,
        transport: AsyncBaseTransport | None = None,
        *,
        owns_transport: bool = True,
        base_url: URLTypes = None,
        headers: HeaderTypes | None = None,
        timeout: TimeoutTypes = DEFAULT_TIMEOUT,
        max_response_buffer_size: int = MAX_BUFFER_SIZE,
    ) -> None:
        self._lifecycle = ClientLifecycle(self.__class__.__name__)
        self._transport = AsyncHTTPTransport() if transport is None else transport
        self._owns_transport = owns_transport
        self._pending = PendingRequests()
        self._base_url = check_base_url(base_url)
        self._headers: Headers | None = None if headers is None else Headers(headers)
        self._timeout = validate_timeout(timeout)
        self._max_response_buffer_size = validate_buffer_size(max_response_buffer_size)

    @property
    def is_closed(self) -> bool:
        """
        Check if the client has been closed.
        """
        return self._lifecycle.is_disposed

    @property
    def is_started(self) -> bool:
        """
        Check if the client has dispatched a request, freezing its configuration.
        """
        return self._lifecycle.is_started

    @property
    def transport(self) -> AsyncBaseTransport:
        return self._transport

    @property
    def headers(self) -> Headers:
        """
        HTTP headers to include when sending requests.
        """
        if self._headers is None:
            self._headers = Headers()
        return self._headers

    @headers.setter
    def headers(self, headers: HeaderTypes) -> None:
        self._headers = Headers(headers)

    @property
    def base_url(self) -> URL | None:
        """
        Base URL to use when sending requests with relative URLs.
        """
        return self._base_url

    @base_url.setter
    def base_url(self, url: URLTypes) -> None:
        new_url = check_base_url(url)
        self._lifecycle.check_mutable()
        _diagnostics.base_url_changed(self, self._base_url, new_url)
        self._base_url = new_url

    @property
    def timeout(self) -> float | None:
        return self._timeout

    @timeout.setter
    def timeout(self, timeout: TimeoutTypes) -> None:
        new_timeout = validate_timeout(timeout)
        self._lifecycle.check_mutable()
        self._timeout = new_timeout

    @property
    def max_response_buffer_size(self) -> int:
        return self._max_response_buffer_size

    @max_response_buffer_size.setter
    def max_response_buffer_size(self, value: int) -> None:
        new_value = validate_buffer_size(value)
        self._lifecycle.check_mutable()
        self._max_response_buffer_size = new_value

    def build_request(
        self,
        method: str,
        url: URLTypes,
        *,
        content: typing.Any = None,
        headers: HeaderTypes | None = None,
    ) -> Request:
        """
        Build a request without sending it.

        Client defaults are applied when the request is sent, not here.
        """
        return Request(method, url, content=content, headers=headers)

    async def send(
        self,
        request: Request,
        completion: CompletionOption = CompletionOption.CONTENT_READ,
        *,
        token: CancellationToken | None = None,
    ) -> Response:
        """
        Send a request.

        The request URL is resolved against `base_url`, the default headers
        are merged in, and the request content is closed once the transport
        is done with it. A request can only be sent once.

        With `CompletionOption.CONTENT_READ` the response body is read into
        memory before returning. With `CompletionOption.HEADERS_READ` it is
        left unread, and the caller must close the response.

        Raises `OperationCancelled` if `token` is cancelled, if
        `cancel_pending()` is called, or if the client timeout elapses
        before the response is returned.
        """
        self._lifecycle.check_not_disposed()
        if request is None:
            raise InvalidArgumentError("The 'request' argument must not be None.")
        if not request.mark_as_sent():
            raise RequestAlreadySentError(
                "The request was already sent. Cannot send the same request multiple times."
            )
        if token is None:
            token = CancellationToken.none()

        self._lifecycle.mark_started()
        prepare_request(request, self._base_url, self._headers)

        with compose_cancellation(token, self._pending, self._timeout) as linked:
            return await self._finish_send(
                request,
                linked,
                token,
                buffer_content=completion is CompletionOption.CONTENT_READ,
            )

    async def _finish_send(
        self,
        request: Request,
        linked: CancellationSource,
        token: CancellationToken,
        buffer_content: bool,
    ) -> Response:
        response: Response | None = None
        try:
            async with _releasing_content(request):
                response = await self._transport.handle_async_request(request, linked.token)

            if response is None:
                raise NoResponseError(
                    "The transport did not return a response.", request=request
                )

            if buffer_content and response.content is not None:
                await self._load_into_buffer(request, response.content, linked.token)
        except Exception as exc:
            await _aclose_quietly(response)

            error = classify_send_failure(exc, linked.is_cancellation_requested, token)
            _diagnostics.send_failed(self, request, cancelled=error is not exc, exc=exc)
            if error is exc:
                raise
            raise error from exc
        except BaseException:
            await _aclose_quietly(response)
            raise

        _diagnostics.send_completed(self, request, response)
        return response

    async def _load_into_buffer(
        self,
        request: Request,
        content: Content,
        token: CancellationToken,
    ) -> None:
        with cancel_scope_for(token) as scope:
            await content.aload_into_buffer(self._max_response_buffer_size)
        if scope.cancelled_caught:
            raise ReadError(
                "Reading the response content was cancelled.", request=request
            )

    async def request(
        self,
        method: str,
        url: URLTypes,
        *,
        content: typing.Any = None,
        headers: HeaderTypes | None = None,
        completion: CompletionOption = CompletionOption.CONTENT_READ,
        token: CancellationToken | None = None,
    ) -> Response:
        """
        Build and send a request.

        Equivalent to:

        ```python
        request = client.build_request(...)
        response = await client.send(request, ...)
        ```
        """
        request = self.build_request(method, url, content=content, headers=headers)
        return await self.send(request, completion, token=token)

    @contextlib.asynccontextmanager
    async def stream(
        self,
        method: str,
        url: URLTypes,
        *,
        content: typing.Any = None,
        headers: HeaderTypes | None = None,
        token: CancellationToken | None = None,
    ) -> typing.AsyncIterator[Response]:
        """
        Send a request, returning once the response headers are in.

        The response body is left unread and the response is closed when the
        block exits.
        """
        response = await self.request(
            method,
            url,
            content=content,
            headers=headers,
            completion=CompletionOption.HEADERS_READ,
            token=token,
        )
        try:
            yield response
        finally:
            await response.aclose()

    async def get(
        self,
        url: URLTypes,
        *,
        headers: HeaderTypes | None = None,
        completion: CompletionOption = CompletionOption.CONTENT_READ,
        token: CancellationToken | None = None,
    ) -> Response:
        """
        Send a `GET` request.
        """
        return await self.request(
            "GET", url, headers=headers, completion=completion, token=token
        )

    async def post(
        self,
        url: URLTypes,
        content: typing.Any = None,
        *,
        headers: HeaderTypes | None = None,
        completion: CompletionOption = CompletionOption.CONTENT_READ,
        token: CancellationToken | None = None,
    ) -> Response:
        """
        Send a `POST` request.
        """
        return await self.request(
            "POST",
            url,
            content=content,
            headers=headers,
            completion=completion,
            token=token,
        )

    async def put(
        self,
        url: URLTypes,
        content: typing.Any = None,
        *,
        headers: HeaderTypes | None = None,
        completion: CompletionOption = CompletionOption.CONTENT_READ,
        token: CancellationToken | None = None,
    ) -> Response:
        """
        Send a `PUT` request.
        """
        return await self.request(
            "PUT",
            url,
            content=content,
            headers=headers,
            completion=completion,
            token=token,
        )

    async def delete(
        self,
        url: URLTypes,
        *,
        headers: HeaderTypes | None = None,
        completion: CompletionOption = CompletionOption.CONTENT_READ,
        token: CancellationToken | None = None,
    ) -> Response:
        """
        Send a `DELETE` request.
        """
        return await self.request(
            "DELETE", url, headers=headers, completion=completion, token=token
        )

    async def _get_content(
        self,
        url: URLTypes,
        completion: CompletionOption,
        read: typing.Callable[[Content], typing.Awaitable[R]],
        empty: typing.Callable[[], R],
        token: CancellationToken | None,
    ) -> R:
        response = await self.get(url, completion=completion, token=token)
        try:
            response.raise_for_status()
        except HTTPStatusError:
            await _aclose_quietly(response)
            raise
        if response.content is None:
            return empty()
        try:
            return await read(response.content)
        except BaseException:
            await _aclose_quietly(response)
            raise

    async def get_string(self, url: URLTypes, *, token: CancellationToken | None = None) -> str:
        """
        `GET` a resource and return its body as text.

        Raises `HTTPStatusError` for a non-2xx status.
        """
        return await self._get_content(
            url,
            CompletionOption.CONTENT_READ,
            lambda content: content.aread_text(),
            str,
            token,
        )

    async def get_bytes(self, url: URLTypes, *, token: CancellationToken | None = None) -> bytes:
        """
        `GET` a resource and return its body as bytes.

        Raises `HTTPStatusError` for a non-2xx status.
        """
        return await self._get_content(
            url,
            CompletionOption.CONTENT_READ,
            lambda content: content.aread_bytes(),
            bytes,
            token,
        )

    async def get_stream(
        self, url: URLTypes, *, token: CancellationToken | None = None
    ) -> ContentStream:
        """
        `GET` a resource and return its body as an unread stream.

        The body is not buffered: the stream reads from the connection, and
        closing it releases the response.
        """
        return await self._get_content(
            url,
            CompletionOption.HEADERS_READ,
            lambda content: content.aread_stream(),
            ContentStream.empty,
            token,
        )

    def cancel_pending(self) -> None:
        """
        Cancel every request currently in flight on this client.

        Requests sent afterwards are not affected.
        """
        self._lifecycle.check_not_disposed()
        self._pending.cancel_all()
        _diagnostics.pending_cancelled(self)

    async def aclose(self) -> None:
        """
        Cancel pending requests and close the transport, if the client owns it.

        Closing an already closed client does nothing.
        """
        if not self._lifecycle.mark_disposed():
            return
        self._pending.close()
        if self._owns_transport:
            await self._transport.aclose()

    async def __aenter__(self: T) -> T:
        self._lifecycle.check_not_disposed()
        return self

    async def __aexit__(self, *args: typing.Any) -> None:
        await self.aclose()
