from __future__ import annotations

import inspect
import typing

import anyio

from .._cancellation import CancellationToken, cancel_scope_for
from .._exceptions import TransportError
from .._models import Request, Response
from .base import AsyncBaseTransport

Handler = typing.Callable[[Request], typing.Any]


class MockTransport(AsyncBaseTransport):
    """
    Answer requests with a function instead of the network.

    The handler may be a plain function or a coroutine function. It is
    cancelled cooperatively when the request token is, in which case a
    `TransportError` is raised as a network transport would.
    """

    def __init__(self, handler: Handler) -> None:
        self.handler = handler
        self.is_closed = False

    async def handle_async_request(
        self,
        request: Request,
        token: CancellationToken,
    ) -> Response:
        with cancel_scope_for(token) as scope:
            await anyio.sleep(0)
            response = self.handler(request)
            if inspect.isawaitable(response):
                response = await response
        if scope.cancelled_caught:
            raise TransportError(
                "The request was cancelled before a response was received.",
                request=request,
            )
        if response is not None:
            response.request = request
        return response

    async def aclose(self) -> None:
        self.is_closed = True
