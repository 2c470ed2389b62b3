from __future__ import annotations

import typing

if typing.TYPE_CHECKING:
    from .._cancellation import CancellationToken
    from .._models import Request, Response

T = typing.TypeVar("T", bound="AsyncBaseTransport")


class AsyncBaseTransport:
    async def __aenter__(self: T) -> T:
        return self

    async def __aexit__(self, *args: typing.Any) -> None:
        await self.aclose()

    async def handle_async_request(
        self,
        request: Request,
        token: CancellationToken,
    ) -> Response:
        """
        Send a single HTTP request and return a response.

        The request URL is absolute and the client defaults have already been
        merged in. Implementations must stop promptly once `token` is
        cancelled, by raising a `relayr.TransportError`, and should return
        the response as soon as its headers are available, with the body as
        an unread `relayr.StreamContent`.

        The client closes the request content once this returns or raises.
        """
        raise NotImplementedError(
            "The 'handle_async_request' method must be implemented."
        )  # pragma: no cover

    async def aclose(self) -> None:
        pass
