"""
Our exception hierarchy:

* HTTPError
  x RequestError
    + TransportError
      - TimeoutException
        · ConnectTimeout
        · ReadTimeout
        · WriteTimeout
        · PoolTimeout
      - NetworkError
        · ConnectError
        · ReadError
        · WriteError
        · CloseError
      - ProtocolError
        · LocalProtocolError
        · RemoteProtocolError
      - ProxyError
      - UnsupportedProtocol
    + ContentTooLarge
  x NoResponseError
  x OperationCancelled
  x HTTPStatusError
* ObjectDisposedError
* InvalidStateError
  x RequestAlreadySentError
* InvalidArgumentError
* InvalidRequestError
* InvalidURL
* StreamError
  x StreamConsumed
  x StreamClosed
"""

from __future__ import annotations

import typing

if typing.TYPE_CHECKING:
    from ._cancellation import CancellationToken
    from ._models import Request, Response


class HTTPError(Exception):
    """
    Base class for `RequestError`, `HTTPStatusError` and the send outcomes.

    Useful for `try...except` blocks when issuing a request,
    and then calling `.raise_for_status()`.
    """

    def __init__(self, message: str, *, request: Request | None = None) -> None:
        super().__init__(message)
        self._request = request

    @property
    def request(self) -> Request:
        if self._request is None:
            raise RuntimeError("The .request property has not been set.")
        return self._request

    @request.setter
    def request(self, request: Request) -> None:
        self._request = request


class RequestError(HTTPError):
    """
    Base class for all exceptions that may occur when issuing a `.send()`.

    These are the failures that get reclassified as `OperationCancelled`
    when the request's cancellation token has been triggered.
    """


class TransportError(RequestError):
    """
    Base class for all exceptions that occur at the level of the Transport API.
    """


# Timeout exceptions...


class TimeoutException(TransportError):
    """
    The base class for transport timeouts.
    """


class ConnectTimeout(TimeoutException):
    """
    Timed out while connecting to the host.
    """


class ReadTimeout(TimeoutException):
    """
    Timed out while receiving data from the host.
    """


class WriteTimeout(TimeoutException):
    """
    Timed out while sending data to the host.
    """


class PoolTimeout(TimeoutException):
    """
    Timed out waiting to acquire a connection from the pool.
    """


# Core networking exceptions...


class NetworkError(TransportError):
    """
    The base class for network-related errors.
    """


class ReadError(NetworkError):
    """
    Failed to receive data from the network.
    """


class WriteError(NetworkError):
    """
    Failed to send data through the network.
    """


class ConnectError(NetworkError):
    """
    Failed to establish a connection.
    """


class CloseError(NetworkError):
    """
    Failed to close a connection.
    """


# Other transport exceptions...


class ProxyError(TransportError):
    """
    An error occurred while establishing a proxy connection.
    """


class UnsupportedProtocol(TransportError):
    """
    Attempted to make a request to an unsupported protocol.

    For example issuing a request to `ftp://www.example.com`.
    """


class ProtocolError(TransportError):
    """
    The protocol was violated.
    """


class LocalProtocolError(ProtocolError):
    """
    A protocol was violated by the client.
    """


class RemoteProtocolError(ProtocolError):
    """
    The protocol was violated by the server.
    """


class ContentTooLarge(RequestError):
    """
    Buffering a body would exceed the configured maximum buffer size.
    """


# Send outcomes...


class NoResponseError(HTTPError):
    """
    The transport completed without returning a response.

    This is a broken transport contract, not a network failure, so it is
    never reclassified as a cancellation.
    """


class OperationCancelled(HTTPError):
    """
    The request was cancelled, by the caller, by `cancel_pending()`
    or by the client timeout.
    """

    def __init__(
        self,
        message: str = "The operation was cancelled.",
        *,
        token: CancellationToken | None = None,
        request: Request | None = None,
    ) -> None:
        super().__init__(message, request=request)
        self.token = token


class HTTPStatusError(HTTPError):
    """
    The response had an error HTTP status of 4xx or 5xx.

    May be raised when calling `response.raise_for_status()`
    """

    def __init__(self, message: str, *, request: Request, response: Response) -> None:
        super().__init__(message, request=request)
        self.response = response


# Misuse of the client...


class ObjectDisposedError(RuntimeError):
    """
    An operation was attempted on a client that has already been closed.
    """


class InvalidStateError(RuntimeError):
    """
    The operation is not valid in the current state.

    Raised when client configuration is changed after the first request
    has been dispatched.
    """


class RequestAlreadySentError(InvalidStateError):
    """
    A request instance was passed to `.send()` a second time.
    """


class InvalidArgumentError(ValueError):
    """
    An argument was missing, of the wrong kind, or out of range.
    """


class InvalidRequestError(ValueError):
    """
    The request has no usable target URL.
    """


class InvalidURL(ValueError):
    """
    URL is improperly formed or cannot be parsed.
    """


# Stream exceptions...


class StreamError(RuntimeError):
    """
    The base class for stream exceptions.

    The developer made an error in accessing the request stream in
    an invalid way.
    """


class StreamConsumed(StreamError):
    """
    Attempted to read or stream content, but the content has already
    been streamed.
    """

    def __init__(self) -> None:
        message = (
            "Attempted to read or stream some content, but the content has "
            "already been streamed. For requests, this could be due to passing "
            "a generator as request content, and then sending the request a "
            "second time. For responses, the content must be buffered (the "
            "default CONTENT_READ completion option) to be read more than once."
        )
        super().__init__(message)


class StreamClosed(StreamError):
    """
    Attempted to read or stream content, but the content has already
    been closed.
    """

    def __init__(self) -> None:
        message = "Attempted to read or stream content, but the content has been closed."
        super().__init__(message)


def classify_send_failure(
    exc: Exception,
    cancellation_requested: bool,
    token: CancellationToken | None,
) -> Exception:
    """
    Decide which exception a failed send surfaces to the caller.

    A transport-level failure that surfaces while the request's derived
    token is cancelled is treated as caused by the cancellation, even when
    the two are unrelated. Anything else is returned unchanged.
    """
    if cancellation_requested and isinstance(exc, RequestError):
        return OperationCancelled(token=token, request=exc._request)
    return exc
