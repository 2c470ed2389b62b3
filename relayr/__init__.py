# ruff: noqa: I001
from .__version__ import __description__, __title__, __version__
from ._cancellation import (
    CancellationRegistration,
    CancellationSource,
    CancellationToken,
)
from ._client import AsyncClient
from ._config import DEFAULT_TIMEOUT, MAX_TIMEOUT, CompletionOption
from ._content import (
    MAX_BUFFER_SIZE,
    ByteContent,
    Content,
    ContentStream,
    StreamContent,
    StringContent,
)
from ._exceptions import (
    CloseError,
    ConnectError,
    ConnectTimeout,
    ContentTooLarge,
    HTTPError,
    HTTPStatusError,
    InvalidArgumentError,
    InvalidRequestError,
    InvalidStateError,
    InvalidURL,
    LocalProtocolError,
    NetworkError,
    NoResponseError,
    ObjectDisposedError,
    OperationCancelled,
    PoolTimeout,
    ProtocolError,
    ProxyError,
    ReadError,
    ReadTimeout,
    RemoteProtocolError,
    RequestAlreadySentError,
    RequestError,
    StreamClosed,
    StreamConsumed,
    StreamError,
    TimeoutException,
    TransportError,
    UnsupportedProtocol,
    WriteError,
    WriteTimeout,
)
from ._headers import Headers
from ._models import Request, Response
from ._status_codes import codes
from ._transports import AsyncBaseTransport, AsyncHTTPTransport, MockTransport
from ._urls import URL

try:
    from .cli import main
except ImportError:

    def main() -> None:  # type: ignore[misc]
        import sys

        print(
            'The "relayr" command requires the CLI extra. '
            'Install it with: pip install "relayr[cli]"',
            file=sys.stderr,
        )
        sys.exit(1)


_EXCLUDED_FROM_ALL = {"cli", "main"}

_members = [
    member
    for member in list(vars().keys())
    if (
        not member.startswith("_")
        or member in ["__description__", "__title__", "__version__"]
    )
    and member not in _EXCLUDED_FROM_ALL
]

__all__ = sorted(_members, key=str.casefold)  # pyright: ignore[reportUnsupportedDunderAll]
