from __future__ import annotations

import datetime
import enum
import os
import ssl
import typing

from ._content import MAX_BUFFER_SIZE
from ._exceptions import InvalidArgumentError

__all__ = [
    "DEFAULT_TIMEOUT",
    "MAX_TIMEOUT",
    "CompletionOption",
    "create_ssl_context",
]

TimeoutTypes = typing.Union[float, int, datetime.timedelta, None]

DEFAULT_TIMEOUT = 100.0

# The largest timeout that fits in a signed 32-bit count of milliseconds.
MAX_TIMEOUT = 2_147_483.647


class CompletionOption(enum.Enum):
    """
    When `send()` returns.

    CONTENT_READ buffers the whole response body first. HEADERS_READ returns
    as soon as the headers are in, leaving the body as an unread stream.
    """

    CONTENT_READ = "content-read"
    HEADERS_READ = "headers-read"


def validate_timeout(value: TimeoutTypes) -> float | None:
    """
    Normalise a timeout to seconds. `None` disables the timeout.
    """
    if value is None:
        return None
    if isinstance(value, datetime.timedelta):
        seconds = value.total_seconds()
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        seconds = float(value)
    else:
        raise InvalidArgumentError(
            f"Timeout must be a number of seconds, a timedelta or None, not {type(value).__name__}."
        )
    if not 0 < seconds <= MAX_TIMEOUT:
        raise InvalidArgumentError(
            f"Timeout must be greater than zero and at most {MAX_TIMEOUT} seconds, got {seconds!r}."
        )
    return seconds


def validate_buffer_size(value: int) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise InvalidArgumentError(
            f"Buffer size must be an integer, not {type(value).__name__}."
        )
    if value <= 0:
        raise InvalidArgumentError(f"Buffer size must be greater than zero, got {value}.")
    if value > MAX_BUFFER_SIZE:
        raise InvalidArgumentError(
            f"Buffering more than {MAX_BUFFER_SIZE} bytes is not supported, got {value}."
        )
    return value


def create_ssl_context(
    verify: ssl.SSLContext | str | bool = True,
    cert: str | tuple[str, str] | None = None,
    trust_env: bool = True,
) -> ssl.SSLContext:
    """
    Build the SSL context used by `AsyncHTTPTransport`.

    `verify` may be a ready-made context, a CA bundle path, or a bool. With
    `trust_env`, the `SSL_CERT_FILE` and `SSL_CERT_DIR` environment variables
    select the CA material when `verify` is `True`.
    """
    if isinstance(verify, ssl.SSLContext):
        context = verify
    elif verify is False:
        context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    elif isinstance(verify, str):
        if os.path.isdir(verify):
            context = ssl.create_default_context(capath=verify)
        else:
            context = ssl.create_default_context(cafile=verify)
    elif trust_env and os.environ.get("SSL_CERT_FILE"):
        context = ssl.create_default_context(cafile=os.environ["SSL_CERT_FILE"])
    elif trust_env and os.environ.get("SSL_CERT_DIR"):
        context = ssl.create_default_context(capath=os.environ["SSL_CERT_DIR"])
    else:
        context = ssl.create_default_context()

    if cert is not None:
        if isinstance(cert, str):
            context.load_cert_chain(certfile=cert)
        else:
            context.load_cert_chain(certfile=cert[0], keyfile=cert[1])

    if trust_env and os.environ.get("SSLKEYLOGFILE"):
        context.keylog_filename = os.environ["SSLKEYLOGFILE"]
    elif not trust_env and context is not verify:
        # create_default_context() reads SSLKEYLOGFILE on its own.
        context.keylog_filename = None

    return context
