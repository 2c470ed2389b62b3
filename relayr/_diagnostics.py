"""
Log events emitted by the client.

Everything here is fire-and-forget: the send pipeline never depends on
whether, or how, an event is recorded.
"""

from __future__ import annotations

import logging
import typing

if typing.TYPE_CHECKING:
    from ._models import Request, Response

logger = logging.getLogger("relayr")


def _identity(obj: object) -> str:
    return f"{obj.__class__.__name__}#{id(obj):x}"


def base_url_changed(client: object, old: object, new: object) -> None:
    logger.info("%s: base_url changed from %s to %s", _identity(client), old, new)


def send_completed(client: object, request: Request, response: Response) -> None:
    if logger.isEnabledFor(logging.DEBUG):
        response_line = f"{response.http_version} {response.status_code} {response.reason_phrase}"
        logger.debug(
            '%s: HTTP Request: %s %s "%s"',
            _identity(client),
            request.method,
            request.url,
            response_line,
        )


def send_failed(
    client: object,
    request: Request,
    cancelled: bool,
    exc: BaseException,
) -> None:
    if cancelled:
        logger.info(
            "%s: sending %s (%s %s) was cancelled",
            _identity(client),
            _identity(request),
            request.method,
            request.url,
        )
        # The transport error that was reclassified, which may be unrelated.
        logger.debug("%s: underlying error: %r", _identity(request), exc)
    else:
        logger.warning(
            "%s: error while sending %s (%s %s): %r",
            _identity(client),
            _identity(request),
            request.method,
            request.url,
            exc,
        )


def pending_cancelled(client: object) -> None:
    logger.debug("%s: cancelled pending requests", _identity(client))
