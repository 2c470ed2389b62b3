from __future__ import annotations

from ._exceptions import InvalidArgumentError, InvalidRequestError
from ._headers import Headers
from ._models import Request
from ._urls import URL

SUPPORTED_SCHEMES = ("http", "https")


def check_base_url(value: URL | str | None) -> URL | None:
    """
    Validate a client base URL. `None` clears it.
    """
    if value is None:
        return None
    url = URL(value)
    if not url.is_absolute_url:
        raise InvalidArgumentError(f"The base URL must be an absolute URL, got {str(url)!r}.")
    if url.scheme not in SUPPORTED_SCHEMES:
        raise InvalidArgumentError(
            f"Only 'http' and 'https' schemes are allowed for the base URL, got {url.scheme!r}."
        )
    return url


def prepare_request(request: Request, base_url: URL | None, default_headers: Headers | None) -> None:
    """
    Resolve the request URL against `base_url` and merge the default headers.

    The request is modified in place. Absolute request URLs are left alone;
    default headers are only added for names the request does not carry.
    """
    if request.url is None:
        if base_url is None:
            raise InvalidRequestError(
                "An invalid request URL was provided. The request URL must "
                "either be an absolute URL or base_url must be set."
            )
        request.url = base_url
    elif request.url.is_relative_url:
        if base_url is None:
            raise InvalidRequestError(
                f"An invalid request URL was provided. {str(request.url)!r} is "
                "relative and no base_url is set."
            )
        request.url = base_url.join(request.url)

    if default_headers:
        merge_default_headers(request.headers, default_headers)


def merge_default_headers(headers: Headers, defaults: Headers) -> None:
    present = {name.lower() for name in headers}
    for name, value in defaults.multi_items():
        if name.lower() not in present:
            headers.add(name, value)
