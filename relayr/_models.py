from __future__ import annotations

import json as jsonlib
import threading
import typing

from ._content import ByteContent, Content, StringContent, encode_content
from ._exceptions import HTTPStatusError
from ._headers import Headers, HeaderTypes
from ._status_codes import codes
from ._urls import URL

__all__ = ["Request", "Response"]


def _coerce_url(url: URL | str | None) -> URL | None:
    # An empty URL means "no URL": the client's base URL is used instead.
    if url is None or url == "":
        return None
    return URL(url)


class Request:
    """
    A single outgoing HTTP request.

    A request can be sent once. The client resolves its URL against the
    base URL, merges in the default headers, and closes its content once
    the transport is done with it.
    """

    def __init__(
        self,
        method: str,
        url: URL | str | None = None,
        *,
        headers: HeaderTypes | None = None,
        content: Content | bytes | str | typing.Any = None,
        extensions: dict[str, typing.Any] | None = None,
    ) -> None:
        self.method = method.upper()
        self.url = _coerce_url(url)
        self.headers = Headers(headers)
        self.content: Content | None = encode_content(content)
        self.extensions = {} if extensions is None else extensions
        self._sent = False
        self._sent_lock = threading.Lock()

    @property
    def is_sent(self) -> bool:
        return self._sent

    def mark_as_sent(self) -> bool:
        """
        Flag the request as sent. Returns `False` if it already was.
        """
        with self._sent_lock:
            if self._sent:
                return False
            self._sent = True
            return True

    def __repr__(self) -> str:
        class_name = self.__class__.__name__
        url = None if self.url is None else str(self.url)
        return f"<{class_name}({self.method!r}, {url!r})>"


class Response:
    def __init__(
        self,
        status_code: int,
        *,
        headers: HeaderTypes | None = None,
        content: Content | bytes | str | typing.Any = None,
        text: str | None = None,
        json: typing.Any = None,
        request: Request | None = None,
        http_version: str = "HTTP/1.1",
        reason_phrase: str | None = None,
        extensions: dict[str, typing.Any] | None = None,
    ) -> None:
        self.status_code = status_code
        self.headers = Headers(headers)
        self.http_version = http_version
        self._reason_phrase = reason_phrase
        self._request = request
        self.extensions = {} if extensions is None else extensions

        if text is not None:
            content = StringContent(text)
        elif json is not None:
            content = ByteContent(
                jsonlib.dumps(json, ensure_ascii=False).encode("utf-8"),
                media_type="application/json",
            )
        self.content: Content | None = encode_content(content)
        if self.content is not None:
            for name, value in self.content.headers.multi_items():
                if name not in self.headers:
                    self.headers[name] = value
            content_type = self.headers.get("Content-Type")
            if content_type is not None and "Content-Type" not in self.content.headers:
                self.content.headers["Content-Type"] = content_type

    @property
    def request(self) -> Request:
        """
        Returns the request instance associated to the current response.
        """
        if self._request is None:
            raise RuntimeError(
                "The request instance has not been set on this response."
            )
        return self._request

    @request.setter
    def request(self, value: Request) -> None:
        self._request = value

    @property
    def reason_phrase(self) -> str:
        if self._reason_phrase is not None:
            return self._reason_phrase
        return codes.get_reason_phrase(self.status_code)

    @property
    def url(self) -> URL | None:
        return None if self._request is None else self._request.url

    @property
    def is_informational(self) -> bool:
        return codes.is_informational(self.status_code)

    @property
    def is_success(self) -> bool:
        return codes.is_success(self.status_code)

    @property
    def is_redirect(self) -> bool:
        return codes.is_redirect(self.status_code)

    @property
    def is_client_error(self) -> bool:
        return codes.is_client_error(self.status_code)

    @property
    def is_server_error(self) -> bool:
        return codes.is_server_error(self.status_code)

    @property
    def is_error(self) -> bool:
        return codes.is_error(self.status_code)

    @property
    def is_closed(self) -> bool:
        return self.content is None or self.content.is_closed

    def raise_for_status(self) -> Response:
        """
        Raise the `HTTPStatusError` if one occurred.
        """
        request = self._request
        if request is None:
            raise RuntimeError(
                "Cannot call `raise_for_status` as the request "
                "instance has not been set on this response."
            )

        if self.is_success:
            return self

        message = (
            "{error_type} '{0.status_code} {0.reason_phrase}' for url '{0.url}'\n"
            "For more information check: https://developer.mozilla.org/en-US/docs/Web/HTTP/Status/{0.status_code}"
        )

        status_class = self.status_code // 100
        error_types = {
            1: "Informational response",
            3: "Redirect response",
            4: "Client error",
            5: "Server error",
        }
        error_type = error_types.get(status_class, "Invalid status code")
        message = message.format(self, error_type=error_type)
        raise HTTPStatusError(message, request=request, response=self)

    async def aread(self) -> bytes:
        """
        Read and return the response content.
        """
        if self.content is None:
            return b""
        return await self.content.aread_bytes()

    async def aclose(self) -> None:
        """
        Close the response and release the connection.
        """
        if self.content is not None:
            await self.content.aclose()

    async def __aenter__(self) -> Response:
        return self

    async def __aexit__(self, *args: typing.Any) -> None:
        await self.aclose()

    def __repr__(self) -> str:
        return f"<Response [{self.status_code} {self.reason_phrase}]>"
