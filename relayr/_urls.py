from __future__ import annotations

import typing

import idna

from ._urlparse import ParseResult, resolve, urlparse


class URL:
    """
    url = relayr.URL("HTTPS://jo%40email.com:a%20secret@müller.de:1234/pa%20th?search=ab#anchorlink")

    assert url.scheme == "https"
    assert url.userinfo == "jo%40email.com:a%20secret"
    assert url.host == "müller.de"
    assert url.raw_host == b"xn--mller-kva.de"
    assert url.port == 1234
    assert url.path == "/pa%20th"
    assert url.query == "search=ab"
    assert url.fragment == "anchorlink"

    A URL without a scheme is a relative reference. It can be sent only by a
    client with a `base_url`, which it is resolved against.
    """

    def __init__(self, url: URL | str = "") -> None:
        if isinstance(url, URL):
            self._uri_reference: ParseResult = url._uri_reference
        elif isinstance(url, str):
            self._uri_reference = urlparse(url)
        else:
            raise TypeError(
                "Invalid type for url.  Expected str or relayr.URL,"
                f" got {type(url)}: {url!r}"
            )

    @property
    def scheme(self) -> str:
        return self._uri_reference.scheme

    @property
    def userinfo(self) -> str:
        return self._uri_reference.userinfo

    @property
    def host(self) -> str:
        host = self._uri_reference.host
        if host.startswith("xn--"):
            host = idna.decode(host)
        return host

    @property
    def raw_host(self) -> bytes:
        return self._uri_reference.host.encode("ascii")

    @property
    def port(self) -> int | None:
        return self._uri_reference.port

    @property
    def netloc(self) -> bytes:
        return self._uri_reference.netloc.encode("ascii")

    @property
    def path(self) -> str:
        return self._uri_reference.path

    @property
    def query(self) -> str | None:
        return self._uri_reference.query

    @property
    def fragment(self) -> str | None:
        return self._uri_reference.fragment

    @property
    def raw_path(self) -> bytes:
        """
        The request target: path plus query string, without the fragment.
        """
        path = self._uri_reference.path or "/"
        if self._uri_reference.query is not None:
            path += "?" + self._uri_reference.query
        return path.encode("ascii")

    @property
    def is_absolute_url(self) -> bool:
        return bool(self._uri_reference.scheme)

    @property
    def is_relative_url(self) -> bool:
        return not self.is_absolute_url

    def copy_with(self, **kwargs: typing.Any) -> URL:
        return URL(str(self._uri_reference.copy_with(**kwargs)))

    def join(self, url: URL | str) -> URL:
        """
        Return an absolute URL, using this URL as the base.

        Eg.

        url = relayr.URL("https://www.example.com/test")
        url = url.join("/new/path")
        assert url == "https://www.example.com/new/path"
        """
        reference = URL(url)
        return URL(str(resolve(self._uri_reference, reference._uri_reference)))

    def __hash__(self) -> int:
        return hash(str(self))

    def __eq__(self, other: typing.Any) -> bool:
        return isinstance(other, (URL, str)) and str(self) == str(URL(other))

    def __str__(self) -> str:
        return str(self._uri_reference)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({str(self)!r})"
