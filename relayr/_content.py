"""
Request and response bodies.

A `Content` is read at most once from its underlying source. Buffering it
with `aload_into_buffer()` makes it readable any number of times until it
is closed.
"""

from __future__ import annotations

import typing
from collections.abc import AsyncIterable, AsyncIterator, Iterable

from ._exceptions import ContentTooLarge, StreamClosed, StreamConsumed
from ._headers import Headers

MAX_BUFFER_SIZE = 2**31 - 1

DEFAULT_ENCODING = "utf-8"


def _parse_charset(content_type: str | None) -> str | None:
    if not content_type:
        return None
    _, _, params = content_type.partition(";")
    for param in params.split(";"):
        key, _, value = param.strip().partition("=")
        if key.lower() == "charset" and value:
            return value.strip("'\"")
    return None


class ContentStream:
    """
    A one-shot async byte stream over a body.

    Iterate it for chunks, or `await stream.aread()` for the remainder.
    """

    def __init__(
        self,
        chunks: AsyncIterable[bytes],
        close: typing.Callable[[], typing.Awaitable[None]] | None = None,
    ) -> None:
        self._chunks = chunks
        self._close = close
        self._is_closed = False

    @classmethod
    def empty(cls) -> ContentStream:
        return cls(_aiter_bytes(b""))

    @property
    def is_closed(self) -> bool:
        return self._is_closed

    async def __aiter__(self) -> AsyncIterator[bytes]:
        if self._is_closed:
            raise StreamClosed()
        async for chunk in self._chunks:
            yield chunk

    async def aread(self) -> bytes:
        return b"".join([chunk async for chunk in self])

    async def aclose(self) -> None:
        if self._is_closed:
            return
        self._is_closed = True
        if self._close is not None:
            await self._close()

    async def __aenter__(self) -> ContentStream:
        return self

    async def __aexit__(self, *args: typing.Any) -> None:
        await self.aclose()

    def __repr__(self) -> str:
        state = "closed" if self._is_closed else "open"
        return f"<{self.__class__.__name__} [{state}]>"


async def _aiter_bytes(data: bytes) -> AsyncIterator[bytes]:
    if data:
        yield data


class Content:
    """
    Base class for bodies.

    Subclasses implement `_aiter_raw()`, and `_aclose_raw()` when they hold
    a resource such as a network stream.
    """

    def __init__(self, headers: typing.Any = None) -> None:
        self.headers = Headers(headers)
        self._buffer: bytes | None = None
        self._is_closed = False
        self._is_stream_consumed = False
        self._is_raw_released = False

    @property
    def is_buffered(self) -> bool:
        return self._buffer is not None

    @property
    def is_closed(self) -> bool:
        return self._is_closed

    @property
    def charset(self) -> str | None:
        return _parse_charset(self.headers.get("Content-Type"))

    def _aiter_raw(self) -> AsyncIterator[bytes]:
        raise NotImplementedError()  # pragma: no cover

    async def _aclose_raw(self) -> None:
        pass

    def _consume(self) -> AsyncIterator[bytes]:
        if self._is_closed:
            raise StreamClosed()
        if self._is_stream_consumed:
            raise StreamConsumed()
        self._is_stream_consumed = True
        return self._aiter_raw()

    async def __aiter__(self) -> AsyncIterator[bytes]:
        if self._is_closed:
            raise StreamClosed()
        if self._buffer is not None:
            if self._buffer:
                yield self._buffer
            return
        async for chunk in self._consume():
            yield chunk

    async def aload_into_buffer(self, max_size: int = MAX_BUFFER_SIZE) -> None:
        if self._is_closed:
            raise StreamClosed()
        if self._buffer is not None:
            if len(self._buffer) > max_size:
                raise ContentTooLarge(_too_large_message(max_size))
            return

        chunks: list[bytes] = []
        total = 0
        async for chunk in self._consume():
            total += len(chunk)
            if total > max_size:
                raise ContentTooLarge(_too_large_message(max_size))
            chunks.append(chunk)
        self._buffer = b"".join(chunks)
        # Fully read: the underlying source is no longer needed.
        await self._release_raw()

    async def aread_bytes(self) -> bytes:
        await self.aload_into_buffer()
        assert self._buffer is not None
        return self._buffer

    async def aread_text(self) -> str:
        data = await self.aread_bytes()
        return data.decode(self.charset or DEFAULT_ENCODING, errors="replace")

    async def aread_stream(self) -> ContentStream:
        if self._is_closed:
            raise StreamClosed()
        if self._buffer is not None:
            return ContentStream(_aiter_bytes(self._buffer))
        return ContentStream(self._consume(), close=self.aclose)

    async def aclose(self) -> None:
        if self._is_closed:
            return
        self._is_closed = True
        await self._release_raw()

    async def _release_raw(self) -> None:
        if not self._is_raw_released:
            self._is_raw_released = True
            await self._aclose_raw()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}>"


def _too_large_message(max_size: int) -> str:
    return (
        "Cannot write more bytes to the buffer than the configured "
        f"maximum buffer size: {max_size}."
    )


class ByteContent(Content):
    """
    An in-memory body. It is buffered from the start.
    """

    def __init__(self, data: bytes, *, media_type: str | None = None) -> None:
        if not isinstance(data, (bytes, bytearray, memoryview)):
            raise TypeError(f"Expected bytes, got {type(data).__name__}.")
        headers = {"Content-Length": str(len(data))}
        if media_type is not None:
            headers["Content-Type"] = media_type
        super().__init__(headers)
        self._buffer = bytes(data)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} [{len(self._buffer or b'')} bytes]>"


class StringContent(ByteContent):
    def __init__(
        self,
        text: str,
        *,
        encoding: str = DEFAULT_ENCODING,
        media_type: str = "text/plain",
    ) -> None:
        super().__init__(
            text.encode(encoding),
            media_type=f"{media_type}; charset={encoding}",
        )


class StreamContent(Content):
    """
    A body read from an iterable of byte chunks, typically a network stream.

    If the iterable has an `aclose()` (or `close()`) method it is called when
    the content is closed.
    """

    def __init__(
        self,
        stream: AsyncIterable[bytes] | Iterable[bytes],
        *,
        headers: typing.Any = None,
    ) -> None:
        super().__init__(headers)
        self._stream = stream

    async def _aiter_raw(self) -> AsyncIterator[bytes]:
        if isinstance(self._stream, AsyncIterable):
            async for chunk in self._stream:
                yield chunk
        else:
            for chunk in self._stream:
                yield chunk

    async def _aclose_raw(self) -> None:
        if hasattr(self._stream, "aclose"):
            await self._stream.aclose()  # type: ignore[union-attr]
        elif hasattr(self._stream, "close"):
            self._stream.close()  # type: ignore[union-attr]


def encode_content(content: typing.Any) -> Content | None:
    """
    Wrap a `content=` argument into a `Content`.
    """
    if content is None or isinstance(content, Content):
        return content
    if isinstance(content, str):
        return StringContent(content)
    if isinstance(content, (bytes, bytearray, memoryview)):
        return ByteContent(content)
    if isinstance(content, (AsyncIterable, Iterable)):
        return StreamContent(content)
    raise TypeError(f"Unexpected type for 'content', {type(content).__name__!r}")
