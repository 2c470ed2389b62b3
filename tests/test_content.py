import pytest

import relayr


async def async_chunks(*chunks: bytes):
    for chunk in chunks:
        yield chunk


class ClosingStream:
    def __init__(self, *chunks: bytes) -> None:
        self._chunks = list(chunks)
        self.closed = 0

    async def __aiter__(self):
        for chunk in self._chunks:
            yield chunk

    async def aclose(self) -> None:
        self.closed += 1


@pytest.mark.anyio
async def test_byte_content():
    content = relayr.ByteContent(b"Hello", media_type="text/plain")

    assert content.is_buffered
    assert content.headers["Content-Length"] == "5"
    assert content.headers["Content-Type"] == "text/plain"
    assert await content.aread_bytes() == b"Hello"
    assert await content.aread_bytes() == b"Hello"


@pytest.mark.anyio
async def test_string_content():
    content = relayr.StringContent("Grüße", encoding="latin-1")

    assert content.charset == "latin-1"
    assert await content.aread_bytes() == "Grüße".encode("latin-1")
    assert await content.aread_text() == "Grüße"


@pytest.mark.anyio
async def test_stream_content_buffers_once_then_rereads():
    content = relayr.StreamContent(async_chunks(b"Hello, ", b"world!"))
    assert not content.is_buffered

    await content.aload_into_buffer(1024)

    assert content.is_buffered
    assert await content.aread_bytes() == b"Hello, world!"
    assert [chunk async for chunk in content] == [b"Hello, world!"]


@pytest.mark.anyio
async def test_stream_content_sync_iterable():
    content = relayr.StreamContent([b"a", b"b"])
    assert await content.aread_bytes() == b"ab"


@pytest.mark.anyio
async def test_stream_content_is_single_use():
    content = relayr.StreamContent(async_chunks(b"data"))

    assert [chunk async for chunk in content] == [b"data"]
    with pytest.raises(relayr.StreamConsumed):
        await content.aread_bytes()


@pytest.mark.anyio
async def test_buffer_too_large():
    content = relayr.StreamContent(async_chunks(b"12345", b"67890"))

    with pytest.raises(relayr.ContentTooLarge):
        await content.aload_into_buffer(8)


@pytest.mark.anyio
async def test_buffer_exactly_at_limit():
    content = relayr.StreamContent(async_chunks(b"12345", b"678"))
    await content.aload_into_buffer(8)
    assert await content.aread_bytes() == b"12345678"


@pytest.mark.anyio
async def test_already_buffered_content_larger_than_limit():
    content = relayr.ByteContent(b"0123456789")
    with pytest.raises(relayr.ContentTooLarge):
        await content.aload_into_buffer(4)


@pytest.mark.anyio
async def test_buffering_releases_the_source():
    stream = ClosingStream(b"data")
    content = relayr.StreamContent(stream)

    await content.aload_into_buffer()
    assert stream.closed == 1

    await content.aclose()
    assert stream.closed == 1


@pytest.mark.anyio
async def test_aclose_is_idempotent():
    stream = ClosingStream(b"data")
    content = relayr.StreamContent(stream)

    await content.aclose()
    await content.aclose()

    assert content.is_closed
    assert stream.closed == 1
    with pytest.raises(relayr.StreamClosed):
        await content.aread_bytes()


@pytest.mark.anyio
async def test_aread_stream_unbuffered():
    stream = ClosingStream(b"a", b"b")
    content = relayr.StreamContent(stream)

    async with await content.aread_stream() as body:
        assert await body.aread() == b"ab"

    assert body.is_closed
    assert content.is_closed
    assert stream.closed == 1


@pytest.mark.anyio
async def test_aread_stream_buffered():
    content = relayr.ByteContent(b"abc")
    body = await content.aread_stream()
    assert await body.aread() == b"abc"


@pytest.mark.anyio
async def test_empty_content_stream():
    body = relayr.ContentStream.empty()
    assert await body.aread() == b""
    await body.aclose()
    assert body.is_closed
    with pytest.raises(relayr.StreamClosed):
        await body.aread()


def test_unexpected_content_type():
    with pytest.raises(TypeError):
        relayr.Request("POST", "https://example.org/", content=123)
