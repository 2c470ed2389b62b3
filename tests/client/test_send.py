import typing

import anyio
import pytest

import relayr


class TrackedStream:
    def __init__(self, *chunks: bytes) -> None:
        self._chunks = list(chunks)
        self.closed = 0

    async def __aiter__(self) -> typing.AsyncIterator[bytes]:
        for chunk in self._chunks:
            yield chunk

    async def aclose(self) -> None:
        self.closed += 1


class RecordingTransport(relayr.AsyncBaseTransport):
    """
    Returns a fixed response and remembers what it was asked to send.
    """

    def __init__(self, response: typing.Optional[relayr.Response] = None) -> None:
        self.response = relayr.Response(200, text="Hello, world!") if response is None else response
        self.requests: typing.List[relayr.Request] = []
        self.tokens: typing.List[relayr.CancellationToken] = []

    async def handle_async_request(self, request, token):
        self.requests.append(request)
        self.tokens.append(token)
        self.response.request = request
        return self.response


class NoResponseTransport(relayr.AsyncBaseTransport):
    def __init__(self, cancel_first: typing.Optional[relayr.CancellationSource] = None) -> None:
        self.cancel_first = cancel_first

    async def handle_async_request(self, request, token):
        if self.cancel_first is not None:
            self.cancel_first.cancel()
        return None


@pytest.mark.anyio
async def test_send_resolves_url_against_base_url():
    transport = RecordingTransport()
    async with relayr.AsyncClient(transport, base_url="http://example.test/api/") as client:
        response = await client.get("items/5")

    assert response.status_code == 200
    assert transport.requests[0].url == "http://example.test/api/items/5"


@pytest.mark.anyio
async def test_send_absolute_url_is_used_verbatim():
    transport = RecordingTransport()
    async with relayr.AsyncClient(transport, base_url="http://example.test/api/") as client:
        await client.get("https://other.test/x?y=1")

    assert transport.requests[0].url == "https://other.test/x?y=1"


@pytest.mark.anyio
@pytest.mark.parametrize("url", [None, ""])
async def test_send_without_url_uses_base_url(url):
    transport = RecordingTransport()
    async with relayr.AsyncClient(transport, base_url="http://example.test/api/") as client:
        await client.get(url)

    assert transport.requests[0].url == "http://example.test/api/"


@pytest.mark.anyio
@pytest.mark.parametrize("url", [None, "relative/path"])
async def test_send_without_usable_url(url):
    transport = RecordingTransport()
    async with relayr.AsyncClient(transport) as client:
        with pytest.raises(relayr.InvalidRequestError):
            await client.get(url)

    assert transport.requests == []


@pytest.mark.anyio
async def test_send_merges_default_headers():
    transport = RecordingTransport()
    client = relayr.AsyncClient(transport)
    client.headers = [("X-Client", "relayr"), ("Accept", "text/plain"), ("Accept", "text/html")]

    async with client:
        await client.get("http://example.test/", headers={"X-Client": "mine"})

    headers = transport.requests[0].headers
    assert headers["X-Client"] == "mine"
    assert headers.get_list("Accept") == ["text/plain", "text/html"]


@pytest.mark.anyio
async def test_send_same_request_twice():
    transport = RecordingTransport()
    request = relayr.Request("GET", "http://example.test/")

    async with relayr.AsyncClient(transport) as client:
        await client.send(request)
        with pytest.raises(relayr.RequestAlreadySentError):
            await client.send(request)

    assert len(transport.requests) == 1


@pytest.mark.anyio
async def test_request_sent_by_another_client():
    request = relayr.Request("GET", "http://example.test/")

    async with relayr.AsyncClient(RecordingTransport()) as first:
        await first.send(request)
    async with relayr.AsyncClient(RecordingTransport()) as second:
        with pytest.raises(relayr.InvalidStateError):
            await second.send(request)


@pytest.mark.anyio
async def test_send_none_request():
    async with relayr.AsyncClient(RecordingTransport()) as client:
        with pytest.raises(relayr.InvalidArgumentError):
            await client.send(None)  # type: ignore[arg-type]


@pytest.mark.anyio
async def test_send_on_closed_client():
    client = relayr.AsyncClient(RecordingTransport())
    await client.aclose()

    request = relayr.Request("GET", "http://example.test/")
    with pytest.raises(relayr.ObjectDisposedError):
        await client.send(request)
    assert not request.is_sent


@pytest.mark.anyio
async def test_request_content_is_closed_after_success():
    content = relayr.StreamContent(TrackedStream(b"payload"))

    async with relayr.AsyncClient(RecordingTransport()) as client:
        await client.post("http://example.test/", content)

    assert content.is_closed


@pytest.mark.anyio
async def test_request_content_is_closed_after_failure():
    def fail(request):
        raise relayr.ConnectError("connection refused")

    content = relayr.StreamContent(TrackedStream(b"payload"))

    async with relayr.AsyncClient(relayr.MockTransport(fail)) as client:
        with pytest.raises(relayr.ConnectError):
            await client.post("http://example.test/", content)

    assert content.is_closed


@pytest.mark.anyio
async def test_transport_error_is_not_reclassified_without_cancellation():
    def fail(request):
        raise relayr.ReadError("connection reset")

    async with relayr.AsyncClient(relayr.MockTransport(fail)) as client:
        with pytest.raises(relayr.ReadError, match="connection reset"):
            await client.get("http://example.test/")


@pytest.mark.anyio
async def test_no_response():
    async with relayr.AsyncClient(NoResponseTransport()) as client:
        with pytest.raises(relayr.NoResponseError) as exc_info:
            await client.get("http://example.test/")

    assert exc_info.value.request.url == "http://example.test/"


@pytest.mark.anyio
async def test_no_response_is_not_reclassified_when_cancelled():
    source = relayr.CancellationSource()

    async with relayr.AsyncClient(NoResponseTransport(cancel_first=source)) as client:
        with pytest.raises(relayr.NoResponseError):
            await client.get("http://example.test/", token=source.token)


@pytest.mark.anyio
async def test_content_read_buffers_response():
    stream = TrackedStream(b"Hello, ", b"world!")
    transport = RecordingTransport(relayr.Response(200, content=relayr.StreamContent(stream)))

    async with relayr.AsyncClient(transport) as client:
        response = await client.get("http://example.test/")

    assert response.content.is_buffered
    assert await response.aread() == b"Hello, world!"
    assert await response.content.aread_text() == "Hello, world!"


@pytest.mark.anyio
async def test_headers_read_leaves_response_unread():
    stream = TrackedStream(b"Hello, world!")
    transport = RecordingTransport(relayr.Response(200, content=relayr.StreamContent(stream)))

    async with relayr.AsyncClient(transport) as client:
        response = await client.get(
            "http://example.test/", completion=relayr.CompletionOption.HEADERS_READ
        )
        assert not response.content.is_buffered
        assert [chunk async for chunk in response.content] == [b"Hello, world!"]
        await response.aclose()

    assert stream.closed == 1


@pytest.mark.anyio
async def test_content_too_large_closes_response():
    stream = TrackedStream(b"x" * 10, b"x" * 10)
    response = relayr.Response(200, content=relayr.StreamContent(stream))
    transport = RecordingTransport(response)

    async with relayr.AsyncClient(transport, max_response_buffer_size=15) as client:
        with pytest.raises(relayr.ContentTooLarge):
            await client.get("http://example.test/")

    assert response.is_closed
    assert stream.closed == 1


@pytest.mark.anyio
async def test_content_at_buffer_limit():
    stream = TrackedStream(b"x" * 10, b"x" * 5)
    transport = RecordingTransport(relayr.Response(200, content=relayr.StreamContent(stream)))

    async with relayr.AsyncClient(transport, max_response_buffer_size=15) as client:
        response = await client.get("http://example.test/")

    assert len(await response.aread()) == 15


@pytest.mark.anyio
async def test_headers_read_ignores_buffer_limit():
    stream = TrackedStream(b"x" * 100)
    transport = RecordingTransport(relayr.Response(200, content=relayr.StreamContent(stream)))

    async with relayr.AsyncClient(transport, max_response_buffer_size=10) as client:
        async with client.stream("GET", "http://example.test/") as response:
            assert len(b"".join([chunk async for chunk in response.content])) == 100


@pytest.mark.anyio
async def test_caller_cancellation():
    source = relayr.CancellationSource()

    async def slow(request):
        source.cancel()
        await anyio.sleep(10)
        return relayr.Response(200)  # pragma: no cover

    async with relayr.AsyncClient(relayr.MockTransport(slow)) as client:
        with anyio.fail_after(5):
            with pytest.raises(relayr.OperationCancelled) as exc_info:
                await client.get("http://example.test/", token=source.token)

    assert exc_info.value.token == source.token
    assert isinstance(exc_info.value.__cause__, relayr.TransportError)


@pytest.mark.anyio
async def test_already_cancelled_token():
    calls = []

    def handler(request):
        calls.append(request)  # pragma: no cover
        return relayr.Response(200)  # pragma: no cover

    token = relayr.CancellationToken.cancelled()
    async with relayr.AsyncClient(relayr.MockTransport(handler)) as client:
        with pytest.raises(relayr.OperationCancelled) as exc_info:
            await client.get("http://example.test/", token=token)

    assert exc_info.value.token == token
    assert calls == []


@pytest.mark.anyio
async def test_unrelated_transport_error_during_cancellation_is_reclassified():
    source = relayr.CancellationSource()

    def handler(request):
        source.cancel()
        raise relayr.RemoteProtocolError("server hung up")

    async with relayr.AsyncClient(relayr.MockTransport(handler)) as client:
        with pytest.raises(relayr.OperationCancelled) as exc_info:
            await client.get("http://example.test/", token=source.token)

    assert isinstance(exc_info.value.__cause__, relayr.RemoteProtocolError)


@pytest.mark.anyio
async def test_non_transport_error_during_cancellation_is_not_reclassified():
    source = relayr.CancellationSource()

    def handler(request):
        source.cancel()
        raise KeyError("bug in handler")

    async with relayr.AsyncClient(relayr.MockTransport(handler)) as client:
        with pytest.raises(KeyError):
            await client.get("http://example.test/", token=source.token)


@pytest.mark.anyio
async def test_cancellation_while_buffering():
    source = relayr.CancellationSource()

    async def slow_body():
        yield b"partial"
        source.cancel()
        await anyio.sleep(10)
        yield b"never"  # pragma: no cover

    def handler(request):
        return relayr.Response(200, content=relayr.StreamContent(slow_body()))

    async with relayr.AsyncClient(relayr.MockTransport(handler)) as client:
        with anyio.fail_after(5):
            with pytest.raises(relayr.OperationCancelled):
                await client.get("http://example.test/", token=source.token)


@pytest.mark.anyio
async def test_derived_token_is_released_after_send():
    transport = RecordingTransport()
    source = relayr.CancellationSource()

    async with relayr.AsyncClient(transport) as client:
        await client.get("http://example.test/", token=source.token)

    derived = transport.tokens[0]
    assert derived != source.token
    assert derived.can_be_cancelled

    # Cancelling the caller afterwards no longer reaches the finished request.
    source.cancel()
    assert not derived.is_cancellation_requested


@pytest.mark.anyio
async def test_concurrent_requests_are_independent():
    cancel_first = relayr.CancellationSource()

    async def handler(request):
        if request.url.path == "/first":
            cancel_first.cancel()
        await anyio.sleep(0.05)
        return relayr.Response(200, text=request.url.path)

    results = {}

    async with relayr.AsyncClient(relayr.MockTransport(handler)) as client:

        async def fetch(path, token):
            try:
                response = await client.get(f"http://example.test{path}", token=token)
                results[path] = await response.content.aread_text()
            except relayr.OperationCancelled:
                results[path] = "cancelled"

        async with anyio.create_task_group() as tg:
            tg.start_soon(fetch, "/first", cancel_first.token)
            tg.start_soon(fetch, "/second", None)

    assert results == {"/first": "cancelled", "/second": "/second"}


@pytest.mark.anyio
async def test_dispatch_family_methods():
    transport = RecordingTransport()

    async with relayr.AsyncClient(transport, base_url="http://example.test/") as client:
        await client.get("a")
        await client.post("b", b"post")
        await client.put("c", "put")
        await client.delete("d")
        await client.request("PATCH", "e", content=b"patch")
        await client.send(client.build_request("HEAD", "f"))

    sent = [(request.method, request.url.path) for request in transport.requests]
    assert sent == [
        ("GET", "/a"),
        ("POST", "/b"),
        ("PUT", "/c"),
        ("DELETE", "/d"),
        ("PATCH", "/e"),
        ("HEAD", "/f"),
    ]


@pytest.mark.anyio
async def test_stream_closes_response_on_exit():
    stream = TrackedStream(b"data")
    transport = RecordingTransport(relayr.Response(200, content=relayr.StreamContent(stream)))

    async with relayr.AsyncClient(transport) as client:
        async with client.stream("GET", "http://example.test/") as response:
            assert not response.is_closed

    assert response.is_closed
    assert stream.closed == 1


@pytest.mark.anyio
async def test_send_logs_completion(caplog):
    caplog.set_level("DEBUG", logger="relayr")

    async with relayr.AsyncClient(RecordingTransport()) as client:
        await client.get("http://example.test/")

    assert 'HTTP Request: GET http://example.test/ "HTTP/1.1 200 OK"' in caplog.text


@pytest.mark.anyio
async def test_send_logs_cancellation(caplog):
    caplog.set_level("DEBUG", logger="relayr")

    def handler(request):
        raise relayr.ReadError("reset")  # pragma: no cover

    async with relayr.AsyncClient(relayr.MockTransport(handler)) as client:
        with pytest.raises(relayr.OperationCancelled):
            await client.get(
                "http://example.test/", token=relayr.CancellationToken.cancelled()
            )

    assert "was cancelled" in caplog.text


class StallingStream:
    """
    Yields one chunk and then never finishes.
    """

    def __init__(self) -> None:
        self.closed = 0

    async def __aiter__(self) -> typing.AsyncIterator[bytes]:
        yield b"partial"
        await anyio.sleep(10)

    async def aclose(self) -> None:
        self.closed += 1


@pytest.mark.anyio
async def test_caller_task_cancelled_while_buffering_closes_response():
    stream = StallingStream()
    responses: typing.List[relayr.Response] = []

    def handler(request):
        response = relayr.Response(200, content=relayr.StreamContent(stream))
        responses.append(response)
        return response

    async with relayr.AsyncClient(relayr.MockTransport(handler)) as client:
        with anyio.move_on_after(0.1) as scope:
            await client.get("http://example.test/")

    assert scope.cancelled_caught
    assert responses[0].is_closed
    assert stream.closed == 1
