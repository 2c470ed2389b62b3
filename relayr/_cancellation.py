"""
Cooperative cancellation.

A `CancellationSource` owns the cancelled state and hands out a read-only
`CancellationToken`. Sources can be linked to any number of parent tokens,
so that cancelling any parent cancels the source:

    parent = CancellationSource()
    child = CancellationSource.linked(parent.token, caller_token)
    parent.cancel()
    assert child.token.is_cancellation_requested

Callbacks run synchronously in the thread that calls `cancel()`. When
cancelling from a worker thread, hop onto the event loop first, for example
with `anyio.from_thread.run_sync(source.cancel)`.
"""

from __future__ import annotations

import asyncio
import contextlib
import itertools
import threading
import typing

import anyio

from ._exceptions import OperationCancelled

__all__ = [
    "CancellationRegistration",
    "CancellationSource",
    "CancellationToken",
    "PendingRequests",
    "cancel_scope_for",
    "compose_cancellation",
]

Callback = typing.Callable[[], typing.Any]


class CancellationRegistration:
    """
    Handle for a callback registered on a token. `dispose()` unregisters it.
    """

    __slots__ = ("_source", "_key")

    def __init__(self, source: CancellationSource | None = None, key: int | None = None) -> None:
        self._source = source
        self._key = key

    def dispose(self) -> None:
        source, self._source = self._source, None
        if source is not None and self._key is not None:
            source._unregister(self._key)

    def __enter__(self) -> CancellationRegistration:
        return self

    def __exit__(self, *args: typing.Any) -> None:
        self.dispose()


class CancellationToken:
    """
    Read-only view of a `CancellationSource`.

    `CancellationToken.none()` returns a token that can never be cancelled.
    """

    __slots__ = ("_source",)

    def __init__(self, source: CancellationSource | None = None) -> None:
        self._source = source

    @classmethod
    def none(cls) -> CancellationToken:
        return cls()

    @classmethod
    def cancelled(cls) -> CancellationToken:
        source = CancellationSource()
        source.cancel()
        return source.token

    @property
    def can_be_cancelled(self) -> bool:
        return self._source is not None

    @property
    def is_cancellation_requested(self) -> bool:
        return self._source is not None and self._source.is_cancellation_requested

    def register(self, callback: Callback) -> CancellationRegistration:
        """
        Run `callback` when the token is cancelled.

        If it already is, the callback runs immediately, before this returns.
        """
        if self._source is None:
            return CancellationRegistration()
        return self._source._register(callback)

    def raise_if_cancellation_requested(self) -> None:
        if self.is_cancellation_requested:
            raise OperationCancelled(token=self)

    async def wait(self) -> None:
        """
        Block until the token is cancelled.
        """
        if self._source is None:
            await anyio.sleep_forever()
        event = anyio.Event()
        with self.register(event.set):
            await event.wait()

    def __eq__(self, other: object) -> bool:
        return isinstance(other, CancellationToken) and self._source is other._source

    def __hash__(self) -> int:
        return hash(self._source)

    def __repr__(self) -> str:
        if self._source is None:
            return f"<{self.__class__.__name__} [none]>"
        state = "cancelled" if self.is_cancellation_requested else "active"
        return f"<{self.__class__.__name__} [{state}]>"


class CancellationSource:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._callbacks: dict[int, Callback] = {}
        self._keys = itertools.count()
        self._links: list[CancellationRegistration] = []
        self._timer: asyncio.TimerHandle | None = None
        self._cancelled = False
        self._disposed = False
        self._token = CancellationToken(self)

    @classmethod
    def linked(cls, *tokens: CancellationToken) -> CancellationSource:
        """
        Create a source that is cancelled when any of `tokens` is cancelled.

        Disposing the returned source unlinks it from its parents.
        """
        source = cls()
        for token in tokens:
            if token.can_be_cancelled:
                source._links.append(token.register(source.cancel))
        return source

    @property
    def token(self) -> CancellationToken:
        return self._token

    @property
    def is_cancellation_requested(self) -> bool:
        return self._cancelled

    @property
    def is_disposed(self) -> bool:
        return self._disposed

    def cancel(self) -> None:
        """
        Cancel the source and run the registered callbacks, newest first.

        Does nothing once the source is cancelled or disposed. Every callback
        runs even if an earlier one raises; the first error is then re-raised.
        """
        with self._lock:
            if self._cancelled or self._disposed:
                return
            self._cancelled = True
            callbacks = list(self._callbacks.values())
            self._callbacks.clear()
            timer, self._timer = self._timer, None

        if timer is not None:
            timer.cancel()

        errors: list[Exception] = []
        for callback in reversed(callbacks):
            try:
                callback()
            except Exception as exc:
                errors.append(exc)
        if errors:
            raise errors[0]

    def cancel_after(self, delay: float) -> None:
        """
        Schedule `cancel()` on the running event loop after `delay` seconds.

        Replaces any previously scheduled cancellation. The timer is
        released when the source is cancelled or disposed.
        """
        loop = asyncio.get_running_loop()
        with self._lock:
            if self._cancelled or self._disposed:
                return
            if self._timer is not None:
                self._timer.cancel()
            self._timer = loop.call_later(delay, self.cancel)

    def dispose(self) -> None:
        """
        Release parent links and any pending timer. Idempotent.

        Disposing does not cancel the source.
        """
        with self._lock:
            if self._disposed:
                return
            self._disposed = True
            self._callbacks.clear()
            timer, self._timer = self._timer, None
            links, self._links = self._links, []

        if timer is not None:
            timer.cancel()
        for link in links:
            link.dispose()

    def _register(self, callback: Callback) -> CancellationRegistration:
        with self._lock:
            if not self._cancelled and not self._disposed:
                key = next(self._keys)
                self._callbacks[key] = callback
                return CancellationRegistration(self, key)
            run_now = self._cancelled

        if run_now:
            callback()
        return CancellationRegistration()

    def _unregister(self, key: int) -> None:
        with self._lock:
            self._callbacks.pop(key, None)

    def __enter__(self) -> CancellationSource:
        return self

    def __exit__(self, *args: typing.Any) -> None:
        self.dispose()

    def __repr__(self) -> str:
        if self._disposed:
            state = "disposed"
        elif self._cancelled:
            state = "cancelled"
        else:
            state = "active"
        return f"<{self.__class__.__name__} [{state}]>"


class PendingRequests:
    """
    The client-wide source that every in-flight request is linked to.

    Linking and swapping happen under one lock, so a request is linked
    either to the source being cancelled or to its replacement, never to a
    source that has already been disposed.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._source = CancellationSource()

    @property
    def token(self) -> CancellationToken:
        with self._lock:
            return self._source.token

    def link(self, *tokens: CancellationToken) -> CancellationSource:
        with self._lock:
            return CancellationSource.linked(self._source.token, *tokens)

    def cancel_all(self) -> None:
        """
        Cancel every linked request and start over with a fresh source.
        """
        with self._lock:
            previous, self._source = self._source, CancellationSource()
        try:
            previous.cancel()
        finally:
            previous.dispose()

    def close(self) -> None:
        """
        Cancel every linked request without installing a replacement.
        """
        with self._lock:
            source = self._source
        try:
            source.cancel()
        finally:
            source.dispose()


def compose_cancellation(
    token: CancellationToken,
    pending: PendingRequests,
    timeout: float | None,
) -> CancellationSource:
    """
    Derive the cancellation source for a single request.

    The result is cancelled by the caller's `token`, by the client-wide
    `pending` source, or once `timeout` seconds have elapsed. `None` means
    no timeout. The caller must dispose the result once the send completes.
    """
    source = pending.link(token)
    if timeout is not None:
        source.cancel_after(timeout)
    return source


@contextlib.contextmanager
def cancel_scope_for(token: CancellationToken) -> typing.Iterator[anyio.CancelScope]:
    """
    Cancel the enclosed block when `token` is cancelled.

    Check `scope.cancelled_caught` afterwards to tell whether the block was
    cut short:

        with cancel_scope_for(token) as scope:
            response = await do_request()
        if scope.cancelled_caught:
            raise ReadError("The request was cancelled.")
    """
    with anyio.CancelScope() as scope:
        with token.register(scope.cancel):
            yield scope
