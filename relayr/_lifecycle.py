from __future__ import annotations

import threading

from ._exceptions import InvalidStateError, ObjectDisposedError


class ClientLifecycle:
    """
    Tracks whether a client has started sending and whether it is closed.

    Both flags only ever go from unset to set. Once the first request is
    dispatched, client-wide configuration is frozen.
    """

    def __init__(self, owner: str = "AsyncClient") -> None:
        self._owner = owner
        self._lock = threading.Lock()
        self._started = False
        self._disposed = False

    @property
    def is_started(self) -> bool:
        return self._started

    @property
    def is_disposed(self) -> bool:
        return self._disposed

    def mark_started(self) -> None:
        if not self._started:
            self._started = True

    def mark_disposed(self) -> bool:
        """
        Set the disposed flag. Returns `True` only for the call that set it.
        """
        with self._lock:
            if self._disposed:
                return False
            self._disposed = True
            return True

    def check_not_disposed(self) -> None:
        if self._disposed:
            raise ObjectDisposedError(f"Cannot access a closed {self._owner}.")

    def check_mutable(self) -> None:
        self.check_not_disposed()
        if self._started:
            raise InvalidStateError(
                f"This {self._owner} instance has already started one or more "
                "requests. Properties can only be modified before sending the "
                "first request."
            )
