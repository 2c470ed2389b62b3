from .base import AsyncBaseTransport
from .default import AsyncHTTPTransport
from .mock import MockTransport

__all__ = ["AsyncBaseTransport", "AsyncHTTPTransport", "MockTransport"]
