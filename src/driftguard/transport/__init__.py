"""Host transports for reading and writing configuration stores."""

from .base import HostTransport
from .local import LocalTransport

__all__ = [
    "HostTransport",
    "LocalTransport",
]
