"""Abstract host transport used by the loader and the applier."""

from abc import ABC, abstractmethod


class HostTransport(ABC):
    """Reads and writes one host's configuration store.

    Implementations raise ``NotFoundError`` when the store is missing,
    ``TransportError`` when the host cannot be reached or access is refused,
    and ``WriteError`` when a write fails.
    """

    @abstractmethod
    def location(self, host: str) -> str:
        """Return a display location (path or URI) for the host's store."""

    @abstractmethod
    def read_store(self, host: str) -> bytes:
        """Read the store verbatim."""

    @abstractmethod
    def write_store(self, host: str, data: bytes) -> None:
        """Replace the store atomically; readers see either old or new content."""

    @abstractmethod
    def write_sibling(self, host: str, name: str, data: bytes) -> str:
        """Durably create a new file next to the store and return its location.

        Must fail rather than overwrite an existing file.
        """

    @abstractmethod
    def read_sibling(self, host: str, name: str) -> bytes:
        """Read a file next to the store."""
