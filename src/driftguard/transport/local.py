"""Filesystem transport for stores reachable through mounted host shares."""

import os
import shutil
import uuid
from pathlib import Path

from driftguard.transport.base import HostTransport
from driftguard.utils.errors import (
    ConfigurationError,
    ErrorContext,
    NotFoundError,
    TransportError,
    WriteError,
)
from driftguard.utils.logging import get_logger

logger = get_logger(__name__)


class LocalTransport(HostTransport):
    """Resolves each host's store from a path template such as ``/mnt/{host}/app/settings.json``.

    The first path component containing ``{host}`` is treated as the host's
    root; if it is missing the host is considered unreachable.
    """

    def __init__(self, path_template: str):
        """
        Initialize LocalTransport.

        Args:
            path_template: Store path containing a {host} placeholder
        """
        if "{host}" not in path_template:
            raise ConfigurationError("Store path template must contain the {host} placeholder")
        self.path_template = path_template

    def store_path(self, host: str) -> Path:
        """Resolve the store path for a host."""
        return Path(self.path_template.format(host=host)).expanduser()

    def host_root(self, host: str) -> Path:
        """Resolve the host-specific root directory."""
        parts = Path(self.path_template).expanduser().parts
        for index, part in enumerate(parts):
            if "{host}" in part:
                return Path(*[p.format(host=host) for p in parts[: index + 1]])
        return self.store_path(host).parent

    def location(self, host: str) -> str:
        return str(self.store_path(host))

    def _check_reachable(self, host: str) -> None:
        root = self.host_root(host)
        if not root.exists():
            raise TransportError(
                f"Host '{host}' is unreachable: {root} does not exist",
                context=ErrorContext(host=host, store_path=self.location(host)),
                suggestions=[f"Check that the share for {host} is mounted"],
            )

    def read_store(self, host: str) -> bytes:
        self._check_reachable(host)
        path = self.store_path(host)
        context = ErrorContext(host=host, store_path=str(path), operation="read")
        try:
            return path.read_bytes()
        except FileNotFoundError as e:
            raise NotFoundError(f"Store not found: {path}", context=context, cause=e)
        except PermissionError as e:
            raise TransportError(f"Access denied reading {path}", context=context, cause=e)
        except OSError as e:
            raise TransportError(f"Failed to read {path}: {e}", context=context, cause=e)

    def write_store(self, host: str, data: bytes) -> None:
        self._check_reachable(host)
        path = self.store_path(host)
        temp_path = path.with_name(f".{path.name}.{uuid.uuid4().hex}.tmp")
        try:
            with open(temp_path, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            if path.exists():
                shutil.copymode(path, temp_path)

            # Atomic rename
            os.replace(temp_path, path)
        except OSError as e:
            if temp_path.exists():
                temp_path.unlink()
            raise WriteError(
                f"Failed to write store {path}: {e}",
                context=ErrorContext(host=host, store_path=str(path), operation="write"),
                cause=e,
            )
        logger.debug(f"Wrote {len(data)} bytes to {path}", extra={"host": host})

    def write_sibling(self, host: str, name: str, data: bytes) -> str:
        self._check_reachable(host)
        path = self.store_path(host).with_name(name)
        try:
            with open(path, "xb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
        except OSError as e:
            raise WriteError(
                f"Failed to create {path}: {e}",
                context=ErrorContext(host=host, store_path=str(path), operation="backup"),
                cause=e,
            )
        return str(path)

    def read_sibling(self, host: str, name: str) -> bytes:
        path = self.store_path(host).with_name(name)
        try:
            return path.read_bytes()
        except OSError as e:
            raise TransportError(
                f"Failed to read {path}: {e}",
                context=ErrorContext(host=host, store_path=str(path), operation="read"),
                cause=e,
            )
