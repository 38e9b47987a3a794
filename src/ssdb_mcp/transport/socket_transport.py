"""TCP transport to an SSDB server."""

from __future__ import annotations

import logging
import socket

from ..exceptions import SSDBConnectionError
from .base import Transport

logger = logging.getLogger(__name__)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8888
DEFAULT_TIMEOUT_MS = 2000
READ_CHUNK_SIZE = 1024 * 1024


def split_timeout(timeout_ms: int) -> tuple[int, int]:
    """Split a millisecond timeout into whole seconds and microseconds."""
    seconds = int(timeout_ms // 1000)
    microseconds = int((timeout_ms - seconds * 1000) * 1000)
    return seconds, microseconds


def _socket_timeout(timeout_ms: int) -> float | None:
    if timeout_ms <= 0:
        return None
    seconds, microseconds = split_timeout(timeout_ms)
    return seconds + microseconds / 1_000_000


class SocketTransport(Transport):
    """Blocking TCP socket with a per-read deadline.

    Usage::

        transport = SocketTransport("127.0.0.1", 8888, timeout_ms=2000)
        transport.open()
        transport.write(request_bytes)
        chunk = transport.read(4096)
        transport.close()
    """

    def __init__(
        self,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ) -> None:
        self._host = host
        self._port = port
        self._timeout_ms = timeout_ms
        self._sock: socket.socket | None = None

    @property
    def connected(self) -> bool:
        return self._sock is not None

    def open(self) -> None:
        """Connect to the server.

        Raises:
            SSDBConnectionError: If the connection cannot be established.
        """
        try:
            sock = socket.create_connection(
                (self._host, self._port), timeout=_socket_timeout(self._timeout_ms)
            )
        except OSError as e:
            raise SSDBConnectionError(
                f"Could not connect to {self._host}:{self._port}: {e}"
            ) from e
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        self._sock = sock
        self.set_timeout(self._timeout_ms)
        logger.info("Connected to %s:%d", self._host, self._port)

    def set_timeout(self, timeout_ms: int) -> None:
        self._timeout_ms = timeout_ms
        if self._sock is not None:
            self._sock.settimeout(_socket_timeout(timeout_ms))

    def write(self, data: bytes) -> int:
        if self._sock is None:
            raise ConnectionError("Socket is closed")
        return self._sock.send(data)

    def read(self, max_bytes: int = READ_CHUNK_SIZE) -> bytes | None:
        if self._sock is None:
            return b""
        try:
            return self._sock.recv(max_bytes)
        except socket.timeout:
            return None
        except OSError as e:
            logger.debug("Read error: %s", e)
            return b""

    def close(self) -> None:
        if self._sock is None:
            return
        try:
            self._sock.close()
        except OSError as e:
            logger.warning("Error closing socket: %s", e)
        finally:
            self._sock = None
            logger.info("Disconnected from %s:%d", self._host, self._port)
