"""Transport interface.

The protocol layer never touches sockets; a :class:`~.connection.Connection`
talks to whatever object follows this contract.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class Transport(ABC):
    """Minimal contract for a blocking byte-stream transport."""

    @abstractmethod
    def write(self, data: bytes) -> int:
        """Write some of ``data`` and return how many bytes were accepted.

        Raises:
            OSError: If the stream is broken.
        """

    @abstractmethod
    def read(self, max_bytes: int) -> bytes | None:
        """Read up to ``max_bytes``.

        Returns:
            The bytes read, ``b""`` at end of stream, or ``None`` if the
            read deadline expired first.
        """

    @abstractmethod
    def close(self) -> None:
        """Release the underlying handle. Must be safe to call twice."""

    def set_timeout(self, timeout_ms: int) -> None:
        """Change the read deadline. Transports without deadlines ignore it."""
