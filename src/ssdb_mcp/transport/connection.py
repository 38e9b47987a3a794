"""Connection: request writes and the read/decode loop over one transport."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from ..exceptions import ConnectionLostError, ProtocolError, SSDBTimeoutError
from ..protocol.framing import ParseState, decode_blocks, encode_request
from .base import Transport
from .socket_transport import READ_CHUNK_SIZE

logger = logging.getLogger(__name__)


class Connection:
    """Owns a transport and the decoder state for its byte stream.

    A connection starts open and closes for good on EOF, on a write
    failure, on undecodable input, or on :meth:`close`. It is not thread
    safe; one caller at a time.
    """

    def __init__(self, transport: Transport, read_size: int = READ_CHUNK_SIZE) -> None:
        self._transport = transport
        self._read_size = read_size
        self._state = ParseState()
        self._closed = False
        self._pending_replies = 0

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def state(self) -> ParseState:
        return self._state

    @property
    def pending_replies(self) -> int:
        """Requests written whose replies have not been read yet."""
        return self._pending_replies

    def set_timeout(self, timeout_ms: int) -> None:
        self._transport.set_timeout(timeout_ms)

    def close(self) -> None:
        """Close the transport. Later calls do nothing."""
        if self._closed:
            return
        self._closed = True
        self._pending_replies = 0
        self._state.reset()
        self._transport.close()

    def send(self, data: bytes) -> int:
        """Write a whole encoded request.

        Returns:
            Number of bytes written.

        Raises:
            ConnectionLostError: If the connection is closed or the write fails.
        """
        if self._closed:
            raise ConnectionLostError()
        logger.debug("> %r", data)
        view = memoryview(data)
        written = 0
        while written < len(data):
            try:
                n = self._transport.write(view[written:])
            except OSError as e:
                self.close()
                raise ConnectionLostError() from e
            if not n:
                self.close()
                raise ConnectionLostError()
            written += n
        self._pending_replies += 1
        return written

    def send_request(self, command: str, params: Iterable[Any] = ()) -> int:
        return self.send(encode_request(command, params))

    def recv(self) -> list[bytes]:
        """Block until the next complete block-group has been decoded.

        Raises:
            ConnectionLostError: The peer closed the stream.
            SSDBTimeoutError: The read deadline expired. The connection and
                any partially decoded reply are kept, so calling ``recv``
                again resumes where this call stopped.
            ProtocolError: The stream is malformed. The connection is closed.
        """
        if self._closed:
            raise ConnectionLostError()
        while True:
            try:
                blocks = decode_blocks(self._state)
            except ProtocolError:
                self.close()
                raise
            if blocks is not None:
                self._pending_replies = max(0, self._pending_replies - 1)
                return blocks

            data = self._transport.read(self._read_size)
            if data is None:
                raise SSDBTimeoutError()
            if not data:
                self.close()
                raise ConnectionLostError()
            logger.debug("< %r", data)
            self._state.feed(data)

    def discard_pending(self) -> int:
        """Read and drop replies still owed for earlier requests.

        Replies left behind by a timed-out call would otherwise be taken for
        the replies of the next request.

        Returns:
            Number of replies discarded.

        Raises:
            SSDBTimeoutError: An owed reply still has not arrived.
        """
        discarded = 0
        while self._pending_replies > 0:
            blocks = self.recv()
            logger.debug("Discarded late reply %r", blocks)
            discarded += 1
        return discarded
