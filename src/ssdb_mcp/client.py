"""High-level SSDB client.

Any server command can be called by name, either through :meth:`SSDB.request`
or as a method::

    db = SSDB("127.0.0.1", 8888)
    db.set("foo", "bar")          # Response(command='set', code='ok', data=1)
    db.request("hgetall", "h")    # Response(..., data={'field': 'value'})

Batching sends every queued request before reading any reply::

    results = db.batch().set("a", 1).incr("a").get("a").flush()
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from .config import Settings
from .exceptions import AuthenticationError, ProtocolError
from .protocol.commands import canonical_command
from .protocol.framing import TEXT_ENCODING
from .protocol.parser import ERROR, NOAUTH, Response, classify_response, easy_value
from .transport.base import Transport
from .transport.connection import Connection
from .transport.socket_transport import DEFAULT_HOST, DEFAULT_PORT, DEFAULT_TIMEOUT_MS, SocketTransport

logger = logging.getLogger(__name__)


def _pairs(mapping: Mapping[Any, Any]) -> list[Any]:
    args: list[Any] = []
    for key, value in mapping.items():
        args.append(key)
        args.append(value)
    return args


class SSDB:
    """Synchronous client over a single connection.

    Args:
        host: Server host.
        port: Server port.
        timeout_ms: Read deadline in milliseconds; ``0`` blocks forever.
        easy: Start in easy mode (see :meth:`easy`).
        encoding: Text encoding of returned values, or ``None`` for bytes.
        transport: An already open transport to use instead of a new socket.

    Raises:
        SSDBConnectionError: If the server cannot be reached.
    """

    def __init__(
        self,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        *,
        easy: bool = False,
        encoding: str | None = TEXT_ENCODING,
        transport: Transport | None = None,
    ) -> None:
        if transport is None:
            transport = SocketTransport(host, port, timeout_ms)
            transport.open()
        self._connection = Connection(transport)
        self._encoding = encoding
        self._easy = easy
        self._batch_mode = False
        self._batch_queue: list[tuple[str, list[Any]]] = []
        self._pending_password: str | None = None
        self.last_response: Response | None = None

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> SSDB:
        """Build a client from :class:`~ssdb_mcp.config.Settings`."""
        client = cls(
            settings.host,
            settings.port,
            settings.timeout_ms,
            easy=settings.easy,
            **kwargs,
        )
        if settings.password:
            client.auth(settings.password)
        return client

    def __enter__(self) -> SSDB:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def __getattr__(self, name: str):
        if name.startswith("_"):
            raise AttributeError(name)

        def command(*params: Any):
            return self._call(name, list(params))

        command.__name__ = name
        return command

    # ─── LIFECYCLE ───────────────────────────────────────────────────────

    @property
    def connection(self) -> Connection:
        return self._connection

    @property
    def closed(self) -> bool:
        return self._connection.closed

    def close(self) -> None:
        self._connection.close()

    def set_timeout(self, timeout_ms: int) -> None:
        self._connection.set_timeout(timeout_ms)

    def easy(self) -> None:
        """Switch to easy mode for the rest of this client's life.

        Calls then return plain values: ``None`` for ``not_found``, ``False``
        for other failures, and ``data`` otherwise. The full response is kept
        in :attr:`last_response`.
        """
        self._easy = True

    @property
    def is_easy(self) -> bool:
        return self._easy

    # ─── REQUESTS ────────────────────────────────────────────────────────

    def request(self, command: str, *params: Any):
        """Invoke any command by name."""
        return self._call(command, list(params))

    def auth(self, password: str | None) -> None:
        """Register a password to send before the next command.

        Nothing is sent now. The next call issues ``auth`` first and raises
        :class:`AuthenticationError` if it does not succeed.
        """
        self._pending_password = password

    def _call(self, command: str, params: list[Any]):
        command = canonical_command(command)
        if self._pending_password is not None and command != "auth":
            password, self._pending_password = self._pending_password, None
            self._authenticate(password)

        if self._batch_mode:
            self._batch_queue.append((command, params))
            return self

        try:
            self._connection.discard_pending()
            self._connection.send_request(command, params)
            response = self._receive(command, params)
        except ProtocolError as e:
            if not self._easy:
                raise
            response = Response(command, ERROR, message=str(e))

        if response.code == NOAUTH:
            self.last_response = response
            raise AuthenticationError(response.message or "Authentication required")
        return self._shape(response)

    def _authenticate(self, password: str) -> None:
        try:
            self._connection.discard_pending()
            self._connection.send_request("auth", [password])
            response = self._receive("auth", [password])
        except ProtocolError as e:
            if not self._easy:
                raise
            response = Response("auth", ERROR, message=str(e))
        self.last_response = response
        if not response.ok or response.data is not True:
            logger.warning("Deferred auth failed: %s %s", response.code, response.message)
            raise AuthenticationError("Authentication failed")

    def _receive(self, command: str, params: list[Any]) -> Response:
        blocks = self._connection.recv()
        return classify_response(command, blocks, params, encoding=self._encoding)

    def _shape(self, response: Response):
        self.last_response = response
        if self._easy:
            return easy_value(response)
        return response

    # ─── BATCH ───────────────────────────────────────────────────────────

    def batch(self) -> SSDB:
        """Start queueing calls; each queued call returns this client."""
        self._batch_mode = True
        self._batch_queue = []
        return self

    multi = batch

    def discard(self) -> None:
        """Leave batch mode and drop every queued call unsent."""
        self._batch_mode = False
        self._batch_queue = []

    def flush(self) -> list[Any]:
        """Send every queued request, then read one reply per request.

        Replies come back in submission order. Failed items stay in the
        list as error responses (or ``False``/``None`` in easy mode). The
        client is back in immediate mode afterwards, even if a transport
        error aborts the reads. Replies still owed by an earlier timed-out
        call are read and dropped first.

        Raises:
            ConnectionLostError: The connection dropped mid-batch.
            SSDBTimeoutError: A reply did not arrive in time.
        """
        queue = self._batch_queue
        self.discard()
        if not queue:
            return []

        self._connection.discard_pending()
        for command, params in queue:
            self._connection.send_request(command, params)

        results = []
        for command, params in queue:
            try:
                response = self._receive(command, params)
            except ProtocolError as e:
                if not self._easy:
                    raise
                response = Response(command, ERROR, message=str(e))
            results.append(self._shape(response))
        return results

    exec = flush

    # ─── NAMED COMMANDS ──────────────────────────────────────────────────

    def incr(self, key: str, val: int = 1):
        return self._call("incr", [key, val])

    def decr(self, key: str, val: int = 1):
        return self._call("decr", [key, val])

    def hincr(self, name: str, key: str, val: int = 1):
        return self._call("hincr", [name, key, val])

    def hdecr(self, name: str, key: str, val: int = 1):
        return self._call("hdecr", [name, key, val])

    def zincr(self, name: str, key: str, score: int = 1):
        return self._call("zincr", [name, key, score])

    def zdecr(self, name: str, key: str, score: int = 1):
        return self._call("zdecr", [name, key, score])

    def zadd(self, key: str, score: int, member: str):
        """Add ``member`` with ``score``; sent as ``zset key member score``."""
        return self._call("zset", [key, member, score])

    def zrevrank(self, name: str, key: str):
        return self._call("zrrank", [name, key])

    def zrevrange(self, name: str, offset: int, limit: int):
        return self._call("zrrange", [name, offset, limit])

    def multi_set(self, kvs: Mapping[Any, Any]):
        return self._call("multi_set", _pairs(kvs))

    def multi_hset(self, name: str, kvs: Mapping[Any, Any]):
        return self._call("multi_hset", [name, *_pairs(kvs)])

    def multi_zset(self, name: str, kvs: Mapping[Any, Any]):
        return self._call("multi_zset", [name, *_pairs(kvs)])
