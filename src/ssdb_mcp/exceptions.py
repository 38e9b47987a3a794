"""Error taxonomy for the SSDB client.

Transport failures (:class:`ConnectionLostError`, :class:`SSDBTimeoutError`)
always propagate to the caller. Store-level status codes travel inside a
:class:`~ssdb_mcp.protocol.parser.Response` instead of being raised.
"""

from __future__ import annotations


class SSDBError(Exception):
    """Base class for all client errors."""


class SSDBConnectionError(SSDBError, ConnectionError):
    """The transport could not be opened."""


class ConnectionLostError(SSDBConnectionError):
    """The connection hit EOF or a write failure and is now closed for good."""

    def __init__(self, message: str = "Connection lost") -> None:
        super().__init__(message)


class SSDBTimeoutError(SSDBError, TimeoutError):
    """No data arrived before the read deadline. The connection stays open."""

    def __init__(self, message: str = "Connection timeout") -> None:
        super().__init__(message)


class ProtocolError(SSDBError, ValueError):
    """The server sent bytes that do not follow the block framing."""


class AuthenticationError(SSDBError):
    """The server answered ``noauth`` or a deferred ``auth`` call failed."""
