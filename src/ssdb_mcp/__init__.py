"""Client for the SSDB length-prefixed block protocol, with an MCP tool server."""

from .client import SSDB
from .exceptions import (
    AuthenticationError,
    ConnectionLostError,
    ProtocolError,
    SSDBConnectionError,
    SSDBError,
    SSDBTimeoutError,
)
from .protocol.parser import Response

__version__ = "0.1.0"
