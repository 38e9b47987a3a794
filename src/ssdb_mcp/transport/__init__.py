"""Transport layer: byte-stream transports and the connection that drives them."""

from .base import Transport
from .connection import Connection
from .socket_transport import SocketTransport
