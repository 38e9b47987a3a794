"""MCP server entry point for an SSDB key-value store.

Exposes tools and resources via the Model Context Protocol using the
official Python MCP SDK with stdio transport.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from mcp.server.fastmcp import FastMCP

from .client import SSDB
from .config import load_settings
from .protocol.parser import Response

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "ssdb",
    instructions="MCP server for the SSDB key-value store",
)

# Global connection state
_client: SSDB | None = None


def _get_client() -> SSDB:
    """Get the active client, raising if not connected."""
    if _client is None or _client.closed:
        raise RuntimeError(
            "Not connected to a server. Use the 'connect' tool first."
        )
    return _client


def _result(response: Response) -> dict[str, Any]:
    return response.to_dict()


# ─── CONNECTION TOOLS ─────────────────────────────────────────────────

@mcp.tool()
def connect(
    host: str | None = None,
    port: int | None = None,
    timeout_ms: int | None = None,
    password: str | None = None,
) -> dict[str, Any]:
    """Open a connection to an SSDB server.

    Missing arguments fall back to the SSDB_* environment settings. A
    password is applied lazily, right before the next command.

    Args:
        host: Server host.
        port: Server port.
        timeout_ms: Read timeout in milliseconds.
        password: Optional auth password.
    """
    global _client
    if _client is not None and not _client.closed:
        return {"connected": True, "message": "Already connected"}

    settings = load_settings()
    host = host or settings.host
    port = port or settings.port
    timeout_ms = timeout_ms if timeout_ms is not None else settings.timeout_ms

    _client = SSDB(host, port, timeout_ms)
    password = password or settings.password
    if password:
        _client.auth(password)

    return {"connected": True, "host": host, "port": port, "timeout_ms": timeout_ms}


@mcp.tool()
def disconnect() -> dict[str, bool]:
    """Close the connection to the server."""
    global _client
    if _client is None:
        return {"disconnected": True}
    _client.close()
    _client = None
    return {"disconnected": True}


# ─── COMMAND TOOLS ────────────────────────────────────────────────────

@mcp.tool()
def request(command: str, args: list[str] | None = None) -> dict[str, Any]:
    """Run any SSDB command by name.

    Args:
        command: Command name, e.g. "hgetall" or "zrange".
        args: Command arguments in wire order.
    """
    client = _get_client()
    return _result(client.request(command, *(args or [])))


@mcp.tool()
def batch(commands: list[list[str]]) -> dict[str, Any]:
    """Pipeline several commands and return their replies in order.

    Args:
        commands: Each entry is [command, arg1, arg2, ...].
    """
    if any(not entry for entry in commands):
        return {"error": "Every batch entry needs a command name"}

    client = _get_client()
    client.batch()
    try:
        for command, *args in commands:
            client.request(command, *args)
    except Exception:
        client.discard()
        raise
    results = client.flush()
    return {"count": len(results), "results": [_result(r) for r in results]}


@mcp.tool()
def get_value(key: str) -> dict[str, Any]:
    """Fetch the value stored at a key.

    Args:
        key: Key name.
    """
    return _result(_get_client().get(key))


@mcp.tool()
def set_value(key: str, value: str, ttl: int | None = None) -> dict[str, Any]:
    """Store a value, optionally expiring after ttl seconds.

    Args:
        key: Key name.
        value: Value to store.
        ttl: Optional time to live in seconds.
    """
    client = _get_client()
    if ttl is not None:
        return _result(client.setx(key, value, ttl))
    return _result(client.set(key, value))


@mcp.tool()
def scan(start: str = "", end: str = "", limit: int = 100) -> dict[str, Any]:
    """List key/value pairs with start < key <= end.

    Args:
        start: Exclusive lower bound ("" for the beginning).
        end: Inclusive upper bound ("" for the end).
        limit: Maximum number of pairs.
    """
    return _result(_get_client().scan(start, end, limit))


# ─── MCP RESOURCES ───────────────────────────────────────────────────

@mcp.resource("ssdb://connection/status")
def resource_connection_status() -> str:
    """Current connection state."""
    connected = _client is not None and not _client.closed
    last = _client.last_response if connected else None
    return json.dumps({
        "connected": connected,
        "last_response": last.to_dict() if last is not None else None,
    })


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    logging.basicConfig(level=load_settings().log_level)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
