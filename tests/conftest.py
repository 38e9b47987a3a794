"""Shared fixtures: a scripted in-memory transport."""

from __future__ import annotations

import pytest

from ssdb_mcp.transport.base import Transport


class FakeTransport(Transport):
    """Replays queued chunks on read and records everything written.

    A ``None`` chunk simulates a read timeout; an empty queue means EOF.
    """

    def __init__(self, *chunks: bytes | None) -> None:
        self.incoming: list[bytes | None] = list(chunks)
        self.written = bytearray()
        self.events: list[str] = []
        self.close_calls = 0
        self.timeout_ms: int | None = None
        self.write_limit: int | None = None
        self.fail_writes = False

    def feed(self, *chunks: bytes | None) -> None:
        self.incoming.extend(chunks)

    def write(self, data: bytes) -> int:
        if self.fail_writes:
            raise BrokenPipeError("broken pipe")
        data = bytes(data)
        if self.write_limit is not None:
            data = data[: self.write_limit]
        self.written += data
        self.events.append("write")
        return len(data)

    def read(self, max_bytes: int) -> bytes | None:
        self.events.append("read")
        if not self.incoming:
            return b""
        chunk = self.incoming.pop(0)
        if chunk is not None and len(chunk) > max_bytes:
            self.incoming.insert(0, chunk[max_bytes:])
            chunk = chunk[:max_bytes]
        return chunk

    def close(self) -> None:
        self.close_calls += 1

    def set_timeout(self, timeout_ms: int) -> None:
        self.timeout_ms = timeout_ms


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()
