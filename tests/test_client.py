"""Tests for the SSDB client: dispatch, batching, easy mode, deferred auth."""

import pytest

from ssdb_mcp.client import SSDB
from ssdb_mcp.config import Settings
from ssdb_mcp.exceptions import (
    AuthenticationError,
    ConnectionLostError,
    ProtocolError,
    SSDBTimeoutError,
)
from ssdb_mcp.protocol.framing import ParseState, decode_blocks, encode_blocks
from ssdb_mcp.protocol.parser import Response


def _reply(*blocks) -> bytes:
    return encode_blocks(blocks)


def _sent(transport) -> list[list[bytes]]:
    """Decode every request the client wrote."""
    state = ParseState()
    state.feed(bytes(transport.written))
    requests = []
    while (group := decode_blocks(state)) is not None:
        requests.append(group)
    return requests


def _client(transport, **kwargs) -> SSDB:
    return SSDB(transport=transport, **kwargs)


# ─── IMMEDIATE MODE ───────────────────────────────────────────────────

def test_set_returns_scalar_int(transport):
    """set writes its three blocks and returns the integer reply."""
    transport.feed(b"2\nok\n1\n1\n\n")
    resp = _client(transport).set("foo", "bar")
    assert resp == Response("set", "ok", data=1)
    assert bytes(transport.written) == b"3\nset\n3\nfoo\n3\nbar\n\n"


def test_ok_without_payload_defaults_to_zero(transport):
    """A bare ok for an integer command reads as 0."""
    transport.feed(b"2\nok\n\n")
    assert _client(transport).set("foo", "bar").data == 0


def test_get_not_found(transport):
    """A not_found reply keeps its status and leaves the message empty."""
    transport.feed(b"9\nnot_found\n\n")
    resp = _client(transport).get("missing")
    assert resp.code == "not_found"
    assert resp.message == ""


def test_request_by_name_is_case_insensitive(transport):
    """Command names sent through request() are lowercased on the wire."""
    transport.feed(_reply("ok", "f", "v"))
    resp = _client(transport).request("HGETALL", "h")
    assert resp.command == "hgetall"
    assert resp.data == {"f": "v"}
    assert _sent(transport) == [[b"hgetall", b"h"]]


def test_unknown_command_uses_default_category(transport):
    """Commands missing from the table keep their payload list."""
    transport.feed(_reply("ok", "a", "b"))
    assert _client(transport).info().data == ["a", "b"]


def test_list_arguments_are_spliced(transport):
    """A list argument becomes one block per element."""
    transport.feed(_reply("ok", "2"))
    _client(transport).multi_del(["a", "b"])
    assert _sent(transport) == [[b"multi_del", b"a", b"b"]]


def test_private_attributes_are_not_commands(transport):
    """Underscore attributes are never dispatched as commands."""
    client = _client(transport)
    with pytest.raises(AttributeError):
        client._no_such_thing


def test_last_response_is_recorded(transport):
    """The most recent reply is exposed as last_response."""
    transport.feed(_reply("ok", "v"))
    client = _client(transport)
    resp = client.get("k")
    assert client.last_response is resp


def test_protocol_error_propagates_in_normal_mode(transport):
    """A malformed reply raises and closes the client."""
    transport.feed(b"oops\n")
    client = _client(transport)
    with pytest.raises(ProtocolError):
        client.get("k")
    assert client.closed


def test_noauth_raises_authentication_error(transport):
    """A noauth reply raises with the server's message."""
    transport.feed(_reply("noauth", "authentication required"))
    with pytest.raises(AuthenticationError, match="authentication required"):
        _client(transport).get("k")


def test_noauth_raises_in_easy_mode(transport):
    """Easy mode does not hide a noauth reply."""
    transport.feed(_reply("noauth", ""))
    with pytest.raises(AuthenticationError):
        _client(transport, easy=True).get("k")


def test_connection_lost_after_eof(transport):
    """EOF closes the client and later calls keep failing."""
    client = _client(transport)
    with pytest.raises(ConnectionLostError):
        client.get("k")
    assert client.closed
    with pytest.raises(ConnectionLostError):
        client.get("k")


# ─── NAMED COMMANDS ───────────────────────────────────────────────────

def test_counters_default_to_one(transport):
    """Counter helpers send a delta of 1 when none is given."""
    transport.feed(_reply("ok", "1"), _reply("ok", "0"), _reply("ok", "5"), _reply("ok", "4"))
    client = _client(transport)
    assert client.incr("n").data == 1
    assert client.decr("n").data == 0
    client.hincr("h", "f")
    client.zincr("z", "m", 3)
    assert _sent(transport) == [
        [b"incr", b"n", b"1"],
        [b"decr", b"n", b"1"],
        [b"hincr", b"h", b"f", b"1"],
        [b"zincr", b"z", b"m", b"3"],
    ]


def test_zadd_reorders_into_wire_order(transport):
    """zadd is sent as zset with the member before the score."""
    transport.feed(_reply("ok", "1"))
    resp = _client(transport).zadd("z", 10, "member")
    assert resp.command == "zset"
    assert _sent(transport) == [[b"zset", b"z", b"member", b"10"]]


def test_reverse_aliases(transport):
    """zrevrank and zrevrange map to zrrank and zrrange."""
    transport.feed(_reply("ok", "2"), _reply("ok", "b", "2", "a", "1"))
    client = _client(transport)
    assert client.zrevrank("z", "m").data == 2
    assert client.zrevrange("z", 0, 10).data == {"b": 2, "a": 1}
    assert _sent(transport) == [[b"zrrank", b"z", b"m"], [b"zrrange", b"z", b"0", b"10"]]


def test_multi_set_flattens_mapping(transport):
    """Mapping helpers flatten into alternating key/value blocks."""
    transport.feed(_reply("ok", "2"), _reply("ok", "1"))
    client = _client(transport)
    client.multi_set({"a": "1", "b": "2"})
    client.multi_hset("h", {"f": "v"})
    assert _sent(transport) == [
        [b"multi_set", b"a", b"1", b"b", b"2"],
        [b"multi_hset", b"h", b"f", b"v"],
    ]


def test_qpop_count_selects_shape(transport):
    """qpop returns a string for one item and a list for several."""
    transport.feed(_reply("ok", "x"), _reply("ok", "x", "y"))
    client = _client(transport)
    assert client.qpop("q").data == "x"
    assert client.qpop("q", 2).data == ["x", "y"]


# ─── BATCH MODE ───────────────────────────────────────────────────────

def test_batch_returns_client_for_chaining(transport):
    """Queued calls return the client and write nothing."""
    client = _client(transport)
    assert client.batch() is client
    assert client.set("a", "1") is client
    assert transport.written == bytearray()


def test_batch_writes_everything_before_reading(transport):
    """A flush writes every request before the first read."""
    transport.feed(_reply("ok", "1") + _reply("ok", "2") + _reply("ok", "2"))
    client = _client(transport)
    results = client.batch().set("a", "1").incr("a").get("a").flush()

    assert [r.command for r in results] == ["set", "incr", "get"]
    assert [r.data for r in results] == [1, 2, "2"]
    first_read = transport.events.index("read")
    assert "write" not in transport.events[first_read:]
    assert transport.events[:first_read] == ["write"] * 3


def test_batch_keeps_order_with_mixed_outcomes(transport):
    """Batch results line up with submission order whatever their status."""
    transport.feed(
        _reply("ok", "v"),
        _reply("not_found"),
        _reply("error", "bad"),
        _reply("ok", "a", "1", "b"),
        _reply("ok", "1"),
    )
    client = _client(transport)
    client.batch()
    client.get("k1")
    client.get("k2")
    client.incr("k3")
    client.hgetall("h")
    client.exists("k4")
    results = client.flush()

    assert len(results) == 5
    assert [r.code for r in results] == ["ok", "not_found", "error", "server_error", "ok"]
    assert results[0].data == "v"
    assert results[4].data is True


def test_flush_resets_to_immediate_mode(transport):
    """After exec the next call is sent immediately."""
    transport.feed(_reply("ok", "1"), _reply("ok", "v"))
    client = _client(transport)
    client.multi().set("a", "1").exec()
    resp = client.get("a")
    assert isinstance(resp, Response)
    assert resp.data == "v"


def test_batch_clears_previous_queue(transport):
    """Starting a batch drops calls queued by an earlier one."""
    transport.feed(_reply("ok", "1"))
    client = _client(transport)
    client.batch().set("a", "1")
    client.batch().set("b", "2")
    results = client.flush()
    assert len(results) == 1
    assert _sent(transport) == [[b"set", b"b", b"2"]]


def test_empty_flush(transport):
    """Flushing an empty batch touches neither side of the transport."""
    client = _client(transport)
    assert client.batch().flush() == []
    assert transport.events == []


def test_discard_drops_queued_calls(transport):
    """discard() leaves batch mode without sending anything."""
    transport.feed(_reply("ok", "v"))
    client = _client(transport)
    client.batch().set("a", "1")
    client.discard()
    assert transport.written == bytearray()
    assert client.get("a").data == "v"
    assert _sent(transport) == [[b"get", b"a"]]


def test_timeout_aborts_batch_and_resets_state(transport):
    """A reply owed by a timed-out batch is dropped before the next call."""
    transport.feed(_reply("ok", "valA"), None)
    client = _client(transport)
    client.batch().get("a").get("b")
    with pytest.raises(SSDBTimeoutError):
        client.flush()
    assert not client.closed
    assert client.connection.pending_replies == 1

    transport.feed(_reply("ok", "valB"), _reply("ok", "valC"))
    resp = client.get("c")
    assert isinstance(resp, Response)
    assert resp.data == "valC"
    assert client.connection.pending_replies == 0


def test_late_reply_after_timeout_is_discarded(transport):
    """A late reply to a timed-out get is not returned for the next get."""
    transport.feed(None)
    client = _client(transport)
    with pytest.raises(SSDBTimeoutError):
        client.get("a")

    transport.feed(_reply("ok", "valA"), _reply("ok", "valB"))
    assert client.get("b").data == "valB"


def test_late_reply_is_discarded_before_a_batch(transport):
    """A flush drops owed replies before reading its own."""
    transport.feed(None)
    client = _client(transport)
    with pytest.raises(SSDBTimeoutError):
        client.get("a")

    transport.feed(_reply("ok", "valA"), _reply("ok", "1"), _reply("ok", "valB"))
    results = client.batch().set("b", "valB").get("b").flush()
    assert [r.data for r in results] == [1, "valB"]


def test_connection_lost_aborts_batch(transport):
    """EOF mid-flush raises and returns the client to immediate mode."""
    transport.feed(_reply("ok", "1"))
    client = _client(transport)
    client.batch().set("a", "1").set("b", "2")
    with pytest.raises(ConnectionLostError):
        client.flush()
    assert client.closed


def test_easy_mode_batch_returns_plain_values(transport):
    """Easy-mode flushes return plain values in order."""
    transport.feed(_reply("ok", "v"), _reply("not_found"), _reply("error", "x"))
    client = _client(transport, easy=True)
    results = client.batch().get("a").get("b").get("c").flush()
    assert results == ["v", None, False]


# ─── EASY MODE ────────────────────────────────────────────────────────

def test_easy_mode_values(transport):
    """Easy mode maps not_found to None and failures to False."""
    transport.feed(
        _reply("ok", "bar"),
        _reply("not_found"),
        _reply("error", "boom"),
        _reply("ok", "0"),
    )
    client = _client(transport)
    client.easy()
    assert client.is_easy
    assert client.get("foo") == "bar"
    assert client.get("missing") is None
    assert client.incr("k") is False
    assert client.last_response.message == "boom"
    assert client.incr("k", 0) == 0


def test_easy_mode_suppresses_protocol_errors(transport):
    """Easy mode turns a malformed reply into False."""
    transport.feed(b"garbage\n")
    client = _client(transport, easy=True)
    assert client.get("k") is False
    assert client.last_response.code == "error"


def test_easy_mode_still_raises_transport_errors(transport):
    """Easy mode still raises on a lost connection."""
    transport.feed(None)
    client = _client(transport, easy=True)
    with pytest.raises(SSDBTimeoutError):
        client.get("k")


# ─── DEFERRED AUTH ────────────────────────────────────────────────────

def test_auth_is_deferred_until_next_command(transport):
    """auth() sends nothing until the next command."""
    transport.feed(_reply("ok", "1"), _reply("ok", "v"))
    client = _client(transport)
    client.auth("secret")
    assert transport.written == bytearray()

    assert client.get("k").data == "v"
    assert _sent(transport) == [[b"auth", b"secret"], [b"get", b"k"]]


def test_auth_is_sent_only_once(transport):
    """The deferred password is sent before one command only."""
    transport.feed(_reply("ok", "1"), _reply("ok", "v"), _reply("ok", "w"))
    client = _client(transport)
    client.auth("secret")
    client.get("a")
    client.get("b")
    assert [req[0] for req in _sent(transport)] == [b"auth", b"get", b"get"]


def test_failed_auth_blocks_the_command(transport):
    """An error reply to auth raises and the command is never sent."""
    transport.feed(_reply("error", "invalid password"))
    client = _client(transport)
    client.auth("wrong")
    with pytest.raises(AuthenticationError):
        client.get("k")
    assert _sent(transport) == [[b"auth", b"wrong"]]


def test_auth_false_result_fails(transport):
    """An ok reply carrying a false result still fails auth."""
    transport.feed(_reply("ok", "0"))
    client = _client(transport, easy=True)
    client.auth("pw")
    with pytest.raises(AuthenticationError):
        client.get("k")


def test_malformed_auth_reply_is_an_auth_failure_in_easy_mode(transport):
    """Easy mode reports a garbled auth reply as an auth failure."""
    transport.feed(b"garbage\n")
    client = _client(transport, easy=True)
    client.auth("pw")
    with pytest.raises(AuthenticationError):
        client.get("k")
    assert client.last_response.code == "error"


def test_malformed_auth_reply_propagates_in_normal_mode(transport):
    """A garbled auth reply raises ProtocolError in normal mode."""
    transport.feed(b"garbage\n")
    client = _client(transport)
    client.auth("pw")
    with pytest.raises(ProtocolError):
        client.get("k")


def test_deferred_auth_runs_before_batch_queueing(transport):
    """Deferred auth is sent when the first batched call is queued."""
    transport.feed(_reply("ok", "1"), _reply("ok", "1"))
    client = _client(transport)
    client.auth("pw")
    client.batch().set("a", "1")
    assert _sent(transport) == [[b"auth", b"pw"]]
    results = client.flush()
    assert [r.code for r in results] == ["ok"]


def test_explicit_auth_command_is_not_deferred(transport):
    """Calling the auth command directly sends it at once."""
    transport.feed(_reply("ok", "1"))
    client = _client(transport)
    assert client.request("auth", "pw").data is True


# ─── LIFECYCLE ────────────────────────────────────────────────────────

def test_context_manager_closes(transport):
    """Leaving the with block closes the connection."""
    with _client(transport) as client:
        pass
    assert client.closed
    assert transport.close_calls == 1


def test_set_timeout(transport):
    """set_timeout reaches the transport in milliseconds."""
    _client(transport).set_timeout(500)
    assert transport.timeout_ms == 500


def test_from_settings_registers_password(transport):
    """from_settings applies easy mode and defers the password."""
    settings = Settings(
        host="db", port=1, timeout_ms=10, password="pw", easy=True, log_level="INFO"
    )
    transport.feed(_reply("ok", "1"), _reply("ok", "v"))
    client = SSDB.from_settings(settings, transport=transport)
    assert client.is_easy
    assert client.get("k") == "v"
    assert _sent(transport)[0] == [b"auth", b"pw"]


def test_raw_bytes_mode(transport):
    """encoding=None returns values as bytes."""
    transport.feed(_reply("ok", b"\xff"))
    assert _client(transport, encoding=None).get("k").data == b"\xff"
