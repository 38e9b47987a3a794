"""Response classification: raw block-groups to typed :class:`Response` objects."""

from __future__ import annotations

import json
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from .commands import SORTED_SET_PREFIX, Category, canonical_command, category_for
from .framing import TEXT_ENCODING, TEXT_ERRORS

OK = "ok"
NOT_FOUND = "not_found"
ERROR = "error"
SERVER_ERROR = "server_error"
DISCONNECTED = "disconnected"
NOAUTH = "noauth"

INVALID_RESPONSE = "Invalid response"


@dataclass
class Response:
    """A decoded server reply.

    ``data`` is set only when ``code`` is ``"ok"`` and ``message`` carries the
    status text otherwise. Commands without a known category are the one
    exception: their payload blocks are kept in ``data`` whatever the code.
    """

    command: str
    code: str
    data: Any = None
    message: str | None = None

    @property
    def ok(self) -> bool:
        return self.code == OK

    @property
    def not_found(self) -> bool:
        return self.code == NOT_FOUND

    def to_dict(self) -> dict[str, Any]:
        return {
            "command": self.command,
            "code": self.code,
            "data": _jsonable(self.data),
            "message": self.message,
        }

    def __str__(self) -> str:
        if self.ok:
            text = "" if self.data is None else json.dumps(_jsonable(self.data))
        else:
            text = self.message or ""
        return "%-13s %12s %s" % (self.command, self.code, text)


def _jsonable(value: Any) -> Any:
    if isinstance(value, bytes):
        return value.decode(TEXT_ENCODING, "replace")
    if isinstance(value, list):
        return [_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {_jsonable(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, str):
        # surrogate escapes are not valid JSON text
        return value.encode(TEXT_ENCODING, TEXT_ERRORS).decode(TEXT_ENCODING, "replace")
    return value


def _message(blocks: Sequence[bytes]) -> str:
    if len(blocks) > 1:
        return blocks[1].decode(TEXT_ENCODING, "replace")
    return ""


def _invalid(command: str) -> Response:
    return Response(command, SERVER_ERROR, message=INVALID_RESPONSE)


def _to_int(raw: bytes) -> int:
    return int(raw) if raw.strip() else 0


def _to_float(raw: bytes) -> float:
    return float(raw) if raw.strip() else 0.0


def _truthy(raw: bytes) -> bool:
    return raw not in (b"", b"0")


def _pop_count(params: Sequence[Any]) -> int:
    if len(params) < 2:
        return 1
    try:
        return int(params[1])
    except (TypeError, ValueError):
        return 1


Decoder = Callable[[bytes], Any]


def _scalar_int(command, blocks, params, text):
    try:
        return Response(command, OK, data=_to_int(blocks[1]) if len(blocks) > 1 else 0)
    except ValueError:
        return _invalid(command)


def _scalar_float(command, blocks, params, text):
    try:
        return Response(command, OK, data=_to_float(blocks[1]) if len(blocks) > 1 else 0.0)
    except ValueError:
        return _invalid(command)


def _scalar_string(command, blocks, params, text):
    if len(blocks) != 2:
        return _invalid(command)
    return Response(command, OK, data=text(blocks[1]))


def _variable_pop(command, blocks, params, text):
    if _pop_count(params) <= 1:
        return _scalar_string(command, blocks, params, text)
    return Response(command, OK, data=[text(b) for b in blocks[1:]])


def _list(command, blocks, params, text):
    return Response(command, OK, data=[text(b) for b in blocks[1:]])


def _boolean(command, blocks, params, text):
    if len(blocks) != 2:
        return _invalid(command)
    return Response(command, OK, data=_truthy(blocks[1]))


def _multi_boolean_map(command, blocks, params, text):
    if len(blocks) % 2 != 1:
        return _invalid(command)
    data = {text(blocks[i]): _truthy(blocks[i + 1]) for i in range(1, len(blocks), 2)}
    return Response(command, OK, data=data)


def _keyed_map(command, blocks, params, text):
    if len(blocks) % 2 != 1:
        return _invalid(command)
    numeric = command.startswith(SORTED_SET_PREFIX)
    data: dict[Any, Any] = {}
    for i in range(1, len(blocks), 2):
        if numeric:
            try:
                data[text(blocks[i])] = _to_int(blocks[i + 1])
            except ValueError:
                return _invalid(command)
        else:
            data[text(blocks[i])] = text(blocks[i + 1])
    return Response(command, OK, data=data)


_HANDLERS = {
    Category.SCALAR_INT: _scalar_int,
    Category.SCALAR_FLOAT: _scalar_float,
    Category.SCALAR_STRING: _scalar_string,
    Category.VARIABLE_POP: _variable_pop,
    Category.LIST: _list,
    Category.BOOLEAN: _boolean,
    Category.MULTI_BOOLEAN_MAP: _multi_boolean_map,
    Category.KEYED_MAP: _keyed_map,
}


def _text_decoder(encoding: str | None) -> Decoder:
    if encoding is None:
        return bytes
    return lambda raw: raw.decode(encoding, TEXT_ERRORS)


def classify_response(
    command: str,
    blocks: Sequence[bytes] | None,
    params: Sequence[Any] = (),
    encoding: str | None = TEXT_ENCODING,
) -> Response:
    """Turn a decoded block-group into a :class:`Response`.

    Args:
        command: Name of the command the reply belongs to.
        blocks: The block-group; index 0 is the status code. ``None`` stands
            for a failed read.
        params: The original (unflattened) arguments. Only the ``qpop``
            family looks at them, to tell a single pop from a bulk pop.
        encoding: Text encoding for payload blocks, or ``None`` to keep bytes.

    Returns:
        The classified response. Shape mismatches (wrong block count, bad
        numbers) come back as ``server_error`` / ``"Invalid response"``.
    """
    command = canonical_command(command)
    if blocks is None:
        return Response(command, ERROR, message="Unknown error")
    if not blocks:
        return Response(command, DISCONNECTED, message="Connection closed")

    code = blocks[0].decode("ascii", "replace")
    if code == NOAUTH:
        return Response(command, NOAUTH, message=_message(blocks))

    text = _text_decoder(encoding)
    category = category_for(command)
    if category is Category.DEFAULT:
        data = [text(b) for b in blocks[1:]]
        if code == OK:
            return Response(command, code, data=data)
        return Response(command, code, data=data, message=_message(blocks))

    if code != OK:
        return Response(command, code, message=_message(blocks))
    return _HANDLERS[category](command, blocks, params, text)


def easy_value(response: Response) -> Any:
    """Collapse a response into a plain value.

    ``not_found`` becomes ``None``; any other failure becomes ``False``
    unless its ``data`` is a list or dict, which is returned as-is.
    A successful ``0`` or ``False`` result is indistinguishable from a
    suppressed error here; callers that care must use structured responses.
    """
    if response.not_found:
        return None
    if not response.ok and not isinstance(response.data, (list, dict)):
        return False
    return response.data
