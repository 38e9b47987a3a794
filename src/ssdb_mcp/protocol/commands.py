"""Command categories and the command-name lookup table.

Every command name maps to the :class:`Category` that decides how its
response blocks are interpreted. Names missing from the table fall back to
:attr:`Category.DEFAULT`, so new server commands still work through the
generic entry point.
"""

from __future__ import annotations

from enum import Enum


class Category(Enum):
    """Response shapes."""

    SCALAR_INT = "scalar_int"
    SCALAR_FLOAT = "scalar_float"
    SCALAR_STRING = "scalar_string"
    VARIABLE_POP = "variable_pop"
    LIST = "list"
    BOOLEAN = "boolean"
    MULTI_BOOLEAN_MAP = "multi_boolean_map"
    KEYED_MAP = "keyed_map"
    DEFAULT = "default"


# Keyed-map values are parsed as integers for commands with this first letter
SORTED_SET_PREFIX = "z"

_CATEGORY_COMMANDS: dict[Category, tuple[str, ...]] = {
    Category.SCALAR_INT: (
        "dbsize", "ping", "qset", "getbit", "setbit", "countbit", "strlen",
        "set", "setx", "setnx", "zset", "hset",
        "qpush", "qpush_front", "qpush_back", "qtrim_front", "qtrim_back",
        "del", "zdel", "hdel", "hsize", "zsize", "qsize",
        "hclear", "zclear", "qclear",
        "multi_set", "multi_del", "multi_hset", "multi_hdel", "multi_zset", "multi_zdel",
        "incr", "decr", "zincr", "zdecr", "hincr", "hdecr",
        "zget", "zrank", "zrrank", "zcount", "zsum",
        "zremrangebyrank", "zremrangebyscore", "ttl", "expire",
    ),
    Category.SCALAR_FLOAT: ("zavg",),
    Category.SCALAR_STRING: ("get", "substr", "getset", "hget", "qget", "qfront", "qback"),
    Category.VARIABLE_POP: ("qpop", "qpop_front", "qpop_back"),
    Category.LIST: ("keys", "zkeys", "hkeys", "hlist", "zlist", "qslice"),
    Category.BOOLEAN: ("auth", "exists", "hexists", "zexists"),
    Category.MULTI_BOOLEAN_MAP: ("multi_exists", "multi_hexists", "multi_zexists"),
    Category.KEYED_MAP: (
        "scan", "rscan", "zscan", "zrscan", "zrange", "zrrange",
        "hscan", "hrscan", "hgetall",
        "multi_hsize", "multi_zsize", "multi_get", "multi_hget", "multi_zget",
        "zpop_front", "zpop_back",
    ),
}

COMMAND_CATEGORIES: dict[str, Category] = {
    name: category
    for category, names in _CATEGORY_COMMANDS.items()
    for name in names
}


def canonical_command(name: str | bytes) -> str:
    """Canonical (lowercase) form of a command name."""
    if isinstance(name, bytes):
        name = name.decode("ascii")
    return name.strip().lower()


def category_for(command: str) -> Category:
    """Look up the response category of a command.

    Args:
        command: Command name in any case.

    Returns:
        The command's :class:`Category`, or ``Category.DEFAULT`` for names
        the table does not know.
    """
    return COMMAND_CATEGORIES.get(canonical_command(command), Category.DEFAULT)
