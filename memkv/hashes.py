"""Hash commands: a key holding a mapping of field names to byte values."""

from __future__ import annotations

import math
import random
import re
from decimal import Decimal
from typing import Optional

from memkv.replies import (
    OK,
    ArgumentCountError,
    CommandError,
    CommandSyntaxError,
    WrongTypeError,
)
from memkv.router import CommandFlag, read_first_key, register_command, write_first_key

_INT64_MIN = -(1 << 63)
_INT64_MAX = (1 << 63) - 1

_INT_RE = re.compile(rb"[+-]?[0-9]+")
_FLOAT_RE = re.compile(
    rb"[+-]?(?:(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?|inf|infinity|nan)",
    re.IGNORECASE,
)

_NOT_INTEGER = "ERR value is not an integer or out of range"
_NOT_FLOAT = "ERR value is not a valid float"

_SIGN_WRITE = "write"
_SIGN_READONLY = "readonly"
_SIGN_DENY_OOM = "denyoom"
_SIGN_FAST = "fast"
_SIGN_SORT_FOR_SCRIPT = "sort_for_script"
_SIGN_RANDOM = "random"


def _bytes(raw) -> bytes:
    if isinstance(raw, str):
        return raw.encode("utf-8", "surrogateescape")
    return bytes(raw)


def _text(raw) -> str:
    if isinstance(raw, (bytes, bytearray, memoryview)):
        return bytes(raw).decode("utf-8", "surrogateescape")
    return str(raw)


def _parse_int(raw) -> int:
    data = _bytes(raw)
    if not _INT_RE.fullmatch(data):
        raise ValueError(data)
    value = int(data)
    if not _INT64_MIN <= value <= _INT64_MAX:
        raise ValueError(data)
    return value


def _parse_float(raw) -> float:
    data = _bytes(raw)
    if not _FLOAT_RE.fullmatch(data):
        raise ValueError(data)
    value = float(data)
    if math.isinf(value) and b"inf" not in data.lower():
        raise ValueError(data)
    return value


def _wrap_int64(value: int) -> int:
    return (value - _INT64_MIN) % (1 << 64) + _INT64_MIN


def _format_float(value: float) -> str:
    """Shortest decimal form without an exponent."""
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    return format(Decimal(repr(value)).normalize(), "f")


def _record(db, name: str, args) -> None:
    db.add_aof([name.encode(), *(_bytes(arg) for arg in args)])


def _get_hash(db, key: str) -> Optional[dict]:
    entity = db.get_entity(key)
    if entity is None:
        return None
    if not isinstance(entity, dict):
        raise WrongTypeError()
    return entity


def _get_or_init_hash(db, key: str) -> dict:
    table = _get_hash(db, key)
    if table is None:
        table = {}
        db.put_entity(key, table)
    return table


def hset(db, args):
    """HSET key field value: returns 1 if the field is new, else 0."""
    key, field, value = _text(args[0]), _text(args[1]), _bytes(args[2])
    table = _get_or_init_hash(db, key)
    created = 0 if field in table else 1
    table[field] = value
    _record(db, "hset", args)
    return created


def hsetnx(db, args):
    """HSETNX key field value: set only if the field is absent."""
    key, field, value = _text(args[0]), _text(args[1]), _bytes(args[2])
    table = _get_or_init_hash(db, key)
    if field in table:
        return 0
    table[field] = value
    _record(db, "hsetnx", args)
    return 1


def hget(db, args):
    """HGET key field: the field's value, or None."""
    table = _get_hash(db, _text(args[0]))
    if table is None:
        return None
    return table.get(_text(args[1]))


def hexists(db, args):
    """HEXISTS key field: 1 if the field exists, else 0."""
    table = _get_hash(db, _text(args[0]))
    if table is None:
        return 0
    return 1 if _text(args[1]) in table else 0


def hdel(db, args):
    """HDEL key field [field ...]: delete fields, returning how many existed."""
    key = _text(args[0])
    table = _get_hash(db, key)
    if table is None:
        return 0
    deleted = 0
    for field in map(_text, args[1:]):
        if table.pop(field, None) is not None:
            deleted += 1
    if not table:
        db.remove(key)
    if deleted:
        _record(db, "hdel", args)
    return deleted


def hlen(db, args):
    """HLEN key: number of fields."""
    table = _get_hash(db, _text(args[0]))
    return 0 if table is None else len(table)


def hstrlen(db, args):
    """HSTRLEN key field: length of the field's value, 0 if absent."""
    table = _get_hash(db, _text(args[0]))
    if table is None:
        return 0
    value = table.get(_text(args[1]))
    return 0 if value is None else len(value)


def hmset(db, args):
    """HMSET key field value [field value ...]."""
    if len(args) % 2 != 1:
        raise CommandSyntaxError()
    key = _text(args[0])
    pairs = list(zip(args[1::2], args[2::2]))
    table = _get_or_init_hash(db, key)
    for field, value in pairs:
        table[_text(field)] = _bytes(value)
    _record(db, "hmset", args)
    return OK


def hmget(db, args):
    """HMGET key field [field ...]: values in order, None for missing ones."""
    fields = [_text(arg) for arg in args[1:]]
    table = _get_hash(db, _text(args[0]))
    if table is None:
        return [None] * len(fields)
    return [table.get(field) for field in fields]


def hkeys(db, args):
    """HKEYS key: all field names."""
    table = _get_hash(db, _text(args[0]))
    if table is None:
        return []
    return [_bytes(field) for field in table]


def hvals(db, args):
    """HVALS key: all values."""
    table = _get_hash(db, _text(args[0]))
    if table is None:
        return []
    return list(table.values())


def hgetall(db, args):
    """HGETALL key: fields and values, interleaved."""
    table = _get_hash(db, _text(args[0]))
    if table is None:
        return []
    result = []
    for field, value in table.items():
        result.append(_bytes(field))
        result.append(value)
    return result


def hincrby(db, args):
    """HINCRBY key field delta: add an integer to the field's value."""
    key, field = _text(args[0]), _text(args[1])
    try:
        delta = _parse_int(args[2])
    except ValueError:
        raise CommandError(_NOT_INTEGER) from None
    table = _get_or_init_hash(db, key)
    current = table.get(field)
    if current is None:
        raw = _bytes(args[2])
        table[field] = raw
        _record(db, "hincrby", args)
        return raw
    try:
        value = _parse_int(current)
    except ValueError:
        raise CommandError("ERR hash value is not an integer") from None
    result = str(_wrap_int64(value + delta)).encode()
    table[field] = result
    _record(db, "hincrby", args)
    return result


def hincrbyfloat(db, args):
    """HINCRBYFLOAT key field delta: add a float to the field's value."""
    key, field = _text(args[0]), _text(args[1])
    try:
        delta = _parse_float(args[2])
    except ValueError:
        raise CommandError(_NOT_FLOAT) from None
    table = _get_or_init_hash(db, key)
    current = table.get(field)
    if current is None:
        raw = _bytes(args[2])
        table[field] = raw
        return raw
    try:
        value = _parse_float(current)
    except ValueError:
        raise CommandError("ERR hash value is not a float") from None
    result = _format_float(value + delta).encode()
    table[field] = result
    _record(db, "hincrbyfloat", args)
    return result


def hrandfield(db, args):
    """HRANDFIELD key [count [WITHVALUES]]: random fields.

    A positive count yields distinct fields, a negative one may repeat them.
    """
    if len(args) > 3:
        raise ArgumentCountError("hrandfield")
    with_values = False
    if len(args) == 3:
        if _text(args[2]).lower() != "withvalues":
            raise CommandSyntaxError()
        with_values = True
    count = 1
    if len(args) >= 2:
        try:
            count = _parse_int(args[1])
        except ValueError:
            raise CommandError(_NOT_INTEGER) from None

    table = _get_hash(db, _text(args[0]))
    if table is None or count == 0 or not table:
        return []
    names = list(table)
    if count > 0:
        chosen = random.sample(names, min(count, len(names)))
    else:
        chosen = random.choices(names, k=-count)
    result = []
    for field in chosen:
        result.append(_bytes(field))
        if with_values:
            result.append(table[field])
    return result


def _undo_fields(db, key: str, fields) -> list:
    """Command lines restoring the given fields of a hash to their current state."""
    try:
        table = _get_hash(db, key)
    except WrongTypeError:
        return []
    encoded_key = _bytes(key)
    if table is None:
        return [[b"DEL", encoded_key]]
    lines = []
    for field in fields:
        value = table.get(field)
        if value is None:
            lines.append([b"HDEL", encoded_key, _bytes(field)])
        else:
            lines.append([b"HSET", encoded_key, _bytes(field), value])
    return lines


def _undo_single_field(db, args) -> list:
    return _undo_fields(db, _text(args[0]), [_text(args[1])])


def _undo_hdel(db, args) -> list:
    return _undo_fields(db, _text(args[0]), [_text(arg) for arg in args[1:]])


def _undo_hmset(db, args) -> list:
    return _undo_fields(db, _text(args[0]), [_text(arg) for arg in args[1::2]])


_WRITE = CommandFlag.WRITE
_READ = CommandFlag.READ_ONLY

register_command("HSet", hset, write_first_key, _undo_single_field, 4, _WRITE).attach_extra(
    [_SIGN_WRITE, _SIGN_DENY_OOM, _SIGN_FAST], 1, 1, 1
)
register_command("HSetNX", hsetnx, write_first_key, _undo_single_field, 4, _WRITE).attach_extra(
    [_SIGN_WRITE, _SIGN_DENY_OOM, _SIGN_FAST], 1, 1, 1
)
register_command("HGet", hget, read_first_key, None, -3, _READ).attach_extra(
    [_SIGN_READONLY, _SIGN_FAST], 1, 1, 1
)
register_command("HExists", hexists, read_first_key, None, 3, _READ).attach_extra(
    [_SIGN_READONLY, _SIGN_FAST], 1, 1, 1
)
register_command("HDel", hdel, write_first_key, _undo_hdel, -3, _WRITE).attach_extra(
    [_SIGN_WRITE, _SIGN_FAST], 1, 1, 1
)
register_command("HLen", hlen, read_first_key, None, 2, _READ).attach_extra(
    [_SIGN_READONLY, _SIGN_FAST], 1, 1, 1
)
register_command("HStrlen", hstrlen, read_first_key, None, 3, _READ).attach_extra(
    [_SIGN_READONLY, _SIGN_FAST], 1, 1, 1
)
register_command("HMSet", hmset, write_first_key, _undo_hmset, -4, _WRITE).attach_extra(
    [_SIGN_WRITE, _SIGN_DENY_OOM, _SIGN_FAST], 1, 1, 1
)
register_command("HMGet", hmget, read_first_key, None, -3, _READ).attach_extra(
    [_SIGN_READONLY, _SIGN_FAST], 1, 1, 1
)
register_command("HKeys", hkeys, read_first_key, None, 2, _READ).attach_extra(
    [_SIGN_READONLY, _SIGN_SORT_FOR_SCRIPT], 1, 1, 1
)
register_command("HVals", hvals, read_first_key, None, 2, _READ).attach_extra(
    [_SIGN_READONLY, _SIGN_SORT_FOR_SCRIPT], 1, 1, 1
)
register_command("HGetAll", hgetall, read_first_key, None, 2, _READ).attach_extra(
    [_SIGN_READONLY, _SIGN_RANDOM], 1, 1, 1
)
register_command("HIncrBy", hincrby, write_first_key, _undo_single_field, 4, _WRITE).attach_extra(
    [_SIGN_WRITE, _SIGN_DENY_OOM, _SIGN_FAST], 1, 1, 1
)
register_command(
    "HIncrByFloat", hincrbyfloat, write_first_key, _undo_single_field, 4, _WRITE
).attach_extra([_SIGN_WRITE, _SIGN_DENY_OOM, _SIGN_FAST], 1, 1, 1)
register_command("HRandField", hrandfield, read_first_key, None, -2, _READ).attach_extra(
    [_SIGN_RANDOM, _SIGN_READONLY], 1, 1, 1
)