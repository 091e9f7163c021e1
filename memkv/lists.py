"""List commands: a key holding an ordered sequence of byte values."""

from __future__ import annotations

import re
from typing import Optional

from memkv.replies import (
    OK,
    ArgumentCountError,
    CommandError,
    CommandSyntaxError,
    WrongTypeError,
)
from memkv.router import (
    CommandFlag,
    read_first_key,
    register_command,
    write_first_key,
)

_INT64_MIN = -(1 << 63)
_INT64_MAX = (1 << 63) - 1
_INT_RE = re.compile(rb"[+-]?[0-9]+")

_NOT_INTEGER = "ERR value is not an integer or out of range"

_SIGN_WRITE = "write"
_SIGN_READONLY = "readonly"
_SIGN_DENY_OOM = "denyoom"
_SIGN_FAST = "fast"


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
        raise CommandError(_NOT_INTEGER)
    value = int(data)
    if not _INT64_MIN <= value <= _INT64_MAX:
        raise CommandError(_NOT_INTEGER)
    return value


def _record(db, name: str, args) -> None:
    db.add_aof([name.encode(), *(_bytes(arg) for arg in args)])


def _get_list(db, key: str) -> Optional[list]:
    entity = db.get_entity(key)
    if entity is None:
        return None
    if not isinstance(entity, list):
        raise WrongTypeError()
    return entity


def _get_or_init_list(db, key: str) -> list:
    values = _get_list(db, key)
    if values is None:
        values = []
        db.put_entity(key, values)
    return values


def _resolve_index(index: int, size: int) -> Optional[int]:
    """Turn a possibly negative index into a position, or None if out of range."""
    if index < -size or index >= size:
        return None
    return index + size if index < 0 else index


def lindex(db, args):
    """LINDEX key index: the element at ``index``, or None."""
    index = _parse_int(args[1])
    values = _get_list(db, _text(args[0]))
    if values is None:
        return None
    position = _resolve_index(index, len(values))
    return None if position is None else values[position]


def llen(db, args):
    """LLEN key: the length of the list."""
    values = _get_list(db, _text(args[0]))
    return 0 if values is None else len(values)


def lpop(db, args):
    """LPOP key: remove and return the first element."""
    key = _text(args[0])
    values = _get_list(db, key)
    if values is None:
        return None
    value = values.pop(0)
    if not values:
        db.remove(key)
    _record(db, "lpop", args)
    return value


def lpush(db, args):
    """LPUSH key value [value ...]: insert values at the head, one by one."""
    values = _get_or_init_list(db, _text(args[0]))
    for value in args[1:]:
        values.insert(0, _bytes(value))
    _record(db, "lpush", args)
    return len(values)


def lpushx(db, args):
    """LPUSHX key value [value ...]: like LPUSH, only if the list exists."""
    values = _get_list(db, _text(args[0]))
    if values is None:
        return 0
    for value in args[1:]:
        values.insert(0, _bytes(value))
    _record(db, "lpushx", args)
    return len(values)


def lrange(db, args):
    """LRANGE key start stop: the elements between two inclusive indexes."""
    start = _parse_int(args[1])
    stop = _parse_int(args[2])
    values = _get_list(db, _text(args[0]))
    if values is None:
        return []
    size = len(values)
    if start < -size:
        start = 0
    elif start < 0:
        start += size
    elif start >= size:
        return []
    if stop < -size:
        stop = 0
    elif stop < 0:
        stop = size + stop + 1
    elif stop < size:
        stop += 1
    else:
        stop = size
    stop = max(stop, start)
    return values[start:stop]


def _remove_matching(values: list, target: bytes, limit: Optional[int], from_tail: bool) -> int:
    """Remove up to ``limit`` elements equal to ``target`` in place."""
    positions = [i for i, value in enumerate(values) if value == target]
    if from_tail:
        positions.reverse()
    if limit is not None:
        positions = positions[:limit]
    for position in sorted(positions, reverse=True):
        del values[position]
    return len(positions)


def lrem(db, args):
    """LREM key count value: remove occurrences of ``value``.

    A positive count removes from the head, a negative one from the tail,
    zero removes them all.
    """
    key = _text(args[0])
    count = _parse_int(args[1])
    target = _bytes(args[2])
    values = _get_list(db, key)
    if values is None:
        return 0
    if count == 0:
        removed = _remove_matching(values, target, None, False)
    elif count > 0:
        removed = _remove_matching(values, target, count, False)
    else:
        removed = _remove_matching(values, target, -count, True)
    if not values:
        db.remove(key)
    if removed:
        _record(db, "lrem", args)
    return removed


def lset(db, args):
    """LSET key index value: replace the element at ``index``."""
    key = _text(args[0])
    index = _parse_int(args[1])
    value = _bytes(args[2])
    values = _get_list(db, key)
    if values is None:
        raise CommandError("ERR no such key")
    position = _resolve_index(index, len(values))
    if position is None:
        raise CommandError("ERR index out of range")
    values[position] = value
    _record(db, "lset", args)
    return OK


def rpop(db, args):
    """RPOP key: remove and return the last element."""
    key = _text(args[0])
    values = _get_list(db, key)
    if values is None:
        return None
    value = values.pop()
    if not values:
        db.remove(key)
    _record(db, "rpop", args)
    return value


def rpoplpush(db, args):
    """RPOPLPUSH source destination: move the source's tail to the destination's head."""
    source_key = _text(args[0])
    dest_key = _text(args[1])
    source = _get_list(db, source_key)
    if source is None:
        return None
    dest = _get_or_init_list(db, dest_key)
    value = source.pop()
    dest.insert(0, value)
    if not source:
        db.remove(source_key)
    _record(db, "rpoplpush", args)
    return value


def rpush(db, args):
    """RPUSH key value [value ...]: append values at the tail."""
    values = _get_or_init_list(db, _text(args[0]))
    values.extend(_bytes(value) for value in args[1:])
    _record(db, "rpush", args)
    return len(values)


def rpushx(db, args):
    """RPUSHX key value [value ...]: like RPUSH, only if the list exists."""
    if len(args) < 2:
        raise ArgumentCountError("rpush")
    values = _get_list(db, _text(args[0]))
    if values is None:
        return 0
    values.extend(_bytes(value) for value in args[1:])
    _record(db, "rpushx", args)
    return len(values)


def ltrim(db, args):
    """LTRIM key start stop: keep only the elements between two indexes."""
    if len(args) != 3:
        raise CommandError(
            f"ERR wrong number of arguments (given {len(args)}, expected 3)"
        )
    key = _text(args[0])
    start = _parse_int(args[1])
    end = _parse_int(args[2])
    values = _get_list(db, key)
    if values is None:
        return OK
    length = len(values)
    if start < 0:
        start += length
    if end < 0:
        end += length
    left = max(0, min(start, len(values)))
    del values[:left]
    right = max(0, min(length - end - 1, len(values)))
    if right:
        del values[len(values) - right:]
    _record(db, "ltrim", args)
    return OK


def linsert(db, args):
    """LINSERT key BEFORE|AFTER pivot value: insert next to the first pivot."""
    if len(args) != 4:
        raise ArgumentCountError("linsert")
    values = _get_list(db, _text(args[0]))
    if values is None:
        return 0
    direction = _text(args[1]).lower()
    if direction not in ("before", "after"):
        raise CommandSyntaxError()
    pivot = _bytes(args[2])
    try:
        index = values.index(pivot)
    except ValueError:
        return -1
    value = _bytes(args[3])
    values.insert(index if direction == "before" else index + 1, value)
    _record(db, "linsert", args)
    return len(values)


def _peek(db, key: str, position: int) -> Optional[bytes]:
    try:
        values = _get_list(db, key)
    except WrongTypeError:
        return None
    if not values:
        return None
    return values[position]


def undo_lpop(db, args) -> list:
    """Command lines that undo an LPOP about to run."""
    element = _peek(db, _text(args[0]), 0)
    if element is None:
        return []
    return [[b"LPUSH", _bytes(args[0]), element]]


def undo_lpush(db, args) -> list:
    """Command lines that undo an LPUSH about to run."""
    key = _bytes(args[0])
    return [[b"LPOP", key] for _ in args[1:]]


def undo_lset(db, args) -> list:
    """Command lines that undo an LSET about to run."""
    try:
        index = _parse_int(args[1])
        values = _get_list(db, _text(args[0]))
    except CommandError:
        return []
    if values is None:
        return []
    position = _resolve_index(index, len(values))
    if position is None:
        return []
    return [[b"LSET", _bytes(args[0]), _bytes(args[1]), values[position]]]


def undo_rpop(db, args) -> list:
    """Command lines that undo an RPOP about to run."""
    element = _peek(db, _text(args[0]), -1)
    if element is None:
        return []
    return [[b"RPUSH", _bytes(args[0]), element]]


def undo_rpush(db, args) -> list:
    """Command lines that undo an RPUSH about to run."""
    key = _bytes(args[0])
    return [[b"RPOP", key] for _ in args[1:]]


def undo_rpoplpush(db, args) -> list:
    """Command lines that undo an RPOPLPUSH about to run."""
    element = _peek(db, _text(args[0]), -1)
    if element is None:
        return []
    return [
        [b"RPUSH", _bytes(args[0]), element],
        [b"LPOP", _bytes(args[1])],
    ]


def _undo_whole_list(db, args) -> list:
    """Command lines restoring the first key's list to its current contents."""
    key = _text(args[0])
    try:
        values = _get_list(db, key)
    except WrongTypeError:
        return []
    encoded_key = _bytes(key)
    lines = [[b"DEL", encoded_key]]
    if values:
        lines.append([b"RPUSH", encoded_key, *values])
    return lines


def _prepare_rpoplpush(args):
    return [_text(args[0]), _text(args[1])], []


_WRITE = CommandFlag.WRITE
_READ = CommandFlag.READ_ONLY

register_command("LPush", lpush, write_first_key, undo_lpush, -3, _WRITE).attach_extra(
    [_SIGN_WRITE, _SIGN_DENY_OOM, _SIGN_FAST], 1, 1, 1
)
register_command("LPushX", lpushx, write_first_key, undo_lpush, -3, _WRITE).attach_extra(
    [_SIGN_WRITE, _SIGN_DENY_OOM, _SIGN_FAST], 1, 1, 1
)
register_command("RPush", rpush, write_first_key, undo_rpush, -3, _WRITE).attach_extra(
    [_SIGN_WRITE, _SIGN_DENY_OOM, _SIGN_FAST], 1, 1, 1
)
register_command("RPushX", rpushx, write_first_key, undo_rpush, -3, _WRITE).attach_extra(
    [_SIGN_WRITE, _SIGN_DENY_OOM, _SIGN_FAST], 1, 1, 1
)
register_command("LPop", lpop, write_first_key, undo_lpop, 2, _WRITE).attach_extra(
    [_SIGN_WRITE, _SIGN_FAST], 1, 1, 1
)
register_command("RPop", rpop, write_first_key, undo_rpop, 2, _WRITE).attach_extra(
    [_SIGN_WRITE, _SIGN_FAST], 1, 1, 1
)
register_command(
    "RPopLPush", rpoplpush, _prepare_rpoplpush, undo_rpoplpush, 3, _WRITE
).attach_extra([_SIGN_WRITE, _SIGN_DENY_OOM], 1, 1, 1)
register_command("LRem", lrem, write_first_key, _undo_whole_list, 4, _WRITE).attach_extra(
    [_SIGN_WRITE], 1, 1, 1
)
register_command("LLen", llen, read_first_key, None, 2, _READ).attach_extra(
    [_SIGN_READONLY, _SIGN_FAST], 1, 1, 1
)
register_command("LIndex", lindex, read_first_key, None, 3, _READ).attach_extra(
    [_SIGN_READONLY], 1, 1, 1
)
register_command("LSet", lset, write_first_key, undo_lset, 4, _WRITE).attach_extra(
    [_SIGN_WRITE, _SIGN_DENY_OOM], 1, 1, 1
)
register_command("LRange", lrange, read_first_key, None, 4, _READ).attach_extra(
    [_SIGN_READONLY], 1, 1, 1
)
register_command("LTrim", ltrim, write_first_key, _undo_whole_list, 4, _WRITE).attach_extra(
    [_SIGN_WRITE], 1, 1, 1
)
register_command("LInsert", linsert, write_first_key, _undo_whole_list, 5, _WRITE).attach_extra(
    [_SIGN_WRITE, _SIGN_DENY_OOM], 1, 1, 1
)