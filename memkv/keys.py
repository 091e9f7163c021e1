"""Keyspace commands: deletion, existence, types, renaming, expiration, KEYS."""

from __future__ import annotations

import math
import re
import time
from typing import Optional

from memkv.replies import OK, ArgumentCountError, CommandError, Status
from memkv.router import (
    CommandFlag,
    no_prepare,
    read_all_keys,
    read_first_key,
    register_command,
    write_all_keys,
    write_first_key,
)

_INT64_MIN = -(1 << 63)
_INT64_MAX = (1 << 63) - 1
_INT_RE = re.compile(rb"[+-]?[0-9]+")

_NOT_INTEGER = "ERR value is not an integer or out of range"

_SIGN_WRITE = "write"
_SIGN_READONLY = "readonly"
_SIGN_FAST = "fast"
_SIGN_RANDOM = "random"
_SIGN_SORT_FOR_SCRIPT = "sort_for_script"


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


def _millis(expire_at: float) -> int:
    return int(expire_at * 1000)


def _record_expire(db, key: str, expire_at: float) -> None:
    db.add_aof([b"PEXPIREAT", _bytes(key), str(_millis(expire_at)).encode()])


def _compile_wildcard(pattern: str) -> re.Pattern:
    """Compile a glob pattern (``*``, ``?``, ``[...]``, ``\\``) into a regex."""
    parts = []
    i = 0
    n = len(pattern)
    while i < n:
        char = pattern[i]
        if char == "*":
            parts.append(".*")
            i += 1
        elif char == "?":
            parts.append(".")
            i += 1
        elif char == "\\":
            if i + 1 >= n:
                raise ValueError("dangling escape")
            parts.append(re.escape(pattern[i + 1]))
            i += 2
        elif char == "[":
            i += 1
            negate = i < n and pattern[i] == "^"
            if negate:
                i += 1
            members = []
            closed = False
            while i < n:
                c = pattern[i]
                if c == "]":
                    closed = True
                    i += 1
                    break
                if c == "\\":
                    if i + 1 >= n:
                        raise ValueError("dangling escape")
                    c = pattern[i + 1]
                    i += 2
                else:
                    i += 1
                if i + 1 < n and pattern[i] == "-" and pattern[i + 1] != "]":
                    upper = pattern[i + 1]
                    i += 2
                    if upper == "\\":
                        if i >= n:
                            raise ValueError("dangling escape")
                        upper = pattern[i]
                        i += 1
                    if upper < c:
                        raise ValueError("bad range")
                    members.append(re.escape(c) + "-" + re.escape(upper))
                else:
                    members.append(re.escape(c))
            if not closed or not members:
                raise ValueError("unterminated character class")
            parts.append("[" + ("^" if negate else "") + "".join(members) + "]")
        else:
            parts.append(re.escape(char))
            i += 1
    return re.compile("".join(parts), re.DOTALL)


def delete(db, args):
    """DEL key [key ...]: delete keys, returning how many existed."""
    deleted = db.removes(*(_text(arg) for arg in args))
    if deleted > 0:
        _record(db, "del", args)
    return deleted


def exists(db, args):
    """EXISTS key [key ...]: count how many of the given keys exist."""
    return sum(1 for arg in args if db.get_entity(_text(arg)) is not None)


def flushdb(db, args):
    """FLUSHDB: drop every key of the database."""
    db.flush()
    _record(db, "flushdb", args)
    return OK


def type_of(db, args):
    """TYPE key: the kind of value stored at ``key``."""
    entity = db.get_entity(_text(args[0]))
    if entity is None:
        return Status("none")
    if isinstance(entity, (bytes, bytearray)):
        return Status("string")
    if isinstance(entity, list):
        return Status("list")
    if isinstance(entity, dict):
        return Status("hash")
    if isinstance(entity, (set, frozenset)):
        return Status("set")
    raise CommandError("ERR unknown")


def rename(db, args):
    """RENAME source destination."""
    if len(args) != 2:
        raise ArgumentCountError("rename")
    src, dest = _text(args[0]), _text(args[1])
    entity = db.get_entity(src)
    if entity is None:
        raise CommandError("no such key")
    expire_at = db.get_expiration(src)
    db.put_entity(dest, entity)
    db.remove(src)
    if expire_at is not None:
        db.persist(src)
        db.persist(dest)
        db.expire(dest, expire_at)
    _record(db, "rename", args)
    return OK


def renamenx(db, args):
    """RENAMENX source destination: rename only if the destination is absent."""
    src, dest = _text(args[0]), _text(args[1])
    if db.get_entity(dest) is not None:
        return 0
    entity = db.get_entity(src)
    if entity is None:
        raise CommandError("no such key")
    expire_at = db.get_expiration(src)
    db.removes(src, dest)
    db.put_entity(dest, entity)
    if expire_at is not None:
        db.persist(src)
        db.persist(dest)
        db.expire(dest, expire_at)
    _record(db, "renamenx", args)
    return 1


def _set_expiration(db, key: str, expire_at: float) -> int:
    if db.get_entity(key) is None:
        return 0
    db.expire(key, expire_at)
    _record_expire(db, key, expire_at)
    return 1


def expire(db, args):
    """EXPIRE key seconds."""
    seconds = _parse_int(args[1])
    return _set_expiration(db, _text(args[0]), time.time() + seconds)


def expireat(db, args):
    """EXPIREAT key unix-seconds."""
    timestamp = _parse_int(args[1])
    return _set_expiration(db, _text(args[0]), float(timestamp))


def pexpire(db, args):
    """PEXPIRE key milliseconds."""
    millis = _parse_int(args[1])
    return _set_expiration(db, _text(args[0]), time.time() + millis / 1000)


def pexpireat(db, args):
    """PEXPIREAT key unix-milliseconds."""
    millis = _parse_int(args[1])
    return _set_expiration(db, _text(args[0]), millis / 1000)


def _expiration_of(db, key: str) -> Optional[float]:
    """Expiration of an existing key; -2 as an error code is handled by callers."""
    return db.get_expiration(key)


def expiretime(db, args):
    """EXPIRETIME key: absolute expiration in Unix seconds, -1 or -2."""
    key = _text(args[0])
    if db.get_entity(key) is None:
        return -2
    expire_at = _expiration_of(db, key)
    if expire_at is None:
        return -1
    return math.floor(expire_at)


def pexpiretime(db, args):
    """PEXPIRETIME key: absolute expiration in Unix milliseconds, -1 or -2."""
    key = _text(args[0])
    if db.get_entity(key) is None:
        return -2
    expire_at = _expiration_of(db, key)
    if expire_at is None:
        return -1
    return math.floor(expire_at * 1000)


def ttl(db, args):
    """TTL key: remaining time to live in seconds, -1 or -2."""
    key = _text(args[0])
    if db.get_entity(key) is None:
        return -2
    expire_at = _expiration_of(db, key)
    if expire_at is None:
        return -1
    return int(expire_at - time.time())


def pttl(db, args):
    """PTTL key: remaining time to live in milliseconds, -1 or -2."""
    key = _text(args[0])
    if db.get_entity(key) is None:
        return -2
    expire_at = _expiration_of(db, key)
    if expire_at is None:
        return -1
    return int((expire_at - time.time()) * 1000)


def persist(db, args):
    """PERSIST key: drop the expiration; 1 if there was one."""
    key = _text(args[0])
    if db.get_entity(key) is None:
        return 0
    if db.get_expiration(key) is None:
        return 0
    db.persist(key)
    _record(db, "persist", args)
    return 1


def keys(db, args):
    """KEYS pattern: all live keys matching a glob pattern."""
    try:
        pattern = _compile_wildcard(_text(args[0]))
    except (ValueError, re.error):
        raise CommandError("ERR illegal wildcard") from None
    result = []
    for key, _entity, _expiration in db.items():
        if not pattern.fullmatch(key):
            continue
        if not db.is_expired(key):
            result.append(_bytes(key))
    return result


def _ttl_command(db, key: str) -> list:
    expire_at = db.get_expiration(key)
    if expire_at is None:
        return [b"PERSIST", _bytes(key)]
    return [b"PEXPIREAT", _bytes(key), str(_millis(expire_at)).encode()]


def undo_expire(db, args) -> list:
    """Command lines restoring the expiration state of the first key."""
    return [_ttl_command(db, _text(args[0]))]


def _entity_command(key: bytes, entity) -> Optional[list]:
    if isinstance(entity, (bytes, bytearray)):
        return [b"SET", key, bytes(entity)]
    if isinstance(entity, list):
        return [b"RPUSH", key, *entity] if entity else None
    if isinstance(entity, dict):
        if not entity:
            return None
        line = [b"HMSET", key]
        for field, value in entity.items():
            line.extend((_bytes(field), value))
        return line
    if isinstance(entity, (set, frozenset)):
        return [b"SADD", key, *(_bytes(member) for member in entity)] if entity else None
    return None


def _undo_given_keys(db, key_names) -> list:
    """Command lines restoring the given keys to their current values and TTLs."""
    lines = []
    for key in key_names:
        encoded = _bytes(key)
        entity = db.get_entity(key)
        lines.append([b"DEL", encoded])
        if entity is None:
            continue
        restore = _entity_command(encoded, entity)
        if restore is not None:
            lines.append(restore)
        lines.append(_ttl_command(db, key))
    return lines


def _undo_del(db, args) -> list:
    return _undo_given_keys(db, [_text(arg) for arg in args])


def _undo_rename(db, args) -> list:
    return _undo_given_keys(db, [_text(args[0]), _text(args[1])])


def _prepare_rename(args):
    return [_text(args[1])], [_text(args[0])]


_WRITE = CommandFlag.WRITE
_READ = CommandFlag.READ_ONLY

register_command("Del", delete, write_all_keys, _undo_del, -2, _WRITE).attach_extra(
    [_SIGN_WRITE], 1, -1, 1
)
register_command("Expire", expire, write_first_key, undo_expire, 3, _WRITE).attach_extra(
    [_SIGN_WRITE, _SIGN_FAST], 1, 1, 1
)
register_command("ExpireAt", expireat, write_first_key, undo_expire, 3, _WRITE).attach_extra(
    [_SIGN_WRITE, _SIGN_FAST], 1, 1, 1
)
register_command("ExpireTime", expiretime, read_first_key, None, 2, _READ).attach_extra(
    [_SIGN_WRITE, _SIGN_FAST], 1, 1, 1
)
register_command("PExpire", pexpire, write_first_key, undo_expire, 3, _WRITE).attach_extra(
    [_SIGN_WRITE, _SIGN_FAST], 1, 1, 1
)
register_command("PExpireAt", pexpireat, write_first_key, undo_expire, 3, _WRITE).attach_extra(
    [_SIGN_WRITE, _SIGN_FAST], 1, 1, 1
)
register_command("PExpireTime", pexpiretime, read_first_key, None, 2, _READ).attach_extra(
    [_SIGN_WRITE, _SIGN_FAST], 1, 1, 1
)
register_command("TTL", ttl, read_first_key, None, 2, _READ).attach_extra(
    [_SIGN_READONLY, _SIGN_RANDOM, _SIGN_FAST], 1, 1, 1
)
register_command("PTTL", pttl, read_first_key, None, 2, _READ).attach_extra(
    [_SIGN_READONLY, _SIGN_RANDOM, _SIGN_FAST], 1, 1, 1
)
register_command("Persist", persist, write_first_key, undo_expire, 2, _WRITE).attach_extra(
    [_SIGN_WRITE, _SIGN_FAST], 1, 1, 1
)
register_command("Exists", exists, read_all_keys, None, -2, _READ).attach_extra(
    [_SIGN_READONLY, _SIGN_FAST], 1, 1, 1
)
register_command("Type", type_of, read_first_key, None, 2, _READ).attach_extra(
    [_SIGN_READONLY, _SIGN_FAST], 1, 1, 1
)
register_command("Rename", rename, _prepare_rename, _undo_rename, 3, _READ).attach_extra(
    [_SIGN_WRITE], 1, 1, 1
)
register_command("RenameNx", renamenx, _prepare_rename, _undo_rename, 3, _READ).attach_extra(
    [_SIGN_WRITE, _SIGN_FAST], 1, 1, 1
)
register_command("Keys", keys, no_prepare, None, 2, _READ).attach_extra(
    [_SIGN_READONLY, _SIGN_SORT_FOR_SCRIPT], 1, 1, 1
)