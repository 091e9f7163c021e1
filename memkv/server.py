"""A multi-database server that dispatches command lines to its databases."""

from __future__ import annotations

import copy as _copy
from dataclasses import dataclass
from typing import Any, Optional, Sequence

from memkv import hashes, keys, lists  # noqa: F401  (registers their commands)
from memkv.db import DB, KeyEventCallback
from memkv.replies import (
    OK,
    ArgumentCountError,
    CommandError,
    CommandSyntaxError,
    Status,
)
from memkv.router import validate_arity

DEFAULT_DATABASES = 16

_OUT_OF_RANGE = "ERR DB index is out of range"


def _text(raw) -> str:
    if isinstance(raw, (bytes, bytearray, memoryview)):
        return bytes(raw).decode("utf-8", "surrogateescape")
    return str(raw)


def _bytes(raw) -> bytes:
    if isinstance(raw, str):
        return raw.encode("utf-8", "surrogateescape")
    return bytes(raw)


def _parse_index(raw) -> int:
    """Parse a database index; raises ValueError when it is not an integer."""
    text = _text(raw)
    if not text or text.strip() != text:
        raise ValueError(text)
    return int(text, 10)


@dataclass
class Connection:
    """Client state the server keeps per connection."""

    db_index: int = 0

    def select_db(self, index: int) -> None:
        """Make ``index`` the database this connection works on."""
        self.db_index = index


class Server:
    """A set of numbered databases behind one command entry point."""

    def __init__(self, databases: int = DEFAULT_DATABASES) -> None:
        if not databases:
            databases = DEFAULT_DATABASES
        if databases < 0:
            raise ValueError("number of databases must be positive")
        self._dbs: list[DB] = [DB(index) for index in range(databases)]
        self._insert_callback: Optional[KeyEventCallback] = None
        self._delete_callback: Optional[KeyEventCallback] = None

    @property
    def databases(self) -> int:
        return len(self._dbs)

    # ---- command execution ----

    def exec(self, conn: Optional[Connection], cmd_line: Sequence):
        """Execute a command line for ``conn`` and return its reply.

        Command failures are raised as :class:`CommandError`; any other
        failure inside a command is reported as ``ERR unknown``.
        """
        if conn is None:
            conn = Connection()
        if not cmd_line:
            raise CommandError("ERR empty command")
        try:
            return self._dispatch(conn, list(cmd_line))
        except CommandError:
            raise
        except Exception as exc:
            raise CommandError("ERR unknown") from exc

    def _dispatch(self, conn: Connection, cmd_line: list):
        name = _text(cmd_line[0]).lower()
        args = cmd_line[1:]
        if name == "ping":
            return self._ping(args)
        if name == "flushall":
            return self.flush_all()
        if name == "flushdb":
            if not validate_arity(1, cmd_line):
                raise ArgumentCountError(name)
            return self._exec_flush_db(conn.db_index)
        if name == "select":
            if len(cmd_line) != 2:
                raise ArgumentCountError("select")
            return self._exec_select(conn, args)
        if name == "copy":
            if len(cmd_line) < 3:
                raise ArgumentCountError("copy")
            return self.copy(conn, args)
        return self.select_db(conn.db_index).exec(cmd_line)

    @staticmethod
    def _ping(args):
        if not args:
            return Status("PONG")
        if len(args) == 1:
            return _bytes(args[0])
        raise ArgumentCountError("ping")

    def _exec_select(self, conn: Connection, args):
        try:
            index = _parse_index(args[0])
        except ValueError:
            raise CommandError("ERR invalid DB index") from None
        if not 0 <= index < len(self._dbs):
            raise CommandError(_OUT_OF_RANGE)
        conn.select_db(index)
        return OK

    def _exec_flush_db(self, index: int):
        reply = self.flush_db(index)
        self._dbs[index].add_aof([b"FlushDB"])
        return reply

    # ---- databases ----

    def select_db(self, index: int) -> DB:
        """Return the database with the given index."""
        if not 0 <= index < len(self._dbs):
            raise CommandError(_OUT_OF_RANGE)
        return self._dbs[index]

    def _replace_db(self, index: int) -> None:
        old = self.select_db(index)
        new = DB(index)
        new.add_aof = old.add_aof
        new.insert_callback = self._insert_callback
        new.delete_callback = self._delete_callback
        self._dbs[index] = new

    def flush_db(self, index: int):
        """Empty the database with the given index."""
        self._replace_db(index)
        return OK

    def flush_all(self):
        """Empty every database."""
        for index in range(len(self._dbs)):
            self.flush_db(index)
        return OK

    # ---- COPY ----

    def copy(self, conn: Connection, args):
        """COPY source destination [DB index] [REPLACE]."""
        current = conn.db_index
        db = self.select_db(current)
        src_key = _text(args[0])
        dest_key = _text(args[1])
        dest_index = current
        replace = False

        options = iter(args[2:])
        for raw in options:
            option = _text(raw).lower()
            if option == "db":
                value = next(options, None)
                if value is None:
                    raise CommandSyntaxError()
                try:
                    index = _parse_index(value)
                except ValueError:
                    raise CommandSyntaxError() from None
                if not 0 <= index < len(self._dbs):
                    raise CommandError(_OUT_OF_RANGE)
                dest_index = index
            elif option == "replace":
                replace = True
            else:
                raise CommandSyntaxError()

        if src_key == dest_key and dest_index == current:
            raise CommandError("ERR source and destination objects are the same")

        entity = db.get_entity(src_key)
        if entity is None:
            return 0

        dest_db = self.select_db(dest_index)
        if dest_db.get_entity(dest_key) is not None and not replace:
            return 0

        dest_db.put_entity(dest_key, _copy.deepcopy(entity))
        expire_at = db.get_expiration(src_key)
        if expire_at is not None:
            dest_db.expire(dest_key, expire_at)
        else:
            dest_db.persist(dest_key)
        db.add_aof([b"copy", *(_bytes(arg) for arg in args)])
        return 1

    # ---- inspection ----

    def get_entity(self, db_index: int, key: str) -> Any:
        """Return the value of ``key`` in a database, or None."""
        return self.select_db(db_index).get_entity(key)

    def get_expiration(self, db_index: int, key: str) -> Optional[float]:
        """Return the Unix time at which ``key`` expires, or None."""
        return self.select_db(db_index).get_expiration(key)

    def get_db_size(self, db_index: int) -> tuple[int, int]:
        """Return the number of keys and of keys with an expiration."""
        total = 0
        with_ttl = 0
        for _key, _entity, expiration in self.select_db(db_index).items():
            total += 1
            if expiration is not None:
                with_ttl += 1
        return total, with_ttl

    # ---- callbacks ----

    def set_key_inserted_callback(self, callback: Optional[KeyEventCallback]) -> None:
        """Call ``callback(db_index, key, value)`` whenever a key is created."""
        self._insert_callback = callback
        for db in self._dbs:
            db.insert_callback = callback

    def set_key_deleted_callback(self, callback: Optional[KeyEventCallback]) -> None:
        """Call ``callback(db_index, key, value)`` whenever a key is removed."""
        self._delete_callback = callback
        for db in self._dbs:
            db.delete_callback = callback