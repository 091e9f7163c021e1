"""A single keyspace: data, expirations, versions and key locks."""

from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from itertools import chain
from typing import Any, Callable, Iterator, Optional, Sequence

from memkv.replies import ArgumentCountError, CommandError
from memkv.router import Command, lookup, validate_arity

KeyEventCallback = Callable[[int, str, Any], None]

_LOCK_STRIPES = 256
_VERSION_MASK = 0xFFFFFFFF


def _text(raw) -> str:
    if isinstance(raw, (bytes, bytearray)):
        return bytes(raw).decode("utf-8", "surrogateescape")
    return str(raw)


class DB:
    """One numbered database.

    Values are stored as plain Python objects keyed by ``str``. Expired keys
    are removed lazily, the first time they are looked at after their
    expiration time.
    """

    def __init__(self, index: int = 0) -> None:
        self.index = index
        self._data: dict[str, Any] = {}
        self._ttl: dict[str, float] = {}
        self._versions: dict[str, int] = {}
        self._locks = [threading.RLock() for _ in range(_LOCK_STRIPES)]
        self.add_aof: Callable[[list], None] = lambda cmd_line: None
        self.insert_callback: Optional[KeyEventCallback] = None
        self.delete_callback: Optional[KeyEventCallback] = None

    # ---- command execution ----

    def _resolve(self, cmd_line: Sequence) -> Command:
        if not cmd_line:
            raise CommandError("ERR empty command")
        name = _text(cmd_line[0]).lower()
        command = lookup(name)
        if command is None or command.executor is None:
            raise CommandError(f"ERR unknown command '{name}'")
        if not validate_arity(command.arity, cmd_line):
            raise ArgumentCountError(name)
        return command

    def exec(self, cmd_line: Sequence):
        """Run a command line, locking and versioning the keys it touches."""
        command = self._resolve(cmd_line)
        args = list(cmd_line[1:])
        if command.prepare is None:
            write_keys, read_keys = [], []
        else:
            write_keys, read_keys = command.prepare(args)
        self._add_version(write_keys)
        with self.locked(write_keys, read_keys):
            return command.executor(self, args)

    def exec_with_lock(self, cmd_line: Sequence):
        """Run a command line whose keys the caller has already locked."""
        command = self._resolve(cmd_line)
        return command.executor(self, list(cmd_line[1:]))

    @contextmanager
    def locked(self, write_keys=(), read_keys=()) -> Iterator[None]:
        """Hold the locks of the given keys for the duration of the block."""
        stripes = sorted(
            {hash(key) % _LOCK_STRIPES for key in chain(write_keys or (), read_keys or ())}
        )
        acquired: list[threading.RLock] = []
        try:
            for stripe in stripes:
                lock = self._locks[stripe]
                lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()

    # ---- data access ----

    def get_entity(self, key: str):
        """Return the value bound to ``key``, or None if absent or expired."""
        entity = self._data.get(key)
        if entity is None or self.is_expired(key):
            return None
        return entity

    def put_entity(self, key: str, entity) -> int:
        """Bind ``entity`` to ``key``; returns 1 if the key is new, else 0."""
        inserted = 0 if key in self._data else 1
        self._data[key] = entity
        callback = self.insert_callback
        if inserted and callback is not None:
            callback(self.index, key, entity)
        return inserted

    def put_if_exists(self, key: str, entity) -> int:
        """Replace the value of an existing key; returns 1 if it existed."""
        if key not in self._data:
            return 0
        self._data[key] = entity
        return 1

    def put_if_absent(self, key: str, entity) -> int:
        """Bind ``entity`` only if ``key`` is absent; returns 1 if inserted."""
        if key in self._data:
            return 0
        self._data[key] = entity
        callback = self.insert_callback
        if callback is not None:
            callback(self.index, key, entity)
        return 1

    def remove(self, key: str) -> None:
        """Delete ``key`` together with its expiration."""
        entity = self._data.pop(key, None)
        self._ttl.pop(key, None)
        callback = self.delete_callback
        if callback is not None:
            callback(self.index, key, entity)

    def removes(self, *args: str) -> int:
        """Delete the given keys and return how many were present."""
        deleted = 0
        for key in args:
            if key in self._data:
                self.remove(key)
                deleted += 1
        return deleted

    def flush(self) -> None:
        """Drop every key and expiration."""
        self._data.clear()
        self._ttl.clear()

    # ---- expiration ----

    def expire(self, key: str, expire_at: float) -> None:
        """Make ``key`` expire at the given Unix time in seconds."""
        self._ttl[key] = expire_at

    def persist(self, key: str) -> None:
        """Remove the expiration of ``key``."""
        self._ttl.pop(key, None)

    def is_expired(self, key: str) -> bool:
        """Tell whether ``key`` has expired, removing it if so."""
        expire_at = self._ttl.get(key)
        if expire_at is None:
            return False
        expired = time.time() > expire_at
        if expired:
            self.remove(key)
        return expired

    def get_expiration(self, key: str) -> Optional[float]:
        """Return the Unix time at which ``key`` expires, or None."""
        return self._ttl.get(key)

    # ---- versions ----

    def _add_version(self, keys) -> None:
        for key in keys:
            self._versions[key] = (self.get_version(key) + 1) & _VERSION_MASK

    def get_version(self, key: str) -> int:
        """Return how many times ``key`` has been written by commands."""
        return self._versions.get(key, 0)

    # ---- traversal ----

    def items(self) -> Iterator[tuple[str, Any, Optional[float]]]:
        """Yield ``(key, value, expiration)`` for every stored key."""
        for key, entity in list(self._data.items()):
            yield key, entity, self._ttl.get(key)