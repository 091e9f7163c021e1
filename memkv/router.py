"""Command table: registration, lookup and key preparation helpers."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Sequence, Tuple

Prepare = Callable[[Sequence[bytes]], Tuple[list, list]]
Executor = Callable[[Any, list], Any]
Undo = Callable[[Any, list], list]


class CommandFlag(enum.IntFlag):
    """Flags describing how a command touches data."""

    WRITE = 0
    READ_ONLY = 1
    SPECIAL = 2


def _text(raw) -> str:
    if isinstance(raw, (bytes, bytearray)):
        return bytes(raw).decode("utf-8", "surrogateescape")
    return str(raw)


@dataclass
class Command:
    """A registered command and the functions that run it."""

    name: str
    executor: Optional[Executor]
    prepare: Optional[Prepare]
    undo: Optional[Undo]
    arity: int
    flags: CommandFlag
    signs: Tuple[str, ...] = field(default=())
    key_spec: Optional[Tuple[int, int, int]] = None

    def attach_extra(self, signs, first_key, last_key, key_step) -> "Command":
        """Attach descriptive flags and key positions; returns the command."""
        self.signs = tuple(signs)
        self.key_spec = (first_key, last_key, key_step)
        return self

    def describe(self) -> list:
        """Describe the command in the shape of a COMMAND reply entry."""
        description: list = [self.name.encode(), self.arity]
        if self.key_spec is not None:
            description.append([sign.encode() for sign in self.signs])
            description.extend(self.key_spec)
        return description

    @property
    def read_only(self) -> bool:
        return bool(self.flags & CommandFlag.READ_ONLY)


_COMMANDS: dict[str, Command] = {}


def register_command(name, executor, prepare, undo, arity, flags) -> Command:
    """Register a command under its lower-cased name and return it."""
    command = Command(
        name=name.lower(),
        executor=executor,
        prepare=prepare,
        undo=undo,
        arity=arity,
        flags=CommandFlag(flags),
    )
    _COMMANDS[command.name] = command
    return command


def lookup(name) -> Optional[Command]:
    """Return the command registered under ``name``, or None."""
    return _COMMANDS.get(_text(name).lower())


def is_read_only_command(name) -> bool:
    command = lookup(name)
    return command is not None and command.read_only


def validate_arity(arity, cmd_line) -> bool:
    """Check a command line's length; negative arity means 'at least'."""
    count = len(cmd_line)
    if arity >= 0:
        return count == arity
    return count >= -arity


def _claim(args, write: int = 0, read: int = 0) -> Tuple[list, list]:
    """Claim the first ``write`` arguments as written keys, or the first ``read`` as read keys."""
    keys = [_text(arg) for arg in args[: max(write, read)]]
    if write:
        return keys, []
    return [], keys


def write_first_key(args):
    return _claim(args, write=1)


def read_first_key(args):
    return _claim(args, read=1)


def write_all_keys(args):
    return _claim(args, write=len(args))


def read_all_keys(args):
    return _claim(args, read=len(args))


def no_prepare(args):
    """Claim no keys: such commands scan the database instead of naming keys."""
    return _claim(args)