"""Replies produced by commands and their RESP wire encoding.

Commands return plain Python values:

* ``int`` for integer replies,
* ``bytes`` (or ``str``) for bulk strings,
* ``None`` for the null bulk string,
* ``list``/``tuple`` for multi-bulk replies (elements may nest),
* :class:`Status` for simple status replies such as ``OK``.

Failures are raised as :class:`CommandError` and its subclasses.
"""

from __future__ import annotations

from dataclasses import dataclass

CRLF = b"\r\n"


class CommandError(Exception):
    """A command failed; ``message`` is the text a client receives."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class WrongTypeError(CommandError):
    """The key holds a value of another type than the command expects."""

    def __init__(self) -> None:
        super().__init__(
            "WRONGTYPE Operation against a key holding the wrong kind of value"
        )


class CommandSyntaxError(CommandError):
    """The command's arguments are malformed."""

    def __init__(self) -> None:
        super().__init__("ERR syntax error")


class ArgumentCountError(CommandError):
    """The command was given the wrong number of arguments."""

    def __init__(self, command: str) -> None:
        super().__init__(f"ERR wrong number of arguments for '{command}' command")
        self.command = command


@dataclass(frozen=True)
class Status:
    """A simple status reply, such as ``OK``."""

    text: str

    def __str__(self) -> str:
        return self.text


OK = Status("OK")


def _bulk(data: bytes) -> bytes:
    return b"$" + str(len(data)).encode() + CRLF + data + CRLF


def encode(reply) -> bytes:
    """Encode a reply value in the RESP wire format."""
    if isinstance(reply, CommandError):
        return b"-" + reply.message.encode() + CRLF
    if isinstance(reply, Status):
        return b"+" + reply.text.encode() + CRLF
    if reply is None:
        return b"$-1" + CRLF
    if isinstance(reply, bool):
        return b":" + str(int(reply)).encode() + CRLF
    if isinstance(reply, int):
        return b":" + str(reply).encode() + CRLF
    if isinstance(reply, str):
        return _bulk(reply.encode())
    if isinstance(reply, (bytes, bytearray, memoryview)):
        return _bulk(bytes(reply))
    if isinstance(reply, (list, tuple)):
        parts = [b"*" + str(len(reply)).encode() + CRLF]
        parts.extend(encode(item) for item in reply)
        return b"".join(parts)
    raise TypeError(f"cannot encode reply of type {type(reply).__name__}")