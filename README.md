# memkv

memkv is an in-memory key-value database engine that runs inside your Python
process. It takes command lines in the same form a Redis server takes them and
returns plain Python values as replies. It has several numbered databases and
supports hashes, lists, key expiry, renaming and copying keys.

It uses only the standard library and needs Python 3.10 or later.

## Installation

```
pip install memkv
```

## Usage

A `memkv.server.Server` holds a fixed number of databases (16 by default;
passing `0` also gives 16, a negative number raises `ValueError`). A
`memkv.server.Connection` records which database a client has selected
(`db_index`, 0 at the start). A command line is a sequence whose first item
names the command; items may be `bytes` or `str`. Command names are not
case-sensitive.

```python
from memkv.replies import encode
from memkv.server import Connection, Server

server = Server(databases=16)
conn = Connection()

server.exec(conn, [b"hset", b"user:1", b"name", b"alice"])    # 1
server.exec(conn, [b"hget", b"user:1", b"name"])              # b"alice"

server.exec(conn, [b"rpush", b"queue", b"a", b"b", b"c"])     # 3
reply = server.exec(conn, [b"lrange", b"queue", b"0", b"-1"])  # [b"a", b"b", b"c"]
print(encode(reply))   # b"*3\r\n$1\r\na\r\n$1\r\nb\r\n$1\r\nc\r\n"

server.exec(conn, [b"expire", b"queue", b"60"])               # 1
server.exec(conn, [b"ttl", b"queue"])                         # 59 or 60

server.exec(conn, [b"copy", b"user:1", b"user:2", b"db", b"1"])
server.exec(conn, [b"select", b"1"])
```

Passing `None` as the connection uses a fresh connection on database 0.

### Replies

Commands return ordinary values:

| Value | Meaning |
| --- | --- |
| `int` | integer reply |
| `bytes` | bulk string |
| `None` | null bulk string (missing key or field) |
| `list` | multi-bulk reply; items may be `None` or nested lists |
| `memkv.replies.Status` | status reply such as `OK`, `PONG` or a type name |

`memkv.replies.encode(reply)` turns any of these, or a `CommandError`, into
the RESP wire format.

### Errors

A failing command raises an exception instead of returning an error reply.
All of them derive from `memkv.replies.CommandError`, whose `message` holds
the text a client would receive.

| Exception | Raised when |
| --- | --- |
| `WrongTypeError` | a key holds a value of another kind than the command works on |
| `CommandSyntaxError` | a command's options are malformed |
| `ArgumentCountError` | a command has the wrong number of arguments |
| `CommandError` | anything else: unknown command, bad integer, index out of range, ... |

`Server.exec` reports any other exception raised inside a command as
`CommandError("ERR unknown")`.

### Supported commands

- **Hashes:** `hset`, `hsetnx`, `hget`, `hexists`, `hdel`, `hlen`, `hstrlen`,
  `hmset`, `hmget`, `hkeys`, `hvals`, `hgetall`, `hincrby`, `hincrbyfloat`,
  `hrandfield` (positive count gives distinct fields, negative count may
  repeat them)
- **Lists:** `lpush`, `lpushx`, `rpush`, `rpushx`, `lpop`, `rpop`,
  `rpoplpush`, `lindex`, `llen`, `lrange`, `lrem`, `lset`, `ltrim`, `linsert`
- **Keys:** `del`, `exists`, `type`, `rename`, `renamenx`, `expire`,
  `expireat`, `expiretime`, `pexpire`, `pexpireat`, `pexpiretime`, `ttl`,
  `pttl`, `persist`, `keys` (glob patterns with `*`, `?`, `[...]`, `[^...]`,
  ranges and `\` escapes)
- **Server:** `ping`, `select`, `copy` (with `DB index` and `REPLACE`),
  `flushdb`, `flushall`

A key is deleted when its last hash field or list element is removed.
Expired keys are removed lazily, the first time a command looks at them.

### Working with a single database

`memkv.db.DB` is one keyspace and can be used on its own:

- `exec(cmd_line)` runs a registered command, locking the keys it names and
  counting a version for each key it writes (`get_version(key)`).
- `get_entity`, `put_entity`, `put_if_exists`, `put_if_absent`, `remove`,
  `removes`, `flush`
- `expire(key, unix_seconds)`, `persist`, `is_expired`, `get_expiration`
- `items()` yields `(key, value, expiration)` for every stored key; it does
  not check expiry itself.
- `locked(write_keys, read_keys)` is a context manager holding the keys'
  locks.
- `add_aof` is a callable that write commands call with the command line
  they applied; by default it does nothing.

Hash values are stored as `dict`, lists as `list`, field and element values
as `bytes`.

The `Server` also offers `select_db(index)`, `flush_db(index)`,
`flush_all()`, `get_entity(db_index, key)`, `get_expiration(db_index, key)`,
`get_db_size(db_index)` (number of keys and of keys with an expiry) and
`set_key_inserted_callback` / `set_key_deleted_callback`, which call
`callback(db_index, key, value)` as keys are created and removed.

### Registering commands

The command table is in `memkv.router`:

- `register_command(name, executor, prepare, undo, arity, flags)` adds a
  command; an executor is called as `executor(db, args)`. A negative arity
  means "at least".
- `lookup(name)` returns the registered `Command`, or `None`.
- `Command.describe()` returns the command's metadata in the shape of a
  `COMMAND` reply entry.
- `write_first_key`, `read_first_key`, `write_all_keys`, `read_all_keys` and
  `no_prepare` are ready-made `prepare` functions.

Write commands carry an `undo` function that, called before the command runs,
returns command lines restoring the current state (for example
`memkv.lists.undo_lpush` or `memkv.keys.undo_expire`).

## What it does not do

- It has no string commands (`set`, `get`, `incr`, ...) and no set, sorted
  set or geo commands.
- It does not listen on a network socket; commands are run by calling
  `exec` from Python.
- It keeps nothing on disk: there is no append-only file or snapshot
  loading or saving. `add_aof` only hands command lines to a callable you
  provide.
- It has no transactions (`multi`/`exec`/`watch`), publish/subscribe,
  authentication or replication.

## Running the tests

```
pip install memkv[test]
pytest
```