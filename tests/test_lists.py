import pytest

from memkv import lists
from memkv.db import DB
from memkv.replies import OK, ArgumentCountError, CommandError, WrongTypeError

SIZE = 100


@pytest.fixture
def db():
    return DB(0)


def _values(prefix, count=SIZE):
    return [f"{prefix}{i:04d}".encode() for i in range(count)]


def test_rpush_single(db):
    values = _values("r")
    for i, value in enumerate(values):
        assert db.exec([b"rpush", b"k", value]) == i + 1
    assert db.exec([b"lrange", b"k", b"0", b"-1"]) == values


def test_rpush_multi(db):
    values = _values("m")
    assert db.exec([b"rpush", b"k", *values]) == SIZE
    assert db.exec([b"lrange", b"k", b"0", b"-1"]) == values


def test_lpush_single(db):
    values = _values("l")
    for i, value in enumerate(values):
        assert db.exec([b"lpush", b"k", value]) == i + 1
    assert db.exec([b"lrange", b"k", b"0", b"-1"]) == list(reversed(values))


def test_lpush_multi(db):
    values = _values("lm")
    assert db.exec([b"lpush", b"k", *values]) == SIZE
    assert db.exec([b"lrange", b"k", b"0", b"-1"]) == list(reversed(values))


@pytest.mark.parametrize(
    "start, end, expected",
    [
        ("0", "9", slice(0, 10)),
        ("0", "200", slice(0, SIZE)),
        ("0", "-10", slice(0, SIZE - 10 + 1)),
        ("0", "-200", slice(0, 0)),
        ("-10", "-1", slice(90, None)),
    ],
)
def test_lrange(db, start, end, expected):
    values = _values("v")
    for value in values:
        db.exec([b"rpush", b"k", value])
    assert db.exec(["lrange", "k", start, end]) == values[expected]


def test_lrange_start_beyond_end(db):
    db.exec(["rpush", "k", "a", "b"])
    assert db.exec(["lrange", "k", "5", "10"]) == []


def test_lindex(db):
    values = _values("i")
    for value in values:
        db.exec([b"rpush", b"k", value])
    assert db.exec(["llen", "k"]) == SIZE
    for i in range(SIZE):
        assert db.exec(["lindex", "k", str(i)]) == values[i]
    for i in range(1, SIZE + 1):
        assert db.exec(["lindex", "k", str(-i)]) == values[SIZE - i]


def test_lindex_out_of_range(db):
    db.exec(["rpush", "k", "a"])
    assert db.exec(["lindex", "k", "1"]) is None
    assert db.exec(["lindex", "k", "-2"]) is None
    assert db.exec(["lindex", "missing", "0"]) is None


def test_lrem(db):
    db.exec(["rpush", "k", "a", "b", "a", "a", "c", "a", "a"])
    assert db.exec(["lrem", "k", "1", "a"]) == 1
    assert db.exec(["llen", "k"]) == 6
    assert db.exec(["lrem", "k", "-2", "a"]) == 2
    assert db.exec(["llen", "k"]) == 4
    assert db.exec(["lrem", "k", "0", "a"]) == 2
    assert db.exec(["llen", "k"]) == 2
    assert db.exec(["lrange", "k", "0", "-1"]) == [b"b", b"c"]


def test_lrem_tail_order(db):
    db.exec(["rpush", "k", "a", "x", "a", "y", "a"])
    assert db.exec(["lrem", "k", "-2", "a"]) == 2
    assert db.exec(["lrange", "k", "0", "-1"]) == [b"a", b"x", b"y"]


def test_lset(db):
    db.exec(["rpush", "k", "a", "b", "c", "d", "e", "f"])
    size = 6
    for i in range(size):
        value = f"new{i}".encode()
        assert db.exec(["lset", "k", str(i), value]) == OK
        assert db.exec(["lindex", "k", str(i)]) == value
    for i in range(1, size + 1):
        value = f"neg{i}".encode()
        assert db.exec(["lset", "k", str(-i), value]) == OK
        assert db.exec(["lindex", "k", str(size - i)]) == value


def test_lset_errors(db):
    db.exec(["rpush", "k", "a", "b", "c", "d", "e", "f"])
    with pytest.raises(CommandError) as info:
        db.exec(["lset", "k", "-8", "x"])
    assert info.value.message == "ERR index out of range"
    with pytest.raises(CommandError) as info:
        db.exec(["lset", "k", "7", "x"])
    assert info.value.message == "ERR index out of range"
    with pytest.raises(CommandError) as info:
        db.exec(["lset", "k", "a", "x"])
    assert info.value.message == "ERR value is not an integer or out of range"
    with pytest.raises(CommandError) as info:
        db.exec(["lset", "missing", "0", "x"])
    assert info.value.message == "ERR no such key"


def test_lpop(db):
    values = ["a", "b", "c", "d", "e", "f"]
    db.exec(["rpush", "k", *values])
    for value in values:
        assert db.exec(["lpop", "k"]) == value.encode()
    assert db.exec(["rpop", "k"]) is None
    assert db.get_entity("k") is None


def test_rpop(db):
    values = ["a", "b", "c", "d", "e", "f"]
    db.exec(["rpush", "k", *values])
    for value in reversed(values):
        assert db.exec(["rpop", "k"]) == value.encode()
    assert db.exec(["rpop", "k"]) is None


def test_rpoplpush(db):
    values = ["a", "b", "c", "d", "e", "f"]
    db.exec(["rpush", "k1", *values])
    for value in reversed(values):
        assert db.exec(["rpoplpush", "k1", "k2"]) == value.encode()
        assert db.exec(["lindex", "k2", "0"]) == value.encode()
    assert db.exec(["rpop", "k1"]) is None
    assert db.exec(["lrange", "k2", "0", "-1"]) == [v.encode() for v in values]


def test_rpoplpush_missing_source(db):
    assert db.exec(["rpoplpush", "none", "k2"]) is None
    assert db.get_entity("k2") is None


def test_rpushx(db):
    assert db.exec(["rpushx", "k", "1"]) == 0
    db.exec(["rpush", "k", "1"])
    for i in range(10):
        value = f"v{i}".encode()
        assert db.exec(["rpushx", "k", value]) == i + 2
        assert db.exec(["lindex", "k", "-1"]) == value


def test_lpushx(db):
    assert db.exec(["rpushx", "k", "1"]) == 0
    assert db.exec(["lpushx", "k", "1"]) == 0
    db.exec(["lpush", "k", "1"])
    for i in range(10):
        value = f"v{i}".encode()
        assert db.exec(["lpushx", "k", value]) == i + 2
        assert db.exec(["lindex", "k", "0"]) == value


def test_rpushx_direct_argument_count(db):
    with pytest.raises(ArgumentCountError) as info:
        lists.rpushx(db, [b"k"])
    assert info.value.message == "ERR wrong number of arguments for 'rpush' command"


def test_ltrim(db):
    values = [b"a", b"b", b"c", b"d", b"e", b"f"]
    assert db.exec(["rpush", "k", "a", "b", "c", "d", "e", "f"]) == 6

    assert db.exec(["ltrim", "k", "1", "-2"]) == OK
    assert db.exec(["lrange", "k", "0", "-1"]) == values[1:5]

    assert db.exec(["ltrim", "k", "-3", "-2"]) == OK
    assert db.exec(["lrange", "k", "0", "-1"]) == values[2:4]

    assert db.exec(["ltrim", "k", "1", "0"]) == OK
    assert db.exec(["lrange", "k", "0", "-1"]) == []


def test_ltrim_direct_argument_count(db):
    with pytest.raises(CommandError) as info:
        lists.ltrim(db, [b"k", b"0"])
    assert info.value.message == "ERR wrong number of arguments (given 2, expected 3)"


def test_ltrim_missing_key(db):
    assert db.exec(["ltrim", "missing", "0", "1"]) == OK
    assert db.get_entity("missing") is None


def test_linsert(db):
    assert db.exec(["rpush", "k", "a", "b", "c", "d", "e", "f"]) == 6

    assert db.exec(["linsert", "k", "before", "d", "0"]) == 7
    assert db.exec(["lrange", "k", "0", "-1"]) == [
        b"a", b"b", b"c", b"0", b"d", b"e", b"f",
    ]

    assert db.exec(["linsert", "k", "after", "d", "1"]) == 8
    assert db.exec(["lrange", "k", "0", "-1"]) == [
        b"a", b"b", b"c", b"0", b"d", b"1", b"e", b"f",
    ]

    with pytest.raises(CommandError) as info:
        db.exec(["linsert", "k", "test", "d", "1"])
    assert info.value.message == "ERR syntax error"

    with pytest.raises(CommandError) as info:
        db.exec(["linsert", "k", "test", "d"])
    assert info.value.message == "ERR wrong number of arguments for 'linsert' command"

    assert db.exec(["linsert", "k", "before", "z", "2"]) == -1


def test_wrong_type(db):
    db.put_entity("h", {"f": b"v"})
    with pytest.raises(WrongTypeError):
        db.exec(["lpush", "h", "a"])
    with pytest.raises(WrongTypeError):
        db.exec(["llen", "h"])


def test_records_aof(db):
    recorded = []
    db.add_aof = recorded.append
    db.exec([b"rpush", b"k", b"a"])
    db.exec([b"lpop", b"k"])
    assert recorded == [[b"rpush", b"k", b"a"], [b"lpop", b"k"]]


def test_undo_lpush(db):
    cmd_line = [b"lpush", b"k", b"value"]
    db.exec(cmd_line)
    undo_lines = lists.undo_lpush(db, cmd_line[1:])
    db.exec(cmd_line)
    for line in undo_lines:
        db.exec(line)
    assert db.exec(["llen", "k"]) == 1


def test_undo_lpop(db):
    db.exec(["lpush", "k", "value", "value"])
    cmd_line = [b"lpop", b"k"]
    undo_lines = lists.undo_lpop(db, cmd_line[1:])
    db.exec(cmd_line)
    for line in undo_lines:
        db.exec(line)
    assert db.exec(["llen", "k"]) == 2


def test_undo_lset(db):
    db.exec(["lpush", "k", "value", "value"])
    cmd_line = [b"lset", b"k", b"1", b"value2"]
    undo_lines = lists.undo_lset(db, cmd_line[1:])
    db.exec(cmd_line)
    for line in undo_lines:
        db.exec(line)
    assert db.exec(["lindex", "k", "1"]) == b"value"


def test_undo_rpop(db):
    db.exec(["rpush", "k", "value", "value"])
    cmd_line = [b"rpop", b"k"]
    undo_lines = lists.undo_rpop(db, cmd_line[1:])
    db.exec(cmd_line)
    for line in undo_lines:
        db.exec(line)
    assert db.exec(["llen", "k"]) == 2


def test_undo_rpush(db):
    db.exec(["rpush", "k", "a"])
    cmd_line = [b"rpush", b"k", b"b", b"c"]
    undo_lines = lists.undo_rpush(db, cmd_line[1:])
    db.exec(cmd_line)
    for line in undo_lines:
        db.exec(line)
    assert db.exec(["lrange", "k", "0", "-1"]) == [b"a"]


def test_undo_rpoplpush(db):
    db.exec(["lpush", "k1", "value"])
    cmd_line = [b"rpoplpush", b"k1", b"k2"]
    undo_lines = lists.undo_rpoplpush(db, cmd_line[1:])
    db.exec(cmd_line)
    for line in undo_lines:
        db.exec(line)
    assert db.exec(["llen", "k1"]) == 1
    assert db.exec(["llen", "k2"]) == 0


def test_undo_on_missing_key_is_empty(db):
    assert lists.undo_lpop(db, [b"none"]) == []
    assert lists.undo_rpop(db, [b"none"]) == []
    assert lists.undo_lset(db, [b"none", b"0", b"x"]) == []
    assert lists.undo_rpoplpush(db, [b"none", b"k2"]) == []