import time

import pytest

import memkv.hashes  # noqa: F401  registers hash commands
import memkv.lists  # noqa: F401  registers list commands
from memkv import keys
from memkv.db import DB
from memkv.replies import OK, CommandError, Status
from memkv.router import lookup


@pytest.fixture
def db():
    return DB(0)


def set_string(db, key, value, ttl=None):
    db.put_entity(key, value.encode())
    if ttl is not None:
        db.expire(key, time.time() + ttl)


def test_exists(db):
    set_string(db, "k1", "v")
    assert db.exec([b"exists", b"k1"]) == 1
    assert db.exec([b"exists", b"other"]) == 0
    assert db.exec([b"exists", b"k1", b"k1", b"other"]) == 2


def test_type(db):
    set_string(db, "k", "v")
    assert db.exec([b"type", b"k"]) == Status("string")
    db.remove("k")
    assert db.exec([b"type", b"k"]) == Status("none")
    db.exec([b"rpush", b"k", b"v"])
    assert db.exec([b"type", b"k"]) == Status("list")
    db.remove("k")
    db.exec([b"hset", b"k", b"k", b"v"])
    assert db.exec([b"type", b"k"]) == Status("hash")
    db.remove("k")
    db.put_entity("k", {"v"})
    assert db.exec([b"type", b"k"]) == Status("set")


def test_type_of_unknown_value(db):
    db.put_entity("k", object())
    with pytest.raises(CommandError):
        keys.type_of(db, [b"k"])


def test_rename_keeps_ttl(db):
    set_string(db, "key", "value", ttl=1000)
    assert db.exec([b"rename", b"key", b"key2"]) == OK
    assert db.exec([b"exists", b"key"]) == 0
    assert db.exec([b"exists", b"key2"]) == 1
    assert db.exec([b"ttl", b"key2"]) > 0


def test_rename_missing_key(db):
    with pytest.raises(CommandError) as info:
        db.exec([b"rename", b"nope", b"dest"])
    assert info.value.message == "no such key"


def test_renamenx(db):
    set_string(db, "key", "value", ttl=1000)
    assert db.exec([b"RenameNx", b"key", b"key2"]) == 1
    assert db.exec([b"exists", b"key"]) == 0
    assert db.exec([b"exists", b"key2"]) == 1
    assert db.exec([b"ttl", b"key2"]) > 0


def test_renamenx_existing_destination(db):
    set_string(db, "a", "1")
    set_string(db, "b", "2")
    assert db.exec([b"renamenx", b"a", b"b"]) == 0
    assert db.get_entity("b") == b"2"
    assert db.get_entity("a") == b"1"


def test_ttl_and_persist(db):
    set_string(db, "key", "value")
    assert db.exec([b"expire", b"key", b"1000"]) == 1
    assert db.exec([b"ttl", b"key"]) > 0
    assert db.exec([b"persist", b"key"]) == 1
    assert db.exec([b"ttl", b"key"]) == -1
    assert db.exec([b"persist", b"key"]) == 0
    assert db.exec([b"PExpire", b"key", b"1000000"]) == 1
    assert db.exec([b"PTTL", b"key"]) > 0


def test_expire_removes_key(db):
    set_string(db, "key", "value")
    db.exec([b"PEXPIRE", b"key", b"100"])
    time.sleep(0.3)
    assert db.exec([b"TTL", b"key"]) == -2


def test_expire_missing_key(db):
    assert db.exec([b"expire", b"nope", b"10"]) == 0
    assert db.exec([b"ttl", b"nope"]) == -2


def test_expire_invalid_integer(db):
    set_string(db, "key", "value")
    with pytest.raises(CommandError) as info:
        db.exec([b"expire", b"key", b"abc"])
    assert info.value.message == "ERR value is not an integer or out of range"


def test_expireat(db):
    set_string(db, "key", "value")
    at = int(time.time()) + 60
    assert db.exec([b"ExpireAt", b"key", str(at).encode()]) == 1
    assert db.exec([b"ttl", b"key"]) > 0
    at = int(time.time()) + 60
    assert db.exec([b"PExpireAt", b"key", str(at * 1000).encode()]) == 1
    assert db.exec([b"ttl", b"key"]) > 0


def test_expiretime(db):
    set_string(db, "key", "value")
    assert db.exec([b"ttl", b"key"]) == -1
    assert db.exec([b"EXPIRETIME", b"key"]) == -1
    assert db.exec([b"PEXPIRETIME", b"key"]) == -1

    db.exec([b"EXPIRE", b"key", b"2"])
    assert 0 <= db.exec([b"ttl", b"key"]) <= 2
    seconds = db.exec([b"EXPIRETIME", b"key"])
    assert abs(seconds - (time.time() + 2)) <= 1
    millis = db.exec([b"PEXPIRETIME", b"key"])
    assert abs(millis - (time.time() + 2) * 1000) <= 1000

    past = int(time.time()) - 10
    db.exec([b"EXPIREAT", b"key", str(past).encode()])
    assert db.exec([b"ttl", b"key"]) == -2
    assert db.exec([b"EXPIRETIME", b"key"]) == -2
    assert db.exec([b"PEXPIRETIME", b"key"]) == -2


def test_keys(db):
    set_string(db, "key", "value")
    set_string(db, "a:key", "value")
    set_string(db, "b:key", "value")
    set_string(db, "b:key", "value")
    set_string(db, "c:key", "value")
    db.expire("c:key", time.time() - 1)
    assert len(db.exec([b"keys", b"*"])) == 3
    assert db.exec([b"keys", b"a:*"]) == [b"a:key"]
    assert sorted(db.exec([b"keys", b"?:*"])) == [b"a:key", b"b:key"]


def test_keys_character_class(db):
    for name in ("hallo", "hello", "hillo"):
        set_string(db, name, "v")
    assert sorted(db.exec([b"keys", b"h[ae]llo"])) == [b"hallo", b"hello"]
    assert db.exec([b"keys", b"h[^ae]llo"]) == [b"hillo"]


def test_keys_illegal_pattern(db):
    with pytest.raises(CommandError) as info:
        db.exec([b"keys", b"[abc"])
    assert info.value.message == "ERR illegal wildcard"


def test_delete_records_aof(db):
    recorded = []
    db.add_aof = recorded.append
    set_string(db, "a", "1")
    set_string(db, "b", "2")
    assert db.exec([b"del", b"a", b"b", b"c"]) == 2
    assert recorded == [[b"del", b"a", b"b", b"c"]]
    assert db.exec([b"del", b"a"]) == 0
    assert len(recorded) == 1


def test_flushdb(db):
    set_string(db, "a", "1")
    assert keys.flushdb(db, []) == OK
    assert db.get_entity("a") is None


def test_undo_expire(db):
    set_string(db, "k", "v")
    assert keys.undo_expire(db, [b"k"]) == [[b"PERSIST", b"k"]]
    db.expire("k", 1700000000.5)
    assert keys.undo_expire(db, [b"k"]) == [[b"PEXPIREAT", b"k", b"1700000000500"]]


def test_undo_del_restores_hash(db):
    db.exec([b"hset", b"h", b"f", b"v"])
    undo = lookup("del").undo(db, [b"h"])
    db.exec([b"del", b"h"])
    assert db.exec([b"exists", b"h"]) == 0
    for line in undo:
        db.exec(line)
    assert db.exec([b"hget", b"h", b"f"]) == b"v"
    assert db.exec([b"ttl", b"h"]) == -1


def test_undo_rename_restores_list(db):
    db.exec([b"rpush", b"src", b"a", b"b"])
    undo = lookup("rename").undo(db, [b"src", b"dst"])
    db.exec([b"rename", b"src", b"dst"])
    for line in undo:
        db.exec(line)
    assert db.exec([b"lrange", b"src", b"0", b"-1"]) == [b"a", b"b"]
    assert db.exec([b"exists", b"dst"]) == 0