import sqlite3

from src.db.kv_store import (
    AUTO_SEQUENCE_KEY,
    BUSINESS_DATA_KEY,
    MemoryKeyValueStore,
    SQLiteKeyValueStore,
)


def test_sqlite_round_trip(tmp_path):
    db = tmp_path / "store.sqlite"
    kv = SQLiteKeyValueStore(str(db))
    kv.set({
        BUSINESS_DATA_KEY: [{"name": "Café Olé", "address": "12 Main St"}],
        AUTO_SEQUENCE_KEY: {"cursorIndex": 3, "isActive": True},
    })
    kv.close()

    kv = SQLiteKeyValueStore(str(db))
    try:
        got = kv.get([BUSINESS_DATA_KEY, AUTO_SEQUENCE_KEY])
    finally:
        kv.close()
    assert got[BUSINESS_DATA_KEY] == [{"name": "Café Olé", "address": "12 Main St"}]
    assert got[AUTO_SEQUENCE_KEY] == {"cursorIndex": 3, "isActive": True}


def test_sqlite_missing_keys_omitted(tmp_path):
    kv = SQLiteKeyValueStore(str(tmp_path / "store.sqlite"))
    try:
        assert kv.get([BUSINESS_DATA_KEY]) == {}
        assert kv.get([]) == {}
    finally:
        kv.close()


def test_sqlite_set_overwrites(tmp_path):
    db = tmp_path / "store.sqlite"
    kv = SQLiteKeyValueStore(str(db))
    try:
        kv.set({AUTO_SEQUENCE_KEY: {"cursorIndex": 1, "isActive": True}})
        kv.set({AUTO_SEQUENCE_KEY: {"cursorIndex": 2, "isActive": False}})
        assert kv.get([AUTO_SEQUENCE_KEY])[AUTO_SEQUENCE_KEY] == {"cursorIndex": 2, "isActive": False}
    finally:
        kv.close()

    conn = sqlite3.connect(str(db))
    try:
        rows = conn.execute("SELECT COUNT(*) FROM kv").fetchone()
    finally:
        conn.close()
    assert rows[0] == 1


def test_memory_store_copies_values():
    kv = MemoryKeyValueStore()
    value = [{"name": "Blue Door"}]
    kv.set({BUSINESS_DATA_KEY: value})
    value[0]["name"] = "changed"
    got = kv.get([BUSINESS_DATA_KEY])[BUSINESS_DATA_KEY]
    assert got == [{"name": "Blue Door"}]
    got[0]["name"] = "changed again"
    assert kv.get([BUSINESS_DATA_KEY])[BUSINESS_DATA_KEY] == [{"name": "Blue Door"}]
    assert kv.set_calls == 1
