from tttroom.backend.store import InMemoryKeyValueStore, PostgresKeyValueStore, create_store


def test_create_store_returns_postgres_store_when_database_url_present() -> None:
    store = create_store(database_url="postgresql://local")

    assert isinstance(store, PostgresKeyValueStore)


def test_create_store_returns_in_memory_store_when_database_url_missing() -> None:
    store = create_store(database_url=None)

    assert isinstance(store, InMemoryKeyValueStore)


def test_in_memory_store_get_set_delete() -> None:
    store = InMemoryKeyValueStore()

    assert store.get("k") is None
    store.set("k", "v1")
    store.set("k", "v2")
    assert store.get("k") == "v2"
    store.delete("k")
    store.delete("missing")
    assert store.get("k") is None


class _FakeCursor:
    def __init__(self, rows: list[tuple]) -> None:
        self.commands: list[tuple[str, tuple | None]] = []
        self._rows = rows

    def execute(self, sql: str, params: tuple | None = None) -> None:
        self.commands.append((sql, params))

    def fetchone(self) -> tuple | None:
        return self._rows.pop(0) if self._rows else None

    def __enter__(self) -> "_FakeCursor":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        return None


class _FakeConnection:
    def __init__(self, rows: list[tuple]) -> None:
        self.cursor_instance = _FakeCursor(rows)
        self.committed = False

    def cursor(self) -> _FakeCursor:
        return self.cursor_instance

    def commit(self) -> None:
        self.committed = True

    def __enter__(self) -> "_FakeConnection":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        return None


class _PostgresStoreWithFakeConnection(PostgresKeyValueStore):
    def __init__(self, rows: list[tuple] | None = None) -> None:
        super().__init__(database_url="postgresql://local")
        self.fake_connection = _FakeConnection(rows or [])

    def _connect(self) -> _FakeConnection:
        return self.fake_connection


def test_postgres_get_returns_value_or_none() -> None:
    store = _PostgresStoreWithFakeConnection(rows=[("[]",)])

    assert store.get("ttt.rooms.testnet") == "[]"
    assert store.get("ttt.rooms.testnet") is None
    sql, params = store.fake_connection.cursor_instance.commands[0]
    assert "SELECT value FROM kv_entries" in sql
    assert params == ("ttt.rooms.testnet",)


def test_postgres_set_upserts_and_commits() -> None:
    store = _PostgresStoreWithFakeConnection()

    store.set("ttt.rooms.mainnet", '[{"id": "a"}]')

    sql, params = store.fake_connection.cursor_instance.commands[0]
    assert "INSERT INTO kv_entries" in sql
    assert "ON CONFLICT (key)" in sql
    assert params[:2] == ("ttt.rooms.mainnet", '[{"id": "a"}]')
    assert store.fake_connection.committed is True


def test_postgres_delete_and_schema_commit() -> None:
    store = _PostgresStoreWithFakeConnection()

    store.delete("k")
    store.ensure_schema()

    commands = store.fake_connection.cursor_instance.commands
    assert "DELETE FROM kv_entries" in commands[0][0]
    assert "CREATE TABLE IF NOT EXISTS kv_entries" in commands[1][0]
    assert store.fake_connection.committed is True
