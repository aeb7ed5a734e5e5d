import time

import pytest

from mysqlpool.builder import QueryBuilder
from mysqlpool.logger import Logger


class FakeCursor:
    def __init__(self, connection):
        self.connection = connection
        self.lastrowid = connection.lastrowid
        self.rowcount = connection.rowcount

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def execute(self, query, params=None):
        if self.connection.delay:
            time.sleep(self.connection.delay)
        self.connection.executed.append((query, params))
        return self.rowcount

    def fetchall(self):
        return self.connection.rows


class FakeConnection:
    def __init__(self, rows=(), lastrowid=7, rowcount=2, delay=0.0):
        self.rows = tuple(rows)
        self.lastrowid = lastrowid
        self.rowcount = rowcount
        self.delay = delay
        self.executed = []

    def cursor(self):
        return FakeCursor(self)


@pytest.fixture
def conn():
    return FakeConnection(rows=[(1, "a"), (2, "b")])


def builder(conn, table="users"):
    return QueryBuilder(conn, database="app").table(table)


def test_get_requires_table(conn):
    with pytest.raises(ValueError, match="Table is required"):
        QueryBuilder(conn).get()
    assert conn.executed == []


def test_get_requires_connection():
    with pytest.raises(ConnectionError):
        QueryBuilder(None).table("users").get()


def test_get_default_select(conn):
    rows = builder(conn).get()
    assert rows == [(1, "a"), (2, "b")]
    assert conn.executed == [("SELECT * FROM `users`", None)]


def test_select_quotes_plain_fields_only(conn):
    builder(conn).select("id", "u.name", "COUNT(id)").get()
    sql, _ = conn.executed[-1]
    assert "`id`" in sql
    assert "u.name" in sql and "`u.name`" not in sql
    assert "COUNT(id)" in sql and "`COUNT(id)`" not in sql


def test_select_without_fields_keeps_star(conn):
    builder(conn).select().get()
    sql, _ = conn.executed[-1]
    assert sql.startswith("SELECT * FROM")


def test_inner_join_defaults_to_equals(conn):
    builder(conn).inner_join("orders", "users.id", "orders.user_id").get()
    sql, _ = conn.executed[-1]
    assert "INNER JOIN `orders` ON users.id = orders.user_id" in sql


def test_join_with_operator_quotes_plain_columns(conn):
    builder(conn).left_join("t", "a", "<>", "b").right_join("s", "x.id", "y").get()
    sql, _ = conn.executed[-1]
    assert "LEFT JOIN `t`" in sql
    assert "`a` <> `b`" in sql
    assert "RIGHT JOIN `s`" in sql
    assert sql.index("LEFT JOIN") < sql.index("RIGHT JOIN")


def test_where_bindings_and_like(conn):
    builder(conn).where("id", 5).where("name", "LIKE", "bob").get()
    sql, params = conn.executed[-1]
    assert params == (5, "%bob%")
    assert " WHERE " in sql
    assert " AND " in sql
    assert "`id` = %s" in sql


def test_where_function_column_is_not_quoted(conn):
    builder(conn).where("DATE(created)", ">", "2024-01-01").get()
    sql, params = conn.executed[-1]
    assert "`DATE(created)`" not in sql
    assert params == ("2024-01-01",)


def test_where_in_with_list_passes_sequence(conn):
    builder(conn).where("id", "IN", [1, 2, 3]).get()
    sql, params = conn.executed[-1]
    assert params == ([1, 2, 3],)
    assert sql.count("%s") == 1


def test_total_wraps_query(conn):
    builder(conn).where("id", ">", 1).total().order_by("id").get()
    sql, _ = conn.executed[-1]
    assert sql.startswith("SELECT COUNT(*) OVER() AS total, data.* FROM (")
    assert sql.index(") AS data") < sql.index("ORDER BY")


def test_order_limit_offset_sequence(conn):
    builder(conn).order_by("created", "desc").limit(10).offset(20).get()
    sql, _ = conn.executed[-1]
    assert "DESC" in sql
    assert sql.index("ORDER BY") < sql.index(" LIMIT ") < sql.index(" OFFSET ")
    assert sql.split(" LIMIT ")[1].split(" OFFSET ") == ["10", "20"]


def test_order_by_invalid_direction_is_ignored(conn):
    builder(conn).order_by("created", "sideways").get()
    sql, _ = conn.executed[-1]
    assert "ORDER BY" not in sql


def test_insert_returns_last_id(conn):
    data = {"name": "bob", "age": 30}
    assert builder(conn).insert(data) == 7
    sql, params = conn.executed[-1]
    assert sql.startswith("INSERT INTO `users`")
    assert params == ("bob", 30)
    assert sql.count("%s") == len(data)


def test_insert_requires_table(conn):
    with pytest.raises(ValueError):
        QueryBuilder(conn).insert({"a": 1})


def test_update_inlines_supported_functions(conn):
    count = builder(conn).where("id", 3).update({"updated_at": "now()", "name": "x"})
    assert count == 2
    sql, params = conn.executed[-1]
    assert "now()" in sql
    assert params == ("x", 3)
    assert sql.index(" SET ") < sql.index(" WHERE ")


def test_update_with_increase(conn):
    builder(conn).increase("views").where("id", 1).update()
    sql, params = conn.executed[-1]
    assert "views = views + 1" in sql
    assert params == (1,)


def test_upsert_default_uses_values(conn):
    assert builder(conn).upsert({"id": 1, "name": "a"}) == 7
    sql, params = conn.executed[-1]
    assert "ON DUPLICATE KEY UPDATE" in sql
    assert "VALUES(`id`)" in sql and "VALUES(`name`)" in sql
    assert params == (1, "a")


def test_upsert_with_string_clause(conn):
    builder(conn).upsert({"id": 1}, "hits = hits + 1")
    sql, params = conn.executed[-1]
    assert sql.endswith(" ON DUPLICATE KEY UPDATE hits = hits + 1")
    assert params == (1,)


def test_upsert_with_mapping(conn):
    builder(conn).upsert({"id": 1, "name": "a"}, {"name": "b", "seen": "NOW()"})
    sql, params = conn.executed[-1]
    assert params == (1, "a", "b")
    assert sql.count("%s") == 3
    assert "NOW()" in sql


def test_slow_query_is_logged(tmp_path):
    logger = Logger(tmp_path)
    try:
        slow = FakeConnection(delay=0.03)
        QueryBuilder(slow, logger=logger).table("users").get()
        text = (tmp_path / "action.log").read_text(encoding="utf-8")
    finally:
        logger.close()
    assert "Slow Query" in text
    assert "SELECT * FROM `users`" in text


def test_missing_table_is_logged_as_error(tmp_path):
    logger = Logger(tmp_path)
    try:
        with pytest.raises(ValueError):
            QueryBuilder(FakeConnection(), logger=logger).update({"a": 1})
        text = (tmp_path / "action.log").read_text(encoding="utf-8")
    finally:
        logger.close()
    assert "[ERROR] Table is required" in text