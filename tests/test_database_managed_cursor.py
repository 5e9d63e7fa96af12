import psycopg2.extras
import pytest

import database


class FakeCursor:
    def __init__(self):
        self.closed = False

    def close(self):
        self.closed = True


class FakeConn:
    def __init__(self):
        self.cursor_factories = []
        self.last_cursor = None

    def cursor(self, cursor_factory=None):
        self.cursor_factories.append(cursor_factory)
        self.last_cursor = FakeCursor()
        return self.last_cursor


def test_get_cursor_returns_dict_rows():
    conn = FakeConn()

    database.get_cursor(conn)

    assert conn.cursor_factories == [psycopg2.extras.RealDictCursor]


def test_managed_cursor_closes_on_success():
    conn = FakeConn()

    with database.managed_cursor(conn) as managed:
        assert managed is conn.last_cursor

    assert conn.last_cursor.closed is True


def test_managed_cursor_closes_on_exception():
    conn = FakeConn()

    with pytest.raises(RuntimeError):
        with database.managed_cursor(conn):
            raise RuntimeError("boom")

    assert conn.last_cursor.closed is True
