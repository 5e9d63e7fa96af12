from datetime import datetime

import pytest

import repositories.novels_repo as repo
from services.novel_parser import Novel


class FakeCursor:
    def __init__(self, fetchone_results=None, fetchall_result=None):
        self.fetchone_results = list(fetchone_results or [])
        self.fetchall_result = fetchall_result or []
        self.executed = []
        self.closed = False

    def execute(self, query, params=None):
        self.executed.append((query, params))

    def fetchone(self):
        return self.fetchone_results.pop(0) if self.fetchone_results else None

    def fetchall(self):
        return self.fetchall_result

    def close(self):
        self.closed = True


class FakeConnection:
    def __init__(self):
        self.commits = 0
        self.rollbacks = 0
        self.closed = False

    def commit(self):
        self.commits += 1

    def rollback(self):
        self.rollbacks += 1

    def close(self):
        self.closed = True


def _novel(**overrides):
    values = dict(
        id=1001,
        title="星辰变",
        author="我吃西红柿",
        category="玄幻",
        status="连载",
        word_count=120000,
        description="一个少年的修仙之路。",
        source_url="http://www.999xiaoshuo.cc/book/1001.html",
        updated_at=datetime(2025, 1, 1, 12, 29, 0),
    )
    values.update(overrides)
    return Novel(**values)


def test_upsert_novel_inserts_with_conflict_update(monkeypatch):
    cursor = FakeCursor(fetchone_results=[{"inserted": True}])
    monkeypatch.setattr(repo, "get_cursor", lambda conn: cursor)

    inserted = repo.upsert_novel(object(), _novel())

    assert inserted is True
    query, params = cursor.executed[0]
    assert "INSERT INTO novels" in query
    assert "ON CONFLICT (id) DO UPDATE SET" in query
    assert "created_at" not in query
    assert params == (
        1001,
        "星辰变",
        "我吃西红柿",
        "玄幻",
        "连载",
        120000,
        "一个少年的修仙之路。",
        "http://www.999xiaoshuo.cc/book/1001.html",
        datetime(2025, 1, 1, 12, 29, 0),
    )
    assert cursor.closed is True


def test_upsert_novel_reports_update(monkeypatch):
    cursor = FakeCursor(fetchone_results=[{"inserted": False}])
    monkeypatch.setattr(repo, "get_cursor", lambda conn: cursor)

    assert repo.upsert_novel(object(), _novel()) is False


def test_search_novels_builds_filters_and_pagination(monkeypatch):
    row = {
        "id": 1001,
        "title": "星辰变",
        "author": "我吃西红柿",
        "category": "玄幻",
        "status": "连载",
        "word_count": 120000,
        "description": "desc",
        "novel_url": "http://www.999xiaoshuo.cc/book/1001.html",
        "created_at": datetime(2024, 12, 1, 8, 0, 0),
        "updated_at": datetime(2025, 1, 1, 12, 29, 0),
    }
    cursor = FakeCursor(fetchone_results=[{"total": 45}], fetchall_result=[row])
    monkeypatch.setattr(repo, "get_cursor", lambda conn: cursor)

    result = repo.search_novels(
        object(), q=" 星辰 ", author="西红柿", status="连载", category="  ", page=2, page_size=20
    )

    count_query, count_params = cursor.executed[0]
    assert "SELECT COUNT(*) AS total FROM novels" in count_query
    assert "title ILIKE %s" in count_query
    assert "author ILIKE %s" in count_query
    assert "status = %s" in count_query
    assert "category" not in count_query
    assert count_params == ("%星辰%", "%西红柿%", "连载")

    select_query, select_params = cursor.executed[1]
    assert "ORDER BY updated_at DESC, id DESC" in select_query
    assert select_params == ("%星辰%", "%西红柿%", "连载", 20, 40)

    assert result["total"] == 45
    assert result["page"] == 2
    assert result["page_size"] == 20
    assert result["total_pages"] == 3
    assert result["items"] == [
        {
            "id": 1001,
            "title": "星辰变",
            "author": "我吃西红柿",
            "category": "玄幻",
            "status": "连载",
            "word_count": 120000,
            "description": "desc",
            "source_url": "http://www.999xiaoshuo.cc/book/1001.html",
            "created_at": "2024-12-01T08:00:00",
            "updated_at": "2025-01-01T12:29:00",
        }
    ]
    assert cursor.closed is True


def test_search_novels_without_filters_has_no_where(monkeypatch):
    cursor = FakeCursor(fetchone_results=[{"total": 0}])
    monkeypatch.setattr(repo, "get_cursor", lambda conn: cursor)

    result = repo.search_novels(object())

    count_query, count_params = cursor.executed[0]
    assert "WHERE" not in count_query
    assert count_params == ()
    assert cursor.executed[1][1] == (20, 0)
    assert result == {"items": [], "total": 0, "page": 0, "page_size": 20, "total_pages": 0}


def test_count_novels(monkeypatch):
    cursor = FakeCursor(fetchone_results=[{"total": 7}])
    monkeypatch.setattr(repo, "get_cursor", lambda conn: cursor)

    assert repo.count_novels(object()) == 7
    assert cursor.closed is True


def test_novel_store_commits_each_upsert(monkeypatch):
    conn = FakeConnection()
    seen = []
    monkeypatch.setattr(repo, "upsert_novel", lambda c, novel: seen.append((c, novel.id)) or True)

    store = repo.NovelStore(conn)

    assert store.upsert(_novel()) is True
    assert store.upsert(_novel(id=1002)) is True
    assert seen == [(conn, 1001), (conn, 1002)]
    assert conn.commits == 2
    assert conn.rollbacks == 0


def test_novel_store_rolls_back_and_reraises(monkeypatch):
    conn = FakeConnection()

    def failing_upsert(_conn, _novel):
        raise RuntimeError("constraint")

    monkeypatch.setattr(repo, "upsert_novel", failing_upsert)
    store = repo.NovelStore(conn)

    with pytest.raises(RuntimeError):
        store.upsert(_novel())

    assert conn.commits == 0
    assert conn.rollbacks == 1

    store.close()
    assert conn.closed is True


def test_novel_store_search_delegates(monkeypatch):
    conn = FakeConnection()
    calls = {}

    def fake_search(c, **kwargs):
        calls["conn"] = c
        calls["kwargs"] = kwargs
        return {"items": []}

    monkeypatch.setattr(repo, "search_novels", fake_search)

    assert repo.NovelStore(conn).search(q="凡人", page=1, page_size=5) == {"items": []}
    assert calls["conn"] is conn
    assert calls["kwargs"] == {
        "q": "凡人",
        "author": None,
        "status": None,
        "category": None,
        "page": 1,
        "page_size": 5,
    }
