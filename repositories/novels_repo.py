"""Repository for novel persistence and search."""

import logging
import math

from database import get_cursor

LOGGER = logging.getLogger(__name__)

SEARCH_COLUMNS = (
    "id, title, author, category, status, word_count, description, novel_url, created_at, updated_at"
)


def upsert_novel(conn, novel) -> bool:
    """
    Insert or update a novel keyed by id. ``created_at`` is only written on insert.

    Returns True if a new row was inserted, False if an existing row was updated.
    """
    cursor = get_cursor(conn)
    cursor.execute(
        """
        INSERT INTO novels (
            id,
            title,
            author,
            category,
            status,
            word_count,
            description,
            novel_url,
            updated_at
        )
        VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
        ON CONFLICT (id) DO UPDATE SET
            title = EXCLUDED.title,
            author = EXCLUDED.author,
            category = EXCLUDED.category,
            status = EXCLUDED.status,
            word_count = EXCLUDED.word_count,
            description = EXCLUDED.description,
            novel_url = EXCLUDED.novel_url,
            updated_at = EXCLUDED.updated_at
        RETURNING (xmax = 0) AS inserted
        """,
        (
            novel.id,
            novel.title,
            novel.author,
            novel.category,
            novel.status,
            novel.word_count,
            novel.description,
            novel.source_url,
            novel.updated_at,
        ),
    )
    row = cursor.fetchone()
    cursor.close()
    return bool(row and row["inserted"])


def _clean_filter(value):
    if value is None:
        return None
    stripped = str(value).strip()
    return stripped or None


def search_novels(conn, *, q=None, author=None, status=None, category=None, page=0, page_size=20):
    """
    Filter novels by title/author substring and exact status/category.

    ``page`` is zero-based. Blank filters are ignored.
    """
    where_clauses = []
    params = []

    q = _clean_filter(q)
    author = _clean_filter(author)
    status = _clean_filter(status)
    category = _clean_filter(category)

    if q:
        where_clauses.append("title ILIKE %s")
        params.append(f"%{q}%")
    if author:
        where_clauses.append("author ILIKE %s")
        params.append(f"%{author}%")
    if status:
        where_clauses.append("status = %s")
        params.append(status)
    if category:
        where_clauses.append("category = %s")
        params.append(category)

    where_sql = f"WHERE {' AND '.join(where_clauses)}" if where_clauses else ""
    page = max(0, int(page))
    page_size = max(1, int(page_size))

    cursor = get_cursor(conn)
    try:
        cursor.execute(f"SELECT COUNT(*) AS total FROM novels {where_sql}", tuple(params))
        count_row = cursor.fetchone()
        total = int(count_row["total"]) if count_row else 0

        cursor.execute(
            f"""
            SELECT {SEARCH_COLUMNS}
            FROM novels
            {where_sql}
            ORDER BY updated_at DESC, id DESC
            LIMIT %s OFFSET %s
            """,
            tuple(params) + (page_size, page * page_size),
        )
        rows = cursor.fetchall()
    finally:
        cursor.close()

    return {
        "items": [serialize_novel_row(row) for row in rows],
        "total": total,
        "page": page,
        "page_size": page_size,
        "total_pages": math.ceil(total / page_size) if total else 0,
    }


def count_novels(conn) -> int:
    cursor = get_cursor(conn)
    try:
        cursor.execute("SELECT COUNT(*) AS total FROM novels")
        row = cursor.fetchone()
    finally:
        cursor.close()
    return int(row["total"]) if row else 0


def serialize_novel_row(row):
    created_at = row.get("created_at")
    updated_at = row.get("updated_at")
    return {
        "id": row.get("id"),
        "title": row.get("title"),
        "author": row.get("author"),
        "category": row.get("category"),
        "status": row.get("status"),
        "word_count": row.get("word_count"),
        "description": row.get("description"),
        "source_url": row.get("novel_url"),
        "created_at": created_at.isoformat() if hasattr(created_at, "isoformat") else created_at,
        "updated_at": updated_at.isoformat() if hasattr(updated_at, "isoformat") else updated_at,
    }


class NovelStore:
    """Per-run gateway the crawler writes through; commits every novel on its own."""

    def __init__(self, conn):
        self.conn = conn

    def upsert(self, novel) -> bool:
        try:
            inserted = upsert_novel(self.conn, novel)
            self.conn.commit()
        except Exception:
            self.conn.rollback()
            raise
        LOGGER.info(
            "Saved novel %s %s - %s (%s)",
            novel.source_url,
            novel.title,
            novel.author,
            "inserted" if inserted else "updated",
        )
        return inserted

    def search(self, *, q=None, author=None, status=None, category=None, page=0, page_size=20):
        return search_novels(
            self.conn,
            q=q,
            author=author,
            status=status,
            category=category,
            page=page,
            page_size=page_size,
        )

    def close(self) -> None:
        self.conn.close()
