# database.py

import os
from contextlib import contextmanager

import psycopg2
import psycopg2.extras
from flask import g

import config


SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS novels (
        id BIGINT PRIMARY KEY,
        title VARCHAR(255) NOT NULL,
        author VARCHAR(100) NOT NULL DEFAULT '',
        category VARCHAR(50) NOT NULL DEFAULT '',
        status VARCHAR(20) NOT NULL DEFAULT '',
        word_count BIGINT NOT NULL DEFAULT 0,
        description TEXT NOT NULL DEFAULT '',
        novel_url VARCHAR(500) NOT NULL DEFAULT '',
        created_at TIMESTAMP NOT NULL DEFAULT NOW(),
        updated_at TIMESTAMP NOT NULL DEFAULT NOW()
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_novels_status ON novels (status)",
    "CREATE INDEX IF NOT EXISTS idx_novels_category ON novels (category)",
    "CREATE INDEX IF NOT EXISTS idx_novels_updated_at ON novels (updated_at DESC)",
)


def _connection_options():
    timezone = (os.getenv('DB_TIMEZONE') or config.DB_TIMEZONE).strip()
    return f"-c timezone={timezone}"


def _create_connection():
    """DATABASE_URL이 있으면 우선 사용하고, 없으면 개별 DB_* 변수로 접속합니다."""
    database_url = (os.getenv('DATABASE_URL') or '').strip()
    options = _connection_options()
    if database_url:
        return psycopg2.connect(database_url, options=options)
    return psycopg2.connect(
        dbname=os.getenv('DB_NAME'),
        user=os.getenv('DB_USER'),
        password=os.getenv('DB_PASSWORD'),
        host=os.getenv('DB_HOST'),
        port=os.getenv('DB_PORT'),
        options=options,
    )


def create_standalone_connection():
    """Flask 컨텍스트 밖(크롤러, 스크립트)에서 사용할 독립 연결을 생성합니다."""
    return _create_connection()


def get_db():
    """Application Context 내에서 유일한 DB 연결을 가져옵니다."""
    if 'db' not in g:
        g.db = _create_connection()
    return g.db


def close_db(exception=None):
    """요청(request)이 끝나면 자동으로 호출되어 DB 연결을 닫습니다."""
    db = g.pop('db', None)
    if db is not None:
        db.close()


def get_cursor(conn):
    return conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor)


@contextmanager
def managed_cursor(conn):
    cursor = get_cursor(conn)
    try:
        yield cursor
    finally:
        cursor.close()


def setup_database_standalone():
    conn = create_standalone_connection()
    try:
        with managed_cursor(conn) as cursor:
            for statement in SCHEMA_STATEMENTS:
                cursor.execute(statement)
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()
