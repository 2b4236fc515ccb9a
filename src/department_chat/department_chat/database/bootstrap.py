from __future__ import annotations

import re
from pathlib import Path
from typing import Iterable, Iterator

import mysql.connector

from ..core.constants import KNOWN_DEPARTMENTS
from .connection import DBConfig

_CREATE_DB_RE = re.compile(r"(?im)^\s*CREATE\s+DATABASE\b.*?;\s*$")
_USE_DB_RE = re.compile(r"(?im)^\s*USE\b.*?;\s*$")


def as_db_config(db_config: dict) -> DBConfig:
    return DBConfig(
        host=str(db_config.get("host", "localhost")),
        port=int(db_config.get("port", 3306)),
        user=str(db_config.get("user", "root")),
        password=str(db_config.get("password", "")),
        database=str(db_config.get("database", "department_chat")),
    )


def _strip_create_db_and_use(sql: str) -> str:
    # schema.sql stays usable regardless of the configured database name.
    return _USE_DB_RE.sub("", _CREATE_DB_RE.sub("", sql))


def iter_sql_statements(sql: str) -> Iterator[str]:
    """Split a script on ';' outside of quoted strings."""
    buf: list[str] = []
    quote = ""
    escaped = False

    for ch in sql:
        buf.append(ch)
        if escaped:
            escaped = False
        elif ch == "\\":
            escaped = True
        elif quote:
            if ch == quote:
                quote = ""
        elif ch in ("'", '"'):
            quote = ch
        elif ch == ";":
            stmt = "".join(buf[:-1]).strip()
            buf.clear()
            if stmt:
                yield stmt

    tail = "".join(buf).strip()
    if tail:
        yield tail


def _connect(target: DBConfig, *, with_database: bool = True):
    kwargs = dict(host=target.host, port=target.port, user=target.user, password=target.password, use_pure=True)
    if with_database:
        kwargs["database"] = target.database
    return mysql.connector.connect(**kwargs)


def _run_statements(target: DBConfig, statements: Iterable[tuple[str, tuple]]) -> None:
    conn = _connect(target)
    try:
        cur = conn.cursor()
        for stmt, params in statements:
            cur.execute(stmt, params or None)
        conn.commit()
    finally:
        conn.close()


def ensure_database_exists(db_config: dict) -> None:
    target = as_db_config(db_config)
    conn = _connect(target, with_database=False)
    try:
        cur = conn.cursor()
        cur.execute(
            f"CREATE DATABASE IF NOT EXISTS `{target.database}` CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci;"
        )
        conn.commit()
    finally:
        conn.close()


def apply_schema(db_config: dict, *, schema_path: str | Path) -> None:
    ensure_database_exists(db_config)
    sql = _strip_create_db_and_use(Path(schema_path).read_text(encoding="utf-8"))
    _run_statements(as_db_config(db_config), ((stmt, ()) for stmt in iter_sql_statements(sql)))


def seed_departments(db_config: dict) -> None:
    """Insert the known departments (idempotent)."""
    _run_statements(
        as_db_config(db_config),
        (("INSERT IGNORE INTO departments(dept_name) VALUES(%s)", (name,)) for name in KNOWN_DEPARTMENTS),
    )


def list_tables(db_config: dict) -> list[str]:
    conn = _connect(as_db_config(db_config))
    try:
        cur = conn.cursor()
        cur.execute("SHOW TABLES")
        return [row[0] for row in cur.fetchall()]
    finally:
        conn.close()
