from __future__ import annotations

import os
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Iterable, Iterator, List, Optional

from catalog.config import settings
from catalog.errors import DuplicateSpecialIdError, NotFoundError, StorageError

CLASS_COLUMNS = (
    "special_id",
    "main_category",
    "quality",
    "class_name",
    "class_name_ar",
    "class_name_en",
    "class_features",
    "class_price",
    "class_weight",
    "class_quantity",
    "class_video",
)

# колонки, которые могли отсутствовать в старых базах
_LATE_COLUMNS = {
    "class_weight": "REAL",
    "class_name_ar": "TEXT",
    "class_name_en": "TEXT",
    "class_quantity": "INTEGER",
}


def _now() -> str:
    return datetime.now().strftime("%Y-%m-%d %H:%M:%S")


def _connect(db_path: Optional[str] = None, timeout: Optional[float] = None) -> sqlite3.Connection:
    path = db_path or settings.db_path
    folder = os.path.dirname(path)
    if folder:
        os.makedirs(folder, exist_ok=True)
    conn = sqlite3.connect(path, timeout=timeout or settings.db_timeout)
    conn.row_factory = sqlite3.Row
    return conn


def _migrate(conn: sqlite3.Connection) -> None:
    existing = {r["name"] for r in conn.execute("PRAGMA table_info(classes)").fetchall()}
    for column, kind in _LATE_COLUMNS.items():
        if column not in existing:
            conn.execute(f"ALTER TABLE classes ADD COLUMN {column} {kind}")


def init_db(db_path: Optional[str] = None) -> None:
    conn = _connect(db_path)
    try:
        with open(os.path.join(os.path.dirname(__file__), "schema.sql"), "r", encoding="utf-8") as f:
            conn.executescript(f.read())
        _migrate(conn)
        conn.commit()
    finally:
        conn.close()


class ClassStore:
    """Row store for the ``classes`` table.

    Every call opens its own connection, so one instance can be shared
    between request handlers and bulk-import worker threads.
    """

    def __init__(self, db_path: Optional[str] = None, timeout: Optional[float] = None):
        self.db_path = db_path or settings.db_path
        self.timeout = timeout

    @contextmanager
    def _session(self) -> Iterator[sqlite3.Connection]:
        conn = _connect(self.db_path, self.timeout)
        try:
            yield conn
            conn.commit()
        except sqlite3.IntegrityError as e:
            conn.rollback()
            if "special_id" in str(e):
                raise DuplicateSpecialIdError(f"Special ID already exists: {e}") from e
            raise StorageError(str(e)) from e
        except (sqlite3.Error, OverflowError) as e:
            # OverflowError: int не влезает в INTEGER
            conn.rollback()
            raise StorageError(str(e)) from e
        finally:
            conn.close()

    def get(self, class_id: int) -> Optional[Dict[str, Any]]:
        with self._session() as conn:
            row = conn.execute("SELECT * FROM classes WHERE id = ?", (class_id,)).fetchone()
            return dict(row) if row else None

    def get_by_special_id(self, code: str) -> Optional[Dict[str, Any]]:
        with self._session() as conn:
            row = conn.execute(
                "SELECT * FROM classes WHERE UPPER(special_id) = ?",
                (code.strip().upper(),),
            ).fetchone()
            return dict(row) if row else None

    def get_many(self, ids: Iterable[int]) -> Dict[int, Dict[str, Any]]:
        ids = list(dict.fromkeys(int(i) for i in ids))
        if not ids:
            return {}
        placeholders = ",".join("?" for _ in ids)
        with self._session() as conn:
            rows = conn.execute(
                f"SELECT * FROM classes WHERE id IN ({placeholders})", ids
            ).fetchall()
            return {int(r["id"]): dict(r) for r in rows}

    def list(
        self,
        class_name_search: Optional[str] = None,
        code_search: Optional[str] = None,
        category: Optional[str] = None,
        quality: Optional[str] = None,
        include_zero_quantity: bool = False,
    ) -> List[Dict[str, Any]]:
        filters: List[str] = []
        params: List[Any] = []

        # каталог прячет нулевой остаток, админка видит всё
        if not include_zero_quantity:
            filters.append("(class_quantity IS NULL OR class_quantity != 0)")

        if code_search:
            filters.append("LOWER(special_id) LIKE ?")
            params.append(f"%{code_search.lower()}%")

        if class_name_search:
            filters.append(
                "(LOWER(class_name) LIKE ? OR LOWER(IFNULL(class_name_ar, '')) LIKE ? "
                "OR LOWER(IFNULL(class_name_en, '')) LIKE ?)"
            )
            term = f"%{class_name_search.lower()}%"
            params.extend([term, term, term])

        if category:
            filters.append("LOWER(main_category) = ?")
            params.append(category.lower())

        if quality:
            filters.append("LOWER(quality) = ?")
            params.append(quality.lower())

        where = f"WHERE {' AND '.join(filters)}" if filters else ""
        query = f"""
            SELECT * FROM classes
            {where}
            ORDER BY
                CASE WHEN class_video IS NOT NULL AND class_video != '' THEN 0 ELSE 1 END,
                main_category, quality, class_name
        """
        with self._session() as conn:
            return [dict(r) for r in conn.execute(query, params).fetchall()]

    def special_ids_with_prefix(self, prefix: str) -> List[str]:
        # substr вместо LIKE: '_' и '%' в префиксе не должны работать как шаблон
        with self._session() as conn:
            rows = conn.execute(
                "SELECT special_id FROM classes WHERE special_id IS NOT NULL "
                "AND substr(special_id, 1, ?) = ?",
                (len(prefix), prefix),
            ).fetchall()
            return [r["special_id"] for r in rows]

    def insert(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        values = {c: fields.get(c) for c in CLASS_COLUMNS}
        for c in ("main_category", "quality", "class_name"):
            if values[c] is None:
                values[c] = ""
        now = _now()
        with self._session() as conn:
            cur = conn.execute(
                f"INSERT INTO classes ({', '.join(CLASS_COLUMNS)}, created_at, updated_at) "
                f"VALUES ({', '.join('?' for _ in CLASS_COLUMNS)}, ?, ?)",
                [values[c] for c in CLASS_COLUMNS] + [now, now],
            )
            row = conn.execute("SELECT * FROM classes WHERE id = ?", (cur.lastrowid,)).fetchone()
            return dict(row)

    def update(self, class_id: int, patch: Dict[str, Any]) -> Dict[str, Any]:
        unknown = set(patch) - set(CLASS_COLUMNS)
        if unknown:
            raise StorageError(f"unknown columns: {', '.join(sorted(unknown))}")
        with self._session() as conn:
            if patch:
                assignments = ", ".join(f"{c} = ?" for c in patch)
                cur = conn.execute(
                    f"UPDATE classes SET {assignments}, updated_at = ? WHERE id = ?",
                    list(patch.values()) + [_now(), class_id],
                )
                if cur.rowcount == 0:
                    raise NotFoundError(f"Class not found: {class_id}")
            row = conn.execute("SELECT * FROM classes WHERE id = ?", (class_id,)).fetchone()
            if not row:
                raise NotFoundError(f"Class not found: {class_id}")
            return dict(row)

    def delete(self, class_id: int) -> Dict[str, Any]:
        with self._session() as conn:
            row = conn.execute("SELECT * FROM classes WHERE id = ?", (class_id,)).fetchone()
            if not row:
                raise NotFoundError(f"Class not found: {class_id}")
            conn.execute("DELETE FROM classes WHERE id = ?", (class_id,))
            return dict(row)

    def delete_all(self) -> List[Dict[str, Any]]:
        with self._session() as conn:
            rows = [dict(r) for r in conn.execute("SELECT * FROM classes").fetchall()]
            conn.execute("DELETE FROM classes")
            return rows

    def count_video_refs(self, video: str) -> int:
        with self._session() as conn:
            row = conn.execute(
                "SELECT COUNT(*) AS n FROM classes WHERE class_video = ?", (video,)
            ).fetchone()
            return int(row["n"])


class SettingsStore:
    def __init__(self, db_path: Optional[str] = None, timeout: Optional[float] = None):
        self.db_path = db_path or settings.db_path
        self.timeout = timeout

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        conn = _connect(self.db_path, self.timeout)
        try:
            row = conn.execute("SELECT value FROM settings WHERE key = ?", (key,)).fetchone()
            return row["value"] if row else default
        except sqlite3.Error as e:
            raise StorageError(str(e)) from e
        finally:
            conn.close()

    def set(self, key: str, value: str) -> None:
        conn = _connect(self.db_path, self.timeout)
        try:
            conn.execute(
                "INSERT INTO settings(key, value) VALUES(?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                (key, str(value)),
            )
            conn.commit()
        except sqlite3.Error as e:
            raise StorageError(str(e)) from e
        finally:
            conn.close()
