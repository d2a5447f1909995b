import json
import re
import sqlite3
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable, List, Optional, Tuple

from salon_supervisor.core.errors import NotFoundError
from salon_supervisor.core.logging import get_plain_logger

logger = get_plain_logger(__name__)

# (field, operator, value)
Filter = Tuple[str, str, Any]

OPERATORS = {"==": "=", "!=": "!=", "<": "<", "<=": "<=", ">": ">", ">=": ">="}
FIELD_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

SCHEMA = """
CREATE TABLE IF NOT EXISTS documents (
    collection TEXT NOT NULL,
    id TEXT NOT NULL,
    doc TEXT NOT NULL,
    PRIMARY KEY (collection, id)
);
CREATE INDEX IF NOT EXISTS idx_documents_collection ON documents (collection);
"""


def encode_value(value: Any) -> Any:
    """
    Datetimes become fixed-width UTC ISO strings so that range filters
    and ordering compare correctly as text
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).isoformat(timespec="microseconds")
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: encode_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [encode_value(v) for v in value]
    return value


class SQLiteCollection:
    """
    Keyed collection of JSON documents stored in SQLite

    Every operation opens its own connection. update_by_id runs inside
    BEGIN IMMEDIATE so the condition check and the write cannot interleave
    with another writer on the same database.
    """

    def __init__(self, db_path: str, name: str):
        self.db_path = db_path
        self.name = name
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=30, isolation_level=None)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self):
        conn = self._connect()
        try:
            conn.executescript(SCHEMA)
        finally:
            conn.close()
        logger.info(f"Collection '{self.name}' ready in {self.db_path}")

    @staticmethod
    def _field(field: str) -> str:
        if not FIELD_PATTERN.match(field):
            raise ValueError(f"Invalid field name: {field!r}")
        return f"json_extract(doc, '$.{field}')"

    def _where(self, filters: Iterable[Filter]) -> Tuple[str, list]:
        clauses = ["collection = ?"]
        params: list = [self.name]
        for field, op, value in filters:
            if op not in OPERATORS:
                raise ValueError(f"Unsupported operator: {op!r}")
            value = encode_value(value)
            if value is None and op in ("==", "!="):
                clauses.append(f"{self._field(field)} IS {'NOT ' if op == '!=' else ''}NULL")
                continue
            clauses.append(f"{self._field(field)} {OPERATORS[op]} ?")
            params.append(value)
        return " AND ".join(clauses), params

    @staticmethod
    def _row_to_doc(row: sqlite3.Row) -> dict:
        doc = json.loads(row["doc"])
        doc["id"] = row["id"]
        return doc

    def insert(self, doc: dict) -> str:
        doc_id = uuid.uuid4().hex
        body = encode_value({k: v for k, v in doc.items() if k != "id"})
        conn = self._connect()
        try:
            conn.execute(
                "INSERT INTO documents (collection, id, doc) VALUES (?, ?, ?)",
                (self.name, doc_id, json.dumps(body)),
            )
        finally:
            conn.close()
        return doc_id

    def get_by_id(self, doc_id: str) -> Optional[dict]:
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT id, doc FROM documents WHERE collection = ? AND id = ?",
                (self.name, doc_id),
            ).fetchone()
        finally:
            conn.close()
        return self._row_to_doc(row) if row else None

    def update_by_id(self, doc_id: str, patch: dict, where: Iterable[Filter] = ()) -> bool:
        """
        Merge patch into the document if it matches every filter in where

        Returns False when the document exists but the filters do not hold.
        Raises NotFoundError when the document does not exist.
        """
        clause, params = self._where(where)
        conn = self._connect()
        try:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(
                "SELECT id, doc FROM documents WHERE collection = ? AND id = ?",
                (self.name, doc_id),
            ).fetchone()
            if row is None:
                conn.execute("ROLLBACK")
                raise NotFoundError(f"Document {doc_id} not found in {self.name}")

            matched = conn.execute(
                f"SELECT 1 FROM documents WHERE {clause} AND id = ?",
                params + [doc_id],
            ).fetchone()
            if matched is None:
                conn.execute("ROLLBACK")
                return False

            doc = json.loads(row["doc"])
            doc.update(encode_value(patch))
            conn.execute(
                "UPDATE documents SET doc = ? WHERE collection = ? AND id = ?",
                (json.dumps(doc), self.name, doc_id),
            )
            conn.execute("COMMIT")
            return True
        except sqlite3.Error:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise
        finally:
            conn.close()

    def query(
        self,
        filters: Iterable[Filter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[dict]:
        """
        Documents matching all filters

        Without order_by, documents come back in insertion order. With it,
        ties fall back to insertion order in the same direction.
        """
        clause, params = self._where(filters)
        direction = "DESC" if descending else "ASC"
        if order_by:
            order = f"{self._field(order_by)} {direction}, rowid {direction}"
        else:
            order = "rowid ASC"
        sql = f"SELECT id, doc FROM documents WHERE {clause} ORDER BY {order}"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(int(limit))

        conn = self._connect()
        try:
            rows = conn.execute(sql, params).fetchall()
        finally:
            conn.close()
        return [self._row_to_doc(r) for r in rows]

    def delete_by_id(self, doc_id: str) -> bool:
        conn = self._connect()
        try:
            cursor = conn.execute(
                "DELETE FROM documents WHERE collection = ? AND id = ?",
                (self.name, doc_id),
            )
            deleted = cursor.rowcount > 0
        finally:
            conn.close()
        return deleted
