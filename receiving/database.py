"""
SQLite persistence layer for purchase requests and the receipt ledger.

A single database file (output/receiving.db) holds:

  - purchase_requests  Request header and lifecycle status
  - request_items      Requested line items with their review status
  - item_receipts      Append-only receipt ledger, one row per delivery
  - audit_log          Who did what, and when

item_receipts is append-only.  Triggers abort any UPDATE or DELETE on it,
and request_items rows that have receipts cannot be deleted (foreign key
RESTRICT).  Fulfillment state is never stored; it is derived from the
ledger on every read.

Request status values
---------------------
  pending    Submitted, awaiting admin review
  approved   All items reviewed, request approved for purchase
  partial    Some items approved, some rejected
  rejected   Request rejected
  completed  Closed by an admin (receiving still allowed for corrections)
"""
import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

STATUS_PENDING   = "pending"
STATUS_APPROVED  = "approved"
STATUS_PARTIAL   = "partial"
STATUS_REJECTED  = "rejected"
STATUS_COMPLETED = "completed"
ALL_REQUEST_STATUSES = {
    STATUS_PENDING, STATUS_APPROVED, STATUS_PARTIAL, STATUS_REJECTED, STATUS_COMPLETED,
}

ITEM_PENDING   = "pending"
ITEM_APPROVED  = "approved"
ITEM_REJECTED  = "rejected"
ITEM_SUSPENDED = "suspended"
ALL_ITEM_STATUSES = {ITEM_PENDING, ITEM_APPROVED, ITEM_REJECTED, ITEM_SUSPENDED}

_SCHEMA = """
CREATE TABLE IF NOT EXISTS purchase_requests (
    id                INTEGER PRIMARY KEY AUTOINCREMENT,
    requester_id      TEXT    NOT NULL,
    status            TEXT    NOT NULL DEFAULT 'pending',
    observations      TEXT,
    admin_notes       TEXT,
    completion_notes  TEXT,

    -- Timestamps (ISO-8601 strings)
    created_at        TEXT    NOT NULL,
    reviewed_at       TEXT,
    reviewed_by       TEXT,
    completed_at      TEXT,
    completed_by      TEXT
);

CREATE INDEX IF NOT EXISTS idx_requests_status    ON purchase_requests (status);
CREATE INDEX IF NOT EXISTS idx_requests_requester ON purchase_requests (requester_id);

CREATE TABLE IF NOT EXISTS request_items (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    request_id    INTEGER NOT NULL REFERENCES purchase_requests (id),
    product_name  TEXT    NOT NULL,
    quantity      INTEGER NOT NULL CHECK (quantity > 0),
    status        TEXT    NOT NULL DEFAULT 'pending',
    deadline      TEXT,
    admin_notes   TEXT,
    created_at    TEXT    NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_items_request ON request_items (request_id);

CREATE TABLE IF NOT EXISTS item_receipts (
    id                 INTEGER PRIMARY KEY AUTOINCREMENT,
    item_id            INTEGER NOT NULL REFERENCES request_items (id) ON DELETE RESTRICT,
    quantity_received  INTEGER NOT NULL CHECK (quantity_received >= 1),
    rejected_quantity  INTEGER NOT NULL DEFAULT 0
                       CHECK (rejected_quantity >= 0 AND rejected_quantity < quantity_received),

    -- Fiscal and traceability data
    invoice_number     TEXT    NOT NULL,
    invoice_date       TEXT,
    lot_number         TEXT,
    expiration_date    TEXT,
    supplier_id        INTEGER,   -- supplier that delivered (may differ from the quoted one)

    notes              TEXT    NOT NULL DEFAULT '',
    receipt_condition  TEXT    NOT NULL DEFAULT 'good',
    quality_checked    INTEGER NOT NULL DEFAULT 0,
    quality_notes      TEXT    NOT NULL DEFAULT '',

    received_by        TEXT    NOT NULL,
    created_at         TEXT    NOT NULL,
    idempotency_key    TEXT,

    UNIQUE (item_id, idempotency_key)
);

CREATE INDEX IF NOT EXISTS idx_receipts_item     ON item_receipts (item_id, created_at);
CREATE INDEX IF NOT EXISTS idx_receipts_supplier ON item_receipts (supplier_id);

CREATE TRIGGER IF NOT EXISTS item_receipts_no_update
BEFORE UPDATE ON item_receipts
BEGIN
    SELECT RAISE(ABORT, 'item_receipts is append-only');
END;

CREATE TRIGGER IF NOT EXISTS item_receipts_no_delete
BEFORE DELETE ON item_receipts
BEGIN
    SELECT RAISE(ABORT, 'item_receipts is append-only');
END;

CREATE TABLE IF NOT EXISTS audit_log (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    request_id  INTEGER NOT NULL,
    item_id     INTEGER,
    timestamp   TEXT    NOT NULL,   -- ISO-8601 UTC
    action      TEXT    NOT NULL,   -- request_created | item_added | item_reviewed |
                                    -- status_changed | quantity_changed | item_deleted |
                                    -- receipt_recorded
    actor       TEXT    NOT NULL DEFAULT 'system',
    detail      TEXT                -- optional JSON blob with action-specific context
);

CREATE INDEX IF NOT EXISTS idx_audit_request   ON audit_log (request_id);
CREATE INDEX IF NOT EXISTS idx_audit_timestamp ON audit_log (timestamp DESC);
"""

_RECEIPT_COLUMNS = (
    "quantity_received", "rejected_quantity",
    "invoice_number", "invoice_date", "lot_number", "expiration_date", "supplier_id",
    "notes", "receipt_condition", "quality_checked", "quality_notes",
    "received_by", "created_at", "idempotency_key",
)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _receipt_row(row: sqlite3.Row) -> dict:
    rec = dict(row)
    rec["quality_checked"] = bool(rec.get("quality_checked"))
    return rec


def _write_audit(
    conn: sqlite3.Connection,
    request_id: int,
    action: str,
    actor: str = "system",
    item_id: Optional[int] = None,
    detail: Optional[dict] = None,
) -> None:
    conn.execute(
        """INSERT INTO audit_log (request_id, item_id, timestamp, action, actor, detail)
           VALUES (?, ?, ?, ?, ?, ?)""",
        (
            request_id,
            item_id,
            _now_iso(),
            action,
            actor,
            json.dumps(detail) if detail is not None else None,
        ),
    )


class Database:
    """Thin wrapper around an SQLite database file for requests and receipts."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    # ------------------------------------------------------------------
    # Connection management
    # ------------------------------------------------------------------

    @contextmanager
    def _conn(self):
        conn = sqlite3.connect(str(self.db_path), timeout=30)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")
        conn.execute("PRAGMA foreign_keys=ON")
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_schema(self) -> None:
        with self._conn() as conn:
            conn.executescript(_SCHEMA)
        logger.debug("Database schema ready: %s", self.db_path)

    # ------------------------------------------------------------------
    # Purchase requests
    # ------------------------------------------------------------------

    def create_request(self, requester_id: str, observations: Optional[str] = None) -> int:
        """Insert a new pending request and return its id."""
        with self._conn() as conn:
            cur = conn.execute(
                """INSERT INTO purchase_requests (requester_id, status, observations, created_at)
                   VALUES (?, 'pending', ?, ?)""",
                (str(requester_id), observations, _now_iso()),
            )
            request_id = cur.lastrowid
        logger.info("DB request created: %s  requester=%s", request_id, requester_id)
        return request_id

    def get_request(self, request_id: int) -> Optional[dict]:
        """Return the request header (all columns) or None."""
        with self._conn() as conn:
            row = conn.execute(
                "SELECT * FROM purchase_requests WHERE id=?", (request_id,)
            ).fetchone()
        return dict(row) if row else None

    def update_request_status(
        self,
        request_id: int,
        status: str,
        actor: str,
        notes: Optional[str] = None,
    ) -> bool:
        """
        Set the status of a request.  Records reviewed_* on review outcomes,
        completed_* when closing and clears them when reopening.
        Returns True if the record was found.
        """
        if status not in ALL_REQUEST_STATUSES:
            raise ValueError(f"Invalid status {status!r}. Must be one of {ALL_REQUEST_STATUSES}")

        now = _now_iso()
        with self._conn() as conn:
            if status == STATUS_COMPLETED:
                conn.execute(
                    """UPDATE purchase_requests SET
                        status=?, completed_at=?, completed_by=?, completion_notes=?
                    WHERE id=?""",
                    (status, now, actor, notes, request_id),
                )
            else:
                conn.execute(
                    """UPDATE purchase_requests SET
                        status=?, reviewed_at=?, reviewed_by=?,
                        admin_notes=COALESCE(?, admin_notes),
                        completed_at=NULL, completed_by=NULL
                    WHERE id=?""",
                    (status, now, actor, notes, request_id),
                )
            changed = conn.execute("SELECT changes()").fetchone()[0]

        return changed > 0

    # ------------------------------------------------------------------
    # Requested items
    # ------------------------------------------------------------------

    def add_item(
        self,
        request_id: int,
        product_name: str,
        quantity: int,
        deadline: Optional[str] = None,
    ) -> int:
        """Insert a pending line item on a request and return its id."""
        with self._conn() as conn:
            cur = conn.execute(
                """INSERT INTO request_items (request_id, product_name, quantity, status,
                                              deadline, created_at)
                   VALUES (?, ?, ?, 'pending', ?, ?)""",
                (request_id, product_name, quantity, deadline, _now_iso()),
            )
            return cur.lastrowid

    def get_item(self, item_id: int) -> Optional[dict]:
        """Return one requested item or None."""
        with self._conn() as conn:
            row = conn.execute(
                "SELECT * FROM request_items WHERE id=?", (item_id,)
            ).fetchone()
        return dict(row) if row else None

    def list_items(self, request_id: int, status: Optional[str] = None) -> list[dict]:
        """Return the items of one request, optionally filtered by review status."""
        clauses = ["request_id = ?"]
        params: list = [request_id]
        if status:
            clauses.append("status = ?")
            params.append(status)

        with self._conn() as conn:
            rows = conn.execute(
                f"SELECT * FROM request_items WHERE {' AND '.join(clauses)} ORDER BY id ASC",
                params,
            ).fetchall()
        return [dict(r) for r in rows]

    def update_item_review(
        self,
        item_id: int,
        status: str,
        admin_notes: Optional[str] = None,
    ) -> bool:
        """Set an item's review status.  Returns True if the item was found."""
        if status not in ALL_ITEM_STATUSES:
            raise ValueError(f"Invalid item status {status!r}. Must be one of {ALL_ITEM_STATUSES}")

        with self._conn() as conn:
            conn.execute(
                "UPDATE request_items SET status=?, admin_notes=COALESCE(?, admin_notes) WHERE id=?",
                (status, admin_notes, item_id),
            )
            return conn.execute("SELECT changes()").fetchone()[0] > 0

    def update_item_quantity(self, item_id: int, quantity: int) -> bool:
        """Change an item's ordered quantity.  Returns True if the item was found."""
        with self._conn() as conn:
            conn.execute(
                "UPDATE request_items SET quantity=? WHERE id=?",
                (quantity, item_id),
            )
            return conn.execute("SELECT changes()").fetchone()[0] > 0

    def delete_item(self, item_id: int) -> bool:
        """
        Delete a requested item.  Raises sqlite3.IntegrityError if receipts
        reference it.
        """
        with self._conn() as conn:
            conn.execute("DELETE FROM request_items WHERE id = ?", (item_id,))
            return conn.execute("SELECT changes()").fetchone()[0] > 0

    # ------------------------------------------------------------------
    # Receipt ledger
    # ------------------------------------------------------------------

    def insert_receipt(
        self,
        item_id: int,
        fields: dict,
        request_id: Optional[int] = None,
    ) -> tuple[dict, bool]:
        """
        Append one receipt row for an item.

        When fields carries an idempotency_key that was already used for
        this item, nothing is inserted and the existing row is returned.
        With a request_id, a "receipt_recorded" audit entry is written in
        the same transaction as the new row.

        Returns (receipt row, created).
        """
        values = {col: fields.get(col) for col in _RECEIPT_COLUMNS}
        values["item_id"] = item_id
        values["created_at"] = values["created_at"] or _now_iso()
        values["quality_checked"] = 1 if values["quality_checked"] else 0
        values["rejected_quantity"] = values["rejected_quantity"] or 0
        values["notes"] = values["notes"] or ""
        values["quality_notes"] = values["quality_notes"] or ""
        values["receipt_condition"] = values["receipt_condition"] or "good"

        with self._conn() as conn:
            cur = conn.execute(
                f"""
                INSERT INTO item_receipts (item_id, {', '.join(_RECEIPT_COLUMNS)})
                VALUES (:item_id, {', '.join(':' + c for c in _RECEIPT_COLUMNS)})
                ON CONFLICT (item_id, idempotency_key) DO NOTHING
                """,
                values,
            )
            created = cur.rowcount > 0
            if created:
                row = conn.execute(
                    "SELECT * FROM item_receipts WHERE id=?", (cur.lastrowid,)
                ).fetchone()
                if request_id is not None:
                    _write_audit(
                        conn, request_id, "receipt_recorded",
                        actor=row["received_by"], item_id=item_id,
                        detail={
                            "receipt_id": row["id"],
                            "quantity_received": row["quantity_received"],
                            "rejected_quantity": row["rejected_quantity"],
                            "invoice_number": row["invoice_number"],
                        },
                    )
            else:
                row = conn.execute(
                    "SELECT * FROM item_receipts WHERE item_id=? AND idempotency_key=?",
                    (item_id, values["idempotency_key"]),
                ).fetchone()

        return _receipt_row(row), created

    def list_receipts(self, item_id: int) -> list[dict]:
        """Return all receipts for one item, oldest first."""
        with self._conn() as conn:
            rows = conn.execute(
                """SELECT * FROM item_receipts WHERE item_id = ?
                   ORDER BY created_at ASC, id ASC""",
                (item_id,),
            ).fetchall()
        return [_receipt_row(r) for r in rows]

    def count_receipts(self, item_id: int) -> int:
        with self._conn() as conn:
            return conn.execute(
                "SELECT COUNT(*) FROM item_receipts WHERE item_id = ?", (item_id,)
            ).fetchone()[0]

    def list_request_receipts(self, request_id: int) -> list[dict]:
        """Return every receipt recorded against a request's items, oldest first."""
        with self._conn() as conn:
            rows = conn.execute(
                """SELECT ir.* FROM item_receipts ir
                   JOIN request_items ri ON ri.id = ir.item_id
                   WHERE ri.request_id = ?
                   ORDER BY ir.created_at ASC, ir.id ASC""",
                (request_id,),
            ).fetchall()
        return [_receipt_row(r) for r in rows]

    def query_receipts(
        self,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        supplier_id: Optional[int] = None,
        request_id: Optional[int] = None,
    ) -> list[dict]:
        """
        Return receipts joined with their item for reporting, newest first.

        Args:
            start_date:  YYYY-MM-DD, inclusive lower bound on created_at.
            end_date:    YYYY-MM-DD, inclusive upper bound (whole day).
            supplier_id: Only receipts delivered by this supplier.
            request_id:  Only receipts against this request's items.
        """
        clauses: list[str] = []
        params: list = []

        if start_date:
            clauses.append("ir.created_at >= ?")
            params.append(start_date)
        if end_date:
            clauses.append("ir.created_at < ?")
            params.append((date.fromisoformat(end_date) + timedelta(days=1)).isoformat())
        if supplier_id is not None:
            clauses.append("ir.supplier_id = ?")
            params.append(supplier_id)
        if request_id is not None:
            clauses.append("ri.request_id = ?")
            params.append(request_id)

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

        with self._conn() as conn:
            rows = conn.execute(
                f"""
                SELECT
                    ir.*,
                    ri.request_id,
                    ri.product_name,
                    ri.quantity AS quantity_ordered
                FROM item_receipts ir
                JOIN request_items ri ON ri.id = ir.item_id
                {where}
                ORDER BY ir.created_at DESC, ir.id DESC
                """,
                params,
            ).fetchall()

        return [_receipt_row(r) for r in rows]

    def get_receipts_overview(self, request_id: int) -> dict:
        """Return aggregate receipt totals for one request."""
        with self._conn() as conn:
            row = conn.execute(
                """
                SELECT
                    COUNT(ir.id)                              AS total_receipts,
                    COALESCE(SUM(ir.quantity_received), 0)    AS total_quantity,
                    COALESCE(SUM(ir.rejected_quantity), 0)    AS total_rejected,
                    COUNT(DISTINCT ir.supplier_id)            AS unique_suppliers,
                    MIN(ir.created_at)                        AS first_receipt_date,
                    MAX(ir.created_at)                        AS last_receipt_date
                FROM item_receipts ir
                JOIN request_items ri ON ri.id = ir.item_id
                WHERE ri.request_id = ?
                """,
                (request_id,),
            ).fetchone()
        return dict(row) if row else {}

    # ------------------------------------------------------------------
    # Audit log
    # ------------------------------------------------------------------

    def log_audit(
        self,
        request_id: int,
        action: str,
        actor: str = "system",
        item_id: Optional[int] = None,
        detail: Optional[dict] = None,
    ) -> None:
        """Append one entry to the audit log."""
        with self._conn() as conn:
            _write_audit(conn, request_id, action, actor=actor, item_id=item_id, detail=detail)

    def get_audit_log(self, request_id: int) -> list[dict]:
        """Return all audit entries for one request, oldest first."""
        with self._conn() as conn:
            rows = conn.execute(
                """SELECT id, item_id, timestamp, action, actor, detail
                   FROM audit_log WHERE request_id = ?
                   ORDER BY timestamp ASC, id ASC""",
                (request_id,),
            ).fetchall()
        return [dict(r) for r in rows]
