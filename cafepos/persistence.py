"""SQLite journal of print jobs, so failed prints can be retried from a snapshot."""

from __future__ import annotations

import json
import sqlite3
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from uuid import uuid4

from cafepos.api import order_from_payload, order_to_payload
from cafepos.config import DB_PATH
from cafepos.models import Order
from cafepos.pricing import format_percentage
from cafepos.receipts import DocumentKind, ReceiptMetadata

STATUS_PENDING = "PENDING"
STATUS_PRINTED = "PRINTED"
STATUS_PRINT_FAILED = "PRINT_FAILED"
JOB_STATUSES = {STATUS_PENDING, STATUS_PRINTED, STATUS_PRINT_FAILED}


@dataclass(frozen=True)
class SavedPrintJob:
    """A journaled job with the order and metadata exactly as first rendered."""

    job_id: str
    created_at: str
    order_id: int | None
    kind: DocumentKind
    copies: int
    status: str
    order_json: str
    metadata_json: str
    error: str | None = None

    def order(self) -> Order:
        return order_from_payload(json.loads(self.order_json))

    def metadata(self) -> ReceiptMetadata:
        data = json.loads(self.metadata_json)
        pct = data.get("discount_percentage")
        return ReceiptMetadata(
            cashier_name=data["cashier_name"],
            printed_at=datetime.fromisoformat(data["printed_at"]),
            payment_method_label=data.get("payment_method_label"),
            discount_percentage=Decimal(pct) if pct is not None else None,
            copies=int(data.get("copies", 1)),
        )


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _connect(db_path: str | Path) -> sqlite3.Connection:
    db_file = Path(db_path)
    db_file.parent.mkdir(parents=True, exist_ok=True)
    return sqlite3.connect(db_file)


def bootstrap_schema(db_path: str | Path = DB_PATH) -> None:
    """Create the journal schema if it does not already exist."""
    with _connect(db_path) as conn:
        conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS print_jobs (
                id TEXT PRIMARY KEY,
                created_at TEXT NOT NULL,
                order_id INTEGER,
                kind TEXT NOT NULL,
                copies INTEGER NOT NULL DEFAULT 1,
                status TEXT NOT NULL,
                order_json TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_print_jobs_status
                ON print_jobs(status);
            """
        )
        columns = {row[1] for row in conn.execute("PRAGMA table_info(print_jobs)")}
        if "metadata_json" not in columns:
            conn.execute("ALTER TABLE print_jobs ADD COLUMN metadata_json TEXT NOT NULL DEFAULT '{}'")
        if "error" not in columns:
            conn.execute("ALTER TABLE print_jobs ADD COLUMN error TEXT")


def _metadata_to_json(metadata: ReceiptMetadata) -> str:
    pct = metadata.discount_percentage
    return json.dumps(
        {
            "cashier_name": metadata.cashier_name,
            "printed_at": metadata.printed_at.isoformat(),
            "payment_method_label": metadata.payment_method_label,
            "discount_percentage": format_percentage(pct) if pct is not None else None,
            "copies": metadata.copies,
        },
        ensure_ascii=False,
    )


def record_print_job(
    order: Order,
    kind: DocumentKind,
    metadata: ReceiptMetadata,
    db_path: str | Path = DB_PATH,
) -> str:
    """Journal a job as PENDING before it is dispatched and return its id."""
    job_id = uuid4().hex
    with _connect(db_path) as conn:
        with conn:
            conn.execute(
                """
                INSERT INTO print_jobs (id, created_at, order_id, kind, copies, status, order_json, metadata_json)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    job_id,
                    _utc_now_iso(),
                    order.id,
                    DocumentKind(kind).value,
                    metadata.copies,
                    STATUS_PENDING,
                    json.dumps(order_to_payload(order), ensure_ascii=False),
                    _metadata_to_json(metadata),
                ),
            )
    return job_id


def update_print_job_status(
    job_id: str,
    status: str,
    error: str | None = None,
    db_path: str | Path = DB_PATH,
) -> None:
    if status not in JOB_STATUSES:
        raise ValueError(f"Unknown print job status: {status}")
    with _connect(db_path) as conn:
        with conn:
            conn.execute("UPDATE print_jobs SET status = ?, error = ? WHERE id = ?", (status, error, job_id))


def failed_print_jobs(db_path: str | Path = DB_PATH) -> list[SavedPrintJob]:
    """Jobs left in PRINT_FAILED, oldest first."""
    with _connect(db_path) as conn:
        rows = conn.execute(
            """
            SELECT id, created_at, order_id, kind, copies, status, order_json, metadata_json, error
            FROM print_jobs
            WHERE status = ?
            ORDER BY created_at, rowid
            """,
            (STATUS_PRINT_FAILED,),
        ).fetchall()
    return [
        SavedPrintJob(
            job_id=row[0],
            created_at=row[1],
            order_id=row[2],
            kind=DocumentKind(row[3]),
            copies=int(row[4]),
            status=row[5],
            order_json=row[6],
            metadata_json=row[7],
            error=row[8],
        )
        for row in rows
    ]


class PrintJournal:
    """The journal functions bound to one database file."""

    def __init__(self, db_path: str | Path = DB_PATH) -> None:
        self.db_path = db_path
        bootstrap_schema(db_path)

    def record(self, order: Order, kind: DocumentKind, metadata: ReceiptMetadata) -> str:
        return record_print_job(order, kind, metadata, db_path=self.db_path)

    def mark(self, job_id: str, status: str, error: str | None = None) -> None:
        update_print_job_status(job_id, status, error=error, db_path=self.db_path)

    def failed(self) -> list[SavedPrintJob]:
        return failed_print_jobs(db_path=self.db_path)
