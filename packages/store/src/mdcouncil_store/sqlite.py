"""SQLiteStore - local file-based review history.

Schema:
  reviews  - one row per completed council review. Findings are kept as a
             JSON column so read paths stay a single-table query.
"""

from __future__ import annotations

import json
import sqlite3

from mdcouncil_store.base import BaseStore
from mdcouncil_store.models import FindingRecord, ReviewRecord


_SCHEMA = """
CREATE TABLE IF NOT EXISTS reviews (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    session_id          TEXT NOT NULL,
    document_path       TEXT NOT NULL,
    reviewed_at         TEXT,
    reviewers_json      TEXT DEFAULT '[]',
    summary             TEXT,
    total_findings      INTEGER DEFAULT 0,
    overall_assessment  TEXT,
    findings_json       TEXT DEFAULT '[]'
);
CREATE INDEX IF NOT EXISTS idx_reviews_document ON reviews (document_path);
"""


class SQLiteStore(BaseStore):
    """Stores review history in a local SQLite database file.

    Defaults to `.mdcouncil.db` in the current working directory. Configure
    via .mdcouncil.yml: `store_path: /path/to/mdcouncil.db`.
    """

    def __init__(self, db_path: str = ".mdcouncil.db"):
        self._conn = sqlite3.connect(db_path)
        self._conn.row_factory = sqlite3.Row
        self._conn.executescript(_SCHEMA)
        self._conn.commit()

    def save(self, record: ReviewRecord) -> None:
        findings_json = json.dumps(
            [
                {
                    "reviewer": f.reviewer,
                    "line": f.line,
                    "type": f.type,
                    "severity": f.severity,
                    "status": f.status,
                    "comment": f.comment,
                }
                for f in record.findings
            ]
        )
        self._conn.execute(
            """
            INSERT INTO reviews
              (session_id, document_path, reviewed_at, reviewers_json, summary,
               total_findings, overall_assessment, findings_json)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record.session_id,
                record.document_path,
                record.reviewed_at,
                json.dumps(record.reviewers),
                record.summary,
                record.total_findings,
                record.overall_assessment,
                findings_json,
            ),
        )
        self._conn.commit()

    def list_reviews(self, document_path: str | None = None) -> list[ReviewRecord]:
        if document_path is not None:
            rows = self._conn.execute(
                "SELECT * FROM reviews WHERE document_path=? ORDER BY reviewed_at, id",
                (document_path,),
            ).fetchall()
        else:
            rows = self._conn.execute("SELECT * FROM reviews ORDER BY reviewed_at, id").fetchall()

        return [self._row_to_record(r) for r in rows]

    def close(self) -> None:
        self._conn.close()

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> ReviewRecord:
        findings = [
            FindingRecord(
                reviewer=f.get("reviewer", ""),
                line=f.get("line", 0),
                type=f.get("type", "suggestion"),
                severity=f.get("severity", "low"),
                status=f.get("status", "pending"),
                comment=f.get("comment", ""),
            )
            for f in json.loads(row["findings_json"] or "[]")
        ]
        return ReviewRecord(
            session_id=row["session_id"],
            document_path=row["document_path"],
            reviewed_at=row["reviewed_at"] or "",
            reviewers=json.loads(row["reviewers_json"] or "[]"),
            summary=row["summary"] or "",
            total_findings=row["total_findings"],
            overall_assessment=row["overall_assessment"] or "",
            findings=findings,
        )
