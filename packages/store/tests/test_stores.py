"""Tests for mdcouncil-store implementations."""

from __future__ import annotations

from datetime import datetime, timezone

from mdcouncil_store.models import FindingRecord, ReviewRecord
from mdcouncil_store.noop import NoOpStore
from mdcouncil_store.sqlite import SQLiteStore


def _make_record(document_path="docs/intro.md", session_id="s1", reviewed_at=None, status="accepted"):
    return ReviewRecord(
        session_id=session_id,
        document_path=document_path,
        reviewed_at=reviewed_at or datetime.now(timezone.utc).isoformat(),
        reviewers=["fact_checker", "editor"],
        summary="1 reviewer(s) found 1 item(s). 1 high priority. 1 error(s).",
        total_findings=1,
        overall_assessment="Needs a fact fix.",
        findings=[
            FindingRecord(
                reviewer="FactChecker",
                line=2,
                type="error",
                severity="high",
                status=status,
                comment="The date is wrong.",
            ),
        ],
    )


# ---------------------------------------------------------------------------
# NoOpStore
# ---------------------------------------------------------------------------


class TestNoOpStore:
    def test_save_does_not_raise(self):
        store = NoOpStore()
        store.save(_make_record())  # must not raise

    def test_list_reviews_returns_empty(self):
        store = NoOpStore()
        store.save(_make_record())
        assert store.list_reviews() == []
        assert store.list_reviews("docs/intro.md") == []

    def test_close_is_safe(self):
        NoOpStore().close()


# ---------------------------------------------------------------------------
# SQLiteStore
# ---------------------------------------------------------------------------


class TestSQLiteStore:
    def test_save_and_list(self, tmp_path):
        store = SQLiteStore(str(tmp_path / "test.db"))
        store.save(_make_record())

        [record] = store.list_reviews()
        assert record.session_id == "s1"
        assert record.document_path == "docs/intro.md"
        assert record.reviewers == ["fact_checker", "editor"]
        assert record.total_findings == 1
        assert record.overall_assessment == "Needs a fact fix."
        store.close()

    def test_findings_roundtrip(self, tmp_path):
        store = SQLiteStore(str(tmp_path / "test.db"))
        original = _make_record(status="rejected")
        store.save(original)

        assert store.list_reviews()[0].findings == original.findings
        store.close()

    def test_filter_by_document(self, tmp_path):
        store = SQLiteStore(str(tmp_path / "test.db"))
        store.save(_make_record(document_path="a.md", session_id="1"))
        store.save(_make_record(document_path="b.md", session_id="2"))

        records = store.list_reviews("b.md")
        assert [r.session_id for r in records] == ["2"]
        assert store.list_reviews("missing.md") == []
        store.close()

    def test_oldest_first(self, tmp_path):
        store = SQLiteStore(str(tmp_path / "test.db"))
        store.save(_make_record(session_id="late", reviewed_at="2026-03-02T10:00:00+00:00"))
        store.save(_make_record(session_id="early", reviewed_at="2026-03-01T10:00:00+00:00"))

        assert [r.session_id for r in store.list_reviews()] == ["early", "late"]
        store.close()

    def test_persists_across_connections(self, tmp_path):
        db = str(tmp_path / "test.db")
        store = SQLiteStore(db)
        store.save(_make_record())
        store.close()

        reopened = SQLiteStore(db)
        assert len(reopened.list_reviews()) == 1
        reopened.close()
