"""
Tests for the SQLAlchemy store against a per-test SQLite file.
"""
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from url_shortener.exceptions import ShortCodeCollision, StoreError
from url_shortener.queue.models import AnalyticsEvent


def click(code, agent="pytest", when=None):
    return AnalyticsEvent(
        short_code=code,
        ip_address="10.0.0.1",
        user_agent=agent,
        timestamp=when or datetime.now(timezone.utc),
    )


class TestURLRecords:
    """Test creating and looking up URL records"""

    def test_insert_and_lookup(self, store):
        record, created = store.get_or_insert("abc123", "https://example.com")

        assert created
        assert record.short_code == "abc123"
        assert record.clicks == 0
        assert store.get_by_short_code("abc123") == record
        assert store.get_by_long_url("https://example.com").short_code == "abc123"
        assert store.short_code_exists("abc123")

    def test_missing_lookups(self, store):
        assert store.get_by_short_code("nope00") is None
        assert store.get_by_long_url("https://missing.example") is None
        assert not store.short_code_exists("nope00")
        assert store.get_clicks("nope00") is None

    def test_same_long_url_returns_existing(self, store):
        first, _ = store.get_or_insert("abc123", "https://example.com")
        second, created = store.get_or_insert("zzz999", "https://example.com")

        assert not created
        assert second.short_code == first.short_code
        assert not store.short_code_exists("zzz999")

    def test_taken_code_raises_collision(self, store):
        store.get_or_insert("abc123", "https://example.com")

        with pytest.raises(ShortCodeCollision) as exc_info:
            store.get_or_insert("abc123", "https://other.example")

        assert exc_info.value.short_code == "abc123"
        assert store.get_by_long_url("https://other.example") is None

    def test_times_read_back_as_utc(self, store):
        created, _ = store.get_or_insert("abc123", "https://example.com")
        stored = store.get_by_short_code("abc123")

        assert stored.created_at.tzinfo is not None
        assert stored.created_at == created.created_at
        assert stored.model_dump_json() == created.model_dump_json()

        store.record_clicks([click("abc123")])
        assert store.recent_analytics("abc123")[0].timestamp.tzinfo is not None

    def test_very_long_url_is_idempotent(self, store):
        long_url = "https://example.com/search?q=" + "x" * 8000

        first, created = store.get_or_insert("long01", long_url)
        second, created_again = store.get_or_insert("long02", long_url)

        assert created
        assert not created_again
        assert second.short_code == first.short_code
        assert store.get_by_long_url(long_url).short_code == "long01"
        assert store.get_by_long_url(long_url + "y") is None

    def test_list_recent_newest_first(self, store):
        for i in range(5):
            store.get_or_insert(f"code0{i}", f"https://example.com/{i}")

        recent = store.list_recent(3)
        assert [r.short_code for r in recent] == ["code04", "code03", "code02"]
        assert len(store.list_recent(50)) == 5


class TestRecordClicks:
    """Test batch persistence of clicks"""

    def test_increments_and_inserts(self, store):
        store.get_or_insert("abc123", "https://example.com")
        store.get_or_insert("def456", "https://example.org")

        report = store.record_clicks([click("abc123"), click("abc123"), click("def456")])

        assert report.applied == 3
        assert report.skipped == 0
        assert store.get_clicks("abc123") == 2
        assert store.get_clicks("def456") == 1
        assert len(store.recent_analytics("abc123")) == 2

    def test_unknown_code_is_skipped(self, store):
        store.get_or_insert("abc123", "https://example.com")

        report = store.record_clicks([click("abc123"), click("ghost1"), click("abc123")])

        assert report.applied == 2
        assert report.skipped == 1
        assert store.get_clicks("abc123") == 2
        assert store.recent_analytics("ghost1") == []

    def test_empty_batch(self, store):
        report = store.record_clicks([])
        assert report.applied == 0
        assert report.skipped == 0

    def test_recent_analytics_order_and_limit(self, store):
        store.get_or_insert("abc123", "https://example.com")
        base = datetime(2024, 1, 1, tzinfo=timezone.utc)
        store.record_clicks([
            click("abc123", agent=f"agent{i}", when=base + timedelta(minutes=i))
            for i in range(5)
        ])

        rows = store.recent_analytics("abc123", limit=3)
        assert [r.user_agent for r in rows] == ["agent4", "agent3", "agent2"]
        assert rows[0].ip_address == "10.0.0.1"

    def test_failed_commit_loses_whole_batch(self, store, monkeypatch):
        store.get_or_insert("abc123", "https://example.com")

        def broken_commit(self):
            raise OperationalError("COMMIT", {}, Exception("disk I/O error"))

        monkeypatch.setattr(Session, "commit", broken_commit)
        with pytest.raises(StoreError):
            store.record_clicks([click("abc123"), click("abc123")])
        monkeypatch.undo()

        assert store.get_clicks("abc123") == 0
        assert store.recent_analytics("abc123") == []
