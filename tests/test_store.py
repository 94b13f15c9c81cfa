"""
Tests for the sample store.
"""

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy.exc import OperationalError

from conftest import HOUR, NOW, sample
from statuskeeper.core import OFFLINE, ONLINE, ServiceSample, StorageError
from statuskeeper.store import SampleStore

A = "https://a.example.com"
B = "https://b.example.com"


class TestAppend:
    """Tests for writing samples."""

    def test_append_and_query(self, store: SampleStore) -> None:
        """Test a single append round trip."""
        assert store.append(sample(A, ONLINE, NOW, 120)) is True

        rows = store.query_range(A)

        assert len(rows) == 1
        assert rows[0].status == ONLINE
        assert rows[0].response_time == 120
        assert rows[0].timestamp == NOW

    def test_null_response_time(self, store: SampleStore) -> None:
        """Test that a missing response time is stored as None."""
        store.append(sample(A, OFFLINE, NOW, None))

        assert store.query_range(A)[0].response_time is None

    def test_append_batch(self, store: SampleStore) -> None:
        """Test writing a batch."""
        written = store.append_batch([sample(A, ONLINE, NOW), sample(B, OFFLINE, NOW)])

        assert written == 2
        assert store.count() == 2

    def test_append_batch_empty(self, store: SampleStore) -> None:
        assert store.append_batch([]) == 0

    def test_append_failure_does_not_raise(self, store: SampleStore) -> None:
        """Test that storage errors are reported, not raised."""
        with patch.object(store, "_session_factory") as factory:
            factory.begin.side_effect = OperationalError("INSERT", {}, Exception("disk full"))
            assert store.append(sample(A, ONLINE, NOW)) is False

    def test_batch_falls_back_to_single_writes(self, store: SampleStore) -> None:
        """Test that one failed batch is retried sample by sample."""
        failing_factory = MagicMock()
        failing_factory.begin.side_effect = OperationalError("INSERT", {}, Exception("locked"))
        calls: list[str] = []

        def single_append(s: ServiceSample) -> bool:
            calls.append(s.url)
            return s.url != B

        with patch.object(store, "_session_factory", failing_factory), \
                patch.object(store, "append", side_effect=single_append):
            written = store.append_batch([sample(A, ONLINE, NOW), sample(B, ONLINE, NOW)])

        assert written == 1
        assert calls == [A, B]


class TestQueries:
    """Tests for reading samples."""

    def test_range_is_ordered_ascending(self, store: SampleStore) -> None:
        """Test that rows come back oldest first regardless of insert order."""
        store.append(sample(A, ONLINE, NOW + 2000))
        store.append(sample(A, OFFLINE, NOW))
        store.append(sample(A, ONLINE, NOW + 1000))

        timestamps = [s.timestamp for s in store.query_range(A)]

        assert timestamps == [NOW, NOW + 1000, NOW + 2000]

    def test_range_bounds(self, store: SampleStore) -> None:
        """Test inclusive since/until bounds."""
        for offset in (0, 1000, 2000, 3000):
            store.append(sample(A, ONLINE, NOW + offset))

        rows = store.query_range(A, since=NOW + 1000, until=NOW + 2000)

        assert [s.timestamp for s in rows] == [NOW + 1000, NOW + 2000]

    def test_range_all_targets(self, store: SampleStore) -> None:
        """Test that omitting the URL returns every target."""
        store.append(sample(A, ONLINE, NOW))
        store.append(sample(B, ONLINE, NOW + 1))

        assert {s.url for s in store.query_range()} == {A, B}
        assert [s.url for s in store.query_range(B)] == [B]

    def test_latest_newest_first(self, store: SampleStore) -> None:
        """Test the most-recent-first history query."""
        for offset in range(5):
            store.append(sample(A, ONLINE, NOW + offset * 1000))
        store.append(sample(B, OFFLINE, NOW + 10_000))

        rows = store.latest(A, 3)

        assert [s.timestamp for s in rows] == [NOW + 4000, NOW + 3000, NOW + 2000]

    def test_latest_unknown_target(self, store: SampleStore) -> None:
        assert store.latest("https://nothing.example.com", 3) == []

    def test_query_failure_raises_storage_error(self, store: SampleStore) -> None:
        """Test that query errors surface as StorageError."""
        with patch.object(store, "_session_factory", side_effect=OperationalError("SELECT", {}, Exception("gone"))):
            with pytest.raises(StorageError):
                store.query_range(A)


class TestPrune:
    """Tests for bulk deletion."""

    def test_prune_older_than(self, store: SampleStore) -> None:
        """Test that only samples strictly older than the cutoff are removed."""
        store.append(sample(A, ONLINE, NOW - 2 * HOUR))
        store.append(sample(B, ONLINE, NOW - 2 * HOUR))
        store.append(sample(A, ONLINE, NOW - HOUR))
        store.append(sample(A, ONLINE, NOW))

        removed = store.prune_older_than(NOW - HOUR)

        assert removed == 2
        remaining = store.query_range()
        assert all(s.timestamp >= NOW - HOUR for s in remaining)
        assert len(remaining) == 2

    def test_prune_nothing(self, store: SampleStore) -> None:
        store.append(sample(A, ONLINE, NOW))

        assert store.prune_older_than(NOW - HOUR) == 0


class TestFileDatabase:
    """Tests for on-disk SQLite stores."""

    def test_persists_across_instances(self, tmp_path: Path) -> None:
        """Test that samples survive reopening the store."""
        url = f"sqlite:///{tmp_path / 'samples.sqlite'}"

        first = SampleStore(url)
        first.append(sample(A, ONLINE, NOW))
        first.close()

        second = SampleStore(url)
        assert second.count(A) == 1
        second.close()
