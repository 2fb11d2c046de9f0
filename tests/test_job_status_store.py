"""Unit tests for JobStatusStore bookkeeping.

Covers the authoritative/local distinction for `last_update_time`,
arrival-order merging with push events ordered by producer time, insertion order and copy isolation.
"""

from datetime import datetime, timedelta, timezone

import pytest

from jobpulse.core.managers.job_status_store import JobStatusStore
from jobpulse.core.models.job import JobStatus, UpdateSource


class FakeClock:
    def __init__(self):
        self.now = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return JobStatusStore(clock=clock)


def test_get_missing_returns_none(store):
    assert store.get("nope") is None
    assert "nope" not in store


def test_upsert_creates_record_stamped_now(store, clock):
    record = store.upsert("j1", UpdateSource.local, status=JobStatus.processing)

    assert record.id == "j1"
    assert record.status == JobStatus.processing
    assert record.last_update_time == clock.now
    assert record.registered_at == clock.now
    assert len(store) == 1


def test_local_update_does_not_refresh_timestamp(store, clock):
    store.upsert("j1", UpdateSource.local, status=JobStatus.processing)
    created_at = clock.now
    clock.advance(20)

    record = store.upsert("j1", UpdateSource.local, in_flight_correction=True)

    assert record.in_flight_correction is True
    assert record.last_update_time == created_at
    assert record.last_source == UpdateSource.local


@pytest.mark.parametrize("source", [UpdateSource.push, UpdateSource.poll])
def test_authoritative_update_refreshes_timestamp(store, clock, source):
    store.upsert("j1", UpdateSource.local, status=JobStatus.processing)
    clock.advance(20)

    record = store.upsert("j1", source, last_known_progress=0.5)

    assert record.last_update_time == clock.now
    assert record.last_known_progress == 0.5
    assert record.last_source == source


def test_authoritative_writes_use_arrival_clock_not_producer_time(store, clock):
    store.upsert("j1", UpdateSource.local, status=JobStatus.processing)
    clock.advance(5)
    producer_time = clock.now - timedelta(seconds=60)

    record = store.upsert("j1", UpdateSource.push, event_time=producer_time, last_known_progress=0.3)

    assert record.last_update_time == clock.now
    assert record.last_event_time == producer_time


def test_out_of_order_push_is_dropped(store, clock):
    store.upsert(
        "j1", UpdateSource.push, event_time=clock.now, status=JobStatus.processing, last_known_progress=0.6
    )
    clock.advance(1)

    result = store.upsert(
        "j1", UpdateSource.push, event_time=clock.now - timedelta(seconds=5), last_known_progress=0.4
    )

    assert result is None
    assert store.get("j1").last_known_progress == 0.6


@pytest.mark.parametrize("status", [JobStatus.completed, JobStatus.failed])
def test_terminal_push_is_never_dropped(store, clock, status):
    store.upsert("j1", UpdateSource.push, event_time=clock.now, status=JobStatus.processing)

    record = store.upsert(
        "j1", UpdateSource.push, event_time=clock.now - timedelta(seconds=5), status=status
    )

    assert record.status == status


def test_push_from_future_does_not_block_later_writes(store, clock):
    store.upsert(
        "j1", UpdateSource.push, event_time=clock.now + timedelta(seconds=5), status=JobStatus.processing
    )
    clock.advance(1)

    via_progress = store.upsert("j1", UpdateSource.push, last_known_progress=0.6)
    via_poll = store.upsert("j1", UpdateSource.poll, last_known_progress=0.7)

    assert via_progress.last_known_progress == 0.6
    assert via_poll.last_known_progress == 0.7
    assert via_poll.last_update_time == clock.now


def test_latest_write_wins_even_if_progress_smaller(store, clock):
    store.upsert("j1", UpdateSource.push, status=JobStatus.processing, last_known_progress=0.8)
    clock.advance(1)

    record = store.upsert("j1", UpdateSource.poll, last_known_progress=0.3)

    assert record.last_known_progress == 0.3


def test_naive_event_time_treated_as_utc(store, clock):
    naive = clock.now.replace(tzinfo=None)

    record = store.upsert("j1", UpdateSource.push, event_time=naive, status=JobStatus.processing)

    assert record.last_event_time == clock.now


@pytest.mark.parametrize(
    "raw,expected",
    [("PENDING", JobStatus.queued), ("Running", JobStatus.processing), ("failed", JobStatus.failed)],
)
def test_status_strings_are_coerced(store, raw, expected):
    record = store.upsert("j1", UpdateSource.poll, status=raw)
    assert record.status == expected


@pytest.mark.parametrize(
    "field", ["id", "last_update_time", "registered_at", "last_event_time", "unknown_field"]
)
def test_protected_or_unknown_fields_rejected(store, field):
    with pytest.raises(ValueError):
        store.upsert("j1", UpdateSource.local, **{field: "x"})


def test_remove(store):
    store.upsert("j1", UpdateSource.local, status=JobStatus.processing)
    store.upsert("j2", UpdateSource.local, status=JobStatus.processing)

    removed = store.remove("j1")

    assert removed.id == "j1"
    assert store.remove("j1") is None
    assert len(store) == 1


def test_records_keep_insertion_order(store):
    for job_id in ["c", "a", "b"]:
        store.upsert(job_id, UpdateSource.local, status=JobStatus.processing)
    store.upsert("c", UpdateSource.push, last_known_progress=0.9)

    assert [r.id for r in store.records()] == ["c", "a", "b"]


def test_returned_records_are_copies(store):
    store.upsert("j1", UpdateSource.local, status=JobStatus.processing)

    copy = store.get("j1")
    copy.status = JobStatus.failed

    assert store.get("j1").status == JobStatus.processing
