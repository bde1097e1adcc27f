"""
Tests for BatchWriter / UpsertWriter retry behaviour.
"""

import logging
import threading

import pytest

from docloader.core.exceptions import (
    ConfigurationException,
    StoreWriteException,
    WriteFailureException,
)
from docloader.schemas.store_schema import WriteOutcome
from docloader.services.writers import BatchWriter, RetryPolicy, UpsertWriter


def _transient() -> StoreWriteException:
    return StoreWriteException(message="not master")


def test_batch_flushes_at_capacity(store, fake_sleep) -> None:
    writer = BatchWriter(store, RetryPolicy(3, 1), capacity=2, sleep=fake_sleep)

    for doc in ({"r": "A"}, {"r": "B"}, {"r": "C"}, {"r": "D"}):
        writer.add(doc)

    inserts = [c for c in store.calls if c[0] == "insert_many"]
    assert [len(c[1]) for c in inserts] == [2, 2]
    assert [d["r"] for d in store.documents] == ["A", "B", "C", "D"]
    assert writer.pending == 0
    assert writer.batches_written == 2


def test_flush_of_empty_batch_is_a_noop(store) -> None:
    writer = BatchWriter(store, RetryPolicy(), capacity=10)
    assert writer.flush() is None
    assert store.calls == []


def test_one_transient_failure_then_success(make_store, fake_sleep, sleeps: list[float]) -> None:
    store = make_store(script=[_transient()])
    writer = BatchWriter(store, RetryPolicy(max_retries=3, delay_seconds=7), capacity=10, sleep=fake_sleep)
    writer.add({"r": 1})

    outcome = writer.flush()

    assert outcome is not None and outcome.ok
    assert len(store.write_calls()) == 2
    assert sleeps == [7]
    assert writer.pending == 0


def test_persistent_failure_exhausts_retries(make_store, fake_sleep, sleeps: list[float]) -> None:
    store = make_store(script=[_transient() for _ in range(5)])
    writer = BatchWriter(store, RetryPolicy(max_retries=1, delay_seconds=2), capacity=10, sleep=fake_sleep)
    writer.add({"r": 1})

    with pytest.raises(WriteFailureException) as exc_info:
        writer.flush()

    assert len(store.write_calls()) == 2
    assert sleeps == [2]
    assert writer.pending == 0
    assert isinstance(exc_info.value.__cause__, StoreWriteException)
    assert exc_info.value.details["attempts"] == 2


def test_reported_failure_counts_as_attempt(make_store, fake_sleep, sleeps: list[float]) -> None:
    store = make_store(script=[WriteOutcome(ok=False, error_message="disk full")])
    writer = BatchWriter(store, RetryPolicy(max_retries=2, delay_seconds=1), capacity=10, sleep=fake_sleep)
    writer.add({"r": 1})

    assert writer.flush().ok
    assert len(store.write_calls()) == 2
    assert sleeps == [1]


@pytest.mark.parametrize("failures, expected_attempts, succeeds", [
    (0, 1, True),
    (1, 2, True),
    (2, 3, True),
    (3, 3, False),
    (5, 3, False),
])
def test_attempt_count_bounded_by_retries(
    failures: int, expected_attempts: int, succeeds: bool, make_store, fake_sleep
) -> None:
    store = make_store(script=[_transient() for _ in range(failures)])
    writer = BatchWriter(store, RetryPolicy(max_retries=2, delay_seconds=0), capacity=10, sleep=fake_sleep)
    writer.add({"r": 1})

    if succeeds:
        writer.flush()
    else:
        with pytest.raises(WriteFailureException):
            writer.flush()
    assert len(store.write_calls()) == expected_attempts
    assert writer.pending == 0


def test_cancelled_before_first_attempt(store) -> None:
    cancel = threading.Event()
    cancel.set()
    writer = BatchWriter(store, RetryPolicy(), capacity=10, cancel_event=cancel)
    writer.add({"r": 1})

    assert writer.flush() is None
    assert store.write_calls() == []
    assert writer.pending == 0


def test_cancelled_during_backoff_fails_the_write(make_store) -> None:
    cancel = threading.Event()
    store = make_store(script=[_transient() for _ in range(5)])
    writer = BatchWriter(
        store, RetryPolicy(max_retries=5, delay_seconds=1), capacity=10,
        cancel_event=cancel, sleep=lambda _: cancel.set(),
    )
    writer.add({"r": 1})

    with pytest.raises(WriteFailureException) as exc_info:
        writer.flush()

    assert len(store.write_calls()) == 1
    assert exc_info.value.details["cancelled"] is True


def test_modifier_update_uses_update_one(store) -> None:
    writer = UpsertWriter(store, RetryPolicy())
    writer.write({"id": 1}, {"$set": {"name": "Ada"}})

    assert store.write_calls() == [("update_one", {"id": 1}, {"$set": {"name": "Ada"}}, True)]
    assert writer.writes == 1


def test_multi_modifier_update_uses_update_many(store) -> None:
    UpsertWriter(store, RetryPolicy()).write({"region": "eu"}, {"$inc": {"n": 1}}, multi=True)
    assert store.write_calls()[0][0] == "update_many"


def test_full_document_replaces(store) -> None:
    UpsertWriter(store, RetryPolicy()).write({"id": 1}, {"id": 1, "name": "Ada"})
    assert store.write_calls() == [("replace_one", {"id": 1}, {"id": 1, "name": "Ada"}, True)]


def test_multi_replacement_rejected(store) -> None:
    with pytest.raises(ConfigurationException):
        UpsertWriter(store, RetryPolicy()).write({"id": 1}, {"name": "Ada"}, multi=True)
    assert store.write_calls() == []


def test_upsert_retries_like_batches(make_store, fake_sleep, sleeps: list[float]) -> None:
    store = make_store(script=[_transient(), _transient()])
    writer = UpsertWriter(store, RetryPolicy(max_retries=3, delay_seconds=4), sleep=fake_sleep)

    assert writer.write({"id": 1}, {"$set": {"a": 1}}).ok
    assert len(store.write_calls()) == 3
    assert sleeps == [4, 4]


def test_retry_logs_escalate_before_final_attempt(
    make_store, fake_sleep, caplog: pytest.LogCaptureFixture
) -> None:
    store = make_store(script=[_transient() for _ in range(3)])
    writer = BatchWriter(store, RetryPolicy(max_retries=3, delay_seconds=0), capacity=10, sleep=fake_sleep)
    writer.add({"r": 1})

    with caplog.at_level(logging.DEBUG, logger="docloader.services.writers"):
        writer.flush()

    retries = [r for r in caplog.records if r.getMessage() == "Write attempt failed, retrying"]
    assert [r.levelno for r in retries] == [logging.WARNING, logging.WARNING, logging.ERROR]
