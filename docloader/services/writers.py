"""
Retrying writers.

``BatchWriter`` buffers documents and bulk-inserts them; ``UpsertWriter``
issues one update-with-upsert per row. Both share the same discipline:

  * attempt the write, up to ``max_retries + 1`` times;
  * a driver error or a non-ok outcome counts as a failed attempt;
  * after a failed attempt, sleep a fixed delay if attempts remain
    (logged at WARNING, and at ERROR before the final attempt);
  * cancellation is checked before every attempt;
  * leaving the loop with a failure pending raises ``WriteFailureException``.
"""

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from docloader.core.exceptions import (
    ConfigurationException,
    StoreWriteException,
    WriteFailureException,
)
from docloader.core.logging import get_logger
from docloader.mappers.base_mapper import Document
from docloader.schemas.store_schema import WriteOutcome
from docloader.services.store_client import DocumentStore

logger = get_logger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 5
    delay_seconds: float = 10


class _RetryingWriter:
    def __init__(
        self,
        store: DocumentStore,
        policy: RetryPolicy,
        cancel_event: threading.Event | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._store = store
        self._policy = policy
        self._cancel_event = cancel_event or threading.Event()
        self._sleep = sleep

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def _execute(
        self,
        operation: str,
        call: Callable[[], WriteOutcome],
        context: dict[str, Any],
    ) -> WriteOutcome | None:
        """
        Run ``call`` under the retry policy.

        Returns:
            The successful outcome, or ``None`` if cancelled before any failure.

        Raises:
            WriteFailureException: Retries exhausted, or cancelled while a
                failure was pending.
        """
        max_retries = self._policy.max_retries
        attempt = 0
        last_error: StoreWriteException | None = None

        while attempt <= max_retries and not self.cancelled:
            try:
                outcome = call()
            except StoreWriteException as exc:
                failure = exc
            else:
                if outcome.ok:
                    if outcome.server_identity:
                        logger.debug(
                            "Write acknowledged",
                            extra={**context, "operation": operation,
                                   "server": outcome.server_identity},
                        )
                    return outcome
                logger.error(
                    "Document store reported a failed write",
                    extra={**context, "operation": operation,
                           "error": outcome.error_message},
                )
                failure = StoreWriteException(
                    message=outcome.error_message or f"{operation} was not applied.",
                    details={"operation": operation,
                             "server": outcome.server_identity},
                )

            last_error = failure
            attempt += 1
            if attempt <= max_retries:
                # escalate before the final attempt
                level = logging.ERROR if attempt == max_retries else logging.WARNING
                logger.log(
                    level,
                    "Write attempt failed, retrying",
                    extra={**context, "operation": operation, "attempt": attempt,
                           "max_retries": max_retries,
                           "retry_delay_seconds": self._policy.delay_seconds,
                           "error": failure.message},
                )
                self._sleep(self._policy.delay_seconds)

        if last_error is None:
            return None

        logger.error(
            "Write failed",
            extra={**context, "operation": operation, "attempts": attempt,
                   "cancelled": self.cancelled, "error": last_error.message},
        )
        if self.cancelled and attempt <= max_retries:
            reason = "cancelled"
        else:
            reason = f"failed after {attempt} attempt(s)"
        raise WriteFailureException(
            message=f"{operation} {reason}: {last_error.message}",
            details={"operation": operation, "attempts": attempt,
                     "cancelled": self.cancelled},
        ) from last_error


class BatchWriter(_RetryingWriter):
    """Accumulate documents and bulk-insert them in order."""

    def __init__(
        self,
        store: DocumentStore,
        policy: RetryPolicy,
        capacity: int,
        cancel_event: threading.Event | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if capacity < 1:
            raise ConfigurationException(
                message=f"Batch size must be at least 1, got {capacity}.")
        super().__init__(store, policy, cancel_event, sleep)
        self.capacity = capacity
        self._batch: list[Document] = []
        self.batches_written = 0
        self.documents_written = 0

    @property
    def pending(self) -> int:
        return len(self._batch)

    def add(self, document: Document) -> None:
        """Buffer ``document``, flushing once the batch is full."""
        self._batch.append(document)
        if len(self._batch) >= self.capacity:
            logger.debug("Committing a full batch", extra={"batch_size": self.capacity})
            self.flush()

    def flush(self) -> WriteOutcome | None:
        """
        Insert the buffered documents.

        The buffer is emptied whatever the result; failed documents are not
        re-queued.
        """
        if not self._batch:
            return None

        batch, self._batch = self._batch, []
        outcome = self._execute(
            "insert_many",
            lambda: self._store.insert_many(batch),
            {"batch_size": len(batch)},
        )
        if outcome is not None:
            self.batches_written += 1
            self.documents_written += len(batch)
            logger.info("Batch committed", extra={"batch_size": len(batch)})
        return outcome


class UpsertWriter(_RetryingWriter):
    """
    Update-or-insert one row at a time.

    ``document`` is either a modifier update (all top-level keys are
    operators) or a full replacement. ``multi`` updates every match and only
    applies to modifier updates.
    """

    def __init__(
        self,
        store: DocumentStore,
        policy: RetryPolicy,
        cancel_event: threading.Event | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        super().__init__(store, policy, cancel_event, sleep)
        self.writes = 0

    def write(self, query: dict, document: Document, multi: bool = False) -> WriteOutcome | None:
        if _is_modifier_update(document):
            method = self._store.update_many if multi else self._store.update_one
            operation = "update_many" if multi else "update_one"
        else:
            if multi:
                raise ConfigurationException(
                    message="A replacement document cannot update multiple matches.")
            method = self._store.replace_one
            operation = "replace_one"

        outcome = self._execute(
            operation,
            lambda: method(query, document, True),
            {"query": query},
        )
        if outcome is not None:
            self.writes += 1
        return outcome


def _is_modifier_update(document: Document) -> bool:
    return (
        isinstance(document, dict)
        and bool(document)
        and all(key.startswith("$") for key in document)
    )
