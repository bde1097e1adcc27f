"""
Row pipeline — pull rows, map them, write them, then index.

One ``RowPipelineCoordinator`` drives one pipeline instance:

    UNINITIALIZED ──first row──▶ ACTIVE ──end of rows──▶ DRAINING ──▶ TERMINATED

The first row triggers the one-off work (shape resolution, mapping
validation, schema check, truncation). Each row is fully mapped and
written before the next is pulled. Any fatal error moves the instance to
TERMINATED and closes the store before the error propagates.
"""

import threading
import time
from collections.abc import Callable, Iterable, Iterator
from enum import Enum
from typing import Protocol, TypeVar

from docloader.core.exceptions import ConfigurationException, FieldMismatchException
from docloader.core.logging import get_logger
from docloader.mappers.base_mapper import Row
from docloader.mappers.document_mapper import DocumentMapper
from docloader.mappers.query_mapper import ModifierUpdateMapper, QueryMapper
from docloader.mappers.shape import (
    has_top_level_document_insert,
    resolve_top_level_shape,
    validate_field_paths,
)
from docloader.schemas.mapping_schema import PipelineConfig, TopLevelShape
from docloader.schemas.store_schema import PipelineStats
from docloader.services.index_manager import IndexManager
from docloader.services.store_client import DocumentStore
from docloader.services.writers import BatchWriter, RetryPolicy, UpsertWriter

logger = get_logger(__name__)

T = TypeVar("T")
ContextRunner = Callable[[Callable[[], T]], T]


class PipelineState(str, Enum):
    UNINITIALIZED = "uninitialized"
    ACTIVE = "active"
    DRAINING = "draining"
    TERMINATED = "terminated"


class RowSource(Protocol):
    """Pull-based row supply plus progress notifications."""

    def get_next_row(self) -> Row | None: ...

    def report_row_processed(self) -> None: ...

    def report_stream_complete(self) -> None: ...


class IterableRowSource:
    """Adapt any iterable of rows to ``RowSource``."""

    def __init__(self, rows: Iterable[Row]) -> None:
        self._rows: Iterator[Row] = iter(rows)
        self.rows_processed = 0
        self.complete = False

    def get_next_row(self) -> Row | None:
        return next(self._rows, None)

    def report_row_processed(self) -> None:
        self.rows_processed += 1

    def report_stream_complete(self) -> None:
        self.complete = True


def _run_directly(fn: Callable[[], T]) -> T:
    return fn()


class RowPipelineCoordinator:
    """
    Drive rows from a ``RowSource`` into the document store.

    Args:
        config:         Immutable per-instance settings.
        store:          Connected store; owned (and closed) by this instance.
        cancel_event:   Set from outside to stop cooperatively.
        run_in_context: Wraps each row's processing, e.g. to run it under
                        an impersonated security context.
        sleep:          Back-off sleep between write retries.
    """

    def __init__(
        self,
        config: PipelineConfig,
        store: DocumentStore,
        *,
        cancel_event: threading.Event | None = None,
        run_in_context: ContextRunner = _run_directly,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._config = config
        self._store = store
        self._cancel_event = cancel_event or threading.Event()
        self._run_in_context = run_in_context
        self._sleep = sleep
        self._policy = RetryPolicy(
            max_retries=config.write_retries,
            delay_seconds=config.write_retry_delay,
        )
        self._upsert_writer = UpsertWriter(store, self._policy, self._cancel_event, sleep)
        self._batch_writer: BatchWriter | None = None
        self._document_mapper: DocumentMapper | None = None
        self._query_mapper = QueryMapper(config.fields)
        self._modifier_mapper = ModifierUpdateMapper(config.fields)
        self._truncated = False
        self._rows_read = 0
        self._rows_skipped = 0

        self.state = PipelineState.UNINITIALIZED
        self.shape: TopLevelShape | None = None

    @property
    def stats(self) -> PipelineStats:
        batch = self._batch_writer
        return PipelineStats(
            rows_read=self._rows_read,
            rows_skipped=self._rows_skipped,
            documents_inserted=batch.documents_written if batch else 0,
            batches_written=batch.batches_written if batch else 0,
            upserts_written=self._upsert_writer.writes,
        )

    def cancel(self) -> None:
        self._cancel_event.set()

    def run(self, source: RowSource) -> PipelineStats:
        """Process rows until the source is exhausted or the run is stopped."""
        while self.process_row(source):
            pass
        return self.stats

    def process_row(self, source: RowSource) -> bool:
        """
        Pull and handle one row.

        Returns:
            ``False`` once the stream is finished (or cancelled), else ``True``.

        Raises:
            ConfigurationException: Invalid mapping, detected on the first row.
            MappingFieldException:  A field value cannot be mapped.
            WriteFailureException:  A write failed beyond the retry budget.
        """
        if self.state is PipelineState.TERMINATED:
            return False
        try:
            return self._run_in_context(lambda: self._step(source))
        except Exception:
            self._release()
            raise

    # ── Steps ─────────────────────────────────────────────────────────

    def _step(self, source: RowSource) -> bool:
        if self._cancel_event.is_set():
            logger.info("Pipeline stopped", extra={"rows_read": self._rows_read})
            self._release()
            return False

        row = source.get_next_row()
        if row is None:
            self._drain()
            source.report_stream_complete()
            return False

        if self.state is PipelineState.UNINITIALIZED:
            self._initialise(row)

        self._rows_read += 1
        if self._config.upsert:
            self._upsert(row)
        else:
            self._insert(row)
        source.report_row_processed()
        return True

    def _initialise(self, first_row: Row) -> None:
        config = self._config

        self.shape = resolve_top_level_shape(config.fields)
        if self.shape is TopLevelShape.INCONSISTENT:
            raise ConfigurationException(
                message="Mapped fields disagree on whether the document root "
                        "is an object or an array.",
            )
        if (self.shape is TopLevelShape.ARRAY and self._builds_documents()
                and not self._store.accepts_array_documents):
            raise ConfigurationException(
                message="Mapped fields build array-rooted documents, which the "
                        "document store cannot hold; map them under an object key.",
            )
        validate_field_paths(config.fields)
        self._check_fields(list(first_row.keys()))

        self._document_mapper = DocumentMapper(
            config.fields, self.shape, has_top_level_document_insert(config.fields))
        self._batch_writer = BatchWriter(
            self._store, self._policy, config.batch_insert_size,
            self._cancel_event, self._sleep)

        if config.truncate:
            logger.info("Truncating collection", extra={"collection": config.collection})
            self._store.drop()
            self._truncated = True
        self._store.ensure_collection()

        self.state = PipelineState.ACTIVE
        logger.info(
            "Pipeline active",
            extra={"shape": self.shape.value, "batch_size": config.batch_insert_size,
                   "upsert": config.upsert, "modifier_update": config.modifier_update},
        )

    def _builds_documents(self) -> bool:
        """Modifier updates address fields by path and never send a root."""
        return not (self._config.upsert and self._config.modifier_update)

    def _check_fields(self, row_fields: list[str]) -> None:
        expected = [f.incoming_field_name for f in self._config.fields]
        missing = [name for name in dict.fromkeys(expected) if name not in row_fields]
        if missing:
            raise FieldMismatchException(missing_fields=missing)

        unused = [name for name in row_fields if name not in expected]
        if unused:
            logger.info("Incoming fields not written", extra={"fields": unused})

    def _insert(self, row: Row) -> None:
        document = self._document_mapper.map_row(row)
        if document is None:
            self._skip("Row produced no document")
            return
        self._batch_writer.add(document)

    def _upsert(self, row: Row) -> None:
        query = self._query_mapper.map_row(row)
        if query is None:
            self._skip("No non-null match field value; cannot upsert")
            return

        if self._config.modifier_update:
            document = self._modifier_mapper.map_row(row)
        else:
            document = self._document_mapper.map_row(row)
        if document is None:
            self._skip("Row produced no update")
            return

        self._upsert_writer.write(query, document, self._config.multi)

    def _skip(self, reason: str) -> None:
        self._rows_skipped += 1
        logger.debug(reason, extra={"row_number": self._rows_read})

    def _drain(self) -> None:
        self.state = PipelineState.DRAINING
        if self._batch_writer is not None and self._batch_writer.pending:
            self._batch_writer.flush()

        if self._config.indexes:
            logger.info("Applying indexes", extra={"count": len(self._config.indexes)})
            IndexManager(self._store).apply_indexes(self._config.indexes, self._truncated)

        self._release()
        logger.info("Pipeline finished", extra=self.stats.model_dump())

    def _release(self) -> None:
        if self.state is PipelineState.TERMINATED:
            return
        self.state = PipelineState.TERMINATED
        self._store.close()
