"""
Load service — run one pipeline instance over a set of rows.

Composes the store connection, the coordinator and the row source into a
single operation for the HTTP layer. The pipeline itself is blocking, so
it runs in a worker thread to keep the event loop free. Cancelling the
awaiting task signals the pipeline, which stops before its next row without flushing.
"""

import asyncio
import threading
from collections.abc import Callable
from typing import Any

from docloader.core.logging import get_logger
from docloader.schemas.mapping_schema import PipelineConfig
from docloader.schemas.store_schema import LoadResponse
from docloader.services.pipeline import IterableRowSource, RowPipelineCoordinator
from docloader.services.store_client import DocumentStore
from docloader.utils.helpers import utc_now

logger = get_logger(__name__)


class LoadService:
    """Write incoming rows to the configured collection."""

    def __init__(
        self,
        config: PipelineConfig,
        store_factory: Callable[[], DocumentStore],
    ) -> None:
        self._config = config
        self._store_factory = store_factory

    async def load(self, rows: list[dict[str, Any]]) -> LoadResponse:
        """
        End-to-end: connect → map and write every row → index → disconnect.

        Raises:
            ConfigurationException: Mapping does not fit the rows.
            WriteFailureException:  A write failed beyond the retry budget.
        """
        logger.info(
            "Load started",
            extra={"rows": len(rows), "collection": self._config.collection},
        )

        cancel_event = threading.Event()
        coordinator = RowPipelineCoordinator(
            self._config, self._store_factory(), cancel_event=cancel_event)
        try:
            stats = await asyncio.to_thread(coordinator.run, IterableRowSource(rows))
        except asyncio.CancelledError:
            # the worker thread cannot be interrupted; stop it at the next row
            cancel_event.set()
            logger.warning("Load cancelled", extra={"collection": self._config.collection})
            raise

        logger.info("Load complete", extra=stats.model_dump())
        return LoadResponse(
            status="ok",
            database=self._config.database,
            collection=self._config.collection,
            stats=stats,
            completed_at=utc_now(),
        )
