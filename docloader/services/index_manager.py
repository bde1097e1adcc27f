"""
Post-load index maintenance.

Index builds are expensive, so they run once, after every row has been
written, and always in the background.
"""

from docloader.core.exceptions import ConfigurationException
from docloader.core.logging import get_logger
from docloader.schemas.mapping_schema import IndexSpec
from docloader.services.store_client import DocumentStore

logger = get_logger(__name__)


class IndexManager:
    """Create or drop the configured indexes on the target collection."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    def apply_indexes(self, specs: list[IndexSpec], truncated: bool) -> list[str]:
        """
        Apply ``specs`` in order.

        Args:
            specs:     Index definitions.
            truncated: The collection was dropped at startup, so there is
                       nothing left to drop.

        Returns:
            Names of the indexes created.

        Raises:
            ConfigurationException: A sparse index names more than one field.
                Raised before any index call is issued.
        """
        for spec in specs:
            if spec.sparse and len(spec.fields) > 1:
                raise ConfigurationException(
                    message="Sparse indexes can only cover a single field.",
                    details={"keys": spec.keys},
                )

        created: list[str] = []
        for spec in specs:
            if spec.drop:
                if truncated:
                    logger.info(
                        "Skipping index drop; collection was truncated",
                        extra={"keys": spec.keys},
                    )
                    continue
                logger.info("Dropping index", extra={"keys": spec.keys})
                self._store.drop_index(spec.keys)
                continue

            logger.info(
                "Creating index",
                extra={"keys": spec.keys, "unique": spec.unique, "sparse": spec.sparse},
            )
            created.append(
                self._store.create_index(
                    spec.keys, unique=spec.unique, sparse=spec.sparse, background=True)
            )
        return created
