"""
Document store client.

``MongoStore`` owns one ``MongoClient`` and one target collection for the
lifetime of a pipeline instance. Every write returns a ``WriteOutcome``;
driver errors surface as ``StoreWriteException`` so the writers can retry
them. Documents the driver cannot encode (a list at the top level, a
value BSON has no type for) raise ``DocumentRejectedException`` instead and
are never retried.

Known limitation: an update routed to a secondary may be acknowledged
without being applied. Nothing here verifies that the connection reaches
the primary.
"""

from typing import Any, Protocol

from bson.errors import InvalidDocument
from pymongo import MongoClient
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import CollectionInvalid, ConfigurationError, PyMongoError

from docloader.config import Settings
from docloader.core.exceptions import (
    ConfigurationException,
    DocumentRejectedException,
    StoreException,
    StoreWriteException,
)
from docloader.core.logging import get_logger
from docloader.schemas.store_schema import WriteOutcome

logger = get_logger(__name__)

IndexKeys = list[tuple[str, int]]


class DocumentStore(Protocol):
    """Operations the pipeline needs from a store-backed collection."""

    # False when every document must be an object at the top level
    accepts_array_documents: bool

    def insert_many(self, documents: list[Any]) -> WriteOutcome: ...

    def update_one(self, query: dict, update: Any, upsert: bool) -> WriteOutcome: ...

    def update_many(self, query: dict, update: Any, upsert: bool) -> WriteOutcome: ...

    def replace_one(self, query: dict, replacement: Any, upsert: bool) -> WriteOutcome: ...

    def ensure_collection(self) -> None: ...

    def drop(self) -> None: ...

    def create_index(
        self, keys: IndexKeys, *, unique: bool, sparse: bool, background: bool
    ) -> str: ...

    def drop_index(self, keys: IndexKeys) -> None: ...

    def close(self) -> None: ...


class MongoStore:
    """pymongo-backed ``DocumentStore``."""

    accepts_array_documents = False

    def __init__(self, client: MongoClient, database: str, collection: str) -> None:
        self._client = client
        self._db: Database = client[database]
        self._collection: Collection = self._db[collection]
        self.database_name = database
        self.collection_name = collection

    @classmethod
    def connect(cls, settings: Settings, database: str, collection: str) -> "MongoStore":
        """
        Create a client for the configured hosts.

        Raises:
            ConfigurationException: If the driver rejects the connection options.
        """
        options: dict[str, Any] = {
            "host": settings.mongo_hosts or ["localhost"],
            "port": settings.mongo_port,
            "connectTimeoutMS": settings.mongo_connect_timeout_ms,
            "serverSelectionTimeoutMS": settings.mongo_connect_timeout_ms,
        }
        if settings.mongo_username:
            options["username"] = settings.mongo_username
            options["password"] = settings.mongo_password
            options["authSource"] = settings.mongo_auth_database
            logger.info(
                "Authenticating to document store",
                extra={"username": settings.mongo_username},
            )

        try:
            client: MongoClient = MongoClient(**options)
        except ConfigurationError as exc:
            raise ConfigurationException(
                message="Invalid document store connection settings.",
                details={"hosts": options["host"], "reason": str(exc)},
            ) from exc

        logger.info(
            "Document store client created",
            extra={"hosts": options["host"], "port": settings.mongo_port,
                   "database": database, "collection": collection},
        )
        return cls(client, database, collection)

    # ── Writes ────────────────────────────────────────────────────────

    def insert_many(self, documents: list[Any]) -> WriteOutcome:
        try:
            result = self._collection.insert_many(documents, ordered=True)
        except PyMongoError as exc:
            raise self._write_error("insert_many", exc) from exc
        except (TypeError, InvalidDocument) as exc:
            raise self._rejected("insert_many", exc) from exc
        # Unacknowledged (w=0) writes carry no result to inspect
        if not result.acknowledged:
            return WriteOutcome(ok=True)
        return WriteOutcome(ok=True, server_identity=self._server_identity())

    def update_one(self, query: dict, update: Any, upsert: bool) -> WriteOutcome:
        try:
            result = self._collection.update_one(query, update, upsert=upsert)
        except PyMongoError as exc:
            raise self._write_error("update_one", exc) from exc
        except (TypeError, InvalidDocument) as exc:
            raise self._rejected("update_one", exc) from exc
        return self._update_outcome(result)

    def update_many(self, query: dict, update: Any, upsert: bool) -> WriteOutcome:
        try:
            result = self._collection.update_many(query, update, upsert=upsert)
        except PyMongoError as exc:
            raise self._write_error("update_many", exc) from exc
        except (TypeError, InvalidDocument) as exc:
            raise self._rejected("update_many", exc) from exc
        return self._update_outcome(result)

    def replace_one(self, query: dict, replacement: Any, upsert: bool) -> WriteOutcome:
        try:
            result = self._collection.replace_one(query, replacement, upsert=upsert)
        except PyMongoError as exc:
            raise self._write_error("replace_one", exc) from exc
        except (TypeError, InvalidDocument) as exc:
            raise self._rejected("replace_one", exc) from exc
        return self._update_outcome(result)

    # ── Collection management ─────────────────────────────────────────

    def ensure_collection(self) -> None:
        """Create the target collection if it does not exist yet."""
        try:
            if self.collection_name in self._db.list_collection_names():
                return
            self._db.create_collection(self.collection_name)
            logger.info(
                "Created collection",
                extra={"collection": self.collection_name},
            )
        except CollectionInvalid:
            # created by someone else in the meantime
            return
        except PyMongoError as exc:
            raise StoreException(
                message=f"Cannot create collection '{self.collection_name}'.",
                details={"reason": str(exc)},
            ) from exc

    def drop(self) -> None:
        try:
            self._collection.drop()
        except PyMongoError as exc:
            raise StoreException(
                message=f"Cannot drop collection '{self.collection_name}'.",
                details={"reason": str(exc)},
            ) from exc

    def create_index(
        self, keys: IndexKeys, *, unique: bool, sparse: bool, background: bool
    ) -> str:
        try:
            return self._collection.create_index(
                keys, unique=unique, sparse=sparse, background=background)
        except PyMongoError as exc:
            raise StoreException(
                message="Index creation failed.",
                details={"keys": keys, "reason": str(exc)},
            ) from exc

    def drop_index(self, keys: IndexKeys) -> None:
        try:
            self._collection.drop_index(keys)
        except PyMongoError as exc:
            raise StoreException(
                message="Dropping index failed.",
                details={"keys": keys, "reason": str(exc)},
            ) from exc

    def close(self) -> None:
        self._client.close()

    # ── Internal ──────────────────────────────────────────────────────

    def _update_outcome(self, result: Any) -> WriteOutcome:
        if not result.acknowledged:
            return WriteOutcome(ok=True)
        raw = result.raw_result or {}
        ok = bool(raw.get("ok", 1))
        return WriteOutcome(
            ok=ok,
            error_message=None if ok else raw.get("errmsg", "update not applied"),
            server_identity=self._server_identity(),
        )

    def _server_identity(self) -> str | None:
        try:
            address = self._client.address
        except PyMongoError:
            return None
        if address is None:
            return None
        return f"{address[0]}:{address[1]}"

    def _rejected(self, operation: str, exc: Exception) -> DocumentRejectedException:
        # raised client-side while encoding, so never retried
        logger.error(
            "Document rejected before sending",
            extra={"operation": operation, "reason": str(exc)},
        )
        return DocumentRejectedException(
            message=f"{operation} rejected the document: {exc}",
            details={"operation": operation, "error_type": type(exc).__name__},
        )

    def _write_error(self, operation: str, exc: PyMongoError) -> StoreWriteException:
        return StoreWriteException(
            message=f"{operation} failed: {exc}",
            details={"operation": operation, "error_type": type(exc).__name__},
        )
