"""
Pytest configuration & shared fixtures.
"""

from collections.abc import AsyncIterator, Callable
from typing import Any

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI

from docloader.api.dependencies import get_pipeline_config, get_store_factory
from docloader.main import create_app
from docloader.schemas.mapping_schema import PathSpec, PipelineConfig
from docloader.schemas.store_schema import WriteOutcome


class FakeStore:
    """
    In-memory stand-in for ``MongoStore``.

    ``script`` holds what the next write calls return: a ``WriteOutcome``
    or an exception to raise. Once it is exhausted every write succeeds.
    """

    accepts_array_documents = True

    def __init__(self, script: list[Any] | None = None) -> None:
        self.script = list(script or [])
        self.calls: list[tuple] = []
        self.documents: list[Any] = []
        self.closed = False

    def _next(self) -> WriteOutcome:
        if self.script:
            item = self.script.pop(0)
            if isinstance(item, Exception):
                raise item
            return item
        return WriteOutcome(ok=True, server_identity="fake-host:27017")

    def write_calls(self) -> list[tuple]:
        return [c for c in self.calls
                if c[0] in ("insert_many", "update_one", "update_many", "replace_one")]

    def insert_many(self, documents: list[Any]) -> WriteOutcome:
        self.calls.append(("insert_many", list(documents)))
        outcome = self._next()
        if outcome.ok:
            self.documents.extend(documents)
        return outcome

    def update_one(self, query: dict, update: Any, upsert: bool) -> WriteOutcome:
        self.calls.append(("update_one", query, update, upsert))
        return self._next()

    def update_many(self, query: dict, update: Any, upsert: bool) -> WriteOutcome:
        self.calls.append(("update_many", query, update, upsert))
        return self._next()

    def replace_one(self, query: dict, replacement: Any, upsert: bool) -> WriteOutcome:
        self.calls.append(("replace_one", query, replacement, upsert))
        return self._next()

    def ensure_collection(self) -> None:
        self.calls.append(("ensure_collection",))

    def drop(self) -> None:
        self.calls.append(("drop",))
        self.documents.clear()

    def create_index(self, keys, *, unique: bool, sparse: bool, background: bool) -> str:
        self.calls.append(("create_index", keys, unique, sparse, background))
        return "_".join(f"{path}_{direction}" for path, direction in keys)

    def drop_index(self, keys) -> None:
        self.calls.append(("drop_index", keys))

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def sleeps() -> list[float]:
    """Records every back-off sleep instead of blocking."""
    return []


@pytest.fixture
def fake_sleep(sleeps: list[float]) -> Callable[[float], None]:
    return sleeps.append


@pytest.fixture
def customer_fields() -> list[PathSpec]:
    return [
        PathSpec(incoming_field_name="id", match_key=True),
        PathSpec(incoming_field_name="name", target_path="customer"),
        PathSpec(incoming_field_name="city", target_path="customer.address"),
    ]


@pytest.fixture
def make_config(customer_fields: list[PathSpec]) -> Callable[..., PipelineConfig]:
    """Build a PipelineConfig with test-friendly defaults."""

    def _make(**overrides: Any) -> PipelineConfig:
        values: dict[str, Any] = {
            "database": "crm",
            "collection": "customers",
            "batch_insert_size": 100,
            "write_retries": 2,
            "write_retry_delay": 5,
            "fields": customer_fields,
        }
        values.update(overrides)
        return PipelineConfig.build(**values)

    return _make


@pytest_asyncio.fixture
async def app(
    store: FakeStore, make_config: Callable[..., PipelineConfig]
) -> AsyncIterator[FastAPI]:
    """Provide a fresh FastAPI app wired to the fake store."""
    application = create_app()
    config = make_config(write_retries=0, write_retry_delay=0)
    application.dependency_overrides[get_pipeline_config] = lambda: config
    application.dependency_overrides[get_store_factory] = lambda: (lambda: store)
    yield application
    application.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncIterator[httpx.AsyncClient]:
    """Provide an async test client."""
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://testserver",
    ) as ac:
        yield ac


@pytest.fixture
def make_store() -> Callable[..., FakeStore]:
    """Build a FakeStore with scripted write results."""
    return FakeStore
