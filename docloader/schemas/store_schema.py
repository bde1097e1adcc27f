"""
Schemas exchanged with the document store and returned by a load.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class WriteOutcome(BaseModel):
    """Result of one write attempt as reported by the store."""

    ok: bool
    error_message: str | None = None
    server_identity: str | None = Field(
        default=None, description="host:port of the server that took the write")


class PipelineStats(BaseModel):
    """Counters collected by one pipeline run."""

    rows_read: int = 0
    rows_skipped: int = 0
    documents_inserted: int = 0
    batches_written: int = 0
    upserts_written: int = 0


class LoadRequest(BaseModel):
    """Request body for the load endpoint."""

    rows: list[dict[str, Any]] = Field(
        ..., min_length=1, description="Rows to load, in order")


class LoadResponse(BaseModel):
    """API response envelope for a completed load."""

    status: str = Field(default="ok")
    database: str
    collection: str
    stats: PipelineStats
    completed_at: datetime
