"""
Pydantic schemas for mappings, pipeline settings and store results.
"""

from docloader.schemas.mapping_schema import (
    IndexField,
    IndexSpec,
    MappingFile,
    PathSpec,
    PipelineConfig,
    TopLevelShape,
)
from docloader.schemas.store_schema import (
    LoadRequest,
    LoadResponse,
    PipelineStats,
    WriteOutcome,
)

__all__ = [
    "IndexField",
    "IndexSpec",
    "MappingFile",
    "PathSpec",
    "PipelineConfig",
    "TopLevelShape",
    "LoadRequest",
    "LoadResponse",
    "PipelineStats",
    "WriteOutcome",
]
