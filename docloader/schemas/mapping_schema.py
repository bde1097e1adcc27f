"""
Pydantic schemas describing how incoming rows map onto documents.

A mapping file is a JSON document with two lists::

    {
      "fields":  [ {"incoming_field_name": "id", "target_path": "", "match_key": true}, ... ],
      "indexes": [ {"fields": [{"path": "id", "direction": 1}], "unique": true}, ... ]
    }

``PipelineConfig`` bundles those lists with the scalar write settings and
is captured once per pipeline instance.
"""

from enum import Enum
from functools import cached_property
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from docloader.core.exceptions import ConfigurationException
from docloader.mappers.paths import (
    ObjectKey,
    PathSegment,
    dotted_path,
    format_path,
    parse_path,
)


class TopLevelShape(str, Enum):
    """Root container of every document built by a pipeline."""

    OBJECT = "object"
    ARRAY = "array"
    INCONSISTENT = "inconsistent"


class PathSpec(BaseModel):
    """
    One incoming field → one location in the target document.

    ``use_incoming_field_name`` appends the incoming field name as the last
    object key, so ``target_path="customer"`` for field ``name`` lands at
    ``customer.name``. Turn it off to address the exact ``target_path``.
    """

    model_config = ConfigDict(frozen=True)

    incoming_field_name: str = Field(..., min_length=1)
    target_path: str = Field(default="", description="e.g. 'a.b[0].c' or '[0]'")
    use_incoming_field_name: bool = True
    match_key: bool = Field(
        default=False, description="Field is part of the upsert match query")
    modifier_update_only: bool = Field(
        default=False,
        description="Field is only written by modifier updates, never inserted")
    parse_as_sub_document: bool = Field(
        default=False, description="Value is JSON text to parse and splice in")
    modifier_operation: Literal["$set", "$inc", "$push"] = "$set"

    @field_validator("target_path")
    @classmethod
    def _check_path(cls, value: str) -> str:
        parse_path(value)
        return value.strip()

    @cached_property
    def segments(self) -> tuple[PathSegment, ...]:
        segs = parse_path(self.target_path)
        if self.use_incoming_field_name:
            segs = segs + (ObjectKey(self.incoming_field_name),)
        return segs

    @property
    def dotted_path(self) -> str:
        return dotted_path(self.segments)

    @property
    def display_path(self) -> str:
        return format_path(self.segments)

    @property
    def maps_to_root(self) -> bool:
        """True when the field's value *is* the whole document."""
        return not self.segments


class IndexField(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: str = Field(..., min_length=1)
    direction: Literal[1, -1] = 1


class IndexSpec(BaseModel):
    """An index to create (or drop) once loading has finished."""

    model_config = ConfigDict(frozen=True)

    fields: list[IndexField] = Field(..., min_length=1)
    unique: bool = False
    sparse: bool = False
    drop: bool = False

    @property
    def keys(self) -> list[tuple[str, int]]:
        return [(f.path, f.direction) for f in self.fields]


class MappingFile(BaseModel):
    """On-disk mapping definition."""

    fields: list[PathSpec] = Field(default_factory=list)
    indexes: list[IndexSpec] = Field(default_factory=list)


class PipelineConfig(BaseModel):
    """Immutable settings captured by one pipeline instance."""

    model_config = ConfigDict(frozen=True)

    database: str = Field(..., min_length=1)
    collection: str = Field(..., min_length=1)
    batch_insert_size: int = Field(default=100, ge=1)
    write_retries: int = Field(default=5, ge=0)
    write_retry_delay: float = Field(default=10, ge=0)
    truncate: bool = False
    upsert: bool = False
    modifier_update: bool = False
    multi: bool = False
    fields: list[PathSpec] = Field(..., min_length=1)
    indexes: list[IndexSpec] = Field(default_factory=list)

    @property
    def match_fields(self) -> list[PathSpec]:
        return [f for f in self.fields if f.match_key]

    @classmethod
    def build(cls, **values) -> "PipelineConfig":
        """
        Validate and construct a config, reporting problems as configuration errors.

        Raises:
            ConfigurationException: On a missing database/collection name,
                an empty field list, or an unsupported flag combination.
        """
        if not values.get("database"):
            raise ConfigurationException(message="No database specified.")
        if not values.get("collection"):
            raise ConfigurationException(message="No collection specified.")
        try:
            config = cls(**values)
        except ValidationError as exc:
            raise ConfigurationException(
                message="Invalid pipeline configuration.",
                details={
                    "errors": [
                        {
                            "field": ".".join(str(loc) for loc in err.get("loc", [])),
                            "message": err.get("msg", ""),
                        }
                        for err in exc.errors()
                    ]
                },
            ) from exc

        if config.upsert and config.multi and not config.modifier_update:
            raise ConfigurationException(
                message="Multi-document updates require modifier updates; "
                        "a full replacement can only target one document.",
            )
        if config.upsert and not config.match_fields:
            raise ConfigurationException(
                message="Upsert requires at least one match key field.",
            )
        return config
