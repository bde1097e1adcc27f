"""
Abstract base mapper.

Every mapper implements ``map_row``, one row at a time.
A mapper returns ``None`` when a row yields nothing to write; callers skip
such rows rather than persisting an empty record.
"""

import json
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any

from docloader.core.exceptions import MappingFieldException
from docloader.schemas.mapping_schema import PathSpec

Row = Mapping[str, Any]
Document = dict[str, Any] | list[Any]


class RowMapper(ABC):
    """Contract that every row mapper must fulfil."""

    @abstractmethod
    def map_row(self, row: Row) -> Document | None:
        """
        Transform a single row into a store document.

        Returns:
            The document, or ``None`` if the row contributes nothing.

        Raises:
            MappingFieldException: If a field value cannot be mapped.
        """
        ...


def field_value(spec: PathSpec, row: Row) -> Any:
    """
    Read the row value for ``spec``; ``None`` means "omit".

    Sub-document fields are parsed from JSON text. Already-structured
    values (dict/list) are used as they are and blank text counts as null.
    """
    value = row.get(spec.incoming_field_name)
    if value is None or not spec.parse_as_sub_document:
        return value

    if isinstance(value, (dict, list)):
        return value
    if not isinstance(value, str):
        raise MappingFieldException(
            field_name=spec.incoming_field_name,
            reason=f"Expected JSON text, got {type(value).__name__}.",
        )
    if not value.strip():
        return None
    try:
        return json.loads(value)
    except ValueError as exc:
        raise MappingFieldException(
            field_name=spec.incoming_field_name,
            reason=f"Value is not valid JSON: {exc}",
        ) from exc
