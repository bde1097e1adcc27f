"""
Mappers for the upsert path: match queries and modifier updates.

Both address nested fields by dotted path (``customer.address.city``)
instead of nested literals, which is how the store's query and partial
update operators expect them.
"""

from docloader.core.exceptions import MappingFieldException
from docloader.core.logging import get_logger
from docloader.mappers.base_mapper import Document, Row, RowMapper, field_value
from docloader.schemas.mapping_schema import PathSpec

logger = get_logger(__name__)


class QueryMapper(RowMapper):
    """
    Build the match query for an upsert.

    A null match value is left out rather than emitted as ``{key: None}``,
    which would match documents *missing* the field. If every match value is
    null the row has no usable query and ``None`` is returned.
    """

    def __init__(self, specs: list[PathSpec]) -> None:
        self._specs = [s for s in specs if s.match_key]

    def map_row(self, row: Row) -> dict | None:
        query: dict = {}
        for spec in self._specs:
            value = field_value(spec, row)
            if value is None:
                continue
            if spec.maps_to_root:
                if not isinstance(value, dict):
                    raise MappingFieldException(
                        field_name=spec.incoming_field_name,
                        reason="A root-level match value must be a JSON object.",
                    )
                query.update(value)
            else:
                query[spec.dotted_path] = value

        if not query:
            return None
        logger.debug("Built upsert query", extra={"query": query})
        return query


class ModifierUpdateMapper(RowMapper):
    """
    Build a partial update: ``{"$set": {"a.b": 1}, "$inc": {...}}``.

    Every non-null field that is not a match key contributes one operation
    under its configured operator. Never produces a replacement document.
    """

    def __init__(self, specs: list[PathSpec]) -> None:
        self._specs = [s for s in specs if not s.match_key and not s.maps_to_root]

    def map_row(self, row: Row) -> Document | None:
        update: dict[str, dict] = {}
        for spec in self._specs:
            value = field_value(spec, row)
            if value is None:
                continue
            update.setdefault(spec.modifier_operation, {})[spec.dotted_path] = value

        if not update:
            return None
        logger.debug("Built modifier update", extra={"update": update})
        return update
