"""
Concrete mapper: flat row → nested store document.

Walks the configured path specs in declaration order, creating nested
objects and arrays on demand. The same row and specs always produce the
same document, key order included.
"""

from typing import Any

from docloader.core.exceptions import ConfigurationException, MappingFieldException
from docloader.core.logging import get_logger
from docloader.mappers.base_mapper import Document, Row, RowMapper, field_value
from docloader.mappers.paths import ArrayIndex, ObjectKey, PathSegment
from docloader.schemas.mapping_schema import PathSpec, TopLevelShape

logger = get_logger(__name__)


class DocumentMapper(RowMapper):
    """Build the full insert / replacement document for a row."""

    def __init__(
        self,
        specs: list[PathSpec],
        shape: TopLevelShape,
        top_level_document_insert: bool = False,
    ) -> None:
        if shape is TopLevelShape.INCONSISTENT:
            raise ConfigurationException(
                message="Cannot build documents with an inconsistent top-level structure.",
            )
        self._specs = [s for s in specs if not s.modifier_update_only]
        self._shape = shape
        self._top_level_document_insert = top_level_document_insert

    def map_row(self, row: Row) -> Document | None:
        """
        Materialise one document.

        Returns:
            The document, or ``None`` when every mapped value is null.

        Raises:
            MappingFieldException: If a value is not valid JSON or collides
                with a container already placed at the same location.
        """
        if self._top_level_document_insert:
            return self._whole_document(row)

        doc: Document = [] if self._shape is TopLevelShape.ARRAY else {}
        for spec in self._specs:
            value = field_value(spec, row)
            if value is None:
                continue
            _assign(doc, spec, value)

        if not doc:
            return None
        logger.debug("Built document", extra={"document": doc})
        return doc

    def _whole_document(self, row: Row) -> Document | None:
        spec = next(s for s in self._specs if s.maps_to_root)
        value = field_value(spec, row)
        if value is None:
            return None
        if not isinstance(value, (dict, list)):
            raise MappingFieldException(
                field_name=spec.incoming_field_name,
                reason="A whole-document value must be a JSON object or array.",
            )
        return value


# ─── Tree assembly ────────────────────────────────────────────────────


def _assign(doc: Document, spec: PathSpec, value: Any) -> None:
    segments = spec.segments
    container = doc
    for seg, nxt in zip(segments, segments[1:]):
        container = _child(container, seg, isinstance(nxt, ArrayIndex), spec)
    _put(container, segments[-1], value, spec)


def _child(container: Document, seg: PathSegment, want_list: bool, spec: PathSpec) -> Document:
    existing = _get(container, seg)
    if existing is None:
        created: Document = [] if want_list else {}
        _put(container, seg, created, spec)
        return created
    if want_list and isinstance(existing, list):
        return existing
    if not want_list and isinstance(existing, dict):
        return existing
    raise MappingFieldException(
        field_name=spec.incoming_field_name,
        reason=f"Path '{spec.display_path}' crosses a value that is not "
               f"{'an array' if want_list else 'an object'}.",
    )


def _get(container: Document, seg: PathSegment) -> Any:
    if isinstance(seg, ObjectKey):
        return container.get(seg.name) if isinstance(container, dict) else None
    if isinstance(container, list) and seg.index < len(container):
        return container[seg.index]
    return None


def _put(container: Document, seg: PathSegment, value: Any, spec: PathSpec) -> None:
    if isinstance(seg, ObjectKey):
        if not isinstance(container, dict):
            raise MappingFieldException(
                field_name=spec.incoming_field_name,
                reason=f"Key '{seg.name}' of '{spec.display_path}' addresses an array.",
            )
        container[seg.name] = value
        return

    if not isinstance(container, list):
        raise MappingFieldException(
            field_name=spec.incoming_field_name,
            reason=f"Index {seg} of '{spec.display_path}' addresses an object.",
        )
    if seg.index >= len(container):
        container.extend([None] * (seg.index + 1 - len(container)))
    container[seg.index] = value
