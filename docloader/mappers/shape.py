"""
Top-level shape resolution and one-off mapping validation.

Both run once per pipeline, on the first row, before any document is built.
"""

from docloader.core.exceptions import ConfigurationException
from docloader.core.logging import get_logger
from docloader.mappers.paths import ArrayIndex
from docloader.schemas.mapping_schema import PathSpec, TopLevelShape

logger = get_logger(__name__)


def _insertable(specs: list[PathSpec]) -> list[PathSpec]:
    return [s for s in specs if not s.modifier_update_only]


def resolve_top_level_shape(specs: list[PathSpec]) -> TopLevelShape:
    """
    Decide whether documents are rooted at an object or an array.

    Fields whose value is spliced in as the whole document do not vote.
    """
    array_rooted = 0
    object_rooted = 0
    for spec in specs:
        if spec.maps_to_root:
            continue
        if isinstance(spec.segments[0], ArrayIndex):
            array_rooted += 1
        else:
            object_rooted += 1

    if array_rooted and object_rooted:
        logger.error(
            "Inconsistent top-level document structure",
            extra={"array_rooted": array_rooted, "object_rooted": object_rooted},
        )
        return TopLevelShape.INCONSISTENT
    if array_rooted:
        return TopLevelShape.ARRAY
    return TopLevelShape.OBJECT


def has_top_level_document_insert(specs: list[PathSpec]) -> bool:
    """True when one insertable field supplies the entire document."""
    return any(s.maps_to_root and s.parse_as_sub_document for s in _insertable(specs))


def validate_field_paths(specs: list[PathSpec]) -> None:
    """
    Reject mappings whose placement would be ambiguous.

    Raises:
        ConfigurationException: On a root-level field that is not a
            sub-document, more than one root document, a root document mixed
            with other inserted fields, or two fields claiming the same or
            overlapping paths.
    """
    for spec in specs:
        if spec.maps_to_root and not spec.parse_as_sub_document:
            raise ConfigurationException(
                message=f"Field '{spec.incoming_field_name}' has no document path; "
                        "only a JSON sub-document can be mapped to the root.",
            )

    insertable = _insertable(specs)
    roots = [s for s in insertable if s.maps_to_root]
    if len(roots) > 1:
        raise ConfigurationException(
            message="Only one field can supply the whole document.",
            details={"fields": [s.incoming_field_name for s in roots]},
        )
    if roots:
        others = [s.incoming_field_name for s in insertable
                  if not s.maps_to_root and not s.match_key]
        if others:
            raise ConfigurationException(
                message="A whole-document field cannot be combined with other "
                        "inserted fields.",
                details={"document_field": roots[0].incoming_field_name,
                         "fields": others},
            )
        return

    for i, first in enumerate(insertable):
        for second in insertable[i + 1:]:
            a, b = first.segments, second.segments
            shorter = min(len(a), len(b))
            if a[:shorter] == b[:shorter]:
                raise ConfigurationException(
                    message=f"Fields '{first.incoming_field_name}' and "
                            f"'{second.incoming_field_name}' map to overlapping "
                            f"paths '{first.display_path}' and '{second.display_path}'.",
                )
