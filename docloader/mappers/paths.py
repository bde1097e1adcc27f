"""
Document path parsing.

A target path is written the way the store addresses nested fields,
with array positions in brackets::

    customer.address.city
    items[2].sku
    [0].name
    matrix[1][0]

Parsing yields an ordered tuple of ``ObjectKey`` / ``ArrayIndex`` segments.
"""

import re
from dataclasses import dataclass

from docloader.core.exceptions import ConfigurationException

_PART_RE = re.compile(r"^(?P<key>[^\[\]]*)(?P<indexes>(?:\[\d+\])*)$")
_INDEX_RE = re.compile(r"\[(\d+)\]")


@dataclass(frozen=True)
class ObjectKey:
    name: str

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class ArrayIndex:
    index: int

    def __str__(self) -> str:
        return f"[{self.index}]"


PathSegment = ObjectKey | ArrayIndex


def parse_path(path: str) -> tuple[PathSegment, ...]:
    """
    Parse a textual document path into segments.

    An empty (or blank) path yields an empty tuple, meaning "the document root".

    Raises:
        ConfigurationException: If the path is malformed.
    """
    path = path.strip()
    if not path:
        return ()

    segments: list[PathSegment] = []
    for part in path.split("."):
        match = _PART_RE.match(part)
        if match is None or (not match.group("key") and not match.group("indexes")):
            raise ConfigurationException(
                message=f"Malformed document path '{path}'.",
                details={"path": path, "part": part},
            )
        if match.group("key"):
            segments.append(ObjectKey(match.group("key")))
        for idx in _INDEX_RE.findall(match.group("indexes")):
            segments.append(ArrayIndex(int(idx)))
    return tuple(segments)


def dotted_path(segments: tuple[PathSegment, ...]) -> str:
    """Render segments as the store's dot notation (``items.2.sku``)."""
    return ".".join(
        seg.name if isinstance(seg, ObjectKey) else str(seg.index)
        for seg in segments
    )


def format_path(segments: tuple[PathSegment, ...]) -> str:
    """Render segments back into bracket notation, for messages."""
    out = ""
    for seg in segments:
        if isinstance(seg, ObjectKey):
            out = f"{out}.{seg.name}" if out else seg.name
        else:
            out += str(seg)
    return out or "<root>"
