"""
Tests for document path parsing and PathSpec segment resolution.
"""

import pytest

from docloader.core.exceptions import ConfigurationException
from docloader.mappers.paths import (
    ArrayIndex,
    ObjectKey,
    dotted_path,
    format_path,
    parse_path,
)
from docloader.schemas.mapping_schema import PathSpec


def test_parse_nested_path_with_index() -> None:
    assert parse_path("a.b[0].c") == (
        ObjectKey("a"), ObjectKey("b"), ArrayIndex(0), ObjectKey("c"))


def test_parse_array_rooted_path() -> None:
    assert parse_path("[0].name") == (ArrayIndex(0), ObjectKey("name"))


def test_parse_consecutive_indexes() -> None:
    assert parse_path("matrix[1][0]") == (
        ObjectKey("matrix"), ArrayIndex(1), ArrayIndex(0))


def test_empty_path_is_root() -> None:
    assert parse_path("") == ()
    assert parse_path("   ") == ()


@pytest.mark.parametrize("path", ["a..b", "a[x]", "a]b", ".a"])
def test_malformed_paths_rejected(path: str) -> None:
    with pytest.raises(ConfigurationException):
        parse_path(path)


def test_dotted_and_display_rendering() -> None:
    segments = parse_path("items[2].sku")
    assert dotted_path(segments) == "items.2.sku"
    assert format_path(segments) == "items[2].sku"
    assert format_path(()) == "<root>"


def test_incoming_name_appended_as_last_key() -> None:
    spec = PathSpec(incoming_field_name="city", target_path="customer.address")
    assert spec.segments == (
        ObjectKey("customer"), ObjectKey("address"), ObjectKey("city"))
    assert spec.dotted_path == "customer.address.city"


def test_exact_path_when_incoming_name_not_used() -> None:
    spec = PathSpec(
        incoming_field_name="first_tag",
        target_path="tags[0]",
        use_incoming_field_name=False,
    )
    assert spec.segments == (ObjectKey("tags"), ArrayIndex(0))
    assert not spec.maps_to_root


def test_root_mapping() -> None:
    spec = PathSpec(
        incoming_field_name="json",
        use_incoming_field_name=False,
        parse_as_sub_document=True,
    )
    assert spec.maps_to_root


def test_malformed_target_path_rejected_on_load() -> None:
    with pytest.raises(ConfigurationException):
        PathSpec(incoming_field_name="x", target_path="a..b")
