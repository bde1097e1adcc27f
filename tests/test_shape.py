"""
Tests for top-level shape resolution and mapping validation.
"""

import pytest

from docloader.core.exceptions import ConfigurationException
from docloader.mappers.shape import (
    has_top_level_document_insert,
    resolve_top_level_shape,
    validate_field_paths,
)
from docloader.schemas.mapping_schema import PathSpec, TopLevelShape


def _spec(name: str, path: str = "", **kwargs) -> PathSpec:
    return PathSpec(incoming_field_name=name, target_path=path, **kwargs)


def _root_doc(name: str = "doc", **kwargs) -> PathSpec:
    return PathSpec(
        incoming_field_name=name,
        use_incoming_field_name=False,
        parse_as_sub_document=True,
        **kwargs,
    )


def test_object_rooted() -> None:
    specs = [_spec("a"), _spec("b", "nested")]
    assert resolve_top_level_shape(specs) is TopLevelShape.OBJECT


def test_array_rooted() -> None:
    specs = [_spec("a", "[0]"), _spec("b", "[1]")]
    assert resolve_top_level_shape(specs) is TopLevelShape.ARRAY


def test_mixed_roots_are_inconsistent() -> None:
    specs = [_spec("a", "[0]"), _spec("b", "nested")]
    assert resolve_top_level_shape(specs) is TopLevelShape.INCONSISTENT


def test_root_document_does_not_vote() -> None:
    specs = [_root_doc(), _spec("id", "[0]", match_key=True)]
    assert resolve_top_level_shape(specs) is TopLevelShape.ARRAY
    assert resolve_top_level_shape([_root_doc()]) is TopLevelShape.OBJECT


def test_top_level_document_insert_detected() -> None:
    assert has_top_level_document_insert([_root_doc(), _spec("id", match_key=True)])
    assert not has_top_level_document_insert([_spec("a"), _spec("b", "x")])


def test_modifier_only_root_document_is_not_an_insert() -> None:
    assert not has_top_level_document_insert([_root_doc(modifier_update_only=True)])


def test_valid_mapping_passes() -> None:
    validate_field_paths([_spec("id"), _spec("name", "customer"), _spec("city", "customer.address")])


def test_root_document_with_match_key_passes() -> None:
    validate_field_paths([_root_doc(), _spec("id", match_key=True)])


def test_root_field_must_be_sub_document() -> None:
    spec = PathSpec(incoming_field_name="raw", use_incoming_field_name=False)
    with pytest.raises(ConfigurationException, match="no document path"):
        validate_field_paths([spec])


def test_two_root_documents_rejected() -> None:
    with pytest.raises(ConfigurationException):
        validate_field_paths([_root_doc("a"), _root_doc("b")])


def test_root_document_with_other_fields_rejected() -> None:
    with pytest.raises(ConfigurationException):
        validate_field_paths([_root_doc(), _spec("name")])


def test_duplicate_paths_rejected() -> None:
    a = _spec("first", "tags[0]", use_incoming_field_name=False)
    b = _spec("second", "tags[0]", use_incoming_field_name=False)
    with pytest.raises(ConfigurationException, match="overlapping"):
        validate_field_paths([a, b])


def test_prefix_paths_rejected() -> None:
    a = _spec("address", "customer")
    b = _spec("city", "customer.address")
    with pytest.raises(ConfigurationException, match="overlapping"):
        validate_field_paths([a, b])


def test_modifier_only_fields_ignored_for_overlap() -> None:
    a = _spec("name", "customer")
    b = _spec("name", "customer", modifier_update_only=True)
    validate_field_paths([a, b])
