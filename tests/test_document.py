"""Tests for RawDocument record validation."""

from curriculum_rag.models.document import RawDocument

VALID = {
    "id": "doc-1",
    "title": "Programme",
    "content": "Les fractions.",
    "niveau": "6e",
    "matiere": "mathematiques",
    "cycle": "cycle_3",
}


def test_valid_record():
    document = RawDocument.model_validate(VALID)
    assert document.is_valid
    assert document.validation_errors() == []


def test_null_required_field_is_reported_as_missing():
    document = RawDocument.model_validate({**VALID, "niveau": None})
    assert document.validation_errors() == ["Missing required field: niveau"]


def test_wrong_type_is_reported_not_raised():
    document = RawDocument.model_validate({**VALID, "content": {"text": "x"}, "metadata": "oops"})

    assert document.content == ""
    assert document.metadata == {}
    assert document.validation_errors() == [
        "Invalid type for field: content",
        "Invalid type for field: metadata",
    ]


def test_numbers_are_read_as_text():
    document = RawDocument.model_validate({**VALID, "id": 42, "niveau": 6})
    assert document.id == "42"
    assert document.niveau == "6"
    assert document.is_valid


def test_non_object_record():
    document = RawDocument.model_validate("not a record")
    assert document.validation_errors() == ["Record is not an object"]


def test_invalid_fields_are_not_serialized():
    assert "invalid_fields" not in RawDocument.model_validate(VALID).model_dump()
