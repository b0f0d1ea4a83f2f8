"""Tests for the field mapper."""

from datetime import date

import pytest

from ehrmap.conversion.mapper import (
    FieldMapper,
    TransformOptions,
    reverse_transform,
    transform,
)
from ehrmap.core.errors import CoercionError, MissingRequiredFieldsError, UnknownMappingTarget
from ehrmap.core.types import (
    DataType,
    ErrorPolicy,
    FieldMapping,
    MissingRequiredPolicy,
    PatientRecord,
)


class TestForwardTransform:
    """Tests for record -> EHR document."""

    def test_present_fields(self, basic_mappings: list[FieldMapping]) -> None:
        """Test mapping a record with every mapped field present."""
        record = {"name": "John Doe", "dateOfBirth": "1990-05-15"}

        document = transform(record, basic_mappings)

        assert document == {"PatientName": "John Doe", "PatientBirthDate": "1990-05-15"}

    def test_required_field_defaults(
        self, basic_mappings: list[FieldMapping], fixed_today: date
    ) -> None:
        """Test that a missing required date is filled with today's date."""
        options = TransformOptions(clock=lambda: fixed_today)

        document = transform({"name": "John Doe"}, basic_mappings, options)

        assert document == {"PatientName": "John Doe", "PatientBirthDate": "2024-01-02"}

    def test_type_defaults(self) -> None:
        mappings = [
            FieldMapping("gender", "Sex", DataType.STRING, is_required=True),
            FieldMapping("zip", "Zip", DataType.NUMBER, is_required=True),
            FieldMapping("country", "Domestic", DataType.BOOLEAN, is_required=True),
            FieldMapping("email", "Email", DataType.STRING),
        ]

        document = transform(PatientRecord(name="Jane"), mappings)

        assert document == {"Sex": "", "Zip": 0, "Domestic": False}

    def test_coercion(self) -> None:
        mappings = [
            FieldMapping("zip", "Zip", DataType.NUMBER),
            FieldMapping("country", "Domestic", DataType.BOOLEAN),
            FieldMapping("dob", "Born", DataType.DATE),
            FieldMapping("phone", "Phone", DataType.STRING),
        ]
        record = PatientRecord(
            name="Jane",
            zip_code="02101",
            country="US",
            date_of_birth=date(1985, 3, 22),
            phone="5551234567",
        )

        document = transform(record, mappings)

        assert document == {
            "Zip": 2101,
            "Domestic": True,
            "Born": "1985-03-22",
            "Phone": "5551234567",
        }

    def test_unmapped_fields_omitted(self) -> None:
        """A record field without a mapping never reaches the document."""
        mappings = [FieldMapping("email", "PatientEmail")]

        document = transform({"name": "X", "email": "x@example.com"}, mappings)

        assert document == {"PatientEmail": "x@example.com"}
        assert "X" not in document.values()

    def test_keys_come_from_mappings(self, john_doe: PatientRecord) -> None:
        mappings = [
            FieldMapping("name", "A"),
            FieldMapping("city", "B"),
            FieldMapping("insuranceGroup", "C", is_required=True),
        ]

        document = transform(john_doe, mappings)

        assert set(document) <= {m.ehr_field for m in mappings}
        assert list(document) == ["A", "B", "C"]

    def test_unknown_standard_field_ignored(self) -> None:
        mappings = [
            FieldMapping("ssn", "SSN", is_required=True),
            FieldMapping("name", "Name"),
        ]

        assert transform({"name": "Jane"}, mappings) == {"Name": "Jane"}

    def test_unknown_standard_field_strict(self) -> None:
        mappings = [FieldMapping("ssn", "SSN")]

        with pytest.raises(UnknownMappingTarget) as exc_info:
            transform({"name": "Jane"}, mappings, TransformOptions(strict=True))
        assert exc_info.value.standard_field == "ssn"

    def test_first_mapping_per_standard_field_wins(self) -> None:
        mappings = [FieldMapping("name", "First"), FieldMapping("name", "Second")]

        assert transform({"name": "Jane"}, mappings) == {"First": "Jane"}

    def test_fail_policy(self, basic_mappings: list[FieldMapping]) -> None:
        """Test that the FAIL policy refuses to synthesize required values."""
        options = TransformOptions(missing_required=MissingRequiredPolicy.FAIL)

        with pytest.raises(MissingRequiredFieldsError) as exc_info:
            transform({"name": "John Doe"}, basic_mappings, options)
        assert exc_info.value.missing_fields == ["dob"]

    def test_fail_policy_absent_name(self) -> None:
        """A record without a name is missing it, as the validator reports."""
        mappings = [FieldMapping("name", "PatientName", DataType.STRING, is_required=True)]
        options = TransformOptions(missing_required=MissingRequiredPolicy.FAIL)

        with pytest.raises(MissingRequiredFieldsError) as exc_info:
            transform({"email": "a@b.c"}, mappings, options)
        assert exc_info.value.missing_fields == ["name"]

    def test_fail_policy_blank_values(self, basic_mappings: list[FieldMapping]) -> None:
        options = TransformOptions(missing_required=MissingRequiredPolicy.FAIL)

        with pytest.raises(MissingRequiredFieldsError) as exc_info:
            transform({"name": "  ", "dateOfBirth": ""}, basic_mappings, options)
        assert exc_info.value.missing_fields == ["name", "dob"]

    def test_blank_optional_value_omitted(self) -> None:
        mappings = [FieldMapping("email", "PatientEmail"), FieldMapping("dob", "Born", DataType.DATE)]

        assert transform({"name": "Jane", "email": "", "dateOfBirth": " "}, mappings) == {}

    def test_invalid_date_raises(self, basic_mappings: list[FieldMapping]) -> None:
        with pytest.raises(CoercionError) as exc_info:
            transform({"name": "John Doe", "dateOfBirth": "someday"}, basic_mappings)
        assert exc_info.value.field == "dob"
        assert exc_info.value.value == "someday"
        assert exc_info.value.data_type == "date"

    def test_invalid_date_skipped(self, basic_mappings: list[FieldMapping]) -> None:
        mapper = FieldMapper(basic_mappings, TransformOptions(on_error=ErrorPolicy.SKIP))

        document, errors = mapper.map_record({"name": "John Doe", "dateOfBirth": "someday"})

        assert document == {"PatientName": "John Doe"}
        assert len(errors) == 1
        assert errors[0].field == "dob"


class TestMapDataset:
    def test_map_dataset(self, basic_mappings: list[FieldMapping]) -> None:
        """Test mapping multiple records and collecting errors by row."""
        mapper = FieldMapper(basic_mappings, TransformOptions(on_error=ErrorPolicy.SKIP))
        records = [
            {"name": "John Doe", "dateOfBirth": "1990-05-15"},
            {"name": "Jane Smith", "dateOfBirth": "31/31/1985"},
        ]

        documents, errors_by_row = mapper.map_dataset(records)

        assert len(documents) == 2
        assert documents[0]["PatientBirthDate"] == "1990-05-15"
        assert "PatientBirthDate" not in documents[1]
        assert [row for row, _ in errors_by_row] == [1]


class TestReverseTransform:
    """Tests for EHR document -> record attributes."""

    def test_reverse(self, basic_mappings: list[FieldMapping]) -> None:
        document = {
            "PatientName": "John Doe",
            "PatientBirthDate": "1990-05-15",
            "Unmapped": "ignored",
        }

        partial = reverse_transform(document, basic_mappings)

        assert partial == {"name": "John Doe", "date_of_birth": date(1990, 5, 15)}

    def test_none_values_skipped(self, basic_mappings: list[FieldMapping]) -> None:
        partial = reverse_transform({"PatientName": None}, basic_mappings)
        assert partial == {}

    def test_non_date_values_pass_through(self) -> None:
        mappings = [FieldMapping("zip", "Zip", DataType.NUMBER)]
        assert reverse_transform({"Zip": 2101}, mappings) == {"zip_code": 2101}

    def test_duplicate_ehr_field_first_wins(self) -> None:
        """Registry order decides which mapping owns a shared EHR field."""
        mappings = [FieldMapping("phone", "Contact"), FieldMapping("email", "Contact")]

        assert reverse_transform({"Contact": "555"}, mappings) == {"phone": "555"}

    def test_invalid_date(self, basic_mappings: list[FieldMapping]) -> None:
        with pytest.raises(CoercionError):
            reverse_transform({"PatientBirthDate": "yesterday"}, basic_mappings)

        partial = reverse_transform(
            {"PatientBirthDate": "yesterday", "PatientName": "Jane"},
            basic_mappings,
            TransformOptions(on_error=ErrorPolicy.SKIP),
        )
        assert partial == {"name": "Jane"}

    def test_map_document_reports_skipped_values(
        self, basic_mappings: list[FieldMapping]
    ) -> None:
        """Test that skipped values are returned alongside the partial record."""
        mapper = FieldMapper(basic_mappings, TransformOptions(on_error=ErrorPolicy.SKIP))

        partial, errors = mapper.map_document(
            {"PatientBirthDate": "yesterday", "PatientName": "Jane"}
        )

        assert partial == {"name": "Jane"}
        assert len(errors) == 1
        assert errors[0].field == "dob"
        assert errors[0].value == "yesterday"

    def test_unknown_mapping_does_not_hide_shared_ehr_field(self) -> None:
        """A mapping to an unknown standard field never claims an EHR field."""
        mappings = [FieldMapping("ssn", "Contact"), FieldMapping("phone", "Contact")]

        assert reverse_transform({"Contact": "555"}, mappings) == {"phone": "555"}

    def test_unknown_mapping_strict(self) -> None:
        mappings = [FieldMapping("ssn", "SSN"), FieldMapping("name", "Name")]

        with pytest.raises(UnknownMappingTarget):
            reverse_transform({"Name": "Jane"}, mappings, TransformOptions(strict=True))

    def test_round_trip(self, john_doe: PatientRecord, registry) -> None:
        """Reverse of forward restores every mapped field."""
        mappings = registry.get_system("epic").field_mappings
        mapper = FieldMapper(mappings)

        partial = mapper.reverse_transform(mapper.transform(john_doe))

        assert len(partial) == len(mappings)
        for mapping in mappings:
            attribute = mapping.record_attribute
            assert partial[attribute] == john_doe.get(attribute)
