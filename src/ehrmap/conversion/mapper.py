"""Field mapping engine for translating patient records to and from EHR vocabularies."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from ehrmap.conversion.coercion import (
    FORWARD_COERCERS,
    REVERSE_COERCERS,
    default_for,
    is_empty,
    utc_today,
)
from ehrmap.core.errors import CoercionError, MissingRequiredFieldsError, UnknownMappingTarget
from ehrmap.core.types import (
    ErrorPolicy,
    ExternalDocument,
    FieldMapping,
    MissingRequiredPolicy,
    PatientRecord,
)

RecordLike = PatientRecord | Mapping[str, Any]


@dataclass
class TransformOptions:
    """Options controlling how a transform treats gaps and bad values."""

    missing_required: MissingRequiredPolicy = MissingRequiredPolicy.DEFAULT
    on_error: ErrorPolicy = ErrorPolicy.RAISE
    strict: bool = False  # Raise on mappings to unknown standard fields
    clock: Callable[[], date] = utc_today


@dataclass
class TransformContext:
    """Per-call state shared by the mapping helpers."""

    options: TransformOptions
    errors: list[CoercionError] = field(default_factory=list)

    def fail(self, error: CoercionError) -> None:
        if self.options.on_error is ErrorPolicy.RAISE:
            raise error
        self.errors.append(error)


def as_record(record: RecordLike) -> PatientRecord:
    """Normalize a mapping or PatientRecord to a PatientRecord."""
    if isinstance(record, PatientRecord):
        return record
    return PatientRecord.from_dict(dict(record))


class FieldMapper:
    """Maps patient records to and from one EHR system's field vocabulary.

    Mappings are read in registry order. When two mappings share a standard
    field (forward) or an EHR field (reverse), the first one wins. Mappings
    to unknown standard fields are ignored, or rejected in strict mode.

    Example:
        >>> mapper = FieldMapper(system.field_mappings)
        >>> document = mapper.transform({"name": "John Doe"})
        >>> partial = mapper.reverse_transform(document)
    """

    def __init__(
        self,
        mappings: Iterable[FieldMapping],
        options: TransformOptions | None = None,
    ) -> None:
        """Initialize field mapper.

        Args:
            mappings: Ordered field mappings for one EHR system.
            options: Transform options; defaults apply when omitted.

        Raises:
            UnknownMappingTarget: Strict mode and a mapping names an unknown
                standard field.
        """
        self.mappings = list(mappings)
        self.options = options or TransformOptions()
        self._by_standard: dict[str, FieldMapping] = {}
        self._by_ehr: dict[str, FieldMapping] = {}
        for mapping in self.mappings:
            if mapping.record_attribute is None:
                if self.options.strict:
                    raise UnknownMappingTarget(mapping.standard_field)
                continue
            self._by_standard.setdefault(mapping.standard_field, mapping)
            self._by_ehr.setdefault(mapping.ehr_field, mapping)

    def _active_mappings(self) -> list[FieldMapping]:
        """Return the mappings the forward transform uses, in registry order."""
        return [m for m in self.mappings if self._by_standard.get(m.standard_field) is m]

    def map_record(self, record: RecordLike) -> tuple[ExternalDocument, list[CoercionError]]:
        """Map a single record to the EHR vocabulary.

        Args:
            record: Patient record or a mapping with camelCase/snake_case keys.

        Returns:
            Tuple of (document, coercion errors collected under the SKIP policy).

        Raises:
            CoercionError: A value cannot be coerced and the policy is RAISE.
            MissingRequiredFieldsError: Required values are absent and the
                policy is FAIL.
        """
        patient = as_record(record)
        context = TransformContext(options=self.options)
        document: ExternalDocument = {}
        missing: list[str] = []

        for mapping in self._active_mappings():
            value = patient.get(mapping.record_attribute)

            if is_empty(value):
                if mapping.is_required:
                    missing.append(mapping.standard_field)
                    document[mapping.ehr_field] = default_for(
                        mapping.data_type, self.options.clock()
                    )
                continue

            try:
                document[mapping.ehr_field] = FORWARD_COERCERS[mapping.data_type](value)
            except (TypeError, ValueError) as err:
                context.fail(
                    CoercionError(mapping.standard_field, value, mapping.data_type.value, str(err))
                )

        if missing and self.options.missing_required is MissingRequiredPolicy.FAIL:
            raise MissingRequiredFieldsError(missing)

        return document, context.errors

    def transform(self, record: RecordLike) -> ExternalDocument:
        """Map a record to the EHR vocabulary, discarding collected errors."""
        document, _errors = self.map_record(record)
        return document

    def map_dataset(
        self,
        records: Iterable[RecordLike],
    ) -> tuple[list[ExternalDocument], list[tuple[int, list[CoercionError]]]]:
        """Map many records.

        Returns:
            Tuple of (documents, list of (row_index, errors) for rows with errors).
        """
        documents = []
        errors_by_row = []

        for i, record in enumerate(records):
            document, errors = self.map_record(record)
            documents.append(document)
            if errors:
                errors_by_row.append((i, errors))

        return documents, errors_by_row

    def map_document(
        self, document: Mapping[str, Any]
    ) -> tuple[dict[str, Any], list[CoercionError]]:
        """Map an EHR-keyed document back to record attributes.

        Keys without a mapping and None values are skipped, so merging the
        result never clears existing record fields.

        Returns:
            Tuple of (partial record, coercion errors collected under the SKIP policy).

        Raises:
            CoercionError: A date value cannot be parsed and the policy is RAISE.
        """
        context = TransformContext(options=self.options)
        partial: dict[str, Any] = {}

        for ehr_field, value in document.items():
            mapping = self._by_ehr.get(ehr_field)
            if mapping is None or value is None:
                continue
            try:
                partial[mapping.record_attribute] = REVERSE_COERCERS[mapping.data_type](value)
            except (TypeError, ValueError) as err:
                context.fail(
                    CoercionError(mapping.standard_field, value, mapping.data_type.value, str(err))
                )

        return partial, context.errors

    def reverse_transform(self, document: Mapping[str, Any]) -> dict[str, Any]:
        """Map a document to record attributes, discarding collected errors."""
        partial, _errors = self.map_document(document)
        return partial


def transform(
    record: RecordLike,
    mappings: Iterable[FieldMapping],
    options: TransformOptions | None = None,
) -> ExternalDocument:
    """Map a patient record to an EHR-keyed document."""
    return FieldMapper(mappings, options).transform(record)


def reverse_transform(
    document: Mapping[str, Any],
    mappings: Iterable[FieldMapping],
    options: TransformOptions | None = None,
) -> dict[str, Any]:
    """Map an EHR-keyed document to a partial patient record."""
    return FieldMapper(mappings, options).reverse_transform(document)
