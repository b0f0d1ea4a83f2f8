"""Required-field validation of patient records against an EHR system's mappings."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from ehrmap.conversion.coercion import is_empty
from ehrmap.conversion.mapper import RecordLike, TransformOptions, as_record
from ehrmap.core.errors import UnknownMappingTarget
from ehrmap.core.types import FieldMapping


@dataclass
class RequiredFieldsResult:
    """Result of checking a record for required fields."""

    is_valid: bool
    missing_fields: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"isValid": self.is_valid, "missingFields": list(self.missing_fields)}


def validate_required(
    record: RecordLike,
    mappings: Iterable[FieldMapping],
    options: TransformOptions | None = None,
) -> RequiredFieldsResult:
    """Report which required standard fields a record lacks.

    Args:
        record: Patient record or a mapping with camelCase/snake_case keys.
        mappings: Ordered field mappings for one EHR system.
        options: Only ``strict`` is consulted.

    Returns:
        RequiredFieldsResult with missing standard field names in registry order.

    Raises:
        UnknownMappingTarget: Strict mode and a required mapping names an
            unknown standard field.
    """
    options = options or TransformOptions()
    patient = as_record(record)
    missing: list[str] = []

    for mapping in mappings:
        if not mapping.is_required or mapping.standard_field in missing:
            continue
        attribute = mapping.record_attribute
        if attribute is None:
            if options.strict:
                raise UnknownMappingTarget(mapping.standard_field)
            continue
        if is_empty(patient.get(attribute)):
            missing.append(mapping.standard_field)

    return RequiredFieldsResult(is_valid=not missing, missing_fields=missing)
