"""Core type definitions for ehrmap."""

from __future__ import annotations

import re
from dataclasses import dataclass, field, fields, replace
from datetime import date
from enum import Enum
from typing import Any, Union


class DataType(Enum):
    """Scalar kinds a field mapping can declare."""

    STRING = "string"
    DATE = "date"
    BOOLEAN = "boolean"
    NUMBER = "number"


class MissingRequiredPolicy(Enum):
    """What the forward transform does with a required field that has no value."""

    DEFAULT = "default"  # Insert a type-appropriate default
    FAIL = "fail"  # Raise MissingRequiredFieldsError


class ErrorPolicy(Enum):
    """What a transform does when a value cannot be coerced."""

    RAISE = "raise"
    SKIP = "skip"  # Omit the field and collect the error


class Role(Enum):
    PATIENT = "PATIENT"
    ADMIN = "ADMIN"
    SUPER_ADMIN = "SUPER_ADMIN"


@dataclass
class Actor:
    """The authenticated user a conversion is performed for."""

    id: str
    role: Role = Role.PATIENT

    @property
    def is_admin(self) -> bool:
        return self.role in (Role.ADMIN, Role.SUPER_ADMIN)


# A vendor-keyed document: EHR field name -> scalar value
ExternalDocument = dict[str, Union[str, int, float, bool, date]]


# Standard field name -> PatientRecord attribute, in canonical order
STANDARD_FIELDS: dict[str, str] = {
    "name": "name",
    "email": "email",
    "phone": "phone",
    "gender": "gender",
    "dob": "date_of_birth",
    "address": "address",
    "city": "city",
    "state": "state",
    "zip": "zip_code",
    "country": "country",
    "allergies": "allergies",
    "medications": "medications",
    "medicalHistory": "medical_history",
    "socialHistory": "social_history",
    "familyHistory": "family_history",
    "emergencyContactName": "emergency_contact_name",
    "emergencyContactPhone": "emergency_contact_phone",
    "emergencyContactRelation": "emergency_contact_relation",
    "insuranceProvider": "insurance_provider",
    "insuranceNumber": "insurance_number",
    "insuranceGroup": "insurance_group",
}


def to_camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def to_snake(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


@dataclass
class FieldMapping:
    """Correspondence between one standard field and one vendor field."""

    standard_field: str
    ehr_field: str
    data_type: DataType = DataType.STRING
    is_required: bool = False
    description: str = ""

    @property
    def record_attribute(self) -> str | None:
        """Return the PatientRecord attribute this mapping targets, if known."""
        return STANDARD_FIELDS.get(self.standard_field)

    def to_dict(self) -> dict[str, Any]:
        return {
            "standardField": self.standard_field,
            "ehrField": self.ehr_field,
            "dataType": self.data_type.value,
            "isRequired": self.is_required,
            "description": self.description,
        }


@dataclass
class EHRSystem:
    """An external vendor schema that patient data is translated into."""

    id: str
    name: str
    version: str = ""
    description: str = ""
    is_active: bool = True
    field_mappings: list[FieldMapping] = field(default_factory=list)

    def summary(self) -> dict[str, Any]:
        """Return the identity fields used in API responses and audit entries."""
        return {"id": self.id, "name": self.name, "version": self.version}


@dataclass
class PatientRecord:
    """Demographic and medical attributes of one patient.

    Attribute names are snake_case. ``from_dict`` also accepts the camelCase
    keys used on the wire (``dateOfBirth``, ``zipCode``...), and ``to_dict``
    renders either form.

    Example:
        >>> record = PatientRecord.from_dict({"name": "John Doe", "dateOfBirth": "1990-05-15"})
        >>> record.date_of_birth
        '1990-05-15'
    """

    name: str
    id: str | None = None
    user_id: str | None = None
    ehr_system_id: str | None = None

    email: str | None = None
    phone: str | None = None
    gender: str | None = None
    date_of_birth: date | str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    country: str | None = None

    allergies: str | None = None
    medications: str | None = None
    medical_history: str | None = None
    social_history: str | None = None
    family_history: str | None = None

    emergency_contact_name: str | None = None
    emergency_contact_phone: str | None = None
    emergency_contact_relation: str | None = None

    insurance_provider: str | None = None
    insurance_number: str | None = None
    insurance_group: str | None = None

    is_active: bool = True
    last_modified_by: str | None = None

    @classmethod
    def attribute_names(cls) -> list[str]:
        """Return all attribute names in declaration order."""
        return [f.name for f in fields(cls)]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PatientRecord:
        """Build a record from camelCase or snake_case keys; unknown keys are dropped."""
        known = set(cls.attribute_names())
        values: dict[str, Any] = {}
        for key, value in data.items():
            attr = key if key in known else to_snake(key)
            if attr in known:
                values[attr] = value
        values.setdefault("name", "")
        return cls(**values)

    def to_dict(self, camel: bool = False) -> dict[str, Any]:
        """Return the record as a plain dictionary."""
        result = {f.name: getattr(self, f.name) for f in fields(self)}
        if camel:
            return {to_camel(k): v for k, v in result.items()}
        return result

    def get(self, attribute: str) -> Any:
        """Return an attribute value, or None for unknown attributes."""
        return getattr(self, attribute, None)

    def merge(self, partial: dict[str, Any], modified_by: str | None = None) -> PatientRecord:
        """Return a copy with ``partial`` applied; None values never overwrite."""
        known = set(self.attribute_names())
        updates = {k: v for k, v in partial.items() if k in known and v is not None}
        if modified_by is not None:
            updates["last_modified_by"] = modified_by
        return replace(self, **updates)
