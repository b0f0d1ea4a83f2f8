"""Error types raised by ehrmap."""

from __future__ import annotations

from typing import Any


class EHRMapError(Exception):
    """Base class for all ehrmap errors."""


class CoercionError(EHRMapError):
    """A value could not be coerced to the data type its mapping declares."""

    def __init__(self, field: str, value: Any, data_type: str, reason: str = "") -> None:
        self.field = field
        self.value = value
        self.data_type = data_type
        message = f"Cannot coerce {value!r} to {data_type} for field '{field}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class UnknownMappingTarget(EHRMapError):
    """A mapping references a standard field that is not in the field table."""

    def __init__(self, standard_field: str) -> None:
        self.standard_field = standard_field
        super().__init__(f"Unknown standard field: {standard_field}")


class MissingRequiredFieldsError(EHRMapError):
    """Required fields have no value and the policy forbids defaulting them."""

    def __init__(self, missing_fields: list[str]) -> None:
        self.missing_fields = list(missing_fields)
        super().__init__(f"Missing required fields: {', '.join(self.missing_fields)}")


class RegistryError(EHRMapError):
    """A field mapping registry definition is malformed."""


class SystemNotFoundError(EHRMapError):
    def __init__(self, system_id: str) -> None:
        self.system_id = system_id
        super().__init__(f"EHR system not found: {system_id}")


class SystemInactiveError(EHRMapError):
    def __init__(self, system_id: str) -> None:
        self.system_id = system_id
        super().__init__(f"EHR system is inactive: {system_id}")


class SystemInUseError(EHRMapError):
    """An EHR system cannot be deleted while patient records reference it."""

    def __init__(self, system_id: str) -> None:
        self.system_id = system_id
        super().__init__(f"EHR system is referenced by patient data: {system_id}")


class RecordNotFoundError(EHRMapError):
    def __init__(self, record_id: str) -> None:
        self.record_id = record_id
        super().__init__(f"Patient data not found: {record_id}")


class PermissionDeniedError(EHRMapError):
    """The actor's role does not allow the requested operation."""

    def __init__(self, actor_id: str, operation: str) -> None:
        self.actor_id = actor_id
        self.operation = operation
        super().__init__(f"User {actor_id} is not allowed to {operation}")
