"""Core module for ehrmap."""

from ehrmap.core.errors import (
    CoercionError,
    EHRMapError,
    MissingRequiredFieldsError,
    PermissionDeniedError,
    RecordNotFoundError,
    RegistryError,
    SystemInactiveError,
    SystemInUseError,
    SystemNotFoundError,
    UnknownMappingTarget,
)
from ehrmap.core.types import (
    STANDARD_FIELDS,
    Actor,
    DataType,
    EHRSystem,
    ErrorPolicy,
    ExternalDocument,
    FieldMapping,
    MissingRequiredPolicy,
    PatientRecord,
    Role,
)

__all__ = [
    "STANDARD_FIELDS",
    "Actor",
    "CoercionError",
    "DataType",
    "EHRMapError",
    "EHRSystem",
    "ErrorPolicy",
    "ExternalDocument",
    "FieldMapping",
    "MissingRequiredFieldsError",
    "MissingRequiredPolicy",
    "PatientRecord",
    "PermissionDeniedError",
    "RecordNotFoundError",
    "RegistryError",
    "Role",
    "SystemInUseError",
    "SystemInactiveError",
    "SystemNotFoundError",
    "UnknownMappingTarget",
]
