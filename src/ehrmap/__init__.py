"""ehrmap - Patient record mapping to and from EHR vendor vocabularies."""

from ehrmap.conversion import (
    ConversionEngine,
    FieldMapper,
    TransformOptions,
    reverse_transform,
    transform,
    validate_required,
)
from ehrmap.core.types import DataType, EHRSystem, FieldMapping, PatientRecord

__version__ = "0.1.0"

__all__ = [
    "ConversionEngine",
    "DataType",
    "EHRSystem",
    "FieldMapper",
    "FieldMapping",
    "PatientRecord",
    "TransformOptions",
    "__version__",
    "reverse_transform",
    "transform",
    "validate_required",
]
