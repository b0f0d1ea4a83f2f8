"""Conversion engine and utilities for ehrmap."""

from ehrmap.conversion.engine import (
    BatchExportResult,
    ConversionEngine,
    ExportResult,
)
from ehrmap.conversion.mapper import (
    FieldMapper,
    TransformContext,
    TransformOptions,
    reverse_transform,
    transform,
)
from ehrmap.conversion.validator import RequiredFieldsResult, validate_required

__all__ = [
    "BatchExportResult",
    "ConversionEngine",
    "ExportResult",
    "FieldMapper",
    "RequiredFieldsResult",
    "TransformContext",
    "TransformOptions",
    "reverse_transform",
    "transform",
    "validate_required",
]
