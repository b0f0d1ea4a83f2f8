"""Conversion engine: resolves systems and records, runs the mapper, audits."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from ehrmap.audit import AuditAction, AuditEntry, AuditSink
from ehrmap.backends.base import Backend, normalize_rows, read_table
from ehrmap.conversion.mapper import FieldMapper, RecordLike, TransformOptions, as_record
from ehrmap.conversion.validator import RequiredFieldsResult, validate_required
from ehrmap.core.errors import (
    EHRMapError,
    MissingRequiredFieldsError,
    RecordNotFoundError,
    SystemInactiveError,
    SystemNotFoundError,
)
from ehrmap.core.types import (
    Actor,
    EHRSystem,
    ErrorPolicy,
    ExternalDocument,
    FieldMapping,
    PatientRecord,
)
from ehrmap.storage.base import PatientStore, RegistryStore

logger = logging.getLogger(__name__)

# Audit entity id used when an ad hoc record (not a stored one) is exported
MANUAL_TRANSFORM = "manual-transform"


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ExportResult:
    """Result of exporting one record to an EHR system."""

    ehr_system: dict[str, Any]
    original_data: dict[str, Any]
    transformed_data: ExternalDocument
    mapping_count: int
    transformed_at: datetime = field(default_factory=_now)
    errors: list[EHRMapError] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ehrSystem": self.ehr_system,
            "originalData": self.original_data,
            "transformedData": self.transformed_data,
            "mappingCount": self.mapping_count,
            "transformedAt": self.transformed_at.isoformat(),
            "errors": [str(e) for e in self.errors],
        }


@dataclass
class BatchExportResult:
    """Result of exporting a file of patient records."""

    success: bool
    ehr_system_id: str
    rows_processed: int = 0
    rows_converted: int = 0
    conversion_errors: list[tuple[int, list[EHRMapError]]] = field(default_factory=list)
    documents: list[ExternalDocument] = field(default_factory=list)

    # Timing
    start_time: datetime = field(default_factory=_now)
    end_time: datetime | None = None
    duration_seconds: float = 0.0

    # Audit
    audit_log: list[str] = field(default_factory=list)

    def log(self, message: str) -> None:
        """Add an audit log entry."""
        timestamp = _now().isoformat()
        self.audit_log.append(f"[{timestamp}] {message}")
        logger.info(message)

    def finalize(self) -> None:
        """Finalize the result with timing."""
        self.end_time = _now()
        self.duration_seconds = (self.end_time - self.start_time).total_seconds()


class ConversionEngine:
    """Entry point for exporting, importing and validating patient data.

    The engine resolves the EHR system and the patient record, rejects
    missing or inactive systems before the mapper runs, and records an
    audit entry after each successful export or import.
    """

    def __init__(
        self,
        registry: RegistryStore,
        patients: PatientStore | None = None,
        audit: AuditSink | None = None,
        options: TransformOptions | None = None,
    ) -> None:
        """Initialize conversion engine.

        Args:
            registry: Source of EHR systems and field mappings.
            patients: Source and sink of stored patient records.
            audit: Destination for audit entries; nothing is audited when omitted.
            options: Transform options passed to every mapper.
        """
        self.registry = registry
        self.patients = patients
        self.audit = audit
        self.options = options or TransformOptions()

    def resolve_system(self, system_id: str) -> EHRSystem:
        """Return an active EHR system.

        Raises:
            SystemNotFoundError: If the system does not exist.
            SystemInactiveError: If the system has been deactivated.
        """
        system = self.registry.get_system(system_id)
        if system is None:
            raise SystemNotFoundError(system_id)
        if not system.is_active:
            raise SystemInactiveError(system_id)
        return system

    def get_field_mappings(self, system_id: str) -> list[FieldMapping]:
        """Return the ordered field mappings of an active EHR system."""
        return list(self.resolve_system(system_id).field_mappings)

    def _load_patient(self, actor: Actor, patient_id: str) -> PatientRecord:
        """Fetch a stored record; patients only see their own records."""
        record = self.patients.get_patient(patient_id) if self.patients else None
        if record is None or (not actor.is_admin and record.user_id != actor.id):
            raise RecordNotFoundError(patient_id)
        return record

    def _source_record(
        self,
        actor: Actor,
        patient_id: str | None,
        record: RecordLike | None,
    ) -> PatientRecord:
        if patient_id:
            return self._load_patient(actor, patient_id)
        if record is None:
            raise ValueError("No patient data provided")
        return as_record(record)

    def _record_audit(
        self,
        actor: Actor,
        action: AuditAction,
        entity_id: str,
        system: EHRSystem | None,
        **metadata: Any,
    ) -> None:
        if self.audit is None:
            return
        if system is not None:
            metadata = {"ehrSystemName": system.name, **metadata}
        self.audit.record(
            AuditEntry(
                actor=actor.id,
                action=action,
                entity_type="PatientData",
                entity_id=entity_id,
                ehr_system_id=system.id if system else None,
                metadata=metadata,
            )
        )

    def get_patient(self, actor: Actor, patient_id: str) -> PatientRecord:
        """Return a stored record and audit the read.

        Raises:
            RecordNotFoundError: If the record does not exist or belongs to
                another patient.
        """
        record = self._load_patient(actor, patient_id)
        self._record_audit(
            actor, AuditAction.READ, patient_id, None, accessedBy=actor.role.value
        )
        return record

    def export_patient(
        self,
        system_id: str,
        actor: Actor,
        patient_id: str | None = None,
        record: RecordLike | None = None,
    ) -> ExportResult:
        """Transform a stored or ad hoc patient record into an EHR document.

        Args:
            system_id: Target EHR system.
            actor: User performing the export.
            patient_id: Stored record to export; takes precedence over ``record``.
            record: Ad hoc record to export.

        Returns:
            ExportResult with the original and transformed data.
        """
        system = self.resolve_system(system_id)
        source = self._source_record(actor, patient_id, record)

        mapper = FieldMapper(system.field_mappings, self.options)
        document, errors = mapper.map_record(source)

        transformed_at = _now()
        self._record_audit(
            actor,
            AuditAction.EXPORT,
            patient_id or MANUAL_TRANSFORM,
            system,
            transformedFields=len(document),
            timestamp=transformed_at.isoformat(),
        )
        logger.info(
            "Exported %s to %s (%d fields, %d errors)",
            patient_id or MANUAL_TRANSFORM,
            system.name,
            len(document),
            len(errors),
        )

        return ExportResult(
            ehr_system=system.summary(),
            original_data=source.to_dict(camel=True),
            transformed_data=document,
            mapping_count=len(system.field_mappings),
            transformed_at=transformed_at,
            errors=list(errors),
        )

    def import_document(
        self,
        system_id: str,
        document: dict[str, Any],
        actor: Actor,
        patient_id: str,
    ) -> PatientRecord:
        """Merge an EHR document into a stored patient record.

        Fields absent from the document, or null in it, keep their stored values.
        Under the SKIP error policy, values that cannot be coerced are left out
        and listed in the audit entry's ``conversionErrors``.

        Returns:
            The updated and saved PatientRecord.
        """
        system = self.resolve_system(system_id)
        if self.patients is None:
            raise RecordNotFoundError(patient_id)
        existing = self._load_patient(actor, patient_id)

        mapper = FieldMapper(system.field_mappings, self.options)
        partial, errors = mapper.map_document(document)
        for error in errors:
            logger.warning("Import into %s skipped a value: %s", patient_id, error)
        updated = existing.merge(partial, modified_by=actor.id)
        self.patients.save_patient(updated)

        self._record_audit(
            actor,
            AuditAction.IMPORT,
            patient_id,
            system,
            transformedFields=len(partial),
            updatedFields=sorted(partial),
            conversionErrors=[str(e) for e in errors],
            timestamp=_now().isoformat(),
        )
        logger.info("Imported %d fields from %s into %s", len(partial), system.name, patient_id)
        return updated

    def validate_patient(
        self,
        system_id: str,
        actor: Actor,
        patient_id: str | None = None,
        record: RecordLike | None = None,
    ) -> RequiredFieldsResult:
        """Check a stored or ad hoc record for the system's required fields."""
        system = self.resolve_system(system_id)
        source = self._source_record(actor, patient_id, record)
        return validate_required(source, system.field_mappings, self.options)

    def export_dataset(
        self,
        backend: Backend,
        source_path: str | Path,
        system_id: str,
        actor: Actor,
        output_path: str | Path | None = None,
    ) -> BatchExportResult:
        """Export every record of a CSV or Parquet file.

        Rows are mapped with the SKIP error policy: a bad value drops that
        field and a row missing required fields under the FAIL policy is
        left out; both are reported in ``conversion_errors``.

        Args:
            backend: Data processing backend (Arrow, Polars).
            source_path: CSV or Parquet file of patient records.
            system_id: Target EHR system.
            actor: User performing the export.
            output_path: Optional Parquet file for the documents.
        """
        result = BatchExportResult(success=False, ehr_system_id=system_id)
        system = self.resolve_system(system_id)
        mapper = FieldMapper(
            system.field_mappings, replace(self.options, on_error=ErrorPolicy.SKIP)
        )

        result.log(f"Loading patient records from {source_path} with {backend.name}")
        rows = backend.to_rows(read_table(backend, source_path))
        result.rows_processed = len(rows)

        for i, row in enumerate(rows):
            try:
                document, errors = mapper.map_record(row)
            except MissingRequiredFieldsError as err:
                result.conversion_errors.append((i, [err]))
                continue
            result.documents.append(document)
            if errors:
                result.conversion_errors.append((i, list(errors)))

        result.rows_converted = len(result.documents)
        result.log(
            f"Mapped {result.rows_converted}/{result.rows_processed} rows to {system.name}, "
            f"{len(result.conversion_errors)} with errors"
        )

        if output_path and result.documents:
            backend.write_parquet(backend.from_rows(normalize_rows(result.documents)), output_path)
            result.log(f"Wrote {result.rows_converted} documents to {output_path}")

        self._record_audit(
            actor,
            AuditAction.EXPORT,
            str(source_path),
            system,
            transformedRows=result.rows_converted,
            failedRows=result.rows_processed - result.rows_converted,
            timestamp=_now().isoformat(),
        )

        result.success = True
        result.finalize()
        return result

    def list_systems(self) -> list[EHRSystem]:
        """Return active EHR systems ordered by name."""
        return self.registry.list_systems()
