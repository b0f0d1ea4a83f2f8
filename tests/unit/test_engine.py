"""Tests for the conversion engine."""

from datetime import date

import pytest

from ehrmap.audit import AuditAction, InMemoryAuditSink
from ehrmap.conversion.engine import MANUAL_TRANSFORM, ConversionEngine
from ehrmap.core.errors import (
    MissingRequiredFieldsError,
    RecordNotFoundError,
    SystemInactiveError,
    SystemNotFoundError,
)
from ehrmap.core.types import Actor, ErrorPolicy, MissingRequiredPolicy, PatientRecord, Role
from ehrmap.conversion.mapper import TransformOptions
from ehrmap.registry import InMemoryRegistry
from ehrmap.storage import InMemoryPatientStore

ADMIN = Actor(id="admin-1", role=Role.ADMIN)
JOHN = Actor(id="user-john", role=Role.PATIENT)
JANE = Actor(id="user-jane", role=Role.PATIENT)


class TestExport:
    """Tests for ConversionEngine.export_patient."""

    def test_export_stored_record(
        self, engine: ConversionEngine, audit_sink: InMemoryAuditSink
    ) -> None:
        result = engine.export_patient("epic", ADMIN, patient_id="patient-1")

        assert result.ehr_system == {"id": "epic", "name": "Epic", "version": "2024.3"}
        assert result.mapping_count == 18
        assert result.transformed_data["PatientName"] == "John Doe"
        assert result.transformed_data["PatientBirthDate"] == "1990-05-15"
        assert result.original_data["dateOfBirth"] == date(1990, 5, 15)
        assert result.errors == []

        assert len(audit_sink.entries) == 1
        entry = audit_sink.entries[0]
        assert entry.action == AuditAction.EXPORT
        assert entry.actor == "admin-1"
        assert entry.entity_id == "patient-1"
        assert entry.ehr_system_id == "epic"
        assert entry.metadata["ehrSystemName"] == "Epic"
        assert entry.metadata["transformedFields"] == 18

    def test_export_ad_hoc_record(
        self, engine: ConversionEngine, audit_sink: InMemoryAuditSink
    ) -> None:
        result = engine.export_patient(
            "athena",
            JANE,
            record={"name": "Jane Smith", "gender": "Female", "dateOfBirth": "1985-03-22"},
        )

        assert result.transformed_data == {
            "PATIENT_IDENT_NAME": "Jane Smith",
            "GENDER_OF_PATIENT": "Female",
            "DATE_OF_BIRTH_PATIENT": "1985-03-22",
        }
        assert audit_sink.entries[0].entity_id == MANUAL_TRANSFORM

    def test_patient_exports_own_record(self, engine: ConversionEngine) -> None:
        result = engine.export_patient("epic", JOHN, patient_id="patient-1")
        assert result.transformed_data["PatientName"] == "John Doe"

    def test_patient_cannot_export_other_record(
        self, engine: ConversionEngine, audit_sink: InMemoryAuditSink
    ) -> None:
        with pytest.raises(RecordNotFoundError):
            engine.export_patient("epic", JANE, patient_id="patient-1")
        assert audit_sink.entries == []

    def test_unknown_record(self, engine: ConversionEngine) -> None:
        with pytest.raises(RecordNotFoundError):
            engine.export_patient("epic", ADMIN, patient_id="missing")

    def test_unknown_system(self, engine: ConversionEngine) -> None:
        with pytest.raises(SystemNotFoundError):
            engine.export_patient("cerner", ADMIN, patient_id="patient-1")

    def test_inactive_system(
        self,
        engine: ConversionEngine,
        registry: InMemoryRegistry,
        audit_sink: InMemoryAuditSink,
    ) -> None:
        registry.deactivate_system("epic")

        with pytest.raises(SystemInactiveError):
            engine.export_patient("epic", ADMIN, patient_id="patient-1")
        assert audit_sink.entries == []

    def test_no_record(self, engine: ConversionEngine) -> None:
        with pytest.raises(ValueError, match="No patient data"):
            engine.export_patient("epic", ADMIN)

    def test_fail_policy(self, registry: InMemoryRegistry) -> None:
        engine = ConversionEngine(
            registry, options=TransformOptions(missing_required=MissingRequiredPolicy.FAIL)
        )

        with pytest.raises(MissingRequiredFieldsError) as exc_info:
            engine.export_patient("epic", ADMIN, record={"name": "Jane"})
        assert exc_info.value.missing_fields == ["gender", "dob"]

    def test_without_patient_store(self, registry: InMemoryRegistry) -> None:
        engine = ConversionEngine(registry)

        with pytest.raises(RecordNotFoundError):
            engine.export_patient("epic", ADMIN, patient_id="patient-1")


class TestImport:
    """Tests for ConversionEngine.import_document."""

    def test_import_merges_document(
        self,
        engine: ConversionEngine,
        patient_store: InMemoryPatientStore,
        audit_sink: InMemoryAuditSink,
    ) -> None:
        document = {
            "PatientEmail": "new@example.com",
            "PatientPhone": None,
            "PatientBirthDate": "1991-01-01",
            "SomethingElse": "ignored",
        }

        updated = engine.import_document("epic", document, ADMIN, patient_id="patient-1")

        assert updated.email == "new@example.com"
        assert updated.phone == "(555) 123-4567"
        assert updated.date_of_birth == date(1991, 1, 1)
        assert updated.last_modified_by == "admin-1"
        assert patient_store.get_patient("patient-1") == updated

        entry = audit_sink.entries[0]
        assert entry.action == AuditAction.IMPORT
        assert entry.metadata["updatedFields"] == ["date_of_birth", "email"]
        assert entry.metadata["transformedFields"] == 2

    def test_import_reports_skipped_values(
        self,
        registry: InMemoryRegistry,
        patient_store: InMemoryPatientStore,
        audit_sink: InMemoryAuditSink,
    ) -> None:
        engine = ConversionEngine(
            registry,
            patients=patient_store,
            audit=audit_sink,
            options=TransformOptions(on_error=ErrorPolicy.SKIP),
        )

        updated = engine.import_document(
            "epic",
            {"PatientBirthDate": "not-a-date", "PatientCity": "Springfield"},
            ADMIN,
            patient_id="patient-1",
        )

        assert updated.city == "Springfield"
        assert updated.date_of_birth == date(1990, 5, 15)
        metadata = audit_sink.entries[0].metadata
        assert metadata["updatedFields"] == ["city"]
        assert len(metadata["conversionErrors"]) == 1
        assert "not-a-date" in metadata["conversionErrors"][0]

    def test_import_requires_access(self, engine: ConversionEngine) -> None:
        with pytest.raises(RecordNotFoundError):
            engine.import_document("epic", {"PatientName": "X"}, JANE, patient_id="patient-1")

    def test_import_without_store(self, registry: InMemoryRegistry) -> None:
        engine = ConversionEngine(registry)

        with pytest.raises(RecordNotFoundError):
            engine.import_document("epic", {}, ADMIN, patient_id="patient-1")


class TestGetPatient:
    def test_read_is_audited(
        self, engine: ConversionEngine, audit_sink: InMemoryAuditSink
    ) -> None:
        record = engine.get_patient(JOHN, "patient-1")

        assert record.name == "John Doe"
        entry = audit_sink.entries[0]
        assert entry.action == AuditAction.READ
        assert entry.entity_id == "patient-1"
        assert entry.ehr_system_id is None
        assert entry.metadata == {"accessedBy": "PATIENT"}

    def test_other_patient_cannot_read(
        self, engine: ConversionEngine, audit_sink: InMemoryAuditSink
    ) -> None:
        with pytest.raises(RecordNotFoundError):
            engine.get_patient(JANE, "patient-1")
        assert audit_sink.entries == []


class TestValidate:
    def test_validate_ad_hoc(self, engine: ConversionEngine) -> None:
        result = engine.validate_patient("epic", ADMIN, record={"name": "Jane"})

        assert result.is_valid is False
        assert result.missing_fields == ["gender", "dob"]

    def test_validate_stored(self, engine: ConversionEngine) -> None:
        assert engine.validate_patient("allscripts", JOHN, patient_id="patient-1").is_valid

    def test_validate_does_not_audit(
        self, engine: ConversionEngine, audit_sink: InMemoryAuditSink
    ) -> None:
        engine.validate_patient("epic", ADMIN, record=PatientRecord(name="Jane"))
        assert audit_sink.entries == []


class TestRegistryAccess:
    def test_get_field_mappings(self, engine: ConversionEngine) -> None:
        mappings = engine.get_field_mappings("allscripts")
        assert mappings[0].ehr_field == "NAME_OF_PAT"

    def test_list_systems(self, engine: ConversionEngine, registry: InMemoryRegistry) -> None:
        registry.deactivate_system("athena")
        assert [s.id for s in engine.list_systems()] == ["allscripts", "epic"]
