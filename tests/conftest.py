"""Pytest configuration and fixtures."""

from datetime import date
from pathlib import Path

import pytest

from ehrmap.audit import InMemoryAuditSink
from ehrmap.conversion.engine import ConversionEngine
from ehrmap.core.types import DataType, FieldMapping, PatientRecord
from ehrmap.registry import InMemoryRegistry, RegistryLoader
from ehrmap.storage import InMemoryPatientStore


@pytest.fixture
def registry_dir() -> Path:
    """Return path to the bundled registry directory."""
    return Path(__file__).parent.parent / "registry"


@pytest.fixture
def fixed_today() -> date:
    return date(2024, 1, 2)


@pytest.fixture
def basic_mappings() -> list[FieldMapping]:
    """Name and date of birth, both required."""
    return [
        FieldMapping(
            standard_field="name",
            ehr_field="PatientName",
            data_type=DataType.STRING,
            is_required=True,
        ),
        FieldMapping(
            standard_field="dob",
            ehr_field="PatientBirthDate",
            data_type=DataType.DATE,
            is_required=True,
        ),
    ]


@pytest.fixture
def john_doe() -> PatientRecord:
    """Fully populated patient record."""
    return PatientRecord(
        id="patient-1",
        user_id="user-john",
        ehr_system_id="epic",
        name="John Doe",
        email="john.doe@example.com",
        phone="(555) 123-4567",
        gender="Male",
        date_of_birth=date(1990, 5, 15),
        address="123 Main Street",
        city="Anytown",
        state="CA",
        zip_code="12345",
        country="US",
        allergies="Penicillin, Shellfish",
        medications="Lisinopril 10mg daily, Metformin 500mg twice daily",
        medical_history="Hypertension diagnosed 2018, Type 2 Diabetes diagnosed 2020",
        social_history="Non-smoker, Occasional alcohol use",
        family_history="Father: Heart disease, Mother: Diabetes",
        emergency_contact_name="Jane Doe",
        emergency_contact_phone="(555) 987-6543",
        emergency_contact_relation="Spouse",
        insurance_provider="Blue Cross Blue Shield",
        insurance_number="ABC123456789",
        insurance_group="GRP001",
    )


@pytest.fixture
def patient_store(john_doe: PatientRecord) -> InMemoryPatientStore:
    return InMemoryPatientStore([john_doe])


@pytest.fixture
def registry(registry_dir: Path, patient_store: InMemoryPatientStore) -> InMemoryRegistry:
    """Registry loaded from the bundled Athena, Allscripts and Epic files."""
    return RegistryLoader(registry_dir).load_all(patients=patient_store)


@pytest.fixture
def audit_sink() -> InMemoryAuditSink:
    return InMemoryAuditSink()


@pytest.fixture
def engine(
    registry: InMemoryRegistry,
    patient_store: InMemoryPatientStore,
    audit_sink: InMemoryAuditSink,
) -> ConversionEngine:
    return ConversionEngine(registry, patients=patient_store, audit=audit_sink)
