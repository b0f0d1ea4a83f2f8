"""In-memory patient store."""

from __future__ import annotations

import uuid

from ehrmap.core.types import PatientRecord


class InMemoryPatientStore:
    """Dictionary-backed PatientStore for a single process."""

    def __init__(self, records: list[PatientRecord] | None = None) -> None:
        self._records: dict[str, PatientRecord] = {}
        for record in records or []:
            self.save_patient(record)

    def get_patient(self, patient_id: str) -> PatientRecord | None:
        return self._records.get(patient_id)

    def save_patient(self, record: PatientRecord) -> PatientRecord:
        if record.id is None:
            record.id = uuid.uuid4().hex
        self._records[record.id] = record
        return record

    def references_system(self, system_id: str) -> bool:
        return any(r.ehr_system_id == system_id for r in self._records.values())

    def __len__(self) -> int:
        return len(self._records)
