"""Storage-access interfaces the conversion engine depends on."""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from ehrmap.core.types import EHRSystem, PatientRecord


@runtime_checkable
class RegistryStore(Protocol):
    """Source of EHR systems and their ordered field mappings."""

    @abstractmethod
    def get_system(self, system_id: str) -> EHRSystem | None:
        """Return the EHR system with its mappings, or None if unknown.

        Args:
            system_id: EHR system identifier.
        """
        ...

    @abstractmethod
    def list_systems(self, include_inactive: bool = False) -> list[EHRSystem]:
        """Return EHR systems ordered by name.

        Args:
            include_inactive: Include deactivated systems.
        """
        ...


@runtime_checkable
class PatientStore(Protocol):
    """Source and sink of patient records."""

    @abstractmethod
    def get_patient(self, patient_id: str) -> PatientRecord | None:
        """Return the patient record, or None if unknown."""
        ...

    @abstractmethod
    def save_patient(self, record: PatientRecord) -> PatientRecord:
        """Insert or replace a patient record and return it."""
        ...

    @abstractmethod
    def references_system(self, system_id: str) -> bool:
        """Return True if any patient record prefers the given EHR system."""
        ...
