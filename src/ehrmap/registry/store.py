"""In-memory field mapping registry with administrator operations."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any

from ehrmap.core.errors import RegistryError, SystemInUseError, SystemNotFoundError
from ehrmap.core.types import EHRSystem, FieldMapping
from ehrmap.storage.base import PatientStore

logger = logging.getLogger(__name__)

# EHRSystem attributes an administrator may change through update_system
UPDATABLE_PROPERTIES = frozenset({"name", "version", "description", "is_active"})


def check_unique_standard_fields(system_id: str, mappings: list[FieldMapping]) -> None:
    """Raise RegistryError if two mappings share a standard field."""
    seen: set[str] = set()
    for mapping in mappings:
        if mapping.standard_field in seen:
            raise RegistryError(
                f"Duplicate mapping for standard field '{mapping.standard_field}' "
                f"in EHR system '{system_id}'"
            )
        seen.add(mapping.standard_field)


class InMemoryRegistry:
    """RegistryStore that keeps EHR systems in a dictionary.

    Args:
        patients: Optional patient store consulted before deleting a system.
    """

    def __init__(self, patients: PatientStore | None = None) -> None:
        self._systems: dict[str, EHRSystem] = {}
        self.patients = patients

    def get_system(self, system_id: str) -> EHRSystem | None:
        return self._systems.get(system_id)

    def list_systems(self, include_inactive: bool = False) -> list[EHRSystem]:
        systems = [s for s in self._systems.values() if include_inactive or s.is_active]
        return sorted(systems, key=lambda s: s.name)

    def require_system(self, system_id: str) -> EHRSystem:
        system = self._systems.get(system_id)
        if system is None:
            raise SystemNotFoundError(system_id)
        return system

    def add_system(self, system: EHRSystem) -> EHRSystem:
        """Register a new EHR system.

        Raises:
            RegistryError: If the id is taken or mappings repeat a standard field.
        """
        if system.id in self._systems:
            raise RegistryError(f"EHR system already exists: {system.id}")
        check_unique_standard_fields(system.id, system.field_mappings)
        self._systems[system.id] = system
        logger.debug(
            "Registered EHR system %s with %d mappings", system.id, len(system.field_mappings)
        )
        return system

    def update_system(self, system_id: str, **changes: Any) -> EHRSystem:
        """Update identity properties of a system.

        Raises:
            RegistryError: If a property is not updatable.
            SystemNotFoundError: If the system does not exist.
        """
        unknown = set(changes) - UPDATABLE_PROPERTIES
        if unknown:
            raise RegistryError(f"Cannot update properties: {sorted(unknown)}")
        existing = self.require_system(system_id)
        updated = replace(existing, field_mappings=list(existing.field_mappings), **changes)
        self._systems[system_id] = updated
        return updated

    def deactivate_system(self, system_id: str) -> EHRSystem:
        return self.update_system(system_id, is_active=False)

    def delete_system(self, system_id: str) -> None:
        """Remove a system.

        Raises:
            SystemInUseError: If any patient record references the system.
            SystemNotFoundError: If the system does not exist.
        """
        self.require_system(system_id)
        if self.patients is not None and self.patients.references_system(system_id):
            raise SystemInUseError(system_id)
        del self._systems[system_id]
        logger.info("Deleted EHR system %s", system_id)

    def upsert_mapping(self, system_id: str, mapping: FieldMapping) -> FieldMapping | None:
        """Add a mapping or replace the one for the same standard field in place.

        Returns:
            The replaced mapping, or None when the mapping was added.
        """
        system = self.require_system(system_id)
        mappings = list(system.field_mappings)
        previous = None
        for i, existing in enumerate(mappings):
            if existing.standard_field == mapping.standard_field:
                previous = existing
                mappings[i] = mapping
                break
        else:
            mappings.append(mapping)
        self._systems[system_id] = replace(system, field_mappings=mappings)
        return previous

    def __len__(self) -> int:
        return len(self._systems)
