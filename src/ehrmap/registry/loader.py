"""YAML loader for EHR system field mapping registries."""

from __future__ import annotations

import logging
from dataclasses import replace
from pathlib import Path
from typing import Any

import yaml

from ehrmap.core.errors import RegistryError
from ehrmap.core.types import DataType, EHRSystem, FieldMapping
from ehrmap.registry.store import InMemoryRegistry, check_unique_standard_fields
from ehrmap.storage.base import PatientStore

logger = logging.getLogger(__name__)


def _parse_data_type(value: str | None) -> DataType:
    """Parse a mapping data type from YAML value."""
    if not value:
        return DataType.STRING
    try:
        return DataType(str(value).lower())
    except ValueError as err:
        allowed = ", ".join(t.value for t in DataType)
        raise RegistryError(f"Unsupported data type '{value}' (expected one of: {allowed})") from err


def _parse_mapping(system_id: str, data: dict[str, Any]) -> FieldMapping:
    """Parse one field mapping entry."""
    try:
        standard_field = data["standard_field"]
        ehr_field = data["ehr_field"]
    except KeyError as err:
        raise RegistryError(f"Mapping in '{system_id}' is missing {err.args[0]}") from err

    return FieldMapping(
        standard_field=str(standard_field),
        ehr_field=str(ehr_field),
        data_type=_parse_data_type(data.get("data_type")),
        is_required=bool(data.get("required", False)),
        description=data.get("description") or "",
    )


def parse_system(data: dict[str, Any], default_id: str) -> EHRSystem:
    """Build an EHRSystem from a parsed YAML document."""
    if not isinstance(data, dict) or "name" not in data:
        raise RegistryError(f"Registry file for '{default_id}' must define a name")

    system_id = str(data.get("id", default_id))
    mappings = [_parse_mapping(system_id, fm) for fm in data.get("field_mappings") or []]
    check_unique_standard_fields(system_id, mappings)

    return EHRSystem(
        id=system_id,
        name=data["name"],
        version=str(data.get("version", "")),
        description=data.get("description", ""),
        is_active=bool(data.get("is_active", True)),
        field_mappings=mappings,
    )


class RegistryLoader:
    """Loads EHR system definitions from a directory of YAML files.

    Each ``<system>.yaml`` file describes one system:

    ```yaml
    id: epic
    name: Epic
    version: "2024.3"
    field_mappings:
      - standard_field: name
        ehr_field: PatientName
        data_type: string
        required: true
    ```
    """

    def __init__(self, registry_dir: str | Path) -> None:
        """Initialize registry loader.

        Args:
            registry_dir: Directory containing registry YAML files.
        """
        self.registry_dir = Path(registry_dir)
        self._cache: dict[str, EHRSystem] = {}

    def load_system(self, system_name: str) -> EHRSystem:
        """Load a single EHR system definition.

        Args:
            system_name: File stem of the registry file (e.g., 'epic').

        Returns:
            EHRSystem with ordered field mappings.

        Raises:
            FileNotFoundError: If the registry file doesn't exist.
            RegistryError: If the file content is invalid.
        """
        if system_name in self._cache:
            return self._cache[system_name]

        path = self.registry_dir / f"{system_name.lower()}.yaml"
        if not path.exists():
            raise FileNotFoundError(f"Registry file not found: {path}")

        with open(path) as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as err:
                raise RegistryError(f"Invalid YAML in {path}: {err}") from err

        system = parse_system(data, default_id=path.stem)
        logger.debug("Loaded %s (%d mappings) from %s", system.name, len(system.field_mappings), path)

        self._cache[system_name] = system
        return system

    def list_system_files(self) -> list[str]:
        """List the file stems of all registry files."""
        if not self.registry_dir.exists():
            return []
        return sorted(p.stem for p in self.registry_dir.glob("*.yaml"))

    def load_all(self, patients: PatientStore | None = None) -> InMemoryRegistry:
        """Load every registry file into a fresh in-memory registry."""
        registry = InMemoryRegistry(patients=patients)
        for name in self.list_system_files():
            system = self.load_system(name)
            # Each registry gets its own mapping list; the cached system stays untouched
            registry.add_system(replace(system, field_mappings=list(system.field_mappings)))
        logger.info("Loaded %d EHR systems from %s", len(registry), self.registry_dir)
        return registry

    def clear_cache(self) -> None:
        """Clear the loaded system cache."""
        self._cache.clear()
