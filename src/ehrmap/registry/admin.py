"""Role-checked, audited administration of the field mapping registry."""

from __future__ import annotations

import logging
from typing import Any

from ehrmap.audit import AuditAction, AuditEntry, AuditSink
from ehrmap.core.errors import PermissionDeniedError
from ehrmap.core.types import Actor, EHRSystem, FieldMapping, Role
from ehrmap.registry.store import InMemoryRegistry

logger = logging.getLogger(__name__)


def _system_values(system: EHRSystem) -> dict[str, Any]:
    return {
        "name": system.name,
        "description": system.description,
        "version": system.version,
        "isActive": system.is_active,
    }


class RegistryAdmin:
    """Administrator operations on an InMemoryRegistry.

    Creating and updating systems or mappings requires an ADMIN or
    SUPER_ADMIN actor; deleting a system requires SUPER_ADMIN. Every
    successful change is recorded with its old and new values.

    Example:
        >>> admin = RegistryAdmin(registry, audit=sink)
        >>> admin.update_system(actor, "epic", version="2025.1")
    """

    def __init__(self, registry: InMemoryRegistry, audit: AuditSink | None = None) -> None:
        """Initialize registry admin.

        Args:
            registry: Registry to administer.
            audit: Destination for audit entries; nothing is audited when omitted.
        """
        self.registry = registry
        self.audit = audit

    def _require_admin(self, actor: Actor, operation: str) -> None:
        if not actor.is_admin:
            raise PermissionDeniedError(actor.id, operation)

    def _record(
        self,
        actor: Actor,
        action: AuditAction,
        entity_type: str,
        entity_id: str,
        system_id: str,
        old_values: dict[str, Any] | None = None,
        new_values: dict[str, Any] | None = None,
    ) -> None:
        if self.audit is None:
            return
        self.audit.record(
            AuditEntry(
                actor=actor.id,
                action=action,
                entity_type=entity_type,
                entity_id=entity_id,
                ehr_system_id=system_id,
                old_values=old_values,
                new_values=new_values,
            )
        )

    def create_system(self, actor: Actor, system: EHRSystem) -> EHRSystem:
        """Register a new EHR system.

        Raises:
            PermissionDeniedError: If the actor is not an administrator.
            RegistryError: If the id is taken or mappings repeat a standard field.
        """
        self._require_admin(actor, "create EHR systems")
        created = self.registry.add_system(system)
        self._record(
            actor,
            AuditAction.CREATE,
            "EHRSystem",
            created.id,
            created.id,
            new_values=_system_values(created),
        )
        logger.info("%s created EHR system %s", actor.id, created.id)
        return created

    def update_system(self, actor: Actor, system_id: str, **changes: Any) -> EHRSystem:
        """Update identity properties of a system.

        Raises:
            PermissionDeniedError: If the actor is not an administrator.
            RegistryError: If a property is not updatable.
            SystemNotFoundError: If the system does not exist.
        """
        self._require_admin(actor, "update EHR systems")
        existing = self.registry.require_system(system_id)
        old_values = _system_values(existing)
        updated = self.registry.update_system(system_id, **changes)
        self._record(
            actor,
            AuditAction.UPDATE,
            "EHRSystem",
            system_id,
            system_id,
            old_values=old_values,
            new_values=_system_values(updated),
        )
        return updated

    def deactivate_system(self, actor: Actor, system_id: str) -> EHRSystem:
        return self.update_system(actor, system_id, is_active=False)

    def delete_system(self, actor: Actor, system_id: str) -> None:
        """Remove a system.

        Raises:
            PermissionDeniedError: If the actor is not a SUPER_ADMIN.
            SystemInUseError: If any patient record references the system.
            SystemNotFoundError: If the system does not exist.
        """
        if actor.role is not Role.SUPER_ADMIN:
            raise PermissionDeniedError(actor.id, "delete EHR systems")
        old_values = _system_values(self.registry.require_system(system_id))
        self.registry.delete_system(system_id)
        self._record(
            actor, AuditAction.DELETE, "EHRSystem", system_id, system_id, old_values=old_values
        )

    def upsert_mapping(self, actor: Actor, system_id: str, mapping: FieldMapping) -> FieldMapping:
        """Add a field mapping, or replace the one for the same standard field.

        Raises:
            PermissionDeniedError: If the actor is not an administrator.
            SystemNotFoundError: If the system does not exist.
        """
        self._require_admin(actor, "change field mappings")
        previous = self.registry.upsert_mapping(system_id, mapping)
        self._record(
            actor,
            AuditAction.CREATE if previous is None else AuditAction.UPDATE,
            "EHRFieldMapping",
            f"{system_id}:{mapping.standard_field}",
            system_id,
            old_values=previous.to_dict() if previous else None,
            new_values=mapping.to_dict(),
        )
        return mapping
