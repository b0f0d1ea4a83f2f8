"""Audit trail for conversions and registry changes."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


class AuditAction(Enum):
    CREATE = "CREATE"
    READ = "READ"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    EXPORT = "EXPORT"
    IMPORT = "IMPORT"


@dataclass
class AuditEntry:
    """One immutable audit record."""

    actor: str
    action: AuditAction
    entity_type: str
    entity_id: str
    ehr_system_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    old_values: dict[str, Any] | None = None
    new_values: dict[str, Any] | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "actor": self.actor,
            "action": self.action.value,
            "entityType": self.entity_type,
            "entityId": self.entity_id,
            "ehrSystemId": self.ehr_system_id,
            "metadata": self.metadata,
            "oldValues": self.old_values,
            "newValues": self.new_values,
            "createdAt": self.created_at.isoformat(),
        }


@runtime_checkable
class AuditSink(Protocol):
    """Destination for audit entries."""

    def record(self, entry: AuditEntry) -> None:
        """Persist an audit entry."""
        ...


class InMemoryAuditSink:
    """Keeps audit entries in a list."""

    def __init__(self) -> None:
        self.entries: list[AuditEntry] = []

    def record(self, entry: AuditEntry) -> None:
        self.entries.append(entry)
        logger.info(
            "AUDIT: %s %s %s/%s", entry.actor, entry.action.value, entry.entity_type, entry.entity_id
        )


class JsonLinesAuditSink:
    """Appends audit entries to a JSON Lines file."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def record(self, entry: AuditEntry) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "a") as f:
            f.write(json.dumps(entry.to_dict(), default=str) + "\n")
        logger.info(
            "AUDIT: %s %s %s/%s", entry.actor, entry.action.value, entry.entity_type, entry.entity_id
        )

    def read_entries(self) -> list[dict[str, Any]]:
        """Return all entries written so far."""
        if not self.path.exists():
            return []
        with open(self.path) as f:
            return [json.loads(line) for line in f if line.strip()]
